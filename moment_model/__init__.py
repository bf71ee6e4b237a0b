#   Copyright 2022 Sean Patrick Santos
#
#   Licensed under the Apache License, Version 2.0 (the "License");
#   you may not use this file except in compliance with the License.
#   You may obtain a copy of the License at
#
#       http://www.apache.org/licenses/LICENSE-2.0
#
#   Unless required by applicable law or agreed to in writing, software
#   distributed under the License is distributed on an "AS IS" BASIS,
#   WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#   See the License for the specific language governing permissions and
#   limitations under the License.

"""Collision-coalescence source terms for a multi-mode bulk moment model."""

from moment_model.constants import ModelConstants, DEFAULT_QUAD_RTOL, \
    DEFAULT_QUAD_MAX_EVALS, DEFAULT_X_LOWERBOUND, DEFAULT_N_BINS, SMALL_VALUE
from moment_model.distribution import ParticleDistribution, \
    MonodisperseDistribution, ExponentialDistribution, GammaDistribution, \
    check_moment_consistency, moment_source_helper
from moment_model.kernel import CoalescenceKernel, ConstantKernel, \
    LinearKernel, ProductKernel, LongKernel, make_golovin_kernel, \
    make_long_kernel
from moment_model.kernel_tensor import KernelTensor
from moment_model.process import Process
from moment_model.coalescence import CoalescenceData, \
    AnalyticalCoalescence, NumericalCoalescence
from moment_model.descriptor import ModelStateDescriptor
from moment_model.state import ModelState
from moment_model.time import Trajectory, Integrator, RK45Integrator, \
    SSPRK33Integrator
