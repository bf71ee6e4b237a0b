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

"""Constants and default settings for the bulk moment model."""

import numpy as np

DEFAULT_QUAD_RTOL = 1.e-8
"""Relative tolerance for each adaptive quadrature in numerical coalescence."""

DEFAULT_QUAD_MAX_EVALS = 1000
"""Cap on integrand evaluations for each adaptive quadrature."""

DEFAULT_X_LOWERBOUND = 1.e-5
"""Lower end of the truncated moment integrals in moment_source_helper."""

DEFAULT_N_BINS = 50
"""Number of trapezoidal intervals used by moment_source_helper."""

SMALL_VALUE = np.finfo(np.float64).eps
"""Moments and moment products below this are treated as exactly zero."""


class ModelConstants:
    """
    Define scalings used to nondimensionalize the model.

    Initialization arguments:
    mass_scale (optional) - Particle mass (kg) corresponding to a scaled mass
                            of 1. Defaults to 1.
    time_scale (optional) - Time (s) corresponding to a scaled time of 1.
                            Defaults to 1.

    Moments of order p are carried in units of mass_scale**p per unit volume,
    and all process rates are per unit of scaled time.
    """

    def __init__(self, mass_scale=None, time_scale=None):
        if mass_scale is None:
            mass_scale = 1.
        if time_scale is None:
            time_scale = 1.
        if not mass_scale > 0.:
            raise ValueError(f"mass_scale must be positive but is {mass_scale}")
        if not time_scale > 0.:
            raise ValueError(f"time_scale must be positive but is {time_scale}")
        self.mass_scale = mass_scale
        self.time_scale = time_scale

    def mass_to_scaled(self, mass):
        """Convert particle mass in kg to non-dimensionalized particle size."""
        return mass / self.mass_scale

    def scaled_to_mass(self, x):
        """Convert non-dimensionalized particle size to mass in kg."""
        return x * self.mass_scale
