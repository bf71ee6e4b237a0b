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

"""Collision-coalescence kernel functions for the bulk moment model."""

from abc import ABC, abstractmethod


def _check_coefficient(name, value):
    if not value >= 0.:
        raise ValueError(f"{name} must be nonnegative but is {value}")


class CoalescenceKernel(ABC):
    """
    Represent a collision-coalescence kernel K(x, y).

    Particle sizes x and y are nondimensionalized masses, and the kernel is
    symmetric and nonnegative. Instances are callable.
    """

    def __call__(self, x, y):
        return self.evaluate(x, y)

    @abstractmethod
    def evaluate(self, x, y):
        """Rate at which particles of sizes x and y collide and coalesce."""


class ConstantKernel(CoalescenceKernel):
    """
    Kernel with the same value for all pairs of particles.

    Initialization arguments:
    coef - Kernel value.
    """

    def __init__(self, coef):
        _check_coefficient("coef", coef)
        self.coef = coef

    def evaluate(self, x, y):
        return self.coef


class LinearKernel(CoalescenceKernel):
    """
    Kernel proportional to the sum of particle sizes (Golovin's kernel).

    Initialization arguments:
    coef - Coefficient c in K(x, y) = c * (x + y).
    """

    def __init__(self, coef):
        _check_coefficient("coef", coef)
        self.coef = coef

    def evaluate(self, x, y):
        return self.coef * (x + y)


class ProductKernel(CoalescenceKernel):
    """
    Kernel proportional to the product of particle sizes.

    Initialization arguments:
    coef - Coefficient c in K(x, y) = c * x * y.
    """

    def __init__(self, coef):
        _check_coefficient("coef", coef)
        self.coef = coef

    def evaluate(self, x, y):
        return self.coef * x * y


class LongKernel(CoalescenceKernel):
    """
    Piecewise-polynomial approximation of the hydrodynamic kernel by Long.

    Initialization arguments:
    cloud_coef - Coefficient used when both particles are cloud-sized.
    rain_coef - Coefficient used when either particle is rain-sized.
    mass_threshold - Size separating cloud from rain particles.

    For cloud-sized pairs, K(x, y) = cloud_coef * (x**2 + y**2), and otherwise
    K(x, y) = rain_coef * (x + y).
    """

    def __init__(self, cloud_coef, rain_coef, mass_threshold):
        _check_coefficient("cloud_coef", cloud_coef)
        _check_coefficient("rain_coef", rain_coef)
        if not mass_threshold > 0.:
            raise ValueError("mass_threshold must be positive but is"
                             f" {mass_threshold}")
        self.cloud_coef = cloud_coef
        self.rain_coef = rain_coef
        self.mass_threshold = mass_threshold

    def evaluate(self, x, y):
        if x < self.mass_threshold and y < self.mass_threshold:
            return self.cloud_coef * (x**2 + y**2)
        return self.rain_coef * (x + y)


def make_golovin_kernel(constants, b):
    """Make a Golovin kernel from its coefficient in SI units.

    Arguments:
    constants - ModelConstants object used for nondimensionalization.
    b - Kernel coefficient (m^3/kg/s), so that K = b * (m_x + m_y) in m^3/s
        for particle masses m_x and m_y in kg.

    Returns a LinearKernel acting on scaled sizes and producing rates per
    unit of scaled time.
    """
    return LinearKernel(b * constants.mass_scale * constants.time_scale)


def make_long_kernel(constants, cloud_coef, rain_coef, mass_threshold):
    """Make a LongKernel from coefficients in SI units.

    Arguments:
    constants - ModelConstants object used for nondimensionalization.
    cloud_coef - Cloud coefficient (m^3/kg^2/s).
    rain_coef - Rain coefficient (m^3/kg/s).
    mass_threshold - Particle mass (kg) separating cloud from rain.
    """
    mscale = constants.mass_scale
    tscale = constants.time_scale
    return LongKernel(cloud_coef * mscale**2 * tscale,
                      rain_coef * mscale * tscale,
                      constants.mass_to_scaled(mass_threshold))
