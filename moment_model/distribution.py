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

"""Parametric particle size distributions used as modes of the population."""

from abc import ABC, abstractmethod

import numpy as np
from scipy.integrate import trapezoid
from scipy.special import gamma

from moment_model.constants import SMALL_VALUE, DEFAULT_X_LOWERBOUND, \
    DEFAULT_N_BINS
from moment_model.math_utils import gamma_ratio, truncated_gamma_moment


def check_moment_consistency(moments):
    """Check that a moment vector can belong to a nonnegative measure.

    Raises ValueError if the zeroth or first moment is negative, or if three
    or more moments are given and the first moment squared exceeds the product
    of the zeroth and second moments (i.e. the variance would be negative).
    """
    moments = np.asarray(moments)
    if moments[0] < 0.:
        raise ValueError(f"zeroth moment is negative: {moments[0]}")
    if moments[1] < 0.:
        raise ValueError(f"first moment is negative: {moments[1]}")
    if len(moments) > 2 and moments[1]**2 > moments[0] * moments[2]:
        raise ValueError("moments imply a negative variance: "
                         f"{moments[1]}**2 > {moments[0]} * {moments[2]}")


def moment_source_helper(dist, p, q, threshold, x_lowerbound=None,
                         n_bins=None):
    """Truncated double moment integral of a distribution with itself.

    See ParticleDistribution.moment_source_helper.
    """
    return dist.moment_source_helper(p, q, threshold,
                                     x_lowerbound=x_lowerbound,
                                     n_bins=n_bins)


def _check_size(x):
    """Raise ValueError if any particle size is negative."""
    if np.any(np.asarray(x) < 0.):
        raise ValueError(f"density evaluated at negative size: {x}")


def _clip_param(name, value, param_range):
    """Clip value into the bounds given for name in param_range, if any."""
    if param_range is None or name not in param_range:
        return value
    low, high = param_range[name]
    return min(max(value, low), high)


class ParticleDistribution(ABC):
    """
    Base class for parametric distributions describing a single mode.

    Subclasses define the class attributes:
    family - String tag identifying the distribution family.
    param_names - Names of the parameters, concentration first.

    The concentration parameter `n` is the zeroth moment. All parameters are
    strictly positive, except that update_from_moments can set `n` to zero to
    represent a mode with no particles in it.
    """

    family = None
    param_names = ()

    def __init__(self, *params):
        self.update_params(params)

    def __repr__(self):
        args = ", ".join(f"{name}={getattr(self, name)}"
                         for name in self.param_names)
        return f"{type(self).__name__}({args})"

    def __call__(self, x):
        return self.density(x)

    def nparams(self):
        """Number of parameters, which is also the number of moments tracked."""
        return len(self.param_names)

    def get_params(self):
        """Returns a tuple of lists `(names, values)` of the parameters."""
        return list(self.param_names), \
            [getattr(self, name) for name in self.param_names]

    def update_params(self, params):
        """Set all parameters, which must be strictly positive."""
        if len(params) != self.nparams():
            raise ValueError(f"{type(self).__name__} takes {self.nparams()}"
                             f" parameters but {len(params)} were given")
        for name, value in zip(self.param_names, params):
            if not value > 0.:
                raise ValueError(f"parameter {name} must be positive but is"
                                 f" {value}")
        for name, value in zip(self.param_names, params):
            setattr(self, name, float(value))

    def is_zero(self):
        """Whether this distribution contains no particles."""
        return self.n == 0.

    def set_zero(self):
        """Make this the zero distribution, leaving shape parameters as-is."""
        self.n = 0.

    @abstractmethod
    def moment(self, p):
        """Moment of order p >= 0 of this distribution."""

    def moments(self):
        """Array of the moments tracked by this distribution (orders 0, 1...)."""
        return np.array([self.moment(float(p)) for p in range(self.nparams())])

    @abstractmethod
    def normed_density(self, x):
        """Density of this distribution's family with unit concentration."""

    def density(self, x):
        """Number density at particle size x.

        Raises ValueError for negative x.
        """
        _check_size(x)
        return self.n * self.normed_density(x)

    def update_from_moments(self, moments, param_range=None):
        """Set parameters so that this distribution has the given moments.

        Arguments:
        moments - Target moments of order 0 through nparams()-1.
        param_range (optional) - Dictionary mapping parameter names other than
                                 "n" to (low, high) bounds.

        Parameters that fall out of their bounds are clipped, and the
        concentration is then chosen so as to preserve the first moment.
        If the target zeroth moment is below machine epsilon, or the target
        first moment is exactly zero, this becomes the zero distribution.
        """
        moments = np.asarray(moments, dtype=np.float64)
        if moments.shape != (self.nparams(),):
            raise ValueError(f"{type(self).__name__} requires"
                             f" {self.nparams()} moments but received"
                             f" {moments.shape}")
        if moments[0] >= 0. and moments[1] >= 0. \
           and (moments[0] < SMALL_VALUE or moments[1] == 0.):
            self.set_zero()
            return
        check_moment_consistency(moments)
        self.update_params(self._fit_params(moments, param_range))

    @abstractmethod
    def _fit_params(self, moments, param_range):
        """Method-of-moments parameters for a consistent, nonzero target."""

    @abstractmethod
    def moment_source_helper(self, p, q, threshold, x_lowerbound=None,
                             n_bins=None):
        r"""Truncated double moment integral of this distribution with itself.

        Arguments:
        p, q - Moment orders for the first and second particle.
        threshold - Size above which a coalesced particle leaves the mode.
        x_lowerbound (optional) - Lower end of the quadrature interval.
        n_bins (optional) - Number of quadrature intervals.

        Approximates

        $$\int\int_{x+y<threshold} x^p y^q f(x) f(y) dy dx$$

        which is the part of the product of moments p and q due to pairs
        whose combined size stays below the threshold.
        """


class MonodisperseDistribution(ParticleDistribution):
    """
    All particles share a single size.

    Initialization arguments:
    n - Number concentration.
    theta - Particle size.

    The Dirac density is represented for pointwise evaluation by a top-hat of
    relative half-width `delta_width` centered on theta.
    """

    family = 'monodisperse'
    param_names = ('n', 'theta')

    delta_width = 1.e-3
    """Relative half-width of the top-hat standing in for the Dirac density."""

    def __init__(self, n, theta):
        super().__init__(n, theta)

    def moment(self, p):
        return self.n * self.theta**p

    def normed_density(self, x):
        _check_size(x)
        half_width = self.delta_width * self.theta
        inside = np.abs(np.asarray(x) - self.theta) <= half_width
        output = np.where(inside, 0.5 / half_width, 0.)
        if output.ndim == 0:
            return float(output)
        return output

    def _fit_params(self, moments, param_range):
        theta = _clip_param('theta', moments[1] / moments[0], param_range)
        return [moments[1] / theta, theta]

    def moment_source_helper(self, p, q, threshold, x_lowerbound=None,
                             n_bins=None):
        if 2. * self.theta < threshold:
            return self.n**2 * self.theta**(p + q)
        return 0.


def _gamma_family_source_helper(dist, k, p, q, threshold, x_lowerbound,
                                n_bins):
    """moment_source_helper for distributions with a gamma density."""
    if x_lowerbound is None:
        x_lowerbound = DEFAULT_X_LOWERBOUND
    if n_bins is None:
        n_bins = DEFAULT_N_BINS
    if np.isinf(threshold):
        return dist.moment(p) * dist.moment(q)
    if threshold <= x_lowerbound:
        return 0.
    x = np.linspace(x_lowerbound, threshold, n_bins+1)
    inner = dist.n * truncated_gamma_moment(q, k, dist.theta, threshold - x)
    return trapezoid(x**p * dist.density(x) * inner, x)


class ExponentialDistribution(ParticleDistribution):
    """
    Exponential distribution of particle sizes.

    Initialization arguments:
    n - Number concentration.
    theta - Scale parameter (the mean particle size).
    """

    family = 'exponential'
    param_names = ('n', 'theta')

    def __init__(self, n, theta):
        super().__init__(n, theta)

    def moment(self, p):
        return self.n * self.theta**p * gamma(p + 1.)

    def normed_density(self, x):
        _check_size(x)
        return np.exp(-x / self.theta) / self.theta

    def _fit_params(self, moments, param_range):
        theta = _clip_param('theta', moments[1] / moments[0], param_range)
        return [moments[1] / theta, theta]

    def moment_source_helper(self, p, q, threshold, x_lowerbound=None,
                             n_bins=None):
        return _gamma_family_source_helper(self, 1., p, q, threshold,
                                           x_lowerbound, n_bins)


class GammaDistribution(ParticleDistribution):
    """
    Gamma distribution of particle sizes.

    Initialization arguments:
    n - Number concentration.
    theta - Scale parameter.
    k - Shape parameter.
    """

    family = 'gamma'
    param_names = ('n', 'theta', 'k')

    def __init__(self, n, theta, k):
        super().__init__(n, theta, k)

    def moment(self, p):
        return self.n * self.theta**p * gamma_ratio(p, self.k)

    def normed_density(self, x):
        _check_size(x)
        k = self.k
        theta = self.theta
        return x**(k - 1.) * np.exp(-x / theta) / (gamma(k) * theta**k)

    def _fit_params(self, moments, param_range):
        mean = moments[1] / moments[0]
        theta = _clip_param('theta', moments[2] / moments[1] - mean,
                            param_range)
        if not theta > 0.:
            raise ValueError("moments do not determine a positive gamma scale"
                             f" parameter: {moments}")
        k = _clip_param('k', mean / theta, param_range)
        return [moments[1] / (k * theta), theta, k]

    def moment_source_helper(self, p, q, threshold, x_lowerbound=None,
                             n_bins=None):
        return _gamma_family_source_helper(self, self.k, p, q, threshold,
                                           x_lowerbound, n_bins)

