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

# pylint: disable=invalid-name

"""Collision-coalescence source terms for multi-mode moment models.

Two algorithms are provided. AnalyticalCoalescence approximates the kernel by
a polynomial (KernelTensor), so that every coalescence integral reduces to
sums of products of moments. NumericalCoalescence evaluates the same integrals
with nested adaptive quadrature of the raw kernel and the mode densities.

Both fill the gain matrix Q, the loss matrix R and the self-coalescence split
S in a CoalescenceData workspace, one moment order at a time, and combine them
as

    coal_ints[k][m] = sum_j Q[j,k] - sum_j R[j,k] + S[k,0] + S[k-1,1]

where the last term is absent for the first mode. Q[j,k] (j < k) is the gain
of mode k from collisions between modes j and k, R[j,k] the loss of mode k due
to collisions with mode j, S[k,0] the gain of mode k from collisions within
itself and S[k,1] the part of that gain promoted to mode k+1.
"""

from absl import logging
import numba as nb
import numpy as np

from moment_model.constants import SMALL_VALUE, DEFAULT_QUAD_RTOL, \
    DEFAULT_QUAD_MAX_EVALS
from moment_model.kernel_tensor import KernelTensor
from moment_model.math_utils import binomial_table, adaptive_integral
from moment_model.distribution import MonodisperseDistribution
from moment_model.process import Process


@nb.njit(nogil=True, cache=True)
def q_sum(coefs, binom, moments_j, moments_k, order):
    """Polynomial-kernel gain from collisions of two different modes."""
    r = coefs.shape[0] - 1
    total = 0.
    for a in range(r+1):
        for b in range(r+1):
            for c in range(order+1):
                total += coefs[a,b] * binom[order,c] \
                    * moments_j[a+c] * moments_k[b+order-c]
    return total

@nb.njit(nogil=True, cache=True)
def r_sum(coefs, moments_j, moments_k, order):
    """Polynomial-kernel loss of mode k's moment due to collisions with j."""
    r = coefs.shape[0] - 1
    total = 0.
    for a in range(r+1):
        for b in range(r+1):
            total += coefs[a,b] * moments_j[a] * moments_k[b+order]
    return total

@nb.njit(nogil=True, cache=True)
def s_sums(coefs, binom, moments_k, finite_ints, order):
    """Polynomial-kernel self-coalescence gain, split by size threshold.

    Returns the gain retained below the threshold and the gain promoted
    above it.
    """
    r = coefs.shape[0] - 1
    retained = 0.
    promoted = 0.
    for a in range(r+1):
        for b in range(r+1):
            for c in range(order+1):
                fac = 0.5 * coefs[a,b] * binom[order,c]
                below = fac * finite_ints[a+c,b+order-c]
                retained += below
                promoted += fac * moments_k[a+c] * moments_k[b+order-c] \
                    - below
    return retained, promoted


class CoalescenceData:
    """
    Workspace for coalescence integral calculations.

    Initialization arguments:
    num_prog_moms - Number of prognostic moments for each mode.
    num_cached_moments (optional) - Number of moments (orders 0, 1, ...) of
                                    each mode to cache. Defaults to the
                                    largest entry of num_prog_moms.
    finite_2d_sizes (optional) - Size of the square truncated integral table
                                 for each mode. Defaults to no tables.
    dist_thresholds (optional) - Size threshold for each mode above which
                                 self-coalescence products are promoted to the
                                 next mode. Defaults to infinity.

    Attributes:
    num_modes - Number of modes.
    num_prog_moms - List of prognostic moment counts.
    Q, R - Cross-mode gain and loss matrices, shape (num_modes, num_modes).
    S - Self-coalescence split, shape (num_modes, 2).
    moments - Cached moments, shape (num_modes, num_cached_moments).
    finite_2d_ints - List of truncated double moment integral tables.
    coal_ints - List of arrays of moment tendencies, one per mode.
    dist_thresholds - Array of mode thresholds.

    This object is mutated in place by each evaluation and must not be
    shared between simultaneous calculations.
    """

    def __init__(self, num_prog_moms, num_cached_moments=None,
                 finite_2d_sizes=None, dist_thresholds=None):
        num_modes = len(num_prog_moms)
        if num_modes < 1:
            raise ValueError("at least one mode is required")
        if min(num_prog_moms) < 1:
            raise ValueError("every mode must have at least one prognostic"
                             f" moment, but counts are {num_prog_moms}")
        self.num_modes = num_modes
        self.num_prog_moms = list(num_prog_moms)
        self.Q = np.zeros((num_modes, num_modes))
        self.R = np.zeros((num_modes, num_modes))
        self.S = np.zeros((num_modes, 2))
        if num_cached_moments is None:
            num_cached_moments = max(num_prog_moms)
        self.moments = np.zeros((num_modes, num_cached_moments))
        if finite_2d_sizes is None:
            finite_2d_sizes = []
        self.finite_2d_ints = [np.zeros((size, size))
                               for size in finite_2d_sizes]
        self.coal_ints = [np.zeros((num,)) for num in num_prog_moms]
        if dist_thresholds is None:
            dist_thresholds = np.full((num_modes,), np.inf)
        dist_thresholds = np.array(dist_thresholds, dtype=np.float64)
        if dist_thresholds.shape != (num_modes,):
            raise ValueError(f"expected {num_modes} distribution thresholds"
                             f" but got {dist_thresholds.shape}")
        self.dist_thresholds = dist_thresholds

    def max_prog_moms(self):
        """Largest number of prognostic moments of any mode."""
        return max(self.num_prog_moms)

    def accumulate(self, moment_order):
        """Add the current Q, R and S contributions to coal_ints.

        Only modes that track the given moment order are updated.
        """
        for k in range(self.num_modes):
            if moment_order >= self.num_prog_moms[k]:
                continue
            rate = self.Q[:,k].sum() - self.R[:,k].sum() + self.S[k,0]
            if k > 0:
                rate += self.S[k-1,1]
            self.coal_ints[k][moment_order] += rate

    def flat_coal_ints(self):
        """Return coal_ints as a single 1-D array in mode order."""
        return np.concatenate(self.coal_ints)


def _check_num_modes(pdists, num_modes):
    if len(pdists) != num_modes:
        raise ValueError(f"expected {num_modes} distributions but got"
                         f" {len(pdists)}")


def _matrix_of_kernels(kernel, num_modes):
    """Broadcast or validate the kernel tensors for each pair of modes."""
    if isinstance(kernel, KernelTensor):
        return [[kernel] * num_modes for _ in range(num_modes)]
    if not isinstance(kernel, (list, tuple, np.ndarray)):
        raise ValueError("analytical coalescence requires a KernelTensor or"
                         " a matrix of them, but got"
                         f" {type(kernel).__name__}")
    rows = [list(row) for row in kernel]
    if len(rows) != num_modes or any(len(row) != num_modes for row in rows):
        raise ValueError("matrix of kernel tensors must be of shape"
                         f" {(num_modes, num_modes)}")
    for row in rows:
        for ktens in row:
            if not isinstance(ktens, KernelTensor):
                raise ValueError("analytical coalescence requires KernelTensor"
                                 f" kernels, but got {type(ktens).__name__}")
    return rows


class AnalyticalCoalescence(Process):
    """
    Coalescence integrals in closed form using polynomial kernels.

    Initialization arguments:
    kernel - A KernelTensor used for every pair of modes, or a nested list
             (or object array) of KernelTensors with one entry per pair.
    num_prog_moms - Number of prognostic moments for each mode.
    dist_thresholds (optional) - Size threshold of each mode above which
                                 self-coalescence products are promoted to the
                                 next mode. Defaults to infinity (no
                                 promotion).
    x_lowerbound (optional) - Passed to moment_source_helper.
    n_bins (optional) - Passed to moment_source_helper.

    Attributes:
    matrix_of_kernels - Nested list of the KernelTensor for each mode pair.
    coal_data - The CoalescenceData workspace.
    """

    # pylint: disable-next=too-many-arguments
    def __init__(self, kernel, num_prog_moms, dist_thresholds=None,
                 x_lowerbound=None, n_bins=None):
        num_modes = len(num_prog_moms)
        self.matrix_of_kernels = _matrix_of_kernels(kernel, num_modes)
        orders = np.array([[ktens.order for ktens in row]
                           for row in self.matrix_of_kernels])
        finite_2d_sizes = []
        for i in range(num_modes):
            if i < num_modes - 1:
                num = max(num_prog_moms[i], num_prog_moms[i+1])
            else:
                num = num_prog_moms[i]
            finite_2d_sizes.append(orders[i,i] + num)
        self.coal_data = CoalescenceData(
            num_prog_moms,
            num_cached_moments=max(num_prog_moms) + orders.max(),
            finite_2d_sizes=finite_2d_sizes,
            dist_thresholds=dist_thresholds)
        self.binomials = binomial_table(max(num_prog_moms))
        self.x_lowerbound = x_lowerbound
        self.n_bins = n_bins
        logging.debug("Analytical coalescence for %d modes with moment"
                      " counts %s and kernel orders up to %d.", num_modes,
                      num_prog_moms, orders.max())

    def update_moments(self, pdists):
        """Refresh the moment cache from the distributions."""
        moments = self.coal_data.moments
        for i, pdist in enumerate(pdists):
            for j in range(moments.shape[1]):
                moments[i,j] = pdist.moment(float(j))

    def update_finite_2d_integrals(self, pdists):
        """Refresh the truncated double moment integrals of each mode.

        Must be called after update_moments. The last mode cannot promote
        particles to any other mode, so it uses full moment products.
        """
        cd = self.coal_data
        moments = cd.moments
        for i, pdist in enumerate(pdists):
            ints = cd.finite_2d_ints[i]
            size = ints.shape[0]
            for j in range(size):
                for k in range(j, size):
                    mom_times_mom = moments[i,j] * moments[i,k]
                    if mom_times_mom < SMALL_VALUE:
                        value = 0.
                    elif i < cd.num_modes - 1:
                        value = min(mom_times_mom, pdist.moment_source_helper(
                            float(j), float(k), cd.dist_thresholds[i],
                            x_lowerbound=self.x_lowerbound,
                            n_bins=self.n_bins))
                    else:
                        value = mom_times_mom
                    ints[j,k] = value
                    ints[k,j] = value

    def update_q_coalescence_matrix(self, moment_order):
        """Fill Q for the given moment order; only j < k is nonzero."""
        cd = self.coal_data
        cd.Q[:,:] = 0.
        for j in range(cd.num_modes):
            for k in range(j+1, cd.num_modes):
                if cd.num_prog_moms[k] <= moment_order:
                    continue
                cd.Q[j,k] = q_sum(self.matrix_of_kernels[j][k].data,
                                  self.binomials, cd.moments[j],
                                  cd.moments[k], moment_order)

    def update_r_coalescence_matrix(self, moment_order):
        """Fill R for the given moment order."""
        cd = self.coal_data
        cd.R[:,:] = 0.
        for j in range(cd.num_modes):
            for k in range(cd.num_modes):
                if cd.num_prog_moms[k] <= moment_order:
                    continue
                cd.R[j,k] = r_sum(self.matrix_of_kernels[j][k].data,
                                  cd.moments[j], cd.moments[k], moment_order)

    def update_s_coalescence_matrix(self, moment_order):
        """Fill S for the given moment order.

        The self term of mode k is needed if either mode k or the mode k+1
        that receives its promoted particles tracks this moment order.
        """
        cd = self.coal_data
        cd.S[:,:] = 0.
        npm = cd.num_prog_moms
        for k in range(cd.num_modes):
            if npm[k] <= moment_order and \
               (k == cd.num_modes - 1 or npm[k+1] <= moment_order):
                continue
            cd.S[k,0], cd.S[k,1] = s_sums(self.matrix_of_kernels[k][k].data,
                                          self.binomials, cd.moments[k],
                                          cd.finite_2d_ints[k], moment_order)

    def get_coalescence_integral_moment_qrs(self, moment_order):
        """Fill Q, R and S for one moment order."""
        self.update_q_coalescence_matrix(moment_order)
        self.update_r_coalescence_matrix(moment_order)
        self.update_s_coalescence_matrix(moment_order)

    def update_coal_ints(self, pdists):
        """Update the coalescence integrals for the given distributions.

        Returns coal_data.coal_ints, a list with the tendency of each mode's
        prognostic moments.
        """
        cd = self.coal_data
        _check_num_modes(pdists, cd.num_modes)
        self.update_moments(pdists)
        self.update_finite_2d_integrals(pdists)
        for ints in cd.coal_ints:
            ints[:] = 0.
        for m in range(cd.max_prog_moms()):
            self.get_coalescence_integral_moment_qrs(m)
            cd.accumulate(m)
        return cd.coal_ints

    def calc_rate(self, pdists):
        self.update_coal_ints(pdists)
        return self.coal_data.flat_coal_ints()


class NumericalCoalescence(Process):
    """
    Coalescence integrals by nested adaptive quadrature.

    Initialization arguments:
    kernel - Callable kernel K(x, y), e.g. a CoalescenceKernel.
    num_prog_moms - Number of prognostic moments for each mode.
    rtol (optional) - Relative tolerance of each quadrature. Defaults to
                      DEFAULT_QUAD_RTOL.
    max_evals (optional) - Approximate cap on integrand evaluations for each
                           quadrature. Defaults to DEFAULT_QUAD_MAX_EVALS.

    All distributions passed to this object must be of the same family, and
    that family must have a density (monodisperse is rejected).
    Rather than a hard threshold, the self-coalescence products of mode k are
    split between mode k and mode k+1 using weighting_fn.
    """

    def __init__(self, kernel, num_prog_moms, rtol=None, max_evals=None):
        if rtol is None:
            rtol = DEFAULT_QUAD_RTOL
        if max_evals is None:
            max_evals = DEFAULT_QUAD_MAX_EVALS
        self.kernel = kernel
        self.rtol = rtol
        self.max_evals = max_evals
        self.coal_data = CoalescenceData(num_prog_moms)
        logging.debug("Numerical coalescence for %d modes with moment"
                      " counts %s (rtol=%g, max_evals=%d).",
                      len(num_prog_moms), num_prog_moms, rtol, max_evals)

    def _integrate(self, func, upper):
        return adaptive_integral(func, 0., upper, self.rtol, self.max_evals)

    def weighting_fn(self, x, k, pdists):
        """Fraction of the particle density at x in modes 0 through k.

        Returns 0 where no mode has any particles.
        """
        if not 0 <= k < len(pdists):
            raise ValueError(f"mode index {k} out of range for"
                             f" {len(pdists)} modes")
        num = 0.
        denom = 0.
        for j, pdist in enumerate(pdists):
            density = pdist.density(x)
            denom += density
            if j <= k:
                num += density
        if denom == 0.:
            return 0.
        return num / denom

    def q_integrand_inner(self, x, y, j, k, pdists):
        """Gain integrand for particles of size y merging into size x."""
        if j == k:
            raise ValueError("q_integrand called with j == k; self-coalescence"
                             " is handled by the S terms")
        if y > x:
            raise ValueError(f"y <= x required in Q integrals, but y={y} and"
                             f" x={x}")
        pj = pdists[j]
        pk = pdists[k]
        return 0.5 * self.kernel(x - y, y) \
            * (pj(x - y) * pk(y) + pk(x - y) * pj(y))

    def q_integrand_outer(self, x, j, k, pdists, moment_order):
        """Moment-weighted gain of particles of size x from modes j and k."""
        if j == k:
            raise ValueError("q_integrand called with j == k; self-coalescence"
                             " is handled by the S terms")
        inner = self._integrate(
            lambda y: self.q_integrand_inner(x, y, j, k, pdists), x)
        return x**moment_order * inner

    def r_integrand_inner(self, x, y, j, k, pdists):
        """Collision rate density of size x in mode j with size y in mode k."""
        return self.kernel(x, y) * pdists[j](x) * pdists[k](y)

    def r_integrand_outer(self, x, j, k, pdists, moment_order):
        """Moment-weighted loss of size x particles in mode j due to mode k."""
        inner = self._integrate(
            lambda y: self.r_integrand_inner(x, y, j, k, pdists), np.inf)
        return x**moment_order * inner

    def s_integrand_inner(self, x, k, pdists, moment_order):
        """Moment-weighted gain at size x from collisions within mode k."""
        pk = pdists[k]
        inner = self._integrate(
            lambda y: 0.5 * self.kernel(x - y, y) * pk(x - y) * pk(y), x)
        return x**moment_order * inner

    def s_integrand1(self, x, k, pdists, moment_order):
        """Part of the self-coalescence gain of mode k that stays in mode k."""
        weight = self.weighting_fn(x, k, pdists)
        if weight == 0.:
            return 0.
        return weight * self.s_integrand_inner(x, k, pdists, moment_order)

    def s_integrand2(self, x, k, pdists, moment_order):
        """Part of the self-coalescence gain of mode k promoted to mode k+1."""
        weight = 1. - self.weighting_fn(x, k, pdists)
        if weight == 0.:
            return 0.
        return weight * self.s_integrand_inner(x, k, pdists, moment_order)

    def update_q_coalescence_matrix(self, moment_order, pdists):
        """Fill Q for the given moment order; only j < k is nonzero."""
        cd = self.coal_data
        cd.Q[:,:] = 0.
        m = float(moment_order)
        for j in range(cd.num_modes):
            for k in range(j+1, cd.num_modes):
                if cd.num_prog_moms[k] <= moment_order:
                    continue
                cd.Q[j,k] = self._integrate(
                    lambda x, j=j, k=k: self.q_integrand_outer(x, j, k,
                                                               pdists, m),
                    np.inf)

    def update_r_coalescence_matrix(self, moment_order, pdists):
        """Fill R for the given moment order.

        R[j,k] is the loss of mode k's moment due to collisions with mode j,
        i.e. the moment is taken over the mode k particle.
        """
        cd = self.coal_data
        cd.R[:,:] = 0.
        m = float(moment_order)
        for j in range(cd.num_modes):
            for k in range(cd.num_modes):
                if cd.num_prog_moms[k] <= moment_order:
                    continue
                cd.R[j,k] = self._integrate(
                    lambda x, j=j, k=k: self.r_integrand_outer(x, k, j,
                                                               pdists, m),
                    np.inf)

    def update_s_coalescence_matrix(self, moment_order, pdists):
        """Fill S for the given moment order."""
        cd = self.coal_data
        cd.S[:,:] = 0.
        npm = cd.num_prog_moms
        m = float(moment_order)
        for k in range(cd.num_modes):
            if npm[k] <= moment_order and \
               (k == cd.num_modes - 1 or npm[k+1] <= moment_order):
                continue
            cd.S[k,0] = self._integrate(
                lambda x, k=k: self.s_integrand1(x, k, pdists, m), np.inf)
            cd.S[k,1] = self._integrate(
                lambda x, k=k: self.s_integrand2(x, k, pdists, m), np.inf)

    def get_coalescence_integral_moment_qrs(self, moment_order, pdists):
        """Fill Q, R and S for one moment order."""
        self.update_q_coalescence_matrix(moment_order, pdists)
        self.update_r_coalescence_matrix(moment_order, pdists)
        self.update_s_coalescence_matrix(moment_order, pdists)

    def update_coal_ints(self, pdists):
        """Update the coalescence integrals for the given distributions.

        Returns coal_data.coal_ints, a list with the tendency of each mode's
        prognostic moments.
        """
        cd = self.coal_data
        _check_num_modes(pdists, cd.num_modes)
        if len({type(pdist) for pdist in pdists}) > 1:
            raise ValueError("all particle size distributions must be of the"
                             " same family for numerical coalescence, but got"
                             f" {[pdist.family for pdist in pdists]}")
        if isinstance(pdists[0], MonodisperseDistribution):
            raise ValueError("numerical coalescence cannot integrate the Dirac"
                             " density of monodisperse distributions; use"
                             " AnalyticalCoalescence instead")
        for ints in cd.coal_ints:
            ints[:] = 0.
        for m in range(cd.max_prog_moms()):
            self.get_coalescence_integral_moment_qrs(m, pdists)
            cd.accumulate(m)
        return cd.coal_ints

    def calc_rate(self, pdists):
        self.update_coal_ints(pdists)
        return self.coal_data.flat_coal_ints()
