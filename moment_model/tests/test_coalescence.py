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

"""Test coalescence module."""

import unittest

import numpy as np

from moment_model.constants import DEFAULT_QUAD_RTOL, DEFAULT_QUAD_MAX_EVALS
from moment_model.distribution import ExponentialDistribution, \
    GammaDistribution, MonodisperseDistribution
from moment_model.kernel import LinearKernel
from moment_model.kernel_tensor import KernelTensor
from moment_model.math_utils import binomial_table
from moment_model.process import Process
# pylint: disable-next=wildcard-import,unused-wildcard-import
from moment_model.coalescence import *
from .array_assert import ArrayTestCase


def linear_tensor(coef):
    """Exact KernelTensor for K(x, y) = coef * (x + y)."""
    return KernelTensor(1, data=[[0., coef], [coef, 0.]])


class TestPolynomialSums(unittest.TestCase):
    """
    Test numba-compiled sums over kernel tensor coefficients.
    """

    def setUp(self):
        self.binom = binomial_table(3)
        self.moments_j = np.array([2., 3., 5., 7.])
        self.moments_k = np.array([1., 0.5, 0.5, 0.75])

    def test_q_sum_order_zero_kernel(self):
        coefs = np.array([[1.5]])
        actual = q_sum(coefs, self.binom, self.moments_j, self.moments_k, 0)
        self.assertAlmostEqual(actual, 1.5 * 2. * 1.)

    def test_q_sum_first_moment(self):
        coefs = np.array([[1.5]])
        actual = q_sum(coefs, self.binom, self.moments_j, self.moments_k, 1)
        # Sum of sizes of a colliding pair.
        self.assertAlmostEqual(actual, 1.5 * (2. * 0.5 + 3. * 1.))

    def test_r_sum(self):
        coefs = np.array([[0., 1.], [1., 0.]])
        actual = r_sum(coefs, self.moments_j, self.moments_k, 1)
        self.assertAlmostEqual(actual, 2. * 0.5 + 3. * 0.5)

    def test_s_sums_without_truncation(self):
        coefs = np.array([[2.]])
        moments = self.moments_j
        finite_ints = np.outer(moments, moments)
        retained, promoted = s_sums(coefs, self.binom, moments, finite_ints, 0)
        self.assertAlmostEqual(retained, 0.5 * 2. * 4.)
        self.assertAlmostEqual(promoted, 0.)

    def test_s_sums_all_promoted(self):
        coefs = np.array([[2.]])
        moments = self.moments_j
        finite_ints = np.zeros((4, 4))
        retained, promoted = s_sums(coefs, self.binom, moments, finite_ints, 0)
        self.assertEqual(retained, 0.)
        self.assertAlmostEqual(promoted, 0.5 * 2. * 4.)


class TestCoalescenceData(ArrayTestCase):
    """
    Test CoalescenceData workspace.
    """

    def test_shapes(self):
        cd = CoalescenceData([3, 2], num_cached_moments=5,
                             finite_2d_sizes=[4, 3])
        self.assertEqual(cd.num_modes, 2)
        self.assertEqual(cd.Q.shape, (2, 2))
        self.assertEqual(cd.R.shape, (2, 2))
        self.assertEqual(cd.S.shape, (2, 2))
        self.assertEqual(cd.moments.shape, (2, 5))
        self.assertEqual(cd.finite_2d_ints[0].shape, (4, 4))
        self.assertEqual(cd.finite_2d_ints[1].shape, (3, 3))
        self.assertEqual([len(ints) for ints in cd.coal_ints], [3, 2])

    def test_default_thresholds_infinite(self):
        cd = CoalescenceData([2, 2])
        self.assertTrue(np.all(np.isinf(cd.dist_thresholds)))

    def test_bad_threshold_length_raises(self):
        with self.assertRaises(ValueError):
            CoalescenceData([2, 2], dist_thresholds=[1.])

    def test_no_modes_raises(self):
        with self.assertRaises(ValueError):
            CoalescenceData([])

    def test_no_moments_raises(self):
        with self.assertRaises(ValueError):
            CoalescenceData([2, 0])

    def test_flat_coal_ints(self):
        cd = CoalescenceData([3, 2])
        cd.coal_ints[0][:] = [1., 2., 3.]
        cd.coal_ints[1][:] = [4., 5.]
        self.assertArrayEqual(cd.flat_coal_ints(),
                              np.array([1., 2., 3., 4., 5.]))

    def test_accumulate(self):
        cd = CoalescenceData([2, 1])
        cd.Q[0,1] = 1.
        cd.R[:,:] = [[1., 2.], [3., 4.]]
        cd.S[:,:] = [[5., 6.], [7., 8.]]
        cd.accumulate(0)
        self.assertEqual(cd.coal_ints[0][0], -4. + 5.)
        self.assertEqual(cd.coal_ints[1][0], 1. - 6. + 7. + 6.)
        cd.accumulate(1)
        self.assertEqual(cd.coal_ints[0][1], -4. + 5.)
        self.assertEqual(len(cd.coal_ints[1]), 1)


class TestAnalyticalCoalescence(ArrayTestCase):
    """
    Test AnalyticalCoalescence.
    """

    def setUp(self):
        self.coef = 5.e-3
        self.ktens = linear_tensor(self.coef)

    def test_is_process(self):
        self.assertIsInstance(AnalyticalCoalescence(self.ktens, [2]), Process)

    def test_workspace_sizes(self):
        coal = AnalyticalCoalescence(self.ktens, [2, 3, 2])
        cd = coal.coal_data
        self.assertEqual(cd.moments.shape, (3, 4))
        self.assertEqual([ints.shape[0] for ints in cd.finite_2d_ints],
                         [4, 4, 3])

    def test_golovin_single_mode(self):
        n = 100.
        theta = 0.1
        coal = AnalyticalCoalescence(self.ktens, [3])
        pdist = GammaDistribution(n, theta, 1.)
        m1 = pdist.moment(1.)
        m2 = pdist.moment(2.)
        coal_ints = coal.update_coal_ints([pdist])
        self.assertAlmostEqual(coal_ints[0][0], -self.coef * n * m1)
        self.assertAlmostEqual(coal_ints[0][1], 0., places=12)
        self.assertAlmostEqual(coal_ints[0][2], 2. * self.coef * m1 * m2)

    def test_constant_kernel_single_mode(self):
        coal = AnalyticalCoalescence(KernelTensor(0, data=[[1.]]), [2])
        rate = coal.calc_rate([ExponentialDistribution(2., 1.)])
        self.assertArrayAlmostEqual(rate, np.array([-2., 0.]))

    def test_calc_rate_flattens(self):
        coal = AnalyticalCoalescence(self.ktens, [3, 2])
        pdists = [GammaDistribution(100., 0.1, 2.),
                  ExponentialDistribution(1., 2.)]
        rate = coal.calc_rate(pdists)
        self.assertEqual(rate.shape, (5,))
        self.assertArrayEqual(rate, coal.coal_data.flat_coal_ints())

    def test_q_lower_triangle_zero(self):
        coal = AnalyticalCoalescence(self.ktens, [2, 2])
        pdists = [ExponentialDistribution(100., 0.1),
                  ExponentialDistribution(1., 2.)]
        coal.update_moments(pdists)
        coal.update_finite_2d_integrals(pdists)
        for m in range(2):
            coal.get_coalescence_integral_moment_qrs(m)
            cd = coal.coal_data
            self.assertEqual(cd.Q[0,0], 0.)
            self.assertEqual(cd.Q[1,0], 0.)
            self.assertEqual(cd.Q[1,1], 0.)
            self.assertGreater(cd.Q[0,1], 0.)

    def test_number_decreases_and_mass_conserved(self):
        coal = AnalyticalCoalescence(self.ktens, [2, 2],
                                     dist_thresholds=[0.3, np.inf])
        pdists = [ExponentialDistribution(100., 0.1),
                  ExponentialDistribution(1., 2.)]
        coal_ints = coal.update_coal_ints(pdists)
        self.assertLess(coal_ints[0][0] + coal_ints[1][0], 0.)
        self.assertAlmostEqual(coal_ints[0][1] + coal_ints[1][1], 0.,
                               places=10)

    def test_threshold_promotes_to_next_mode(self):
        coal = AnalyticalCoalescence(self.ktens, [2, 2],
                                     dist_thresholds=[0.3, np.inf])
        pdists = [ExponentialDistribution(100., 0.1),
                  ExponentialDistribution(1.e-3, 2.)]
        coal.update_coal_ints(pdists)
        self.assertGreater(coal.coal_data.S[0,1], 0.)
        self.assertAlmostEqual(coal.coal_data.S[1,1], 0.)

    def test_infinite_threshold_does_not_promote(self):
        coal = AnalyticalCoalescence(self.ktens, [2, 2])
        pdists = [ExponentialDistribution(100., 0.1),
                  ExponentialDistribution(1., 2.)]
        coal.update_coal_ints(pdists)
        self.assertAlmostEqual(coal.coal_data.S[0,1], 0., places=10)

    def test_truncated_integrals_bounded_by_products(self):
        coal = AnalyticalCoalescence(self.ktens, [2, 2],
                                     dist_thresholds=[0.3, np.inf])
        pdists = [ExponentialDistribution(100., 0.1),
                  ExponentialDistribution(1., 2.)]
        coal.update_moments(pdists)
        coal.update_finite_2d_integrals(pdists)
        cd = coal.coal_data
        for i in range(2):
            ints = cd.finite_2d_ints[i]
            size = ints.shape[0]
            products = np.outer(cd.moments[i,:size], cd.moments[i,:size])
            self.assertTrue(np.all(ints <= products))
            self.assertArrayEqual(ints, ints.T)
        self.assertLess(cd.finite_2d_ints[0][1,1], cd.moments[0,1]**2)

    def test_zero_mode(self):
        coal = AnalyticalCoalescence(self.ktens, [2, 2],
                                     dist_thresholds=[0.3, np.inf])
        empty = ExponentialDistribution(1., 2.)
        empty.update_from_moments([0., 0.])
        pdists = [ExponentialDistribution(100., 0.1), empty]
        coal.update_coal_ints(pdists)
        self.assertTrue(np.all(coal.coal_data.finite_2d_ints[1] == 0.))
        self.assertEqual(coal.coal_data.Q[0,1], 0.)

    def test_mode_only_updates_tracked_moments(self):
        coal = AnalyticalCoalescence(self.ktens, [3, 2])
        pdists = [GammaDistribution(100., 0.1, 2.),
                  ExponentialDistribution(1., 2.)]
        coal_ints = coal.update_coal_ints(pdists)
        self.assertEqual(len(coal_ints[0]), 3)
        self.assertEqual(len(coal_ints[1]), 2)
        # The last evaluated order is 2, which mode 1 does not track.
        cd = coal.coal_data
        self.assertEqual(cd.Q[0,1], 0.)
        self.assertEqual(cd.R[0,1], 0.)
        self.assertEqual(cd.R[1,1], 0.)
        self.assertNotEqual(cd.R[1,0], 0.)

    def test_self_term_computed_for_next_mode(self):
        coal = AnalyticalCoalescence(self.ktens, [2, 3],
                                     dist_thresholds=[0.3, np.inf])
        pdists = [ExponentialDistribution(100., 0.1),
                  GammaDistribution(1., 2., 2.)]
        coal.update_coal_ints(pdists)
        # Mode 0 does not track moment 2, but promotes into mode 1 which does.
        self.assertGreater(coal.coal_data.S[0,1], 0.)

    def test_kernel_matrix(self):
        other = linear_tensor(2. * self.coef)
        matrix = [[self.ktens, other], [other, self.ktens]]
        coal = AnalyticalCoalescence(matrix, [2, 2])
        pdists = [ExponentialDistribution(100., 0.1),
                  ExponentialDistribution(1., 2.)]
        coal_ints = coal.update_coal_ints(pdists)
        single = AnalyticalCoalescence(self.ktens, [2, 2])
        single_ints = single.update_coal_ints(pdists)
        self.assertLess(coal_ints[0][0], single_ints[0][0])

    def test_kernel_object_array(self):
        matrix = np.empty((2, 2), dtype=object)
        for i in range(2):
            for j in range(2):
                matrix[i,j] = self.ktens
        coal = AnalyticalCoalescence(matrix, [2, 2])
        self.assertIs(coal.matrix_of_kernels[1][0], self.ktens)

    def test_kernel_matrix_wrong_shape_raises(self):
        matrix = [[self.ktens] * 3] * 3
        with self.assertRaises(ValueError):
            AnalyticalCoalescence(matrix, [2, 2])

    def test_raw_kernel_raises(self):
        with self.assertRaises(ValueError):
            AnalyticalCoalescence([[LinearKernel(1.)]], [2])
        with self.assertRaises(ValueError):
            AnalyticalCoalescence(LinearKernel(1.), [2])

    def test_wrong_number_of_distributions_raises(self):
        coal = AnalyticalCoalescence(self.ktens, [2, 2])
        with self.assertRaises(ValueError):
            coal.update_coal_ints([ExponentialDistribution(1., 1.)])


class TestNumericalCoalescence(ArrayTestCase):
    """
    Test NumericalCoalescence, mainly against AnalyticalCoalescence.
    """

    def setUp(self):
        self.kernel = LinearKernel(1.)
        self.ktens = linear_tensor(1.)
        self.pdists = [ExponentialDistribution(1., 1.),
                       ExponentialDistribution(0.5, 3.)]

    def test_is_process(self):
        self.assertIsInstance(NumericalCoalescence(self.kernel, [2]), Process)

    def test_defaults(self):
        coal = NumericalCoalescence(self.kernel, [2])
        self.assertEqual(coal.rtol, DEFAULT_QUAD_RTOL)
        self.assertEqual(coal.max_evals, DEFAULT_QUAD_MAX_EVALS)

    def test_weighting_fn(self):
        coal = NumericalCoalescence(self.kernel, [2, 2])
        pdists = [ExponentialDistribution(1., 1.),
                  ExponentialDistribution(1., 1.)]
        self.assertAlmostEqual(coal.weighting_fn(0.5, 0, pdists), 0.5)
        self.assertAlmostEqual(coal.weighting_fn(0.5, 1, pdists), 1.)

    def test_weighting_fn_no_particles(self):
        coal = NumericalCoalescence(self.kernel, [2, 2])
        pdists = [ExponentialDistribution(1., 1.),
                  ExponentialDistribution(1., 1.)]
        for pdist in pdists:
            pdist.set_zero()
        self.assertEqual(coal.weighting_fn(0.5, 0, pdists), 0.)

    def test_weighting_fn_bad_index_raises(self):
        coal = NumericalCoalescence(self.kernel, [2, 2])
        with self.assertRaises(ValueError):
            coal.weighting_fn(0.5, 2, self.pdists)
        with self.assertRaises(ValueError):
            coal.weighting_fn(0.5, -1, self.pdists)

    def test_q_integrand_same_mode_raises(self):
        coal = NumericalCoalescence(self.kernel, [2, 2])
        with self.assertRaises(ValueError):
            coal.q_integrand_inner(1., 0.5, 1, 1, self.pdists)
        with self.assertRaises(ValueError):
            coal.q_integrand_outer(1., 0, 0, self.pdists, 0.)

    def test_q_integrand_bad_order_raises(self):
        coal = NumericalCoalescence(self.kernel, [2, 2])
        with self.assertRaises(ValueError):
            coal.q_integrand_inner(1., 2., 0, 1, self.pdists)

    def test_q_integrand_inner(self):
        coal = NumericalCoalescence(self.kernel, [2, 2])
        p0, p1 = self.pdists
        expected = 0.5 * 1.5 * (p0(1.) * p1(0.5) + p1(1.) * p0(0.5))
        self.assertAlmostEqual(
            coal.q_integrand_inner(1.5, 0.5, 0, 1, self.pdists), expected)

    def test_mixed_families_raise(self):
        coal = NumericalCoalescence(self.kernel, [2, 2])
        pdists = [ExponentialDistribution(1., 1.),
                  GammaDistribution(1., 1., 2.)]
        with self.assertRaises(ValueError):
            coal.update_coal_ints(pdists)

    def test_monodisperse_raises(self):
        coal = NumericalCoalescence(self.kernel, [2])
        with self.assertRaises(ValueError):
            coal.update_coal_ints([MonodisperseDistribution(1., 1.)])
        with self.assertRaises(ValueError):
            coal.calc_rate([MonodisperseDistribution(1., 1.)])

    def test_wrong_number_of_distributions_raises(self):
        coal = NumericalCoalescence(self.kernel, [2, 2])
        with self.assertRaises(ValueError):
            coal.update_coal_ints(self.pdists[:1])

    def test_single_mode_matches_analytical(self):
        pdists = [ExponentialDistribution(1., 1.)]
        numerical = NumericalCoalescence(self.kernel, [2])
        analytical = AnalyticalCoalescence(self.ktens, [2])
        expected = analytical.calc_rate(pdists)
        actual = numerical.calc_rate(pdists)
        self.assertArrayRelClose(actual, expected, rtol=1.e-6, atol=1.e-6)
        self.assertAlmostEqual(actual[0], -1., places=6)

    def test_two_modes_match_analytical(self):
        numerical = NumericalCoalescence(self.kernel, [2, 2], rtol=1.e-7)
        analytical = AnalyticalCoalescence(self.ktens, [2, 2])
        analytical.update_moments(self.pdists)
        analytical.update_finite_2d_integrals(self.pdists)
        for m in range(2):
            analytical.get_coalescence_integral_moment_qrs(m)
            numerical.get_coalescence_integral_moment_qrs(m, self.pdists)
            self.assertArrayRelClose(numerical.coal_data.Q,
                                     analytical.coal_data.Q, rtol=1.e-5)
            self.assertArrayRelClose(numerical.coal_data.R,
                                     analytical.coal_data.R, rtol=1.e-5)
            self.assertArrayRelClose(np.array([numerical.coal_data.S.sum()]),
                                     np.array([analytical.coal_data.S.sum()]),
                                     rtol=1.e-5)

    def test_two_modes_total_tendency_matches_analytical(self):
        numerical = NumericalCoalescence(self.kernel, [2, 2], rtol=1.e-7)
        analytical = AnalyticalCoalescence(self.ktens, [2, 2])
        expected = analytical.update_coal_ints(self.pdists)
        actual = numerical.update_coal_ints(self.pdists)
        for m in range(2):
            total_diff = actual[0][m] + actual[1][m] \
                - expected[0][m] - expected[1][m]
            self.assertLess(abs(total_diff), 1.e-4)
        # Density weighting moves some of mode 0's products into mode 1.
        self.assertGreater(numerical.coal_data.S[0,1], 0.)
        self.assertLess(actual[0][0] + actual[1][0], 0.)
