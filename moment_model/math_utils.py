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

"""Math utility functions used by the bulk moment model."""

import warnings

import numpy as np
from scipy.integrate import quad, IntegrationWarning
from scipy.special import comb, gamma, gammainc

def binomial_table(n):
    """Returns an (n, n) array with entry [i,j] equal to "i choose j".

    Entries with j > i are zero.
    """
    if n < 0:
        raise ValueError(f"table size must be nonnegative but is {n}")
    table = np.zeros((n, n))
    for i in range(n):
        table[i,:i+1] = comb(i, np.arange(i+1), exact=False)
    return table

def quad_subintervals(max_evals):
    """Convert an integrand evaluation cap to a subinterval limit for quad.

    QUADPACK's adaptive routines evaluate a 21-point Gauss-Kronrod rule on the
    first interval and on both halves of every bisected interval, so each
    subdivision costs 42 evaluations.
    """
    if max_evals < 1:
        raise ValueError(f"max_evals must be positive but is {max_evals}")
    return max(1, max_evals // 42)

def adaptive_integral(func, a, b, rtol, max_evals):
    """Integrate func from a to b with scipy.integrate.quad.

    Arguments:
    func - Scalar function of one argument.
    a, b - Integration bounds; b may be np.inf.
    rtol - Relative tolerance requested.
    max_evals - Approximate cap on the number of evaluations of func.

    No absolute tolerance is applied. If the routine stops before reaching
    the requested tolerance, the best estimate is returned without a warning.
    """
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", IntegrationWarning)
        value, _ = quad(func, a, b, epsabs=0., epsrel=rtol,
                        limit=quad_subintervals(max_evals))
    return value

def gamma_ratio(p, k):
    """Returns Gamma(p+k)/Gamma(k)."""
    return gamma(p + k) / gamma(k)

def truncated_gamma_moment(p, k, theta, upper):
    r"""Moment p of a unit gamma distribution truncated above.

    Arguments:
    p - Moment order.
    k - Shape parameter.
    theta - Scale parameter.
    upper - Upper integration bound (may be an array).

    Returns

    $$\int_0^{upper} x^p \frac{x^{k-1} e^{-x/\theta}}{\Gamma(k)\theta^k} dx$$

    which is zero where upper is nonpositive.
    """
    upper = np.maximum(upper, 0.)
    return theta**p * gamma_ratio(p, k) * gammainc(p + k, upper / theta)
