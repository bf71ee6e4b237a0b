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

"""Class for the polynomial kernel tensor used by analytical coalescence."""

from absl import logging
import numpy as np
import scipy.linalg as la

class KernelTensor():
    """
    Represent a collision kernel as a bivariate polynomial.

    Initialization arguments:
    order - Maximum degree r of the polynomial in each particle size.
    kernel (optional) - A CoalescenceKernel object to approximate.
    limit (optional) - Largest particle size over which the kernel is fit.
                       Required if kernel is supplied.
    data (optional) - Precalculated coefficients.
    num_points (optional) - Number of sample points along each axis used for
                            the fit. Defaults to `default_num_points`.

    Exactly one of the kernel or data arguments must be supplied.

    Attributes:
    order - Maximum polynomial degree r.
    data - Coefficients c[a,b], of shape (order+1, order+1), such that
           K(x, y) is approximated by the sum of c[a,b] * x**a * y**b.

    Methods:
    evaluate
    """

    default_num_points = 50
    """Default number of sample points along each axis for kernel fits."""

    # pylint: disable-next=too-many-arguments
    def __init__(self, order, kernel=None, limit=None, data=None,
                 num_points=None):
        if order < 0:
            raise ValueError(f"kernel tensor order must be nonnegative but is"
                             f" {order}")
        self.order = order
        self.kernel = kernel
        if data is not None:
            if kernel is not None:
                raise RuntimeError("cannot supply both kernel and data to"
                                   " KernelTensor constructor")
            data = np.array(data, dtype=np.float64)
            if data.shape != (order+1, order+1):
                raise ValueError(f"kernel tensor data has shape {data.shape}"
                                 f" but order {order} requires"
                                 f" {(order+1, order+1)}")
            self.data = data
            return
        if kernel is None:
            raise RuntimeError("must provide either kernel or data to"
                               " construct a KernelTensor")
        if limit is None or not limit > 0.:
            raise ValueError("a positive size limit is required to fit a"
                             f" kernel tensor, but limit is {limit}")
        if num_points is None:
            num_points = self.default_num_points
        self.data = self._fit_kernel(kernel, limit, num_points)

    def _fit_kernel(self, kernel, limit, num_points):
        """Least-squares fit of kernel over [0, limit]**2."""
        r = self.order
        if num_points < r + 1:
            raise ValueError(f"need at least {r+1} sample points per axis for"
                             f" order {r}, but num_points is {num_points}")
        # Fit in sizes normalized by limit to keep the system well scaled.
        pts = np.linspace(0., 1., num_points)
        u, v = np.meshgrid(pts, pts, indexing='ij')
        values = np.array([[kernel(limit*pts[i], limit*pts[j])
                            for j in range(num_points)]
                           for i in range(num_points)])
        design = np.zeros((num_points**2, (r+1)**2))
        for a in range(r+1):
            for b in range(r+1):
                design[:,a*(r+1)+b] = (u**a * v**b).flat
        coefs, _, _, _ = la.lstsq(design, values.flatten())
        normed = np.reshape(coefs, (r+1, r+1))
        normed = 0.5 * (normed + normed.T)
        residual = np.abs(design @ normed.flatten() - values.flatten()).max()
        logging.info("Fit kernel tensor of order %d over [0, %g]; max absolute"
                     " error %g (max kernel value %g).", r, limit, residual,
                     np.abs(values).max())
        powers = np.add.outer(np.arange(r+1), np.arange(r+1))
        return normed / limit**powers

    def evaluate(self, x, y):
        """Evaluate the polynomial approximation of the kernel."""
        output = 0.
        for a in range(self.order+1):
            for b in range(self.order+1):
                output += self.data[a,b] * x**a * y**b
        return output

    def __call__(self, x, y):
        return self.evaluate(x, y)
