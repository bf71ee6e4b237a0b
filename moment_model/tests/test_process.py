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

"""Test process module."""

import unittest

import numpy as np

from moment_model.distribution import ExponentialDistribution
from moment_model.process import Process


class ConstantRate(Process):
    """Process returning the same rate for every mode's moments."""

    def __init__(self, rate):
        self.rate = rate

    def calc_rate(self, pdists):
        num = sum(pdist.nparams() for pdist in pdists)
        return np.full((num,), self.rate)


class TestProcess(unittest.TestCase):
    """
    Test Process base class.
    """

    def test_cannot_instantiate_abstract_process(self):
        with self.assertRaises(TypeError):
            # pylint: disable-next=abstract-class-instantiated
            Process()

    def test_subclass_calc_rate(self):
        proc = ConstantRate(2.)
        rate = proc.calc_rate([ExponentialDistribution(1., 1.)])
        self.assertEqual(rate.shape, (2,))
        self.assertEqual(rate[1], 2.)
