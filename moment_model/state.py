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

"""State for the bulk moment model."""

import numpy as np


class ModelState:
    """
    Describe a state of the model at a moment in time.

    Initialization arguments:
    desc - The ModelStateDescriptor object corresponding to this object.
    raw - A 1-D vector containing raw state data.
    """
    def __init__(self, desc, raw):
        self.constants = desc.constants
        self.desc = desc
        self.raw = raw

    def mode_moments(self, mode):
        """Prognostic moments of one mode in SI units."""
        return self.desc.mode_moments_raw(self.raw, mode) \
            * self.desc.moment_scales(mode)

    def total_moment(self, p):
        """Moment of order p summed over all modes that track it (SI units)."""
        total = 0.
        for i in range(self.desc.num_modes):
            moments = self.mode_moments(i)
            if p < len(moments):
                total += moments[p]
        return total

    def distributions(self):
        """Distributions fitted to this state's moments (scaled units).

        The returned objects belong to the descriptor and are refitted the
        next time any state using the same descriptor is evaluated.
        """
        return self.desc.update_distributions(self.raw)

    def time_derivative_raw(self, procs):
        """Time derivative of the raw state using the given processes.

        Arguments:
        procs - List of Process objects, the rates of which sum to give the
                time derivative.
        """
        pdists = self.distributions()
        output = np.zeros((self.desc.state_len(),))
        for proc in procs:
            output += proc.calc_rate(pdists)
        return output
