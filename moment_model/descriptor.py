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

"""Moment model state descriptor."""

import copy

import numpy as np


class ModelStateDescriptor:
    """
    Describe the state variables contained in a ModelState.

    Initialization arguments:
    constants - A ModelConstants object.
    pdists - List of ParticleDistribution objects, one per mode. These define
             the family of each mode and the number of moments it tracks.
             Copies are kept and refitted by update_distributions.
    param_ranges (optional) - List with one entry per mode, each either None
                              or a dictionary of parameter bounds passed to
                              update_from_moments.

    The raw state vector is mode-major: all prognostic moments of the first
    mode (orders 0, 1, ...), then all prognostic moments of the second mode,
    and so on. Moments of order p are nondimensionalized by mass_scale**p.
    """

    def __init__(self, constants, pdists, param_ranges=None):
        if len(pdists) < 1:
            raise ValueError("state descriptor requires at least one mode")
        self.constants = constants
        self.pdists = [copy.deepcopy(pdist) for pdist in pdists]
        self.num_modes = len(pdists)
        if param_ranges is None:
            param_ranges = [None] * self.num_modes
        if len(param_ranges) != self.num_modes:
            raise ValueError(f"got {len(param_ranges)} parameter ranges for"
                             f" {self.num_modes} modes")
        self.param_ranges = list(param_ranges)
        self.num_prog_moms = [pdist.nparams() for pdist in self.pdists]
        self._offsets = np.concatenate(([0], np.cumsum(self.num_prog_moms)))

    def state_len(self):
        """Return the length of the state vector."""
        return int(self._offsets[-1])

    def mode_loc(self, mode):
        """Return location of a mode's moments in the state vector.

        Returns a tuple `(idx, num)`, where `idx` is the location of the
        zeroth moment, and `num` is the number of prognostic moments.
        """
        if not 0 <= mode < self.num_modes:
            raise ValueError(f"mode index {mode} out of range for"
                             f" {self.num_modes} modes")
        return int(self._offsets[mode]), self.num_prog_moms[mode]

    def moment_scales(self, mode):
        """Scales converting raw moments of a mode to SI units."""
        _, num = self.mode_loc(mode)
        return self.constants.mass_scale**np.arange(num)

    def construct_raw(self, moments=None):
        """Construct a raw state vector.

        Arguments:
        moments (optional) - List with one array of moments (SI units) per
                             mode. Defaults to the moments of the
                             distributions used to create this descriptor,
                             taken to be in scaled units already.
        """
        raw = np.zeros((self.state_len(),))
        for i in range(self.num_modes):
            idx, num = self.mode_loc(i)
            if moments is None:
                raw[idx:idx+num] = self.pdists[i].moments()
                continue
            mode_moments = np.asarray(moments[i], dtype=np.float64)
            if mode_moments.shape != (num,):
                raise ValueError(f"mode {i} tracks {num} moments but"
                                 f" received shape {mode_moments.shape}")
            raw[idx:idx+num] = mode_moments / self.moment_scales(i)
        return raw

    def mode_moments_raw(self, raw, mode):
        """Get the raw moments of one mode from the raw state vector."""
        idx, num = self.mode_loc(mode)
        return raw[idx:idx+num]

    def update_distributions(self, raw):
        """Refit every mode's distribution to the moments in raw.

        Returns the list of updated distributions, which are owned by this
        descriptor and reused on the next call.
        """
        if len(raw) != self.state_len():
            raise ValueError(f"raw state has length {len(raw)} but descriptor"
                             f" expects {self.state_len()}")
        for i, pdist in enumerate(self.pdists):
            pdist.update_from_moments(self.mode_moments_raw(raw, i),
                                      self.param_ranges[i])
        return self.pdists
