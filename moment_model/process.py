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

"""Base class for processes in the bulk moment model."""

from abc import ABC, abstractmethod

class Process(ABC):
    """
    Base class for all processes in the bulk moment model.
    """

    @abstractmethod
    def calc_rate(self, pdists):
        """Calculate rate of change of prognostic moments due to this process.

        Arguments:
        pdists - List of ParticleDistribution objects, one per mode, holding
                 the current state of each mode.

        The output is a 1-D array containing the time derivative of each
        mode's prognostic moments in turn (all moments of the first mode,
        then all moments of the second mode, and so on).
        """
