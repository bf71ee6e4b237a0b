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

"""Box model drivers that step moment tendencies forward in time."""

from absl import logging
import numpy as np
from scipy.integrate import solve_ivp

from moment_model.state import ModelState


class Trajectory:
    """
    Moment time series of a box model run.

    Initialization arguments:
    desc - The ModelStateDescriptor of the integrated state.
    times - Output times (seconds).
    raws - 2-D array with one raw state vector per output time.
    """
    def __init__(self, desc, times, raws):
        self.desc = desc
        self.times = times
        self.raws = raws

    def __len__(self):
        return len(self.times)

    def state(self, i):
        """ModelState at output time i."""
        return ModelState(self.desc, self.raws[i,:])

    def mode_moments(self, mode):
        """Moments of one mode in SI units, one row per output time."""
        idx, num = self.desc.mode_loc(mode)
        return self.raws[:,idx:idx+num] * self.desc.moment_scales(mode)

    def total_moment(self, p):
        """Moment p summed over the modes that track it, per output time."""
        total = np.zeros((len(self.times),))
        for mode in range(self.desc.num_modes):
            if p < self.desc.num_prog_moms[mode]:
                total += self.mode_moments(mode)[:,p]
        return total


class Integrator:
    """
    Base class for box model time integrators.

    Initialization arguments:
    constants - The ModelConstants object.
    dt - Time step, or maximum time step for adaptive methods (seconds).
    """

    integrator_type = None
    """Name of the integration method, used in log messages."""

    def __init__(self, constants, dt):
        if not dt > 0.:
            raise ValueError(f"time step must be positive but is {dt}")
        self.constants = constants
        self.dt = dt
        self.dt_raw = dt / constants.time_scale

    def integrate_raw(self, t_len, state, procs):
        """Advance the raw state over t_len units of scaled time.

        Returns `(times, raws)` in scaled units, with one row of raws for
        each output time.
        """
        raise NotImplementedError

    def integrate(self, t_len, state, procs):
        """Advance the state over t_len seconds and return a Trajectory."""
        tscale = self.constants.time_scale
        logging.info("Starting %s integration over %g s with time step %g s.",
                     self.integrator_type, t_len, self.dt)
        times, raws = self.integrate_raw(t_len / tscale, state, procs)
        logging.info("Finished %s integration with %d output times.",
                     self.integrator_type, len(times))
        return Trajectory(state.desc, times * tscale, raws)

    def output_times(self, t_len):
        """Evenly spaced output times covering [0, t_len] in scaled units.

        The spacing is at most dt_raw; a trailing fraction of a step gets a
        full step of its own.
        """
        num_step = max(int(np.ceil(t_len / self.dt_raw - 1.e-10)), 1)
        return np.linspace(0., t_len, num_step+1)


class RK45Integrator(Integrator):
    """
    Adaptive Dormand-Prince integration via scipy.integrate.solve_ivp.

    The step size is capped at dt, and output is given every dt.
    """

    integrator_type = "RK45"

    atol = 1.e-6
    """Absolute tolerance on each raw moment."""

    def integrate_raw(self, t_len, state, procs):
        desc = state.desc
        times = self.output_times(t_len)
        def rate(_, raw):
            return ModelState(desc, raw).time_derivative_raw(procs)
        sol = solve_ivp(rate, (times[0], times[-1]), state.raw,
                        method='RK45', t_eval=times, max_step=self.dt_raw,
                        atol=self.atol)
        if not sol.success:
            raise RuntimeError("RK45 integration failed: " + sol.message)
        return sol.t, sol.y.T


class SSPRK33Integrator(Integrator):
    """
    Shu-Osher three-stage, third-order strong stability preserving method.

    Each stage is a convex combination of forward Euler steps, so moments
    kept nonnegative by small enough Euler steps stay nonnegative here too.
    """

    integrator_type = "SSPRK33"

    def integrate_raw(self, t_len, state, procs):
        desc = state.desc
        times = self.output_times(t_len)
        def euler(raw, h):
            return raw + h * ModelState(desc, raw).time_derivative_raw(procs)
        raws = np.zeros((len(times), len(state.raw)))
        raws[0,:] = state.raw
        for i, h in enumerate(np.diff(times)):
            u0 = raws[i,:]
            u1 = euler(u0, h)
            u2 = 0.75 * u0 + 0.25 * euler(u1, h)
            raws[i+1,:] = u0 / 3. + (2./3.) * euler(u2, h)
        return times, raws
