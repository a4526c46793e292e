"""
crankmc.amplitude
=================

Adaptive move amplitude.

Every :data:`WINDOW` recorded moves the empirical acceptance rate is computed
and, while calibrating, the amplitude is rescaled towards the target rate:
divided by ``factor`` (grown) when moves are accepted too often, multiplied
by ``factor`` (shrunk) when they are accepted too rarely. Shrinking only
happens for a negative amplitude, the sign that marks it as adaptive. The
magnitude never exceeds pi.

Classes
-------
CalibrationMode : NORMAL, CALIBRATE and RESET step modes.
AmplitudeController : Counters, window statistics and rescaling.
"""

from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass

from crankmc.errors import stop
from crankmc.helpers import as_radians

logger = logging.getLogger(__name__)

WINDOW = 1024


class CalibrationMode(enum.IntEnum):
    """
    Step modes of :meth:`crankmc.metropolis.MoveDriver.move`.

    NORMAL counts outcomes only. CALIBRATE also rescales the amplitude at the
    end of a window. RESET zeroes the counters first and then calibrates.
    """

    RESET = -1
    NORMAL = 0
    CALIBRATE = 1


@dataclass
class AmplitudeController:
    """
    Accept/reject bookkeeping and amplitude tuning.

    Attributes
    ----------
    amplitude : float
        Current rotation amplitude (radians, signed).
    acceptance_rate : float
        Target acceptance rate.
    tolerance : float
        Accepted deviation from the target; must lie in (0, 1).
    factor : float
        Multiplicative step; must lie in (0, 1).
    accept_counter, reject_counter : int
        Outcomes in the current window.
    acceptance : float
        Acceptance rate of the last completed window.
    windows : int
        Number of completed windows.
    window : int
        Window size.

    Examples
    --------
    >>> controller = AmplitudeController(amplitude=0.5)
    >>> for _ in range(WINDOW):
    ...     _ = controller.record(True, calibrate=True)
    >>> controller.acceptance
    1.0
    >>> round(controller.amplitude, 4)  # grown: 0.5 / 0.9
    0.5556
    """

    amplitude: float
    acceptance_rate: float = 0.5
    tolerance: float = 0.05
    factor: float = 0.9
    accept_counter: int = 0
    reject_counter: int = 0
    acceptance: float = 0.0
    windows: int = 0
    window: int = WINDOW

    @classmethod
    def from_config(cls, config) -> AmplitudeController:
        return cls(
            amplitude=as_radians(config.amplitude),
            acceptance_rate=config.acceptance_rate,
            tolerance=config.acceptance_rate_tolerance,
            factor=config.amplitude_changing_factor,
        )

    def reset(self) -> None:
        """Zero both counters without closing a window."""
        self.accept_counter = 0
        self.reject_counter = 0

    def record(self, accepted: bool, calibrate: bool = False) -> float:
        """
        Count one move outcome, closing the window when it is full.

        Parameters
        ----------
        accepted : bool
            Outcome of the move.
        calibrate : bool, default=False
            Rescale the amplitude when this outcome closes a window.

        Returns
        -------
        float
            The (possibly updated) amplitude.

        Raises
        ------
        SimulationError
            If calibrating with a tolerance or factor outside (0, 1).
        """
        if accepted:
            self.accept_counter += 1
        else:
            self.reject_counter += 1

        if self.accept_counter + self.reject_counter == self.window:
            self.acceptance = self.accept_counter / self.window
            self.windows += 1
            if calibrate:
                self._rescale()
            self.reset()
        return self.amplitude

    def _rescale(self) -> None:
        if self.tolerance <= 0:
            stop("The acceptance rate tolerance must be positive.")
        if self.tolerance >= 1:
            stop("The acceptance rate tolerance must be smaller than 1.")
        if self.factor <= 0:
            stop("The amplitude changing factor must be positive.")
        if self.factor >= 1:
            stop("The amplitude changing factor must be smaller than 1.")

        previous = self.amplitude
        if self.amplitude < 0 and self.acceptance < self.acceptance_rate - self.tolerance:
            self.amplitude *= self.factor
        elif self.acceptance > self.acceptance_rate + self.tolerance:
            self.amplitude /= self.factor
        self.amplitude = max(-math.pi, min(math.pi, self.amplitude))

        if self.amplitude != previous:
            logger.info(
                "Acceptance %.3f (target %.3f +/- %.3f): amplitude %.4f -> %.4f",
                self.acceptance,
                self.acceptance_rate,
                self.tolerance,
                previous,
                self.amplitude,
            )
