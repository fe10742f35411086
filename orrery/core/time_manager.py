"""
Simulation Time Manager
=======================

Owns simulation time for the orrery: elapsed time, time scale and pause
flag. Advanced exactly once per tick from the real elapsed wall-clock delta.
"""

import logging
import math
from dataclasses import dataclass

logger = logging.getLogger(__name__)

MIN_TIME_SCALE = 0.01


@dataclass(frozen=True)
class ClockSnapshot:
    """Read-only view of the clock."""
    elapsed: float = 0.0
    time_scale: float = 1.0
    paused: bool = False


class SimulationClock:
    """
    Manages simulation time.

    Provides:
    - Elapsed simulation time (monotonic while unpaused)
    - Time scale (positive multiplier on real time)
    - Pause flag

    The clock is the single source of "now" for a tick: it is written once
    by advance() and only read by every other component for the rest of
    the tick.
    """

    def __init__(self,
                 time_scale: float = 1.0,
                 paused: bool = False,
                 min_time_scale: float = MIN_TIME_SCALE):
        """
        Initialize simulation clock.

        Args:
            time_scale: Initial time scale
            paused: Start paused
            min_time_scale: Lower clamp for the time scale
        """
        self.min_time_scale = min_time_scale
        self._elapsed = 0.0
        self._time_scale = 1.0
        self._paused = bool(paused)
        self.tick_count = 0
        self.set_time_scale(time_scale)

    @property
    def elapsed(self) -> float:
        return self._elapsed

    @property
    def time_scale(self) -> float:
        return self._time_scale

    @property
    def paused(self) -> bool:
        return self._paused

    def reset(self):
        """Reset simulation time to zero."""
        self._elapsed = 0.0
        self.tick_count = 0

    def advance(self, real_delta_seconds: float) -> float:
        """
        Advance time by one tick.

        Args:
            real_delta_seconds: Real elapsed seconds since the last tick

        Returns:
            Current elapsed simulation time
        """
        self.tick_count += 1
        if self._paused:
            return self._elapsed

        if not math.isfinite(real_delta_seconds) or real_delta_seconds < 0:
            logger.warning("Ignoring invalid real time delta %r", real_delta_seconds)
            return self._elapsed

        self._elapsed += real_delta_seconds * self._time_scale
        return self._elapsed

    def set_paused(self, paused: bool):
        """Pause or resume time accumulation."""
        self._paused = bool(paused)

    def set_time_scale(self, time_scale: float) -> bool:
        """
        Set the time scale.

        Non-positive or non-finite values are clamped to min_time_scale so
        time never freezes or runs backwards.

        Returns:
            True if the value was accepted unchanged, False if clamped
        """
        if not math.isfinite(time_scale):
            logger.warning("Time scale %r is not finite, using %.3g",
                           time_scale, self.min_time_scale)
            self._time_scale = self.min_time_scale
            return False
        if time_scale < self.min_time_scale:
            logger.warning("Time scale %.3g below minimum, clamped to %.3g",
                           time_scale, self.min_time_scale)
            self._time_scale = self.min_time_scale
            return False
        self._time_scale = float(time_scale)
        return True

    def snapshot(self) -> ClockSnapshot:
        """Get an immutable copy of the clock state."""
        return ClockSnapshot(self._elapsed, self._time_scale, self._paused)

    def restore(self, snapshot: ClockSnapshot):
        """Restore a state captured by snapshot()."""
        self._elapsed = snapshot.elapsed
        self._time_scale = snapshot.time_scale
        self._paused = snapshot.paused

    def __repr__(self) -> str:
        state = "paused" if self._paused else "running"
        return (f"SimulationClock(elapsed={self._elapsed:.3f}, "
                f"scale={self._time_scale:g}, {state})")
