# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Automatic stir scheduler.

While a cage is in AUTO mode the scheduler produces stir pulses without any
operator input: one initial pulse when the cage is armed, then a periodic
pulse every stir_every_min minutes lasting stir_duration_sec seconds.

Each cage has at most one periodic timer and one pulse-end timer. Timers
are plain event loop callbacks, so everything runs on the loop thread.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Optional

from .const import INITIAL_PULSE_SEC

if TYPE_CHECKING:
    from .cage import AutoSettings, Cage, CageBank

logger = logging.getLogger(__name__)


@dataclass
class StirTimingConfig:
    """Configurable stir timing (all times in seconds)."""

    # Length of the pulse fired when a cage is armed. Periodic pulses use
    # the cage's own stir_duration_sec instead.
    initial_pulse_sec: float = INITIAL_PULSE_SEC


@dataclass
class _CageTimers:
    """Live timer handles for one armed cage."""

    settings: "AutoSettings"
    periodic: Optional[asyncio.TimerHandle] = None
    pulse_end: Optional[asyncio.TimerHandle] = None
    next_due: float = 0.0

    def cancel(self):
        if self.periodic:
            self.periodic.cancel()
            self.periodic = None
        if self.pulse_end:
            self.pulse_end.cancel()
            self.pulse_end = None


class StirScheduler:
    """Arms and disarms per-cage stir timers.

    Example:
        scheduler = StirScheduler(bank)
        scheduler.arm(bank.get(0))   # stirring on, pulses scheduled
        scheduler.disarm(0)          # all pending timers cancelled
    """

    def __init__(
        self,
        bank: "CageBank",
        timing: Optional[StirTimingConfig] = None,
        loop: Optional[Any] = None,
    ):
        """Initialize the scheduler.

        Args:
            bank: The cage bank the timers mutate.
            timing: Stir timing configuration.
            loop: Event loop used for timers. Anything providing time(),
                  call_later() and call_at() works. Defaults to the running
                  asyncio loop at the time a cage is armed.
        """
        self.bank = bank
        self.timing = timing or StirTimingConfig()
        self._loop = loop
        self._timers: dict[int, _CageTimers] = {}

    @property
    def loop(self):
        return self._loop or asyncio.get_running_loop()

    def ensure_loop(self):
        """Return the timer loop, failing if a cage could not be armed now.

        Must be called before AUTO state is committed.

        Raises:
            RuntimeError: No loop was given and none is running.
        """
        return self.loop

    # =========================================================================
    # Arming
    # =========================================================================

    def arm(self, cage: "Cage") -> None:
        """Start the stir schedule for a cage, replacing any previous one."""
        loop = self.loop
        self.disarm(cage.id)

        settings = cage.auto
        timers = _CageTimers(settings=settings)
        self._timers[cage.id] = timers

        self._set_stirring(cage.id, True)
        timers.pulse_end = loop.call_later(
            self.timing.initial_pulse_sec, self._end_pulse, cage.id, timers
        )

        if settings.periodic_enabled:
            timers.next_due = loop.time() + settings.stir_interval_sec
            timers.periodic = loop.call_at(
                timers.next_due, self._periodic_pulse, cage.id, timers
            )
            logger.info(
                f"Scheduler: {cage.name} armed, stir every {settings.stir_every_min} min "
                f"for {settings.stir_duration_sec}s"
            )
        else:
            logger.info(f"Scheduler: {cage.name} armed, initial pulse only")

    def disarm(self, cage_id: int) -> None:
        """Cancel all timers for a cage. Does nothing if none are pending."""
        timers = self._timers.pop(cage_id, None)
        if timers is None:
            return
        timers.cancel()
        logger.info(f"Scheduler: cage {cage_id} disarmed")

    def disarm_all(self) -> None:
        """Cancel the timers of every armed cage."""
        for cage_id in list(self._timers):
            self.disarm(cage_id)

    # =========================================================================
    # Introspection
    # =========================================================================

    def is_armed(self, cage_id: int) -> bool:
        return cage_id in self._timers

    def armed_ids(self) -> list[int]:
        return sorted(self._timers)

    def pending(self, cage_id: int) -> tuple[bool, bool]:
        """Return (periodic timer live, pulse-end timer live) for a cage."""
        timers = self._timers.get(cage_id)
        if timers is None:
            return False, False
        return timers.periodic is not None, timers.pulse_end is not None

    def settings_for(self, cage_id: int) -> Optional["AutoSettings"]:
        """The settings the cage was last armed with, if armed."""
        timers = self._timers.get(cage_id)
        return timers.settings if timers else None

    # =========================================================================
    # Timer callbacks
    # =========================================================================

    def _is_current(self, cage_id: int, timers: _CageTimers) -> bool:
        # A callback from a replaced schedule must never touch the cage
        return self._timers.get(cage_id) is timers

    def _periodic_pulse(self, cage_id: int, timers: _CageTimers) -> None:
        if not self._is_current(cage_id, timers):
            return
        loop = self.loop
        settings = timers.settings

        # Re-arm from the due time rather than now so pulses do not drift
        timers.next_due += settings.stir_interval_sec
        timers.periodic = loop.call_at(timers.next_due, self._periodic_pulse, cage_id, timers)

        # A newer pulse supersedes any pulse still running
        if timers.pulse_end:
            timers.pulse_end.cancel()
        self._set_stirring(cage_id, True)
        timers.pulse_end = loop.call_later(
            settings.stir_duration_sec, self._end_pulse, cage_id, timers
        )
        logger.debug(f"Scheduler: cage {cage_id} stir pulse for {settings.stir_duration_sec}s")

    def _end_pulse(self, cage_id: int, timers: _CageTimers) -> None:
        if not self._is_current(cage_id, timers):
            return
        timers.pulse_end = None
        self._set_stirring(cage_id, False)
        logger.debug(f"Scheduler: cage {cage_id} stir pulse ended")

    def _set_stirring(self, cage_id: int, stirring: bool) -> None:
        self.bank.update(cage_id, lambda c: replace(c, stirring=stirring))
