# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Mode transition engine.

The engine is the only place that changes a cage's mode. Every change is a
two-step sequence: first the new cage state is committed to the bank, then
the stir scheduler is explicitly armed or disarmed.
"""
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional

from .cage import Bowl, Cage, CageBank, Level, Mode
from .scheduler import StirScheduler, StirTimingConfig

logger = logging.getLogger(__name__)


def _enter_mode(cage: Cage, mode: Mode) -> Cage:
    """Return the cage with the mode's entry state applied."""
    if mode is Mode.OFF:
        return replace(cage, mode=mode, bowl=Bowl.IN, stirring=False, valve_open=False)
    if mode is Mode.MANUAL:
        # A fresh manual session always starts bowl out, everything off
        return replace(cage, mode=mode, bowl=Bowl.OUT, stirring=False, valve_open=False)
    if mode is Mode.SEMI:
        return replace(cage, mode=mode, bowl=Bowl.IN, stirring=False, valve_open=False)
    return replace(
        cage,
        mode=mode,
        bowl=Bowl.IN,
        stirring=True,
        valve_open=cage.level is Level.LOW,
    )


def flip_bowl(cage: Cage) -> Cage:
    """Toggle the bowl; moving it OUT closes the valve (interlock)."""
    if cage.bowl is Bowl.IN:
        return replace(cage, bowl=Bowl.OUT, valve_open=False)
    return replace(cage, bowl=Bowl.IN)


def flip_stir(cage: Cage) -> Cage:
    return replace(cage, stirring=not cage.stirring)


def valve_blocked(cage: Cage) -> bool:
    """A closed valve cannot be opened while the bowl is out.

    An open valve can always be closed, so it can drain.
    """
    return cage.bowl is not Bowl.IN and not cage.valve_open


def flip_valve(cage: Cage) -> Cage:
    if valve_blocked(cage):
        return cage
    return replace(cage, valve_open=not cage.valve_open)


class ModeEngine:
    """Applies mode changes, manual toggles, level readings and auto settings."""

    def __init__(
        self,
        bank: CageBank,
        scheduler: Optional[StirScheduler] = None,
        timing: Optional[StirTimingConfig] = None,
        loop=None,
    ):
        """Initialize the engine.

        Args:
            bank: The cage bank to mutate.
            scheduler: Scheduler to own. Created from timing/loop if omitted.
            timing: Stir timing for a newly created scheduler.
            loop: Event loop for a newly created scheduler.
        """
        self.bank = bank
        self.scheduler = scheduler or StirScheduler(bank, timing=timing, loop=loop)

    # =========================================================================
    # Mode changes
    # =========================================================================

    def apply_mode(self, cage_id: int, mode) -> Cage:
        """Change a cage's mode and apply its entry state.

        Leaving AUTO disarms the cage's timers before the new mode is
        committed. Entering AUTO arms them after the commit.

        Args:
            cage_id: Cage id (0..47).
            mode: A Mode or its name.

        Returns:
            The committed cage.

        Raises:
            RuntimeError: Entering AUTO with no event loop to run timers on.
            Nothing is committed in that case.
        """
        mode = Mode.from_string(mode)
        current = self.bank.get(cage_id)
        if mode is Mode.AUTO:
            self.scheduler.ensure_loop()

        if current.mode is Mode.AUTO and mode is not Mode.AUTO:
            self.scheduler.disarm(cage_id)

        cage = self.bank.update(cage_id, lambda c: _enter_mode(c, mode))
        if cage.mode is not current.mode:
            logger.info(f"{cage.name}: mode {current.mode.value} -> {cage.mode.value}")

        if mode is Mode.AUTO:
            self.scheduler.arm(cage)
            cage = self.bank.get(cage_id)
        return cage

    # =========================================================================
    # Manual controls (MANUAL mode only)
    # =========================================================================

    def _manual(self, cage_id: int, transform, what: str) -> bool:
        cage = self.bank.get(cage_id)
        if cage.mode is not Mode.MANUAL:
            logger.debug(f"{cage.name}: {what} ignored (mode {cage.mode.value})")
            return False
        new = self.bank.update(cage_id, transform)
        if new == cage:
            logger.debug(f"{cage.name}: {what} ignored")
            return False
        return True

    def toggle_bowl(self, cage_id: int) -> bool:
        """Toggle bowl IN/OUT. Returns False if the toggle was ignored."""
        return self._manual(cage_id, flip_bowl, "bowl toggle")

    def toggle_stir(self, cage_id: int) -> bool:
        """Toggle stirring. Returns False if the toggle was ignored."""
        return self._manual(cage_id, flip_stir, "stir toggle")

    def toggle_valve(self, cage_id: int) -> bool:
        """Toggle the valve. Returns False if the toggle was ignored.

        Opening is refused while the bowl is out.
        """
        return self._manual(cage_id, flip_valve, "valve toggle")

    # =========================================================================
    # Sensor input and auto settings
    # =========================================================================

    def set_level(self, cage_id: int, level) -> Cage:
        """Record a feed level reading.

        In AUTO the valve follows the level: open when LOW, closed when OK.
        """
        level = Level.from_string(level)

        def apply(c: Cage) -> Cage:
            if c.mode is Mode.AUTO:
                return replace(c, level=level, valve_open=level is Level.LOW)
            return replace(c, level=level)

        cage = self.bank.update(cage_id, apply)
        logger.debug(f"{cage.name}: level {level.value}")
        return cage

    def set_auto_settings(self, cage_id: int, **patch) -> Cage:
        """Merge a partial settings patch into a cage's auto settings.

        A cage in AUTO is re-armed with the new settings, replacing its
        previous timers.
        """
        cage = self.bank.get(cage_id)
        settings = cage.auto.merged(**patch)
        if cage.mode is Mode.AUTO:
            self.scheduler.ensure_loop()
        cage = self.bank.update(cage_id, lambda c: replace(c, auto=settings))
        logger.debug(f"{cage.name}: auto settings {settings.to_dict()}")

        if cage.mode is Mode.AUTO:
            self.scheduler.arm(cage)
            cage = self.bank.get(cage_id)
        return cage

    def shutdown(self) -> None:
        """Cancel every pending timer."""
        self.scheduler.disarm_all()
