# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Cage monitor facade.

Builds the cage bank, mode engine, stir scheduler and group coordinator and
wires them together for one session.
"""
from __future__ import annotations

import logging
from typing import Optional

from .cage import AutoSettings, Cage, CageBank
from .engine import ModeEngine
from .group import GroupCoordinator
from .scheduler import StirScheduler, StirTimingConfig

logger = logging.getLogger(__name__)


class CageMonitor:
    """All 48 cages and the components that control them.

    Example:
        monitor = CageMonitor()
        monitor.engine.apply_mode(0, "AUTO")
        monitor.group.select_all_in_station(2)
        monitor.group.apply_group_mode(monitor.group.selected_ids(), "MANUAL")
        ...
        monitor.stop()
    """

    def __init__(
        self,
        timing: Optional[StirTimingConfig] = None,
        auto_defaults: Optional[AutoSettings] = None,
        loop=None,
    ):
        self.timing = timing or StirTimingConfig()
        self.bank = CageBank(auto_defaults=auto_defaults)
        self.scheduler = StirScheduler(self.bank, timing=self.timing, loop=loop)
        self.engine = ModeEngine(self.bank, scheduler=self.scheduler)
        self.group = GroupCoordinator(self.engine)

    def snapshot(self) -> tuple[Cage, ...]:
        """All cages, ordered by id."""
        return self.bank.snapshot()

    def stop(self) -> None:
        """Cancel all pending stir timers."""
        armed = len(self.scheduler.armed_ids())
        self.engine.shutdown()
        if armed:
            logger.info(f"Monitor stopped, {armed} schedule(s) cancelled")
