# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Shutdown and logging commands."""

import logging
from typing import TYPE_CHECKING, Callable, Optional

from .base import ArgSpec, CommandResult, command

if TYPE_CHECKING:
    from ...monitor import CageMonitor

PACKAGE_LOGGER = "cagemonitor"


class ControlCommandsMixin:
    """Mixin providing control commands."""

    monitor: "CageMonitor"
    stop_callback: Callable[[], None]

    @command(
        "shutdown",
        ["stop", "exit", "quit", "q"],
        "Cancel all stir schedules and exit",
        category="control",
    )
    def shutdown(self) -> CommandResult:
        armed = self.monitor.scheduler.armed_ids()
        self.stop_callback()
        return CommandResult(
            True, f"Shutting down ({len(armed)} stir schedule(s) to cancel)", {"armed": armed}
        )

    @command(
        "debug",
        [],
        "Show or change debug logging of the cage monitor",
        category="control",
        args=[ArgSpec("state", "on_off", required=False, help="Omit to show the current state")],
    )
    def debug(self, state: Optional[bool] = None) -> CommandResult:
        """Log every stir pulse and refused toggle, or only changes.

        Only the cagemonitor loggers change level, so other libraries keep
        whatever the root logger allows.
        """
        package_logger = logging.getLogger(PACKAGE_LOGGER)
        if state is not None:
            package_logger.setLevel(logging.DEBUG if state else logging.INFO)
        enabled = package_logger.isEnabledFor(logging.DEBUG)
        return CommandResult(True, f"Debug logging: {'on' if enabled else 'off'}", {"debug": enabled})
