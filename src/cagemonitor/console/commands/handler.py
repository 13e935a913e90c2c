# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Command handler that combines all command mixins."""

import asyncio
import logging
from typing import TYPE_CHECKING, Callable, Optional

from ...cage import CageMonitorError
from .auto import AutoCommandsMixin
from .base import HELP_WORDS, ArgError, CommandResult, resolve
from .cage import CageCommandsMixin
from .control import ControlCommandsMixin
from .group import GroupCommandsMixin
from .info import InfoCommandsMixin
from .scripts import ScriptsCommandsMixin

if TYPE_CHECKING:
    from ...monitor import CageMonitor
    from ..scripting import ScriptRunner

logger = logging.getLogger(__name__)


class CommandHandler(
    CageCommandsMixin,
    AutoCommandsMixin,
    GroupCommandsMixin,
    ScriptsCommandsMixin,
    InfoCommandsMixin,
    ControlCommandsMixin,
):
    """Runs console commands against a CageMonitor.

    Commands can be invoked:
    - Via execute() with a command line ("mode C1 auto", "g m off")
    - Directly as methods (handler.mode(0, "auto"), handler.select(3))
    """

    def __init__(
        self,
        monitor: "CageMonitor",
        script_runner: Optional["ScriptRunner"] = None,
        stop_callback: Optional[Callable[[], None]] = None,
    ):
        """Initialize the command handler.

        Args:
            monitor: The cage monitor instance
            script_runner: The script runner instance (created if not given)
            stop_callback: Function to call to stop the console
        """
        # Import here to avoid circular imports
        from .. import scripting

        self.monitor = monitor
        self.scripting = scripting
        self.script_runner = script_runner or scripting.ScriptRunner(monitor, handler=self)
        self.stop_callback = stop_callback or (lambda: None)

    async def execute(self, line: str) -> CommandResult:
        """Execute one command line and return its result.

        The leading words select a node of the command tree; a trailing
        "help" or "?" shows that node's help instead of running it.
        """
        words = line.split() if line else []
        if not words:
            return CommandResult(False, "Empty command")

        info, depth = resolve(words)
        if info is None:
            return CommandResult(False, f"Unknown command: {words[0].lower()}. Type 'help' for commands.")

        rest = words[depth:]
        if rest and rest[0].lower() in HELP_WORDS:
            return CommandResult(True, info.help_text())
        if rest and info.children and not info.args:
            names = ", ".join(c.name for c in info.subcommands())
            return CommandResult(
                False, f"Unknown {info.path} subcommand: {rest[0]}\nAvailable: {names}"
            )

        try:
            values = info.parse_args(rest)
        except ArgError as e:
            return CommandResult(False, f"{e}\nUsage: {info.path} {info.usage}".rstrip())

        logger.debug(f"Command: {info.path} {values}")
        try:
            result = getattr(self, info.handler_name)(*values)
            if asyncio.iscoroutine(result):
                result = await result
        except CageMonitorError as e:
            return CommandResult(False, f"Error: {e}")
        return result
