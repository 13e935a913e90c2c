# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Operator console for the cage monitor.

The console drives a CageMonitor from typed commands or scripts:
- Change modes and toggle manual controls per cage
- Tune per-cage auto settings
- Select cages and apply group commands
- Run YAML scripts that check the result

Example usage:
    # Run interactively
    python -m cagemonitor.console

    # Run a built-in script and exit
    python -m cagemonitor.console --script manual_interlock
"""

from .cli import Console, log_cage_change, main, run_console
from .commands import CommandHandler, CommandResult
from .scripting import (
    AssertionFailed,
    Script,
    ScriptError,
    ScriptRunner,
    ScriptStep,
    get_builtin_script,
    list_builtin_scripts,
)

__all__ = [
    # CLI
    "Console",
    "run_console",
    "main",
    "log_cage_change",
    # Commands
    "CommandHandler",
    "CommandResult",
    # Scripting
    "Script",
    "ScriptRunner",
    "ScriptStep",
    "ScriptError",
    "AssertionFailed",
    "get_builtin_script",
    "list_builtin_scripts",
]
