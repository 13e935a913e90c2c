# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Console commands for the cage monitor.

CommandHandler combines one mixin per area (cage control, auto settings,
selection and groups, scripts, info, control). The same handler serves the
prompt, scripts and direct method calls.
"""

from .base import (
    ArgError,
    ArgSpec,
    CommandInfo,
    CommandResult,
    command,
    get_canonical_command,
    get_command_registry,
    parse_cage_ref,
    resolve,
    subcommand,
)
from .handler import CommandHandler

__all__ = [
    "ArgError",
    "ArgSpec",
    "CommandHandler",
    "CommandInfo",
    "CommandResult",
    "command",
    "get_canonical_command",
    "get_command_registry",
    "parse_cage_ref",
    "resolve",
    "subcommand",
]
