# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Automatic-mode settings commands."""

from typing import TYPE_CHECKING

from .base import ArgSpec, CommandResult, command, get_command_registry, subcommand

if TYPE_CHECKING:
    from ...monitor import CageMonitor

_CAGE_ARG = ArgSpec("cage", "cage", help="Cage name (C1..C48) or id (0..47)")


class AutoCommandsMixin:
    """Mixin providing per-cage auto settings commands."""

    monitor: "CageMonitor"

    def _format_auto(self, cage_id: int) -> str:
        cage = self.monitor.bank.get(cage_id)
        a = cage.auto
        exit_str = f"at {a.auto_exit_time}" if a.auto_exit_enabled else f"off ({a.auto_exit_time})"
        return (
            f"{cage.name} auto: stir every {a.stir_every_min:g} min "
            f"for {a.stir_duration_sec:g}s, exit {exit_str}"
        )

    def _apply_auto(self, cage_id: int, **patch) -> CommandResult:
        cage = self.monitor.engine.set_auto_settings(cage_id, **patch)
        return CommandResult(True, self._format_auto(cage_id), cage.auto.to_dict())

    @command("auto", ["a"], "Show or change a cage's auto settings", category="auto")
    def auto(self) -> CommandResult:
        """Show auto subcommands (default action)."""
        return CommandResult(True, get_command_registry()["auto"].help_text())

    @subcommand("auto", "show", [], "Show auto settings", args=[_CAGE_ARG])
    def auto_show(self, cage_id: int) -> CommandResult:
        """Show the auto settings of one cage."""
        cage = self.monitor.bank.get(cage_id)
        return CommandResult(True, self._format_auto(cage_id), cage.auto.to_dict())

    @subcommand(
        "auto",
        "every",
        ["e"],
        "Set minutes between stir pulses (0 disables)",
        args=[
            _CAGE_ARG,
            ArgSpec("minutes", "float", minimum=0, help="Minutes between pulses"),
        ],
    )
    def auto_every(self, cage_id: int, minutes: float) -> CommandResult:
        """Set the stir interval."""
        return self._apply_auto(cage_id, stir_every_min=minutes)

    @subcommand(
        "auto",
        "duration",
        ["d", "for"],
        "Set stir pulse length in seconds (0 disables)",
        args=[
            _CAGE_ARG,
            ArgSpec("seconds", "float", minimum=0, help="Pulse length"),
        ],
    )
    def auto_duration(self, cage_id: int, seconds: float) -> CommandResult:
        """Set the stir pulse duration."""
        return self._apply_auto(cage_id, stir_duration_sec=seconds)

    @subcommand(
        "auto",
        "exit",
        ["x"],
        "Enable or disable auto exit",
        args=[_CAGE_ARG, ArgSpec("value", "on_off", help="on/off")],
    )
    def auto_exit(self, cage_id: int, value: bool) -> CommandResult:
        """Enable or disable the auto exit flag."""
        return self._apply_auto(cage_id, auto_exit_enabled=value)

    @subcommand(
        "auto",
        "exit_time",
        ["t"],
        "Set the auto exit time",
        args=[_CAGE_ARG, ArgSpec("time", "clock", help="24-hour time")],
    )
    def auto_exit_time(self, cage_id: int, time: str) -> CommandResult:
        """Set the auto exit time."""
        return self._apply_auto(cage_id, auto_exit_time=time)
