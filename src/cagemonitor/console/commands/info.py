# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Info and status commands."""

from typing import TYPE_CHECKING, Optional

from ...cage import Mode
from ...const import STATION_COUNT
from .base import ArgSpec, CommandInfo, CommandResult, command, get_command_registry, unique_commands

if TYPE_CHECKING:
    from ...monitor import CageMonitor


_HELP_SECTIONS = (
    ("cage", "Cage Control"),
    ("auto", "Auto Settings"),
    ("group", "Selection and Groups"),
    ("info", "Info"),
    ("scripts", "Scripts"),
    ("control", "Control"),
)


class InfoCommandsMixin:
    """Mixin providing info and status commands."""

    monitor: "CageMonitor"

    @command(
        "status",
        ["state", "info"],
        "Show all cages, or one station",
        category="info",
        args=[
            ArgSpec(
                "station",
                "int",
                required=False,
                minimum=1,
                maximum=STATION_COUNT,
                help="Only show this station",
            )
        ],
    )
    def status(self, station: Optional[int] = None) -> CommandResult:
        """Show a per-station overview of the cages."""
        bank = self.monitor.bank
        stations = [station] if station else range(1, STATION_COUNT + 1)

        counts = {m.value: 0 for m in Mode}
        for cage in bank:
            counts[cage.mode.value] += 1

        lines = []
        for st in stations:
            lines.append(f"Station {st}:")
            for cage in bank.by_station(st):
                marker = "*" if cage.selected else " "
                lines.append(f" {marker}{cage.describe()}")

        summary = ", ".join(f"{name} {n}" for name, n in counts.items())
        lines.append(f"Modes: {summary}")
        lines.append(
            f"Selected: {len(bank.selected())}, "
            f"stir schedules running: {len(self.monitor.scheduler.armed_ids())}"
        )
        data = {
            "modes": counts,
            "selected": self.monitor.group.selected_ids(),
            "armed": self.monitor.scheduler.armed_ids(),
        }
        return CommandResult(True, "\n".join(lines), data)

    @command(
        "show",
        ["sh"],
        "Show one cage in detail",
        category="info",
        args=[ArgSpec("cage", "cage", help="Cage name (C1..C48) or id (0..47)")],
    )
    def show(self, cage_id: int) -> CommandResult:
        """Show every field of one cage."""
        cage = self.monitor.bank.get(cage_id)
        a = cage.auto
        lines = [
            f"{cage.name} (id {cage.id}, station {cage.station}, cage {cage.cage_number}):",
            f"  Mode: {cage.mode.value}",
            f"  Bowl: {cage.bowl.value}",
            f"  Stirring: {'ON' if cage.stirring else 'OFF'}",
            f"  Valve: {'OPEN' if cage.valve_open else 'CLOSED'}",
            f"  Level: {cage.level.value}",
            f"  Selected: {'yes' if cage.selected else 'no'}",
            f"  Auto: stir every {a.stir_every_min:g} min for {a.stir_duration_sec:g}s",
            f"  Auto exit: {'ON' if a.auto_exit_enabled else 'OFF'} at {a.auto_exit_time}",
        ]
        if self.monitor.scheduler.is_armed(cage_id):
            periodic, pulse = self.monitor.scheduler.pending(cage_id)
            lines.append(
                f"  Schedule: periodic {'pending' if periodic else 'none'}, "
                f"pulse {'running' if pulse else 'idle'}"
            )
        return CommandResult(True, "\n".join(lines), cage.to_dict())

    @command("timers", ["tm"], "Show running stir schedules", category="info")
    def timers(self) -> CommandResult:
        """List cages with an armed stir schedule."""
        scheduler = self.monitor.scheduler
        armed = scheduler.armed_ids()
        if not armed:
            return CommandResult(True, "No stir schedules running", {"armed": []})

        lines = [f"Stir schedules ({len(armed)}):"]
        for cage_id in armed:
            cage = self.monitor.bank.get(cage_id)
            settings = scheduler.settings_for(cage_id)
            periodic, pulse = scheduler.pending(cage_id)
            every = (
                f"every {settings.stir_every_min:g} min for {settings.stir_duration_sec:g}s"
                if periodic
                else "initial pulse only"
            )
            lines.append(f"  {cage.name}: {every}, pulse {'running' if pulse else 'idle'}")
        return CommandResult(True, "\n".join(lines), {"armed": armed})

    @command(
        "help",
        ["?"],
        "Show all commands, or one command in detail",
        category="info",
        args=[ArgSpec("command", "text", required=False, help="Command to explain")],
    )
    def help(self, topic: Optional[str] = None) -> CommandResult:
        """Show the command list, or help for one command."""
        if topic is None:
            return CommandResult(True, self.get_help())
        info = get_command_registry().get(topic.lower())
        if info is None:
            return CommandResult(False, f"Unknown command: {topic}")
        return CommandResult(True, info.help_text())

    def get_help(self) -> str:
        """List every command, grouped by category."""
        by_category: dict[str, list[CommandInfo]] = {}
        for info in unique_commands():
            by_category.setdefault(info.category, []).append(info)

        lines = ["Commands:"]
        for key, title in _HELP_SECTIONS:
            if key not in by_category:
                continue
            lines.append(f"\n{title}:")
            for info in sorted(by_category[key], key=lambda i: i.name):
                alias_str = f" ({', '.join(info.aliases)})" if info.aliases else ""
                lines.append(f"  {info.name}{alias_str} {info.usage}".rstrip() + f" - {info.description}")
        lines.append("\nAppend 'help' to any command for details, e.g. 'group auto help'.")
        return "\n".join(lines)
