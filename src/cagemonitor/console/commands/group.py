# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Selection and group control commands.

Group manual and auto controls are only offered when every selected cage
shares the matching mode. The coordinator skips mismatched cages anyway,
but the console refuses the command up front so the operator sees why.
"""

from typing import TYPE_CHECKING, Optional

from ...cage import GroupAction, Mode
from ...const import STATION_COUNT
from .base import ArgSpec, CommandResult, command, subcommand

if TYPE_CHECKING:
    from ...monitor import CageMonitor

_CAGE_ARG = ArgSpec("cage", "cage", help="Cage name (C1..C48) or id (0..47)")


class GroupCommandsMixin:
    """Mixin providing selection and group commands."""

    monitor: "CageMonitor"

    def _selection_line(self) -> str:
        names = [c.name for c in self.monitor.bank.selected()]
        return f"Selected ({len(names)}): {', '.join(names) if names else 'none'}"

    def _require_shared_mode(self, mode: Mode) -> tuple[list[int], Optional[CommandResult]]:
        """Check the group precondition. Returns (ids, error)."""
        group = self.monitor.group
        ids = group.selected_ids()
        if not ids:
            return ids, CommandResult(False, "No cages selected")
        shared = group.shared_mode(ids)
        if shared is None:
            return ids, CommandResult(
                False, "Mixed modes selected. Group controls disabled until unified."
            )
        if shared is not mode:
            return ids, CommandResult(
                False, f"Selected cages are {shared.value}; this control requires {mode.value}"
            )
        return ids, None

    # =========================================================================
    # Selection
    # =========================================================================

    @command("select", ["sel"], "Select a cage", category="group", args=[_CAGE_ARG])
    def select(self, cage_id: int) -> CommandResult:
        """Add a cage to the selection."""
        self.monitor.group.select(cage_id)
        return CommandResult(True, self._selection_line())

    @command("deselect", ["desel"], "Deselect a cage", category="group", args=[_CAGE_ARG])
    def deselect(self, cage_id: int) -> CommandResult:
        """Remove a cage from the selection."""
        self.monitor.group.deselect(cage_id)
        return CommandResult(True, self._selection_line())

    @command(
        "station",
        ["st"],
        "Select or deselect all cages of a station",
        category="group",
        args=[
            ArgSpec("station", "int", minimum=1, maximum=STATION_COUNT, help="Station number"),
            ArgSpec(
                "value",
                "on_off",
                required=False,
                default=True,
                help="on to select (default), off to deselect",
            ),
        ],
    )
    def station(self, station: int, value: bool = True) -> CommandResult:
        """Set the selection flag on a whole station."""
        self.monitor.group.select_all_in_station(station, value)
        return CommandResult(True, self._selection_line())

    @command("clear", ["clr"], "Clear the selection", category="group")
    def clear(self) -> CommandResult:
        """Deselect all cages."""
        self.monitor.group.clear_all()
        return CommandResult(True, self._selection_line())

    # =========================================================================
    # Group control
    # =========================================================================

    @command("group", ["g"], "Show the selection or apply a group command", category="group")
    def group(self) -> CommandResult:
        """Show the selected cages (default action)."""
        cages = self.monitor.bank.selected()
        if not cages:
            return CommandResult(True, "Selection: none", {"selected": []})

        shared = self.monitor.group.shared_mode()
        lines = [f"Selection ({len(cages)}):"]
        lines.extend(f"  {c.describe()}" for c in cages)
        if shared is None:
            lines.append("Mixed modes selected. Group controls disabled until unified.")
        else:
            lines.append(f"Shared mode: {shared.value}")
        return CommandResult(True, "\n".join(lines), {"selected": [c.id for c in cages]})

    @subcommand(
        "group",
        "mode",
        ["m"],
        "Apply a mode to all selected cages",
        args=[
            ArgSpec("mode", "choice", choices=[m.value.lower() for m in Mode], help="Control mode"),
        ],
    )
    def group_mode(self, mode: str) -> CommandResult:
        """Apply a mode to the whole selection."""
        ids = self.monitor.group.selected_ids()
        if not ids:
            return CommandResult(False, "No cages selected")
        self.monitor.group.apply_group_mode(ids, mode)
        return CommandResult(True, f"{mode.upper()} applied to {len(ids)} cage(s)", {"ids": ids})

    @subcommand(
        "group",
        "manual",
        ["man"],
        "Toggle bowl, stir or valve on all selected cages (all MANUAL)",
        args=[
            ArgSpec(
                "action",
                "choice",
                choices=[a.value.lower() for a in GroupAction],
                help="Control to toggle",
            ),
        ],
    )
    def group_manual(self, action: str) -> CommandResult:
        """Apply a manual toggle to the whole selection."""
        ids, err = self._require_shared_mode(Mode.MANUAL)
        if err:
            return err
        changed = self.monitor.group.apply_group_manual(ids, action)
        msg = f"{action.upper()} toggled on {len(changed)} of {len(ids)} cage(s)"
        return CommandResult(True, msg, {"ids": changed})

    @subcommand(
        "group",
        "auto",
        ["a"],
        "Apply auto settings to all selected cages (all AUTO)",
        args=[
            ArgSpec("every", "float", minimum=0, help="Minutes between stir pulses"),
            ArgSpec("duration", "float", minimum=0, help="Stir pulse seconds"),
            ArgSpec("exit", "on_off", required=False, help="Auto exit on/off"),
            ArgSpec("exit_time", "clock", required=False, help="Auto exit time"),
        ],
    )
    def group_auto(
        self,
        every: float,
        duration: float,
        exit: Optional[bool] = None,
        exit_time: Optional[str] = None,
    ) -> CommandResult:
        """Apply auto settings to the whole selection."""
        ids, err = self._require_shared_mode(Mode.AUTO)
        if err:
            return err

        patch = {"stir_every_min": every, "stir_duration_sec": duration}
        if exit is not None:
            patch["auto_exit_enabled"] = exit
        if exit_time is not None:
            patch["auto_exit_time"] = exit_time

        updated = self.monitor.group.apply_group_auto_settings(ids, **patch)
        return CommandResult(
            True,
            f"Auto settings applied to {len(updated)} cage(s): every {every:g} min for {duration:g}s",
            {"ids": updated, "settings": patch},
        )
