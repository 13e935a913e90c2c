# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Single-cage commands: mode, manual toggles and level readings."""

from typing import TYPE_CHECKING, Callable, Optional

from ...cage import Cage, Mode
from ...engine import valve_blocked
from .base import ArgSpec, CommandResult, command

if TYPE_CHECKING:
    from ...monitor import CageMonitor

_CAGE_ARG = ArgSpec("cage", "cage", help="Cage name (C1..C48) or id (0..47)")


class CageCommandsMixin:
    """Mixin providing single-cage commands."""

    monitor: "CageMonitor"

    def _cage_result(self, cage_id: int, prefix: str = "") -> CommandResult:
        cage = self.monitor.bank.get(cage_id)
        return CommandResult(True, f"{prefix}{cage.describe()}", cage.to_dict())

    @command(
        "mode",
        ["m"],
        "Set a cage's control mode",
        category="cage",
        args=[
            _CAGE_ARG,
            ArgSpec(
                "mode",
                "choice",
                choices=[m.value.lower() for m in Mode],
                help="Control mode",
            ),
        ],
    )
    def mode(self, cage_id: int, mode: str) -> CommandResult:
        """Change the control mode of one cage."""
        self.monitor.engine.apply_mode(cage_id, mode)
        return self._cage_result(cage_id)

    def _manual_toggle(
        self,
        cage_id: int,
        method: str,
        what: str,
        blocked: Optional[Callable[[Cage], bool]] = None,
        blocked_reason: str = "",
    ) -> CommandResult:
        """Run a manual toggle, explaining why it was refused if it was."""
        cage = self.monitor.bank.get(cage_id)
        if cage.mode is not Mode.MANUAL:
            return CommandResult(
                False,
                f"{cage.name}: {what} control requires MANUAL mode (currently {cage.mode.value})",
            )
        if blocked is not None and blocked(cage):
            return CommandResult(False, f"{cage.name}: {blocked_reason}")

        getattr(self.monitor.engine, method)(cage_id)
        return self._cage_result(cage_id)

    @command("bowl", ["b"], "Toggle bowl IN/OUT (MANUAL only)", category="cage", args=[_CAGE_ARG])
    def bowl(self, cage_id: int) -> CommandResult:
        """Toggle the bowl position of a cage in MANUAL mode."""
        return self._manual_toggle(cage_id, "toggle_bowl", "bowl")

    @command("stir", ["s"], "Toggle stirring (MANUAL only)", category="cage", args=[_CAGE_ARG])
    def stir(self, cage_id: int) -> CommandResult:
        """Toggle stirring of a cage in MANUAL mode."""
        return self._manual_toggle(cage_id, "toggle_stir", "stir")

    @command("valve", ["v"], "Toggle feed valve (MANUAL only)", category="cage", args=[_CAGE_ARG])
    def valve(self, cage_id: int) -> CommandResult:
        """Toggle the valve of a cage in MANUAL mode."""
        return self._manual_toggle(
            cage_id,
            "toggle_valve",
            "valve",
            blocked=valve_blocked,
            blocked_reason="valve cannot open while bowl is OUT",
        )

    @command(
        "level",
        ["l"],
        "Report a feed level reading",
        category="cage",
        args=[
            _CAGE_ARG,
            ArgSpec("level", "choice", choices=["ok", "low"], help="Sensor reading"),
        ],
    )
    def level(self, cage_id: int, level: str) -> CommandResult:
        """Feed a level sensor reading into a cage."""
        self.monitor.engine.set_level(cage_id, level)
        return self._cage_result(cage_id)
