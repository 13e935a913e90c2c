# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Group command coordinator.

Fans operator intent out to a set of cages. Mode changes apply to every
cage; manual toggles and auto settings only apply to cages already in the
matching mode, and other cages are skipped without error.
"""
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterable, Optional

from .cage import AutoSettings, Cage, GroupAction, Mode
from .engine import ModeEngine, flip_bowl, flip_stir, flip_valve

logger = logging.getLogger(__name__)

_MANUAL_TRANSFORMS = {
    GroupAction.BOWL: flip_bowl,
    GroupAction.STIR: flip_stir,
    GroupAction.VALVE: flip_valve,
}


def only_in_mode(mode: Mode, transform):
    """Wrap a transform so it leaves cages in any other mode untouched."""

    def guarded(cage: Cage) -> Cage:
        if cage.mode is not mode:
            return cage
        return transform(cage)

    return guarded


class GroupCoordinator:
    """Applies commands and selection changes across many cages."""

    def __init__(self, engine: ModeEngine):
        self.engine = engine
        self.bank = engine.bank

    def _checked_ids(self, cage_ids: Iterable[int]) -> list[int]:
        """De-duplicate ids and fail on unknown ones before touching any cage."""
        ids = list(dict.fromkeys(cage_ids))
        for cage_id in ids:
            self.bank.get(cage_id)
        return ids

    # =========================================================================
    # Group commands
    # =========================================================================

    def apply_group_mode(self, cage_ids: Iterable[int], mode) -> list[Cage]:
        """Apply a mode to every cage, whatever its current mode."""
        mode = Mode.from_string(mode)
        ids = self._checked_ids(cage_ids)
        results = [self.engine.apply_mode(cage_id, mode) for cage_id in ids]
        logger.info(f"Group: mode {mode.value} applied to {len(results)} cage(s)")
        return results

    def apply_group_manual(self, cage_ids: Iterable[int], action) -> list[int]:
        """Apply a manual toggle to the cages that are in MANUAL.

        Returns:
            Ids of the cages whose state changed.
        """
        action = GroupAction.from_string(action)
        ids = self._checked_ids(cage_ids)
        before = {cage_id: self.bank.get(cage_id) for cage_id in ids}

        transform = only_in_mode(Mode.MANUAL, _MANUAL_TRANSFORMS[action])
        results = self.bank.update_many(ids, transform)

        changed = [c.id for c in results if c != before[c.id]]
        skipped = len(ids) - len(changed)
        logger.info(
            f"Group: {action.value} toggled on {len(changed)} cage(s)"
            + (f", {skipped} skipped" if skipped else "")
        )
        return changed

    def apply_group_auto_settings(self, cage_ids: Iterable[int], **patch) -> list[int]:
        """Merge auto settings into the cages that are in AUTO and re-arm them.

        Returns:
            Ids of the cages that were updated.
        """
        # Reject a bad patch before any cage is touched
        AutoSettings().merged(**patch)
        ids = self._checked_ids(cage_ids)
        if any(self.bank.get(i).mode is Mode.AUTO for i in ids):
            self.engine.scheduler.ensure_loop()

        transform = only_in_mode(
            Mode.AUTO, lambda c: replace(c, auto=c.auto.merged(**patch))
        )
        updated = [c for c in self.bank.update_many(ids, transform) if c.mode is Mode.AUTO]
        for cage in updated:
            self.engine.scheduler.arm(cage)

        logger.info(f"Group: auto settings applied to {len(updated)} cage(s)")
        return [c.id for c in updated]

    # =========================================================================
    # Selection
    # =========================================================================

    def _set_selected(self, cage_id: int, value: bool) -> Cage:
        return self.bank.update(cage_id, lambda c: replace(c, selected=value))

    def select(self, cage_id: int) -> Cage:
        return self._set_selected(cage_id, True)

    def deselect(self, cage_id: int) -> Cage:
        return self._set_selected(cage_id, False)

    def toggle_selected(self, cage_id: int) -> Cage:
        return self.bank.update(cage_id, lambda c: replace(c, selected=not c.selected))

    def select_all_in_station(self, station: int, value: bool = True) -> list[Cage]:
        """Set the selection flag on every cage of a station."""
        ids = [c.id for c in self.bank.by_station(station)]
        return self.bank.update_many(ids, lambda c: replace(c, selected=value))

    def clear_all(self) -> None:
        """Deselect every cage."""
        self.bank.update_many(self.bank.ids, lambda c: replace(c, selected=False))

    def selected_ids(self) -> list[int]:
        return [c.id for c in self.bank.selected()]

    def shared_mode(self, cage_ids: Optional[Iterable[int]] = None) -> Optional[Mode]:
        """The mode shared by all given cages (default: the selection).

        Returns None when the set is empty or the modes are mixed.
        """
        if cage_ids is None:
            cages = self.bank.selected()
        else:
            cages = [self.bank.get(cage_id) for cage_id in cage_ids]
        modes = {c.mode for c in cages}
        return modes.pop() if len(modes) == 1 else None
