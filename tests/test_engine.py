# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Tests for the mode transition engine (engine.py)."""
from __future__ import annotations

import pytest

from cagemonitor import (
    Bowl,
    CageMonitor,
    InvalidModeError,
    InvalidSettingsError,
    Level,
    Mode,
    UnknownCageError,
)

ALL_MODES = list(Mode)

ENTRY_STATE = {
    # mode: (bowl, stirring, valve_open) with level OK
    Mode.OFF: (Bowl.IN, False, False),
    Mode.MANUAL: (Bowl.OUT, False, False),
    Mode.SEMI: (Bowl.IN, False, False),
    Mode.AUTO: (Bowl.IN, True, False),
}


def _derived(cage):
    return cage.bowl, cage.stirring, cage.valve_open


def _set_manual_state(engine, cage_id, bowl_in=True, stir=False, valve=False):
    """Drive a MANUAL cage into a given state through toggles."""
    engine.apply_mode(cage_id, Mode.MANUAL)
    if bowl_in:
        engine.toggle_bowl(cage_id)
    if stir:
        engine.toggle_stir(cage_id)
    if valve:
        engine.toggle_valve(cage_id)


# ============================================================================
# Mode changes
# ============================================================================

class TestApplyMode:
    """Tests for ModeEngine.apply_mode."""

    @pytest.mark.parametrize("source", ALL_MODES)
    @pytest.mark.parametrize("target", ALL_MODES)
    def test_entry_table(self, engine, source, target):
        """Entry state depends only on the target mode."""
        engine.apply_mode(5, source)
        if source is Mode.MANUAL:
            # Leave the cage in a busy manual state first
            engine.toggle_bowl(5)
            engine.toggle_stir(5)
            engine.toggle_valve(5)
        cage = engine.apply_mode(5, target)
        assert cage.mode is target
        assert _derived(cage) == ENTRY_STATE[target]

    def test_auto_entry_opens_valve_when_low(self, engine):
        engine.set_level(2, Level.LOW)
        cage = engine.apply_mode(2, "AUTO")
        assert cage.valve_open is True
        assert cage.stirring is True

    def test_off_from_busy_manual(self, engine, bank):
        _set_manual_state(engine, 0, bowl_in=True, stir=True, valve=True)
        assert _derived(bank.get(0)) == (Bowl.IN, True, True)
        cage = engine.apply_mode(0, Mode.OFF)
        assert _derived(cage) == (Bowl.IN, False, False)

    def test_accepts_lowercase(self, engine):
        assert engine.apply_mode(0, "semi").mode is Mode.SEMI

    def test_invalid_mode_changes_nothing(self, engine, bank):
        before = bank.get(0)
        with pytest.raises(InvalidModeError):
            engine.apply_mode(0, "TURBO")
        assert bank.get(0) is before

    def test_unknown_cage(self, engine):
        with pytest.raises(UnknownCageError):
            engine.apply_mode(48, Mode.OFF)

    def test_reapplying_mode_resets_entry_state(self, engine):
        _set_manual_state(engine, 0, bowl_in=True, stir=True)
        cage = engine.apply_mode(0, Mode.MANUAL)
        assert _derived(cage) == ENTRY_STATE[Mode.MANUAL]

    def test_other_cages_untouched(self, engine, bank):
        before = bank.snapshot()
        engine.apply_mode(10, Mode.AUTO)
        after = bank.snapshot()
        assert [c for c in after if c.id != 10] == [c for c in before if c.id != 10]


class TestAutoArming:
    """Tests for the commit-then-schedule contract."""

    def test_entering_auto_arms(self, engine, scheduler):
        engine.apply_mode(0, Mode.AUTO)
        assert scheduler.is_armed(0)

    def test_leaving_auto_disarms(self, engine, scheduler):
        engine.apply_mode(0, Mode.AUTO)
        engine.apply_mode(0, Mode.MANUAL)
        assert not scheduler.is_armed(0)

    def test_auto_to_auto_rearms(self, engine, scheduler, fake_loop):
        engine.apply_mode(0, Mode.AUTO)
        engine.apply_mode(0, Mode.AUTO)
        assert scheduler.is_armed(0)
        assert len(fake_loop.live_handles()) == 2

    def test_non_auto_modes_never_arm(self, engine, scheduler):
        for mode in (Mode.OFF, Mode.MANUAL, Mode.SEMI):
            engine.apply_mode(0, mode)
            assert not scheduler.is_armed(0)


# ============================================================================
# Manual controls
# ============================================================================

class TestManualControls:
    """Tests for bowl/stir/valve toggles."""

    @pytest.mark.parametrize("mode", [Mode.OFF, Mode.SEMI, Mode.AUTO])
    def test_ignored_outside_manual(self, engine, bank, mode):
        engine.apply_mode(0, mode)
        before = bank.get(0)
        assert engine.toggle_bowl(0) is False
        assert engine.toggle_stir(0) is False
        assert engine.toggle_valve(0) is False
        assert bank.get(0) == before

    def test_toggle_bowl(self, engine, bank):
        engine.apply_mode(0, Mode.MANUAL)
        assert engine.toggle_bowl(0) is True
        assert bank.get(0).bowl is Bowl.IN
        assert engine.toggle_bowl(0) is True
        assert bank.get(0).bowl is Bowl.OUT

    def test_toggle_stir(self, engine, bank):
        engine.apply_mode(0, Mode.MANUAL)
        assert engine.toggle_stir(0) is True
        assert bank.get(0).stirring is True

    def test_bowl_out_closes_valve(self, engine, bank):
        """Interlock: pulling the bowl always closes the valve."""
        _set_manual_state(engine, 0, bowl_in=True, valve=True)
        assert bank.get(0).valve_open is True
        engine.toggle_bowl(0)
        cage = bank.get(0)
        assert cage.bowl is Bowl.OUT
        assert cage.valve_open is False

    def test_valve_blocked_while_bowl_out(self, engine, bank):
        engine.apply_mode(0, Mode.MANUAL)
        before = bank.get(0)
        assert before.bowl is Bowl.OUT
        assert engine.toggle_valve(0) is False
        assert engine.toggle_valve(0) is False
        assert bank.get(0) is before

    def test_valve_toggles_with_bowl_in(self, engine, bank):
        _set_manual_state(engine, 0, bowl_in=True)
        assert engine.toggle_valve(0) is True
        assert bank.get(0).valve_open is True
        assert engine.toggle_valve(0) is True
        assert bank.get(0).valve_open is False

    def test_bowl_in_keeps_valve(self, engine, bank):
        engine.apply_mode(0, Mode.MANUAL)
        engine.toggle_bowl(0)
        assert bank.get(0).valve_open is False


# ============================================================================
# Level and auto settings
# ============================================================================

class TestSetLevel:
    """Tests for level readings."""

    def test_auto_valve_follows_level(self, engine, bank):
        engine.apply_mode(3, Mode.AUTO)
        stirring = bank.get(3).stirring

        engine.set_level(3, "LOW")
        assert bank.get(3).valve_open is True
        assert bank.get(3).stirring == stirring

        engine.set_level(3, "OK")
        assert bank.get(3).valve_open is False
        assert bank.get(3).stirring == stirring

    @pytest.mark.parametrize("mode", [Mode.OFF, Mode.MANUAL, Mode.SEMI])
    def test_level_only_recorded_outside_auto(self, engine, bank, mode):
        engine.apply_mode(0, mode)
        engine.set_level(0, Level.LOW)
        cage = bank.get(0)
        assert cage.level is Level.LOW
        assert cage.valve_open is False


class TestSetAutoSettings:
    """Tests for set_auto_settings."""

    def test_merges_patch(self, engine, bank):
        engine.set_auto_settings(0, stir_every_min=5)
        auto = bank.get(0).auto
        assert auto.stir_every_min == 5
        assert auto.stir_duration_sec == 10

    def test_not_armed_outside_auto(self, engine, scheduler):
        engine.set_auto_settings(0, stir_every_min=5)
        assert not scheduler.is_armed(0)

    def test_rearms_in_auto(self, engine, scheduler):
        engine.apply_mode(0, Mode.AUTO)
        engine.set_auto_settings(0, stir_duration_sec=20)
        assert scheduler.settings_for(0).stir_duration_sec == 20

    def test_invalid_patch_changes_nothing(self, engine, bank):
        before = bank.get(0)
        with pytest.raises(InvalidSettingsError):
            engine.set_auto_settings(0, stir_every_min=-5)
        with pytest.raises(InvalidSettingsError):
            engine.set_auto_settings(0, color="red")
        assert bank.get(0) is before

    def test_shutdown_disarms_all(self, engine, scheduler):
        for cage_id in (0, 1, 2):
            engine.apply_mode(cage_id, Mode.AUTO)
        engine.shutdown()
        assert scheduler.armed_ids() == []


class TestNoEventLoop:
    """AUTO state is never committed when timers cannot be scheduled."""

    def test_enter_auto_refused(self):
        monitor = CageMonitor()
        with pytest.raises(RuntimeError):
            monitor.engine.apply_mode(0, Mode.AUTO)
        cage = monitor.bank.get(0)
        assert cage.mode is Mode.OFF
        assert cage.stirring is False
        assert not monitor.scheduler.is_armed(0)

    def test_other_modes_need_no_loop(self):
        monitor = CageMonitor()
        assert monitor.engine.apply_mode(0, Mode.MANUAL).mode is Mode.MANUAL
        assert monitor.engine.set_auto_settings(0, stir_every_min=3).auto.stir_every_min == 3

    def test_auto_settings_refused_in_auto(self, engine, bank, scheduler):
        engine.apply_mode(0, Mode.AUTO)
        before = bank.get(0)
        scheduler._loop = None
        with pytest.raises(RuntimeError):
            engine.set_auto_settings(0, stir_every_min=3)
        assert bank.get(0) is before
