# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Tests for cage records and the cage bank (cage.py)."""
from __future__ import annotations

import logging
from dataclasses import FrozenInstanceError, replace

import pytest

from cagemonitor import (
    AutoSettings,
    Bowl,
    Cage,
    CageBank,
    CageMonitorError,
    GroupAction,
    InvalidModeError,
    InvalidSettingsError,
    InvalidValueError,
    InvariantError,
    Level,
    Mode,
    UnknownCageError,
)
from cagemonitor.cage import check_invariants, parse_clock_time
from cagemonitor.const import CAGE_COUNT


# ============================================================================
# Enumerations
# ============================================================================

class TestEnums:
    """Tests for enum parsing."""

    def test_mode_from_string_case_insensitive(self):
        assert Mode.from_string("auto") is Mode.AUTO
        assert Mode.from_string(" Manual ") is Mode.MANUAL

    def test_mode_from_member(self):
        assert Mode.from_string(Mode.SEMI) is Mode.SEMI

    def test_invalid_mode(self):
        with pytest.raises(InvalidModeError, match="Choose from"):
            Mode.from_string("TURBO")

    def test_invalid_mode_is_value_error(self):
        """Callers can catch invalid input as plain ValueError."""
        with pytest.raises(ValueError):
            Mode.from_string(3)

    def test_other_enums(self):
        assert Bowl.from_string("out") is Bowl.OUT
        assert Level.from_string("LOW") is Level.LOW
        assert GroupAction.from_string("valve") is GroupAction.VALVE
        with pytest.raises(InvalidValueError):
            Level.from_string("EMPTY")


# ============================================================================
# AutoSettings
# ============================================================================

class TestAutoSettings:
    """Tests for AutoSettings validation and merging."""

    def test_defaults(self):
        s = AutoSettings()
        assert s.stir_every_min == 15
        assert s.stir_duration_sec == 10
        assert s.auto_exit_enabled is False
        assert s.auto_exit_time == "06:00"
        assert s.stir_interval_sec == 900
        assert s.periodic_enabled

    def test_zero_disables_periodic(self):
        assert not AutoSettings(stir_every_min=0).periodic_enabled
        assert not AutoSettings(stir_duration_sec=0).periodic_enabled

    def test_negative_rejected(self):
        with pytest.raises(InvalidSettingsError, match="negative"):
            AutoSettings(stir_every_min=-1)

    def test_non_number_rejected(self):
        with pytest.raises(InvalidSettingsError):
            AutoSettings(stir_duration_sec="10")
        with pytest.raises(InvalidSettingsError):
            AutoSettings(stir_every_min=True)

    def test_exit_flag_must_be_bool(self):
        with pytest.raises(InvalidSettingsError):
            AutoSettings(auto_exit_enabled="yes")

    def test_exit_time_normalised(self):
        assert AutoSettings(auto_exit_time="6:05").auto_exit_time == "06:05"

    @pytest.mark.parametrize("value", ["24:00", "12:60", "noon", "1200", ""])
    def test_bad_exit_time(self, value):
        with pytest.raises(InvalidSettingsError):
            AutoSettings(auto_exit_time=value)

    def test_merged_replaces_only_given_fields(self):
        s = AutoSettings().merged(stir_every_min=5)
        assert s.stir_every_min == 5
        assert s.stir_duration_sec == 10

    def test_merged_unknown_key(self):
        with pytest.raises(InvalidSettingsError, match="bogus"):
            AutoSettings().merged(bogus=1)

    def test_frozen(self):
        s = AutoSettings()
        with pytest.raises(FrozenInstanceError):
            s.stir_every_min = 1

    def test_dict_round_trip(self):
        s = AutoSettings(stir_every_min=2.5, auto_exit_enabled=True, auto_exit_time="22:15")
        assert AutoSettings.from_dict(s.to_dict()) == s

    def test_parse_clock_time(self):
        assert parse_clock_time("07:30") == (7, 30)


# ============================================================================
# Cage
# ============================================================================

class TestCage:
    """Tests for Cage creation and invariants."""

    def test_create_identity(self):
        cage = Cage.create(13)
        assert cage.id == 13
        assert cage.station == 3
        assert cage.cage_number == 2
        assert cage.name == "C14"

    def test_create_defaults(self):
        cage = Cage.create(0)
        assert cage.mode is Mode.OFF
        assert cage.bowl is Bowl.IN
        assert cage.stirring is False
        assert cage.valve_open is False
        assert cage.level is Level.OK
        assert cage.selected is False
        assert cage.auto == AutoSettings()

    @pytest.mark.parametrize("cage_id", [-1, CAGE_COUNT])
    def test_create_out_of_range(self, cage_id):
        with pytest.raises(UnknownCageError):
            Cage.create(cage_id)

    def test_describe(self):
        assert Cage.create(0).describe() == "C1: OFF · Bowl IN · Stir OFF · Valve OFF · Level OK"

    def test_to_dict(self):
        data = Cage.create(47).to_dict()
        assert data["name"] == "C48"
        assert data["station"] == 8
        assert data["mode"] == "OFF"
        assert data["auto"]["stir_every_min"] == 15

    def test_invariant_bowl_out_valve_open(self):
        cage = replace(Cage.create(0), mode=Mode.MANUAL, bowl=Bowl.OUT, valve_open=True)
        with pytest.raises(InvariantError):
            check_invariants(cage)

    @pytest.mark.parametrize("mode", [Mode.OFF, Mode.SEMI])
    def test_invariant_idle_modes(self, mode):
        with pytest.raises(InvariantError):
            check_invariants(replace(Cage.create(0), mode=mode, stirring=True))

    def test_invariant_auto_valve_tracks_level(self):
        cage = replace(Cage.create(0), mode=Mode.AUTO, level=Level.LOW, valve_open=False)
        with pytest.raises(InvariantError):
            check_invariants(cage)
        check_invariants(replace(cage, valve_open=True))

    def test_manual_allows_any_safe_combination(self):
        check_invariants(replace(Cage.create(0), mode=Mode.MANUAL, bowl=Bowl.OUT, stirring=True))


# ============================================================================
# CageBank
# ============================================================================

class TestCageBank:
    """Tests for CageBank lookups and updates."""

    def test_48_cages(self):
        bank = CageBank()
        assert len(bank) == 48
        assert [c.id for c in bank] == list(range(48))
        assert bank.ids == list(range(48))

    def test_auto_defaults(self):
        bank = CageBank(auto_defaults=AutoSettings(stir_every_min=3))
        assert all(c.auto.stir_every_min == 3 for c in bank)

    def test_get_unknown(self):
        bank = CageBank()
        with pytest.raises(UnknownCageError, match="99"):
            bank.get(99)
        with pytest.raises(UnknownCageError):
            bank.get("C1")

    def test_unknown_cage_is_key_error(self):
        with pytest.raises(KeyError):
            CageBank().get(-1)

    def test_contains(self):
        bank = CageBank()
        assert 0 in bank
        assert 48 not in bank

    def test_by_station(self):
        bank = CageBank()
        assert [c.name for c in bank.by_station(2)] == ["C7", "C8", "C9", "C10", "C11", "C12"]
        with pytest.raises(InvalidValueError):
            bank.by_station(9)

    def test_update_commits(self):
        bank = CageBank()
        new = bank.update(4, lambda c: replace(c, selected=True))
        assert new.selected
        assert bank.get(4) is new
        assert bank.selected() == [new]

    def test_snapshot_is_stable(self):
        """A snapshot taken before an update does not change."""
        bank = CageBank()
        before = bank.snapshot()
        bank.update(0, lambda c: replace(c, selected=True))
        assert before[0].selected is False
        assert bank.snapshot()[0].selected is True

    def test_update_rejects_invariant_break(self):
        bank = CageBank()
        original = bank.get(0)
        with pytest.raises(InvariantError):
            bank.update(0, lambda c: replace(c, stirring=True))
        assert bank.get(0) is original

    def test_update_rejects_identity_change(self):
        bank = CageBank()
        with pytest.raises(InvariantError, match="identity"):
            bank.update(0, lambda c: replace(c, name="X"))
        assert bank.get(0).name == "C1"

    def test_update_rejects_non_cage(self):
        with pytest.raises(InvariantError):
            CageBank().update(0, lambda c: None)

    def test_update_many_dedupes_and_skips_unknown(self):
        bank = CageBank()
        calls = []

        def transform(c):
            calls.append(c.id)
            return replace(c, selected=True)

        results = bank.update_many([1, 2, 2, 99, 1], transform)
        assert [c.id for c in results] == [1, 2]
        assert calls == [1, 2]

    def test_errors_share_base(self):
        for cls in (UnknownCageError, InvalidModeError, InvalidSettingsError, InvariantError):
            assert issubclass(cls, CageMonitorError)


class TestListeners:
    """Tests for change notifications."""

    def test_listener_called_on_change(self):
        bank = CageBank()
        seen = []
        bank.add_listener(lambda old, new: seen.append((old.selected, new.selected)))
        bank.update(0, lambda c: replace(c, selected=True))
        assert seen == [(False, True)]

    def test_listener_not_called_without_change(self):
        bank = CageBank()
        seen = []
        bank.add_listener(lambda old, new: seen.append(new))
        bank.update(0, lambda c: c)
        assert seen == []

    def test_remove_listener(self):
        bank = CageBank()
        seen = []
        listener = lambda old, new: seen.append(new)  # noqa: E731
        bank.add_listener(listener)
        bank.remove_listener(listener)
        bank.update(0, lambda c: replace(c, selected=True))
        assert seen == []

    def test_failing_listener_is_logged(self, caplog):
        bank = CageBank()

        def broken(old, new):
            raise RuntimeError("boom")

        bank.add_listener(broken)
        with caplog.at_level(logging.ERROR):
            bank.update(0, lambda c: replace(c, selected=True))
        assert bank.get(0).selected
        assert "listener failed" in caplog.text
