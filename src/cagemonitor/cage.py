# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Cage records and the in-memory cage bank.

A Cage is an immutable snapshot. All changes go through CageBank.update(),
which applies a pure transform, checks the cage invariants and swaps the new
record in as a single assignment, so a reader never sees a half-applied
change.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Callable, Iterable, Iterator, Optional

from .const import (
    ACTION_BOWL,
    ACTION_STIR,
    ACTION_VALVE,
    BOWL_IN,
    BOWL_OUT,
    CAGE_COUNT,
    CAGES_PER_STATION,
    DEFAULT_AUTO_EXIT_ENABLED,
    DEFAULT_AUTO_EXIT_TIME,
    DEFAULT_STIR_DURATION_SEC,
    DEFAULT_STIR_EVERY_MIN,
    FIELD_AUTO,
    FIELD_BOWL,
    FIELD_CAGE_NUMBER,
    FIELD_ID,
    FIELD_LEVEL,
    FIELD_MODE,
    FIELD_NAME,
    FIELD_SELECTED,
    FIELD_STATION,
    FIELD_STIRRING,
    FIELD_VALVE_OPEN,
    LEVEL_LOW,
    LEVEL_OK,
    MODE_AUTO,
    MODE_MANUAL,
    MODE_OFF,
    MODE_SEMI,
    STATION_COUNT,
)

logger = logging.getLogger(__name__)


# ============================================================================
# Errors
# ============================================================================

class CageMonitorError(Exception):
    """Base class for cage monitor errors."""


class UnknownCageError(CageMonitorError, KeyError):
    """Raised for a cage id outside the bank."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the message readable
        return str(self.args[0]) if self.args else ""


class InvalidValueError(CageMonitorError, ValueError):
    """Raised for a value outside one of the enumerations."""


class InvalidModeError(InvalidValueError):
    """Raised for an unknown control mode."""


class InvalidSettingsError(InvalidValueError):
    """Raised for malformed auto settings."""


class InvariantError(CageMonitorError):
    """Raised when a transform produces a cage that breaks an invariant.

    This is a programming error, not a runtime condition to recover from.
    """


# ============================================================================
# Enumerations
# ============================================================================

def _parse_enum(enum_cls, value, error_cls=InvalidValueError):
    """Convert a member or a case-insensitive name to an enum member."""
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        wanted = value.strip().upper()
        for member in enum_cls:
            if member.value == wanted:
                return member
    choices = ", ".join(m.value for m in enum_cls)
    raise error_cls(f"Invalid {enum_cls.__name__.lower()} {value!r}. Choose from: {choices}")


class Mode(Enum):
    """Cage control modes."""

    OFF = MODE_OFF
    MANUAL = MODE_MANUAL
    SEMI = MODE_SEMI
    AUTO = MODE_AUTO

    @classmethod
    def from_string(cls, value) -> "Mode":
        """Convert a string mode to enum."""
        return _parse_enum(cls, value, InvalidModeError)


class Bowl(Enum):
    """Feed bowl positions."""

    IN = BOWL_IN
    OUT = BOWL_OUT

    @classmethod
    def from_string(cls, value) -> "Bowl":
        """Convert a string bowl position to enum."""
        return _parse_enum(cls, value)


class Level(Enum):
    """Feed level sensor readings."""

    OK = LEVEL_OK
    LOW = LEVEL_LOW

    @classmethod
    def from_string(cls, value) -> "Level":
        """Convert a string level reading to enum."""
        return _parse_enum(cls, value)


class GroupAction(Enum):
    """Manual toggles that can be applied to a group of cages."""

    BOWL = ACTION_BOWL
    STIR = ACTION_STIR
    VALVE = ACTION_VALVE

    @classmethod
    def from_string(cls, value) -> "GroupAction":
        """Convert a string action to enum."""
        return _parse_enum(cls, value)


# ============================================================================
# Auto settings
# ============================================================================

def parse_clock_time(value: str) -> tuple[int, int]:
    """Parse a 24-hour "HH:MM" string into (hour, minute)."""
    parts = value.strip().split(":") if isinstance(value, str) else []
    if len(parts) != 2 or not all(p.isdigit() for p in parts):
        raise InvalidSettingsError(f"Invalid time: {value!r} (expected HH:MM)")
    hour, minute = int(parts[0]), int(parts[1])
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise InvalidSettingsError(f"Invalid time: {value!r}")
    return hour, minute


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass(frozen=True)
class AutoSettings:
    """Automatic-mode settings owned by one cage.

    Frozen, so a copy handed to a caller can never alias the cage's own
    settings. Use merged() to derive a patched copy.
    """

    # Minutes between periodic stir pulses (0 disables periodic stirring)
    stir_every_min: float = DEFAULT_STIR_EVERY_MIN
    # Length of each periodic stir pulse in seconds (0 disables it)
    stir_duration_sec: float = DEFAULT_STIR_DURATION_SEC
    auto_exit_enabled: bool = DEFAULT_AUTO_EXIT_ENABLED
    # "HH:MM", 24-hour clock
    auto_exit_time: str = DEFAULT_AUTO_EXIT_TIME

    def __post_init__(self):
        for name in ("stir_every_min", "stir_duration_sec"):
            value = getattr(self, name)
            if not _is_number(value):
                raise InvalidSettingsError(f"{name} must be a number, got {value!r}")
            if value < 0:
                raise InvalidSettingsError(f"{name} must not be negative, got {value}")
        if not isinstance(self.auto_exit_enabled, bool):
            raise InvalidSettingsError(
                f"auto_exit_enabled must be a bool, got {self.auto_exit_enabled!r}"
            )
        hour, minute = parse_clock_time(self.auto_exit_time)
        # Normalise "6:00" to "06:00"
        object.__setattr__(self, "auto_exit_time", f"{hour:02d}:{minute:02d}")

    @property
    def stir_interval_sec(self) -> float:
        """Seconds between periodic pulses."""
        return self.stir_every_min * 60

    @property
    def periodic_enabled(self) -> bool:
        """Whether this configuration produces periodic pulses."""
        return self.stir_every_min > 0 and self.stir_duration_sec > 0

    def merged(self, **patch) -> "AutoSettings":
        """Return a copy with the given fields replaced."""
        known = {f.name for f in fields(self)}
        unknown = sorted(set(patch) - known)
        if unknown:
            raise InvalidSettingsError(f"Unknown auto setting(s): {', '.join(unknown)}")
        return replace(self, **patch)

    def to_dict(self) -> dict:
        """Convert to a plain dict."""
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: dict) -> "AutoSettings":
        """Create from a plain dict, using defaults for missing fields."""
        return cls().merged(**data)


# ============================================================================
# Cage
# ============================================================================

@dataclass(frozen=True)
class Cage:
    """Snapshot of one feeding cage."""

    # Identity, fixed for the life of the bank
    id: int
    station: int
    cage_number: int
    name: str

    # Control state
    mode: Mode = Mode.OFF
    bowl: Bowl = Bowl.IN
    stirring: bool = False
    valve_open: bool = False
    level: Level = Level.OK

    # UI-only selection flag used by group commands
    selected: bool = False

    auto: AutoSettings = field(default_factory=AutoSettings)

    @classmethod
    def create(cls, cage_id: int, auto: Optional[AutoSettings] = None) -> "Cage":
        """Create a cage in its default state with identity derived from the id."""
        if not 0 <= cage_id < CAGE_COUNT:
            raise UnknownCageError(f"Cage id {cage_id} out of range 0..{CAGE_COUNT - 1}")
        return cls(
            id=cage_id,
            station=cage_id // CAGES_PER_STATION + 1,
            cage_number=cage_id % CAGES_PER_STATION + 1,
            name=f"C{cage_id + 1}",
            auto=auto or AutoSettings(),
        )

    @property
    def identity(self) -> tuple[int, int, int, str]:
        return (self.id, self.station, self.cage_number, self.name)

    def to_dict(self) -> dict:
        """Convert to a plain dict with enum values as strings."""
        return {
            FIELD_ID: self.id,
            FIELD_STATION: self.station,
            FIELD_CAGE_NUMBER: self.cage_number,
            FIELD_NAME: self.name,
            FIELD_MODE: self.mode.value,
            FIELD_BOWL: self.bowl.value,
            FIELD_STIRRING: self.stirring,
            FIELD_VALVE_OPEN: self.valve_open,
            FIELD_LEVEL: self.level.value,
            FIELD_SELECTED: self.selected,
            FIELD_AUTO: self.auto.to_dict(),
        }

    def describe(self) -> str:
        """One-line summary used by the console."""
        return (
            f"{self.name}: {self.mode.value} · Bowl {self.bowl.value} · "
            f"Stir {'ON' if self.stirring else 'OFF'} · "
            f"Valve {'ON' if self.valve_open else 'OFF'} · Level {self.level.value}"
        )


def check_invariants(cage: Cage) -> None:
    """Raise InvariantError if the cage is in a forbidden combination."""
    if cage.bowl is Bowl.OUT and cage.valve_open:
        raise InvariantError(f"{cage.name}: valve open while bowl is OUT")

    if cage.mode in (Mode.OFF, Mode.SEMI):
        if cage.bowl is not Bowl.IN or cage.stirring or cage.valve_open:
            raise InvariantError(
                f"{cage.name}: {cage.mode.value} requires bowl IN, stirring off, valve closed"
            )
    elif cage.mode is Mode.AUTO:
        if cage.bowl is not Bowl.IN:
            raise InvariantError(f"{cage.name}: AUTO requires bowl IN")
        if cage.valve_open != (cage.level is Level.LOW):
            raise InvariantError(f"{cage.name}: AUTO valve must track level")


# ============================================================================
# Cage bank
# ============================================================================

CageTransform = Callable[[Cage], Cage]
CageListener = Callable[[Cage, Cage], None]


class CageBank:
    """The 48 cage records for a session.

    Cages are created once and never destroyed; only their mutable fields
    change, through update() and update_many().
    """

    def __init__(self, auto_defaults: Optional[AutoSettings] = None):
        defaults = auto_defaults or AutoSettings()
        self._cages: dict[int, Cage] = {
            cage_id: Cage.create(cage_id, defaults) for cage_id in range(CAGE_COUNT)
        }
        self._listeners: list[CageListener] = []

    def __len__(self) -> int:
        return len(self._cages)

    def __iter__(self) -> Iterator[Cage]:
        return iter(self.snapshot())

    def __contains__(self, cage_id) -> bool:
        return cage_id in self._cages

    @property
    def ids(self) -> list[int]:
        return sorted(self._cages)

    def get(self, cage_id: int) -> Cage:
        """Get the current snapshot of a cage."""
        try:
            return self._cages[cage_id]
        except (KeyError, TypeError):
            raise UnknownCageError(f"Unknown cage id: {cage_id!r}") from None

    def snapshot(self) -> tuple[Cage, ...]:
        """Get all cages, ordered by id."""
        return tuple(self._cages[cage_id] for cage_id in sorted(self._cages))

    def by_station(self, station: int) -> list[Cage]:
        """Get the cages of one station, ordered by id."""
        if not isinstance(station, int) or not 1 <= station <= STATION_COUNT:
            raise InvalidValueError(f"Station must be 1..{STATION_COUNT}, got {station!r}")
        return [c for c in self.snapshot() if c.station == station]

    def selected(self) -> list[Cage]:
        """Get the currently selected cages, ordered by id."""
        return [c for c in self.snapshot() if c.selected]

    def update(self, cage_id: int, transform: CageTransform) -> Cage:
        """Apply a pure transform to one cage and commit the result.

        Returns:
            The committed cage.

        Raises:
            UnknownCageError: cage_id is not in the bank.
            InvariantError: the transform changed identity fields or broke
                a cage invariant. Nothing is committed in that case.
        """
        old = self.get(cage_id)
        new = transform(old)
        if not isinstance(new, Cage):
            raise InvariantError(f"Transform for {old.name} returned {type(new).__name__}")
        if new.identity != old.identity:
            raise InvariantError(f"Transform for {old.name} changed identity fields")
        check_invariants(new)

        self._cages[cage_id] = new
        if new != old:
            self._notify(old, new)
        return new

    def update_many(self, cage_ids: Iterable[int], transform: CageTransform) -> list[Cage]:
        """Apply the same transform independently to each id.

        Ids not in the bank are skipped and duplicate ids are applied once.
        """
        results = []
        for cage_id in dict.fromkeys(cage_ids):
            if cage_id not in self._cages:
                logger.debug(f"update_many: skipping unknown cage id {cage_id!r}")
                continue
            results.append(self.update(cage_id, transform))
        return results

    def add_listener(self, listener: CageListener) -> None:
        """Register a callback invoked with (old, new) after each change."""
        self._listeners.append(listener)

    def remove_listener(self, listener: CageListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, old: Cage, new: Cage) -> None:
        for listener in list(self._listeners):
            try:
                listener(old, new)
            except Exception:
                logger.exception(f"Cage listener failed for {new.name}")
