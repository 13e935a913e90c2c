# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Control core for a bank of 48 feeding cages.

Each cage runs its own control mode (OFF, MANUAL, SEMI or AUTO). The mode
engine applies mode changes and manual toggles, the stir scheduler drives
stir pulses for cages in AUTO, and the group coordinator applies commands
to a selection of cages.

Example usage:
    from cagemonitor import CageMonitor

    async def main():
        monitor = CageMonitor()
        monitor.engine.apply_mode(0, "AUTO")
        monitor.engine.set_level(0, "LOW")
        print(monitor.bank.get(0).describe())
        monitor.stop()
"""

from .cage import (
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
from .engine import ModeEngine
from .group import GroupCoordinator
from .monitor import CageMonitor
from .scheduler import StirScheduler, StirTimingConfig

__version__ = "0.1.0"

__all__ = [
    # Facade
    "CageMonitor",
    # Components
    "CageBank",
    "ModeEngine",
    "StirScheduler",
    "GroupCoordinator",
    # Records and config
    "Cage",
    "AutoSettings",
    "StirTimingConfig",
    # Enums
    "Mode",
    "Bowl",
    "Level",
    "GroupAction",
    # Errors
    "CageMonitorError",
    "UnknownCageError",
    "InvalidValueError",
    "InvalidModeError",
    "InvalidSettingsError",
    "InvariantError",
]
