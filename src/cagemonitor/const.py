# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Constants for the cage monitor."""

# Bank layout
STATION_COUNT = 8
CAGES_PER_STATION = 6
CAGE_COUNT = STATION_COUNT * CAGES_PER_STATION

# Control modes
MODE_OFF = "OFF"
MODE_MANUAL = "MANUAL"
MODE_SEMI = "SEMI"  # Actuation owned by the external API
MODE_AUTO = "AUTO"

# Bowl positions
BOWL_IN = "IN"
BOWL_OUT = "OUT"

# Feed level sensor readings
LEVEL_OK = "OK"
LEVEL_LOW = "LOW"

# Group manual actions
ACTION_BOWL = "BOWL"
ACTION_STIR = "STIR"
ACTION_VALVE = "VALVE"

# Cage record fields (used by status output and script assertions)
FIELD_ID = "id"
FIELD_STATION = "station"
FIELD_CAGE_NUMBER = "cage_number"
FIELD_NAME = "name"
FIELD_MODE = "mode"
FIELD_BOWL = "bowl"
FIELD_STIRRING = "stirring"
FIELD_VALVE_OPEN = "valve_open"
FIELD_LEVEL = "level"
FIELD_SELECTED = "selected"
FIELD_AUTO = "auto"

# Auto settings fields
FIELD_STIR_EVERY_MIN = "stir_every_min"
FIELD_STIR_DURATION_SEC = "stir_duration_sec"
FIELD_AUTO_EXIT_ENABLED = "auto_exit_enabled"
FIELD_AUTO_EXIT_TIME = "auto_exit_time"

# Auto settings defaults
DEFAULT_STIR_EVERY_MIN = 15
DEFAULT_STIR_DURATION_SEC = 10
DEFAULT_AUTO_EXIT_ENABLED = False
DEFAULT_AUTO_EXIT_TIME = "06:00"

# Stir pulse fired on entering AUTO, independent of stir_duration_sec
INITIAL_PULSE_SEC = 30.0
