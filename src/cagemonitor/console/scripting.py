# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Scripting support for the cage monitor console.

Scripts are YAML files (or lists of simple command strings) describing a
sequence of steps to run against a CageMonitor. Any console command can be
used as a step, alongside a few script-only actions:

    command <console command>       Run a console command (must succeed,
                                    or fail when expect_failure is set)
    wait <seconds>                  Sleep
    wait_for <cage> <field> <value> [timeout]
                                    Wait until a cage field has a value
    assert <cage> <field> <value>   Fail unless a cage field has a value
    log <message>                   Log a message

Fields are the keys of Cage.to_dict() plus "armed" (a stir schedule is
running). Auto settings are addressed as "auto.<name>".

Example YAML:

    name: "Manual interlock"
    description: "Valve cannot open while the bowl is out"
    steps:
      - mode C1 manual
      - action: command
        command: bowl C1
      - action: assert
        cage: C1
        field: valve_open
        value: off
"""

import asyncio
import logging
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional, Union

import yaml

from ..const import FIELD_AUTO
from .commands.base import parse_cage_ref

if TYPE_CHECKING:
    from ..monitor import CageMonitor
    from .commands import CommandHandler

logger = logging.getLogger(__name__)

# Pseudo-field reporting whether a stir schedule is armed for the cage
FIELD_ARMED = "armed"

_SCRIPT_ACTIONS = ("command", "wait", "wait_for", "assert", "log")

_TRUE = ("on", "true", "yes", "1")
_FALSE = ("off", "false", "no", "0")


class ScriptError(Exception):
    """Raised when a script cannot be loaded or a step cannot run."""


class AssertionFailed(ScriptError):
    """Raised when an assert step does not hold."""


@dataclass
class ScriptStep:
    """A single step in a script."""

    action: str
    params: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        if not self.params:
            return self.action
        params = " ".join(f"{k}={v}" for k, v in self.params.items())
        return f"{self.action} {params}"


@dataclass
class Script:
    """A named sequence of steps."""

    name: str
    description: str = ""
    steps: list[ScriptStep] = field(default_factory=list)

    @classmethod
    def from_yaml(cls, content: str) -> "Script":
        """Parse a script from YAML text."""
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ScriptError(f"Invalid YAML: {e}") from e

        if not isinstance(data, dict):
            raise ScriptError("Script must be a YAML dictionary")

        steps = []
        for i, raw in enumerate(data.get("steps") or [], 1):
            if isinstance(raw, str):
                steps.append(_parse_simple_command(raw))
            elif isinstance(raw, dict):
                if "action" not in raw:
                    raise ScriptError(f"Step {i} missing 'action'")
                params = {k: v for k, v in raw.items() if k != "action"}
                steps.append(ScriptStep(action=str(raw["action"]), params=params))
            else:
                raise ScriptError(f"Step {i}: invalid step format: {raw!r}")

        return cls(
            name=str(data.get("name", "Unnamed")),
            description=str(data.get("description", "")),
            steps=steps,
        )

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "Script":
        """Load a script from a YAML file."""
        path = Path(path)
        try:
            content = path.read_text()
        except OSError as e:
            raise ScriptError(f"Cannot read script {path}: {e}") from e
        return cls.from_yaml(content)

    @classmethod
    def from_simple_commands(cls, commands: list[str], name: str = "Commands") -> "Script":
        """Build a script from simple command strings.

        Lines starting with a script action are parsed as that action;
        anything else is run as a console command.
        """
        steps = [_parse_simple_command(c) for c in commands if c.strip()]
        return cls(name=name, steps=steps)


def _parse_simple_command(line: str) -> ScriptStep:
    """Parse one simple command string into a ScriptStep."""
    parts = line.split()
    action = parts[0].lower()
    args = parts[1:]

    if action == "log":
        return ScriptStep("log", {"message": " ".join(args)})
    if action == "wait":
        if len(args) != 1:
            raise ScriptError(f"Usage: wait <seconds> (got '{line}')")
        return ScriptStep("wait", {"seconds": _to_float(args[0], line)})
    if action in ("assert", "wait_for"):
        if len(args) < 3:
            raise ScriptError(f"Usage: {action} <cage> <field> <value> (got '{line}')")
        params = {"cage": args[0], "field": args[1], "value": args[2]}
        if action == "wait_for" and len(args) > 3:
            params["timeout"] = _to_float(args[3], line)
        return ScriptStep(action, params)
    if action == "command":
        return ScriptStep("command", {"command": " ".join(args)})

    # Anything else is a console command
    return ScriptStep("command", {"command": line.strip()})


def _to_float(value: str, line: str) -> float:
    try:
        return float(value)
    except ValueError:
        raise ScriptError(f"'{value}' is not a number in '{line}'")


# ============================================================================
# Built-in scripts
# ============================================================================

_SCRIPTS_PACKAGE = "cagemonitor.console.scripts"


def _builtin_script_files():
    return sorted(
        (f for f in resources.files(_SCRIPTS_PACKAGE).iterdir() if f.name.endswith(".yaml")),
        key=lambda f: f.name,
    )


def list_builtin_scripts() -> list[tuple[str, str]]:
    """List built-in scripts as (name, description) tuples."""
    result = []
    for f in _builtin_script_files():
        name = f.name[: -len(".yaml")]
        try:
            script = Script.from_yaml(f.read_text())
            result.append((name, script.description or script.name))
        except ScriptError as e:
            logger.warning(f"Skipping broken built-in script {name}: {e}")
    return result


def get_builtin_script(name: str) -> Script:
    """Load a built-in script by name."""
    for f in _builtin_script_files():
        if f.name == f"{name}.yaml":
            return Script.from_yaml(f.read_text())
    raise ScriptError(f"Unknown built-in script: {name}")


# ============================================================================
# Runner
# ============================================================================


class ScriptRunner:
    """Runs scripts against a CageMonitor."""

    def __init__(self, monitor: "CageMonitor", handler: Optional["CommandHandler"] = None):
        """Initialize the runner.

        Args:
            monitor: The monitor the script drives.
            handler: Command handler for console command steps. One is
                     created on first use when not given.
        """
        self.monitor = monitor
        self.handler = handler
        self._stop_requested = False
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def stop(self):
        """Stop the running script before its next step."""
        self._stop_requested = True

    async def run(self, script: Script, verbose: bool = True) -> bool:
        """Run a script.

        Returns:
            True if every step succeeded, False otherwise.
        """
        self._stop_requested = False
        self._running = True
        log = logger.info if verbose else logger.debug
        log(f"Script '{script.name}': {len(script.steps)} step(s)")

        try:
            for i, step in enumerate(script.steps, 1):
                if self._stop_requested:
                    logger.warning(f"Script '{script.name}' stopped at step {i}")
                    return False
                log(f"  [{i}/{len(script.steps)}] {step}")
                await self._run_step(step)
        except AssertionFailed as e:
            logger.error(f"Script '{script.name}' assertion failed: {e}")
            return False
        except ScriptError as e:
            logger.error(f"Script '{script.name}' failed: {e}")
            return False
        finally:
            self._running = False

        log(f"Script '{script.name}' passed")
        return True

    async def _run_step(self, step: ScriptStep):
        action = step.action.lower()
        if action not in _SCRIPT_ACTIONS:
            raise ScriptError(f"Unknown action: {step.action}")
        await getattr(self, f"_action_{action}")(step.params)

    def _get_handler(self) -> "CommandHandler":
        if self.handler is None:
            from .commands import CommandHandler

            self.handler = CommandHandler(self.monitor, self, stop_callback=self.stop)
        return self.handler

    # =========================================================================
    # Actions
    # =========================================================================

    async def _action_command(self, params: dict):
        cmd = str(params.get("command", "")).strip()
        if not cmd:
            raise ScriptError("command step requires 'command'")
        expect_failure = bool(params.get("expect_failure", False))
        result = await self._get_handler().execute(cmd)
        if result.success and expect_failure:
            raise AssertionFailed(f"'{cmd}' succeeded but was expected to fail")
        if not result.success and not expect_failure:
            raise ScriptError(f"'{cmd}' failed: {result.message}")
        logger.debug(f"  {result.message}")

    async def _action_wait(self, params: dict):
        seconds = params.get("seconds")
        if seconds is None:
            raise ScriptError("wait step requires 'seconds'")
        await asyncio.sleep(float(seconds))

    async def _action_wait_for(self, params: dict):
        timeout = float(params.get("timeout", 5.0))
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            ok, actual = self._check(params)
            if ok:
                return
            if loop.time() >= deadline:
                raise AssertionFailed(
                    f"{params.get('cage')} {params.get('field')} still {actual!r} "
                    f"after {timeout}s (wanted {params.get('value')!r})"
                )
            await asyncio.sleep(0.05)

    async def _action_assert(self, params: dict):
        ok, actual = self._check(params)
        if not ok:
            raise AssertionFailed(
                f"{params.get('cage')} {params.get('field')} is {actual!r}, "
                f"expected {params.get('value')!r}"
            )

    async def _action_log(self, params: dict):
        logger.info(f"Script: {params.get('message', '')}")

    # =========================================================================
    # Field checks
    # =========================================================================

    def _check(self, params: dict) -> tuple[bool, Any]:
        for key in ("cage", "field", "value"):
            if key not in params:
                raise ScriptError(f"Step requires '{key}'")
        try:
            cage_id = parse_cage_ref(str(params["cage"]))
        except ValueError as e:
            raise ScriptError(str(e)) from e

        actual = self._field_value(cage_id, str(params["field"]))
        return _values_match(actual, params["value"]), actual

    def _field_value(self, cage_id: int, name: str) -> Any:
        if name == FIELD_ARMED:
            return self.monitor.scheduler.is_armed(cage_id)

        data = self.monitor.bank.get(cage_id).to_dict()
        prefix = f"{FIELD_AUTO}."
        if name.startswith(prefix):
            data = data[FIELD_AUTO]
            name = name[len(prefix):]
        if name not in data or isinstance(data[name], dict):
            raise ScriptError(f"Unknown cage field: {name}")
        return data[name]


def _values_match(actual: Any, expected: Any) -> bool:
    """Compare a cage field with a value written in a script."""
    if isinstance(actual, bool):
        if isinstance(expected, bool):
            return actual is expected
        text = str(expected).lower()
        if text in _TRUE:
            return actual
        if text in _FALSE:
            return not actual
        raise ScriptError(f"'{expected}' is not a boolean")
    if isinstance(actual, (int, float)):
        try:
            return float(actual) == float(expected)
        except (TypeError, ValueError):
            raise ScriptError(f"'{expected}' is not a number")
    return str(actual).lower() == str(expected).lower()
