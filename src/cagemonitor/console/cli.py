# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""CLI for the cage monitor.

Runs either an interactive prompt for operating the 48 cages, or a list of
scripts followed by an exit code that reports whether they all passed.
"""

import argparse
import asyncio
import logging
import os
import sys
from typing import Optional

from prompt_toolkit.patch_stdout import patch_stdout

from ..cage import AutoSettings, Cage, InvalidSettingsError
from ..const import DEFAULT_STIR_DURATION_SEC, DEFAULT_STIR_EVERY_MIN, INITIAL_PULSE_SEC
from ..monitor import CageMonitor
from ..scheduler import StirTimingConfig
from .commands import CommandHandler
from .prompt_common import HISTORY_FILE, InteractiveSession
from .scripting import ScriptError, ScriptRunner, list_builtin_scripts

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


def log_cage_change(old: Cage, new: Cage) -> None:
    """Bank listener that logs what changed on a cage."""
    changes = []
    if old.mode is not new.mode:
        changes.append(f"mode {old.mode.value} -> {new.mode.value}")
    if old.bowl is not new.bowl:
        changes.append(f"bowl {new.bowl.value}")
    if old.stirring != new.stirring:
        changes.append(f"stir {'ON' if new.stirring else 'OFF'}")
    if old.valve_open != new.valve_open:
        changes.append(f"valve {'ON' if new.valve_open else 'OFF'}")
    if old.level is not new.level:
        changes.append(f"level {new.level.value}")
    if old.auto != new.auto:
        changes.append("auto settings updated")

    if changes:
        logger.info(f"{new.name}: {', '.join(changes)}")
    elif old.selected != new.selected:
        logger.debug(f"{new.name}: {'selected' if new.selected else 'deselected'}")


def _stdin_is_usable() -> bool:
    try:
        os.fstat(sys.stdin.fileno())
        return True
    except (OSError, ValueError, AttributeError):
        return False


def _log_to_stderr() -> None:
    """Route root logging through one stderr handler (kept above the prompt)."""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        if isinstance(handler, logging.StreamHandler):
            root_logger.removeHandler(handler)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(handler)


class Console:
    """One console session: a monitor, its command handler and the tasks
    that feed it (scripts, the prompt, a run-time limit)."""

    def __init__(
        self,
        timing: Optional[StirTimingConfig] = None,
        auto_defaults: Optional[AutoSettings] = None,
    ):
        self.monitor = CageMonitor(timing=timing, auto_defaults=auto_defaults)
        self.monitor.bank.add_listener(log_cage_change)
        self.stop_event = asyncio.Event()
        self.runner = ScriptRunner(self.monitor)
        self.handler = CommandHandler(
            self.monitor, script_runner=self.runner, stop_callback=self.stop_event.set
        )
        self.runner.handler = self.handler
        self.script_result: Optional[bool] = None

    async def run_scripts(self, script_refs: list[str]) -> None:
        """Run scripts in order, then stop the console."""
        passed = True
        try:
            for ref in script_refs:
                try:
                    script = self.handler.load_script(ref)
                except ScriptError as e:
                    print(f"Error loading script '{ref}': {e}")
                    passed = False
                    continue
                print(f"\n>>> Running script: {script.name}")
                ok = await self.runner.run(script)
                print(f">>> Script {'PASSED' if ok else 'FAILED'}: {script.name}")
                passed = passed and ok
        finally:
            self.script_result = passed
            print(f"\n>>> All scripts {'PASSED' if passed else 'FAILED'}")
            self.stop_event.set()

    async def read_commands(self, history_file: Optional[str]) -> None:
        """Execute prompt input until EOF or shutdown."""
        session = InteractiveSession(
            history_file=history_file,
            is_active=lambda: bool(self.monitor.scheduler.armed_ids()),
        )
        try:
            async for line in session.lines(stop_check=self.stop_event.is_set):
                result = await self.handler.execute(line)
                if result.message:
                    print(f">>> {result.message}")
        finally:
            self.stop_event.set()

    async def stop_after(self, seconds: float) -> None:
        await asyncio.sleep(seconds)
        logger.info(f"Run time ({seconds}s) elapsed, shutting down")
        self.stop_event.set()

    async def run(
        self,
        scripts: Optional[list[str]] = None,
        run_for: Optional[float] = None,
        history_file: Optional[str] = None,
    ) -> Optional[bool]:
        """Run until the scripts finish, the operator quits or time runs out.

        Returns:
            True if all scripts passed, False if any failed, None without scripts.
        """
        print(f"Cage monitor started: {len(self.monitor.bank)} cages")
        jobs = []
        prompt_output = None

        if scripts:
            jobs.append(self.run_scripts(scripts))
        elif _stdin_is_usable():
            print(self.handler.get_help())
            print()
            prompt_output = patch_stdout()
            prompt_output.__enter__()
            _log_to_stderr()
            jobs.append(self.read_commands(history_file))
        else:
            logger.warning("stdin not available, running without a prompt")

        if run_for:
            jobs.append(self.stop_after(run_for))

        tasks = [asyncio.create_task(job) for job in jobs]
        try:
            await self.stop_event.wait()
        finally:
            self.runner.stop()
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            if prompt_output is not None:
                prompt_output.__exit__(None, None, None)
            self.monitor.stop()

        return self.script_result


async def run_console(
    scripts: Optional[list[str]] = None,
    run_for: Optional[float] = None,
    history_file: Optional[str] = None,
    timing: Optional[StirTimingConfig] = None,
    auto_defaults: Optional[AutoSettings] = None,
) -> Optional[bool]:
    """Run a console session.

    Args:
        scripts: Scripts to run (file paths or built-in names). Implies
                 non-interactive mode; the console exits when they finish.
        run_for: Maximum run time in seconds
        history_file: Path to the prompt history file, or "none"
        timing: Stir timing configuration
        auto_defaults: Auto settings every cage starts with
    """
    console = Console(timing=timing, auto_defaults=auto_defaults)
    return await console.run(scripts=scripts, run_for=run_for, history_file=history_file)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cagemonitor",
        description="Operator console for a bank of 48 feeding cages",
    )
    parser.add_argument("--debug", "-d", action="store_true", help="Log every stir pulse")

    run = parser.add_argument_group("running")
    run.add_argument(
        "--script", "-s",
        action="append",
        dest="scripts",
        metavar="SCRIPT",
        help="Run a built-in script or YAML file instead of prompting (repeatable)",
    )
    run.add_argument(
        "--list-scripts", "-l", action="store_true", help="Print the built-in scripts and exit"
    )
    run.add_argument("--run-for", "-r", type=float, metavar="SECONDS", help="Exit after SECONDS")
    run.add_argument(
        "--history",
        metavar="FILE",
        default=str(HISTORY_FILE),
        help="Prompt history file, or 'none' (default: %(default)s)",
    )

    stir = parser.add_argument_group("stirring")
    stir.add_argument(
        "--initial-pulse",
        type=float,
        default=INITIAL_PULSE_SEC,
        metavar="SECONDS",
        help="Stir time on entering AUTO (default: %(default)s)",
    )
    stir.add_argument(
        "--stir-every",
        type=float,
        default=DEFAULT_STIR_EVERY_MIN,
        metavar="MINUTES",
        help="Starting stir interval of every cage, 0 disables (default: %(default)s)",
    )
    stir.add_argument(
        "--stir-duration",
        type=float,
        default=DEFAULT_STIR_DURATION_SEC,
        metavar="SECONDS",
        help="Starting stir pulse length of every cage (default: %(default)s)",
    )
    return parser


def main():
    """CLI entry point for the cage monitor console."""
    parser = _build_parser()
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.debug else logging.INFO, format=LOG_FORMAT)

    if args.list_scripts:
        for name, desc in list_builtin_scripts():
            print(f"{name}: {desc}")
        return

    if args.initial_pulse < 0:
        parser.error("--initial-pulse must not be negative")
    try:
        auto_defaults = AutoSettings(
            stir_every_min=args.stir_every, stir_duration_sec=args.stir_duration
        )
    except InvalidSettingsError as e:
        parser.error(str(e))

    try:
        result = asyncio.run(
            run_console(
                scripts=args.scripts,
                run_for=args.run_for,
                history_file=args.history,
                timing=StirTimingConfig(initial_pulse_sec=args.initial_pulse),
                auto_defaults=auto_defaults,
            )
        )
    except KeyboardInterrupt:
        print("\nCage monitor stopped.")
        return

    # Exit code reports script results for CI
    if result is not None:
        sys.exit(0 if result else 1)


if __name__ == "__main__":
    main()
