# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Script commands."""

from pathlib import Path
from types import ModuleType
from typing import TYPE_CHECKING

from .base import ArgSpec, CommandResult, command

if TYPE_CHECKING:
    from ..scripting import Script, ScriptRunner


class ScriptsCommandsMixin:
    """Mixin providing the list and run commands."""

    script_runner: "ScriptRunner"
    scripting: ModuleType  # cagemonitor.console.scripting, bound by the handler

    def load_script(self, script_ref: str) -> "Script":
        """A YAML file when the reference names an existing file, else a built-in."""
        if Path(script_ref).is_file():
            return self.scripting.Script.from_file(script_ref)
        return self.scripting.get_builtin_script(script_ref)

    @command("list", ["scripts"], "List built-in scripts", category="scripts")
    def list_scripts(self) -> CommandResult:
        scripts = self.scripting.list_builtin_scripts()
        width = max((len(name) for name, _ in scripts), default=0)
        body = [f"  {name:<{width}}  {desc}" for name, desc in scripts]
        return CommandResult(
            True, "\n".join(["Built-in scripts:", *body]), {"scripts": [n for n, _ in scripts]}
        )

    @command(
        "run",
        ["r"],
        "Run a built-in script or a YAML file",
        category="scripts",
        args=[ArgSpec("script", "script", help="Script name or file path")],
    )
    async def run(self, script_ref: str) -> CommandResult:
        if self.script_runner.running:
            return CommandResult(False, "A script is already running")
        try:
            script = self.load_script(script_ref)
        except self.scripting.ScriptError as e:
            return CommandResult(False, f"Error: {e}")
        passed = await self.script_runner.run(script)
        verdict = "PASSED" if passed else "FAILED"
        return CommandResult(passed, f"Script {verdict}: {script.name}", {"passed": passed})
