# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""prompt_toolkit components for the cage monitor console.

Highlighting and completion both read the command tree from
commands.base, so new commands need no changes here.
"""

import re
from pathlib import Path
from typing import Callable, Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.auto_suggest import AutoSuggestFromHistory
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.formatted_text import FormattedText
from prompt_toolkit.history import FileHistory, History, InMemoryHistory
from prompt_toolkit.lexers import Lexer
from prompt_toolkit.styles import Style

from ..const import CAGE_COUNT
from .commands import CommandInfo, resolve
from .commands.base import HELP_WORDS, unique_commands

HISTORY_FILE = Path.home() / ".cagemonitor_history"

PROMPT_TEXT = "cages> "

CONSOLE_STYLE = Style.from_dict(
    {
        "command": "#00aa00 bold",
        "subcommand": "#0088ff",
        "cage": "#00aaaa",
        "number": "#aa00aa",
        "word": "#ff8800",
        "error": "#ff0000",
        # White while any stir schedule runs, gray when idle
        "prompt.active": "#ffffff bold",
        "prompt.idle": "#888888",
    }
)

_CAGE_RE = re.compile(r"^[cC](\d+)$")
_NUMBER_RE = re.compile(r"^-?[\d.:]+$")


def is_cage_ref(word: str) -> bool:
    """Whether a word is a cage name (C1..C48)."""
    match = _CAGE_RE.match(word)
    return bool(match) and 1 <= int(match.group(1)) <= CAGE_COUNT


def _arg_style(info: CommandInfo, index: int, word: str) -> str:
    """Style for the argument at a position, judged by its declared kind."""
    if index >= len(info.args):
        return "class:error"
    kind = info.args[index].kind
    if kind == "cage":
        return "class:cage" if is_cage_ref(word) or word.isdigit() else "class:error"
    if kind in ("int", "float", "clock"):
        return "class:number" if _NUMBER_RE.match(word) else "class:error"
    if kind in ("choice", "on_off"):
        return "class:word"
    return ""


class ConsoleLexer(Lexer):
    """Syntax highlighter for console commands."""

    def lex_document(self, document):
        def get_line_tokens(line_number):
            line = document.lines[line_number]
            words = line.split()
            info, depth = resolve(words)

            tokens = []
            pos = 0
            for i, word in enumerate(words):
                start = line.find(word, pos)
                if start > pos:
                    tokens.append(("", line[pos:start]))
                if info is None:
                    style = "class:error" if i == 0 else ""
                elif i == 0:
                    style = "class:command"
                elif i < depth:
                    style = "class:subcommand"
                elif word.lower() in HELP_WORDS:
                    style = "class:subcommand"
                else:
                    style = _arg_style(info, i - depth, word)
                tokens.append((style, word))
                pos = start + len(word)
            if pos < len(line):
                tokens.append(("", line[pos:]))
            return tokens

        return get_line_tokens


class ConsoleCompleter(Completer):
    """Tab completion for commands, subcommands and typed arguments."""

    @staticmethod
    def _top_level() -> list[tuple[str, str]]:
        result = []
        for info in unique_commands():
            result.append((info.name, info.description))
            result.extend((alias, f"Alias for {info.name}") for alias in info.aliases)
        return sorted(result)

    @staticmethod
    def _after(info: CommandInfo, arg_index: int) -> list[tuple[str, str]]:
        result = []
        if arg_index == 0:
            result.extend((sub.name, sub.description) for sub in info.subcommands())
            result.append(("help", "Show help for this command"))
        if arg_index < len(info.args):
            result.extend(info.args[arg_index].suggestions())
        return result

    def get_completions(self, document, complete_event):
        text = document.text_before_cursor
        words = text.split()
        if text and not text[-1].isspace():
            partial = words.pop()
        else:
            partial = ""

        if not words:
            candidates = self._top_level()
        else:
            info, depth = resolve(words)
            if info is None:
                return
            candidates = self._after(info, len(words) - depth)

        for word, meta in candidates:
            if word.lower().startswith(partial.lower()):
                yield Completion(word, start_position=-len(partial), display_meta=meta)


def make_history(history_file: Optional[str]) -> History:
    """File history at the given path, or in-memory for None/"none"."""
    if not history_file or history_file.lower() == "none":
        return InMemoryHistory()
    return FileHistory(str(Path(history_file).expanduser()))


class InteractiveSession:
    """Prompt session with completion, highlighting and history.

    Usage:
        session = InteractiveSession(
            history_file="~/.cagemonitor_history",
            is_active=lambda: bool(monitor.scheduler.armed_ids()),
        )
        async for line in session.lines(stop_check=stop_event.is_set):
            result = await handler.execute(line)
    """

    def __init__(
        self,
        history_file: Optional[str] = None,
        is_active: Optional[Callable[[], bool]] = None,
        prompt_text: str = PROMPT_TEXT,
    ):
        self._is_active = is_active
        self._prompt_text = prompt_text
        self._session = PromptSession(
            history=make_history(history_file),
            completer=ConsoleCompleter(),
            complete_while_typing=False,
            lexer=ConsoleLexer(),
            style=CONSOLE_STYLE,
            auto_suggest=AutoSuggestFromHistory(),
            enable_history_search=True,
        )

    def _prompt(self) -> FormattedText:
        active = self._is_active is not None and self._is_active()
        style = "class:prompt.active" if active else "class:prompt.idle"
        return FormattedText([(style, self._prompt_text)])

    async def read_line(self) -> Optional[str]:
        """Read one stripped line; None on EOF, "" on Ctrl-C."""
        try:
            return (await self._session.prompt_async(self._prompt)).strip()
        except EOFError:
            return None
        except KeyboardInterrupt:
            return ""

    async def lines(self, stop_check: Optional[Callable[[], bool]] = None):
        """Yield non-empty input lines until EOF or stop_check() is true."""
        while not (stop_check and stop_check()):
            line = await self.read_line()
            if line is None:
                return
            if line:
                yield line
