# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Command tree, argument types and decorators for the console.

Commands form a tree: top-level commands (``mode``, ``group``) may have
children (``group mode``, ``auto every``). Every node can carry typed
arguments. The tree is filled by the @command and @subcommand decorators
when the mixin classes are defined, and is walked by resolve() for
dispatch, alias expansion and tab completion alike.
"""

import functools
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional

from ...cage import InvalidSettingsError, parse_clock_time
from ...const import CAGE_COUNT

HELP_WORDS = ("help", "?")


@dataclass
class CommandResult:
    """Result of executing a command."""

    success: bool
    message: str
    data: Optional[dict] = None


class ArgError(ValueError):
    """Raised when a command argument cannot be parsed."""


def parse_cage_ref(value: str) -> int:
    """Parse a cage reference into a cage id.

    Accepts a cage name ("C12", case-insensitive) or a bare id ("11").
    """
    text = value.strip()
    by_name = text[:1] in ("c", "C")
    try:
        number = int(text[1:] if by_name else text)
    except ValueError:
        raise ValueError(f"'{value}' is not a cage (use C1..C{CAGE_COUNT} or 0..{CAGE_COUNT - 1})")
    cage_id = number - 1 if by_name else number
    if not 0 <= cage_id < CAGE_COUNT:
        raise ValueError(f"'{value}' is out of range (C1..C{CAGE_COUNT} or 0..{CAGE_COUNT - 1})")
    return cage_id


# ============================================================================
# Argument kinds
# ============================================================================

_ON = ("on", "true", "yes", "1")
_OFF = ("off", "false", "no", "0")


def _number(text: str, spec: "ArgSpec", cast, what: str):
    try:
        value = cast(text)
    except ValueError:
        raise ArgError(f"'{text}' is not {what}")
    if spec.minimum is not None and value < spec.minimum:
        raise ArgError(f"'{text}' is below minimum ({spec.minimum:g})")
    if spec.maximum is not None and value > spec.maximum:
        raise ArgError(f"'{text}' is above maximum ({spec.maximum:g})")
    return value


def _on_off(text: str, spec: "ArgSpec") -> bool:
    word = text.lower()
    if word in _ON:
        return True
    if word in _OFF:
        return False
    raise ArgError(f"'{text}' is not valid. Use on/off")


def _choice(text: str, spec: "ArgSpec") -> str:
    for choice in spec.choices:
        if choice.lower() == text.lower():
            return choice
    raise ArgError(f"'{text}' is not valid. Choose from: {', '.join(spec.choices)}")


def _cage(text: str, spec: "ArgSpec") -> int:
    try:
        return parse_cage_ref(text)
    except ValueError as e:
        raise ArgError(str(e)) from e


def _clock(text: str, spec: "ArgSpec") -> str:
    try:
        hour, minute = parse_clock_time(text)
    except InvalidSettingsError as e:
        raise ArgError(str(e)) from e
    return f"{hour:02d}:{minute:02d}"


_PARSERS: dict[str, Callable[[str, "ArgSpec"], Any]] = {
    "text": lambda text, spec: text,
    "script": lambda text, spec: text,
    "int": lambda text, spec: _number(text, spec, int, "a whole number"),
    "float": lambda text, spec: _number(text, spec, float, "a number"),
    "on_off": _on_off,
    "choice": _choice,
    "cage": _cage,
    "clock": _clock,
}


def _script_suggestions() -> list[tuple[str, str]]:
    from ..scripting import list_builtin_scripts

    return list_builtin_scripts()


@dataclass
class ArgSpec:
    """One positional argument of a command.

    Attributes:
        name: Argument name, used in usage lines and error messages
        kind: One of text, script, int, float, on_off, choice, cage, clock
        required: Whether the argument must be given
        default: Value passed when an optional argument is omitted
        choices: Accepted words for the "choice" kind
        help: One-line description
        minimum: Lower bound for int/float
        maximum: Upper bound for int/float
    """

    name: str
    kind: str
    required: bool = True
    default: Any = None
    choices: list[str] = field(default_factory=list)
    help: str = ""
    minimum: Optional[float] = None
    maximum: Optional[float] = None

    def __post_init__(self):
        if self.kind not in _PARSERS:
            raise ValueError(f"Unknown argument kind: {self.kind}")

    @property
    def placeholder(self) -> str:
        if self.kind == "choice":
            inner = "|".join(self.choices)
        elif self.kind == "on_off":
            inner = "on|off"
        elif self.kind == "clock":
            inner = "HH:MM"
        else:
            inner = self.name
        return f"<{inner}>" if self.required else f"[{inner}]"

    def parse(self, text: str) -> Any:
        """Convert one word to this argument's value. Raises ArgError."""
        return _PARSERS[self.kind](text, self)

    def suggestions(self) -> list[tuple[str, str]]:
        """Completion candidates as (word, description) pairs."""
        if self.kind == "cage":
            return [(f"C{n}", "") for n in range(1, CAGE_COUNT + 1)]
        if self.kind == "on_off":
            return [("on", "Enable"), ("off", "Disable")]
        if self.kind == "choice":
            return [(c, "") for c in self.choices]
        if self.kind == "script":
            return _script_suggestions()
        return []

    def describe(self) -> str:
        notes = [] if self.required else ["optional"]
        if self.minimum is not None:
            notes.append(f"min {self.minimum:g}")
        if self.maximum is not None:
            notes.append(f"max {self.maximum:g}")
        if not self.required and self.default is not None:
            notes.append(f"default {self.default}")
        suffix = f" ({', '.join(notes)})" if notes else ""
        return f"  {self.name}: {self.help or self.kind}{suffix}"


# ============================================================================
# Command tree
# ============================================================================

@dataclass
class CommandInfo:
    """A node of the command tree."""

    name: str
    aliases: list[str] = field(default_factory=list)
    description: str = ""
    category: str = "misc"
    args: list[ArgSpec] = field(default_factory=list)
    handler_name: str = ""
    parent: Optional["CommandInfo"] = None
    children: dict[str, "CommandInfo"] = field(default_factory=dict)

    @property
    def path(self) -> str:
        if self.parent is None:
            return self.name
        return f"{self.parent.path} {self.name}"

    @property
    def usage(self) -> str:
        if self.args:
            return " ".join(arg.placeholder for arg in self.args)
        if self.children:
            return "[" + "|".join(c.name for c in self.subcommands()) + "]"
        return ""

    def child(self, word: str) -> Optional["CommandInfo"]:
        return self.children.get(word.lower())

    def subcommands(self) -> list["CommandInfo"]:
        """Children without their alias entries, in declaration order."""
        return list({id(c): c for c in self.children.values()}.values())

    def add_child(self, info: "CommandInfo") -> None:
        info.parent = self
        for word in (info.name, *info.aliases):
            self.children[word] = info

    def parse_args(self, words: list[str]) -> list[Any]:
        """Parse the words after the command path. Raises ArgError."""
        if not self.args and words:
            raise ArgError(f"{self.path} takes no arguments")
        if len(words) > len(self.args):
            raise ArgError("Too many arguments")
        values = []
        for i, spec in enumerate(self.args):
            if i < len(words):
                values.append(spec.parse(words[i]))
            elif spec.required:
                raise ArgError(f"Missing required argument: {spec.name}")
            else:
                values.append(spec.default)
        return values

    def help_text(self) -> str:
        """Usage, description and arguments or subcommands of this node."""
        if self.children and not self.args:
            lines = [f"{self.path} subcommands:"]
            for sub in self.subcommands():
                alias_str = f" ({', '.join(sub.aliases)})" if sub.aliases else ""
                lines.append(f"  {sub.name}{alias_str} {sub.usage} - {sub.description}")
            return "\n".join(lines)

        lines = [f"{self.path} {self.usage}".rstrip(), "", self.description or "No description."]
        if self.args:
            lines += ["", "Arguments:"]
            lines += [arg.describe() for arg in self.args]
        return "\n".join(lines)


_command_registry: dict[str, CommandInfo] = {}


def get_command_registry() -> dict[str, CommandInfo]:
    """Top-level commands keyed by name and alias."""
    return _command_registry


def unique_commands() -> list[CommandInfo]:
    """Top-level commands without their alias entries."""
    return list({id(c): c for c in _command_registry.values()}.values())


def resolve(words: Iterable[str]) -> tuple[Optional[CommandInfo], int]:
    """Find the deepest command node named by the leading words.

    Returns:
        (info, depth): the node (None if the first word is no command) and
        how many words named it.
    """
    words = list(words)
    if not words:
        return None, 0
    info = _command_registry.get(words[0].lower())
    if info is None:
        return None, 0
    depth = 1
    while depth < len(words):
        child = info.child(words[depth])
        if child is None:
            break
        info = child
        depth += 1
    return info, depth


def get_canonical_command(line: str) -> Optional[str]:
    """Expand command and subcommand aliases ("g m off" -> "group mode off").

    Returns None when the line names no command or uses no alias.
    """
    words = line.split()
    info, depth = resolve(words)
    if info is None:
        return None
    canonical = " ".join([info.path, *words[depth:]])
    return canonical if canonical != " ".join(words) else None


# ============================================================================
# Decorators
# ============================================================================

def _mark(func: Callable, info: CommandInfo) -> Callable:
    info.handler_name = func.__name__

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        return func(*args, **kwargs)

    wrapper._command_info = info
    return wrapper


def command(
    name: str,
    aliases: Optional[list[str]] = None,
    description: str = "",
    category: str = "misc",
    args: Optional[list[ArgSpec]] = None,
):
    """Decorator to register a method as a top-level command.

    Args:
        name: Primary command name
        aliases: Alternative names/shortcuts
        description: Help text
        category: Category for grouping in help output
        args: Positional arguments, parsed before the method is called
    """

    def decorator(func: Callable) -> Callable:
        info = CommandInfo(
            name=name,
            aliases=aliases or [],
            description=description,
            category=category,
            args=args or [],
        )
        for word in (name, *info.aliases):
            _command_registry[word] = info
        return _mark(func, info)

    return decorator


def subcommand(
    parent: str,
    name: str,
    aliases: Optional[list[str]] = None,
    description: str = "",
    args: Optional[list[ArgSpec]] = None,
):
    """Decorator to register a method as a subcommand.

    The parent ("group", or "group auto" for deeper nesting) must already
    be registered, so declare it first in the class body.
    """

    def decorator(func: Callable) -> Callable:
        node, depth = resolve(parent.split())
        if node is None or depth != len(parent.split()):
            raise LookupError(f"Parent command '{parent}' is not registered")
        info = CommandInfo(
            name=name,
            aliases=aliases or [],
            description=description,
            category=node.category,
            args=args or [],
        )
        node.add_child(info)
        return _mark(func, info)

    return decorator
