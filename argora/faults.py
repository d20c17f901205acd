"""
Argora faults: definition errors and user input errors.

Tiers
- DefinitionError and subclasses: mistakes of the command author (duplicate
  names or aliases, misplaced positionals, reserved aliases, conflicting
  intersections). Raised as plain exceptions before any user input is read.
- CommandException and subclasses: mistakes of the end user (unknown switch,
  unknown subcommand, surplus positional, invalid arguments) and failures of
  the run callback. Rendered with rich and turned into exit code 1.

Every user-facing fault carries a FaultCode, a short title, a one-sentence
message naming the position of the problem and an optional hint, e.g.

    [ tool — 11112 | Unknown Switch ]
    unknown switch '--fo' at first position
     → did you mean '--force' or '--format'?

Host hooks (looked up on __main__)
- __styles__: palette overrides shared with help rendering; only the keys of
  PALETTE are read here.
- __codes__: FaultCode -> label replacing the numeric code.
- __docs__: FaultCode -> documentation string returned by getdoc().
- __prog__: program name shown in headers.
"""
import copy
import sys
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Group
from rich.panel import Panel
from rich.text import Text

from .logger import logger
from .utils import Unset


class DefinitionError(Exception):
    """
    A command definition that cannot work; `field` names the culprit when known.
    """

    def __init__(self, message, /, field=None):
        super().__init__(message)
        self.message = message
        self.field = field


class DuplicateFieldError(DefinitionError): ...
class DuplicateAliasError(DefinitionError): ...
class PositionalConfigError(DefinitionError): ...
class ReservedAliasError(DefinitionError): ...
class ConflictingFieldError(DefinitionError): ...


class CommandDefinitionError(DefinitionError):
    """
    Every definition error of a command tree.

    `errors` holds (path, error) pairs, path being the command names from the
    root down to the command at fault.
    """

    def __init__(self, errors, /):
        self.errors = tuple(errors)
        lines = ["Command definition errors:"]
        lines.extend(f"  - [{" > ".join(path)}] {error.message}" for path, error in self.errors)
        super().__init__("\n".join(lines))


class FaultCode(IntEnum):
    """
    Stable numeric identifiers of user-facing faults, one per concern:
    routing, switches, positionals, validation, execution and completion.
    """
    UNKNOWN_SUBCOMMAND = 11102
    UNKNOWN_SWITCH = 11112
    UNEXPECTED_POSITIONAL = 11121
    INVALID_ARGUMENTS = 11131
    EXECUTION_FAILED = 11141
    UNDETECTED_SHELL = 11151

    def normalize(self):
        """
        Label shown for this code: the host's __codes__ entry, or the number.
        """
        labels = getattr(__import__("__main__"), "__codes__", {})
        return str(labels.get(self, self.value))


PALETTE = {
    "prog-name": "bold #E6E6F0",
    "code": "bold #00E5FF",
    "title": "bold #FF4DA6",
    "message": "#C8C8D0",
    "detail": "#A0A0AA",
    "hint-arrow": "#9CE19C dim",
    "hint": "italic #9CE19C",
}


class _Painter:
    """
    Style lookups of one rendering; everything is plain when colorful=False.
    """

    def __init__(self, options):
        overrides = getattr(__import__("__main__"), "__styles__", {})
        self.styles = defaultdict(str, PALETTE | {key: overrides[key] for key in PALETTE.keys() & overrides.keys()})
        self.colorful = options.get("colorful", True)

    def __call__(self, fragment, style=""):
        if not fragment:
            return Text("")
        if isinstance(fragment, Text):
            return fragment if self.colorful else Text(fragment.plain)
        return Text(str(fragment), self.styles[style] if self.colorful else "")


def _program(options):
    return getattr(__import__("__main__"), "__prog__", options.get("prog", ""))


class CommandException(Exception):
    """
    A user input error.

    Options
    - code (FaultCode) and title: the header.
    - hint: a single suggestion line.
    - details: bullet lines under the message (validation issues).
    - prog: program name of the header.
    - shell, deferred, fancy, colorful, ratio: see trigger().

    Options are frozen; copy.replace(fault, **options) returns a new fault with
    the options merged, which is how trigger() passes the rendering settings.
    """

    def __init__(self, message=Unset, /, **options):
        if not isinstance(message, str | Unset):
            raise TypeError(f"{type(self).__name__} message must be a string")
        super().__init__(message)
        self.message = message
        self.options = MappingProxyType(options)

    def __replace__(self, /, **overrides):
        return type(self)(self.message, **(dict(self.options) | overrides))

    def __str__(self):
        lines = [str(self.message)]
        lines.extend(f"  • {detail}" for detail in self.options.get("details", ()))
        return "\n".join(lines)

    def __rich__(self):
        paint = _Painter(self.options)
        header = Text.assemble(
            "[ ",
            paint(_program(self.options), "prog-name"),
            " — ",
            paint(self.options["code"].normalize(), "code"),
            " | ",
            paint(self.options["title"].title(), "title"),
            " ]",
        )
        body = [paint(self.message, "message")]
        body.extend(Text.assemble("  • ", paint(detail, "detail")) for detail in self.options.get("details", ()))
        if hint := self.options.get("hint"):
            body.append(Text.assemble(paint(" → ", "hint-arrow"), paint(hint, "hint")))

        if not self.options.get("fancy"):
            return Group(header, *body)
        width = None
        if "ratio" in self.options:
            width = int((logger.stderr.width - 4) * self.options["ratio"])
        return Panel(Group(*body), title=header, title_align="left", width=width)

    def __trigger__(self):
        if not self.options.get("shell"):
            raise self from None
        logger.error(self)
        if not self.options.get("deferred"):
            sys.exit(1)


class UnknownSwitchError(CommandException): ...
class UnknownSubcommandError(CommandException): ...
class UnexpectedPositionalError(CommandException): ...
class InvalidArgumentsError(CommandException): ...
class ExecutionError(CommandException): ...
class UndetectedShellError(CommandException): ...


class CommandExit(ExceptionGroup[CommandException]):
    """
    Several user input errors reported at once (every unknown switch of a
    command line, every surplus positional).
    """

    def __new__(cls, exceptions, **options):
        return super().__new__(cls, "bad exit", exceptions)

    def __init__(self, exceptions, **options):
        super().__init__("bad exit", tuple(exceptions))
        self.options = MappingProxyType(options)

    def __replace__(self, /, **overrides):
        return type(self)(self.exceptions, **(dict(self.options) | overrides))

    def __rich__(self):
        paint = _Painter(self.options)
        header = Text.assemble(
            "[ ",
            paint(_program(self.options), "prog-name"),
            " — ",
            paint(self.message.title(), "title"),
            " ]",
        )
        shared = {key: self.options[key] for key in ("colorful", "prog") if key in self.options}
        renders = [copy.replace(exception, ratio=2 / 3, **shared) for exception in self.exceptions]
        if self.options.get("fancy"):
            return Panel(Group(*renders), title=header, title_align="left")
        return Group(header, *renders)

    __trigger__ = CommandException.__trigger__


def trigger(fault, /, **options):
    """
    Surface a fault with the given rendering options.

    - shell=False (default): the fault is raised.
    - shell=True: the fault is rendered on stderr through the shared logger,
      then the process exits with status 1 unless deferred=True.
    - fancy, colorful, prog, ratio: rendering settings.

    Any object with __trigger__ and __replace__ methods is accepted.
    """
    if not callable(getattr(fault, "__trigger__", None)) or not callable(getattr(fault, "__replace__", None)):
        raise TypeError(f"trigger() cannot surface {type(fault).__name__!r} objects")
    copy.replace(fault, **options).__trigger__()


def getdoc(code, /):
    """
    Documentation the host registered for `code` in __main__.__docs__, or None.
    """
    if not isinstance(code, FaultCode):
        raise TypeError("getdoc() argument must be a fault-code")
    return getattr(__import__("__main__"), "__docs__", {}).get(code)


__all__ = (
    # Definition errors
    "DefinitionError",
    "DuplicateFieldError",
    "DuplicateAliasError",
    "PositionalConfigError",
    "ReservedAliasError",
    "ConflictingFieldError",
    "CommandDefinitionError",

    # User input errors
    "CommandException",
    "UnknownSwitchError",
    "UnknownSubcommandError",
    "UnexpectedPositionalError",
    "InvalidArgumentsError",
    "ExecutionError",
    "UndetectedShellError",

    # Groups
    "CommandExit",

    # Codes
    "FaultCode",
    "PALETTE",
    "trigger",
    "getdoc",
)
