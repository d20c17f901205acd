"""
Argora completion candidates.

generate_candidates(context) turns a CompletionContext into a CandidateResult:
the candidates, a Directive bitmask telling the shell how to treat them, and
the file extensions of an extension-filtered file completion.

By kind
- subcommand: one candidate per visible subcommand; option names join in when
  there are no subcommands or the current word starts with "-".
- option-name: every option not used yet (array options stay offered) and
  --help unless it was given.
- option-value / positional: dispatch on the field's ValueCompletion:
  • choices -> one candidate per choice
  • command -> one candidate per output line of the shell command (bounded
    by a timeout; any failure yields no candidates)
  • file -> FILE_COMPLETION, or with extensions the matching files and the
    directories of the directory being typed
  • directory -> DIRECTORY_COMPLETION
  • none -> NO_FILE_COMPLETION

FILTER_PREFIX is always set; other bits add up.
"""
import enum
import os
import subprocess
from collections import namedtuple

from ..logger import logger
from .tree import resolve_value_completion

SHELL_COMMAND_TIMEOUT = 2.0

HELP_DESCRIPTION = "Show help information"


class Directive(enum.IntFlag):
    """
    Bits of the integer printed on the last line of __complete output.
    """
    DEFAULT = 0
    NO_SPACE = 1
    NO_FILE_COMPLETION = 2
    FILTER_PREFIX = 4
    KEEP_ORDER = 8
    FILE_COMPLETION = 16
    DIRECTORY_COMPLETION = 32
    ERROR = 64


class Candidate(namedtuple("Candidate", ("value", "description", "kind"))):
    """
    One completion: the text to insert, an optional description and its kind
    ("option" | "subcommand" | "value" | "file" | "directory").
    """
    __slots__ = ()

    def __new__(cls, value, description=None, kind="value"):
        return super().__new__(cls, value, description, kind)


class CandidateResult(namedtuple("CandidateResult", ("candidates", "directive", "extensions"))):
    __slots__ = ()


def _describe(command, name):
    child = command.children.get(name)
    return getattr(getattr(child, "stub", child), "descr", None)


def _subcommands(context):
    candidates = [
        Candidate(name, _describe(context.command, name), "subcommand")
        for name in context.subcommands
    ]
    if not candidates or context.current_word.startswith("-"):
        candidates.extend(_option_names(context))
    return candidates


def _option_names(context):
    used = context.used
    candidates = []
    for field in context.extraction.options:
        if field.value_type != "array" and (field.cli_name in used or (field.alias and field.alias in used)):
            continue
        candidates.append(Candidate(f"--{field.cli_name}", field.description, "option"))
    if "help" not in used:
        candidates.append(Candidate("--help", HELP_DESCRIPTION, "option"))
    return candidates


def list_files(partial, extensions, /):
    """
    Directories and files with one of `extensions` in the directory `partial` points into.

    Directories end with "/"; unreadable directories yield nothing.
    """
    extensions = {extension.strip().lstrip(".") for extension in extensions} - {""}
    if not extensions:
        return []
    directory = os.path.dirname(partial) if "/" in partial else "."
    directory = directory or "."
    candidates = []
    try:
        with os.scandir(directory) as entries:
            for entry in sorted(entries, key=lambda entry: entry.name):
                path = entry.name if directory == "." else os.path.join(directory, entry.name)
                if entry.is_dir():
                    candidates.append(Candidate(f"{path}/", None, "directory"))
                elif entry.name.rpartition(".")[2] in extensions and "." in entry.name:
                    candidates.append(Candidate(path, None, "file"))
    except OSError as error:
        logger.debug(f"cannot list {directory!r} for completion: {error}")
        return []
    return candidates


def run_shell_command(command, /, timeout=SHELL_COMMAND_TIMEOUT):
    """
    Output lines of a completion shell command; [] on timeout, failure or no output.
    """
    try:
        completed = subprocess.run(
            command,
            shell=True,
            capture_output=True,
            text=True,
            timeout=timeout,
            stdin=subprocess.DEVNULL,
        )
    except (subprocess.TimeoutExpired, OSError) as error:
        logger.debug(f"completion command {command!r} failed: {error}")
        return []
    if completed.returncode != 0:
        logger.debug(f"completion command {command!r} exited with status {completed.returncode}")
        return []
    return [line.strip() for line in completed.stdout.splitlines() if line.strip()]


def _values(context, timeout):
    directive = Directive.FILTER_PREFIX
    field = context.target
    completion = resolve_value_completion(field) if field is not None else None
    if completion is None:
        return CandidateResult([], directive, ())

    description = field.description if context.kind == "positional" else None
    match completion.type:
        case "choices":
            candidates = [Candidate(choice, description, "value") for choice in completion.choices]
        case "command":
            candidates = [
                Candidate(line, description, "value")
                for line in run_shell_command(completion.shell_command, timeout=timeout)
            ]
        case "file" if completion.extensions:
            candidates = list_files(context.partial, completion.extensions)
        case "file":
            candidates, directive = [], directive | Directive.FILE_COMPLETION
        case "directory":
            candidates, directive = [], directive | Directive.DIRECTORY_COMPLETION
        case _:
            candidates, directive = [], directive | Directive.NO_FILE_COMPLETION
    return CandidateResult(candidates, directive, tuple(completion.extensions))


def generate_candidates(context, /, timeout=SHELL_COMMAND_TIMEOUT):
    """
    Candidates for a CompletionContext. Never raises for user input.
    """
    match context.kind:
        case "option-name":
            return CandidateResult(_option_names(context), Directive.FILTER_PREFIX, ())
        case "option-value" | "positional":
            return _values(context, timeout)
        case _:
            return CandidateResult(_subcommands(context), Directive.FILTER_PREFIX, ())


__all__ = (
    "Directive",
    "Candidate",
    "CandidateResult",
    "SHELL_COMMAND_TIMEOUT",
    "list_files",
    "run_shell_command",
    "generate_candidates",
)
