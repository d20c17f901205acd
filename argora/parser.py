"""
Argora argv parser.

Two layers:

- parse_argv(argv, fields) tokenizes words against resolved fields:
  • long options: --name, --name=value, --no-name (boolean negation)
  • short options: -a, -a=value (no bundling: "-abc" is one unknown switch)
  • booleans never consume the next word; value-taking options consume the next
    word unless it starts with "-" (otherwise they hold True, which validation
    later rejects)
  • array options accumulate across repetitions
  • "--" ends option parsing: every later word is positional
  • unknown switches are recorded in order with their inline value, if any

- parse_args(argv, command) runs the full sequence for one command level:
  1. extraction
  2. subcommand short-circuit: the first bare word names a subcommand; the
     option words before it (values included) are handed to the subcommand
  3. structural checks (unless skip_validation)
  4. --help / --help-all / --version detection (honouring -h/-H overrides)
  5. tokenizing
  6. positional assignment (the variadic positional absorbs the rest)
  7. environment fallback (first defined variable wins; arrays split on commas)
  8. unknown switch collection

Output is an untyped raw bag; typing is pydantic's job.
"""
import os
from collections import namedtuple

from .extractor import extract_fields, validate_fields
from .utils import *


class Unknown(namedtuple("Unknown", ("token", "name", "value", "index"))):
    """
    An unrecognised switch: the word as typed, its name without dashes, its
    inline value (None when absent) and its index in argv.
    """
    __slots__ = ()


class ParsedArgv(namedtuple("ParsedArgv", ("options", "positionals", "unknown"))):
    """
    Tokenizer output: options keyed by field key, bare words in order (words
    after "--" included), and Unknown records.
    """
    __slots__ = ()


class ParseResult(namedtuple("ParseResult", (
    "help",
    "help_all",
    "version",
    "subcommand",
    "remaining",
    "raw",
    "positionals",
    "surplus",
    "unknown",
    "extraction",
))):
    """
    Outcome of parse_args() for one command level.

    - help / help_all / version: built-in switch requested (short-circuits the rest).
    - subcommand / remaining: route to this child with every other word, the
      option words typed before its name included.
    - raw: field values keyed for pydantic (options, positionals, environment).
    - positionals: every bare word; surplus: the ones no positional field took.
    - unknown: Unknown records for unrecognised switches.
    - extraction: the Extraction the words were parsed against.
    """
    __slots__ = ()


def _index(fields):
    named = {}
    for field in fields:
        if field.positional:
            continue
        named.setdefault(field.cli_name, field)
        if field.alias:
            named.setdefault(field.alias, field)
    return named


def _match(named, word):
    name = word.lstrip("-").partition("=")[0]
    field = named.get(name)
    if field is None or (not word.startswith("--") and len(name) != 1 and field.alias != name):
        return None
    return field


def _consumes(field, word, following):
    """
    Whether option `word` of `field` takes the next word as its value.
    """
    if "=" in word or field.value_type == "boolean":
        return False
    return following is not None and not following.startswith("-")


def parse_argv(argv, fields, /):
    """
    Tokenize `argv` against an iterable of ResolvedField (or an Extraction).
    """
    fields = tuple(getattr(fields, "fields", fields))
    named = _index(fields)
    options = {}
    positionals = []
    unknown = []

    def store(field, value):
        if field.value_type == "array":
            options.setdefault(field.key, []).append(value)
        else:
            options[field.key] = value

    index = 0
    stopped = False
    while index < len(argv):
        word = argv[index]

        if stopped or word == "-" or not word.startswith("-"):
            positionals.append(word)
            index += 1
            continue

        if word == "--":
            stopped = True
            index += 1
            continue

        name, separator, inline = word.lstrip("-").partition("=")
        long = word.startswith("--")

        if long and not separator and name.startswith("no-"):
            negated = named.get(name[3:])
            if negated is not None and negated.value_type == "boolean" and named.get(name) is None:
                store(negated, False)
                index += 1
                continue

        field = _match(named, word)
        if field is None:
            unknown.append(Unknown(word, name, inline if separator else None, index))
            index += 1
            continue

        following = argv[index + 1] if index + 1 < len(argv) else None
        if separator:
            store(field, inline)
        elif _consumes(field, word, following):
            store(field, following)
            index += 1
        else:
            store(field, True)
        index += 1

    return ParsedArgv(options, positionals, unknown)


def leading_word(argv, fields, /):
    """
    Index of the first bare word of `argv`, or None.

    Option words are skipped together with the value they consume; nothing
    after "--" counts. This is the word a command with subcommands routes on.
    """
    named = _index(getattr(fields, "fields", fields))
    index = 0
    while index < len(argv):
        word = argv[index]
        if word == "--":
            return None
        if word == "-" or not word.startswith("-"):
            return index
        field = _match(named, word)
        following = argv[index + 1] if index + 1 < len(argv) else None
        if field is not None and _consumes(field, word, following):
            index += 1
        index += 1
    return None


def assign_positionals(words, fields, /):
    """
    Map bare words onto positional fields in declaration order.

    Returns (values keyed by field key, surplus words).
    """
    values = {}
    words = list(words)
    for field in (field for field in getattr(fields, "fields", fields) if field.positional):
        if not words:
            break
        if field.variadic:
            values[field.key], words = words, []
            break
        values[field.key] = words.pop(0)
    return values, words


def environment(fields, raw, /, environ=None):
    """
    Fill fields missing from `raw` from their environment variables.

    The first defined variable wins; array fields split the value on commas.
    """
    environ = os.environ if environ is None else environ
    filled = dict(raw)
    for field in getattr(fields, "fields", fields):
        if field.key in filled:
            continue
        for variable in field.env:
            if variable not in environ:
                continue
            value = environ[variable]
            if field.value_type == "array":
                value = [item.strip() for item in value.split(",") if item.strip()]
            filled[field.key] = value
            break
    return filled


def _builtins(argv, extraction):
    words = argv[:argv.index("--")] if "--" in argv else argv
    claimed = {field.alias for field in extraction.fields if field.alias and field.override_builtin_alias}
    help_all = "--help-all" in words or ("H" not in claimed and "-H" in words)
    help = not help_all and ("--help" in words or ("h" not in claimed and "-h" in words))
    return help, help_all, "--version" in words


def parse_args(argv, command, /, skip_validation=False, schema=Unset):
    """
    Parse one level of a command line.

    Parameters
    - argv: words after the command name.
    - command: object exposing `children` (mapping of names) and `args` (schema).
    - skip_validation: skip the structural checks of the field list.
    - schema: schema to parse against instead of command.args (the runner passes
      the command's arguments merged with the global ones).
    """
    argv = list(argv)
    extraction = extract_fields(coalesce(schema, command.args))

    if command.children and (index := leading_word(argv, extraction)) is not None and argv[index] in command.children:
        return ParseResult(False, False, False, argv[index], argv[:index] + argv[index + 1:], {}, [], [], [], extraction)

    if not skip_validation:
        validate_fields(extraction)

    help, help_all, version = _builtins(argv, extraction)
    if help or help_all or version:
        return ParseResult(help, help_all, version, None, [], {}, [], [], [], extraction)

    parsed = parse_argv(argv, extraction)
    values, surplus = assign_positionals(parsed.positionals, extraction)
    raw = environment(extraction, parsed.options | values)

    if extraction.unknown_keys == "passthrough":
        for unknown in parsed.unknown:
            raw.setdefault(unknown.name, True if unknown.value is None else unknown.value)

    return ParseResult(False, False, False, None, [], raw, parsed.positionals, surplus, parsed.unknown, extraction)


__all__ = (
    "Unknown",
    "ParsedArgv",
    "ParseResult",
    "parse_argv",
    "leading_word",
    "assign_positionals",
    "environment",
    "parse_args",
)
