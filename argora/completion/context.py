r"""
Argora completion context parser.

parse_context(argv, command) reads a partial command line (the words typed
after the program name, the last one being the word under the cursor) and
works out what is being completed.

Walk
- every word but the last is read the way the argv parser reads it:
  • "--" ends option parsing (no more subcommands or options afterwards).
  • an option word marks its field (or "help") as used; a value-taking
    option without an inline value consumes the next word unless it starts
    with "-".
  • the first bare word of a level descends into the subcommand it names.
    Lazy subcommands are read from their stubs. The argv parser hands the
    option words typed before it to the subcommand, so the used marks the
    subcommand also knows (global options, "help") are kept.
  • any other bare word fills one positional.

Classification (first match wins)
1. the previous word is a value-taking option without an inline value:
   "option-value" (flags fall through to 3 or 4).
2. the current word is "--name=...": "option-value" when the option takes a
   value, "option-name" otherwise.
3. the current word starts with "-": "option-name".
4. after "--": "positional"; a subcommand name starts with the current word
   (or it is empty): "subcommand"; positionals remain or the last one is
   variadic: "positional"; otherwise "subcommand".

Rules 1 to 3 only apply before "--".
"""
from collections import namedtuple

from ..extractor import extract_fields
from ..schemas import all_of


class CompletionContext(namedtuple("CompletionContext", (
    "path",
    "command",
    "extraction",
    "subcommands",
    "used",
    "positional_count",
    "after_dd",
    "kind",
    "target",
    "current_word",
    "previous_word",
    "inline_prefix",
))):
    """
    What the word under the cursor completes to.

    - path: subcommand names walked from the root.
    - command: the active command (a stub for lazy subcommands).
    - extraction: its fields, global arguments included.
    - subcommands: names of its visible subcommands.
    - used: cli names and aliases of the options already given at this level.
    - positional_count: positionals already given at this level.
    - after_dd: a "--" separator was crossed.
    - kind: "subcommand" | "option-name" | "option-value" | "positional".
    - target: the ResolvedField whose value is completed, or None.
    - current_word / previous_word: last and second to last words ("" when missing).
    - inline_prefix: "--name=" when completing an inline option value, else "".
    """
    __slots__ = ()

    @property
    def partial(self):
        """The part of the current word being completed (inline prefix removed)."""
        return self.current_word[len(self.inline_prefix):]

    @property
    def positional_index(self):
        return self.positional_count


def _lookup(extraction, word):
    """
    (field, has inline value) of an option word; field is None when unknown.
    """
    long = word.startswith("--")
    name, separator, _ = word.lstrip("-").partition("=")
    if not long and len(name) != 1:
        return None, bool(separator)
    field = extraction.find(name)
    if field is None and long and name.startswith("no-"):
        negated = extraction.find(name[3:])
        if negated is not None and negated.value_type == "boolean":
            field = negated
    if field is not None and not long and field.alias != name:
        field = None
    return field, bool(separator)


def _mark(used, field):
    used.add(field.cli_name)
    if field.alias:
        used.add(field.alias)


def _is_option(word):
    return word.startswith("-") and word not in ("-", "--")


def _visible(command):
    return tuple(name for name in command.children if not name.startswith("__"))


def parse_context(argv, command, /, global_args=None):
    """
    Build the CompletionContext of the partial command line `argv`.

    An empty argv completes the empty word at the root.
    """
    argv = list(argv) or [""]
    words, current = argv[:-1], argv[-1]
    previous = argv[-2] if len(argv) > 1 else ""

    path = []
    extraction = extract_fields(all_of(global_args, command.args))
    used = set()
    count = 0
    after_dd = False

    index = 0
    while index < len(words):
        word = words[index]
        index += 1

        if after_dd:
            count += 1
            continue

        if word == "--":
            after_dd = True
            continue

        if _is_option(word):
            field, inline = _lookup(extraction, word)
            if field is None:
                if word == "--help":
                    used.add("help")
                continue
            _mark(used, field)
            if field.takes_value and not inline and index < len(words) and not words[index].startswith("-"):
                index += 1
            continue

        if count == 0 and word in command.children:
            child = command.children[word]
            command = getattr(child, "stub", child)
            path.append(word)
            extraction = extract_fields(all_of(global_args, command.args))
            used = {name for name in used if name == "help" or extraction.find(name) is not None}
            continue

        count += 1

    subcommands = _visible(command)
    kind = None
    target = None
    inline_prefix = ""

    if not after_dd and _is_option(previous) and "=" not in previous:
        option, _ = _lookup(extraction, previous)
        if option is not None and option.takes_value:
            kind, target = "option-value", option

    if kind is None and not after_dd and current.startswith("--") and "=" in current:
        option, _ = _lookup(extraction, current)
        if option is not None and option.takes_value:
            kind, target = "option-value", option
            inline_prefix = current[:current.index("=") + 1]
        else:
            kind = "option-name"

    if kind is None and not after_dd and current.startswith("-"):
        kind = "option-name"

    if kind is None:
        positionals = extraction.positionals
        if after_dd:
            kind = "positional"
        elif subcommands and (not current or any(name.startswith(current) for name in subcommands)):
            kind = "subcommand"
        elif count < len(positionals) or (positionals and positionals[-1].variadic):
            kind = "positional"
        else:
            kind = "subcommand"
        if kind == "positional" and count < len(positionals):
            target = positionals[count]
        elif kind == "positional" and positionals and positionals[-1].variadic:
            target = positionals[-1]

    return CompletionContext(
        tuple(path),
        command,
        extraction,
        subcommands,
        frozenset(used),
        count,
        after_dd,
        kind,
        target,
        current,
        previous,
        inline_prefix,
    )


__all__ = (
    "CompletionContext",
    "parse_context",
)
