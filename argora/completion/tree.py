"""
Argora completion tree.

build_tree(command, program) projects a command tree onto CompletionNode
records: one node per visible subcommand holding its options, positionals and
value completions. The static script renderers only ever walk this tree.

Lazy subcommands are described from their stubs and flagged (lazy=True) so
renderers can defer to the hidden __complete command for them.
"""
import re
from collections import namedtuple

from ..extractor import extract_fields
from ..schemas import all_of


class ValueCompletion(namedtuple("ValueCompletion", ("type", "choices", "shell_command", "extensions"))):
    """
    How the value of a field completes.

    - type: "choices" | "command" | "file" | "directory" | "none"
    - choices: literal candidates ("choices" only).
    - shell_command: command whose output lines are the candidates ("command" only).
    - extensions: file extensions without the dot ("file" only, may be empty).
    """
    __slots__ = ()


class CompletableOption(namedtuple("CompletableOption", (
    "name",
    "cli_name",
    "alias",
    "description",
    "takes_value",
    "repeatable",
    "value_completion",
))):
    __slots__ = ()


class CompletablePositional(namedtuple("CompletablePositional", (
    "name",
    "cli_name",
    "position",
    "description",
    "required",
    "variadic",
    "value_completion",
))):
    __slots__ = ()


class CompletionScript(namedtuple("CompletionScript", ("script", "shell", "instructions"))):
    """
    A generated completion script with its installation instructions.
    """
    __slots__ = ()


class CompletionNode(namedtuple("CompletionNode", (
    "name",
    "description",
    "options",
    "positionals",
    "children",
    "lazy",
))):
    """
    One command of the tree; `children` is a tuple of CompletionNode.
    """
    __slots__ = ()


def resolve_value_completion(field, /):
    """
    ValueCompletion of a ResolvedField, or None when nothing is known.

    Priority: custom choices, shell command, explicit file/directory/none hint,
    then the choices of a Literal/Enum annotation.
    """
    completion = field.completion
    if completion is not None:
        if completion.choices:
            return ValueCompletion("choices", tuple(completion.choices), None, ())
        if completion.shell_command:
            return ValueCompletion("command", (), completion.shell_command, ())
        if completion.type is not None:
            return ValueCompletion(completion.type, (), None, tuple(completion.extensions))
    if field.enum_values:
        return ValueCompletion("choices", tuple(field.enum_values), None, ())
    return None


def identifier(name, /):
    """
    `name` usable inside a shell function name.
    """
    return re.sub(r"[^a-zA-Z0-9_]", "_", name)


def walk(node, /, path=()):
    """
    Yield (path, node) for `node` and every non-lazy descendant, depth first.
    """
    yield path, node
    for child in node.children:
        if not child.lazy:
            yield from walk(child, path + (child.name,))


def _options(extraction):
    return tuple(
        CompletableOption(
            field.name,
            field.cli_name,
            field.alias,
            field.description,
            field.takes_value,
            field.value_type == "array",
            resolve_value_completion(field) if field.takes_value else None,
        )
        for field in extraction.options
    )


def _positionals(extraction):
    return tuple(
        CompletablePositional(
            field.name,
            field.cli_name,
            position,
            field.description,
            field.required,
            field.variadic,
            resolve_value_completion(field),
        )
        for position, field in enumerate(extraction.positionals)
    )


def build_tree(command, program, /, global_args=None):
    """
    Build the CompletionNode of `command` (named `program`) and its visible descendants.
    """
    extraction = extract_fields(all_of(global_args, command.args))
    children = []
    for name, child in command.children.items():
        if name.startswith("__"):
            continue
        stub = getattr(child, "stub", child)
        node = build_tree(stub, name, global_args=global_args)
        children.append(node._replace(lazy=stub is not child))
    return CompletionNode(
        program,
        command.descr,
        _options(extraction),
        _positionals(extraction),
        tuple(children),
        False,
    )


__all__ = (
    "ValueCompletion",
    "CompletableOption",
    "CompletablePositional",
    "CompletionNode",
    "CompletionScript",
    "resolve_value_completion",
    "build_tree",
    "identifier",
    "walk",
)
