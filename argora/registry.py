r"""
Argora metadata registry.

Overview
- Command-line concerns (alias, positional, description, placeholder, environment
  variables, completion hints) live outside the pydantic type system, in a
  process-wide side store keyed by schema-node identity.

- Records
  • ArgMeta: the command-line annotations of one field.
  • Completion: a completion hint (file/directory/none, custom choices, or a
    shell command whose output lines become the choices).

- Functions
  • attach(node, meta): register metadata for a node; returns the node unchanged.
  • lookup(node): the metadata attached to a node, or None.
  • arg(...): build a fresh marker carrying ArgMeta, for use inside Annotated.

Identity
- Lookups compare identity, never equality: two structurally identical markers
  or FieldInfo objects never share metadata.
- The registry keeps every registered node alive, so ids are never recycled.
- Written once at definition time: re-attaching metadata to a node raises.

Quick example:
    >>> from typing import Annotated
    >>> from pydantic import BaseModel
    >>> class Args(BaseModel):
    ...     name: Annotated[str, arg(positional=True, description="who to greet")]
    ...     loud: Annotated[bool, arg(alias="l")] = False
"""
import re
from collections.abc import Iterable

from .utils import *

_registry = {}


def _sanitize_text(cls, metadata, name, /):
    if not isinstance(value := metadata[name], str | Unset):
        raise TypeError(f"{cls.__typename__} {name!r} must be a string")
    elif isinstance(value, str) and not (value := value.strip()):
        raise ValueError(f"{cls.__typename__} {name!r} cannot be empty")
    metadata[name] = coalesce(value)


def _sanitize_names(cls, metadata, name, /):
    """
    Internal: normalize a string-or-iterable of strings into a tuple of names.
    """
    if (names := metadata[name]) is Unset:
        metadata[name] = ()
        return
    if isinstance(names, str):
        names = (names,)
    if not isinstance(names, Iterable):
        raise TypeError(f"{cls.__typename__} {name!r} must be a string or an iterable of strings")
    sanitized = []
    for entry in names:
        if not isinstance(entry, str):
            raise TypeError(f"{cls.__typename__} {name!r} entries must be strings")
        elif not (entry := entry.strip()):
            raise ValueError(f"{cls.__typename__} {name!r} entries cannot be empty")
        elif entry in sanitized:
            raise ValueError(f"{cls.__typename__} {name!r} cannot contain duplicates")
        sanitized.append(entry)
    metadata[name] = tuple(sanitized)


class Completion(metaclass=IntrospectableType):
    """
    Completion hint for a field's values.

    Exactly one source must be given:
    - type: "file" | "directory" | "none"
      (file completion may be narrowed with `extensions`, e.g. ("json", "yaml")).
    - choices: a fixed collection of strings.
    - shell_command: a read-only shell command; each output line is a choice.
    """
    __introspectable__ = ("type", "choices", "shell_command", "extensions")

    def __init__(self, type=Unset, /, *, choices=Unset, shell_command=Unset, extensions=Unset):
        cls = self.__class__
        metadata = {
            "type": type,
            "choices": choices,
            "shell_command": shell_command,
            "extensions": extensions,
        }

        if sum(value is not Unset for value in (type, choices, shell_command)) != 1:
            raise TypeError(f"{cls.__typename__} takes exactly one of 'type', 'choices' or 'shell_command'")

        if not isinstance(type, str | Unset):
            raise TypeError(f"{cls.__typename__} 'type' must be a string")
        elif isinstance(type, str) and type not in ("file", "directory", "none"):
            raise ValueError(f"{cls.__typename__} 'type' must be one of 'file', 'directory', or 'none'")

        _sanitize_names(cls, metadata, "choices")
        if choices is not Unset and not metadata["choices"]:
            raise ValueError(f"{cls.__typename__} 'choices' cannot be empty")

        _sanitize_text(cls, metadata, "shell_command")

        _sanitize_names(cls, metadata, "extensions")
        if metadata["extensions"] and type != "file":
            raise TypeError(f"{cls.__typename__} 'extensions' only apply to file completion")
        metadata["extensions"] = tuple(extension.lstrip(".") for extension in metadata["extensions"])

        metadata["type"] = coalesce(type)
        for name, object in metadata.items():
            setattr(self, "_" + name, object)

    def __eq__(self, other):
        if not isinstance(other, Completion):
            return NotImplemented
        return tuple(self.__rich_repr__()) == tuple(other.__rich_repr__())

    __hash__ = object.__hash__


class ArgMeta(metaclass=IntrospectableType):
    """
    Command-line metadata of one field.

    Attributes (sanitized on construction)
    - description: str | None, trimmed and non-empty when given.
    - positional: bool, supply by position instead of by name.
    - placeholder: str | None, label shown in help (e.g. "FILE").
    - alias: str | None, a single character short flag (without the dash).
    - env: tuple[str, ...], environment variables consulted in order when the
      field is absent from the command line (a single string is accepted).
    - completion: Completion | None.
    - override_builtin_alias: bool, required to claim the reserved aliases
      'h' (help) and 'H' (help-all).
    """
    __introspectable__ = (
        "description",
        "positional",
        "placeholder",
        "alias",
        "env",
        "completion",
        "override_builtin_alias",
    )

    def __init__(
            self,
            *,
            description=Unset,
            positional=False,
            placeholder=Unset,
            alias=Unset,
            env=Unset,
            completion=Unset,
            override_builtin_alias=False,
    ):
        cls = type(self)
        metadata = {
            "description": description,
            "positional": bool(positional),
            "placeholder": placeholder,
            "alias": alias,
            "env": env,
            "completion": completion,
            "override_builtin_alias": bool(override_builtin_alias),
        }
        _sanitize_text(cls, metadata, "description")
        _sanitize_text(cls, metadata, "placeholder")
        _sanitize_names(cls, metadata, "env")

        if not isinstance(alias, str | Unset):
            raise TypeError(f"{cls.__typename__} 'alias' must be a string")
        elif isinstance(alias, str) and not re.fullmatch(r"[^\W_]", alias := alias.lstrip("-")):
            raise ValueError(f"{cls.__typename__} 'alias' must be a single letter or digit")
        metadata["alias"] = coalesce(alias)

        if not isinstance(completion, Completion | Unset):
            raise TypeError(f"{cls.__typename__} 'completion' must be a completion")
        metadata["completion"] = coalesce(completion)

        if metadata["positional"] and metadata["alias"]:
            raise TypeError(f"positional {cls.__typename__} cannot have an 'alias'")

        for name, object in metadata.items():
            setattr(self, "_" + name, object)

    def __eq__(self, other):
        if not isinstance(other, ArgMeta):
            return NotImplemented
        return tuple(self.__rich_repr__()) == tuple(other.__rich_repr__())

    __hash__ = object.__hash__


class ArgMarker:
    """
    Identity token placed inside Annotated[...] to carry an ArgMeta.
    """
    __slots__ = ()

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self

    def __repr__(self):
        return f"arg({", ".join("%s=%r" % item for item in lookup(self).__rich_repr__() if item[1])})"


def attach(node, meta, /):
    """
    Register `meta` for `node` (any object) and return `node` unchanged.

    Raises
    - TypeError: meta is not an ArgMeta.
    - ValueError: node already carries metadata.
    """
    if not isinstance(meta, ArgMeta):
        raise TypeError("attach() second argument must be an arg-meta")
    if id(node) in _registry:
        raise ValueError(f"{node!r} already carries argument metadata")
    _registry[id(node)] = (node, meta)
    return node


def lookup(node, /):
    """
    Return the ArgMeta attached to `node`, or None when it carries none.
    """
    try:
        owner, meta = _registry[id(node)]
    except KeyError:
        return None
    return meta if owner is node else None


def arg(**options):
    """
    Build an Annotated marker carrying argument metadata.

    Keyword arguments are those of ArgMeta; `completion` also accepts a
    mapping with the keyword arguments of Completion, e.g.
    arg(completion={"choices": ["a", "b"]}).
    """
    if isinstance(completion := options.get("completion"), dict):
        completion = dict(completion)
        options["completion"] = Completion(completion.pop("type", Unset), **completion)
    return attach(ArgMarker(), ArgMeta(**options))


__all__ = (
    "ArgMeta",
    "ArgMarker",
    "Completion",
    "attach",
    "lookup",
    "arg",
)
