"""
Argora utilities.

Sentinel
- Unset (the only UnsetType instance) marks a parameter nobody passed, so
  None stays available as a real value. It is falsy, prints as "Unset" and
  cannot be subclassed. coalesce(value, default) swaps it for a default and
  leaves every other value alone, falsy ones included.

Records
- IntrospectableType is the metaclass of the public records (metadata,
  resolved fields, commands). Each name listed in __introspectable__ becomes
  a read-only property over "_name" (see mirror(): containers come back as
  copies), the class gets a kebab-case __typename__ used in definition errors,
  and __repr__/__rich_repr__ list the __displayable__ names.
- rename() fixes __name__/__qualname__ of generated callables.

Naming
- kebab(name): command-line spelling of an identifier.
- levenshtein(a, b) / similar(word, candidates): did-you-mean suggestions.

    >>> coalesce(Unset, "fallback")
    'fallback'
    >>> kebab("dry_run")
    'dry-run'
    >>> similar("fo", ["format", "force", "output"])
    ['force', 'format']
"""
import builtins
import functools
import operator
import re
from collections.abc import Mapping, Sequence, Set
from typing import final


@final
class UnsetType:
    """
    Type of the Unset sentinel; instantiating it returns the shared instance.
    """

    @functools.cache
    def __new__(cls):
        return super().__new__(cls)

    def __init_subclass__(cls, **options):
        raise TypeError("UnsetType cannot be subclassed")

    def __bool__(self):
        return False

    def __repr__(self):
        return "Unset"

    # `str | Unset` builds the union `str | UnsetType`, usable with isinstance().
    def __or__(self, other, /):
        try:
            return type(self) | other
        except TypeError:
            return NotImplemented

    def __ror__(self, other, /):
        try:
            return other | type(self)
        except TypeError:
            return NotImplemented


Unset = UnsetType()
"""Default of parameters where None is a meaningful value."""


def coalesce(object, default=None, /):
    """
    `default` when `object` is Unset, `object` otherwise (None, 0 and "" are kept).
    """
    if object is Unset:
        return default
    return object


def rename(*parameters):
    """
    Give a callable a new __name__ and __qualname__.

        rename(function, "name")   # returns function
        @rename("name")            # decorator form
    """
    if len(parameters) == 1:
        name, = parameters
        if not isinstance(name, str):
            raise TypeError("rename() name must be a string")
        return functools.partial(_rename, name=name)
    if len(parameters) != 2:
        raise TypeError(f"rename() takes 1 or 2 positional arguments but {len(parameters)} were given")
    function, name = parameters
    return _rename(function, name)


def _rename(function, name):
    if not builtins.callable(function):
        raise TypeError("rename() target must be callable")
    if not isinstance(name, str):
        raise TypeError("rename() name must be a string")
    try:
        function.__name__ = function.__qualname__ = name
    except (AttributeError, TypeError):
        raise TypeError(f"cannot rename {function!r}") from None
    return function


def _copied(value):
    """
    Deep copy of nested lists, dicts and sets; anything else is shared.
    """
    match value:
        case str() | bytes() | tuple() | frozenset():
            return value
        case Mapping():
            return {key: _copied(item) for key, item in value.items()}
        case Sequence():
            return [_copied(item) for item in value]
        case Set():
            return {_copied(item) for item in value}
    return value


def mirror(name, /):
    """
    Read-only property returning (a copy of) `self._<name>`.
    """
    if not isinstance(name, str):
        raise TypeError("mirror() name must be a string")
    attribute = "_" + name

    def getter(self):
        return _copied(getattr(self, attribute))

    return property(_rename(getter, name))


def _records(self):
    cls = type(self)
    for name in coalesce(cls.__displayable__, cls.__introspectable__):
        yield name, getattr(self, name)


def _describe(self):
    fields = ", ".join(map(functools.partial(operator.mod, "%s=%r"), self.__rich_repr__()))
    return f"{type(self).__typename__}({fields})"


class IntrospectableType(type):
    """
    Metaclass of read-only records.

    Class attributes read
    - __introspectable__: names exposed through mirror() properties.
    - __displayable__: names shown by repr() and rich (defaults to the above).

    Class attributes set
    - __typename__: the class name split on capitals, "ResolvedField" -> "resolved-field".
    """
    __introspectable__ = ()
    __displayable__ = Unset

    def __new__(cls, name, bases, namespace, **options):
        properties = {field: mirror(field) for field in namespace.get("__introspectable__", ())}
        namespace = {
            **namespace,
            **properties,
            "__typename__": "-".join(re.findall(r"[A-Z]?[^A-Z]+|[A-Z]+(?![^A-Z])", name)).lower(),
        }
        namespace.setdefault("__rich_repr__", _rename(lambda self: _records(self), "__rich_repr__"))
        namespace.setdefault("__repr__", _rename(lambda self: _describe(self), "__repr__"))
        return super().__new__(cls, name, bases, namespace, **options)


def kebab(name, /):
    """
    Convert a python identifier into its command-line spelling.

    - snake_case and camelCase are both accepted: "dry_run" and "dryRun" -> "dry-run".
    - Leading/trailing underscores are dropped ("_private_" -> "private").
    """
    if not isinstance(name, str):
        raise TypeError("kebab() argument must be a string")
    name = re.sub(r"(?<=[a-z0-9])(?=[A-Z])", "-", name.strip("_"))
    return re.sub(r"[_\s]+", "-", name).lower()


def levenshtein(source, target, /):
    """
    Edit distance between two strings (insertions, deletions, substitutions).
    """
    if len(source) < len(target):
        source, target = target, source
    previous = list(range(len(target) + 1))
    for i, left in enumerate(source, 1):
        current = [i]
        for j, right in enumerate(target, 1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (left != right),
            ))
        previous = current
    return previous[-1]


def similar(word, candidates, /, limit=3):
    """
    Rank the candidates that look like a mistyped word.

    rule
    - comparison is case-insensitive.
    - a candidate qualifies when its distance is at most max(2, len(word) // 2),
      or when it starts with the typed word (a truncated spelling).
    - ties keep the candidates' original order; at most `limit` are returned.
    """
    threshold = max(2, len(word) // 2)
    lowered = word.lower()
    scored = []
    for index, candidate in enumerate(candidates):
        distance = levenshtein(lowered, candidate.lower())
        if distance <= threshold or (lowered and candidate.lower().startswith(lowered)):
            scored.append((distance, index, candidate))
    return [candidate for _, _, candidate in sorted(scored)[:limit]]


__all__ = (
    # Functions
    "coalesce",
    "rename",
    "mirror",
    "kebab",
    "levenshtein",
    "similar",

    # Types
    "UnsetType",
    "IntrospectableType",

    # Constants
    "Unset",
)
