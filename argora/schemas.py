"""
Argora schema combinators.

pydantic covers objects (BaseModel), unions (A | B) and discriminated unions
(Annotated[A | B, Field(discriminator=...)]) natively. Two compositions it does
not spell directly are provided here:

- one_of(A, B, ...) -> OneOf: accepted when exactly one branch validates.
- all_of(A, B, ...) -> AllOf: accepted when the data satisfies every operand;
  validated through a model deriving from every operand.

Both are plain records: the extractor flattens them for help/completion, the
validation bridge decides acceptance.
"""
import functools
import inspect
import types
import typing

from pydantic import BaseModel, ConfigDict

from .utils import *

STRICTNESS = {
    "passthrough": 0,
    "strip": 1,
    "strict": 2,
}

EXTRA = {
    "allow": "passthrough",
    "forbid": "strict",
    "ignore": "strip",
}


def unknown_keys(schema, /):
    """
    Unknown-keys mode of a schema: "strip", "strict" or "passthrough".

    - models read model_config["extra"] (ignore/forbid/allow).
    - composites take the most restrictive mode of their members.
    """
    if isinstance(schema, type) and issubclass(schema, BaseModel):
        return EXTRA.get(schema.model_config.get("extra") or "ignore", "strip")
    members = branches(schema)
    if not members:
        return "strip"
    return max(map(unknown_keys, members), key=STRICTNESS.__getitem__)


def is_model(schema, /):
    return isinstance(schema, type) and issubclass(schema, BaseModel)


def is_union(schema, /):
    return typing.get_origin(schema) in (typing.Union, types.UnionType)


def discriminator(schema, /):
    """
    Discriminator key of an Annotated union, or None.
    """
    if typing.get_origin(schema) is not typing.Annotated:
        return None
    for extra in schema.__metadata__:
        if isinstance(key := getattr(extra, "discriminator", None), str):
            return key
    return None


def branches(schema, /):
    """
    The immediate members of a composite schema (empty for models).
    """
    if isinstance(schema, OneOf | AllOf):
        return schema.operands
    if typing.get_origin(schema) is typing.Annotated:
        return branches(typing.get_args(schema)[0])
    if is_union(schema):
        return tuple(arg for arg in typing.get_args(schema) if arg is not type(None))
    return ()


def describe(schema, /):
    """
    Human description of a schema: explicit description or the model docstring.
    """
    if isinstance(schema, OneOf | AllOf):
        return schema.description
    if is_model(schema) and schema.__doc__:
        return inspect.cleandoc(schema.__doc__)
    return None


class OneOf(metaclass=IntrospectableType):
    """
    Exactly one of several schemas ("xor").
    """
    __introspectable__ = ("operands", "description")

    def __init__(self, *operands, description=Unset):
        if len(operands) < 2:
            raise TypeError(f"{type(self).__typename__} needs at least two operands")
        self._operands = operands
        self._description = coalesce(description)

    @property
    def __name__(self):
        return "Or".join(getattr(operand, "__name__", "Schema") for operand in self._operands)


class AllOf(metaclass=IntrospectableType):
    """
    Intersection of several schemas.

    Nested AllOf operands are flattened and None operands are dropped, so
    all_of(global_args, args) works when either side is missing.
    """
    __introspectable__ = ("operands", "description")

    def __init__(self, *operands, description=Unset):
        flattened = []
        for operand in operands:
            if operand is None:
                continue
            if isinstance(operand, AllOf):
                flattened.extend(operand.operands)
            else:
                flattened.append(operand)
        self._operands = tuple(flattened)
        self._description = coalesce(description)

    @property
    def __name__(self):
        return "And".join(getattr(operand, "__name__", "Schema") for operand in self._operands)

    @functools.cached_property
    def schema(self):
        """
        An equivalent schema pydantic can validate directly.

        - all operands are models: a model deriving from every operand (the most
          restrictive extra mode of the operands is kept).
        - one operand is a union (plain, discriminated, or OneOf): the
          intersection is distributed over its branches.
        """
        for index, operand in enumerate(self._operands):
            if not is_model(operand):
                rest = self._operands[:index] + self._operands[index + 1:]
                if isinstance(operand, OneOf):
                    return OneOf(*(AllOf(*rest, member).schema for member in operand.operands))
                members = tuple(AllOf(*rest, member).schema for member in branches(operand))
                if not members:
                    raise TypeError(f"{type(self).__typename__} cannot intersect {operand!r}")
                union = typing.Union[members]
                if discriminator(operand) is not None:
                    return typing.Annotated[union, *typing.get_args(operand)[1:]]
                return union
        if len(self._operands) == 1:
            return self._operands[0]
        mode = unknown_keys(self)
        extra = next(name for name, value in EXTRA.items() if value == mode)
        return types.new_class(
            self.__name__,
            self._operands,
            exec_body=lambda namespace: namespace.update({
                "model_config": ConfigDict(extra=extra),
                "__module__": __name__,
                "__doc__": self._description,
            }),
        )


def one_of(*operands, description=Unset):
    """
    Build a schema accepted when exactly one operand validates.
    """
    return OneOf(*operands, description=description)


def all_of(*operands, description=Unset):
    """
    Build a schema accepted when every operand validates (None operands ignored).
    A single remaining operand is returned unchanged.
    """
    intersection = AllOf(*operands, description=description)
    if len(intersection.operands) == 1 and description is Unset:
        return intersection.operands[0]
    if not intersection.operands:
        return None
    return intersection


__all__ = (
    "OneOf",
    "AllOf",
    "one_of",
    "all_of",
    "unknown_keys",
    "discriminator",
    "branches",
    "describe",
    "is_model",
    "is_union",
)
