"""
Argora validation bridge.

validate(schema, raw) hands the raw bag produced by the parser to pydantic and
normalizes the outcome:

- Validation(ok=True, data=<validated object>, issues=())
- Validation(ok=False, data=None, issues=(Issue(path, message, code), ...))

Issue mirrors one entry of pydantic's ValidationError.errors(): `loc` joined
with ".", `msg` and `type`. one_of() schemas are accepted only when exactly one
branch validates; all_of() schemas validate through a model deriving from every
operand.
"""
from collections import namedtuple

from pydantic import TypeAdapter, ValidationError

from .schemas import AllOf, OneOf, is_model


class Issue(namedtuple("Issue", ("path", "message", "code"))):
    __slots__ = ()

    def __str__(self):
        return f"{self.path}: {self.message}" if self.path else self.message


class Validation(namedtuple("Validation", ("ok", "data", "issues"))):
    __slots__ = ()


def _issues(error):
    return tuple(
        Issue(".".join(map(str, entry["loc"])), entry["msg"], entry["type"])
        for entry in error.errors()
    )


def _exclusive(schema, raw):
    accepted = []
    rejected = []
    for operand in schema.operands:
        if (result := validate(operand, raw)).ok:
            accepted.append(result)
        else:
            rejected.extend(result.issues)
    if len(accepted) == 1:
        return accepted[0]
    if accepted:
        return Validation(False, None, (
            Issue("", f"input matches {len(accepted)} alternatives, exactly one is allowed", "one_of"),
        ))
    return Validation(False, None, (
        Issue("", "input matches none of the alternatives", "one_of"),
        *rejected,
    ))


def validate(schema, raw, /):
    """
    Validate a raw mapping against a schema.

    A missing schema (a command without arguments) always validates to None.
    """
    if schema is None:
        return Validation(True, None, ())
    if isinstance(schema, AllOf):
        schema = schema.schema
    if isinstance(schema, OneOf):
        return _exclusive(schema, raw)
    try:
        if is_model(schema):
            data = schema.model_validate(raw)
        else:
            data = TypeAdapter(schema).validate_python(raw)
    except ValidationError as error:
        return Validation(False, None, _issues(error))
    return Validation(True, data, ())


__all__ = (
    "Issue",
    "Validation",
    "validate",
)
