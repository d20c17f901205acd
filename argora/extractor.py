r"""
Argora field extractor.

Overview
- extract_fields(schema) flattens a composed pydantic schema into an ordered
  list of ResolvedField records, the single model consumed by the parser, help
  and completion.

- Accepted schemas
  • a BaseModel subclass ("object")
  • Annotated[A | B, Field(discriminator="key")] ("discriminated")
  • A | B / Union[A, B] ("union")
  • one_of(A, B, ...) ("xor")
  • all_of(A, B, ...) ("intersection")
  • None (a command without arguments)

- Flattening rules
  • objects: declaration order, positionals moved to the front (relative order kept).
  • intersections: union of key sets; one key in several operands must agree
    on annotation and metadata, otherwise ConflictingFieldError.
  • unions: a display union of every branch's fields, first occurrence wins, each
    field tagged with the labels of the branches it appears in. Acceptance stays
    with pydantic.

- Definition checks
  • validate_fields(extraction) raises the first structural problem as a named
    DefinitionError (duplicate names/aliases, bad positional shapes, reserved aliases).
  • validate_command(command) walks a whole tree and aggregates every problem.

Quick example:
    >>> class Args(BaseModel):
    ...     loud: Annotated[bool, arg(alias="l")] = False
    ...     name: Annotated[str, arg(positional=True)]
    >>> [field.name for field in extract_fields(Args).fields]
    ['name', 'loud']
"""
import copy
import enum
import typing
from collections import namedtuple
from collections.abc import Iterable, Sequence, Set

from pydantic import BaseModel
from pydantic_core import PydanticUndefined

from .faults import *
from .registry import ArgMarker, lookup
from .schemas import *
from .utils import *

ITERABLES = (list, tuple, set, frozenset, Iterable, Sequence, Set)

RESERVED_ALIASES = {
    "h": "help",
    "H": "help-all",
}


class Variant(namedtuple("Variant", ("value", "fields", "description", "label"))):
    """
    One branch of a union: discriminator value (None for plain unions), the
    branch's own fields, its description and the label used for display.
    """
    __slots__ = ()


class ResolvedField(metaclass=IntrospectableType):
    """
    Normalized description of one command-line argument.

    Attributes
    - name: schema key; key: the dictionary key handed to pydantic (the field's
      validation alias when it has a plain string one).
    - cli_name: kebab-case spelling used as --cli-name.
    - alias: single character short flag, or None.
    - description, placeholder: display metadata.
    - positional / variadic: supplied by position; a variadic positional is an
      array positional and absorbs every remaining word.
    - env: environment variables consulted in order when absent from argv.
    - required / default: from pydantic (default is Unset when there is none).
    - value_type: "string" | "number" | "boolean" | "array" | "enum".
    - enum_values: literal choices derived from Literal/Enum annotations.
    - completion: explicit Completion hint, or None.
    - override_builtin_alias: allowed to claim -h/-H.
    - branches: labels of the union branches declaring the field.
    """
    __introspectable__ = (
        "name",
        "key",
        "cli_name",
        "alias",
        "description",
        "positional",
        "placeholder",
        "env",
        "required",
        "default",
        "value_type",
        "enum_values",
        "completion",
        "override_builtin_alias",
        "branches",
        "annotation",
        "meta",
    )
    __displayable__ = ("name", "cli_name", "alias", "value_type", "positional", "required")

    def __init__(self, name, /, **attributes):
        defaults = {
            "key": name,
            "cli_name": kebab(name),
            "alias": None,
            "description": None,
            "positional": False,
            "placeholder": None,
            "env": (),
            "required": False,
            "default": Unset,
            "value_type": "string",
            "enum_values": (),
            "completion": None,
            "override_builtin_alias": False,
            "branches": (),
            "annotation": None,
            "meta": None,
        }
        unknown = attributes.keys() - defaults.keys()
        if unknown:
            raise TypeError(f"{type(self).__typename__} got unexpected attributes {sorted(unknown)!r}")
        self._name = name
        for key, value in (defaults | attributes).items():
            setattr(self, "_" + key, value)

    @property
    def variadic(self):
        return self._positional and self._value_type == "array"

    @property
    def takes_value(self):
        return self._value_type != "boolean"

    def __replace__(self, **changes):
        values = {name: getattr(self, "_" + name) for name in type(self).__introspectable__}
        values.update(changes)
        return type(self)(values.pop("name"), **values)


class Extraction(metaclass=IntrospectableType):
    """
    Result of extract_fields().

    Attributes
    - fields: tuple of ResolvedField in display order.
    - schema: the schema validation should run against.
    - kind: "object" | "discriminated" | "union" | "xor" | "intersection".
    - unknown_keys: "strip" | "strict" | "passthrough".
    - discriminator: key of a discriminated union, else None.
    - variants: tuple of Variant (unions only).
    - description: schema-level description, if any.
    """
    __introspectable__ = ("fields", "schema", "kind", "unknown_keys", "discriminator", "variants", "description")
    __displayable__ = ("kind", "unknown_keys", "fields")

    def __init__(self, fields, schema, kind, /, unknown_keys="strip", discriminator=None, variants=(), description=None):
        self._fields = tuple(fields)
        self._schema = schema
        self._kind = kind
        self._unknown_keys = unknown_keys
        self._discriminator = discriminator
        self._variants = tuple(variants)
        self._description = description

    @property
    def positionals(self):
        return tuple(field for field in self._fields if field.positional)

    @property
    def options(self):
        return tuple(field for field in self._fields if not field.positional)

    def find(self, token, /):
        """
        Field whose cli_name (or alias, for single characters) equals `token`.
        """
        for field in self._fields:
            if field.positional:
                continue
            if field.cli_name == token or (field.alias is not None and field.alias == token):
                return field
        return None


def _strip(annotation):
    """
    Unwrap Annotated and Optional layers: (inner annotation, annotated extras).
    """
    extras = []
    while True:
        origin = typing.get_origin(annotation)
        if origin is typing.Annotated:
            extras.extend(annotation.__metadata__)
            annotation = typing.get_args(annotation)[0]
        elif is_union(annotation):
            members = [arg for arg in typing.get_args(annotation) if arg is not type(None)]
            if len(members) != 1:
                return annotation, extras
            annotation = members[0]
        else:
            return annotation, extras


def _choices(annotation):
    """
    Literal/Enum choices of an annotation (recursing through unions and arrays).
    """
    annotation, _ = _strip(annotation)
    origin = typing.get_origin(annotation)
    if isinstance(annotation, type) and issubclass(annotation, enum.Enum):
        return [str(member.value) for member in annotation]
    if origin is typing.Literal:
        return [str(value.value if isinstance(value, enum.Enum) else value) for value in typing.get_args(annotation)]
    if is_union(annotation):
        choices = []
        for member in typing.get_args(annotation):
            choices.extend(_choices(member))
        return choices
    if origin in ITERABLES or annotation in ITERABLES:
        args = typing.get_args(annotation)
        if len(args) == 1 or (origin is tuple and len(args) == 2 and args[1] is Ellipsis):
            return _choices(args[0])
    return []


def _value_type(annotation):
    annotation, _ = _strip(annotation)
    origin = typing.get_origin(annotation)
    if annotation is bool:
        return "boolean"
    if origin in ITERABLES or annotation in ITERABLES:
        return "array"
    if origin is typing.Literal or (isinstance(annotation, type) and issubclass(annotation, enum.Enum)):
        return "enum"
    if is_union(annotation):
        kinds = {_value_type(member) for member in typing.get_args(annotation) if member is not type(None)}
        return kinds.pop() if len(kinds) == 1 else "string"
    if isinstance(annotation, type) and (issubclass(annotation, int | float) or annotation.__name__ == "Decimal"):
        return "number"
    return "string"


def _meta(field_info):
    """
    ArgMeta attached to a field: through an arg() marker kept in the field's
    metadata, or attached to the FieldInfo itself.
    """
    for extra in field_info.metadata:
        if isinstance(extra, ArgMarker) and (meta := lookup(extra)) is not None:
            return meta
    _, extras = _strip(field_info.annotation)
    for extra in extras:
        if isinstance(extra, ArgMarker) and (meta := lookup(extra)) is not None:
            return meta
    return lookup(field_info)


def _default(field_info):
    if field_info.default is not PydanticUndefined:
        return field_info.default
    if field_info.default_factory is not None and not getattr(field_info, "default_factory_takes_data", False):
        return field_info.default_factory()
    return Unset


def resolve_field(name, field_info, /):
    """
    Build the ResolvedField of one pydantic field.
    """
    meta = _meta(field_info)
    key = name
    for candidate in (field_info.validation_alias, field_info.alias):
        if isinstance(candidate, str):
            key = candidate
            break
    return ResolvedField(
        name,
        key=key,
        alias=meta and meta.alias,
        description=(meta and meta.description) or field_info.description,
        positional=bool(meta and meta.positional),
        placeholder=meta and meta.placeholder,
        env=meta.env if meta else (),
        required=field_info.is_required(),
        default=_default(field_info),
        value_type=_value_type(field_info.annotation),
        enum_values=tuple(dict.fromkeys(_choices(field_info.annotation))),
        completion=meta and meta.completion,
        override_builtin_alias=bool(meta and meta.override_builtin_alias),
        annotation=field_info.annotation,
        meta=meta,
    )


def _object(model):
    fields = [resolve_field(name, info) for name, info in model.model_fields.items()]
    ordered = [field for field in fields if field.positional] + [field for field in fields if not field.positional]
    return Extraction(ordered, model, "object", unknown_keys=unknown_keys(model), description=describe(model))


def _literal(model, key):
    if key not in model.model_fields:
        raise TypeError(f"discriminated union branch {model.__name__!r} has no {key!r} field")
    return _choices(model.model_fields[key].annotation)


def _display_union(extractions, labels):
    """
    Fields of every branch, first declaration first; each field lists the
    branches declaring it and is required when any of them requires it.
    """
    merged = {}
    for extraction, label in zip(extractions, labels):
        for field in extraction.fields:
            if field.name not in merged:
                merged[field.name] = copy.replace(field, branches=(label,))
            else:
                current = merged[field.name]
                merged[field.name] = copy.replace(
                    current,
                    branches=current.branches + (label,),
                    required=current.required or field.required,
                )
    fields = list(merged.values())
    return [field for field in fields if field.positional] + [field for field in fields if not field.positional]


def _discriminated(schema, key):
    variants = []
    extractions = []
    labels = []
    values = []
    for branch in branches(schema):
        extraction = extract_fields(branch)
        literal = _literal(branch, key)
        value = literal[0] if literal else ""
        values.extend(literal)
        variants.append(Variant(value, extraction.fields, describe(branch), f"{key}={value}"))
        extractions.append(extraction)
        labels.append(f"{key}={value}")
    fields = [
        copy.replace(
            field,
            value_type="enum",
            enum_values=tuple(dict.fromkeys(values)),
            required=True,
        ) if field.name == key else field
        for field in _display_union(extractions, labels)
    ]
    return Extraction(
        fields,
        schema,
        "discriminated",
        unknown_keys=unknown_keys(schema),
        discriminator=key,
        variants=variants,
        description=describe(schema) or _annotated_description(schema),
    )


def _annotated_description(schema):
    for extra in getattr(schema, "__metadata__", ()):
        if isinstance(description := getattr(extra, "description", None), str):
            return description
    return None


def _union(schema, kind):
    variants = []
    extractions = []
    labels = []
    for index, branch in enumerate(branches(schema), 1):
        extraction = extract_fields(branch)
        description = extraction.description
        label = description or f"Variant {index}"
        variants.append(Variant(None, extraction.fields, description, label))
        extractions.append(extraction)
        labels.append(label)
    return Extraction(
        _display_union(extractions, labels),
        schema,
        kind,
        unknown_keys=unknown_keys(schema),
        variants=variants,
        description=describe(schema) or _annotated_description(schema),
    )


def _intersection(schema):
    merged = {}
    for operand in schema.operands:
        for field in extract_fields(operand).fields:
            if (previous := merged.get(field.name)) is None:
                merged[field.name] = field
                continue
            if previous.annotation != field.annotation or previous.meta != field.meta:
                raise ConflictingFieldError(
                    f"field {field.name!r} is declared by several intersected schemas with different definitions",
                    field=field.name,
                )
    if any(not is_model(operand) for operand in schema.operands):
        # one operand is a union: keep its display structure, fields include every operand's
        distributed = extract_fields(schema.schema)
        return Extraction(
            distributed.fields,
            schema.schema,
            distributed.kind,
            unknown_keys=distributed.unknown_keys,
            discriminator=distributed.discriminator,
            variants=distributed.variants,
            description=schema.description or distributed.description,
        )
    fields = list(merged.values())
    ordered = [field for field in fields if field.positional] + [field for field in fields if not field.positional]
    return Extraction(
        ordered,
        schema,
        "intersection",
        unknown_keys=unknown_keys(schema),
        description=schema.description,
    )


def extract_fields(schema, /):
    """
    Flatten a schema into an Extraction.

    Raises
    - TypeError: the schema is not one of the accepted shapes.
    - ConflictingFieldError: intersected operands disagree on a shared key.
    """
    if schema is None:
        return Extraction((), None, "object")
    if is_model(schema):
        return _object(schema)
    if isinstance(schema, AllOf):
        return _intersection(schema)
    if isinstance(schema, OneOf):
        return _union(schema, "xor")
    if (key := discriminator(schema)) is not None:
        return _discriminated(schema, key)
    if is_union(schema) or typing.get_origin(schema) is typing.Annotated:
        return _union(schema, "union")
    raise TypeError(f"extract_fields() cannot flatten {schema!r}")


def validate_fields(extraction, /):
    """
    Run the structural checks of a flattened field list.

    Raises (first problem found)
    - DuplicateFieldError: two fields share a cli_name.
    - DuplicateAliasError: two fields share an alias, or an alias equals another
      field's cli_name.
    - PositionalConfigError: variadic positional not last, more than one variadic,
      a variadic combined with an optional positional, or a required positional
      after an optional one.
    - ReservedAliasError: alias 'h' or 'H' claimed without override_builtin_alias.
    """
    names = {}
    aliases = {}
    for field in extraction.fields:
        if field.cli_name in names and names[field.cli_name] != field.name:
            raise DuplicateFieldError(
                f"fields {names[field.cli_name]!r} and {field.name!r} share the name '--{field.cli_name}'",
                field=field.name,
            )
        names[field.cli_name] = field.name

    for field in extraction.fields:
        if field.alias is None:
            continue
        if field.alias in RESERVED_ALIASES and not field.override_builtin_alias:
            raise ReservedAliasError(
                f"alias '-{field.alias}' of field {field.name!r} is reserved for --{RESERVED_ALIASES[field.alias]};"
                f" set override_builtin_alias=True to claim it",
                field=field.name,
            )
        if field.alias in aliases and aliases[field.alias] != field.name:
            raise DuplicateAliasError(
                f"fields {aliases[field.alias]!r} and {field.name!r} share the alias '-{field.alias}'",
                field=field.name,
            )
        if field.alias in names and names[field.alias] != field.name:
            raise DuplicateAliasError(
                f"alias '-{field.alias}' of field {field.name!r} collides with field {names[field.alias]!r}",
                field=field.name,
            )
        aliases[field.alias] = field.name

    positionals = extraction.positionals
    variadics = [field for field in positionals if field.variadic]
    if len(variadics) > 1:
        raise PositionalConfigError(
            f"only one variadic positional is allowed, found {", ".join(repr(field.name) for field in variadics)}",
            field=variadics[1].name,
        )
    if variadics and positionals[-1] is not variadics[0]:
        raise PositionalConfigError(
            f"variadic positional {variadics[0].name!r} must be the last positional",
            field=variadics[0].name,
        )
    optional = None
    for field in positionals:
        if field.variadic:
            continue
        if not field.required:
            optional = field
        elif optional is not None:
            raise PositionalConfigError(
                f"required positional {field.name!r} cannot follow optional positional {optional.name!r}",
                field=field.name,
            )
    if variadics and optional is not None:
        raise PositionalConfigError(
            f"variadic positional {variadics[0].name!r} cannot be combined with optional positional {optional.name!r}",
            field=variadics[0].name,
        )


def validate_command(command, /, global_args=None):
    """
    Check a whole command tree; lazy subcommands are checked through their stubs.

    Raises
    - CommandDefinitionError: aggregate of every problem, tagged with its path.
    """
    errors = []

    def walk(node, path):
        try:
            extraction = extract_fields(all_of(global_args, node.args))
            validate_fields(extraction)
        except DefinitionError as error:
            errors.append((path, error))
        for name, child in node.children.items():
            walk(getattr(child, "stub", child), path + (name,))

    walk(command, (command.name,))
    if errors:
        raise CommandDefinitionError(errors)


__all__ = (
    "ResolvedField",
    "Extraction",
    "Variant",
    "resolve_field",
    "extract_fields",
    "validate_fields",
    "validate_command",
    "RESERVED_ALIASES",
)
