"""Type descriptors from annotated Python classes.

Works with dataclasses, pydantic models and plain classes with
annotations. Error unions are classes decorated with `api_error` whose
nested classes are the variants:

    @api_error
    class ApiError:
        class NotFound:
            \"\"\"404: User not found\"\"\"
            id: int

        class Invalid:
            \"\"\"400: Validation failed\"\"\"
            message: str
"""

import collections.abc
import dataclasses
import datetime
import decimal
import enum
import inspect
import types
import typing
import uuid

from apidoc_compiler.errors import SchemaError
from apidoc_compiler.schema.types import (
    FieldDescriptor,
    NamedType,
    OptionalType,
    PrimitiveType,
    SequenceType,
    StructType,
    UnionType,
    VariantDescriptor,
)

API_ERROR_ATTR = "__api_error__"

SCALARS = {
    int: "int",
    float: "float",
    str: "str",
    bool: "bool",
    decimal.Decimal: "decimal",
    datetime.datetime: "str",
    datetime.date: "str",
    uuid.UUID: "str",
}

_SEQUENCES = (list, tuple, set, frozenset, collections.abc.Sequence, collections.abc.Set)


def api_error(cls):
    """Mark a class as a tagged error union."""
    setattr(cls, API_ERROR_ATTR, True)
    return cls


def is_api_error(cls) -> bool:
    return bool(cls.__dict__.get(API_ERROR_ATTR, False))


def describe(cls) -> StructType | UnionType:
    """Build the descriptor for a class (and, recursively, the classes it uses)."""
    return _Describer().describe(cls)


def _own_doc(cls) -> str:
    doc = cls.__dict__.get("__doc__") or ""
    # dataclasses generate "Name(field: type, ...)" when no docstring is given
    if doc.startswith(f"{cls.__name__}("):
        return ""
    return inspect.cleandoc(doc)


def _defaulted(cls, names) -> set[str]:
    """Fields that may be omitted because they carry a default."""
    if dataclasses.is_dataclass(cls):
        return {
            f.name
            for f in dataclasses.fields(cls)
            if f.default is not dataclasses.MISSING or f.default_factory is not dataclasses.MISSING
        }
    model_fields = getattr(cls, "model_fields", None)
    if isinstance(model_fields, dict):
        return {name for name, info in model_fields.items() if not info.is_required()}
    return {name for name in names if hasattr(cls, name)}


class _Describer:
    def __init__(self):
        self._active: set[type] = set()

    def describe(self, cls):
        self._active.add(cls)
        try:
            if is_api_error(cls):
                variants = [v for v in vars(cls).values() if inspect.isclass(v)]
                return UnionType(
                    name=cls.__name__,
                    variants=[
                        VariantDescriptor(name=v.__name__, fields=self._fields(v), doc=_own_doc(v))
                        for v in variants
                    ],
                )
            return StructType(
                name=cls.__name__,
                fields=self._fields(cls),
                description=_own_doc(cls).split("\n\n")[0],
            )
        finally:
            self._active.discard(cls)

    def _fields(self, cls) -> list[FieldDescriptor]:
        model_fields = getattr(cls, "model_fields", None)
        if isinstance(model_fields, dict):
            hints = {name: info.annotation for name, info in model_fields.items()}
        else:
            try:
                hints = typing.get_type_hints(cls)
            except NameError as e:
                raise SchemaError(f"{cls.__name__}: cannot resolve annotation ({e})") from e

        defaulted = _defaulted(cls, hints)
        fields = []
        for name, hint in hints.items():
            if name.startswith("_") or typing.get_origin(hint) is typing.ClassVar:
                continue
            fields.append(
                FieldDescriptor(name=name, type=self.type_expr(hint, cls), optional=name in defaulted)
            )
        return fields

    def type_expr(self, hint, owner):
        if hint in SCALARS:
            return PrimitiveType(name=SCALARS[hint])

        origin = typing.get_origin(hint)
        args = typing.get_args(hint)
        if origin in (typing.Union, types.UnionType):
            inner = [a for a in args if a is not type(None)]
            if len(inner) == 1 and len(args) == 2:
                return OptionalType(inner=self.type_expr(inner[0], owner))
            raise SchemaError(f"{owner.__name__}: unsupported union {hint!r}")
        if origin in _SEQUENCES or hint in _SEQUENCES:
            if not args:
                raise SchemaError(f"{owner.__name__}: sequence {hint!r} needs an item type")
            return SequenceType(inner=self.type_expr(args[0], owner))

        if inspect.isclass(hint):
            if issubclass(hint, enum.Enum):
                return PrimitiveType(name="str")
            if hint in self._active:
                return NamedType(name=hint.__name__)
            return self.describe(hint)
        raise SchemaError(f"{owner.__name__}: unsupported annotation {hint!r}")
