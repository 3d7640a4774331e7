"""Type descriptors supplied by the host.

A descriptor says what a type looks like (its name, fields and their
types) without saying anything about JSON Schema. The synthesizer turns
descriptors into SchemaNodes.
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field


class PrimitiveType(BaseModel):
    kind: Literal["primitive"] = "primitive"
    name: str  # int, u32, float, str, String, bool, ...


class OptionalType(BaseModel):
    kind: Literal["optional"] = "optional"
    inner: "TypeExpr"


class SequenceType(BaseModel):
    kind: Literal["sequence"] = "sequence"
    inner: "TypeExpr"


class NamedType(BaseModel):
    """A reference by name to a struct or union declared elsewhere."""

    kind: Literal["named"] = "named"
    name: str


class FieldDescriptor(BaseModel):
    name: str
    type: "TypeExpr"
    optional: bool = False


class StructType(BaseModel):
    kind: Literal["struct"] = "struct"
    name: str
    fields: list[FieldDescriptor] = []
    description: str = ""


class VariantDescriptor(BaseModel):
    """One variant of a tagged union; `doc` carries its status annotation."""

    name: str
    fields: list[FieldDescriptor] = []
    doc: str = ""


class UnionType(BaseModel):
    kind: Literal["union"] = "union"
    name: str
    variants: list[VariantDescriptor] = []


TypeExpr = Annotated[
    Union[PrimitiveType, OptionalType, SequenceType, NamedType, StructType, UnionType],
    Field(discriminator="kind"),
]
TypeDescriptor = Annotated[Union[StructType, UnionType], Field(discriminator="kind")]

OptionalType.model_rebuild()
SequenceType.model_rebuild()
FieldDescriptor.model_rebuild()
StructType.model_rebuild()
VariantDescriptor.model_rebuild()
UnionType.model_rebuild()


def prim(name: str) -> PrimitiveType:
    return PrimitiveType(name=name)


def field(name: str, type_: "TypeExpr", optional: bool = False) -> FieldDescriptor:
    return FieldDescriptor(name=name, type=type_, optional=optional)
