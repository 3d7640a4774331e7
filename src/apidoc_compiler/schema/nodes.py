"""In-memory schema representation and its OpenAPI rendering."""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field

COMPONENTS_PREFIX = "#/components/schemas/"


class PrimitiveNode(BaseModel):
    kind: Literal["primitive"] = "primitive"
    name: Literal["integer", "number", "string", "boolean"]


class OptionalNode(BaseModel):
    """Marks a value that may be absent; it is never rendered as nullable."""

    kind: Literal["optional"] = "optional"
    inner: "SchemaNode"


class ArrayNode(BaseModel):
    kind: Literal["array"] = "array"
    inner: "SchemaNode"


class ObjectField(BaseModel):
    name: str
    schema_: "SchemaNode" = Field(alias="schema")

    model_config = {"populate_by_name": True}


class ObjectNode(BaseModel):
    kind: Literal["object"] = "object"
    fields: list[ObjectField] = []
    description: str = ""
    tag: tuple[str, str] | None = None  # (discriminant property, variant name)


class RefNode(BaseModel):
    kind: Literal["ref"] = "ref"
    name: str


class EnumRefNode(BaseModel):
    """Reference to a registered tagged union."""

    kind: Literal["enum_ref"] = "enum_ref"
    name: str


class UnionNode(BaseModel):
    kind: Literal["union"] = "union"
    variants: list[RefNode] = []
    discriminator: str
    mapping: dict[str, str] = {}  # discriminant value -> component name


SchemaNode = Annotated[
    Union[PrimitiveNode, OptionalNode, ArrayNode, ObjectNode, RefNode, EnumRefNode, UnionNode],
    Field(discriminator="kind"),
]

OptionalNode.model_rebuild()
ArrayNode.model_rebuild()
ObjectField.model_rebuild()
ObjectNode.model_rebuild()


def ref_path(name: str) -> str:
    return f"{COMPONENTS_PREFIX}{name}"


def references(node) -> list[str]:
    """Names of every component schema a node points at, in order."""
    if isinstance(node, (RefNode, EnumRefNode)):
        return [node.name]
    if isinstance(node, (OptionalNode, ArrayNode)):
        return references(node.inner)
    if isinstance(node, ObjectNode):
        return [name for f in node.fields for name in references(f.schema_)]
    if isinstance(node, UnionNode):
        return [v.name for v in node.variants]
    return []


def to_openapi(node) -> dict[str, Any]:
    """Render a SchemaNode as an OpenAPI 3.0 schema object."""
    if isinstance(node, PrimitiveNode):
        return {"type": node.name}
    if isinstance(node, OptionalNode):
        return to_openapi(node.inner)
    if isinstance(node, ArrayNode):
        return {"type": "array", "items": to_openapi(node.inner)}
    if isinstance(node, (RefNode, EnumRefNode)):
        return {"$ref": ref_path(node.name)}
    if isinstance(node, UnionNode):
        return {
            "oneOf": [to_openapi(v) for v in node.variants],
            "discriminator": {
                "propertyName": node.discriminator,
                "mapping": {value: ref_path(name) for value, name in node.mapping.items()},
            },
        }
    if isinstance(node, ObjectNode):
        return _object_to_openapi(node)
    raise TypeError(f"Not a schema node: {node!r}")


def _object_to_openapi(node: ObjectNode) -> dict[str, Any]:
    properties: dict[str, Any] = {}
    required: list[str] = []

    if node.tag is not None:
        prop, value = node.tag
        properties[prop] = {"type": "string", "enum": [value]}
        required.append(prop)

    for f in node.fields:
        properties[f.name] = to_openapi(f.schema_)
        if not isinstance(f.schema_, OptionalNode):
            required.append(f.name)

    schema: dict[str, Any] = {"type": "object"}
    if node.description:
        schema["description"] = node.description
    schema["properties"] = properties
    if required:
        schema["required"] = required
    return schema
