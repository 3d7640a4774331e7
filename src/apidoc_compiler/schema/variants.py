"""Error-variant extraction for tagged-union error types.

Each variant of an error union carries a doc line such as
"404: User not found". The extractor reads the status code from it,
registers the variant as a tagged object schema and groups the variants
by status code for automatic error responses.
"""

import logging
import re
from http import HTTPStatus

from pydantic import BaseModel

from apidoc_compiler.config import DEFAULT_ERROR_STATUS, DISCRIMINATOR_FIELD
from apidoc_compiler.errors import SchemaError
from apidoc_compiler.schema.nodes import ObjectField, ObjectNode, RefNode, UnionNode
from apidoc_compiler.schema.types import UnionType

logger = logging.getLogger(__name__)

_STATUS_RE = re.compile(r"\d+")


class ErrorVariant(BaseModel):
    status_code: int
    variant_name: str
    description: str = ""
    fields: list[ObjectField] = []


class ErrorResponse(BaseModel):
    """Everything known about one status code of an error union."""

    status_code: int
    description: str
    schemas: list[RefNode]  # alternatives, one per variant


def parse_status(doc: str) -> tuple[int | None, str]:
    """Split "404: User not found" into (404, "User not found")."""
    lines = doc.strip().splitlines()
    line = lines[0].strip() if lines else ""
    match = _STATUS_RE.search(line)
    if match is None:
        return None, line
    rest = line[match.end():].strip()
    if rest.startswith((":", "-")):
        rest = rest[1:].strip()
    return int(match.group()), rest


def _reason(status: int) -> str:
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return ""


def variant_schema_name(union_name: str, variant_name: str) -> str:
    return f"{union_name}.{variant_name}"


def error_variants(union: UnionType, synthesizer) -> list[ErrorVariant]:
    variants = []
    for v in union.variants:
        status, description = parse_status(v.doc)
        if status is None or not 100 <= status <= 599:
            message = (
                f"{union.name}.{v.name} has no valid status annotation, "
                f"defaulting to {DEFAULT_ERROR_STATUS}"
            )
            logger.warning(message)
            synthesizer.table.warnings.append(message)
            status = DEFAULT_ERROR_STATUS
        if not description:
            description = _reason(status)

        try:
            fields = synthesizer.object_fields(v.fields)
        except SchemaError as e:
            raise SchemaError(f"{union.name}.{v.name}: {e}") from e
        if any(f.name == DISCRIMINATOR_FIELD for f in fields):
            raise SchemaError(
                f"{union.name}.{v.name}: field '{DISCRIMINATOR_FIELD}' clashes with the variant discriminant"
            )

        variants.append(
            ErrorVariant(status_code=status, variant_name=v.name, description=description, fields=fields)
        )
    return variants


def build_union(union: UnionType, synthesizer) -> UnionNode:
    """Register every variant schema and the per-status map; return the union body."""
    if not union.variants:
        raise SchemaError(f"Union '{union.name}' has no variants")
    names = [v.name for v in union.variants]
    if len(set(names)) != len(names):
        raise SchemaError(f"Union '{union.name}' has duplicate variant names")

    refs = []
    mapping: dict[str, str] = {}
    responses: dict[int, ErrorResponse] = {}
    for variant in error_variants(union, synthesizer):
        name = variant_schema_name(union.name, variant.variant_name)
        synthesizer.table.register(
            name,
            ObjectNode(
                fields=variant.fields,
                description=variant.description,
                tag=(DISCRIMINATOR_FIELD, variant.variant_name),
            ),
        )
        ref = RefNode(name=name)
        refs.append(ref)
        mapping[variant.variant_name] = name

        entry = responses.get(variant.status_code)
        if entry is None:
            responses[variant.status_code] = ErrorResponse(
                status_code=variant.status_code,
                description=variant.description,
                schemas=[ref],
            )
        else:
            entry.schemas.append(ref)
            entry.description = f"{entry.description}; {variant.description}"

    synthesizer.table.set_error_responses(union.name, responses)
    return UnionNode(variants=refs, discriminator=DISCRIMINATOR_FIELD, mapping=mapping)


def extract_error_responses(union: UnionType, synthesizer) -> dict[int, ErrorResponse]:
    """Map status code -> description and alternative schemas for an error union."""
    synthesizer.synthesize(union)
    return synthesizer.table.error_responses(union.name) or {}
