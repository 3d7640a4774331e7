"""Schema table and type schema synthesizer."""

import logging
from contextlib import contextmanager

from apidoc_compiler.errors import RegistryFrozenError, SchemaError
from apidoc_compiler.schema.nodes import (
    ArrayNode,
    EnumRefNode,
    ObjectField,
    ObjectNode,
    OptionalNode,
    PrimitiveNode,
    RefNode,
)
from apidoc_compiler.schema.types import (
    FieldDescriptor,
    NamedType,
    OptionalType,
    PrimitiveType,
    SequenceType,
    StructType,
    UnionType,
)

logger = logging.getLogger(__name__)

PRIMITIVES = {
    "integer": "integer",
    "int": "integer",
    "i8": "integer",
    "i16": "integer",
    "i32": "integer",
    "i64": "integer",
    "u8": "integer",
    "u16": "integer",
    "u32": "integer",
    "u64": "integer",
    "isize": "integer",
    "usize": "integer",
    "number": "number",
    "float": "number",
    "f32": "number",
    "f64": "number",
    "decimal": "number",
    "string": "string",
    "str": "string",
    "String": "string",
    "char": "string",
    "boolean": "boolean",
    "bool": "boolean",
}


class SchemaTable:
    """Name-keyed registry of component schemas for one declaration phase.

    The first definition of a name wins; a structurally different later
    definition is recorded in `conflicts` and reported at assembly time.
    """

    def __init__(self):
        self._schemas: dict = {}
        self._error_responses: dict[str, dict] = {}
        self.conflicts: list[str] = []
        self.warnings: list[str] = []
        self.frozen = False

    def register(self, name: str, node) -> None:
        self._check_writable()
        existing = self._schemas.get(name)
        if existing is None:
            self._schemas[name] = node
        elif existing != node:
            self.record_conflict(name, "registered with two different shapes")

    def set_error_responses(self, union_name: str, responses: dict) -> None:
        self._check_writable()
        existing = self._error_responses.get(union_name)
        if existing is None:
            self._error_responses[union_name] = responses
        elif existing != responses:
            self.record_conflict(union_name, "declared with two different status maps")

    def record_conflict(self, name: str, reason: str) -> None:
        logger.warning("Schema '%s' %s", name, reason)
        if name not in self.conflicts:
            self.conflicts.append(name)

    def snapshot(self) -> tuple:
        return (
            dict(self._schemas),
            dict(self._error_responses),
            list(self.conflicts),
            list(self.warnings),
        )

    def restore(self, state: tuple) -> None:
        schemas, error_responses, conflicts, warnings = state
        self._schemas = dict(schemas)
        self._error_responses = dict(error_responses)
        self.conflicts = list(conflicts)
        self.warnings = list(warnings)

    def error_responses(self, name: str) -> dict | None:
        return self._error_responses.get(name)

    def get(self, name: str):
        return self._schemas.get(name)

    def items(self):
        return self._schemas.items()

    def freeze(self) -> None:
        self.frozen = True

    def _check_writable(self) -> None:
        if self.frozen:
            raise RegistryFrozenError("Schema table is frozen; the document was already assembled")

    def __contains__(self, name: str) -> bool:
        return name in self._schemas

    def __len__(self) -> int:
        return len(self._schemas)


class SchemaSynthesizer:
    """Converts type descriptors into SchemaNodes, registering named types."""

    def __init__(self, table: SchemaTable):
        self.table = table
        self._seen: dict[str, object] = {}
        self._in_progress: dict[str, object] = {}

    def synthesize(self, descriptor):
        """Return the SchemaNode for a descriptor.

        Structs and unions are registered in the table and come back as
        references; everything else is returned inline.
        """
        if isinstance(descriptor, PrimitiveType):
            canonical = PRIMITIVES.get(descriptor.name)
            if canonical is None:
                raise SchemaError(f"Unknown primitive type '{descriptor.name}'")
            return PrimitiveNode(name=canonical)
        if isinstance(descriptor, OptionalType):
            return OptionalNode(inner=self._strip_optional(self.synthesize(descriptor.inner)))
        if isinstance(descriptor, SequenceType):
            return ArrayNode(inner=self._strip_optional(self.synthesize(descriptor.inner)))
        if isinstance(descriptor, NamedType):
            # resolved lazily: the named type may be declared later
            return RefNode(name=descriptor.name)
        if isinstance(descriptor, StructType):
            return self._named(descriptor, RefNode, self._build_struct)
        if isinstance(descriptor, UnionType):
            # imported here: the extractor synthesizes variant fields through us
            from apidoc_compiler.schema.variants import build_union

            return self._named(descriptor, EnumRefNode, lambda d: build_union(d, self))
        raise SchemaError(f"Not a type descriptor: {descriptor!r}")

    def object_fields(self, fields: list[FieldDescriptor]) -> list[ObjectField]:
        result = []
        names = set()
        for f in fields:
            if f.name in names:
                raise SchemaError(f"Duplicate field '{f.name}'")
            names.add(f.name)
            node = self.synthesize(f.type)
            if f.optional and not isinstance(node, OptionalNode):
                node = OptionalNode(inner=node)
            result.append(ObjectField(name=f.name, schema=node))
        return result

    @contextmanager
    def staged(self):
        """Undo every registration made inside the block if it raises."""
        state = self.table.snapshot()
        seen = dict(self._seen)
        try:
            yield self
        except Exception:
            self.table.restore(state)
            self._seen = seen
            raise

    def _named(self, descriptor, ref_cls, build):
        name = descriptor.name
        ref = ref_cls(name=name)
        if name in self._in_progress:
            if self._in_progress[name] != descriptor:
                self.table.record_conflict(name, "nested inside itself with a different shape")
            return ref
        if self._seen.get(name) == descriptor:
            return ref

        self._in_progress[name] = descriptor
        try:
            node = build(descriptor)
        finally:
            del self._in_progress[name]

        if name not in self._seen:
            self._seen[name] = descriptor
        self.table.register(name, node)
        return ref

    def _build_struct(self, descriptor: StructType) -> ObjectNode:
        try:
            fields = self.object_fields(descriptor.fields)
        except SchemaError as e:
            raise SchemaError(f"{descriptor.name}: {e}") from e
        return ObjectNode(fields=fields, description=descriptor.description)

    @staticmethod
    def _strip_optional(node):
        return node.inner if isinstance(node, OptionalNode) else node
