"""Route registry: accumulates documented routes during declaration."""

import logging
import threading

from pydantic import BaseModel, ConfigDict

from apidoc_compiler.config import HTTP_METHODS
from apidoc_compiler.errors import DeclarationError, DuplicateRouteError, RegistryFrozenError, SchemaError
from apidoc_compiler.parser.base import EndpointDoc
from apidoc_compiler.parser.comment import parse_doc
from apidoc_compiler.schema.synth import SchemaSynthesizer, SchemaTable
from apidoc_compiler.schema.types import NamedType, StructType, UnionType

logger = logging.getLogger(__name__)


class RouteEntry(BaseModel):
    """One registered route. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    method: str
    path_template: str
    doc: EndpointDoc
    success_schema_ref: str | None = None
    error_schema_ref: str | None = None
    request_schema_ref: str | None = None


def path_segments(path: str) -> tuple[tuple[str, str], ...]:
    """Structural form of a path template.

    `:id` and `{id}` are both the parameter `id`; everything else is a
    literal segment.
    """
    segments = []
    for seg in path.strip("/").split("/"):
        if not seg:
            continue
        if seg.startswith(":"):
            segments.append(("param", seg[1:]))
        elif seg.startswith("{") and seg.endswith("}"):
            segments.append(("param", seg[1:-1]))
        else:
            segments.append(("literal", seg))
    return tuple(segments)


def path_params(path: str) -> list[str]:
    return [name for kind, name in path_segments(path) if kind == "param"]


def openapi_path(path: str) -> str:
    """`/users/:id` -> `/users/{id}`"""
    parts = [f"{{{name}}}" if kind == "param" else name for kind, name in path_segments(path)]
    return "/" + "/".join(parts)


class RouteRegistry:
    """Holds route entries and the schema table for one declaration phase.

    `register` is serialized by a lock. Once frozen (after assembly) the
    registry rejects new routes.
    """

    def __init__(self, schemas: SchemaTable | None = None):
        self.schemas = schemas if schemas is not None else SchemaTable()
        self.synthesizer = SchemaSynthesizer(self.schemas)
        self._entries: list[RouteEntry] = []
        self._keys: set = set()
        self._lock = threading.Lock()
        self.frozen = False

    def register(
        self,
        method: str,
        path_template: str,
        doc: EndpointDoc | str | None = None,
        success_type=None,
        error_type=None,
        request_type=None,
    ) -> RouteEntry:
        """Register a route; raises DuplicateRouteError for a repeated (method, path)."""
        method = method.upper()
        if method not in HTTP_METHODS:
            raise DeclarationError(f"Unsupported HTTP method '{method}'")
        if not isinstance(doc, EndpointDoc):
            doc = parse_doc(doc)

        with self._lock:
            if self.frozen:
                raise RegistryFrozenError(f"Cannot register {method} {path_template}: registry is frozen")

            key = (method, path_segments(path_template))
            if key in self._keys:
                raise DuplicateRouteError(method, path_template)

            # a failed synthesis leaves the schema table as it was
            with self.synthesizer.staged():
                entry = RouteEntry(
                    method=method,
                    path_template=path_template,
                    doc=doc,
                    success_schema_ref=self._synthesize(success_type, method, path_template),
                    error_schema_ref=self._synthesize(error_type, method, path_template),
                    request_schema_ref=self._synthesize(request_type, method, path_template),
                )
            self._keys.add(key)
            self._entries.append(entry)

        logger.debug("Registered %s %s", method, path_template)
        return entry

    def register_type(self, descriptor) -> None:
        """Register a type that routes only reference by name (`schema: Name`)."""
        with self._lock:
            if self.frozen:
                raise RegistryFrozenError(f"Cannot register type {descriptor.name}: registry is frozen")
            with self.synthesizer.staged():
                self.synthesizer.synthesize(descriptor)

    def _synthesize(self, descriptor, method: str, path: str) -> str | None:
        if descriptor is None:
            return None
        if isinstance(descriptor, NamedType):
            return descriptor.name
        if not isinstance(descriptor, (StructType, UnionType)):
            raise SchemaError(f"{method} {path}: route types must be named structs or unions")
        try:
            self.synthesizer.synthesize(descriptor)
        except SchemaError as e:
            raise SchemaError(f"{method} {path}: {e}") from e
        return descriptor.name

    def freeze(self) -> None:
        with self._lock:
            self.frozen = True
            self.schemas.freeze()

    @property
    def entries(self) -> tuple[RouteEntry, ...]:
        return tuple(self._entries)

    def __iter__(self):
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self._entries)
