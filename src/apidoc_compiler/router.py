"""Documented router: handler docstrings in, OpenAPI document out."""

import inspect
from typing import Callable

from apidoc_compiler.assembler import OpenAPIDocument, assemble
from apidoc_compiler.config import DEFAULT_PREFIX, AssemblerOptions
from apidoc_compiler.introspect import describe
from apidoc_compiler.registry import RouteEntry, RouteRegistry
from apidoc_compiler.schema.types import NamedType, StructType, UnionType
from apidoc_compiler.serializer import publish_routes


def _descriptor(type_):
    if type_ is None or isinstance(type_, (StructType, UnionType, NamedType)):
        return type_
    if isinstance(type_, str):
        return NamedType(name=type_)
    return describe(type_)


class DocumentedRouter:
    """Collects handlers with their docstrings and declared types.

        router = DocumentedRouter("Users API", "1.0.0")

        @router.get("/users/:id", response=User, error=ApiError)
        def get_user(id: int):
            \"\"\"Get user by id\"\"\"

    The document is assembled on first request and cached; after that the
    router accepts no more routes.
    """

    def __init__(self, title: str, version: str, options: AssemblerOptions | None = None):
        self.title = title
        self.version = version
        self.options = options or AssemblerOptions()
        self.registry = RouteRegistry()
        self.handlers: dict[tuple[str, str], Callable] = {}
        self._document: OpenAPIDocument | None = None

    def add_route(self, method: str, path: str, handler: Callable, *, response=None, error=None, body=None) -> RouteEntry:
        entry = self.registry.register(
            method,
            path,
            inspect.getdoc(handler),
            success_type=_descriptor(response),
            error_type=_descriptor(error),
            request_type=_descriptor(body),
        )
        self.handlers[(entry.method, path)] = handler
        return entry

    def route(self, method: str, path: str, **kwargs):
        def decorator(handler):
            self.add_route(method, path, handler, **kwargs)
            return handler

        return decorator

    def get(self, path: str, **kwargs):
        return self.route("GET", path, **kwargs)

    def post(self, path: str, **kwargs):
        return self.route("POST", path, **kwargs)

    def put(self, path: str, **kwargs):
        return self.route("PUT", path, **kwargs)

    def delete(self, path: str, **kwargs):
        return self.route("DELETE", path, **kwargs)

    def patch(self, path: str, **kwargs):
        return self.route("PATCH", path, **kwargs)

    def add_schema(self, *types) -> None:
        """Register types that documentation refers to only by name."""
        for type_ in types:
            self.registry.register_type(_descriptor(type_))

    def openapi_spec(self) -> OpenAPIDocument:
        if self._document is None:
            self._document = assemble(
                self.title, self.version, self.registry.entries, self.registry.schemas, self.options
            )
            self.registry.freeze()
        return self._document

    def openapi_routes(self, prefix: str = DEFAULT_PREFIX) -> dict[str, tuple[str, str]]:
        """Publishing paths (`/openapi.json`, `/openapi.yaml` by default)."""
        return publish_routes(self.openapi_spec(), prefix)
