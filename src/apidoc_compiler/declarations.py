"""Declaration files: routes and types described in YAML or JSON.

    title: Users API
    version: 1.0.0
    types:
      User:
        fields:
          id: int
          name: str
          email: optional[str]
      ApiError:
        variants:
          NotFound:
            doc: "404: User not found"
            fields:
              id: int
    routes:
      - method: GET
        path: /users/:id
        response: User
        error: ApiError
        doc: |
          Get user
"""

import fnmatch
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ValidationError

from apidoc_compiler.errors import DeclarationError
from apidoc_compiler.registry import RouteRegistry
from apidoc_compiler.schema.synth import PRIMITIVES
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

SEQUENCE_WRAPPERS = ("list", "array", "vec", "sequence")
OPTIONAL_WRAPPERS = ("optional", "option")

_GENERIC_RE = re.compile(r"^(?P<outer>\w+)\[(?P<inner>.+)\]$")
_NAME_RE = re.compile(r"^[A-Za-z_][\w.]*$")


class RouteDeclaration(BaseModel):
    method: str
    path: str
    doc: str = ""
    response: str | None = None
    error: str | None = None
    body: str | None = None


class Declarations(BaseModel):
    title: str = "API"
    version: str = "0.1.0"
    description: str | None = None
    types: dict[str, dict[str, Any]] = {}
    routes: list[RouteDeclaration] = []


def load_declarations(file_path: Path) -> Declarations:
    """Read a YAML or JSON declaration file."""
    text = file_path.read_text(encoding="utf-8")
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise DeclarationError(f"{file_path}: {e}") from e
    if not isinstance(data, dict):
        raise DeclarationError(f"{file_path}: expected a mapping at the top level")

    try:
        return Declarations(**data)
    except ValidationError as e:
        raise DeclarationError(f"{file_path}: {e}") from e


def parse_type_expr(expr: str, resolve):
    """Parse `int`, `str?`, `list[User]`, `optional[str]` into a type descriptor.

    `resolve` maps a type name to its descriptor.
    """
    expr = expr.strip()
    if expr.endswith("?"):
        return OptionalType(inner=parse_type_expr(expr[:-1], resolve))

    match = _GENERIC_RE.match(expr)
    if match:
        outer = match.group("outer").lower()
        inner = parse_type_expr(match.group("inner"), resolve)
        if outer in SEQUENCE_WRAPPERS:
            return SequenceType(inner=inner)
        if outer in OPTIONAL_WRAPPERS:
            return OptionalType(inner=inner)
        raise DeclarationError(f"Unknown type wrapper '{match.group('outer')}' in {expr!r}")

    if expr in PRIMITIVES:
        return PrimitiveType(name=expr)
    if _NAME_RE.match(expr):
        return resolve(expr)
    raise DeclarationError(f"Cannot parse type expression {expr!r}")


class TypeResolver:
    """Builds descriptors for the `types:` section, following references."""

    def __init__(self, types: dict[str, dict[str, Any]]):
        self.types = types
        self._cache: dict[str, StructType | UnionType] = {}
        self._building: set[str] = set()

    def descriptor(self, name: str) -> StructType | UnionType:
        if name in self._cache:
            return self._cache[name]
        spec = self.types.get(name)
        if spec is None:
            raise DeclarationError(f"Unknown type '{name}'")

        self._building.add(name)
        try:
            if "variants" in spec:
                desc = UnionType(name=name, variants=self._variants(name, spec["variants"]))
            else:
                desc = StructType(
                    name=name,
                    description=spec.get("description", ""),
                    fields=self._fields(name, spec.get("fields")),
                )
        finally:
            self._building.discard(name)
        self._cache[name] = desc
        return desc

    def lookup(self, name: str | None):
        return None if name is None else self.descriptor(name)

    def _resolve(self, name: str):
        if name in self._building:
            return NamedType(name=name)
        return self.descriptor(name)

    def _variants(self, owner: str, variants) -> list[VariantDescriptor]:
        if not isinstance(variants, dict):
            raise DeclarationError(f"{owner}: 'variants' must be a mapping")
        result = []
        for vname, vspec in variants.items():
            if vspec is None or isinstance(vspec, str):
                vspec = {"doc": vspec or ""}
            result.append(
                VariantDescriptor(
                    name=vname,
                    doc=str(vspec.get("doc", "")),
                    fields=self._fields(f"{owner}.{vname}", vspec.get("fields")),
                )
            )
        return result

    def _fields(self, owner: str, fields) -> list[FieldDescriptor]:
        if fields is None:
            return []
        if not isinstance(fields, dict):
            raise DeclarationError(f"{owner}: 'fields' must be a mapping")

        result = []
        for fname, spec in fields.items():
            optional = False
            if isinstance(spec, dict):
                optional = bool(spec.get("optional", False))
                spec = spec.get("type")
            if spec is None:
                raise DeclarationError(f"{owner}.{fname}: missing type")
            result.append(
                FieldDescriptor(name=fname, type=parse_type_expr(str(spec), self._resolve), optional=optional)
            )
        return result


def route_matches(method: str, path: str, patterns: tuple[str, ...]) -> bool:
    """Match "GET /users/*" or "/users/*" style patterns."""
    for pattern in patterns:
        parts = pattern.split(None, 1)
        if len(parts) == 2:
            if parts[0].upper() == method.upper() and fnmatch.fnmatchcase(path, parts[1]):
                return True
        elif fnmatch.fnmatchcase(path, pattern):
            return True
    return False


def build_registry(declarations: Declarations, patterns: tuple[str, ...] = ()) -> RouteRegistry:
    """Register every (matching) route, then every declared type."""
    resolver = TypeResolver(declarations.types)
    registry = RouteRegistry()
    for route in declarations.routes:
        if patterns and not route_matches(route.method, route.path, patterns):
            continue
        registry.register(
            route.method,
            route.path,
            route.doc,
            success_type=resolver.lookup(route.response),
            error_type=resolver.lookup(route.error),
            request_type=resolver.lookup(route.body),
        )
    for name in declarations.types:
        registry.register_type(resolver.descriptor(name))
    return registry
