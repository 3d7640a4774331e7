from pathlib import Path

import pytest

from apidoc_compiler.declarations import (
    TypeResolver,
    build_registry,
    load_declarations,
    parse_type_expr,
    route_matches,
)
from apidoc_compiler.errors import DeclarationError
from apidoc_compiler.schema.types import (
    NamedType,
    OptionalType,
    PrimitiveType,
    SequenceType,
    StructType,
    UnionType,
)

FIXTURES = Path(__file__).parent / "fixtures"


def _named(name):
    return NamedType(name=name)


class TestParseTypeExpr:
    def test_primitive(self):
        assert parse_type_expr("u32", _named) == PrimitiveType(name="u32")

    def test_optional_suffix(self):
        assert parse_type_expr("str?", _named) == OptionalType(inner=PrimitiveType(name="str"))

    def test_optional_wrapper(self):
        assert parse_type_expr("Option[User]", _named) == OptionalType(inner=NamedType(name="User"))

    def test_nested_sequence(self):
        assert parse_type_expr("list[vec[int]]", _named) == SequenceType(
            inner=SequenceType(inner=PrimitiveType(name="int"))
        )

    def test_optional_list(self):
        assert parse_type_expr("list[str]?", _named) == OptionalType(
            inner=SequenceType(inner=PrimitiveType(name="str"))
        )

    def test_unknown_wrapper(self):
        with pytest.raises(DeclarationError, match="map"):
            parse_type_expr("map[str]", _named)

    def test_garbage(self):
        with pytest.raises(DeclarationError):
            parse_type_expr("not a type", _named)


class TestTypeResolver:
    def test_struct(self):
        resolver = TypeResolver({"User": {"description": "A user", "fields": {"id": "int", "name": "str"}}})
        desc = resolver.descriptor("User")
        assert isinstance(desc, StructType)
        assert desc.description == "A user"
        assert [f.name for f in desc.fields] == ["id", "name"]

    def test_field_mapping_form(self):
        resolver = TypeResolver({"User": {"fields": {"nick": {"type": "str", "optional": True}}}})
        nick = resolver.descriptor("User").fields[0]
        assert nick.optional is True
        assert nick.type == PrimitiveType(name="str")

    def test_references_are_resolved(self):
        resolver = TypeResolver(
            {
                "User": {"fields": {"address": "Address"}},
                "Address": {"fields": {"city": "str"}},
            }
        )
        address = resolver.descriptor("User").fields[0].type
        assert isinstance(address, StructType)
        assert address.name == "Address"

    def test_cycle_becomes_named_reference(self):
        resolver = TypeResolver({"Category": {"fields": {"parent": "Category?"}}})
        parent = resolver.descriptor("Category").fields[0].type
        assert parent == OptionalType(inner=NamedType(name="Category"))

    def test_union(self):
        resolver = TypeResolver(
            {
                "ApiError": {
                    "variants": {
                        "NotFound": {"doc": "404: Not found", "fields": {"id": "int"}},
                        "Conflict": "409: Already exists",
                        "Internal": None,
                    }
                }
            }
        )
        desc = resolver.descriptor("ApiError")
        assert isinstance(desc, UnionType)
        assert [(v.name, v.doc) for v in desc.variants] == [
            ("NotFound", "404: Not found"),
            ("Conflict", "409: Already exists"),
            ("Internal", ""),
        ]

    def test_unknown_type(self):
        with pytest.raises(DeclarationError, match="Ghost"):
            TypeResolver({}).descriptor("Ghost")

    def test_missing_field_type(self):
        resolver = TypeResolver({"User": {"fields": {"id": {"optional": True}}}})
        with pytest.raises(DeclarationError, match="User.id"):
            resolver.descriptor("User")


class TestLoadDeclarations:
    def test_load_fixture(self):
        decl = load_declarations(FIXTURES / "users.yaml")
        assert decl.title == "User Management API"
        assert decl.version == "1.0.0"
        assert [(r.method, r.path) for r in decl.routes] == [
            ("GET", "/users/:id"),
            ("POST", "/users"),
            ("DELETE", "/users/:id"),
        ]
        assert decl.routes[1].body == "CreateUserRequest"

    def test_json_is_accepted(self, tmp_path):
        path = tmp_path / "api.json"
        path.write_text('{"title": "JSON API", "routes": [{"method": "GET", "path": "/ping", "doc": "Ping"}]}')
        decl = load_declarations(path)
        assert decl.title == "JSON API"
        assert decl.version == "0.1.0"

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("routes: [unclosed")
        with pytest.raises(DeclarationError):
            load_declarations(path)

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- GET /users\n")
        with pytest.raises(DeclarationError, match="mapping"):
            load_declarations(path)

    def test_route_needs_path(self, tmp_path):
        path = tmp_path / "route.yaml"
        path.write_text("routes:\n  - method: GET\n")
        with pytest.raises(DeclarationError):
            load_declarations(path)


class TestRouteFilter:
    def test_method_and_path(self):
        assert route_matches("GET", "/users/:id", ("GET /users/*",))
        assert not route_matches("POST", "/users/:id", ("GET /users/*",))

    def test_path_only(self):
        assert route_matches("DELETE", "/users/:id", ("/users/*",))

    def test_method_is_case_insensitive(self):
        assert route_matches("GET", "/users", ("get /users",))

    def test_build_registry_filters_routes(self):
        decl = load_declarations(FIXTURES / "users.yaml")
        registry = build_registry(decl, ("GET /users/*",))
        assert [(e.method, e.path_template) for e in registry] == [("GET", "/users/:id")]
        assert "ValidationBody" in registry.schemas

    def test_build_registry(self):
        registry = build_registry(load_declarations(FIXTURES / "users.yaml"))
        assert len(registry) == 3
        assert list(dict(registry.schemas.items())) == [
            "Address",
            "User",
            "ApiError.UserNotFound",
            "ApiError.ValidationError",
            "ApiError.DatabaseError",
            "ApiError",
            "CreateUserRequest",
            "ValidationBody",
        ]
