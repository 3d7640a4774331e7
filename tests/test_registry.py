import threading

import pytest
from pydantic import ValidationError

from apidoc_compiler.errors import DeclarationError, DuplicateRouteError, RegistryFrozenError, SchemaError
from apidoc_compiler.parser.base import EndpointDoc
from apidoc_compiler.registry import RouteRegistry, openapi_path, path_params, path_segments
from apidoc_compiler.schema.types import NamedType, StructType, UnionType, field, prim

USER = StructType(name="User", fields=[field("id", prim("u32")), field("name", prim("str"))])


class TestPathTemplates:
    def test_colon_and_brace_params_are_equivalent(self):
        assert path_segments("/users/:id") == path_segments("/users/{id}")

    def test_trailing_slash_ignored(self):
        assert path_segments("/users/") == path_segments("/users")

    def test_path_params(self):
        assert path_params("/orgs/:org/users/{id}") == ["org", "id"]

    def test_openapi_path(self):
        assert openapi_path("/users/:id") == "/users/{id}"
        assert openapi_path("/users/{id}/posts") == "/users/{id}/posts"
        assert openapi_path("/") == "/"


class TestRegister:
    def test_register_parses_raw_doc(self):
        registry = RouteRegistry()
        entry = registry.register("GET", "/users/:id", "Get user\n\n# Responses\n- 200: OK")
        assert entry.doc.summary == "Get user"
        assert list(entry.doc.responses) == [200]

    def test_register_accepts_parsed_doc(self):
        registry = RouteRegistry()
        doc = EndpointDoc(summary="List users")
        assert registry.register("GET", "/users", doc).doc is doc

    def test_missing_doc(self):
        entry = RouteRegistry().register("GET", "/health")
        assert entry.doc.summary == ""

    def test_method_is_normalized(self):
        entry = RouteRegistry().register("get", "/users")
        assert entry.method == "GET"

    def test_unknown_method(self):
        with pytest.raises(DeclarationError, match="FETCH"):
            RouteRegistry().register("FETCH", "/users")

    def test_types_are_synthesized_eagerly(self):
        registry = RouteRegistry()
        entry = registry.register("GET", "/users/:id", "Get user", success_type=USER)
        assert entry.success_schema_ref == "User"
        assert "User" in registry.schemas

    def test_named_type_is_not_synthesized(self):
        registry = RouteRegistry()
        entry = registry.register("GET", "/users/:id", "Get user", success_type=NamedType(name="User"))
        assert entry.success_schema_ref == "User"
        assert "User" not in registry.schemas

    def test_schema_error_leaves_route_unregistered(self):
        registry = RouteRegistry()
        bad = StructType(
            name="Bad",
            fields=[
                field("address", StructType(name="Address", fields=[field("street", prim("str"))])),
                field("x", prim("Mystery")),
            ],
        )
        with pytest.raises(SchemaError, match="GET /bad"):
            registry.register("GET", "/bad", "Bad", success_type=bad)
        assert len(registry) == 0
        assert len(registry.schemas) == 0
        registry.register("GET", "/bad", "Bad")
        assert len(registry) == 1

    def test_failing_error_type_rolls_back_success_type(self):
        registry = RouteRegistry()
        broken = UnionType(name="ApiError", variants=[])
        with pytest.raises(SchemaError):
            registry.register("GET", "/users/:id", "Get user", success_type=USER, error_type=broken)
        assert "User" not in registry.schemas
        assert registry.schemas.conflicts == []

    def test_failing_register_type_rolls_back(self):
        registry = RouteRegistry()
        bad = StructType(
            name="Order",
            fields=[field("buyer", USER), field("total", prim("Money"))],
        )
        with pytest.raises(SchemaError):
            registry.register_type(bad)
        assert len(registry.schemas) == 0

    def test_route_types_must_be_named(self):
        with pytest.raises(SchemaError):
            RouteRegistry().register("GET", "/count", "Count", success_type=prim("int"))

    def test_entries_are_immutable(self):
        entry = RouteRegistry().register("GET", "/users")
        with pytest.raises(ValidationError):
            entry.method = "POST"

    def test_insertion_order(self):
        registry = RouteRegistry()
        registry.register("GET", "/b")
        registry.register("GET", "/a")
        registry.register("POST", "/b")
        assert [(e.method, e.path_template) for e in registry] == [("GET", "/b"), ("GET", "/a"), ("POST", "/b")]


class TestDuplicates:
    def test_same_method_and_path(self):
        registry = RouteRegistry()
        registry.register("GET", "/users/:id", "Get user")
        with pytest.raises(DuplicateRouteError) as exc_info:
            registry.register("GET", "/users/:id", "Get user again")
        assert exc_info.value.method == "GET"
        assert exc_info.value.path == "/users/:id"
        assert len(registry) == 1

    def test_colon_and_brace_forms_collide(self):
        registry = RouteRegistry()
        registry.register("GET", "/users/:id")
        with pytest.raises(DuplicateRouteError):
            registry.register("GET", "/users/{id}")

    def test_parameter_name_is_significant(self):
        registry = RouteRegistry()
        registry.register("GET", "/users/:id")
        registry.register("GET", "/users/:name")
        assert len(registry) == 2

    def test_different_methods(self):
        registry = RouteRegistry()
        registry.register("GET", "/users")
        registry.register("POST", "/users")
        assert len(registry) == 2

    def test_concurrent_registration(self):
        registry = RouteRegistry()
        failures = []

        def register():
            try:
                registry.register("GET", "/users/:id", "Get user")
            except DuplicateRouteError as e:
                failures.append(e)

        threads = [threading.Thread(target=register) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(registry) == 1
        assert len(failures) == 7


class TestFreeze:
    def test_register_after_freeze(self):
        registry = RouteRegistry()
        registry.register("GET", "/users")
        registry.freeze()
        with pytest.raises(RegistryFrozenError):
            registry.register("POST", "/users")

    def test_register_type_after_freeze(self):
        registry = RouteRegistry()
        registry.freeze()
        with pytest.raises(RegistryFrozenError):
            registry.register_type(USER)
