import json

import pytest
import yaml

from apidoc_compiler.assembler import assemble
from apidoc_compiler.registry import RouteRegistry
from apidoc_compiler.schema.types import StructType, field, prim
from apidoc_compiler.serializer import normalize_prefix, publish_routes, render, to_json, to_yaml


@pytest.fixture
def document():
    registry = RouteRegistry()
    user = StructType(name="User", fields=[field("id", prim("int")), field("name", prim("str"))])
    registry.register("GET", "/users/:id", "Get user\n\n# Parameters\n- id (path): Identifiant", success_type=user)
    return assemble("Users API", "1.0.0", registry.entries, registry.schemas)


class TestRender:
    def test_json(self, document):
        parsed = json.loads(to_json(document))
        assert parsed == document.to_dict()

    def test_json_keeps_non_ascii(self, document):
        assert "Identifiant" in to_json(document)
        registry = RouteRegistry()
        registry.register("GET", "/cafe", "Café menu")
        assert "Café menu" in to_json(assemble("T", "1", registry.entries, registry.schemas))

    def test_yaml(self, document):
        text = to_yaml(document)
        assert text.startswith("openapi: 3.0.3")
        assert yaml.safe_load(text) == document.to_dict()

    def test_yaml_keeps_key_order(self, document):
        keys = [line.split(":")[0] for line in to_yaml(document).splitlines() if not line.startswith(" ")]
        assert keys == ["openapi", "info", "paths", "components"]

    def test_render_dispatch(self, document):
        assert render(document, "json") == to_json(document)
        assert render(document, "yaml") == to_yaml(document)

    def test_render_unknown_format(self, document):
        with pytest.raises(ValueError, match="toml"):
            render(document, "toml")


class TestPublishing:
    def test_default_prefix(self, document):
        routes = publish_routes(document)
        assert list(routes) == ["/openapi.json", "/openapi.yaml"]
        assert routes["/openapi.json"] == ("application/json", to_json(document))
        assert routes["/openapi.yaml"][0] == "application/yaml"

    def test_custom_prefix(self, document):
        assert list(publish_routes(document, "/api/docs")) == ["/api/docs.json", "/api/docs.yaml"]

    @pytest.mark.parametrize(
        "prefix,expected",
        [("api/docs", "/api/docs"), ("/api/docs/", "/api/docs"), ("/spec", "/spec")],
    )
    def test_normalize_prefix(self, prefix, expected):
        assert normalize_prefix(prefix) == expected

    @pytest.mark.parametrize("prefix", ["", "/", "  "])
    def test_empty_prefix(self, prefix):
        with pytest.raises(ValueError):
            normalize_prefix(prefix)
