"""JSON and YAML rendering of assembled documents."""

import json

import yaml

from apidoc_compiler.assembler import OpenAPIDocument
from apidoc_compiler.config import DEFAULT_PREFIX

JSON_MEDIA_TYPE = "application/json"
YAML_MEDIA_TYPE = "application/yaml"


def to_json(document: OpenAPIDocument) -> str:
    return json.dumps(document.to_dict(), indent=2, ensure_ascii=False)


def to_yaml(document: OpenAPIDocument) -> str:
    return yaml.safe_dump(document.to_dict(), sort_keys=False, allow_unicode=True)


def render(document: OpenAPIDocument, fmt: str) -> str:
    """Render as 'json' or 'yaml'."""
    if fmt == "json":
        return to_json(document)
    if fmt == "yaml":
        return to_yaml(document)
    raise ValueError(f"Unknown output format: {fmt}")


def normalize_prefix(prefix: str) -> str:
    """Ensure a leading slash and no trailing slash: 'api/docs/' -> '/api/docs'."""
    trimmed = prefix.strip().strip("/")
    if not trimmed:
        raise ValueError(f"Invalid publishing prefix: {prefix!r}")
    return f"/{trimmed}"


def publish_routes(document: OpenAPIDocument, prefix: str = DEFAULT_PREFIX) -> dict[str, tuple[str, str]]:
    """Paths a host should serve the document on, with media type and body.

    The default prefix gives `/openapi.json` and `/openapi.yaml`; a custom
    prefix replaces `/openapi` entirely.
    """
    base = normalize_prefix(prefix)
    return {
        f"{base}.json": (JSON_MEDIA_TYPE, to_json(document)),
        f"{base}.yaml": (YAML_MEDIA_TYPE, to_yaml(document)),
    }
