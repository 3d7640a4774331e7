"""Document assembler.

Merges registered routes and the schema table into one OpenAPI document.
`assemble` is a pure function of its arguments: the same routes and
schemas, declared in the same order, give the same document.
"""

import copy
import logging
import re
from typing import Any, Iterable

from pydantic import BaseModel, ConfigDict

from apidoc_compiler.config import DEFAULT_ERROR_STATUS, SUCCESS_STATUS, AssemblerOptions
from apidoc_compiler.errors import SchemaConflictError, UnresolvedSchemaError
from apidoc_compiler.parser.base import ElaborateResponse, ResponseExample
from apidoc_compiler.registry import RouteEntry, openapi_path, path_params, path_segments
from apidoc_compiler.schema.nodes import RefNode, SchemaNode, ref_path, references, to_openapi
from apidoc_compiler.schema.synth import SchemaTable
from apidoc_compiler.schema.variants import ErrorResponse

logger = logging.getLogger(__name__)


class Info(BaseModel):
    title: str
    version: str
    description: str | None = None


class OpenAPIDocument(BaseModel):
    """An assembled document. Frozen; render it with `to_dict`."""

    model_config = ConfigDict(frozen=True)

    openapi: str
    info: Info
    paths: dict[str, dict[str, dict[str, Any]]]
    schemas: dict[str, SchemaNode]
    warnings: list[str] = []

    def to_dict(self) -> dict[str, Any]:
        info: dict[str, Any] = {"title": self.info.title, "version": self.info.version}
        if self.info.description:
            info["description"] = self.info.description
        return {
            "openapi": self.openapi,
            "info": info,
            "paths": copy.deepcopy(self.paths),
            "components": {
                "schemas": {name: to_openapi(node) for name, node in self.schemas.items()},
            },
        }


def assemble(
    title: str,
    version: str,
    routes: Iterable[RouteEntry],
    schemas: SchemaTable,
    options: AssemblerOptions | None = None,
) -> OpenAPIDocument:
    """Build the OpenAPI document.

    Raises SchemaConflictError when a schema name has two shapes and
    UnresolvedSchemaError when anything references an unknown schema.
    """
    options = options or AssemblerOptions()
    if schemas.conflicts:
        raise SchemaConflictError(schemas.conflicts[0])

    for name, node in schemas.items():
        for target in references(node):
            if target not in schemas:
                raise UnresolvedSchemaError(target, f"Schema '{name}'")

    warnings = list(schemas.warnings)
    paths: dict[str, dict[str, dict[str, Any]]] = {}
    for entry in routes:
        builder = _OperationBuilder(entry, schemas, options, warnings)
        paths.setdefault(openapi_path(entry.path_template), {})[entry.method.lower()] = builder.build()

    return OpenAPIDocument(
        openapi=options.openapi_version,
        info=Info(title=title, version=version, description=options.description),
        paths=paths,
        schemas=dict(schemas.items()),
        warnings=warnings,
    )


def operation_id(method: str, path: str) -> str:
    parts = []
    for kind, name in path_segments(path):
        name = re.sub(r"\W+", "_", name)
        parts.append(f"by_{name}" if kind == "param" else name)
    return f"{method.lower()}_{'_'.join(parts) or 'root'}"


def _slug(title: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")


class _OperationBuilder:
    def __init__(self, entry: RouteEntry, schemas: SchemaTable, options: AssemblerOptions, warnings: list[str]):
        self.entry = entry
        self.doc = entry.doc
        self.schemas = schemas
        self.options = options
        self.warnings = warnings
        self.route = f"{entry.method} {entry.path_template}"

    def build(self) -> dict[str, Any]:
        op: dict[str, Any] = {"operationId": operation_id(self.entry.method, self.entry.path_template)}
        if self.doc.summary:
            op["summary"] = self.doc.summary
        else:
            self._warn("no summary documented")
            op["summary"] = self.route
        if self.doc.description:
            op["description"] = self.doc.description

        params = self._parameters()
        if params:
            op["parameters"] = params
        body = self._request_body()
        if body is not None:
            op["requestBody"] = body
        op["responses"] = self._responses()

        for title, text in self.doc.extensions.items():
            op[f"x-{_slug(title)}"] = text
        return op

    def _warn(self, message: str) -> None:
        message = f"{self.route}: {message}"
        logger.warning(message)
        self.warnings.append(message)

    def _ref(self, name: str) -> dict[str, str]:
        if name not in self.schemas:
            raise UnresolvedSchemaError(name, f"Route {self.route}")
        return {"$ref": ref_path(name)}

    def _parameters(self) -> list[dict[str, Any]]:
        template_params = path_params(self.entry.path_template)
        params = []
        for p in self.doc.parameters:
            if p.location == "path" and p.name not in template_params:
                self._warn(f"documented path parameter '{p.name}' is not in the path")
                continue
            param: dict[str, Any] = {"name": p.name, "in": p.location}
            if p.description:
                param["description"] = p.description
            param["required"] = p.location == "path"
            param["schema"] = {"type": "string"}
            params.append(param)

        for name in template_params:
            if self.doc.param(name, "path") is None:
                self._warn(f"path parameter '{name}' is not documented")
                params.append({"name": name, "in": "path", "required": True, "schema": {"type": "string"}})
        return params

    def _request_body(self) -> dict[str, Any] | None:
        doc = self.doc.request_body
        schema_name = (doc.schema_ref if doc else None) or self.entry.request_schema_ref
        if doc is None and schema_name is None:
            return None

        content_type = doc.content_type if doc else self.options.default_content_type
        schema = self._ref(schema_name) if schema_name else {"type": "object"}
        body: dict[str, Any] = {}
        if doc and doc.description:
            body["description"] = doc.description
        body["content"] = {content_type: {"schema": schema}}
        body["required"] = True
        return body

    def _error_map(self) -> dict[int, ErrorResponse]:
        name = self.entry.error_schema_ref
        if name is None:
            return {}
        errors = self.schemas.error_responses(name)
        if errors is not None:
            return errors
        # a plain struct error type has no per-variant status codes
        return {
            DEFAULT_ERROR_STATUS: ErrorResponse(
                status_code=DEFAULT_ERROR_STATUS, description=f"{name} error", schemas=[RefNode(name=name)]
            )
        }

    def _error_schema(self, error: ErrorResponse) -> dict[str, Any]:
        refs = [self._ref(r.name) for r in error.schemas]
        return refs[0] if len(refs) == 1 else {"oneOf": refs}

    def _inferred_schema(self, status: int, errors: dict[int, ErrorResponse]) -> dict[str, Any] | None:
        success = self.entry.success_schema_ref
        if 200 <= status < 300 and success:
            return self._ref(success)
        if status in errors:
            return self._error_schema(errors[status])
        return None

    def _responses(self) -> dict[str, Any]:
        errors = self._error_map()
        default_type = self.options.default_content_type
        responses: dict[str, Any] = {}

        for status, doc in self.doc.responses.items():
            if isinstance(doc, ElaborateResponse):
                schema = self._ref(doc.schema_ref) if doc.schema_ref else self._inferred_schema(status, errors)
                responses[str(status)] = _response(doc.description, doc.content_type, schema, doc.examples)
            else:
                schema = self._inferred_schema(status, errors)
                responses[str(status)] = _response(doc.description, default_type, schema)

        success = self.entry.success_schema_ref
        if success and not any(200 <= s < 300 for s in self.doc.responses):
            responses[str(SUCCESS_STATUS)] = _response(
                f"Successfully returned {success}", default_type, self._ref(success)
            )

        for status, error in errors.items():
            if status not in self.doc.responses:
                responses[str(status)] = _response(
                    f"{self.entry.error_schema_ref} error", default_type, self._error_schema(error)
                )

        if not responses:
            self._warn("no responses documented or inferred")
        return responses


def _response(
    description: str,
    content_type: str,
    schema: dict[str, Any] | None,
    examples: list[ResponseExample] | None = None,
) -> dict[str, Any]:
    response: dict[str, Any] = {"description": description}
    if schema is None and not examples:
        return response

    media: dict[str, Any] = {}
    if schema is not None:
        media["schema"] = schema
    if examples:
        media["examples"] = {
            ex.name: {"summary": ex.summary, "value": ex.value} if ex.summary else {"value": ex.value}
            for ex in examples
        }
    response["content"] = {content_type: media}
    return response
