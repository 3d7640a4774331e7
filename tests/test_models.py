import pytest
from pydantic import ValidationError

from apidoc_compiler.parser.base import (
    ElaborateResponse,
    EndpointDoc,
    ParamDoc,
    RequestBodyDoc,
    SimpleResponse,
)


class TestParamDoc:
    def test_create_param(self):
        p = ParamDoc(name="id", location="path", description="User id")
        assert p.name == "id"
        assert p.location == "path"

    def test_rejects_unknown_location(self):
        with pytest.raises(ValidationError):
            ParamDoc(name="session", location="cookie")


class TestRequestBodyDoc:
    def test_defaults_to_json(self):
        body = RequestBodyDoc()
        assert body.content_type == "application/json"
        assert body.schema_ref is None


class TestEndpointDoc:
    def test_create_minimal_doc(self):
        doc = EndpointDoc(summary="List users")
        assert doc.description == ""
        assert doc.parameters == []
        assert doc.request_body is None
        assert doc.responses == {}

    def test_mixed_response_forms(self):
        doc = EndpointDoc(
            summary="Get user",
            responses={
                200: SimpleResponse(status=200, description="OK"),
                404: ElaborateResponse(status=404, description="Missing", schema_ref="NotFoundBody"),
            },
        )
        assert doc.responses[200].kind == "simple"
        assert doc.responses[404].kind == "elaborate"
        assert doc.responses[404].content_type == "application/json"

    def test_responses_validate_from_dicts(self):
        doc = EndpointDoc(
            summary="Get user",
            responses={"200": {"kind": "elaborate", "status": 200, "description": "OK", "schema_ref": "User"}},
        )
        assert isinstance(doc.responses[200], ElaborateResponse)

    def test_serialization_roundtrip(self):
        doc = EndpointDoc(
            summary="Delete user",
            parameters=[ParamDoc(name="id", location="path")],
            responses={204: SimpleResponse(status=204, description="Deleted")},
        )
        doc2 = EndpointDoc(**doc.model_dump())
        assert doc2 == doc

    def test_param_lookup(self):
        doc = EndpointDoc(parameters=[ParamDoc(name="id", location="path"), ParamDoc(name="q", location="query")])
        assert doc.param("id").location == "path"
        assert doc.param("q", "path") is None
        assert doc.param("missing") is None
