"""Data models for parsed endpoint documentation.

The comment parser turns one free-text documentation block into an
EndpointDoc; the registry and assembler only ever see these models.
"""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field

from apidoc_compiler.config import DEFAULT_CONTENT_TYPE


class ParseWarning(BaseModel):
    """A recoverable problem found while parsing a documentation block."""

    line: int  # 1-based, counted in the cleaned block
    message: str


class ParamDoc(BaseModel):
    """A single documented parameter."""

    name: str
    location: Literal["path", "query", "header"]
    description: str = ""


class RequestBodyDoc(BaseModel):
    """The documented request body of an endpoint."""

    content_type: str = DEFAULT_CONTENT_TYPE
    description: str = ""
    schema_ref: str | None = None  # resolved lazily at assembly


class ResponseExample(BaseModel):
    name: str
    summary: str | None = None
    value: Any = ""


class SimpleResponse(BaseModel):
    """`- 404: Not found`"""

    kind: Literal["simple"] = "simple"
    status: int
    description: str


class ElaborateResponse(BaseModel):
    """A response with explicit description, content type and schema."""

    kind: Literal["elaborate"] = "elaborate"
    status: int
    description: str
    content_type: str = DEFAULT_CONTENT_TYPE
    schema_ref: str | None = None
    examples: list[ResponseExample] = []


ResponseDoc = Annotated[SimpleResponse | ElaborateResponse, Field(discriminator="kind")]


class EndpointDoc(BaseModel):
    """Structured documentation for one route."""

    summary: str = ""
    description: str = ""
    parameters: list[ParamDoc] = []
    request_body: RequestBodyDoc | None = None
    responses: dict[int, ResponseDoc] = {}
    extensions: dict[str, str] = {}  # unknown section title -> raw text
    warnings: list[ParseWarning] = []

    def param(self, name: str, location: str | None = None) -> ParamDoc | None:
        for p in self.parameters:
            if p.name == name and (location is None or p.location == location):
                return p
        return None
