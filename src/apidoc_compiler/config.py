"""Defaults for document generation.

Module constants are the defaults; the CLI overrides them per invocation.
"""

from pydantic import BaseModel

OPENAPI_VERSION = "3.0.3"
DEFAULT_PREFIX = "/openapi"
DEFAULT_CONTENT_TYPE = "application/json"
DISCRIMINATOR_FIELD = "kind"
DEFAULT_ERROR_STATUS = 500
SUCCESS_STATUS = 200

HTTP_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS", "TRACE")


class AssemblerOptions(BaseModel):
    """Knobs for the document assembler."""

    openapi_version: str = OPENAPI_VERSION
    description: str | None = None
    default_content_type: str = DEFAULT_CONTENT_TYPE
