"""Exception hierarchy for documentation compilation.

Parse-level problems never raise; they are recorded as warnings on the
parsed records. Everything here aborts registration or assembly.
"""


class ApiDocError(Exception):
    """Base class for all fatal documentation errors."""


class DuplicateRouteError(ApiDocError):
    """A (method, path) pair was registered twice."""

    def __init__(self, method: str, path: str):
        self.method = method
        self.path = path
        super().__init__(f"Route already registered: {method} {path}")


class SchemaError(ApiDocError):
    """A type descriptor cannot be turned into a schema."""


class SchemaConflictError(SchemaError):
    """Two structurally different schemas were registered under one name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Conflicting definitions for schema '{name}'")


class UnresolvedSchemaError(ApiDocError):
    """A reference points at a schema that was never registered."""

    def __init__(self, name: str, referrer: str):
        self.name = name
        self.referrer = referrer
        super().__init__(f"{referrer} references unknown schema '{name}'")


class RegistryFrozenError(ApiDocError):
    """Registration attempted after the document was assembled."""


class DeclarationError(ApiDocError):
    """A declaration file is malformed."""
