from typing import Any, Optional


class LoySqlError(Exception):
    """Base class for every error raised by loysql."""


class ConfigurationError(LoySqlError):
    """Required configuration is missing or empty."""


class SerializationError(LoySqlError):
    """The request envelope could not be turned into JSON (or read back)."""


class DispatchError(LoySqlError):
    """
    The database call itself failed.

    The underlying driver/SQLAlchemy exception is kept as ``__cause__``.
    """

    def __init__(self, query_name: Optional[str], error: BaseException):
        self.query_name = query_name
        self.error = error
        super().__init__(f"Failed to execute query {query_name!r}: {error}")


class MappingError(LoySqlError):
    """The routine answered, but its result does not fit the expected type."""

    def __init__(self, field: str, expected_type: Any, detail: str = ""):
        self.field = field
        self.expected_type = expected_type
        self.detail = detail

        type_name = getattr(expected_type, "__name__", repr(expected_type))
        message = f"Cannot map field '{field}' to {type_name}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class BuilderConsumedError(LoySqlError, RuntimeError):
    """A query builder was used again after it had been executed."""
