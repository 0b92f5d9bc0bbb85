"""
Custom exceptions for the cadastral importer with structured error context.

Every exception carries a human-readable message, a context dictionary and
the original exception (if any) so that failures can be logged with enough
information to reproduce them.

Exception Hierarchy:
    CadastralException (base)
    ├── MalformedIdentifierError
    ├── NotFoundError
    │   ├── CadastralObjectNotFoundError
    │   └── UpsertNoRowError
    ├── RegistryError
    │   ├── RegistryTransportError
    │   └── RegistryResponseError
    └── UnsupportedDialectError
"""

from typing import Optional, Dict, Any
from datetime import datetime, timezone


class CadastralException(Exception):
    """
    Base exception for all importer errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (identifier, url, table, ...)
        original_exception: The original exception that was caught (if any)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.now(timezone.utc)

        self.context["error_timestamp"] = self.timestamp.isoformat()

        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {str(self.original_exception)}"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


# ============================================================================
# Input Errors
# ============================================================================

class MalformedIdentifierError(CadastralException):
    """
    Raised when a cadastral identifier cannot be parsed.

    Context should include:
        - identifier: The offending text
        - field_count: Number of colon-separated fields found
        - field_index: Index of the field that failed integer parsing (if any)
    """
    pass


# ============================================================================
# Not Found Errors
# ============================================================================

class NotFoundError(CadastralException):
    """Base exception for a record that should exist but does not."""
    pass


class CadastralObjectNotFoundError(NotFoundError):
    """
    Raised when the registry explicitly reports that it has no such object.

    Context should include:
        - cadastral_number: The identifier that was looked up
        - status_code: HTTP status code returned by the registry
    """
    pass


class UpsertNoRowError(NotFoundError):
    """
    Raised when an upsert's conflict target returns no row.

    This is an integrity violation and is never retried.

    Context should include:
        - table_name: Table the upsert targeted
        - code: Conflict key value
    """
    pass


# ============================================================================
# Registry Errors
# ============================================================================

class RegistryError(CadastralException):
    """Base exception for registry lookups that failed for reasons other than not-found."""
    pass


class RegistryTransportError(RegistryError):
    """
    Raised on HTTP error status, timeout or connection failure.

    Context should include:
        - registry_url: The endpoint that failed
        - cadastral_number: The identifier that was looked up
        - status_code: HTTP status code (if a response was received)
        - response_body: Response body (truncated)
    """
    pass


class RegistryResponseError(RegistryError):
    """
    Raised when the registry response is not JSON or lacks the expected nesting.

    Context should include:
        - cadastral_number: The identifier that was looked up
        - missing_path: The nested path that could not be resolved
    """
    pass


# ============================================================================
# Storage Errors
# ============================================================================

class UnsupportedDialectError(CadastralException):
    """
    Raised when the session is bound to a database without an upsert form.

    Context should include:
        - dialect: Dialect name reported by the engine
        - table_name: Table the upsert targeted
        - supported_dialects: Dialects with an upsert implementation
    """
    pass
