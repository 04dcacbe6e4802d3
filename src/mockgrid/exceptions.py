"""Mockgrid exception hierarchy.

Provides structured exceptions for error handling throughout the codebase.
All exceptions inherit from MockgridError for easy catching.
"""

from __future__ import annotations


class MockgridError(Exception):
    """Base exception for all Mockgrid errors.

    Attributes:
        message: Human-readable error description.
        code: Machine-readable error code for API responses.
    """

    code: str = "mockgrid_error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, object]:
        """Convert exception to API-friendly dictionary."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
            }
        }


class InvalidArgumentError(MockgridError):
    """A required argument is missing or malformed.

    Raised by stores when a record is missing its key.

    Attributes:
        field: The field that failed validation.
    """

    code: str = "invalid_argument"

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(f"{field}: {message}")

    def to_dict(self) -> dict[str, object]:
        """Convert exception to API-friendly dictionary."""
        return {
            "error": {
                "code": self.code,
                "field": self.field,
                "message": self.message,
            }
        }


class NotFoundError(MockgridError):
    """Resource not found.

    Raised when a lookup, update or delete targets an absent record.

    Attributes:
        resource_type: Type of resource (e.g., "webhook").
        resource_id: ID of the missing resource.
    """

    code: str = "not_found"

    def __init__(self, resource_type: str, resource_id: str) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(f"{resource_type} not found: {resource_id}")

    def to_dict(self) -> dict[str, object]:
        """Convert exception to API-friendly dictionary."""
        return {
            "error": {
                "code": self.code,
                "resource_type": self.resource_type,
                "resource_id": self.resource_id,
                "message": self.message,
            }
        }


class ConflictError(MockgridError):
    """Resource already exists.

    Raised when creating a record whose ID is already taken.
    """

    code: str = "conflict"

    def __init__(self, resource_type: str, resource_id: str) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(f"{resource_type} already exists: {resource_id}")


class StorageError(MockgridError):
    """Storage operation failed.

    Raised when a backend read, write or connection fails.
    """

    code: str = "storage_error"


class DispatchError(MockgridError):
    """A single webhook delivery attempt failed.

    Raised for non-2xx responses and transport errors. Contained inside
    the dispatcher; never surfaced to the code that saved the message.

    Attributes:
        webhook_id: Webhook the attempt targeted.
        status_code: HTTP status code, if a response was received.
    """

    code: str = "dispatch_error"

    def __init__(self, webhook_id: str, message: str, status_code: int | None = None) -> None:
        self.webhook_id = webhook_id
        self.status_code = status_code
        super().__init__(message)


class ConfigurationError(MockgridError):
    """Configuration error.

    Raised when required configuration is missing or invalid.
    """

    code: str = "configuration_error"
