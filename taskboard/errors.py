"""
Error taxonomy for board operations.

Every error carries a stable ``code`` so transport layers (REST, MCP, CLI)
can map it without string matching.
"""
from typing import Any, Dict


class TaskboardError(Exception):
    """Base class for all board engine errors."""

    code = "TASKBOARD_ERROR"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        """Client-safe representation of the error."""
        data = {"error": True, "code": self.code, "message": self.message}
        data.update(self.details)
        return data


class NotFoundError(TaskboardError):
    """Board, card or column does not exist."""
    code = "NOT_FOUND"


class ValidationError(TaskboardError):
    """Malformed payload, exceeded limit, or bad enum value."""
    code = "VALIDATION_ERROR"


class ConflictError(TaskboardError):
    """Target column of a create/move/update does not exist."""
    code = "CONFLICT"


class ArchitectureError(TaskboardError):
    """Card operation attempted on a board still in the legacy nested shape."""
    code = "ARCHITECTURE_ERROR"


class StorageError(TaskboardError):
    """Reading or writing a board or backup file failed."""
    code = "STORAGE_ERROR"
