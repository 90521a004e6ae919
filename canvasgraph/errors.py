"""
Error types for canvasgraph.

Validation errors (InvalidEdge, PlacementUnresolved) are raised by the model
and coordinate layers and handled inside the controller. PersistenceFailure is
the only error the controller lets escape to the presentation layer.
"""

from typing import List, Optional


class CanvasGraphError(Exception):
    """Base class for all canvasgraph errors."""


class InvalidEdge(CanvasGraphError):
    """
    Raised when a connection would be a self-loop, a duplicate, or would
    reference a block that does not exist.
    """

    def __init__(self, source_id: str, target_id: str, reason: str):
        self.source_id = source_id
        self.target_id = target_id
        self.reason = reason
        super().__init__(f"Invalid edge {source_id} -> {target_id}: {reason}")


class PlacementUnresolved(CanvasGraphError):
    """Raised when a screen coordinate cannot be mapped to canvas space."""


class InvalidParsingTransition(CanvasGraphError):
    """Raised when a parsing status change is not allowed."""

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot move parsing status from '{current}' to '{requested}'")


class StoreError(CanvasGraphError):
    """
    Raised by a board store when an operation is rejected.

    A batch write that fails part way through lists the ids it did write in
    `applied`.
    """

    def __init__(self, message: str = "", applied: Optional[List[str]] = None):
        self.applied = list(applied or [])
        super().__init__(message)


class PersistenceFailure(CanvasGraphError):
    """
    A store call failed and the controller rolled back the affected entities.
    """

    def __init__(self, operation: str, entity_ids: Optional[List[str]] = None,
                 cause: Optional[Exception] = None):
        self.operation = operation
        self.entity_ids = list(entity_ids or [])
        self.cause = cause
        message = f"Failed to {operation}"
        if self.entity_ids:
            message += f" ({', '.join(self.entity_ids)})"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)
