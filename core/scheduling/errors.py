"""
Scheduling error taxonomy

Validation, not-found and conflict failures are kept as distinct types so the
API layer can map them to 400 / 404 / 409 without inspecting messages.
"""
from typing import Optional


class SchedulingError(Exception):
    """Base class for scheduling failures"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidMeetingRequestError(SchedulingError):
    """Input rejected before any computation; names the offending field"""

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message

    def to_detail(self) -> dict:
        return {"field": self.field, "message": self.message}


class NotFoundError(SchedulingError):
    """Unknown resource, or a resource not owned by the caller"""

    def __init__(self, resource: str, identifier: Optional[str] = None):
        if identifier:
            message = f"{resource} not found: {identifier}"
        else:
            message = f"{resource} not found"
        super().__init__(message)
        self.resource = resource
        self.identifier = identifier


class SchedulingConflictError(SchedulingError):
    """The request is no longer in a state that allows the operation"""
