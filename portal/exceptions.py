"""Domain errors raised by stores and services; routers map them to HTTP statuses."""


class PortalError(Exception):
    """Base class for board and tutor errors."""


class ActivityValidationError(PortalError):
    """Rejected at the boundary before any write (missing field, oversize attachment)."""


class ActivityNotFound(PortalError):
    def __init__(self, activity_id: str):
        super().__init__(f"Activity not found: {activity_id}")
        self.activity_id = activity_id


class StoreUnavailable(PortalError):
    """Storage backend could not be reached."""

    def __init__(self, message: str = "Activity storage is unavailable; check backend connectivity."):
        super().__init__(message)


class StreamFailure(PortalError):
    """The chat API failed while a model turn was streaming."""


class InitializationFailure(PortalError):
    """The chat session could not be created (context or session creation failed)."""


class ChatBusy(PortalError):
    """A turn is already streaming in this session."""
