# =============================================================================
# Error Taxonomy
# -----------------------------------------------------------------------------
# Failures that reach the client are HTTPException subclasses so FastAPI
# renders them with a fixed status and a short detail. Everything else is a
# ChatBackendError that callers either recover from locally or convert into
# a generic message.
# =============================================================================

from fastapi import HTTPException


# Only text ever shown to a client when a streamed reply fails
GENERIC_STREAM_ERROR = "Oops, an error occurred!"
GENERIC_SERVER_ERROR = "An error occurred while processing your request"


class AuthenticationRequired(HTTPException):
    def __init__(self, detail: str = "Unauthorized"):
        super().__init__(status_code=401, detail=detail)


class AuthorizationDenied(HTTPException):
    """The session is valid but does not own the requested resource."""

    def __init__(self, detail: str = "Unauthorized"):
        super().__init__(status_code=401, detail=detail)


class ValidationFailed(HTTPException):
    def __init__(self, detail: str):
        super().__init__(status_code=400, detail=detail)


class NotFound(HTTPException):
    def __init__(self, detail: str = "Not Found"):
        super().__init__(status_code=404, detail=detail)


class ChatBackendError(Exception):
    """Base class for failures that never leave the process as-is."""


class AttachmentProcessingFailed(ChatBackendError):
    pass


class PersistenceFailed(ChatBackendError):
    pass


class UpstreamModelFailed(ChatBackendError):
    pass
