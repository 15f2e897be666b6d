"""Custom exception classes for the Imagen MCP server."""

# JSON-RPC / MCP error codes
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
PARSE_ERROR = -32700

DEFAULT_FAILURE_MESSAGE = "Job failed with no error message"


class ImagenMCPError(Exception):
    """Base exception for the Imagen MCP server."""

    def __init__(self, code: int, message: str, details=None):
        self.code = code
        self.message = message
        self.details = details
        super().__init__(message)


class ValidationError(ImagenMCPError):
    """Invalid tool arguments, job type, params or batch config."""

    def __init__(self, message: str, details=None):
        super().__init__(INVALID_PARAMS, message, details)


class NotFoundError(ImagenMCPError):
    """Resource not found."""

    def __init__(self, resource: str, resource_id: str):
        super().__init__(INVALID_REQUEST, f"{resource} not found: {resource_id}")


class ConflictError(ImagenMCPError):
    """Operation not allowed in the resource's current state."""

    def __init__(self, message: str):
        super().__init__(INVALID_REQUEST, message)


class ExecutorError(ImagenMCPError):
    """Upstream Imagen API failure raised by a tool executor."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        code = INVALID_PARAMS if status_code == 400 else INTERNAL_ERROR
        if status_code in (401, 403):
            code = INVALID_REQUEST
        super().__init__(code, message)


class ResultFormatError(ImagenMCPError):
    """Executor returned a payload the queue cannot normalize."""

    def __init__(self, message: str = "Invalid tool result format"):
        super().__init__(INTERNAL_ERROR, message)


def error_message(exc: BaseException) -> str:
    """Return a non-empty, human-readable message for an exception."""
    if isinstance(exc, ImagenMCPError):
        message = exc.message
    else:
        message = str(exc)
    if message and message.strip():
        return message
    return DEFAULT_FAILURE_MESSAGE
