from typing import Any, Dict, Optional


class AppException(Exception):
    """
    Base class for all application exceptions.
    Ensures that all raised errors have a consistent structure, so they can be
    carried unchanged inside an RPC error frame or an HTTP error envelope.
    """
    def __init__(
        self,
        code: int = 400,
        slug: str = "bad_request",
        msg: str = "Bad Request",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.code = code
        self.slug = slug
        self.msg = msg
        self.details = details or {}
        super().__init__(self.msg)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "slug": self.slug,
            "message": self.msg,
            "details": self.details,
        }


class ResourceNotFoundException(AppException):
    def __init__(self, msg: str = "Resource not found", details: dict = None):
        super().__init__(
            code=404,
            slug="resource_not_found",
            msg=msg,
            details=details
        )


class SchemaViolationException(AppException):
    """Tool arguments do not match the declared input schema"""
    def __init__(self, msg: str = "Arguments do not match tool schema", details: dict = None):
        super().__init__(
            code=422,
            slug="schema_violation",
            msg=msg,
            details=details
        )


class UnknownToolException(AppException):
    def __init__(self, msg: str = "Unknown tool", details: dict = None):
        super().__init__(
            code=404,
            slug="unknown_tool",
            msg=msg,
            details=details
        )


class MalformedFrameException(AppException):
    def __init__(self, msg: str = "Malformed frame", details: dict = None):
        super().__init__(
            code=400,
            slug="malformed_frame",
            msg=msg,
            details=details
        )


class UpstreamFailureException(AppException):
    """Store, log or LLM gateway call failed"""
    def __init__(self, msg: str = "Upstream service failed", details: dict = None):
        super().__init__(
            code=502,
            slug="upstream_failure",
            msg=msg,
            details=details
        )


class StartupFailureException(AppException):
    """Client could not spawn or connect to the server process"""
    def __init__(self, msg: str = "Server process failed to start", details: dict = None):
        super().__init__(
            code=503,
            slug="startup_failure",
            msg=msg,
            details=details
        )


class TimeoutException(AppException):
    def __init__(self, msg: str = "Operation timed out", details: dict = None):
        super().__init__(
            code=504,
            slug="timeout",
            msg=msg,
            details=details
        )


def exception_from_error(error: Dict[str, Any]) -> AppException:
    """Rebuild a typed exception from an error frame payload."""
    by_slug = {
        "resource_not_found": ResourceNotFoundException,
        "schema_violation": SchemaViolationException,
        "unknown_tool": UnknownToolException,
        "malformed_frame": MalformedFrameException,
        "upstream_failure": UpstreamFailureException,
        "startup_failure": StartupFailureException,
        "timeout": TimeoutException,
    }
    message = str(error.get("message", "Remote error"))
    details = error.get("details") or {}
    cls = by_slug.get(error.get("slug", ""))
    if cls is not None:
        return cls(msg=message, details=details)
    return AppException(
        code=int(error.get("code", 500)),
        slug=str(error.get("slug", "remote_error")),
        msg=message,
        details=details,
    )
