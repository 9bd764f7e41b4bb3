# app/errors.py
class NewsletterError(Exception):
    """Base error carrying a machine readable code for the HTTP layer"""
    code = "INTERNAL_SERVER_ERROR"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class NotFoundError(NewsletterError):
    code = "NOT_FOUND"
    status_code = 404


class PreconditionFailedError(NewsletterError):
    code = "PRECONDITION_FAILED"
    status_code = 400


class SequenceConflictError(NewsletterError):
    """Raised when another run advanced the sequence first"""
    code = "SEQUENCE_CONFLICT"
    status_code = 500


class UnauthorizedError(NewsletterError):
    code = "UNAUTHORIZED"
    status_code = 401


ERROR_TITLES = {
    "UNAUTHORIZED": "Unauthorized",
    "NOT_FOUND": "Resource not found",
    "PRECONDITION_FAILED": "Precondition failed",
}


def error_body(exc: Exception) -> dict:
    """JSON body for a failed trigger; the raw message is passed through as details"""
    code = getattr(exc, "code", "INTERNAL_SERVER_ERROR")
    title = ERROR_TITLES.get(code, "Internal server error")
    return {
        "success": False,
        "error": title,
        "message": title,
        "code": code,
        "details": getattr(exc, "message", None) or str(exc),
    }
