import logging

logger = logging.getLogger(__name__)


class ArtworkError(Exception):
    """A failed vision or image-generation call, with a stable error code for the UI."""

    def __init__(self, message: str, code: str = "UNKNOWN_ERROR"):
        super().__init__(message)
        self.message = message
        self.code = code

    def to_detail(self) -> dict[str, str]:
        return {"message": self.message, "code": self.code}


def translate_openai_error(
    error: Exception,
    *,
    prefix: str = "Failed to process request. ",
    fallback_code: str = "UNKNOWN_ERROR",
) -> ArtworkError:
    """Best-effort translation of a provider failure into a child-friendly message."""
    if isinstance(error, ArtworkError):
        return error

    status = getattr(error, "status_code", None) or getattr(error, "status", None)
    code = getattr(error, "code", None)
    message = getattr(error, "message", None) or str(error)

    logger.error(
        "OpenAI error: message=%s status=%s code=%s type=%s",
        message,
        status,
        code,
        getattr(error, "type", None),
    )

    if code == "content_policy_violation":
        return ArtworkError(
            "This request was flagged by the safety system. "
            "Try a simpler description or a different drawing.",
            "CONTENT_POLICY",
        )
    if status == 401:
        return ArtworkError("API authentication failed.", "AUTH_FAILED")
    if status == 429:
        return ArtworkError("Rate limit exceeded. Please try again later.", "RATE_LIMIT")
    if status == 400:
        return ArtworkError(
            "Invalid request. " + (message or "Please check your input."), "INVALID_REQUEST"
        )
    if message:
        return ArtworkError(prefix + message, "OPENAI_ERROR")
    return ArtworkError(prefix + "Please try again.", fallback_code)
