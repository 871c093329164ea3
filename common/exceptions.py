"""Exceptions raised by the generation and gallery services."""
from typing import Optional

from common.error_messages import ErrorCode, ERROR_MESSAGES, ERROR_STATUS_CODES


class GenerationError(Exception):
    """Base class for failures surfaced to the caller with a readable message."""

    code: ErrorCode = ErrorCode.UNKNOWN_ERROR

    def __init__(self, message: Optional[str] = None, code: Optional[ErrorCode] = None):
        if code is not None:
            self.code = code
        self.message = message or ERROR_MESSAGES.get(self.code, ERROR_MESSAGES[ErrorCode.UNKNOWN_ERROR])
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return ERROR_STATUS_CODES.get(self.code, 500)


class PreconditionError(GenerationError):
    """Rejected before any network call (empty prompt, bad input)."""
    code = ErrorCode.MISSING_PROMPT


class MissingCredentialError(PreconditionError):
    """No API key available; fatal for every backend call."""
    code = ErrorCode.MISSING_API_KEY


class ContentBlockedError(GenerationError):
    """Explicit safety block reported by the backend."""
    code = ErrorCode.CONTENT_BLOCKED


class RefusalError(GenerationError):
    """Backend answered with text that reads as a refusal."""
    code = ErrorCode.MODEL_REFUSED

    def __init__(self, refusal_text: str, message: Optional[str] = None):
        self.refusal_text = refusal_text
        super().__init__(message or f'Model responded with text instead of image: "{refusal_text}"')


class FalseSuccessError(GenerationError):
    """Backend claimed success but returned no image payload."""
    code = ErrorCode.FALSE_SUCCESS


class BackendError(GenerationError):
    """Transport failure or malformed backend response."""
    code = ErrorCode.GEMINI_API_ERROR


class UsageLimitError(GenerationError):
    """The daily generation counter is exhausted."""
    code = ErrorCode.DAILY_LIMIT_REACHED
