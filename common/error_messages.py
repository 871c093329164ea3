"""
User-friendly error messages and status codes.

This module provides centralized error message definitions that are
user-friendly and avoid exposing technical implementation details.
"""
from typing import Tuple, Optional
from enum import Enum


class ErrorCode(str, Enum):
    """Error codes for different types of failures."""

    # Precondition Errors (400, 401)
    MISSING_PROMPT = "MISSING_PROMPT"
    MISSING_API_KEY = "MISSING_API_KEY"
    INVALID_PARAMETER = "INVALID_PARAMETER"
    INVALID_IMAGE_DATA = "INVALID_IMAGE_DATA"
    UNSUPPORTED_OPERATION = "UNSUPPORTED_OPERATION"

    # Backend Refusals (422)
    CONTENT_BLOCKED = "CONTENT_BLOCKED"
    MODEL_REFUSED = "MODEL_REFUSED"

    # Backend Failures (502)
    FALSE_SUCCESS = "FALSE_SUCCESS"
    GEMINI_API_ERROR = "GEMINI_API_ERROR"
    GEMINI_PERMISSION_DENIED = "GEMINI_PERMISSION_DENIED"
    NO_CONTENT_GENERATED = "NO_CONTENT_GENERATED"
    VIDEO_GENERATION_FAILED = "VIDEO_GENERATION_FAILED"

    # Not Found Errors (404)
    TEMPLATE_NOT_FOUND = "TEMPLATE_NOT_FOUND"

    # Rate Limit Errors (429)
    DAILY_LIMIT_REACHED = "DAILY_LIMIT_REACHED"

    # Storage Errors (500)
    FILE_SAVE_ERROR = "FILE_SAVE_ERROR"

    # Generic Errors
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


# User-friendly error messages mapped to error codes
ERROR_MESSAGES = {
    # Precondition Errors
    ErrorCode.MISSING_PROMPT: "Please describe the output you want to generate or upload a reference image.",
    ErrorCode.MISSING_API_KEY: "No Gemini API key is configured. Set GEMINI_API_KEY and try again.",
    ErrorCode.INVALID_PARAMETER: "One or more parameters are invalid. Please review your request and try again.",
    ErrorCode.INVALID_IMAGE_DATA: "The image data provided is invalid or corrupted. Please try with a different image.",
    ErrorCode.UNSUPPORTED_OPERATION: "This action is not available for the selected item.",

    # Backend Refusals
    ErrorCode.CONTENT_BLOCKED: "Generation was blocked by content filters. Try adjusting your prompt.",
    ErrorCode.MODEL_REFUSED: "The model declined to generate this request.",

    # Backend Failures
    ErrorCode.FALSE_SUCCESS: "The model claimed success but returned no image. Please try again.",
    ErrorCode.GEMINI_API_ERROR: "We're having trouble connecting to the generation service. Please try again in a few moments.",
    ErrorCode.GEMINI_PERMISSION_DENIED: "Permission denied by the generation service.",
    ErrorCode.NO_CONTENT_GENERATED: "No content was generated. Please try rephrasing your request.",
    ErrorCode.VIDEO_GENERATION_FAILED: "Video generation failed. Please try again or adjust your parameters.",

    # Not Found Errors
    ErrorCode.TEMPLATE_NOT_FOUND: "The template you're looking for doesn't exist.",

    # Rate Limit Errors
    ErrorCode.DAILY_LIMIT_REACHED: "Daily usage limit reached. Increase DEFAULT_DAILY_LIMIT or try again tomorrow.",

    # Storage Errors
    ErrorCode.FILE_SAVE_ERROR: "We couldn't save the file. Please try again.",

    # Generic Errors
    ErrorCode.UNKNOWN_ERROR: "Something unexpected happened. Please try again.",
}


# HTTP status codes for each error type
ERROR_STATUS_CODES = {
    ErrorCode.MISSING_PROMPT: 400,
    ErrorCode.MISSING_API_KEY: 401,
    ErrorCode.INVALID_PARAMETER: 400,
    ErrorCode.INVALID_IMAGE_DATA: 400,
    ErrorCode.UNSUPPORTED_OPERATION: 400,

    ErrorCode.CONTENT_BLOCKED: 422,
    ErrorCode.MODEL_REFUSED: 422,

    ErrorCode.FALSE_SUCCESS: 502,
    ErrorCode.GEMINI_API_ERROR: 502,
    ErrorCode.GEMINI_PERMISSION_DENIED: 403,
    ErrorCode.NO_CONTENT_GENERATED: 502,
    ErrorCode.VIDEO_GENERATION_FAILED: 502,

    ErrorCode.TEMPLATE_NOT_FOUND: 404,

    ErrorCode.DAILY_LIMIT_REACHED: 429,

    ErrorCode.FILE_SAVE_ERROR: 500,

    ErrorCode.UNKNOWN_ERROR: 500,
}


def get_error_response(
    error_code: ErrorCode,
    custom_message: Optional[str] = None,
) -> Tuple[str, int]:
    """
    Get user-friendly error message and HTTP status code.

    Args:
        error_code: The error code enum
        custom_message: Optional custom message to append to the standard message

    Returns:
        Tuple of (error_message, status_code)
    """
    message = ERROR_MESSAGES.get(error_code, ERROR_MESSAGES[ErrorCode.UNKNOWN_ERROR])
    status_code = ERROR_STATUS_CODES.get(error_code, 500)

    if custom_message:
        message = f"{message} {custom_message}"

    return message, status_code

