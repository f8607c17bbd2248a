"""User-facing messages for every failure the submission flow can hit."""

import re
from typing import Optional

PROBLEM_TITLE_REQUIRED = "Problem title is required"
PROBLEM_CONTENT_REQUIRED = "Problem content is required"
SIGN_IN_REQUIRED = "Please sign in to submit problems"
INVALID_USER_SESSION = "Invalid user session. Please sign in again."

UNAUTHENTICATED = "Authentication required. Please sign in again."
FORBIDDEN = "You do not have permission to submit problems."
TOKEN_EXPIRED = "Your session has expired. Please sign in again."
SERVICE_UNAVAILABLE = "Submission service is temporarily unavailable. Please try again later."

NO_RESPONSE = "No response received from server"
MISSING_PROBLEM_ID = "Invalid response: missing problem ID"
INVALID_RESPONSE_FORMAT = "Invalid response format from server"

PROBLEM_NOT_FOUND = "Problem not found. Please try submitting again."
NOT_FOUND_OR_DENIED = "Problem not found or access denied."
INVALID_PROBLEM_ID = "Invalid problem ID format. Please try submitting again."
PROCESSING_FAILED = "Problem processing failed"
POLLING_TIMEOUT = "Problem processing timed out. Please try again."

# Mã lỗi của status store (xem api/routers/submissions.py)
NO_ROWS_CODE = "PGRST116"
INVALID_ID_CODE = "22P02"
JWT_ERROR_CODE = "PGRST301"

# Chỉ khớp lỗi về JWT / access token, không khớp "max tokens exceeded"
_TOKEN_ERROR_RE = re.compile(
    r"\bjwt\b|\b(?:access|auth|bearer)[ _-]?token\b|\btoken (?:has )?expired\b|\b(?:expired|invalid) token\b",
    re.IGNORECASE,
)


class SubmissionFailed(Exception):
    """Carries the message shown to the learner."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class StatusQueryError(Exception):
    def __init__(self, code: Optional[str], message: str):
        super().__init__(message)
        self.code = code
        self.message = message


def describe_http_error(status_code: Optional[int], detail: str = "") -> str:
    """Map a failed call to the submission endpoint to a message.

    `status_code` is None when no response was received.
    """
    if status_code == 401:
        return UNAUTHENTICATED
    if status_code == 403:
        return FORBIDDEN
    if _TOKEN_ERROR_RE.search(detail or ""):
        return TOKEN_EXPIRED
    if detail:
        return f"{SERVICE_UNAVAILABLE} ({detail})"
    return SERVICE_UNAVAILABLE


def describe_status_query_error(code: Optional[str], message: str) -> str:
    if code == NO_ROWS_CODE:
        return NOT_FOUND_OR_DENIED
    if code == INVALID_ID_CODE or "invalid input syntax for type uuid" in (message or ""):
        return INVALID_PROBLEM_ID
    if code == JWT_ERROR_CODE or "jwt" in (message or "").lower():
        return TOKEN_EXPIRED
    return f"Failed to check problem status: {message}"
