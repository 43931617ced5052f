"""
Standard Error Codes

Consistent error codes for every failure the sync core can surface,
with the retry classification used by the write command path.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """Sync core error codes."""

    # Recoverable by queueing
    NOT_AUTHENTICATED = "NOT_AUTHENTICATED"
    NETWORK_ERROR = "NETWORK_ERROR"
    REMOTE_REJECTED = "REMOTE_REJECTED"

    # Surfaced to the caller
    CREDENTIAL_FAILURE = "CREDENTIAL_FAILURE"
    STORAGE_ERROR = "STORAGE_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    INVALID_TRANSITION = "INVALID_TRANSITION"


# Codes whose failed writes are handed to the outbox
RETRYABLE_CODES = frozenset({
    ErrorCode.NOT_AUTHENTICATED,
    ErrorCode.NETWORK_ERROR,
    ErrorCode.REMOTE_REJECTED,
})


def is_retryable_code(error_code: ErrorCode) -> bool:
    """Check if a failed write with this code should be queued for retry."""
    return error_code in RETRYABLE_CODES
