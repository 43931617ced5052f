"""
Error taxonomy shared by every sync core component.
"""

from .error_codes import ErrorCode, RETRYABLE_CODES, is_retryable_code
from .exceptions import (
    BlueHorizonError,
    NotAuthenticated,
    NetworkTransient,
    RemoteRejected,
    CredentialFailure,
    StorageFailure,
    InternalError,
    InvalidTransition,
    is_retryable,
    to_error_response,
)

__all__ = [
    "ErrorCode",
    "RETRYABLE_CODES",
    "is_retryable_code",
    "BlueHorizonError",
    "NotAuthenticated",
    "NetworkTransient",
    "RemoteRejected",
    "CredentialFailure",
    "StorageFailure",
    "InternalError",
    "InvalidTransition",
    "is_retryable",
    "to_error_response",
]
