"""
Sync Core Exception Classes

Every failure raised by the storage, gateway, outbox and cache layers
derives from BlueHorizonError so callers can classify it by code.
"""

from typing import Any, Dict, Optional

from .error_codes import ErrorCode, is_retryable_code


class BlueHorizonError(Exception):
    """
    Base exception for sync core errors.

    The GUI shell receives these through to_error_response() as a
    {"code", "message"} pair.
    """

    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        return is_retryable_code(self.code)


class NotAuthenticated(BlueHorizonError):
    """No active remote session."""

    code = ErrorCode.NOT_AUTHENTICATED

    def __init__(self, message: str = "Session not found"):
        super().__init__(message)


class NetworkTransient(BlueHorizonError):
    """Connectivity failure or timeout talking to the remote service."""

    code = ErrorCode.NETWORK_ERROR


class RemoteRejected(BlueHorizonError):
    """
    The remote endpoint returned an application-level error.
    """

    code = ErrorCode.REMOTE_REJECTED

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error_name: Optional[str] = None,
    ):
        super().__init__(message, {"status_code": status_code, "error": error_name})
        self.status_code = status_code
        self.error_name = error_name


class CredentialFailure(BlueHorizonError):
    """Login or authentication was rejected."""

    code = ErrorCode.CREDENTIAL_FAILURE


class StorageFailure(BlueHorizonError):
    """Local persistence I/O failed."""

    code = ErrorCode.STORAGE_ERROR


class InternalError(BlueHorizonError):
    """Encoding, decoding or invariant violation."""

    code = ErrorCode.INTERNAL_ERROR


class InvalidTransition(InternalError):
    """A queued mutation was asked to move to a status it cannot reach."""

    code = ErrorCode.INVALID_TRANSITION

    def __init__(self, current: str, target: str):
        super().__init__(
            f"Invalid status transition: {current} -> {target}",
            {"from": current, "to": target},
        )
        self.current = current
        self.target = target


def is_retryable(error: BaseException) -> bool:
    """Whether a failed immediate write should be handed to the outbox."""
    return isinstance(error, BlueHorizonError) and error.retryable


def to_error_response(error: BlueHorizonError) -> Dict[str, str]:
    """Serializable error for the GUI shell."""
    return {"code": error.code.value, "message": str(error)}
