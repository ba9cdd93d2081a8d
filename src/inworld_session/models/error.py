"""
Protocol error payload — returned by the server in place of a packet, or built client-side.
"""

from enum import Enum
from typing import Optional

from inworld_session.models.wire import WireModel


class ErrorType(str, Enum):
    UNDEFINED = "UNDEFINED"
    CLIENT_ERROR = "CLIENT_ERROR"
    SESSION_TOKEN_EXPIRED = "SESSION_TOKEN_EXPIRED"
    SESSION_TOKEN_INVALID = "SESSION_TOKEN_INVALID"
    SESSION_RESOURCES_EXHAUSTED = "SESSION_RESOURCES_EXHAUSTED"
    BILLING_TOKENS_EXHAUSTED = "BILLING_TOKENS_EXHAUSTED"
    ACCOUNT_DISABLED = "ACCOUNT_DISABLED"
    SESSION_INVALID = "SESSION_INVALID"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    SAFETY_VIOLATION = "SAFETY_VIOLATION"
    SESSION_EXPIRED = "SESSION_EXPIRED"
    AUDIO_SESSION_EXPIRED = "AUDIO_SESSION_EXPIRED"
    SESSION_PAUSED = "SESSION_PAUSED"

    @classmethod
    def _missing_(cls, value: object) -> "ErrorType":
        return cls.UNDEFINED


class ReconnectionType(str, Enum):
    UNDEFINED = "UNDEFINED"
    NO_RETRY = "NO_RETRY"
    IMMEDIATE = "IMMEDIATE"
    TIMEOUT = "TIMEOUT"

    @classmethod
    def _missing_(cls, value: object) -> "ReconnectionType":
        return cls.UNDEFINED


class ErrorDetail(WireModel):
    error_type: ErrorType = ErrorType.UNDEFINED
    reconnect_type: ReconnectionType = ReconnectionType.UNDEFINED
    reconnect_time: Optional[str] = None
    max_retries: int = 0


class ServerError(WireModel):
    code: int = -1
    message: str = ""
    details: list[ErrorDetail] = []

    @classmethod
    def from_message(cls, message: str) -> "ServerError":
        """Client-side error: no server directive, so recovery is left to backoff."""
        return cls(
            code=-1,
            message=message,
            details=[ErrorDetail(error_type=ErrorType.CLIENT_ERROR, reconnect_type=ReconnectionType.UNDEFINED)],
        )

    @property
    def is_valid(self) -> bool:
        return bool(self.message)

    @property
    def retry_type(self) -> ReconnectionType:
        return self.details[0].reconnect_type if self.details else ReconnectionType.UNDEFINED

    @property
    def error_type(self) -> ErrorType:
        return self.details[0].error_type if self.details else ErrorType.UNDEFINED

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"
