"""
Exception types raised by the HTTP, auth and transport layers.

The session client catches these at its boundary and surfaces them as
`ServerError` values through `on_error_received`; they only reach callers of
the lower layers (and the CLI) directly.
"""

from typing import Any, Optional


class InworldSessionError(Exception):
    def __init__(self, code: str, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.details = details


class AuthError(InworldSessionError):
    def __init__(self, message: str, code: str = "auth_error"):
        super().__init__(code, message)


class SessionError(InworldSessionError):
    def __init__(self, message: str, code: str = "session_error", details: Optional[dict[str, Any]] = None):
        super().__init__(code, message, details)


class TransportError(InworldSessionError):
    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("transport_error", message, details)
