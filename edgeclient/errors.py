"""
Exception types for the Edge Core client.

Every outbound call settles with a result or one of these errors. Inbound
handler failures never surface here; they are turned into JSON-RPC error
replies by the session.
"""

from typing import Any, Optional


class EdgeError(Exception):
    """Base class for all Edge Core client errors."""


class EdgeConnectionError(EdgeError, ConnectionError):
    """The transport could not be opened, or was lost while in use."""


class DisconnectError(EdgeConnectionError):
    """The transport reported a fault while closing."""


class RpcTimeoutError(EdgeError, TimeoutError):
    """No response arrived for a call within its timeout."""

    def __init__(self, method: str, timeout: Optional[float]):
        super().__init__(f"Timeout waiting for '{method}' response after {timeout}s")
        self.method = method
        self.timeout = timeout


class RemoteError(EdgeError):
    """Edge Core answered a call with a JSON-RPC error object."""

    def __init__(self, code: int, message: str, data: Any = None):
        super().__init__(f"[{code}] {message}")
        self.code = code
        self.message = message
        self.data = data

    @classmethod
    def from_error_object(cls, error: Any) -> 'RemoteError':
        """Build from the ``error`` member of a JSON-RPC response."""
        if not isinstance(error, dict):
            return cls(-32603, str(error))
        return cls(error.get("code", -32603), error.get("message", ""), error.get("data"))


class ValidationError(EdgeError, ValueError):
    """
    Inbound parameters are missing or malformed.

    Raised inside inbound handlers and by the payload codec. The session
    answers the peer with an invalid-params error carrying ``data``.
    """

    def __init__(self, message: str, data: Any = None):
        super().__init__(message)
        self.message = message
        self.data = data if data is not None else message


class ClientStateError(EdgeError, RuntimeError):
    """An operation was attempted in the wrong client state."""
