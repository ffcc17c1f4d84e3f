"""
WebSocket transport for the Edge Core client.

Edge Core listens on a Unix domain socket and speaks WebSocket on it; the
HTTP request path selects the API (``/1/pt``, ``/1/grm``, ``/1/mgmt``).
"""

import logging
from typing import Optional

from websockets.asyncio.client import ClientConnection, unix_connect
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidURI, WebSocketException

from .errors import DisconnectError, EdgeConnectionError
from .rpc import RpcTransport

logger = logging.getLogger(__name__)


def locator_uri(api_path: str) -> str:
    """Build the WebSocket URI for an API path on the Unix socket."""
    if not api_path.startswith("/"):
        api_path = "/" + api_path
    return f"ws://localhost{api_path}"


def format_locator(socket_path: str, api_path: str) -> str:
    """Human readable locator, in the ``ws+unix://socket:path`` form."""
    return f"ws+unix://{socket_path}:{api_path}"


class WebSocketTransport(RpcTransport):
    """WebSocket transport implementation."""

    def __init__(self, websocket: ClientConnection):
        self._websocket = websocket
        self._closed = False

    async def send(self, message: str) -> None:
        """Send a message over the WebSocket."""
        if self._closed:
            raise EdgeConnectionError("Cannot send on closed transport")

        try:
            await self._websocket.send(message)
        except ConnectionClosed as e:
            self._closed = True
            raise EdgeConnectionError(f"Connection closed while sending: {e}") from e

    async def receive(self) -> str:
        """Receive a message from the WebSocket."""
        if self._closed:
            raise EdgeConnectionError("Cannot receive on closed transport")

        try:
            message = await self._websocket.recv()
        except ConnectionClosed as e:
            self._closed = True
            raise EdgeConnectionError(f"Connection closed: {e}") from e

        if isinstance(message, bytes):
            message = message.decode('utf-8')
        return message

    async def close(self) -> None:
        """Close the WebSocket connection."""
        self._closed = True
        try:
            await self._websocket.close()
        except (OSError, WebSocketException) as e:
            raise DisconnectError(f"Error closing WebSocket: {e}") from e


async def connect_unix(socket_path: str,
                       api_path: str,
                       open_timeout: Optional[float] = 10.0,
                       max_message_size: Optional[int] = None) -> WebSocketTransport:
    """
    Open a WebSocket over the Unix socket at ``socket_path``.

    Only the transport's own handshake timeout applies.
    """
    uri = locator_uri(api_path)
    try:
        websocket = await unix_connect(
            socket_path,
            uri,
            open_timeout=open_timeout,
            max_size=max_message_size,
        )
    except (OSError, InvalidHandshake, InvalidURI, TimeoutError) as e:
        raise EdgeConnectionError(
            f"Could not connect to {format_locator(socket_path, api_path)}: {e}") from e

    logger.debug(f"WebSocket open on {format_locator(socket_path, api_path)}")
    return WebSocketTransport(websocket)
