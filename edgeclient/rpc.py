"""
JSON-RPC 2.0 session management for the Edge Core client.

This module correlates outbound requests with their responses, races each
call against its timeout, and dispatches inbound requests from the peer to
exposed handlers, guaranteeing every inbound request exactly one reply.
"""

import asyncio
import inspect
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from .errors import EdgeConnectionError, RemoteError, RpcTimeoutError, ValidationError

logger = logging.getLogger(__name__)

JSONRPC_VERSION = "2.0"

# Standard JSON-RPC 2.0 error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

DEFAULT_SOCKET_PATH = "/tmp/edge.sock"
DEFAULT_CALL_TIMEOUT = 10.0

InboundHandler = Callable[[Any, 'InboundReply'], Any]


class RpcTransport(ABC):
    """
    Abstract base class for RPC transports.

    A transport provides a bidirectional stream of text frames.
    """

    @abstractmethod
    async def send(self, message: str) -> None:
        """Send a message to the remote peer."""
        pass

    @abstractmethod
    async def receive(self) -> str:
        """
        Receive a message from the remote peer.

        Raises EdgeConnectionError once the connection is gone.
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the transport."""
        pass


class EdgeClientOptions:
    """Configuration options for Edge Core clients."""

    def __init__(self,
                 socket_path: str = DEFAULT_SOCKET_PATH,
                 call_timeout: float = DEFAULT_CALL_TIMEOUT,
                 open_timeout: Optional[float] = 10.0,
                 max_message_size: int = 1024 * 1024,  # 1MB
                 debug: bool = False,
                 on_connect: Optional[Callable[[], Awaitable[None]]] = None,
                 on_disconnect: Optional[Callable[[Optional[Exception]], Awaitable[None]]] = None):
        """
        Initialize client options.

        Args:
            socket_path: Filesystem path of the Edge Core Unix socket
            call_timeout: Default timeout in seconds for outbound calls
            open_timeout: Handshake timeout handed to the transport
            max_message_size: Maximum incoming frame size in bytes
            debug: Log every frame sent and received
            on_connect: Callback called when the connection is established
            on_disconnect: Callback called when the connection goes away
        """
        self.socket_path = socket_path
        self.call_timeout = call_timeout
        self.open_timeout = open_timeout
        self.max_message_size = max_message_size
        self.debug = debug
        self.on_connect = on_connect
        self.on_disconnect = on_disconnect


class InboundReply:
    """
    Reply handle passed to inbound handlers.

    Exactly one of ok() or error() takes effect; later calls are ignored.
    Notifications (requests without an id) get a handle that never sends.
    """

    def __init__(self, session: 'JsonRpcSession', request_id: Any, method: str):
        self._session = session
        self._request_id = request_id
        self._method = method
        self.sent = False

    @property
    def is_notification(self) -> bool:
        return self._request_id is None

    async def ok(self, result: Any = "ok") -> None:
        """Reply with a success result."""
        await self._send({
            "jsonrpc": JSONRPC_VERSION,
            "id": self._request_id,
            "result": result,
        })

    async def error(self, code: int, message: str, data: Any = None) -> None:
        """Reply with a JSON-RPC error object."""
        await self._send({
            "jsonrpc": JSONRPC_VERSION,
            "id": self._request_id,
            "error": _error_object(code, message, data),
        })

    async def _send(self, message: Dict[str, Any]) -> None:
        if self.sent:
            logger.warning(f"Ignoring second reply to inbound '{self._method}' call")
            return
        if self.is_notification:
            self.sent = True
            return

        # Encoding errors leave the reply unclaimed so an error reply can follow.
        message_text = self._session._encode(message)
        self.sent = True
        await self._session._send_text(message_text)


def _error_object(code: int, message: str, data: Any = None) -> Dict[str, Any]:
    error = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return error


class JsonRpcSession:
    """
    One JSON-RPC conversation over one transport.

    Outbound calls each own a correlation id, a future and a timeout.
    Inbound requests each run in their own task so a handler that makes
    outbound calls does not stall the read loop.
    """

    def __init__(self, transport: RpcTransport, options: Optional[EdgeClientOptions] = None,
                 on_closed: Optional[Callable[[Optional[Exception]], None]] = None):
        self.transport = transport
        self.options = options or EdgeClientOptions()
        self.methods: Dict[str, InboundHandler] = {}

        self._pending: Dict[int, asyncio.Future] = {}
        self._result_hooks: Dict[int, Callable[[Any], None]] = {}
        self._next_id = 1
        self._send_lock = asyncio.Lock()
        self._inbound_tasks: Set[asyncio.Task] = set()
        self._on_closed = on_closed
        self.close_reason: Optional[Exception] = None

        # Start message reading loop
        self.read_task: Optional[asyncio.Task] = asyncio.create_task(self._read_loop())

    @property
    def closed(self) -> bool:
        return self.close_reason is not None

    def expose(self, method: str, handler: InboundHandler) -> None:
        """Install an inbound handler for ``method``."""
        self.methods[method] = handler

    async def call(self, method: str, params: Any = None, timeout: Optional[float] = None,
                   on_result: Optional[Callable[[Any], None]] = None) -> Any:
        """
        Send a request and wait for its single settlement.

        The timeout covers both sending and waiting. When it fires first the
        pending slot is dropped, so a late response is discarded.

        ``on_result`` runs in the read loop on a success response, before any
        frame received after that response is dispatched.
        """
        if self.closed:
            raise EdgeConnectionError(f"Cannot call '{method}': {self.close_reason}")

        if timeout is None:
            timeout = self.options.call_timeout

        request_id = self._next_id
        self._next_id += 1

        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        if on_result is not None:
            self._result_hooks[request_id] = on_result

        message = {"jsonrpc": JSONRPC_VERSION, "id": request_id, "method": method}
        if params is not None:
            message["params"] = params

        async def _roundtrip():
            await self._send_message(message)
            return await future

        try:
            return await asyncio.wait_for(_roundtrip(), timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Call '{method}' (id {request_id}) timed out after {timeout}s")
            raise RpcTimeoutError(method, timeout) from None
        finally:
            self._pending.pop(request_id, None)
            self._result_hooks.pop(request_id, None)

    def _encode(self, message: Dict[str, Any]) -> str:
        return json.dumps(message)

    async def _send_message(self, message: Dict[str, Any]) -> None:
        await self._send_text(self._encode(message))

    async def _send_text(self, message_text: str) -> None:
        if self.closed:
            raise EdgeConnectionError(f"Cannot send on closed session: {self.close_reason}")

        if self.options.debug:
            logger.debug(f"--> {message_text}")

        async with self._send_lock:
            await self.transport.send(message_text)

    async def _read_loop(self) -> None:
        """Main message reading loop."""
        while not self.closed:
            try:
                message_text = await self.transport.receive()
            except asyncio.CancelledError:
                break
            except Exception as e:
                if not self.closed:
                    logger.info(f"Connection closed: {e}")
                    self._shutdown(e if isinstance(e, EdgeConnectionError)
                                   else EdgeConnectionError(f"Connection lost: {e}"))
                break

            if self.options.debug:
                logger.debug(f"<-- {message_text}")

            if len(message_text) > self.options.max_message_size:
                logger.error(f"Dropping {len(message_text)} byte message, limit is "
                             f"{self.options.max_message_size}")
                continue

            self._handle_text(message_text)

    def _handle_text(self, message_text: str) -> None:
        try:
            message = json.loads(message_text)
        except json.JSONDecodeError as e:
            logger.warning(f"Received unparseable message: {e}")
            self._reply_error_later(None, PARSE_ERROR, "Parse error")
            return

        if isinstance(message, list):
            if not message:
                self._reply_error_later(None, INVALID_REQUEST, "Invalid Request")
            for item in message:
                self._handle_message(item)
        else:
            self._handle_message(message)

    def _handle_message(self, message: Any) -> None:
        """Route a single decoded message."""
        if not isinstance(message, dict):
            self._reply_error_later(None, INVALID_REQUEST, "Invalid Request")
            return

        if "method" in message:
            self._start_inbound(message)
        elif "result" in message or "error" in message:
            self._handle_response(message)
        else:
            logger.warning(f"Ignoring message that is neither request nor response: {message}")
            if "id" in message:
                self._reply_error_later(message.get("id"), INVALID_REQUEST, "Invalid Request")

    def _handle_response(self, message: Dict[str, Any]) -> None:
        request_id = message.get("id")
        future = self._pending.get(request_id)
        if future is None or future.done():
            logger.debug(f"Discarding response for unknown or settled call id {request_id}")
            return

        if "error" in message and message["error"] is not None:
            future.set_exception(RemoteError.from_error_object(message["error"]))
            return

        result = message.get("result")
        on_result = self._result_hooks.pop(request_id, None)
        if on_result is not None:
            try:
                on_result(result)
            except Exception as e:
                future.set_exception(e)
                return
        future.set_result(result)

    def _start_inbound(self, message: Dict[str, Any]) -> None:
        task = asyncio.create_task(self._dispatch_inbound(message))
        self._inbound_tasks.add(task)
        task.add_done_callback(self._inbound_tasks.discard)

    async def _dispatch_inbound(self, message: Dict[str, Any]) -> None:
        """Run an inbound handler and make sure the peer gets exactly one reply."""
        method = message.get("method")
        reply = InboundReply(self, message.get("id"), str(method))

        try:
            if not isinstance(method, str):
                await reply.error(INVALID_REQUEST, "Invalid Request")
                return

            handler = self.methods.get(method)
            if handler is None:
                logger.warning(f"No handler exposed for inbound method '{method}'")
                await reply.error(METHOD_NOT_FOUND, "Method not found", method)
                return

            params = message.get("params", {})
            result = handler(params, reply)
            if inspect.isawaitable(result):
                result = await result

            if not reply.sent:
                await reply.ok(result)

        except asyncio.CancelledError:
            raise
        except ValidationError as e:
            logger.error(f"Invalid params for inbound '{method}': {e}")
            await self._reply_failure(reply, INVALID_PARAMS, e.message, e.data)
        except RemoteError as e:
            await self._reply_failure(reply, e.code, e.message, e.data)
        except Exception as e:
            logger.exception(f"Inbound handler for '{method}' failed")
            await self._reply_failure(reply, INTERNAL_ERROR, str(e) or type(e).__name__)

    async def _reply_failure(self, reply: InboundReply, code: int, message: str, data: Any = None) -> None:
        if reply.sent:
            # Handler replied before failing; the peer is already settled.
            logger.debug(f"Handler failed after replying: {message}")
            return
        try:
            try:
                await reply.error(code, message, data)
            except (TypeError, ValueError):
                # data is not JSON encodable
                await reply.error(code, message)
        except Exception as e:
            logger.error(f"Failed to send error reply: {e}")

    def _reply_error_later(self, request_id: Any, code: int, message: str) -> None:
        async def _reply():
            try:
                await self._send_message({
                    "jsonrpc": JSONRPC_VERSION,
                    "id": request_id,
                    "error": _error_object(code, message),
                })
            except Exception as e:
                logger.error(f"Failed to send error reply: {e}")

        task = asyncio.create_task(_reply())
        self._inbound_tasks.add(task)
        task.add_done_callback(self._inbound_tasks.discard)

    def _shutdown(self, reason: Exception) -> None:
        """Fail every pending call and stop inbound work. Runs once."""
        if self.closed:
            return
        self.close_reason = reason

        for future in self._pending.values():
            if not future.done():
                future.set_exception(reason)
        self._pending.clear()
        self._result_hooks.clear()

        current = asyncio.current_task()
        for task in list(self._inbound_tasks):
            if task is not current and not task.done():
                task.cancel()

        if self._on_closed:
            try:
                self._on_closed(reason)
            except Exception as e:
                logger.error(f"Error in close callback: {e}")

    async def close(self) -> None:
        """
        Close the session and its transport.

        Errors from the transport propagate to the caller after the session
        has been torn down.
        """
        if not self.closed:
            self._shutdown(EdgeConnectionError("Session closed"))

        if self.read_task and not self.read_task.done() and self.read_task is not asyncio.current_task():
            self.read_task.cancel()
            try:
                await self.read_task
            except asyncio.CancelledError:
                pass

        await self.transport.close()
