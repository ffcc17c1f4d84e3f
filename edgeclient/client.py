"""
Edge Core gateway client.

EdgeClient owns one connection to Edge Core, registers the caller under a
role and exposes the inbound handlers that Edge Core may invoke. Role
specific APIs (protocol translator, resource manager, management) compose
an EdgeClient rather than subclass it.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

from .errors import ClientStateError, DisconnectError, EdgeConnectionError
from .rpc import EdgeClientOptions, InboundHandler, JsonRpcSession, RpcTransport
from .websocket import connect_unix, format_locator

logger = logging.getLogger(__name__)

TransportFactory = Callable[[str, str, EdgeClientOptions], Awaitable[RpcTransport]]


class ClientState(Enum):
    """Client lifecycle states."""
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    REGISTERED = "registered"


class Role(Enum):
    """Edge Core API roles: (api path, registration method)."""
    PROTOCOL_TRANSLATOR = ("/1/pt", "protocol_translator_register")
    GATEWAY_RESOURCE_MANAGER = ("/1/grm", "gw_resource_manager_register")
    MANAGEMENT = ("/1/mgmt", None)

    @property
    def api_path(self) -> str:
        return self.value[0]

    @property
    def register_method(self) -> Optional[str]:
        return self.value[1]


async def default_transport_factory(socket_path: str, api_path: str,
                                    options: EdgeClientOptions) -> RpcTransport:
    return await connect_unix(socket_path, api_path,
                              open_timeout=options.open_timeout,
                              max_message_size=options.max_message_size)


class EdgeClient:
    """
    A single connection to Edge Core for one role.

    Lifecycle: DISCONNECTED -> CONNECTED -> REGISTERED -> DISCONNECTED.
    Handlers passed to expose() before registration are held back and
    installed as soon as registration succeeds.
    """

    def __init__(self,
                 role: Role,
                 options: Optional[EdgeClientOptions] = None,
                 transport_factory: Optional[TransportFactory] = None):
        self.role = role
        self.options = options or EdgeClientOptions()
        self.transport_factory = transport_factory or default_transport_factory

        self._session: Optional[JsonRpcSession] = None
        self._state = ClientState.DISCONNECTED
        self._handlers: Dict[str, InboundHandler] = {}

    @property
    def state(self) -> ClientState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state != ClientState.DISCONNECTED

    @property
    def registered(self) -> bool:
        return self._state == ClientState.REGISTERED

    async def connect(self, socket_path: Optional[str] = None, api_path: Optional[str] = None) -> 'EdgeClient':
        """
        Open the connection to Edge Core.

        Raises EdgeConnectionError if the transport fails, and
        ClientStateError if a connection is already open.
        """
        if self._state != ClientState.DISCONNECTED:
            raise ClientStateError("Already connected; disconnect before reconnecting")

        socket_path = socket_path or self.options.socket_path
        api_path = api_path or self.role.api_path
        logger.info(f'Connecting to "{format_locator(socket_path, api_path)}"')

        try:
            transport = await self.transport_factory(socket_path, api_path, self.options)
        except EdgeConnectionError:
            raise
        except OSError as e:
            raise EdgeConnectionError(f"Could not connect to {socket_path}: {e}") from e

        self._session = JsonRpcSession(transport, self.options, on_closed=self._on_session_closed)
        self._state = ClientState.CONNECTED

        # Roles without a registration step take their handlers right away.
        if self.role.register_method is None:
            self._install_handlers()

        if self.options.on_connect:
            try:
                await self.options.on_connect()
            except Exception as e:
                logger.error(f"Error in connect callback: {e}")

        return self

    async def disconnect(self) -> None:
        """
        Close the connection.

        Does nothing when already disconnected. Pending calls fail with
        EdgeConnectionError. A transport fault while closing is raised as
        DisconnectError after the client has been marked disconnected.
        """
        session = self._session
        if session is None:
            return

        logger.info("Disconnecting from Edge.")
        self._session = None
        self._state = ClientState.DISCONNECTED

        try:
            await session.close()
        except DisconnectError:
            raise
        except Exception as e:
            raise DisconnectError(f"Error while disconnecting: {e}") from e

    async def call(self, method: str, params: Any = None, timeout: Optional[float] = None) -> Any:
        """
        Send a request to Edge Core and return its result.

        Raises RemoteError, RpcTimeoutError or EdgeConnectionError. Timeout
        is in seconds and defaults to the options' call_timeout.
        """
        if self._session is None:
            raise ClientStateError(f"Cannot call '{method}' while disconnected")
        return await self._session.call(method, params, timeout)

    async def register(self, role: Optional[Role] = None, name: str = "") -> Any:
        """
        Register with Edge Core under ``role`` using ``name``.

        The held back handler set is installed as soon as the success
        response is read, before any frame that follows it is dispatched.
        """
        role = role or self.role
        if role.register_method is None:
            raise ClientStateError(f"Role {role.name} has no registration step")
        if self._state == ClientState.REGISTERED:
            raise ClientStateError("Already registered")
        if self._state != ClientState.CONNECTED:
            raise ClientStateError("Cannot register while disconnected")

        def on_registered(result: Any) -> None:
            self._state = ClientState.REGISTERED
            self._install_handlers()

        response = await self._session.call(role.register_method, {"name": name},
                                            on_result=on_registered)
        logger.debug(f"Registered '{name}' as {role.name}")
        return response

    def expose(self, method_name: str, handler: InboundHandler) -> None:
        """
        Expose an inbound handler for ``method_name``.

        The handler is called as handler(params, reply), may be a coroutine
        function, and answers via reply.ok()/reply.error() or by returning
        a result. Exposing a name twice raises ValueError.
        """
        if method_name in self._handlers:
            raise ValueError(f"Handler for '{method_name}' already exposed")
        self._handlers[method_name] = handler

        if self._session is not None and self._handlers_live():
            self._session.expose(method_name, handler)

    def _handlers_live(self) -> bool:
        return self._state == ClientState.REGISTERED or (
            self._state == ClientState.CONNECTED and self.role.register_method is None)

    def _install_handlers(self) -> None:
        for method_name, handler in self._handlers.items():
            self._session.expose(method_name, handler)

    def _on_session_closed(self, reason: Optional[Exception]) -> None:
        """Called by the session when the connection goes away on its own."""
        if self._session is None:
            return
        logger.warning(f"Connection to Edge Core lost: {reason}")
        self._session = None
        self._state = ClientState.DISCONNECTED

        if self.options.on_disconnect:
            asyncio.ensure_future(self._notify_disconnect(reason))

    async def _notify_disconnect(self, reason: Optional[Exception]) -> None:
        try:
            await self.options.on_disconnect(reason)
        except Exception as e:
            logger.error(f"Error in disconnect callback: {e}")

    async def __aenter__(self) -> 'EdgeClient':
        if not self.connected:
            await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()
