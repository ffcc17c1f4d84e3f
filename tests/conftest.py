"""
Shared fixtures: an in-memory transport that stands in for Edge Core.
"""

import asyncio
import json
from typing import Any, Dict, List, Optional, Union

import pytest

from edgeclient.errors import EdgeConnectionError
from edgeclient.rpc import RpcTransport


class MockTransport(RpcTransport):
    """Transport whose peer side is driven by the test."""

    def __init__(self):
        self.sent: List[Dict[str, Any]] = []
        self.incoming: asyncio.Queue = asyncio.Queue()
        self.outgoing: asyncio.Queue = asyncio.Queue()
        self.closed = False
        self.close_error: Optional[Exception] = None
        self.locator = None

    async def send(self, message: str) -> None:
        if self.closed:
            raise EdgeConnectionError("Transport closed")
        decoded = json.loads(message)
        self.sent.append(decoded)
        self.outgoing.put_nowait(decoded)

    async def receive(self) -> str:
        item = await self.incoming.get()
        if item is None:
            raise EdgeConnectionError("Peer closed the connection")
        return item

    async def close(self) -> None:
        self.closed = True
        if self.close_error is not None:
            raise self.close_error

    # Peer side helpers

    def push(self, message: Union[Dict[str, Any], str]) -> None:
        if not isinstance(message, str):
            message = json.dumps(message)
        self.incoming.put_nowait(message)

    def peer_close(self) -> None:
        self.incoming.put_nowait(None)

    async def next_sent(self, timeout: float = 1.0) -> Dict[str, Any]:
        return await asyncio.wait_for(self.outgoing.get(), timeout)

    def respond(self, request: Dict[str, Any], result: Any = "ok") -> None:
        self.push({"jsonrpc": "2.0", "id": request["id"], "result": result})

    def respond_error(self, request: Dict[str, Any], code: int, message: str, data: Any = None) -> None:
        error = {"code": code, "message": message}
        if data is not None:
            error["data"] = data
        self.push({"jsonrpc": "2.0", "id": request["id"], "error": error})

    async def expect_call(self, method: str, result: Any = "ok") -> Dict[str, Any]:
        """Wait for the next request, check its method and answer it."""
        request = await self.next_sent()
        assert request["method"] == method
        self.respond(request, result)
        return request

    def sent_methods(self) -> List[str]:
        return [message["method"] for message in self.sent if "method" in message]

    def replies_to(self, request_id: Any) -> List[Dict[str, Any]]:
        return [message for message in self.sent
                if "method" not in message and message.get("id") == request_id]


async def auto_respond(transport: MockTransport, results: Optional[Dict[str, Any]] = None) -> None:
    """Answer every request with ``results[method]`` or "ok", forever."""
    results = results or {}
    while True:
        message = await transport.outgoing.get()
        if "method" in message and "id" in message:
            transport.respond(message, results.get(message["method"], "ok"))


@pytest.fixture
def transport():
    return MockTransport()


@pytest.fixture
def transport_factory(transport):
    async def factory(socket_path, api_path, options):
        transport.locator = (socket_path, api_path)
        return transport
    return factory
