"""
Tests for the JSON-RPC session: correlation, timeouts and inbound dispatch.
"""

import asyncio

import pytest

from conftest import MockTransport
from edgeclient.errors import EdgeConnectionError, RemoteError, RpcTimeoutError, ValidationError
from edgeclient.rpc import (INTERNAL_ERROR, INVALID_PARAMS, METHOD_NOT_FOUND, PARSE_ERROR,
                            EdgeClientOptions, JsonRpcSession)


async def settle():
    """Let the read loop and inbound tasks run."""
    for _ in range(5):
        await asyncio.sleep(0)


class TestOutboundCalls:
    """Outbound requests and their single settlement."""

    @pytest.mark.asyncio
    async def test_call_returns_result(self, transport):
        session = JsonRpcSession(transport)
        task = asyncio.create_task(session.call("devices", {}))

        request = await transport.next_sent()
        assert request["jsonrpc"] == "2.0"
        assert request["method"] == "devices"
        assert request["params"] == {}
        transport.respond(request, {"data": []})

        assert await task == {"data": []}
        assert session._pending == {}
        await session.close()

    @pytest.mark.asyncio
    async def test_params_omitted_when_none(self, transport):
        session = JsonRpcSession(transport)
        task = asyncio.create_task(session.call("ping"))
        request = await transport.next_sent()
        assert "params" not in request
        transport.respond(request)
        assert await task == "ok"
        await session.close()

    @pytest.mark.asyncio
    async def test_error_response_raises_remote_error(self, transport):
        session = JsonRpcSession(transport)
        task = asyncio.create_task(session.call("device_register", {"deviceId": "d"}))

        request = await transport.next_sent()
        transport.respond_error(request, -30000, "Protocol translator not registered", "detail")

        with pytest.raises(RemoteError) as info:
            await task
        assert info.value.code == -30000
        assert info.value.message == "Protocol translator not registered"
        assert info.value.data == "detail"
        await session.close()

    @pytest.mark.asyncio
    async def test_timeout_then_late_reply_is_discarded(self, transport):
        session = JsonRpcSession(transport)

        with pytest.raises(RpcTimeoutError) as info:
            await session.call("devices", {}, timeout=0.05)
        assert info.value.method == "devices"
        assert info.value.timeout == 0.05
        assert session._pending == {}

        request = await transport.next_sent()
        transport.respond(request, "too late")
        await settle()

        assert not session.closed
        assert session._pending == {}
        await session.close()

    @pytest.mark.asyncio
    async def test_default_timeout_from_options(self, transport):
        session = JsonRpcSession(transport, EdgeClientOptions(call_timeout=0.05))
        with pytest.raises(RpcTimeoutError):
            await session.call("devices")
        await session.close()

    @pytest.mark.asyncio
    async def test_out_of_order_responses(self, transport):
        """Concurrent calls get distinct ids and their own results."""
        session = JsonRpcSession(transport)
        first = asyncio.create_task(session.call("read_resource", {"n": 1}))
        second = asyncio.create_task(session.call("read_resource", {"n": 2}))

        request_1 = await transport.next_sent()
        request_2 = await transport.next_sent()
        assert request_1["id"] != request_2["id"]

        transport.respond(request_2, "two")
        transport.respond(request_1, "one")

        results = {request_1["params"]["n"]: await first, request_2["params"]["n"]: await second}
        assert results == {1: "one", 2: "two"}
        await session.close()

    @pytest.mark.asyncio
    async def test_connection_loss_fails_pending_calls(self, transport):
        closed = []
        session = JsonRpcSession(transport, on_closed=closed.append)
        task = asyncio.create_task(session.call("devices", {}))
        await transport.next_sent()

        transport.peer_close()

        with pytest.raises(EdgeConnectionError):
            await task
        assert session.closed
        assert len(closed) == 1
        assert isinstance(closed[0], EdgeConnectionError)

    @pytest.mark.asyncio
    async def test_call_after_close(self, transport):
        session = JsonRpcSession(transport)
        await session.close()
        assert transport.closed
        with pytest.raises(EdgeConnectionError):
            await session.call("devices")

    @pytest.mark.asyncio
    async def test_on_result_runs_before_next_frame(self, transport):
        """The result hook sees the response before a request sent right after it."""
        session = JsonRpcSession(transport)
        events = []

        session.expose("write", lambda params, reply: events.append("write"))
        call = asyncio.create_task(
            session.call("register", {}, on_result=lambda result: events.append(result)))

        request = await transport.next_sent()
        transport.respond(request, "registered")
        transport.push({"jsonrpc": "2.0", "id": 50, "method": "write", "params": {}})

        assert await call == "registered"
        await transport.next_sent()
        assert events == ["registered", "write"]
        await session.close()

    @pytest.mark.asyncio
    async def test_on_result_skipped_on_error(self, transport):
        session = JsonRpcSession(transport)
        seen = []
        call = asyncio.create_task(session.call("register", {}, on_result=seen.append))

        request = await transport.next_sent()
        transport.respond_error(request, -30003, "Name reserved")

        with pytest.raises(RemoteError):
            await call
        assert seen == []
        await session.close()

    @pytest.mark.asyncio
    async def test_oversized_message_dropped(self, transport):
        session = JsonRpcSession(transport, EdgeClientOptions(max_message_size=64))
        task = asyncio.create_task(session.call("devices", timeout=0.2))
        request = await transport.next_sent()
        transport.respond(request, "x" * 100)

        with pytest.raises(RpcTimeoutError):
            await task
        assert not session.closed
        await session.close()


class TestInboundDispatch:
    """Inbound requests from the peer get exactly one reply."""

    @pytest.mark.asyncio
    async def test_handler_replies_ok(self, transport):
        session = JsonRpcSession(transport)
        received = []

        async def write(params, reply):
            received.append(params)
            await reply.ok()

        session.expose("write", write)
        transport.push({"jsonrpc": "2.0", "id": 7, "method": "write", "params": {"value": "AA=="}})

        reply = await transport.next_sent()
        assert reply == {"jsonrpc": "2.0", "id": 7, "result": "ok"}
        assert received == [{"value": "AA=="}]
        await session.close()

    @pytest.mark.asyncio
    async def test_return_value_becomes_result(self, transport):
        session = JsonRpcSession(transport)
        session.expose("echo", lambda params, reply: params["text"])
        transport.push({"jsonrpc": "2.0", "id": "a", "method": "echo", "params": {"text": "hi"}})

        reply = await transport.next_sent()
        assert reply["id"] == "a"
        assert reply["result"] == "hi"
        await session.close()

    @pytest.mark.asyncio
    async def test_second_reply_ignored(self, transport):
        session = JsonRpcSession(transport)

        async def twice(params, reply):
            await reply.ok("first")
            await reply.error(INTERNAL_ERROR, "second")
            await reply.ok("third")

        session.expose("twice", twice)
        transport.push({"jsonrpc": "2.0", "id": 3, "method": "twice"})

        reply = await transport.next_sent()
        assert reply["result"] == "first"
        await settle()
        assert transport.replies_to(3) == [reply]
        await session.close()

    @pytest.mark.asyncio
    async def test_handler_exception_is_internal_error(self, transport):
        session = JsonRpcSession(transport)

        async def broken(params, reply):
            raise RuntimeError("boom")

        session.expose("broken", broken)
        transport.push({"jsonrpc": "2.0", "id": 4, "method": "broken"})

        reply = await transport.next_sent()
        assert reply["id"] == 4
        assert reply["error"]["code"] == INTERNAL_ERROR
        assert reply["error"]["message"] == "boom"
        assert not session.closed
        await session.close()

    @pytest.mark.asyncio
    async def test_unencodable_result_is_internal_error(self, transport):
        """A result JSON cannot carry still gets exactly one error reply."""
        session = JsonRpcSession(transport)
        session.expose("read", lambda params, reply: b"\x00\x01")
        transport.push({"jsonrpc": "2.0", "id": 21, "method": "read"})

        reply = await transport.next_sent()
        assert reply["id"] == 21
        assert reply["error"]["code"] == INTERNAL_ERROR
        await settle()
        assert transport.replies_to(21) == [reply]
        await session.close()

    @pytest.mark.asyncio
    async def test_unencodable_error_data_dropped(self, transport):
        session = JsonRpcSession(transport)

        def refuse(params, reply):
            raise RemoteError(-30001, "Refused", b"raw")

        session.expose("refuse", refuse)
        transport.push({"jsonrpc": "2.0", "id": 22, "method": "refuse"})

        reply = await transport.next_sent()
        assert reply["error"] == {"code": -30001, "message": "Refused"}
        await settle()
        assert transport.replies_to(22) == [reply]
        await session.close()

    @pytest.mark.asyncio
    async def test_validation_error_is_invalid_params(self, transport):
        session = JsonRpcSession(transport)

        def strict(params, reply):
            raise ValidationError("Missing fields in params: version")

        session.expose("strict", strict)
        transport.push({"jsonrpc": "2.0", "id": 5, "method": "strict", "params": {}})

        reply = await transport.next_sent()
        assert reply["error"] == {
            "code": INVALID_PARAMS,
            "message": "Missing fields in params: version",
            "data": "Missing fields in params: version",
        }
        await session.close()

    @pytest.mark.asyncio
    async def test_remote_error_passes_through(self, transport):
        session = JsonRpcSession(transport)

        def refuse(params, reply):
            raise RemoteError(-30001, "Refused", {"why": "test"})

        session.expose("refuse", refuse)
        transport.push({"jsonrpc": "2.0", "id": 6, "method": "refuse"})

        reply = await transport.next_sent()
        assert reply["error"] == {"code": -30001, "message": "Refused", "data": {"why": "test"}}
        await session.close()

    @pytest.mark.asyncio
    async def test_unknown_method(self, transport):
        session = JsonRpcSession(transport)
        transport.push({"jsonrpc": "2.0", "id": 8, "method": "nope"})

        reply = await transport.next_sent()
        assert reply["id"] == 8
        assert reply["error"]["code"] == METHOD_NOT_FOUND
        await session.close()

    @pytest.mark.asyncio
    async def test_notification_gets_no_reply(self, transport):
        session = JsonRpcSession(transport)
        seen = []
        session.expose("event", lambda params, reply: seen.append(params))
        transport.push({"jsonrpc": "2.0", "method": "event", "params": [1]})
        transport.push({"jsonrpc": "2.0", "method": "unknown-event"})
        await settle()

        assert seen == [[1]]
        assert transport.sent == []
        await session.close()

    @pytest.mark.asyncio
    async def test_parse_error(self, transport):
        session = JsonRpcSession(transport)
        transport.push("{not json")

        reply = await transport.next_sent()
        assert reply["id"] is None
        assert reply["error"]["code"] == PARSE_ERROR
        assert not session.closed
        await session.close()

    @pytest.mark.asyncio
    async def test_batch_of_requests(self, transport):
        session = JsonRpcSession(transport)
        session.expose("double", lambda params, reply: params[0] * 2)
        transport.push('[{"jsonrpc": "2.0", "id": 1, "method": "double", "params": [2]},'
                       ' {"jsonrpc": "2.0", "id": 2, "method": "double", "params": [5]}]')

        replies = [await transport.next_sent(), await transport.next_sent()]
        assert sorted((r["id"], r["result"]) for r in replies) == [(1, 4), (2, 10)]
        await session.close()

    @pytest.mark.asyncio
    async def test_inbound_while_outbound_pending(self, transport):
        """A handler may run, and reply, while an outbound call is unanswered."""
        session = JsonRpcSession(transport)
        session.expose("write", lambda params, reply: "ok")

        call = asyncio.create_task(session.call("device_register", {"deviceId": "d"}))
        request = await transport.next_sent()

        transport.push({"jsonrpc": "2.0", "id": 100, "method": "write", "params": {}})
        reply = await transport.next_sent()
        assert reply == {"jsonrpc": "2.0", "id": 100, "result": "ok"}
        assert not call.done()

        transport.respond(request)
        assert await call == "ok"
        await session.close()

    @pytest.mark.asyncio
    async def test_handler_may_call_out(self, transport):
        session = JsonRpcSession(transport)

        async def manifest(params, reply):
            await reply.ok()
            return await session.call("download_asset", {"deviceId": "d"})

        session.expose("manifest_meta_data", manifest)
        transport.push({"jsonrpc": "2.0", "id": 11, "method": "manifest_meta_data"})

        reply = await transport.next_sent()
        assert reply["result"] == "ok"
        request = await transport.next_sent()
        assert request["method"] == "download_asset"
        transport.respond(request, {"filename": "/tmp/fw"})
        await settle()
        assert transport.replies_to(11) == [reply]
        await session.close()

    @pytest.mark.asyncio
    async def test_close_cancels_running_handlers(self):
        transport = MockTransport()
        session = JsonRpcSession(transport)
        started = asyncio.Event()

        async def slow(params, reply):
            started.set()
            await asyncio.sleep(10)

        session.expose("slow", slow)
        transport.push({"jsonrpc": "2.0", "id": 1, "method": "slow"})
        await asyncio.wait_for(started.wait(), 1.0)

        await session.close()
        await settle()
        assert transport.replies_to(1) == []
