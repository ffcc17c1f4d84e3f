"""
Gateway resource manager role.

A gateway resource manager adds resources to the gateway device itself
rather than to translated devices.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from . import codec
from .client import EdgeClient, Role, TransportFactory
from .lwm2m import (LwM2MObject, ObjectInstance, Operation, Resource, WriteRequest,
                    objects_to_params, resource_types)
from .rpc import EdgeClientOptions, InboundReply

logger = logging.getLogger(__name__)

DEFAULT_NAME = "simple-grm-example"
EXAMPLE_OBJECT_ID = 33001


def build_example_resources(name: str, value: float) -> List[LwM2MObject]:
    """/33001/0/0 is a read-only name, /33001/0/1 a writable 4-byte float."""
    return [LwM2MObject(EXAMPLE_OBJECT_ID, [ObjectInstance(0, [
        Resource(0, Operation.READ, "string", codec.encode_string(name), name="Name"),
        Resource(1, Operation.READ | Operation.WRITE, "float", codec.encode_float(value),
                 name="Example Value"),
    ])])]


class GatewayResourceManager:
    """Gateway resource manager API on top of an EdgeClient."""

    def __init__(self,
                 name: str = DEFAULT_NAME,
                 options: Optional[EdgeClientOptions] = None,
                 transport_factory: Optional[TransportFactory] = None,
                 on_write: Optional[Callable[[WriteRequest], Any]] = None):
        self.name = name
        self.client = EdgeClient(Role.GATEWAY_RESOURCE_MANAGER, options, transport_factory)
        self.on_write = on_write

        self.resource_types: Dict[str, str] = {}
        self.received_writes: List[WriteRequest] = []

        self.client.expose("write", self._handle_write)

    async def connect(self, socket_path: Optional[str] = None) -> 'GatewayResourceManager':
        await self.client.connect(socket_path)
        return self

    async def disconnect(self) -> None:
        await self.client.disconnect()

    async def register(self) -> Any:
        return await self.client.register(Role.GATEWAY_RESOURCE_MANAGER, self.name)

    async def add_resource(self, objects: List[LwM2MObject]) -> Any:
        response = await self.client.call("add_resource", objects_to_params(objects))
        self.resource_types.update(resource_types(objects))
        return response

    async def write_resource_value(self, objects: List[LwM2MObject]) -> Any:
        return await self.client.call("write_resource_value", objects_to_params(objects))

    async def _handle_write(self, params: Any, reply: InboundReply) -> None:
        request = WriteRequest.from_params(params)
        request.decode(self.resource_types.get(request.resource_path, "string"))
        self.received_writes.append(request)

        logger.info(f"Received a write method with data: {request.to_dict()}")
        logger.debug(f"The raw received JSONRPC 2.0 params: {params}")

        if self.on_write is not None:
            self.on_write(request)

        await reply.ok("ok")
