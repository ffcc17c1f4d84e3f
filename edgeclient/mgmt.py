"""
Management role.

The management API lists the devices known to Edge Core and reads or writes
their resources. It has no registration step.
"""

from typing import Any, Optional, Union

from .client import EdgeClient, Role, TransportFactory
from .lwm2m import ResourceUri
from .rpc import EdgeClientOptions


class ManagementClient:
    """Management API on top of an EdgeClient."""

    def __init__(self,
                 options: Optional[EdgeClientOptions] = None,
                 transport_factory: Optional[TransportFactory] = None):
        self.client = EdgeClient(Role.MANAGEMENT, options, transport_factory)

    @property
    def connected(self) -> bool:
        return self.client.connected

    async def connect(self, api_path: Optional[str] = None,
                      socket_path: Optional[str] = None) -> 'ManagementClient':
        await self.client.connect(socket_path, api_path)
        return self

    async def disconnect(self) -> None:
        await self.client.disconnect()

    async def devices(self) -> Any:
        return await self.client.call("devices", {})

    async def read_resource(self, endpoint_name: str, uri: Union[str, ResourceUri]) -> Any:
        return await self.client.call("read_resource", {
            "endpointName": endpoint_name,
            "uri": str(uri),
        })

    async def write_resource(self, endpoint_name: str, uri: Union[str, ResourceUri],
                             base64_value: str) -> Any:
        return await self.client.call("write_resource", {
            "endpointName": endpoint_name,
            "uri": str(uri),
            "base64Value": base64_value,
        })
