"""
Edge Core client for Python

JSON-RPC 2.0 over a WebSocket on a Unix domain socket: protocol translator,
gateway resource manager and management APIs of the Edge Core gateway.
"""

from .client import EdgeClient, ClientState, Role
from .rpc import EdgeClientOptions, InboundReply, JsonRpcSession, RpcTransport
from .websocket import WebSocketTransport, connect_unix
from .errors import (
    EdgeError, EdgeConnectionError, DisconnectError, RpcTimeoutError,
    RemoteError, ValidationError, ClientStateError,
)
from .lwm2m import Operation, ResourceUri, Resource, ObjectInstance, LwM2MObject, Device, WriteRequest
from .pt import ProtocolTranslator
from .grm import GatewayResourceManager
from .mgmt import ManagementClient
from .fota import FirmwareUpdater, ManifestMetadata

__version__ = "0.1.0"
__all__ = [
    "EdgeClient",
    "ClientState",
    "Role",
    "EdgeClientOptions",
    "InboundReply",
    "JsonRpcSession",
    "RpcTransport",
    "WebSocketTransport",
    "connect_unix",
    "EdgeError",
    "EdgeConnectionError",
    "DisconnectError",
    "RpcTimeoutError",
    "RemoteError",
    "ValidationError",
    "ClientStateError",
    "Operation",
    "ResourceUri",
    "Resource",
    "ObjectInstance",
    "LwM2MObject",
    "Device",
    "WriteRequest",
    "ProtocolTranslator",
    "GatewayResourceManager",
    "ManagementClient",
    "FirmwareUpdater",
    "ManifestMetadata",
]
