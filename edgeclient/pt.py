"""
Protocol translator role.

A protocol translator exposes non-native devices to Edge Core by registering
them with LwM2M resources. This role also covers the certificate renewal and
crypto APIs that Edge Core offers on the protocol translator endpoint.
"""

import hashlib
import logging
from typing import Any, Callable, Dict, List, Optional, Union

from . import codec
from .client import EdgeClient, Role, TransportFactory
from .lwm2m import Device, WriteRequest
from .rpc import EdgeClientOptions, InboundReply

logger = logging.getLogger(__name__)

DEFAULT_NAME = "simple-pt-example"


def sha256_digest(data: Union[str, bytes]) -> str:
    """Base64 SHA-256 digest, as expected by the asymmetric crypto calls."""
    if isinstance(data, str):
        data = data.encode('utf-8')
    return codec.encode_bytes(hashlib.sha256(data).digest())


def _as_base64(value: Union[str, bytes]) -> str:
    # Values taken from earlier responses are already base64 text.
    if isinstance(value, (bytes, bytearray)):
        return codec.encode_bytes(value)
    return value


class ProtocolTranslator:
    """Protocol translator API on top of an EdgeClient."""

    def __init__(self,
                 name: str = DEFAULT_NAME,
                 options: Optional[EdgeClientOptions] = None,
                 transport_factory: Optional[TransportFactory] = None,
                 on_write: Optional[Callable[[WriteRequest], Any]] = None):
        self.name = name
        self.client = EdgeClient(Role.PROTOCOL_TRANSLATOR, options, transport_factory)
        self.on_write = on_write

        self.devices: Dict[str, Device] = {}
        self.received_writes: List[WriteRequest] = []
        self.certificate_renewal_results: List[Any] = []
        self.certificate_results: List[Any] = []

        self.client.expose("write", self._handle_write)
        self.client.expose("certificate_renewal_result", self._handle_certificate_renewal_result)
        self.client.expose("crypto_get_certificate_result", self._handle_crypto_certificate_result)

    async def connect(self, socket_path: Optional[str] = None) -> 'ProtocolTranslator':
        await self.client.connect(socket_path)
        return self

    async def disconnect(self) -> None:
        await self.client.disconnect()

    async def register(self) -> Any:
        """Register as a protocol translator; write handlers go live on success."""
        return await self.client.register(Role.PROTOCOL_TRANSLATOR, self.name)

    # Devices

    async def device_register(self, device: Device) -> Any:
        response = await self.client.call("device_register", device.to_params())
        self.devices[device.device_id] = device
        return response

    async def device_unregister(self, device_id: str) -> Any:
        response = await self.client.call("device_unregister", {"deviceId": device_id})
        self.devices.pop(device_id, None)
        return response

    async def write(self, device: Device, timeout: Optional[float] = None) -> Any:
        """Update resource values of a registered device."""
        response = await self.client.call("write", device.to_params(), timeout)
        self.devices[device.device_id] = device
        return response

    # Certificates

    async def certificate_renewal_list_set(self, certificate_names: List[str]) -> Any:
        return await self.client.call("certificate_renewal_list_set",
                                      {"certificates": list(certificate_names)})

    async def renew_certificate(self, certificate_name: str) -> Any:
        return await self.client.call("renew_certificate", {"certificate": certificate_name})

    # Crypto

    async def crypto_get_certificate(self, certificate_name: str) -> Any:
        return await self.client.call("crypto_get_certificate", {"certificate": certificate_name})

    async def crypto_get_public_key(self, key_name: str) -> Any:
        return await self.client.call("crypto_get_public_key", {"key": key_name})

    async def crypto_generate_random(self, size: int) -> Any:
        return await self.client.call("crypto_generate_random", {"size": size})

    async def crypto_asymmetric_sign(self, key_name: str, data: Union[str, bytes]) -> Any:
        return await self.client.call("crypto_asymmetric_sign", {
            "private_key_name": key_name,
            "hash_digest": sha256_digest(data),
        })

    async def crypto_asymmetric_verify(self, key_name: str, data: Union[str, bytes],
                                       signature: Union[str, bytes]) -> Any:
        return await self.client.call("crypto_asymmetric_verify", {
            "public_key_name": key_name,
            "hash_digest": sha256_digest(data),
            "signature": _as_base64(signature),
        })

    async def crypto_ecdh_key_agreement(self, key_name: str, peer_public_key: Union[str, bytes]) -> Any:
        return await self.client.call("crypto_ecdh_key_agreement", {
            "private_key_name": key_name,
            "peer_public_key": _as_base64(peer_public_key),
        })

    # Inbound handlers

    def resource_type(self, request: WriteRequest) -> str:
        """Declared type of the written resource; doubles when unknown."""
        device = self.devices.get(request.device_id) if request.device_id else None
        if device is not None:
            for obj in device.objects:
                if obj.object_id != request.uri.object_id:
                    continue
                for instance in obj.instances:
                    if instance.object_instance_id != request.uri.object_instance_id:
                        continue
                    for resource in instance.resources:
                        if resource.resource_id == request.uri.resource_id:
                            return resource.type
        return "float"

    async def _handle_write(self, params: Any, reply: InboundReply) -> None:
        request = WriteRequest.from_params(params)
        request.decode(self.resource_type(request))
        self.received_writes.append(request)

        logger.info(f"Received a write method with data: {request.to_dict()}")
        logger.debug(f"The raw received JSONRPC 2.0 params: {params}")

        if self.on_write is not None:
            self.on_write(request)

        # Edge Core discards the written value unless it gets a success reply.
        await reply.ok("ok")

    async def _handle_certificate_renewal_result(self, params: Any, reply: InboundReply) -> None:
        logger.info(f"Received certificate renewal result: {params}")
        self.certificate_renewal_results.append(params)
        await reply.ok("ok")

    async def _handle_crypto_certificate_result(self, params: Any, reply: InboundReply) -> None:
        logger.info(f"Received crypto get certificate result: {params}")
        self.certificate_results.append(params)
        await reply.ok("ok")
