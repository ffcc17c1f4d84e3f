"""
Firmware over the air (FOTA) for protocol translator devices.

Edge Core pushes ``manifest_meta_data`` when a firmware manifest targets one
of the translator's devices. The updater checks the manifest against the
compiled-in vendor and class ids, accepts it, asks Edge Core to download the
firmware image, then "reboots" the device by unregistering it and writing
back its resources with the new firmware version.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional

from . import codec
from .errors import EdgeError, ValidationError
from .lwm2m import Device, LwM2MObject, ObjectInstance, Operation, Resource
from .pt import ProtocolTranslator
from .rpc import INVALID_PARAMS, InboundReply

logger = logging.getLogger(__name__)

VENDOR_ID = b"SUBDEVICE-VENDOR"
CLASS_ID = b"SUBDEVICE--CLASS"

# Manifest format version 4
PROTOCOL_VERSION = 4

FOTA_TIMEOUT = 1800.0  # 30 minutes
REBOOT_DELAY = 5.0

DEVICE_ID = "example-fota-device"
COMPONENT_NAME = "MAIN"

REQUIRED_FIELDS = ("deviceId", "classid", "vendorid", "version", "component_name")


@dataclass
class ManifestMetadata:
    """Params of an inbound ``manifest_meta_data`` call."""
    device_id: str
    vendor_id: bytes
    class_id: bytes
    version: str
    component_name: str
    size: Optional[int] = None

    @classmethod
    def from_params(cls, params: Any) -> 'ManifestMetadata':
        if not isinstance(params, Mapping):
            raise ValidationError("Manifest params must be an object")

        uri = params.get("uri")
        present = {
            "deviceId": uri.get("deviceId") if isinstance(uri, Mapping) else None,
            "classid": params.get("classid"),
            "vendorid": params.get("vendorid"),
            "version": params.get("version"),
            "component_name": params.get("component_name"),
        }
        missing = [name for name in REQUIRED_FIELDS if present[name] is None]
        if missing:
            raise ValidationError(f"Missing fields in params: {', '.join(missing)}")

        version = codec.decode_bytes(present["version"])
        try:
            version = version.decode('ascii')
        except UnicodeDecodeError as e:
            raise ValidationError("Firmware version is not ASCII") from e

        return cls(
            device_id=present["deviceId"],
            vendor_id=codec.decode_bytes(present["vendorid"]),
            class_id=codec.decode_bytes(present["classid"]),
            version=version,
            component_name=present["component_name"],
            size=params.get("size"),
        )


def build_fota_device(device_id: str,
                      temperature: float,
                      set_point: float,
                      version: str,
                      vendor_id: bytes = VENDOR_ID,
                      class_id: bytes = CLASS_ID) -> Device:
    """
    A thermostat with the firmware update objects Edge Core expects.

    /14 component identity and version, /3303 temperature, /10252 manifest
    state, /10255 device metadata, /3308 set point.
    """
    read = Operation.READ
    read_write = Operation.READ | Operation.WRITE
    empty = codec.encode_string("0")

    return Device(device_id, [
        LwM2MObject(14, [ObjectInstance(0, [
            Resource.of(0, read, "string", COMPONENT_NAME, name="Component Identity"),
            Resource.of(2, read, "string", version, name="Component Version"),
        ])]),
        LwM2MObject(3303, [ObjectInstance(0, [
            Resource.of(5700, read, "float", temperature),
        ])]),
        LwM2MObject(10252, [ObjectInstance(0, [
            Resource(1, Operation.EXECUTE, "string", empty),
            Resource.of(2, read_write, "int", -1),
            Resource.of(3, read_write, "int", -1),
        ])]),
        LwM2MObject(10255, [ObjectInstance(0, [
            Resource.of(0, read_write, "int", PROTOCOL_VERSION),
            Resource(1, read_write, "string", empty),
            Resource(2, read_write, "string", empty),
            Resource(3, read_write, "string", codec.encode_bytes(vendor_id)),
            Resource(4, read_write, "string", codec.encode_bytes(class_id)),
        ])]),
        LwM2MObject(3308, [ObjectInstance(0, [
            Resource.of(5900, read_write, "float", set_point),
        ])]),
    ])


class FirmwareUpdater:
    """Handles manifest_meta_data for a protocol translator's devices."""

    def __init__(self,
                 translator: ProtocolTranslator,
                 vendor_id: bytes = VENDOR_ID,
                 class_id: bytes = CLASS_ID,
                 fota_timeout: float = FOTA_TIMEOUT,
                 reboot_delay: float = REBOOT_DELAY):
        self.translator = translator
        self.vendor_id = vendor_id
        self.class_id = class_id
        self.fota_timeout = fota_timeout
        self.reboot_delay = reboot_delay

        self.updated_versions: List[str] = []
        self.failures: List[Exception] = []
        self.done = asyncio.Event()

        translator.client.expose("manifest_meta_data", self._handle_manifest)

    def accepts(self, manifest: ManifestMetadata) -> bool:
        """Both vendor and class id have to match."""
        return manifest.vendor_id == self.vendor_id and manifest.class_id == self.class_id

    async def _handle_manifest(self, params: Any, reply: InboundReply) -> None:
        manifest = ManifestMetadata.from_params(params)
        logger.info(f"Received fota request for {manifest.device_id}, version {manifest.version}")
        logger.debug(f"Manifest params: {params}")

        if not self.accepts(manifest):
            logger.error("Rejecting manifest: wrong vendor or class ID")
            await reply.error(INVALID_PARAMS, "wrong vendor or class ID", "wrong vendor or class ID")
            return

        await reply.ok("ok")

        try:
            await self.apply(manifest)
        except EdgeError as e:
            logger.error(f"Firmware update of {manifest.device_id} failed: {e}")
            self.failures.append(e)
        finally:
            self.done.set()

    async def apply(self, manifest: ManifestMetadata) -> None:
        """Download the image, reboot the device and publish the new version."""
        response = await self.translator.client.call(
            "download_asset",
            {"deviceId": manifest.device_id, "size": manifest.size},
            self.fota_timeout,
        )
        filename = response.get("filename") if isinstance(response, Mapping) else response
        logger.info(f"Updating Device, Firmware file location {filename}")

        await self.translator.device_unregister(manifest.device_id)
        logger.info("Rebooting device.")
        await asyncio.sleep(self.reboot_delay)

        device = build_fota_device(manifest.device_id, 19.5, 20.5, manifest.version,
                                   self.vendor_id, self.class_id)
        await self.translator.write(device)
        self.updated_versions.append(manifest.version)
        logger.info("Manifest Resource updated, Device is updated")
