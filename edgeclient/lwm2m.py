"""
LwM2M/IPSO object model as used in Edge Core params.

An object is identified by a unique objectId, holds instances with unique
objectInstanceId, and each instance holds resources with unique
resourceId. Object ids 1, 3, 14, 10252, 10255, 26241 and 35011 are reserved
by Edge Core for its own use, though a protocol translator may populate
14, 10252 and 10255 for firmware update.
"""

from dataclasses import dataclass, field
from enum import IntFlag
from typing import Any, Dict, List, Mapping, Optional

from . import codec
from .errors import ValidationError

RESERVED_OBJECT_IDS = frozenset({1, 3, 14, 10252, 10255, 26241, 35011})


class Operation(IntFlag):
    """Allowed resource operations."""
    READ = 0x01
    WRITE = 0x02
    EXECUTE = 0x04
    DELETE = 0x08


def operation_name(operation: Any) -> str:
    """Name of an inbound write operation: write, execute or unknown."""
    if operation == Operation.WRITE:
        return "write"
    elif operation == Operation.EXECUTE:
        return "execute"
    return "unknown"


@dataclass(frozen=True)
class ResourceUri:
    """Address of a resource: /objectId/objectInstanceId/resourceId."""
    object_id: int
    object_instance_id: int
    resource_id: int
    device_id: Optional[str] = None

    @classmethod
    def parse(cls, text: str) -> 'ResourceUri':
        """Parse a ``/3303/0/5700`` style path."""
        parts = [part for part in text.strip().split("/") if part]
        if len(parts) != 3:
            raise ValidationError(f"Resource path must have three parts: '{text}'")
        try:
            return cls(*(int(part) for part in parts))
        except ValueError as e:
            raise ValidationError(f"Resource path parts must be integers: '{text}'") from e

    @classmethod
    def from_params(cls, uri: Any) -> 'ResourceUri':
        """Build from a ``uri`` mapping of inbound params."""
        if not isinstance(uri, Mapping):
            raise ValidationError("Missing or invalid 'uri' in params")
        try:
            return cls(int(uri["objectId"]),
                       int(uri["objectInstanceId"]),
                       int(uri["resourceId"]),
                       uri.get("deviceId"))
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationError(f"Invalid resource uri {dict(uri)}: {e}") from e

    @property
    def path(self) -> str:
        return f"/{self.object_id}/{self.object_instance_id}/{self.resource_id}"

    def __str__(self) -> str:
        return self.path


@dataclass
class Resource:
    """A single resource with an already encoded value."""
    resource_id: int
    operations: Operation
    type: str
    value: str
    name: Optional[str] = None

    @classmethod
    def of(cls, resource_id: int, operations: Operation, type: str, value: Any,
           name: Optional[str] = None) -> 'Resource':
        """Create a resource from a plain Python value."""
        return cls(resource_id, operations, type, codec.encode_value(value, type), name)

    def to_params(self) -> Dict[str, Any]:
        params = {
            "resourceId": self.resource_id,
            "operations": int(self.operations),
            "type": self.type,
            "value": self.value,
        }
        if self.name is not None:
            params["resourceName"] = self.name
        return params


@dataclass
class ObjectInstance:
    object_instance_id: int
    resources: List[Resource] = field(default_factory=list)

    def to_params(self) -> Dict[str, Any]:
        return {
            "objectInstanceId": self.object_instance_id,
            "resources": [resource.to_params() for resource in self.resources],
        }


@dataclass
class LwM2MObject:
    object_id: int
    instances: List[ObjectInstance] = field(default_factory=list)

    def to_params(self) -> Dict[str, Any]:
        return {
            "objectId": self.object_id,
            "objectInstances": [instance.to_params() for instance in self.instances],
        }


def objects_to_params(objects: List[LwM2MObject], device_id: Optional[str] = None) -> Dict[str, Any]:
    """Params for device_register, write, add_resource and write_resource_value."""
    params: Dict[str, Any] = {}
    if device_id is not None:
        params["deviceId"] = device_id
    params["objects"] = [obj.to_params() for obj in objects]
    return params


def resource_types(objects: List[LwM2MObject]) -> Dict[str, str]:
    """Map each resource path to its declared type."""
    types = {}
    for obj in objects:
        for instance in obj.instances:
            for resource in instance.resources:
                uri = ResourceUri(obj.object_id, instance.object_instance_id, resource.resource_id)
                types[uri.path] = resource.type
    return types


@dataclass
class Device:
    """A device registered by a protocol translator."""
    device_id: str
    objects: List[LwM2MObject] = field(default_factory=list)

    def to_params(self) -> Dict[str, Any]:
        return objects_to_params(self.objects, self.device_id)


@dataclass
class WriteRequest:
    """Typed view of the params of an inbound ``write`` call."""
    uri: ResourceUri
    operation: str
    raw_value: str
    value: Any = None

    @classmethod
    def from_params(cls, params: Any) -> 'WriteRequest':
        if not isinstance(params, Mapping):
            raise ValidationError("Write params must be an object")
        if "value" not in params or not isinstance(params["value"], str):
            raise ValidationError("Missing base64 'value' in write params")
        uri = ResourceUri.from_params(params.get("uri"))
        return cls(uri, operation_name(params.get("operation")), params["value"])

    @property
    def device_id(self) -> Optional[str]:
        return self.uri.device_id

    @property
    def resource_path(self) -> str:
        return self.uri.path

    def decode(self, resource_type: str) -> Any:
        """Decode the value as ``resource_type`` and keep it on the request."""
        self.value = codec.decode_value(self.raw_value, resource_type)
        return self.value

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "resourcePath": self.resource_path,
            "operation": self.operation,
            "value": self.value,
        }
        if self.device_id is not None:
            result["deviceId"] = self.device_id
        return result
