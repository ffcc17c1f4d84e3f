"""
Payload encoding for Edge Core resource values.

Edge Core carries every resource value as a base64 string inside the JSON
params. Numbers are fixed-width big-endian before encoding:

- float: 8-byte IEEE-754 double (4-byte single also accepted on decode)
- int: 4-byte signed integer (8-byte also accepted on decode)
- string: raw UTF-8 bytes
- opaque: bytes as-is
"""

import base64
import binascii
import struct
from typing import Any, Union

from .errors import ValidationError

DOUBLE = struct.Struct(">d")
FLOAT = struct.Struct(">f")
INT32 = struct.Struct(">i")
INT64 = struct.Struct(">q")


def encode_bytes(data: Union[bytes, bytearray]) -> str:
    """Base64 encode raw bytes (padding kept, Edge Core expects it)."""
    return base64.b64encode(bytes(data)).decode('ascii')


def decode_bytes(text: str) -> bytes:
    """Decode a base64 string, raising ValidationError on malformed input."""
    if not isinstance(text, str):
        raise ValidationError(f"Expected base64 string, got {type(text).__name__}")
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError(f"Invalid base64 value: {e}") from e


def encode_double(value: float) -> str:
    return encode_bytes(DOUBLE.pack(value))


def decode_double(text: str) -> float:
    return _unpack(DOUBLE, decode_bytes(text), "double")


def encode_float(value: float) -> str:
    """Encode as a 4-byte single precision float."""
    return encode_bytes(FLOAT.pack(value))


def decode_float(text: str) -> float:
    return _unpack(FLOAT, decode_bytes(text), "float")


def encode_int32(value: int) -> str:
    try:
        return encode_bytes(INT32.pack(value))
    except struct.error as e:
        raise ValidationError(f"Integer {value} does not fit in 4 bytes") from e


def decode_int32(text: str) -> int:
    return _unpack(INT32, decode_bytes(text), "int32")


def encode_string(value: str, encoding: str = 'utf-8') -> str:
    return encode_bytes(value.encode(encoding))


def decode_string(text: str, encoding: str = 'utf-8') -> str:
    data = decode_bytes(text)
    try:
        return data.decode(encoding)
    except UnicodeDecodeError as e:
        raise ValidationError(f"Value is not valid {encoding}: {e}") from e


def _unpack(layout: struct.Struct, data: bytes, name: str) -> Any:
    if len(data) != layout.size:
        raise ValidationError(f"Expected {layout.size} bytes for {name}, got {len(data)}")
    return layout.unpack(data)[0]


def encode_value(value: Any, resource_type: str) -> str:
    """Encode a Python value according to an LwM2M resource type."""
    if resource_type == "float":
        return encode_double(value)
    elif resource_type == "int":
        return encode_int32(value)
    elif resource_type == "string":
        return encode_string(value)
    elif resource_type == "opaque":
        return encode_bytes(value)
    elif resource_type == "bool":
        return encode_bytes(b"\x01" if value else b"\x00")
    raise ValidationError(f"Unsupported resource type '{resource_type}'")


def decode_value(text: str, resource_type: str) -> Any:
    """
    Decode a base64 resource value according to an LwM2M resource type.

    Floats and ints are picked by width so values written by either the
    single or double precision encoders decode correctly.
    """
    if resource_type == "float":
        data = decode_bytes(text)
        if len(data) == FLOAT.size:
            return FLOAT.unpack(data)[0]
        return _unpack(DOUBLE, data, "double")
    elif resource_type == "int":
        data = decode_bytes(text)
        if len(data) == INT64.size:
            return INT64.unpack(data)[0]
        return _unpack(INT32, data, "int32")
    elif resource_type == "string":
        return decode_string(text)
    elif resource_type == "opaque":
        return decode_bytes(text)
    elif resource_type == "bool":
        data = decode_bytes(text)
        return any(data)
    raise ValidationError(f"Unsupported resource type '{resource_type}'")
