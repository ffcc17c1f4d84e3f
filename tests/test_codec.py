"""
Tests for resource value encoding.
"""

import base64
import math
import struct

import pytest

from edgeclient import codec
from edgeclient.errors import ValidationError


class TestFixedWidthNumbers:
    """Big-endian numbers wrapped in base64."""

    def test_double_round_trip(self):
        for value in (0.0, -0.0, 21.5, -273.15, 1e-308, 1.7976931348623157e308, math.pi):
            decoded = codec.decode_double(codec.encode_double(value))
            assert struct.pack(">d", decoded) == struct.pack(">d", value)

    def test_double_is_big_endian(self):
        assert base64.b64decode(codec.encode_double(20.0)) == bytes.fromhex("4034000000000000")

    def test_decode_double_of_reversed_bytes(self):
        # Little-endian 20.0 read as big-endian is a denormal, not 20.0
        value = codec.decode_double("AAAAAAAANEA=")
        assert value == struct.unpack(">d", bytes.fromhex("0000000000003440"))[0]
        assert value != 20.0

    def test_int32_round_trip(self):
        for value in (0, 1, -1, 4, 2 ** 31 - 1, -2 ** 31):
            assert codec.decode_int32(codec.encode_int32(value)) == value

    def test_int32_is_big_endian(self):
        assert base64.b64decode(codec.encode_int32(4)) == b"\x00\x00\x00\x04"

    def test_int32_overflow(self):
        with pytest.raises(ValidationError):
            codec.encode_int32(2 ** 31)

    def test_float_is_four_bytes(self):
        data = base64.b64decode(codec.encode_float(1.0))
        assert data == bytes.fromhex("3f800000")
        assert codec.decode_float(codec.encode_float(2.0)) == 2.0

    def test_wrong_width(self):
        with pytest.raises(ValidationError):
            codec.decode_double(codec.encode_int32(1))
        with pytest.raises(ValidationError):
            codec.decode_int32(codec.encode_double(1.0))


class TestStringsAndBytes:

    def test_string_is_raw_utf8(self):
        assert codec.encode_string("MAIN") == base64.b64encode(b"MAIN").decode()
        assert codec.decode_string(codec.encode_string("température")) == "température"

    def test_padding_kept(self):
        assert codec.encode_string("0") == "MA=="

    def test_invalid_base64(self):
        with pytest.raises(ValidationError):
            codec.decode_bytes("not base64!")

    def test_non_string_input(self):
        with pytest.raises(ValidationError):
            codec.decode_bytes(42)

    def test_invalid_utf8(self):
        with pytest.raises(ValidationError):
            codec.decode_string(codec.encode_bytes(b"\xff\xfe"))


class TestTypedValues:

    def test_float_by_width(self):
        assert codec.decode_value(codec.encode_float(1.5), "float") == 1.5
        assert codec.decode_value(codec.encode_double(23.5), "float") == 23.5

    def test_int_by_width(self):
        assert codec.decode_value(codec.encode_int32(-1), "int") == -1
        eight = codec.encode_bytes(struct.pack(">q", 2 ** 40))
        assert codec.decode_value(eight, "int") == 2 ** 40

    def test_encode_value_matches_helpers(self):
        assert codec.encode_value(21.5, "float") == codec.encode_double(21.5)
        assert codec.encode_value(4, "int") == codec.encode_int32(4)
        assert codec.encode_value("x", "string") == codec.encode_string("x")
        assert codec.encode_value(b"\x01\x02", "opaque") == "AQI="

    def test_unknown_type(self):
        with pytest.raises(ValidationError):
            codec.encode_value(1, "time")
        with pytest.raises(ValidationError):
            codec.decode_value("AA==", "time")
