"""
Tests for strict hex encoding and decoding.
"""
import pytest
from hypothesis import HealthCheck, given, settings, strategies as st

from pqwallet_sdk import hexcodec
from pqwallet_sdk.exceptions import MalformedHex, ValidationError


@settings(suppress_health_check=[HealthCheck.function_scoped_fixture])
@given(st.binary(max_size=512))
def test_decode_inverts_encode(data):
    assert hexcodec.decode(hexcodec.encode(data)) == data


@settings(suppress_health_check=[HealthCheck.function_scoped_fixture])
@given(st.binary(max_size=64))
def test_encode_is_lowercase_and_prefixed(data):
    encoded = hexcodec.encode(data)
    assert encoded.startswith("0x")
    assert encoded == encoded.lower()


@pytest.mark.parametrize("value", ["", "0x", "0X"])
def test_empty_values_decode_to_empty_bytes(value):
    assert hexcodec.decode(value) == b""


def test_prefix_is_optional():
    assert hexcodec.decode("deadBEEF") == hexcodec.decode("0xdeadbeef") == b"\xde\xad\xbe\xef"


@pytest.mark.parametrize("value", ["0x123", "abc", "0x0"])
def test_odd_length_is_rejected(value):
    with pytest.raises(MalformedHex, match="even length"):
        hexcodec.decode(value)


@pytest.mark.parametrize("value", ["0xzz", "0x12g4", "0x 1", "12-3", "0xa\n", "abc\n", " 0xabc", "0xabc\t"])
def test_non_hex_characters_are_rejected(value):
    with pytest.raises(MalformedHex, match="non-hex"):
        hexcodec.decode(value)


def test_non_string_is_rejected():
    with pytest.raises(MalformedHex):
        hexcodec.decode(b"\x01")


def test_malformed_hex_is_a_validation_error():
    # Callers that only know the taxonomy root still catch it
    with pytest.raises(ValidationError):
        hexcodec.decode("0x1")


def test_quantity_is_minimal():
    assert hexcodec.quantity(0) == "0x0"
    assert hexcodec.quantity(255) == "0xff"
    with pytest.raises(ValueError):
        hexcodec.quantity(-1)

