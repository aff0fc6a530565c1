import base64

import pytest

from tinyws.crypto import (
    base64_decode,
    base64_encode,
    random_bytes,
    websockets_handshake_encode_key,
)


def test_base64_encode_cases():
    assert base64_encode("0123456789ABCDEF") == "MDEyMzQ1Njc4OUFCQ0RFRg=="
    assert base64_encode("AAAFFFVVS1SSAG5H") == "QUFBRkZGVlZTMVNTQUc1SA=="


def test_base64_decode_cases():
    assert base64_decode("MDEyMzQ1Njc4OUFCQ0RFRg==") == b"0123456789ABCDEF"
    assert base64_decode("QUFBRkZGVlZTMVNTQUc1SA==") == b"AAAFFFVVS1SSAG5H"


def test_handshake_key_cases():
    assert websockets_handshake_encode_key("dGhlIHNhbXBsZSBub25jZQ==") == "s3pPLMBiTxaQ9kYGzzhZRbK+xOo="
    assert websockets_handshake_encode_key("x3JJHMbDL1EzLkh9GBhXDw==") == "HSmrc0sMlYUkAGmm5OPpG2HaGWk="


def test_handshake_key_accepts_bytes():
    assert websockets_handshake_encode_key(b"dGhlIHNhbXBsZSBub25jZQ==") == "s3pPLMBiTxaQ9kYGzzhZRbK+xOo="


def test_random_bytes_differ():
    first = random_bytes(16)
    second = random_bytes(16)
    assert len(first) == 16
    assert first != second


def test_random_bytes_alphabet():
    allowed = set(b"0123456789abcdefABCDEFGHIJKLMNOPQRSTUVEXYZ")
    result = random_bytes(200)
    assert len(result) == 200
    assert set(result) <= allowed


def test_random_bytes_zero_length():
    assert random_bytes(0) == b""


def test_random_bytes_negative_raises():
    with pytest.raises(ValueError):
        random_bytes(-1)


@pytest.mark.parametrize(
    "payload",
    [b"", b"a", b"ab", b"abc", b"\xba\xbe\x00\xca\xfe", bytes(range(256))],
)
def test_base64_round_trip(payload):
    assert base64_decode(base64_encode(payload)) == payload


def test_base64_encode_matches_standard_library():
    payload = b"\x00\x01binary\xff"
    assert base64_encode(payload) == base64.b64encode(payload).decode("ascii")


def test_base64_decode_stops_at_invalid_character():
    assert base64_decode("MDEy!MzQ1") == b"012"


def test_base64_decode_stops_at_padding():
    assert base64_decode("QQ==MDEy") == b"A"


def test_base64_decode_drops_lone_trailing_character():
    assert base64_decode("MDEyM") == b"012"


def test_base64_decode_accepts_bytes_input():
    assert base64_decode(b"MDEyMzQ1Njc4OUFCQ0RFRg==") == b"0123456789ABCDEF"