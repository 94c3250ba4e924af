from __future__ import annotations

import base64

import pytest

from tonsend.errors import EncodingError
from tonsend.message import (
    MAX_COMMENT_BYTES,
    BodyEncoding,
    body_from_boc_b64,
    body_to_boc_b64,
    build_comment_body,
    decode_comment_body,
)


def _stored_bytes(cell) -> bytes:
    return bytes(cell.bits.array[: cell.bits.cursor // 8])


def test_hello_round_trips_through_double_base64() -> None:
    body = build_comment_body("hello")

    assert _stored_bytes(body) == b"aGVsbG8="
    assert decode_comment_body(body) == "hello"


def test_long_comment_snakes_across_cells() -> None:
    text = "Sending TON " * 40
    body = build_comment_body(text)

    assert len(body.refs) == 1
    assert len(_stored_bytes(body)) == 127
    assert decode_comment_body(body) == text


def test_plain_comment_uses_text_opcode() -> None:
    body = build_comment_body("Sending USDT", BodyEncoding.PLAIN_COMMENT)

    stored = _stored_bytes(body)
    assert stored[:4] == b"\x00\x00\x00\x00"
    assert stored[4:] == b"Sending USDT"
    assert decode_comment_body(body, BodyEncoding.PLAIN_COMMENT) == "Sending USDT"


def test_unicode_comment_survives_boc_round_trip() -> None:
    encoded = body_to_boc_b64(build_comment_body("پرداخت ✓"))

    restored = body_from_boc_b64(encoded)

    assert decode_comment_body(restored) == "پرداخت ✓"
    assert body_to_boc_b64(restored) == encoded


def test_oversized_comment_is_rejected() -> None:
    with pytest.raises(EncodingError):
        build_comment_body("x" * (MAX_COMMENT_BYTES + 1))


def test_invalid_boc_is_rejected() -> None:
    with pytest.raises(EncodingError):
        body_from_boc_b64("not base64!")
    with pytest.raises(EncodingError):
        body_from_boc_b64(base64.b64encode(b"garbage").decode("ascii"))


def test_plain_body_is_not_base64_comment() -> None:
    body = build_comment_body("hi", BodyEncoding.PLAIN_COMMENT)
    with pytest.raises(EncodingError):
        decode_comment_body(body)
