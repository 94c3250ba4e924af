"""Build and parse transfer message bodies.

Comment bodies use a "snake" layout: the payload bytes fill the first cell,
and whatever does not fit continues in a child cell hanging off the first
reference, repeating until the payload is exhausted.

The deployed tooling stores ``base64(comment)`` rather than the comment
itself (:attr:`BodyEncoding.DOUBLE_BASE64`); once the body is serialized to a
BOC and base64-encoded for the HTTP API the comment has been base64-encoded
twice. That layout stays the default so bodies match what is already on
chain. :attr:`BodyEncoding.PLAIN_COMMENT` writes the standard wallet text
comment (zero opcode followed by the UTF-8 text) instead.
"""

from __future__ import annotations

import base64
import binascii
import enum
import logging

from tonsdk.boc import Cell

from .errors import EncodingError

logger = logging.getLogger(__name__)

COMMENT_OPCODE = 0
MAX_COMMENT_BYTES = 4096


class BodyEncoding(str, enum.Enum):
    DOUBLE_BASE64 = "double-base64"
    PLAIN_COMMENT = "plain"


def _store_snake(root: Cell, data: bytes) -> None:
    cell = root
    remaining = data
    while True:
        free_bytes = cell.bits.get_free_bits() // 8
        chunk, remaining = remaining[:free_bytes], remaining[free_bytes:]
        cell.bits.write_bytes(chunk)
        if not remaining:
            return
        child = Cell()
        cell.refs.append(child)
        cell = child


def _cell_bytes(cell: Cell) -> bytes:
    if cell.bits.cursor % 8:
        raise EncodingError("Message body is not byte aligned")
    return bytes(cell.bits.array[: cell.bits.cursor // 8])


def _load_snake(root: Cell) -> bytes:
    parts = [_cell_bytes(root)]
    cell = root
    while cell.refs:
        if len(cell.refs) != 1:
            raise EncodingError("Snake cells must carry at most one reference")
        cell = cell.refs[0]
        parts.append(_cell_bytes(cell))
    return b"".join(parts)


def build_comment_body(text: str, policy: BodyEncoding = BodyEncoding.DOUBLE_BASE64) -> Cell:
    """Encode ``text`` into a message body cell using ``policy``."""

    raw = text.encode("utf-8")
    if len(raw) > MAX_COMMENT_BYTES:
        raise EncodingError(
            f"Comment is {len(raw)} bytes; the limit is {MAX_COMMENT_BYTES} bytes"
        )

    body = Cell()
    try:
        if policy is BodyEncoding.DOUBLE_BASE64:
            payload = base64.b64encode(raw)
            logger.debug("Storing base64 comment payload %s", payload.decode("ascii"))
            _store_snake(body, payload)
        elif policy is BodyEncoding.PLAIN_COMMENT:
            body.bits.write_uint(COMMENT_OPCODE, 32)
            _store_snake(body, raw)
        else:  # pragma: no cover - enum is closed
            raise EncodingError(f"Unsupported body encoding: {policy}")
    except EncodingError:
        raise
    except Exception as exc:
        raise EncodingError(f"Failed to build message body: {exc}") from exc
    return body


def decode_comment_body(body: Cell, policy: BodyEncoding = BodyEncoding.DOUBLE_BASE64) -> str:
    """Recover the comment text stored by :func:`build_comment_body`."""

    if policy is BodyEncoding.PLAIN_COMMENT:
        data = _load_snake(body)
        if len(data) < 4 or int.from_bytes(data[:4], "big") != COMMENT_OPCODE:
            raise EncodingError("Message body is not a text comment")
        raw = data[4:]
    else:
        try:
            raw = base64.b64decode(_load_snake(body), validate=True)
        except (binascii.Error, ValueError) as exc:
            raise EncodingError("Message body does not hold base64 data") from exc
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise EncodingError("Comment is not valid UTF-8") from exc


def body_to_boc_b64(body: Cell) -> str:
    """Serialize ``body`` into a base64 BOC string for the HTTP API."""

    try:
        boc = body.to_boc(False)
    except Exception as exc:
        raise EncodingError(f"Failed to serialize message body: {exc}") from exc
    return base64.b64encode(bytes(boc)).decode("ascii")


def body_from_boc_b64(encoded: str) -> Cell:
    """Parse a base64 BOC string (as returned by ``getTransactions``) into a cell."""

    try:
        boc = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise EncodingError("Message body is not valid base64") from exc
    try:
        return Cell.one_from_boc(boc)
    except Exception as exc:
        raise EncodingError(f"Message body is not a valid BOC: {exc}") from exc
