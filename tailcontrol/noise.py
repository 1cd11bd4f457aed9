"""The early payload sent to clients at the start of a Noise connection."""

from __future__ import annotations

import json
import struct

TS2021_UPGRADE_PATH = "/ts2021"

# Five bytes that cannot start an HTTP/2 frame, followed by a 4-byte length.
EARLY_PAYLOAD_MAGIC = b"\xff\xff\xffTS"
EARLY_NOISE_CAPABILITY_VERSION = 49

_LENGTH = struct.Struct(">I")
_HEADER_SIZE = len(EARLY_PAYLOAD_MAGIC) + _LENGTH.size


def encode_early_payload(protocol_version: int, challenge_public: str) -> bytes:
    """Return the early payload carrying the node key challenge.

    Clients older than the early-noise capability version get nothing.
    """
    if protocol_version < EARLY_NOISE_CAPABILITY_VERSION:
        return b""
    body = json.dumps(
        {"nodeKeyChallenge": challenge_public}, separators=(",", ":")
    ).encode("utf-8")
    return EARLY_PAYLOAD_MAGIC + _LENGTH.pack(len(body)) + body


def decode_early_payload(data: bytes) -> tuple[str | None, bytes]:
    """Split an early payload off the start of the server's first bytes.

    Returns the challenge and the bytes that follow. Data that does not begin
    with the magic is returned whole with no challenge. Raises ValueError for
    a truncated or malformed payload.
    """
    data = bytes(data)
    if not data.startswith(EARLY_PAYLOAD_MAGIC):
        return None, data
    if len(data) < _HEADER_SIZE:
        raise ValueError("early payload header is truncated")
    (length,) = _LENGTH.unpack_from(data, len(EARLY_PAYLOAD_MAGIC))
    end = _HEADER_SIZE + length
    if len(data) < end:
        raise ValueError("early payload body is truncated")
    body = json.loads(data[_HEADER_SIZE:end])
    if not isinstance(body, dict) or not isinstance(body.get("nodeKeyChallenge"), str):
        raise ValueError("early payload carries no node key challenge")
    return body["nodeKeyChallenge"], data[end:]