"""
Shared byte and codec helpers.

This module has no intra-package dependencies, so any module
can import from it without risk of circular imports.
"""

import base64
import binascii
import struct


def read_at(data: bytes, offset: int, size: int) -> bytes:
    """Return ``size`` bytes of ``data`` starting at ``offset``.

    Args:
        data: Buffer to read from
        offset: Start offset
        size: Number of bytes to read

    Returns:
        The requested slice

    Raises:
        ValueError: If the range is not fully inside the buffer
    """
    if offset < 0 or size < 0 or offset + size > len(data):
        raise ValueError(
            f"Read of {size} bytes at offset {offset} exceeds buffer of {len(data)} bytes"
        )
    return data[offset:offset + size]


def read_u32_be(data: bytes, offset: int) -> int:
    """Read a big-endian unsigned 32-bit integer at ``offset``."""
    return struct.unpack(">I", read_at(data, offset, 4))[0]


def b64encode_str(data: bytes) -> str:
    """Standard base64 with padding, as IAS emits it."""
    return base64.b64encode(data).decode("ascii")


def b64decode_strict(text) -> bytes:
    """
    Decode standard base64, rejecting characters outside the alphabet.

    Raises:
        ValueError: If the input is not valid base64
    """
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Invalid base64: {e}") from e
