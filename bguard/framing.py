import asyncio
import json
import struct
from typing import Any, Dict, Optional

"""
framing.py — length-prefixed JSON frames for the guard service.

Protocol:
- Each frame = 4-byte little-endian unsigned length (N) + N bytes of UTF-8 JSON.
- The JSON must be an object.
- Frames are capped at 4 MiB so a buggy peer can't make us allocate silly
  amounts of memory.
"""

MAX_FRAME_SIZE = 4 * 1024 * 1024  # 4 MiB hard limit
LENGTH_STRUCT = struct.Struct("<I")


class FrameError(ValueError):
    """The peer sent something that isn't a valid frame."""


def encode_frame(obj: Dict[str, Any]) -> bytes:
    """Length prefix + compact JSON, non-ASCII kept as UTF-8."""
    try:
        payload = json.dumps(obj, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    except (UnicodeEncodeError, RecursionError) as exc:
        raise FrameError(f"Frame cannot be encoded: {exc.__class__.__name__}") from exc
    if len(payload) > MAX_FRAME_SIZE:
        raise FrameError("Frame exceeds maximum size")
    return LENGTH_STRUCT.pack(len(payload)) + payload


def decode_frame_body(payload: bytes) -> Dict[str, Any]:
    """Parse one frame body. Raises FrameError on bad UTF-8, bad JSON, decoder limits or a non-object."""
    try:
        obj = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        # No payload echo: it may carry a token.
        raise FrameError(f"Invalid JSON frame: {exc}") from exc
    except (ValueError, RecursionError) as exc:
        # Valid JSON that the decoder refuses (nesting depth, huge integers).
        raise FrameError(f"Invalid JSON frame: {exc.__class__.__name__}") from exc
    if not isinstance(obj, dict):
        raise FrameError("Frame must be a JSON object")
    return obj


async def read_frame(reader: asyncio.StreamReader) -> Optional[Dict[str, Any]]:
    """
    Read one frame.

    Returns:
        The decoded object, or None if the peer closed cleanly between frames.

    Raises:
        FrameError: oversized or invalid frame.
        asyncio.IncompleteReadError: the peer went away mid-frame.
    """
    try:
        len_bytes = await reader.readexactly(LENGTH_STRUCT.size)
    except asyncio.IncompleteReadError as exc:
        if not exc.partial:
            return None
        raise
    (length,) = LENGTH_STRUCT.unpack(len_bytes)

    if length > MAX_FRAME_SIZE:
        raise FrameError(f"Frame too large: {length} > {MAX_FRAME_SIZE}")

    payload = await reader.readexactly(length)
    return decode_frame_body(payload)


async def write_frame(writer: asyncio.StreamWriter, obj: Dict[str, Any]) -> None:
    """Write one frame and wait for the transport to drain."""
    writer.write(encode_frame(obj))
    await writer.drain()
