import asyncio
import struct
from typing import Optional, Sequence

from .errors import ProtocolError
from .messages import FRAME_TYPES, Frame, Unknown, tag_of

"""
framing.py: binary framing for the chat protocol over asyncio streams.

Protocol (positional, no schema on the wire):
- Each frame = 4-byte big-endian signed tag, then the fields of that kind in
  a fixed order (see messages.py).
- Strings are a 4-byte big-endian signed length N + N bytes of UTF-8.
- Ints are 4-byte big-endian signed; bools are one byte (0/1).
- Lengths are checked before reading so a bad peer can't make us allocate
  silly amounts of memory or wait forever for bytes that will never come.
"""

INT_STRUCT = struct.Struct("!i")   # big-endian signed 32-bit
BOOL_STRUCT = struct.Struct("!?")
MAX_STRING_SIZE = 4 * 1024 * 1024  # 4 MiB hard limit per string
MAX_LIST_SIZE = 65536              # max usernames in one QueryUserResponse


# -------------------------
# Encoding
# -------------------------

def encode_int(value: int) -> bytes:
    return INT_STRUCT.pack(value)


def encode_bool(value: bool) -> bytes:
    return BOOL_STRUCT.pack(bool(value))


def encode_string(value: str) -> bytes:
    """Length-prefixed UTF-8; the empty string is just a zero length."""
    raw = value.encode("utf-8")
    if len(raw) > MAX_STRING_SIZE:
        raise ProtocolError(f"String too large: {len(raw)} > {MAX_STRING_SIZE}")
    return INT_STRUCT.pack(len(raw)) + raw


def encode_strings(values: Sequence[str]) -> bytes:
    if len(values) > MAX_LIST_SIZE:
        raise ProtocolError(f"List too large: {len(values)} > {MAX_LIST_SIZE}")
    return INT_STRUCT.pack(len(values)) + b"".join(encode_string(v) for v in values)


_ENCODERS = {
    "int": encode_int,
    "bool": encode_bool,
    "str": encode_string,
    "strs": encode_strings,
}


def encode_frame(frame: Frame) -> bytes:
    """Serialize a whole frame up front so it can be written in one go."""
    parts = [INT_STRUCT.pack(tag_of(frame))]
    for (_name, kind), value in zip(frame.FIELDS, frame.values()):
        parts.append(_ENCODERS[kind](value))
    return b"".join(parts)


# -------------------------
# Decoding
# -------------------------

async def read_int(reader) -> int:
    (value,) = INT_STRUCT.unpack(await reader.readexactly(INT_STRUCT.size))
    return value


async def read_bool(reader) -> bool:
    (value,) = BOOL_STRUCT.unpack(await reader.readexactly(BOOL_STRUCT.size))
    return value


async def read_string(reader) -> str:
    length = await read_int(reader)
    # Sanity check before allocating/reading the body.
    if length < 0 or length > MAX_STRING_SIZE:
        raise ProtocolError(f"Bad string length: {length}")
    raw = await reader.readexactly(length)
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ProtocolError(f"Invalid UTF-8 in string field: {exc}") from exc


async def read_strings(reader) -> tuple:
    count = await read_int(reader)
    if count < 0 or count > MAX_LIST_SIZE:
        raise ProtocolError(f"Bad list length: {count}")
    return tuple([await read_string(reader) for _ in range(count)])


_DECODERS = {
    "int": read_int,
    "bool": read_bool,
    "str": read_string,
    "strs": read_strings,
}


async def read_frame(reader) -> Optional[Frame]:
    """
    Read one frame from anything with an async `readexactly(n)`.

    Returns:
        The decoded frame, `Unknown(tag)` for a tag we don't know (nothing
        past the tag is consumed), or None when the stream ended cleanly
        between frames.

    Raises:
        ProtocolError: the stream ended mid-frame or a field was malformed.
        OSError: the transport itself failed.
    """
    # 1) Read the 4-byte tag. No bytes at all means a clean hang-up.
    try:
        head = await reader.readexactly(INT_STRUCT.size)
    except asyncio.IncompleteReadError as exc:
        if not exc.partial:
            return None
        raise ProtocolError("Stream ended inside a message tag") from exc
    (tag,) = INT_STRUCT.unpack(head)

    frame_type = FRAME_TYPES.get(tag)
    if frame_type is None:
        return Unknown(tag)

    # 2) Walk the fixed field layout of this kind.
    values = []
    try:
        for _name, kind in frame_type.FIELDS:
            values.append(await _DECODERS[kind](reader))
    except asyncio.IncompleteReadError as exc:
        raise ProtocolError(f"Stream ended inside a {frame_type.__name__} frame") from exc
    return frame_type(*values)


async def write_frame(writer: asyncio.StreamWriter, frame: Frame) -> None:
    """Write one frame and let the transport flush (honours backpressure)."""
    writer.write(encode_frame(frame))
    await writer.drain()


class BufferReader:
    """`readexactly` over an in-memory buffer; never reads past the end."""

    def __init__(self, data: bytes) -> None:
        self._view = memoryview(data)
        self._pos = 0

    @property
    def remaining(self) -> int:
        return len(self._view) - self._pos

    async def readexactly(self, n: int) -> bytes:
        if n > self.remaining:
            partial = bytes(self._view[self._pos:])
            self._pos = len(self._view)
            raise asyncio.IncompleteReadError(partial, n)
        chunk = bytes(self._view[self._pos:self._pos + n])
        self._pos += n
        return chunk


async def decode_frame(data: bytes) -> Frame:
    """Decode exactly one complete frame from a buffer."""
    reader = BufferReader(data)
    frame = await read_frame(reader)
    if frame is None:
        raise ProtocolError("Empty buffer")
    if reader.remaining:
        raise ProtocolError(f"{reader.remaining} trailing bytes after frame")
    return frame
