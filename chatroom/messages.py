"""
messages.py: message-kind tags and the frame types exchanged on the wire.

What this module does:
- Pins the numeric tag of every message kind (19..27). These numbers are the
  wire contract; never renumber them.
- Defines one small immutable dataclass per kind. A decoded frame is always
  exactly one of these, or `Unknown` when the tag is not ours.
- Lists each kind's positional fields so the codec can walk them in order.

Field layout types used in FIELDS:
    "str"   4-byte big-endian length + UTF-8 bytes
    "int"   4-byte big-endian signed
    "bool"  1 byte (0/1)
    "strs"  4-byte count followed by that many "str" fields
"""
from dataclasses import dataclass, field
from enum import IntEnum
from typing import ClassVar, Dict, Tuple, Type


class MessageType(IntEnum):
    CONNECT = 19
    CONNECT_RESPONSE = 20
    DISCONNECT = 21
    QUERY_CONNECTED_USERS = 22
    QUERY_USER_RESPONSE = 23
    BROADCAST = 24
    DIRECT = 25
    FAILED = 26
    INSULT = 27


@dataclass(frozen=True)
class Frame:
    """Base for every frame. Subclasses set TAG and FIELDS."""
    TAG: ClassVar[int] = -1
    FIELDS: ClassVar[Tuple[Tuple[str, str], ...]] = ()

    def values(self) -> tuple:
        """Field values in wire order."""
        return tuple(getattr(self, name) for name, _ in self.FIELDS)


# -----------------------
# Client -> server
# -----------------------

@dataclass(frozen=True)
class Connect(Frame):
    TAG = MessageType.CONNECT
    FIELDS = (("username", "str"),)
    username: str


@dataclass(frozen=True)
class Disconnect(Frame):
    TAG = MessageType.DISCONNECT
    FIELDS = (("username", "str"),)
    username: str


@dataclass(frozen=True)
class QueryUsers(Frame):
    TAG = MessageType.QUERY_CONNECTED_USERS
    FIELDS = (("username", "str"),)
    username: str


@dataclass(frozen=True)
class Insult(Frame):
    TAG = MessageType.INSULT
    FIELDS = (("sender", "str"), ("recipient", "str"))
    sender: str
    recipient: str


# -----------------------
# Server -> client
# -----------------------

@dataclass(frozen=True)
class ConnectResponse(Frame):
    TAG = MessageType.CONNECT_RESPONSE
    FIELDS = (("success", "bool"), ("message", "str"))
    success: bool
    message: str


@dataclass(frozen=True)
class QueryUserResponse(Frame):
    TAG = MessageType.QUERY_USER_RESPONSE
    FIELDS = (("usernames", "strs"),)
    usernames: Tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Failed(Frame):
    TAG = MessageType.FAILED
    FIELDS = (("message", "str"),)
    message: str


# -----------------------
# Both directions
# -----------------------

@dataclass(frozen=True)
class Broadcast(Frame):
    TAG = MessageType.BROADCAST
    FIELDS = (("sender", "str"), ("message", "str"))
    sender: str
    message: str


@dataclass(frozen=True)
class Direct(Frame):
    TAG = MessageType.DIRECT
    FIELDS = (("sender", "str"), ("recipient", "str"), ("message", "str"))
    sender: str
    recipient: str
    message: str


@dataclass(frozen=True)
class Unknown(Frame):
    """A tag we do not recognise. Carries no payload; only the tag was read."""
    tag: int = -1


# Tag -> frame class. Anything missing here decodes to Unknown.
FRAME_TYPES: Dict[int, Type[Frame]] = {
    cls.TAG: cls
    for cls in (
        Connect,
        ConnectResponse,
        Disconnect,
        QueryUsers,
        QueryUserResponse,
        Broadcast,
        Direct,
        Failed,
        Insult,
    )
}


def tag_of(frame: Frame) -> int:
    """Wire tag for a frame, including the Unknown arm."""
    if isinstance(frame, Unknown):
        return frame.tag
    return int(frame.TAG)
