"""
errors.py: everything that can go wrong while serving a client.

Two families:
- Fatal (ProtocolError, TransportFailure): the session ends, no reply is
  possible or sensible, the peer just sees the connection close.
- Recoverable (the rest): the session stays open and the offender gets
  exactly one reply frame, built by `to_frame()`.
"""
from .messages import ConnectResponse, Failed, Frame


class ChatError(Exception):
    """Base class for chat server errors."""


class ProtocolError(ChatError):
    """Malformed frame: truncated stream, bad length, bad UTF-8."""


class TransportFailure(ChatError):
    """Socket-level read/write failure on one session."""


class RecoverableError(ChatError):
    """An error answered with a reply frame; the session carries on."""

    def to_frame(self) -> Frame:
        return Failed(str(self))


class AuthConflict(RecoverableError):
    def __init__(self, username: str) -> None:
        super().__init__("Username already taken.")
        self.username = username

    def to_frame(self) -> Frame:
        return ConnectResponse(False, str(self))


class AlreadyConnected(RecoverableError):
    def __init__(self, username: str) -> None:
        super().__init__(f"Already connected as {username}.")
        self.username = username

    def to_frame(self) -> Frame:
        return ConnectResponse(False, str(self))


class NotAuthenticated(RecoverableError):
    def __init__(self) -> None:
        super().__init__("Not connected: send a Connect message first.")


class IdentityMismatch(RecoverableError):
    """A frame asserted a username other than the session's own."""

    def __init__(self, claimed: str, message: str = "Invalid sender username.") -> None:
        super().__init__(message)
        self.claimed = claimed


class DisconnectRejected(IdentityMismatch):
    def __init__(self, claimed: str) -> None:
        super().__init__(claimed, "Invalid username for disconnect.")

    def to_frame(self) -> Frame:
        return ConnectResponse(False, str(self))


class RoutingMiss(RecoverableError):
    def __init__(self, recipient: str) -> None:
        super().__init__(f"User not found: {recipient}")
        self.recipient = recipient


class UnexpectedMessage(RecoverableError):
    """Unknown tag, or a server->client kind arriving from a client."""

    def __init__(self, tag: int, known: bool = False) -> None:
        if known:
            super().__init__(f"Unexpected message type: {tag}")
        else:
            super().__init__(f"Unknown message type: {tag}")
        self.tag = tag


class MessageTooLong(RecoverableError):
    """An outgoing line built by the server would not fit in one string field."""

    def __init__(self, size: int) -> None:
        super().__init__("Message too long.")
        self.size = size
