"""
session.py: one connected client, from accept to hang-up.

Lifecycle:
    UNAUTHENTICATED --Connect(free name)--> AUTHENTICATED --Disconnect--> CLOSED
Any transport failure or malformed frame jumps straight to CLOSED. Whatever
the exit path, `close()` runs once: registry entry gone, stream closed.

Frames on one connection are handled strictly in arrival order by the
session's own read loop. Other sessions may call `send()` concurrently
(broadcasts, direct messages); the per-session lock keeps each frame's
bytes contiguous on the wire.
"""
import asyncio
import logging
from enum import Enum
from typing import Optional

from .errors import (
    AlreadyConnected,
    AuthConflict,
    DisconnectRejected,
    IdentityMismatch,
    NotAuthenticated,
    ProtocolError,
    RecoverableError,
    TransportFailure,
    UnexpectedMessage,
)
from .framing import encode_frame, read_frame
from .messages import (
    Broadcast,
    Connect,
    ConnectResponse,
    Direct,
    Disconnect,
    Frame,
    Insult,
    QueryUserResponse,
    QueryUsers,
    Unknown,
    tag_of,
)
from .registry import ClientRegistry

logger = logging.getLogger(__name__)


class SessionState(Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    CLOSED = "closed"


class ClientSession:
    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter,
                 registry: ClientRegistry, router) -> None:
        self.reader = reader
        self.writer = writer
        self.registry = registry
        self.router = router
        self.username: Optional[str] = None
        self.state = SessionState.UNAUTHENTICATED
        self.peer = writer.get_extra_info("peername")
        self._send_lock = asyncio.Lock()

        # Exhaustive dispatch table; anything else is a server->client kind.
        self._handlers = {
            Connect: self.handle_connect,
            Disconnect: self.handle_disconnect,
            QueryUsers: self.handle_query_users,
            Broadcast: self.handle_broadcast,
            Direct: self.handle_direct,
            Insult: self.handle_insult,
            Unknown: self.handle_unknown,
        }

    def __repr__(self) -> str:
        return f"ClientSession(username={self.username!r}, peer={self.peer!r}, state={self.state.value})"

    # -------------------------
    # Write path
    # -------------------------

    async def send(self, frame: Frame) -> None:
        """Write one whole frame; concurrent callers are serialized."""
        if self.state is SessionState.CLOSED:
            raise TransportFailure("session is closed")
        data = encode_frame(frame)
        async with self._send_lock:
            try:
                self.writer.write(data)
                await self.writer.drain()
            except OSError as exc:
                raise TransportFailure(str(exc) or type(exc).__name__) from exc

    # -------------------------
    # Read loop
    # -------------------------

    async def run(self) -> None:
        """Read and dispatch frames until hang-up, then clean up."""
        logger.info("Connection from %s", self.peer)
        try:
            while self.state is not SessionState.CLOSED:
                frame = await read_frame(self.reader)
                if frame is None:
                    break
                await self.dispatch(frame)
        except ProtocolError as exc:
            logger.warning("Protocol error from %s: %s", self.peer, exc)
        except (OSError, TransportFailure) as exc:
            logger.info("Connection to %s lost: %s", self.peer, exc)
        finally:
            await self.close()

    async def dispatch(self, frame: Frame) -> None:
        """Run the handler for `frame`; recoverable errors become one reply."""
        handler = self._handlers.get(type(frame), self.handle_unexpected)
        try:
            await handler(frame)
        except RecoverableError as exc:
            logger.debug("Rejected %s from %s: %s", type(frame).__name__, self.peer, exc)
            await self.send(exc.to_frame())

    async def close(self) -> None:
        """Idempotent: unregister, close the stream, enter CLOSED."""
        if self.state is SessionState.CLOSED:
            return
        self.state = SessionState.CLOSED
        if self.registry.remove(self):
            logger.info("Client disconnected: %s", self.username)
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except OSError as exc:
            logger.debug("Error closing %s: %s", self.peer, exc)

    # -------------------------
    # Handlers
    # -------------------------

    def _check_identity(self, claimed: str, mismatch: Optional[IdentityMismatch] = None) -> str:
        if self.username is None:
            raise NotAuthenticated()
        if claimed != self.username:
            raise mismatch or IdentityMismatch(claimed)
        return self.username

    async def handle_connect(self, frame: Connect) -> None:
        if self.username is not None:
            raise AlreadyConnected(self.username)
        if not self.registry.insert_if_absent(frame.username, self):
            raise AuthConflict(frame.username)
        self.username = frame.username
        self.state = SessionState.AUTHENTICATED
        others = len(self.registry.list_other_usernames(self.username))
        logger.info("Client connected: %s (%s)", self.username, self.peer)
        await self.send(ConnectResponse(True, f"There are {others} other connected clients."))

    async def handle_disconnect(self, frame: Disconnect) -> None:
        self._check_identity(frame.username, DisconnectRejected(frame.username))
        if self.registry.remove(self):
            logger.info("Client disconnected: %s", self.username)
        await self.send(ConnectResponse(True, "You are no longer connected."))
        await self.close()

    async def handle_query_users(self, frame: QueryUsers) -> None:
        username = self._check_identity(
            frame.username, IdentityMismatch(frame.username, "Invalid username for query."))
        others = self.registry.list_other_usernames(username)
        await self.send(QueryUserResponse(tuple(sorted(others))))

    async def handle_broadcast(self, frame: Broadcast) -> None:
        username = self._check_identity(frame.sender)
        await self.router.broadcast(frame.message, username)

    async def handle_direct(self, frame: Direct) -> None:
        username = self._check_identity(frame.sender)
        await self.router.direct_message(frame.message, username, frame.recipient)

    async def handle_insult(self, frame: Insult) -> None:
        username = self._check_identity(frame.sender)
        await self.router.insult(username, frame.recipient)

    async def handle_unknown(self, frame: Unknown) -> None:
        raise UnexpectedMessage(frame.tag)

    async def handle_unexpected(self, frame: Frame) -> None:
        raise UnexpectedMessage(tag_of(frame), known=True)
