"""
server.py: the TCP listener.

Accepts connections forever, one asyncio task per connection. At most
`max_sessions` connections are served at once; anything beyond that is
accepted and closed straight away, without a single byte of protocol.
"""
import asyncio
import logging
from typing import Optional, Set

from .insults import InsultPool
from .registry import ClientRegistry
from .router import MessageRouter
from .session import ClientSession

logger = logging.getLogger(__name__)

DEFAULT_PORT = 8000
MAX_CLIENTS = 10


class ChatServer:
    def __init__(self, host: str = "0.0.0.0", port: int = DEFAULT_PORT, max_sessions: int = MAX_CLIENTS,
                 registry: Optional[ClientRegistry] = None, insults: Optional[InsultPool] = None) -> None:
        self.host = host
        self._port = port
        self.max_sessions = max_sessions
        self.registry = registry if registry is not None else ClientRegistry()
        self.router = MessageRouter(self.registry, insults)
        self.sessions: Set[ClientSession] = set()
        self._server: Optional[asyncio.AbstractServer] = None

    @property
    def port(self) -> int:
        """Bound port once started (useful with port=0), else the configured one."""
        if self._server is not None and self._server.sockets:
            return self._server.sockets[0].getsockname()[1]
        return self._port

    async def start(self) -> None:
        """Bind and start accepting; returns once the socket is listening."""
        self._server = await asyncio.start_server(self.handle_conn, self.host, self._port)
        addrs = ", ".join(str(sock.getsockname()) for sock in self._server.sockets or [])
        logger.info("Chat server listening on %s (max %d clients)", addrs, self.max_sessions)

    async def serve_forever(self) -> None:
        if self._server is None:
            await self.start()
        async with self._server:
            await self._server.serve_forever()

    async def handle_conn(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        """Per-connection task: enforce the cap, then run a session to completion."""
        if len(self.sessions) >= self.max_sessions:
            logger.warning("Maximum clients connected. Connection from %s refused.",
                           writer.get_extra_info("peername"))
            writer.close()
            try:
                await writer.wait_closed()
            except OSError as exc:
                logger.debug("Error closing refused connection: %s", exc)
            return

        session = ClientSession(reader, writer, self.registry, self.router)
        self.sessions.add(session)
        try:
            await session.run()
        finally:
            self.sessions.discard(session)

    async def kick(self, username: str) -> bool:
        """Operator logoff: close the named user's connection."""
        return await self.router.force_logoff(username)

    async def close(self) -> None:
        """Stop accepting and hang up on every live session."""
        if self._server is not None:
            self._server.close()
        for session in list(self.sessions):
            await session.close()
        if self._server is not None:
            await self._server.wait_closed()
            self._server = None
        logger.info("Chat server stopped")

    async def __aenter__(self) -> "ChatServer":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"ChatServer(port={self.port}, connected_clients={len(self.registry)})"
