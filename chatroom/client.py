"""
client.py: interactive terminal client for the chat server.

Commands:
    ?               show help
    logoff          disconnect from the server
    who             list the other connected users
    @all <msg>      message everyone
    @<user> <msg>   private message to one user
    !<user>         send a random insult to a user (everyone sees it)
"""
import asyncio
import logging
import sys
import threading
from typing import AsyncIterator, Callable, Optional

from .errors import ProtocolError
from .framing import read_frame, write_frame
from .messages import (
    Broadcast,
    Connect,
    ConnectResponse,
    Direct,
    Disconnect,
    Failed,
    Frame,
    Insult,
    QueryUserResponse,
    QueryUsers,
    tag_of,
)

logger = logging.getLogger(__name__)

HELP_TEXT = "\n".join([
    "Available commands:",
    "?: Display this help menu",
    "logoff: Disconnect from the server",
    "who: List connected users",
    "@all message: Send a message to all users",
    "@username message: Send a direct message to a user",
    "!username: Send a random insult to a user",
])


class CommandError(ValueError):
    """User typed something we can't turn into a frame."""


def parse_command(line: str, username: str) -> Optional[Frame]:
    """
    Turn one line of user input into the frame to send.

    Returns None for '?' (the caller shows HELP_TEXT).
    Raises CommandError with a usage hint for anything malformed.
    """
    text = line.strip()
    if text == "?":
        return None
    if text.lower() == "logoff":
        return Disconnect(username)
    if text.lower() == "who":
        return QueryUsers(username)

    if text.startswith("@"):
        target, _, message = text[1:].partition(" ")
        message = message.strip()
        if not target:
            raise CommandError("Invalid direct message format. Use '@username message'.")
        if not message:
            raise CommandError("Message cannot be empty.")
        if target == "all":
            return Broadcast(username, message)
        return Direct(username, target, message)

    if text.startswith("!"):
        recipient = text[1:].strip()
        if not recipient:
            raise CommandError("Recipient username is required. Use '!username'.")
        return Insult(username, recipient)

    raise CommandError("Unknown command. Type '?' for help.")


def render(frame: Frame, username: str) -> Optional[str]:
    """Terminal line for a frame received from the server (None = show nothing)."""
    if isinstance(frame, ConnectResponse):
        return frame.message
    if isinstance(frame, QueryUserResponse):
        if not frame.usernames:
            return "No other users are connected."
        return "\n".join(["Connected users:"] + [f"- {name}" for name in frame.usernames])
    if isinstance(frame, Broadcast):
        return f"{frame.sender} (broadcast): {frame.message}"
    if isinstance(frame, Direct):
        if frame.recipient != username:
            return None
        return f"{frame.sender} (private): {frame.message}"
    if isinstance(frame, Failed):
        return f"Error: {frame.message}"
    return f"Unknown message type received: {tag_of(frame)}"


async def stdin_lines() -> AsyncIterator[str]:
    """Yield lines typed on stdin without blocking the event loop."""
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()

    def pump() -> None:
        for line in sys.stdin:
            loop.call_soon_threadsafe(queue.put_nowait, line)
        loop.call_soon_threadsafe(queue.put_nowait, None)

    # Daemon thread so a pending input() never keeps the process alive.
    threading.Thread(target=pump, daemon=True).start()
    while True:
        line = await queue.get()
        if line is None:
            return
        yield line


class ChatClient:
    def __init__(self, host: str, port: int, username: str, output: Callable[[str], None] = print) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.output = output
        self.connected = False
        self.authenticated = False
        self.logged_off = False
        self.reader: Optional[asyncio.StreamReader] = None
        self.writer: Optional[asyncio.StreamWriter] = None

    async def start(self) -> None:
        """Open the connection and ask for our username."""
        self.reader, self.writer = await asyncio.open_connection(self.host, self.port)
        self.connected = True
        await write_frame(self.writer, Connect(self.username))

    async def send(self, frame: Frame) -> None:
        await write_frame(self.writer, frame)
        if isinstance(frame, Disconnect):
            self.logged_off = True

    async def handle_input(self, line: str) -> None:
        """Parse one input line and send it; bad input is explained, not sent."""
        try:
            frame = parse_command(line, self.username)
        except CommandError as exc:
            self.output(str(exc))
            return
        if frame is None:
            self.output(HELP_TEXT)
            return
        if isinstance(frame, QueryUsers):
            self.output("Sending query users message...")
        await self.send(frame)

    def handle_frame(self, frame: Frame) -> None:
        line = render(frame, self.username)
        if line is not None:
            self.output(line)
        if isinstance(frame, ConnectResponse):
            if not self.authenticated:
                # First response answers our Connect.
                self.authenticated = frame.success
                self.connected = frame.success
            elif self.logged_off:
                self.connected = False

    async def listen(self) -> None:
        """Print everything the server sends until it hangs up."""
        try:
            while self.connected:
                frame = await read_frame(self.reader)
                if frame is None:
                    break
                self.handle_frame(frame)
        except (ProtocolError, OSError) as exc:
            logger.warning("Error reading from server: %s", exc)
        finally:
            self.connected = False
            self.output("Server connection closed.")

    async def _consume(self, lines: AsyncIterator[str]) -> None:
        try:
            async for line in lines:
                if not self.connected:
                    break
                await self.handle_input(line)
                if self.logged_off:
                    break
        except OSError as exc:
            logger.warning("Error sending to server: %s", exc)

    async def run(self, lines: Optional[AsyncIterator[str]] = None) -> None:
        """
        Connect, then feed input lines until logoff, end of input, or the
        server closing the connection, whichever happens first.
        """
        await self.start()
        self.output("Type '?' for help.")
        listener = asyncio.create_task(self.listen())
        reading = asyncio.create_task(self._consume(lines if lines is not None else stdin_lines()))
        try:
            await asyncio.wait({listener, reading}, return_when=asyncio.FIRST_COMPLETED)
            if reading.done() and self.logged_off:
                # The server answers a logoff and then closes on us.
                await listener
        finally:
            for task in (listener, reading):
                task.cancel()
            await asyncio.gather(listener, reading, return_exceptions=True)
            await self.disconnect()

    async def disconnect(self) -> None:
        self.connected = False
        if self.writer is None:
            return
        writer, self.writer = self.writer, None
        writer.close()
        try:
            await writer.wait_closed()
        except OSError as exc:
            logger.debug("Error closing connection: %s", exc)
        self.output("Disconnected from server.")
