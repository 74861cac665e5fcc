import asyncio

from chatroom.errors import TransportFailure
from chatroom.framing import read_frame, write_frame
from chatroom.messages import Connect

TIMEOUT = 2.0


class FakeSession:
    """Stands in for ClientSession: records frames instead of writing them."""

    def __init__(self, username, fail=False):
        self.username = username
        self.fail = fail
        self.frames = []
        self.closed = False

    async def send(self, frame):
        if self.fail:
            raise TransportFailure("broken pipe")
        self.frames.append(frame)

    async def close(self):
        self.closed = True


class WireClient:
    """Raw protocol client for end-to-end tests."""

    def __init__(self, reader, writer):
        self.reader = reader
        self.writer = writer

    @classmethod
    async def open(cls, port):
        reader, writer = await asyncio.open_connection("127.0.0.1", port)
        return cls(reader, writer)

    async def send(self, frame):
        await write_frame(self.writer, frame)

    async def send_raw(self, data):
        self.writer.write(data)
        await self.writer.drain()

    async def recv(self, timeout=TIMEOUT):
        return await asyncio.wait_for(read_frame(self.reader), timeout)

    async def login(self, username):
        await self.send(Connect(username))
        return await self.recv()

    async def at_eof(self, timeout=TIMEOUT):
        """True once the server has closed the connection with nothing left to read."""
        data = await asyncio.wait_for(self.reader.read(), timeout)
        return data == b""

    async def close(self):
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except OSError:
            pass


async def logged_in(port, username):
    client = await WireClient.open(port)
    await client.login(username)
    return client


async def wait_until(predicate, timeout=TIMEOUT):
    """Poll until predicate() is true; server-side cleanup runs asynchronously."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)
