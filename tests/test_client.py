import asyncio

import pytest

from chatroom.client import HELP_TEXT, ChatClient, CommandError, parse_command, render
from chatroom.messages import (
    Broadcast,
    ConnectResponse,
    Direct,
    Disconnect,
    Failed,
    Insult,
    QueryUserResponse,
    QueryUsers,
    Unknown,
)
from chatroom.server import ChatServer
from tests.helpers import logged_in


def test_parse_simple_commands():
    assert parse_command("?", "alice") is None
    assert parse_command("LOGOFF", "alice") == Disconnect("alice")
    assert parse_command("who\n", "alice") == QueryUsers("alice")


def test_parse_broadcast_and_direct():
    assert parse_command("@all hello there", "alice") == Broadcast("alice", "hello there")
    assert parse_command("@bob see you", "alice") == Direct("alice", "bob", "see you")
    assert parse_command("@allison hi", "alice") == Direct("alice", "allison", "hi")


def test_parse_insult():
    assert parse_command("!bob", "alice") == Insult("alice", "bob")


@pytest.mark.parametrize("line, hint", [
    ("@all", "Message cannot be empty."),
    ("@bob   ", "Message cannot be empty."),
    ("@ hi", "Invalid direct message format. Use '@username message'."),
    ("!", "Recipient username is required. Use '!username'."),
    ("hello", "Unknown command. Type '?' for help."),
])
def test_parse_errors(line, hint):
    with pytest.raises(CommandError) as excinfo:
        parse_command(line, "alice")
    assert str(excinfo.value) == hint


def test_render_frames():
    assert render(ConnectResponse(True, "There are 0 other connected clients."), "a") == \
        "There are 0 other connected clients."
    assert render(QueryUserResponse(()), "a") == "No other users are connected."
    assert render(QueryUserResponse(("bob", "carol")), "a") == "Connected users:\n- bob\n- carol"
    assert render(Broadcast("bob", "hi"), "a") == "bob (broadcast): hi"
    assert render(Direct("bob", "a", "psst"), "a") == "bob (private): psst"
    assert render(Direct("bob", "someone", "psst"), "a") is None
    assert render(Failed("User not found: carol"), "a") == "Error: User not found: carol"
    assert render(Unknown(77), "a") == "Unknown message type received: 77"


async def scripted(lines):
    for line in lines:
        yield line


def test_client_session_against_server():
    output = []

    async def scenario():
        async with ChatServer("127.0.0.1", 0) as server:
            bob = await logged_in(server.port, "bob")
            client = ChatClient("127.0.0.1", server.port, "alice", output=output.append)
            await asyncio.wait_for(
                client.run(scripted(["?", "who", "@all hello", "@bob hey", "nonsense", "logoff"])), 5)
            return [await bob.recv() for _ in range(2)]

    bob_got = asyncio.run(scenario())
    assert bob_got == [Broadcast("alice", "hello"), Direct("alice", "bob", "hey")]
    assert output[0] == "Type '?' for help."
    for line in (HELP_TEXT, "There are 1 other connected clients.", "Connected users:\n- bob",
                 "alice (broadcast): hello", "Unknown command. Type '?' for help.",
                 "You are no longer connected.", "Disconnected from server."):
        assert line in output


def test_client_stops_when_name_taken():
    output = []

    async def scenario():
        async with ChatServer("127.0.0.1", 0) as server:
            alice = await logged_in(server.port, "alice")
            client = ChatClient("127.0.0.1", server.port, "alice", output=output.append)

            async def never_ending():
                while True:
                    await asyncio.sleep(3600)
                    yield "who"

            await asyncio.wait_for(client.run(never_ending()), 5)
            return client

    client = asyncio.run(scenario())
    assert not client.connected
    assert "Username already taken." in output
    assert "Server connection closed." in output
