import argparse
import asyncio
import logging
import os

from .client import ChatClient
from .server import DEFAULT_PORT, MAX_CLIENTS, ChatServer

"""
run_chat.py: single entry point to run the chat server or the terminal client.

Quick examples:
  Server:  python -m chatroom.run_chat --mode server --port 8000 --max-clients 10
  Client:  python -m chatroom.run_chat --mode client --host localhost --port 8000 --username alice

Flags fall back to CHATROOM_HOST / CHATROOM_PORT / CHATROOM_MAX_CLIENTS /
CHATROOM_LOG_LEVEL when not given on the command line.
"""

logger = logging.getLogger("chatroom")


def env_int(name: str, default: int) -> int:
    """Integer from the environment; a bad value falls back to the default."""
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid value %r for %s, using default %d", raw, name, default)
        return default


# -------------------------
# Process runners (thin wrappers)
# -------------------------

async def run_server(host: str, port: int, max_clients: int) -> None:
    """Spin up the chat server and serve forever on host:port."""
    server = ChatServer(host, port, max_clients)
    try:
        await server.serve_forever()
    finally:
        await server.close()


async def run_client(host: str, port: int, username: str) -> None:
    """Connect as `username` and drive the session from stdin."""
    client = ChatClient(host, port, username)
    try:
        await client.run()
    except OSError as exc:
        raise SystemExit(f"Unable to connect to server at {host}:{port} ({exc})")


# -------------------------
# Argument parsing
# -------------------------

def parse_args(argv=None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="chatroom", description="TCP chat server and client")
    p.add_argument("--mode", choices=["server", "client"], required=True)
    p.add_argument("--host", default=os.environ.get("CHATROOM_HOST"))
    p.add_argument("--port", type=int, default=None)
    p.add_argument("--max-clients", type=int, default=None)
    p.add_argument("--username", default="DefaultUser")
    p.add_argument("--log-level", default=os.environ.get("CHATROOM_LOG_LEVEL", "INFO"),
                   choices=["DEBUG", "INFO", "WARNING", "ERROR"], type=str.upper)
    args = p.parse_args(argv)

    # CHATROOM_PORT / CHATROOM_MAX_CLIENTS are resolved in main().
    if args.host is None:
        args.host = "0.0.0.0" if args.mode == "server" else "localhost"
    return args


# -------------------------
# Main entrypoint
# -------------------------

def main(argv=None) -> None:
    """Dispatch into the chosen mode; keep top-level code very small."""
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    port = args.port if args.port is not None else env_int("CHATROOM_PORT", DEFAULT_PORT)

    try:
        if args.mode == "server":
            max_clients = args.max_clients
            if max_clients is None:
                max_clients = env_int("CHATROOM_MAX_CLIENTS", MAX_CLIENTS)
            asyncio.run(run_server(args.host, port, max_clients))
        else:
            asyncio.run(run_client(args.host, port, args.username))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")


if __name__ == "__main__":
    main()
