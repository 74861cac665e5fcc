"""
chatroom: a small multi-user TCP chat service.

Clients connect with a unique username and then broadcast to everyone,
message one user directly, or send a scripted insult. Frames are a tiny
binary protocol (4-byte tag + positional fields, see framing.py).

Layout:
- messages  frame types and their wire tags
- framing   encode/decode frames on asyncio streams
- registry  username -> live session map shared by all connections
- router    broadcast / direct / insult fan-out
- session   per-connection state machine and read loop
- server    TCP listener with a concurrent-client cap
- client    interactive terminal client
- run_chat  command-line entry point
"""
__all__ = ["client", "errors", "framing", "insults", "messages", "registry", "router", "run_chat", "server", "session"]
