"""
registry.py: who is online right now.

One ClientRegistry per server, injected into every session and the router
(never a module global, so tests can build as many as they like).

Every method takes the same lock. Reads hand back copies, so a caller that
iterates (broadcast, user listing) never sees a half-applied change; it may
simply miss a session that joined or left a moment later.
"""
import threading
from typing import Dict, List, Optional, Protocol, Set, runtime_checkable

from .messages import Frame


@runtime_checkable
class ChatPeer(Protocol):
    """What the registry and router need from a connected session."""

    username: Optional[str]

    async def send(self, frame: Frame) -> None: ...

    async def close(self) -> None: ...


class ClientRegistry:
    """Case-sensitive username -> session map; at most one entry per name."""

    def __init__(self) -> None:
        self._clients: Dict[str, ChatPeer] = {}
        self._lock = threading.Lock()

    def insert_if_absent(self, username: str, session: ChatPeer) -> bool:
        """Check and insert as one step. False means the name is taken."""
        with self._lock:
            if username in self._clients:
                return False
            self._clients[username] = session
            return True

    def add(self, username: str, session: ChatPeer) -> None:
        """Unconditional insert. Callers must already own the name."""
        with self._lock:
            self._clients[username] = session

    def remove(self, session: ChatPeer) -> bool:
        """
        Drop `session` if it is still the registered owner of its name.

        A stale session (already replaced or already removed) is a no-op.
        """
        username = getattr(session, "username", None)
        if username is None:
            return False
        with self._lock:
            if self._clients.get(username) is session:
                del self._clients[username]
                return True
            return False

    def lookup(self, username: str) -> Optional[ChatPeer]:
        with self._lock:
            return self._clients.get(username)

    def list_other_usernames(self, excluding: Optional[str]) -> Set[str]:
        with self._lock:
            return {name for name in self._clients if name != excluding}

    def usernames(self) -> Set[str]:
        with self._lock:
            return set(self._clients)

    def sessions(self) -> List[ChatPeer]:
        """Snapshot of every registered session (for fan-out)."""
        with self._lock:
            return list(self._clients.values())

    def __contains__(self, username: object) -> bool:
        with self._lock:
            return username in self._clients

    def __len__(self) -> int:
        with self._lock:
            return len(self._clients)
