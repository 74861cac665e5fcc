"""
router.py: fan messages out to one or many sessions.

The router owns no connections. It asks the registry who is online and calls
`send()` on the target sessions; each session serializes its own writes.
Delivery is best-effort: a recipient whose socket has died is logged and
skipped, everyone else still gets the message.
"""
import asyncio
import logging
from typing import Optional

from .errors import MessageTooLong, RoutingMiss, TransportFailure
from .framing import MAX_STRING_SIZE
from .insults import InsultPool
from .messages import Broadcast, Direct, Frame
from .registry import ChatPeer, ClientRegistry

logger = logging.getLogger(__name__)


class MessageRouter:
    def __init__(self, registry: ClientRegistry, insults: Optional[InsultPool] = None) -> None:
        self.registry = registry
        self.insults = insults or InsultPool()

    async def deliver(self, session: ChatPeer, frame: Frame) -> bool:
        """Send one frame to one session; a dead recipient is logged, not raised."""
        try:
            await session.send(frame)
            return True
        except TransportFailure as exc:
            logger.warning("Error sending %s to %s: %s", type(frame).__name__, session.username, exc)
            return False

    async def broadcast(self, text: str, sender: str) -> int:
        """
        Send Broadcast(sender, text) to every registered session, sender included.

        Each recipient gets its own send coroutine, so a dead or slow socket
        never stops delivery to the others. The caller (the sender's read
        loop) does wait for the slowest recipient's send to finish before it
        reads the sender's next frame; that keeps every recipient seeing one
        sender's broadcasts in order. Returns how many sends succeeded.
        """
        frame = Broadcast(sender, text)
        recipients = self.registry.sessions()
        results = await asyncio.gather(*(self.deliver(s, frame) for s in recipients))
        return sum(results)

    async def direct_message(self, text: str, sender: str, recipient: str) -> bool:
        """
        Deliver Direct(sender, recipient, text) to `recipient` only.

        On a miss the sender (if still online) gets one Failed frame naming
        the recipient; if the sender is gone too, the miss is dropped.
        """
        target = self.registry.lookup(recipient)
        if target is not None:
            return await self.deliver(target, Direct(sender, recipient, text))

        miss = RoutingMiss(recipient)
        logger.info("Direct message from %s: %s", sender, miss)
        origin = self.registry.lookup(sender)
        if origin is not None:
            await self.deliver(origin, miss.to_frame())
        return False

    async def insult(self, sender: str, recipient: str) -> str:
        """
        Broadcast "<sender> -> <recipient>: <phrase>" to everyone.

        The recipient is only named in the text; it is not looked up and does
        not need to be online.

        Raises:
            MessageTooLong: the formatted line exceeds MAX_STRING_SIZE; nothing
                is sent.
        """
        line = f"{sender} -> {recipient}: {self.insults.pick()}"
        size = len(line.encode("utf-8"))
        if size > MAX_STRING_SIZE:
            raise MessageTooLong(size)
        await self.broadcast(line, sender)
        return line

    async def force_logoff(self, username: str) -> bool:
        """Drop `username` from the registry and close its connection."""
        session = self.registry.lookup(username)
        if session is None:
            return False
        self.registry.remove(session)
        await session.close()
        logger.info("Forced logoff of %s", username)
        return True
