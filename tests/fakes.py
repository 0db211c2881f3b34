"""Test doubles shared across test modules."""
import asyncio
from typing import Any

from mdns_scout import codec
from mdns_scout.discovery.transport import Datagram
from mdns_scout.exceptions import SendError
from mdns_scout.models import Message

PEER = ("192.168.1.50", 5353)


class FakeTransport:
    """Stands in for MulticastTransport: records sends, replays datagrams."""

    def __init__(self, datagrams: list[Datagram] | None = None, fail_sends: bool = False):
        self.sent: list[bytes] = []
        self.sent_to: list[tuple[bytes, Any]] = []
        self.queue: asyncio.Queue = asyncio.Queue()
        self.fail_sends = fail_sends
        self.closed = False
        for datagram in datagrams or []:
            self.queue.put_nowait(datagram)

    def feed(self, message: Message, addr: Any = PEER) -> None:
        self.queue.put_nowait(Datagram(codec.pack(message), addr))

    async def receive(self) -> Datagram | None:
        if self.closed:
            return None
        item = await self.queue.get()
        if item is None:
            self.queue.put_nowait(None)
        return item

    async def send(self, data: bytes) -> None:
        if self.fail_sends:
            raise SendError("network unreachable")
        self.sent.append(data)

    async def send_to(self, data: bytes, addr: Any) -> None:
        if self.fail_sends:
            raise SendError("network unreachable", destination=addr)
        self.sent_to.append((data, addr))

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self.queue.put_nowait(None)

    async def wait_closed(self) -> None:
        return None

    def sent_messages(self) -> list[Message]:
        return [codec.unpack(data) for data in self.sent]
