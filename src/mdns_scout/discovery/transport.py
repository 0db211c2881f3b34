"""
UDP multicast endpoints for mDNS traffic.

One socket is opened per IP family. Each socket gets its own receiver task
that forwards datagrams onto a bounded queue shared by both families; a full
queue drops the datagram instead of blocking the receiver. Closing the
transport is the only way to stop it: receiver tasks are cancelled, sockets
closed, and any pending `receive()` returns None.
"""
import asyncio
import ipaddress
import socket
import struct
from dataclasses import dataclass
from typing import Any

import structlog  # type: ignore[import-not-found]

from ..config import TransportConfig
from ..exceptions import SendError, TransportError

logger = structlog.get_logger(__name__)

MAX_DATAGRAM = 65536

_FAMILY_NAMES = {socket.AF_INET: "udp4", socket.AF_INET6: "udp6"}


@dataclass(frozen=True)
class Datagram:
    data: bytes
    addr: Any  # socket address of the sender


class MulticastTransport:
    """Send to and receive from the mDNS multicast groups.

    A client transport (`listen=False`) binds an ephemeral port: it only sees
    replies sent directly to it. A listening transport binds the configured
    port and joins the groups, as a responder must.
    """

    def __init__(self, config: TransportConfig | None = None, listen: bool = False):
        self.config = config or TransportConfig()
        self.listen = listen
        self._sockets: dict[int, socket.socket] = {}
        self._destinations: dict[int, tuple] = {}
        self._tasks: dict[int, asyncio.Task] = {}
        self._queue: asyncio.Queue[Datagram | None] = asyncio.Queue(maxsize=self.config.queue_size)
        self._closed = False
        self.logger = logger.bind(listen=listen)

    @classmethod
    async def open(cls, config: TransportConfig | None = None, listen: bool = False) -> "MulticastTransport":
        """Open endpoints for every enabled family.

        Raises:
            TransportError: if no family could be bound.
        """
        transport = cls(config, listen=listen)
        transport._bind_all()
        transport._start_receivers()
        return transport

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def families(self) -> list[int]:
        return list(self._sockets)

    def local_port(self, family: int | None = None) -> int:
        """Port a family's socket is bound to (first open family by default)."""
        if not self._sockets:
            raise TransportError("Transport has no open sockets")
        sock = self._sockets[family] if family is not None else next(iter(self._sockets.values()))
        return sock.getsockname()[1]

    def _bind_all(self) -> None:
        errors: dict[str, Any] = {}
        families = []
        if self.config.enable_ipv4:
            families.append((socket.AF_INET, self._bind_ipv4))
        if self.config.enable_ipv6:
            families.append((socket.AF_INET6, self._bind_ipv6))

        for family, bind in families:
            name = _FAMILY_NAMES[family]
            try:
                sock, destination = bind()
            except OSError as e:
                self.logger.error("Failed to bind port", family=name, error=str(e))
                errors[name] = e
                continue
            self._sockets[family] = sock
            self._destinations[family] = destination
            self.logger.debug("Bound socket", family=name, local=sock.getsockname()[:2])

        if not self._sockets:
            raise TransportError("Failed to bind to any udp port", errors=errors)

    def _bind_port(self) -> int:
        return self.config.port if self.listen else 0

    def _prepare(self, family: int) -> socket.socket:
        sock = socket.socket(family, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
        if self.listen:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            if hasattr(socket, "SO_REUSEPORT"):
                try:
                    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, 1)
                except OSError:
                    pass  # not supported by this kernel
        return sock

    def _bind_ipv4(self) -> tuple[socket.socket, tuple]:
        group = self.config.ipv4_group
        sock = self._prepare(socket.AF_INET)
        try:
            sock.bind(("", self._bind_port()))
            if ipaddress.ip_address(group).is_multicast:
                interface = socket.inet_aton(self.config.interface or "0.0.0.0")
                sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_TTL, self.config.multicast_ttl)
                sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_LOOP, 1)
                if self.config.interface:
                    sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_IF, interface)
                if self.listen:
                    self._join(sock, socket.IPPROTO_IP, socket.IP_ADD_MEMBERSHIP,
                               socket.inet_aton(group) + interface)
            sock.setblocking(False)
        except OSError:
            sock.close()
            raise
        return sock, (group, self.config.port)

    def _bind_ipv6(self) -> tuple[socket.socket, tuple]:
        group = self.config.ipv6_group
        sock = self._prepare(socket.AF_INET6)
        try:
            sock.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_V6ONLY, 1)
            sock.bind(("::", self._bind_port()))
            if ipaddress.ip_address(group).is_multicast:
                sock.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_MULTICAST_HOPS, self.config.multicast_ttl)
                sock.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_MULTICAST_LOOP, 1)
                if self.listen:
                    join = getattr(socket, "IPV6_JOIN_GROUP", None) or getattr(socket, "IPV6_ADD_MEMBERSHIP")
                    self._join(sock, socket.IPPROTO_IPV6, join,
                               socket.inet_pton(socket.AF_INET6, group) + struct.pack("@I", 0))
            sock.setblocking(False)
        except OSError:
            sock.close()
            raise
        return sock, (group, self.config.port, 0, 0)

    def _join(self, sock: socket.socket, level: int, option: int, mreq: bytes) -> None:
        # Without membership the socket still receives direct (unicast)
        # traffic, so a failed join degrades instead of failing the family.
        try:
            sock.setsockopt(level, option, mreq)
        except OSError as e:
            self.logger.warning("Failed to join multicast group", family=_FAMILY_NAMES[sock.family], error=str(e))

    def _start_receivers(self) -> None:
        for family, sock in self._sockets.items():
            self._tasks[family] = asyncio.create_task(
                self._receive_loop(family, sock), name=f"mdns-recv-{_FAMILY_NAMES[family]}"
            )

    async def _receive_loop(self, family: int, sock: socket.socket) -> None:
        loop = asyncio.get_running_loop()
        log = self.logger.bind(family=_FAMILY_NAMES[family])
        while not self._closed:
            try:
                data, addr = await loop.sock_recvfrom(sock, MAX_DATAGRAM)
            except OSError as e:
                if self._closed:
                    return
                log.debug("Receive failed", error=str(e))
                continue
            if self._closed:
                return
            try:
                self._queue.put_nowait(Datagram(data, addr))
            except asyncio.QueueFull:
                log.warning("Receive queue full, dropping datagram", source=addr[:2])

    async def receive(self) -> Datagram | None:
        """Next datagram from any family, or None once the transport is closed."""
        if self._closed:
            return None
        item = await self._queue.get()
        if item is None:
            # Leave the close marker for any other waiting receiver
            self._queue.put_nowait(None)
        return item

    async def send(self, data: bytes) -> None:
        """Send to the group on every open family.

        Raises:
            SendError: if the datagram went out on no family at all.
        """
        if self._closed:
            raise SendError("Transport is closed")
        loop = asyncio.get_running_loop()
        sent = False
        for family, sock in self._sockets.items():
            destination = self._destinations[family]
            try:
                await loop.sock_sendto(sock, data, destination)
                sent = True
            except OSError as e:
                self.logger.debug("Send failed", family=_FAMILY_NAMES[family], destination=destination[:2], error=str(e))
        if not sent:
            raise SendError("Failed to send on any family", destination=[d[:2] for d in self._destinations.values()])

    async def send_to(self, data: bytes, addr: Any) -> None:
        """Send directly to one peer (unicast reply)."""
        if self._closed:
            raise SendError("Transport is closed", destination=addr)
        family = socket.AF_INET6 if len(addr) == 4 else socket.AF_INET
        sock = self._sockets.get(family)
        if sock is None:
            raise SendError(f"No {_FAMILY_NAMES[family]} socket open", destination=addr)
        try:
            await asyncio.get_running_loop().sock_sendto(sock, data, addr)
        except OSError as e:
            raise SendError(f"Failed to send to {addr[0]}: {e}", destination=addr) from e

    def close(self) -> None:
        """Stop receiving and release sockets. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        for family, sock in self._sockets.items():
            task = self._tasks.get(family)
            if task is None or task.done():
                sock.close()
            else:
                # The socket must outlive the pending read that uses it
                task.cancel()
                task.add_done_callback(lambda _task, s=sock: s.close())
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(None)
        self.logger.debug("Transport closed")

    async def wait_closed(self) -> None:
        await asyncio.gather(*self._tasks.values(), return_exceptions=True)

    async def __aenter__(self) -> "MulticastTransport":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.close()
        await self.wait_closed()
