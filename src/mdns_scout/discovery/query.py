"""
Client side of mdns-scout: look up the instances of a service.

A lookup multicasts one question for the service's browse name, then
aggregates the answers arriving until its deadline. Answers come in any
order, partially and duplicated, so records are accumulated per instance
name in `PendingEntry` objects; an entry is emitted once it has an address,
a port and its TXT metadata. Instances still missing something get a
follow-up question of their own.
"""
import asyncio
from collections.abc import Callable

import structlog  # type: ignore[import-not-found]

from .. import codec
from ..config import TransportConfig
from ..exceptions import DecodeError, EncodeError, SendError
from ..models.common import RecordKind
from ..models.records import (
    AddressRecord,
    AnyRecord,
    Message,
    PointerRecord,
    Question,
    ServiceLocationRecord,
    TextRecord,
)
from ..models.service import PendingEntry, ServiceEntry
from ..utils.names import service_address
from .transport import MulticastTransport

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT = 1.0
DEFAULT_DOMAIN = "local"

# Joins the fragments of a TXT record into ServiceEntry.info
TXT_DELIMITER = "|"


class ResponseAggregator:
    """Per-lookup map of instance name to PendingEntry.

    Owned by a single lookup; not safe to share between lookups.
    """

    def __init__(self) -> None:
        self.inprogress: dict[str, PendingEntry] = {}
        self._handlers: dict[RecordKind, Callable[..., PendingEntry]] = {
            RecordKind.PTR: self._on_pointer,
            RecordKind.SRV: self._on_service,
            RecordKind.TXT: self._on_text,
            RecordKind.A: self._on_address,
            RecordKind.AAAA: self._on_address,
        }

    def ensure(self, name: str) -> PendingEntry:
        """The entry for `name`, created empty on first sight."""
        entry = self.inprogress.get(name)
        if entry is None:
            entry = self.inprogress[name] = PendingEntry(name=name)
        return entry

    def _on_pointer(self, record: PointerRecord) -> PendingEntry:
        return self.ensure(record.target)

    def _on_service(self, record: ServiceLocationRecord) -> PendingEntry:
        entry = self.ensure(record.target)
        if record.port:
            entry.port = record.port
        return entry

    def _on_text(self, record: TextRecord) -> PendingEntry:
        entry = self.ensure(record.name)
        entry.info = TXT_DELIMITER.join(record.fragments)
        entry.has_txt = True
        return entry

    def _on_address(self, record: AddressRecord) -> PendingEntry:
        entry = self.ensure(record.name)
        entry.addr = record.address
        return entry

    def apply(self, record: AnyRecord) -> PendingEntry | None:
        handler = self._handlers.get(record.kind)
        if handler is None:
            return None
        return handler(record)

    def ingest(self, message: Message) -> list[PendingEntry]:
        """Apply every answer of a message.

        Returns the entries it touched, in order of last touch, so the entry
        touched most recently comes last.
        """
        touched: dict[str, PendingEntry] = {}
        for record in (*message.answers, *message.additionals):
            entry = self.apply(record)
            if entry is not None:
                touched.pop(entry.name, None)
                touched[entry.name] = entry
        return list(touched.values())


def offer(entry: PendingEntry, entries: asyncio.Queue[ServiceEntry]) -> bool:
    """Emit a complete entry at most once, without ever blocking.

    Returns True when the entry was handed over. A full queue drops the entry:
    delivery is at-most-once so a slow consumer cannot stall the lookup.
    """
    if not entry.complete or entry.sent:
        return False
    entry.sent = True
    try:
        entries.put_nowait(entry.snapshot())
    except asyncio.QueueFull:
        logger.debug("Output queue full, dropping entry", name=entry.name)
        return False
    return True


class QueryEngine:
    """Runs lookups, each over a fresh client transport."""

    def __init__(self, transport_config: TransportConfig | None = None):
        self.transport_config = transport_config or TransportConfig()
        self._transport: MulticastTransport | None = None
        self.logger = logger

    def close(self) -> None:
        """Abort the running lookup, if any; `query()` then returns."""
        if self._transport is not None:
            self._transport.close()

    async def query(self, service: str, timeout: float, entries: asyncio.Queue[ServiceEntry]) -> None:
        """Look up `service` (a fully qualified browse name) until `timeout`
        seconds have passed, putting complete entries on `entries`.

        Raises:
            TransportError: if no socket could be opened.
            SendError: if the initial question could not be sent.
        """
        log = self.logger.bind(service=service, timeout=timeout)
        transport = await MulticastTransport.open(self.transport_config)
        self._transport = transport
        try:
            await self._send_question(transport, service)
            log.debug("Query sent")
            await self._collect(transport, timeout, entries, log)
        finally:
            transport.close()
            await transport.wait_closed()
            self._transport = None

    async def _send_question(self, transport: MulticastTransport, name: str, unicast: bool = False) -> None:
        message = Message(questions=(Question(name=name, kind=RecordKind.ANY, unicast=unicast),))
        await transport.send(codec.pack(message))

    async def _collect(
        self,
        transport: MulticastTransport,
        timeout: float,
        entries: asyncio.Queue[ServiceEntry],
        log: structlog.BoundLogger,
    ) -> None:
        aggregator = ResponseAggregator()
        loop = asyncio.get_running_loop()
        end_time = loop.time() + timeout

        while True:
            remaining = end_time - loop.time()
            if remaining <= 0:
                break
            try:
                datagram = await asyncio.wait_for(transport.receive(), timeout=remaining)
            except TimeoutError:
                break
            if datagram is None:
                log.debug("Transport closed during lookup")
                break
            if loop.time() >= end_time:
                break  # arrived, but too late

            try:
                message = codec.unpack(datagram.data)
            except DecodeError as e:
                log.warning("Failed to unpack packet", source=datagram.addr[:2], error=str(e))
                continue

            for entry in aggregator.ingest(message):
                if entry.complete:
                    if offer(entry, entries):
                        log.info("Service found", name=entry.name, addr=str(entry.addr), port=entry.port)
                elif not entry.queried:
                    # Browse answers may carry only the PTR; ask the
                    # instance directly for the missing pieces, once.
                    entry.queried = True
                    try:
                        await self._send_question(transport, entry.name, unicast=True)
                    except (SendError, EncodeError) as e:
                        log.error("Failed to query instance", name=entry.name, error=str(e))

        incomplete = [e.name for e in aggregator.inprogress.values() if not e.complete]
        if incomplete:
            log.debug("Discarding incomplete entries", names=incomplete)


async def lookup_domain(
    service: str,
    domain: str,
    timeout: float,
    entries: asyncio.Queue[ServiceEntry],
    transport_config: TransportConfig | None = None,
) -> None:
    """Look up a service in a domain, waiting at most `timeout` seconds.

    Results are streamed to `entries` without blocking, so callers should
    give it room (an unbounded queue) or drain it concurrently.
    """
    engine = QueryEngine(transport_config)
    await engine.query(service_address(service, domain), timeout, entries)

async def lookup(
    service: str,
    entries: asyncio.Queue[ServiceEntry],
    transport_config: TransportConfig | None = None,
) -> None:
    """`lookup_domain` in the "local" domain with a one second timeout."""
    await lookup_domain(service, DEFAULT_DOMAIN, DEFAULT_TIMEOUT, entries, transport_config)

async def discover(
    service: str,
    domain: str = DEFAULT_DOMAIN,
    timeout: float = DEFAULT_TIMEOUT,
    transport_config: TransportConfig | None = None,
) -> list[ServiceEntry]:
    """Run a lookup and return every entry found."""
    entries: asyncio.Queue[ServiceEntry] = asyncio.Queue()
    await lookup_domain(service, domain, timeout, entries, transport_config)
    found = []
    while not entries.empty():
        found.append(entries.get_nowait())
    return found
