"""Tests for response aggregation and the query engine."""
import asyncio
import ipaddress
import itertools
import time
from unittest.mock import patch

import pytest

from fakes import FakeTransport
from mdns_scout import codec
from mdns_scout.discovery.query import QueryEngine, ResponseAggregator, lookup_domain, offer
from mdns_scout.discovery.transport import Datagram
from mdns_scout.exceptions import SendError, TransportError
from mdns_scout.models import (
    AddressRecord,
    Message,
    PendingEntry,
    PointerRecord,
    RecordKind,
    ServiceEntry,
    ServiceLocationRecord,
    TextRecord,
)

INSTANCE = "hostname._foobar._tcp.local."

PTR = PointerRecord(name="_foobar._tcp.local.", target=INSTANCE)
SRV = ServiceLocationRecord(name=INSTANCE, target=INSTANCE, port=80)
TXT = TextRecord(name=INSTANCE, fragments=("Local web server",))
A = AddressRecord(name=INSTANCE, address="127.0.0.1")

EXPECTED = ServiceEntry(name=INSTANCE, addr="127.0.0.1", port=80, info="Local web server")


def response(*records) -> Message:
    return Message(is_response=True, answers=records)


# --- ResponseAggregator ---

@pytest.mark.parametrize("order", list(itertools.permutations([PTR, SRV, TXT, A])))
def test_completion_does_not_depend_on_arrival_order(order):
    aggregator = ResponseAggregator()
    for i, record in enumerate(order):
        entry = aggregator.apply(record)
        seen = order[:i + 1]
        assert entry.complete == all(r in seen for r in (SRV, TXT, A))
    assert aggregator.inprogress[INSTANCE].snapshot() == EXPECTED

def test_pointer_creates_entry_for_target():
    aggregator = ResponseAggregator()
    entry = aggregator.apply(PTR)
    assert entry.name == INSTANCE
    assert not entry.complete
    assert list(aggregator.inprogress) == [INSTANCE]

def test_ensure_returns_existing_entry():
    aggregator = ResponseAggregator()
    assert aggregator.ensure(INSTANCE) is aggregator.ensure(INSTANCE)

def test_txt_fragments_joined():
    aggregator = ResponseAggregator()
    entry = aggregator.apply(TextRecord(name=INSTANCE, fragments=("a=1", "b=2")))
    assert entry.info == "a=1|b=2"
    assert entry.has_txt

def test_ipv6_address_fills_entry():
    aggregator = ResponseAggregator()
    entry = aggregator.apply(AddressRecord(name=INSTANCE, address="fe80::1"))
    assert entry.addr == ipaddress.ip_address("fe80::1")

def test_ingest_returns_touched_entries_last_touch_last():
    aggregator = ResponseAggregator()
    other = TextRecord(name="other._foobar._tcp.local.", fragments=())

    touched = aggregator.ingest(response(SRV, other, TXT))

    assert [e.name for e in touched] == ["other._foobar._tcp.local.", INSTANCE]
    assert aggregator.ingest(response()) == []

@pytest.mark.asyncio
async def test_every_instance_in_a_browse_answer_gets_one_follow_up():
    transport = FakeTransport()
    transport.feed(response(PTR, PointerRecord(name="_foobar._tcp.local.", target="b._foobar._tcp.local.")))
    transport.feed(response(PTR))

    await run_query(transport)

    follow_ups = [m.questions[0].name for m in transport.sent_messages()[1:]]
    assert follow_ups == [INSTANCE, "b._foobar._tcp.local."]

def test_offer_emits_once():
    entries: asyncio.Queue = asyncio.Queue()
    entry = PendingEntry(name=INSTANCE, addr=ipaddress.ip_address("127.0.0.1"), port=80,
                         info="Local web server", has_txt=True)

    assert offer(entry, entries) is True
    assert offer(entry, entries) is False
    assert entries.qsize() == 1
    assert entries.get_nowait() == EXPECTED

def test_offer_drops_when_consumer_not_ready():
    entries: asyncio.Queue = asyncio.Queue(maxsize=1)
    entries.put_nowait(EXPECTED)
    entry = PendingEntry(name="x.", addr=ipaddress.ip_address("10.0.0.1"), port=1, has_txt=True)

    assert offer(entry, entries) is False
    assert entry.sent  # dropped, not retried
    assert entries.qsize() == 1

def test_offer_ignores_incomplete_entry():
    entries: asyncio.Queue = asyncio.Queue()
    assert offer(PendingEntry(name="x.", port=1), entries) is False
    assert entries.empty()


# --- QueryEngine ---

async def run_query(transport: FakeTransport, timeout: float = 0.05) -> list[ServiceEntry]:
    entries: asyncio.Queue = asyncio.Queue()
    with patch("mdns_scout.discovery.query.MulticastTransport.open", return_value=transport):
        await QueryEngine().query("_foobar._tcp.local.", timeout, entries)
    found = []
    while not entries.empty():
        found.append(entries.get_nowait())
    return found

@pytest.mark.asyncio
async def test_initial_question_is_any_for_browse_name():
    transport = FakeTransport()
    assert await run_query(transport) == []

    [question_message] = transport.sent_messages()
    [question] = question_message.questions
    assert question.name == "_foobar._tcp.local."
    assert question.kind == RecordKind.ANY
    assert transport.closed

@pytest.mark.asyncio
async def test_incomplete_entry_triggers_follow_up_query():
    transport = FakeTransport()
    transport.feed(response(PTR))

    assert await run_query(transport) == []

    follow_up = transport.sent_messages()[1]
    [question] = follow_up.questions
    assert question.name == INSTANCE
    assert question.kind == RecordKind.ANY
    assert question.unicast

@pytest.mark.asyncio
async def test_browse_reply_with_additionals_needs_no_follow_up():
    transport = FakeTransport()
    transport.feed(Message(is_response=True, answers=(PTR,), additionals=(SRV, TXT, A)))

    assert await run_query(transport) == [EXPECTED]
    assert len(transport.sent) == 1

@pytest.mark.asyncio
async def test_entry_emitted_once_across_duplicates():
    transport = FakeTransport()
    transport.feed(response(PTR))
    transport.feed(response(SRV, TXT, A))
    transport.feed(response(SRV, TXT, A))
    transport.feed(response(TXT, A, SRV))

    assert await run_query(transport) == [EXPECTED]
    # Only the browse question and one follow-up after the PTR
    assert len(transport.sent) == 2

@pytest.mark.asyncio
async def test_malformed_datagram_is_skipped():
    transport = FakeTransport([Datagram(b"\x01\x02\x03", ("10.0.0.9", 5353))])
    transport.feed(response(SRV, TXT, A))
    assert await run_query(transport) == [EXPECTED]

@pytest.mark.asyncio
async def test_follow_up_send_failure_is_not_fatal():
    transport = FakeTransport()
    transport.feed(response(PTR))
    transport.feed(response(SRV, TXT, A))

    initial_sent = False
    original_send = transport.send

    async def flaky_send(data):
        nonlocal initial_sent
        if initial_sent:
            raise SendError("unreachable")
        initial_sent = True
        await original_send(data)

    transport.send = flaky_send
    assert await run_query(transport) == [EXPECTED]

@pytest.mark.asyncio
async def test_initial_send_failure_is_surfaced():
    transport = FakeTransport(fail_sends=True)
    with pytest.raises(SendError):
        await run_query(transport)
    assert transport.closed

@pytest.mark.asyncio
async def test_transport_open_failure_is_surfaced():
    entries: asyncio.Queue = asyncio.Queue()
    with patch("mdns_scout.discovery.query.MulticastTransport.open", side_effect=TransportError("no sockets")):
        with pytest.raises(TransportError):
            await lookup_domain("_foobar._tcp", "local", 0.05, entries)

@pytest.mark.asyncio
async def test_nothing_after_deadline_is_considered():
    transport = FakeTransport()

    async def late_answer():
        await asyncio.sleep(0.2)
        transport.feed(response(SRV, TXT, A))

    task = asyncio.create_task(late_answer())
    started = time.monotonic()
    found = await run_query(transport, timeout=0.05)
    elapsed = time.monotonic() - started
    await task

    assert found == []
    assert elapsed < 0.15

@pytest.mark.asyncio
async def test_close_mid_lookup_returns_promptly():
    transport = FakeTransport()
    engine = QueryEngine()
    entries: asyncio.Queue = asyncio.Queue()

    with patch("mdns_scout.discovery.query.MulticastTransport.open", return_value=transport):
        task = asyncio.create_task(engine.query("_foobar._tcp.local.", 5.0, entries))
        await asyncio.sleep(0.02)
        engine.close()
        await asyncio.wait_for(task, timeout=1.0)

    assert entries.empty()

@pytest.mark.asyncio
async def test_lookup_domain_builds_browse_name():
    transport = FakeTransport()
    entries: asyncio.Queue = asyncio.Queue()
    with patch("mdns_scout.discovery.query.MulticastTransport.open", return_value=transport):
        await lookup_domain("_foobar._tcp.", ".local.", 0.01, entries)
    assert transport.sent_messages()[0].questions[0].name == "_foobar._tcp.local."
