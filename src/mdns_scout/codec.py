"""
Adapter between our record models and zeroconf's DNS wire codec.

Packing and unpacking of DNS messages is delegated to zeroconf's
DNSOutgoing / DNSIncoming; this module only converts between their record
classes and ours.
"""
import ipaddress
import struct
from collections.abc import Callable
from functools import singledispatch

import structlog  # type: ignore[import-not-found]
from zeroconf import (  # type: ignore[import-not-found]
    DNSAddress,
    DNSIncoming,
    DNSOutgoing,
    DNSPointer,
    DNSQuestion,
    DNSRecord,
    DNSService,
    DNSText,
)

from .exceptions import DecodeError, EncodeError
from .models.common import RecordKind
from .models.records import (
    AddressRecord,
    AnyRecord,
    Message,
    PointerRecord,
    Question,
    ServiceLocationRecord,
    TextRecord,
)

logger = structlog.get_logger(__name__)

CLASS_IN = 1
CLASS_UNIQUE = 0x8000
FLAGS_QR_RESPONSE = 0x8000
FLAGS_AA = 0x0400


def pack(message: Message) -> bytes:
    """Encode a message into a single DNS datagram."""
    flags = FLAGS_QR_RESPONSE | FLAGS_AA if message.is_response else 0
    out = DNSOutgoing(flags, message.id == 0, message.id)
    for question in message.questions:
        class_ = CLASS_IN | (CLASS_UNIQUE if question.unicast else 0)
        out.add_question(DNSQuestion(question.name, int(question.kind), class_))
    for record in message.answers:
        out.add_answer_at_time(_to_wire(record), 0)
    for record in message.additionals:
        out.add_additional_answer(_to_wire(record))

    packets = out.packets()
    if len(packets) != 1:
        raise EncodeError(f"Message does not fit in one datagram ({len(packets)} packets)")
    return packets[0]


def unpack(data: bytes) -> Message:
    """Decode a DNS datagram. Raises DecodeError for malformed input.

    Records from the answer, authority and additional sections all land in
    `answers`.
    """
    try:
        incoming = DNSIncoming(data)
        answers = incoming.answers()
    except (IndexError, ValueError, UnicodeDecodeError, struct.error) as e:
        raise DecodeError(f"Failed to unpack packet: {e}", data) from e
    if not incoming.valid:
        raise DecodeError("Failed to unpack packet: invalid DNS message", data)

    questions = []
    for question in incoming.questions:
        try:
            kind = RecordKind(question.type)
        except ValueError:
            continue  # a question for a type we never answer
        questions.append(Question(name=question.name, kind=kind, unicast=question.unique))

    records = []
    for record in answers:
        converter = _FROM_WIRE.get(record.type)
        if converter is None:
            continue
        try:
            records.append(converter(record))
        except ValueError as e:
            logger.debug("Skipping unusable record", name=record.name, type=record.type, error=str(e))

    return Message(
        id=incoming.id,
        is_response=bool(incoming.flags & FLAGS_QR_RESPONSE),
        questions=tuple(questions),
        answers=tuple(records),
    )


def encode_text(fragments: tuple[str, ...]) -> bytes:
    """Length-prefixed TXT rdata. An empty TXT record holds one empty string."""
    if not fragments:
        return b"\x00"
    parts = []
    for fragment in fragments:
        raw = fragment.encode("utf-8")
        if len(raw) > 255:
            raise EncodeError(f"TXT fragment longer than 255 bytes: {fragment[:32]!r}...")
        parts.append(bytes([len(raw)]) + raw)
    return b"".join(parts)


def decode_text(text: bytes) -> tuple[str, ...]:
    fragments = []
    i = 0
    while i < len(text):
        length = text[i]
        fragments.append(text[i + 1:i + 1 + length].decode("utf-8", errors="replace"))
        i += 1 + length
    return tuple(fragments)


@singledispatch
def _to_wire(record: AnyRecord) -> DNSRecord:
    raise EncodeError(f"Unsupported record type: {type(record).__name__}")

@_to_wire.register
def _(record: PointerRecord) -> DNSRecord:
    return DNSPointer(record.name, int(RecordKind.PTR), CLASS_IN, record.ttl, record.target)

@_to_wire.register
def _(record: ServiceLocationRecord) -> DNSRecord:
    return DNSService(
        record.name, int(RecordKind.SRV), CLASS_IN, record.ttl,
        record.priority, record.weight, record.port, record.target,
    )

@_to_wire.register
def _(record: TextRecord) -> DNSRecord:
    return DNSText(record.name, int(RecordKind.TXT), CLASS_IN, record.ttl, encode_text(record.fragments))

@_to_wire.register
def _(record: AddressRecord) -> DNSRecord:
    return DNSAddress(record.name, int(record.kind), CLASS_IN, record.ttl, record.address.packed)


def _pointer_from_wire(record: DNSPointer) -> AnyRecord:
    return PointerRecord(name=record.name, ttl=record.ttl, target=record.alias)

def _service_from_wire(record: DNSService) -> AnyRecord:
    return ServiceLocationRecord(
        name=record.name, ttl=record.ttl, target=record.server,
        port=record.port, priority=record.priority, weight=record.weight,
    )

def _text_from_wire(record: DNSText) -> AnyRecord:
    return TextRecord(name=record.name, ttl=record.ttl, fragments=decode_text(record.text))

def _address_from_wire(record: DNSAddress) -> AnyRecord:
    return AddressRecord(name=record.name, ttl=record.ttl, address=ipaddress.ip_address(record.address))

_FROM_WIRE: dict[int, Callable[..., AnyRecord]] = {
    RecordKind.PTR: _pointer_from_wire,
    RecordKind.SRV: _service_from_wire,
    RecordKind.TXT: _text_from_wire,
    RecordKind.A: _address_from_wire,
    RecordKind.AAAA: _address_from_wire,
}
