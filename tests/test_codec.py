"""Tests for the zeroconf codec adapter."""
import ipaddress

import pytest

from mdns_scout import codec
from mdns_scout.exceptions import DecodeError, EncodeError
from mdns_scout.models import (
    AddressRecord,
    Message,
    PointerRecord,
    Question,
    RecordKind,
    ServiceLocationRecord,
    TextRecord,
)


def test_query_survives_the_wire():
    query = Message(questions=(Question(name="_foobar._tcp.local."),))
    decoded = codec.unpack(codec.pack(query))

    assert decoded.is_response is False
    assert decoded.answers == ()
    assert len(decoded.questions) == 1
    assert decoded.questions[0].name == "_foobar._tcp.local."
    assert decoded.questions[0].kind == RecordKind.ANY
    assert decoded.questions[0].unicast is False

def test_unicast_bit_is_preserved():
    query = Message(questions=(Question(name="hostname._foobar._tcp.local.", unicast=True),))
    decoded = codec.unpack(codec.pack(query))
    assert decoded.questions[0].unicast is True

def test_response_with_every_record_kind():
    name = "hostname._foobar._tcp.local."
    response = Message(is_response=True, answers=(
        PointerRecord(name="_foobar._tcp.local.", target=name),
        ServiceLocationRecord(name=name, target=name, port=80),
        TextRecord(name=name, fragments=("Local web server", "path=/")),
        AddressRecord(name=name, address="127.0.0.1"),
        AddressRecord(name=name, address="fe80::1"),
    ))
    decoded = codec.unpack(codec.pack(response))

    assert decoded.is_response is True
    kinds = [record.kind for record in decoded.answers]
    assert kinds == [RecordKind.PTR, RecordKind.SRV, RecordKind.TXT, RecordKind.A, RecordKind.AAAA]

    ptr, srv, txt, a, aaaa = decoded.answers
    assert ptr.target == name
    assert srv.port == 80
    assert srv.target == name
    assert txt.fragments == ("Local web server", "path=/")
    assert a.address == ipaddress.ip_address("127.0.0.1")
    assert aaaa.address == ipaddress.ip_address("fe80::1")

def test_text_encoding():
    assert codec.encode_text(()) == b"\x00"
    assert codec.encode_text(("ab", "c")) == b"\x02ab\x01c"
    assert codec.decode_text(b"\x02ab\x01c") == ("ab", "c")
    assert codec.decode_text(b"\x00") == ("",)

def test_text_fragment_too_long():
    with pytest.raises(EncodeError):
        codec.encode_text(("x" * 256,))

@pytest.mark.parametrize("data", [b"", b"\x00\x01", b"\xff" * 5])
def test_malformed_datagram_raises_decode_error(data):
    with pytest.raises(DecodeError):
        codec.unpack(data)
