"""
Structured DNS questions, resource records and messages.

These are the shapes the codec packs and unpacks. Each record class is one
variant of the record sum type; `kind` identifies the variant.
"""
import abc
from ipaddress import IPv4Address, IPv6Address

from pydantic import Field

from .common import DEFAULT_TTL, BasePydanticModel, RecordKind


class Question(BasePydanticModel):
    name: str
    kind: RecordKind = RecordKind.ANY
    unicast: bool = False  # QU bit: the asker wants the reply sent to it directly

class ResourceRecord(BasePydanticModel, abc.ABC):
    name: str  # owner name, fully qualified with trailing dot
    ttl: int = Field(default=DEFAULT_TTL, ge=0)

    @property
    @abc.abstractmethod
    def kind(self) -> RecordKind:
        """Record type code of this variant."""

class PointerRecord(ResourceRecord):
    target: str

    @property
    def kind(self) -> RecordKind:
        return RecordKind.PTR

class ServiceLocationRecord(ResourceRecord):
    target: str  # host name
    port: int = Field(..., ge=0, le=65535)
    priority: int = 10
    weight: int = 1

    @property
    def kind(self) -> RecordKind:
        return RecordKind.SRV

class TextRecord(ResourceRecord):
    fragments: tuple[str, ...] = ()

    @property
    def kind(self) -> RecordKind:
        return RecordKind.TXT

class AddressRecord(ResourceRecord):
    address: IPv4Address | IPv6Address

    @property
    def kind(self) -> RecordKind:
        if isinstance(self.address, IPv4Address):
            return RecordKind.A
        return RecordKind.AAAA

AnyRecord = PointerRecord | ServiceLocationRecord | TextRecord | AddressRecord

class Message(BasePydanticModel):
    id: int = 0
    is_response: bool = False
    questions: tuple[Question, ...] = ()
    answers: tuple[AnyRecord, ...] = ()
    additionals: tuple[AnyRecord, ...] = ()
