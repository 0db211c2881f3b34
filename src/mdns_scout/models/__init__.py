"""
Pydantic models for mdns-scout.
"""
from .common import DEFAULT_TTL, BasePydanticModel, RecordKind
from .records import (
    AddressRecord,
    AnyRecord,
    Message,
    PointerRecord,
    Question,
    ResourceRecord,
    ServiceLocationRecord,
    TextRecord,
)
from .service import PendingEntry, ServiceEntry

__all__ = [
    "AddressRecord",
    "AnyRecord",
    "BasePydanticModel",
    "DEFAULT_TTL",
    "Message",
    "PendingEntry",
    "PointerRecord",
    "Question",
    "RecordKind",
    "ResourceRecord",
    "ServiceEntry",
    "ServiceLocationRecord",
    "TextRecord",
]
