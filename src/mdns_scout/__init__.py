"""mdns-scout - multicast DNS service discovery.

Advertise a service (host, port, TXT metadata) on the local link with a
`Responder`, and find instances of a service by name with `lookup`.
"""

__version__ = "0.1.0"

from .config import Config, ServiceConfig, TransportConfig
from .discovery import discover, lookup, lookup_domain
from .exceptions import (
    ConfigurationError,
    DecodeError,
    EncodeError,
    MDNSError,
    SendError,
    TransportError,
)
from .models import ServiceEntry
from .server import Responder, ServiceRecord, Zone

__all__ = [
    "Config",
    "ConfigurationError",
    "DecodeError",
    "EncodeError",
    "MDNSError",
    "Responder",
    "SendError",
    "ServiceConfig",
    "ServiceEntry",
    "ServiceRecord",
    "TransportConfig",
    "TransportError",
    "Zone",
    "discover",
    "lookup",
    "lookup_domain",
]
