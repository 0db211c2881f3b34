"""
Exceptions raised by mdns-scout.
"""
from typing import Any


class MDNSError(Exception):
    """Base class for all mdns-scout errors."""
    pass

class ConfigurationError(MDNSError):
    """Raised when a zone cannot be built from the supplied configuration
    (no service type, no usable address, ...). Never recovered."""
    pass

class TransportError(MDNSError):
    """Raised when neither IPv4 nor IPv6 multicast endpoint could be opened."""
    def __init__(self, message: str, errors: dict[str, Any] | None = None):
        super().__init__(message)
        self.errors = errors or {}

class DecodeError(MDNSError):
    """Raised for inbound datagrams that are not valid DNS messages."""
    def __init__(self, message: str, data: bytes | None = None):
        super().__init__(message)
        self.data = data

class EncodeError(MDNSError):
    """Raised when a message cannot be packed into a single datagram."""
    pass

class SendError(MDNSError):
    """Raised when an outbound datagram could not be sent on any family."""
    def __init__(self, message: str, destination: Any = None):
        super().__init__(message)
        self.destination = destination
