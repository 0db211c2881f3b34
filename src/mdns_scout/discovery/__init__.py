"""
Client side of mdns-scout: multicast transport, interface addresses and
the query engine.
"""
from .query import QueryEngine, ResponseAggregator, discover, lookup, lookup_domain
from .transport import Datagram, MulticastTransport

__all__ = [
    "Datagram",
    "MulticastTransport",
    "QueryEngine",
    "ResponseAggregator",
    "discover",
    "lookup",
    "lookup_domain",
]
