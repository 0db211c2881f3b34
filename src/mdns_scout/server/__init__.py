"""
Server side of mdns-scout: the zone model and the responder serving it.
"""
from .responder import Responder
from .zone import ServiceRecord, Zone

__all__ = ["Responder", "ServiceRecord", "Zone"]
