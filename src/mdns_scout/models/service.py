from dataclasses import dataclass
from ipaddress import IPv4Address, IPv6Address

from .common import BasePydanticModel


class ServiceEntry(BasePydanticModel):
    """A fully resolved remote service instance, as handed to callers."""
    name: str
    addr: IPv4Address | IPv6Address
    port: int
    info: str


@dataclass
class PendingEntry:
    """Records seen so far for one remote instance during a lookup.

    Fields are only ever filled in, never cleared.
    """

    name: str
    addr: IPv4Address | IPv6Address | None = None
    port: int = 0
    info: str | None = None
    has_txt: bool = False
    sent: bool = False
    queried: bool = False  # a follow-up question went out for it

    @property
    def complete(self) -> bool:
        return self.addr is not None and self.port != 0 and self.has_txt

    def snapshot(self) -> ServiceEntry:
        return ServiceEntry(name=self.name, addr=self.addr, port=self.port, info=self.info or "")
