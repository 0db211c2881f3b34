"""
Records a responder is authoritative for.

A `ServiceRecord` describes one advertised instance; a `Zone` indexes the DNS
records derived from one or more of them by (name, record kind).
"""
import socket
from collections import defaultdict
from collections.abc import Callable, Iterable
from ipaddress import IPv4Address, IPv6Address
from typing import Sequence

import structlog  # type: ignore[import-not-found]

from ..config import ServiceConfig
from ..discovery.network import IPAddress, get_candidate_addresses
from ..exceptions import ConfigurationError
from ..models.common import DEFAULT_TTL, BasePydanticModel, RecordKind
from ..models.records import (
    AddressRecord,
    AnyRecord,
    PointerRecord,
    Question,
    ServiceLocationRecord,
    TextRecord,
)
from ..utils.names import qualify, service_address, trim_dot

logger = structlog.get_logger(__name__)

# Answer order for "any type" questions
ANY_ORDER = (RecordKind.PTR, RecordKind.SRV, RecordKind.TXT, RecordKind.A, RecordKind.AAAA)

SERVICE_ENUMERATION = "_services._dns-sd._udp"


class ServiceRecord(BasePydanticModel):
    """One advertised service instance. Immutable once built."""
    service_type: str  # e.g. "_http._tcp"
    instance: str  # e.g. "hostname"
    host: str  # fully qualified target of the SRV record
    addresses: tuple[IPv4Address | IPv6Address, ...]
    port: int
    text: tuple[str, ...] = ()
    domain: str = "local"
    ttl: int = DEFAULT_TTL

    @property
    def service_addr(self) -> str:
        """Browse name, e.g. `_http._tcp.local.`"""
        return service_address(self.service_type, self.domain)

    @property
    def instance_addr(self) -> str:
        """Instance name, e.g. `hostname._http._tcp.local.`"""
        return f"{trim_dot(self.instance)}.{self.service_addr}"

    @property
    def enumeration_addr(self) -> str:
        return f"{SERVICE_ENUMERATION}.{trim_dot(self.domain)}."

    @classmethod
    def from_config(
        cls,
        config: ServiceConfig,
        address_provider: Callable[[], Sequence[IPAddress]] = get_candidate_addresses,
    ) -> "ServiceRecord":
        """Validate a service configuration and fill in derived defaults.

        Raises:
            ConfigurationError: if no service type, instance name, port or
                usable address can be determined, or if an explicit host
                names something other than the instance.
        """
        service_type = trim_dot(config.service_type or "")
        if not service_type:
            raise ConfigurationError("Missing service name")
        if config.port == 0:
            raise ConfigurationError(f"Missing port for service {service_type}")

        instance = trim_dot(config.instance or "")
        if not instance:
            instance = socket.gethostname().split(".")[0]
        if not instance:
            raise ConfigurationError("Could not determine an instance name")

        addresses = tuple(config.ips)
        if not addresses:
            candidates = list(address_provider())
            if not candidates:
                raise ConfigurationError("Could not determine host IP addresses")
            addresses = (candidates[0],)
            logger.info("Selected interface address", service=service_type, address=str(addresses[0]))

        domain = trim_dot(config.domain) or "local"
        # SRV target and A/AAAA owner must be the instance name for lookups
        # to resolve the instance
        host = f"{instance}.{service_type}.{domain}."
        if config.host and qualify(config.host, domain).lower() != host.lower():
            raise ConfigurationError(
                f"Host {config.host!r} must name the instance {host!r}"
            )
        return cls(
            service_type=service_type,
            instance=instance,
            host=host,
            addresses=addresses,
            port=config.port,
            text=tuple(config.text),
            domain=domain,
            ttl=config.ttl,
        )

    def instance_records(self) -> list[AnyRecord]:
        """SRV, TXT and address records that resolve the instance."""
        ttl = self.ttl
        records: list[AnyRecord] = [
            ServiceLocationRecord(name=self.instance_addr, ttl=ttl, target=self.host, port=self.port),
            TextRecord(name=self.instance_addr, ttl=ttl, fragments=self.text),
        ]
        records.extend(AddressRecord(name=self.host, ttl=ttl, address=ip) for ip in self.addresses)
        return records

    def records(self) -> list[AnyRecord]:
        """Every DNS record this service answers for."""
        return [
            PointerRecord(name=self.enumeration_addr, ttl=self.ttl, target=self.service_addr),
            PointerRecord(name=self.service_addr, ttl=self.ttl, target=self.instance_addr),
            *self.instance_records(),
        ]


class Zone:
    """Read-only lookup table built once at server start."""

    def __init__(self, services: Iterable[ServiceRecord]):
        self.services = tuple(services)
        if not self.services:
            raise ConfigurationError("A zone needs at least one service")
        self._index: dict[tuple[str, RecordKind], list[AnyRecord]] = defaultdict(list)
        self._instances = {service.instance_addr.lower(): service for service in self.services}
        for service in self.services:
            for record in service.records():
                bucket = self._index[(record.name.lower(), record.kind)]
                if record not in bucket:
                    bucket.append(record)
        logger.debug("Zone built", services=[s.instance_addr for s in self.services], names=len(self.names()))

    @classmethod
    def from_config(cls, *configs: ServiceConfig) -> "Zone":
        return cls(ServiceRecord.from_config(config) for config in configs)

    def names(self) -> set[str]:
        return {name for name, _ in self._index}

    def records(self, question: Question) -> list[AnyRecord]:
        """Records answering `question`, PTR, SRV, TXT, A, AAAA order for ANY."""
        name = question.name.lower()
        kinds = ANY_ORDER if question.kind == RecordKind.ANY else (question.kind,)
        matched: list[AnyRecord] = []
        for kind in kinds:
            matched.extend(self._index.get((name, kind), ()))
        return matched

    def additionals(self, answers: Iterable[AnyRecord]) -> list[AnyRecord]:
        """Records resolving the instances that PTR `answers` point at.

        Sent with a browse answer so one reply resolves each instance.
        Records already among `answers` are left out.
        """
        answers = list(answers)
        extra: list[AnyRecord] = []
        for record in answers:
            if record.kind != RecordKind.PTR:
                continue
            service = self._instances.get(record.target.lower())
            if service is None:
                continue
            for resolving in service.instance_records():
                if resolving not in answers and resolving not in extra:
                    extra.append(resolving)
        return extra
