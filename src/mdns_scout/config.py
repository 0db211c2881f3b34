"""Configuration management for mdns-scout."""

import json
from ipaddress import IPv4Address, IPv6Address
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models.common import DEFAULT_TTL

MDNS_PORT = 5353
MDNS_IPV4_GROUP = "224.0.0.251"
MDNS_IPV6_GROUP = "ff02::fb"


class TransportConfig(BaseModel):
    """Where and how multicast endpoints are opened."""

    ipv4_group: str = Field(default=MDNS_IPV4_GROUP, description="IPv4 destination group. A unicast address (e.g. 127.0.0.1) disables group membership.")
    ipv6_group: str = Field(default=MDNS_IPV6_GROUP, description="IPv6 destination group.")
    port: int = Field(default=MDNS_PORT, ge=0, le=65535, description="Destination port; the responder also binds it (0 binds an ephemeral port).")
    enable_ipv4: bool = Field(default=True, description="Open an IPv4 endpoint.")
    enable_ipv6: bool = Field(default=True, description="Open an IPv6 endpoint.")
    queue_size: int = Field(default=32, ge=1, description="Bound of the receive queue shared by both families.")
    interface: Optional[str] = Field(default=None, description="IPv4 address of the interface used for multicast membership and sends. Defaults to the OS choice.")
    multicast_ttl: int = Field(default=255, ge=1, le=255, description="Hop limit for outgoing multicast datagrams.")

class DiscoveryConfig(BaseModel):
    """Defaults for lookups."""

    service: str = Field(default="_http._tcp", description="Service type to look up, e.g. '_http._tcp'.")
    domain: str = Field(default="local", description="Domain to search.")
    timeout_seconds: float = Field(default=1.0, gt=0, le=300, description="Hard deadline for one lookup.")

class ServiceConfig(BaseModel):
    """A service to advertise. Turned into a zone by the server."""

    service_type: str = Field(default="", description="Service type, e.g. '_http._tcp'.")
    instance: Optional[str] = Field(default=None, description="Instance name. Defaults to the local hostname.")
    host: Optional[str] = Field(default=None, description="Host name the SRV record points at. Always the instance name; a different value is rejected when the zone is built.")
    port: int = Field(default=0, ge=0, le=65535, description="Port the service listens on.")
    ips: List[IPv4Address | IPv6Address] = Field(default_factory=list, description="Addresses to advertise. If empty, the first usable non-loopback interface address is used.")
    text: List[str] = Field(default_factory=list, description="TXT record fragments.")
    domain: str = Field(default="local", description="Domain the service lives in.")
    ttl: int = Field(default=DEFAULT_TTL, ge=0, description="TTL of advertised records in seconds.")

    @field_validator("text", mode="before")
    @classmethod
    def split_text(cls, v):
        if isinstance(v, str):
            return [v]
        return v

class LoggingConfig(BaseModel):
    """Configuration for logging."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="json", description="Log format ('json' or 'console')")


class Config(BaseSettings):
    """Main configuration for mdns-scout. Loads from environment variables prefixed with MDNS_SCOUT_."""

    model_config = SettingsConfigDict(
        env_prefix='MDNS_SCOUT_',
        env_nested_delimiter='__',  # e.g., MDNS_SCOUT_DISCOVERY__TIMEOUT_SECONDS
        extra='ignore',
        env_file='.env',
        env_file_encoding='utf-8'
    )

    transport: TransportConfig = Field(default_factory=TransportConfig)
    discovery: DiscoveryConfig = Field(default_factory=DiscoveryConfig)
    service: ServiceConfig = Field(default_factory=ServiceConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_file(cls, file_path: Path) -> "Config":
        """Create configuration strictly from a JSON file.
        Environment variables are not layered on top.
        """
        with open(file_path) as f:
            config_data = json.load(f)
        return cls.model_validate(config_data)
