import ipaddress

import pytest

from mdns_scout.config import ServiceConfig, TransportConfig


@pytest.fixture
def foobar_config():
    return ServiceConfig(
        service_type="_foobar._tcp",
        instance="hostname",
        port=80,
        ips=[ipaddress.ip_address("127.0.0.1")],
        text=["Local web server"],
        domain="local",
    )

@pytest.fixture
def loopback_transport_config():
    """Responder side: unicast loopback on an ephemeral port, IPv4 only."""
    return TransportConfig(ipv4_group="127.0.0.1", port=0, enable_ipv6=False)
