"""Local interface address discovery for mdns-scout."""

import ipaddress
import platform
import socket
import subprocess
from typing import List, Set

import netifaces  # type: ignore[import-not-found]
import structlog

logger = structlog.get_logger(__name__)

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address


def get_windows_interfaces() -> List[str]:
    """Get enabled network interfaces on Windows using netsh."""
    try:
        output = subprocess.check_output(
            ["netsh", "interface", "show", "interface"],
            universal_newlines=True
        )
    except (subprocess.SubprocessError, OSError) as e:
        logger.error("Failed to get Windows interfaces", error=str(e))
        return []
    interfaces = []
    for line in output.split('\n')[1:]:  # Skip header row
        parts = line.split(None, 3)
        if len(parts) == 4 and parts[0] == "Enabled":
            interfaces.append(parts[3].strip())
    return interfaces

def get_linux_interfaces() -> List[str]:
    """Get non-loopback network interfaces on Linux using `ip link show`."""
    try:
        output = subprocess.check_output(
            ["ip", "link", "show"],
            universal_newlines=True
        )
    except (subprocess.SubprocessError, OSError) as e:
        logger.error("Failed to get Linux interfaces", error=str(e))
        return []
    interfaces = []
    for line in output.split('\n'):
        if line[:1].isdigit() and ": " in line:
            iface = line.split(": ")[1].split("@")[0]
            if iface != "lo":
                interfaces.append(iface)
    return interfaces

def get_network_interfaces(skip_loopback: bool = True) -> List[str]:
    """List network interface names, falling back to platform tools when
    netifaces is unusable.
    """
    try:
        interfaces = netifaces.interfaces()
    except Exception as e:
        logger.warning("netifaces discovery failed, trying platform-specific fallback", error=str(e))
        if platform.system() == "Windows":
            return get_windows_interfaces()
        return get_linux_interfaces()
    if skip_loopback:
        interfaces = [
            iface for iface in interfaces
            if not iface.lower().startswith(("lo", "loopback"))
        ]
    return interfaces

def get_interface_ips(interface: str) -> Set[IPAddress]:
    """All IPv4 and IPv6 addresses bound to an interface."""
    addresses: Set[IPAddress] = set()
    try:
        addr_info = netifaces.ifaddresses(interface)
    except (ValueError, KeyError, OSError) as e:
        logger.error("Failed to get addresses for interface", interface=interface, error=str(e))
        return addresses
    for family in (netifaces.AF_INET, netifaces.AF_INET6):
        for addr in addr_info.get(family, []):
            if 'addr' not in addr:
                continue
            try:
                # IPv6 addresses may carry a zone suffix ("fe80::1%eth0")
                addresses.add(ipaddress.ip_address(addr['addr'].split('%')[0]))
            except ValueError:
                logger.debug("Ignoring unparsable interface address", interface=interface, address=addr['addr'])
    return addresses

def _usable(address: IPAddress) -> bool:
    return not (address.is_loopback or address.is_unspecified or address.is_multicast)

def get_candidate_addresses() -> List[IPAddress]:
    """Non-loopback addresses of this host worth advertising, IPv4 first,
    then globally routable IPv6 before link-local IPv6.
    """
    candidates: Set[IPAddress] = set()
    for iface in get_network_interfaces(skip_loopback=True):
        candidates.update(ip for ip in get_interface_ips(iface) if _usable(ip))

    if not candidates:
        # Last resort: whatever the hostname resolves to
        try:
            for info in socket.getaddrinfo(socket.gethostname(), None):
                address = ipaddress.ip_address(info[4][0].split('%')[0])
                if _usable(address):
                    candidates.add(address)
        except (socket.gaierror, ValueError) as e:
            logger.debug("Hostname resolution gave no addresses", error=str(e))

    return sorted(candidates, key=lambda ip: (ip.version, ip.is_link_local, int(ip)))
