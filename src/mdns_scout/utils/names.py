"""
Helpers for DNS names.
"""


def trim_dot(name: str) -> str:
    """Strip leading and trailing dots."""
    return name.strip(".")

def qualify(name: str, domain: str) -> str:
    """Fully qualified form of `name` inside `domain`, with trailing dot.

    Names already ending in a dot are returned unchanged.
    """
    if name.endswith("."):
        return name
    domain = trim_dot(domain)
    if name == domain or name.endswith("." + domain):
        return name + "."
    return f"{trim_dot(name)}.{domain}."

def service_address(service: str, domain: str) -> str:
    """Browse name for a service type, e.g. `_http._tcp.local.`"""
    return f"{trim_dot(service)}.{trim_dot(domain)}."
