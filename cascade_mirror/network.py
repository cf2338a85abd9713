"""Local interface address discovery for the startup banner."""

import ipaddress
import socket
from typing import List, Optional

import psutil

# Tailscale hands out addresses from the CGNAT block
TAILSCALE_CGNAT = ipaddress.ip_network("100.64.0.0/10")


def is_tailscale_cgnat_address(ip: str) -> bool:
    """Check if an IPv4 address lies in 100.64.0.0/10."""
    try:
        address = ipaddress.ip_address(ip)
    except ValueError:
        return False
    return address.version == 4 and address in TAILSCALE_CGNAT


def detect_tailscale_ips() -> List[str]:
    """
    List IPv4 addresses that look like Tailscale addresses.

    An address qualifies if its interface name contains "tailscale" or if it
    falls in the CGNAT range. Loopback addresses are skipped.
    """
    found: List[str] = []
    for name, addresses in psutil.net_if_addrs().items():
        for addr in addresses:
            if addr.family != socket.AF_INET:
                continue
            if addr.address.startswith("127."):
                continue
            if "tailscale" in name.lower() or is_tailscale_cgnat_address(addr.address):
                if addr.address not in found:
                    found.append(addr.address)
    return found


def get_primary_tailscale_ip() -> Optional[str]:
    """First detected Tailscale address, or None."""
    ips = detect_tailscale_ips()
    return ips[0] if ips else None
