"""Unit tests for Tailscale address detection."""

import socket
from collections import namedtuple

import pytest
from unittest.mock import patch

from cascade_mirror.network import (
    detect_tailscale_ips,
    get_primary_tailscale_ip,
    is_tailscale_cgnat_address,
)

Addr = namedtuple("Addr", ["family", "address", "netmask", "broadcast", "ptp"])


def ipv4(address):
    return Addr(socket.AF_INET, address, "255.255.255.0", None, None)


def ipv6(address):
    return Addr(socket.AF_INET6, address, None, None, None)


@pytest.mark.unit
class TestCgnatRange:
    @pytest.mark.parametrize(
        "ip, expected",
        [
            ("100.64.0.1", True),
            ("100.101.102.103", True),
            ("100.127.255.254", True),
            ("100.63.255.255", False),
            ("100.128.0.1", False),
            ("192.168.1.10", False),
            ("fd7a:115c:a1e0::1", False),
            ("not an ip", False),
        ],
    )
    def test_membership(self, ip, expected):
        assert is_tailscale_cgnat_address(ip) is expected


@pytest.mark.unit
class TestDetection:
    def test_matches_by_range_and_name(self):
        interfaces = {
            "lo": [ipv4("127.0.0.1")],
            "eth0": [ipv4("192.168.1.10"), ipv6("fe80::1")],
            "tailscale0": [ipv4("10.1.2.3"), ipv6("fd7a:115c:a1e0::1")],
            "utun4": [ipv4("100.88.1.2")],
        }
        with patch("cascade_mirror.network.psutil.net_if_addrs", return_value=interfaces):
            assert detect_tailscale_ips() == ["10.1.2.3", "100.88.1.2"]

    def test_loopback_skipped_even_on_tailscale_interface(self):
        interfaces = {"tailscale0": [ipv4("127.0.0.2")]}
        with patch("cascade_mirror.network.psutil.net_if_addrs", return_value=interfaces):
            assert detect_tailscale_ips() == []

    def test_primary_ip(self):
        interfaces = {"tailscale0": [ipv4("100.100.1.1")], "tun1": [ipv4("100.100.1.1")]}
        with patch("cascade_mirror.network.psutil.net_if_addrs", return_value=interfaces):
            assert detect_tailscale_ips() == ["100.100.1.1"]
            assert get_primary_tailscale_ip() == "100.100.1.1"

    def test_no_tailscale(self):
        with patch("cascade_mirror.network.psutil.net_if_addrs", return_value={"eth0": [ipv4("10.0.0.2")]}):
            assert get_primary_tailscale_ip() is None
