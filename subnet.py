"""
Subnet Enumeration

Expands a CIDR into the ordered list of host addresses to scan.

The size ceiling is checked against the network's total address count, so
a /22 (1024 addresses) is the largest accepted network by default. Network
and broadcast addresses are not scanned; /31 and /32 networks yield all of
their addresses.
"""

import ipaddress
import logging
from typing import List

logger = logging.getLogger(__name__)

MAX_SCAN_ADDRESSES = 1024


class SubnetError(ValueError):
    """Base class for subnet validation errors."""
    pass


class InvalidSubnet(SubnetError):
    """The subnet is not a valid IPv4 CIDR."""
    pass


class SubnetTooLarge(SubnetError):
    """The subnet holds more addresses than a single scan may cover."""
    pass


def parse_subnet(cidr: str, max_addresses: int = MAX_SCAN_ADDRESSES) -> ipaddress.IPv4Network:
    """
    Validate a CIDR string and check it against the size ceiling.

    Args:
        cidr: Subnet in a.b.c.d/prefix notation
        max_addresses: Largest accepted total address count; can only
            lower MAX_SCAN_ADDRESSES, never raise it

    Returns:
        The parsed network (host bits cleared)

    Raises:
        InvalidSubnet: If the string is not an IPv4 CIDR
        SubnetTooLarge: If the network exceeds max_addresses
    """
    if not isinstance(cidr, str) or "/" not in cidr:
        raise InvalidSubnet(f"Invalid CIDR notation: {cidr!r}")

    try:
        network = ipaddress.ip_network(cidr.strip(), strict=False)
    except ValueError as e:
        raise InvalidSubnet(f"Invalid CIDR notation: {cidr!r} ({e})")

    if not isinstance(network, ipaddress.IPv4Network):
        raise InvalidSubnet(f"Only IPv4 subnets are supported: {cidr!r}")

    max_addresses = min(max_addresses, MAX_SCAN_ADDRESSES)
    if network.num_addresses > max_addresses:
        raise SubnetTooLarge(
            f"Subnet too large: {network.num_addresses} IPs. "
            f"Please use a subnet with at most {max_addresses} IPs "
            f"and scan large networks in smaller pieces."
        )

    return network


def enumerate_hosts(cidr: str, max_addresses: int = MAX_SCAN_ADDRESSES) -> List[str]:
    """
    List the host addresses of a subnet in ascending order.

    Args:
        cidr: Subnet in a.b.c.d/prefix notation
        max_addresses: Largest accepted total address count

    Returns:
        Dotted-quad host addresses

    Raises:
        InvalidSubnet: If the string is not an IPv4 CIDR
        SubnetTooLarge: If the network exceeds max_addresses
    """
    network = parse_subnet(cidr, max_addresses)
    hosts = [str(ip) for ip in network.hosts()]
    logger.debug(f"Subnet {network} expands to {len(hosts)} hosts")
    return hosts
