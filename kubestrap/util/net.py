"""Contains utility functions for network stuff"""

from netaddr import (INET_PTON, IPAddress, IPNetwork, valid_ipv4,
                     valid_ipv6)
from netaddr.core import AddrFormatError


def is_ip(ip):
    """Checks if an IP is a valid IPv4 or IPv6 address"""

    return isinstance(ip, str) and (valid_ipv4(ip, flags=INET_PTON) or
                                    valid_ipv6(ip))


def parse_network(prefix):
    """Parses a CIDR string into an ``IPNetwork`` with the host bits cleared.

    Raises:
        ValueError if prefix is not a network.
    """
    try:
        return IPNetwork(prefix).cidr
    except (AddrFormatError, TypeError, ValueError) as exc:
        raise ValueError(f"invalid network prefix {prefix!r}: {exc}")


def default_network(ip, prefixlen=24):
    """Returns the ``/prefixlen`` network containing ``ip``"""

    return IPNetwork(f"{ip}/{prefixlen}").cidr


def usable_range(network):
    """Returns the first and last address which may be handed to a host.

    Network and broadcast addresses are excluded, except for /31 and /32
    (or their IPv6 equivalents) which have no room for them.
    """
    first = IPAddress(network.first, network.version)
    last = IPAddress(network.last, network.version)
    if network.size > 2:
        if network.version == 4:
            return first + 1, last - 1
        return first + 1, last
    return first, last
