"""Random, collision-free IPv4 allocation from CIDR pools."""

import ipaddress
import logging
import random

from svcexpose.exceptions import AddressPoolExhaustedError, InvalidPoolError

logger = logging.getLogger(__name__)


def parse_pools(cidrs):
    """Parse a comma separated list of masked IPv4 prefixes.

    Args:
        cidrs: e.g. ``"100.64.0.0/16, 100.65.0.0/24"`` or a list of prefixes
    """
    if isinstance(cidrs, str):
        cidrs = cidrs.split(",")

    pools = []
    for cidr in cidrs:
        cidr = str(cidr).strip()
        if not cidr:
            continue
        try:
            prefix = ipaddress.ip_network(cidr, strict=True)
        except ValueError as e:
            raise InvalidPoolError(f"v4 prefix {cidr} is not a masked prefix: {e}") from e
        if prefix.version != 4:
            raise InvalidPoolError(f"prefix {cidr} is not an IPv4 prefix")
        pools.append(prefix)

    if not pools:
        raise InvalidPoolError("no v4 prefixes specified")
    return pools


def rand_v4(prefix, rng):
    """Return a uniformly random address within ``prefix``."""
    host_bits = 32 - prefix.prefixlen
    offset = rng.getrandbits(host_bits) if host_bits else 0
    return prefix.network_address + offset


def unused_ipv4(pools, records, reserved, rng):
    """Find an address that is neither recorded nor reserved.

    Each pool is scanned from a random starting point, wrapping around at the
    end of the prefix, so every address of the pool is considered once.
    """
    for prefix in pools:
        start = rand_v4(prefix, rng)
        base = int(prefix.network_address)
        size = prefix.num_addresses
        offset = int(start) - base
        for step in range(size):
            candidate = ipaddress.IPv4Address(base + (offset + step) % size)
            if records.is_used(candidate) or candidate == reserved:
                continue
            return candidate
        logger.debug(f"Pool {prefix} has no free addresses")
    return None


class AddressAllocator:
    """Allocates addresses for DNS names from a fixed set of pools.

    The random source is injectable so allocations can be reproduced.
    """

    def __init__(self, pools, rng=None, seed=None):
        self.pools = list(pools)
        self.rng = rng or random.Random(seed)

    def allocate(self, records, dns_name):
        """Return ``(address, records)`` for ``dns_name``.

        Existing records are returned as is. A fresh allocation returns an
        updated copy of ``records``; the input is never modified.
        """
        existing = records.address_for(dns_name)
        if existing:
            logger.debug(f"Record for {dns_name} found with an IP address {existing}")
            return existing, records

        reserved = None
        if records.dnsAddr:
            try:
                reserved = ipaddress.IPv4Address(records.dnsAddr)
            except ValueError:
                logger.warning(f"Ignoring unparsable DNS address {records.dnsAddr!r}")

        addr = unused_ipv4(self.pools, records, reserved, self.rng)
        if addr is None:
            raise AddressPoolExhaustedError(self.pools, dns_name)

        logger.info(f"Allocated {addr} for {dns_name}")
        return str(addr), records.with_record(dns_name, addr)
