"""Exceptions raised by the service exposure operator."""


class SvcExposeError(Exception):
    """Base class for operator errors."""

    # Permanent errors will not succeed on retry without a configuration change.
    permanent = False


class InvalidPoolError(SvcExposeError):
    """A CIDR pool is malformed, unmasked or missing."""

    permanent = True


class AddressPoolExhaustedError(SvcExposeError):
    """No free address is left in any of the configured pools."""

    permanent = True

    def __init__(self, pools, dns_name):
        self.pools = list(pools)
        self.dns_name = dns_name
        pool_list = ", ".join(str(p) for p in self.pools) or "<none>"
        super().__init__(
            f"no free address for {dns_name} in pools [{pool_list}]"
        )


class RecordConflictError(SvcExposeError):
    """A conditional write of the service records lost an update race."""


class TransientStoreError(SvcExposeError):
    """The record store could not be read or written; retry later."""
