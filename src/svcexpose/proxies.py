"""Registry of the proxies the operator currently manages.

Only used to report how many ingress and egress proxies exist. Handlers run
concurrently for different Services, so every update goes through one lock.
"""

import logging
import threading

logger = logging.getLogger(__name__)

GAUGE_INGRESS_PROXIES = "k8s_ingress_proxies"
GAUGE_EGRESS_PROXIES = "k8s_egress_proxies"


class ManagedProxyRegistry:
    """Sets of ingress and egress proxy owners, keyed by Service UID."""

    def __init__(self):
        self._lock = threading.Lock()
        self._ingress = set()
        self._egress = set()
        self._gauges = {GAUGE_INGRESS_PROXIES: 0, GAUGE_EGRESS_PROXIES: 0}

    def _publish(self):
        self._gauges[GAUGE_INGRESS_PROXIES] = len(self._ingress)
        self._gauges[GAUGE_EGRESS_PROXIES] = len(self._egress)
        logger.debug(
            f"{GAUGE_INGRESS_PROXIES}={len(self._ingress)} "
            f"{GAUGE_EGRESS_PROXIES}={len(self._egress)}"
        )

    def add_ingress(self, uid):
        with self._lock:
            self._ingress.add(uid)
            self._publish()

    def add_egress(self, uid):
        """Record an egress proxy owner.

        This operator does not provision egress proxies, so nothing calls
        this yet and the egress gauge stays at zero.
        """
        with self._lock:
            self._egress.add(uid)
            self._publish()

    def remove(self, uid):
        """Forget ``uid`` as both an ingress and an egress proxy owner."""
        with self._lock:
            self._ingress.discard(uid)
            self._egress.discard(uid)
            self._publish()

    def counts(self):
        """Return the last published gauge values."""
        with self._lock:
            return dict(self._gauges)
