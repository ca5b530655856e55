"""Reconciliation of Services that should be reachable over the tailnet."""

import logging
import random
from datetime import datetime, timezone

from svcexpose.allocator import AddressAllocator
from svcexpose.cluster_domain import retrieve_cluster_domain
from svcexpose.conditions import (
    ConditionStatus,
    ConditionType,
    get_condition,
    remove_condition,
    upsert_condition,
)
from svcexpose.exceptions import (
    AddressPoolExhaustedError,
    RecordConflictError,
    TransientStoreError,
)
from svcexpose.exposure import (
    FINALIZER_NAME,
    child_resource_labels,
    classify,
    dns_name_for_svc,
)

logger = logging.getLogger(__name__)

REASON_INVALID_CONFIG = "InvalidServiceConfig"
REASON_RECORD_CREATED = "ServiceRecordCreated"
REASON_POOL_EXHAUSTED = "AddressPoolExhausted"


def _utcnow():
    return datetime.now(timezone.utc).replace(microsecond=0)


class ServiceReconciler:
    """Drives a Service towards being exposed on, or removed from, the tailnet.

    Args:
        store: ResourceStore used to read and write API objects
        proxy_cleaner: ProxyCleaner that removes proxies of unexposed Services
        proxies: ManagedProxyRegistry updated with the Services being managed
        config: OperatorConfig
        allocator_rng: random source for address allocation (seeded from config if unset)
        clock: callable returning the current time for condition timestamps
    """

    def __init__(
        self, store, proxy_cleaner, proxies, config, allocator_rng=None, clock=None
    ):
        self.store = store
        self.proxy_cleaner = proxy_cleaner
        self.proxies = proxies
        self.config = config
        self.rng = allocator_rng or random.Random(config.allocation_seed)
        self.clock = clock or _utcnow
        self._cluster_domain = config.cluster_domain

    @property
    def cluster_domain(self):
        if self._cluster_domain is None:
            self._cluster_domain = retrieve_cluster_domain(
                self.config.namespace, self.config.resolv_conf_path
            )
        return self._cluster_domain

    def reconcile(self, namespace, name):
        """Evaluate one Service and take the actions needed for its state."""
        logger.debug(f"Starting reconcile of service {namespace}/{name}")
        svc = self.store.get_service(namespace, name)
        if svc is None:
            # Deleted after the reconcile was requested.
            logger.debug(f"Service {namespace}/{name} not found, assuming it was deleted")
            return {"status": "not_found"}

        decision = classify(svc, self.config.is_default_load_balancer)
        if decision.must_cleanup:
            logger.debug(
                f"Service {namespace}/{name} is being deleted or no longer refers to "
                "tailnet ingress/egress, ensuring created resources are cleaned up"
            )
            return self.maybe_cleanup(svc)
        return self.maybe_provision(svc, decision)

    def maybe_cleanup(self, svc):
        """Remove everything created for ``svc``, then drop its finalizer."""
        if not svc.has_finalizer:
            logger.debug(f"No finalizer on {svc.namespace}/{svc.name}, nothing to clean up")
            # Left behind when an invalid Service is fixed or unexposed.
            self._drop_proxy_ready(svc)
            self.proxies.remove(svc.uid)
            return {"status": "unmanaged"}

        labels = child_resource_labels(svc.name, svc.namespace, "svc")
        if not self.proxy_cleaner.cleanup(labels):
            logger.debug(f"Cleanup of {svc.namespace}/{svc.name} not done yet")
            return {"status": "cleanup_pending"}

        self._drop_proxy_ready(svc)
        self.store.remove_finalizer(svc, FINALIZER_NAME)

        # Logged once: without the finalizer later reconciles exit early.
        logger.info(f"Unexposed service {svc.namespace}/{svc.name} from tailnet")
        self.proxies.remove(svc.uid)
        return {"status": "cleaned_up"}

    def maybe_provision(self, svc, decision):
        """Ensure ``svc`` has a service record, taking any actions needed."""
        if decision.violations:
            message = "; ".join(decision.violations)
            logger.warning(f"Service {svc.namespace}/{svc.name} is invalid: {message}")
            self._set_proxy_ready(svc, ConditionStatus.FALSE, REASON_INVALID_CONFIG, message)
            return {"status": "invalid", "violations": decision.violations}

        # Only ingress Services get records; egress is handled elsewhere.
        if not decision.must_provision:
            return {"status": "skipped"}

        cluster_config = self.store.get_cluster_config()
        if cluster_config is None:
            logger.info("No ClusterConfig found, not provisioning service records")
            return {"status": "skipped"}

        self.store.add_finalizer(svc, FINALIZER_NAME)

        domain = cluster_config.domain or self.cluster_domain
        dns_name = dns_name_for_svc(svc, domain)
        allocator = AddressAllocator(cluster_config.default_pools(), rng=self.rng)

        try:
            address = self.commit_record(allocator, dns_name)
        except AddressPoolExhaustedError as e:
            self._set_proxy_ready(svc, ConditionStatus.FALSE, REASON_POOL_EXHAUSTED, str(e))
            raise

        self._set_proxy_ready(
            svc,
            ConditionStatus.TRUE,
            REASON_RECORD_CREATED,
            f"{dns_name} resolves to {address}",
        )
        self.proxies.add_ingress(svc.uid)
        logger.info(f"Service {svc.namespace}/{svc.name} exposed as {dns_name} ({address})")
        return {"status": "exposed", "dns_name": dns_name, "address": address}

    def commit_record(self, allocator, dns_name):
        """Allocate and persist an address for ``dns_name``.

        The records are re-read and the allocation redone whenever the
        conditional write loses a race with another reconcile.
        """
        retries = self.config.allocation_retries
        for attempt in range(1, retries + 1):
            try:
                records, version = self.store.read_records()
                address, updated = allocator.allocate(records, dns_name)
                if updated is records:
                    return address
                self.store.write_records(updated, version)
                return address
            except RecordConflictError as e:
                logger.info(
                    f"Conflict writing service records (attempt {attempt}/{retries}): {e}"
                )

        raise TransientStoreError(
            f"could not persist record for {dns_name} after {retries} attempts"
        )

    def _drop_proxy_ready(self, svc):
        if get_condition(svc.conditions, ConditionType.PROXY_READY):
            self.store.update_service_conditions(
                svc, remove_condition(svc.conditions, ConditionType.PROXY_READY)
            )

    def _set_proxy_ready(self, svc, status, reason, message):
        conditions = upsert_condition(
            svc.conditions,
            ConditionType.PROXY_READY,
            status,
            reason,
            message,
            svc.generation,
            self.clock(),
            logger=logger,
        )
        if conditions != svc.conditions:
            self.store.update_service_conditions(svc, conditions)
