from datetime import datetime, timezone

import pytest

from svcexpose.config import OperatorConfig
from svcexpose.exceptions import RecordConflictError
from svcexpose.exposure import ServiceExposureRequest
from svcexpose.models.clusterconfig import ClusterConfigSpec, ServiceClass
from svcexpose.proxies import ManagedProxyRegistry
from svcexpose.reconciler import ServiceReconciler
from svcexpose.records import Records
from svcexpose.services.store import ProxyCleaner, ResourceStore

NOW = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)


class FakeStore(ResourceStore):
    """In-memory stand-in for the Kubernetes API."""

    def __init__(self):
        self.services = {}
        self.cluster_config = None
        self.records = Records()
        self.version = 1
        self.pending_conflicts = 0
        self.pending_read_conflicts = 0
        self.record_writes = 0
        self.condition_writes = 0

    def put(self, svc):
        self.services[(svc.namespace, svc.name)] = svc
        return svc

    def get(self, namespace, name):
        return self.services[(namespace, name)]

    def get_service(self, namespace, name):
        return self.services.get((namespace, name))

    def add_finalizer(self, svc, finalizer):
        current = self.get(svc.namespace, svc.name)
        if finalizer not in current.finalizers:
            self.put(current.model_copy(update={"finalizers": current.finalizers + [finalizer]}))

    def remove_finalizer(self, svc, finalizer):
        current = self.get(svc.namespace, svc.name)
        finalizers = [f for f in current.finalizers if f != finalizer]
        self.put(current.model_copy(update={"finalizers": finalizers}))

    def update_service_conditions(self, svc, conditions):
        current = self.get(svc.namespace, svc.name)
        self.put(current.model_copy(update={"conditions": list(conditions)}))
        self.condition_writes += 1

    def get_cluster_config(self):
        return self.cluster_config

    def read_records(self):
        if self.pending_read_conflicts:
            # Lost the race to create the ConfigMap.
            self.pending_read_conflicts -= 1
            raise RecordConflictError("ConfigMap servicerecords was created concurrently")
        return self.records, str(self.version)

    def write_records(self, records, version):
        if self.pending_conflicts:
            # Someone else wrote in between.
            self.pending_conflicts -= 1
            self.version += 1
            raise RecordConflictError("conflict")
        if version != str(self.version):
            raise RecordConflictError("stale version")
        self.records = records
        self.version += 1
        self.record_writes += 1


class FakeCleaner(ProxyCleaner):
    def __init__(self, done=True):
        self.done = done
        self.calls = []

    def cleanup(self, labels):
        self.calls.append(labels)
        return self.done


@pytest.fixture
def make_service():
    def _make(name="web", namespace="default", **kwargs):
        defaults = {
            "uid": f"uid-{namespace}-{name}",
            "service_type": "ClusterIP",
            "cluster_ip": "10.0.0.10",
            "generation": 1,
        }
        defaults.update(kwargs)
        return ServiceExposureRequest(name=name, namespace=namespace, **defaults)

    return _make


@pytest.fixture
def store():
    fake = FakeStore()
    fake.cluster_config = ClusterConfigSpec(
        domain=None,
        classes=[ServiceClass(name="default", cidrv4="100.100.0.0/24")],
    )
    return fake


@pytest.fixture
def cleaner():
    return FakeCleaner()


@pytest.fixture
def config():
    return OperatorConfig(
        namespace="tailscale",
        cluster_domain="cluster.local",
        allocation_seed=42,
        retry_delay=1,
    )


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def reconciler(store, cleaner, config, now):
    return ServiceReconciler(
        store=store,
        proxy_cleaner=cleaner,
        proxies=ManagedProxyRegistry(),
        config=config,
        clock=lambda: now,
    )
