from types import SimpleNamespace
from unittest import mock

import kopf
import pytest
from kubernetes.client.exceptions import ApiException

from svcexpose.exceptions import AddressPoolExhaustedError, TransientStoreError
from svcexpose.exposure import FINALIZER_NAME, Annotation
from svcexpose.handlers import service_handler
from svcexpose.handlers.service_handler import reconcile_service


class ScriptedReconciler:
    """Returns or raises the scripted outcomes in order."""

    def __init__(self, config, outcomes):
        self.config = config
        self.outcomes = list(outcomes)
        self.calls = 0

    def reconcile(self, namespace, name):
        self.calls += 1
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def test_returns_settled_result(config):
    reconciler = ScriptedReconciler(config, [{"status": "exposed"}])
    assert reconcile_service(reconciler, "default", "web") == {"status": "exposed"}
    assert reconciler.calls == 1


def test_pending_cleanup_is_retried_by_kopf(config):
    reconciler = ScriptedReconciler(config, [{"status": "cleanup_pending"}])

    with pytest.raises(kopf.TemporaryError) as excinfo:
        reconcile_service(reconciler, "default", "web")

    assert excinfo.value.delay == config.retry_delay
    assert reconciler.calls == 1


@pytest.mark.parametrize(
    "error",
    [TransientStoreError("conflict"), ApiException(status=500, reason="boom")],
)
def test_transient_errors_are_retried_by_kopf(config, error):
    reconciler = ScriptedReconciler(config, [error])

    with pytest.raises(kopf.TemporaryError) as excinfo:
        reconcile_service(reconciler, "default", "web")

    assert excinfo.value.delay == config.retry_delay


def test_permanent_error_is_not_retried(config):
    reconciler = ScriptedReconciler(
        config, [AddressPoolExhaustedError(["10.0.0.0/32"], "web-default.cluster.local")]
    )
    with pytest.raises(kopf.PermanentError):
        reconcile_service(reconciler, "default", "web")
    assert reconciler.calls == 1


def test_deleted_service_keeps_finalizer_until_cleanup_done(
    reconciler, store, make_service, cleaner
):
    store.put(make_service(annotations={Annotation.EXPOSE.value: "true"}))
    reconciler.reconcile("default", "web")
    svc = store.get("default", "web")
    store.put(svc.model_copy(update={"deletion_timestamp": "2026-10-19T12:00:00Z"}))
    memo = SimpleNamespace(reconciler=reconciler)
    body = {"metadata": {"name": "web", "namespace": "default"}}

    cleaner.done = False
    with mock.patch.object(kopf, "info"):
        for _ in range(3):
            with pytest.raises(kopf.TemporaryError):
                service_handler.service_deleted(
                    body=body, name="web", namespace="default", memo=memo
                )
            assert FINALIZER_NAME in store.get("default", "web").finalizers

        cleaner.done = True
        service_handler.service_deleted(
            body=body, name="web", namespace="default", memo=memo
        )

    assert store.get("default", "web").finalizers == []
