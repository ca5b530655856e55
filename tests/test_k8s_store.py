from unittest import mock

import kubernetes
import pytest
from kubernetes.client.exceptions import ApiException

from svcexpose.exceptions import RecordConflictError
from svcexpose.exposure import FINALIZER_NAME
from svcexpose.records import Records, records_to_binary_data
from svcexpose.services.k8s_store import KubernetesResourceStore
from svcexpose.services.proxy_cleanup import StatefulSetProxyCleaner, label_selector


@pytest.fixture
def k8s_store():
    store = KubernetesResourceStore("tailscale", api_client=kubernetes.client.ApiClient())
    store.core = mock.MagicMock()
    store.custom = mock.MagicMock()
    return store


def _service():
    return kubernetes.client.V1Service(
        metadata=kubernetes.client.V1ObjectMeta(
            name="web",
            namespace="default",
            uid="abc",
            generation=2,
            annotations={"tailscale.com/expose": "true"},
        ),
        spec=kubernetes.client.V1ServiceSpec(type="ClusterIP", cluster_ip="10.0.0.1"),
    )


def test_get_service(k8s_store):
    k8s_store.core.read_namespaced_service.return_value = _service()

    svc = k8s_store.get_service("default", "web")

    assert svc.uid == "abc"
    assert svc.cluster_ip == "10.0.0.1"
    assert svc.annotations == {"tailscale.com/expose": "true"}


def test_get_missing_service(k8s_store):
    k8s_store.core.read_namespaced_service.side_effect = ApiException(status=404)
    assert k8s_store.get_service("default", "web") is None


def test_get_service_propagates_other_errors(k8s_store):
    k8s_store.core.read_namespaced_service.side_effect = ApiException(status=500)
    with pytest.raises(ApiException):
        k8s_store.get_service("default", "web")


def test_add_finalizer_patches_list(k8s_store, make_service):
    svc = make_service(finalizers=["other"])

    k8s_store.add_finalizer(svc, FINALIZER_NAME)

    patch = k8s_store.core.patch_namespaced_service.call_args.kwargs["body"]
    assert patch[0] == {"op": "test", "path": "/metadata/finalizers", "value": ["other"]}
    assert patch[1]["value"] == ["other", FINALIZER_NAME]


def test_remove_finalizer_noop_when_absent(k8s_store, make_service):
    k8s_store.remove_finalizer(make_service(), FINALIZER_NAME)
    k8s_store.core.patch_namespaced_service.assert_not_called()


def test_read_records_creates_missing_configmap(k8s_store):
    k8s_store.core.read_namespaced_config_map.side_effect = ApiException(status=404)
    created = kubernetes.client.V1ConfigMap(
        metadata=kubernetes.client.V1ObjectMeta(resource_version="7"),
        binary_data=records_to_binary_data(Records()),
    )
    k8s_store.core.create_namespaced_config_map.return_value = created

    records, version = k8s_store.read_records()

    assert records == Records()
    assert version == "7"


def test_write_records_is_conditional(k8s_store):
    k8s_store.write_records(Records(), "12")

    body = k8s_store.core.patch_namespaced_config_map.call_args.kwargs["body"]
    assert body["metadata"] == {"resourceVersion": "12"}
    assert "servicerecords.json" in body["binaryData"]


def test_write_records_conflict(k8s_store):
    k8s_store.core.patch_namespaced_config_map.side_effect = ApiException(status=409)
    with pytest.raises(RecordConflictError):
        k8s_store.write_records(Records(), "12")


def test_get_cluster_config(k8s_store):
    k8s_store.custom.list_cluster_custom_object.return_value = {
        "items": [
            {
                "metadata": {"name": "main"},
                "spec": {
                    "domain": "ts.example",
                    "classes": [{"name": "default", "cidrv4": "100.100.0.0/24"}],
                },
            }
        ]
    }

    cc = k8s_store.get_cluster_config()

    assert cc.domain == "ts.example"
    assert [str(p) for p in cc.default_pools()] == ["100.100.0.0/24"]


def test_get_cluster_config_none(k8s_store):
    k8s_store.custom.list_cluster_custom_object.return_value = {"items": []}
    assert k8s_store.get_cluster_config() is None


def test_proxy_cleaner_deletes_then_reports_done():
    cleaner = StatefulSetProxyCleaner("tailscale", api_client=kubernetes.client.ApiClient())
    cleaner.apps = mock.MagicMock()
    sts = kubernetes.client.V1StatefulSet(
        metadata=kubernetes.client.V1ObjectMeta(name="ts-web-abc")
    )
    cleaner.apps.list_namespaced_stateful_set.return_value = mock.Mock(items=[sts])

    assert cleaner.cleanup({"b": "2", "a": "1"}) is False
    cleaner.apps.delete_namespaced_stateful_set.assert_called_once()
    assert (
        cleaner.apps.list_namespaced_stateful_set.call_args.kwargs["label_selector"]
        == "a=1,b=2"
    )

    cleaner.apps.list_namespaced_stateful_set.return_value = mock.Mock(items=[])
    assert cleaner.cleanup({"a": "1"}) is True


def test_label_selector():
    assert label_selector({"x": "y"}) == "x=y"
