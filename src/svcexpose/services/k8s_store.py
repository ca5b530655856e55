"""Kubernetes API backed resource store."""

import logging

import kubernetes
from kubernetes.client.exceptions import ApiException
from pydantic import ValidationError

from svcexpose.conditions import conditions_to_status
from svcexpose.exceptions import InvalidPoolError, RecordConflictError
from svcexpose.exposure import ServiceExposureRequest
from svcexpose.models.clusterconfig import (
    CLUSTERCONFIG_GROUP,
    CLUSTERCONFIG_PLURAL,
    CLUSTERCONFIG_VERSION,
    ClusterConfigSpec,
)
from svcexpose.records import records_from_configmap, records_to_binary_data, Records
from svcexpose.services.store import ResourceStore

logger = logging.getLogger(__name__)


class KubernetesResourceStore(ResourceStore):
    """Reads and writes Services, ClusterConfigs and the records ConfigMap."""

    def __init__(self, namespace, records_configmap="servicerecords", api_client=None):
        self.namespace = namespace
        self.records_configmap = records_configmap
        self.api_client = api_client or kubernetes.client.ApiClient()
        self.core = kubernetes.client.CoreV1Api(self.api_client)
        self.custom = kubernetes.client.CustomObjectsApi(self.api_client)

    def get_service(self, namespace, name):
        try:
            svc = self.core.read_namespaced_service(name=name, namespace=namespace)
        except ApiException as e:
            if e.status == 404:
                return None
            raise
        body = self.api_client.sanitize_for_serialization(svc)
        return ServiceExposureRequest.from_body(body)

    def _patch_finalizers(self, svc, finalizers):
        patch = []
        if svc.finalizers:
            # Fails with 422 if someone else changed the list meanwhile.
            patch.append(
                {"op": "test", "path": "/metadata/finalizers", "value": svc.finalizers}
            )
        patch.append({"op": "add", "path": "/metadata/finalizers", "value": finalizers})
        self.core.patch_namespaced_service(
            name=svc.name, namespace=svc.namespace, body=patch
        )

    def add_finalizer(self, svc, finalizer):
        if finalizer in svc.finalizers:
            return
        self._patch_finalizers(svc, svc.finalizers + [finalizer])
        logger.debug(f"Added finalizer {finalizer} to {svc.namespace}/{svc.name}")

    def remove_finalizer(self, svc, finalizer):
        if finalizer not in svc.finalizers:
            return
        self._patch_finalizers(svc, [f for f in svc.finalizers if f != finalizer])
        logger.debug(f"Removed finalizer {finalizer} from {svc.namespace}/{svc.name}")

    def update_service_conditions(self, svc, conditions):
        patch = [
            {
                "op": "add",
                "path": "/status/conditions",
                "value": conditions_to_status(conditions),
            }
        ]
        self.core.patch_namespaced_service_status(
            name=svc.name, namespace=svc.namespace, body=patch
        )

    def get_cluster_config(self):
        configs = self.custom.list_cluster_custom_object(
            group=CLUSTERCONFIG_GROUP,
            version=CLUSTERCONFIG_VERSION,
            plural=CLUSTERCONFIG_PLURAL,
        )
        items = configs.get("items", [])
        if not items:
            logger.info(f"Got {len(items)} ClusterConfigs")
            return None
        if len(items) > 1:
            logger.warning(
                f"Got {len(items)} ClusterConfigs, using {items[0]['metadata']['name']}"
            )
        try:
            return ClusterConfigSpec.model_validate(items[0].get("spec") or {})
        except ValidationError as e:
            raise InvalidPoolError(f"invalid ClusterConfig spec: {e}") from e

    def read_records(self):
        try:
            cm = self.core.read_namespaced_config_map(
                name=self.records_configmap, namespace=self.namespace
            )
        except ApiException as e:
            if e.status != 404:
                raise
            cm = self._create_records_configmap()
        return records_from_configmap(cm.binary_data), cm.metadata.resource_version

    def _create_records_configmap(self):
        body = kubernetes.client.V1ConfigMap(
            metadata=kubernetes.client.V1ObjectMeta(
                name=self.records_configmap,
                namespace=self.namespace,
                labels={"tailscale.com/managed": "true"},
            ),
            binary_data=records_to_binary_data(Records()),
        )
        try:
            cm = self.core.create_namespaced_config_map(namespace=self.namespace, body=body)
        except ApiException as e:
            if e.status == 409:
                raise RecordConflictError(
                    f"ConfigMap {self.records_configmap} was created concurrently"
                ) from e
            raise
        logger.info(f"Created ConfigMap {self.namespace}/{self.records_configmap}")
        return cm

    def write_records(self, records, version):
        # resourceVersion in the patch makes the API server reject stale writes.
        body = {
            "metadata": {"resourceVersion": version},
            "binaryData": records_to_binary_data(records),
        }
        try:
            self.core.patch_namespaced_config_map(
                name=self.records_configmap, namespace=self.namespace, body=body
            )
        except ApiException as e:
            if e.status == 409:
                raise RecordConflictError(
                    f"ConfigMap {self.records_configmap} changed since revision {version}"
                ) from e
            raise
