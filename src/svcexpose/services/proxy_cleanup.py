"""Cleanup of the proxy StatefulSets created for exposed Services."""

import logging

import kubernetes
from kubernetes.client.exceptions import ApiException

from svcexpose.services.store import ProxyCleaner

logger = logging.getLogger(__name__)


def label_selector(labels):
    return ",".join(f"{k}={v}" for k, v in sorted(labels.items()))


class StatefulSetProxyCleaner(ProxyCleaner):
    """Deletes labelled proxy StatefulSets in the operator namespace."""

    def __init__(self, namespace, api_client=None):
        self.namespace = namespace
        self.apps = kubernetes.client.AppsV1Api(api_client)

    def cleanup(self, labels):
        selector = label_selector(labels)
        statefulsets = self.apps.list_namespaced_stateful_set(
            namespace=self.namespace, label_selector=selector
        )
        if not statefulsets.items:
            return True

        for sts in statefulsets.items:
            if sts.metadata.deletion_timestamp:
                logger.debug(f"StatefulSet {sts.metadata.name} is already being deleted")
                continue
            try:
                self.apps.delete_namespaced_stateful_set(
                    name=sts.metadata.name,
                    namespace=self.namespace,
                    propagation_policy="Foreground",
                )
                logger.info(f"Deleted proxy StatefulSet {self.namespace}/{sts.metadata.name}")
            except ApiException as e:
                if e.status != 404:
                    logger.error(f"Failed to delete StatefulSet {sts.metadata.name}: {e}")
                    raise

        # Done on a later pass, once the deletions have gone through.
        return False
