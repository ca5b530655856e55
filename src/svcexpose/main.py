import kopf
import logging
import kubernetes
import os

from svcexpose.config import OperatorConfig
from svcexpose.crd.generator import CRDManager
from svcexpose.proxies import ManagedProxyRegistry
from svcexpose.reconciler import ServiceReconciler
from svcexpose.services.k8s_store import KubernetesResourceStore
from svcexpose.services.proxy_cleanup import StatefulSetProxyCleaner

# Registers the kopf handlers
from svcexpose.handlers import service_handler  # noqa: F401

logging.basicConfig(
    level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def load_kube_config():
    try:
        kubernetes.config.load_incluster_config()
        logger.info("Loaded in-cluster Kubernetes config")
    except kubernetes.config.ConfigException:
        kubernetes.config.load_kube_config()
        logger.info("Loaded local Kubernetes config")


def build_reconciler(config):
    """Wire the service reconciler to the Kubernetes API."""
    api_client = kubernetes.client.ApiClient()
    return ServiceReconciler(
        store=KubernetesResourceStore(
            config.namespace, config.records_configmap, api_client=api_client
        ),
        proxy_cleaner=StatefulSetProxyCleaner(config.namespace, api_client=api_client),
        proxies=ManagedProxyRegistry(),
        config=config,
    )


@kopf.on.startup()
def startup_fn(settings: kopf.OperatorSettings, memo: kopf.Memo, **kwargs):
    """Configure the operator and its service reconciler."""
    logger.info("Service exposure operator is starting up...")

    load_kube_config()

    if should_manage_crds():
        try:
            applied = CRDManager().apply_crds_to_cluster()
            logger.info(f"Applied {applied} CRDs to cluster")
        except Exception as e:
            logger.error(f"Failed to apply CRDs to cluster: {e}")

    config = OperatorConfig.from_env()
    memo.reconciler = build_reconciler(config)

    settings.batching.worker_limit = int(os.getenv("WORKER_LIMIT", "5"))
    settings.posting.enabled = os.getenv("POSTING_ENABLED", "true").lower() == "true"
    settings.watching.server_timeout = int(os.getenv("SERVER_TIMEOUT", "60"))

    logger.info(f"Operator namespace: {config.namespace}")
    logger.info(f"Default load balancer: {config.is_default_load_balancer}")
    logger.info(f"Cluster domain: {memo.reconciler.cluster_domain}")
    logger.info(f"Worker limit: {settings.batching.worker_limit}")
    logger.info("Service exposure operator startup complete")


@kopf.on.cleanup()
def cleanup_fn(memo: kopf.Memo, **kwargs):
    """Log the final proxy counts on shutdown."""
    logger.info("Service exposure operator is shutting down...")
    reconciler = getattr(memo, "reconciler", None)
    if reconciler is not None:
        logger.info(f"Managed proxies at shutdown: {reconciler.proxies.counts()}")
    logger.info("Service exposure operator shutdown complete")


def should_manage_crds() -> bool:
    """Determine if operator should manage CRDs directly."""
    return os.getenv("MANAGE_CRDS", "true").lower() == "true"


def main():
    try:
        kopf.run(clusterwide=True)
    except KeyboardInterrupt:
        logger.info("Operator stopped by user")
    except Exception as e:
        logger.error(f"Operator failed: {e}")
        raise


if __name__ == "__main__":
    main()
