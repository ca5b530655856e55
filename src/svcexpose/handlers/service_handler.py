"""Kopf handlers for Services exposed on the tailnet."""

import logging

import kopf
from kubernetes.client.exceptions import ApiException

from svcexpose.exceptions import SvcExposeError

logger = logging.getLogger(__name__)


def reconcile_service(reconciler, namespace, name):
    """Reconcile a Service once and translate the outcome for kopf.

    Raises:
        kopf.PermanentError: configuration problems that retries will not fix
        kopf.TemporaryError: transient failures and pending proxy cleanups;
            kopf calls the handler again after ``retry_delay`` seconds
    """
    delay = reconciler.config.retry_delay
    try:
        result = reconciler.reconcile(namespace, name)
    except SvcExposeError as e:
        if e.permanent:
            raise kopf.PermanentError(str(e)) from e
        raise kopf.TemporaryError(str(e), delay=delay) from e
    except ApiException as e:
        raise kopf.TemporaryError(f"API error {e.status}: {e.reason}", delay=delay) from e

    if result["status"] == "cleanup_pending":
        raise kopf.TemporaryError(
            "cleanup of proxy resources is still in progress", delay=delay
        )
    return result


def post_result_event(body, result):
    """Post a Kubernetes event describing the reconcile outcome."""
    status = result["status"]
    if status == "exposed":
        kopf.info(
            body,
            reason="ServiceExposed",
            message=f"Service exposed as {result['dns_name']} ({result['address']})",
        )
    elif status == "cleaned_up":
        kopf.info(body, reason="ServiceUnexposed", message="Service removed from tailnet")
    elif status == "invalid":
        kopf.warn(
            body,
            reason="InvalidServiceConfig",
            message="; ".join(result["violations"]),
        )


def handle_service(body, namespace, name, memo):
    try:
        result = reconcile_service(memo.reconciler, namespace, name)
    except kopf.PermanentError as e:
        kopf.exception(body, reason="ServiceExposeFailed", message=str(e))
        raise
    except kopf.TemporaryError as e:
        logger.info(f"Reconcile of {namespace}/{name} not complete: {e}")
        raise

    post_result_event(body, result)
    logger.debug(f"Reconciled service {namespace}/{name}: {result['status']}")


@kopf.on.resume("v1", "services")
@kopf.on.create("v1", "services")
@kopf.on.update("v1", "services")
def service_changed(body, name, namespace, memo, **kwargs):
    """Expose or unexpose a Service whenever it is created or changed."""
    handle_service(body, namespace, name, memo)


# Optional: the tailscale.com/finalizer added on provisioning holds the
# Service, so no kopf finalizer is needed to see its deletion.
@kopf.on.delete("v1", "services", optional=True)
def service_deleted(body, name, namespace, memo, **kwargs):
    """Clean up the proxies of a deleted Service before its finalizer goes."""
    handle_service(body, namespace, name, memo)
