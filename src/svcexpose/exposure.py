"""Classification of Services that should be exposed on the tailnet."""

import re
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from svcexpose.conditions import conditions_from_status
from svcexpose.crd.base import CRDCondition

FINALIZER_NAME = "tailscale.com/finalizer"
LOAD_BALANCER_CLASS = "tailscale"

SERVICE_TYPE_LOAD_BALANCER = "LoadBalancer"
SERVICE_TYPE_EXTERNAL_NAME = "ExternalName"
CLUSTER_IP_NONE = "None"

_MAGIC_DNS_NAME = re.compile(r"^([a-zA-Z0-9-]+\.)+ts\.net\.?$")


class Annotation(str, Enum):
    """Service annotations consumed by the operator."""

    EXPOSE = "tailscale.com/expose"
    TAILNET_TARGET_IP = "tailscale.com/tailnet-ip"
    # Deprecated, use TAILNET_TARGET_IP.
    TAILNET_TARGET_IP_LEGACY = "tailscale.com/ts-tailnet-target-ip"
    TAILNET_TARGET_FQDN = "tailscale.com/tailnet-fqdn"
    SERVICE_DNS_NAME = "tailscale.com/service-dns-name"


class ServiceExposureRequest(BaseModel):
    """Read-only view of the Service fields the operator looks at."""

    name: str
    namespace: str
    uid: str = ""
    service_type: str = "ClusterIP"
    cluster_ip: str = ""
    external_name: str = ""
    load_balancer_class: Optional[str] = None
    annotations: Dict[str, str] = Field(default_factory=dict)
    deletion_timestamp: Optional[str] = None
    finalizers: List[str] = Field(default_factory=list)
    generation: int = 0
    conditions: List[CRDCondition] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_body(cls, body):
        """Build a request from a raw Service object (kopf body or API dict)."""
        meta = body.get("metadata") or {}
        spec = body.get("spec") or {}
        return cls(
            name=meta["name"],
            namespace=meta.get("namespace", ""),
            uid=meta.get("uid") or "",
            service_type=spec.get("type") or "ClusterIP",
            cluster_ip=spec.get("clusterIP") or "",
            external_name=spec.get("externalName") or "",
            load_balancer_class=spec.get("loadBalancerClass"),
            annotations=dict(meta.get("annotations") or {}),
            deletion_timestamp=meta.get("deletionTimestamp"),
            finalizers=list(meta.get("finalizers") or []),
            generation=meta.get("generation") or 0,
            conditions=conditions_from_status(body.get("status")),
        )

    def annotation(self, key: Annotation) -> str:
        """Return the value of a known annotation, or an empty string."""
        return self.annotations.get(key.value, "")

    @property
    def is_deleting(self):
        return bool(self.deletion_timestamp)

    @property
    def has_finalizer(self):
        return FINALIZER_NAME in self.finalizers


class ExposureDecision(BaseModel):
    must_cleanup: bool
    must_provision: bool
    violations: List[str] = Field(default_factory=list)


def has_expose_annotation(svc):
    """Report whether the Service has tailscale.com/expose set to "true"."""
    return svc is not None and svc.annotation(Annotation.EXPOSE) == "true"


def tailnet_target_annotation(svc):
    """Return the tailnet target IP annotation value.

    The current annotation takes precedence over the deprecated one. If
    neither is set, an empty string is returned.
    """
    if svc is None:
        return ""
    ip = svc.annotation(Annotation.TAILNET_TARGET_IP)
    if ip:
        return ip
    return svc.annotation(Annotation.TAILNET_TARGET_IP_LEGACY)


def is_tailscale_load_balancer_service(svc, is_default_load_balancer):
    if svc is None or svc.service_type != SERVICE_TYPE_LOAD_BALANCER:
        return False
    if svc.load_balancer_class is None:
        return is_default_load_balancer
    return svc.load_balancer_class == LOAD_BALANCER_CLASS


def should_expose_cluster_ip(svc, is_default_load_balancer):
    if not svc.cluster_ip or svc.cluster_ip == CLUSTER_IP_NONE:
        return False
    return is_tailscale_load_balancer_service(
        svc, is_default_load_balancer
    ) or has_expose_annotation(svc)


def should_expose_dns_name(svc):
    return (
        has_expose_annotation(svc)
        and svc.service_type == SERVICE_TYPE_EXTERNAL_NAME
        and bool(svc.external_name)
    )


def should_expose(svc, is_default_load_balancer=False):
    return should_expose_cluster_ip(
        svc, is_default_load_balancer
    ) or should_expose_dns_name(svc)


def is_magic_dns_name(name):
    return bool(_MAGIC_DNS_NAME.match(name))


def validate_service(svc):
    """Return human readable annotation violations for ``svc``."""
    violations = []
    target_ip = svc.annotation(Annotation.TAILNET_TARGET_IP)
    target_fqdn = svc.annotation(Annotation.TAILNET_TARGET_FQDN)
    if target_fqdn and target_ip:
        violations.append(
            f"only one of annotations {Annotation.TAILNET_TARGET_IP.value} and "
            f"{Annotation.TAILNET_TARGET_FQDN.value} can be set"
        )
    if target_fqdn and not is_magic_dns_name(target_fqdn):
        violations.append(
            f"invalid value of annotation {Annotation.TAILNET_TARGET_FQDN.value}: "
            f"{target_fqdn!r} does not appear to be a valid MagicDNS name"
        )
    return violations


def classify(svc, is_default_load_balancer=False):
    """Decide whether ``svc`` must be cleaned up or provisioned."""
    exposed = should_expose(svc, is_default_load_balancer)
    target_ip = tailnet_target_annotation(svc)
    target_fqdn = svc.annotation(Annotation.TAILNET_TARGET_FQDN)

    must_cleanup = svc.is_deleting or (not exposed and not target_ip and not target_fqdn)
    return ExposureDecision(
        must_cleanup=must_cleanup,
        must_provision=not must_cleanup and exposed,
        violations=validate_service(svc),
    )


def dns_name_for_svc(svc, cluster_domain):
    """Return the synthetic DNS name for ``svc`` under ``cluster_domain``."""
    stem = svc.annotation(Annotation.SERVICE_DNS_NAME)
    if stem:
        return f"{stem}.{cluster_domain}"
    return f"{svc.name}-{svc.namespace}.{cluster_domain}"


def child_resource_labels(name, namespace, parent_type):
    """Labels identifying resources created on behalf of a parent object.

    Kubernetes does not allow cross-namespace owner references, so proxy
    resources are tracked with labels instead.
    """
    return {
        "tailscale.com/managed": "true",
        "tailscale.com/parent-resource": name,
        "tailscale.com/parent-resource-ns": namespace,
        "tailscale.com/parent-resource-type": parent_type,
    }
