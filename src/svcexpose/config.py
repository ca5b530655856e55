"""Operator configuration read from the environment."""

import os
from typing import Optional

from pydantic import BaseModel, Field

from svcexpose.cluster_domain import RESOLV_CONF_PATH


def _env_bool(name, default="false"):
    return os.getenv(name, default).lower() in ("true", "1", "yes")


def _env_int(name):
    value = os.getenv(name)
    return int(value) if value else None


class OperatorConfig(BaseModel):
    """Settings for the service reconciler."""

    namespace: str = Field(
        default="tailscale", description="Namespace the operator and its proxies run in"
    )
    is_default_load_balancer: bool = Field(
        default=False,
        description="Handle LoadBalancer Services that have no loadBalancerClass",
    )
    resolv_conf_path: str = RESOLV_CONF_PATH
    cluster_domain: Optional[str] = Field(
        default=None, description="Cluster domain; inferred from resolv.conf if unset"
    )
    records_configmap: str = "servicerecords"
    allocation_retries: int = Field(default=3, ge=1)
    allocation_seed: Optional[int] = None
    retry_delay: int = Field(default=10, ge=1)

    @classmethod
    def from_env(cls):
        return cls(
            namespace=os.getenv("OPERATOR_NAMESPACE", "tailscale"),
            is_default_load_balancer=_env_bool("IS_DEFAULT_LOADBALANCER"),
            resolv_conf_path=os.getenv("RESOLV_CONF_PATH", RESOLV_CONF_PATH),
            cluster_domain=os.getenv("CLUSTER_DOMAIN") or None,
            records_configmap=os.getenv("SERVICE_RECORDS_CONFIGMAP", "servicerecords"),
            allocation_retries=int(os.getenv("ALLOCATION_RETRIES", "3")),
            allocation_seed=_env_int("ALLOCATION_SEED"),
            retry_delay=int(os.getenv("RETRY_DELAY", "10")),
        )
