"""ClusterConfig CRD model."""

from pydantic import Field
from typing import List, Optional

from svcexpose.allocator import parse_pools
from svcexpose.crd.base import CRDSpec
from svcexpose.crd.registry import CRDRegistry
from svcexpose.exceptions import InvalidPoolError

CLUSTERCONFIG_GROUP = "tailscale.com"
CLUSTERCONFIG_VERSION = "v1alpha1"
CLUSTERCONFIG_PLURAL = "clusterconfigs"
DEFAULT_CLASS = "default"


class ServiceClass(CRDSpec):
    """A named set of address pools services can be allocated from."""

    name: str = Field(..., description="Name of the class")
    cidrv4: str = Field(
        ..., description="Comma separated list of masked IPv4 prefixes"
    )


@CRDRegistry.register(
    CLUSTERCONFIG_GROUP,
    CLUSTERCONFIG_VERSION,
    "ClusterConfig",
    CLUSTERCONFIG_PLURAL,
    scope="Cluster",
)
class ClusterConfigSpec(CRDSpec):
    """ClusterConfig CRD specification."""

    domain: Optional[str] = Field(
        default=None,
        description="DNS domain for service records (defaults to the cluster domain)",
    )
    classes: List[ServiceClass] = Field(
        default_factory=list, description="Address classes available to services"
    )

    def class_named(self, name):
        return next((c for c in self.classes if c.name == name), None)

    def default_pools(self):
        """Return the CIDR pools of the default class."""
        default_class = self.class_named(DEFAULT_CLASS)
        if default_class is None:
            raise InvalidPoolError(
                f"ClusterConfig has no {DEFAULT_CLASS!r} class to allocate addresses from"
            )
        return parse_pools(default_class.cidrv4)
