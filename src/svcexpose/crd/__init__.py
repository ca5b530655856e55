"""CRD management system for the svcexpose operator."""

from .registry import CRDRegistry
from .base import CRDCondition, CRDSpec

__all__ = ["CRDRegistry", "CRDCondition", "CRDSpec"]
