"""Base classes for CRD specifications and status conditions."""

from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime


class CRDCondition(BaseModel):
    """Kubernetes metav1.Condition."""

    type: str
    status: str  # True, False, Unknown
    reason: str
    message: str = ""
    observedGeneration: Optional[int] = None
    lastTransitionTime: Optional[datetime] = None

    model_config = ConfigDict(extra="ignore")


class CRDSpec(BaseModel):
    """Base class for all CRD spec objects."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)
