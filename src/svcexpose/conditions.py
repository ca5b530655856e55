"""Status condition bookkeeping for managed resources.

Conditions are keyed by type. ``lastTransitionTime`` only moves when the
status of a condition changes; reason, message and observed generation are
refreshed on every update.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import List, Optional

from svcexpose.crd.base import CRDCondition

logger = logging.getLogger(__name__)


class ConditionType(str, Enum):
    """Condition types written by the operator."""

    PROXY_READY = "TailscaleProxyReady"


class ConditionStatus(str, Enum):
    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


def _type_value(condition_type):
    return condition_type.value if isinstance(condition_type, Enum) else condition_type


def get_condition(conditions, condition_type) -> Optional[CRDCondition]:
    """Return the condition of the given type, or None."""
    wanted = _type_value(condition_type)
    for cond in conditions:
        if cond.type == wanted:
            return cond
    return None


def upsert_condition(
    conditions: List[CRDCondition],
    condition_type,
    status,
    reason: str,
    message: str,
    observed_generation: int,
    now: datetime,
    logger=None,
) -> List[CRDCondition]:
    """Ensure ``conditions`` holds a condition with the given attributes.

    Returns a new list; the input list and its entries are left untouched.
    """
    log = logger or logging.getLogger(__name__)
    cond_type = _type_value(condition_type)
    status = _type_value(status)

    new_condition = CRDCondition(
        type=cond_type,
        status=status,
        reason=reason,
        message=message,
        observedGeneration=observed_generation,
        lastTransitionTime=now,
    )

    updated = []
    found = False
    for cond in conditions:
        if cond.type != cond_type:
            updated.append(cond)
            continue
        found = True
        if cond.status == status:
            new_condition.lastTransitionTime = cond.lastTransitionTime
        else:
            log.info(
                f"Status change for condition {cond_type} from {cond.status} to {status}"
            )
        updated.append(new_condition)

    if not found:
        updated.append(new_condition)
    return updated


def remove_condition(conditions, condition_type) -> List[CRDCondition]:
    """Return ``conditions`` without the condition of the given type."""
    cond_type = _type_value(condition_type)
    return [cond for cond in conditions if cond.type != cond_type]


def is_ready(conditions, condition_type, generation: int) -> bool:
    """Report whether the condition is True and observed at ``generation``."""
    cond = get_condition(conditions, condition_type)
    if cond is None:
        return False
    return (
        cond.status == ConditionStatus.TRUE.value
        and cond.observedGeneration == generation
    )


def conditions_from_status(status) -> List[CRDCondition]:
    """Parse the ``conditions`` list of a raw status dict."""
    raw = (status or {}).get("conditions") or []
    return [CRDCondition.model_validate(c) for c in raw]


def conditions_to_status(conditions) -> List[dict]:
    """Serialise conditions into the form stored on the API object."""
    return [c.model_dump(mode="json", exclude_none=True) for c in conditions]
