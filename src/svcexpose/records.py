"""Service records: the persisted DNS name to address mapping.

The records document is shared by every service the operator exposes. It is
stored as JSON under a single ``binaryData`` key of a ConfigMap in the
operator namespace.
"""

import base64
import json
import logging
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError

from svcexpose.exceptions import TransientStoreError

logger = logging.getLogger(__name__)

ALPHA1_VERSION = "v1alpha1"
RECORDS_KEY = "servicerecords.json"


class Records(BaseModel):
    """Address records shared between the operator and its proxies."""

    version: str = ALPHA1_VERSION
    ip4: Dict[str, List[str]] = Field(default_factory=dict)
    addrsToDomain: Dict[str, str] = Field(default_factory=dict)
    dnsAddr: Optional[str] = None

    def address_for(self, dns_name):
        """Return the first address recorded for ``dns_name``, if any."""
        addrs = self.ip4.get(dns_name)
        return addrs[0] if addrs else None

    def is_used(self, addr):
        return str(addr) in self.addrsToDomain

    def with_record(self, dns_name, addr):
        """Return a copy with ``dns_name`` bound to ``addr``."""
        updated = self.model_copy(deep=True)
        updated.ip4[dns_name] = [str(addr)]
        updated.addrsToDomain[str(addr)] = dns_name
        return updated

    def to_json(self):
        return self.model_dump_json(exclude_none=True)


def decode_records(raw):
    """Decode a records document; empty input yields empty records."""
    if not raw:
        return Records()
    try:
        return Records.model_validate(json.loads(raw))
    except (ValueError, ValidationError) as e:
        raise TransientStoreError(f"error unmarshalling service records: {e}") from e


def records_from_configmap(binary_data):
    """Decode records from the base64 ``binaryData`` map of a ConfigMap."""
    encoded = (binary_data or {}).get(RECORDS_KEY)
    if not encoded:
        return Records()
    try:
        raw = base64.b64decode(encoded)
    except ValueError as e:
        raise TransientStoreError(f"error decoding {RECORDS_KEY}: {e}") from e
    return decode_records(raw)


def records_to_binary_data(records):
    """Encode records into a ConfigMap ``binaryData`` entry."""
    payload = records.to_json().encode()
    return {RECORDS_KEY: base64.b64encode(payload).decode()}
