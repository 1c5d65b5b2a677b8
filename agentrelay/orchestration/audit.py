"""Content digests for the task audit trail."""

import hashlib
import json
from typing import Any


def canonical_json(payload: Any) -> str:
    """Serialize a payload so equal values always give equal text."""
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def content_digest(payload: Any) -> str:
    """SHA-256 hex digest of a payload's canonical JSON."""
    return hashlib.sha256(canonical_json(payload).encode("utf-8")).hexdigest()
