"""Hashing used for revision identity and schema blob addresses."""

from __future__ import annotations

import hashlib
import json
from typing import Any

from defrev.models.definitions import ComponentDefinitionSpec

# Hex digits of the spec digest kept as a revision hash
REVISION_HASH_LENGTH = 16


def canonical_json_bytes(obj: Any) -> bytes:
    """Encode ``obj`` as sorted, compact, ASCII-only JSON.

    Equal documents always encode to the same bytes, whatever the key
    order they were built in.
    """
    text = json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True)
    return text.encode("utf-8")


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def compute_revision_hash(spec: ComponentDefinitionSpec) -> str:
    """Hash of a definition spec, stable across field order and unset fields.

    Two specs that serialize to the same canonical JSON share a revision.
    """
    payload = spec.model_dump(mode="json", by_alias=True, exclude_none=True)
    return sha256_hex(canonical_json_bytes(payload))[:REVISION_HASH_LENGTH]
