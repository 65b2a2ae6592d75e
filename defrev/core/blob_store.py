"""Schema blobs keyed by the SHA-256 digest of their bytes.

Layout: ``{root}/{digest[0:2]}/{digest[2:4]}/{digest}.json``.  A blob is
written once and never rewritten or deleted; revisions whose schemas
are byte-identical share one blob.
"""

from __future__ import annotations

import json
import logging
import uuid
from pathlib import Path
from typing import Any

from defrev.core.hasher import canonical_json_bytes, sha256_hex

logger = logging.getLogger(__name__)

ADDRESS_PREFIX = "sha256:"


class BlobIntegrityError(RuntimeError):
    """Raised when a blob's bytes no longer hash to its address."""


def _digest(address: str) -> str:
    return address.removeprefix(ADDRESS_PREFIX)


class ContentAddressedStore:
    """Immutable, deduplicating store for serialized schemas.

    Addresses have the form ``sha256:<hex>``; the bare digest is accepted
    wherever an address is.

    Parameters
    ----------
    root:
        Directory holding the blobs.  Created if missing.
    """

    def __init__(self, root: Path) -> None:
        self._root = Path(root)
        self._root.mkdir(parents=True, exist_ok=True)

    @property
    def root(self) -> Path:
        return self._root

    def path_of(self, address: str) -> Path:
        digest = _digest(address)
        return self._root / digest[:2] / digest[2:4] / f"{digest}.json"

    def put(self, data: bytes) -> str:
        """Store ``data`` unless an intact copy exists; return its address.

        Raises
        ------
        BlobIntegrityError
            If a blob already stored at this address was corrupted.
        """
        address = ADDRESS_PREFIX + sha256_hex(data)
        path = self.path_of(address)
        if path.exists():
            if not self.verify(address):
                raise BlobIntegrityError(f"stored blob {address} does not match its digest")
            return address

        path.parent.mkdir(parents=True, exist_ok=True)
        # Staged under a hidden name, then renamed into place
        staging = path.with_name(f".{path.name}.{uuid.uuid4().hex[:8]}")
        staging.write_bytes(data)
        staging.replace(path)
        logger.debug("Stored blob %s (%d bytes)", address, len(data))
        return address

    def put_json(self, document: Any) -> str:
        """Store the canonical JSON encoding of ``document``."""
        return self.put(canonical_json_bytes(document))

    def get(self, address: str) -> bytes:
        """Return the bytes stored at ``address``, checked against it.

        Raises ``FileNotFoundError`` when nothing is stored there and
        ``BlobIntegrityError`` when the stored bytes were altered.
        """
        try:
            data = self.path_of(address).read_bytes()
        except FileNotFoundError:
            raise FileNotFoundError(f"no blob stored at {address}") from None
        if sha256_hex(data) != _digest(address):
            raise BlobIntegrityError(f"blob {address} is corrupted")
        return data

    def get_json(self, address: str) -> Any:
        return json.loads(self.get(address))

    def exists(self, address: str) -> bool:
        return self.path_of(address).exists()

    def verify(self, address: str) -> bool:
        try:
            self.get(address)
        except (FileNotFoundError, BlobIntegrityError):
            return False
        return True
