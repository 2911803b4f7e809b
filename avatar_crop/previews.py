"""
Transient preview references for freshly cropped avatars.

A preview reference is an opaque ``blob:`` string naming bytes held in memory
until it is revoked.  Owners must revoke a reference once it is superseded or
the owning component shuts down.
"""

import logging
import uuid

from avatar_crop.models import Blob

logger = logging.getLogger(__name__)

_SCHEME = "blob:avatar-crop/"


def is_preview_ref(ref: str | None) -> bool:
    return bool(ref) and ref.startswith(_SCHEME)


class PreviewStore:
    """In-memory registry of live preview references."""

    def __init__(self):
        self._blobs: dict[str, Blob] = {}

    def create(self, blob: Blob) -> str:
        ref = f"{_SCHEME}{uuid.uuid4()}"
        self._blobs[ref] = blob
        logger.debug("Created preview %s (%d bytes)", ref, blob.size)
        return ref

    def get(self, ref: str) -> Blob | None:
        return self._blobs.get(ref)

    def revoke(self, ref: str | None) -> None:
        """Release *ref*.  Unknown or already revoked references are ignored."""
        if ref and self._blobs.pop(ref, None) is not None:
            logger.debug("Revoked preview %s", ref)

    def revoke_all(self) -> None:
        for ref in list(self._blobs):
            self.revoke(ref)

    def __contains__(self, ref: str) -> bool:
        return ref in self._blobs

    def __len__(self) -> int:
        return len(self._blobs)
