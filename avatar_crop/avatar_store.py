"""
On-disk avatar persistence.

Keeps the committed avatar as a single JPEG in the config directory.  The
desktop shell passes ``save_avatar`` to the uploader as its persistence
callback; ``None`` deletes the stored avatar.

This module is Qt-free.
"""

import asyncio
import logging
import os
from pathlib import Path

from avatar_crop.config import config_dir
from avatar_crop.models import Blob

logger = logging.getLogger(__name__)

_AVATAR_FILENAME = "avatar.jpg"


def avatar_path() -> Path:
    """Return the path the committed avatar is stored at."""
    return config_dir() / _AVATAR_FILENAME


def load_avatar() -> Path | None:
    """Return the stored avatar path if it exists, or None."""
    p = avatar_path()
    return p if p.is_file() else None


def write_avatar(blob: Blob | None) -> Path | None:
    """
    Store *blob* as the avatar, or delete the stored avatar when *blob* is None.

    The file is written to a temporary sibling and renamed into place so a
    failed write never leaves a truncated avatar behind.  I/O errors are
    logged and re-raised.
    """
    p = avatar_path()
    if blob is None:
        try:
            p.unlink(missing_ok=True)
        except OSError as exc:
            logger.error("Could not remove avatar %s: %s", p, exc)
            raise
        logger.info("Removed stored avatar %s", p)
        return None

    tmp = p.with_suffix(".tmp")
    try:
        tmp.write_bytes(blob.data)
        os.replace(tmp, p)
    except OSError as exc:
        logger.error("Could not write avatar to %s: %s", p, exc)
        tmp.unlink(missing_ok=True)
        raise
    logger.info("Stored avatar (%d bytes) at %s", blob.size, p)
    return p


async def save_avatar(blob: Blob | None) -> None:
    """Persistence callback for ``AvatarUploader``."""
    await asyncio.to_thread(write_avatar, blob)
