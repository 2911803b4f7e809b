"""
Qt-free image I/O utilities.

Provides the selected-file value, upload validation, data URI reading and
decoding, and image decoding (PSD through psd-tools, everything else
through Pillow).  Decoded images have their EXIF orientation applied so natural
dimensions match what a viewer shows.
"""

import asyncio
import base64
import binascii
import io
import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path

from PIL import Image, ImageOps, UnidentifiedImageError
from psd_tools import PSDImage

from avatar_crop.config import ACCEPTED_MIME_PREFIX, MAX_UPLOAD_BYTES, PSD_MIME

logger = logging.getLogger(__name__)

# Extensions the platform MIME table may not know about
_EXTRA_MIME_TYPES = {
    ".psd": PSD_MIME,
    ".webp": "image/webp",
}

_PSD_SIGNATURE = b"8BPS"


class ValidationError(Exception):
    """A selected file was rejected before any crop session opened."""


class ImageDecodeError(Exception):
    """File content could not be decoded as an image."""


# =============================================================================
# Data classes
# =============================================================================
@dataclass(frozen=True)
class SelectedFile:
    """A file chosen by the user, held in memory."""
    name: str
    mime_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @classmethod
    def from_path(cls, path: Path) -> "SelectedFile":
        """Read *path* and guess its MIME type from the extension."""
        path = Path(path)
        mime = _EXTRA_MIME_TYPES.get(path.suffix.lower())
        if mime is None:
            mime, _ = mimetypes.guess_type(path.name)
        return cls(name=path.name, mime_type=mime or "application/octet-stream",
                   data=path.read_bytes())


@dataclass
class SourceImage:
    """Decoded source image at natural resolution."""
    image: Image.Image
    mime_type: str = ""

    @property
    def natural_width(self) -> int:
        return self.image.width

    @property
    def natural_height(self) -> int:
        return self.image.height


# =============================================================================
# Validation
# =============================================================================
def validate_file(file: SelectedFile) -> None:
    """Raise ``ValidationError`` unless *file* is an image of acceptable size."""
    if not file.mime_type.startswith(ACCEPTED_MIME_PREFIX):
        raise ValidationError("Please select an image file")
    if file.size > MAX_UPLOAD_BYTES:
        raise ValidationError("Image size should be less than 10MB")


# =============================================================================
# Data URIs
# =============================================================================
def to_data_uri(data: bytes, mime_type: str) -> str:
    """Encode bytes as a base64 ``data:`` URI."""
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def parse_data_uri(uri: str) -> tuple[str, bytes]:
    """Split a base64 ``data:`` URI into ``(mime_type, payload)``."""
    if not uri.startswith("data:") or "," not in uri:
        raise ImageDecodeError("not a data URI")
    header, payload = uri[5:].split(",", 1)
    parts = header.split(";")
    if "base64" not in parts[1:]:
        raise ImageDecodeError("only base64 data URIs are supported")
    try:
        return parts[0], base64.b64decode(payload, validate=True)
    except binascii.Error as exc:
        raise ImageDecodeError(f"invalid base64 payload: {exc}") from exc


async def read_as_data_uri(file: SelectedFile) -> str:
    """Encode the file as a data URI without blocking the event loop."""
    return await asyncio.to_thread(to_data_uri, file.data, file.mime_type)


# =============================================================================
# Decoding
# =============================================================================
def decode_image(data: bytes, mime_type: str = "") -> SourceImage:
    """Decode image bytes, compositing PSD layers and applying EXIF orientation."""
    try:
        if mime_type == PSD_MIME or data[:4] == _PSD_SIGNATURE:
            img = PSDImage.open(io.BytesIO(data)).composite()
        else:
            img = Image.open(io.BytesIO(data))
            img.seek(0)
            img = ImageOps.exif_transpose(img)
            img.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
        raise ImageDecodeError(str(exc)) from exc
    if img is None or img.width == 0 or img.height == 0:
        raise ImageDecodeError("image has no pixels")
    logger.debug("Decoded %s image %dx%d (%s)", mime_type or "unknown", img.width, img.height, img.mode)
    return SourceImage(img, mime_type)


def load_data_uri(uri: str) -> SourceImage:
    """Decode a data URI produced by ``read_as_data_uri``."""
    mime_type, data = parse_data_uri(uri)
    return decode_image(data, mime_type)
