"""
Avatar raster export (Qt-free).

Converts a display-space crop rectangle into natural pixels, draws it into a
square surface under the session's rotate/scale transform, and encodes the
surface as JPEG.  Precondition problems are returned as an ``ExportResult``
carrying an ``ExportFailure`` instead of being raised.

The drawing order mirrors the live preview: the crop region is stretched to
fill the square first, then the transform reorients that drawing around the
surface centre.  Keep it that way; changing the order changes the orientation
of exported avatars.
"""

import enum
import io
import logging
from dataclasses import dataclass

from PIL import Image

from avatar_crop.config import JPEG_OPTIMIZE, JPEG_SUBSAMPLING, JPEG_SUBSAMPLING_MAP
from avatar_crop.image_io import SourceImage
from avatar_crop.models import OUTPUT_SPEC, Blob, CropRegion, DisplayGeometry, OutputSpec, TransformState

logger = logging.getLogger(__name__)

# Colour of uncovered surface pixels once encoded without alpha
_BACKGROUND = (0, 0, 0)


class ExportFailure(enum.Enum):
    MISSING_SOURCE = "no source image is loaded"
    MISSING_DISPLAY = "the image has not been laid out yet"
    MISSING_CROP = "no crop rectangle has been finalized"
    EMPTY_CROP = "the crop rectangle has no area"
    ENCODE_FAILED = "the image could not be encoded"


@dataclass(frozen=True)
class ExportResult:
    blob: Blob | None = None
    failure: ExportFailure | None = None

    @property
    def ok(self) -> bool:
        return self.blob is not None


# =============================================================================
# Helpers
# =============================================================================
def natural_crop_box(source: SourceImage, display: DisplayGeometry,
                     crop: CropRegion) -> tuple[float, float, float, float]:
    """Return the crop as a ``(left, top, right, bottom)`` box in natural pixels."""
    scale_x, scale_y = display.scale_to(source.natural_width, source.natural_height)
    crop_x = crop.x * scale_x
    crop_y = crop.y * scale_y
    crop_w = crop.width * scale_x
    crop_h = crop.height * scale_y
    return crop_x, crop_y, crop_x + crop_w, crop_y + crop_h


def _source_box(source: SourceImage, display: DisplayGeometry,
                crop: CropRegion) -> tuple[float, float, float, float]:
    """Natural crop box clipped to the image bounds."""
    left, top, right, bottom = natural_crop_box(source, display, crop)
    # Float rounding can push the box a hair past the image edge
    w, h = source.natural_width, source.natural_height
    return max(0.0, left), max(0.0, top), min(right, w), min(bottom, h)


def _box_is_empty(box: tuple[float, float, float, float]) -> bool:
    left, top, right, bottom = box
    return right <= left or bottom <= top


def _flatten(img: Image.Image) -> Image.Image:
    """Return an RGB image, compositing any transparency over the background."""
    if img.mode == "RGB":
        return img
    if img.mode in ("RGBA", "LA", "PA") or (img.mode == "P" and "transparency" in img.info):
        rgba = img.convert("RGBA")
        base = Image.new("RGBA", rgba.size, _BACKGROUND + (255,))
        return Image.alpha_composite(base, rgba).convert("RGB")
    return img.convert("RGB")


def compose(source: SourceImage, display: DisplayGeometry, crop: CropRegion,
            transform: TransformState, spec: OutputSpec = OUTPUT_SPEC) -> Image.Image:
    """Draw the crop into a ``spec.dimension`` square under *transform*."""
    size = spec.dimension
    center = size / 2
    box = _source_box(source, display, crop)

    # Stretch the natural-space crop to exactly fill the square destination
    tile = _flatten(source.image).resize((size, size), Image.Resampling.LANCZOS, box=box)

    # Reorient the drawing around the surface centre; Pillow wants the inverse
    return tile.transform(
        (size, size),
        Image.Transform.AFFINE,
        transform.inverse_affine(center, center),
        resample=Image.Resampling.BICUBIC,
        fillcolor=_BACKGROUND,
    )


def encode(surface: Image.Image, spec: OutputSpec = OUTPUT_SPEC) -> Blob:
    buf = io.BytesIO()
    surface.save(
        buf, spec.format,
        quality=spec.pillow_quality,
        optimize=JPEG_OPTIMIZE,
        subsampling=JPEG_SUBSAMPLING_MAP[JPEG_SUBSAMPLING],
    )
    return Blob(buf.getvalue(), spec.mime_type)


# =============================================================================
# Export
# =============================================================================
def export_avatar(
    source: SourceImage | None,
    display: DisplayGeometry | None,
    crop: CropRegion | None,
    transform: TransformState,
    spec: OutputSpec = OUTPUT_SPEC,
) -> ExportResult:
    """Render and encode the avatar, or return the reason it cannot be done."""
    if source is None:
        failure = ExportFailure.MISSING_SOURCE
    elif display is None:
        failure = ExportFailure.MISSING_DISPLAY
    elif crop is None:
        failure = ExportFailure.MISSING_CROP
    elif crop.is_empty() or _box_is_empty(_source_box(source, display, crop)):
        failure = ExportFailure.EMPTY_CROP
    else:
        failure = None
    if failure is not None:
        logger.warning("Avatar export skipped: %s", failure.value)
        return ExportResult(failure=failure)

    try:
        blob = encode(compose(source, display, crop, transform, spec), spec)
    except (OSError, ValueError) as exc:
        logger.warning("Avatar export failed: %s", exc)
        return ExportResult(failure=ExportFailure.ENCODE_FAILED)

    logger.debug(
        "Exported %dx%d %s (%d bytes), scale=%.2f rotation=%d",
        spec.dimension, spec.dimension, spec.mime_type, blob.size,
        transform.scale, transform.rotation_deg,
    )
    return ExportResult(blob=blob)
