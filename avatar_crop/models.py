"""
Data models, crop-geometry utilities and transform transitions.

CropRegion, DisplayGeometry, TransformState, OutputSpec and Blob are the core
values passed between the crop session, the rasterizer and the uploader.
``TransformState`` is immutable: ``rotate``, ``zoom_in`` and ``zoom_out``
return a new state.  Its ``affine()`` matrix is the one transform description
shared by the live preview and the raster export.
"""

import math
from dataclasses import dataclass, replace

from avatar_crop.config import (
    INITIAL_CROP_FRACTION, OUTPUT_FORMAT, OUTPUT_MIME, OUTPUT_QUALITY, OUTPUT_SIZE,
    ROTATE_STEP, SCALE_MAX, SCALE_MIN, SCALE_STEP,
)


# =============================================================================
# Data classes
# =============================================================================
@dataclass
class CropRegion:
    """Crop rectangle in display-space pixel units."""
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0


@dataclass(frozen=True)
class DisplayGeometry:
    """Size at which the source image is laid out on screen."""
    width: float
    height: float

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"display size must be positive, got {self.width}x{self.height}")

    def scale_to(self, natural_width: int, natural_height: int) -> tuple[float, float]:
        """Return ``(scale_x, scale_y)`` mapping display units to natural pixels."""
        return natural_width / self.width, natural_height / self.height


@dataclass(frozen=True)
class TransformState:
    """Scale and rotation applied around the centre of the drawn image."""
    scale: float = 1.0
    rotation_deg: int = 0

    @property
    def zoom_percent(self) -> int:
        return round(self.scale * 100)

    def affine(self, cx: float, cy: float) -> tuple[float, float, float, float, float, float]:
        """
        Forward affine ``(a, b, c, d, e, f)`` of
        translate(cx, cy) · rotate · scale · translate(-cx, -cy).

        A point maps as ``x' = a*x + b*y + c`` and ``y' = d*x + e*y + f`` in
        y-down raster coordinates, so positive angles turn clockwise on screen.
        """
        rad = math.radians(self.rotation_deg)
        cos, sin = math.cos(rad), math.sin(rad)
        a, b = self.scale * cos, -self.scale * sin
        d, e = self.scale * sin, self.scale * cos
        return a, b, cx - a * cx - b * cy, d, e, cy - d * cx - e * cy

    def inverse_affine(self, cx: float, cy: float) -> tuple[float, float, float, float, float, float]:
        """Inverse of ``affine()``: maps transformed points back to drawing space."""
        rad = math.radians(self.rotation_deg)
        cos, sin = math.cos(rad), math.sin(rad)
        a, b = cos / self.scale, sin / self.scale
        d, e = -sin / self.scale, cos / self.scale
        return a, b, cx - a * cx - b * cy, d, e, cy - d * cx - e * cy


@dataclass(frozen=True)
class OutputSpec:
    """Target raster shape and encoding of the exported avatar."""
    dimension: int = OUTPUT_SIZE
    format: str = OUTPUT_FORMAT
    mime_type: str = OUTPUT_MIME
    quality: float = OUTPUT_QUALITY

    @property
    def pillow_quality(self) -> int:
        return max(1, min(100, round(self.quality * 100)))


OUTPUT_SPEC = OutputSpec()


@dataclass(frozen=True)
class Blob:
    """Encoded image bytes with their MIME type."""
    data: bytes
    mime_type: str

    @property
    def size(self) -> int:
        return len(self.data)


# =============================================================================
# Crop math utilities
# =============================================================================
def init_crop(display_width: float, display_height: float, target_aspect: float) -> CropRegion:
    """Centered crop covering 90% of the limiting display dimension at *target_aspect*."""
    width = display_width * INITIAL_CROP_FRACTION
    height = width / target_aspect
    if height > display_height:
        height = display_height * INITIAL_CROP_FRACTION
        width = height * target_aspect
    x = (display_width - width) / 2
    y = (display_height - height) / 2
    return CropRegion(x, y, width, height)


def clamp_crop(crop: CropRegion, display_width: float, display_height: float,
               min_size: float = 0.0) -> CropRegion:
    """Clamp crop rectangle to the display box."""
    w = max(min_size, min(crop.width, display_width))
    h = max(min_size, min(crop.height, display_height))
    x = max(0.0, min(crop.x, display_width - w))
    y = max(0.0, min(crop.y, display_height - h))
    return CropRegion(x, y, w, h)


# =============================================================================
# Transform transitions
# =============================================================================
def _clamp_scale(scale: float) -> float:
    return max(SCALE_MIN, min(scale, SCALE_MAX))


def rotate(state: TransformState) -> TransformState:
    return replace(state, rotation_deg=(state.rotation_deg + ROTATE_STEP) % 360)


def zoom_in(state: TransformState, step: float = SCALE_STEP) -> TransformState:
    return replace(state, scale=_clamp_scale(state.scale + step))


def zoom_out(state: TransformState, step: float = SCALE_STEP) -> TransformState:
    return replace(state, scale=_clamp_scale(state.scale - step))
