"""Shared fixtures: in-memory images and a throwaway config directory."""

import io
import os

# Widgets are tested without a display server
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest
from PIL import Image

from avatar_crop.image_io import SelectedFile, SourceImage

RED = (255, 0, 0)
GREEN = (0, 255, 0)
BLUE = (0, 0, 255)
WHITE = (255, 255, 255)


def encode_image(img: Image.Image, fmt: str = "PNG", **kwargs) -> bytes:
    buf = io.BytesIO()
    img.save(buf, fmt, **kwargs)
    return buf.getvalue()


def quadrants(width: int, height: int) -> Image.Image:
    """Image split into red / green (top) and blue / white (bottom) quadrants."""
    img = Image.new("RGB", (width, height), WHITE)
    half_w, half_h = width // 2, height // 2
    img.paste(RED, (0, 0, half_w, half_h))
    img.paste(GREEN, (half_w, 0, width, half_h))
    img.paste(BLUE, (0, half_h, half_w, height))
    return img


def dominant(pixel) -> tuple[int, int, int]:
    """Snap a (JPEG-blurred) pixel to pure 0/255 channels."""
    return tuple(255 if channel > 127 else 0 for channel in pixel[:3])


@pytest.fixture
def quadrant_source() -> SourceImage:
    return SourceImage(quadrants(800, 600), "image/png")


@pytest.fixture
def jpeg_file() -> SelectedFile:
    """A valid JPEG padded to 2 MB with trailing bytes decoders ignore."""
    data = encode_image(quadrants(800, 600), "JPEG", quality=90)
    data += b"\0" * (2 * 1024 * 1024 - len(data))
    return SelectedFile("photo.jpg", "image/jpeg", data)


@pytest.fixture
def config_home(tmp_path, monkeypatch):
    monkeypatch.setattr("avatar_crop.avatar_store.config_dir", lambda: tmp_path)
    return tmp_path
