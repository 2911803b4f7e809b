"""
Application constants and configuration.

Output constants describe the exported avatar raster and are shared by the
rasterizer and the uploader.  Upload limits, transform limits and crop-editor
settings control the crop session and the overlay widget.

The ``config_dir()`` helper returns the platform-appropriate config
directory used by the avatar store.
"""

import os
import sys
from pathlib import Path

# =============================================================================
# APP IDENTITY & CONFIG DIRECTORY
# =============================================================================
APP_NAME = "avatar-crop"


def config_dir() -> Path:
    """Return the platform-appropriate config directory, creating it if needed."""
    if sys.platform == "win32":
        base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
    elif sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support"
    else:
        base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    directory = base / APP_NAME
    directory.mkdir(parents=True, exist_ok=True)
    return directory


# =============================================================================
# LOGGING
# =============================================================================
LOG_LEVEL_ENV = "AVATAR_CROP_LOG_LEVEL"
LOG_LEVEL_DEFAULT = "INFO"
LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

# =============================================================================
# OUTPUT — the exported avatar raster
# =============================================================================
OUTPUT_SIZE = 400
OUTPUT_FORMAT = "JPEG"
OUTPUT_MIME = "image/jpeg"
OUTPUT_QUALITY = 0.95  # 0..1, mapped to Pillow's 1..100 scale on save

# Map subsampling labels to Pillow integer values
JPEG_SUBSAMPLING_MAP = {"4:4:4": 0, "4:2:2": 1, "4:2:0": 2}
JPEG_SUBSAMPLING = "4:4:4"
JPEG_OPTIMIZE = True

# =============================================================================
# UPLOAD LIMITS
# =============================================================================
ACCEPTED_MIME_PREFIX = "image/"
MAX_UPLOAD_BYTES = 10 * 1024 * 1024
PSD_MIME = "image/vnd.adobe.photoshop"

# =============================================================================
# CROP SESSION
# =============================================================================
DEFAULT_ASPECT_RATIO = 1.0

# Initial crop covers this fraction of the limiting display dimension
INITIAL_CROP_FRACTION = 0.9

SCALE_MIN = 0.5
SCALE_MAX = 3.0
SCALE_STEP = 0.1
ROTATE_STEP = 90

# =============================================================================
# FALLBACK AVATAR
# =============================================================================
FALLBACK_AVATAR_HOST = "ui-avatars.com"
FALLBACK_AVATAR_URL = "https://ui-avatars.com/api/?name={name}&background={background}&color=fff"
FALLBACK_COLOR = "795548"

# =============================================================================
# CROP EDITOR WIDGET
# =============================================================================
# Largest height of the image box in the crop dialog (screen pixels)
PREVIEW_MAX_HEIGHT = 400

# Minimum crop size (screen pixels)
MIN_CROP_SIZE = 20

# Handle size for resize corners (screen pixels)
HANDLE_SIZE = 8

# Avatar thumbnail edge in the main window (screen pixels)
AVATAR_THUMB_SIZE = 128

# Nudge amounts (screen pixels)
NUDGE_SMALL = 1
NUDGE_LARGE = 10
