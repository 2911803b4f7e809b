"""
Avatar upload orchestration.

``AvatarUploader`` drives one avatar through file validation, data URI read,
the crop session, raster export and the caller's persistence callback.  It
owns the UI-facing state (loading flag, preview reference, open session) and
reports changes through Qt signals so any widget can follow along.

``CropSession`` holds the per-file state between selection and confirm: the
decoded source, the display geometry, the working and finalized crop
rectangles and the current transform.
"""

import asyncio
import enum
import logging
from collections.abc import Awaitable, Callable

from PyQt6.QtCore import QObject, pyqtSignal

from avatar_crop.config import DEFAULT_ASPECT_RATIO, FALLBACK_AVATAR_HOST, FALLBACK_AVATAR_URL, FALLBACK_COLOR
from avatar_crop.image_io import (
    ImageDecodeError, SelectedFile, SourceImage, ValidationError,
    load_data_uri, read_as_data_uri, validate_file,
)
from avatar_crop.models import (
    OUTPUT_SPEC, Blob, CropRegion, DisplayGeometry, OutputSpec, TransformState,
    clamp_crop, init_crop, rotate, zoom_in, zoom_out,
)
from avatar_crop.previews import PreviewStore
from avatar_crop.rasterizer import ExportFailure, ExportResult, export_avatar

logger = logging.getLogger(__name__)

AvatarCallback = Callable[[Blob | None], Awaitable[None]]


class UploadState(enum.Enum):
    IDLE = "idle"
    SELECTING = "selecting"
    CROPPING = "cropping"
    UPLOADING = "uploading"


# =============================================================================
# Crop session
# =============================================================================
class CropSession:
    """State of one crop dialog, from file selection to confirm or cancel."""

    def __init__(self, source: SourceImage, data_uri: str, aspect_ratio: float = DEFAULT_ASPECT_RATIO):
        self.source: SourceImage | None = source
        self.data_uri = data_uri
        self.aspect_ratio = aspect_ratio
        self.display: DisplayGeometry | None = None
        self.crop: CropRegion | None = None
        self.completed_crop: CropRegion | None = None
        self.transform = TransformState()

    @property
    def is_open(self) -> bool:
        return self.source is not None

    def layout(self, width: float, height: float) -> CropRegion:
        """
        Record the on-screen image size.

        The first layout seeds a centered crop; later layouts (the dialog was
        resized) rescale the existing rectangles to the new size.
        """
        previous = self.display
        self.display = DisplayGeometry(width, height)
        if previous is None or self.crop is None:
            self.crop = init_crop(width, height, self.aspect_ratio)
            self.completed_crop = CropRegion(self.crop.x, self.crop.y, self.crop.width, self.crop.height)
        else:
            fx, fy = width / previous.width, height / previous.height
            self.crop = _rescale(self.crop, fx, fy)
            if self.completed_crop is not None:
                self.completed_crop = _rescale(self.completed_crop, fx, fy)
        return self.crop

    def update_crop(self, region: CropRegion) -> None:
        """Track the rectangle while the user is still dragging."""
        self.crop = region

    def complete_crop(self, region: CropRegion) -> CropRegion:
        """Finalize the rectangle the export will use."""
        if self.display is not None:
            region = clamp_crop(region, self.display.width, self.display.height)
        self.crop = region
        self.completed_crop = CropRegion(region.x, region.y, region.width, region.height)
        return self.completed_crop

    def rotate(self) -> TransformState:
        self.transform = rotate(self.transform)
        return self.transform

    def zoom_in(self) -> TransformState:
        self.transform = zoom_in(self.transform)
        return self.transform

    def zoom_out(self) -> TransformState:
        self.transform = zoom_out(self.transform)
        return self.transform

    def export(self, spec: OutputSpec = OUTPUT_SPEC) -> ExportResult:
        return export_avatar(self.source, self.display, self.completed_crop, self.transform, spec)

    def close(self) -> None:
        self.source = None
        self.display = None
        self.crop = None
        self.completed_crop = None


def _rescale(region: CropRegion, fx: float, fy: float) -> CropRegion:
    return CropRegion(region.x * fx, region.y * fy, region.width * fx, region.height * fy)


# =============================================================================
# Uploader
# =============================================================================
class AvatarUploader(QObject):
    """Sequences selection, cropping, export and persistence of one avatar."""

    state_changed = pyqtSignal(object)     # UploadState
    loading_changed = pyqtSignal(bool)
    avatar_changed = pyqtSignal(object)    # display reference (str)
    session_opened = pyqtSignal(object)    # CropSession
    session_closed = pyqtSignal()
    notified = pyqtSignal(str, str)        # level ("success" | "error"), message

    def __init__(
        self,
        on_avatar_change: AvatarCallback,
        current_avatar: str | None = None,
        *,
        fallback_text: str = "",
        fallback_color: str = FALLBACK_COLOR,
        aspect_ratio: float = DEFAULT_ASPECT_RATIO,
        output: OutputSpec = OUTPUT_SPEC,
        previews: PreviewStore | None = None,
        parent=None,
    ):
        super().__init__(parent)
        self._on_avatar_change = on_avatar_change
        self._current_avatar = current_avatar
        self._fallback_text = fallback_text
        self._fallback_color = fallback_color
        self._aspect_ratio = aspect_ratio
        self._output = output
        self._previews = previews if previews is not None else PreviewStore()

        self._state = UploadState.IDLE
        self._uploading = False
        self._preview_ref: str | None = None
        self._session: CropSession | None = None

    # --- Read-only state ---

    @property
    def state(self) -> UploadState:
        return self._state

    @property
    def is_uploading(self) -> bool:
        return self._uploading

    @property
    def session(self) -> CropSession | None:
        return self._session

    @property
    def previews(self) -> PreviewStore:
        return self._previews

    @property
    def preview_ref(self) -> str | None:
        return self._preview_ref

    @property
    def current_avatar(self) -> str | None:
        return self._current_avatar

    @current_avatar.setter
    def current_avatar(self, ref: str | None):
        self._current_avatar = ref
        self.avatar_changed.emit(self.display_avatar)

    @property
    def fallback_url(self) -> str:
        return FALLBACK_AVATAR_URL.format(name=self._fallback_text, background=self._fallback_color)

    @property
    def fallback_initial(self) -> str:
        return self._fallback_text[:1].upper()

    @property
    def display_avatar(self) -> str:
        return self._preview_ref or self._current_avatar or self.fallback_url

    @property
    def has_custom_avatar(self) -> bool:
        ref = self._preview_ref or self._current_avatar
        return bool(ref) and FALLBACK_AVATAR_HOST not in ref

    # --- Operations ---

    async def select_file(self, file: SelectedFile) -> CropSession | None:
        """Validate *file*, decode it and open a crop session."""
        if self._is_busy("select_file"):
            return None
        try:
            validate_file(file)
        except ValidationError as exc:
            logger.warning("Rejected %s (%s, %d bytes): %s", file.name, file.mime_type, file.size, exc)
            self.notified.emit("error", str(exc))
            return None

        if self._session is not None:
            self._close_session()
        self._set_state(UploadState.SELECTING)
        try:
            data_uri = await read_as_data_uri(file)
            source = await asyncio.to_thread(load_data_uri, data_uri)
        except ImageDecodeError as exc:
            logger.warning("Could not decode %s: %s", file.name, exc)
            self.notified.emit("error", "Could not read image file")
            self._set_state(UploadState.IDLE)
            return None
        except Exception:
            self._set_state(UploadState.IDLE)
            raise

        self._session = CropSession(source, data_uri, self._aspect_ratio)
        logger.debug("Opened crop session for %s (%dx%d)",
                     file.name, source.natural_width, source.natural_height)
        self._set_state(UploadState.CROPPING)
        self.session_opened.emit(self._session)
        return self._session

    async def apply_crop(self) -> ExportResult | None:
        """
        Export the open session and hand the blob to the persistence callback.

        Returns the export result, or ``None`` if another upload is in flight.
        A failed export leaves the session open so the user can retry.
        """
        if self._is_busy("apply_crop"):
            return None
        session = self._session
        if session is None:
            logger.warning("Avatar export skipped: no crop session is open")
            self.notified.emit("error", "Could not crop image")
            return ExportResult(failure=ExportFailure.MISSING_SOURCE)

        self._set_uploading(True)
        try:
            result = await asyncio.to_thread(session.export, self._output)
            if not result.ok:
                self.notified.emit("error", "Could not crop image")
                return result
            await self._commit(result.blob)
            return result
        finally:
            self._set_uploading(False)

    async def confirm_crop(self, blob: Blob) -> None:
        """Show *blob* as the avatar and persist it, rolling back on failure."""
        if self._is_busy("confirm_crop"):
            return
        self._set_uploading(True)
        try:
            await self._commit(blob)
        finally:
            self._set_uploading(False)

    async def remove_avatar(self) -> None:
        if self._is_busy("remove_avatar"):
            return
        self._set_uploading(True)
        try:
            await self._on_avatar_change(None)
        except Exception:
            logger.exception("Avatar removal failed")
            self.notified.emit("error", "Failed to remove profile photo")
        else:
            self._previews.revoke(self._preview_ref)
            self._preview_ref = None
            self._current_avatar = None
            logger.info("Avatar removed")
            self.avatar_changed.emit(self.display_avatar)
            self.notified.emit("success", "Profile photo removed")
        finally:
            self._set_uploading(False)

    def cancel_session(self) -> None:
        """Discard the open crop session without side effects."""
        if self._session is None:
            return
        logger.debug("Crop session cancelled")
        self._close_session()
        if not self._uploading:
            self._set_state(UploadState.IDLE)

    def close(self) -> None:
        """Tear down: drop the session and release every live preview."""
        self.cancel_session()
        self._previews.revoke_all()
        self._preview_ref = None

    # --- Internals ---

    async def _commit(self, blob: Blob) -> None:
        previous = self._preview_ref
        preview = self._previews.create(blob)
        self._show_preview(preview)
        try:
            await self._on_avatar_change(blob)
        except Exception:
            logger.exception("Avatar update failed")
            self._previews.revoke(preview)
            self._show_preview(previous)
            self.notified.emit("error", "Failed to update profile photo")
        else:
            self._previews.revoke(previous)
            logger.info("Avatar updated (%d bytes)", blob.size)
            self.notified.emit("success", "Profile photo updated!")
        finally:
            self._close_session()

    def _show_preview(self, ref: str | None) -> None:
        self._preview_ref = ref
        self.avatar_changed.emit(self.display_avatar)

    def _close_session(self) -> None:
        if self._session is None:
            return
        self._session.close()
        self._session = None
        self.session_closed.emit()

    def _is_busy(self, operation: str) -> bool:
        if self._uploading:
            logger.warning("%s ignored: an upload is already in progress", operation)
        return self._uploading

    def _set_uploading(self, uploading: bool) -> None:
        self._uploading = uploading
        self.loading_changed.emit(uploading)
        if uploading:
            self._set_state(UploadState.UPLOADING)
        else:
            self._set_state(UploadState.CROPPING if self._session is not None else UploadState.IDLE)

    def _set_state(self, state: UploadState) -> None:
        if state is not self._state:
            self._state = state
            self.state_changed.emit(state)
