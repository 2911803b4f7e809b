"""
Main application window.

Shows the current avatar with Upload/Change and Remove actions, opens the
crop dialog for each selected file and runs the uploader's coroutines on
background threads.  Persistence goes through ``avatar_store.save_avatar``.
"""

import asyncio
import logging
from pathlib import Path

from PyQt6.QtWidgets import (
    QMainWindow, QWidget, QVBoxLayout, QHBoxLayout, QLabel, QPushButton,
    QFileDialog, QStatusBar,
)
from PyQt6.QtCore import Qt, QThread, pyqtSignal
from PyQt6.QtGui import QPixmap

from avatar_crop.avatar_store import load_avatar, save_avatar
from avatar_crop.config import AVATAR_THUMB_SIZE
from avatar_crop.crop_dialog import CropDialog
from avatar_crop.image_io import SelectedFile
from avatar_crop.previews import is_preview_ref
from avatar_crop.uploader import AvatarUploader, CropSession

logger = logging.getLogger(__name__)

FILE_FILTER = "Images (*.png *.jpg *.jpeg *.bmp *.gif *.tiff *.tif *.webp *.psd);;All files (*)"
NOTICE_TIMEOUT_MS = 5000


# =============================================================================
# Background coroutine runner
# =============================================================================

class CoroutineThread(QThread):
    """Runs one coroutine to completion on its own event loop."""
    error = pyqtSignal(str)

    def __init__(self, coro_fn, parent=None):
        super().__init__(parent)
        self._coro_fn = coro_fn

    def run(self):
        try:
            asyncio.run(self._coro_fn())
        except Exception as e:
            logger.exception("Background task failed")
            self.error.emit(str(e))


# =============================================================================
# Main window
# =============================================================================

class MainWindow(QMainWindow):
    def __init__(self, display_name: str = "User"):
        super().__init__()
        self.setWindowTitle("Profile Photo")
        self.setMinimumSize(360, 320)

        stored = load_avatar()
        self._uploader = AvatarUploader(
            save_avatar,
            current_avatar=str(stored) if stored else None,
            fallback_text=display_name,
            parent=self,
        )
        self._uploader.avatar_changed.connect(self._on_avatar_changed)
        self._uploader.loading_changed.connect(self._on_loading_changed)
        self._uploader.session_opened.connect(self._on_session_opened)
        self._uploader.session_closed.connect(self._on_session_closed)
        self._uploader.notified.connect(self._on_notified)

        self._dialog: CropDialog | None = None
        self._threads: list[CoroutineThread] = []

        self._build_ui()
        self._on_avatar_changed(self._uploader.display_avatar)
        self._update_button_states()

    # =========================================================================
    # UI construction
    # =========================================================================

    def _build_ui(self):
        central = QWidget()
        self.setCentralWidget(central)
        layout = QVBoxLayout(central)
        layout.setAlignment(Qt.AlignmentFlag.AlignCenter)

        self._avatar_label = QLabel()
        self._avatar_label.setFixedSize(AVATAR_THUMB_SIZE, AVATAR_THUMB_SIZE)
        self._avatar_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self._avatar_label.setStyleSheet(
            f"border-radius: {AVATAR_THUMB_SIZE // 2}px; background: #795548; font-size: 40pt;"
        )
        layout.addWidget(self._avatar_label, alignment=Qt.AlignmentFlag.AlignCenter)

        buttons = QHBoxLayout()
        self._btn_upload = QPushButton("Upload Photo")
        self._btn_upload.clicked.connect(self._select_file)
        buttons.addWidget(self._btn_upload)
        self._btn_remove = QPushButton("Remove")
        self._btn_remove.clicked.connect(self._remove_avatar)
        buttons.addWidget(self._btn_remove)
        layout.addLayout(buttons)

        self._status = QStatusBar()
        self.setStatusBar(self._status)

    def _update_button_states(self):
        busy = self._uploader.is_uploading
        custom = self._uploader.has_custom_avatar
        self._btn_upload.setText("Change Photo" if custom else "Upload Photo")
        self._btn_upload.setEnabled(not busy)
        self._btn_remove.setVisible(custom)
        self._btn_remove.setEnabled(not busy)

    # =========================================================================
    # Actions
    # =========================================================================

    def _run(self, coro_fn):
        thread = CoroutineThread(coro_fn, self)
        thread.error.connect(self._on_task_error)
        thread.finished.connect(self._on_thread_finished)
        self._threads.append(thread)
        thread.start()

    def _select_file(self):
        path, _ = QFileDialog.getOpenFileName(self, "Select Profile Photo", str(Path.home()), FILE_FILTER)
        if not path:
            return
        try:
            file = SelectedFile.from_path(Path(path))
        except OSError as e:
            self._status.showMessage(f"Could not open {Path(path).name}: {e}", NOTICE_TIMEOUT_MS)
            return
        self._run(lambda: self._uploader.select_file(file))

    def _apply_crop(self):
        self._run(self._uploader.apply_crop)

    def _remove_avatar(self):
        self._run(self._uploader.remove_avatar)

    # =========================================================================
    # Uploader signals
    # =========================================================================

    def _on_session_opened(self, session: CropSession):
        self._dialog = CropDialog(session, self)
        self._dialog.apply_requested.connect(self._apply_crop)
        self._dialog.rejected.connect(self._uploader.cancel_session)
        self._dialog.open()

    def _on_session_closed(self):
        if self._dialog is not None:
            dialog, self._dialog = self._dialog, None
            dialog.rejected.disconnect(self._uploader.cancel_session)
            dialog.accept()
            dialog.deleteLater()

    def _on_avatar_changed(self, ref: str):
        # Queued from a worker thread, so the preview may be revoked by now
        if is_preview_ref(ref) and ref not in self._uploader.previews:
            ref = self._uploader.display_avatar
        pixmap = QPixmap()
        if is_preview_ref(ref):
            blob = self._uploader.previews.get(ref)
            if blob is not None:
                pixmap.loadFromData(blob.data)
        elif Path(ref).is_file():
            pixmap.load(ref)

        if pixmap.isNull():
            self._avatar_label.setPixmap(QPixmap())
            self._avatar_label.setText(self._uploader.fallback_initial)
        else:
            self._avatar_label.setPixmap(pixmap.scaled(
                AVATAR_THUMB_SIZE, AVATAR_THUMB_SIZE,
                Qt.AspectRatioMode.KeepAspectRatio,
                Qt.TransformationMode.SmoothTransformation,
            ))
        self._update_button_states()

    def _on_loading_changed(self, loading: bool):
        if self._dialog is not None:
            self._dialog.set_busy(loading)
        self._update_button_states()

    def _on_notified(self, level: str, message: str):
        prefix = "✗ " if level == "error" else "✓ "
        self._status.showMessage(prefix + message, NOTICE_TIMEOUT_MS)

    def _on_task_error(self, error: str):
        self._status.showMessage(f"Unexpected error: {error}", NOTICE_TIMEOUT_MS)

    def _on_thread_finished(self):
        self._threads = [t for t in self._threads if t.isRunning()]

    def closeEvent(self, event):
        for thread in self._threads:
            thread.wait(2000)
        self._uploader.close()
        super().closeEvent(event)
