"""
Crop dialog: zoom and rotate controls around the crop overlay widget.

The dialog edits a ``CropSession`` in place.  Applying is delegated to the
owner through ``apply_requested`` so the export and upload run wherever the
owner schedules them; closing the dialog any other way cancels the session.
"""

from PyQt6.QtWidgets import QDialog, QHBoxLayout, QLabel, QPushButton, QVBoxLayout
from PyQt6.QtCore import Qt, pyqtSignal

from avatar_crop.crop_widget import ImageCropWidget, pil_to_qpixmap
from avatar_crop.uploader import CropSession


class CropDialog(QDialog):
    apply_requested = pyqtSignal()

    def __init__(self, session: CropSession, parent=None):
        super().__init__(parent)
        self.setWindowTitle("Crop Your Photo")
        self.setMinimumSize(480, 560)
        self._session = session

        layout = QVBoxLayout(self)

        # Controls
        controls = QHBoxLayout()
        controls.addStretch()
        self._btn_zoom_out = QPushButton("−")
        self._btn_zoom_out.setToolTip("Zoom out")
        self._btn_zoom_out.clicked.connect(self._zoom_out)
        controls.addWidget(self._btn_zoom_out)
        self._zoom_label = QLabel()
        self._zoom_label.setMinimumWidth(60)
        self._zoom_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        controls.addWidget(self._zoom_label)
        self._btn_zoom_in = QPushButton("+")
        self._btn_zoom_in.setToolTip("Zoom in")
        self._btn_zoom_in.clicked.connect(self._zoom_in)
        controls.addWidget(self._btn_zoom_in)
        controls.addSpacing(16)
        self._btn_rotate = QPushButton("⟳")
        self._btn_rotate.setToolTip("Rotate 90°")
        self._btn_rotate.clicked.connect(self._rotate)
        controls.addWidget(self._btn_rotate)
        controls.addStretch()
        layout.addLayout(controls)

        # Crop area
        self._crop_widget = ImageCropWidget()
        self._crop_widget.layout_changed.connect(self._on_layout_changed)
        self._crop_widget.crop_changed.connect(session.update_crop)
        self._crop_widget.crop_completed.connect(self._on_crop_completed)
        layout.addWidget(self._crop_widget, stretch=1)

        hint = QLabel("Drag to reposition. The crop area will be used as your profile photo.")
        hint.setWordWrap(True)
        hint.setAlignment(Qt.AlignmentFlag.AlignCenter)
        hint.setStyleSheet("color: #aaa;")
        layout.addWidget(hint)

        # Footer
        footer = QHBoxLayout()
        footer.addStretch()
        btn_cancel = QPushButton("Cancel")
        btn_cancel.clicked.connect(self.reject)
        footer.addWidget(btn_cancel)
        self._btn_apply = QPushButton("Apply")
        self._btn_apply.setDefault(True)
        self._btn_apply.clicked.connect(self.apply_requested)
        footer.addWidget(self._btn_apply)
        layout.addLayout(footer)

        self._crop_widget.set_image(pil_to_qpixmap(session.source.image), session.aspect_ratio)
        self._sync_transform()

    def set_busy(self, busy: bool):
        for btn in (self._btn_apply, self._btn_zoom_in, self._btn_zoom_out, self._btn_rotate):
            btn.setEnabled(not busy)

    # --- Session edits ---

    def _on_layout_changed(self, width: float, height: float):
        self._crop_widget.set_crop(self._session.layout(width, height))

    def _on_crop_completed(self, region):
        self._crop_widget.set_crop(self._session.complete_crop(region))

    def _zoom_in(self):
        self._session.zoom_in()
        self._sync_transform()

    def _zoom_out(self):
        self._session.zoom_out()
        self._sync_transform()

    def _rotate(self):
        self._session.rotate()
        self._sync_transform()

    def _sync_transform(self):
        state = self._session.transform
        self._crop_widget.set_transform(state)
        self._zoom_label.setText(f"{state.zoom_percent}%")
