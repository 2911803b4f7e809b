"""
Interactive crop-overlay widget and Qt image helpers.

``ImageCropWidget`` lays the source image out in a box (the display space of
the crop session), draws it through the session's preview transform, and
overlays an untransformed, aspect-locked crop rectangle the user can move and
resize.  Rectangles are reported in display-space units relative to the image
box, which is exactly what ``CropSession`` expects.
"""

from PIL import Image
from PyQt6.QtWidgets import QWidget, QSizePolicy
from PyQt6.QtCore import Qt, QRectF, QPointF, pyqtSignal
from PyQt6.QtGui import (
    QPainter, QPainterPath, QPixmap, QColor, QPen, QBrush, QImage, QTransform,
    QKeyEvent, QMouseEvent, QPaintEvent, QResizeEvent,
)

from avatar_crop.config import HANDLE_SIZE, MIN_CROP_SIZE, NUDGE_LARGE, NUDGE_SMALL, PREVIEW_MAX_HEIGHT
from avatar_crop.models import CropRegion, TransformState, clamp_crop


# =============================================================================
# Qt ↔ PIL helpers
# =============================================================================

def pil_to_qpixmap(pil_img: Image.Image) -> QPixmap:
    """Convert a PIL Image to QPixmap."""
    img_rgba = pil_img.convert("RGBA")
    data = img_rgba.tobytes("raw", "RGBA")
    qimg = QImage(data, img_rgba.width, img_rgba.height, QImage.Format.Format_RGBA8888)
    return QPixmap.fromImage(qimg.copy())


def preview_transform(state: TransformState, cx: float, cy: float) -> QTransform:
    """QTransform equivalent of ``state.affine(cx, cy)``."""
    a, b, c, d, e, f = state.affine(cx, cy)
    return QTransform(a, d, b, e, c, f)


# =============================================================================
# Image Crop Widget — interactive crop overlay on image
# =============================================================================

class ImageCropWidget(QWidget):
    """Widget that displays an image with an interactive, resizable crop overlay."""

    layout_changed = pyqtSignal(float, float)  # image box width, height
    crop_changed = pyqtSignal(object)          # CropRegion while dragging
    crop_completed = pyqtSignal(object)        # CropRegion on release

    HANDLE_NONE = 0
    HANDLE_TL = 1
    HANDLE_TR = 2
    HANDLE_BL = 3
    HANDLE_BR = 4
    MODE_NONE = 0
    MODE_MOVE = 1
    MODE_RESIZE = 2

    def __init__(self, parent=None):
        super().__init__(parent)
        self.setMinimumSize(300, 300)
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)
        self.setSizePolicy(QSizePolicy.Policy.Expanding, QSizePolicy.Policy.Expanding)

        self._pixmap: QPixmap | None = None
        self._crop = CropRegion()
        self._aspect_ratio = 1.0
        self._transform = TransformState()

        # Image box in widget coordinates
        self._box_w = 0.0
        self._box_h = 0.0
        self._offset_x = 0.0
        self._offset_y = 0.0

        # Interaction state
        self._mode = self.MODE_NONE
        self._active_handle = self.HANDLE_NONE
        self._drag_start = QPointF()
        self._crop_start = CropRegion()

    def set_image(self, pixmap: QPixmap, aspect_ratio: float):
        """Set the image to display and the locked crop aspect ratio."""
        self._pixmap = pixmap
        self._aspect_ratio = aspect_ratio
        self._update_display_mapping()
        self.update()

    def set_crop(self, crop: CropRegion):
        self._crop = CropRegion(crop.x, crop.y, crop.width, crop.height)
        self.update()

    def get_crop(self) -> CropRegion:
        return CropRegion(self._crop.x, self._crop.y, self._crop.width, self._crop.height)

    def set_transform(self, state: TransformState):
        self._transform = state
        self.update()

    # --- Coordinate mapping ---

    def _update_display_mapping(self):
        """Fit the image box into the widget, capped at the preview height."""
        if not self._pixmap or self._pixmap.isNull():
            return
        img_w, img_h = self._pixmap.width(), self._pixmap.height()
        ww, wh = self.width(), min(self.height(), PREVIEW_MAX_HEIGHT)
        scale = min(ww / img_w, wh / img_h, 1.0)
        box_w, box_h = img_w * scale, img_h * scale
        if box_w <= 0 or box_h <= 0:
            return
        self._offset_x = (self.width() - box_w) / 2
        self._offset_y = (self.height() - box_h) / 2
        if (box_w, box_h) != (self._box_w, self._box_h):
            self._box_w, self._box_h = box_w, box_h
            self.layout_changed.emit(box_w, box_h)

    def _to_widget(self, x: float, y: float) -> QPointF:
        return QPointF(x + self._offset_x, y + self._offset_y)

    def _to_box(self, pos: QPointF) -> QPointF:
        return QPointF(pos.x() - self._offset_x, pos.y() - self._offset_y)

    def _crop_widget_rect(self) -> QRectF:
        tl = self._to_widget(self._crop.x, self._crop.y)
        return QRectF(tl.x(), tl.y(), self._crop.width, self._crop.height)

    # --- Handle hit testing ---

    def _handle_rects(self) -> dict[int, QRectF]:
        """Return widget-coordinate rectangles for the 4 corner handles."""
        r = self._crop_widget_rect()
        hs = HANDLE_SIZE
        return {
            self.HANDLE_TL: QRectF(r.left() - hs, r.top() - hs, hs * 2, hs * 2),
            self.HANDLE_TR: QRectF(r.right() - hs, r.top() - hs, hs * 2, hs * 2),
            self.HANDLE_BL: QRectF(r.left() - hs, r.bottom() - hs, hs * 2, hs * 2),
            self.HANDLE_BR: QRectF(r.right() - hs, r.bottom() - hs, hs * 2, hs * 2),
        }

    def _hit_test(self, pos: QPointF) -> tuple[int, int]:
        """Returns (mode, handle) for a widget position."""
        for handle_id, rect in self._handle_rects().items():
            if rect.contains(pos):
                return self.MODE_RESIZE, handle_id
        if self._crop_widget_rect().contains(pos):
            return self.MODE_MOVE, self.HANDLE_NONE
        return self.MODE_NONE, self.HANDLE_NONE

    # --- Painting ---

    def paintEvent(self, event: QPaintEvent):
        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)
        painter.fillRect(self.rect(), QColor(30, 30, 30))

        if not self._pixmap:
            painter.setPen(QColor(128, 128, 128))
            painter.drawText(self.rect(), Qt.AlignmentFlag.AlignCenter, "Loading image…")
            painter.end()
            return

        # Draw the image through the preview transform, centred on its box
        painter.save()
        painter.translate(self._offset_x, self._offset_y)
        painter.setTransform(preview_transform(self._transform, self._box_w / 2, self._box_h / 2), True)
        painter.drawPixmap(QRectF(0, 0, self._box_w, self._box_h), self._pixmap, QRectF(self._pixmap.rect()))
        painter.restore()

        # Dim everything outside the circular crop
        crop_rect = self._crop_widget_rect()
        outside = QPainterPath()
        outside.addRect(QRectF(self.rect()))
        inside = QPainterPath()
        inside.addEllipse(crop_rect)
        painter.fillPath(outside.subtracted(inside), QBrush(QColor(0, 0, 0, 140)))

        # Draw crop border
        painter.setPen(QPen(QColor(255, 255, 255), 2))
        painter.setBrush(Qt.BrushStyle.NoBrush)
        painter.drawEllipse(crop_rect)
        painter.setPen(QPen(QColor(255, 255, 255, 80), 1, Qt.PenStyle.DashLine))
        painter.drawRect(crop_rect)

        # Draw corner handles
        painter.setPen(QPen(QColor(0, 0, 0), 1))
        painter.setBrush(QBrush(QColor(255, 255, 255)))
        for rect in self._handle_rects().values():
            painter.drawRect(rect)

        painter.end()

    def resizeEvent(self, event: QResizeEvent):
        self._update_display_mapping()
        super().resizeEvent(event)

    # --- Mouse interaction ---

    def mousePressEvent(self, event: QMouseEvent):
        if event.button() != Qt.MouseButton.LeftButton or not self._pixmap:
            return
        pos = event.position()
        self._mode, self._active_handle = self._hit_test(pos)
        if self._mode != self.MODE_NONE:
            self._drag_start = pos
            self._crop_start = self.get_crop()

    def mouseMoveEvent(self, event: QMouseEvent):
        if not self._pixmap:
            return

        pos = event.position()

        # Update cursor
        if self._mode == self.MODE_NONE:
            mode, handle = self._hit_test(pos)
            if mode == self.MODE_RESIZE:
                if handle in (self.HANDLE_TL, self.HANDLE_BR):
                    self.setCursor(Qt.CursorShape.SizeFDiagCursor)
                else:
                    self.setCursor(Qt.CursorShape.SizeBDiagCursor)
            elif mode == self.MODE_MOVE:
                self.setCursor(Qt.CursorShape.SizeAllCursor)
            else:
                self.setCursor(Qt.CursorShape.ArrowCursor)
            return

        if self._mode == self.MODE_MOVE:
            delta = pos - self._drag_start
            self._crop.x = max(0.0, min(self._crop_start.x + delta.x(), self._box_w - self._crop.width))
            self._crop.y = max(0.0, min(self._crop_start.y + delta.y(), self._box_h - self._crop.height))
        else:
            self._resize_from_handle(pos)
        self.crop_changed.emit(self.get_crop())
        self.update()

    def mouseReleaseEvent(self, event: QMouseEvent):
        if event.button() != Qt.MouseButton.LeftButton:
            return
        if self._mode != self.MODE_NONE:
            self.crop_completed.emit(self.get_crop())
        self._mode = self.MODE_NONE
        self._active_handle = self.HANDLE_NONE

    def _resize_from_handle(self, mouse_pos: QPointF):
        """Resize crop from a corner handle, maintaining aspect ratio."""
        box_pos = self._to_box(mouse_pos)
        mx = max(0.0, min(box_pos.x(), self._box_w))
        my = max(0.0, min(box_pos.y(), self._box_h))

        cs = self._crop_start
        ar = self._aspect_ratio

        if self._active_handle == self.HANDLE_BR:
            anchor_x, anchor_y = cs.x, cs.y
            dw, dh = mx - anchor_x, my - anchor_y
        elif self._active_handle == self.HANDLE_BL:
            anchor_x, anchor_y = cs.right, cs.y
            dw, dh = anchor_x - mx, my - anchor_y
        elif self._active_handle == self.HANDLE_TR:
            anchor_x, anchor_y = cs.x, cs.bottom
            dw, dh = mx - anchor_x, anchor_y - my
        elif self._active_handle == self.HANDLE_TL:
            anchor_x, anchor_y = cs.right, cs.bottom
            dw, dh = anchor_x - mx, anchor_y - my
        else:
            return

        # Size from the limiting dimension, keeping the aspect ratio
        dw = max(dw, MIN_CROP_SIZE)
        dh = max(dh, MIN_CROP_SIZE)
        if dw / dh > ar:
            new_w, new_h = dh * ar, dh
        else:
            new_w, new_h = dw, dw / ar

        # Clamp to the image box from the anchor
        max_w = self._box_w - anchor_x if self._active_handle in (self.HANDLE_BR, self.HANDLE_TR) else anchor_x
        max_h = self._box_h - anchor_y if self._active_handle in (self.HANDLE_BR, self.HANDLE_BL) else anchor_y
        if new_w > max_w:
            new_w, new_h = max_w, max_w / ar
        if new_h > max_h:
            new_w, new_h = max_h * ar, max_h

        new_x = anchor_x if self._active_handle in (self.HANDLE_BR, self.HANDLE_TR) else anchor_x - new_w
        new_y = anchor_y if self._active_handle in (self.HANDLE_BR, self.HANDLE_BL) else anchor_y - new_h

        self._crop = clamp_crop(CropRegion(new_x, new_y, new_w, new_h), self._box_w, self._box_h)

    # --- Keyboard nudge ---

    def keyPressEvent(self, event: QKeyEvent):
        if not self._pixmap:
            return
        amount = NUDGE_LARGE if event.modifiers() & Qt.KeyboardModifier.ShiftModifier else NUDGE_SMALL
        key = event.key()
        if key == Qt.Key.Key_Left:
            self._crop.x = max(0.0, self._crop.x - amount)
        elif key == Qt.Key.Key_Right:
            self._crop.x = min(self._box_w - self._crop.width, self._crop.x + amount)
        elif key == Qt.Key.Key_Up:
            self._crop.y = max(0.0, self._crop.y - amount)
        elif key == Qt.Key.Key_Down:
            self._crop.y = min(self._box_h - self._crop.height, self._crop.y + amount)
        else:
            super().keyPressEvent(event)
            return
        self.crop_completed.emit(self.get_crop())
        self.update()
