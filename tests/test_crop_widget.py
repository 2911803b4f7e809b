import pytest
from PyQt6.QtCore import QEvent, QPointF, Qt
from PyQt6.QtGui import QMouseEvent

from avatar_crop.crop_dialog import CropDialog
from avatar_crop.crop_widget import ImageCropWidget, pil_to_qpixmap, preview_transform
from avatar_crop.image_io import SourceImage
from avatar_crop.models import CropRegion, TransformState
from avatar_crop.uploader import CropSession

from conftest import quadrants


def _mouse(kind: QEvent.Type, x: float, y: float) -> QMouseEvent:
    pos = QPointF(x, y)
    button = Qt.MouseButton.LeftButton
    buttons = Qt.MouseButton.NoButton if kind == QEvent.Type.MouseButtonRelease else button
    return QMouseEvent(kind, pos, pos, button, buttons, Qt.KeyboardModifier.NoModifier)


def _drag(widget: ImageCropWidget, start: tuple[float, float], end: tuple[float, float]):
    widget.mousePressEvent(_mouse(QEvent.Type.MouseButtonPress, *start))
    widget.mouseMoveEvent(_mouse(QEvent.Type.MouseMove, *end))
    widget.mouseReleaseEvent(_mouse(QEvent.Type.MouseButtonRelease, *end))


@pytest.fixture
def crop_widget(qtbot):
    """400x300 image box centred in a 600x400 widget, offset (100, 50)."""
    widget = ImageCropWidget()
    qtbot.addWidget(widget)
    widget.resize(600, 400)
    layouts = []
    widget.layout_changed.connect(lambda w, h: layouts.append((w, h)))
    widget.set_image(pil_to_qpixmap(quadrants(400, 300)), 1.0)
    assert layouts == [(400, 300)]
    widget.set_crop(CropRegion(100, 50, 100, 100))
    return widget


# --- preview transform ---

@pytest.mark.parametrize("rotation", [0, 90, 180, 270])
@pytest.mark.parametrize("scale", [1.0, 0.5, 1.7])
def test_preview_transform_matches_export_affine(rotation, scale):
    state = TransformState(scale=scale, rotation_deg=rotation)
    cx, cy = 200.0, 150.0
    a, b, c, d, e, f = state.affine(cx, cy)
    qt = preview_transform(state, cx, cy)
    for x, y in [(0, 0), (400, 0), (0, 300), (123, 45), (cx, cy)]:
        mapped = qt.map(QPointF(x, y))
        assert mapped.x() == pytest.approx(a * x + b * y + c, abs=1e-6)
        assert mapped.y() == pytest.approx(d * x + e * y + f, abs=1e-6)


def test_preview_rotation_turns_clockwise():
    # Top centre of a 100x100 box lands on the right edge after a quarter turn
    mapped = preview_transform(TransformState(rotation_deg=90), 50, 50).map(QPointF(50, 0))
    assert (mapped.x(), mapped.y()) == (pytest.approx(100), pytest.approx(50))


# --- crop handles ---

def test_corner_drag_keeps_aspect_ratio(crop_widget):
    completed = []
    crop_widget.crop_completed.connect(completed.append)

    # Bottom-right handle sits at widget (300, 200)
    _drag(crop_widget, (300, 200), (380, 230))

    crop = crop_widget.get_crop()
    assert (crop.x, crop.y) == (100, 50)
    assert crop.width == pytest.approx(130)
    assert crop.height == pytest.approx(130)
    assert completed == [crop]


@pytest.mark.parametrize("start, end, expected", [
    ((300, 200), (900, 900), (100, 50, 250, 250)),
    ((200, 100), (0, 0), (50, 0, 150, 150)),
])
def test_corner_drag_stays_inside_image_box(crop_widget, start, end, expected):
    _drag(crop_widget, start, end)
    crop = crop_widget.get_crop()
    assert (crop.x, crop.y, crop.width, crop.height) == pytest.approx(expected)
    assert crop.width == pytest.approx(crop.height)
    assert crop.x >= 0 and crop.y >= 0
    assert crop.right <= 400 and crop.bottom <= 300


def test_move_drag_is_clamped(crop_widget):
    _drag(crop_widget, (250, 150), (1000, 1000))
    crop = crop_widget.get_crop()
    assert (crop.x, crop.y, crop.width, crop.height) == (300, 200, 100, 100)


def test_press_outside_crop_does_nothing(crop_widget):
    completed = []
    crop_widget.crop_completed.connect(completed.append)
    _drag(crop_widget, (450, 300), (460, 310))
    assert completed == []
    assert crop_widget.get_crop() == CropRegion(100, 50, 100, 100)


# --- dialog ---

@pytest.fixture
def session() -> CropSession:
    return CropSession(SourceImage(quadrants(800, 600), "image/png"), "data:image/png;base64,")


def test_opening_dialog_lays_out_and_finalizes_crop(qtbot, session):
    dlg = CropDialog(session)
    qtbot.addWidget(dlg)
    with qtbot.waitExposed(dlg):
        dlg.show()

    assert session.display is not None
    assert session.display.width / session.display.height == pytest.approx(800 / 600)
    crop = session.completed_crop
    assert crop is not None
    assert crop.width == pytest.approx(crop.height)
    assert crop.right <= session.display.width + 1e-6
    assert crop.bottom <= session.display.height + 1e-6
    assert dlg._crop_widget.get_crop() == session.crop
    assert session.export().ok


def test_completed_crop_reaches_session_clamped(qtbot, session):
    dlg = CropDialog(session)
    qtbot.addWidget(dlg)
    with qtbot.waitExposed(dlg):
        dlg.show()
    display = session.display

    dlg._crop_widget.crop_completed.emit(CropRegion(display.width, display.height, 40, 40))

    crop = session.completed_crop
    assert (crop.x, crop.y) == pytest.approx((display.width - 40, display.height - 40))
    assert dlg._crop_widget.get_crop() == crop


def test_controls_update_session_transform(qtbot, session):
    dlg = CropDialog(session)
    qtbot.addWidget(dlg)
    assert dlg._zoom_label.text() == "100%"

    dlg._btn_zoom_in.click()
    dlg._btn_rotate.click()

    assert session.transform.scale == pytest.approx(1.1)
    assert session.transform.rotation_deg == 90
    assert dlg._zoom_label.text() == "110%"
    assert dlg._crop_widget._transform is session.transform


def test_busy_dialog_disables_controls(qtbot, session):
    dlg = CropDialog(session)
    qtbot.addWidget(dlg)
    dlg.set_busy(True)
    assert not dlg._btn_apply.isEnabled()
    assert not dlg._btn_rotate.isEnabled()
    dlg.set_busy(False)
    assert dlg._btn_zoom_in.isEnabled()
