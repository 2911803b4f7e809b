import pytest

from avatar_crop.models import (
    OUTPUT_SPEC, CropRegion, DisplayGeometry, TransformState,
    clamp_crop, init_crop, rotate, zoom_in, zoom_out,
)


# --- init_crop ---

def test_init_crop_square_on_landscape_is_limited_by_height():
    crop = init_crop(400, 300, 1.0)
    assert crop.width == pytest.approx(270)
    assert crop.height == pytest.approx(270)
    assert crop.x == pytest.approx(65)
    assert crop.y == pytest.approx(15)


def test_init_crop_square_on_portrait_uses_ninety_percent_width():
    crop = init_crop(300, 400, 1.0)
    assert (crop.x, crop.y, crop.width, crop.height) == pytest.approx((15, 65, 270, 270))


@pytest.mark.parametrize("width, height, aspect", [
    (400, 300, 1.0),
    (300, 400, 1.0),
    (640, 360, 16 / 9),
    (120, 900, 0.75),
    (1000, 50, 2.5),
    (1, 1, 3.0),
])
def test_init_crop_keeps_aspect_centered_and_in_bounds(width, height, aspect):
    crop = init_crop(width, height, aspect)
    assert crop.width / crop.height == pytest.approx(aspect)
    assert crop.x + crop.width / 2 == pytest.approx(width / 2)
    assert crop.y + crop.height / 2 == pytest.approx(height / 2)
    assert crop.x >= 0 and crop.y >= 0
    assert crop.right <= width + 1e-9
    assert crop.bottom <= height + 1e-9


def test_clamp_crop_moves_rectangle_back_inside():
    crop = clamp_crop(CropRegion(350, -20, 100, 100), 400, 300)
    assert (crop.x, crop.y, crop.width, crop.height) == (300, 0, 100, 100)


def test_clamp_crop_shrinks_oversized_rectangle():
    crop = clamp_crop(CropRegion(0, 0, 500, 500), 400, 300)
    assert (crop.width, crop.height) == (400, 300)


def test_display_geometry_rejects_empty_layout():
    with pytest.raises(ValueError):
        DisplayGeometry(0, 100)


def test_display_geometry_scale():
    assert DisplayGeometry(400, 300).scale_to(800, 900) == (2.0, 3.0)


# --- transform transitions ---

def test_rotate_steps_through_quarter_turns():
    state = TransformState()
    seen = []
    for _ in range(4):
        state = rotate(state)
        seen.append(state.rotation_deg)
    assert seen == [90, 180, 270, 0]


def test_rotate_does_not_touch_scale():
    assert rotate(TransformState(scale=1.5)).scale == 1.5


def test_zoom_in_never_exceeds_max():
    state = TransformState()
    for _ in range(50):
        state = zoom_in(state)
        assert state.scale <= 3.0
    assert state.scale == 3.0


def test_zoom_out_never_goes_below_min():
    state = TransformState()
    for _ in range(50):
        state = zoom_out(state)
        assert state.scale >= 0.5
    assert state.scale == 0.5


def test_zoom_absorbs_out_of_range_input():
    assert zoom_out(TransformState(scale=7.0)).scale == 3.0
    assert zoom_in(TransformState(scale=0.1)).scale == 0.5


def test_zoom_custom_step_and_percent():
    state = zoom_in(TransformState(), step=0.25)
    assert state.scale == pytest.approx(1.25)
    assert state.zoom_percent == 125


def test_transitions_return_new_values():
    state = TransformState()
    zoom_in(state)
    rotate(state)
    assert state == TransformState(scale=1.0, rotation_deg=0)


# --- affine description ---

def _apply(matrix, x, y):
    a, b, c, d, e, f = matrix
    return a * x + b * y + c, d * x + e * y + f


def test_default_affine_is_identity():
    assert TransformState().affine(200, 200) == pytest.approx((1, 0, 0, 0, 1, 0))


def test_affine_keeps_centre_fixed():
    state = TransformState(scale=2.0, rotation_deg=270)
    assert _apply(state.affine(200, 150), 200, 150) == pytest.approx((200, 150))


def test_quarter_turn_is_clockwise_on_screen():
    # A point right of the centre ends up below it
    matrix = TransformState(rotation_deg=90).affine(200, 200)
    assert _apply(matrix, 300, 200) == pytest.approx((200, 300))


def test_scale_pushes_points_away_from_centre():
    matrix = TransformState(scale=2.0).affine(200, 200)
    assert _apply(matrix, 250, 150) == pytest.approx((300, 100))


def test_inverse_affine_undoes_affine():
    state = TransformState(scale=1.7, rotation_deg=180)
    x, y = _apply(state.affine(200, 200), 37, 311)
    assert _apply(state.inverse_affine(200, 200), x, y) == pytest.approx((37, 311))


def test_output_spec_constants():
    assert OUTPUT_SPEC.dimension == 400
    assert OUTPUT_SPEC.mime_type == "image/jpeg"
    assert OUTPUT_SPEC.quality == 0.95
    assert OUTPUT_SPEC.pillow_quality == 95
