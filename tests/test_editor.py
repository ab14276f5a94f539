import numpy as np
import pytest

from pixel_art_converter.buffers import as_pixel_buffer
from pixel_art_converter.editor import (
    HIGHLIGHT_BORDER_COLOR,
    EditorState,
    PaletteEditor,
    PendingSubstitution,
)
from pixel_art_converter.errors import PixelBoundsError

RED = (255, 0, 0)
BLUE = (0, 0, 255)
GREEN = (0, 255, 0)


def _halves(left=RED, right=BLUE, size=4):
    img = np.zeros((size, size, 3), dtype=np.uint8)
    img[:, : size // 2] = left
    img[:, size // 2:] = right
    return as_pixel_buffer(img)


def _count(buf, color):
    return int(np.all(buf[:, :, :3] == color, axis=2).sum())


def _editor(buf=None, **kwargs):
    if buf is None:
        buf = _halves()
    return PaletteEditor(buf, [RED, GREEN, BLUE], block_size=2, **kwargs)


def test_substitution_replaces_every_matching_pixel():
    editor = _editor()

    assert editor.select_replacement_color(BLUE)
    assert editor.state is EditorState.SOURCE_SELECTED
    assert editor.pick_target_pixel(0, 0)

    assert _count(editor.working, RED) == 0
    assert _count(editor.working, BLUE) == 16
    assert editor.replaced == {RED}
    assert editor.state is EditorState.IDLE
    assert editor.pending_replacement is None
    assert editor.highlight_target is None


def test_former_target_location_is_rejected_after_substitution():
    editor = _editor()
    editor.select_replacement_color(BLUE)
    editor.pick_target_pixel(0, 0)

    editor.select_replacement_color(BLUE)
    before = editor.working.copy()
    # Pixel now carries the replacement color itself
    assert not editor.pick_target_pixel(0, 0)
    np.testing.assert_array_equal(editor.working, before)


def test_replaced_color_cannot_be_selected_again():
    editor = _editor()
    editor.select_replacement_color(BLUE)
    editor.pick_target_pixel(0, 0)

    assert not editor.select_replacement_color(RED)
    assert editor.state is EditorState.IDLE
    assert editor.pending_replacement is None


def test_replaced_color_cannot_be_a_target():
    buf = _halves()
    editor = _editor(buf)
    editor.replaced.add(RED)
    editor.select_replacement_color(GREEN)
    assert not editor.pick_target_pixel(0, 0)
    assert _count(editor.working, RED) == 8


def test_pick_without_selection_is_ignored():
    editor = _editor()
    assert not editor.pick_target_pixel(0, 0)
    assert editor.replaced == set()


def test_target_equal_to_replacement_is_ignored():
    editor = _editor()
    editor.select_replacement_color(RED)
    assert not editor.pick_target_pixel(0, 0)
    assert editor.state is EditorState.SOURCE_SELECTED


def test_pick_out_of_bounds_raises():
    editor = _editor()
    editor.select_replacement_color(GREEN)
    with pytest.raises(PixelBoundsError):
        editor.pick_target_pixel(4, 0)


def test_eyedropper_selects_pixel_color():
    editor = _editor()
    assert editor.pick_source_pixel(3, 3)
    assert editor.pending_replacement == BLUE


def test_confirmation_mode_waits_for_approval():
    editor = _editor(confirmation_mode=True)
    editor.select_replacement_color(GREEN)

    assert editor.pick_target_pixel(0, 0)
    assert editor.pending_confirmation == PendingSubstitution(RED, GREEN)
    assert _count(editor.working, RED) == 8

    assert editor.confirm()
    assert _count(editor.working, RED) == 0
    assert _count(editor.working, GREEN) == 8
    assert editor.pending_confirmation is None
    assert not editor.confirm()


def test_declined_substitution_keeps_selection():
    editor = _editor(confirmation_mode=True)
    editor.select_replacement_color(GREEN)
    editor.pick_target_pixel(0, 0)

    assert editor.decline()
    assert editor.pending_confirmation is None
    assert editor.state is EditorState.SOURCE_SELECTED
    assert _count(editor.working, RED) == 8


def test_substitution_is_idempotent():
    editor = _editor()
    editor.perform_substitution(RED, GREEN)
    after_first = editor.working.copy()
    editor.perform_substitution(RED, GREEN)
    np.testing.assert_array_equal(editor.working, after_first)
    assert editor.replaced == {RED}


def test_substitution_does_not_touch_previous_buffer():
    editor = _editor()
    previous = editor.working
    editor.perform_substitution(RED, GREEN)
    assert _count(previous, RED) == 8


def test_cancel_clears_selection():
    editor = _editor()
    editor.select_replacement_color(GREEN)
    editor.cancel()
    assert editor.state is EditorState.IDLE
    assert editor.pending_replacement is None
    assert not editor.highlight_visible


def test_reset_clears_bookkeeping_but_not_pixels():
    editor = _editor()
    editor.select_replacement_color(BLUE)
    editor.pick_target_pixel(0, 0)
    editor.select_replacement_color(GREEN)

    editor.reset()

    assert editor.replaced == set()
    assert editor.state is EditorState.IDLE
    assert editor.pending_replacement is None
    assert editor.highlight_target is None
    assert _count(editor.working, BLUE) == 16
    assert editor.select_replacement_color(RED)


def test_toggle_highlight_requires_selection():
    editor = _editor()
    assert not editor.toggle_highlight()

    editor.select_replacement_color(RED)
    assert editor.highlight_visible
    assert not editor.toggle_highlight()
    np.testing.assert_array_equal(editor.display_buffer(), editor.working)
    assert editor.toggle_highlight()


def test_highlight_dims_other_pixels_and_borders_matching_blocks():
    highlight = (100, 50, 200)
    other = (200, 100, 50)
    img = np.zeros((10, 10, 3), dtype=np.uint8)
    img[:, :] = other
    img[:5, :5] = highlight
    buf = as_pixel_buffer(img)
    editor = PaletteEditor(buf, [other, highlight], block_size=5)

    editor.select_replacement_color(highlight)
    display = editor.display_buffer()

    # Dimmed to 30%, alpha kept
    np.testing.assert_array_equal(display[7, 7], [60, 30, 15, 255])
    # Border on the matching block, interior left as is
    np.testing.assert_array_equal(display[0, 0], HIGHLIGHT_BORDER_COLOR)
    np.testing.assert_array_equal(display[2, 2], [100, 50, 200, 255])
    # Working image never touched
    np.testing.assert_array_equal(editor.working, buf)


def test_smart_combine_updates_palette_and_image():
    near_red = (250, 5, 5)
    img = np.zeros((2, 2, 3), dtype=np.uint8)
    img[0, 0] = RED
    img[0, 1] = near_red
    img[1, :] = BLUE
    editor = PaletteEditor(as_pixel_buffer(img), [RED, near_red, BLUE], block_size=1)

    palette = editor.apply_smart_combine()

    assert palette == [(252, 2, 2), BLUE]
    assert editor.palette == palette
    assert _count(editor.working, (252, 2, 2)) == 2


def test_replacement_color_may_come_from_outside_the_palette():
    img = np.zeros((4, 4, 3), dtype=np.uint8)
    img[:, :2] = RED
    editor = PaletteEditor(as_pixel_buffer(img), [RED, BLUE], block_size=2)

    # Black edge pixel, not a palette entry
    assert editor.pick_source_pixel(3, 0)
    assert editor.pending_replacement == (0, 0, 0)
    assert editor.pick_target_pixel(0, 0)
    assert _count(editor.working, (0, 0, 0)) == 16
