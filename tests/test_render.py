import pytest
from PIL import Image, ImageDraw

from ratecard.renderer import (
    BASE_FONT_SIZE,
    CANVAS_HEIGHT,
    CANVAS_WIDTH,
    RenderContext,
    RenderParams,
    _gradient_lut,
    compute_table_layout,
    default_background,
    fit_image_cover,
    get_bold_font,
    make_default_background,
    render,
    source_crop_box,
    wrap_text,
)


def _has_ink(img, box):
    return img.crop(box).getchannel("A").getbbox() is not None


class TestRender:
    def test_output_is_a4_rgba(self, solid_background, sample_params):
        img = render(solid_background, sample_params)
        assert img.size == (CANVAS_WIDTH, CANVAS_HEIGHT)
        assert img.mode == "RGBA"

    def test_identical_inputs_render_identically(self, solid_background, sample_params):
        a = render(solid_background, sample_params)
        b = render(solid_background, sample_params)
        assert a.tobytes() == b.tobytes()

    def test_full_opacity_covers_canvas(self, solid_background, sample_params):
        img = render(solid_background, sample_params)
        r, g, b, a = img.getpixel((5, 5))
        assert r >= 250 and g <= 5 and b <= 5
        assert a >= 254

    def test_half_opacity(self, solid_background):
        params = RenderParams.from_inputs(0.5, "", "#000", "")
        _, _, _, a = render(solid_background, params).getpixel((5, 5))
        assert 120 <= a <= 135

    def test_zero_opacity_keeps_table_visible(self, solid_background):
        params = RenderParams.from_inputs(0.0, "$10 Basic\n$20 Standard\n$30 Premium", "#000000", "2024-05-01")
        img = render(solid_background, params)
        assert img.getpixel((5, 5))[3] == 0
        assert img.getpixel((CANVAS_WIDTH - 5, CANVAS_HEIGHT - 5))[3] == 0
        # left border of the box at x=98, rows span y 371..451
        assert img.getpixel((98, 400)) == (0x33, 0x33, 0x33, 255)

    def test_cells_follow_row_major_order(self, solid_background):
        params = RenderParams.from_inputs(0.0, "$10 Basic\n$20 Standard\n$30 Premium", "#000000", "")
        img = render(solid_background, params)
        # cell interiors, inset from border and divider
        assert _has_ink(img, (101, 392, 296, 420))   # (0, 0)
        assert _has_ink(img, (300, 392, 495, 420))   # (0, 1)
        assert _has_ink(img, (101, 423, 296, 449))   # (1, 0)
        assert not _has_ink(img, (300, 423, 495, 449))  # (1, 1) blank

    def test_title_and_date_above_table(self, solid_background):
        params = RenderParams.from_inputs(0.0, "$10 Basic\n$20 Standard\n$30 Premium", "#000000", "2024-05-01")
        img = render(solid_background, params)
        assert _has_ink(img, (250, 330, 345, 370))   # title, centred
        assert _has_ink(img, (400, 330, 490, 370))   # date, right aligned

    def test_empty_table_has_only_frame(self, solid_background):
        params = RenderParams.from_inputs(0.0, "\n  \n", "#000000", "2024-05-01")
        assert params.rows == ()
        img = render(solid_background, params)
        # box spans y 401..421; divider at x=298
        assert img.getpixel((298, 410)) == (0x66, 0x66, 0x66, 255)
        assert img.getpixel((98, 410)) == (0x33, 0x33, 0x33, 255)
        assert not _has_ink(img, (101, 404, 296, 419))
        assert not _has_ink(img, (300, 404, 495, 419))

    def test_text_color_is_applied(self, solid_background):
        params = RenderParams.from_inputs(0.0, "WWWW", "#0000ff", "")
        img = render(solid_background, params)
        cell = img.crop((101, 392, 296, 420))
        colors = {px[:3] for px in cell.getdata() if px[3] == 255}
        assert (0, 0, 255) in colors

    def test_opacity_is_clamped(self):
        assert RenderParams.from_inputs(3, "", "#000", "").opacity == 1.0
        assert RenderParams.from_inputs(-1, "", "#000", "").opacity == 0.0


class TestRenderContext:
    def test_render_skipped_without_background(self, sample_params):
        ctx = RenderContext()
        assert ctx.render(sample_params) is None
        assert ctx.last_image is None

    def test_render_keeps_last_image(self, solid_background, sample_params):
        ctx = RenderContext(background=solid_background)
        img = ctx.render(sample_params)
        assert img is ctx.last_image

    def test_background_swap_changes_output(self, solid_background, sample_params):
        ctx = RenderContext(background=solid_background)
        first = ctx.render(sample_params).tobytes()
        ctx.set_background(Image.new("RGBA", (50, 50), (0, 0, 255, 255)))
        assert ctx.render(sample_params).tobytes() != first


class TestDefaultBackground:
    def test_size(self):
        bg = default_background(seed=1)
        assert bg.size == (CANVAS_WIDTH, CANVAS_HEIGHT)
        assert bg.mode == "RGBA"

    def test_cached(self):
        assert default_background(seed=2) is default_background(seed=2)

    def test_seeded_backgrounds_repeat(self):
        a = make_default_background(seed=7)
        b = make_default_background(seed=7)
        assert a.tobytes() == b.tobytes()

    def test_gradient_stops(self):
        assert [_gradient_lut(ch)[0] for ch in range(3)] == [0x66, 0x7E, 0xEA]
        assert [_gradient_lut(ch)[255] for ch in range(3)] == [0xF0, 0x93, 0xFB]
        assert len(_gradient_lut(0)) == 256


class TestCoverCrop:
    def test_only_centre_of_wide_background_is_visible(self):
        bg = Image.new("RGBA", (300, 100), (255, 0, 0, 255))
        bg.paste((0, 255, 0, 255), (100, 0, 200, 100))
        bg.paste((0, 0, 255, 255), (200, 0, 300, 100))
        img = render(bg, RenderParams.from_inputs(1.0, "", "#000", ""))
        for x in range(0, CANVAS_WIDTH, 7):
            for y in (2, CANVAS_HEIGHT - 3):
                r, g, b, a = img.getpixel((x, y))
                assert g >= 250 and r <= 5 and b <= 5, (x, y)

    def test_only_middle_of_tall_background_is_visible(self):
        bg = Image.new("RGBA", (100, 400), (255, 0, 0, 255))
        bg.paste((0, 255, 0, 255), (0, 100, 100, 300))
        img = render(bg, RenderParams.from_inputs(1.0, "", "#000", ""))
        for y in (2, CANVAS_HEIGHT // 2 - 100, CANVAS_HEIGHT - 3):
            for x in (2, CANVAS_WIDTH - 3):
                r, g, b, _ = img.getpixel((x, y))
                assert g >= 250 and r <= 5 and b <= 5, (x, y)

    @pytest.mark.parametrize("size", [(2, 400), (10, 4000), (4000, 10)])
    def test_extreme_aspect_never_upscales_past_canvas(self, monkeypatch, size):
        sizes = []
        original = Image.Image.resize

        def spy(self, new_size, *args, **kwargs):
            sizes.append(tuple(new_size))
            return original(self, new_size, *args, **kwargs)

        monkeypatch.setattr(Image.Image, "resize", spy)
        img = render(Image.new("RGBA", size, (9, 9, 9, 255)), RenderParams())
        assert img.size == (CANVAS_WIDTH, CANVAS_HEIGHT)
        assert sizes
        assert all(w * h <= CANVAS_WIDTH * CANVAS_HEIGHT for w, h in sizes)


class TestSourceCropBox:
    def test_wide_image_keeps_centre_columns(self):
        fit = fit_image_cover(300, 100, CANVAS_WIDTH, CANVAS_HEIGHT)
        left, top, right, bottom = source_crop_box(fit, 300, 100, CANVAS_WIDTH, CANVAS_HEIGHT)
        assert left == pytest.approx(965.5 / 8.42)
        assert right == pytest.approx(300 - 965.5 / 8.42)
        assert (top, bottom) == (0, pytest.approx(100))

    def test_tall_image_keeps_centre_rows(self):
        fit = fit_image_cover(100, 400, CANVAS_WIDTH, CANVAS_HEIGHT)
        left, top, right, bottom = source_crop_box(fit, 100, 400, CANVAS_WIDTH, CANVAS_HEIGHT)
        assert (left, right) == (0, pytest.approx(100))
        assert top == pytest.approx(769 / 5.95)
        assert bottom == pytest.approx(400 - 769 / 5.95)

    def test_same_aspect_uses_whole_image(self):
        fit = fit_image_cover(1190, 1684, CANVAS_WIDTH, CANVAS_HEIGHT)
        box = source_crop_box(fit, 1190, 1684, CANVAS_WIDTH, CANVAS_HEIGHT)
        assert box == pytest.approx((0, 0, 1190, 1684))


class TestOverflowingCell:
    LONG_TEXT = ("alpha beta gamma delta epsilon zeta eta theta iota kappa "
                 "lambda mu nu xi omicron pi rho sigma")

    def test_wrapped_lines_spill_past_the_cell(self, solid_background):
        params = RenderParams.from_inputs(0.0, self.LONG_TEXT, "#000000", "")
        layout = compute_table_layout(1)
        # one row: box 386..436, cell 406..436, text centred on 421
        assert layout.border_box[1] == 386
        assert layout.cell_origin(0, 0)[1] == 406
        img = render(solid_background, params)
        assert _has_ink(img, (101, 389, 296, 404))   # above the cell, inside the box
        assert _has_ink(img, (101, 438, 296, 458))   # below the bordered box
        # the second cell stays blank
        assert not _has_ink(img, (300, 389, 495, 434))

    def test_wrapper_keeps_every_line(self):
        font = get_bold_font(BASE_FONT_SIZE)
        draw = ImageDraw.Draw(Image.new("RGBA", (10, 10)))
        lines = wrap_text(self.LONG_TEXT, 195, lambda s: draw.textlength(s, font=font))
        assert len(lines) >= 3
        assert " ".join(lines) == self.LONG_TEXT
