import logging
import re

import pytest
from conftest import RecordingSurface, make_template

from signage.services.fields import DECIMAL_PLACEHOLDER, FieldRenderer, ImageCursor, split_price
from signage.services.font_registry import Font, FontFallbackSet, FontMetrics, select_font
from signage.services.images import Image
from signage.services.layout import Box
from signage.services.render import render_document
from signage.services.template import (
    Align,
    Field,
    FieldType,
    RenderOptions,
    TEXT_FILTERS,
    resolve_field_options,
)


def _box(field_: Field) -> Box:
    return Box(left=field_.left, top=field_.top, right=field_.right, bottom=field_.bottom)


def test_split_price_with_separator() -> None:
    parts = split_price("$12.50", "$", ".")
    assert (parts.main, parts.decimal) == ("12", "50")


def test_split_price_uses_text_after_last_currency() -> None:
    parts = split_price("$5 $7.25", "$", ".")
    assert (parts.main, parts.decimal) == ("7", "25")


def test_split_price_with_pattern_separator() -> None:
    parts = split_price("$1,99", "$", re.compile(r"[.,]"))
    assert (parts.main, parts.decimal) == ("1", "99")


def test_split_price_infers_decimal_on_long_amounts() -> None:
    assert split_price("$12999", "$", ".") == split_price("$129.99", "$", ".")
    short = split_price("$1999", "$", ".")
    assert (short.main, short.decimal) == ("1999", None)


def test_split_price_placeholder_without_inference() -> None:
    parts = split_price("$12999", "$", ".", infer_decimal=False)
    assert (parts.main, parts.decimal) == ("12999", DECIMAL_PLACEHOLDER)


def test_price_field_publishes_currency_and_separator(surface: RecordingSurface) -> None:
    price = Field(id="PRICE", left=10, top=0, right=110, bottom=40, type=FieldType.PRICE)
    template = make_template(price)
    renderer = FieldRenderer(surface, template, {"PRICE": "$12.50"})
    table: dict[str, float] = {}

    renderer(price, _box(price), table)

    assert surface.texts() == ["$", "12", "50"]
    assert 10 <= table["PRICE.currency"] <= 110
    assert 10 <= table["PRICE.separator"] <= 110
    assert table["PRICE.currency"] < table["PRICE.separator"]
    # "$1250" is 30 units wide stretched over 100.
    assert table["PRICE.currency"] == pytest.approx(10 + 6 * 100 / 30)
    assert table["PRICE.separator"] == pytest.approx(10 + 18 * 100 / 30)


def test_price_main_width_gives_main_part_its_own_scale(surface: RecordingSurface) -> None:
    price = Field(id="P", left=0, top=0, right=200, bottom=60, type=FieldType.PRICE, main_width=120)
    renderer = FieldRenderer(surface, make_template(price), {"P": "$9.99"})
    table: dict[str, float] = {}

    renderer(price, _box(price), table)

    # Currency plus decimal share the 80 units left by the main part.
    assert table["P.currency"] == pytest.approx(6 * 80 / 18)
    assert table["P.separator"] == pytest.approx(6 * 80 / 18 + 120)


def test_images_are_consumed_in_field_order(surface: RecordingSurface) -> None:
    first = Field(id="IMG1", left=0, top=0, right=100, bottom=100, type=FieldType.IMAGE)
    second = Field(id="IMG2", left=100, top=0, right=200, bottom=100, type=FieldType.IMAGE)
    images = [Image(b"a", "image/png"), Image(b"b", "image/png"), Image(b"c", "image/png")]

    result = render_document(surface=surface, template=make_template(first, second), field_values={}, images=images, seed=1)

    drawn = [c[1] for c in surface.named("draw_image")]
    assert drawn == images[:2]
    assert result.rendered == ["IMG1", "IMG2"]


def test_failing_image_is_logged_and_rendering_continues(caplog) -> None:
    surface = RecordingSurface(failing_images={b"a"})
    first = Field(id="IMG1", left=0, top=0, right=100, bottom=100, type=FieldType.IMAGE)
    second = Field(id="IMG2", left=100, top=0, right=200, bottom=100, type=FieldType.IMAGE)
    images = [Image(b"a", "image/png"), Image(b"b", "image/png")]

    with caplog.at_level(logging.ERROR):
        result = render_document(surface=surface, template=make_template(first, second), field_values={}, images=images, seed=1)

    assert [c[1] for c in surface.named("draw_image")] == [images[1]]
    assert result.rendered == ["IMG1", "IMG2"]
    assert any(r.getMessage() == "IMAGE_DRAW_FAILED" for r in caplog.records)


def test_image_cursor_does_not_advance_on_empty_images() -> None:
    cursor = ImageCursor([Image(b"")])
    assert cursor.next() is None
    assert cursor.index == 0
    assert ImageCursor([]).next() is None


def test_multi_line_text(surface: RecordingSurface) -> None:
    text = Field(id="T", left=0, top=0, right=200, bottom=50)
    renderer = FieldRenderer(surface, make_template(text), {"T": "the quick brown fox"})

    renderer(text, _box(text), {})

    assert surface.named("draw_text") == [("draw_text", "THE QUICK", 0.0, 0.0), ("draw_text", "BROWN FOX", 0.0, 12.0)]
    assert surface.named("scale") == [("scale", 200 / 54, 50 / 24)]


def test_single_line_horizontal_stretch_is_capped(surface: RecordingSurface) -> None:
    text = Field(id="T", left=0, top=0, right=1000, bottom=12)
    renderer = FieldRenderer(surface, make_template(text), {"T": "hi"})

    renderer(text, _box(text), {})

    assert surface.named("scale") == [("scale", 4.0, 1.0)]
    # Centered: (1000 - 12 * 4) / 2
    assert ("translate", 476.0, 0) in surface.calls
    assert surface.texts() == ["HI"]


def test_right_aligned_single_line(surface: RecordingSurface) -> None:
    text = Field(id="T", left=0, top=0, right=1000, bottom=12, align=Align.RIGHT)
    FieldRenderer(surface, make_template(text), {"T": "hi"})(text, _box(text), {})
    assert ("translate", 952.0, 0) in surface.calls


def test_degenerate_box_is_skipped(surface: RecordingSurface, caplog) -> None:
    text = Field(id="T", left=50, top=0, right=50, bottom=40)
    renderer = FieldRenderer(surface, make_template(text), {"T": "hi"})

    with caplog.at_level(logging.WARNING):
        renderer(text, _box(text), {})

    assert surface.texts() == []
    assert any(r.getMessage() == "FIELD_SCALE_INVALID" for r in caplog.records)
    assert surface.calls[-1] == ("restore",)


def test_padding_wider_than_box_leaves_field_blank(surface: RecordingSurface, caplog) -> None:
    narrow = Field(id="N", left=0, top=0, right=15, bottom=40, pad_x=10)
    title = Field(id="T", left=0, top=50, right=300, bottom=90)
    template = make_template(narrow, title)

    with caplog.at_level(logging.WARNING):
        result = render_document(surface=surface, template=template, field_values={"N": "two words", "T": "open"}, seed=1)

    assert result.rendered == ["N", "T"]
    assert surface.texts() == ["OPEN"]
    assert any(r.getMessage() == "FIELD_SCALE_INVALID" for r in caplog.records)


def test_price_main_part_is_aligned_on_cap_height(surface: RecordingSurface) -> None:
    metrics = FontMetrics(1000, 800, -200, frozenset(map(ord, "$0123456789")), cap_top=700)
    price = Field(
        id="P", left=0, top=0, right=100, bottom=40, type=FieldType.PRICE, main_height=60, font=Font("Display", metrics)
    )
    FieldRenderer(surface, make_template(price), {"P": "$12.50"})(price, _box(price), {})

    # (ascender - cap_top) * (base - main) / (ascender - descender)
    shift = 100 * 40 / 1000 - 100 * 60 / 1000
    assert shift == -2.0
    calls = surface.calls
    moved = calls.index(("translate", 0, shift))
    main_scale = next(i for i, c in enumerate(calls) if c[0] == "scale" and i > moved)
    assert calls[main_scale] == ("scale", pytest.approx(100 / 30), pytest.approx(60 / 12))
    assert calls[main_scale + 1][:2] == ("draw_text", "12")


def test_price_without_font_metrics_is_not_shifted(surface: RecordingSurface) -> None:
    price = Field(id="P", left=0, top=0, right=100, bottom=40, type=FieldType.PRICE, main_height=60)
    FieldRenderer(surface, make_template(price), {"P": "$12.50"})(price, _box(price), {})
    assert [c[2] for c in surface.named("translate")] == [0, 0.0, 0.0]


def test_inverted_field_fills_box(surface: RecordingSurface) -> None:
    text = Field(id="T", left=0, top=0, right=100, bottom=20, inverted=True, color="red")
    FieldRenderer(surface, make_template(text), {"T": "sale"})(text, _box(text), {})

    assert ("fill_rect", 0, 0, 100, 20, "red") in surface.calls
    assert ("set_fill_color", "white") in surface.calls


def test_static_text_and_filters(surface: RecordingSurface) -> None:
    static = Field(id="S", left=0, top=0, right=100, bottom=20, type=FieldType.STATIC, text="for")
    head = Field(id="H", left=0, top=20, right=100, bottom=40, input_id="NAME", filter=TEXT_FILTERS["all_but_last_word"])
    tail = Field(id="L", left=0, top=40, right=100, bottom=60, input_id="NAME", filter=TEXT_FILTERS["last_word"])
    template = make_template(static, head, tail)

    render_document(surface=surface, template=template, field_values={"NAME": "fresh red apples"}, seed=1)

    texts = surface.texts()
    assert "FOR" in texts
    assert "APPLES" in texts
    assert "FRESH RED" in " ".join(texts)


def test_max_length_truncates_value(surface: RecordingSurface) -> None:
    text = Field(id="T", left=0, top=0, right=600, bottom=20, max_length=5)
    render_document(surface=surface, template=make_template(text), field_values={"T": "abcdefghij"}, seed=1)
    assert surface.texts() == ["ABCDE"]


def test_empty_value_draws_nothing_but_counts_as_rendered(surface: RecordingSurface) -> None:
    text = Field(id="T", left=0, top=0, right=600, bottom=20)
    result = render_document(surface=surface, template=make_template(text), field_values={}, seed=1)
    assert surface.texts() == []
    assert result.rendered == ["T"]


def test_debug_outlines_boxes(surface: RecordingSurface) -> None:
    text = Field(id="T", left=0, top=0, right=60, bottom=20, angle=15)
    FieldRenderer(surface, make_template(text), {}, debug=True)(text, _box(text), {})
    assert ("rotate", 15) in surface.calls
    assert ("stroke_rect", 0, 0, 60, 20) in surface.calls


def test_option_layers() -> None:
    plain = Field(id="A", left=0, top=0, right=1, bottom=1)
    green = Field(id="B", left=0, top=0, right=1, bottom=1, color="green")
    call = RenderOptions(color="blue", align=Align.LEFT)

    defaults = resolve_field_options(make_template(plain), plain)
    assert (defaults.color, defaults.align, defaults.max_length) == ("black", Align.CENTER, 100)

    opts = resolve_field_options(make_template(plain, color="red"), plain, call)
    assert (opts.color, opts.align) == ("red", Align.LEFT)

    opts = resolve_field_options(make_template(green, color="red"), green, call)
    assert opts.color == "green"
    assert opts.input_id == "B"


def test_select_font_prefers_best_coverage() -> None:
    latin = Font("Latin", FontMetrics(1000, 800, -200, frozenset(map(ord, "ABC"))))
    hebrew = Font("Hebrew", FontMetrics(1000, 800, -200, frozenset(map(ord, "אב"))))
    bare = Font("Bare")

    assert select_font(FontFallbackSet((latin, hebrew)), "אב").name == "Hebrew"
    assert select_font(FontFallbackSet((latin, hebrew)), "123").name == "Latin"
    assert select_font(FontFallbackSet((bare, hebrew)), "AB").name == "Hebrew"
    assert select_font(FontFallbackSet((bare, Font("Other"))), "AB").name == "Bare"
    assert select_font(latin, "אב") is latin


def test_empty_fallback_set_is_rejected() -> None:
    with pytest.raises(ValueError):
        FontFallbackSet(())
