from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, Mapping, Optional, Sequence

from signage.services.fitting import normalize_string, split_words, wrap_text
from signage.services.font_registry import Font, select_font
from signage.services.images import Image
from signage.services.layout import Box, CoordinateTable
from signage.services.surface import DrawingSurface
from signage.services.template import (
    Align,
    Field,
    FieldOptions,
    FieldType,
    RenderOptions,
    Separator,
    Template,
    resolve_field_options,
)

logger = logging.getLogger(__name__)

INVERTED_FOREGROUND = "white"
DECIMAL_PLACEHOLDER = "  "
DECIMAL_MEASURE = "00"
INFER_DECIMAL_MIN_DIGITS = 5


@dataclass(frozen=True)
class PriceParts:
    main: str
    decimal: Optional[str]


def split_price(text: str, currency: str, separator: Separator, infer_decimal: bool = True) -> PriceParts:
    """Split a normalized price into its main and decimal parts.

    Only the text after the last currency sign counts. Without a separator,
    long amounts read their last two digits as the decimal part.
    """
    amount = text.split(currency)[-1] if currency else text
    if isinstance(separator, str):
        parts = amount.split(separator) if separator else [amount]
    else:
        parts = separator.split(amount)
    main = parts[0]
    decimal = parts[1] if len(parts) > 1 and parts[1] else None

    if decimal is None:
        if infer_decimal and len(main) >= INFER_DECIMAL_MIN_DIGITS:
            return PriceParts(main=main[:-2], decimal=main[-2:])
        if not infer_decimal:
            return PriceParts(main=main, decimal=DECIMAL_PLACEHOLDER)
    return PriceParts(main=main, decimal=decimal)


def _align_x(align: Align, available: float, used: float) -> float:
    if align == Align.LEFT:
        return 0.0
    if align == Align.RIGHT:
        return available - used
    return (available - used) / 2.0


def _usable(*scales: float) -> bool:
    return all(math.isfinite(s) and s > 0 for s in scales)


def _div(num: float, den: float) -> float:
    if den == 0:
        return math.inf
    return num / den


class ImageCursor:
    """Hands out images in order, one per image slot of the document."""

    def __init__(self, images: Sequence[Image]) -> None:
        self.images = list(images)
        self.index = 0

    def next(self) -> Optional[Image]:
        if self.index >= len(self.images):
            return None
        image = self.images[self.index]
        if not image.data:
            return None
        self.index += 1
        return image


class FieldRenderer:
    """Draws resolved fields onto a surface.

    One instance per document: it owns the image cursor and the actual max
    lengths drawn for the render.
    """

    def __init__(
        self,
        surface: DrawingSurface,
        template: Template,
        field_values: Mapping[str, Optional[str]],
        images: Sequence[Image] = (),
        options: RenderOptions | None = None,
        *,
        template_max_length: Optional[float] = None,
        field_max_lengths: Mapping[str, Optional[float]] | None = None,
        debug: bool = False,
    ) -> None:
        self.surface = surface
        self.template = template
        self.field_values = field_values
        self.cursor = ImageCursor(images)
        self.options = options
        self.template_max_length = template_max_length
        self.field_max_lengths = dict(field_max_lengths or {})
        self.debug = debug
        self._handlers: Dict[FieldType, Callable[[Field, FieldOptions, Box, str, Font, CoordinateTable], None]] = {
            FieldType.TEXT: self._render_text,
            FieldType.STATIC: self._render_text,
            FieldType.PRICE: self._render_price,
        }

    def options_for(self, field_: Field) -> FieldOptions:
        return resolve_field_options(
            self.template,
            field_,
            self.options,
            template_max_length=self.template_max_length,
            field_max_length=self.field_max_lengths.get(field_.id),
        )

    def field_text(self, field_: Field, opts: FieldOptions) -> str:
        raw = opts.text if opts.type == FieldType.STATIC else self.field_values.get(opts.input_id)
        text = normalize_string(raw)
        if opts.filter is not None:
            text = opts.filter(text)
        if opts.max_length:
            text = text[: int(opts.max_length)]
        return text

    def __call__(self, field_: Field, box: Box, table: CoordinateTable) -> None:
        opts = self.options_for(field_)
        s = self.surface
        s.save()
        try:
            s.translate(box.left, box.top)
            if opts.angle:
                s.rotate(opts.angle)
            if self.debug:
                s.stroke_rect(0, 0, box.width, box.height)

            if field_.inverted:
                s.fill_rect(0, 0, box.width, box.height, opts.color)
                s.set_fill_color(INVERTED_FOREGROUND)
            else:
                s.set_fill_color(opts.color)

            if field_.background is not None:
                s.draw_image(field_.background, 0, 0, width=box.width, height=box.height, fit=False)

            if opts.type == FieldType.IMAGE:
                self._render_image(field_, box)
                return

            text = self.field_text(field_, opts)
            if not text:
                return
            s.translate(opts.pad_x, opts.pad_y)
            font = select_font(opts.font, text)
            s.set_font(font)
            self._handlers[opts.type](field_, opts, box, text, font, table)
        finally:
            s.restore()

    def _render_image(self, field_: Field, box: Box) -> None:
        image = self.cursor.next()
        if image is None:
            return
        try:
            self.surface.draw_image(image, 0, 0, width=box.width, height=box.height, fit=True)
        except Exception:
            logger.exception(
                "IMAGE_DRAW_FAILED",
                extra={"field": field_.id, "image_index": self.cursor.index - 1, "mime": image.mime},
            )

    def _render_text(
        self, field_: Field, opts: FieldOptions, box: Box, text: str, font: Font, table: CoordinateTable
    ) -> None:
        s = self.surface
        width = box.width - opts.pad_x * 2
        height = box.height - opts.pad_y * 2
        if width <= 0 or height <= 0:
            logger.warning("FIELD_SCALE_INVALID", extra={"field": field_.id, "reason": "empty_box"})
            return
        line_height = s.current_line_height()
        fit = wrap_text(
            s.measure_text_width,
            split_words(text),
            1,
            width=width,
            height=height,
            max_ratio=opts.max_ratio,
            line_height=line_height,
        )
        if not fit.lines or not math.isfinite(fit.width):
            logger.warning("FIELD_SCALE_INVALID", extra={"field": field_.id, "reason": "no_fit"})
            return

        if len(fit.lines) > 1:
            scale_x = _div(width, fit.width)
            scale_y = _div(height, line_height * len(fit.lines))
            if not _usable(scale_x, scale_y):
                logger.warning("FIELD_SCALE_INVALID", extra={"field": field_.id, "scale": (scale_x, scale_y)})
                return
            s.scale(scale_x, scale_y)
            y = 0.0
            for line in fit.lines:
                s.draw_text(line, _align_x(opts.align, fit.width, s.measure_text_width(line)), y)
                y += line_height
            return

        # Single line: cap the horizontal stretch as well.
        line_width = s.measure_text_width(fit.lines[0])
        scale_y = _div(height, line_height)
        scale_x = min(_div(width, line_width), scale_y * opts.max_h_ratio)
        if not _usable(scale_x, scale_y):
            logger.warning("FIELD_SCALE_INVALID", extra={"field": field_.id, "scale": (scale_x, scale_y)})
            return
        s.translate(_align_x(opts.align, width, line_width * scale_x), 0)
        s.scale(scale_x, scale_y)
        s.draw_text(fit.lines[0], 0, 0)

    def _cap_shift(self, font: Font, base_height: float, main_height: float) -> float:
        metrics = font.metrics
        if metrics is None or metrics.cap_top is None:
            return 0.0
        line = metrics.ascender - metrics.descender
        if line <= 0:
            return 0.0
        top = metrics.ascender - metrics.cap_top
        return top * base_height / line - top * main_height / line

    def _render_price(
        self, field_: Field, opts: FieldOptions, box: Box, text: str, font: Font, table: CoordinateTable
    ) -> None:
        # Currency, main and decimal parts. Currency and decimal share one
        # scale; the main part is taller and may have its own width.
        s = self.surface
        currency = opts.currency
        parts = split_price(text, currency, opts.separator, opts.infer_decimal)
        main, decimal = parts.main, parts.decimal
        measure = s.measure_text_width
        line_height = s.current_line_height()

        if opts.main_width:
            scale_x = _div(box.width - opts.pad_x - opts.main_width, measure(currency + (decimal or DECIMAL_MEASURE)))
            scale_x_main = _div(opts.main_width, measure(main))
        else:
            scale_x = _div(box.width - opts.pad_x, measure(currency + main + (decimal or DECIMAL_MEASURE)))
            scale_x_main = scale_x

        base_height = box.height - opts.pad_y * 2
        main_height = (opts.main_height if opts.main_height is not None else box.height) - opts.pad_y * 2
        scale_y = _div(base_height, line_height)
        scale_y_main = _div(main_height, line_height)
        if not _usable(scale_x, scale_x_main, scale_y, scale_y_main):
            logger.warning(
                "FIELD_SCALE_INVALID",
                extra={"field": field_.id, "scale": (scale_x, scale_x_main, scale_y, scale_y_main)},
            )
            return

        x = 0.0
        s.save()
        s.scale(scale_x, scale_y)
        s.draw_text(currency, x, 0)
        s.restore()
        x += measure(currency)
        table[f"{field_.id}.currency"] = box.left + x * scale_x

        s.save()
        s.translate(0, self._cap_shift(font, base_height, main_height))
        s.scale(scale_x_main, scale_y_main)
        s.draw_text(main, x * scale_x / scale_x_main, 0)
        s.restore()
        x += measure(main) * scale_x_main / scale_x
        table[f"{field_.id}.separator"] = box.left + x * scale_x

        s.scale(scale_x, scale_y)
        s.draw_text(decimal or "", x, 0)
