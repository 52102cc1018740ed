from __future__ import annotations

import io
import tempfile
from pathlib import Path
from typing import Protocol

from pdfrw import PdfReader
from pdfrw.buildxobj import pagexobj
from pdfrw.toreportlab import makerl
from reportlab.lib import colors
from reportlab.lib.utils import ImageReader
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfgen.canvas import Canvas

from signage.services.font_registry import DEFAULT_FONT_FAMILY, Font
from signage.services.images import Image

# Working font size. Every field is scaled to its box, so the size only sets
# the measurement unit for widths and line heights.
FONT_SIZE_PT = 12.0


class DrawingSurface(Protocol):
    """What the layout engine needs from an output device.

    Coordinates are top-left based with y growing downwards; ``draw_text``
    takes the top of the line box, not the baseline.
    """

    def save(self) -> None: ...

    def restore(self) -> None: ...

    def translate(self, dx: float, dy: float) -> None: ...

    def scale(self, sx: float, sy: float) -> None: ...

    def rotate(self, degrees: float) -> None: ...

    def fill_rect(self, x: float, y: float, width: float, height: float, color: str | None = None) -> None: ...

    def stroke_rect(self, x: float, y: float, width: float, height: float) -> None: ...

    def set_fill_color(self, color: str) -> None: ...

    def set_font(self, font: Font) -> None: ...

    def draw_text(self, text: str, x: float, y: float) -> None: ...

    def measure_text_width(self, text: str) -> float: ...

    def current_line_height(self) -> float: ...

    def draw_image(self, image: Image, x: float, y: float, *, width: float, height: float, fit: bool = True) -> None: ...


def parse_color(value: str | None) -> colors.Color:
    raw = str(value or "black").strip()
    try:
        return colors.HexColor(raw) if raw.startswith("#") else colors.toColor(raw)
    except Exception:
        return colors.black


class PdfSurface:
    """DrawingSurface over a reportlab canvas created with ``bottomup=0``."""

    def __init__(self, canvas: Canvas) -> None:
        if canvas.bottomup:
            raise ValueError("PdfSurface requires a top-left origin canvas (bottomup=0)")
        self.canvas = canvas
        self.font_name = DEFAULT_FONT_FAMILY
        self.canvas.setFont(self.font_name, FONT_SIZE_PT)

    @classmethod
    def for_page(cls, output: io.BytesIO | str, width: float, height: float) -> "PdfSurface":
        return cls(Canvas(output, pagesize=(float(width), float(height)), bottomup=0))

    def save(self) -> None:
        self.canvas.saveState()

    def restore(self) -> None:
        self.canvas.restoreState()

    def translate(self, dx: float, dy: float) -> None:
        self.canvas.translate(float(dx), float(dy))

    def scale(self, sx: float, sy: float) -> None:
        self.canvas.scale(float(sx), float(sy))

    def rotate(self, degrees: float) -> None:
        self.canvas.rotate(float(degrees))

    def fill_rect(self, x: float, y: float, width: float, height: float, color: str | None = None) -> None:
        if color is not None:
            self.set_fill_color(color)
        self.canvas.rect(float(x), float(y), float(width), float(height), stroke=0, fill=1)

    def stroke_rect(self, x: float, y: float, width: float, height: float) -> None:
        self.canvas.setLineWidth(0.5)
        self.canvas.rect(float(x), float(y), float(width), float(height), stroke=1, fill=0)

    def set_fill_color(self, color: str) -> None:
        self.canvas.setFillColor(parse_color(color))

    def set_font(self, font: Font) -> None:
        self.font_name = font.name
        self.canvas.setFont(font.name, FONT_SIZE_PT)

    def _ascent_descent(self) -> tuple[float, float]:
        ascent, descent = pdfmetrics.getAscentDescent(self.font_name, FONT_SIZE_PT)
        return float(ascent), float(descent)

    def draw_text(self, text: str, x: float, y: float) -> None:
        ascent, _ = self._ascent_descent()
        self.canvas.drawString(float(x), float(y) + ascent, text)

    def measure_text_width(self, text: str) -> float:
        return float(pdfmetrics.stringWidth(text, self.font_name, FONT_SIZE_PT))

    def current_line_height(self) -> float:
        ascent, descent = self._ascent_descent()
        return ascent - descent

    def draw_image(self, image: Image, x: float, y: float, *, width: float, height: float, fit: bool = True) -> None:
        if image.is_svg:
            self._draw_svg(image, x, y, width=width, height=height, fit=fit)
            return
        img = ImageReader(io.BytesIO(image.data))
        self.canvas.saveState()
        # Images are drawn bottom-up: anchor at the box bottom and flip y.
        self.canvas.translate(float(x), float(y) + float(height))
        self.canvas.scale(1, -1)
        self.canvas.drawImage(
            img,
            0,
            0,
            width=float(width),
            height=float(height),
            mask="auto",
            preserveAspectRatio=fit,
            anchor="c",
        )
        self.canvas.restoreState()

    def _draw_svg(self, image: Image, x: float, y: float, *, width: float, height: float, fit: bool) -> None:
        try:
            import cairosvg
        except Exception as e:
            raise ValueError("SVG_IMAGE_REQUIRES_CAIROSVG") from e

        with tempfile.TemporaryDirectory(prefix="signage_svg_") as td:
            pdf_path = Path(td) / "image.pdf"
            cairosvg.svg2pdf(bytestring=image.data, write_to=str(pdf_path))
            svg_pdf = PdfReader(str(pdf_path))
            if not svg_pdf.pages:
                raise ValueError("INVALID_SVG_IMAGE: no pages")
            mb = svg_pdf.pages[0].MediaBox
            src_w = float(mb[2]) - float(mb[0])
            src_h = float(mb[3]) - float(mb[1])
            if src_w <= 0 or src_h <= 0:
                raise ValueError("INVALID_SVG_IMAGE: empty MediaBox")

            scale_x = float(width) / src_w
            scale_y = float(height) / src_h
            if fit:
                scale_x = scale_y = min(scale_x, scale_y)
            draw_w = src_w * scale_x
            draw_h = src_h * scale_y

            xobj = pagexobj(svg_pdf.pages[0])
            self.canvas.saveState()
            # Forms are bottom-up: anchor at the box bottom and flip y.
            self.canvas.translate(float(x) + (float(width) - draw_w) / 2.0, float(y) + (float(height) + draw_h) / 2.0)
            self.canvas.scale(scale_x, -scale_y)
            self.canvas.doForm(makerl(self.canvas, xobj))
            self.canvas.restoreState()

    def finish(self) -> None:
        self.canvas.showPage()
        self.canvas.save()
