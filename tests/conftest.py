from typing import Any

import pytest

from signage.services.font_registry import Font
from signage.services.images import Image
from signage.services.template import Field, Template

CHAR_WIDTH = 6.0
LINE_HEIGHT = 12.0


class RecordingSurface:
    """In-memory surface: every char is CHAR_WIDTH wide, lines are LINE_HEIGHT tall."""

    def __init__(self, failing_images: set[bytes] | None = None) -> None:
        self.calls: list[tuple[Any, ...]] = []
        self.failing_images = set(failing_images or ())
        self.font: Font | None = None

    def save(self) -> None:
        self.calls.append(("save",))

    def restore(self) -> None:
        self.calls.append(("restore",))

    def translate(self, dx: float, dy: float) -> None:
        self.calls.append(("translate", dx, dy))

    def scale(self, sx: float, sy: float) -> None:
        self.calls.append(("scale", sx, sy))

    def rotate(self, degrees: float) -> None:
        self.calls.append(("rotate", degrees))

    def fill_rect(self, x: float, y: float, width: float, height: float, color: str | None = None) -> None:
        self.calls.append(("fill_rect", x, y, width, height, color))

    def stroke_rect(self, x: float, y: float, width: float, height: float) -> None:
        self.calls.append(("stroke_rect", x, y, width, height))

    def set_fill_color(self, color: str) -> None:
        self.calls.append(("set_fill_color", color))

    def set_font(self, font: Font) -> None:
        self.font = font
        self.calls.append(("set_font", font.name))

    def draw_text(self, text: str, x: float, y: float) -> None:
        self.calls.append(("draw_text", text, x, y))

    def measure_text_width(self, text: str) -> float:
        return CHAR_WIDTH * len(text)

    def current_line_height(self) -> float:
        return LINE_HEIGHT

    def draw_image(self, image: Image, x: float, y: float, *, width: float, height: float, fit: bool = True) -> None:
        if image.data in self.failing_images:
            raise ValueError("broken image")
        self.calls.append(("draw_image", image, x, y, width, height, fit))

    def named(self, name: str) -> list[tuple[Any, ...]]:
        return [c for c in self.calls if c[0] == name]

    def texts(self) -> list[str]:
        return [c[1] for c in self.named("draw_text")]


@pytest.fixture
def surface() -> RecordingSurface:
    return RecordingSurface()


def make_template(*fields: Field, **kwargs: Any) -> Template:
    kwargs.setdefault("name", "test")
    kwargs.setdefault("width", 600)
    kwargs.setdefault("height", 800)
    kwargs.setdefault("font", Font(name="Helvetica"))
    return Template(fields={f.id: f for f in fields}, **kwargs)
