from __future__ import annotations

import enum
from dataclasses import dataclass, fields as dataclass_fields
from typing import Any, Callable, Dict, Mapping, Optional, Pattern, Union

from signage.services.font_registry import FontSpec
from signage.services.fitting import split_words
from signage.services.images import Image

GLOBAL_MAX_LENGTH = 100

Coordinate = Union[float, str]
LengthSpec = Union[float, tuple[float, float], None]
Separator = Union[str, Pattern[str]]
TextFilter = Callable[[str], str]

EDGES = ("left", "right", "top", "bottom")


class FieldType(str, enum.Enum):
    TEXT = "text"
    PRICE = "price"
    IMAGE = "image"
    STATIC = "static"


class Align(str, enum.Enum):
    LEFT = "left"
    RIGHT = "right"
    CENTER = "center"


def all_but_last_word(text: str) -> str:
    return " ".join(split_words(text)[:-1])


def last_word(text: str) -> str:
    return " ".join(split_words(text)[-1:])


TEXT_FILTERS: Dict[str, TextFilter] = {
    "all_but_last_word": all_but_last_word,
    "last_word": last_word,
}


@dataclass(frozen=True)
class Field:
    id: str
    left: Coordinate
    top: Coordinate
    right: Coordinate
    bottom: Coordinate
    type: FieldType = FieldType.TEXT
    inverted: bool = False
    input_id: Optional[str] = None
    text: Optional[str] = None
    font: Optional[FontSpec] = None
    pad_x: Optional[float] = None
    pad_y: Optional[float] = None
    max_ratio: Optional[float] = None
    max_h_ratio: Optional[float] = None
    max_length: LengthSpec = None
    align: Optional[Align] = None
    color: Optional[str] = None
    filter: Optional[TextFilter] = None
    currency: Optional[str] = None
    separator: Optional[Separator] = None
    main_height: Optional[float] = None
    main_width: Optional[float] = None
    infer_decimal: Optional[bool] = None
    angle: Optional[float] = None
    background: Optional[Image] = None

    @property
    def source_id(self) -> str:
        return self.input_id or self.id


@dataclass(frozen=True)
class Template:
    name: str
    width: float
    height: float
    font: FontSpec
    fields: Mapping[str, Field]
    pad_x: Optional[float] = None
    pad_y: Optional[float] = None
    max_ratio: Optional[float] = None
    max_h_ratio: Optional[float] = None
    max_length: LengthSpec = None
    align: Optional[Align] = None
    color: Optional[str] = None
    currency: Optional[str] = None
    separator: Optional[Separator] = None

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"INVALID_TEMPLATE_SIZE: {self.name}")
        for key, f in self.fields.items():
            if key != f.id:
                raise ValueError(f"FIELD_ID_MISMATCH: {key} != {f.id}")


@dataclass(frozen=True)
class RenderOptions:
    """Call-time options, layered below template and field values."""

    color: Optional[str] = None
    align: Optional[Align] = None


@dataclass(frozen=True)
class FieldOptions:
    """Effective options of one field after layering.

    Precedence, lowest first: built-in defaults, render options, template,
    field. ``None`` never overrides a lower layer.
    """

    input_id: str
    font: FontSpec
    type: FieldType = FieldType.TEXT
    pad_x: float = 0.0
    pad_y: float = 0.0
    max_length: Optional[float] = GLOBAL_MAX_LENGTH
    max_ratio: float = 2.0
    max_h_ratio: float = 4.0
    align: Align = Align.CENTER
    currency: str = "$"
    separator: Separator = "."
    color: str = "black"
    text: Optional[str] = None
    filter: Optional[TextFilter] = None
    main_height: Optional[float] = None
    main_width: Optional[float] = None
    infer_decimal: bool = True
    angle: Optional[float] = None


_LAYERED = {f.name for f in dataclass_fields(FieldOptions)} - {"input_id", "font", "max_length"}


def _overlay(values: Dict[str, Any], layer: Any) -> None:
    for name in _LAYERED:
        value = getattr(layer, name, None)
        if value is not None:
            values[name] = value


def resolve_field_options(
    template: Template,
    field_: Field,
    options: RenderOptions | None = None,
    *,
    template_max_length: Optional[float] = None,
    field_max_length: Optional[float] = None,
) -> FieldOptions:
    values: Dict[str, Any] = {}
    for layer in (options or RenderOptions(), template, field_):
        _overlay(values, layer)

    max_length: Optional[float] = GLOBAL_MAX_LENGTH
    for actual in (template_max_length, field_max_length):
        if actual is not None:
            max_length = actual

    return FieldOptions(
        input_id=field_.source_id,
        font=field_.font if field_.font is not None else template.font,
        max_length=max_length,
        **values,
    )
