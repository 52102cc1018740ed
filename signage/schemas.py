from typing import Any

from pydantic import BaseModel
from pydantic import ConfigDict


class FieldDocument(BaseModel):
    model_config = ConfigDict(extra="forbid")

    left: float | str
    top: float | str
    right: float | str
    bottom: float | str
    type: str = "text"
    inverted: bool = False
    input_id: str | None = None
    text: str | None = None
    font: str | list[str] | None = None
    pad_x: float | None = None
    pad_y: float | None = None
    max_ratio: float | None = None
    max_h_ratio: float | None = None
    max_length: float | tuple[float, float] | None = None
    align: str | None = None
    color: str | None = None
    filter: str | None = None
    currency: str | None = None
    separator: str | None = None
    separator_pattern: str | None = None
    main_height: float | None = None
    main_width: float | None = None
    infer_decimal: bool | None = None
    angle: float | None = None
    background: str | None = None


class TemplateDocument(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str | None = None
    width: float
    height: float
    font: str | list[str] = "Helvetica"
    pad_x: float | None = None
    pad_y: float | None = None
    max_ratio: float | None = None
    max_h_ratio: float | None = None
    max_length: float | tuple[float, float] | None = None
    align: str | None = None
    color: str | None = None
    currency: str | None = None
    separator: str | None = None
    separator_pattern: str | None = None
    fields: dict[str, FieldDocument]


class ImagePayload(BaseModel):
    model_config = ConfigDict(extra="forbid")

    data_url: str
    mime: str | None = None


class RenderRequest(BaseModel):
    fields: dict[str, str] | None = None
    sentences: list[str] | None = None
    text: str | None = None
    randomize: bool = False
    seed: int | None = None
    color: str | None = None
    align: str | None = None
    images: list[ImagePayload] | None = None
    debug: bool = False


class TemplateSummary(BaseModel):
    name: str
    width: float
    height: float
    fields: list[str]
    inputs: list[str]


class LayoutResponse(BaseModel):
    template: str
    seed: int
    render_id: str
    rendered: list[str]
    unresolved: list[str]
    coordinates: dict[str, float]
    field_values: dict[str, Any]
