from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence

from pydantic import ValidationError

from signage.schemas import FieldDocument, TemplateDocument
from signage.services.font_registry import load_font_spec
from signage.services.images import load_image_file
from signage.services.template import TEXT_FILTERS, Align, Field, FieldType, Separator, Template

_TEMPLATE_SUFFIX = ".json"


def builtin_template_dir() -> Path:
    return Path(__file__).resolve().parents[1] / "templates"


def _template_dirs(extra_dir: str | None) -> list[Path]:
    dirs = [builtin_template_dir()]
    if extra_dir:
        dirs.insert(0, Path(extra_dir))
    return dirs


def list_templates(extra_dir: str | None = None) -> list[str]:
    names: set[str] = set()
    for d in _template_dirs(extra_dir):
        if not d.is_dir():
            continue
        for item in d.iterdir():
            if item.suffix == _TEMPLATE_SUFFIX:
                names.add(item.stem)
    return sorted(names)


def list_builtin_templates() -> list[str]:
    return list_templates(None)


def _separator(value: Optional[str], pattern: Optional[str]) -> Optional[Separator]:
    if pattern:
        return re.compile(pattern)
    return value


def _align(value: Optional[str]) -> Optional[Align]:
    if value is None:
        return None
    try:
        return Align(value)
    except ValueError as e:
        raise ValueError(f"INVALID_ALIGN: {value}") from e


def _field_from_document(field_id: str, doc: FieldDocument, base_dir: Path, font_dir: str | None) -> Field:
    try:
        field_type = FieldType(doc.type)
    except ValueError as e:
        raise ValueError(f"INVALID_FIELD_TYPE: {field_id}: {doc.type}") from e

    text_filter = None
    if doc.filter is not None:
        if doc.filter not in TEXT_FILTERS:
            raise ValueError(f"UNKNOWN_FILTER: {field_id}: {doc.filter}")
        text_filter = TEXT_FILTERS[doc.filter]

    return Field(
        id=field_id,
        left=doc.left,
        top=doc.top,
        right=doc.right,
        bottom=doc.bottom,
        type=field_type,
        inverted=doc.inverted,
        input_id=doc.input_id,
        text=doc.text,
        font=load_font_spec(doc.font, font_dir) if doc.font is not None else None,
        pad_x=doc.pad_x,
        pad_y=doc.pad_y,
        max_ratio=doc.max_ratio,
        max_h_ratio=doc.max_h_ratio,
        max_length=doc.max_length,
        align=_align(doc.align),
        color=doc.color,
        filter=text_filter,
        currency=doc.currency,
        separator=_separator(doc.separator, doc.separator_pattern),
        main_height=doc.main_height,
        main_width=doc.main_width,
        infer_decimal=doc.infer_decimal,
        angle=doc.angle,
        background=load_image_file(base_dir / doc.background) if doc.background else None,
    )


def template_from_dict(
    data: dict[str, Any],
    *,
    name: str | None = None,
    base_dir: Path | None = None,
    font_dir: str | None = None,
) -> Template:
    try:
        doc = TemplateDocument.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"INVALID_TEMPLATE: {name or data.get('name')}: {e}") from e

    base = base_dir or Path.cwd()
    return Template(
        name=str(name or doc.name or "custom"),
        width=doc.width,
        height=doc.height,
        font=load_font_spec(doc.font, font_dir),
        fields={fid: _field_from_document(fid, f, base, font_dir) for fid, f in doc.fields.items()},
        pad_x=doc.pad_x,
        pad_y=doc.pad_y,
        max_ratio=doc.max_ratio,
        max_h_ratio=doc.max_h_ratio,
        max_length=doc.max_length,
        align=_align(doc.align),
        color=doc.color,
        currency=doc.currency,
        separator=_separator(doc.separator, doc.separator_pattern),
    )


def _load_file(path: Path) -> dict[str, Any]:
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"INVALID_TEMPLATE: not an object: {path}")
    return data


def find_template_file(name: str, extra_dir: str | None = None) -> Path:
    for d in _template_dirs(extra_dir):
        candidate = d / f"{name}{_TEMPLATE_SUFFIX}"
        if candidate.is_file():
            return candidate
    raise FileNotFoundError(f"UNKNOWN_TEMPLATE: {name}")


def load_template(name_or_path: str, *, template_dir: str | None = None, font_dir: str | None = None) -> Template:
    path = Path(name_or_path)
    if not (path.suffix == _TEMPLATE_SUFFIX and path.is_file()):
        path = find_template_file(name_or_path, template_dir)
    data = _load_file(path)
    return template_from_dict(data, name=path.stem, base_dir=path.parent, font_dir=font_dir)


def collect_input_ids(templates: Iterable[Template]) -> list[str]:
    """Text inputs of ``templates`` in first-seen order, shared ids merged."""
    seen: dict[str, None] = {}
    for template in templates:
        for f in template.fields.values():
            if f.type in (FieldType.IMAGE, FieldType.STATIC):
                continue
            seen.setdefault(f.source_id, None)
    return list(seen)


def assign_sentences(input_ids: Sequence[str], sentences: Sequence[str]) -> dict[str, Optional[str]]:
    return {input_id: (sentences[i] if i < len(sentences) else None) for i, input_id in enumerate(input_ids)}
