from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Sequence

from signage.services.fields import FieldRenderer
from signage.services.images import Image
from signage.services.layout import CoordinateResolver, CoordinateTable
from signage.services.seeded import SeededRandom, generate_random_seed, resolve_length_spec
from signage.services.surface import DrawingSurface, PdfSurface
from signage.services.template import RenderOptions, Template
from signage.utils.hash import payload_digest

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MaxLengths:
    template: Optional[float]
    fields: Dict[str, Optional[float]]


@dataclass
class RenderResult:
    seed: int
    coordinates: CoordinateTable
    rendered: list[str] = field(default_factory=list)
    unresolved: list[str] = field(default_factory=list)
    pdf: bytes = b""


def compute_actual_max_lengths(template: Template, seed: int) -> MaxLengths:
    """Draw the max lengths of the template, then of each field, from one stream."""
    rng = SeededRandom(seed)
    template_length = resolve_length_spec(template.max_length, rng)
    field_lengths = {fid: resolve_length_spec(f.max_length, rng) for fid, f in template.fields.items()}
    return MaxLengths(template=template_length, fields=field_lengths)


def render_document(
    *,
    surface: DrawingSurface,
    template: Template,
    field_values: Mapping[str, Optional[str]],
    images: Sequence[Image] = (),
    options: RenderOptions | None = None,
    seed: Optional[int] = None,
    debug: bool = False,
) -> RenderResult:
    if seed is None:
        seed = generate_random_seed()
    max_lengths = compute_actual_max_lengths(template, seed)

    renderer = FieldRenderer(
        surface,
        template,
        field_values,
        images,
        options,
        template_max_length=max_lengths.template,
        field_max_lengths=max_lengths.fields,
        debug=debug,
    )
    resolver = CoordinateResolver(template, renderer)
    unresolved = resolver.run()

    return RenderResult(
        seed=int(seed),
        coordinates=dict(resolver.table),
        rendered=list(resolver.resolved),
        unresolved=unresolved,
    )


def render_pdf(
    *,
    template: Template,
    field_values: Mapping[str, Optional[str]],
    images: Sequence[Image] = (),
    options: RenderOptions | None = None,
    seed: Optional[int] = None,
    debug: bool = False,
) -> RenderResult:
    buf = io.BytesIO()
    surface = PdfSurface.for_page(buf, template.width, template.height)
    result = render_document(
        surface=surface,
        template=template,
        field_values=field_values,
        images=images,
        options=options,
        seed=seed,
        debug=debug,
    )
    surface.finish()
    result.pdf = buf.getvalue()

    logger.info(
        "RENDER_DONE",
        extra={
            "template": template.name,
            "seed": result.seed,
            "rendered": len(result.rendered),
            "unresolved": result.unresolved,
            "bytes": len(result.pdf),
        },
    )
    return result


def compute_render_id(
    *,
    template_name: str,
    field_values: Mapping[str, Optional[str]],
    images: Sequence[Image],
    options: RenderOptions | None,
    seed: int,
) -> str:
    payload: Dict[str, Any] = {
        "template": template_name,
        "fields": dict(field_values),
        "images": [img.digest() for img in images],
        "color": options.color if options else None,
        "align": options.align.value if options and options.align else None,
        "seed": int(seed),
    }
    return payload_digest(payload)
