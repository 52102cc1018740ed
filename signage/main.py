import logging
import os

import uvicorn
from fastapi import FastAPI, Header, HTTPException, Response
from dotenv import load_dotenv

from signage.config import load_settings
from signage.schemas import LayoutResponse, RenderRequest, TemplateSummary
from signage.services.fitting import split_sentences, split_words
from signage.services.font_registry import get_font_registry
from signage.services.images import image_from_data_url
from signage.services.render import RenderResult, compute_render_id, render_pdf
from signage.services.seeded import generate_random_seed, shuffle_images, shuffle_sentences
from signage.services.template import Align, RenderOptions, Template
from signage.services.template_loader import assign_sentences, collect_input_ids, list_templates, load_template

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)
settings = load_settings()

app = FastAPI(title="signage-engine")


def _check_key(x_internal_key: str) -> None:
    if x_internal_key != settings.INTERNAL_API_KEY:
        raise HTTPException(status_code=401, detail="Unauthorized")


def _load(name: str) -> Template:
    try:
        return load_template(name, template_dir=settings.TEMPLATE_DIR or None, font_dir=settings.FONT_DIR or None)
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail=f"No such template: {name}")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


def _bound_words(value: str | None) -> str | None:
    if value is None:
        return None
    return " ".join(split_words(value.strip())[: settings.MAX_WORDS_PER_FIELD])


def _field_values(template: Template, payload: RenderRequest, seed: int) -> dict[str, str | None]:
    if payload.fields is not None:
        values: dict[str, str | None] = dict(payload.fields)
    else:
        if payload.sentences is None and payload.text:
            sentences = [s.strip() for s in split_sentences(payload.text) if s.strip()]
        else:
            sentences = list(payload.sentences or [])
        if payload.randomize:
            sentences = shuffle_sentences(sentences, seed)
        values = assign_sentences(collect_input_ids([template]), sentences)
    return {k: _bound_words(v) for k, v in values.items()}


def _render(name: str, payload: RenderRequest) -> tuple[Template, RenderResult, str, dict[str, str | None]]:
    template = _load(name)
    seed = payload.seed if payload.seed is not None else generate_random_seed()
    try:
        images = [image_from_data_url(i.data_url, i.mime) for i in (payload.images or [])]
        if payload.randomize:
            images = shuffle_images(images, seed)
        options = RenderOptions(color=payload.color, align=Align(payload.align) if payload.align else None)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    field_values = _field_values(template, payload, seed)
    result = render_pdf(
        template=template,
        field_values=field_values,
        images=images,
        options=options,
        seed=seed,
        debug=payload.debug,
    )
    render_id = compute_render_id(
        template_name=template.name,
        field_values=field_values,
        images=images,
        options=options,
        seed=result.seed,
    )
    return template, result, render_id, field_values


@app.get("/health")
def health() -> dict:
    return {
        "ok": True,
        "version": os.getenv("GIT_COMMIT_SHA") or "unknown",
    }


@app.get("/fonts")
def fonts_endpoint(x_internal_key: str = Header(default="", alias="x-internal-key")) -> list[dict]:
    _check_key(x_internal_key)

    fonts = get_font_registry(settings.FONT_DIR or None)
    return [
        {
            "family": str(f.get("family") or ""),
            "source": str(f.get("source") or "unknown"),
        }
        for f in fonts
        if str(f.get("family") or "").strip()
    ]


@app.get("/templates", response_model=list[TemplateSummary])
def templates_endpoint(x_internal_key: str = Header(default="", alias="x-internal-key")) -> list[TemplateSummary]:
    _check_key(x_internal_key)

    out: list[TemplateSummary] = []
    for name in list_templates(settings.TEMPLATE_DIR or None):
        template = _load(name)
        out.append(
            TemplateSummary(
                name=name,
                width=template.width,
                height=template.height,
                fields=list(template.fields.keys()),
                inputs=collect_input_ids([template]),
            )
        )
    return out


@app.post("/templates/{name}/render")
def render_endpoint(
    name: str,
    payload: RenderRequest,
    x_internal_key: str = Header(default="", alias="x-internal-key"),
) -> Response:
    _check_key(x_internal_key)

    template, result, render_id, _values = _render(name, payload)
    logger.info("/render", extra={"template": template.name, "seed": result.seed, "render_id": render_id})
    return Response(
        content=result.pdf,
        media_type="application/pdf",
        headers={
            "X-Seed": str(result.seed),
            "X-Render-Id": render_id,
            "Content-Disposition": f'inline; filename="{template.name}-{result.seed}.pdf"',
        },
    )


@app.post("/templates/{name}/layout", response_model=LayoutResponse)
def layout_endpoint(
    name: str,
    payload: RenderRequest,
    x_internal_key: str = Header(default="", alias="x-internal-key"),
) -> LayoutResponse:
    _check_key(x_internal_key)

    template, result, render_id, values = _render(name, payload)
    return LayoutResponse(
        template=template.name,
        seed=result.seed,
        render_id=render_id,
        rendered=result.rendered,
        unresolved=result.unresolved,
        coordinates=result.coordinates,
        field_values=values,
    )


def run() -> None:
    uvicorn.run(app, host="0.0.0.0", port=settings.SERVICE_PORT)
