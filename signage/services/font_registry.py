from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterable, Optional, Union

from fontTools.pens.boundsPen import BoundsPen
from fontTools.ttLib import TTFont as FTFont
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont as RLTTFont

logger = logging.getLogger(__name__)

DEFAULT_FONT_FAMILY = "Helvetica"

# Glyph with a flat top bar, used to find the visual cap height.
CAP_REFERENCE_GLYPH = "T"

_FONT_FILE_SUFFIXES = {".ttf", ".otf"}

_PDF_CORE_FONTS: list[str] = [
    "Courier",
    "Courier-Bold",
    "Courier-Oblique",
    "Courier-BoldOblique",
    "Helvetica",
    "Helvetica-Bold",
    "Helvetica-Oblique",
    "Helvetica-BoldOblique",
    "Times-Roman",
    "Times-Bold",
    "Times-Italic",
    "Times-BoldItalic",
    "Symbol",
    "ZapfDingbats",
]


@dataclass(frozen=True)
class FontMetrics:
    """Glyph data needed for layout, in font units."""

    units_per_em: float
    ascender: float
    descender: float
    codepoints: frozenset[int]
    cap_top: float | None = None

    def has_glyph(self, ch: str) -> bool:
        return ord(ch) in self.codepoints

    def coverage(self, text: str) -> int:
        return sum(1 for ch in text if self.has_glyph(ch))


@dataclass(frozen=True)
class Font:
    name: str
    metrics: FontMetrics | None = None


@dataclass(frozen=True)
class FontFallbackSet:
    """Ordered fonts covering different scripts."""

    fonts: tuple[Font, ...]

    def __post_init__(self) -> None:
        if not self.fonts:
            raise ValueError("EMPTY_FONT_FALLBACK_SET")


FontSpec = Union[Font, FontFallbackSet]


def select_font(spec: FontSpec, text: str) -> Font:
    """Return the font of ``spec`` that can draw most of ``text``.

    Candidates without glyph metrics are skipped; the first candidate wins
    ties and is also used when no candidate has metrics.
    """
    if isinstance(spec, Font):
        return spec

    best: Optional[Font] = None
    best_count = -1
    for font in spec.fonts:
        if font.metrics is None:
            continue
        count = font.metrics.coverage(text)
        if count > best_count:
            best = font
            best_count = count
    return best if best is not None else spec.fonts[0]


def _system_font_dirs() -> list[Path]:
    if os.name == "nt":
        return [Path(os.environ.get("WINDIR", r"C:\\Windows")) / "Fonts"]

    home = Path.home()
    if sys.platform == "darwin":
        return [
            Path("/System/Library/Fonts"),
            Path("/Library/Fonts"),
            home / "Library" / "Fonts",
        ]

    return [
        Path("/usr/share/fonts"),
        Path("/usr/local/share/fonts"),
        home / ".fonts",
        home / ".local" / "share" / "fonts",
    ]


def _iter_font_files(extra_dir: str | None) -> list[Path]:
    dirs = _system_font_dirs()
    if extra_dir:
        dirs.insert(0, Path(extra_dir))

    out: list[Path] = []
    seen: set[str] = set()
    for d in dirs:
        try:
            if not d.exists() or not d.is_dir():
                continue
            for p in d.rglob("*"):
                if not p.is_file() or p.suffix.lower() not in _FONT_FILE_SUFFIXES:
                    continue
                key = str(p).lower()
                if key in seen:
                    continue
                seen.add(key)
                out.append(p)
        except OSError:
            continue
    return out


def _font_family_from_file(path: Path) -> Optional[str]:
    try:
        font = FTFont(str(path), recalcBBoxes=False, recalcTimestamp=False, lazy=True)
        name_table = font["name"]
    except Exception:
        return None

    # Full name (ID 4) first so weights like "Open Sans ExtraBold" resolve, then family (ID 1).
    best: Optional[str] = None
    for name_id in (4, 1):
        for rec in getattr(name_table, "names", []) or []:
            if getattr(rec, "nameID", None) != name_id:
                continue
            try:
                value = str(rec.toUnicode())
            except Exception:
                continue
            if not value:
                continue
            best = value
            if getattr(rec, "platformID", None) == 3:
                break
        if best:
            return best
    return best


def _font_embeddable(path: Path) -> bool:
    try:
        font = FTFont(str(path), recalcBBoxes=False, recalcTimestamp=False, lazy=True)
        os2 = font.get("OS/2")
        fs_type = int(getattr(os2, "fsType", 0) or 0) if os2 is not None else 0
        return not bool(fs_type & 0x0002)
    except Exception:
        return True


@lru_cache(maxsize=4)
def get_font_registry(extra_dir: str | None = None) -> list[dict[str, Any]]:
    out: list[dict[str, Any]] = []
    seen: set[str] = set()

    for name in _PDF_CORE_FONTS:
        seen.add(name.lower())
        out.append({"family": name, "source": "pdf-core", "path": None, "embeddable": False})

    for p in _iter_font_files(extra_dir):
        family = _font_family_from_file(p)
        if not family:
            continue
        key = family.lower()
        if key in seen:
            continue
        seen.add(key)
        out.append({"family": family, "source": "system", "path": str(p), "embeddable": bool(_font_embeddable(p))})

    out.sort(key=lambda x: str(x.get("family") or "").lower())
    return out


def resolve_font_family(requested_family: str, extra_dir: str | None = None) -> tuple[str, str, Optional[str]]:
    """Register ``requested_family`` with reportlab.

    Returns ``(font_name, source, path)``; unknown or non-embeddable
    families fall back to Helvetica.
    """
    requested = str(requested_family or "").strip()
    if not requested:
        return DEFAULT_FONT_FAMILY, "pdf-core", None
    if requested in _PDF_CORE_FONTS:
        return requested, "pdf-core", None

    registered = set(str(n) for n in pdfmetrics.getRegisteredFontNames())
    registry = get_font_registry(extra_dir)

    hit: Optional[dict[str, Any]] = None
    for f in registry:
        if str(f.get("family") or "").lower() == requested.lower():
            hit = f
            break

    if not hit:
        return DEFAULT_FONT_FAMILY, "pdf-core", None

    family = str(hit.get("family"))
    path = str(hit.get("path") or "").strip()
    if not path or not bool(hit.get("embeddable")):
        return DEFAULT_FONT_FAMILY, str(hit.get("source") or "unknown"), None
    if family in registered:
        return family, "registered", path

    try:
        pdfmetrics.registerFont(RLTTFont(family, path))
        return family, str(hit.get("source")), path
    except Exception:
        return DEFAULT_FONT_FAMILY, str(hit.get("source") or "system"), None


def _glyph_y_max(font: FTFont, cmap: dict[int, str], ch: str) -> Optional[float]:
    glyph_name = cmap.get(ord(ch))
    if not glyph_name:
        return None
    glyph_set = font.getGlyphSet()
    pen = BoundsPen(glyph_set)
    glyph_set[glyph_name].draw(pen)
    if pen.bounds is None:
        return None
    return float(pen.bounds[3])


@lru_cache(maxsize=32)
def read_font_metrics(font_path: str) -> Optional[FontMetrics]:
    try:
        font = FTFont(font_path, recalcBBoxes=False, recalcTimestamp=False)
        units_per_em = float(font["head"].unitsPerEm)
        hhea = font["hhea"]
        cmap = font.getBestCmap() or {}
        cap_top = _glyph_y_max(font, cmap, CAP_REFERENCE_GLYPH)
    except Exception:
        logger.warning("FONT_METRICS_UNAVAILABLE", extra={"font_path": font_path})
        return None

    return FontMetrics(
        units_per_em=units_per_em,
        ascender=float(hhea.ascent),
        descender=float(hhea.descent),
        codepoints=frozenset(cmap.keys()),
        cap_top=cap_top,
    )


def _register_font_file(path: Path) -> str:
    name = path.stem
    if name not in set(str(n) for n in pdfmetrics.getRegisteredFontNames()):
        try:
            pdfmetrics.registerFont(RLTTFont(name, str(path)))
        except Exception as e:
            raise ValueError(f"FONT_REGISTER_FAILED: {path}") from e
    return name


def load_font(requested: str, extra_dir: str | None = None) -> Font:
    """Build a :class:`Font` from a family name or a font file path."""
    p = Path(str(requested))
    if p.suffix.lower() in _FONT_FILE_SUFFIXES and p.is_file():
        return Font(name=_register_font_file(p), metrics=read_font_metrics(str(p)))

    name, source, path = resolve_font_family(requested, extra_dir)
    if requested and name != requested:
        logger.warning(
            "FONT_FAMILY_FALLBACK",
            extra={"requested_font_family": requested, "resolved_font_family": name, "font_source": source},
        )
    return Font(name=name, metrics=read_font_metrics(path) if path else None)


def load_font_spec(value: Union[str, Iterable[str]], extra_dir: str | None = None) -> FontSpec:
    if isinstance(value, str):
        return load_font(value, extra_dir)
    return FontFallbackSet(fonts=tuple(load_font(v, extra_dir) for v in value))
