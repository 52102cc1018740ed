from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Callable, Sequence

Measure = Callable[[str], float]

_WHITESPACE_RE = re.compile(r"\s+")
_SENTENCE_MARK_RE = re.compile(r"([!?]|\.\.\.)\s+")
_SENTENCE_SPLIT_RE = re.compile(r"[.;]\s")


@dataclass
class FitResult:
    lines: list[str] = field(default_factory=list)
    width: float = math.inf


class MeasureCache:
    """Memoizing wrapper around a string width function.

    Lives for a single ``wrap_text`` call: the branch-and-bound search
    measures the same prefixes over and over.
    """

    def __init__(self, measure: Measure) -> None:
        self._measure = measure
        self._cache: dict[str, float] = {}

    def __call__(self, text: str) -> float:
        try:
            return self._cache[text]
        except KeyError:
            width = float(self._measure(text))
            self._cache[text] = width
            return width

    def __len__(self) -> int:
        return len(self._cache)


def normalize_string(value: str | None) -> str:
    if value is None:
        return ""
    return _WHITESPACE_RE.sub(" ", str(value).strip()).upper()


def split_words(text: str) -> list[str]:
    return _WHITESPACE_RE.split(text)


def split_sentences(text: str) -> list[str]:
    return _SENTENCE_SPLIT_RE.split(_SENTENCE_MARK_RE.sub(r"\1. ", text))


def _ratio(num: float, den: float) -> float:
    if den == 0:
        return math.inf if num > 0 else 0.0
    if math.isinf(den):
        return 0.0
    return num / den


def fit_words(measure: Measure, words: Sequence[str], nb_lines: int) -> FitResult:
    """Split ``words`` into ``nb_lines`` lines minimizing the widest line.

    Exhaustive search over the first line, recursing on the remainder and
    pruning every branch that cannot beat the current best. Exponential in
    the worst case: callers keep word counts small.
    """
    if nb_lines == 1:
        line = " ".join(words)
        return FitResult(lines=[line], width=measure(line))
    if len(words) < nb_lines:
        return FitResult(lines=[], width=math.inf)

    best = FitResult(lines=[], width=math.inf)
    for i in range(len(words)):
        line0 = " ".join(words[: i + 1])
        width0 = measure(line0)
        if width0 >= best.width:
            continue

        remainder = fit_words(measure, words[i + 1 :], nb_lines - 1)
        if remainder.width >= best.width:
            continue

        # Strict improvement only, the leftmost split wins ties.
        best = FitResult(lines=[line0, *remainder.lines], width=max(width0, remainder.width))
    return best


def wrap_text(
    measure: Measure,
    words: Sequence[str],
    min_lines: int = 1,
    *,
    width: float,
    height: float,
    max_ratio: float,
    line_height: float,
) -> FitResult:
    """Find the smallest line count whose y/x scaling stays under ``max_ratio``."""
    cached = MeasureCache(measure)
    nb_lines = max(1, int(min_lines))
    while True:
        fit = fit_words(cached, words, nb_lines)
        scale_x = _ratio(width, fit.width)
        scale_y = _ratio(height, line_height * nb_lines)
        limit = max_ratio * scale_x
        if scale_y <= limit or len(words) == nb_lines:
            return fit

        # Estimate the missing lines from the square root of the excess ratio.
        excess = _ratio(scale_y, limit)
        if not excess > 0:
            # Negative box, more lines cannot help.
            return fit
        if math.isinf(excess):
            nb_lines = len(words)
        else:
            incr = max(1, math.floor(math.sqrt(excess)))
            nb_lines = min(len(words), nb_lines + incr)
