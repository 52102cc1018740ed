from __future__ import annotations

import math
import random
from typing import Any, Sequence, TypeVar

T = TypeVar("T")

# Linear congruential constants, see http://indiegamr.com/generate-repeatable-random-numbers-in-js/
LCG_MULTIPLIER = 9301
LCG_INCREMENT = 49297
LCG_MODULUS = 233280

MAX_GENERATED_SEED = 1_000_000


def generate_random_seed() -> int:
    return random.randrange(MAX_GENERATED_SEED)


def next_random(state: int) -> tuple[float, int]:
    new_state = (int(state) * LCG_MULTIPLIER + LCG_INCREMENT) % LCG_MODULUS
    return new_state / LCG_MODULUS, new_state


class SeededRandom:
    """Deterministic value stream for one render.

    Every consumer that needs reproducible randomness gets its own instance,
    so two renders never interleave their draws.
    """

    def __init__(self, seed: int) -> None:
        self.seed = int(seed)
        self.state = int(seed)

    def random(self) -> float:
        value, self.state = next_random(self.state)
        return value


def _rng(seed_or_rng: int | SeededRandom) -> SeededRandom:
    if isinstance(seed_or_rng, SeededRandom):
        return seed_or_rng
    return SeededRandom(seed_or_rng)


def shuffle(sequence: Sequence[T], seed: int | SeededRandom) -> list[T]:
    # Fisher-Yates, last index first. Works on a copy.
    rng = _rng(seed)
    out = list(sequence)
    for i in range(len(out) - 1, 0, -1):
        j = math.floor(rng.random() * (i + 1))
        out[i], out[j] = out[j], out[i]
    return out


def shuffle_sentences(sentences: Sequence[str], seed: int) -> list[str]:
    return shuffle([s for s in sentences if s != ""], seed)


def shuffle_images(images: Sequence[T], seed: int) -> list[T]:
    return shuffle(images, seed)


def resolve_length_spec(spec: Any, seed_or_rng: int | SeededRandom) -> float | None:
    """Return the actual max length for ``spec``.

    ``spec`` is either a scalar (returned as is), a ``[min, max]`` interval
    (one draw, linear interpolation) or empty (no cap).
    """
    if not spec:
        return None
    if isinstance(spec, (list, tuple)):
        if len(spec) != 2:
            raise ValueError(f"INVALID_LENGTH_SPEC: {spec!r}")
        lo, hi = float(spec[0]), float(spec[1])
        return lo + _rng(seed_or_rng).random() * (hi - lo)
    return spec
