"""Random source injection."""
from __future__ import annotations

import numpy as np

from ..config import get_settings


def make_rng(seed: int | np.random.Generator | None = None) -> np.random.Generator:
    """Return a numpy ``Generator``.

    An existing generator is passed through; ``None`` falls back to
    ``WRE_RANDOM_SEED`` and then to a system-seeded source.
    """

    if isinstance(seed, np.random.Generator):
        return seed
    if seed is None:
        seed = get_settings().random_seed
    return np.random.default_rng(seed)


__all__ = ["make_rng"]
