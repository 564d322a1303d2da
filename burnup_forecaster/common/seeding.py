from __future__ import annotations

import numpy as np


def make_rng(seed: int | None = None) -> np.random.Generator:
    """Return a dedicated generator; process-wide random state is never used.

    A None seed draws fresh entropy from the OS.
    """
    return np.random.default_rng(None if seed is None else int(seed))
