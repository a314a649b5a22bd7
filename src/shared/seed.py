"""Seed initialisation for reproducible traffic."""

from __future__ import annotations

import logging
import random

log = logging.getLogger(__name__)


def init_seed(seed: int | None) -> random.Random:
    """Return a dedicated Random instance, seeded when *seed* is given.

    With ``None`` the instance is seeded from system entropy, which is what
    a live monitor wants.  The global ``random`` module is left untouched.
    """
    rng = random.Random(seed)
    if seed is not None:
        log.info("Random seed initialised: %d", seed)
    return rng
