"""
Random number generation utilities.

Every stochastic process in the engine draws from a single
``numpy.random.Generator`` handed to it by the caller. Seeds may be
integers or strings so that simulations can be named the same way
maps are ("valley_test", "demo123").
"""

import hashlib
from typing import Optional, Union

import numpy as np

Seed = Union[int, str, None]


def seed_to_int(seed: Union[int, str]) -> int:
    """
    Convert a seed to a non-negative integer.

    Integers pass through unchanged; strings are hashed with SHA-256 so
    the mapping is stable across interpreter runs (unlike ``hash()``).

    Args:
        seed: Integer or string seed

    Returns:
        Non-negative integer suitable for ``numpy.random.default_rng``
    """
    if isinstance(seed, str):
        digest = hashlib.sha256(seed.encode("utf-8")).digest()
        return int.from_bytes(digest[:8], "little")
    if seed < 0:
        raise ValueError(f"Seed must be non-negative, got {seed}")
    return int(seed)


def create_rng(seed: Seed = None) -> np.random.Generator:
    """
    Create a seeded random generator.

    Args:
        seed: Integer or string seed. ``None`` gives an unseeded generator
            drawing entropy from the OS.

    Returns:
        numpy Generator instance
    """
    if seed is None:
        return np.random.default_rng()
    return np.random.default_rng(seed_to_int(seed))


def resolve_rng(rng: Optional[np.random.Generator] = None, seed: Seed = None) -> np.random.Generator:
    """Return ``rng`` if given, otherwise a generator built from ``seed``."""
    if rng is not None:
        return rng
    return create_rng(seed)
