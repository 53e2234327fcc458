"""
Shared utilities: seeded randomness and logging setup.
"""

from .random import create_rng, resolve_rng, seed_to_int
from .logging_config import configure_logging

__all__ = ['create_rng', 'resolve_rng', 'seed_to_int', 'configure_logging']
