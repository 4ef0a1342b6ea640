"""
Random sources shared by regime selection and path simulation.

- RandomSource: protocol for ``random() -> float`` in [0, 1)
- make_rng: seeded numpy Generator
- spawn_seeds / rngs_from_seeds: independent per-path streams from one seed
"""

from src.rng.source import RandomSource, make_rng, spawn_seeds, rngs_from_seeds

__all__ = [
    "RandomSource",
    "make_rng",
    "spawn_seeds",
    "rngs_from_seeds",
]
