"""
Injectable uniform random sources.

Every stochastic step of a simulated path draws from an object exposing
``random() -> float`` in [0, 1). ``numpy.random.Generator`` and
``random.Random`` both satisfy this, and tests can substitute a scripted
sequence for fully deterministic paths.

Independent per-path generators are derived from a single root seed with
``numpy.random.SeedSequence.spawn`` so that a seeded run produces the same
paths no matter how they are batched or distributed across workers.
"""

from typing import List, Optional, Protocol, Sequence
import numpy as np


class RandomSource(Protocol):
    """Anything that yields uniform floats in [0, 1)."""

    def random(self) -> float:
        ...


def make_rng(seed: Optional[int] = None) -> np.random.Generator:
    """Build a PCG64 generator; ``seed=None`` draws fresh OS entropy."""
    return np.random.default_rng(seed)


def spawn_seeds(
    n_streams: int,
    seed: Optional[int] = None,
) -> List[np.random.SeedSequence]:
    """
    Derive independent child seeds from one root seed.

    Parameters
    ----------
    n_streams : int
        Number of child seed sequences (one per simulated path).
    seed : int, optional
        Root entropy. If None, fresh OS entropy is used and the run is not
        reproducible.

    Returns
    -------
    List[np.random.SeedSequence]
        ``n_streams`` statistically independent seed sequences.
    """
    if n_streams < 0:
        raise ValueError(f"n_streams must be non-negative. Got {n_streams}")

    if n_streams == 0:
        return []

    return np.random.SeedSequence(seed).spawn(n_streams)


def rngs_from_seeds(
    seeds: Sequence[np.random.SeedSequence],
) -> List[np.random.Generator]:
    """One generator per child seed."""
    return [np.random.default_rng(s) for s in seeds]
