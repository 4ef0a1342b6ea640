"""
Monte Carlo orchestration: many independent paths, progress, cancellation.

Paths are simulated in batches. Between batches the orchestrator yields to
the event loop so a host (UI, server) stays responsive, reports progress,
and honours cancellation. Every path gets its own random stream spawned
from one root seed, so a seeded run produces the same results whatever the
batch size and whether batches run inline or in an executor.
"""

import asyncio
import logging
import time
from concurrent.futures import Executor
from typing import Callable, List, Optional, Sequence

import numpy as np

from src.risk.aggregate import AggregateStatistics, aggregate
from src.rng.source import rngs_from_seeds, spawn_seeds
from src.simulation.config import SimulationConfig
from src.simulation.results import SimulationResult
from src.simulation.trade_sequence import TradeSequenceSimulator

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]

DEFAULT_BATCH_SIZE = 500


class CancellationToken:
    """Cooperative cancellation flag, checked between batches."""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def __repr__(self) -> str:
        """String representation."""
        return f"CancellationToken(cancelled={self._cancelled})"


def _run_batch(
    config: SimulationConfig,
    seeds: Sequence[np.random.SeedSequence],
) -> List[SimulationResult]:
    """Simulate one path per seed. Module-level so process pools can pickle it."""
    simulator = TradeSequenceSimulator(config)
    return [simulator.run(rng) for rng in rngs_from_seeds(seeds)]


class MonteCarloOrchestrator:
    """
    Runs ``config.num_simulations`` independent paths.

    Parameters
    ----------
    config : SimulationConfig
        Shared, read-only run configuration.
    batch_size : int
        Paths per batch. Progress and cancellation are handled at batch
        boundaries.
    seed : int, optional
        Root seed. None draws fresh OS entropy.
    executor : concurrent.futures.Executor, optional
        Where batches run. None runs them inline on the event loop thread.

    Examples
    --------
    >>> orchestrator = MonteCarloOrchestrator(SimulationConfig(num_simulations=1000), seed=7)
    >>> results = orchestrator.run_all_sync()
    >>> stats = orchestrator.aggregate(results)
    """

    def __init__(
        self,
        config: SimulationConfig,
        batch_size: int = DEFAULT_BATCH_SIZE,
        seed: Optional[int] = None,
        executor: Optional[Executor] = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1. Got {batch_size}")

        self.config = config
        self.batch_size = batch_size
        self.seed = seed
        self.executor = executor

    async def run_all(
        self,
        on_progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[SimulationResult]:
        """
        Simulate every path.

        Parameters
        ----------
        on_progress : callable, optional
            Called with the completed percentage after each batch. Values
            never decrease and the last call of a completed run is 100.
        cancel_token : CancellationToken, optional
            When cancelled, the run stops at the next batch boundary and
            returns the paths finished so far.

        Returns
        -------
        List[SimulationResult]
            One result per simulated path, in seed order.
        """
        total = self.config.num_simulations
        seeds = spawn_seeds(total, self.seed)
        results: List[SimulationResult] = []
        loop = asyncio.get_running_loop()
        started = time.perf_counter()

        logger.info(
            "Starting Monte Carlo run: %d simulations x %d trades (batch_size=%d)",
            total,
            self.config.num_trades,
            self.batch_size,
        )

        if total == 0:
            if on_progress is not None:
                on_progress(100.0)
            return results

        for start in range(0, total, self.batch_size):
            if cancel_token is not None and cancel_token.cancelled:
                logger.warning(
                    "Monte Carlo run cancelled after %d of %d simulations",
                    len(results),
                    total,
                )
                return results

            batch_seeds = seeds[start:start + self.batch_size]
            if self.executor is None:
                batch = _run_batch(self.config, batch_seeds)
            else:
                batch = await loop.run_in_executor(
                    self.executor, _run_batch, self.config, batch_seeds
                )
            results.extend(batch)

            progress = 100.0 * len(results) / total
            logger.debug("Completed batch: %d/%d simulations", len(results), total)
            if on_progress is not None:
                on_progress(progress)

            await asyncio.sleep(0)

        logger.info(
            "Monte Carlo run complete: %d simulations in %.2fs",
            len(results),
            time.perf_counter() - started,
        )
        return results

    def run_all_sync(
        self,
        on_progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[SimulationResult]:
        """Blocking wrapper around ``run_all`` for callers without a loop."""
        return asyncio.run(self.run_all(on_progress, cancel_token))

    def aggregate(self, results: Sequence[SimulationResult]) -> AggregateStatistics:
        """Statistics of ``results`` under this orchestrator's config."""
        return aggregate(results, self.config)

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"MonteCarloOrchestrator(num_simulations={self.config.num_simulations}, "
            f"batch_size={self.batch_size}, seed={self.seed})"
        )
