"""
Monte Carlo run orchestration.

- MonteCarloOrchestrator: batched, seeded, cancellable multi-path runs
- CancellationToken: cooperative stop flag checked between batches
"""

from src.montecarlo.orchestrator import (
    CancellationToken,
    MonteCarloOrchestrator,
    ProgressCallback,
)

__all__ = [
    "CancellationToken",
    "MonteCarloOrchestrator",
    "ProgressCallback",
]
