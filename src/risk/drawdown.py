"""
Drawdown curves and drawdown-episode analysis.

    peak_t = max(capital_0, …, capital_t)
    dd_t   = (peak_t − capital_t) / peak_t × 100          # percent, >= 0

An episode is a maximal run of consecutive samples with dd_t > 0. A closed
episode (drawdown returned to 0) is both a duration and a recovery time; an
episode still open at the end of the curve has not recovered and counts only
as a duration.
"""

from dataclasses import dataclass, field
from typing import List, Sequence
import numpy as np
from numpy.typing import NDArray


def drawdown_percent(peak: float, capital: float) -> float:
    """Drawdown of ``capital`` below ``peak`` in percent (0 for a non-positive peak)."""
    if peak <= 0:
        return 0.0
    return max(0.0, (peak - capital) / peak * 100.0)


def drawdown_curve(equity_curve: Sequence[float]) -> NDArray[np.float64]:
    """
    Running-peak drawdown curve of an equity series.

    Parameters
    ----------
    equity_curve : Sequence[float]
        Capital values in time order.

    Returns
    -------
    NDArray[np.float64]
        Drawdown in percent per sample, same length, all >= 0.
    """
    equity = np.asarray(equity_curve, dtype=np.float64)
    if equity.size == 0:
        return np.zeros(0)

    peaks = np.maximum.accumulate(equity)
    dd = np.zeros_like(equity)
    positive = peaks > 0
    dd[positive] = (peaks[positive] - equity[positive]) / peaks[positive] * 100.0
    return np.maximum(dd, 0.0)


@dataclass(frozen=True)
class DrawdownProfile:
    """Drawdown-episode statistics of one curve."""

    durations: List[int] = field(default_factory=list)
    avg_duration: float = 0.0
    max_duration: int = 0
    recovery_times: List[int] = field(default_factory=list)
    avg_recovery_time: float = 0.0
    time_in_drawdown_percent: float = 0.0


class DrawdownAnalyzer:
    """Single-pass drawdown episode scanner."""

    @staticmethod
    def analyze(curve: Sequence[float]) -> DrawdownProfile:
        """
        Episode durations and recovery times of a drawdown curve.

        Parameters
        ----------
        curve : Sequence[float]
            Drawdown values (percent); any value > 0 is "in drawdown".

        Returns
        -------
        DrawdownProfile
            Zeroed profile for an empty curve.
        """
        durations: List[int] = []
        recovery_times: List[int] = []
        current = 0
        in_drawdown_samples = 0

        for dd in curve:
            if dd > 0:
                current += 1
                in_drawdown_samples += 1
            elif current > 0:
                durations.append(current)
                recovery_times.append(current)
                current = 0

        # Still underwater at the end: not a recovery
        if current > 0:
            durations.append(current)

        n = len(curve)
        return DrawdownProfile(
            durations=durations,
            avg_duration=float(np.mean(durations)) if durations else 0.0,
            max_duration=max(durations) if durations else 0,
            recovery_times=recovery_times,
            avg_recovery_time=float(np.mean(recovery_times)) if recovery_times else 0.0,
            time_in_drawdown_percent=100.0 * in_drawdown_samples / n if n > 0 else 0.0,
        )
