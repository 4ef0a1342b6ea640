"""
Risk and performance metrics over simulated returns.

All functions are pure and total: degenerate input (empty series, zero
denominators) yields 0 rather than NaN or an exception. Ratios whose
denominator is a loss total (Omega, Gain-to-Pain, profit factor) return
UNBOUNDED_RATIO when there are gains but no losses, a finite stand-in for
"effectively infinite" that cannot poison downstream arithmetic.

Definitions (returns r sorted ascending, n = len(r)):
    k        = ⌊n (1 − c)⌋                          # left-tail index
    VaR_c    = max(0, −r_k)                         # loss at that index
    CVaR_c   = max(0, −mean(r_0 … r_k))             # tail mean, >= VaR_c
    Ulcer    = sqrt(mean(dd_t²))
    Pain     = mean(dd_t)
    Omega(τ) = Σ (r − τ)⁺ / Σ (τ − r)⁺
    Tail     = |r_p95 / r_p5|
    GPR      = Σ r⁺ / |Σ r⁻|
"""

import math
from typing import Sequence
import numpy as np
from numpy.typing import NDArray

from src.risk.drawdown import drawdown_curve
from src.sizing.position_sizer import kelly_fraction

UNBOUNDED_RATIO = 999.0

# exp(700) is still a finite double
_MAX_LOG_GROWTH = 700.0


def percentile_at(sorted_values: NDArray[np.float64], p: float) -> float:
    """
    Nearest-rank style lookup ``sorted[min(⌊n·p⌋, n − 1)]``.

    Parameters
    ----------
    sorted_values : NDArray[np.float64]
        Values sorted ascending.
    p : float
        Fraction in [0, 1].

    Returns
    -------
    float
        The value at that rank, or 0.0 for an empty array.
    """
    n = len(sorted_values)
    if n == 0:
        return 0.0
    idx = min(max(int(math.floor(n * p)), 0), n - 1)
    return float(sorted_values[idx])


def _tail_index(n: int, confidence: float) -> int:
    if not (0.0 < confidence < 1.0):
        raise ValueError(f"confidence must be in (0, 1). Got {confidence}")
    return min(max(int(math.floor(n * (1.0 - confidence))), 0), n - 1)


class RiskMetrics:
    """
    Return-distribution and drawdown metrics.

    Static, side-effect free helpers. Inputs are any float sequences;
    nothing is sorted or modified in place.
    """

    @staticmethod
    def value_at_risk(returns: Sequence[float], confidence: float) -> float:
        """
        Value at Risk: loss at the (1 − confidence) left-tail rank.

        Parameters
        ----------
        returns : Sequence[float]
            Per-path total returns (currency).
        confidence : float
            Confidence level in (0, 1), e.g. 0.95.

        Returns
        -------
        float
            Non-negative loss magnitude. A tail return that is still a gain
            is no loss, so VaR is 0 there; this keeps VaR monotone in
            confidence.
        """
        r = np.sort(np.asarray(returns, dtype=np.float64))
        k = _tail_index(r.size, confidence)
        if r.size == 0:
            return 0.0
        return max(0.0, float(-r[k]))

    @staticmethod
    def conditional_value_at_risk(returns: Sequence[float], confidence: float) -> float:
        """
        CVaR / expected shortfall: mean of returns at or below the VaR rank.

        Returns
        -------
        float
            Non-negative loss magnitude, never smaller than
            ``value_at_risk(returns, confidence)``.
        """
        r = np.sort(np.asarray(returns, dtype=np.float64))
        k = _tail_index(r.size, confidence)
        if r.size == 0:
            return 0.0
        return max(0.0, float(-np.mean(r[: k + 1])))

    @staticmethod
    def ulcer_index(equity_curve: Sequence[float]) -> float:
        """
        Root-mean-square drawdown (percent) from a running peak.

        Penalizes depth and persistence of drawdowns together.
        Zero for fewer than two samples.
        """
        if len(equity_curve) < 2:
            return 0.0
        dd = drawdown_curve(equity_curve)
        return float(np.sqrt(np.mean(dd ** 2)))

    @staticmethod
    def pain_index(curve: Sequence[float]) -> float:
        """Arithmetic mean of a drawdown curve (0 if empty)."""
        if len(curve) == 0:
            return 0.0
        return float(np.mean(np.asarray(curve, dtype=np.float64)))

    @staticmethod
    def cagr(total_return_percent: float, years: float) -> float:
        """
        Compound annual growth rate in percent.

        A total loss (growth factor <= 0) maps to −100%. Zero horizon gives 0.
        """
        if years <= 0:
            return 0.0
        growth = 1.0 + total_return_percent / 100.0
        if growth <= 0:
            return -100.0
        log_growth = min(math.log(growth) / years, _MAX_LOG_GROWTH)
        return (math.exp(log_growth) - 1.0) * 100.0

    @staticmethod
    def calmar_ratio(
        return_percents: Sequence[float],
        max_drawdown: float,
        years: float,
    ) -> float:
        """
        Annualized CAGR of the mean return over max drawdown (percent / percent).

        Zero when the drawdown, the horizon or the sample is empty/zero.
        """
        if max_drawdown <= 0 or years <= 0 or len(return_percents) == 0:
            return 0.0
        mean_pct = float(np.mean(np.asarray(return_percents, dtype=np.float64)))
        return RiskMetrics.cagr(mean_pct, years) / max_drawdown

    @staticmethod
    def mar_ratio(return_percent: float, max_drawdown: float) -> float:
        """Return over max drawdown without annualization (0 if no drawdown)."""
        return return_percent / max_drawdown if max_drawdown > 0 else 0.0

    @staticmethod
    def omega_ratio(returns: Sequence[float], threshold: float = 0.0) -> float:
        """Gains above ``threshold`` over losses at or below it."""
        r = np.asarray(returns, dtype=np.float64)
        gains = float(np.sum(r[r > threshold] - threshold))
        losses = float(np.sum(threshold - r[r <= threshold]))
        if losses > 0:
            return gains / losses
        return UNBOUNDED_RATIO if gains > 0 else 0.0

    @staticmethod
    def tail_ratio(returns: Sequence[float]) -> float:
        """|p95 / p5| of the returns (0 when p5 is 0 or there is no data)."""
        r = np.sort(np.asarray(returns, dtype=np.float64))
        p95 = percentile_at(r, 0.95)
        p5 = percentile_at(r, 0.05)
        return abs(p95 / p5) if p5 != 0 else 0.0

    @staticmethod
    def gain_to_pain_ratio(returns: Sequence[float]) -> float:
        """Sum of positive returns over the magnitude of the negative sum."""
        r = np.asarray(returns, dtype=np.float64)
        gain = float(np.sum(r[r > 0]))
        pain = abs(float(np.sum(r[r < 0])))
        if pain > 0:
            return gain / pain
        return UNBOUNDED_RATIO if gain > 0 else 0.0

    @staticmethod
    def profit_factor(gross_profit: float, gross_loss: float) -> float:
        """Gross profit over gross loss, same convention as the Omega ratio."""
        if gross_loss > 0:
            return gross_profit / gross_loss
        return UNBOUNDED_RATIO if gross_profit > 0 else 0.0

    @staticmethod
    def optimal_f(win_rate: float, avg_win: float, avg_loss: float) -> float:
        """Kelly optimal fraction in [0, 1]."""
        return kelly_fraction(win_rate, avg_win, avg_loss)

    @staticmethod
    def sharpe_ratio(returns: Sequence[float]) -> float:
        """Mean over population standard deviation of path returns."""
        r = np.asarray(returns, dtype=np.float64)
        if r.size == 0:
            return 0.0
        std = float(np.std(r))
        return float(np.mean(r)) / std if std > 0 else 0.0

    @staticmethod
    def sortino_ratio(returns: Sequence[float]) -> float:
        """
        Mean over downside deviation, sqrt(mean(min(r, 0)²)).

        Zero when nothing lost money.
        """
        r = np.asarray(returns, dtype=np.float64)
        if r.size == 0:
            return 0.0
        downside = float(np.sqrt(np.mean(np.minimum(r, 0.0) ** 2)))
        return float(np.mean(r)) / downside if downside > 0 else 0.0
