"""
Aggregate statistics over a full set of simulated paths.

Aggregation is a second pass that needs the complete population (percentiles
and histograms are order statistics), so it runs only after every path of a
run has finished. It reads results and never modifies them; calling it twice
on the same results yields identical statistics.

Key outputs:
- Central tendency, dispersion and shape of path returns
- Win / loss / breakeven / ruin probabilities
- VaR, CVaR and drawdown-based ratios (Ulcer, Pain, Calmar, MAR, Omega, ...)
- Kelly sizing, drawdown-duration aggregates, return projections
- 9-point percentile table, return and drawdown histograms
- Per-regime performance merged from per-path regime tallies
"""

import math
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Sequence
import numpy as np
from numpy.typing import NDArray
from scipy import stats

from src.regimes.selector import NORMAL_REGIME
from src.risk.drawdown import DrawdownAnalyzer
from src.risk.metrics import RiskMetrics, percentile_at
from src.simulation.config import RUIN_FRACTION, SimulationConfig
from src.simulation.results import RegimeTally, SimulationResult

PERCENTILE_LEVELS = (1, 5, 10, 25, 50, 75, 90, 95, 99)
RETURN_HISTOGRAM_BINS = 30
DRAWDOWN_HISTOGRAM_BINS = 6
BREAKEVEN_BAND = 0.05
HALVING_FRACTION = 0.5
TRADING_DAYS_PER_WEEK = 5
TRADING_DAYS_PER_MONTH = 21


@dataclass(frozen=True)
class PercentileRow:
    """Values at one percentile of each per-path distribution."""

    percentile: int
    total_return: float
    return_percent: float
    max_drawdown: float
    final_capital: float


@dataclass(frozen=True)
class HistogramBin:
    """One equal-width histogram bin; frequency is in percent of paths."""

    range_start: float
    midpoint: float
    count: int
    frequency: float


@dataclass(frozen=True)
class RegimePerformance:
    """
    Trades taken while one regime was active, pooled over all paths.

    avg_return is the mean per-trade P&L contribution in percent of starting
    capital; max_drawdown is the worst drawdown reached during the regime.
    """

    regime_id: str
    regime_name: str
    total_trades: int
    win_rate: float
    avg_return: float
    max_drawdown: float
    profit_factor: float


@dataclass(frozen=True)
class AggregateStatistics:
    """Statistics of one Monte Carlo run (see ``aggregate``)."""

    num_simulations: int
    # Returns
    mean_return: float
    median_return: float
    std_dev_return: float
    best_case: float
    worst_case: float
    median_return_percent: float
    return_skewness: float
    return_kurtosis: float
    # Probabilities (percent of paths)
    win_probability: float
    loss_probability: float
    breakeven_probability: float
    probability_of_ruin: float
    probability_of_halving: float
    # Drawdown
    median_max_drawdown: float
    worst_max_drawdown: float
    # Ratios
    sharpe_ratio: float
    sortino_ratio: float
    profit_factor: float
    var_95: float
    var_99: float
    cvar_95: float
    cvar_99: float
    ulcer_index: float
    pain_index: float
    calmar_ratio: float
    mar_ratio: float
    omega_ratio: float
    tail_ratio: float
    gain_to_pain_ratio: float
    # Sizing
    optimal_f: float
    kelly_percent: float
    half_kelly_percent: float
    quarter_kelly_percent: float
    # Per trade
    avg_win_rate: float
    expected_value_per_trade: float
    # Drawdown durations (trades)
    avg_drawdown_duration: float
    max_drawdown_duration: int
    avg_recovery_time: float
    time_in_drawdown_percent: float
    # Projections (currency)
    projected_daily_return: float
    projected_weekly_return: float
    projected_monthly_return: float
    projected_yearly_return: float
    # Tables
    percentiles: Dict[str, PercentileRow] = field(default_factory=dict)
    regime_performance: List[RegimePerformance] = field(default_factory=list)
    return_distribution: List[HistogramBin] = field(default_factory=list)
    drawdown_distribution: List[HistogramBin] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Plain, JSON-serialisable primitives."""
        return asdict(self)


def _mean(values: NDArray[np.float64]) -> float:
    return float(np.mean(values)) if values.size > 0 else 0.0


def _share(mask: NDArray[np.bool_]) -> float:
    return 100.0 * float(np.count_nonzero(mask)) / mask.size if mask.size > 0 else 0.0


def _finite_or_zero(value: float) -> float:
    return float(value) if math.isfinite(value) else 0.0


def histogram(values: Sequence[float], bins: int) -> List[HistogramBin]:
    """
    Equal-width histogram between the sample minimum and maximum.

    A degenerate range (all values equal) uses unit-width bins, so every
    value lands in the first bin. The maximum falls in the last bin.

    Parameters
    ----------
    values : Sequence[float]
        Sample.
    bins : int
        Number of bins.

    Returns
    -------
    List[HistogramBin]
        ``bins`` entries, or an empty list for an empty sample.
    """
    data = np.asarray(values, dtype=np.float64)
    if data.size == 0 or bins <= 0:
        return []

    lo = float(data.min())
    hi = float(data.max())
    width = (hi - lo) / bins or 1.0

    idx = np.floor((data - lo) / width).astype(np.int64)
    idx = np.clip(idx, 0, bins - 1)
    counts = np.bincount(idx, minlength=bins)

    return [
        HistogramBin(
            range_start=lo + i * width,
            midpoint=lo + (i + 0.5) * width,
            count=int(count),
            frequency=100.0 * int(count) / data.size,
        )
        for i, count in enumerate(counts)
    ]


def percentile_table(results: Sequence[SimulationResult]) -> Dict[str, PercentileRow]:
    """Rows p1 … p99 over return, return %, max drawdown and final capital."""
    returns = np.sort([r.total_return for r in results])
    return_pcts = np.sort([r.return_percent for r in results])
    max_dds = np.sort([r.max_drawdown for r in results])
    finals = np.sort([r.final_capital for r in results])

    return {
        f"p{level}": PercentileRow(
            percentile=level,
            total_return=percentile_at(returns, level / 100.0),
            return_percent=percentile_at(return_pcts, level / 100.0),
            max_drawdown=percentile_at(max_dds, level / 100.0),
            final_capital=percentile_at(finals, level / 100.0),
        )
        for level in PERCENTILE_LEVELS
    }


def merge_regime_tallies(results: Sequence[SimulationResult]) -> Dict[str, RegimeTally]:
    """Combine every path's per-regime tallies into one tally per regime id."""
    merged: Dict[str, RegimeTally] = {}
    for result in results:
        for regime_id, tally in result.regime_tallies.items():
            merged[regime_id] = merged.get(regime_id, RegimeTally()).merged(tally)
    return merged


def regime_performance(
    results: Sequence[SimulationResult],
    config: SimulationConfig,
) -> List[RegimePerformance]:
    """One row per configured regime, in configuration order."""
    merged = merge_regime_tallies(results)
    regimes = config.regimes or (NORMAL_REGIME,)

    rows = []
    for regime in regimes:
        tally = merged.get(regime.id, RegimeTally())
        trades = tally.trades
        rows.append(
            RegimePerformance(
                regime_id=regime.id,
                regime_name=regime.name,
                total_trades=trades,
                win_rate=100.0 * tally.wins / trades if trades > 0 else 0.0,
                avg_return=(
                    tally.net_pnl / trades / config.starting_capital * 100.0
                    if trades > 0 and config.starting_capital > 0
                    else 0.0
                ),
                max_drawdown=tally.max_drawdown,
                profit_factor=RiskMetrics.profit_factor(
                    tally.gross_profit, tally.gross_loss
                ),
            )
        )
    return rows


def equity_percentile_bands(
    results: Sequence[SimulationResult],
    percentiles: Sequence[float] = (5, 25, 50, 75, 95),
) -> Dict[str, NDArray[np.float64]]:
    """
    Per-trade percentiles of capital across paths (fan-chart data).

    Paths that stopped early are held at their final capital.

    Parameters
    ----------
    results : Sequence[SimulationResult]
        Simulated paths.
    percentiles : Sequence[float]
        Percentiles in [0, 100].

    Returns
    -------
    bands : Dict[str, NDArray]
        - 'p{q}': capital at percentile q per trade index, shape (max_len,)
        - 'mean': mean capital per trade index, shape (max_len,)
    """
    if not results:
        bands = {f"p{q:g}": np.zeros(0) for q in percentiles}
        bands["mean"] = np.zeros(0)
        return bands

    max_len = max(len(r.equity_curve) for r in results)
    grid = np.empty((len(results), max_len), dtype=np.float64)
    for i, r in enumerate(results):
        curve = r.equity_curve
        grid[i, : len(curve)] = curve
        grid[i, len(curve):] = curve[-1]

    bands = {
        f"p{q:g}": np.percentile(grid, q, axis=0)
        for q in percentiles
    }
    bands["mean"] = np.mean(grid, axis=0)
    return bands


def aggregate(
    results: Sequence[SimulationResult],
    config: SimulationConfig,
) -> AggregateStatistics:
    """
    Compute run statistics from all simulated paths.

    Parameters
    ----------
    results : Sequence[SimulationResult]
        Complete population of paths. May be empty.
    config : SimulationConfig
        Configuration the paths were simulated with.

    Returns
    -------
    AggregateStatistics
        Zeroed statistics and empty tables for an empty population.
    """
    n = len(results)
    returns = np.sort(np.array([r.total_return for r in results], dtype=np.float64))
    return_pcts = np.sort(np.array([r.return_percent for r in results], dtype=np.float64))
    max_dds = np.sort(np.array([r.max_drawdown for r in results], dtype=np.float64))
    finals = np.array([r.final_capital for r in results], dtype=np.float64)

    mean_return = _mean(returns)
    std_return = float(np.std(returns)) if n > 0 else 0.0

    skewness = kurtosis = 0.0
    if n >= 3 and std_return > 0:
        skewness = _finite_or_zero(stats.skew(returns))
        kurtosis = _finite_or_zero(stats.kurtosis(returns))

    start = config.starting_capital
    median_dd = percentile_at(max_dds, 0.5)
    years = config.years

    optimal_f = RiskMetrics.optimal_f(config.win_rate, config.avg_win, config.avg_loss)
    kelly_percent = optimal_f * 100.0

    profiles = [DrawdownAnalyzer.analyze(r.drawdown_curve) for r in results]
    traded = [r.win_rate for r in results if r.trades_executed > 0]

    per_trade = mean_return / config.num_trades if config.num_trades > 0 else 0.0
    daily = per_trade * config.avg_trades_per_day

    return AggregateStatistics(
        num_simulations=n,
        mean_return=mean_return,
        median_return=percentile_at(returns, 0.5),
        std_dev_return=std_return,
        best_case=percentile_at(returns, 0.95),
        worst_case=percentile_at(returns, 0.05),
        median_return_percent=percentile_at(return_pcts, 0.5),
        return_skewness=skewness,
        return_kurtosis=kurtosis,
        win_probability=_share(returns > 0),
        loss_probability=_share(returns < 0),
        breakeven_probability=_share(np.abs(returns) < start * BREAKEVEN_BAND),
        probability_of_ruin=_share(finals < start * RUIN_FRACTION),
        probability_of_halving=_share(finals < start * HALVING_FRACTION),
        median_max_drawdown=median_dd,
        worst_max_drawdown=percentile_at(max_dds, 0.95),
        sharpe_ratio=RiskMetrics.sharpe_ratio(returns),
        sortino_ratio=RiskMetrics.sortino_ratio(returns),
        profit_factor=RiskMetrics.profit_factor(
            sum(r.total_win_amount for r in results),
            sum(r.total_loss_amount for r in results),
        ),
        var_95=RiskMetrics.value_at_risk(returns, 0.95),
        var_99=RiskMetrics.value_at_risk(returns, 0.99),
        cvar_95=RiskMetrics.conditional_value_at_risk(returns, 0.95),
        cvar_99=RiskMetrics.conditional_value_at_risk(returns, 0.99),
        ulcer_index=_mean(np.array([RiskMetrics.ulcer_index(r.equity_curve) for r in results])),
        pain_index=_mean(np.array([RiskMetrics.pain_index(r.drawdown_curve) for r in results])),
        calmar_ratio=RiskMetrics.calmar_ratio(return_pcts, median_dd, years),
        mar_ratio=RiskMetrics.mar_ratio(_mean(return_pcts), median_dd),
        omega_ratio=RiskMetrics.omega_ratio(return_pcts),
        tail_ratio=RiskMetrics.tail_ratio(returns),
        gain_to_pain_ratio=RiskMetrics.gain_to_pain_ratio(returns),
        optimal_f=optimal_f,
        kelly_percent=kelly_percent,
        half_kelly_percent=kelly_percent / 2.0,
        quarter_kelly_percent=kelly_percent / 4.0,
        avg_win_rate=_mean(np.array(traded)),
        expected_value_per_trade=per_trade,
        avg_drawdown_duration=_mean(np.array([p.avg_duration for p in profiles])),
        max_drawdown_duration=max((p.max_duration for p in profiles), default=0),
        avg_recovery_time=_mean(np.array([p.avg_recovery_time for p in profiles])),
        time_in_drawdown_percent=_mean(
            np.array([p.time_in_drawdown_percent for p in profiles])
        ),
        projected_daily_return=daily,
        projected_weekly_return=daily * TRADING_DAYS_PER_WEEK,
        projected_monthly_return=daily * TRADING_DAYS_PER_MONTH,
        projected_yearly_return=daily * config.trading_days_per_year,
        percentiles=percentile_table(results),
        regime_performance=(
            regime_performance(results, config) if config.enable_regimes else []
        ),
        return_distribution=histogram(returns, RETURN_HISTOGRAM_BINS),
        drawdown_distribution=histogram(max_dds, DRAWDOWN_HISTOGRAM_BINS),
    )
