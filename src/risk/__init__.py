"""
Risk statistics for simulated trading paths.

**Drawdowns (drawdown.py):**
- drawdown_curve: running-peak drawdown of an equity series
- DrawdownAnalyzer: episode durations, recovery times, time under water

**Metrics (metrics.py):**
- RiskMetrics: VaR, CVaR, Ulcer, Pain, Calmar, MAR, Omega, Tail,
  Gain-to-Pain, Sharpe, Sortino, profit factor, optimal f

**Aggregation (aggregate.py):**
- aggregate: AggregateStatistics over all paths of a run
- equity_percentile_bands: per-trade capital percentiles for fan charts
"""

from src.risk.drawdown import DrawdownAnalyzer, DrawdownProfile, drawdown_curve
from src.risk.metrics import RiskMetrics, UNBOUNDED_RATIO, percentile_at
from src.risk.aggregate import (
    AggregateStatistics,
    HistogramBin,
    PercentileRow,
    RegimePerformance,
    aggregate,
    equity_percentile_bands,
    histogram,
)

__all__ = [
    "DrawdownAnalyzer",
    "DrawdownProfile",
    "drawdown_curve",
    "RiskMetrics",
    "UNBOUNDED_RATIO",
    "percentile_at",
    "AggregateStatistics",
    "HistogramBin",
    "PercentileRow",
    "RegimePerformance",
    "aggregate",
    "equity_percentile_bands",
    "histogram",
]
