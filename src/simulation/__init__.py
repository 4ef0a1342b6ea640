"""
Single-path trade-sequence simulation.

This module provides the per-path half of the Monte Carlo engine:
- SimulationConfig: immutable run parameters (sizing, regimes, sequence risk)
- TradeSequenceSimulator: one synthetic trading history per ``run`` call
- SimulationResult: equity/drawdown curves, trade stats, regime tallies

**Usage:**
```python
from src.rng import make_rng
from src.simulation import SimulationConfig, TradeSequenceSimulator

config = SimulationConfig(win_rate=55, avg_win=200, avg_loss=100, enable_regimes=True)
result = TradeSequenceSimulator(config).run(make_rng(42))

result.final_capital, result.max_drawdown, result.time_in_each_regime
```
"""

from src.simulation.config import SimulationConfig, SequenceRiskMode, STRATEGY_PRESETS
from src.simulation.results import SimulationResult, RegimeTally, StopReason
from src.simulation.trade_sequence import TradeSequenceSimulator, effective_parameters

__all__ = [
    "SimulationConfig",
    "SequenceRiskMode",
    "STRATEGY_PRESETS",
    "SimulationResult",
    "RegimeTally",
    "StopReason",
    "TradeSequenceSimulator",
    "effective_parameters",
]
