"""
Market regimes and regime switching within a simulated path.

**Regime selection (selector.py):**
- MarketRegime: weight plus win-rate / payoff / volatility modifiers
- DEFAULT_REGIMES: trending, ranging, volatile, quiet
- NORMAL_REGIME: flat regime used when switching is disabled
- select_regime: weighted draw with first-regime fallback
- RegimeSelector: per-path active regime with jittered holding periods
"""

from src.regimes.selector import (
    MarketRegime,
    NORMAL_REGIME,
    DEFAULT_REGIMES,
    select_regime,
    RegimeSelector,
)

__all__ = [
    "MarketRegime",
    "NORMAL_REGIME",
    "DEFAULT_REGIMES",
    "select_regime",
    "RegimeSelector",
]
