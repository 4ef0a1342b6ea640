"""
Weighted market-regime selection with randomized holding periods.

A regime table is a list of market states (trending, ranging, volatile, ...)
each carrying a relative weight and a set of modifiers applied to the
strategy's win rate, payoffs and per-trade variance. Regimes are drawn
independently in proportion to their weights and held for a jittered number
of trades before the next draw.

Mathematical formulation:
    W = Σ_k w_k                            # Total weight (need not be 100)
    u ~ U(0, W)
    s = min{ k : Σ_{j≤k} w_j > u }          # First regime past the draw
    h = f + ⌊(U(0,1) − 0.5) · f⌋            # Holding period, f ± 50%

The jitter on h avoids artificial periodicity in the regime sequence.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple
import numpy as np
from numpy.typing import NDArray

from src.rng.source import RandomSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MarketRegime:
    """
    A market state and its effect on the strategy's trade distribution.

    Attributes
    ----------
    id : str
        Stable identifier used in regime histories.
    name : str
        Display name.
    probability : float
        Relative selection weight. Weights are normalized by their sum.
    win_rate_modifier : float
        Added to the base win rate (percentage points).
    avg_win_multiplier : float
        Scales the average win.
    avg_loss_multiplier : float
        Scales the average loss.
    volatility_multiplier : float
        Scales the per-trade P&L variance.
    """

    id: str
    name: str
    probability: float
    win_rate_modifier: float = 0.0
    avg_win_multiplier: float = 1.0
    avg_loss_multiplier: float = 1.0
    volatility_multiplier: float = 1.0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MarketRegime":
        """Build a regime from camelCase or snake_case keys."""
        def pick(snake: str, camel: str, default: Any) -> Any:
            if snake in data:
                return data[snake]
            return data.get(camel, default)

        return cls(
            id=str(data["id"]),
            name=str(data.get("name", data["id"])),
            probability=float(data.get("probability", 0.0)),
            win_rate_modifier=float(pick("win_rate_modifier", "winRateModifier", 0.0)),
            avg_win_multiplier=float(pick("avg_win_multiplier", "avgWinMultiplier", 1.0)),
            avg_loss_multiplier=float(pick("avg_loss_multiplier", "avgLossMultiplier", 1.0)),
            volatility_multiplier=float(
                pick("volatility_multiplier", "volatilityMultiplier", 1.0)
            ),
        )


NORMAL_REGIME = MarketRegime(id="normal", name="Normal", probability=100.0)

DEFAULT_REGIMES: Tuple[MarketRegime, ...] = (
    MarketRegime(
        id="trending",
        name="Trending",
        probability=30.0,
        win_rate_modifier=10.0,
        avg_win_multiplier=1.3,
        avg_loss_multiplier=0.8,
        volatility_multiplier=0.8,
    ),
    MarketRegime(
        id="ranging",
        name="Ranging",
        probability=40.0,
        win_rate_modifier=0.0,
        avg_win_multiplier=0.9,
        avg_loss_multiplier=1.0,
        volatility_multiplier=1.0,
    ),
    MarketRegime(
        id="volatile",
        name="Volatile",
        probability=20.0,
        win_rate_modifier=-5.0,
        avg_win_multiplier=1.5,
        avg_loss_multiplier=1.3,
        volatility_multiplier=1.5,
    ),
    MarketRegime(
        id="quiet",
        name="Quiet",
        probability=10.0,
        win_rate_modifier=5.0,
        avg_win_multiplier=0.7,
        avg_loss_multiplier=0.7,
        volatility_multiplier=0.5,
    ),
)


def select_regime(
    regimes: Sequence[MarketRegime],
    rng: RandomSource,
) -> MarketRegime:
    """
    Draw one regime in proportion to its weight.

    Parameters
    ----------
    regimes : Sequence[MarketRegime]
        Candidate regimes. Negative weights count as zero.
    rng : RandomSource
        Uniform source; exactly one value is consumed.

    Returns
    -------
    MarketRegime
        The first regime whose cumulative weight exceeds the draw. Falls back
        to the first regime when none does (zero total weight or a draw that
        lands exactly on the total), and to NORMAL_REGIME for an empty table.
    """
    if not regimes:
        return NORMAL_REGIME

    total = sum(max(0.0, r.probability) for r in regimes)
    draw = rng.random() * total

    cumulative = 0.0
    for regime in regimes:
        cumulative += max(0.0, regime.probability)
        if cumulative > draw:
            return regime

    if total <= 0:
        logger.debug("Regime table has zero total weight; using %s", regimes[0].id)
    return regimes[0]


class RegimeSelector:
    """
    Active-regime state for one simulated path.

    Holds the current regime and a countdown of trades remaining before the
    next weighted draw. One selector belongs to exactly one path.

    Attributes
    ----------
    regimes : Tuple[MarketRegime, ...]
        Regime table (NORMAL_REGIME alone if constructed empty).
    switch_frequency : int
        Nominal number of trades a regime is held.
    current : MarketRegime or None
        Regime returned by the last ``next_regime`` call.
    """

    def __init__(
        self,
        regimes: Sequence[MarketRegime],
        switch_frequency: int,
        rng: RandomSource,
    ) -> None:
        """
        Initialize selector.

        Parameters
        ----------
        regimes : Sequence[MarketRegime]
            Regime table. An empty table degrades to the flat normal regime.
        switch_frequency : int
            Nominal holding period in trades. Values below 1 redraw every trade.
        rng : RandomSource
            Uniform source owned by the path.
        """
        self.regimes: Tuple[MarketRegime, ...] = tuple(regimes) or (NORMAL_REGIME,)
        self.switch_frequency = int(switch_frequency)
        self.rng = rng
        self.current: Optional[MarketRegime] = None
        self._remaining = 0

    def holding_period(self) -> int:
        """Jittered number of trades to hold a freshly drawn regime (>= 1)."""
        freq = self.switch_frequency
        if freq <= 0:
            return 1
        jitter = math.floor((self.rng.random() - 0.5) * freq)
        return max(1, freq + jitter)

    def next_regime(self) -> MarketRegime:
        """
        Regime active for the next trade.

        Draws a new regime (and a new holding period) when the countdown of
        the current one has run out, then consumes one trade of it.
        """
        if self.current is None or self._remaining <= 0:
            self.current = select_regime(self.regimes, self.rng)
            self._remaining = self.holding_period()

        self._remaining -= 1
        return self.current

    def long_run_shares(self) -> NDArray[np.float64]:
        """
        Expected share of trades spent in each regime.

        Since draws are independent of the outgoing regime and holding
        periods do not depend on the regime, the long-run share is the
        normalized weight vector. Uniform if all weights are zero.
        """
        weights = np.array(
            [max(0.0, r.probability) for r in self.regimes], dtype=np.float64
        )
        total = weights.sum()
        if total <= 0:
            return np.full(len(self.regimes), 1.0 / len(self.regimes))
        return weights / total

    def shares_by_id(self) -> Dict[str, float]:
        """``long_run_shares`` keyed by regime id."""
        shares = self.long_run_shares()
        return {r.id: float(s) for r, s in zip(self.regimes, shares)}

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"RegimeSelector(n_regimes={len(self.regimes)}, "
            f"switch_frequency={self.switch_frequency})"
        )
