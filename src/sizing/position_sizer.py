"""
Position sizing policies for simulated trades.

Each policy turns the path's current state into the capital amount put at
risk on the next trade. The Kelly family sizes from the growth-optimal
fraction of the trade's payoff distribution:

    p = win_rate / 100,  q = 1 − p,  b = avg_win / avg_loss
    f* = (p·b − q) / b                       # Kelly fraction, clamped to [0, 1]

and caps each variant well below full Kelly, since an optimistic win-rate
estimate makes f* overshoot and sharply raises the risk of ruin.
"""

from enum import Enum
from typing import Dict, Tuple


class PositionSizing(str, Enum):
    """Position sizing policy. Values match the configuration panel."""

    FIXED_PERCENT = "fixedPercent"
    FIXED_DOLLAR = "fixedDollar"
    KELLY = "kelly"
    HALF_KELLY = "halfKelly"
    QUARTER_KELLY = "quarterKelly"
    ANTI_MARTINGALE = "antiMartingale"


# (divisor of f*, cap as fraction of capital)
KELLY_VARIANTS: Dict[PositionSizing, Tuple[float, float]] = {
    PositionSizing.KELLY: (1.0, 0.25),
    PositionSizing.HALF_KELLY: (2.0, 0.15),
    PositionSizing.QUARTER_KELLY: (4.0, 0.10),
}

ANTI_MARTINGALE_STEP = 0.2
ANTI_MARTINGALE_MAX_MULTIPLIER = 2.0


def kelly_fraction(win_rate: float, avg_win: float, avg_loss: float) -> float:
    """
    Kelly optimal fraction of capital to risk.

    Parameters
    ----------
    win_rate : float
        Win probability in percent (clamped to [0, 100]).
    avg_win : float
        Average winning trade (positive magnitude).
    avg_loss : float
        Average losing trade (positive magnitude).

    Returns
    -------
    float
        f* clamped to [0, 1]. Zero when either payoff is non-positive, so a
        zero average loss never divides by zero.
    """
    if avg_loss <= 0 or avg_win <= 0:
        return 0.0

    p = min(1.0, max(0.0, win_rate / 100.0))
    q = 1.0 - p
    b = avg_win / avg_loss
    f = (p * b - q) / b

    return max(0.0, min(f, 1.0))


def anti_martingale_multiplier(consecutive_wins: int) -> float:
    """Stake multiplier after a winning streak: 1 + 0.2·streak, at most 2."""
    return min(
        1.0 + max(0, consecutive_wins) * ANTI_MARTINGALE_STEP,
        ANTI_MARTINGALE_MAX_MULTIPLIER,
    )


class PositionSizer:
    """
    Capital at risk per trade under one sizing policy.

    Attributes
    ----------
    policy : PositionSizing
        Sizing policy.
    risk_per_trade : float
        Risk per trade in percent, used by the fixed and anti-martingale
        policies.
    starting_capital : float
        Capital base for ``fixedDollar``.
    """

    def __init__(
        self,
        policy: PositionSizing,
        risk_per_trade: float,
        starting_capital: float,
    ) -> None:
        self.policy = PositionSizing(policy)
        self.risk_per_trade = float(risk_per_trade)
        self.starting_capital = float(starting_capital)

    def size(
        self,
        base_capital: float,
        consecutive_wins: int,
        win_rate: float,
        avg_win: float,
        avg_loss: float,
    ) -> float:
        """
        Capital to risk on the next trade.

        Parameters
        ----------
        base_capital : float
            Running capital when compounding, else the starting capital.
        consecutive_wins : int
            Current winning streak (0 after any loss).
        win_rate, avg_win, avg_loss : float
            Regime-adjusted trade distribution for this trade.

        Returns
        -------
        float
            Position size in currency, never negative.
        """
        risk = self.risk_per_trade / 100.0

        if self.policy in KELLY_VARIANTS:
            divisor, cap = KELLY_VARIANTS[self.policy]
            f = kelly_fraction(win_rate, avg_win, avg_loss)
            size = base_capital * min(f / divisor, cap)
        elif self.policy is PositionSizing.ANTI_MARTINGALE:
            size = base_capital * risk * anti_martingale_multiplier(consecutive_wins)
        elif self.policy is PositionSizing.FIXED_DOLLAR:
            size = self.starting_capital * risk
        else:
            size = base_capital * risk

        return max(0.0, size)

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"PositionSizer(policy={self.policy.value}, "
            f"risk_per_trade={self.risk_per_trade})"
        )
