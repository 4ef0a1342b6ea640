"""
Per-path simulation output.

A SimulationResult is created by exactly one TradeSequenceSimulator.run call
and owned by the caller afterwards. Aggregation only reads results.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List


class StopReason(str, Enum):
    """Why a path stopped."""

    COMPLETED = "completed"
    RUIN = "ruin"
    DRAWDOWN_STOP = "drawdownStop"


@dataclass
class RegimeTally:
    """
    Running sums for the trades taken while one regime was active.

    Tallies are accumulated during the path's single pass and merged across
    paths during aggregation, so per-regime statistics never require a
    rescan of regime histories.
    """

    trades: int = 0
    wins: int = 0
    losses: int = 0
    gross_profit: float = 0.0
    gross_loss: float = 0.0
    net_pnl: float = 0.0
    max_drawdown: float = 0.0

    def record(self, pnl: float, is_win: bool, drawdown: float) -> None:
        """Add one trade's net P&L and the drawdown after it."""
        self.trades += 1
        if is_win:
            self.wins += 1
        else:
            self.losses += 1
        if pnl > 0:
            self.gross_profit += pnl
        elif pnl < 0:
            self.gross_loss -= pnl
        self.net_pnl += pnl
        if drawdown > self.max_drawdown:
            self.max_drawdown = drawdown

    def merged(self, other: "RegimeTally") -> "RegimeTally":
        """New tally combining two (neither input is modified)."""
        return RegimeTally(
            trades=self.trades + other.trades,
            wins=self.wins + other.wins,
            losses=self.losses + other.losses,
            gross_profit=self.gross_profit + other.gross_profit,
            gross_loss=self.gross_loss + other.gross_loss,
            net_pnl=self.net_pnl + other.net_pnl,
            max_drawdown=max(self.max_drawdown, other.max_drawdown),
        )


@dataclass
class SimulationResult:
    """
    One synthetic trading history.

    Attributes
    ----------
    final_capital, total_return, return_percent : float
        Ending capital, its change from the start, and that change in percent.
    max_drawdown : float
        Largest peak-to-trough decline in percent.
    equity_curve : List[float]
        Capital before the first trade and after every executed trade.
    drawdown_curve : List[float]
        Drawdown in percent at each equity point (all >= 0).
    num_wins, num_losses : int
        Trade outcome counts.
    largest_win, largest_loss : float
        Largest single gross win (>= 0) and loss (<= 0).
    max_consecutive_wins, max_consecutive_losses : int
        Longest streaks.
    profit_factor : float
        total_win_amount / total_loss_amount (see RiskMetrics.profit_factor).
    total_win_amount, total_loss_amount : float
        Gross wins and gross losses (positive magnitudes).
    regime_history : List[str]
        Regime id per executed trade.
    time_in_each_regime : Dict[str, int]
        Trades per regime id.
    drawdown_durations, recovery_times : List[int]
        Drawdown episode lengths; recovered episodes only for the latter.
    regime_tallies : Dict[str, RegimeTally]
        Per-regime running sums.
    stop_reason : StopReason
        completed, ruin or drawdownStop.
    """

    final_capital: float
    total_return: float
    return_percent: float
    max_drawdown: float
    equity_curve: List[float]
    drawdown_curve: List[float]
    num_wins: int
    num_losses: int
    largest_win: float
    largest_loss: float
    max_consecutive_wins: int
    max_consecutive_losses: int
    profit_factor: float
    total_win_amount: float
    total_loss_amount: float
    regime_history: List[str] = field(default_factory=list)
    time_in_each_regime: Dict[str, int] = field(default_factory=dict)
    drawdown_durations: List[int] = field(default_factory=list)
    recovery_times: List[int] = field(default_factory=list)
    regime_tallies: Dict[str, RegimeTally] = field(default_factory=dict)
    stop_reason: StopReason = StopReason.COMPLETED

    @property
    def trades_executed(self) -> int:
        return self.num_wins + self.num_losses

    @property
    def win_rate(self) -> float:
        """Observed win rate in percent (0 for an empty path)."""
        n = self.trades_executed
        return 100.0 * self.num_wins / n if n > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["stop_reason"] = self.stop_reason.value
        return data
