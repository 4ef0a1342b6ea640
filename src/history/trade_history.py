"""
Strategy statistics from a realised trade log.

Turns per-trade profits (from a list or a broker/platform CSV export) into
the win rate and average win / loss a simulation config needs, so a run can
be calibrated to a strategy's actual record.
"""

import logging
from dataclasses import asdict, dataclass, replace
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Sequence, Union

import numpy as np
import pandas as pd

from src.risk.metrics import RiskMetrics
from src.simulation.config import SimulationConfig

logger = logging.getLogger(__name__)

PROFIT_COLUMN_ALIASES = (
    "Profit",
    "profit",
    "pnl",
    "p&l",
    "net_profit",
    "realized_pnl",
    "profit/loss",
)


def find_profit_column(columns: Iterable[str]) -> Optional[str]:
    """
    First column matching a known profit alias.

    Exact matches win over case-insensitive ones, which win over headers
    that merely contain an alias (``Net P&L``, ``Trade Profit ($)``).
    """
    names = [str(c) for c in columns]
    for alias in PROFIT_COLUMN_ALIASES:
        if alias in names:
            return alias
    lowered = {name.strip().lower(): name for name in names}
    for alias in PROFIT_COLUMN_ALIASES:
        if alias.lower() in lowered:
            return lowered[alias.lower()]
    for alias in PROFIT_COLUMN_ALIASES:
        for key, name in lowered.items():
            if alias.lower() in key:
                return name
    return None


@dataclass(frozen=True)
class TradeHistoryStats:
    """
    Summary of a realised trade log.

    Trades with zero profit count toward ``total_trades`` but are neither
    wins nor losses. ``avg_loss`` is a positive magnitude.
    """

    total_trades: int
    wins: int
    losses: int
    win_rate: float
    avg_win: float
    avg_loss: float
    profit_factor: float
    max_consecutive_wins: int
    max_consecutive_losses: int
    total_pnl: float

    @classmethod
    def from_profits(cls, profits: Sequence[float]) -> "TradeHistoryStats":
        """Statistics of a sequence of per-trade profits, in trade order."""
        pnl = np.asarray(profits, dtype=np.float64)
        n = int(pnl.size)

        win_mask = pnl > 0
        loss_mask = pnl < 0
        wins = int(np.count_nonzero(win_mask))
        losses = int(np.count_nonzero(loss_mask))
        gross_profit = float(pnl[win_mask].sum())
        gross_loss = float(-pnl[loss_mask].sum())

        max_wins = max_losses = 0
        win_run = loss_run = 0
        for value in pnl:
            if value > 0:
                win_run += 1
                loss_run = 0
            elif value < 0:
                loss_run += 1
                win_run = 0
            # flat trades leave both streaks untouched
            max_wins = max(max_wins, win_run)
            max_losses = max(max_losses, loss_run)

        return cls(
            total_trades=n,
            wins=wins,
            losses=losses,
            win_rate=100.0 * wins / n if n > 0 else 0.0,
            avg_win=gross_profit / wins if wins > 0 else 0.0,
            avg_loss=gross_loss / losses if losses > 0 else 0.0,
            profit_factor=RiskMetrics.profit_factor(gross_profit, gross_loss),
            max_consecutive_wins=max_wins,
            max_consecutive_losses=max_losses,
            total_pnl=float(pnl.sum()),
        )

    @classmethod
    def from_frame(
        cls,
        frame: pd.DataFrame,
        profit_column: Optional[str] = None,
    ) -> "TradeHistoryStats":
        """
        Statistics of a trade-log DataFrame.

        Parameters
        ----------
        frame : pd.DataFrame
            One row per trade, in trade order.
        profit_column : str, optional
            Column holding per-trade profit. Auto-detected from
            ``PROFIT_COLUMN_ALIASES`` when omitted.

        Raises
        ------
        ValueError
            If no profit column is given or found.
        """
        column = profit_column or find_profit_column(frame.columns)
        if column is None or column not in frame.columns:
            raise ValueError(
                f"No profit column found. Expected one of {list(PROFIT_COLUMN_ALIASES)}, "
                f"got columns {list(frame.columns)}"
            )

        raw = frame[column]
        if not pd.api.types.is_numeric_dtype(raw):
            raw = raw.astype(str).str.replace(r"[$,\s]", "", regex=True)
        profits = pd.to_numeric(raw, errors="coerce")

        dropped = int(profits.isna().sum())
        if dropped:
            logger.warning(
                "Dropped %d of %d rows with non-numeric %r values",
                dropped,
                len(profits),
                column,
            )

        return cls.from_profits(profits.dropna().to_numpy(dtype=np.float64))

    @classmethod
    def from_csv(
        cls,
        path: Union[str, Path],
        profit_column: Optional[str] = None,
    ) -> "TradeHistoryStats":
        """Statistics of a trade-log CSV file (see ``from_frame``)."""
        frame = pd.read_csv(path)
        logger.debug("Read %d trades from %s", len(frame), path)
        return cls.from_frame(frame, profit_column)

    def apply_to(self, config: SimulationConfig) -> SimulationConfig:
        """Copy of ``config`` calibrated to this trade history."""
        return replace(
            config,
            win_rate=self.win_rate,
            avg_win=self.avg_win,
            avg_loss=self.avg_loss,
            num_trades=self.total_trades,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
