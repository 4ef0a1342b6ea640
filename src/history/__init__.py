"""Calibration of simulation configs from realised trade logs."""

from src.history.trade_history import (
    PROFIT_COLUMN_ALIASES,
    TradeHistoryStats,
    find_profit_column,
)

__all__ = [
    "PROFIT_COLUMN_ALIASES",
    "TradeHistoryStats",
    "find_profit_column",
]
