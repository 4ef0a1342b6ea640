"""
Position sizing: fixed, Kelly-family and anti-martingale stakes.
"""

from src.sizing.position_sizer import (
    PositionSizing,
    PositionSizer,
    kelly_fraction,
    anti_martingale_multiplier,
)

__all__ = [
    "PositionSizing",
    "PositionSizer",
    "kelly_fraction",
    "anti_martingale_multiplier",
]
