"""
Simulation configuration: the immutable input to every simulated path.

A SimulationConfig is built by the caller (typically from a configuration
panel's form fields) and shared read-only by all paths of a run. Numeric
edge values (zero trades, zero simulations, empty regime table) are legal
and produce empty-but-valid output; only values that cannot be interpreted
at all are rejected.
"""

import logging
import re
from dataclasses import asdict, dataclass, field, fields, replace
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from src.regimes.selector import DEFAULT_REGIMES, MarketRegime
from src.sizing.position_sizer import PositionSizing

logger = logging.getLogger(__name__)

# Capital below this fraction of the starting capital ends a path
RUIN_FRACTION = 0.1


class SequenceRiskMode(str, Enum):
    """Ordering stress applied to the trade sequence."""

    NORMAL = "normal"
    BAD_START = "badStart"
    RETIREMENT = "retirement"


STRATEGY_PRESETS: Dict[str, Dict[str, Any]] = {
    "conservative": {"win_rate": 65, "avg_win": 120, "avg_loss": 100, "risk_per_trade": 1},
    "balanced": {"win_rate": 60, "avg_win": 150, "avg_loss": 100, "risk_per_trade": 2},
    "aggressive": {"win_rate": 55, "avg_win": 200, "avg_loss": 100, "risk_per_trade": 3},
    "scalper": {
        "win_rate": 70,
        "avg_win": 50,
        "avg_loss": 50,
        "risk_per_trade": 0.5,
        "num_trades": 500,
    },
    "swing": {
        "win_rate": 50,
        "avg_win": 250,
        "avg_loss": 100,
        "risk_per_trade": 2,
        "num_trades": 50,
    },
}

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def _to_snake(key: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", key).lower()


@dataclass(frozen=True)
class SimulationConfig:
    """
    Parameters of a Monte Carlo trade-sequence run.

    Attributes
    ----------
    starting_capital : float
        Capital at the start of every path.
    num_trades : int
        Trades per path (paths may stop early on ruin or drawdown stop).
    win_rate : float
        Base win probability in percent.
    avg_win, avg_loss : float
        Average win / loss as positive magnitudes. Only their ratio enters
        the P&L; position size sets the currency scale.
    position_sizing : PositionSizing
        Sizing policy.
    risk_per_trade : float
        Percent of the capital base risked per trade (fixed policies).
    enable_compounding : bool
        Size from running capital instead of starting capital.
    enable_regimes : bool
        Apply regime switching from ``regimes``.
    regimes : Tuple[MarketRegime, ...]
        Regime table.
    regime_switch_frequency : int
        Nominal trades per regime before a redraw.
    max_drawdown_stop : float or None
        Stop the path once drawdown (percent) reaches this level.
        None or 0 disables the stop.
    sequence_risk_mode : SequenceRiskMode
        normal, badStart (forced opening losses) or retirement (periodic
        withdrawals).
    bad_start_losses : int
        Number of forced opening losses under badStart.
    retirement_withdrawal : float
        Amount withdrawn every 20th trade under retirement.
    include_slippage, slippage_percent : bool, float
        Haircut on each trade's P&L.
    include_commission, commission_per_trade : bool, float
        Fixed cost per trade.
    trading_days_per_year, avg_trades_per_day : float
        Calendar used for annualization and projections.
    num_simulations : int
        Number of independent paths.
    """

    starting_capital: float = 10000.0
    num_trades: int = 100
    win_rate: float = 60.0
    avg_win: float = 150.0
    avg_loss: float = 100.0
    position_sizing: PositionSizing = PositionSizing.FIXED_PERCENT
    risk_per_trade: float = 2.0
    enable_compounding: bool = True
    enable_regimes: bool = False
    regimes: Tuple[MarketRegime, ...] = field(default=DEFAULT_REGIMES)
    regime_switch_frequency: int = 25
    max_drawdown_stop: Optional[float] = None
    sequence_risk_mode: SequenceRiskMode = SequenceRiskMode.NORMAL
    bad_start_losses: int = 5
    retirement_withdrawal: float = 500.0
    include_slippage: bool = False
    slippage_percent: float = 0.5
    include_commission: bool = False
    commission_per_trade: float = 7.0
    trading_days_per_year: float = 252.0
    avg_trades_per_day: float = 2.0
    num_simulations: int = 10000

    def __post_init__(self) -> None:
        try:
            sizing = PositionSizing(self.position_sizing)
        except ValueError:
            raise ValueError(
                f"position_sizing must be one of "
                f"{[p.value for p in PositionSizing]}. Got {self.position_sizing!r}"
            ) from None

        try:
            mode = SequenceRiskMode(self.sequence_risk_mode)
        except ValueError:
            raise ValueError(
                f"sequence_risk_mode must be one of "
                f"{[m.value for m in SequenceRiskMode]}. Got {self.sequence_risk_mode!r}"
            ) from None

        for name in ("num_trades", "num_simulations", "bad_start_losses"):
            value = getattr(self, name)
            if value < 0:
                raise ValueError(f"{name} must be non-negative. Got {value}")

        regimes = tuple(
            r if isinstance(r, MarketRegime) else MarketRegime.from_dict(r)
            for r in (self.regimes or ())
        )

        object.__setattr__(self, "position_sizing", sizing)
        object.__setattr__(self, "sequence_risk_mode", mode)
        object.__setattr__(self, "regimes", regimes)
        object.__setattr__(self, "num_trades", int(self.num_trades))
        object.__setattr__(self, "num_simulations", int(self.num_simulations))
        object.__setattr__(self, "bad_start_losses", int(self.bad_start_losses))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SimulationConfig":
        """
        Build a config from form fields.

        Keys may be camelCase (``startingCapital``) or snake_case. Keys that
        are not config fields are ignored.
        """
        known = {f.name for f in fields(cls)}
        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            name = key if key in known else _to_snake(key)
            if name in known:
                kwargs[name] = value
            else:
                logger.debug("Ignoring unknown config key %r", key)
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        """Snake_case primitives (enums as their string values)."""
        data = asdict(self)
        data["position_sizing"] = self.position_sizing.value
        data["sequence_risk_mode"] = self.sequence_risk_mode.value
        data["regimes"] = [asdict(r) for r in self.regimes]
        return data

    def with_preset(self, name: str) -> "SimulationConfig":
        """Copy with one of STRATEGY_PRESETS applied."""
        if name not in STRATEGY_PRESETS:
            raise ValueError(
                f"Unknown preset {name!r}. Available: {sorted(STRATEGY_PRESETS)}"
            )
        return replace(self, **STRATEGY_PRESETS[name])

    @property
    def years(self) -> float:
        """Simulated horizon in years."""
        trades_per_year = self.trading_days_per_year * self.avg_trades_per_day
        if trades_per_year <= 0:
            return 0.0
        return self.num_trades / trades_per_year

    @property
    def risk_reward_ratio(self) -> float:
        """avg_win / avg_loss (0 when avg_loss is 0)."""
        return self.avg_win / self.avg_loss if self.avg_loss > 0 else 0.0

    @property
    def expectancy(self) -> float:
        """Expected P&L per trade in the units of avg_win / avg_loss."""
        p = self.win_rate / 100.0
        return p * self.avg_win - (1.0 - p) * self.avg_loss

    @property
    def drawdown_stop_enabled(self) -> bool:
        return bool(self.max_drawdown_stop)
