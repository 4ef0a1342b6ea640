"""
Single-path trade-sequence simulator.

Runs one synthetic trading history trade by trade: the active market regime
shifts the strategy's win rate, payoffs and variance; the sizing policy sets
the stake; each outcome is a Bernoulli draw with a jittered payoff:

    m_t   = max(0, 1 + (U − 0.5) · 2 · (0.3 · vol_{s_t}))  # payoff jitter
    win   : pnl_t = +pos_t · (avg_win / avg_loss) · m_t
    loss  : pnl_t = −pos_t · m_t

The path stops when all trades are taken, when drawdown reaches the
configured stop, or on ruin (capital below 10% of the starting capital).

All state (capital, peak, streaks, curves, regime tallies) is local to one
``run`` call, so paths can be simulated in any order or in parallel.
"""

from typing import Dict, List, Optional, Tuple

from src.regimes.selector import MarketRegime, NORMAL_REGIME, RegimeSelector
from src.rng.source import RandomSource
from src.risk.drawdown import DrawdownAnalyzer, drawdown_percent
from src.risk.metrics import RiskMetrics
from src.simulation.config import RUIN_FRACTION, SequenceRiskMode, SimulationConfig
from src.simulation.results import RegimeTally, SimulationResult, StopReason
from src.sizing.position_sizer import PositionSizer

BASE_VARIANCE = 0.3
RETIREMENT_WITHDRAWAL_INTERVAL = 20


def effective_parameters(
    config: SimulationConfig,
    regime: MarketRegime,
) -> Tuple[float, float, float, float]:
    """
    Regime-adjusted (win_rate, avg_win, avg_loss, volatility) for one trade.

    The win rate is clamped to [0, 100] after the additive modifier.
    """
    win_rate = min(100.0, max(0.0, config.win_rate + regime.win_rate_modifier))
    avg_win = config.avg_win * regime.avg_win_multiplier
    avg_loss = config.avg_loss * regime.avg_loss_multiplier
    return win_rate, avg_win, avg_loss, regime.volatility_multiplier


def payoff_multiplier(u: float, volatility: float) -> float:
    """
    Payoff jitter for uniform ``u`` at the given volatility.

    Floored at zero so a win never loses money and a loss never pays.
    """
    return max(0.0, 1.0 + (u - 0.5) * 2.0 * (BASE_VARIANCE * volatility))


class TradeSequenceSimulator:
    """
    Simulates one path per ``run`` call from a shared, read-only config.

    Attributes
    ----------
    config : SimulationConfig
        Run configuration.
    sizer : PositionSizer
        Sizing policy derived from the config.
    """

    def __init__(self, config: SimulationConfig) -> None:
        self.config = config
        self.sizer = PositionSizer(
            config.position_sizing,
            config.risk_per_trade,
            config.starting_capital,
        )

    def run(self, rng: RandomSource) -> SimulationResult:
        """
        Simulate one trade sequence.

        Parameters
        ----------
        rng : RandomSource
            Uniform source owned by this path. Draw order per trade: regime
            draws (only when a regime expires), win draw (skipped for forced
            losses), payoff jitter.

        Returns
        -------
        SimulationResult
            ``equity_curve`` and ``drawdown_curve`` hold one entry more than
            the number of executed trades.
        """
        cfg = self.config
        capital = float(cfg.starting_capital)
        peak = capital
        max_dd = 0.0
        ruin_level = cfg.starting_capital * RUIN_FRACTION

        equity: List[float] = [capital]
        drawdowns: List[float] = [0.0]
        regime_history: List[str] = []
        time_in_regime: Dict[str, int] = {}
        tallies: Dict[str, RegimeTally] = {}

        selector: Optional[RegimeSelector] = None
        if cfg.enable_regimes and cfg.regimes:
            selector = RegimeSelector(cfg.regimes, cfg.regime_switch_frequency, rng)

        wins = losses = 0
        win_streak = loss_streak = 0
        max_win_streak = max_loss_streak = 0
        largest_win = largest_loss = 0.0
        total_win = total_loss = 0.0

        forced_losses = (
            cfg.bad_start_losses
            if cfg.sequence_risk_mode is SequenceRiskMode.BAD_START
            else 0
        )
        retirement = cfg.sequence_risk_mode is SequenceRiskMode.RETIREMENT
        stop_reason = StopReason.COMPLETED

        for i in range(cfg.num_trades):
            if cfg.drawdown_stop_enabled and (
                drawdown_percent(peak, capital) >= cfg.max_drawdown_stop
            ):
                stop_reason = StopReason.DRAWDOWN_STOP
                break

            regime = selector.next_regime() if selector is not None else NORMAL_REGIME
            regime_history.append(regime.id)
            time_in_regime[regime.id] = time_in_regime.get(regime.id, 0) + 1

            win_rate, avg_win, avg_loss, volatility = effective_parameters(cfg, regime)

            if forced_losses > 0:
                is_win = False
                forced_losses -= 1
            else:
                is_win = rng.random() < win_rate / 100.0

            base_capital = capital if cfg.enable_compounding else cfg.starting_capital
            position = self.sizer.size(base_capital, win_streak, win_rate, avg_win, avg_loss)

            multiplier = payoff_multiplier(rng.random(), volatility)

            if is_win:
                payoff = avg_win / avg_loss if avg_loss > 0 else 0.0
                pnl = position * payoff * multiplier
                wins += 1
                win_streak += 1
                loss_streak = 0
                largest_win = max(largest_win, pnl)
                total_win += pnl
            else:
                pnl = -position * multiplier
                losses += 1
                loss_streak += 1
                win_streak = 0
                largest_loss = min(largest_loss, pnl)
                total_loss += abs(pnl)

            if cfg.include_slippage:
                pnl *= 1.0 - cfg.slippage_percent / 100.0
            if cfg.include_commission:
                pnl -= cfg.commission_per_trade

            if retirement and i > 0 and i % RETIREMENT_WITHDRAWAL_INTERVAL == 0:
                capital -= cfg.retirement_withdrawal

            capital += pnl
            max_win_streak = max(max_win_streak, win_streak)
            max_loss_streak = max(max_loss_streak, loss_streak)

            if capital > peak:
                peak = capital
            dd = drawdown_percent(peak, capital)
            max_dd = max(max_dd, dd)

            equity.append(capital)
            drawdowns.append(dd)

            tally = tallies.get(regime.id)
            if tally is None:
                tally = tallies[regime.id] = RegimeTally()
            tally.record(pnl, is_win, dd)

            if capital < ruin_level:
                stop_reason = StopReason.RUIN
                break

        profile = DrawdownAnalyzer.analyze(drawdowns)
        total_return = capital - cfg.starting_capital

        return SimulationResult(
            final_capital=capital,
            total_return=total_return,
            return_percent=(
                total_return / cfg.starting_capital * 100.0
                if cfg.starting_capital > 0
                else 0.0
            ),
            max_drawdown=max_dd,
            equity_curve=equity,
            drawdown_curve=drawdowns,
            num_wins=wins,
            num_losses=losses,
            largest_win=largest_win,
            largest_loss=largest_loss,
            max_consecutive_wins=max_win_streak,
            max_consecutive_losses=max_loss_streak,
            profit_factor=RiskMetrics.profit_factor(total_win, total_loss),
            total_win_amount=total_win,
            total_loss_amount=total_loss,
            regime_history=regime_history,
            time_in_each_regime=time_in_regime,
            drawdown_durations=profile.durations,
            recovery_times=profile.recovery_times,
            regime_tallies=tallies,
            stop_reason=stop_reason,
        )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"TradeSequenceSimulator(num_trades={self.config.num_trades}, "
            f"sizing={self.config.position_sizing.value}, "
            f"regimes={'on' if self.config.enable_regimes else 'off'})"
        )
