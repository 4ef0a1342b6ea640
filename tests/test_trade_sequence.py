"""
Unit tests for the single-path trade-sequence simulator.

Tests cover:
- Exact P&L of scripted trades (wins, losses, costs)
- Curve invariants (drawdown non-negativity, lengths, max drawdown)
- Path termination (ruin, drawdown stop, zero trades)
- Sequence-risk modes (bad start, retirement withdrawals)
- Regime switching effects and bookkeeping
- Reproducibility
"""

from typing import List, Sequence, Tuple

import numpy as np
import pytest

from src.regimes.selector import DEFAULT_REGIMES, MarketRegime
from src.rng.source import make_rng
from src.risk.metrics import UNBOUNDED_RATIO
from src.simulation.config import SequenceRiskMode, SimulationConfig
from src.simulation.results import SimulationResult, StopReason
from src.simulation.trade_sequence import (
    TradeSequenceSimulator,
    effective_parameters,
    payoff_multiplier,
)
from src.sizing.position_sizer import PositionSizing


class ScriptedRandom:
    """Replays a fixed sequence of uniforms, cycling when exhausted."""

    def __init__(self, values: Sequence[float]) -> None:
        self.values: List[float] = list(values)
        self.calls = 0

    def random(self) -> float:
        value = self.values[self.calls % len(self.values)]
        self.calls += 1
        return value


def run_path(rng_values: Sequence[float], **overrides) -> Tuple[SimulationResult, ScriptedRandom]:
    config = SimulationConfig(**overrides)
    rng = ScriptedRandom(rng_values)
    return TradeSequenceSimulator(config).run(rng), rng


class TestScriptedTrades:
    """Tests for exact per-trade arithmetic with scripted uniforms."""

    def test_single_win(self) -> None:
        """Test a win at the neutral payoff multiplier."""
        result, _ = run_path([0.5], num_trades=1, win_rate=100)
        # 2% of 10000 at 1.5:1
        assert result.final_capital == pytest.approx(10300.0)
        assert result.total_return == pytest.approx(300.0)
        assert result.return_percent == pytest.approx(3.0)
        assert result.num_wins == 1
        assert result.largest_win == pytest.approx(300.0)
        assert result.max_drawdown == 0.0
        assert result.profit_factor == UNBOUNDED_RATIO

    def test_single_loss(self) -> None:
        """Test a loss at the neutral payoff multiplier."""
        result, _ = run_path([0.5], num_trades=1, win_rate=0)
        assert result.final_capital == pytest.approx(9800.0)
        assert result.largest_loss == pytest.approx(-200.0)
        assert result.max_drawdown == pytest.approx(2.0)
        assert result.profit_factor == 0.0
        assert result.drawdown_curve == pytest.approx([0.0, 2.0])

    def test_payoff_jitter(self) -> None:
        """Test the ±30% payoff multiplier at unit volatility."""
        result, _ = run_path([0.0], num_trades=1, win_rate=0)
        assert result.final_capital == pytest.approx(10000.0 - 200.0 * 0.7)

    def test_slippage_and_commission(self) -> None:
        """Test that slippage scales the P&L before commission is deducted."""
        result, _ = run_path(
            [0.5],
            num_trades=1,
            win_rate=100,
            include_slippage=True,
            slippage_percent=0.5,
            include_commission=True,
            commission_per_trade=7.0,
        )
        assert result.final_capital == pytest.approx(10000.0 + 300.0 * 0.995 - 7.0)
        # trade totals are gross, tallies are net
        assert result.total_win_amount == pytest.approx(300.0)
        assert result.regime_tallies["normal"].net_pnl == pytest.approx(291.5)

    def test_compounding_sizes_from_running_capital(self) -> None:
        """Test that the second trade risks 2% of the updated capital."""
        result, _ = run_path([0.5], num_trades=2, win_rate=0, enable_compounding=True)
        assert result.final_capital == pytest.approx(10000.0 - 200.0 - 196.0)

    def test_fixed_base_without_compounding(self) -> None:
        """Test that the stake stays on the starting capital without compounding."""
        result, _ = run_path([0.5], num_trades=2, win_rate=0, enable_compounding=False)
        assert result.final_capital == pytest.approx(9600.0)


class TestCurveInvariants:
    """Tests for properties that hold on every simulated path."""

    @pytest.mark.parametrize("sizing", [p.value for p in PositionSizing])
    @pytest.mark.parametrize("compounding", [True, False])
    def test_drawdown_never_negative(self, sizing: str, compounding: bool) -> None:
        """Test drawdown >= 0 and curve lengths for every sizing policy."""
        config = SimulationConfig(
            num_trades=150,
            win_rate=45,
            position_sizing=sizing,
            enable_compounding=compounding,
            enable_regimes=True,
            include_commission=True,
        )
        simulator = TradeSequenceSimulator(config)
        for seed in range(10):
            result = simulator.run(make_rng(seed))
            assert all(d >= 0.0 for d in result.drawdown_curve)
            assert result.max_drawdown == pytest.approx(max(result.drawdown_curve))
            assert len(result.equity_curve) == result.trades_executed + 1
            assert len(result.drawdown_curve) == len(result.equity_curve)

    def test_zero_trades(self) -> None:
        """Test that a zero-trade path is flat and well formed."""
        result, rng = run_path([0.5], num_trades=0)
        assert result.final_capital == 10000.0
        assert result.total_return == 0.0
        assert result.equity_curve == [10000.0]
        assert result.drawdown_curve == [0.0]
        assert result.profit_factor == 0.0
        assert result.drawdown_durations == []
        assert result.stop_reason is StopReason.COMPLETED
        assert rng.calls == 0


class TestTermination:
    """Tests for ruin and drawdown-stop termination."""

    def test_ruin_after_one_trade(self) -> None:
        """Test that capital below 10% of start ends the path immediately."""
        result, _ = run_path(
            [0.99], num_trades=100, win_rate=0, risk_per_trade=95, enable_compounding=False
        )
        assert result.stop_reason is StopReason.RUIN
        assert result.trades_executed == 1
        assert len(result.equity_curve) == 2
        assert result.final_capital < 1000.0

    def test_ruin_after_two_trades(self) -> None:
        """Test ruin when the first loss lands above the ruin level."""
        result, _ = run_path(
            [0.0], num_trades=100, win_rate=0, risk_per_trade=95, enable_compounding=False
        )
        # 10000 - 9500 * 0.7 = 3350 survives the first trade
        assert result.equity_curve[1] == pytest.approx(3350.0)
        assert result.stop_reason is StopReason.RUIN
        assert result.trades_executed == 2

    def test_full_risk_losses_ruin_within_two_trades(self) -> None:
        """Test that 100% fixed risk with no winners ruins within two trades."""
        config = SimulationConfig(num_trades=100, win_rate=0, risk_per_trade=100)
        simulator = TradeSequenceSimulator(config)
        for seed in range(100):
            result = simulator.run(make_rng(seed))
            assert result.stop_reason is StopReason.RUIN
            assert result.trades_executed <= 2

    def test_full_risk_loss_at_high_multiplier_ruins_in_one_trade(self) -> None:
        """Test that a loss multiplier of at least 0.9 ruins on the first trade."""
        result, _ = run_path([0.9], num_trades=100, win_rate=0, risk_per_trade=100)
        assert result.stop_reason is StopReason.RUIN
        assert result.trades_executed == 1

    def test_ruin_is_first_breach(self) -> None:
        """Test that a path stops at the first capital below the ruin level."""
        config = SimulationConfig(
            num_trades=200, win_rate=30, risk_per_trade=25, enable_compounding=False
        )
        simulator = TradeSequenceSimulator(config)
        ruined = 0
        for seed in range(50):
            result = simulator.run(make_rng(seed))
            assert all(e >= 1000.0 for e in result.equity_curve[:-1])
            if result.stop_reason is StopReason.RUIN:
                ruined += 1
                assert result.equity_curve[-1] < 1000.0
            else:
                assert result.trades_executed == 200
        assert ruined > 0

    def test_drawdown_stop(self) -> None:
        """Test that the path halts once drawdown reaches the stop level."""
        result, _ = run_path(
            [0.5],
            num_trades=10,
            win_rate=0,
            risk_per_trade=5,
            enable_compounding=False,
            max_drawdown_stop=10.0,
        )
        assert result.stop_reason is StopReason.DRAWDOWN_STOP
        assert result.trades_executed == 2
        assert result.final_capital == pytest.approx(9000.0)

    @pytest.mark.parametrize("stop", [None, 0.0])
    def test_drawdown_stop_disabled(self, stop) -> None:
        """Test that None or 0 disables the drawdown stop."""
        result, _ = run_path(
            [0.5],
            num_trades=5,
            win_rate=0,
            risk_per_trade=5,
            enable_compounding=False,
            max_drawdown_stop=stop,
        )
        assert result.stop_reason is StopReason.COMPLETED
        assert result.trades_executed == 5


class TestSequenceRisk:
    """Tests for bad-start and retirement sequence modes."""

    def test_bad_start_forces_opening_losses(self) -> None:
        """Test that forced losses come first and consume no win draw."""
        result, rng = run_path(
            [0.5],
            num_trades=10,
            win_rate=100,
            sequence_risk_mode=SequenceRiskMode.BAD_START,
            bad_start_losses=5,
        )
        assert result.num_losses == 5
        assert result.num_wins == 5
        assert result.max_consecutive_losses == 5
        assert all(
            result.equity_curve[i + 1] < result.equity_curve[i] for i in range(5)
        )
        # 5 payoff draws for forced losses, 2 draws per later trade
        assert rng.calls == 15

    def test_bad_start_deepens_early_drawdown(self) -> None:
        """Test that forced losses raise the mean drawdown over the opening trades."""
        normal = TradeSequenceSimulator(SimulationConfig(num_trades=50, win_rate=70))
        bad = TradeSequenceSimulator(
            SimulationConfig(
                num_trades=50, win_rate=70, sequence_risk_mode="badStart", bad_start_losses=10
            )
        )

        def early_drawdown(simulator: TradeSequenceSimulator) -> float:
            return float(np.mean([
                max(simulator.run(make_rng(seed)).drawdown_curve[:11])
                for seed in range(200)
            ]))

        assert early_drawdown(bad) > early_drawdown(normal)

    def test_retirement_withdrawals(self) -> None:
        """Test withdrawals on every 20th trade after the first."""
        result, _ = run_path(
            [0.5],
            num_trades=45,
            risk_per_trade=0,
            sequence_risk_mode=SequenceRiskMode.RETIREMENT,
            retirement_withdrawal=500.0,
        )
        # trades 20 and 40
        assert result.final_capital == pytest.approx(9000.0)

    def test_retirement_no_withdrawal_before_trade_20(self) -> None:
        """Test that short paths see no withdrawal."""
        result, _ = run_path(
            [0.5], num_trades=20, risk_per_trade=0, sequence_risk_mode="retirement"
        )
        assert result.final_capital == pytest.approx(10000.0)


class TestRegimes:
    """Tests for regime switching inside a path."""

    def test_regimes_disabled_uses_normal_and_draws_nothing_extra(self) -> None:
        """Test that disabled regimes tag every trade normal with two draws per trade."""
        result, rng = run_path([0.3, 0.6], num_trades=7, win_rate=60)
        assert result.regime_history == ["normal"] * 7
        assert result.time_in_each_regime == {"normal": 7}
        assert rng.calls == 14

    def test_regime_bookkeeping(self) -> None:
        """Test that history, time-in-regime and tallies agree."""
        config = SimulationConfig(num_trades=300, enable_regimes=True, regime_switch_frequency=10)
        result = TradeSequenceSimulator(config).run(make_rng(8))

        ids = {r.id for r in DEFAULT_REGIMES}
        assert len(result.regime_history) == result.trades_executed
        assert set(result.regime_history) <= ids
        assert sum(result.time_in_each_regime.values()) == result.trades_executed
        assert sum(t.trades for t in result.regime_tallies.values()) == result.trades_executed
        for regime_id, count in result.time_in_each_regime.items():
            assert result.regime_history.count(regime_id) == count

    def test_regime_modifier_shifts_win_rate(self) -> None:
        """Test that a +100 win-rate modifier makes every trade a win."""
        boom = MarketRegime(id="boom", name="Boom", probability=1.0, win_rate_modifier=100.0)
        config = SimulationConfig(
            num_trades=60, win_rate=0, enable_regimes=True, regimes=(boom,)
        )
        result = TradeSequenceSimulator(config).run(make_rng(1))
        assert result.num_wins == 60
        assert result.time_in_each_regime == {"boom": 60}

    def test_regimes_from_dicts(self) -> None:
        """Test that dictionary regimes are accepted by the config."""
        config = SimulationConfig(
            num_trades=20,
            enable_regimes=True,
            regimes=[{"id": "calm", "name": "Calm", "probability": 1, "volatilityMultiplier": 0.5}],
        )
        result = TradeSequenceSimulator(config).run(make_rng(2))
        assert set(result.regime_history) == {"calm"}

    def test_empty_regime_table(self) -> None:
        """Test that an enabled but empty table falls back to the normal regime."""
        config = SimulationConfig(num_trades=15, enable_regimes=True, regimes=())
        result = TradeSequenceSimulator(config).run(make_rng(3))
        assert result.regime_history == ["normal"] * 15

    def test_empty_regime_table_draws_no_regime_randoms(self) -> None:
        """Test that an empty table consumes the same draws as disabled regimes."""
        _, enabled_rng = run_path([0.5], num_trades=15, enable_regimes=True, regimes=())
        _, disabled_rng = run_path([0.5], num_trades=15, enable_regimes=False)
        # one win draw and one payoff draw per trade
        assert enabled_rng.calls == disabled_rng.calls == 30

        enabled = TradeSequenceSimulator(
            SimulationConfig(num_trades=40, enable_regimes=True, regimes=())
        ).run(make_rng(5))
        disabled = TradeSequenceSimulator(SimulationConfig(num_trades=40)).run(make_rng(5))
        assert enabled.equity_curve == disabled.equity_curve

    def test_high_volatility_keeps_outcome_signs(self) -> None:
        """Test that extreme volatility never flips the sign of a win or loss."""
        wild = MarketRegime(id="wild", name="Wild", probability=1.0, volatility_multiplier=5.0)
        config = SimulationConfig(num_trades=5, win_rate=20, enable_regimes=True, regimes=(wild,))
        simulator = TradeSequenceSimulator(config)
        for seed in range(500):
            result = simulator.run(make_rng(seed))
            assert result.profit_factor >= 0.0
            assert result.total_win_amount >= 0.0
            assert result.total_loss_amount >= 0.0
            assert result.largest_win >= 0.0
            assert result.largest_loss <= 0.0

    def test_payoff_multiplier_floored_at_zero(self) -> None:
        """Test the payoff jitter range and its zero floor."""
        assert payoff_multiplier(0.0, 1.0) == pytest.approx(0.7)
        assert payoff_multiplier(1.0, 1.0) == pytest.approx(1.3)
        assert payoff_multiplier(0.0, 5.0) == 0.0
        assert payoff_multiplier(1.0, 5.0) == pytest.approx(4.0)

    def test_zero_multiplier_loss_leaves_capital(self) -> None:
        """Test that a loss at the floored multiplier costs nothing."""
        wild = MarketRegime(id="wild", name="Wild", probability=1.0, volatility_multiplier=5.0)
        # regime draw, holding-period draw, then win draw and payoff draw
        result, _ = run_path(
            [0.0], num_trades=1, win_rate=0, enable_regimes=True, regimes=(wild,)
        )
        assert result.num_losses == 1
        assert result.final_capital == pytest.approx(10000.0)
        assert result.total_loss_amount == 0.0

    def test_effective_parameters(self) -> None:
        """Test regime adjustments and win-rate clamping."""
        trending = DEFAULT_REGIMES[0]
        win_rate, avg_win, avg_loss, vol = effective_parameters(
            SimulationConfig(win_rate=95), trending
        )
        assert win_rate == 100.0
        assert avg_win == pytest.approx(195.0)
        assert avg_loss == pytest.approx(80.0)
        assert vol == pytest.approx(0.8)

        volatile = DEFAULT_REGIMES[2]
        win_rate, _, _, _ = effective_parameters(SimulationConfig(win_rate=2), volatile)
        assert win_rate == 0.0


class TestReproducibility:
    """Tests for seeded determinism."""

    def test_same_seed_same_path(self) -> None:
        """Test that equal seeds give identical results."""
        config = SimulationConfig(num_trades=120, enable_regimes=True)
        simulator = TradeSequenceSimulator(config)
        first = simulator.run(make_rng(123))
        second = simulator.run(make_rng(123))
        assert first.to_dict() == second.to_dict()

    def test_repr(self) -> None:
        """Test string representation."""
        simulator = TradeSequenceSimulator(SimulationConfig(position_sizing="kelly"))
        assert "sizing=kelly" in repr(simulator)
