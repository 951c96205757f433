"""
Rebalance Decision & Planner.

Entscheidet, ob ein Portfolio rebalanced werden muss, und erzeugt
Trade-Listen mit Kosten- und Slippage-Schätzung:
- needs_rebalancing: Gewichtsabweichung oder Sharpe-Verbesserung
- generate_rebalancing_plan: ausführbarer Plan (Trades, Flows, Kosten)
- generate_rebalancing_suggestions: Trades plus erwartete Verbesserung
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import fields, replace

from pollen_optimizer.core.config import RebalanceConfig
from pollen_optimizer.core.logging_system import get_logger
from pollen_optimizer.models.portfolio import (
    ExpectedImprovement,
    Portfolio,
    RebalanceCheck,
    RebalancePlan,
    RebalanceSuggestions,
    TargetAllocation,
    Trade,
    TradeAction,
)
from pollen_optimizer.portfolio.constraints import (
    RebalancingConstraints,
    apply_rebalancing_constraints,
)
from pollen_optimizer.portfolio.metrics import MetricsCalculator

logger = logging.getLogger("portfolio_optimizer")


def resolve_thresholds(
    thresholds: RebalanceConfig | Mapping | None,
    base: RebalanceConfig | None = None,
) -> RebalanceConfig:
    """RebalanceConfig aus Config-Objekt oder Teil-Dict (Rest aus base bzw. Defaults)."""
    base = base or RebalanceConfig()
    if thresholds is None:
        return base
    if isinstance(thresholds, RebalanceConfig):
        return thresholds

    known = {f.name for f in fields(RebalanceConfig)}
    unknown = set(thresholds) - known
    if unknown:
        raise ValueError(f"Unbekannte Rebalance-Schwellwerte: {sorted(unknown)}")
    return replace(base, **dict(thresholds))


# ═══════════════════════════════════════════════════════════════
# REINE HILFSFUNKTIONEN
# ═══════════════════════════════════════════════════════════════


def calculate_turnover(weights_a: Mapping[str, float], weights_b: Mapping[str, float]) -> float:
    """
    Turnover zwischen zwei Allokationen.

    Σ|a - b| / 2 über alle Symbole beider Allokationen; die Halbierung
    zählt Käufe und Verkäufe nur einmal.
    """
    symbols = set(weights_a) | set(weights_b)
    return sum(abs(weights_a.get(s, 0.0) - weights_b.get(s, 0.0)) for s in symbols) / 2


def estimate_transaction_cost(trades: Iterable[Trade], base_fee_rate: float = 0.001) -> float:
    """Σ amount · base_fee_rate"""
    return sum(trade.amount * base_fee_rate for trade in trades)


def estimate_slippage(
    trades: Iterable[Trade],
    base_slippage: float = 0.001,
    size_reference: float = 0.1,
) -> float:
    """
    Σ amount · base_slippage · (1 + min(1, amount / size_reference))

    Große Trades bekommen bis zu doppelte Basis-Slippage.
    """
    return sum(
        trade.amount * base_slippage * (1 + min(1.0, trade.amount / size_reference))
        for trade in trades
    )


def expected_improvement(portfolio: Portfolio, target: TargetAllocation) -> ExpectedImprovement:
    """Deltas Rendite/Risiko/Sharpe; fehlende aktuelle Metriken zählen als 0."""
    current = portfolio.metrics
    current_return = current.expected_return if current else 0.0
    current_vol = current.volatility if current else 0.0
    current_sharpe = current.sharpe_ratio if current else 0.0

    return ExpectedImprovement(
        return_improvement=target.metrics.expected_return - current_return,
        risk_reduction=current_vol - target.metrics.volatility,
        sharpe_improvement=target.metrics.sharpe_ratio - current_sharpe,
    )


def check_correlation_changes(portfolio: Portfolio, target: TargetAllocation) -> bool:
    """
    Prüfung auf signifikante Korrelations-Änderungen.

    Erweiterungspunkt ohne eigene Logik: liefert immer True.
    """
    return True


def build_trades(
    assets: Sequence[str],
    current_weights: Mapping[str, float],
    target_weights: Mapping[str, float],
    noise_threshold: float = 0.001,
) -> list[Trade]:
    """
    Trades für den Übergang current -> target.

    Differenzen kleiner als noise_threshold werden ignoriert, die übrigen
    nach absteigender |Differenz| sortiert.
    """
    trades = []
    for symbol in assets:
        current = current_weights.get(symbol, 0.0)
        target = target_weights.get(symbol, 0.0)
        diff = target - current
        if abs(diff) < noise_threshold:
            continue
        trades.append(
            Trade(
                symbol=symbol,
                action=TradeAction.BUY if diff > 0 else TradeAction.SELL,
                amount=abs(diff),
                current_weight=current,
                target_weight=target,
            )
        )

    # stabil: bei Gleichstand bleibt die Asset-Reihenfolge
    trades.sort(key=lambda t: abs(t.weight_diff), reverse=True)
    return trades


def needs_rebalancing(
    portfolio: Portfolio,
    target: TargetAllocation,
    thresholds: RebalanceConfig | Mapping | None = None,
    base: RebalanceConfig | None = None,
) -> RebalanceCheck:
    """
    Prüft ob ein Rebalancing nötig ist.

    needs_rebalance = (max. Abweichung >= min_weight_deviation
                       ODER Sharpe-Verbesserung >= min_sharpe_improvement)
                      UND Korrelations-Check bestanden
    """
    config = resolve_thresholds(thresholds, base)

    max_deviation = 0.0
    for symbol in portfolio.assets:
        deviation = abs(portfolio.weights.get(symbol, 0.0) - target.weights.get(symbol, 0.0))
        max_deviation = max(max_deviation, deviation)

    current_sharpe = portfolio.metrics.sharpe_ratio if portfolio.metrics else 0.0
    sharpe_improvement = target.metrics.sharpe_ratio - current_sharpe

    weight_breached = max_deviation >= config.min_weight_deviation
    sharpe_breached = sharpe_improvement >= config.min_sharpe_improvement

    correlation_passed = True
    if config.check_correlation and portfolio.metrics and portfolio.metrics.assets:
        correlation_passed = check_correlation_changes(portfolio, target)

    turnover = calculate_turnover(portfolio.weights, target.weights)
    if turnover > config.max_turnover:
        logger.info(
            f"Turnover {turnover:.2%} über max_turnover {config.max_turnover:.2%} "
            "(nur informativ)"
        )

    check = RebalanceCheck(
        needs_rebalance=(weight_breached or sharpe_breached) and correlation_passed,
        weight_threshold_breached=weight_breached,
        sharpe_threshold_breached=sharpe_breached,
        correlation_check_passed=correlation_passed,
        max_deviation=max_deviation,
        sharpe_improvement=sharpe_improvement,
        turnover=turnover,
    )
    get_logger().rebalance_check(check.needs_rebalance, max_deviation, sharpe_improvement)
    return check


# ═══════════════════════════════════════════════════════════════
# PLANNER
# ═══════════════════════════════════════════════════════════════


class RebalancePlanner:
    """
    Erzeugt Rebalancing-Pläne und Vorschläge.

    Metriken der (ggf. eingeschränkten) Zielgewichte werden über den
    MetricsCalculator neu berechnet.
    """

    def __init__(self, metrics_calculator: MetricsCalculator, config: RebalanceConfig | None = None):
        self.metrics_calculator = metrics_calculator
        self.config = config or RebalanceConfig()

    def needs_rebalancing(
        self,
        portfolio: Portfolio,
        target: TargetAllocation,
        thresholds: RebalanceConfig | Mapping | None = None,
    ) -> RebalanceCheck:
        return needs_rebalancing(portfolio, target, thresholds, base=self.config)

    def generate_rebalancing_plan(
        self,
        portfolio: Portfolio,
        target: TargetAllocation,
        constraints: RebalancingConstraints | Mapping | None = None,
    ) -> RebalancePlan:
        """
        Erzeugt einen ausführbaren Plan.

        Args:
            portfolio: Aktuelles Portfolio
            target: Zielallokation (Gewichte + Metriken)
            constraints: Optionale min_trade_size / max_position_size

        Returns:
            RebalancePlan mit Trades, Flows, Kosten und Metriken nach Rebalancing
        """
        if not isinstance(constraints, RebalancingConstraints):
            constraints = RebalancingConstraints.from_dict(constraints)

        assets = list(portfolio.assets)
        constrained = apply_rebalancing_constraints(
            assets, portfolio.weights, target.weights, constraints
        )

        trades = build_trades(assets, portfolio.weights, constrained, self.config.noise_threshold)
        total_buy = sum(t.amount for t in trades if t.action == TradeAction.BUY)
        total_sell = sum(t.amount for t in trades if t.action == TradeAction.SELL)

        plan = RebalancePlan(
            trades=trades,
            total_buy=total_buy,
            total_sell=total_sell,
            net_flow=total_buy - total_sell,
            transaction_cost=estimate_transaction_cost(trades, self.config.base_fee_rate),
            slippage=estimate_slippage(
                trades, self.config.base_slippage, self.config.slippage_size_reference
            ),
            metrics=self.metrics_calculator.calculate(assets, constrained),
            constraints_applied=not constraints.is_empty,
        )

        get_logger().rebalance_plan(
            [t.to_dict() for t in trades],
            plan.transaction_cost,
            plan.slippage,
            plan.constraints_applied,
        )
        return plan

    def generate_rebalancing_suggestions(
        self, portfolio: Portfolio, target: TargetAllocation
    ) -> RebalanceSuggestions:
        trades = build_trades(
            portfolio.assets, portfolio.weights, target.weights, self.config.noise_threshold
        )
        return RebalanceSuggestions(
            trades=trades,
            total_trading_volume=sum(t.amount for t in trades),
            transaction_cost=estimate_transaction_cost(trades, self.config.base_fee_rate),
            expected_improvement=expected_improvement(portfolio, target),
        )
