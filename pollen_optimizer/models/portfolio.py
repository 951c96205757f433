"""
Portfolio-Modelle
Ergebnis-Objekte der Optimierung: Metriken, Zielallokation, Trades, Pläne.

Alle Ergebnisse werden pro Anfrage neu berechnet und nicht verändert.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class TradeAction(str, Enum):
    """Richtung eines Rebalancing-Trades."""

    BUY = "BUY"
    SELL = "SELL"


@dataclass
class AssetMetrics:
    weight: float
    expected_return: float  # Annualisiert
    volatility: float  # Annualisiert

    def to_dict(self) -> dict:
        return {
            "weight": self.weight,
            "expected_return": self.expected_return,
            "volatility": self.volatility,
        }


@dataclass
class PortfolioMetrics:
    """Abgeleitete Kennzahlen eines Portfolios (nie autoritativ gespeichert)"""

    expected_return: float
    volatility: float
    sharpe_ratio: float
    risk_free_rate: float = 0.02
    assets: dict[str, AssetMetrics] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "expected_return": self.expected_return,
            "volatility": self.volatility,
            "sharpe_ratio": self.sharpe_ratio,
            "risk_free_rate": self.risk_free_rate,
            "assets": {symbol: m.to_dict() for symbol, m in self.assets.items()},
        }


@dataclass
class Portfolio:
    """Aktuelles Portfolio: Assets in fester Reihenfolge plus Gewichte"""

    assets: list[str]
    weights: dict[str, float]
    metrics: PortfolioMetrics | None = None
    previous_weights: dict[str, float] | None = None

    def to_dict(self) -> dict:
        return {
            "assets": list(self.assets),
            "weights": dict(self.weights),
            "metrics": self.metrics.to_dict() if self.metrics else None,
            "previous_weights": dict(self.previous_weights) if self.previous_weights else None,
        }


@dataclass
class TargetAllocation:
    weights: dict[str, float]
    metrics: PortfolioMetrics

    def to_dict(self) -> dict:
        return {"weights": dict(self.weights), "metrics": self.metrics.to_dict()}


@dataclass
class OptimizationResult:
    """Ergebnis von optimize_portfolio()"""

    assets: list[str]
    current_weights: dict[str, float]
    target_weights: dict[str, float]
    metrics: PortfolioMetrics
    strategy: str
    strategy_used: str
    fallback_reason: str | None = None
    last_updated: str = field(default_factory=_utc_now_iso)

    @property
    def degraded(self) -> bool:
        return self.strategy_used != self.strategy

    def to_target_allocation(self) -> TargetAllocation:
        return TargetAllocation(weights=dict(self.target_weights), metrics=self.metrics)

    def to_dict(self) -> dict:
        return {
            "assets": list(self.assets),
            "current_weights": dict(self.current_weights),
            "target_weights": dict(self.target_weights),
            "metrics": self.metrics.to_dict(),
            "strategy": self.strategy,
            "strategy_used": self.strategy_used,
            "fallback_reason": self.fallback_reason,
            "last_updated": self.last_updated,
        }


@dataclass
class Trade:
    """Gewichts-Trade: amount = |target_weight - current_weight|"""

    symbol: str
    action: TradeAction
    amount: float
    current_weight: float = 0.0
    target_weight: float = 0.0

    @property
    def weight_diff(self) -> float:
        return self.target_weight - self.current_weight

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "action": self.action.value,
            "amount": self.amount,
            "current_weight": self.current_weight,
            "target_weight": self.target_weight,
            "weight_diff": self.weight_diff,
        }


@dataclass
class ExpectedImprovement:
    return_improvement: float
    risk_reduction: float
    sharpe_improvement: float

    @property
    def is_improvement(self) -> bool:
        return self.sharpe_improvement > 0

    def to_dict(self) -> dict:
        return {
            "return_improvement": self.return_improvement,
            "risk_reduction": self.risk_reduction,
            "sharpe_improvement": self.sharpe_improvement,
            "is_improvement": self.is_improvement,
        }


@dataclass
class RebalanceCheck:
    """Ergebnis von needs_rebalancing()"""

    needs_rebalance: bool
    weight_threshold_breached: bool
    sharpe_threshold_breached: bool
    correlation_check_passed: bool
    max_deviation: float
    sharpe_improvement: float
    turnover: float = 0.0

    def to_dict(self) -> dict:
        return {
            "needs_rebalance": self.needs_rebalance,
            "weight_threshold_breached": self.weight_threshold_breached,
            "sharpe_threshold_breached": self.sharpe_threshold_breached,
            "correlation_check_passed": self.correlation_check_passed,
            "max_deviation": self.max_deviation,
            "sharpe_improvement": self.sharpe_improvement,
            "turnover": self.turnover,
        }


@dataclass
class RebalancePlan:
    """Ausführbarer Rebalancing-Plan mit Kosten-Schätzung"""

    trades: list[Trade]
    total_buy: float
    total_sell: float
    net_flow: float
    transaction_cost: float
    slippage: float
    metrics: PortfolioMetrics
    constraints_applied: bool = False
    timestamp: str = field(default_factory=_utc_now_iso)

    def to_dict(self) -> dict:
        return {
            "trades": [t.to_dict() for t in self.trades],
            "total_buy": self.total_buy,
            "total_sell": self.total_sell,
            "net_flow": self.net_flow,
            "transaction_cost": self.transaction_cost,
            "slippage": self.slippage,
            "metrics": self.metrics.to_dict(),
            "constraints_applied": self.constraints_applied,
            "timestamp": self.timestamp,
        }


@dataclass
class RebalanceSuggestions:
    trades: list[Trade]
    total_trading_volume: float
    transaction_cost: float
    expected_improvement: ExpectedImprovement
    timestamp: str = field(default_factory=_utc_now_iso)

    def to_dict(self) -> dict:
        return {
            "trades": [t.to_dict() for t in self.trades],
            "total_trading_volume": self.total_trading_volume,
            "transaction_cost": self.transaction_cost,
            "expected_improvement": self.expected_improvement.to_dict(),
            "timestamp": self.timestamp,
        }


@dataclass
class AssetAttribution:
    weight: float
    period_return: float
    contribution: float
    active_return: float

    def to_dict(self) -> dict:
        return {
            "weight": self.weight,
            "return": self.period_return,
            "contribution": self.contribution,
            "active_return": self.active_return,
        }


@dataclass
class PerformanceReport:
    """Performance-Analyse eines bestehenden Portfolios"""

    metrics: PortfolioMetrics
    turnover: float
    attribution: dict[str, AssetAttribution]
    timestamp: str = field(default_factory=_utc_now_iso)

    def to_dict(self) -> dict:
        return {
            **self.metrics.to_dict(),
            "turnover": self.turnover,
            "attribution": {s: a.to_dict() for s, a in self.attribution.items()},
            "timestamp": self.timestamp,
        }
