"""
Portfolio Optimizer.

Fassade für Zielgewichte und Rebalancing:
1. Strategie -> Roh-Gewichte
2. Projektion auf WeightConstraints
3. Metriken der Zielgewichte
4. Rebalancing-Check / Plan / Vorschläge über den RebalancePlanner
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence

from pollen_optimizer.analysis.statistics import period_return
from pollen_optimizer.core.config import AppConfig, get_config
from pollen_optimizer.core.exceptions import PreconditionError
from pollen_optimizer.core.logging_system import get_logger
from pollen_optimizer.data.market_data import MarketDataService, MarketSnapshot
from pollen_optimizer.data.price_history import PriceSeries
from pollen_optimizer.models.portfolio import (
    AssetAttribution,
    OptimizationResult,
    PerformanceReport,
    Portfolio,
    PortfolioMetrics,
    RebalanceCheck,
    RebalancePlan,
    RebalanceSuggestions,
    TargetAllocation,
)
from pollen_optimizer.portfolio.constraints import RebalancingConstraints, WeightConstraints
from pollen_optimizer.portfolio.metrics import MetricsCalculator
from pollen_optimizer.portfolio.rebalance import RebalancePlanner, calculate_turnover
from pollen_optimizer.portfolio.strategies import (
    AllocationStrategy,
    StrategyOutcome,
    equal_weights,
    market_cap_outcome,
    min_variance_outcome,
    risk_parity_weights,
)

logger = logging.getLogger("portfolio_optimizer")

StrategyHandler = Callable[
    [list[str], dict[str, PriceSeries], dict[str, MarketSnapshot | None]], StrategyOutcome
]


class PortfolioOptimizer:
    """
    Berechnet Zielallokationen und Rebalancing-Pläne.

    Jede Anfrage ist unabhängig; geteilt werden nur die Caches des
    MarketDataService.

    Usage:
        optimizer = PortfolioOptimizer(MarketDataService(provider))
        result = optimizer.optimize_portfolio(["BTC", "ETH"], {}, "risk_parity")
        plan = optimizer.generate_rebalancing_plan(portfolio, result.to_target_allocation())
    """

    def __init__(self, market_data: MarketDataService, config: AppConfig | None = None):
        self.market_data = market_data
        self.config = config or get_config()
        self.weight_constraints = WeightConstraints(
            min_weight=self.config.optimizer.min_weight,
            max_weight=self.config.optimizer.max_weight,
        )
        self.metrics_calculator = MetricsCalculator(market_data, self.config.optimizer)
        self.planner = RebalancePlanner(self.metrics_calculator, self.config.rebalance)

        self._handlers: dict[AllocationStrategy, StrategyHandler] = {
            AllocationStrategy.EQUAL_WEIGHT: self._equal_weight,
            AllocationStrategy.MARKET_CAP: self._market_cap,
            AllocationStrategy.RISK_PARITY: self._risk_parity,
            AllocationStrategy.MIN_VARIANCE: self._min_variance,
        }

    @property
    def history_days(self) -> int:
        return max(
            self.metrics_calculator.history_days,
            self.config.optimizer.min_variance_lookback_days,
        )

    # ═══════════════════════════════════════════════════════════════
    # STRATEGIE-HANDLER
    # ═══════════════════════════════════════════════════════════════

    def _equal_weight(self, assets, histories, snapshots) -> StrategyOutcome:
        return StrategyOutcome(equal_weights(assets), AllocationStrategy.EQUAL_WEIGHT)

    def _market_cap(self, assets, histories, snapshots) -> StrategyOutcome:
        return market_cap_outcome(assets, snapshots)

    def _risk_parity(self, assets, histories, snapshots) -> StrategyOutcome:
        vols = self.metrics_calculator.asset_volatilities(assets, histories)
        return StrategyOutcome(risk_parity_weights(assets, vols), AllocationStrategy.RISK_PARITY)

    def _min_variance(self, assets, histories, snapshots) -> StrategyOutcome:
        cfg = self.config.optimizer
        windowed = {
            symbol: series[-(cfg.min_variance_lookback_days + 1) :]
            for symbol, series in histories.items()
        }
        return min_variance_outcome(
            assets,
            windowed,
            min_points=cfg.min_aligned_points,
            volatility_lookback_days=cfg.volatility_lookback_days,
            default_volatility=cfg.default_volatility,
        )

    # ═══════════════════════════════════════════════════════════════
    # OPTIMIERUNG
    # ═══════════════════════════════════════════════════════════════

    def _validate_request(self, assets: Sequence[str], weights: Mapping[str, float]):
        if not assets:
            raise PreconditionError("Asset-Liste darf nicht leer sein")
        if len(set(assets)) != len(assets):
            raise PreconditionError(f"Asset-Liste enthält Duplikate: {list(assets)}")
        unknown = set(weights) - set(assets)
        if unknown:
            raise PreconditionError(f"Gewichte für unbekannte Assets: {sorted(unknown)}")

    def optimize_portfolio(
        self,
        assets: Sequence[str],
        current_weights: Mapping[str, float] | None = None,
        strategy: str | AllocationStrategy = AllocationStrategy.MARKET_CAP,
    ) -> OptimizationResult:
        """
        Berechnet die Zielallokation.

        Args:
            assets: Asset-Universum (Reihenfolge bleibt erhalten)
            current_weights: Aktuelle Gewichte (nur durchgereicht)
            strategy: equal_weight | market_cap | risk_parity | min_variance

        Returns:
            OptimizationResult mit Zielgewichten und Metriken. Bei Fallback
            weicht strategy_used von strategy ab.

        Raises:
            PreconditionError: leere Asset-Liste oder Gewichte für unbekannte Assets
            ValueError: unbekannte Strategie
        """
        current_weights = dict(current_weights or {})
        self._validate_request(assets, current_weights)
        requested = AllocationStrategy.parse(strategy)
        assets = list(assets)

        histories = self.market_data.get_price_histories(assets, self.history_days)
        snapshots = self.market_data.get_snapshots(assets)

        outcome = self._handlers[requested](assets, histories, snapshots)
        target_weights = self.weight_constraints.apply(outcome.weights)

        violations = self.weight_constraints.violations(target_weights)
        if violations:
            logger.warning(f"Zielgewichte verletzen Constraints: {violations}")

        metrics = self.metrics_calculator.calculate(assets, target_weights, histories, snapshots)

        result = OptimizationResult(
            assets=assets,
            current_weights=current_weights,
            target_weights=target_weights,
            metrics=metrics,
            strategy=requested.value,
            strategy_used=outcome.strategy_used.value,
            fallback_reason=outcome.fallback_reason,
        )

        get_logger().optimization_completed(
            result.strategy,
            result.strategy_used,
            target_weights,
            {
                "expected_return": metrics.expected_return,
                "volatility": metrics.volatility,
                "sharpe_ratio": metrics.sharpe_ratio,
            },
        )
        return result

    def calculate_portfolio_metrics(
        self, assets: Sequence[str], weights: Mapping[str, float]
    ) -> PortfolioMetrics:
        self._validate_request(assets, weights)
        return self.metrics_calculator.calculate(list(assets), dict(weights))

    # ═══════════════════════════════════════════════════════════════
    # REBALANCING
    # ═══════════════════════════════════════════════════════════════

    def needs_rebalancing(
        self,
        portfolio: Portfolio,
        target: TargetAllocation,
        thresholds=None,
    ) -> RebalanceCheck:
        return self.planner.needs_rebalancing(portfolio, target, thresholds)

    def generate_rebalancing_plan(
        self,
        portfolio: Portfolio,
        target: TargetAllocation,
        constraints: RebalancingConstraints | Mapping | None = None,
    ) -> RebalancePlan:
        self._validate_request(portfolio.assets, portfolio.weights)
        return self.planner.generate_rebalancing_plan(portfolio, target, constraints)

    def generate_rebalancing_suggestions(
        self, portfolio: Portfolio, target: TargetAllocation
    ) -> RebalanceSuggestions:
        return self.planner.generate_rebalancing_suggestions(portfolio, target)

    def calculate_turnover(
        self, weights_a: Mapping[str, float], weights_b: Mapping[str, float]
    ) -> float:
        return calculate_turnover(weights_a, weights_b)

    # ═══════════════════════════════════════════════════════════════
    # PERFORMANCE
    # ═══════════════════════════════════════════════════════════════

    def analyze_portfolio_performance(self, portfolio: Portfolio) -> PerformanceReport:
        """
        Metriken, Turnover und Performance-Attribution eines Portfolios.

        Attribution pro Asset:
        - return: Rendite der letzten Periode
        - contribution: weight · return
        - active_return: return - erwartete Portfolio-Rendite
        """
        assets = list(portfolio.assets)
        self._validate_request(assets, portfolio.weights)

        metrics = self.metrics_calculator.calculate(assets, portfolio.weights)

        turnover = 0.0
        if portfolio.previous_weights:
            turnover = calculate_turnover(portfolio.weights, portfolio.previous_weights)

        histories = self.market_data.get_price_histories(assets, 1)
        attribution = {}
        for symbol in assets:
            weight = portfolio.weights.get(symbol, 0.0)
            asset_return = period_return(histories.get(symbol, []))
            attribution[symbol] = AssetAttribution(
                weight=weight,
                period_return=asset_return,
                contribution=weight * asset_return,
                active_return=asset_return - metrics.expected_return,
            )

        return PerformanceReport(metrics=metrics, turnover=turnover, attribution=attribution)
