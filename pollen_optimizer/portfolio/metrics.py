"""
Portfolio Metrics Calculator.

Erwartete Rendite, Volatilität und Sharpe Ratio für gegebene Gewichte:
- expected_return = Σ w[i] · change24h[i] · 365
- variance = Σ w[i]²·σ[i]² + 2·Σ_{i<j} w[i]·w[j]·σ[i]·σ[j]·ρ[i,j]
- sharpe = (expected_return - rf) / max(volatility, 0.0001)
"""

from __future__ import annotations

import math
from collections.abc import Sequence

import numpy as np

from pollen_optimizer.analysis.statistics import annualized_change, correlation, volatility
from pollen_optimizer.core.config import OptimizerConfig
from pollen_optimizer.core.exceptions import PreconditionError
from pollen_optimizer.core.logging_system import get_logger
from pollen_optimizer.data.market_data import MarketDataService, MarketSnapshot
from pollen_optimizer.data.price_history import PriceSeries
from pollen_optimizer.models.portfolio import AssetMetrics, PortfolioMetrics

MIN_PORTFOLIO_VOLATILITY = 0.0001


def portfolio_variance(
    weights: np.ndarray,
    volatilities: np.ndarray,
    correlations: np.ndarray,
) -> float:
    """Varianz aus Gewichten, Einzel-Volatilitäten und Korrelationsmatrix."""
    n = len(weights)
    variance = float(np.sum((weights * volatilities) ** 2))
    for i in range(n):
        for j in range(i + 1, n):
            variance += (
                2 * weights[i] * weights[j] * volatilities[i] * volatilities[j] * correlations[i, j]
            )
    return max(variance, 0.0)


def sharpe_ratio(expected_return: float, volatility_: float, risk_free_rate: float) -> float:
    """Sharpe Ratio mit Volatilitäts-Floor gegen Division durch 0."""
    return (expected_return - risk_free_rate) / max(volatility_, MIN_PORTFOLIO_VOLATILITY)


def assemble_metrics(
    assets: Sequence[str],
    weights: dict[str, float],
    annual_returns: dict[str, float],
    volatilities: dict[str, float],
    correlations: np.ndarray,
    risk_free_rate: float = 0.02,
) -> PortfolioMetrics:
    """Baut PortfolioMetrics aus bereits berechneten Einzelwerten."""
    w = np.array([weights.get(symbol, 0.0) for symbol in assets], dtype=float)
    vols = np.array([volatilities[symbol] for symbol in assets], dtype=float)
    rets = np.array([annual_returns[symbol] for symbol in assets], dtype=float)

    expected_return = float(w @ rets)
    portfolio_vol = math.sqrt(portfolio_variance(w, vols, correlations))

    return PortfolioMetrics(
        expected_return=expected_return,
        volatility=portfolio_vol,
        sharpe_ratio=sharpe_ratio(expected_return, portfolio_vol, risk_free_rate),
        risk_free_rate=risk_free_rate,
        assets={
            symbol: AssetMetrics(
                weight=weights.get(symbol, 0.0),
                expected_return=annual_returns[symbol],
                volatility=volatilities[symbol],
            )
            for symbol in assets
        },
    )


class MetricsCalculator:
    """
    Berechnet Portfolio-Metriken aus Marktdaten.

    Holt Snapshots und Preis-Historie über den MarketDataService; fehlende
    Daten führen zu Default-Volatilität, Korrelation 0 bzw. Rendite 0.
    """

    def __init__(self, market_data: MarketDataService, config: OptimizerConfig | None = None):
        self.market_data = market_data
        self.config = config or OptimizerConfig()

    @property
    def history_days(self) -> int:
        return max(self.config.volatility_lookback_days, self.config.correlation_lookback_days)

    def asset_volatilities(
        self, assets: Sequence[str], histories: dict[str, PriceSeries]
    ) -> dict[str, float]:
        return {
            symbol: volatility(
                histories.get(symbol, []),
                self.config.volatility_lookback_days,
                default=self.config.default_volatility,
                symbol=symbol,
            )
            for symbol in assets
        }

    def correlation_matrix(
        self, assets: Sequence[str], histories: dict[str, PriceSeries]
    ) -> np.ndarray:
        """Paarweise Korrelationen, je Paar einmal berechnet und gespiegelt."""
        n = len(assets)
        corr = np.eye(n)
        for i in range(n):
            for j in range(i + 1, n):
                value = correlation(
                    histories.get(assets[i], []),
                    histories.get(assets[j], []),
                    self.config.correlation_lookback_days,
                )
                corr[i, j] = value
                corr[j, i] = value
        return corr

    def annual_returns(
        self, assets: Sequence[str], snapshots: dict[str, MarketSnapshot | None]
    ) -> dict[str, float]:
        returns = {}
        for symbol in assets:
            snapshot = snapshots.get(symbol)
            if snapshot is None:
                get_logger().data_quality(symbol, "no snapshot, expected return set to 0")
            returns[symbol] = annualized_change(snapshot)
        return returns

    def calculate(
        self,
        assets: Sequence[str],
        weights: dict[str, float],
        histories: dict[str, PriceSeries] | None = None,
        snapshots: dict[str, MarketSnapshot | None] | None = None,
    ) -> PortfolioMetrics:
        """
        Berechnet die Metriken eines Portfolios.

        Args:
            assets: Asset-Reihenfolge
            weights: Gewichte (fehlende Assets zählen als 0)
            histories: Bereits geladene Historien (sonst via MarketDataService)
            snapshots: Bereits geladene Snapshots (sonst via MarketDataService)
        """
        if not assets:
            raise PreconditionError("Asset-Liste darf nicht leer sein")

        assets = list(assets)
        if histories is None:
            histories = self.market_data.get_price_histories(assets, self.history_days)
        if snapshots is None:
            snapshots = self.market_data.get_snapshots(assets)

        return assemble_metrics(
            assets,
            weights,
            self.annual_returns(assets, snapshots),
            self.asset_volatilities(assets, histories),
            self.correlation_matrix(assets, histories),
            self.config.risk_free_rate,
        )
