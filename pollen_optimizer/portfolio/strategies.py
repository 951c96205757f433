"""
Allokations-Strategien.

Jede Strategie ist eine reine Funktion und liefert Roh-Gewichte
(vor Constraint-Projektion), die zu 1 summieren:
- Equal Weight: 1/N
- Market Cap: proportional zur Marktkapitalisierung
- Risk Parity: proportional zur inversen Volatilität
- Minimum Variance: löst das Lagrange-System über die Kovarianzmatrix
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

import numpy as np

from pollen_optimizer.analysis.linear_solver import solve_linear_system
from pollen_optimizer.analysis.statistics import (
    DEFAULT_VOLATILITY,
    align_price_history,
    covariance_matrix,
    volatility,
)
from pollen_optimizer.core.exceptions import (
    InsufficientDataError,
    NumericalSingularityError,
    PreconditionError,
)
from pollen_optimizer.core.logging_system import get_logger
from pollen_optimizer.data.market_data import MarketSnapshot
from pollen_optimizer.data.price_history import PriceSeries

logger = logging.getLogger("portfolio_optimizer")

MIN_VOLATILITY = 0.0001
MIN_ALIGNED_POINTS = 30


class AllocationStrategy(str, Enum):
    """Verfügbare Strategien für Zielgewichte."""

    EQUAL_WEIGHT = "equal_weight"
    MARKET_CAP = "market_cap"
    RISK_PARITY = "risk_parity"
    MIN_VARIANCE = "min_variance"

    @classmethod
    def parse(cls, value: str | AllocationStrategy) -> AllocationStrategy:
        """Strategie aus Enum oder String, unbekannte Werte -> ValueError"""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            valid = ", ".join(s.value for s in cls)
            raise ValueError(f"Unbekannte Strategie '{value}' (erlaubt: {valid})") from None


@dataclass
class StrategyOutcome:
    """Roh-Gewichte plus tatsächlich verwendete Strategie"""

    weights: dict[str, float]
    strategy_used: AllocationStrategy
    fallback_reason: str | None = None


def _require_assets(assets: Sequence[str]):
    if not assets:
        raise PreconditionError("Asset-Liste darf nicht leer sein")


def equal_weights(assets: Sequence[str]) -> dict[str, float]:
    """weight[i] = 1/N"""
    _require_assets(assets)
    weight = 1 / len(assets)
    return {symbol: weight for symbol in assets}


def market_cap_weights(
    assets: Sequence[str],
    snapshots: dict[str, MarketSnapshot | None],
) -> dict[str, float]:
    """
    weight[i] = marketCap[i] / Σ marketCap

    Assets ohne Snapshot (oder ohne positive Market Cap) bekommen Gewicht 0,
    bleiben aber im Ergebnis.
    """
    return market_cap_outcome(assets, snapshots).weights


def market_cap_outcome(
    assets: Sequence[str],
    snapshots: dict[str, MarketSnapshot | None],
) -> StrategyOutcome:
    _require_assets(assets)

    caps = {}
    for symbol in assets:
        snapshot = snapshots.get(symbol)
        cap = float(snapshot.market_cap) if snapshot is not None else 0.0
        if not math.isfinite(cap) or cap <= 0:
            get_logger().data_quality(symbol, "no market cap, weight set to 0")
            caps[symbol] = 0.0
        else:
            caps[symbol] = cap

    total = sum(caps.values())
    if total <= 0:
        reason = "no market cap data for any asset"
        get_logger().degraded_mode(
            "market_cap", AllocationStrategy.MARKET_CAP.value, "equal_weight", reason
        )
        return StrategyOutcome(equal_weights(assets), AllocationStrategy.EQUAL_WEIGHT, reason)

    return StrategyOutcome(
        {symbol: cap / total for symbol, cap in caps.items()},
        AllocationStrategy.MARKET_CAP,
    )


def risk_parity_weights(
    assets: Sequence[str],
    volatilities: dict[str, float],
) -> dict[str, float]:
    """
    weight[i] = (1/vol[i]) / Σ(1/vol[j])

    Volatilität wird bei 0.0001 gefloort, fehlende oder nicht-endliche
    Werte nutzen die Default-Volatilität.
    """
    _require_assets(assets)

    inverse = {}
    for symbol in assets:
        vol = volatilities.get(symbol, DEFAULT_VOLATILITY)
        if not math.isfinite(vol):
            vol = DEFAULT_VOLATILITY
        inverse[symbol] = 1 / max(vol, MIN_VOLATILITY)

    total = sum(inverse.values())
    return {symbol: inv / total for symbol, inv in inverse.items()}


def _solve_min_variance(cov: np.ndarray) -> np.ndarray:
    """
    Löst [Σ 1; 1ᵗ 0] · [w; λ] = [0; 1].

    Short-Selling wird nur nachträglich ausgeschlossen (w >= 0, renormiert).
    """
    n = cov.shape[0]
    system = np.zeros((n + 1, n + 1))
    system[:n, :n] = cov
    system[:n, n] = 1.0
    system[n, :n] = 1.0

    rhs = np.zeros(n + 1)
    rhs[n] = 1.0

    weights = solve_linear_system(system, rhs)[:n]
    if not np.all(np.isfinite(weights)):
        raise NumericalSingularityError("Non-finite minimum variance solution")

    weights = np.clip(weights, 0.0, None)
    total = weights.sum()
    if total <= 0 or not math.isfinite(total):
        raise NumericalSingularityError("Minimum variance weights collapsed to zero")

    return weights / total


def min_variance_outcome(
    assets: Sequence[str],
    histories: dict[str, PriceSeries],
    min_points: int = MIN_ALIGNED_POINTS,
    volatility_lookback_days: int = 30,
    default_volatility: float = DEFAULT_VOLATILITY,
) -> StrategyOutcome:
    """
    Minimum-Varianz-Portfolio mit Pflicht-Fallback auf Risk Parity.

    Fallback bei weniger als `min_points` gemeinsamen Datumswerten oder
    singulärem System. Die Risk-Parity-Volatilitäten kommen aus denselben
    Historien.
    """
    _require_assets(assets)

    try:
        aligned = align_price_history(histories, assets)
        if len(aligned) < min_points:
            raise InsufficientDataError(
                f"Only {len(aligned)} aligned dates, need {min_points}"
            )

        cov = covariance_matrix(aligned, assets)
        solution = _solve_min_variance(cov)
        weights = {symbol: float(w) for symbol, w in zip(assets, solution)}
        return StrategyOutcome(weights, AllocationStrategy.MIN_VARIANCE)

    except (InsufficientDataError, NumericalSingularityError) as e:
        reason = str(e)
        get_logger().degraded_mode(
            "min_variance",
            AllocationStrategy.MIN_VARIANCE.value,
            AllocationStrategy.RISK_PARITY.value,
            reason,
            error=e,
        )
        vols = {
            symbol: volatility(
                histories.get(symbol, []),
                volatility_lookback_days,
                default=default_volatility,
                symbol=symbol,
            )
            for symbol in assets
        }
        return StrategyOutcome(
            risk_parity_weights(assets, vols),
            AllocationStrategy.RISK_PARITY,
            reason,
        )


def min_variance_weights(
    assets: Sequence[str],
    histories: dict[str, PriceSeries],
    min_points: int = MIN_ALIGNED_POINTS,
) -> dict[str, float]:
    """Gewichte des Minimum-Varianz-Portfolios (siehe min_variance_outcome)."""
    return min_variance_outcome(assets, histories, min_points).weights
