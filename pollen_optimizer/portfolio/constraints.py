"""
Allocation Constraints für Portfolio-Gewichte.

Definiert Min/Max-Grenzen pro Asset und projiziert Roh-Gewichte darauf.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, fields

WEIGHT_TOLERANCE = 1e-4


@dataclass
class WeightConstraints:
    """
    Gewichts-Grenzen für die Portfolio-Allokation.

    Stellt sicher, dass das Portfolio:
    - Diversifiziert ist (max Gewicht pro Asset)
    - Jedes Asset mit Mindestgewicht hält
    """

    min_weight: float = 0.01  # 1% Minimum pro Asset
    max_weight: float = 0.5  # 50% Maximum pro Asset

    def apply(self, weights: dict[str, float]) -> dict[str, float]:
        """
        Projiziert Roh-Gewichte auf [min_weight, max_weight].

        Ein Durchlauf, keine Iteration bis zum Fixpunkt:
        1. Gewichte unter min_weight werden auf min_weight angehoben
        2. Gewichte über max_weight werden auf max_weight gekappt
        3. Die übrigen (flexiblen) Gewichte werden mit
           (1 - Σ gepinnte) / Σ flexible skaliert

        Schiebt die Skalierung ein flexibles Gewicht selbst über eine Grenze,
        bleibt das so stehen. Bei unerfüllbaren Grenzen (z.B. min 0.4 bei
        3 Assets) summiert das Ergebnis nicht zu 1.
        """
        result = dict(weights)
        pinned_total = 0.0
        flexible: list[str] = []

        for symbol, weight in weights.items():
            if weight < self.min_weight:
                result[symbol] = self.min_weight
                pinned_total += self.min_weight
            elif weight > self.max_weight:
                result[symbol] = self.max_weight
                pinned_total += self.max_weight
            else:
                flexible.append(symbol)

        remaining = 1.0 - pinned_total
        flexible_total = sum(weights[symbol] for symbol in flexible)

        if flexible and remaining > 0 and flexible_total > 0:
            scale = remaining / flexible_total
            for symbol in flexible:
                result[symbol] = weights[symbol] * scale

        return result

    def violations(self, weights: dict[str, float]) -> list[str]:
        """
        Prüft Gewichte gegen die Grenzen.

        Returns:
            Liste von Verletzungen (leer wenn gültig)
        """
        violations = []

        total = sum(weights.values())
        if abs(total - 1) > WEIGHT_TOLERANCE:
            violations.append(f"Weights sum to {total:.4f}, expected 1")

        for symbol, weight in weights.items():
            if weight < self.min_weight - WEIGHT_TOLERANCE:
                violations.append(f"{symbol}: {weight:.4f} below min {self.min_weight:.4f}")
            elif weight > self.max_weight + WEIGHT_TOLERANCE:
                violations.append(f"{symbol}: {weight:.4f} exceeds max {self.max_weight:.4f}")

        return violations

    def is_feasible(self, n_assets: int) -> bool:
        """Gibt es für n Assets überhaupt Gewichte innerhalb der Grenzen?"""
        return n_assets * self.min_weight <= 1 <= n_assets * self.max_weight

    def to_dict(self) -> dict:
        return {"min_weight": self.min_weight, "max_weight": self.max_weight}

    @classmethod
    def from_dict(cls, data: dict) -> WeightConstraints:
        return cls(
            min_weight=data.get("min_weight", 0.01),
            max_weight=data.get("max_weight", 0.5),
        )


@dataclass
class RebalancingConstraints:
    """Optionale Grenzen für einen Rebalancing-Plan."""

    min_trade_size: float | None = None  # kleinere Trades werden ausgelassen
    max_position_size: float | None = None  # Obergrenze pro Position

    @property
    def is_empty(self) -> bool:
        return self.min_trade_size is None and self.max_position_size is None

    def to_dict(self) -> dict:
        data = {}
        if self.min_trade_size is not None:
            data["min_trade_size"] = self.min_trade_size
        if self.max_position_size is not None:
            data["max_position_size"] = self.max_position_size
        return data

    @classmethod
    def from_dict(cls, data: dict | None) -> RebalancingConstraints:
        data = data or {}
        unknown = set(data) - {f.name for f in fields(cls)}
        if unknown:
            raise ValueError(f"Unbekannte Rebalancing-Constraints: {sorted(unknown)}")
        return cls(
            min_trade_size=data.get("min_trade_size"),
            max_position_size=data.get("max_position_size"),
        )


def apply_rebalancing_constraints(
    assets: Sequence[str],
    current_weights: dict[str, float],
    target_weights: dict[str, float],
    constraints: RebalancingConstraints,
) -> dict[str, float]:
    """
    Wendet Trade- und Positionsgrenzen auf die Zielgewichte an.

    - Trades kleiner als min_trade_size: aktuelles Gewicht bleibt
    - Positionen über max_position_size werden gekappt
    - Danach wird auf Summe 1 renormiert (falls Abweichung > 1e-4)
    """
    result = {symbol: target_weights.get(symbol, 0.0) for symbol in assets}

    if constraints.min_trade_size:
        for symbol in assets:
            current = current_weights.get(symbol, 0.0)
            if abs(result[symbol] - current) < constraints.min_trade_size:
                result[symbol] = current

    if constraints.max_position_size:
        for symbol in assets:
            if result[symbol] > constraints.max_position_size:
                result[symbol] = constraints.max_position_size

    total = sum(result.values())
    if total > 0 and abs(total - 1) > WEIGHT_TOLERANCE:
        scale = 1 / total
        for symbol in assets:
            result[symbol] *= scale

    return result


# Preset Constraints für verschiedene Strategien
CONSERVATIVE_CONSTRAINTS = WeightConstraints(min_weight=0.05, max_weight=0.3)

BALANCED_CONSTRAINTS = WeightConstraints(min_weight=0.01, max_weight=0.5)

AGGRESSIVE_CONSTRAINTS = WeightConstraints(min_weight=0.0, max_weight=0.8)
