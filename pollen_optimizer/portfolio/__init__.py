"""
Portfolio Module für Zielallokation und Rebalancing.

Berechnet Zielgewichte über:
- Equal Weight / Market Cap / Risk Parity / Minimum Variance
- Gewichts-Constraints
- Rebalancing-Pläne mit Kosten-Schätzung
"""

from pollen_optimizer.portfolio.constraints import RebalancingConstraints, WeightConstraints
from pollen_optimizer.portfolio.optimizer import PortfolioOptimizer
from pollen_optimizer.portfolio.strategies import AllocationStrategy

__all__ = [
    "AllocationStrategy",
    "PortfolioOptimizer",
    "RebalancingConstraints",
    "WeightConstraints",
]
