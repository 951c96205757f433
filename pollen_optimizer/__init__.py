"""Pollen Portfolio Optimizer - Zielgewichte, Constraints und Rebalancing-Pläne."""

__version__ = "1.0.0"
