"""
Exceptions für die Portfolio-Optimierung.

Datenlücken und numerische Probleme werden innerhalb der Engine über
Fallbacks behandelt; nur Vertragsverletzungen des Aufrufers schlagen durch.
"""


class OptimizerError(Exception):
    """Basis-Exception für alle Optimizer-Fehler"""

    pass


class InsufficientDataError(OptimizerError):
    """Zu wenige Preispunkte oder gemeinsame Datumswerte"""

    pass


class NumericalSingularityError(OptimizerError):
    """Lineares System ohne gültigen Pivot (singuläre Matrix)"""

    pass


class MarketDataError(OptimizerError):
    """Market Data Provider konnte keine Daten liefern"""

    pass


class PreconditionError(OptimizerError, ValueError):
    """Ungültige Eingabe des Aufrufers (leere Asset-Liste, falsche Dimensionen)"""

    pass
