"""
Price History Store.

Hält pro Asset eine aufsteigend sortierte OHLCV-Zeitreihe mit begrenztem
Lookback. Reiner Datenhalter: einfügen, nachschlagen, älteste Punkte verwerfen.
"""

from __future__ import annotations

import bisect
from collections.abc import Iterable
from dataclasses import dataclass

import pandas as pd


@dataclass(frozen=True)
class PricePoint:
    """Ein OHLCV-Punkt (time = Unix-Tag bzw. Perioden-Index)"""

    time: int
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0

    def to_dict(self) -> dict:
        return {
            "time": self.time,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
        }

    @classmethod
    def from_dict(cls, data: dict) -> PricePoint:
        close = float(data["close"])
        return cls(
            time=int(data["time"]),
            open=float(data.get("open", close)),
            high=float(data.get("high", close)),
            low=float(data.get("low", close)),
            close=close,
            volume=float(data.get("volume", 0.0)),
        )


PriceSeries = list[PricePoint]


class PriceHistoryStore:
    """
    In-memory Store für Preis-Zeitreihen.

    Invarianten pro Symbol:
    - aufsteigend nach time sortiert
    - keine doppelten Zeitstempel (erster Wert gewinnt)
    - höchstens max_points Einträge, älteste werden verworfen
    """

    def __init__(self, max_points: int = 365):
        if max_points < 1:
            raise ValueError("max_points muss mindestens 1 sein")
        self.max_points = max_points
        self._series: dict[str, list[PricePoint]] = {}
        self._times: dict[str, list[int]] = {}

    def insert(self, symbol: str, point: PricePoint) -> bool:
        """
        Fügt einen Punkt ein.

        Returns:
            True wenn der Punkt neu war, False bei bereits bekanntem Zeitstempel
        """
        series = self._series.setdefault(symbol, [])
        times = self._times.setdefault(symbol, [])

        idx = bisect.bisect_left(times, point.time)
        if idx < len(times) and times[idx] == point.time:
            return False

        times.insert(idx, point.time)
        series.insert(idx, point)
        self._evict(symbol)
        return True

    def extend(self, symbol: str, points: Iterable[PricePoint]) -> int:
        """Fügt mehrere Punkte ein, gibt Anzahl neuer Punkte zurück."""
        return sum(1 for point in points if self.insert(symbol, point))

    def _evict(self, symbol: str):
        overflow = len(self._series[symbol]) - self.max_points
        if overflow > 0:
            del self._series[symbol][:overflow]
            del self._times[symbol][:overflow]

    def get(self, symbol: str, last_n: int | None = None) -> PriceSeries:
        """Gibt (eine Kopie der) Zeitreihe zurück, optional nur die letzten N Punkte."""
        series = self._series.get(symbol, [])
        if last_n is not None:
            if last_n <= 0:
                return []
            series = series[-last_n:]
        return list(series)

    def latest(self, symbol: str) -> PricePoint | None:
        series = self._series.get(symbol)
        return series[-1] if series else None

    def symbols(self) -> list[str]:
        return sorted(self._series)

    def __contains__(self, symbol: str) -> bool:
        return bool(self._series.get(symbol))

    def __len__(self) -> int:
        return len(self._series)

    def to_frame(self, symbol: str) -> pd.DataFrame:
        """Zeitreihe als DataFrame (Index = time)"""
        return series_to_frame(self._series.get(symbol, []))

    def clear(self, symbol: str | None = None):
        if symbol is None:
            self._series.clear()
            self._times.clear()
        else:
            self._series.pop(symbol, None)
            self._times.pop(symbol, None)


def series_to_frame(series: PriceSeries) -> pd.DataFrame:
    """Konvertiert eine PriceSeries zu einem DataFrame mit time-Index."""
    columns = ["open", "high", "low", "close", "volume"]
    if not series:
        return pd.DataFrame(columns=columns, index=pd.Index([], name="time"))
    df = pd.DataFrame([p.to_dict() for p in series]).set_index("time")
    return df[columns]
