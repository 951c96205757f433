"""
Market Data Service.

Konsolidiert den Zugriff auf Preis-Historie und Markt-Snapshots:
- MarketDataProvider: Schnittstelle zur externen Datenquelle
- MarketSnapshotCache: expliziter TTL-Cache (5 Minuten default)
- MarketDataService: Fehlerbehandlung mit Fallbacks pro Symbol

Ein Provider-Fehler für ein Symbol bricht nie die ganze Optimierung ab.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from pathlib import Path

import pandas as pd

from pollen_optimizer.core.config import MarketDataConfig
from pollen_optimizer.core.exceptions import MarketDataError
from pollen_optimizer.core.logging_system import get_logger
from pollen_optimizer.data.price_history import PriceHistoryStore, PricePoint, PriceSeries

logger = logging.getLogger("portfolio_optimizer")


@dataclass
class MarketSnapshot:
    """Aktuelle Marktdaten für ein Asset"""

    symbol: str
    price: float
    market_cap: float
    change_24h: float  # Anteil, 0.05 = +5%
    volume_24h: float = 0.0
    last_updated: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "price": self.price,
            "market_cap": self.market_cap,
            "change_24h": self.change_24h,
            "volume_24h": self.volume_24h,
            "last_updated": self.last_updated,
        }


# ═══════════════════════════════════════════════════════════════
# PROVIDER
# ═══════════════════════════════════════════════════════════════


class MarketDataProvider(ABC):
    """
    Externe Datenquelle für Preise und Snapshots.

    Implementierungen werfen MarketDataError, wenn ein Symbol nicht
    geliefert werden kann.
    """

    @abstractmethod
    def get_price_history(self, symbol: str, days: int, interval: str = "day") -> PriceSeries:
        """Preis-Historie der letzten `days` Perioden (aufsteigend)."""
        ...

    @abstractmethod
    def get_snapshot(self, symbol: str) -> MarketSnapshot:
        """Aktueller Snapshot für ein Symbol."""
        ...


class StaticMarketDataProvider(MarketDataProvider):
    """Provider über fest vorgegebene Daten (Tests, Offline-Analysen)."""

    def __init__(
        self,
        histories: dict[str, PriceSeries] | None = None,
        snapshots: dict[str, MarketSnapshot] | None = None,
    ):
        self.histories = histories or {}
        self.snapshots = snapshots or {}
        self.stats = {"history_requests": 0, "snapshot_requests": 0}

    def get_price_history(self, symbol: str, days: int, interval: str = "day") -> PriceSeries:
        self.stats["history_requests"] += 1
        if symbol not in self.histories:
            raise MarketDataError(f"Keine Preis-Historie für {symbol}")
        return list(self.histories[symbol][-(days + 1) :])

    def get_snapshot(self, symbol: str) -> MarketSnapshot:
        self.stats["snapshot_requests"] += 1
        if symbol not in self.snapshots:
            raise MarketDataError(f"Kein Snapshot für {symbol}")
        return self.snapshots[symbol]


class CsvMarketDataProvider(StaticMarketDataProvider):
    """
    Lädt Preise und Snapshots aus CSV-Dateien.

    prices.csv:    symbol,time,open,high,low,close,volume
    snapshots.csv: symbol,price,market_cap,change_24h,volume_24h
    """

    PRICE_COLUMNS = ["symbol", "time", "close"]
    SNAPSHOT_COLUMNS = ["symbol", "price", "market_cap", "change_24h"]

    def __init__(self, prices_path: str | Path, snapshots_path: str | Path | None = None):
        super().__init__(
            histories=self._load_prices(Path(prices_path)),
            snapshots=self._load_snapshots(Path(snapshots_path)) if snapshots_path else {},
        )

    @classmethod
    def _load_prices(cls, path: Path) -> dict[str, PriceSeries]:
        df = pd.read_csv(path)
        missing = [c for c in cls.PRICE_COLUMNS if c not in df.columns]
        if missing:
            raise MarketDataError(f"{path}: fehlende Spalten {missing}")

        dropped = int(df["close"].isna().sum())
        if dropped:
            logger.warning(f"CSV: {dropped} Preispunkte ohne Close verworfen")
        df = df.dropna(subset=["symbol", "time", "close"]).copy()
        for column in ("open", "high", "low"):
            if column in df.columns:
                df[column] = df[column].fillna(df["close"])
        if "volume" in df.columns:
            df["volume"] = df["volume"].fillna(0.0)

        df["symbol"] = df["symbol"].str.upper()
        df = df.sort_values(["symbol", "time"]).drop_duplicates(["symbol", "time"])

        histories: dict[str, PriceSeries] = {}
        for symbol, group in df.groupby("symbol"):
            histories[symbol] = [PricePoint.from_dict(row) for row in group.to_dict("records")]

        logger.info(f"CSV: {len(df)} Preispunkte für {len(histories)} Assets geladen")
        return histories

    @classmethod
    def _load_snapshots(cls, path: Path) -> dict[str, MarketSnapshot]:
        if not path.exists():
            logger.warning(f"Snapshot-Datei {path} nicht gefunden")
            return {}

        df = pd.read_csv(path)
        missing = [c for c in cls.SNAPSHOT_COLUMNS if c not in df.columns]
        if missing:
            raise MarketDataError(f"{path}: fehlende Spalten {missing}")

        if "volume_24h" not in df.columns:
            df["volume_24h"] = 0.0
        df = df.dropna(subset=["symbol", "price"]).copy()
        # Leere Market Cap -> 0, das Asset bekommt im Market-Cap-Modell Gewicht 0
        df[["market_cap", "change_24h", "volume_24h"]] = df[
            ["market_cap", "change_24h", "volume_24h"]
        ].fillna(0.0)

        snapshots = {}
        for row in df.to_dict("records"):
            symbol = str(row["symbol"]).upper()
            snapshots[symbol] = MarketSnapshot(
                symbol=symbol,
                price=float(row["price"]),
                market_cap=float(row["market_cap"]),
                change_24h=float(row["change_24h"]),
                volume_24h=float(row["volume_24h"]),
            )
        return snapshots


# ═══════════════════════════════════════════════════════════════
# SNAPSHOT CACHE
# ═══════════════════════════════════════════════════════════════


class MarketSnapshotCache:
    """
    TTL-Cache für MarketSnapshots.

    Frische wird explizit über last_updated gegen die Uhr geprüft.
    Gleichzeitige Refreshes desselben Symbols: last write wins.
    """

    def __init__(self, ttl_seconds: float = 300, clock: Callable[[], float] = time.time):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._entries: dict[str, MarketSnapshot] = {}

    def is_fresh(self, snapshot: MarketSnapshot) -> bool:
        return (self.clock() - snapshot.last_updated) < self.ttl_seconds

    def get(self, symbol: str) -> MarketSnapshot | None:
        """Gibt den Snapshot zurück, egal ob frisch oder veraltet."""
        return self._entries.get(symbol)

    def get_fresh(self, symbol: str) -> MarketSnapshot | None:
        snapshot = self._entries.get(symbol)
        if snapshot is not None and self.is_fresh(snapshot):
            return snapshot
        return None

    def put(self, snapshot: MarketSnapshot) -> MarketSnapshot:
        """Speichert einen Snapshot mit aktuellem Zeitstempel."""
        stored = replace(snapshot, last_updated=self.clock())
        self._entries[stored.symbol] = stored
        return stored

    def invalidate(self, symbol: str | None = None):
        if symbol is None:
            self._entries.clear()
        else:
            self._entries.pop(symbol, None)

    def __len__(self) -> int:
        return len(self._entries)


# ═══════════════════════════════════════════════════════════════
# SERVICE
# ═══════════════════════════════════════════════════════════════


class MarketDataService:
    """
    Zentraler Zugriff auf Marktdaten für den Optimizer.

    Features:
    - Snapshots mit TTL-Cache, bei Fehler veralteter Wert als Fallback
    - Preis-Historie wird im PriceHistoryStore gesammelt, bei Fehler
      werden die gespeicherten Punkte verwendet

    Usage:
        market = MarketDataService(CsvMarketDataProvider("prices.csv"))
        snapshot = market.get_snapshot("BTC")
        history = market.get_price_history("BTC", days=30)
    """

    def __init__(
        self,
        provider: MarketDataProvider,
        history_store: PriceHistoryStore | None = None,
        snapshot_cache: MarketSnapshotCache | None = None,
        config: MarketDataConfig | None = None,
    ):
        self.provider = provider
        self.config = config or MarketDataConfig()
        self.history_store = history_store or PriceHistoryStore(self.config.history_max_points)
        self.snapshot_cache = snapshot_cache or MarketSnapshotCache(self.config.snapshot_ttl_seconds)

    def get_snapshot(self, symbol: str) -> MarketSnapshot | None:
        """
        Holt den Snapshot für ein Symbol.

        Returns:
            Frischer Snapshot, sonst veralteter Cache-Wert, sonst None
        """
        cached = self.snapshot_cache.get_fresh(symbol)
        if cached is not None:
            return cached

        try:
            snapshot = self.provider.get_snapshot(symbol)
        except MarketDataError as e:
            stale = self.snapshot_cache.get(symbol)
            get_logger().data_quality(
                symbol,
                "snapshot unavailable" + (", using stale value" if stale else ""),
                {"error": str(e)},
            )
            return stale

        return self.snapshot_cache.put(snapshot)

    def get_snapshots(self, symbols: list[str]) -> dict[str, MarketSnapshot | None]:
        return {symbol: self.get_snapshot(symbol) for symbol in symbols}

    def get_price_history(self, symbol: str, days: int, interval: str = "day") -> PriceSeries:
        """
        Preis-Historie für die letzten `days` Perioden (days + 1 Punkte).

        Bei Provider-Fehler wird auf den Store zurückgegriffen.
        """
        try:
            points = self.provider.get_price_history(symbol, days, interval)
            self.history_store.extend(symbol, points)
        except MarketDataError as e:
            get_logger().data_quality(
                symbol,
                "price history unavailable, using stored points",
                {"error": str(e), "stored_points": len(self.history_store.get(symbol))},
            )

        return self.history_store.get(symbol, last_n=days + 1)

    def get_price_histories(self, symbols: list[str], days: int) -> dict[str, PriceSeries]:
        return {symbol: self.get_price_history(symbol, days) for symbol in symbols}
