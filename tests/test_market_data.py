"""
Tests für pollen_optimizer/data/market_data.py
"""

from unittest.mock import patch

import pytest

from pollen_optimizer.core.exceptions import MarketDataError
from pollen_optimizer.core.logging_system import LogCategory, get_logger
from pollen_optimizer.data.market_data import (
    CsvMarketDataProvider,
    MarketDataService,
    MarketSnapshot,
    MarketSnapshotCache,
    StaticMarketDataProvider,
)
from pollen_optimizer.data.price_history import PriceHistoryStore


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def _snapshot(symbol="BTC", price=50000.0):
    return MarketSnapshot(symbol=symbol, price=price, market_cap=1e12, change_24h=0.01)


class TestStaticProvider:
    """Tests für StaticMarketDataProvider"""

    def test_returns_last_days_plus_one(self, static_provider):
        history = static_provider.get_price_history("BTC", 30)

        assert len(history) == 31
        assert history[-1].time == 119

    def test_unknown_symbol_raises(self, static_provider):
        with pytest.raises(MarketDataError):
            static_provider.get_price_history("DOGE", 30)
        with pytest.raises(MarketDataError):
            static_provider.get_snapshot("USDC")

    def test_counts_requests(self, static_provider):
        static_provider.get_snapshot("BTC")
        static_provider.get_price_history("BTC", 5)

        assert static_provider.stats == {"history_requests": 1, "snapshot_requests": 1}


class TestMarketSnapshotCache:
    """Tests für MarketSnapshotCache"""

    def test_fresh_within_ttl(self):
        clock = FakeClock()
        cache = MarketSnapshotCache(ttl_seconds=300, clock=clock)

        cache.put(_snapshot())
        clock.now += 299

        assert cache.get_fresh("BTC") is not None

    def test_stale_after_ttl(self):
        clock = FakeClock()
        cache = MarketSnapshotCache(ttl_seconds=300, clock=clock)

        cache.put(_snapshot())
        clock.now += 300

        assert cache.get_fresh("BTC") is None
        assert cache.get("BTC") is not None

    def test_put_stamps_clock_time(self):
        cache = MarketSnapshotCache(clock=FakeClock(42.0))

        stored = cache.put(_snapshot())

        assert stored.last_updated == 42.0

    def test_last_write_wins(self):
        cache = MarketSnapshotCache(clock=FakeClock())

        cache.put(_snapshot(price=1.0))
        cache.put(_snapshot(price=2.0))

        assert cache.get("BTC").price == 2.0
        assert len(cache) == 1

    def test_invalidate(self):
        cache = MarketSnapshotCache(clock=FakeClock())
        cache.put(_snapshot("BTC"))
        cache.put(_snapshot("ETH"))

        cache.invalidate("BTC")
        assert cache.get("BTC") is None
        assert len(cache) == 1

        cache.invalidate()
        assert len(cache) == 0


class TestMarketDataService:
    """Tests für MarketDataService"""

    def test_snapshot_cached(self, static_provider):
        service = MarketDataService(static_provider)

        first = service.get_snapshot("BTC")
        second = service.get_snapshot("BTC")

        assert first is second
        assert static_provider.stats["snapshot_requests"] == 1

    def test_snapshot_refreshed_after_ttl(self, static_provider):
        clock = FakeClock()
        service = MarketDataService(
            static_provider, snapshot_cache=MarketSnapshotCache(300, clock=clock)
        )

        service.get_snapshot("BTC")
        clock.now += 301
        service.get_snapshot("BTC")

        assert static_provider.stats["snapshot_requests"] == 2

    def test_stale_snapshot_on_provider_error(self, static_provider):
        """Provider-Fehler -> veralteter Cache-Wert statt Abbruch"""
        clock = FakeClock()
        service = MarketDataService(
            static_provider, snapshot_cache=MarketSnapshotCache(300, clock=clock)
        )
        service.get_snapshot("BTC")
        clock.now += 1000

        with patch.object(
            static_provider, "get_snapshot", side_effect=MarketDataError("timeout")
        ):
            snapshot = service.get_snapshot("BTC")

        assert snapshot is not None
        assert snapshot.symbol == "BTC"

    def test_missing_snapshot_returns_none_and_logs(self, market_data):
        assert market_data.get_snapshot("USDC") is None

        events = get_logger().get_recent_events(LogCategory.DATA_QUALITY)
        assert events[-1]["data"]["symbol"] == "USDC"

    def test_get_snapshots(self, market_data):
        snapshots = market_data.get_snapshots(["BTC", "USDC"])

        assert snapshots["BTC"].market_cap == 1000.0
        assert snapshots["USDC"] is None

    def test_history_stored(self, static_provider):
        store = PriceHistoryStore()
        service = MarketDataService(static_provider, history_store=store)

        history = service.get_price_history("ETH", 10)

        assert len(history) == 11
        assert len(store.get("ETH")) == 11

    def test_history_falls_back_to_store(self, static_provider):
        service = MarketDataService(static_provider)
        service.get_price_history("BTC", 20)

        with patch.object(
            static_provider, "get_price_history", side_effect=MarketDataError("down")
        ):
            history = service.get_price_history("BTC", 5)

        assert len(history) == 6

    def test_history_unknown_symbol_empty(self, market_data):
        assert market_data.get_price_history("DOGE", 30) == []

    def test_get_price_histories(self, market_data):
        histories = market_data.get_price_histories(["BTC", "ETH"], 30)

        assert set(histories) == {"BTC", "ETH"}
        assert all(len(series) == 31 for series in histories.values())


class TestCsvMarketDataProvider:
    """Tests für CsvMarketDataProvider"""

    @pytest.fixture
    def csv_files(self, tmp_path):
        prices = tmp_path / "prices.csv"
        prices.write_text(
            "symbol,time,open,high,low,close,volume\n"
            "btc,2,101,102,100,101.5,10\n"
            "btc,1,100,101,99,100.5,12\n"
            "eth,1,10,11,9,10.5,100\n"
            "btc,1,100,101,99,100.5,12\n"
        )
        snapshots = tmp_path / "snapshots.csv"
        snapshots.write_text(
            "symbol,price,market_cap,change_24h,volume_24h\n"
            "BTC,101.5,1000,0.01,5000\n"
            "ETH,10.5,500,-0.02,\n"
        )
        return prices, snapshots

    def test_loads_prices_sorted(self, csv_files):
        provider = CsvMarketDataProvider(*csv_files)

        history = provider.get_price_history("BTC", 30)

        assert [p.time for p in history] == [1, 2]
        assert history[-1].close == 101.5

    def test_loads_snapshots(self, csv_files):
        provider = CsvMarketDataProvider(*csv_files)

        eth = provider.get_snapshot("ETH")

        assert eth.market_cap == 500.0
        assert eth.change_24h == -0.02
        assert eth.volume_24h == 0.0

    def test_without_snapshots(self, csv_files):
        provider = CsvMarketDataProvider(csv_files[0])

        with pytest.raises(MarketDataError):
            provider.get_snapshot("BTC")

    def test_missing_columns_raise(self, tmp_path):
        path = tmp_path / "bad.csv"
        path.write_text("symbol,close\nBTC,1\n")

        with pytest.raises(MarketDataError):
            CsvMarketDataProvider(path)

    def test_blank_close_dropped(self, tmp_path):
        path = tmp_path / "prices.csv"
        path.write_text(
            "symbol,time,open,high,low,close,volume\n"
            "ETH,1,10,11,9,10.5,100\n"
            "ETH,2,,,,,\n"
            "ETH,3,11,12,10,11.5,\n"
        )

        history = CsvMarketDataProvider(path).get_price_history("ETH", 30)

        assert [p.time for p in history] == [1, 3]
        assert history[-1].volume == 0.0

    def test_blank_snapshot_fields_become_zero(self, tmp_path):
        prices = tmp_path / "prices.csv"
        prices.write_text("symbol,time,close\nUSDC,1,1.0\n")
        snapshots = tmp_path / "snapshots.csv"
        snapshots.write_text(
            "symbol,price,market_cap,change_24h,volume_24h\n"
            "USDC,1,,,1\n"
        )

        usdc = CsvMarketDataProvider(prices, snapshots).get_snapshot("USDC")

        assert usdc.market_cap == 0.0
        assert usdc.change_24h == 0.0
