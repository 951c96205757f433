"""
Pytest Fixtures und Konfiguration
"""

import sys
from pathlib import Path

import numpy as np
import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from pollen_optimizer.data.market_data import (
    MarketDataService,
    MarketSnapshot,
    StaticMarketDataProvider,
)
from pollen_optimizer.data.price_history import PricePoint

# ═══════════════════════════════════════════════════════════════
# ENVIRONMENT FIXTURES
# ═══════════════════════════════════════════════════════════════


@pytest.fixture(autouse=True)
def isolated_logging(monkeypatch, tmp_path):
    """Jeder Test schreibt seine JSON-Logs in ein eigenes Verzeichnis"""
    import pollen_optimizer.core.config as config_module
    from pollen_optimizer.core.logging_system import reset_logger

    monkeypatch.setenv("OPTIMIZER_LOG_DIR", str(tmp_path / "logs"))
    config_module._config = None
    reset_logger()

    yield tmp_path / "logs"

    reset_logger()
    config_module._config = None


# ═══════════════════════════════════════════════════════════════
# PRICE DATA FIXTURES
# ═══════════════════════════════════════════════════════════════


def make_series(closes, start: int = 0) -> list[PricePoint]:
    """PriceSeries aus Schlusskursen, time = start, start+1, ..."""
    return [
        PricePoint(time=start + i, open=c, high=c, low=c, close=c, volume=1000.0)
        for i, c in enumerate(closes)
    ]


def random_walk(n: int, start_price: float, daily_vol: float, seed: int) -> list[PricePoint]:
    """Geometrischer Random Walk mit festem Seed"""
    rng = np.random.default_rng(seed)
    returns = rng.normal(0.0005, daily_vol, size=n - 1)
    closes = start_price * np.cumprod(np.concatenate([[1.0], 1 + returns]))
    return make_series([float(c) for c in closes])


@pytest.fixture
def price_histories():
    """120 Tage synthetische Historie für BTC, ETH, USDC"""
    return {
        "BTC": random_walk(120, 50000.0, 0.03, seed=1),
        "ETH": random_walk(120, 3000.0, 0.04, seed=2),
        "USDC": random_walk(120, 1.0, 0.015, seed=3),
    }


@pytest.fixture
def snapshots():
    """Snapshots für BTC und ETH (USDC fehlt absichtlich)"""
    return {
        "BTC": MarketSnapshot(symbol="BTC", price=50000.0, market_cap=1000.0, change_24h=0.01),
        "ETH": MarketSnapshot(symbol="ETH", price=3000.0, market_cap=500.0, change_24h=0.02),
    }


@pytest.fixture
def static_provider(price_histories, snapshots):
    return StaticMarketDataProvider(histories=price_histories, snapshots=snapshots)


@pytest.fixture
def market_data(static_provider):
    return MarketDataService(static_provider)


@pytest.fixture
def series_factory():
    """Factory: Schlusskurse -> PriceSeries"""
    return make_series
