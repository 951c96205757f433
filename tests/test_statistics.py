"""
Tests für pollen_optimizer/analysis/statistics.py
"""

import math

import numpy as np
import pandas as pd
import pytest

from pollen_optimizer.analysis.statistics import (
    DEFAULT_VOLATILITY,
    align_price_history,
    annualized_change,
    correlation,
    covariance_matrix,
    period_return,
    returns_array,
    volatility,
)
from pollen_optimizer.core.exceptions import InsufficientDataError
from pollen_optimizer.core.logging_system import LogCategory, get_logger
from pollen_optimizer.data.market_data import MarketSnapshot


class TestReturns:
    """Tests für simple_returns / returns_array"""

    def test_simple_returns(self, series_factory):
        returns = returns_array(series_factory([100.0, 110.0, 99.0]))

        assert returns == pytest.approx([0.1, -0.1])

    def test_single_point_has_no_returns(self, series_factory):
        assert len(returns_array(series_factory([100.0]))) == 0

    def test_period_return(self, series_factory):
        assert period_return(series_factory([100.0, 105.0])) == pytest.approx(0.05)
        assert period_return(series_factory([100.0])) == 0.0


class TestVolatility:
    """Tests für volatility"""

    def test_annualized_population_std(self, series_factory):
        """std der Tagesrenditen · √365"""
        vol = volatility(series_factory([100.0, 110.0, 99.0]))

        assert vol == pytest.approx(0.1 * math.sqrt(365))

    def test_uses_lookback_window(self, series_factory):
        """Nur die letzten lookback+1 Punkte zählen"""
        # Großer Sprung am Anfang liegt außerhalb des Fensters
        series = series_factory([1.0, 100.0, 110.0, 99.0])

        assert volatility(series, lookback_days=2) == pytest.approx(0.1 * math.sqrt(365))

    def test_constant_prices_zero_volatility(self, series_factory):
        assert volatility(series_factory([50.0] * 10)) == 0.0

    def test_fallback_with_insufficient_data(self, series_factory):
        """Weniger als 2 Punkte -> Default-Volatilität 0.30"""
        assert volatility(series_factory([100.0]), symbol="BTC") == DEFAULT_VOLATILITY
        assert volatility([], symbol="BTC") == 0.30

    def test_fallback_is_logged(self, series_factory):
        volatility([], symbol="LINK")

        events = get_logger().get_recent_events(LogCategory.DATA_QUALITY)
        assert any(e["data"]["symbol"] == "LINK" for e in events)

    def test_custom_default(self):
        assert volatility([], default=0.5) == 0.5

    def test_nan_close_falls_back_to_default(self, series_factory):
        """Lücke im Close -> Default statt NaN"""
        series = series_factory([100.0, 101.0, float("nan"), 103.0])

        assert volatility(series, symbol="ETH") == DEFAULT_VOLATILITY

        events = get_logger().get_recent_events(LogCategory.DATA_QUALITY)
        assert events[-1]["data"]["symbol"] == "ETH"


class TestCorrelation:
    """Tests für correlation"""

    def test_self_correlation_is_one(self, price_histories):
        btc = price_histories["BTC"]

        assert correlation(btc, btc) == pytest.approx(1.0)

    def test_symmetric(self, price_histories):
        btc, eth = price_histories["BTC"], price_histories["ETH"]

        assert correlation(btc, eth) == correlation(eth, btc)

    def test_within_bounds(self, price_histories):
        value = correlation(price_histories["BTC"], price_histories["USDC"])

        assert -1.0 <= value <= 1.0

    def test_perfect_negative(self, series_factory):
        a = series_factory([100.0, 110.0, 99.0, 108.9])
        b = series_factory([100.0, 90.0, 99.0, 89.1])

        assert correlation(a, b) == pytest.approx(-1.0)

    def test_only_shared_timestamps(self, series_factory):
        """Punkte ohne Gegenstück in der anderen Reihe werden ignoriert"""
        a = series_factory([100.0, 110.0, 99.0])
        b = series_factory([100.0, 110.0, 99.0, 500.0, 1.0])

        assert correlation(a, b) == pytest.approx(1.0)

    def test_insufficient_overlap_returns_zero(self, series_factory):
        a = series_factory([100.0, 110.0], start=0)
        b = series_factory([100.0, 110.0], start=10)

        assert correlation(a, b) == 0.0

    def test_zero_variance_returns_zero(self, series_factory):
        a = series_factory([100.0] * 5)
        b = series_factory([1.0, 2.0, 3.0, 2.0, 1.0])

        assert correlation(a, b) == 0.0


class TestAlignment:
    """Tests für align_price_history"""

    def test_inner_join_on_time(self, series_factory):
        histories = {
            "BTC": series_factory([1.0, 2.0, 3.0, 4.0], start=0),
            "ETH": series_factory([10.0, 20.0, 30.0], start=2),
        }

        aligned = align_price_history(histories, ["BTC", "ETH"])

        assert list(aligned.index) == [2, 3]
        assert list(aligned.columns) == ["BTC", "ETH"]
        assert list(aligned["BTC"]) == [3.0, 4.0]
        assert list(aligned["ETH"]) == [10.0, 20.0]

    def test_missing_asset_gives_empty_frame(self, series_factory):
        histories = {"BTC": series_factory([1.0, 2.0])}

        assert len(align_price_history(histories, ["BTC", "ETH"])) == 0


class TestCovarianceMatrix:
    """Tests für covariance_matrix"""

    def test_known_values(self):
        """A hat konstante Rendite (Varianz 0), B wechselt ±10%"""
        prices = pd.DataFrame({"A": [100.0, 110.0, 121.0], "B": [100.0, 90.0, 99.0]})

        cov = covariance_matrix(prices)

        assert cov[0, 0] == pytest.approx(0.0)
        assert cov[1, 1] == pytest.approx(0.02)
        assert cov[0, 1] == pytest.approx(0.0)

    def test_symmetric(self, price_histories):
        assets = ["BTC", "ETH", "USDC"]
        cov = covariance_matrix(align_price_history(price_histories, assets), assets)

        assert cov.shape == (3, 3)
        assert np.array_equal(cov, cov.T)
        assert np.all(np.diag(cov) >= 0)

    def test_accepts_row_dicts(self):
        rows = [{"A": 100.0, "B": 100.0}, {"A": 110.0, "B": 90.0}, {"A": 121.0, "B": 99.0}]

        cov = covariance_matrix(rows, ["B", "A"])

        assert cov[0, 0] == pytest.approx(0.02)

    def test_too_few_rows_raises(self):
        prices = pd.DataFrame({"A": [100.0, 110.0]})

        with pytest.raises(InsufficientDataError):
            covariance_matrix(prices)


class TestAnnualizedChange:
    """Tests für annualized_change"""

    def test_scales_by_365(self):
        snapshot = MarketSnapshot(symbol="BTC", price=1.0, market_cap=1.0, change_24h=0.01)

        assert annualized_change(snapshot) == pytest.approx(3.65)

    def test_missing_snapshot(self):
        assert annualized_change(None) == 0.0

    def test_nan_change_counts_as_zero(self):
        snapshot = MarketSnapshot(
            symbol="BTC", price=1.0, market_cap=1.0, change_24h=float("nan")
        )

        assert annualized_change(snapshot) == 0.0
