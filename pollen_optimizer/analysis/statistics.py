"""Return statistics derived from price history.

Daily simple returns, annualized volatility (365 periods, crypto trades 24/7),
pairwise Pearson correlation on shared timestamps and a sample covariance
matrix over dates common to all assets.

Data gaps never raise here: volatility falls back to DEFAULT_VOLATILITY and
correlation to 0. Only covariance_matrix raises InsufficientDataError, which
the minimum-variance strategy turns into its risk-parity fallback.
"""

from __future__ import annotations

import math
from collections.abc import Iterator, Sequence

import numpy as np
import pandas as pd

from pollen_optimizer.core.exceptions import InsufficientDataError
from pollen_optimizer.core.logging_system import get_logger
from pollen_optimizer.data.market_data import MarketSnapshot
from pollen_optimizer.data.price_history import PriceSeries

TRADING_DAYS_PER_YEAR = 365
DEFAULT_VOLATILITY = 0.30


def simple_returns(series: PriceSeries) -> Iterator[float]:
    """Yield period-over-period returns (p[i] - p[i-1]) / p[i-1] of the closes."""
    for prev, curr in zip(series, series[1:]):
        yield (curr.close - prev.close) / prev.close


def returns_array(series: PriceSeries) -> np.ndarray:
    return np.fromiter(simple_returns(series), dtype=float)


def volatility(
    series: PriceSeries,
    lookback_days: int = 30,
    default: float = DEFAULT_VOLATILITY,
    symbol: str | None = None,
) -> float:
    """Annualized standard deviation of daily returns over the lookback window.

    Uses the last ``lookback_days + 1`` points. With fewer than two points the
    default volatility is returned and a data-quality warning is logged, the
    same happens when a gap in the closes makes the result non-finite.
    """
    window = series[-(lookback_days + 1) :] if lookback_days > 0 else []
    if len(window) < 2:
        get_logger().data_quality(
            symbol,
            f"only {len(window)} price points, using default volatility {default:.2f}",
            {"lookback_days": lookback_days},
        )
        return default

    returns = returns_array(window)
    vol = float(np.std(returns) * math.sqrt(TRADING_DAYS_PER_YEAR))
    if not math.isfinite(vol):
        get_logger().data_quality(
            symbol,
            f"non-finite returns, using default volatility {default:.2f}",
            {"lookback_days": lookback_days},
        )
        return default
    return vol


def correlation(series_a: PriceSeries, series_b: PriceSeries, lookback_days: int = 90) -> float:
    """Pearson correlation of returns on timestamps both series share.

    Returns 0 when fewer than two aligned points exist or either side has
    zero variance.
    """
    window_a = series_a[-(lookback_days + 1) :]
    window_b = series_b[-(lookback_days + 1) :]

    closes_b = {p.time: p.close for p in window_b}
    aligned = [(p.close, closes_b[p.time]) for p in window_a if p.time in closes_b]
    if len(aligned) < 2:
        return 0.0

    prices = np.array(aligned, dtype=float)
    returns = np.diff(prices, axis=0) / prices[:-1]

    dev_a = returns[:, 0] - returns[:, 0].mean()
    dev_b = returns[:, 1] - returns[:, 1].mean()

    std_a = math.sqrt(float(np.sum(dev_a * dev_a)))
    std_b = math.sqrt(float(np.sum(dev_b * dev_b)))
    if std_a == 0 or std_b == 0:
        return 0.0

    corr = float(np.sum(dev_a * dev_b)) / (std_a * std_b)
    return max(-1.0, min(1.0, corr))


def align_price_history(histories: dict[str, PriceSeries], assets: Sequence[str]) -> pd.DataFrame:
    """Close prices on the dates shared by every asset.

    Rows are timestamps (ascending), columns follow the order of ``assets``.
    """
    frames = {
        symbol: pd.Series(
            [p.close for p in histories.get(symbol, [])],
            index=[p.time for p in histories.get(symbol, [])],
            dtype=float,
        )
        for symbol in assets
    }
    if not frames:
        return pd.DataFrame()

    aligned = pd.concat(frames, axis=1, join="inner")
    aligned.columns = list(assets)
    return aligned.sort_index()


def covariance_matrix(
    aligned_prices: pd.DataFrame | Sequence[dict[str, float]],
    assets: Sequence[str] | None = None,
) -> np.ndarray:
    """Sample covariance (n - 1) of daily returns from date-aligned prices.

    Each pair is computed once and mirrored, so the result is symmetric by
    construction.
    """
    if isinstance(aligned_prices, pd.DataFrame):
        df = aligned_prices
    else:
        df = pd.DataFrame(list(aligned_prices))
    if assets is not None:
        df = df[list(assets)]

    prices = df.to_numpy(dtype=float)
    if prices.ndim != 2 or prices.shape[0] < 3:
        raise InsufficientDataError(
            f"Need at least 3 aligned price rows for a covariance matrix, got {len(df)}"
        )

    returns = np.diff(prices, axis=0) / prices[:-1]
    n_obs, n_assets = returns.shape
    deviations = returns - returns.mean(axis=0)

    cov = np.zeros((n_assets, n_assets))
    for i in range(n_assets):
        for j in range(i + 1):
            value = float(np.sum(deviations[:, i] * deviations[:, j])) / (n_obs - 1)
            cov[i, j] = value
            cov[j, i] = value

    return cov


def annualized_change(snapshot: MarketSnapshot | None) -> float:
    """24h change scaled to a yearly figure (0 without snapshot or change)."""
    if snapshot is None or not math.isfinite(snapshot.change_24h):
        return 0.0
    return snapshot.change_24h * TRADING_DAYS_PER_YEAR


def period_return(series: PriceSeries) -> float:
    """Return of the most recent period, 0 with fewer than two points."""
    if len(series) < 2:
        return 0.0
    prev, curr = series[-2].close, series[-1].close
    return (curr - prev) / prev
