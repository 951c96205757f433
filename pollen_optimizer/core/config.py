"""
Zentrale Konfiguration für den Portfolio Optimizer.
Alle Schwellwerte, Gebühren und Lookback-Fenster an einer Stelle.
"""

import logging
import os
from dataclasses import asdict, dataclass, field

logger = logging.getLogger("portfolio_optimizer")


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, default))


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, default))


def _env_bool(name: str, default: bool) -> bool:
    return os.getenv(name, str(default)).lower() == "true"


# ═══════════════════════════════════════════════════════════════
# OPTIMIZER KONFIGURATION
# ═══════════════════════════════════════════════════════════════


@dataclass
class OptimizerConfig:
    """Konfiguration für Zielgewichte und Portfolio-Metriken"""

    risk_free_rate: float = 0.02  # 2% p.a.

    # Gewichts-Grenzen pro Asset
    min_weight: float = 0.01
    max_weight: float = 0.5

    # Statistik
    default_volatility: float = 0.30  # Fallback bei Datenlücken
    volatility_lookback_days: int = 30
    correlation_lookback_days: int = 90
    min_variance_lookback_days: int = 90
    min_aligned_points: int = 30

    def validate(self) -> tuple[bool, list[str]]:
        """Validiert alle Konfigurationswerte."""
        errors = []

        if not 0 <= self.min_weight <= 1:
            errors.append(f"min_weight ({self.min_weight}) muss zwischen 0 und 1 liegen")
        if not 0 < self.max_weight <= 1:
            errors.append(f"max_weight ({self.max_weight}) muss zwischen 0 und 1 liegen")
        if self.min_weight > self.max_weight:
            errors.append(
                f"min_weight ({self.min_weight}) darf nicht größer als max_weight "
                f"({self.max_weight}) sein"
            )

        if self.default_volatility <= 0:
            errors.append("default_volatility muss positiv sein")

        if self.volatility_lookback_days < 2:
            errors.append("volatility_lookback_days muss mindestens 2 sein")
        if self.correlation_lookback_days < 2:
            errors.append("correlation_lookback_days muss mindestens 2 sein")
        if self.min_aligned_points < 2:
            errors.append("min_aligned_points muss mindestens 2 sein")
        elif self.min_variance_lookback_days < self.min_aligned_points:
            errors.append(
                f"min_variance_lookback_days ({self.min_variance_lookback_days}) ist kleiner "
                f"als min_aligned_points ({self.min_aligned_points})"
            )

        return len(errors) == 0, errors

    @classmethod
    def from_env(cls) -> "OptimizerConfig":
        """Erstellt Config aus Umgebungsvariablen"""
        return cls(
            risk_free_rate=_env_float("OPTIMIZER_RISK_FREE_RATE", 0.02),
            min_weight=_env_float("OPTIMIZER_MIN_WEIGHT", 0.01),
            max_weight=_env_float("OPTIMIZER_MAX_WEIGHT", 0.5),
            default_volatility=_env_float("OPTIMIZER_DEFAULT_VOLATILITY", 0.30),
            volatility_lookback_days=_env_int("OPTIMIZER_VOLATILITY_LOOKBACK_DAYS", 30),
            correlation_lookback_days=_env_int("OPTIMIZER_CORRELATION_LOOKBACK_DAYS", 90),
            min_variance_lookback_days=_env_int("OPTIMIZER_MIN_VARIANCE_LOOKBACK_DAYS", 90),
            min_aligned_points=_env_int("OPTIMIZER_MIN_ALIGNED_POINTS", 30),
        )

    def to_dict(self) -> dict:
        return asdict(self)


# ═══════════════════════════════════════════════════════════════
# REBALANCING KONFIGURATION
# ═══════════════════════════════════════════════════════════════


@dataclass
class RebalanceConfig:
    """Schwellwerte und Kostenmodell für Rebalancing"""

    # Needs-Rebalance Schwellwerte
    min_weight_deviation: float = 0.05  # 5% Abweichung
    min_sharpe_improvement: float = 0.1
    max_turnover: float = 0.3
    check_correlation: bool = True

    # Trades unter 0.1% Gewicht sind Rauschen
    noise_threshold: float = 0.001

    # Kostenmodell (Heuristik, kein Orderbuch)
    base_fee_rate: float = 0.001  # 0.1% Trading Fee
    base_slippage: float = 0.001  # 0.1% Basis-Slippage
    slippage_size_reference: float = 0.1  # ab 10% Gewicht doppelte Slippage

    def validate(self) -> tuple[bool, list[str]]:
        errors = []

        if self.min_weight_deviation < 0:
            errors.append("min_weight_deviation darf nicht negativ sein")
        if self.noise_threshold < 0:
            errors.append("noise_threshold darf nicht negativ sein")
        if self.base_fee_rate < 0 or self.base_slippage < 0:
            errors.append("Gebühren und Slippage dürfen nicht negativ sein")
        if self.slippage_size_reference <= 0:
            errors.append("slippage_size_reference muss positiv sein")

        return len(errors) == 0, errors

    @classmethod
    def from_env(cls) -> "RebalanceConfig":
        return cls(
            min_weight_deviation=_env_float("REBALANCE_MIN_WEIGHT_DEVIATION", 0.05),
            min_sharpe_improvement=_env_float("REBALANCE_MIN_SHARPE_IMPROVEMENT", 0.1),
            max_turnover=_env_float("REBALANCE_MAX_TURNOVER", 0.3),
            check_correlation=_env_bool("REBALANCE_CHECK_CORRELATION", True),
            noise_threshold=_env_float("REBALANCE_NOISE_THRESHOLD", 0.001),
            base_fee_rate=_env_float("REBALANCE_BASE_FEE_RATE", 0.001),
            base_slippage=_env_float("REBALANCE_BASE_SLIPPAGE", 0.001),
        )

    def to_dict(self) -> dict:
        return asdict(self)


# ═══════════════════════════════════════════════════════════════
# MARKET DATA KONFIGURATION
# ═══════════════════════════════════════════════════════════════


@dataclass
class MarketDataConfig:
    """Cache-Einstellungen für Snapshots und Preishistorie"""

    snapshot_ttl_seconds: int = 300  # 5 Minuten
    history_max_points: int = 365

    @classmethod
    def from_env(cls) -> "MarketDataConfig":
        return cls(
            snapshot_ttl_seconds=_env_int("MARKET_DATA_SNAPSHOT_TTL_SECONDS", 300),
            history_max_points=_env_int("MARKET_DATA_HISTORY_MAX_POINTS", 365),
        )


# ═══════════════════════════════════════════════════════════════
# LOGGING KONFIGURATION
# ═══════════════════════════════════════════════════════════════


@dataclass
class LoggingConfig:
    log_dir: str = "logs"
    level: str = "INFO"

    @classmethod
    def from_env(cls) -> "LoggingConfig":
        return cls(
            log_dir=os.getenv("OPTIMIZER_LOG_DIR", "logs"),
            level=os.getenv("OPTIMIZER_LOG_LEVEL", "INFO"),
        )


# ═══════════════════════════════════════════════════════════════
# RUN KONFIGURATION (CLI)
# ═══════════════════════════════════════════════════════════════


def parse_weights(raw: str) -> dict[str, float]:
    """Parst 'BTC=0.5,ETH=0.3' zu {'BTC': 0.5, 'ETH': 0.3}"""
    weights = {}
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        symbol, _, value = part.partition("=")
        if not value:
            raise ValueError(f"Ungültiges Gewicht '{part}' (erwartet SYMBOL=WERT)")
        weights[symbol.strip().upper()] = float(value)
    return weights


@dataclass
class RunConfig:
    """Eingaben für einen einzelnen Optimierungslauf"""

    assets: list[str] = field(default_factory=lambda: ["BTC", "ETH", "AVAX", "LINK", "BNB"])
    strategy: str = "market_cap"
    current_weights: dict[str, float] = field(default_factory=dict)
    prices_csv: str = "data/prices.csv"
    snapshots_csv: str = "data/snapshots.csv"

    def validate(self) -> tuple[bool, list[str]]:
        from pollen_optimizer.portfolio.strategies import AllocationStrategy

        errors = []

        if not self.assets:
            errors.append("Asset-Liste darf nicht leer sein")
        elif len(set(self.assets)) != len(self.assets):
            errors.append(f"Asset-Liste enthält Duplikate: {self.assets}")

        valid_strategies = [s.value for s in AllocationStrategy]
        if self.strategy not in valid_strategies:
            errors.append(f"strategy muss eine von {valid_strategies} sein")

        unknown = set(self.current_weights) - set(self.assets)
        if unknown:
            errors.append(f"Gewichte für unbekannte Assets: {sorted(unknown)}")

        if self.current_weights:
            total = sum(self.current_weights.values())
            if abs(total - 1) > 1e-4:
                errors.append(f"Aktuelle Gewichte summieren zu {total:.4f} statt 1")

        return len(errors) == 0, errors

    @classmethod
    def from_env(cls) -> "RunConfig":
        assets_raw = os.getenv("OPTIMIZER_ASSETS", "BTC,ETH,AVAX,LINK,BNB")
        return cls(
            assets=[a.strip().upper() for a in assets_raw.split(",") if a.strip()],
            strategy=os.getenv("OPTIMIZER_STRATEGY", "market_cap"),
            current_weights=parse_weights(os.getenv("OPTIMIZER_CURRENT_WEIGHTS", "")),
            prices_csv=os.getenv("OPTIMIZER_PRICES_CSV", "data/prices.csv"),
            snapshots_csv=os.getenv("OPTIMIZER_SNAPSHOTS_CSV", "data/snapshots.csv"),
        )

    def print_summary(self):
        """Gibt eine Zusammenfassung des Laufs aus"""
        current = ", ".join(f"{k}:{v:.2f}" for k, v in self.current_weights.items()) or "-"
        logger.info(f"""
╔══════════════════════════════════════════════════════════════╗
║                 PORTFOLIO OPTIMIZER                          ║
╠══════════════════════════════════════════════════════════════╣
║  Assets:          {", ".join(self.assets):<43}║
║  Strategie:       {self.strategy:<43}║
║  Aktuell:         {current:<43}║
╚══════════════════════════════════════════════════════════════╝
        """)


# ═══════════════════════════════════════════════════════════════
# GLOBALE KONFIGURATION
# ═══════════════════════════════════════════════════════════════


@dataclass
class AppConfig:
    """Hauptkonfiguration die alle Teilkonfigurationen enthält"""

    optimizer: OptimizerConfig = field(default_factory=OptimizerConfig)
    rebalance: RebalanceConfig = field(default_factory=RebalanceConfig)
    market_data: MarketDataConfig = field(default_factory=MarketDataConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def validate(self) -> tuple[bool, list[str]]:
        _, optimizer_errors = self.optimizer.validate()
        _, rebalance_errors = self.rebalance.validate()
        errors = optimizer_errors + rebalance_errors
        return len(errors) == 0, errors

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Lädt komplette Konfiguration aus Umgebungsvariablen"""
        return cls(
            optimizer=OptimizerConfig.from_env(),
            rebalance=RebalanceConfig.from_env(),
            market_data=MarketDataConfig.from_env(),
            logging=LoggingConfig.from_env(),
        )


# Singleton für globale Config
_config: AppConfig | None = None


def get_config() -> AppConfig:
    """Gibt die globale Konfiguration zurück"""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config
