"""
Structured Logging System for the Portfolio Optimizer
======================================================

Provides JSON-line logs per category for later analysis:
- Errors with context
- Data-quality warnings (missing prices, snapshots)
- Degraded-mode events (strategy fallbacks)
- Optimization results and rebalance plans

Degraded-mode events get their own file so fallback runs can be told apart
from normal operation.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from enum import Enum
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from pollen_optimizer.core.config import get_config


class LogCategory(Enum):
    """Log categories for filtering and analysis."""

    ERROR = "error"
    DATA_QUALITY = "data_quality"
    DEGRADED = "degraded"
    OPTIMIZATION = "optimization"
    REBALANCE = "rebalance"
    SYSTEM = "system"


# Singleton instance
_optimizer_logger = None


class JsonFormatter(logging.Formatter):
    def format(self, record):
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "category": getattr(record, "category", "unknown"),
            "message": record.getMessage(),
        }

        if hasattr(record, "extra_data"):
            log_data["data"] = record.extra_data

        return json.dumps(log_data, default=str)


class OptimizerLogger:
    """
    Centralized structured logging for optimizer runs.

    All logs are JSON-formatted and rotated to prevent disk space issues.
    Warnings and above are mirrored to the plain "portfolio_optimizer" logger.
    """

    MAX_BYTES = 10 * 1024 * 1024  # 10 MB per file
    BACKUP_COUNT = 10

    def __init__(self, log_dir: str | Path = "logs"):
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)

        self.loggers: dict[str, logging.Logger] = {}
        self.console = logging.getLogger("portfolio_optimizer")

        for category in LogCategory:
            self._create_category_logger(category)

        self._create_combined_logger()

    def _file_handler(self, log_file: Path, max_bytes: int) -> RotatingFileHandler:
        handler = RotatingFileHandler(
            log_file,
            maxBytes=max_bytes,
            backupCount=self.BACKUP_COUNT,
            encoding="utf-8",
        )
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(JsonFormatter())
        return handler

    @staticmethod
    def _reset_handlers(logger: logging.Logger):
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()

    def _create_category_logger(self, category: LogCategory):
        """Create a logger for a specific category."""
        logger = logging.getLogger(f"optimizer.{category.value}")
        logger.setLevel(logging.DEBUG)
        logger.propagate = False
        self._reset_handlers(logger)

        logger.addHandler(self._file_handler(self.log_dir / f"{category.value}.log", self.MAX_BYTES))

        if category == LogCategory.ERROR:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setLevel(logging.ERROR)
            console_handler.setFormatter(logging.Formatter("%(asctime)s - ERROR - %(message)s"))
            logger.addHandler(console_handler)

        self.loggers[category.value] = logger

    def _create_combined_logger(self):
        """Create a combined logger for all events."""
        logger = logging.getLogger("optimizer.combined")
        logger.setLevel(logging.DEBUG)
        logger.propagate = False
        self._reset_handlers(logger)

        logger.addHandler(self._file_handler(self.log_dir / "combined.log", self.MAX_BYTES * 2))
        self.loggers["combined"] = logger

    def _log(
        self,
        category: LogCategory,
        level: int,
        message: str,
        data: dict[str, Any] | None = None,
    ):
        """Internal logging method."""
        for logger in (self.loggers.get(category.value), self.loggers.get("combined")):
            if logger is None:
                continue
            record = logging.LogRecord(
                name=logger.name,
                level=level,
                pathname="",
                lineno=0,
                msg=message,
                args=(),
                exc_info=None,
            )
            record.category = category.value
            if data:
                record.extra_data = data
            logger.handle(record)

        if level >= logging.WARNING and category != LogCategory.ERROR:
            self.console.log(level, f"[{category.value}] {message}")

    def close(self):
        """Close all file handlers."""
        for logger in self.loggers.values():
            self._reset_handlers(logger)
        self.loggers.clear()

    # ========================================
    # Error Logging
    # ========================================

    def error(
        self,
        message: str,
        error: Exception | None = None,
        context: dict[str, Any] | None = None,
    ):
        """
        Log an error with full context.

        Args:
            message: Error description
            error: The exception if available
            context: Additional context (operation, parameters)
        """
        data = {
            "error_type": type(error).__name__ if error else None,
            "error_message": str(error) if error else None,
            "context": context or {},
        }
        self._log(LogCategory.ERROR, logging.ERROR, message, data)

    # ========================================
    # Data Quality / Degraded Mode
    # ========================================

    def data_quality(self, symbol: str | None, issue: str, context: dict[str, Any] | None = None):
        """Log a soft data problem that was handled with a fallback value."""
        data = {"symbol": symbol, "issue": issue, "context": context or {}}
        prefix = f"{symbol}: " if symbol else ""
        self._log(LogCategory.DATA_QUALITY, logging.WARNING, f"Data quality: {prefix}{issue}", data)

    def degraded_mode(
        self,
        component: str,
        requested: str,
        fallback: str,
        reason: str,
        error: Exception | None = None,
    ):
        """
        Log a strategy fallback.

        Args:
            component: Where the fallback happened (e.g. min_variance)
            requested: What was requested
            fallback: What was used instead
            reason: Why the fallback was needed
        """
        data = {
            "component": component,
            "requested": requested,
            "fallback": fallback,
            "reason": reason,
            "error_type": type(error).__name__ if error else None,
            "error_message": str(error) if error else None,
        }
        self._log(
            LogCategory.DEGRADED,
            logging.WARNING,
            f"Degraded mode: {requested} -> {fallback} ({reason})",
            data,
        )

    # ========================================
    # Optimization / Rebalance Logging
    # ========================================

    def optimization_completed(
        self,
        strategy: str,
        strategy_used: str,
        target_weights: dict[str, float],
        metrics: dict[str, Any] | None = None,
    ):
        """Log a finished optimization run."""
        data = {
            "strategy": strategy,
            "strategy_used": strategy_used,
            "target_weights": target_weights,
            "metrics": metrics or {},
        }
        self._log(
            LogCategory.OPTIMIZATION,
            logging.INFO,
            f"Optimization completed: {strategy_used} ({len(target_weights)} assets)",
            data,
        )

    def rebalance_check(self, needs_rebalance: bool, max_deviation: float, sharpe_improvement: float):
        data = {
            "needs_rebalance": needs_rebalance,
            "max_deviation": max_deviation,
            "sharpe_improvement": sharpe_improvement,
        }
        self._log(
            LogCategory.REBALANCE,
            logging.INFO,
            f"Rebalance check: {'needed' if needs_rebalance else 'not needed'}",
            data,
        )

    def rebalance_plan(
        self,
        trades: list[dict[str, Any]],
        transaction_cost: float,
        slippage: float,
        constraints_applied: bool,
    ):
        """Log a generated rebalancing plan."""
        data = {
            "trades": trades,
            "transaction_cost": transaction_cost,
            "slippage": slippage,
            "constraints_applied": constraints_applied,
        }
        self._log(
            LogCategory.REBALANCE,
            logging.INFO,
            f"Rebalance plan: {len(trades)} trades, cost {transaction_cost:.6f}",
            data,
        )

    # ========================================
    # System Logging
    # ========================================

    def system_start(self, config: dict[str, Any] | None = None):
        """Log optimizer startup."""
        data = {
            "event": "startup",
            "config": config or {},
            "python_version": sys.version,
        }
        self._log(LogCategory.SYSTEM, logging.INFO, "Portfolio optimizer started", data)

    # ========================================
    # Analysis Helper Methods
    # ========================================

    def get_log_files(self) -> dict[str, Path]:
        """Get paths to all log files."""
        return {category.value: self.log_dir / f"{category.value}.log" for category in LogCategory}

    def get_recent_events(self, category: LogCategory, limit: int = 50) -> list[dict]:
        """Read the most recent JSON events of one category."""
        log_file = self.log_dir / f"{category.value}.log"
        if not log_file.exists():
            return []

        events = []
        with open(log_file, encoding="utf-8") as f:
            for line in f:
                try:
                    events.append(json.loads(line))
                except json.JSONDecodeError:
                    continue

        return events[-limit:]


def get_logger() -> OptimizerLogger:
    """Get the singleton OptimizerLogger instance."""
    global _optimizer_logger
    if _optimizer_logger is None:
        _optimizer_logger = OptimizerLogger(get_config().logging.log_dir)
    return _optimizer_logger


def reset_logger() -> None:
    """Close and drop the singleton (tests, config reload)."""
    global _optimizer_logger
    if _optimizer_logger is not None:
        _optimizer_logger.close()
        _optimizer_logger = None


def setup_console_logging(level: str = "INFO"):
    """Configure the plain console logger used by all modules."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
