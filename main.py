#!/usr/bin/env python3
"""
Pollen Portfolio Optimizer
Starte mit: python main.py

Konfiguration über .env / Umgebungsvariablen (OPTIMIZER_ASSETS,
OPTIMIZER_STRATEGY, OPTIMIZER_CURRENT_WEIGHTS, OPTIMIZER_PRICES_CSV, ...).
"""

import json
import os
import sys

from dotenv import load_dotenv

# Füge Projekt-Root zum Path hinzu
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from pollen_optimizer.core.config import RunConfig, get_config
from pollen_optimizer.core.exceptions import OptimizerError
from pollen_optimizer.core.logging_system import get_logger, setup_console_logging
from pollen_optimizer.data.market_data import CsvMarketDataProvider, MarketDataService
from pollen_optimizer.models.portfolio import Portfolio
from pollen_optimizer.portfolio.optimizer import PortfolioOptimizer


def main():
    load_dotenv()

    config = get_config()
    run = RunConfig.from_env()

    setup_console_logging(config.logging.level)

    errors = config.validate()[1] + run.validate()[1]
    if errors:
        print("Config validation failed:")
        for err in errors:
            print(f"  - {err}")
        sys.exit(1)

    run.print_summary()
    get_logger().system_start({"run": run.__dict__, "optimizer": config.optimizer.to_dict()})

    snapshots_csv = run.snapshots_csv if os.path.exists(run.snapshots_csv) else None
    try:
        provider = CsvMarketDataProvider(run.prices_csv, snapshots_csv)
    except (OptimizerError, OSError) as e:
        get_logger().error(
            "Marktdaten konnten nicht geladen werden",
            e,
            {"prices_csv": run.prices_csv, "snapshots_csv": snapshots_csv},
        )
        sys.exit(1)

    market_data = MarketDataService(provider, config=config.market_data)
    optimizer = PortfolioOptimizer(market_data, config)

    result = optimizer.optimize_portfolio(run.assets, run.current_weights, run.strategy)
    output = {"optimization": result.to_dict()}

    if run.current_weights:
        portfolio = Portfolio(
            assets=run.assets,
            weights=run.current_weights,
            metrics=optimizer.calculate_portfolio_metrics(run.assets, run.current_weights),
        )
        target = result.to_target_allocation()
        output["needs_rebalancing"] = optimizer.needs_rebalancing(portfolio, target).to_dict()
        output["rebalancing_plan"] = optimizer.generate_rebalancing_plan(
            portfolio, target
        ).to_dict()

    print(json.dumps(output, indent=2))
    get_logger().close()


if __name__ == "__main__":
    main()
