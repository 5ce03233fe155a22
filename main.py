"""
Portfolio risk analysis entry point.

Runs a single analysis:
  1. Resolve the portfolio (named definition or explicit tickers/weights).
  2. Fetch daily return series from the selected source (cached).
  3. Compute risk metrics with the analytics engine.
  4. Archive the report and the day's log to a timestamped folder.

Usage::

    uv run main.py --portfolio balanced --source json
    uv run main.py --tickers AAPL MSFT --weights 0.6 0.4 --benchmark SPY
"""
import argparse
import json
import os
import shutil
import sys
from datetime import datetime
from typing import List, Optional

from dotenv import load_dotenv
from loguru import logger

from src.riskengine.utils.logger import log_file_name, setup_logger

setup_logger()
load_dotenv()

from src.riskengine.analysis.analyzer import PortfolioAnalyzer  # noqa: E402
from src.riskengine.core.errors import RiskEngineError  # noqa: E402
from src.riskengine.core.types import RiskConfig  # noqa: E402
from src.riskengine.data.adapters.json_provider import JsonReturnsProvider  # noqa: E402
from src.riskengine.data.adapters.yfinance_adapter import YFinanceReturnsAdapter  # noqa: E402
from src.riskengine.data.base import ReturnSeriesProvider  # noqa: E402
from src.riskengine.data.cache import CachedReturnsProvider  # noqa: E402
from src.riskengine.utils.portfolio_loader import PortfolioLoader  # noqa: E402


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def create_outcome_dir(label: str, analysis_type: str) -> str:
    """Create and return a timestamped output directory under ``outcomes/``."""
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    folder_name = f"{timestamp}_{label}_{analysis_type.upper()}"

    target_dir = os.path.join("outcomes", folder_name)
    os.makedirs(target_dir, exist_ok=True)

    logger.info(f"Output directory created: {target_dir}")
    return target_dir


def save_json(data: dict, folder: str, filename: str) -> None:
    """Serialise *data* as pretty-printed JSON into *folder*/*filename*."""
    path = os.path.join(folder, filename)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
    logger.success(f"Saved {filename}")


def archive_current_log(target_dir: str) -> None:
    """Copy today's log file into *target_dir* for post-mortem analysis."""
    src_log = os.path.join("logs", log_file_name(datetime.now().strftime("%Y-%m-%d")))
    try:
        if os.path.exists(src_log):
            dst_log = os.path.join(target_dir, "execution.log")
            shutil.copy2(src_log, dst_log)
            logger.info(f"Archived execution log to {dst_log}")
        else:
            logger.warning("Log file not found for archiving.")
    except OSError as e:
        logger.warning(f"Failed to archive log: {e}")


def build_provider(source: str, returns_file: str) -> ReturnSeriesProvider:
    """Instantiate the requested return-series source behind a cache."""
    if source == "json":
        provider: ReturnSeriesProvider = JsonReturnsProvider(returns_file=returns_file)
    else:
        provider = YFinanceReturnsAdapter()
    return CachedReturnsProvider(provider)


def build_config(risk_free_rate: Optional[float]) -> RiskConfig:
    """Environment-driven config, with CLI flags taking precedence."""
    config = RiskConfig.from_env()
    if risk_free_rate is not None:
        config = config.model_copy(update={"risk_free_rate": risk_free_rate})
    return config


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Portfolio Risk Analytics — single analysis run",
    )
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument(
        "--portfolio", type=str,
        help="Portfolio name defined in portfolios/portfolios.json",
    )
    target.add_argument(
        "--tickers", type=str, nargs="+",
        help="Explicit ticker list (e.g. AAPL MSFT)",
    )
    parser.add_argument(
        "--weights", type=float, nargs="+",
        help="Weights index-aligned to --tickers (default: equal weights)",
    )
    parser.add_argument("--benchmark", type=str, help="Benchmark ticker for beta")
    parser.add_argument("--market", type=str, default="US", help="Market identifier")
    parser.add_argument(
        "--source", type=str, default="yfinance", choices=["yfinance", "json"],
        help="Return-series source",
    )
    parser.add_argument(
        "--returns-file", type=str, default="portfolios/returns.json",
        help="Returns file used by --source json",
    )
    parser.add_argument(
        "--risk-free-rate", type=float, default=None,
        help="Annualized risk-free rate (overrides RISK_FREE_RATE)",
    )
    parser.add_argument(
        "--analysis-type", type=str, default="STANDARD",
        choices=["QUICK", "STANDARD", "COMPREHENSIVE"],
    )
    return parser.parse_args(argv)


# ---------------------------------------------------------------------------
# Main pipeline
# ---------------------------------------------------------------------------

def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)

    label = args.portfolio or "_".join(args.tickers[:3])
    output_dir = create_outcome_dir(label, args.analysis_type)

    try:
        if args.portfolio:
            tickers, weights, benchmark = PortfolioLoader().get_portfolio(args.portfolio)
        else:
            tickers, weights, benchmark = args.tickers, args.weights, None

        payload = {
            "tickers": tickers,
            "weights": weights,
            "benchmark": args.benchmark or benchmark,
            "market": args.market,
            "analysis_type": args.analysis_type,
        }

        config = build_config(args.risk_free_rate)
        analyzer = PortfolioAnalyzer(build_provider(args.source, args.returns_file), config)
        report = analyzer.analyze(payload)

        save_json(report.model_dump(mode="json"), output_dir, "risk_metrics.json")
        logger.info("Correlation matrix:\n" + report.risk_metrics.correlation_matrix_as_string)

        logger.success("-" * 30)
        logger.success("ANALYSIS COMPLETE")
        logger.success(f"Results archived to: {output_dir}")
        logger.success("-" * 30)

        archive_current_log(output_dir)

    except (RiskEngineError, KeyError, FileNotFoundError, ValueError) as e:
        logger.error(f"Analysis rejected: {e}")
        archive_current_log(output_dir)
        sys.exit(1)
    except Exception as e:
        logger.exception(f"Pipeline failed: {e}")
        archive_current_log(output_dir)
        sys.exit(1)


if __name__ == "__main__":
    main()
