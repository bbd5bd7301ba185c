#!/usr/bin/env python3
"""
MarkSix Pipeline
================

Command line entry point for the scoring and backtesting engine.

Usage:
    python main.py score --data data/history.csv          # One-shot ranking and pick
    python main.py backtest --data data/history.csv       # Adaptive backtest
    python main.py bets --data data/history.csv           # Compound bet suggestions
    python main.py optimize --data data/history.csv       # Iterative simulation refinement
    python main.py --help                                 # Show help
"""

import argparse
import configparser
import json
import os
import sys
import traceback
from datetime import datetime
from typing import Any, Dict, List, Optional

from loguru import logger
import numpy as np

from marksix.backtest import IterativeBacktestingEngine
from marksix.betting import compound_bet_suggestion_100, compound_bet_suggestions
from marksix.config import DEFAULT_CONFIG_PATH, DEFAULT_LOG_FILE, EngineConfig
from marksix.exceptions import InsufficientDataError, MarkSixError
from marksix.loader import get_history_loader
from marksix.models import DrawRecord
from marksix.scoring import CompositeScorer
from marksix.simulation_engine import MonteCarloSimulator
from marksix.strategies import select_optimal_numbers


class MarkSixPipeline:
    """
    Wires configuration, logging, data loading and the engine together for
    the CLI commands.
    """

    def __init__(self, config_path: str = DEFAULT_CONFIG_PATH, verbose: bool = False):
        """
        Initialize the pipeline.

        Args:
            config_path: Path to configuration file
            verbose: Log DEBUG messages to the console
        """
        self.config_path = config_path
        self.verbose = verbose
        self.config = self._load_configuration()
        self._setup_logging()
        self.engine_config = EngineConfig.from_ini(config_path)
        logger.info("MarkSix pipeline initialized")

    def _load_configuration(self) -> configparser.ConfigParser:
        """Load configuration from config.ini file; a missing file means defaults."""
        config = configparser.ConfigParser()
        if os.path.exists(self.config_path):
            config.read(self.config_path)
        return config

    def _setup_logging(self):
        """Setup logging configuration."""
        logger.remove()

        log_file = self.config.get("paths", "log_file", fallback=DEFAULT_LOG_FILE)
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)

        logger.add(
            sys.stdout,
            format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
            level="DEBUG" if self.verbose else "INFO"
        )
        logger.add(
            log_file,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
            level="DEBUG",
            rotation="10 MB",
            retention="30 days"
        )

    def load_history(self, data_path: Optional[str] = None) -> List[DrawRecord]:
        path = data_path or self.config.get("paths", "data_file", fallback="data/marksix_history.csv")
        return get_history_loader().load(path)

    def run_score(self, history: List[DrawRecord], weights: Optional[Dict[str, float]] = None) -> Dict[str, Any]:
        """Ranks every number and picks one 6-number bet."""
        result = CompositeScorer(self.engine_config).score(history, weights)
        pick = select_optimal_numbers(result.ranked)
        output = result.to_dict()
        output.update({
            'predicted_numbers': list(pick.numbers),
            'prediction_strategy': pick.strategy,
            'timestamp': datetime.now().isoformat(),
        })
        return output

    def run_backtest(self, history: List[DrawRecord], lookback: int, retries: int,
                     seed: Optional[int] = None) -> Dict[str, Any]:
        """Runs the adaptive backtest and returns a JSON-ready summary."""
        rng = np.random.default_rng(seed if seed is not None else self.engine_config.random_seed)

        def report(percent, message):
            logger.info(f"[{percent:5.1f}%] {message}")

        engine = IterativeBacktestingEngine(self.engine_config, on_progress=report, rng=rng)
        return engine.run(history, lookback_periods=lookback, max_retries=retries).to_dict()

    def run_optimize(self, history: List[DrawRecord], seed: Optional[int] = None) -> Dict[str, Any]:
        """Refines the top-ranked bet with the keep/replace simulation loop."""
        result = CompositeScorer(self.engine_config).score(history)
        rng = np.random.default_rng(seed if seed is not None else self.engine_config.random_seed)
        simulator = MonteCarloSimulator(self.engine_config.num_simulations, rng)
        return simulator.iterative_simulation_optimization(
            result.ranked,
            max_iterations=self.engine_config.optimization_max_iterations,
            hit_threshold=self.engine_config.optimization_hit_threshold,
            min_keep_count=self.engine_config.optimization_min_keep,
        )

    def run_bets(self, history: List[DrawRecord]) -> Dict[str, Any]:
        """Compound bet suggestions from the current ranking."""
        result = CompositeScorer(self.engine_config).score(history)
        output: Dict[str, Any] = {'top_numbers': result.top_numbers[:15]}
        try:
            output['compound_bets'] = compound_bet_suggestions(result.top_numbers)
        except InsufficientDataError as e:
            logger.warning(f"Compound bet suggestions unavailable: {e}")
            output['compound_bets'] = None
        try:
            output['compound_bet_100'] = compound_bet_suggestion_100(result.top_numbers)
        except InsufficientDataError as e:
            logger.warning(f"$100 suggestion unavailable: {e}")
            output['compound_bet_100'] = None
        return output


def _write_output(payload: Dict[str, Any], output_path: Optional[str]) -> None:
    text = json.dumps(payload, indent=2, default=str)
    if output_path:
        output_dir = os.path.dirname(output_path)
        if output_dir:
            os.makedirs(output_dir, exist_ok=True)
        with open(output_path, 'w', encoding='utf-8') as f:
            f.write(text)
        logger.info(f"Results written to {output_path}")


def score_command(pipeline: MarkSixPipeline, args) -> None:
    """Handles the 'score' command."""
    weights = json.loads(args.weights) if args.weights else None
    result = pipeline.run_score(pipeline.load_history(args.data), weights)

    print("\n--- Top Numbers ---")
    for entry in result['ranked'][:10]:
        print(f"  {entry['number']:>2}  {entry['score']:>7.2f}")
    print(f"\nPredicted numbers ({result['prediction_strategy']}): {result['predicted_numbers']}")
    print("-------------------\n")
    _write_output(result, args.output)


def backtest_command(pipeline: MarkSixPipeline, args) -> None:
    """Handles the 'backtest' command."""
    result = pipeline.run_backtest(pipeline.load_history(args.data), args.lookback, args.retries, args.seed)
    statistics = result['statistics']

    print("\n" + "=" * 60)
    print("BACKTEST SUMMARY")
    print("=" * 60)
    print(f"Periods evaluated: {statistics['total_periods']}")
    print(f"Total hits: {statistics['total_hits']}")
    print(f"Average hits per period: {statistics['average_hits_per_period']:.3f}")
    print(f"Average accuracy: {statistics['average_accuracy']:.2f}%")
    print(f"Periods with {statistics['target_summary']['target_hit_count']}+ hits: "
          f"{statistics['periods_with_target_hits']}")
    print(f"Target met: {result['meets_target']}")
    if result['live_prediction']:
        live = result['live_prediction']
        print(f"Next period prediction ({live['strategy']}): {live['numbers']}")
    print("=" * 60)
    _write_output(result, args.output)


def bets_command(pipeline: MarkSixPipeline, args) -> None:
    """Handles the 'bets' command."""
    result = pipeline.run_bets(pipeline.load_history(args.data))
    print(f"\nTop numbers: {result['top_numbers']}")
    for suggestion in result['compound_bets'] or []:
        print(f"  {suggestion['number_count']} numbers: {suggestion['total_bets']} bets "
              f"(${suggestion['total_amount']:,})")
    if result['compound_bet_100']:
        print(f"  $100 selection: {result['compound_bet_100']['total_bets']} bets")
    _write_output(result, args.output)


def optimize_command(pipeline: MarkSixPipeline, args) -> None:
    """Handles the 'optimize' command."""
    result = pipeline.run_optimize(pipeline.load_history(args.data), args.seed)
    print(f"\nInitial numbers: {result['initial_numbers']}")
    for entry in result['iteration_history']:
        print(f"  Iteration {entry['iteration']}: {entry['numbers']} "
              f"(kept {entry['kept_numbers']}, replaced {entry['replaced_numbers']})")
    print(f"Final numbers: {result['final_numbers']}")
    print(f"Converged: {result['converged']} ({result['convergence_reason'] or 'max iterations'})")
    _write_output(result, args.output)


def main():
    """Main entry point for the MarkSix CLI."""
    parser = argparse.ArgumentParser(
        description="MarkSix ensemble scoring and adaptive backtesting",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py score --data data/history.csv
  python main.py backtest --data data/history.csv --lookback 100 --retries 5
  python main.py bets --data data/history.csv --output outputs/bets.json
  python main.py optimize --data data/history.csv --seed 7
        """
    )
    parser.add_argument('--config', type=str, default=DEFAULT_CONFIG_PATH,
                        help=f"Path to configuration file (default: {DEFAULT_CONFIG_PATH})")
    parser.add_argument('--verbose', action='store_true', help="Enable debug logging on the console")
    subparsers = parser.add_subparsers(dest='command', required=True)

    # --- Score Command ---
    parser_score = subparsers.add_parser('score', help="Rank all numbers and pick one bet.")
    parser_score.add_argument('--weights', type=str, help="Indicator weights as a JSON object")
    parser_score.set_defaults(func=score_command)

    # --- Backtest Command ---
    parser_backtest = subparsers.add_parser('backtest', help="Run the adaptive historical backtest.")
    parser_backtest.add_argument('--lookback', type=int, default=100,
                                 help="Periods to replay (default: 100)")
    parser_backtest.add_argument('--retries', type=int, default=0,
                                 help="Maximum perturbed re-runs (default: 0)")
    parser_backtest.add_argument('--seed', type=int, help="Random seed for simulation and perturbation")
    parser_backtest.set_defaults(func=backtest_command)

    # --- Bets Command ---
    parser_bets = subparsers.add_parser('bets', help="Suggest compound bets from the ranking.")
    parser_bets.set_defaults(func=bets_command)

    # --- Optimize Command ---
    parser_optimize = subparsers.add_parser('optimize', help="Refine the top bet with iterative simulation.")
    parser_optimize.add_argument('--seed', type=int, help="Random seed for the simulation")
    parser_optimize.set_defaults(func=optimize_command)

    for sub in (parser_score, parser_backtest, parser_bets, parser_optimize):
        sub.add_argument('--data', type=str, help="History file (CSV or JSON)")
        sub.add_argument('--output', type=str, help="Write the result as JSON to this path")

    args = parser.parse_args()

    try:
        pipeline = MarkSixPipeline(config_path=args.config, verbose=args.verbose)
        args.func(pipeline, args)
    except KeyboardInterrupt:
        print("\nExecution interrupted by user")
        sys.exit(1)
    except (MarkSixError, FileNotFoundError, ValueError) as e:
        logger.error(f"{args.command} failed: {e}")
        sys.exit(1)
    except Exception as e:
        print(f"\nFATAL ERROR: {e}")
        if args.verbose:
            print(f"Traceback: {traceback.format_exc()}")
        sys.exit(1)


if __name__ == "__main__":
    main()
