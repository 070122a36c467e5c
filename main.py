#!/usr/bin/env python3
"""
Rounded Census - Main Entry Point
=================================
Command-line interface for anonymizing census balances.

Usage:
    python main.py --input data/census.json
    python main.py --config configs/default.ini --min-privacy-threshold 5
    python main.py --random-size 10000 --seed 7 --output results/
"""

import argparse
import logging
import logging.handlers
import sys
import os
from datetime import datetime
from typing import List, Optional

from core.config import Config, INPUT_FORMATS, OUTLIER_METHODS
from core.pipeline import CensusPipeline


EXIT_OK = 0
EXIT_ERROR = 1
EXIT_UNEXPECTED = 2
EXIT_ACCURACY_FLOOR = 3

# Root handlers owned by setup_logging, replaced on every call
_installed_handlers: List[logging.Handler] = []


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    log_dir: Optional[str] = "logs"
) -> logging.Logger:
    """
    Set up logging with console and optional file output.

    Handlers are attached to the root logger so that every module logger
    (core.*, engine.*, reader.*, writer.*) is captured. Handlers from a
    previous call are removed and closed, so repeated calls do not duplicate
    output or leak log files.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional log file name. If None, auto-generated.
        log_dir: Directory for log files, None disables file logging

    Returns:
        Configured logger instance
    """
    root = logging.getLogger()
    for handler in _installed_handlers:
        root.removeHandler(handler)
        handler.close()
    _installed_handlers.clear()

    root.setLevel(getattr(logging, log_level.upper()))

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, log_level.upper()))
    console_format = logging.Formatter(
        '%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%H:%M:%S'
    )
    console_handler.setFormatter(console_format)
    root.addHandler(console_handler)
    _installed_handlers.append(console_handler)

    logger = logging.getLogger("rounded_census")

    # File handler (rotating)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        if log_file is None:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            log_file = f"rounded_census_{timestamp}.log"

        log_path = os.path.join(log_dir, log_file)
        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=10*1024*1024,  # 10MB
            backupCount=5,
            encoding='utf-8'
        )
        file_handler.setLevel(logging.DEBUG)
        file_format = logging.Formatter(
            '%(asctime)s [%(levelname)s] %(name)s:%(lineno)d - %(message)s'
        )
        file_handler.setFormatter(file_format)
        root.addHandler(file_handler)
        _installed_handlers.append(file_handler)
        logger.info(f"Logging to file: {log_path}")

    return logger


def build_parser() -> argparse.ArgumentParser:
    """Build the command-line parser."""
    parser = argparse.ArgumentParser(
        prog="rounded-census",
        description="Rounded Census - Anonymize holder balances by grouping and rounding",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Round a census with the default configuration
    python main.py --input data/census.json

    # Config file plus overrides
    python main.py --config configs/default.ini --min-accuracy 97.5

    # Single pass at a fixed threshold, no outlier detection
    python main.py --input data/census.json --privacy-threshold 10 --outlier-method none

    # Random census of 10,000 holders
    python main.py --random-size 10000 --seed 42 --output results/

Environment variables (applied after the config file, before flags):
    CENSUS_PATH, PRIVACY_THRESHOLD, MIN_PRIVACY_THRESHOLD,
    GROUP_BALANCE_DIFF, MIN_ACCURACY, OUTLIERS_THRESHOLD
        """
    )

    parser.add_argument(
        "--config", "-c",
        default=None,
        help="Path to configuration INI file (default: built-in defaults)"
    )

    # Data options
    parser.add_argument(
        "--input", "-i",
        type=str,
        default=None,
        help="Census file (JSON object address -> balance, or CSV)"
    )

    parser.add_argument(
        "--output", "-o",
        type=str,
        default=None,
        help="Output file (.json/.csv) or directory (default: <input>_rounded.json)"
    )

    parser.add_argument(
        "--format",
        choices=INPUT_FORMATS,
        default=None,
        help="Input format when it cannot be told from the extension"
    )

    parser.add_argument(
        "--random-size",
        type=int,
        default=None,
        help="Generate a random census of this size when no input is given"
    )

    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random census seed"
    )

    # Rounding options
    parser.add_argument(
        "--min-privacy-threshold",
        type=int,
        default=None,
        help="Smallest group size searched"
    )

    parser.add_argument(
        "--privacy-threshold",
        type=int,
        default=None,
        help="Use this group size and skip the threshold search"
    )

    parser.add_argument(
        "--group-balance-diff",
        type=int,
        default=None,
        help="Balance gap tolerance between adjacent holders of a group"
    )

    parser.add_argument(
        "--min-accuracy",
        type=float,
        default=None,
        help="Accuracy floor in percent"
    )

    parser.add_argument(
        "--outliers-threshold",
        type=float,
        default=None,
        help="z-score above which a holder is an outlier"
    )

    parser.add_argument(
        "--outlier-method",
        choices=OUTLIER_METHODS,
        default=None,
        help="Outlier detection method"
    )

    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Processes used to evaluate candidate thresholds"
    )

    # Execution options
    parser.add_argument(
        "--accept-best-effort",
        action="store_true",
        help="Write the rounded census even if the accuracy floor is not met"
    )

    parser.add_argument(
        "--no-env",
        action="store_true",
        help="Ignore environment variable overrides"
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate configuration and exit without running"
    )

    # Logging options
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)"
    )

    parser.add_argument(
        "--log-dir",
        type=str,
        default="logs",
        help="Directory for log files (default: logs/, empty string disables)"
    )

    return parser


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    return build_parser().parse_args(argv)


def apply_overrides(config: Config, args: argparse.Namespace) -> Config:
    """Apply command-line overrides to configuration."""
    if args.input is not None:
        config.data.input_path = args.input

    if args.output is not None:
        config.data.output_path = args.output

    if args.format is not None:
        config.data.input_format = args.format

    if args.random_size is not None:
        config.data.random_census_size = args.random_size

    if args.seed is not None:
        config.data.random_seed = args.seed

    if args.min_privacy_threshold is not None:
        config.rounding.min_privacy_threshold = args.min_privacy_threshold

    if args.privacy_threshold is not None:
        config.rounding.privacy_threshold = args.privacy_threshold

    if args.group_balance_diff is not None:
        config.rounding.group_balance_diff = args.group_balance_diff

    if args.min_accuracy is not None:
        config.rounding.min_accuracy = args.min_accuracy

    if args.outliers_threshold is not None:
        config.rounding.outliers_threshold = args.outliers_threshold

    if args.outlier_method is not None:
        config.rounding.outlier_method = args.outlier_method

    if args.workers is not None:
        config.rounding.max_workers = args.workers

    return config


def print_config_summary(config: Config, logger: logging.Logger):
    """Print configuration summary."""
    rounding = config.rounding
    logger.info("=" * 60)
    logger.info("Configuration Summary")
    logger.info("=" * 60)
    if rounding.privacy_threshold is not None:
        logger.info(f"Privacy Threshold:        {rounding.privacy_threshold} (fixed)")
    else:
        logger.info(f"Min Privacy Threshold:    {rounding.min_privacy_threshold} (search)")
    logger.info(f"Group Balance Diff:       {rounding.group_balance_diff}")
    logger.info(f"Min Accuracy:             {rounding.min_accuracy}%")
    logger.info(f"Outlier Method:           {rounding.outlier_method} "
                f"(z={rounding.outliers_threshold}, lower p={rounding.lower_outlier_percentile})")
    logger.info(f"Search Workers:           {rounding.max_workers}")
    if config.data.input_path:
        logger.info(f"Input Path:               {config.data.input_path}")
    else:
        logger.info(f"Input:                    random census of {config.data.random_census_size:,} holders")
    logger.info(f"Output Path:              {config.data.output_path or '(next to input)'}")
    logger.info("=" * 60)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 success, 1 input/config error, 2 unexpected error,
        3 accuracy floor not met)
    """
    args = parse_args(argv)

    logger = setup_logging(
        log_level=args.log_level,
        log_dir=args.log_dir or None
    )

    try:
        if args.config:
            logger.info(f"Loading configuration from: {args.config}")
            config = Config.from_ini(args.config)
        else:
            config = Config()

        if not args.no_env:
            config.apply_env_overrides()

        config = apply_overrides(config, args)

        logger.info("Validating configuration...")
        config.validate()

        print_config_summary(config, logger)

        if args.dry_run:
            logger.info("Dry run mode - exiting without processing")
            return EXIT_OK

        pipeline = CensusPipeline(config, accept_best_effort=args.accept_best_effort)

        logger.info("Starting census rounding...")
        start_time = datetime.now()

        result = pipeline.run()

        duration = (datetime.now() - start_time).total_seconds()

        if not result.success:
            raise result.exception or RuntimeError("; ".join(result.errors))

        logger.info("=" * 60)
        logger.info("Processing Complete")
        logger.info("=" * 60)
        logger.info(f"Duration:                 {duration:.2f} seconds")
        logger.info(f"Holders:                  {result.total_records:,}")
        logger.info(f"Privacy Threshold:        {result.privacy_threshold}")
        logger.info(f"Accuracy:                 {result.accuracy:.4f}%")
        logger.info(f"Groups:                   {result.groups:,}")
        logger.info(f"Output Path:              {result.output_path or 'N/A'}")
        logger.info("=" * 60)

        if not result.accuracy_met:
            logger.warning(
                f"Accuracy {result.accuracy:.4f}% is below the floor of "
                f"{config.rounding.min_accuracy}%"
            )
            if not args.accept_best_effort:
                return EXIT_ACCURACY_FLOOR

        return EXIT_OK

    except FileNotFoundError as e:
        logger.error(f"File not found: {e}")
        return EXIT_ERROR
    except ValueError as e:
        logger.error(f"Configuration or input error: {e}")
        return EXIT_ERROR
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return EXIT_UNEXPECTED


if __name__ == "__main__":
    sys.exit(main())
