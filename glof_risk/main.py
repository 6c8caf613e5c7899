#!/usr/bin/env python3
"""
Main entry point for the GLOF Risk Analysis.

This script fits the GLOF models on the lake tables and writes posterior
summaries, diagnostics and plots to the results directory.

Usage:
    glof-analysis --primary data/lakes.csv --secondary data/lake_climate.csv
    glof-analysis --models edw forecasting --chains 2 --iter 1000 --warmup 500
    glof-analysis --simulate 400 --results-dir results/synthetic
"""
import sys
import argparse
from pathlib import Path

from glof_risk.utils.logging_utils import get_logger, LoggingManager
from glof_risk.config.config_manager import ConfigManager, LOG_LEVELS
from glof_risk.model.exceptions import GlofError
from glof_risk.model.model_spec import MODEL_SPECS

logger = get_logger()


def main(argv=None):
    """Main entry point for the GLOF Risk Analysis."""
    args = parse_arguments(argv)

    config_manager = setup_config(args)
    app_config = config_manager.app_config

    setup_logging(app_config.log_level, app_config.log_file)

    results_dir = Path(app_config.results_dir)
    config_manager.save_config(results_dir / "config.json")

    # Heavy imports after logging is configured
    from glof_risk.model.model_runner import GlofModelRunner

    runner = GlofModelRunner(config_manager=config_manager)
    try:
        if args.simulate:
            results = run_simulated(args, config_manager, runner)
        else:
            logger.info(f"Using lake table {app_config.data_primary_path} "
                        f"and climate table {app_config.data_secondary_path}")
            if app_config.data_column_mappings:
                logger.info(f"Column mappings: {app_config.data_column_mappings}")
            results = runner.run_pipeline()
    except GlofError as e:
        logger.error(f"Analysis failed: {str(e)}")
        return 1
    finally:
        runner.close()

    failed = [name for name, result in results.items() if not result.succeeded]
    if failed:
        logger.error(f"Models failed: {failed}")
        return 1
    logger.info(f"Analysis completed; results in {results_dir}")
    return 0


def run_simulated(args, config_manager, runner):
    """Run the configured models on a synthetic lake inventory."""
    from glof_risk.data.simulation import simulate_lakes
    from glof_risk.data.data_preprocessor import DataPreprocessor

    app_config = config_manager.app_config
    logger.info(f"Running on {args.simulate} simulated lakes")
    lakes = simulate_lakes(n_lakes=args.simulate, random_seed=app_config.model_random_seed)
    dataset = DataPreprocessor().prepare(lakes)
    return runner.run_all(dataset, models=app_config.model_names, max_workers=app_config.max_workers)


def setup_config(args):
    """
    Set up and validate configuration.

    Args:
        args: Command line arguments

    Returns:
        ConfigManager instance
    """
    config_manager = ConfigManager(args.config)
    app_config = config_manager.app_config

    overrides = {
        "data_primary_path": args.primary,
        "data_secondary_path": args.secondary,
        "results_dir": args.results_dir,
        "model_names": args.models,
        "model_num_chains": args.chains,
        "model_warmup_iters": args.warmup,
        "model_total_iters_per_chain": args.iter,
        "model_target_accept": args.target_accept,
        "model_random_seed": args.seed,
        "max_workers": args.workers,
        "log_level": args.log_level,
        "log_file": args.log_file,
    }
    for name, value in overrides.items():
        if value is not None:
            setattr(app_config, name, value)

    if args.no_plots:
        app_config.create_plots = False
    if args.save_traces:
        app_config.save_traces = True

    config_manager.validate()
    return config_manager


def parse_arguments(argv=None):
    """
    Parse command line arguments.

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(description="GLOF Risk Analysis")

    # General options
    parser.add_argument("--config", type=str, help="Path to configuration file")
    parser.add_argument("--results-dir", type=str, help="Directory to store results")
    parser.add_argument("--log-level", choices=list(LOG_LEVELS),
                        help="Log level (default: from configuration, INFO)")
    parser.add_argument("--log-file", type=str, help="Optional log file")

    # Data options
    parser.add_argument("--primary", type=str, help="Path to the lake inventory table")
    parser.add_argument("--secondary", type=str, help="Path to the climate / mass-balance table")
    parser.add_argument("--simulate", type=int, metavar="N_LAKES",
                        help="Run on a synthetic inventory of N_LAKES lakes instead of the tables")

    # Model options
    parser.add_argument("--models", nargs="+", choices=list(MODEL_SPECS),
                        help="Models to fit (default: all)")
    parser.add_argument("--chains", type=int, help="Number of MCMC chains")
    parser.add_argument("--warmup", type=int, help="Warmup iterations per chain")
    parser.add_argument("--iter", type=int, help="Total iterations per chain, warmup included")
    parser.add_argument("--target-accept", type=float, help="NUTS target acceptance rate")
    parser.add_argument("--seed", type=int, help="Random seed")
    parser.add_argument("--workers", type=int, help="Models fit in parallel processes")

    # Output options
    parser.add_argument("--no-plots", action="store_true", help="Skip plots")
    parser.add_argument("--save-traces", action="store_true", help="Save posterior traces as NetCDF")

    return parser.parse_args(argv)


def setup_logging(log_level, log_file=None):
    """
    Set up logging based on the specified log level.

    Args:
        log_level: Log level to set up
        log_file: Optional log file
    """
    LoggingManager.setup_logging(log_level=log_level, log_file=log_file)


if __name__ == "__main__":
    sys.exit(main())
