#!/usr/bin/env python3
"""
Run a spikepipe experiment from a YAML configuration.

The pipeline and output taps come from the ``experiment`` section of the
config, samples from ``.npy`` / ``.npz`` directories laid out as
``<dir>/<label>/<sample>.npy``.

Ctrl+C stops the run at the next sample boundary; a second Ctrl+C exits
immediately.

Example:
    >>> python scripts/run_experiment.py --config configs/config.yaml \\
    ...     --train-dir data/train --test-dir data/test
    >>> python scripts/run_experiment.py -c configs/config.yaml \\
    ...     --train-dir data/train --test-dir data/test --num-workers 4 --log-level DEBUG
"""

from __future__ import annotations

import sys
import argparse
import traceback
from pathlib import Path
from typing import Any, Dict

# Add project root to path (scripts/run_experiment.py -> scripts -> project_root)
project_root = Path(__file__).resolve().parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from spikepipe.config import ConfigError, get_logging_params, load_config
from spikepipe.data.input import NumpyInput
from spikepipe.errors import SpikePipeError
from spikepipe.execution.observer import LoggingObserver
from spikepipe.experiment import build_experiment
from spikepipe.utils.logging import RunLog, setup_logging
from spikepipe.utils.signals import GracefulShutdown


# =============================================================================
# CLI ENTRY POINT
# =============================================================================


def parse_args() -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="spikepipe experiment runner",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    parser.add_argument(
        '--config', '-c',
        type=str,
        default=None,
        help='Path to YAML config file (default: configs/config.yaml)'
    )

    # Data
    parser.add_argument(
        '--train-dir',
        type=str,
        required=True,
        help='Train samples directory (one sub-directory per label)'
    )

    parser.add_argument(
        '--test-dir',
        type=str,
        required=True,
        help='Test samples directory (one sub-directory per label)'
    )

    parser.add_argument(
        '--npz-key',
        type=str,
        default=None,
        help='Array to read from .npz archives (default: first array)'
    )

    # Execution
    parser.add_argument(
        '--refresh-interval',
        type=int,
        default=None,
        help='Report progress every N samples'
    )

    parser.add_argument(
        '--num-workers',
        type=int,
        default=None,
        help='Worker threads for test passes and output snapshots'
    )

    # Logging
    parser.add_argument(
        '--log-level',
        type=str,
        default=None,
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level'
    )

    parser.add_argument(
        '--log-dir',
        type=str,
        default=None,
        help='Also write a log file to this directory'
    )

    return parser.parse_args()


def build_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """CLI values that take precedence over the config file."""
    overrides: Dict[str, Any] = {"execution": {}, "logging": {}}
    if args.refresh_interval is not None:
        overrides["execution"]["refresh_interval"] = args.refresh_interval
    if args.num_workers is not None:
        overrides["execution"]["num_workers"] = args.num_workers
    if args.log_level is not None:
        overrides["logging"]["log_level"] = args.log_level
    if args.log_dir is not None:
        overrides["logging"]["log_dir"] = args.log_dir
    return overrides


def main() -> int:
    """Main entry point."""
    args = parse_args()

    try:
        config = load_config(args.config, overrides=build_overrides(args))
        log_params = get_logging_params(config)
        name = (config.get("experiment") or {}).get("name", "experiment")
        logger = setup_logging(
            level=log_params.log_level,
            log_dir=log_params.log_dir,
            experiment_name=name,
            color=log_params.color,
        )

        train = NumpyInput(args.train_dir, key=args.npz_key)
        test = NumpyInput(args.test_dir, key=args.npz_key)
        experiment = build_experiment(config, [train], [test])

        with GracefulShutdown() as shutdown:
            summary = experiment.run(
                cancel=shutdown.token,
                observer=LoggingObserver(logger.getChild("progress")),
                log=RunLog(experiment.name, parent=logger),
            )

        if summary.cancelled:
            print(f"\n⚠ Run cancelled: {summary.cancel_reason}")
            return 130

        print(f"\n✓ {summary.completed_stages} stages completed in {summary.elapsed:.2f}s")
        return 0

    except (ConfigError, SpikePipeError) as e:
        print(f"\n✗ Error: {e}")
        return 1

    except Exception as e:
        print(f"\n✗ Unexpected error: {e}")
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
