"""
PRODE background command - calibrate and save a Weibull background table.

The table maps each neighborhood size to the (shape, scale) of a Weibull
fitted to simulated null rhos. Pass it to ``prode run --background-table``
to skip run-time calibration.

Usage:
    prode background --sizes 1 2 3 5 8 13 --n-iter 20000 --output background.csv
    prode background --max-size 200 --n-iter 20000 --workers 8 --output background.csv
"""

import argparse
import logging
from pathlib import Path

from prode.cli._validators import _non_negative_int, _positive_int
from prode.core.exceptions import ProdeError


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the background subcommand."""
    parser = subparsers.add_parser(
        "background",
        help="Calibrate a Weibull background table",
        description="Simulate null rho values per neighborhood size and fit a Weibull to each."
    )
    sizes = parser.add_mutually_exclusive_group(required=True)
    sizes.add_argument("--sizes", nargs="+", type=_positive_int,
                       help="Neighborhood sizes to cover")
    sizes.add_argument("--max-size", type=_positive_int,
                       help="Cover every size from 1 to this value")
    parser.add_argument("--n-iter", type=_positive_int, default=10000,
                        help="Simulated rhos per size (default: 10000)")
    parser.add_argument("--workers", "-w", type=_positive_int, default=1,
                        help="Worker processes (default: 1)")
    parser.add_argument("--seed", type=_non_negative_int, default=0,
                        help="Random seed (default: 0)")
    parser.add_argument("--batch-size", type=_positive_int, default=1000,
                        help="Iterations per simulation unit (default: 1000)")
    parser.add_argument("--output", "-o", type=Path, required=True,
                        help="Output table (CSV)")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Debug logging")

    parser.set_defaults(func=run_background)


def run_background(args: argparse.Namespace) -> int:
    """Execute the background command."""
    from prode.stats.background import FittedBackground

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    logger = logging.getLogger(__name__)

    sizes = args.sizes if args.sizes else list(range(1, args.max_size + 1))
    logger.info(f"Calibrating {len(sizes)} sizes x {args.n_iter} iterations on {args.workers} worker(s)")

    try:
        background = FittedBackground.calibrate(
            sizes,
            n_iter=args.n_iter,
            workers=args.workers,
            seed=args.seed,
            batch_size=args.batch_size,
        )
        args.output.parent.mkdir(parents=True, exist_ok=True)
        background.to_csv(args.output)
    except ProdeError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1

    logger.info(f"Wrote background table ({len(background.sizes)} sizes) to {args.output}")
    return 0
