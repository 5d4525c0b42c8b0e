"""
PRODE CLI - Command-line interface for network-informed essentiality scores.

Commands:
    prode run         - Compute NIE or NICE scores
    prode background  - Calibrate a Weibull background table
"""

import argparse
import sys
from typing import Optional, List

from prode import __version__


def main(args: Optional[List[str]] = None) -> int:
    """Main CLI dispatcher for prode."""
    parser = argparse.ArgumentParser(
        prog="prode",
        description="Network-informed essentiality (NIE) and context-essentiality (NICE) scores",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  run         Compute NIE or NICE scores
  background  Calibrate a Weibull background table

Examples:
  prode run --scores scores.tsv --adjacency network.csv --modality NIE --output results/nie
  prode run --config nice.yaml --workers 8 --compute-background
  prode background --max-size 100 --n-iter 20000 --output background.csv
        """
    )

    parser.add_argument(
        "--version", "-V",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    from prode.cli import run, background
    run.register_parser(subparsers)
    background.register_parser(subparsers)

    parsed_args = parser.parse_args(args)

    if parsed_args.command is None:
        parser.print_help()
        return 0

    return parsed_args.func(parsed_args)


if __name__ == "__main__":
    sys.exit(main())
