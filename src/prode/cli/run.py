"""
PRODE run command - NIE / NICE scores from score, design and network tables.

Usage:
    prode run --scores scores.tsv --adjacency network.csv --modality NIE --output results/nie
    prode run --scores scores.tsv --adjacency edges.csv --edge-list \\
        --groups samples.csv --case mutant --control wildtype \\
        --modality NICE --filter-ctrl --output results/nice
"""

import argparse
import logging
from pathlib import Path

from prode.cli._validators import _non_negative_int, _positive_int
from prode.core.exceptions import ProdeError


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the run subcommand."""
    parser = subparsers.add_parser(
        "run",
        help="Compute NIE or NICE scores",
        description=(
            "Fit one linear model per gene, aggregate the gene-level percentiles "
            "over each gene's network neighbors with RRA, and combine both into "
            "NIE (essentiality) or NICE (context essentiality) scores."
        )
    )

    # Input/output (may also come from --config)
    parser.add_argument("--scores", "-s", type=Path, default=None,
                        help="Score matrix CSV/TSV (genes x samples)")
    parser.add_argument("--adjacency", "-a", type=Path, default=None,
                        help="Adjacency matrix CSV/TSV (genes x genes), or an edge list with --edge-list")
    parser.add_argument("--edge-list", action="store_true", default=None,
                        help="Read --adjacency as a two-column edge list")
    parser.add_argument("--design", "-d", type=Path, default=None,
                        help="Numeric design matrix CSV/TSV (samples x covariates)")
    parser.add_argument("--groups", "-g", type=Path, default=None,
                        help="Sample annotation CSV/TSV used to build the design")
    parser.add_argument("--group-column", default=None,
                        help="Column of --groups holding the group labels (default: first column)")
    parser.add_argument("--covariates", nargs="+", default=None,
                        help="Columns of --groups added as covariates")
    parser.add_argument("--case", default=None, help="Label of case samples in --groups")
    parser.add_argument("--control", default=None, help="Label of control samples in --groups")
    parser.add_argument("--modality", "-m", choices=["NIE", "NICE"], default=None,
                        help="Score to compute")
    parser.add_argument("--output", "-o", type=Path, default=None,
                        help="Output directory")
    parser.add_argument("--config", "-c", type=Path, default=None,
                        help="Path to YAML/JSON config file (optional, CLI args override config values)")

    # Options
    parser.add_argument("--compute-background", action="store_true", default=None,
                        help="Simulate the rho background instead of the Weibull approximation")
    parser.add_argument("--n-iter", type=_positive_int, default=None,
                        help="Simulated rhos per neighborhood size (default: 10000)")
    parser.add_argument("--workers", "-w", type=_positive_int, default=None,
                        help="Worker processes for background simulation (default: 1)")
    parser.add_argument("--filter-ctrl", action="store_true", default=None,
                        help="Drop genes with control mean > 0 (NICE only)")
    parser.add_argument("--extended-stats", action="store_true", default=None,
                        help="Report per-group means, SDs and counts (NICE only)")
    parser.add_argument("--unscaled-est", dest="scaled_est", action="store_const", const=False,
                        default=None, help="Rank genes by raw estimate instead of t-value")
    parser.add_argument("--fdr-method", choices=["BH", "BY", "bonferroni"], default=None,
                        help="Multiple testing correction for neighborhood p-values (default: BH)")
    parser.add_argument("--seed", type=_non_negative_int, default=None,
                        help="Random seed")
    parser.add_argument("--batch-size", type=_positive_int, default=None,
                        help="Genes per fit batch / iterations per simulation unit (default: 1000)")
    parser.add_argument("--calibration-iter", type=_positive_int, default=None,
                        help="Simulated rhos per size for run-time Weibull calibration (default: 2000)")
    parser.add_argument("--background-table", type=Path, default=None,
                        help="Weibull background table written by 'prode background'")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Debug logging")

    parser.set_defaults(func=run_prode_command)


def _load_design(args, scores, modality):
    import pandas as pd

    from prode.core.design import build_design_matrix
    from prode.io.loaders import load_design_matrix

    if args.design is not None:
        return load_design_matrix(args.design)

    if args.groups is None:
        if modality == "NICE":
            raise ValueError("NICE scores need --design or --groups/--case/--control")
        return build_design_matrix(None, sample_ids=scores.columns)

    annotation = load_design_matrix(args.groups)
    missing = scores.columns.difference(annotation.index)
    if len(missing) > 0:
        raise ValueError(f"{len(missing)} samples missing from {args.groups}: {missing[:5].tolist()}")
    annotation = annotation.loc[scores.columns]

    covariates = None
    if args.covariates:
        covariates = annotation[list(args.covariates)]

    if modality == "NIE":
        return build_design_matrix(None, covariates_df=covariates, sample_ids=scores.columns)

    group_column = args.group_column or annotation.columns[0]
    groups = pd.Series(annotation[group_column].astype(str), index=scores.columns)
    return build_design_matrix(groups, case=args.case, control=args.control,
                               covariates_df=covariates, sample_ids=scores.columns)


def run_prode_command(args: argparse.Namespace) -> int:
    """Execute the run command."""
    from prode.cli.config import config_from_args, load_config, merge_config_with_args
    from prode.core.modality import Modality
    from prode.core.prode_input import ProdeInput
    from prode.io.loaders import load_adjacency_matrix, load_edge_list, load_score_matrix
    from prode.io.writers import write_results
    from prode.pipeline import run_prode

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    logger = logging.getLogger(__name__)

    try:
        if args.config is not None:
            logger.info(f"Loading config: {args.config}")
            args = merge_config_with_args(load_config(args.config), args)

        missing = [opt for opt in ("scores", "adjacency", "modality", "output")
                   if getattr(args, opt, None) is None]
        if missing:
            logger.error(f"Missing required inputs: {', '.join('--' + m for m in missing)}")
            return 2
        modality = Modality.parse(args.modality).name

        config = config_from_args(args)

        logger.info(f"Loading scores: {args.scores}")
        scores = load_score_matrix(args.scores)
        logger.info(f"Loading network: {args.adjacency}")
        if args.edge_list:
            adjacency = load_edge_list(args.adjacency)
        else:
            adjacency = load_adjacency_matrix(args.adjacency)
        design = _load_design(args, scores, modality)

        prode_input = ProdeInput(scores, design, adjacency, modality)
        logger.info(repr(prode_input))

        results = run_prode(prode_input, config)
        paths = write_results(results, args.output)
    except (ProdeError, ValueError, FileNotFoundError) as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1

    summary = results.summary()
    print(f"\n{summary['score_column']}: {summary['n_genes_scored']} genes scored, "
          f"{summary['n_genes_filtered']} filtered")
    for name, path in paths.items():
        print(f"  {name}: {path}")
    return 0
