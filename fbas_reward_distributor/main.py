#!/usr/bin/env python3
# =============================================================================
# FILE: fbas_reward_distributor/main.py
"""
Main CLI Entry Point

Provides command-line interface for:
- Ranking FBAS nodes by influence
- Distributing a reward proportionally to the ranking
- Running batch performance / approximation-error measurements
"""
# =============================================================================
import argparse
import logging
import sys
from typing import List, Optional

from .exceptions import FbasAnalysisError, MissingParameter
from .modules.fbas_io import load_fbas
from .modules.ranking import ALGORITHM_ALIASES, ALGORITHMS, InfluenceEngine
from .modules.report import (
    OUTPUT_FORMATS,
    create_ranking_report,
    create_reward_report,
    format_report,
)
from .modules.runner import SimulationRunner, build_manifest
from .utils.config import load_batch_config, load_config
from .utils.logging_utils import setup_logging

logger = logging.getLogger(__name__)


def _analysis_config(args):
    config = load_config(args.config)
    return config.with_overrides(workers=args.workers)


def _report_warnings(result) -> None:
    for warning in result.warnings:
        print(f"Warning: {warning}", file=sys.stderr)


def rank_nodes(args) -> int:
    """Rank nodes and print (NodeId, PK, Score) rows"""
    engine = InfluenceEngine(_analysis_config(args))
    fbas = load_fbas(args.nodes_path, ignore_inactive=args.ignore_inactive_nodes)

    result = engine.rank(
        fbas, args.algorithm,
        n_samples=args.samples,
        seed=args.seed,
        suppress_intersection_check=args.no_quorum_intersection
    )
    _report_warnings(result)

    rows = create_ranking_report(result, fbas, with_pks=args.pretty)
    print(format_report(rows, args.format))
    return 0


def distribute_rewards(args) -> int:
    """Rank nodes, split the reward and print (NodeId, PK, Score, Reward) rows"""
    engine = InfluenceEngine(_analysis_config(args))
    fbas = load_fbas(args.nodes_path, ignore_inactive=args.ignore_inactive_nodes)

    result, distribution = engine.distribute(
        fbas, args.algorithm,
        total_reward=args.reward,
        n_samples=args.samples,
        seed=args.seed,
        suppress_intersection_check=args.no_quorum_intersection
    )
    _report_warnings(result)

    rows = create_reward_report(distribution, fbas, with_pks=args.pretty)
    print(format_report(rows, args.format, with_rewards=True))
    return 0


def run_batch(args) -> int:
    """Run batch measurements based on configuration"""
    logger.info("Starting batch run...")
    analysis, batch = load_batch_config(args.batch_config)

    run_manifest = build_manifest(
        fbas_kinds=batch.fbas_kinds,
        max_top_tier_size=batch.max_top_tier_size,
        runs=batch.runs,
        sample_sizes=batch.sample_sizes,
        min_top_tier_size=batch.min_top_tier_size,
        base_seed=batch.base_seed
    )

    runner = SimulationRunner(
        output_dir=args.output,
        config=analysis,
        check_intersection=batch.check_intersection
    )
    results = runner.run_grid(
        run_manifest=run_manifest,
        parallel_workers=args.jobs,
        checkpoint_interval=args.checkpoint_interval,
        resume=args.resume
    )

    logger.info(f"Batch complete: {len(results)} runs saved to {args.output}")
    return 1 if runner.failed_runs else 0


def _add_ranking_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument('nodes_path', nargs='?', default=None,
                        help='FBAS JSON in stellarbeat.org "nodes" format '
                             '(STDIN if omitted)')
    parser.add_argument('--algorithm', '-a', required=True,
                        choices=list(ALGORITHMS) + list(ALGORITHM_ALIASES),
                        metavar='ALG',
                        help=f"Ranking algorithm: {', '.join(ALGORITHMS)}")
    parser.add_argument('--samples', '-s', type=int, default=None,
                        help='Number of permutations (power-index-approx)')
    parser.add_argument('--seed', type=int, default=None,
                        help='Sampling seed (power-index-approx)')
    parser.add_argument('--ignore-inactive-nodes', '-i', action='store_true',
                        help='Remove nodes marked "active": false before analysis')
    parser.add_argument('--no-quorum-intersection', action='store_true',
                        help='Continue with a warning if the FBAS lacks quorum intersection')
    parser.add_argument('--pretty', '-p', action='store_true',
                        help='Include public keys in the output')
    parser.add_argument('--format', '-f', choices=OUTPUT_FORMATS, default='text',
                        help='Output format')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='fbas-influence',
        description='Influence ranking and reward distribution for FBAS nodes',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Exact Shapley-Shubik power indices
  fbas-influence rank -a power-index-enum nodes.json

  # Approximate power indices, 10^5 samples, reproducible
  fbas-influence rank -a power-index-approx -s 100000 --seed 7 nodes.json

  # Split 100 units by NodeRank, ignoring inactive nodes
  fbas-influence distribute -a node-rank -r 100 -i -p nodes.json

  # Batch measurements
  fbas-influence batch --config configs/batch.yaml --output results --jobs 4
        """
    )

    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Enable verbose logging')
    parser.add_argument('--config', '-c', type=str, default=None,
                        help='Analysis configuration YAML')
    parser.add_argument('--workers', '-w', type=int, default=None,
                        help='Worker processes for enumeration and sampling '
                             '(0 = one per CPU)')
    parser.add_argument('--log-file', type=str, default=None,
                        help='Also write log records to this file')

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    rank_parser = subparsers.add_parser('rank', help='Rank nodes by influence')
    _add_ranking_arguments(rank_parser)

    distribute_parser = subparsers.add_parser(
        'distribute', help='Distribute a reward proportionally to the ranking'
    )
    _add_ranking_arguments(distribute_parser)
    distribute_parser.add_argument('--reward', '-r', type=float, default=1.0,
                                   help='Total reward to distribute (default: 1)')

    batch_parser = subparsers.add_parser('batch', help='Run batch measurements')
    batch_parser.add_argument('--config', '-c', dest='batch_config', type=str,
                              default='configs/batch.yaml',
                              help='Path to batch config file')
    batch_parser.add_argument('--output', '-o', type=str, default='results',
                              help='Output directory')
    batch_parser.add_argument('--jobs', '-j', type=int, default=1,
                              help='Number of parallel runs')
    batch_parser.add_argument('--resume', action='store_true',
                              help='Resume from checkpoint')
    batch_parser.add_argument('--checkpoint-interval', type=int, default=10,
                              help='Checkpoint interval (runs)')

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose, args.log_file)

    commands = {
        'rank': rank_nodes,
        'distribute': distribute_rewards,
        'batch': run_batch,
    }
    if args.command not in commands:
        parser.print_help()
        return 1

    try:
        return commands[args.command](args)
    except MissingParameter as e:
        print(f"error: {e}", file=sys.stderr)
        return 2
    except (FbasAnalysisError, ValueError, OSError) as e:
        logger.debug("Fatal error", exc_info=True)
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
