# =============================================================================
# FILE: fbas_reward_distributor/modules/runner.py
"""
Batch Runner - performance and approximation-error sweeps over synthetic FBAS

Features:
- Manifest of (fbas kind, top-tier size, run) measurements
- Incremental checkpointing and resume
- Parallel execution across runs with ProcessPoolExecutor
- Progress tracking with tqdm
- CSV / pickle / JSON output via pandas
"""
# =============================================================================
import pandas as pd
from typing import Any, Dict, List, Optional, Sequence
from pathlib import Path
import pickle
import logging
import time
from datetime import datetime
from concurrent.futures import ProcessPoolExecutor, as_completed
from tqdm import tqdm

from .data_gen import FbasGenerator
from .node_rank import NodeRankEngine
from .power_index import PowerIndexEngine
from .quorum import QuorumAnalyzer
from ..utils.config import AnalysisConfig
from ..utils.logging_utils import ExperimentLogger
from ..utils.metrics import approximation_errors, gini_coefficient, normalized_entropy

logger = logging.getLogger(__name__)


def build_manifest(
    fbas_kinds: Sequence[str],
    max_top_tier_size: int,
    runs: int,
    sample_sizes: Sequence[int],
    min_top_tier_size: int = 1,
    base_seed: int = 42
) -> List[Dict[str, Any]]:
    """
    One run configuration per (kind, valid top-tier size, run)

    Sizes step by the kind's node increment (3 for 'stellar'); every run gets
    a distinct seed.
    """
    manifest = []
    for fbas_type in fbas_kinds:
        increment = FbasGenerator.node_increment(fbas_type)
        for top_tier_size in range(min_top_tier_size, max_top_tier_size + 1):
            if top_tier_size % increment != 0:
                continue
            for run in range(runs):
                run_idx = len(manifest)
                manifest.append({
                    'run_idx': run_idx,
                    'fbas_type': fbas_type,
                    'top_tier_size': top_tier_size,
                    'run': run,
                    'seed': base_seed + run_idx,
                    'sample_sizes': list(sample_sizes),
                })
    return manifest


class SimulationRunner:
    """
    Executes batch measurement sweeps with parallelization

    Features:
    - Incremental checkpointing (resume capability)
    - Parallel execution (multi-process, one run per task)
    - Error handling and logging
    - Multiple output formats (CSV, pickle, JSON)
    """

    def __init__(
        self,
        output_dir: str,
        config: Optional[AnalysisConfig] = None,
        check_intersection: bool = True
    ):
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        # Parallelism is across runs; engines inside a run stay serial
        self.config = (config or AnalysisConfig()).with_overrides(workers=1)
        self.check_intersection = check_intersection
        self.results = []
        self.failed_runs = []

    def run_single_iteration(
        self,
        run_config: Dict[str, Any]
    ) -> Dict[str, Any]:
        """
        Execute a single measurement run

        Parameters from run_config:
        - run_idx, fbas_type, top_tier_size, run, seed, sample_sizes
        """
        seed = run_config['seed']
        fbas = FbasGenerator(seed=seed).generate(
            run_config['fbas_type'], run_config['top_tier_size']
        )
        n = len(fbas)

        analyzer = QuorumAnalyzer(fbas, workers=1)
        quorum_intersection = None
        n_minimal_quorums = None
        if self.check_intersection:
            n_minimal_quorums = len(analyzer.minimal_quorums())
            quorum_intersection = analyzer.check_quorum_intersection()
        top_tier = analyzer.top_tier()

        node_rank = NodeRankEngine(
            damping=self.config.damping,
            tolerance=self.config.tolerance,
            max_iterations=self.config.max_iterations
        )
        power_index = PowerIndexEngine(
            workers=1,
            exact_node_limit=self.config.exact_node_limit,
            batch_size=self.config.batch_size,
            restrict_to_top_tier=self.config.restrict_to_top_tier
        )

        start = time.perf_counter()
        noderanks = node_rank.rank(fbas)
        duration_noderank = time.perf_counter() - start

        exact = None
        duration_exact = float('nan')
        if len(top_tier) <= self.config.exact_node_limit:
            start = time.perf_counter()
            exact = power_index.exact(fbas, top_tier=top_tier)
            duration_exact = time.perf_counter() - start

        result = {
            # Config
            'run_idx': run_config['run_idx'],
            'fbas_type': run_config['fbas_type'],
            'top_tier_size': run_config['top_tier_size'],
            'run': run_config['run'],
            'seed': seed,
            'n_nodes': n,

            # Structure
            'quorum_intersection': quorum_intersection,
            'n_minimal_quorums': n_minimal_quorums,

            # Rankings
            'noderanks': noderanks.scores.tolist(),
            'noderank_converged': noderanks.converged,
            'exact_power_indices': exact.scores.tolist() if exact is not None else None,
            'gini_noderank': gini_coefficient(noderanks.scores),
            'gini_exact': gini_coefficient(exact.scores) if exact is not None else None,
            'entropy_exact': normalized_entropy(exact.scores) if exact is not None else None,

            # Durations
            'duration_noderank': duration_noderank,
            'duration_exact_power_index': duration_exact,
        }

        for k, n_samples in enumerate(run_config['sample_sizes']):
            start = time.perf_counter()
            approx = power_index.approx(
                fbas, n_samples, seed=seed * 1000 + k, top_tier=top_tier
            )
            result[f'duration_approx_{n_samples}'] = time.perf_counter() - start

            if exact is not None:
                errors = approximation_errors(approx.scores, exact.scores)
            else:
                errors = dict.fromkeys(
                    ('mean_abs_error', 'median_abs_error', 'mean_abs_pctg_error'),
                    float('nan')
                )
            for name, value in errors.items():
                result[f'{name}_{n_samples}'] = value

        result['timestamp'] = datetime.now().isoformat()
        return result

    def run_grid(
        self,
        run_manifest: List[Dict[str, Any]],
        parallel_workers: int = 4,
        checkpoint_interval: int = 100,
        resume: bool = True
    ) -> pd.DataFrame:
        """
        Execute the full manifest with parallelization and checkpointing

        Parameters:
        -----------
        run_manifest : list of dict
            Run configurations (see build_manifest)
        parallel_workers : int
            Number of parallel processes (set to 1 for serial execution)
        checkpoint_interval : int
            Save checkpoint every N runs
        resume : bool
            Resume from checkpoint if exists
        """
        experiment_logger = ExperimentLogger(name=__name__)
        experiment_logger.log_experiment_start({
            'n_runs': len(run_manifest),
            'parallel_workers': parallel_workers,
            'analysis': self.config.to_dict()
        })

        checkpoint_path = self.output_dir / 'checkpoint.pkl'

        # Resume if requested
        if resume and checkpoint_path.exists():
            logger.info(f"Resuming from checkpoint: {checkpoint_path}")
            with open(checkpoint_path, 'rb') as f:
                checkpoint_data = pickle.load(f)
                completed_indices = set(checkpoint_data['completed_indices'])
                self.results = checkpoint_data['results']
        else:
            completed_indices = set()
            self.results = []

        runs_to_execute = [
            run for run in run_manifest
            if run['run_idx'] not in completed_indices
        ]

        if len(runs_to_execute) == 0:
            logger.info("All runs already completed!")
            return pd.DataFrame(self.results)

        logger.info(
            f"Executing {len(runs_to_execute)} runs with {parallel_workers} workers"
        )

        if parallel_workers > 1:
            with ProcessPoolExecutor(max_workers=parallel_workers) as executor:
                futures = {
                    executor.submit(self.run_single_iteration, run): run['run_idx']
                    for run in runs_to_execute
                }

                with tqdm(total=len(runs_to_execute), desc="Batch Progress") as pbar:
                    for future in as_completed(futures):
                        run_idx = futures[future]
                        try:
                            self._record(future.result(), completed_indices, checkpoint_interval)
                        except Exception as e:
                            logger.error(f"Run {run_idx} failed: {e}", exc_info=True)
                            self.failed_runs.append(run_idx)
                        pbar.update(1)
        else:
            for run in tqdm(runs_to_execute, desc="Batch Progress"):
                try:
                    result = self.run_single_iteration(run)
                    self._record(result, completed_indices, checkpoint_interval)
                except Exception as e:
                    logger.error(f"Run {run['run_idx']} failed: {e}", exc_info=True)
                    self.failed_runs.append(run['run_idx'])

        # Final save
        self._save_checkpoint(completed_indices)
        df_results = pd.DataFrame(self.results)
        if not df_results.empty:
            df_results = df_results.sort_values('run_idx').reset_index(drop=True)
        self._save_results(df_results)

        experiment_logger.log_experiment_end({
            'completed': len(self.results),
            'failed': len(self.failed_runs)
        })
        logger.info(f"Completed {len(self.results)} runs")
        return df_results

    def _record(self, result: Dict[str, Any], completed_indices: set, checkpoint_interval: int):
        self.results.append(result)
        completed_indices.add(result['run_idx'])
        if len(self.results) % checkpoint_interval == 0:
            self._save_checkpoint(completed_indices)

    def _save_checkpoint(self, completed_indices: set):
        """Save checkpoint for resume capability"""
        checkpoint_path = self.output_dir / 'checkpoint.pkl'
        checkpoint_data = {
            'completed_indices': list(completed_indices),
            'results': self.results,
            'timestamp': datetime.now().isoformat()
        }

        with open(checkpoint_path, 'wb') as f:
            pickle.dump(checkpoint_data, f)

        logger.info(f"Checkpoint saved: {len(self.results)} runs completed")

    def _save_results(self, df: pd.DataFrame):
        """Save final results in multiple formats"""
        # CSV for easy viewing
        csv_path = self.output_dir / 'results.csv'
        df.to_csv(csv_path, index=False)

        # Pickle for Python analysis
        pkl_path = self.output_dir / 'results.pkl'
        df.to_pickle(pkl_path)

        # JSON for interoperability
        json_path = self.output_dir / 'results.json'
        df.to_json(json_path, orient='records', indent=2)

        logger.info(f"Results saved to {self.output_dir}")
        logger.info(f"  - CSV: {csv_path}")
        logger.info(f"  - Pickle: {pkl_path}")
        logger.info(f"  - JSON: {json_path}")
