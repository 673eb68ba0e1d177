# =============================================================================
# FILE: fbas_reward_distributor/modules/power_index.py
"""
Power Index Engine - Shapley-Shubik indices of FBAS nodes

Implements:
- Exact: full enumeration of the 2^n coalitions of the player set
- Approximate: permutation sampling with seeded, batch-wise sub-streams

The simple game: a coalition wins iff it contains a quorum. This is the
monotone closure of "is a quorum", so every permutation has exactly one
pivotal player once the grand coalition wins. Nodes outside the top tier are
null players and are excluded from enumeration; their index is 0.

References:
- Shapley & Shubik (1954) "A Method for Evaluating the Distribution of
  Power in a Committee System"
- Kim & Lim (2023) "Who Holds the Power in Stellar?"
"""
# =============================================================================

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Tuple
import logging
import time

import numpy as np
from scipy.special import comb
from scipy.stats import norm

from .fbas import Fbas
from .quorum import QuorumAnalyzer
from ..exceptions import MissingParameter
from ..utils.parallel import resolve_workers, run_partitioned

logger = logging.getLogger(__name__)


# =============================================================================
# DATA STRUCTURES
# =============================================================================

@dataclass
class RankingResult:
    """
    Per-node influence scores with computation metadata

    Attributes:
    -----------
    scores : np.ndarray
        Score of node i at index i (non-negative)
    algorithm : str
        Canonical algorithm name
    metadata : Dict
        Additional computation info (players, damping, ...)
    warnings : List[str]
        Non-fatal problems (suppressed intersection failure, non-convergence)
    seed : Optional[int]
        Seed actually used by sampling algorithms
    n_samples : Optional[int]
        Number of sampled permutations
    pivot_counts : Optional[np.ndarray]
        Raw pivot counts per node (sampling only)
    stderr : Optional[np.ndarray]
        Standard errors of the sampled indices
    confidence_intervals : Optional[Dict]
        95% CI bounds for each node
    iterations : Optional[int]
        Iterations performed by iterative algorithms
    converged : Optional[bool]
        Convergence flag for iterative algorithms
    computation_time : Optional[float]
        Wall-clock time in seconds
    """
    scores: np.ndarray
    algorithm: str
    metadata: Dict = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    seed: Optional[int] = None
    n_samples: Optional[int] = None
    pivot_counts: Optional[np.ndarray] = None
    stderr: Optional[np.ndarray] = None
    confidence_intervals: Optional[Dict[int, Tuple[float, float]]] = None
    iterations: Optional[int] = None
    converged: Optional[bool] = None
    computation_time: Optional[float] = None

    def __post_init__(self):
        """Validate non-negativity / normalisation and derive CIs"""
        self.scores = np.asarray(self.scores, dtype=float)

        if np.any(self.scores < 0):
            logger.warning(f"⚠️ Negative scores in {self.algorithm} result")

        total = float(np.sum(self.scores))
        if total > 0 and abs(total - 1.0) > 1e-6:
            logger.warning(f"⚠️ Normalisation violation: Σscore={total:.6f} ≠ 1")

        if self.stderr is not None and self.confidence_intervals is None:
            z = norm.ppf(0.975)
            self.confidence_intervals = {
                i: (
                    max(0.0, self.scores[i] - z * self.stderr[i]),
                    self.scores[i] + z * self.stderr[i]
                )
                for i in range(len(self.scores))
            }

    @property
    def n_nodes(self) -> int:
        return len(self.scores)

    def summary(self) -> str:
        """Human-readable summary"""
        lines = [
            f"═══ RankingResult: {self.algorithm} ═══",
            f"Scores: {self.scores}",
            f"Total: {np.sum(self.scores):.6f}",
        ]

        if self.stderr is not None:
            lines.append(f"Std Errors: {self.stderr}")

        if self.seed is not None:
            lines.append(f"Seed: {self.seed}")

        if self.converged is not None:
            lines.append(f"Converged: {self.converged} ({self.iterations} iterations)")

        if self.n_samples is not None:
            lines.append(f"Samples: {self.n_samples}")

        if self.computation_time is not None:
            lines.append(f"Time: {self.computation_time:.3f}s")

        for warning in self.warnings:
            lines.append(f"Warning: {warning}")

        return "\n".join(lines)


# =============================================================================
# WORKER FUNCTIONS (module level so they can be shipped to worker processes)
# =============================================================================

def _winning_slice(fbas: Fbas, start: int, stop: int) -> np.ndarray:
    """Winning flags for the coalition masks start..stop-1"""
    return np.fromiter(
        (fbas.contains_quorum_mask(mask) for mask in range(start, stop)),
        dtype=bool,
        count=stop - start
    )


def _sample_pivots(
    fbas: Fbas,
    n_samples: int,
    seed_sequence: np.random.SeedSequence
) -> np.ndarray:
    """
    Pivot counts over `n_samples` uniformly random arrival orders

    The first prefix that contains a quorum is located by binary search,
    which is valid because the game is monotone along a permutation.
    """
    n = len(fbas)
    rng = np.random.default_rng(seed_sequence)
    counts = np.zeros(n, dtype=np.int64)

    for _ in range(n_samples):
        order = rng.permutation(n)
        prefixes = []
        mask = 0
        for node_id in order:
            mask |= 1 << int(node_id)
            prefixes.append(mask)

        low, high = 0, n - 1
        while low < high:
            middle = (low + high) // 2
            if fbas.contains_quorum_mask(prefixes[middle]):
                high = middle
            else:
                low = middle + 1
        counts[order[low]] += 1

    return counts


# =============================================================================
# POWER INDEX ENGINE
# =============================================================================

class PowerIndexEngine:
    """
    Shapley-Shubik power index of every node

    Parameters:
    -----------
    workers : int
        Worker processes (1 = serial, None/0 = one per CPU); results do not
        depend on this value
    exact_node_limit : int
        Player count above which exact enumeration logs a warning
    batch_size : int
        Permutations per independently seeded sampling batch
    restrict_to_top_tier : bool
        Treat nodes outside the top tier as null players
    """

    def __init__(
        self,
        workers: Optional[int] = 1,
        exact_node_limit: int = 25,
        batch_size: int = 1000,
        restrict_to_top_tier: bool = True
    ):
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.workers = workers
        self.exact_node_limit = exact_node_limit
        self.batch_size = batch_size
        self.restrict_to_top_tier = restrict_to_top_tier

    def _players(self, fbas: Fbas, top_tier: Optional[FrozenSet[int]]) -> List[int]:
        if not self.restrict_to_top_tier:
            return list(range(len(fbas)))
        if top_tier is None:
            top_tier = QuorumAnalyzer(fbas, workers=self.workers).top_tier()
        return sorted(top_tier)

    # ─────────────────────────────── EXACT ───────────────────────────────

    def exact(
        self,
        fbas: Fbas,
        top_tier: Optional[FrozenSet[int]] = None
    ) -> RankingResult:
        """
        Exact Shapley-Shubik indices via full coalition enumeration

        Formula:
            φᵢ = Σ_{S⊆N\\i, S loses, S∪{i} wins} |S|!(n-|S|-1)!/n!

        Complexity: O(2^n × n) over the n players

        Parameters:
        -----------
        fbas : Fbas
            Topology to analyse
        top_tier : FrozenSet[int], optional
            Precomputed top tier (computed on demand otherwise)

        Returns:
        --------
        RankingResult : indices summing to 1 (all zero if no quorum exists)
        """
        start_time = time.time()
        players = self._players(fbas, top_tier)
        n = len(players)
        warnings = []

        if n > self.exact_node_limit:
            message = (
                f"Exact power index over {n} players enumerates 2^{n} "
                f"coalitions (limit {self.exact_node_limit})"
            )
            logger.warning(f"⚠️ {message}")
            warnings.append(message)

        scores = np.zeros(len(fbas))
        if n > 0:
            phi = self._exact_indices(fbas.restricted_to(players), n)
            total = np.sum(phi)
            if total > 0:
                phi = phi / total
            scores[players] = phi

        if not np.any(scores):
            message = "No coalition contains a quorum; all power indices are 0"
            logger.warning(f"⚠️ {message}")
            warnings.append(message)

        result = RankingResult(
            scores=scores,
            algorithm='power-index-enum',
            metadata={'players': players, 'n_coalitions': 2 ** n},
            warnings=warnings,
            computation_time=time.time() - start_time
        )
        logger.info(
            f"✅ power-index-enum completed in {result.computation_time:.3f}s "
            f"({n} players)"
        )
        return result

    def _exact_indices(self, players_fbas: Fbas, n: int) -> np.ndarray:
        """Shapley-Shubik indices of a sub-FBAS whose nodes are all players"""
        size = 1 << n

        # Contiguous mask ranges, one per fixed high-bit prefix
        n_workers = resolve_workers(self.workers)
        prefix_bits = 0
        while (1 << prefix_bits) < n_workers * 4 and prefix_bits < n:
            prefix_bits += 1
        chunk = size >> prefix_bits
        tasks = [
            (players_fbas, part * chunk, (part + 1) * chunk)
            for part in range(1 << prefix_bits)
        ]
        win = np.concatenate(run_partitioned(_winning_slice, tasks, self.workers))

        masks = np.arange(size, dtype=np.int64)
        sizes = np.zeros(size, dtype=np.int64)
        for i in range(n):
            sizes += (masks >> i) & 1

        # Shapley weight |S|!(n-|S|-1)!/n! = 1 / (n × C(n-1, |S|))
        weights = 1.0 / (n * comb(n - 1, np.arange(n), exact=False))

        phi = np.zeros(n)
        for i in range(n):
            bit = 1 << i
            without_i = masks[(masks & bit) == 0]
            pivotal = win[without_i | bit] & ~win[without_i]
            phi[i] = np.sum(weights[sizes[without_i[pivotal]]])

        return phi

    # ─────────────────────────────── APPROX ──────────────────────────────

    def approx(
        self,
        fbas: Fbas,
        n_samples: Optional[int],
        seed: Optional[int] = None,
        top_tier: Optional[FrozenSet[int]] = None
    ) -> RankingResult:
        """
        Approximate Shapley-Shubik indices via permutation sampling

        Samples are split into batches of `batch_size`; batch k draws from
        the k-th child of SeedSequence(seed), so the pivot counts depend on
        (seed, n_samples, batch_size) only, never on the worker count.

        Parameters:
        -----------
        fbas : Fbas
            Topology to analyse
        n_samples : int
            Number of random permutations R (required, ≥ 1)
        seed : int, optional
            Explicit seed; fresh entropy is drawn and reported if absent
        top_tier : FrozenSet[int], optional
            Precomputed top tier

        Returns:
        --------
        RankingResult : indices, raw pivot counts, standard errors, 95% CIs

        Raises:
        -------
        MissingParameter : n_samples is None
        ValueError : n_samples < 1
        """
        if n_samples is None:
            raise MissingParameter('power-index-approx', 'n_samples')
        if n_samples < 1:
            raise ValueError(f"n_samples must be at least 1, got {n_samples}")

        start_time = time.time()
        if seed is None:
            seed = int(np.random.SeedSequence().entropy)
            logger.info(f"No seed given, drew fresh seed {seed}")

        players = self._players(fbas, top_tier)
        n = len(players)
        warnings = []

        counts = np.zeros(len(fbas), dtype=np.int64)
        if n > 0:
            players_fbas = fbas.restricted_to(players)
            batches = [self.batch_size] * (n_samples // self.batch_size)
            if n_samples % self.batch_size:
                batches.append(n_samples % self.batch_size)
            children = np.random.SeedSequence(seed).spawn(len(batches))

            tasks = [
                (players_fbas, batch, child)
                for batch, child in zip(batches, children)
            ]
            if players_fbas.contains_quorum_mask((1 << n) - 1):
                partials = run_partitioned(_sample_pivots, tasks, self.workers)
                counts[players] = np.sum(partials, axis=0)

        raw = counts / n_samples
        stderr = np.sqrt(raw * (1.0 - raw) / n_samples)
        total = np.sum(raw)
        scores = raw / total if total > 0 else raw

        if total == 0:
            message = "No coalition contains a quorum; all power indices are 0"
            logger.warning(f"⚠️ {message}")
            warnings.append(message)

        result = RankingResult(
            scores=scores,
            algorithm='power-index-approx',
            metadata={
                'players': players,
                'batch_size': self.batch_size,
                'n_batches': -(-n_samples // self.batch_size)
            },
            warnings=warnings,
            seed=seed,
            n_samples=n_samples,
            pivot_counts=counts,
            stderr=stderr,
            computation_time=time.time() - start_time
        )
        logger.info(
            f"✅ power-index-approx completed in {result.computation_time:.3f}s "
            f"({n_samples} samples, seed={seed})"
        )
        return result
