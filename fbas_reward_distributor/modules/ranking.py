# =============================================================================
# FILE: fbas_reward_distributor/modules/ranking.py
"""
Influence Engine - algorithm selection and pipeline wiring

    Fbas → [filter inactive] → quorum-intersection precondition
         → {node-rank | power-index-enum | power-index-approx}
         → RankingResult → [RewardAllocator] → RewardDistribution
"""
# =============================================================================

from typing import Optional, Tuple
import logging

from .distribution import RewardAllocator, RewardDistribution
from .fbas import Fbas
from .node_rank import NodeRankEngine
from .power_index import PowerIndexEngine, RankingResult
from .quorum import QuorumAnalyzer
from ..exceptions import MissingParameter
from ..utils.config import AnalysisConfig
from ..utils.validation import RankingValidator

logger = logging.getLogger(__name__)

ALGORITHMS = ('node-rank', 'power-index-enum', 'power-index-approx')

# ═══ ALGORITHM NAME ALIASES (for backward compatibility) ═══
ALGORITHM_ALIASES = {
    'node_rank': 'node-rank',
    'noderank': 'node-rank',
    'power_index_enum': 'power-index-enum',
    'exact-powerindex': 'power-index-enum',
    'exact_powerindex': 'power-index-enum',
    'power_index_approx': 'power-index-approx',
    'approx-powerindex': 'power-index-approx',
    'approx_powerindex': 'power-index-approx',
}


def canonical_algorithm(name: str) -> str:
    """Resolve an algorithm name or alias; ValueError if unknown"""
    algorithm = ALGORITHM_ALIASES.get(name, name)
    if algorithm not in ALGORITHMS:
        raise ValueError(
            f"Unknown ranking algorithm: '{name}'\n"
            f"Valid algorithms: {', '.join(ALGORITHMS)}"
        )
    return algorithm


class InfluenceEngine:
    """
    Ranks FBAS nodes by influence and turns rankings into reward splits

    Parameters:
    -----------
    config : AnalysisConfig, optional
        Engine parameters (defaults if omitted)
    """

    def __init__(self, config: Optional[AnalysisConfig] = None):
        self.config = config or AnalysisConfig()
        self.validator = RankingValidator()

    def rank(
        self,
        fbas: Fbas,
        algorithm: str,
        n_samples: Optional[int] = None,
        seed: Optional[int] = None,
        ignore_inactive: bool = False,
        suppress_intersection_check: bool = False
    ) -> RankingResult:
        """
        Score every node of `fbas` with the selected algorithm

        Parameters:
        -----------
        fbas : Fbas
            Topology as loaded
        algorithm : str
            'node-rank', 'power-index-enum' or 'power-index-approx' (or alias)
        n_samples : int, optional
            Required for 'power-index-approx'
        seed : int, optional
            Sampling seed for 'power-index-approx'
        ignore_inactive : bool
            Rank the active FBAS instead (node IDs are re-densified)
        suppress_intersection_check : bool
            Downgrade a quorum-intersection failure to a warning on the result

        Returns:
        --------
        RankingResult : scores indexed by node ID of the ranked FBAS

        Raises:
        -------
        ValueError : unknown algorithm
        MissingParameter : 'power-index-approx' without n_samples
        QuorumIntersectionViolated : disjoint quorums and check not suppressed
        """
        canonical = canonical_algorithm(algorithm)
        if canonical == 'power-index-approx' and n_samples is None:
            raise MissingParameter(algorithm, 'n_samples')

        if ignore_inactive:
            fbas = fbas.filter_active()

        analyzer = QuorumAnalyzer(fbas, workers=self.config.workers)
        intersection_warning = analyzer.assert_quorum_intersection(
            suppress=suppress_intersection_check
        )

        top_tier = None
        if canonical == 'node-rank':
            engine = NodeRankEngine(
                damping=self.config.damping,
                tolerance=self.config.tolerance,
                max_iterations=self.config.max_iterations
            )
            result = engine.rank(fbas)
        else:
            top_tier = analyzer.top_tier()
            engine = PowerIndexEngine(
                workers=self.config.workers,
                exact_node_limit=self.config.exact_node_limit,
                batch_size=self.config.batch_size,
                restrict_to_top_tier=self.config.restrict_to_top_tier
            )
            if canonical == 'power-index-enum':
                result = engine.exact(fbas, top_tier=top_tier)
            else:
                result = engine.approx(fbas, n_samples, seed=seed, top_tier=top_tier)

        if intersection_warning is not None:
            result.warnings.insert(0, intersection_warning)

        players = top_tier if self.config.restrict_to_top_tier else None
        self.validator.validate_all(result.scores, players)

        result.metadata['n_nodes'] = len(fbas)
        result.metadata['ignore_inactive'] = ignore_inactive
        return result

    def distribute(
        self,
        fbas: Fbas,
        algorithm: str,
        total_reward: float = 1.0,
        n_samples: Optional[int] = None,
        seed: Optional[int] = None,
        ignore_inactive: bool = False,
        suppress_intersection_check: bool = False
    ) -> Tuple[RankingResult, RewardDistribution]:
        """
        Rank, then split `total_reward` proportionally to the scores

        Raises:
        -------
        DegenerateDistribution : every score is zero
        (plus everything `rank` raises)
        """
        result = self.rank(
            fbas, algorithm,
            n_samples=n_samples,
            seed=seed,
            ignore_inactive=ignore_inactive,
            suppress_intersection_check=suppress_intersection_check
        )
        allocator = RewardAllocator(residue_policy=self.config.residue_policy)
        distribution = allocator.distribute(result, total_reward)
        return result, distribution
