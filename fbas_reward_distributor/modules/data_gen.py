# =============================================================================
# FILE: fbas_reward_distributor/modules/data_gen.py
"""
Synthetic FBAS Generator - top tiers shaped like real deployments

Kinds:
- mobilecoin: every node trusts all nodes with a 67% threshold
- stellar: organisations of three validators (inner sets, threshold 2),
  67% threshold over organisations
- non_symmetric: flat quorum sets over all nodes with per-node thresholds
  drawn between the 67% threshold and n
"""
# =============================================================================
import numpy as np
from typing import Literal, Optional
import logging

from .fbas import Fbas, Node, QuorumSet

logger = logging.getLogger(__name__)

FbasKind = Literal['mobilecoin', 'stellar', 'non_symmetric']

FBAS_KINDS = ('mobilecoin', 'stellar', 'non_symmetric')


def threshold_67p(n: int) -> int:
    """Smallest threshold tolerating ⌊(n-1)/3⌋ faulty members"""
    return n - (n - 1) // 3


class FbasGenerator:
    """Generates synthetic FBAS topologies"""

    def __init__(self, seed: Optional[int] = None):
        self.rng = np.random.default_rng(seed)
        self.seed = seed

    @staticmethod
    def node_increment(kind: FbasKind) -> int:
        """Step between valid top-tier sizes of a kind"""
        return 3 if kind == 'stellar' else 1

    def generate(self, kind: FbasKind, top_tier_size: int) -> Fbas:
        """
        Build an FBAS whose nodes all belong to the top tier

        Parameters:
        -----------
        kind : str
            'mobilecoin', 'stellar' or 'non_symmetric'
        top_tier_size : int
            Number of nodes (a multiple of 3 for 'stellar')

        Returns:
        --------
        fbas : Fbas
            Nodes named node0..node{n-1}
        """
        if top_tier_size < 1:
            raise ValueError(f"top_tier_size must be positive, got {top_tier_size}")

        if kind == 'mobilecoin':
            quorum_set = QuorumSet(
                threshold=threshold_67p(top_tier_size),
                validators=tuple(range(top_tier_size))
            )
            quorum_sets = [quorum_set] * top_tier_size

        elif kind == 'stellar':
            if top_tier_size % 3 != 0:
                raise ValueError(
                    f"Stellar-like top tiers come in organisations of 3, "
                    f"got {top_tier_size} nodes"
                )
            organisations = tuple(
                QuorumSet(threshold=2, validators=(org * 3, org * 3 + 1, org * 3 + 2))
                for org in range(top_tier_size // 3)
            )
            quorum_set = QuorumSet(
                threshold=threshold_67p(len(organisations)),
                inner_quorum_sets=organisations
            )
            quorum_sets = [quorum_set] * top_tier_size

        elif kind == 'non_symmetric':
            validators = tuple(range(top_tier_size))
            thresholds = self.rng.integers(
                threshold_67p(top_tier_size), top_tier_size, endpoint=True,
                size=top_tier_size
            )
            quorum_sets = [
                QuorumSet(threshold=int(threshold), validators=validators)
                for threshold in thresholds
            ]

        else:
            raise ValueError(
                f"Unknown FBAS kind: '{kind}'\nValid kinds: {', '.join(FBAS_KINDS)}"
            )

        nodes = [
            Node(node_id=i, quorum_set=quorum_sets[i], public_key=f"node{i}")
            for i in range(top_tier_size)
        ]
        logger.debug(f"Generated {kind} FBAS with {top_tier_size} nodes")
        return Fbas(nodes)
