"""
Modules package for FBAS influence analysis.

This package contains core modules for:
- Trust graph: FBAS topology, quorum sets and coalitions
- Quorum analysis: top tier, minimal quorums, quorum intersection
- Ranking: NodeRank and Shapley-Shubik power indices
- Distribution: proportional reward allocation
- Simulation running: synthetic topologies and batch measurements
"""

from .fbas import Coalition, Fbas, Node, QuorumSet
from .quorum import QuorumAnalyzer
from .node_rank import NodeRankEngine
from .power_index import PowerIndexEngine, RankingResult
from .distribution import RewardAllocator, RewardDistribution
from .ranking import InfluenceEngine
from .fbas_io import load_fbas, parse_fbas, fbas_from_json_str
from .data_gen import FbasGenerator
from .runner import SimulationRunner

__all__ = [
    'Coalition',
    'Fbas',
    'Node',
    'QuorumSet',
    'QuorumAnalyzer',
    'NodeRankEngine',
    'PowerIndexEngine',
    'RankingResult',
    'RewardAllocator',
    'RewardDistribution',
    'InfluenceEngine',
    'load_fbas',
    'parse_fbas',
    'fbas_from_json_str',
    'FbasGenerator',
    'SimulationRunner'
]
