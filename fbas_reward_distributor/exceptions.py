# =============================================================================
# FILE: fbas_reward_distributor/exceptions.py
"""
Error types raised by the analysis core.

All of them describe deterministic, input-driven failures: they carry enough
context to act on (offending node, threshold, algorithm) and are never retried.
"""
# =============================================================================

from typing import Optional, Sequence


class FbasAnalysisError(Exception):
    """Base class for all analysis errors"""


class InvalidTopology(FbasAnalysisError, ValueError):
    """
    Malformed trust topology, detected while loading the FBAS

    Attributes:
    -----------
    node_id : int, optional
        Node whose quorum set is invalid
    threshold : int, optional
        Offending threshold value
    """

    def __init__(
        self,
        message: str,
        node_id: Optional[int] = None,
        threshold: Optional[int] = None
    ):
        self.node_id = node_id
        self.threshold = threshold
        if node_id is not None:
            message = f"node {node_id}: {message}"
        super().__init__(message)


class QuorumIntersectionViolated(FbasAnalysisError, RuntimeError):
    """Two disjoint quorums exist; rankings over this topology are meaningless"""

    def __init__(self, quorum_a: Sequence[int], quorum_b: Sequence[int]):
        self.quorum_a = sorted(quorum_a)
        self.quorum_b = sorted(quorum_b)
        super().__init__(
            f"FBAS lacks quorum intersection: quorums {self.quorum_a} and "
            f"{self.quorum_b} are disjoint"
        )


class MissingParameter(FbasAnalysisError, ValueError):
    """A required parameter for the selected algorithm was not supplied"""

    def __init__(self, algorithm: str, parameter: str):
        self.algorithm = algorithm
        self.parameter = parameter
        super().__init__(
            f"-a {algorithm} requires the number of samples"
            if parameter == 'n_samples'
            else f"algorithm '{algorithm}' requires parameter '{parameter}'"
        )


class DegenerateDistribution(FbasAnalysisError, ValueError):
    """Scores sum to zero, so no proportional distribution exists"""

    def __init__(self, total_score: float, n_nodes: int):
        self.total_score = total_score
        self.n_nodes = n_nodes
        super().__init__(
            f"Cannot distribute rewards: scores of {n_nodes} nodes sum to "
            f"{total_score}"
        )
