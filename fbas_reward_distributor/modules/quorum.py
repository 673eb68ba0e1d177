# =============================================================================
# FILE: fbas_reward_distributor/modules/quorum.py
"""
Quorum Analyzer - top tier, minimal quorums and quorum intersection

Minimal quorums are enumerated by include/exclude extension of a candidate
set. A branch is abandoned as soon as its committed members cannot all be
part of a quorum built from the still-undecided nodes, and stops extending
once it is itself a quorum (no superset of a quorum is minimal).

The search tree is partitioned by fixed include/exclude decisions on the
first few scope nodes; partial lists are concatenated and sorted
canonically, so the output is identical for any worker count.
"""
# =============================================================================

from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple
import logging
import math

from .fbas import Coalition, Fbas, iter_bits, mask_of
from ..exceptions import QuorumIntersectionViolated
from ..utils.parallel import resolve_workers, run_partitioned

logger = logging.getLogger(__name__)


def _is_minimal_quorum(fbas: Fbas, quorum: int) -> bool:
    """A quorum is minimal iff no single-member removal still contains a quorum"""
    for node_id in iter_bits(quorum):
        if fbas.contains_quorum_mask(quorum & ~(1 << node_id)):
            return False
    return True


def _next_node(fbas: Fbas, selected: int, available: int) -> int:
    """Branching node: prefer nodes the committed members rely on"""
    trusted = 0
    for node_id in iter_bits(selected):
        trusted |= fbas.trusted_mask(node_id)
    preferred = available & trusted
    pool = preferred if preferred else available
    return (pool & -pool).bit_length() - 1


def _search_minimal_quorums(fbas: Fbas, selected: int, available: int) -> List[int]:
    """
    Enumerate every minimal quorum Q with selected ⊆ Q ⊆ selected ∪ available

    Returns the quorums as raw bit masks (unordered).
    """
    found = []
    stack = [(selected, available)]

    while stack:
        selected, available = stack.pop()

        # Every quorum in this branch lies inside the maximal quorum
        max_quorum = fbas.max_quorum_mask(selected | available)
        if selected & ~max_quorum:
            continue

        if selected and fbas.is_quorum_mask(selected):
            if _is_minimal_quorum(fbas, selected):
                found.append(selected)
            continue

        available &= max_quorum
        if not available:
            continue

        node_id = _next_node(fbas, selected, available)
        bit = 1 << node_id
        rest = available & ~bit
        stack.append((selected, rest))
        stack.append((selected | bit, rest))

    return found


def _canonical_key(quorum: int) -> Tuple[int, List[int]]:
    return quorum.bit_count(), list(iter_bits(quorum))


class QuorumAnalyzer:
    """
    Structural analysis of an FBAS: top tier, minimal quorums, intersection

    Parameters:
    -----------
    fbas : Fbas
        Read-only topology
    workers : int
        Worker processes for the minimal-quorum search (1 = serial)
    """

    def __init__(self, fbas: Fbas, workers: int = 1):
        self.fbas = fbas
        self.workers = workers
        self._top_tier: Optional[FrozenSet[int]] = None
        self._minimal_quorums: Dict[int, List[Coalition]] = {}

    def top_tier(self) -> FrozenSet[int]:
        """
        Symmetric core of the FBAS

        Starting from all nodes, repeatedly removes nodes whose quorum set is
        not satisfied inside the current set and nodes that no quorum set of
        the current set references. Every minimal quorum survives the
        removal, and the members of the fixed point satisfy each other.
        """
        if self._top_tier is not None:
            return self._top_tier

        current = self.fbas.all_nodes().bits
        while True:
            referenced = 0
            for node_id in iter_bits(current):
                referenced |= self.fbas.trusted_mask(node_id)
            reduced = self.fbas.max_quorum_mask(current) & referenced
            if reduced == current:
                break
            current = reduced

        self._top_tier = frozenset(iter_bits(current))
        logger.info(
            f"Top tier: {len(self._top_tier)} of {len(self.fbas)} nodes"
        )
        return self._top_tier

    def minimal_quorums(self, scope: Optional[Iterable[int]] = None) -> List[Coalition]:
        """
        All minimal quorums inside `scope` (default: the top tier)

        Parameters:
        -----------
        scope : Iterable[int], optional
            Node IDs the quorums are drawn from

        Returns:
        --------
        quorums : List[Coalition]
            Sorted by size, then by member IDs

        Raises:
        -------
        ValueError : scope names a node ID outside the node table
        """
        scope_ids = sorted(self.top_tier() if scope is None else set(scope))
        unknown = [node_id for node_id in scope_ids if not 0 <= node_id < len(self.fbas)]
        if unknown:
            raise ValueError(
                f"Scope contains unknown node IDs {unknown} "
                f"(FBAS has {len(self.fbas)} nodes)"
            )
        scope_mask = mask_of(scope_ids)
        if scope_mask in self._minimal_quorums:
            return list(self._minimal_quorums[scope_mask])

        tasks = [
            (self.fbas, selected, available)
            for selected, available in self._partition(scope_ids, scope_mask)
        ]
        partials = run_partitioned(_search_minimal_quorums, tasks, self.workers)

        quorums = sorted(
            (quorum for partial in partials for quorum in partial),
            key=_canonical_key
        )
        logger.info(
            f"Found {len(quorums)} minimal quorums within {len(scope_ids)} nodes"
        )
        self._minimal_quorums[scope_mask] = [Coalition(quorum) for quorum in quorums]
        return list(self._minimal_quorums[scope_mask])

    def _partition(self, scope_ids: List[int], scope_mask: int) -> List[Tuple[int, int]]:
        """Fixed include/exclude prefixes over the first scope nodes"""
        n_workers = resolve_workers(self.workers)
        if n_workers <= 1:
            return [(0, scope_mask)]

        depth = min(len(scope_ids), math.ceil(math.log2(n_workers)) + 2)
        prefix_ids = scope_ids[:depth]
        remaining = scope_mask & ~mask_of(prefix_ids)

        partitions = []
        for choice in range(1 << depth):
            selected = mask_of(
                node_id for position, node_id in enumerate(prefix_ids)
                if (choice >> position) & 1
            )
            partitions.append((selected, remaining))
        return partitions

    def find_disjoint_quorums(
        self,
        scope: Optional[Iterable[int]] = None
    ) -> Optional[Tuple[Coalition, Coalition]]:
        """First pair of disjoint minimal quorums, or None"""
        quorums = self.minimal_quorums(scope)
        if not quorums:
            logger.warning("⚠️ FBAS contains no quorum")

        for i, quorum_a in enumerate(quorums):
            for quorum_b in quorums[i + 1:]:
                if quorum_a.isdisjoint(quorum_b):
                    return quorum_a, quorum_b
        return None

    def check_quorum_intersection(self, scope: Optional[Iterable[int]] = None) -> bool:
        """True iff every two minimal quorums in `scope` share a node"""
        return self.find_disjoint_quorums(scope) is None

    def assert_quorum_intersection(self, suppress: bool = False) -> Optional[str]:
        """
        Enforce quorum intersection as a precondition for ranking

        Raises:
        -------
        QuorumIntersectionViolated : if two disjoint quorums exist and the
            check is not suppressed

        Returns:
        --------
        warning : str or None
            Message to attach to results when the violation was suppressed
        """
        disjoint = self.find_disjoint_quorums()
        if disjoint is None:
            logger.info("✅ FBAS enjoys quorum intersection")
            return None

        violation = QuorumIntersectionViolated(disjoint[0].to_list(), disjoint[1].to_list())
        if not suppress:
            raise violation

        logger.warning(f"⚠️ {violation}")
        return str(violation)
