# =============================================================================
# FILE: fbas_reward_distributor/modules/fbas.py
"""
Trust Graph Model - Federated Byzantine Agreement System topology

Implements:
- Coalition: immutable bit-set over dense node IDs
- QuorumSet: recursive threshold structure (owned tree, no sharing)
- Fbas: validated node table with quorum-satisfaction predicates

Every node's quorum set is compiled once into bit masks so that the hot
satisfaction loop (quorum search, coalition enumeration, permutation
sampling) only performs integer AND + popcount.
"""
# =============================================================================

from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, Iterator, List, Optional, Sequence, Tuple
import logging

from ..exceptions import InvalidTopology

logger = logging.getLogger(__name__)


# =============================================================================
# COALITION BIT-SET
# =============================================================================

def iter_bits(mask: int) -> Iterator[int]:
    """Yield the positions of the set bits of `mask` in ascending order"""
    while mask:
        low = mask & -mask
        yield low.bit_length() - 1
        mask ^= low


def mask_of(node_ids: Iterable[int]) -> int:
    """Bit mask with one bit per node ID"""
    mask = 0
    for node_id in node_ids:
        mask |= 1 << node_id
    return mask


class Coalition:
    """
    Immutable set of nodes backed by an integer bit pattern

    Two coalitions are equal iff their bit patterns are equal. Iteration
    yields node IDs in ascending order.
    """

    __slots__ = ('_bits',)

    def __init__(self, bits: int = 0):
        if bits < 0:
            raise ValueError(f"Coalition bits must be non-negative, got {bits}")
        self._bits = bits

    @classmethod
    def from_ids(cls, node_ids: Iterable[int]) -> 'Coalition':
        return cls(mask_of(node_ids))

    @classmethod
    def full(cls, n_nodes: int) -> 'Coalition':
        """Coalition of all nodes 0..n_nodes-1"""
        return cls((1 << n_nodes) - 1)

    @property
    def bits(self) -> int:
        return self._bits

    def __len__(self) -> int:
        return self._bits.bit_count()

    def __iter__(self) -> Iterator[int]:
        return iter_bits(self._bits)

    def __contains__(self, node_id: int) -> bool:
        return node_id >= 0 and (self._bits >> node_id) & 1 == 1

    def __bool__(self) -> bool:
        return self._bits != 0

    def __or__(self, other: 'Coalition') -> 'Coalition':
        return Coalition(self._bits | other._bits)

    def __and__(self, other: 'Coalition') -> 'Coalition':
        return Coalition(self._bits & other._bits)

    def __sub__(self, other: 'Coalition') -> 'Coalition':
        return Coalition(self._bits & ~other._bits)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Coalition):
            return NotImplemented
        return self._bits == other._bits

    def __hash__(self) -> int:
        return hash(self._bits)

    def __repr__(self) -> str:
        return f"Coalition({self.to_list()})"

    def with_node(self, node_id: int) -> 'Coalition':
        return Coalition(self._bits | (1 << node_id))

    def without_node(self, node_id: int) -> 'Coalition':
        return Coalition(self._bits & ~(1 << node_id))

    def issubset(self, other: 'Coalition') -> bool:
        return self._bits & ~other._bits == 0

    def isdisjoint(self, other: 'Coalition') -> bool:
        return self._bits & other._bits == 0

    def to_list(self) -> List[int]:
        return list(iter_bits(self._bits))


# =============================================================================
# QUORUM SETS & NODES
# =============================================================================

@dataclass(frozen=True)
class QuorumSet:
    """
    A node's declared trust structure

    Attributes:
    -----------
    threshold : int
        Number of slots (validators or inner sets) that must be satisfied
    validators : Tuple[int, ...]
        Ordered, duplicate-free validator node IDs
    inner_quorum_sets : Tuple[QuorumSet, ...]
        Nested quorum sets, each counting as one slot once satisfied
    """
    threshold: int
    validators: Tuple[int, ...] = ()
    inner_quorum_sets: Tuple['QuorumSet', ...] = ()

    def __post_init__(self):
        # Ordered set semantics: keep first occurrence of each validator
        object.__setattr__(self, 'validators', tuple(dict.fromkeys(self.validators)))
        object.__setattr__(self, 'inner_quorum_sets', tuple(self.inner_quorum_sets))

    @property
    def slot_count(self) -> int:
        """Number of direct validators plus nested sets"""
        return len(self.validators) + len(self.inner_quorum_sets)

    def contained_nodes(self) -> FrozenSet[int]:
        """All validators referenced at any nesting level"""
        nodes = set(self.validators)
        for inner in self.inner_quorum_sets:
            nodes |= inner.contained_nodes()
        return frozenset(nodes)

    def levels(self) -> Iterator['QuorumSet']:
        """This quorum set followed by every nested set, depth first"""
        yield self
        for inner in self.inner_quorum_sets:
            yield from inner.levels()

    def remap(self, id_map: Dict[int, int]) -> 'QuorumSet':
        """
        Rename validators through `id_map`, dropping those it does not contain

        The stored thresholds are never changed, so a quorum set that loses
        members may become unsatisfiable.
        """
        return QuorumSet(
            threshold=self.threshold,
            validators=tuple(id_map[v] for v in self.validators if v in id_map),
            inner_quorum_sets=tuple(
                inner.remap(id_map) for inner in self.inner_quorum_sets
            )
        )

    def validate(self, node_id: int, n_nodes: int) -> None:
        """Raise InvalidTopology for bad thresholds or dangling validators"""
        if self.threshold < 1:
            raise InvalidTopology(
                f"quorum set threshold must be >= 1, got {self.threshold}",
                node_id=node_id, threshold=self.threshold
            )
        if self.threshold > self.slot_count:
            raise InvalidTopology(
                f"quorum set threshold {self.threshold} exceeds its "
                f"{self.slot_count} members",
                node_id=node_id, threshold=self.threshold
            )
        for validator in self.validators:
            if not 0 <= validator < n_nodes:
                raise InvalidTopology(
                    f"quorum set references unknown validator {validator}",
                    node_id=node_id, threshold=self.threshold
                )
        for inner in self.inner_quorum_sets:
            inner.validate(node_id, n_nodes)


@dataclass(frozen=True)
class Node:
    """A validator in the FBAS; `node_id` equals its index in the node table"""
    node_id: int
    quorum_set: Optional[QuorumSet] = None
    public_key: Optional[str] = None
    name: Optional[str] = None
    active: bool = True


# Compiled quorum set: (threshold, validator mask, compiled inner sets)
_Compiled = Tuple[int, int, tuple]


def _compile(quorum_set: QuorumSet) -> _Compiled:
    return (
        quorum_set.threshold,
        mask_of(quorum_set.validators),
        tuple(_compile(inner) for inner in quorum_set.inner_quorum_sets)
    )


def _satisfied(compiled: _Compiled, members: int) -> bool:
    threshold, validator_mask, inner_sets = compiled
    count = (validator_mask & members).bit_count()
    if count >= threshold:
        return True
    for inner in inner_sets:
        if _satisfied(inner, members):
            count += 1
            if count >= threshold:
                return True
    return False


# =============================================================================
# FBAS
# =============================================================================

class Fbas:
    """
    Validated, read-only node table of a Federated Byzantine Agreement System

    Parameters:
    -----------
    nodes : Sequence[Node]
        Node table; node i must carry node_id == i
    validate : bool
        Check every quorum set (threshold bounds, dangling validators).
        Only derived views built from an already validated FBAS skip this.

    Raises:
    -------
    InvalidTopology : threshold 0, threshold above member count, unknown
        validator, or node IDs that are not dense indices
    """

    def __init__(self, nodes: Sequence[Node], validate: bool = True):
        self._nodes: Tuple[Node, ...] = tuple(nodes)
        n = len(self._nodes)

        for index, node in enumerate(self._nodes):
            if node.node_id != index:
                raise InvalidTopology(
                    f"node IDs must be dense table indices, found ID "
                    f"{node.node_id} at position {index}"
                )
            if validate and node.quorum_set is not None:
                node.quorum_set.validate(node.node_id, n)

        self._compiled: List[Optional[_Compiled]] = [
            _compile(node.quorum_set) if node.quorum_set is not None else None
            for node in self._nodes
        ]
        self._trusted_masks: List[int] = [
            mask_of(node.quorum_set.contained_nodes())
            if node.quorum_set is not None else 0
            for node in self._nodes
        ]

    # ─────────────────────────────── lookup ───────────────────────────────

    def __len__(self) -> int:
        return len(self._nodes)

    @property
    def number_of_nodes(self) -> int:
        return len(self._nodes)

    @property
    def nodes(self) -> Tuple[Node, ...]:
        return self._nodes

    def node(self, node_id: int) -> Node:
        return self._nodes[node_id]

    def quorum_set(self, node_id: int) -> Optional[QuorumSet]:
        return self._nodes[node_id].quorum_set

    def all_nodes(self) -> Coalition:
        return Coalition.full(len(self._nodes))

    def inactive_nodes(self) -> List[int]:
        return [node.node_id for node in self._nodes if not node.active]

    def trusted_mask(self, node_id: int) -> int:
        """Mask of every node referenced anywhere in the node's quorum set"""
        return self._trusted_masks[node_id]

    # ──────────────────────────── satisfaction ────────────────────────────

    def is_satisfied_mask(self, node_id: int, members: int) -> bool:
        compiled = self._compiled[node_id]
        return compiled is not None and _satisfied(compiled, members)

    def is_quorum_mask(self, members: int) -> bool:
        if members == 0:
            return False
        for node_id in iter_bits(members):
            compiled = self._compiled[node_id]
            if compiled is None or not _satisfied(compiled, members):
                return False
        return True

    def max_quorum_mask(self, members: int) -> int:
        """
        Greatest quorum inside `members` (0 if there is none)

        Repeatedly drops members that the remaining set does not satisfy.
        The fixed point is the union of all quorums inside `members`.
        """
        current = members
        while current:
            remaining = current
            for node_id in iter_bits(current):
                compiled = self._compiled[node_id]
                if compiled is None or not _satisfied(compiled, remaining):
                    remaining &= ~(1 << node_id)
            if remaining == current:
                break
            current = remaining
        return current

    def contains_quorum_mask(self, members: int) -> bool:
        return self.max_quorum_mask(members) != 0

    def is_satisfied(self, node_id: int, candidate: Coalition) -> bool:
        """True iff the node's quorum set is met, recursively, inside candidate"""
        return self.is_satisfied_mask(node_id, candidate.bits)

    def is_quorum(self, candidate: Coalition) -> bool:
        """True iff candidate is non-empty and satisfies every member"""
        return self.is_quorum_mask(candidate.bits)

    def max_quorum_within(self, candidate: Coalition) -> Coalition:
        return Coalition(self.max_quorum_mask(candidate.bits))

    def contains_quorum(self, candidate: Coalition) -> bool:
        return self.contains_quorum_mask(candidate.bits)

    # ──────────────────────────── derived views ───────────────────────────

    def without_nodes(self, removed: Iterable[int]) -> 'Fbas':
        """
        New FBAS without `removed`; remaining nodes are renumbered densely in
        their original order and every reference to a removed node is dropped
        """
        removed = set(removed)
        kept = [node for node in self._nodes if node.node_id not in removed]
        id_map = {node.node_id: new_id for new_id, node in enumerate(kept)}
        nodes = [
            Node(
                node_id=id_map[node.node_id],
                quorum_set=(node.quorum_set.remap(id_map)
                            if node.quorum_set is not None else None),
                public_key=node.public_key,
                name=node.name,
                active=node.active
            )
            for node in kept
        ]
        return Fbas(nodes, validate=False)

    def filter_active(self) -> 'Fbas':
        """Active FBAS: inactive nodes and all references to them removed"""
        inactive = self.inactive_nodes()
        if inactive:
            logger.info(f"Ignoring {len(inactive)} inactive nodes: {inactive}")
        return self.without_nodes(inactive)

    def restricted_to(self, node_ids: Sequence[int]) -> 'Fbas':
        """
        Sub-FBAS over `node_ids` (relabelled 0..k-1 in the given order)

        References to other nodes are dropped. Satisfaction of coalitions
        drawn from `node_ids` is unchanged, since excluded nodes are never
        members of such coalitions.
        """
        id_map = {node_id: local for local, node_id in enumerate(node_ids)}
        nodes = []
        for node_id, local in id_map.items():
            node = self._nodes[node_id]
            nodes.append(Node(
                node_id=local,
                quorum_set=(node.quorum_set.remap(id_map)
                            if node.quorum_set is not None else None),
                public_key=node.public_key,
                name=node.name,
                active=node.active
            ))
        return Fbas(nodes, validate=False)

    def __repr__(self) -> str:
        return f"Fbas(n_nodes={len(self._nodes)})"
