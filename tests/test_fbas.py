# =============================================================================
# FILE: tests/test_fbas.py
"""
Unit Tests for the Trust Graph Model and topology loading
"""
import json

import pytest

from fbas_reward_distributor.exceptions import InvalidTopology
from fbas_reward_distributor.modules.fbas import Coalition, Fbas, Node, QuorumSet
from fbas_reward_distributor.modules.fbas_io import (
    fbas_from_json_str,
    load_fbas,
    parse_fbas,
)
from tests.conftest import flat_records


class TestCoalition:
    """Bit-set semantics"""

    def test_membership_and_order(self):
        coalition = Coalition.from_ids([4, 0, 2])
        assert len(coalition) == 3
        assert 2 in coalition and 1 not in coalition
        assert list(coalition) == [0, 2, 4], "Iteration must be ascending"

    def test_set_algebra(self):
        a = Coalition.from_ids([0, 1, 2])
        b = Coalition.from_ids([2, 3])
        assert (a | b).to_list() == [0, 1, 2, 3]
        assert (a & b).to_list() == [2]
        assert (a - b).to_list() == [0, 1]
        assert a.with_node(5).without_node(0).to_list() == [1, 2, 5]
        assert Coalition.from_ids([1]).issubset(a)
        assert a.isdisjoint(Coalition.from_ids([3, 4]))

    def test_equality_is_bitwise(self):
        assert Coalition.from_ids([1, 3]) == Coalition(0b1010)
        assert hash(Coalition.from_ids([1, 3])) == hash(Coalition(0b1010))
        assert not Coalition()
        assert Coalition.full(3).to_list() == [0, 1, 2]


class TestQuorumSet:
    """Quorum set structure"""

    def test_validators_deduplicated_in_order(self):
        quorum_set = QuorumSet(threshold=1, validators=(2, 0, 2, 1))
        assert quorum_set.validators == (2, 0, 1)

    def test_nested_properties(self):
        inner = QuorumSet(threshold=1, validators=(2, 3))
        quorum_set = QuorumSet(threshold=2, validators=(1,), inner_quorum_sets=(inner,))
        assert quorum_set.slot_count == 2
        assert quorum_set.contained_nodes() == frozenset({1, 2, 3})
        assert list(quorum_set.levels()) == [quorum_set, inner]


class TestSatisfaction:
    """Quorum-satisfaction predicates"""

    def test_trivial_quorums(self, trivial_fbas):
        assert trivial_fbas.is_quorum(Coalition.from_ids([0, 1]))
        assert trivial_fbas.is_quorum(Coalition.from_ids([0, 1, 2]))
        assert not trivial_fbas.is_quorum(Coalition.from_ids([0]))
        assert not trivial_fbas.is_quorum(Coalition())

    def test_every_coalition_of_trivial_fbas(self, trivial_fbas):
        # threshold 2 of 3: exactly the coalitions with at least two members
        for bits in range(1 << 3):
            coalition = Coalition(bits)
            assert trivial_fbas.is_quorum(coalition) == (len(coalition) >= 2), \
                f"Wrong quorum verdict for {coalition}"

    def test_satisfaction_is_monotone(self, paper_fbas):
        small = Coalition.from_ids([0, 1, 2])
        assert paper_fbas.is_satisfied(0, small)
        for extra in range(5):
            assert paper_fbas.is_satisfied(0, small.with_node(extra)), \
                f"Adding node {extra} broke satisfaction"

    def test_nested_threshold(self):
        inner = QuorumSet(threshold=2, validators=(1, 2, 3))
        nodes = [Node(0, QuorumSet(threshold=2, validators=(0,), inner_quorum_sets=(inner,)))]
        nodes += [Node(i, QuorumSet(threshold=1, validators=(0,))) for i in (1, 2, 3)]
        fbas = Fbas(nodes)

        assert not fbas.is_satisfied(0, Coalition.from_ids([0, 1]))
        assert fbas.is_satisfied(0, Coalition.from_ids([0, 1, 3]))

    def test_node_without_quorum_set_never_satisfied(self):
        fbas = Fbas([Node(0), Node(1, QuorumSet(threshold=1, validators=(1,)))])
        assert not fbas.is_satisfied(0, Coalition.full(2))
        assert not fbas.is_quorum(Coalition.full(2))
        assert fbas.is_quorum(Coalition.from_ids([1]))

    def test_max_quorum_is_union_of_quorums(self, follower_fbas):
        everything = follower_fbas.all_nodes()
        assert follower_fbas.max_quorum_within(everything) == everything
        assert follower_fbas.max_quorum_within(Coalition.from_ids([0, 3])) == Coalition()
        assert follower_fbas.contains_quorum(Coalition.from_ids([0, 2, 3]))


class TestValidation:
    """InvalidTopology on load"""

    def test_zero_threshold(self):
        with pytest.raises(InvalidTopology) as exc_info:
            Fbas([Node(0, QuorumSet(threshold=0, validators=(0,)))])
        assert exc_info.value.node_id == 0
        assert exc_info.value.threshold == 0

    def test_threshold_above_member_count(self):
        with pytest.raises(InvalidTopology):
            Fbas([
                Node(0, QuorumSet(threshold=3, validators=(0, 1))),
                Node(1, QuorumSet(threshold=1, validators=(0,))),
            ])

    def test_unknown_validator(self):
        with pytest.raises(InvalidTopology):
            Fbas([Node(0, QuorumSet(threshold=1, validators=(7,)))])

    def test_ids_must_be_dense(self):
        with pytest.raises(InvalidTopology):
            Fbas([Node(1, QuorumSet(threshold=1, validators=(0,)))])


class TestDerivedViews:
    """Active FBAS and restrictions"""

    def test_filter_active_drops_references(self):
        records = flat_records({
            0: (2, [0, 1, 3]),
            1: (2, [0, 1, 3]),
            2: (1, [2, 3]),
            3: (2, [0, 1, 3]),
        }, inactive={1})
        fbas = parse_fbas(records)
        active = fbas.filter_active()

        assert len(active) == 3
        assert [node.public_key for node in active.nodes] == ['node0', 'node2', 'node3']
        # node3 is now node 2; thresholds are kept
        assert active.quorum_set(0) == QuorumSet(threshold=2, validators=(0, 2))
        assert active.quorum_set(1) == QuorumSet(threshold=1, validators=(1, 2))

    def test_filter_active_without_inactive_nodes(self, trivial_fbas):
        assert len(trivial_fbas.filter_active()) == 3

    def test_restricted_to_relabels(self, follower_fbas):
        core = follower_fbas.restricted_to([1, 2])
        assert len(core) == 2
        assert core.node(0).public_key == 'node1'
        assert core.quorum_set(0).validators == (0, 1)


class TestLoading:
    """stellarbeat JSON loader"""

    def test_parse_records(self, paper_records):
        fbas = parse_fbas(paper_records)
        assert len(fbas) == 5
        assert fbas.node(3).public_key == 'node3'
        assert fbas.quorum_set(3) == QuorumSet(threshold=3, validators=(0, 3, 4))

    def test_missing_and_null_quorum_sets(self):
        records = [
            {'publicKey': 'a', 'quorumSet': {'threshold': 1, 'validators': ['a']}},
            {'publicKey': 'b', 'quorumSet': None},
            {'publicKey': 'c', 'quorumSet': {'threshold': 0, 'validators': [],
                                             'innerQuorumSets': []}},
        ]
        fbas = parse_fbas(records)
        assert fbas.quorum_set(0) == QuorumSet(threshold=1, validators=(0,))
        assert fbas.quorum_set(1) is None
        assert fbas.quorum_set(2) is None

    def test_unknown_public_key(self):
        records = [{'publicKey': 'a', 'quorumSet': {'threshold': 1, 'validators': ['zz']}}]
        with pytest.raises(InvalidTopology):
            parse_fbas(records)

    def test_duplicate_public_key(self, trivial_records):
        with pytest.raises(InvalidTopology):
            parse_fbas(trivial_records + [trivial_records[0]])

    def test_non_integer_threshold(self):
        records = [{'publicKey': 'a', 'quorumSet': {'threshold': '1', 'validators': ['a']}}]
        with pytest.raises(InvalidTopology):
            parse_fbas(records)

    def test_malformed_json(self):
        with pytest.raises(InvalidTopology):
            fbas_from_json_str("[{")
        with pytest.raises(InvalidTopology):
            fbas_from_json_str('{"publicKey": "a"}')

    def test_load_file_ignoring_inactive(self, tmp_path):
        records = flat_records({i: (2, [0, 1, 2]) for i in range(3)}, inactive={2})
        path = tmp_path / 'nodes.json'
        path.write_text(json.dumps(records))

        assert len(load_fbas(path)) == 3
        assert len(load_fbas(path, ignore_inactive=True)) == 2
