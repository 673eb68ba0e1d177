# =============================================================================
# FILE: tests/test_quorum.py
"""
Unit Tests for the Quorum Analyzer
"""
import pytest

from fbas_reward_distributor.exceptions import QuorumIntersectionViolated
from fbas_reward_distributor.modules.data_gen import FbasGenerator
from fbas_reward_distributor.modules.fbas import Coalition, Fbas, Node, QuorumSet
from fbas_reward_distributor.modules.quorum import QuorumAnalyzer


def as_lists(quorums):
    return [quorum.to_list() for quorum in quorums]


def brute_force_minimal_quorums(fbas):
    """Every quorum none of whose proper non-empty subsets is a quorum"""
    quorums = [bits for bits in range(1, 1 << len(fbas)) if fbas.is_quorum_mask(bits)]
    minimal = [
        bits for bits in quorums
        if not any(other != bits and other & ~bits == 0 for other in quorums)
    ]
    return sorted(
        (Coalition(bits).to_list() for bits in minimal),
        key=lambda members: (len(members), members)
    )


class TestTopTier:

    def test_symmetric_fbas_is_its_own_top_tier(self, trivial_fbas):
        assert QuorumAnalyzer(trivial_fbas).top_tier() == frozenset({0, 1, 2})

    def test_untrusted_follower_excluded(self, follower_fbas):
        assert QuorumAnalyzer(follower_fbas).top_tier() == frozenset({0, 1, 2})

    def test_every_minimal_quorum_inside_top_tier(self, follower_fbas):
        analyzer = QuorumAnalyzer(follower_fbas)
        top_tier = Coalition.from_ids(analyzer.top_tier())
        for quorum in analyzer.minimal_quorums(range(4)):
            assert quorum.issubset(top_tier), f"{quorum} leaves the top tier"


class TestMinimalQuorums:

    def test_trivial(self, trivial_fbas):
        quorums = QuorumAnalyzer(trivial_fbas).minimal_quorums()
        assert as_lists(quorums) == [[0, 1], [0, 2], [1, 2]]

    def test_paper_game(self, paper_fbas):
        quorums = QuorumAnalyzer(paper_fbas).minimal_quorums()
        assert as_lists(quorums) == [[0, 1, 2], [0, 3, 4]]

    def test_minimality(self, paper_fbas):
        for quorum in QuorumAnalyzer(paper_fbas).minimal_quorums():
            assert paper_fbas.is_quorum(quorum)
            for node_id in quorum:
                assert not paper_fbas.is_quorum(quorum.without_node(node_id))

    def test_stellar_like_count(self):
        # 3 organisations, threshold 3 of 3 orgs, 2 of 3 nodes each
        fbas = FbasGenerator(seed=1).generate('stellar', 9)
        quorums = QuorumAnalyzer(fbas).minimal_quorums()
        assert len(quorums) == 27
        assert all(len(quorum) == 6 for quorum in quorums)

    def test_independent_of_worker_count(self):
        fbas = FbasGenerator(seed=3).generate('non_symmetric', 8)
        serial = QuorumAnalyzer(fbas, workers=1).minimal_quorums()
        parallel = QuorumAnalyzer(fbas, workers=2).minimal_quorums()
        assert serial == parallel

    @pytest.mark.parametrize("workers", [1, 2])
    def test_nested_topology_matches_brute_force(self, nested_fbas, workers):
        expected = brute_force_minimal_quorums(nested_fbas)
        analyzer = QuorumAnalyzer(nested_fbas, workers=workers)

        assert len(expected) == 9
        assert as_lists(analyzer.minimal_quorums(range(len(nested_fbas)))) == expected
        # restricting the search to the top tier loses no minimal quorum
        assert as_lists(analyzer.minimal_quorums()) == expected
        assert analyzer.top_tier() == frozenset(range(6))

    def test_scope_outside_node_table(self, trivial_fbas):
        with pytest.raises(ValueError) as exc_info:
            QuorumAnalyzer(trivial_fbas).minimal_quorums([0, 1, 5, -1])
        assert "[-1, 5]" in str(exc_info.value)

    def test_no_quorum(self):
        # node0 depends on node1, which declares no quorum set
        fbas = Fbas([Node(0, QuorumSet(threshold=1, validators=(1,))), Node(1)])
        analyzer = QuorumAnalyzer(fbas)
        assert analyzer.top_tier() == frozenset()
        assert analyzer.minimal_quorums() == []
        assert analyzer.minimal_quorums(range(2)) == []


class TestQuorumIntersection:

    def test_intersecting(self, paper_fbas):
        analyzer = QuorumAnalyzer(paper_fbas)
        assert analyzer.check_quorum_intersection()
        assert analyzer.assert_quorum_intersection() is None

    def test_disjoint_pair_found(self, split_fbas):
        analyzer = QuorumAnalyzer(split_fbas)
        assert not analyzer.check_quorum_intersection()
        quorum_a, quorum_b = analyzer.find_disjoint_quorums()
        assert (quorum_a.to_list(), quorum_b.to_list()) == ([0, 1], [2, 3])

    def test_violation_raises_unless_suppressed(self, split_fbas):
        analyzer = QuorumAnalyzer(split_fbas)
        with pytest.raises(QuorumIntersectionViolated) as exc_info:
            analyzer.assert_quorum_intersection()
        assert exc_info.value.quorum_a == [0, 1]

        warning = analyzer.assert_quorum_intersection(suppress=True)
        assert "lacks quorum intersection" in warning
