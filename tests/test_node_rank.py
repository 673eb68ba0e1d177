# =============================================================================
# FILE: tests/test_node_rank.py
"""
Unit Tests for NodeRank
"""
import numpy as np
import pytest

from fbas_reward_distributor.modules.fbas import Fbas, Node, QuorumSet
from fbas_reward_distributor.modules.node_rank import NodeRankEngine


@pytest.fixture
def engine():
    return NodeRankEngine()


class TestEdgeWeights:

    def test_flat_quorum_sets(self, paper_fbas):
        weights = NodeRankEngine.edge_weights(paper_fbas)
        assert weights[(0, 4)] == pytest.approx(1 / 5)
        assert weights[(1, 0)] == pytest.approx(1 / 3)
        assert (1, 3) not in weights

    def test_nested_levels_accumulate(self):
        inner = QuorumSet(threshold=1, validators=(1, 2))
        quorum_set = QuorumSet(threshold=2, validators=(1,), inner_quorum_sets=(inner,))
        nodes = [Node(0, quorum_set)]
        nodes += [Node(i, QuorumSet(threshold=1, validators=(0,))) for i in (1, 2)]
        weights = NodeRankEngine.edge_weights(Fbas(nodes))

        # node1 is a direct validator (1/2) and an inner member (1/2)
        assert weights[(0, 1)] == pytest.approx(1.0)
        assert weights[(0, 2)] == pytest.approx(0.5)

    def test_transition_matrix_is_column_stochastic(self, engine, paper_fbas):
        matrix = engine.transition_matrix(paper_fbas).toarray()
        assert np.allclose(matrix.sum(axis=0), 1.0)


class TestNodeRank:

    def test_scores_sum_to_one(self, engine, paper_fbas):
        result = engine.rank(paper_fbas)
        assert np.isclose(result.scores.sum(), 1.0)
        assert result.converged
        assert result.algorithm == 'node-rank'

    def test_symmetric_fbas_uniform(self, engine, trivial_fbas):
        result = engine.rank(trivial_fbas)
        assert np.allclose(result.scores, 1 / 3)

    def test_most_trusted_node_ranks_first(self, engine, paper_fbas):
        result = engine.rank(paper_fbas)
        assert int(np.argmax(result.scores)) == 0
        assert np.isclose(result.scores[1], result.scores[2])
        assert np.isclose(result.scores[3], result.scores[4])

    def test_untrusted_node_gets_teleport_share(self, engine, follower_fbas):
        result = engine.rank(follower_fbas)
        assert result.scores[3] == pytest.approx(result.scores.min())
        assert result.scores[3] < result.scores[0]

    def test_deterministic(self, engine, paper_fbas):
        assert np.array_equal(engine.rank(paper_fbas).scores, engine.rank(paper_fbas).scores)

    def test_iteration_cap_reported(self, paper_fbas):
        engine = NodeRankEngine(tolerance=1e-15, max_iterations=1)
        result = engine.rank(paper_fbas)
        assert not result.converged
        assert result.iterations == 1
        assert any("did not converge" in w for w in result.warnings)
        assert np.isclose(result.scores.sum(), 1.0)

    def test_empty_fbas(self, engine):
        result = engine.rank(Fbas([]))
        assert result.scores.shape == (0,)

    def test_nested_sets_and_missing_quorum_set(self, engine, nested_fbas):
        result = engine.rank(nested_fbas)
        assert np.isclose(result.scores.sum(), 1.0)
        assert (result.scores > 0).all()
        # node6 is trusted by every core node but trusts nobody
        assert not any(source == 6 for source, _ in NodeRankEngine.edge_weights(nested_fbas))
        assert int(np.argmax(result.scores)) == 6

    @pytest.mark.parametrize("damping", [0.0, 0.5, 0.99])
    def test_dangling_node_keeps_scores_finite(self, damping):
        # node0 trusts node1, which declares no quorum set
        fbas = Fbas([Node(0, QuorumSet(threshold=1, validators=(1,))), Node(1)])
        result = NodeRankEngine(damping=damping).rank(fbas)
        assert np.isfinite(result.scores).all()
        assert np.isclose(result.scores.sum(), 1.0)
        assert result.scores[1] >= result.scores[0]

    @pytest.mark.parametrize("kwargs", [
        {'damping': 1.0},
        {'damping': 1.5},
        {'damping': -0.1},
        {'tolerance': 0.0},
        {'max_iterations': 0},
    ])
    def test_invalid_parameters(self, kwargs):
        with pytest.raises(ValueError):
            NodeRankEngine(**kwargs)
