# =============================================================================
# FILE: tests/test_distribution.py
"""
Unit Tests for proportional reward distribution
"""
import numpy as np
import pytest

from fbas_reward_distributor.exceptions import DegenerateDistribution
from fbas_reward_distributor.modules.distribution import RewardAllocator
from fbas_reward_distributor.modules.power_index import RankingResult
from fbas_reward_distributor.utils.validation import validate_reward_conservation


@pytest.fixture
def allocator():
    return RewardAllocator()


class TestRewardAllocator:
    """Test suite for RewardAllocator"""

    def test_proportional_split(self, allocator):
        distribution = allocator.distribute([0.5, 0.25, 0.25], total_reward=100.0)
        assert np.allclose(distribution.rewards, [50.0, 25.0, 25.0])
        assert np.allclose(distribution.shares, [0.5, 0.25, 0.25])

    def test_unnormalised_scores(self, allocator):
        distribution = allocator.distribute(np.array([3.0, 1.0]), total_reward=8.0)
        assert np.allclose(distribution.rewards, [6.0, 2.0])

    def test_conservation(self, allocator):
        scores = np.array([1.0, 1.0, 1.0, 1.0, 1.0, 1.0, 1.0])
        distribution = allocator.distribute(scores, total_reward=10.0)
        assert distribution.rewards.sum() == pytest.approx(10.0, abs=1e-12)
        assert validate_reward_conservation(distribution.rewards, 10.0).is_valid

    def test_residue_goes_to_highest_scorer(self, allocator):
        scores = np.array([0.1, 0.7, 0.2])
        distribution = allocator.distribute(scores, total_reward=1.0)
        expected = scores / scores.sum()
        residue = 1.0 - expected.sum()
        assert distribution.residue == pytest.approx(residue, abs=1e-15)
        assert np.allclose(distribution.rewards[[0, 2]], expected[[0, 2]])

    def test_residue_policy_none(self):
        distribution = RewardAllocator(residue_policy='none').distribute(
            [1.0, 1.0, 1.0], total_reward=1.0
        )
        assert distribution.residue_policy == 'none'
        assert np.allclose(distribution.rewards, 1 / 3)

    def test_accepts_ranking_result(self, allocator):
        ranking = RankingResult(scores=[0.25, 0.75], algorithm='node-rank')
        distribution = allocator.distribute(ranking, total_reward=4.0)
        assert np.allclose(distribution.rewards, [1.0, 3.0])
        assert distribution.n_nodes == 2

    def test_zero_reward(self, allocator):
        distribution = allocator.distribute([0.5, 0.5], total_reward=0.0)
        assert not np.any(distribution.rewards)

    def test_all_zero_scores(self, allocator):
        with pytest.raises(DegenerateDistribution):
            allocator.distribute([0.0, 0.0, 0.0])

    def test_no_nodes(self, allocator):
        with pytest.raises(DegenerateDistribution):
            allocator.distribute([])

    @pytest.mark.parametrize("scores", [
        [0.5, -0.1],
        [np.nan, 1.0],
        [np.inf, 1.0],
    ])
    def test_invalid_scores(self, allocator, scores):
        with pytest.raises(ValueError):
            allocator.distribute(scores)

    def test_negative_total(self, allocator):
        with pytest.raises(ValueError):
            allocator.distribute([1.0], total_reward=-1.0)

    def test_unknown_policy(self):
        with pytest.raises(ValueError):
            RewardAllocator(residue_policy='random')
