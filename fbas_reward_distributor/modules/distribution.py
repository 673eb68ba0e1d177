# =============================================================================
# FILE: fbas_reward_distributor/modules/distribution.py
"""
Reward Allocator - proportional split of a fixed reward total

    shareᵢ = scoreᵢ / Σⱼ scoreⱼ,    rewardᵢ = shareᵢ × total_reward

The floating-point residue (total_reward - Σ rewardᵢ) is either credited to
the highest-ranked node ('highest', ties to the lowest node ID) or left
undistributed ('none'); it is recorded either way.
"""
# =============================================================================

from dataclasses import dataclass
from typing import Union
import logging

import numpy as np

from .power_index import RankingResult
from ..exceptions import DegenerateDistribution
from ..utils.validation import validate_reward_conservation

logger = logging.getLogger(__name__)

RESIDUE_POLICIES = ('highest', 'none')


@dataclass
class RewardDistribution:
    """
    Reward amount per node

    Attributes:
    -----------
    rewards : np.ndarray
        Reward of node i at index i
    scores : np.ndarray
        Scores the split was derived from
    shares : np.ndarray
        Normalised scores (sum to 1)
    total_reward : float
        Requested total
    residue : float
        Rounding residue before the residue policy was applied
    residue_policy : str
        'highest' or 'none'
    """
    rewards: np.ndarray
    scores: np.ndarray
    shares: np.ndarray
    total_reward: float
    residue: float = 0.0
    residue_policy: str = 'highest'

    def __post_init__(self):
        """Check reward conservation"""
        check = validate_reward_conservation(self.rewards, self.total_reward)
        if not check.is_valid:
            logger.warning(f"⚠️ {check.error}")

    @property
    def n_nodes(self) -> int:
        return len(self.rewards)


class RewardAllocator:
    """
    Proportional reward allocation

    Parameters:
    -----------
    residue_policy : str
        'highest' (default) or 'none'
    """

    def __init__(self, residue_policy: str = 'highest'):
        if residue_policy not in RESIDUE_POLICIES:
            raise ValueError(
                f"Unknown residue policy '{residue_policy}', "
                f"expected one of {RESIDUE_POLICIES}"
            )
        self.residue_policy = residue_policy

    def distribute(
        self,
        scores: Union[RankingResult, np.ndarray, list],
        total_reward: float = 1.0
    ) -> RewardDistribution:
        """
        Split `total_reward` proportionally to `scores`

        Parameters:
        -----------
        scores : RankingResult or array-like
            Non-negative, finite score per node
        total_reward : float
            Non-negative amount to distribute (default: 1)

        Returns:
        --------
        RewardDistribution

        Raises:
        -------
        ValueError : negative/NaN/infinite scores or negative total_reward
        DegenerateDistribution : scores sum to zero (or there are no nodes)
        """
        if isinstance(scores, RankingResult):
            scores = scores.scores
        scores = np.asarray(scores, dtype=float)

        if np.isnan(scores).any():
            raise ValueError("Scores contain NaN values")
        if np.isinf(scores).any():
            raise ValueError("Scores contain infinite values")
        if (scores < 0).any():
            raise ValueError("Scores must be non-negative")
        if not np.isfinite(total_reward) or total_reward < 0:
            raise ValueError(f"total_reward must be a non-negative number, got {total_reward}")

        total_score = float(np.sum(scores))
        if len(scores) == 0 or total_score == 0:
            raise DegenerateDistribution(total_score, len(scores))

        shares = scores / total_score
        rewards = shares * total_reward
        residue = float(total_reward - np.sum(rewards))

        if self.residue_policy == 'highest' and residue != 0.0:
            # argmax returns the first maximum, i.e. the lowest node ID on ties
            top = int(np.argmax(scores))
            rewards[top] = max(0.0, rewards[top] + residue)

        logger.debug(
            f"Distributed {total_reward} over {len(scores)} nodes "
            f"(residue {residue:.3e}, policy {self.residue_policy})"
        )
        return RewardDistribution(
            rewards=rewards,
            scores=scores,
            shares=shares,
            total_reward=float(total_reward),
            residue=residue,
            residue_policy=self.residue_policy
        )
