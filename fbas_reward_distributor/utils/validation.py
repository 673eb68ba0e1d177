"""
Validation utilities for rankings and reward distributions
"""
import numpy as np
from typing import Any, Dict, Iterable, List, Optional
from dataclasses import dataclass
import logging

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Result of a validation check"""
    is_valid: bool
    error: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


class RankingValidator:
    """
    Validates structural properties of a score vector
    """

    def __init__(self, tolerance: float = 1e-6):
        self.tolerance = tolerance

    def validate_normalization(self, scores: np.ndarray) -> ValidationResult:
        """
        Validate that scores sum to 1 (or are all zero)

        Args:
            scores: Score per node

        Returns:
            ValidationResult with validation status
        """
        total = float(np.sum(scores))
        if total == 0.0 or abs(total - 1.0) <= self.tolerance:
            return ValidationResult(is_valid=True, details={'total': total})

        return ValidationResult(
            is_valid=False,
            error=f"Normalization violation: Σscore={total:.6f} ≠ 1",
            details={'total': total}
        )

    def validate_non_negativity(self, scores: np.ndarray) -> ValidationResult:
        """
        Validate that every score is non-negative

        Args:
            scores: Score per node

        Returns:
            ValidationResult with validation status
        """
        negative = np.flatnonzero(scores < -self.tolerance)
        if len(negative) == 0:
            return ValidationResult(is_valid=True)

        return ValidationResult(
            is_valid=False,
            error=f"Negative scores for nodes {negative.tolist()}",
            details={'nodes': negative.tolist()}
        )

    def validate_null_players(
        self,
        scores: np.ndarray,
        players: Iterable[int]
    ) -> ValidationResult:
        """
        Validate that nodes outside the player set score exactly 0

        Args:
            scores: Power index per node
            players: Node IDs that take part in the game (the top tier)

        Returns:
            ValidationResult with validation status
        """
        outside = np.ones(len(scores), dtype=bool)
        outside[list(players)] = False
        offenders = np.flatnonzero(outside & (scores != 0))
        if len(offenders) == 0:
            return ValidationResult(is_valid=True)

        return ValidationResult(
            is_valid=False,
            error=f"Null players with non-zero power index: {offenders.tolist()}",
            details={'nodes': offenders.tolist()}
        )

    def validate_all(
        self,
        scores: np.ndarray,
        players: Optional[Iterable[int]] = None
    ) -> List[ValidationResult]:
        """Run every applicable check and log the failures"""
        results = [
            self.validate_normalization(scores),
            self.validate_non_negativity(scores),
        ]
        if players is not None:
            results.append(self.validate_null_players(scores, players))

        for result in results:
            if not result.is_valid:
                logger.warning(f"⚠️ {result.error}")
        return results


def validate_reward_conservation(
    rewards: np.ndarray,
    total_reward: float,
    tolerance: float = 1e-9
) -> ValidationResult:
    """
    Validate Σ reward = total_reward and reward ≥ 0

    Args:
        rewards: Reward per node
        total_reward: Requested total
        tolerance: Relative tolerance on the total

    Returns:
        ValidationResult with validation status
    """
    distributed = float(np.sum(rewards))
    details = {'distributed': distributed, 'total_reward': total_reward}

    if (np.asarray(rewards) < 0).any():
        return ValidationResult(
            is_valid=False, error="Negative rewards", details=details
        )

    if abs(distributed - total_reward) > tolerance * max(1.0, abs(total_reward)):
        return ValidationResult(
            is_valid=False,
            error=f"Conservation violation: Σreward={distributed:.12f} ≠ {total_reward}",
            details=details
        )

    return ValidationResult(is_valid=True, details=details)
