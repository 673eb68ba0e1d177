# =============================================================================
# FILE: fbas_reward_distributor/utils/metrics.py
"""
Approximation-error and inequality metrics

Implements:
- Mean / median / mean-percentage absolute error of an approximation
- Gini coefficient of a score or reward vector
- Normalized Shannon entropy (0 = concentrated, 1 = equal)
"""
# =============================================================================
import numpy as np
from typing import Dict
import logging

logger = logging.getLogger(__name__)


def _check_shapes(approximation: np.ndarray, truth: np.ndarray):
    approximation = np.asarray(approximation, dtype=float)
    truth = np.asarray(truth, dtype=float)
    if approximation.shape != truth.shape:
        raise ValueError(
            f"Dimension mismatch: {approximation.shape} vs {truth.shape}"
        )
    if approximation.size == 0:
        raise ValueError("Cannot compute errors of empty vectors")
    return approximation, truth


def truncate_to_three_places(value: float) -> float:
    """Drop everything after the third decimal place"""
    return float(np.trunc(value * 1000.0) / 1000.0)


def mean_abs_error(approximation: np.ndarray, truth: np.ndarray) -> float:
    """Mean absolute error"""
    approximation, truth = _check_shapes(approximation, truth)
    return float(np.mean(np.abs(truth - approximation)))


def median_abs_error(approximation: np.ndarray, truth: np.ndarray) -> float:
    """Median absolute error (upper middle element for even lengths)"""
    approximation, truth = _check_shapes(approximation, truth)
    errors = np.sort(np.abs(approximation - truth))
    return float(errors[len(errors) // 2])


def mean_abs_pctg_error(approximation: np.ndarray, truth: np.ndarray) -> float:
    """
    Mean absolute percentage error, truncated to three decimal places

    Each error is divided by max(machine epsilon, truth) so that zero-valued
    ground truth does not divide by zero. Insensitive to a global scaling of
    both vectors.
    """
    approximation, truth = _check_shapes(approximation, truth)
    denominator = np.maximum(np.finfo(float).eps, truth)
    return truncate_to_three_places(
        float(np.mean(np.abs(truth - approximation) / denominator))
    )


def approximation_errors(approximation: np.ndarray, truth: np.ndarray) -> Dict[str, float]:
    """All three error metrics keyed by name"""
    return {
        'mean_abs_error': mean_abs_error(approximation, truth),
        'median_abs_error': median_abs_error(approximation, truth),
        'mean_abs_pctg_error': mean_abs_pctg_error(approximation, truth),
    }


def gini_coefficient(values: np.ndarray) -> float:
    """Gini coefficient (0 = perfect equality)"""
    sorted_vals = np.sort(np.asarray(values, dtype=float))
    n = len(sorted_vals)
    total = np.sum(sorted_vals)
    if n == 0 or total < 1e-12:
        return 0.0
    index = np.arange(1, n + 1)
    return float((2 * np.sum(index * sorted_vals)) / (n * total) - (n + 1) / n)


def normalized_entropy(values: np.ndarray) -> float:
    """Normalized Shannon entropy (0 = unequal, 1 = equal)"""
    values = np.asarray(values, dtype=float)
    total = np.sum(values)
    if len(values) < 2 or total < 1e-12:
        return 0.0

    probs = values / total
    probs = probs[probs > 1e-12]

    entropy = -np.sum(probs * np.log(probs))
    return float(entropy / np.log(len(values)))
