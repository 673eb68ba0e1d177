"""
Utilities package for FBAS influence analysis.

This package contains utility modules for:
- Config: engine parameters loaded from YAML
- Logging: CLI logging setup and batch-run tracking
- Metrics: approximation errors and inequality measures
- Validation: structural checks of rankings and rewards
- Parallel: process-pool helper for partitioned work
"""

from .config import AnalysisConfig, BatchConfig, load_config, load_batch_config
from .logging_utils import ExperimentLogger, setup_logging
from .metrics import (
    approximation_errors,
    gini_coefficient,
    normalized_entropy
)

__all__ = [
    'AnalysisConfig',
    'BatchConfig',
    'load_config',
    'load_batch_config',
    'ExperimentLogger',
    'setup_logging',
    'approximation_errors',
    'gini_coefficient',
    'normalized_entropy'
]
