# =============================================================================
# FILE: fbas_reward_distributor/utils/config.py
"""
Analysis configuration: engine parameters with defaults, loadable from YAML
"""
# =============================================================================

from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union
import logging

import yaml

logger = logging.getLogger(__name__)


@dataclass
class AnalysisConfig:
    """
    Tunable parameters of the analysis engines

    Attributes:
    -----------
    damping : float
        NodeRank damping factor d, 0 <= d < 1
    tolerance : float
        NodeRank L1 convergence threshold ε
    max_iterations : int
        NodeRank iteration cap
    exact_node_limit : int
        Player count above which exact enumeration warns
    batch_size : int
        Permutations per seeded sampling batch
    workers : int
        Worker processes (1 = serial, 0 = one per CPU)
    restrict_to_top_tier : bool
        Treat nodes outside the top tier as null players in power indices
    residue_policy : str
        Reward rounding residue policy ('highest' or 'none')
    """
    damping: float = 0.85
    tolerance: float = 1e-10
    max_iterations: int = 1000
    exact_node_limit: int = 25
    batch_size: int = 1000
    workers: int = 1
    restrict_to_top_tier: bool = True
    residue_policy: str = 'highest'

    def __post_init__(self):
        if not 0.0 <= self.damping < 1.0:
            raise ValueError(f"damping must lie in [0, 1), got {self.damping}")
        if self.tolerance <= 0:
            raise ValueError(f"tolerance must be positive, got {self.tolerance}")
        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be positive, got {self.max_iterations}")
        if self.exact_node_limit < 1:
            raise ValueError(f"exact_node_limit must be positive, got {self.exact_node_limit}")
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")
        if self.workers < 0:
            raise ValueError(f"workers must be non-negative, got {self.workers}")
        if self.residue_policy not in ('highest', 'none'):
            raise ValueError(
                f"residue_policy must be 'highest' or 'none', got '{self.residue_policy}'"
            )

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> 'AnalysisConfig':
        """Build from a mapping, rejecting unknown keys"""
        known = {f.name for f in fields(cls)}
        unknown = set(values) - known
        if unknown:
            raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def with_overrides(self, **overrides) -> 'AnalysisConfig':
        """Copy with the non-None overrides applied"""
        values = self.to_dict()
        values.update({k: v for k, v in overrides.items() if v is not None})
        return AnalysisConfig.from_dict(values)


def load_config(config_path: Optional[Union[str, Path]] = None) -> AnalysisConfig:
    """
    Load analysis configuration from YAML

    Keys may sit at the top level or nested under `analysis:`. Without a
    path the defaults are returned.
    """
    if config_path is None:
        return AnalysisConfig()

    with open(config_path, 'r') as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        raise ValueError(f"Configuration root must be a mapping: {config_path}")

    values = raw.get('analysis', raw)
    config = AnalysisConfig.from_dict(values)
    logger.info(f"Loaded analysis configuration from {config_path}")
    return config


@dataclass
class BatchConfig:
    """
    Measurement sweep over synthetic topologies

    Attributes:
    -----------
    fbas_kinds : list
        Generator kinds ('mobilecoin', 'stellar', 'non_symmetric')
    min_top_tier_size, max_top_tier_size : int
        Range of top-tier sizes (inclusive)
    runs : int
        Repetitions per size
    sample_sizes : list
        Permutation counts for the approximate power index
    base_seed : int
        Seed of the first run (run k uses base_seed + k)
    check_intersection : bool
        Enumerate minimal quorums and record quorum intersection per run
    """
    fbas_kinds: List[str] = field(default_factory=lambda: ['mobilecoin'])
    min_top_tier_size: int = 1
    max_top_tier_size: int = 10
    runs: int = 10
    sample_sizes: List[int] = field(default_factory=lambda: [10, 100, 1000, 10000])
    base_seed: int = 42
    check_intersection: bool = True

    def __post_init__(self):
        if not 1 <= self.min_top_tier_size <= self.max_top_tier_size:
            raise ValueError(
                f"Invalid top-tier size range "
                f"[{self.min_top_tier_size}, {self.max_top_tier_size}]"
            )
        if self.runs < 1:
            raise ValueError(f"runs must be positive, got {self.runs}")
        if any(n < 1 for n in self.sample_sizes):
            raise ValueError(f"sample sizes must be positive, got {self.sample_sizes}")


def load_batch_config(config_path: Union[str, Path]) -> Tuple[AnalysisConfig, BatchConfig]:
    """
    Load a batch YAML with optional `analysis:` and `batch:` sections
    """
    with open(config_path, 'r') as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        raise ValueError(f"Configuration root must be a mapping: {config_path}")

    unknown = set(raw) - {'analysis', 'batch'}
    if unknown:
        raise ValueError(f"Unknown configuration sections: {sorted(unknown)}")

    analysis = AnalysisConfig.from_dict(raw.get('analysis') or {})

    batch_values = raw.get('batch') or {}
    known = {f.name for f in fields(BatchConfig)}
    unknown = set(batch_values) - known
    if unknown:
        raise ValueError(f"Unknown batch configuration keys: {sorted(unknown)}")
    batch = BatchConfig(**batch_values)

    logger.info(f"Loaded batch configuration from {config_path}")
    return analysis, batch
