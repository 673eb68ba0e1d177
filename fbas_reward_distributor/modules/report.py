# =============================================================================
# FILE: fbas_reward_distributor/modules/report.py
"""
Reports - ordered (NodeId, PK, Score[, Reward]) tuples and their rendering

Rows are ordered by score descending; ties are broken by ascending node ID
so that the order is total and stable across runs.
"""
# =============================================================================

from typing import List, Optional, Sequence, Tuple, Union
import logging

import numpy as np
import pandas as pd

from .distribution import RewardDistribution
from .fbas import Fbas
from .power_index import RankingResult

logger = logging.getLogger(__name__)

NodeRanking = Tuple[int, Optional[str], float]
NodeReward = Tuple[int, Optional[str], float, float]

RANKING_HEADER = "List of Rankings as (NodeId, PK, Score):"
REWARD_HEADER = "List of Distributions as (NodeId, PK, Score, Reward):"
OUTPUT_FORMATS = ('text', 'csv', 'json')


def _ordered_ids(scores: np.ndarray) -> List[int]:
    """Node IDs by score descending, then ID ascending"""
    return sorted(range(len(scores)), key=lambda node_id: (-scores[node_id], node_id))


def create_ranking_report(
    ranking: Union[RankingResult, np.ndarray],
    fbas: Fbas,
    with_pks: bool = False
) -> List[NodeRanking]:
    """
    Ranking rows sorted by score

    Parameters:
    -----------
    ranking : RankingResult or np.ndarray
        Scores indexed by node ID of `fbas`
    fbas : Fbas
        The FBAS that was ranked (source of public keys)
    with_pks : bool
        Fill the public-key column (None otherwise)
    """
    scores = ranking.scores if isinstance(ranking, RankingResult) else np.asarray(ranking)
    return [
        (
            node_id,
            fbas.node(node_id).public_key if with_pks else None,
            float(scores[node_id])
        )
        for node_id in _ordered_ids(scores)
    ]


def create_reward_report(
    distribution: RewardDistribution,
    fbas: Fbas,
    with_pks: bool = False
) -> List[NodeReward]:
    """Reward rows sorted by score, same ordering as the ranking report"""
    return [
        (
            node_id,
            fbas.node(node_id).public_key if with_pks else None,
            float(distribution.scores[node_id]),
            float(distribution.rewards[node_id])
        )
        for node_id in _ordered_ids(distribution.scores)
    ]


def report_to_dataframe(rows: Sequence[tuple], with_rewards: bool = False) -> pd.DataFrame:
    """Tabular view of ranking or reward rows"""
    columns = ['node_id', 'public_key', 'score']
    if with_rewards:
        columns.append('reward')
    return pd.DataFrame(list(rows), columns=columns)


def format_report(
    rows: Sequence[tuple],
    output_format: str = 'text',
    with_rewards: bool = False
) -> str:
    """
    Render rows as text (header + one tuple per line), CSV or JSON records
    """
    if output_format not in OUTPUT_FORMATS:
        raise ValueError(
            f"Unknown output format '{output_format}', expected one of {OUTPUT_FORMATS}"
        )

    if output_format == 'text':
        lines = [REWARD_HEADER if with_rewards else RANKING_HEADER]
        lines.extend(repr(tuple(row)) for row in rows)
        return "\n".join(lines)

    df = report_to_dataframe(rows, with_rewards=with_rewards)
    if output_format == 'csv':
        return df.to_csv(index=False).rstrip("\n")
    return df.to_json(orient='records', indent=2)
