# =============================================================================
# FILE: fbas_reward_distributor/modules/fbas_io.py
"""
Topology I/O - stellarbeat.org "nodes" JSON to Fbas

Input: a JSON list of node records

    {"publicKey": "GA...", "name": "...", "active": true,
     "quorumSet": {"threshold": 2, "validators": ["GA...", ...],
                   "innerQuorumSets": [{...}, ...]}}

Node IDs are record indices. `innerQuorumSets` may be missing and
`quorumSet` may be null; an empty quorum set record (threshold 0, no members)
means the node declares no quorum set.
"""
# =============================================================================

from pathlib import Path
from typing import Any, Dict, List, Optional, Union
import json
import logging
import sys

from .fbas import Fbas, Node, QuorumSet
from ..exceptions import InvalidTopology

logger = logging.getLogger(__name__)


def _parse_threshold(raw: Dict[str, Any], node_id: int) -> int:
    threshold = raw.get('threshold', 0)
    if isinstance(threshold, bool) or not isinstance(threshold, int):
        raise InvalidTopology(
            f"quorum set threshold must be an integer, got {threshold!r}",
            node_id=node_id
        )
    return threshold


def _parse_quorum_set(
    raw: Dict[str, Any],
    key_to_id: Dict[str, int],
    node_id: int
) -> QuorumSet:
    if not isinstance(raw, dict):
        raise InvalidTopology(f"quorum set must be an object, got {raw!r}", node_id=node_id)

    validators = []
    for public_key in raw.get('validators') or []:
        if public_key not in key_to_id:
            raise InvalidTopology(
                f"quorum set references unknown validator '{public_key}'",
                node_id=node_id
            )
        validators.append(key_to_id[public_key])

    return QuorumSet(
        threshold=_parse_threshold(raw, node_id),
        validators=tuple(validators),
        inner_quorum_sets=tuple(
            _parse_quorum_set(inner, key_to_id, node_id)
            for inner in raw.get('innerQuorumSets') or []
        )
    )


def _is_empty_record(raw: Dict[str, Any]) -> bool:
    return (
        raw.get('threshold', 0) == 0
        and not raw.get('validators')
        and not raw.get('innerQuorumSets')
    )


def parse_fbas(records: List[Dict[str, Any]], ignore_inactive: bool = False) -> Fbas:
    """
    Build a validated Fbas from parsed node records

    Parameters:
    -----------
    records : list of dict
        stellarbeat-style node records
    ignore_inactive : bool
        Return the active FBAS (inactive nodes and references removed)

    Raises:
    -------
    InvalidTopology : malformed records, duplicate public keys, unknown
        validators or invalid thresholds
    """
    if not isinstance(records, list):
        raise InvalidTopology(
            f"FBAS description must be a list of node records, got {type(records).__name__}"
        )

    key_to_id: Dict[str, int] = {}
    for node_id, record in enumerate(records):
        if not isinstance(record, dict):
            raise InvalidTopology(f"node record must be an object, got {record!r}", node_id=node_id)
        public_key = record.get('publicKey')
        if public_key is None:
            continue
        if public_key in key_to_id:
            raise InvalidTopology(
                f"duplicate public key '{public_key}' (first used by node "
                f"{key_to_id[public_key]})",
                node_id=node_id
            )
        key_to_id[public_key] = node_id

    nodes = []
    for node_id, record in enumerate(records):
        raw_quorum_set = record.get('quorumSet')
        if raw_quorum_set is None or (
            isinstance(raw_quorum_set, dict) and _is_empty_record(raw_quorum_set)
        ):
            quorum_set = None
        else:
            quorum_set = _parse_quorum_set(raw_quorum_set, key_to_id, node_id)

        nodes.append(Node(
            node_id=node_id,
            quorum_set=quorum_set,
            public_key=record.get('publicKey'),
            name=record.get('name'),
            active=bool(record.get('active', True))
        ))

    fbas = Fbas(nodes)
    logger.info(f"Loaded FBAS with {len(fbas)} nodes")

    if ignore_inactive:
        fbas = fbas.filter_active()
    return fbas


def fbas_from_json_str(text: str, ignore_inactive: bool = False) -> Fbas:
    """Parse a JSON document into a validated Fbas"""
    try:
        records = json.loads(text)
    except json.JSONDecodeError as e:
        raise InvalidTopology(f"malformed FBAS JSON: {e}") from e
    return parse_fbas(records, ignore_inactive=ignore_inactive)


def load_fbas(
    nodes_path: Optional[Union[str, Path]] = None,
    ignore_inactive: bool = False
) -> Fbas:
    """
    Load an FBAS from a JSON file, or from STDIN when no path is given
    """
    if nodes_path is None:
        logger.info("Reading FBAS JSON from STDIN...")
        text = sys.stdin.read()
    else:
        logger.info(f"Reading FBAS JSON from {nodes_path}...")
        with open(nodes_path, 'r') as f:
            text = f.read()
    return fbas_from_json_str(text, ignore_inactive=ignore_inactive)
