# =============================================================================
# FILE: tests/conftest.py
"""
Shared FBAS fixtures

Most topologies are given as stellarbeat-style node records so that the
loader is exercised on the way in.
"""
import pytest

from fbas_reward_distributor.modules.fbas import Fbas, Node, QuorumSet
from fbas_reward_distributor.modules.fbas_io import parse_fbas


def flat_records(quorum_sets, inactive=()):
    """
    Node records from {node index: (threshold, [validator indices])}

    Public keys are node0..node{n-1}.
    """
    records = []
    for node_id in range(len(quorum_sets)):
        threshold, validators = quorum_sets[node_id]
        records.append({
            'publicKey': f"node{node_id}",
            'active': node_id not in inactive,
            'quorumSet': {
                'threshold': threshold,
                'validators': [f"node{v}" for v in validators],
                'innerQuorumSets': []
            }
        })
    return records


@pytest.fixture
def trivial_records():
    """3 nodes, everybody trusts everybody with threshold 2"""
    return flat_records({i: (2, [0, 1, 2]) for i in range(3)})


@pytest.fixture
def trivial_fbas(trivial_records):
    return parse_fbas(trivial_records)


@pytest.fixture
def paper_records():
    """
    Five-node game: node0 trusts all, {1, 2} and {3, 4} each form a
    quorum together with node0
    """
    return flat_records({
        0: (3, [0, 1, 2, 3, 4]),
        1: (3, [0, 1, 2]),
        2: (3, [0, 1, 2]),
        3: (3, [0, 3, 4]),
        4: (3, [0, 3, 4]),
    })


@pytest.fixture
def paper_fbas(paper_records):
    return parse_fbas(paper_records)


@pytest.fixture
def split_records():
    """Two disjoint pairs: {0, 1} and {2, 3} are both quorums"""
    return flat_records({
        0: (2, [0, 1]),
        1: (2, [0, 1]),
        2: (2, [2, 3]),
        3: (2, [2, 3]),
    })


@pytest.fixture
def split_fbas(split_records):
    return parse_fbas(split_records)


@pytest.fixture
def follower_fbas():
    """Trivial 3-node core plus node3, which trusts the core but nobody trusts"""
    return parse_fbas(flat_records({
        0: (2, [0, 1, 2]),
        1: (2, [0, 1, 2]),
        2: (2, [0, 1, 2]),
        3: (2, [0, 1, 2]),
    }))


@pytest.fixture
def nested_fbas():
    """
    Two organisations {0, 1, 2} and {3, 4, 5} as inner sets (2 of 3 each),
    node6 without a quorum set listed as a direct validator of the core, and
    node7 trusting the core while nobody trusts node7
    """
    organisations = (
        QuorumSet(threshold=2, validators=(0, 1, 2)),
        QuorumSet(threshold=2, validators=(3, 4, 5)),
    )
    core = QuorumSet(threshold=2, validators=(6,), inner_quorum_sets=organisations)
    nodes = [Node(node_id, core, public_key=f"node{node_id}") for node_id in range(6)]
    nodes.append(Node(6, None, public_key='node6'))
    nodes.append(Node(7, QuorumSet(threshold=2, validators=(0, 3)), public_key='node7'))
    return Fbas(nodes)
