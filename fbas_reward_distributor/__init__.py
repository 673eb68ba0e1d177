"""
FBAS node influence and reward distribution.

Ranks the nodes of a Federated Byzantine Agreement System by structural
influence (NodeRank, exact / approximate Shapley-Shubik power index) and
splits a reward total proportionally to the ranking.
"""

__version__ = '0.1.0'
