"""
RBDLab Mechanism Models.

Canonical mechanisms used for verification, tutorials and property tests:
- double_pendulum: planar two-link pendulum, optionally symbolic
- rand_tree_mechanism / rand_chain_mechanism: reproducible random mechanisms
"""

from .pendulum import double_pendulum
from .random import rand_chain_mechanism, rand_tree_mechanism

__all__ = [
    "double_pendulum",
    "rand_tree_mechanism",
    "rand_chain_mechanism",
]
