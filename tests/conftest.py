import os
import sys

import numpy as np
import pytest

# Get the path to the project root (one level up from 'tests')
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
src_path = os.path.join(project_root, 'src')

# Add 'src' to sys.path
sys.path.insert(0, src_path)

from rbdlab.mechanism import Fixed, Prismatic, QuaternionFloating, Revolute, SPQuatFloating  # noqa: E402
from rbdlab.models import double_pendulum, rand_tree_mechanism  # noqa: E402

DATA_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "data")

# Joint types exercised by the random-mechanism tests
ALL_JOINT_TYPES = [
    Revolute, Prismatic, Fixed, QuaternionFloating, SPQuatFloating,
    Revolute, Revolute, Prismatic, Fixed, Revolute,
]


@pytest.fixture
def rng():
    """Seeded generator so failures are reproducible."""
    return np.random.default_rng(42)


@pytest.fixture
def pendulum():
    """Numeric double pendulum with unit links."""
    return double_pendulum()


@pytest.fixture
def random_tree(rng):
    """Random tree with every joint type."""
    return rand_tree_mechanism(ALL_JOINT_TYPES, rng)


@pytest.fixture
def urdf_path():
    return os.path.join(DATA_DIR, "doublependulum.urdf")
