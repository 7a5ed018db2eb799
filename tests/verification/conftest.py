"""
Verification Test Suite for RBDLab.

These tests compare algorithm results against closed-form solutions and
structural identities to validate the dynamics engine implementation.

Test Categories:
- Closed form: double pendulum mass matrix, velocity products and gravity
- Properties: mass matrix definiteness, fixed-joint removal, maximal
  coordinates, configuration derivatives

References:
- Featherstone, R. "Rigid Body Dynamics Algorithms", Springer 2008
- Spong, Hutchinson, Vidyasagar, "Robot Modeling and Control", Wiley 2006
"""

import pytest

from rbdlab.models import double_pendulum


# -----------------------------------------------------------------------------
# Common Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture
def pendulum_parameters():
    """Asymmetric double pendulum so no term cancels by accident."""
    return {
        "m1": 1.3,
        "m2": 0.7,
        "l1": 1.1,
        "l2": 0.9,
        "lc1": 0.4,
        "lc2": 0.6,
        "I1": 0.05,
        "I2": 0.08,
    }


@pytest.fixture
def g():
    """Standard Earth gravity magnitude."""
    return 9.81


@pytest.fixture
def asymmetric_pendulum(pendulum_parameters):
    return double_pendulum(**pendulum_parameters)

