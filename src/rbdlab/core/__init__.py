"""Mechanism state, kinematics and dynamics algorithms."""

from .dynamics import (
    DynamicsResult,
    constraint_jacobian_and_bias_into,
    dynamics,
    dynamics_bias,
    dynamics_bias_into,
    forward_dynamics,
    inverse_dynamics,
    inverse_dynamics_into,
    mass_matrix,
    mass_matrix_into,
)
from .kinematics import (
    center_of_mass,
    geometric_jacobian,
    geometric_jacobian_into,
    gravitational_potential_energy,
    kinetic_energy,
    momentum,
    point_velocity,
    relative_acceleration,
    spatial_acceleration,
)
from .state import CacheState, MechanismState

__all__ = [
    "MechanismState",
    "CacheState",
    "center_of_mass",
    "geometric_jacobian",
    "geometric_jacobian_into",
    "point_velocity",
    "momentum",
    "kinetic_energy",
    "gravitational_potential_energy",
    "spatial_acceleration",
    "relative_acceleration",
    "mass_matrix",
    "mass_matrix_into",
    "inverse_dynamics",
    "inverse_dynamics_into",
    "dynamics_bias",
    "dynamics_bias_into",
    "constraint_jacobian_and_bias_into",
    "DynamicsResult",
    "dynamics",
    "forward_dynamics",
]
