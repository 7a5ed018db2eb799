"""
RBDLab - Rigid-body dynamics for kinematic trees and closed loops.

Core Components
---------------
Mechanism : Kinematic tree of rigid bodies and joints
MechanismState : Configuration, velocity and cached kinematics
DynamicsResult : Forward dynamics workspace and results
mass_matrix, inverse_dynamics, dynamics : Dynamics algorithms

Spatial Algebra
---------------
Transform3D, Twist, SpatialAcceleration, Wrench, Momentum, SpatialInertia,
GeometricJacobian : Frame-checked spatial quantities

The engine is generic over the scalar type: ``float64`` arrays for
numerics, ``object`` arrays of SymPy expressions for closed-form analysis.

Examples
--------
>>> from rbdlab import MechanismState, mass_matrix
>>> from rbdlab.models import double_pendulum
>>> state = MechanismState(double_pendulum())
>>> M = mass_matrix(state)
"""

__version__ = "0.1.0"

from rbdlab.core import (
    DynamicsResult,
    MechanismState,
    center_of_mass,
    dynamics,
    dynamics_bias,
    forward_dynamics,
    geometric_jacobian,
    inverse_dynamics,
    kinetic_energy,
    mass_matrix,
    momentum,
)
from rbdlab.errors import (
    DimensionMismatch,
    FrameMismatch,
    RBDError,
    SingularSystem,
    TopologyViolation,
    UnknownEntity,
)
from rbdlab.io import parse_urdf
from rbdlab.logger import CSVLogger
from rbdlab.mechanism import (
    Fixed,
    Joint,
    Mechanism,
    Prismatic,
    QuaternionFloating,
    Revolute,
    RigidBody,
    SPQuatFloating,
)
from rbdlab.spatial import (
    CartesianFrame3D,
    FreeVector3D,
    GeometricJacobian,
    Momentum,
    Point3D,
    SpatialAcceleration,
    SpatialInertia,
    Transform3D,
    Twist,
    Wrench,
)

__all__ = [
    # Version
    "__version__",
    # Spatial
    "CartesianFrame3D",
    "Transform3D",
    "Point3D",
    "FreeVector3D",
    "Twist",
    "SpatialAcceleration",
    "Wrench",
    "Momentum",
    "SpatialInertia",
    "GeometricJacobian",
    # Mechanism
    "RigidBody",
    "Joint",
    "Revolute",
    "Prismatic",
    "Fixed",
    "QuaternionFloating",
    "SPQuatFloating",
    "Mechanism",
    # State and algorithms
    "MechanismState",
    "DynamicsResult",
    "center_of_mass",
    "geometric_jacobian",
    "momentum",
    "kinetic_energy",
    "mass_matrix",
    "inverse_dynamics",
    "dynamics_bias",
    "dynamics",
    "forward_dynamics",
    # Errors
    "RBDError",
    "FrameMismatch",
    "UnknownEntity",
    "TopologyViolation",
    "DimensionMismatch",
    "SingularSystem",
    # I/O and logging
    "parse_urdf",
    "CSVLogger",
]
