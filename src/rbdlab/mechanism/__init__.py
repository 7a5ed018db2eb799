"""Mechanism model: rigid bodies, joints and kinematic trees."""

from .body import RigidBody
from .joint import Joint
from .joint_types import (
    Fixed,
    JointType,
    Prismatic,
    QuaternionFloating,
    Revolute,
    SPQuatFloating,
)
from .mechanism import DEFAULT_GRAVITY, Mechanism
from .modification import MaximalCoordinates, maximal_coordinates, remove_fixed_joints, submechanism

__all__ = [
    "RigidBody",
    "Joint",
    "JointType",
    "Revolute",
    "Prismatic",
    "Fixed",
    "QuaternionFloating",
    "SPQuatFloating",
    "Mechanism",
    "DEFAULT_GRAVITY",
    "MaximalCoordinates",
    "maximal_coordinates",
    "remove_fixed_joints",
    "submechanism",
]
