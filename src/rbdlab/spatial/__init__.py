"""Frame-annotated spatial algebra value types."""

from .force import Momentum, Wrench, WrenchMatrix, dot
from .frames import CartesianFrame3D
from .inertia import SpatialInertia, kinetic_energy, newton_euler
from .motion import GeometricJacobian, SpatialAcceleration, Twist, point_velocity
from .transform import FreeVector3D, Point3D, Transform3D, transform
from .util import force_cross, motion_cross, rotation_from_axis_angle, skew

__all__ = [
    "CartesianFrame3D",
    "Transform3D",
    "Point3D",
    "FreeVector3D",
    "transform",
    "Twist",
    "SpatialAcceleration",
    "GeometricJacobian",
    "point_velocity",
    "Wrench",
    "Momentum",
    "WrenchMatrix",
    "dot",
    "SpatialInertia",
    "kinetic_energy",
    "newton_euler",
    "skew",
    "motion_cross",
    "force_cross",
    "rotation_from_axis_angle",
]
