"""
Spatial force quantities: wrenches, momenta and wrench subspaces.

Force vectors are ordered ``[angular; linear]`` like motion vectors. The
angular part is the torque (or angular momentum) about the origin of the
frame the quantity is expressed in.
"""
from __future__ import annotations

import numpy as np

from rbdlab.errors import check_frame
from rbdlab.spatial.frames import CartesianFrame3D
from rbdlab.spatial.motion import Twist
from rbdlab.spatial.transform import Transform3D
from rbdlab.spatial.util import cross, skew
from rbdlab.utils.scalar import as_array

Array = np.ndarray


class _ForceVector:
    """Shared implementation of Wrench and Momentum."""
    __slots__ = ("frame", "angular", "linear")

    def __init__(self, frame: CartesianFrame3D, angular, linear) -> None:
        self.frame = frame
        self.angular = as_array(angular)
        self.linear = as_array(linear)
        if self.angular.shape != (3,) or self.linear.shape != (3,):
            raise ValueError(
                f"{type(self).__name__} parts must have shape (3,), got "
                f"{self.angular.shape} and {self.linear.shape}"
            )

    @classmethod
    def zero(cls, frame: CartesianFrame3D, dtype=np.float64):
        return cls(frame, np.zeros(3, dtype=dtype), np.zeros(3, dtype=dtype))

    @classmethod
    def from_vector(cls, frame: CartesianFrame3D, vec: Array):
        vec = as_array(vec)
        return cls(frame, vec[:3], vec[3:])

    def as_vector(self) -> Array:
        return np.concatenate([self.angular, self.linear])

    def transform(self, tf: Transform3D):
        check_frame(tf.from_frame, self.frame, type(self).__name__)
        linear = tf.rotation @ self.linear
        angular = tf.rotation @ self.angular + cross(tf.translation, linear)
        return type(self)(tf.to_frame, angular, linear)

    def __add__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        check_frame(self.frame, other.frame, f"{type(self).__name__} operand")
        return type(self)(self.frame, self.angular + other.angular, self.linear + other.linear)

    def __sub__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        check_frame(self.frame, other.frame, f"{type(self).__name__} operand")
        return type(self)(self.frame, self.angular - other.angular, self.linear - other.linear)

    def __neg__(self):
        return type(self)(self.frame, -self.angular, -self.linear)

    def __mul__(self, s):
        return type(self)(self.frame, self.angular * s, self.linear * s)

    __rmul__ = __mul__

    def isapprox(self, other, atol: float = 1e-10) -> bool:
        return (type(other) is type(self) and self.frame is other.frame
                and np.allclose(self.as_vector().astype(float),
                                other.as_vector().astype(float), atol=atol))

    def __repr__(self) -> str:
        return (f"{type(self).__name__} in {self.frame}:\n"
                f"  angular: {self.angular.tolist()}, linear: {self.linear.tolist()}")


class Wrench(_ForceVector):
    """Torque about the frame origin and force, expressed in ``frame``."""
    __slots__ = ()


class Momentum(_ForceVector):
    """Angular momentum about the frame origin and linear momentum."""
    __slots__ = ()


def dot(force: _ForceVector, twist: Twist):
    """
    Pairing of a force vector with a twist.

    For a wrench this is the mechanical power; for a momentum it is twice
    the kinetic energy.
    """
    check_frame(force.frame, twist.frame, "Twist paired with force")
    return force.angular @ twist.angular + force.linear @ twist.linear


class WrenchMatrix:
    """
    Columns of spatial force vectors expressed in one frame.

    Used for joint constraint wrench subspaces: each column is a wrench the
    joint can transmit without doing work.
    """
    __slots__ = ("frame", "angular", "linear")

    def __init__(self, frame: CartesianFrame3D, angular, linear) -> None:
        self.frame = frame
        self.angular = as_array(angular).reshape(3, -1)
        self.linear = as_array(linear).reshape(3, -1)
        if self.angular.shape != self.linear.shape:
            raise ValueError(
                f"WrenchMatrix parts must have equal shape, got {self.angular.shape} "
                f"and {self.linear.shape}"
            )

    @property
    def num_cols(self) -> int:
        return self.angular.shape[1]

    def to_matrix(self) -> Array:
        return np.vstack([self.angular, self.linear])

    def transform(self, tf: Transform3D) -> WrenchMatrix:
        check_frame(tf.from_frame, self.frame, "WrenchMatrix")
        linear = tf.rotation @ self.linear
        angular = tf.rotation @ self.angular + skew(tf.translation) @ linear
        return WrenchMatrix(tf.to_frame, angular, linear)

    def __repr__(self) -> str:
        return f"WrenchMatrix in {self.frame} ({self.num_cols} columns)"
