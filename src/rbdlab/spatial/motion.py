"""
Spatial motion quantities: twists, spatial accelerations and Jacobians.

A twist is the spatial velocity of a ``body`` frame relative to a ``base``
frame, with coordinates expressed in a third ``frame``. Twists chain like
relative velocities::

    Twist(a, b, f) + Twist(b, c, f) == Twist(a, c, f)

Negating a twist swaps its body and base. Adding twists expressed in
different frames, or twists that do not share an intermediate frame, raises
``FrameMismatch``.
"""
from __future__ import annotations

import numpy as np

from rbdlab.errors import FrameMismatch, check_frame
from rbdlab.spatial.frames import CartesianFrame3D
from rbdlab.spatial.transform import FreeVector3D, Point3D, Transform3D
from rbdlab.spatial.util import cross, skew
from rbdlab.utils.scalar import as_array

Array = np.ndarray


def _chain(a_body, a_base, b_body, b_base, kind: str):
    """Resulting (body, base) of adding two relative motions."""
    if a_base is b_body:
        return a_body, b_base
    if b_base is a_body:
        return b_body, a_base
    raise FrameMismatch(
        f"Cannot add {kind} of {a_body} w.r.t. {a_base} and {kind} of "
        f"{b_body} w.r.t. {b_base}: no shared intermediate frame"
    )


class _MotionVector:
    """Shared implementation of Twist and SpatialAcceleration."""
    __slots__ = ("body", "base", "frame", "angular", "linear")

    def __init__(
        self,
        body: CartesianFrame3D,
        base: CartesianFrame3D,
        frame: CartesianFrame3D,
        angular,
        linear,
    ) -> None:
        self.body = body
        self.base = base
        self.frame = frame
        self.angular = as_array(angular)
        self.linear = as_array(linear)
        if self.angular.shape != (3,) or self.linear.shape != (3,):
            raise ValueError(
                f"{type(self).__name__} parts must have shape (3,), got "
                f"{self.angular.shape} and {self.linear.shape}"
            )

    @classmethod
    def zero(cls, body, base, frame, dtype=np.float64):
        return cls(body, base, frame, np.zeros(3, dtype=dtype), np.zeros(3, dtype=dtype))

    @classmethod
    def from_vector(cls, body, base, frame, vec: Array):
        """Build from a 6-vector ordered [angular; linear]."""
        vec = as_array(vec)
        return cls(body, base, frame, vec[:3], vec[3:])

    def as_vector(self) -> Array:
        return np.concatenate([self.angular, self.linear])

    def transform(self, tf: Transform3D):
        """Change the frame of expression (adjoint action of ``tf``)."""
        check_frame(tf.from_frame, self.frame, type(self).__name__)
        angular = tf.rotation @ self.angular
        linear = tf.rotation @ self.linear + cross(tf.translation, angular)
        return type(self)(self.body, self.base, tf.to_frame, angular, linear)

    def __add__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        check_frame(self.frame, other.frame, f"{type(self).__name__} operand")
        body, base = _chain(self.body, self.base, other.body, other.base, type(self).__name__)
        return type(self)(body, base, self.frame,
                          self.angular + other.angular, self.linear + other.linear)

    def __neg__(self):
        return type(self)(self.base, self.body, self.frame, -self.angular, -self.linear)

    def __sub__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self + (-other)

    def isapprox(self, other, atol: float = 1e-10) -> bool:
        return (type(other) is type(self)
                and self.body is other.body and self.base is other.base
                and self.frame is other.frame
                and np.allclose(self.as_vector().astype(float),
                                other.as_vector().astype(float), atol=atol))

    def __repr__(self) -> str:
        return (f"{type(self).__name__} of {self.body} w.r.t. {self.base} in {self.frame}:\n"
                f"  angular: {self.angular.tolist()}, linear: {self.linear.tolist()}")


class Twist(_MotionVector):
    """
    Spatial velocity of ``body`` relative to ``base``, expressed in ``frame``.

    ``linear`` is the velocity of the point of ``body`` that coincides with the
    origin of ``frame``.
    """
    __slots__ = ()

    def point_velocity(self, point: Point3D) -> FreeVector3D:
        """Velocity of a point rigidly attached to ``body``."""
        check_frame(self.frame, point.frame, "Point3D")
        return FreeVector3D(self.frame, self.linear + cross(self.angular, point.v))


class SpatialAcceleration(_MotionVector):
    """
    Spatial acceleration of ``body`` relative to ``base``, expressed in ``frame``.

    Defined as the time derivative of the twist coordinates in an inertial
    frame, so accelerations of a chain add like twists.
    """
    __slots__ = ()


def point_velocity(twist: Twist, point: Point3D) -> FreeVector3D:
    return twist.point_velocity(point)


class GeometricJacobian:
    """
    Linear map from a velocity vector to a twist.

    Columns are spatial motion vectors ordered [angular; linear]; joint motion
    subspaces use the same type with ``body = frame_after`` and
    ``base = frame_before``.

    Parameters
    ----------
    body, base, frame : CartesianFrame3D
        Twist annotations of the columns
    angular : array_like
        (3, n) angular parts
    linear : array_like
        (3, n) linear parts
    """
    __slots__ = ("body", "base", "frame", "angular", "linear")

    def __init__(self, body, base, frame, angular, linear) -> None:
        self.body = body
        self.base = base
        self.frame = frame
        self.angular = as_array(angular).reshape(3, -1)
        self.linear = as_array(linear).reshape(3, -1)
        if self.angular.shape != self.linear.shape:
            raise ValueError(
                f"Jacobian parts must have equal shape, got {self.angular.shape} "
                f"and {self.linear.shape}"
            )

    @classmethod
    def from_matrix(cls, body, base, frame, mat: Array) -> GeometricJacobian:
        mat = as_array(mat).reshape(6, -1)
        return cls(body, base, frame, mat[:3], mat[3:])

    @property
    def num_cols(self) -> int:
        return self.angular.shape[1]

    def to_matrix(self) -> Array:
        return np.vstack([self.angular, self.linear])

    def transform(self, tf: Transform3D) -> GeometricJacobian:
        check_frame(tf.from_frame, self.frame, "GeometricJacobian")
        angular = tf.rotation @ self.angular
        linear = tf.rotation @ self.linear + skew(tf.translation) @ angular
        return GeometricJacobian(self.body, self.base, tf.to_frame, angular, linear)

    def __matmul__(self, v) -> Twist:
        v = as_array(v)
        if v.shape != (self.num_cols,):
            raise ValueError(f"Velocity must have shape ({self.num_cols},), got {v.shape}")
        return Twist(self.body, self.base, self.frame, self.angular @ v, self.linear @ v)

    def __add__(self, other):
        if not isinstance(other, GeometricJacobian):
            return NotImplemented
        check_frame(self.frame, other.frame, "GeometricJacobian operand")
        body, base = _chain(self.body, self.base, other.body, other.base, "Jacobian")
        return GeometricJacobian(body, base, self.frame,
                                 self.angular + other.angular, self.linear + other.linear)

    def __neg__(self) -> GeometricJacobian:
        return GeometricJacobian(self.base, self.body, self.frame, -self.angular, -self.linear)

    def __sub__(self, other):
        if not isinstance(other, GeometricJacobian):
            return NotImplemented
        return self + (-other)

    def __repr__(self) -> str:
        return (f"GeometricJacobian of {self.body} w.r.t. {self.base} in {self.frame} "
                f"({self.num_cols} columns)")
