"""
Spatial inertia of a rigid body.

A ``SpatialInertia`` stores, for the frame it is expressed in,

- ``moment``: the 3x3 rotational inertia about the frame origin
- ``cross_part``: ``mass * com`` with ``com`` the center of mass position
- ``mass``

The 6x6 matrix form acting on ``[angular; linear]`` twists is::

    [[moment,          skew(cross_part)],
     [skew(cross_part).T,  mass * I    ]]

Storing the first moment of mass instead of the center of mass keeps the
representation valid (and additive) for zero-mass bodies.
"""
from __future__ import annotations

import numpy as np

from rbdlab.errors import check_frame
from rbdlab.spatial.force import Momentum, Wrench
from rbdlab.spatial.frames import CartesianFrame3D
from rbdlab.spatial.motion import SpatialAcceleration, Twist
from rbdlab.spatial.transform import Point3D, Transform3D
from rbdlab.spatial.util import cross, skew
from rbdlab.utils.scalar import as_array, is_symbolic
from rbdlab.utils.validation import validate_inertia_tensor, validate_mass

Array = np.ndarray


class SpatialInertia:
    """
    Mass distribution of a rigid body, expressed in ``frame``.

    Parameters
    ----------
    frame : CartesianFrame3D
        Frame the inertia is expressed in
    moment : array_like
        3x3 rotational inertia about the origin of ``frame``
    cross_part : array_like
        Mass times center of mass position, shape (3,)
    mass : float | sympy.Expr
        Total mass
    """
    __slots__ = ("frame", "moment", "cross_part", "mass")

    def __init__(self, frame: CartesianFrame3D, moment, cross_part, mass) -> None:
        self.frame = frame
        self.moment = as_array(moment)
        self.cross_part = as_array(cross_part)
        if self.cross_part.shape != (3,):
            raise ValueError(f"cross_part must have shape (3,), got {self.cross_part.shape}")
        validate_inertia_tensor(self.moment)
        validate_mass(mass)
        self.mass = mass

    @classmethod
    def _unchecked(cls, frame, moment, cross_part, mass) -> SpatialInertia:
        # Derived inertias are valid by construction; skip the eigenvalue check
        inertia = object.__new__(cls)
        inertia.frame = frame
        inertia.moment = moment
        inertia.cross_part = cross_part
        inertia.mass = mass
        return inertia

    @classmethod
    def from_com(cls, frame: CartesianFrame3D, mass, com, moment_about_com=None) -> SpatialInertia:
        """
        Build from mass properties given about the center of mass.

        ``moment_about_com`` is expressed with axes of ``frame`` and defaults
        to zero (point mass). The moment about the frame origin follows from
        the parallel axis theorem: ``J = J_c - m [c]x [c]x``.
        """
        c = as_array(com)
        if moment_about_com is None:
            moment_about_com = np.zeros((3, 3), dtype=c.dtype)
        Jc = as_array(moment_about_com)
        C = skew(c)
        return cls(frame, Jc - mass * (C @ C), mass * c, mass)

    @classmethod
    def zero(cls, frame: CartesianFrame3D, dtype=np.float64) -> SpatialInertia:
        return cls(frame, np.zeros((3, 3), dtype=dtype), np.zeros(3, dtype=dtype),
                   np.zeros((), dtype=dtype)[()])

    def center_of_mass(self) -> Point3D:
        """Center of mass; undefined for massless inertias."""
        if not is_symbolic(self.mass) and self.mass == 0:
            raise ZeroDivisionError("Center of mass of a massless inertia is undefined")
        return Point3D(self.frame, self.cross_part / self.mass)

    def to_matrix(self) -> Array:
        C = skew(self.cross_part)
        dtype = np.result_type(self.moment, self.cross_part)
        return np.block([[self.moment, C], [C.T, self.mass * np.eye(3, dtype=dtype)]])

    def transform(self, tf: Transform3D) -> SpatialInertia:
        """
        Express the inertia in ``tf.to_frame``.

        With ``c = R mc`` and translation ``p``:
        ``J' = R J R^T - [c]x[p]x - [p]x[c]x - m [p]x[p]x`` and
        ``mc' = c + m p``.
        """
        check_frame(tf.from_frame, self.frame, "SpatialInertia")
        R, p, m = tf.rotation, tf.translation, self.mass
        c = R @ self.cross_part
        P = skew(p)
        Cx = skew(c)
        J = R @ self.moment @ R.T - Cx @ P - P @ Cx - m * (P @ P)
        return SpatialInertia._unchecked(tf.to_frame, J, c + m * p, m)

    def __add__(self, other):
        if not isinstance(other, SpatialInertia):
            return NotImplemented
        check_frame(self.frame, other.frame, "SpatialInertia operand")
        return SpatialInertia._unchecked(self.frame, self.moment + other.moment,
                                         self.cross_part + other.cross_part,
                                         self.mass + other.mass)

    def __mul__(self, twist):
        if not isinstance(twist, Twist):
            return NotImplemented
        check_frame(self.frame, twist.frame, "Twist")
        w, v = twist.angular, twist.linear
        angular = self.moment @ w + cross(self.cross_part, v)
        linear = self.mass * v - cross(self.cross_part, w)
        return Momentum(self.frame, angular, linear)

    def isapprox(self, other: SpatialInertia, atol: float = 1e-10) -> bool:
        return (isinstance(other, SpatialInertia) and self.frame is other.frame
                and np.allclose(self.to_matrix().astype(float),
                                other.to_matrix().astype(float), atol=atol))

    def __repr__(self) -> str:
        return (f"SpatialInertia in {self.frame}: mass={self.mass}, "
                f"cross_part={self.cross_part.tolist()}, moment={self.moment.tolist()}")


def kinetic_energy(inertia: SpatialInertia, twist: Twist):
    """0.5 * twist^T I twist."""
    momentum = inertia * twist
    return (momentum.angular @ twist.angular + momentum.linear @ twist.linear) / 2


def newton_euler(inertia: SpatialInertia, accel: SpatialAcceleration, twist: Twist) -> Wrench:
    """
    Net wrench on a body: ``I a + v x* (I v)``.

    ``accel`` and ``twist`` must both be relative to an inertial base and
    expressed in the frame of ``inertia``.
    """
    check_frame(inertia.frame, accel.frame, "SpatialAcceleration")
    check_frame(inertia.frame, twist.frame, "Twist")
    w, v = twist.angular, twist.linear
    Ia = inertia.to_matrix() @ accel.as_vector()
    h = inertia * twist
    angular = Ia[:3] + cross(w, h.angular) + cross(v, h.linear)
    linear = Ia[3:] + cross(w, h.linear)
    return Wrench(inertia.frame, angular, linear)
