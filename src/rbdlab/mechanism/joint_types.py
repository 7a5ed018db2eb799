"""
Joint types: the parametrization of the motion between two joint frames.

Each joint type maps a configuration vector ``q`` to the transform from the
joint's ``frame_after`` to its ``frame_before``, and a velocity vector ``v``
to the twist of ``frame_after`` relative to ``frame_before`` through the
motion subspace ``S(q)``:

    twist = S(q) @ v

Motion subspaces are expressed in ``frame_after`` and are constant in that
frame for every joint type defined here, so the joint-level bias
acceleration ``dS/dt @ v`` vanishes.

Axes are numeric (float) for every joint type; configuration and velocity
may be symbolic.
"""
from __future__ import annotations

import numpy as np
from numpy.typing import NDArray
from scipy.spatial.transform import Rotation as ScR

from rbdlab.spatial import CartesianFrame3D, GeometricJacobian, Transform3D, Twist, WrenchMatrix
from rbdlab.spatial.util import (
    cross,
    normalize_axis,
    orthonormal_complement,
    quaternion_from_rotation,
    rotation_from_axis_angle,
    rotation_from_quaternion,
    rotation_from_spquat,
    spquat_from_rotation,
)
from rbdlab.utils.scalar import as_array, is_symbolic
from rbdlab.utils.validation import validate_unit_quaternion

Array = np.ndarray


class JointType:
    """Abstract base for joint types."""
    num_positions: int = 0
    num_velocities: int = 0
    is_floating: bool = False

    def joint_transform(self, frame_after: CartesianFrame3D, frame_before: CartesianFrame3D, q: Array) -> Transform3D:
        raise NotImplementedError

    def motion_subspace_matrix(self, q: Array) -> Array:
        """(6, num_velocities) motion subspace in ``frame_after``."""
        raise NotImplementedError

    def constraint_wrench_matrix(self, q: Array) -> Array:
        """(6, 6 - num_velocities) constraint wrench subspace in ``frame_after``."""
        raise NotImplementedError

    def configuration_derivative(self, q: Array, v: Array) -> Array:
        return as_array(v)

    def zero_configuration(self, dtype=np.float64) -> Array:
        return np.zeros(self.num_positions, dtype=dtype)

    def rand_configuration(self, rng: np.random.Generator) -> NDArray[np.float64]:
        raise NotImplementedError

    def normalize_configuration(self, q: Array) -> None:
        """Project ``q`` back onto the configuration manifold, in place."""

    def check_configuration(self, q: Array) -> None:
        """Warn about configurations off the configuration manifold."""

    def motion_subspace(self, frame_after, frame_before, q: Array) -> GeometricJacobian:
        return GeometricJacobian.from_matrix(frame_after, frame_before, frame_after,
                                             self.motion_subspace_matrix(q))

    def constraint_wrench_subspace(self, frame_after, q: Array) -> WrenchMatrix:
        S = self.constraint_wrench_matrix(q)
        return WrenchMatrix(frame_after, S[:3], S[3:])

    def __eq__(self, other) -> bool:
        return type(self) is type(other)

    def __hash__(self) -> int:
        return hash(type(self))

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class Revolute(JointType):
    """
    Rotation about a fixed axis through the origin of both joint frames.

    Parameters
    ----------
    axis : array_like
        Rotation axis, expressed in ``frame_before`` (equal to its
        coordinates in ``frame_after``). Normalized on construction.
    """
    num_positions = 1
    num_velocities = 1

    def __init__(self, axis) -> None:
        self.axis = normalize_axis(axis)

    def joint_transform(self, frame_after, frame_before, q):
        R = rotation_from_axis_angle(self.axis, q[0])
        return Transform3D(frame_after, frame_before, R, np.zeros(3, dtype=R.dtype))

    def motion_subspace_matrix(self, q):
        return np.concatenate([self.axis, np.zeros(3)]).reshape(6, 1)

    def constraint_wrench_matrix(self, q):
        S = np.zeros((6, 5))
        S[:3, :2] = orthonormal_complement(self.axis)
        S[3:, 2:] = np.eye(3)
        return S

    def rand_configuration(self, rng):
        return rng.uniform(-np.pi, np.pi, size=1)

    def __eq__(self, other) -> bool:
        return type(self) is type(other) and np.array_equal(self.axis, other.axis)

    def __hash__(self) -> int:
        return hash((type(self), tuple(self.axis)))

    def __repr__(self) -> str:
        return f"Revolute(axis={self.axis.tolist()})"


class Prismatic(JointType):
    """
    Translation along a fixed axis.

    Parameters
    ----------
    axis : array_like
        Translation axis, expressed in ``frame_before``. Normalized on
        construction.
    """
    num_positions = 1
    num_velocities = 1

    def __init__(self, axis) -> None:
        self.axis = normalize_axis(axis)

    def joint_transform(self, frame_after, frame_before, q):
        return Transform3D(frame_after, frame_before, None, self.axis * q[0])

    def motion_subspace_matrix(self, q):
        return np.concatenate([np.zeros(3), self.axis]).reshape(6, 1)

    def constraint_wrench_matrix(self, q):
        S = np.zeros((6, 5))
        S[:3, :3] = np.eye(3)
        S[3:, 3:] = orthonormal_complement(self.axis)
        return S

    def rand_configuration(self, rng):
        return rng.uniform(-1.0, 1.0, size=1)

    def __eq__(self, other) -> bool:
        return type(self) is type(other) and np.array_equal(self.axis, other.axis)

    def __hash__(self) -> int:
        return hash((type(self), tuple(self.axis)))

    def __repr__(self) -> str:
        return f"Prismatic(axis={self.axis.tolist()})"


class Fixed(JointType):
    """Rigid connection; no configuration or velocity coordinates."""

    def joint_transform(self, frame_after, frame_before, q):
        return Transform3D(frame_after, frame_before)

    def motion_subspace_matrix(self, q):
        return np.zeros((6, 0))

    def constraint_wrench_matrix(self, q):
        return np.eye(6)

    def rand_configuration(self, rng):
        return np.zeros(0)


class _Floating(JointType):
    """
    Shared parts of the 6-DOF joint types.

    Velocity is the twist of ``frame_after`` w.r.t. ``frame_before``
    expressed in ``frame_after``, ordered [angular; linear], so the motion
    subspace is the identity.
    """
    num_velocities = 6
    is_floating = True

    def motion_subspace_matrix(self, q):
        return np.eye(6)

    def constraint_wrench_matrix(self, q):
        return np.zeros((6, 0))

    def rotation(self, q: Array) -> Array:
        raise NotImplementedError

    def translation(self, q: Array) -> Array:
        return q[-3:]

    def joint_transform(self, frame_after, frame_before, q):
        return Transform3D(frame_after, frame_before, self.rotation(q), self.translation(q))

    def velocity_from_twist(self, twist: Twist) -> Array:
        """Velocity vector for a twist of ``frame_after`` expressed in ``frame_after``."""
        return twist.as_vector()

    def configuration_from_transform(self, tf: Transform3D) -> NDArray[np.float64]:
        raise NotImplementedError

    def _linear_rate(self, q, v):
        return self.rotation(q) @ v[3:]


class QuaternionFloating(_Floating):
    """
    Free motion parametrized by a unit quaternion and a translation.

    ``q = [w, x, y, z, px, py, pz]``; the quaternion is scalar-first and
    gives the rotation from ``frame_after`` to ``frame_before``.
    """
    num_positions = 7

    def rotation(self, q):
        return rotation_from_quaternion(q[0], q[1], q[2], q[3])

    def zero_configuration(self, dtype=np.float64):
        q = np.zeros(7, dtype=dtype)
        q[0] = 1
        return q

    def configuration_derivative(self, q, v):
        # qdot = 1/2 q ⊗ (0, ω) with ω in frame_after
        w, qv = q[0], q[1:4]
        omega = v[:3]
        wdot = -(qv @ omega) / 2
        qvdot = (w * omega + cross(qv, omega)) / 2
        return np.concatenate([[wdot], qvdot, self._linear_rate(q, v)])

    def rand_configuration(self, rng):
        R = ScR.random(None, rng).as_matrix()
        return np.concatenate([quaternion_from_rotation(R), rng.standard_normal(3)])

    def normalize_configuration(self, q):
        if is_symbolic(q):
            return
        q[:4] = q[:4] / np.linalg.norm(q[:4].astype(np.float64))

    def configuration_from_transform(self, tf):
        return np.concatenate([quaternion_from_rotation(tf.rotation), tf.translation])

    def check_configuration(self, q) -> None:
        validate_unit_quaternion(q[:4])


class SPQuatFloating(_Floating):
    """
    Free motion parametrized by a stereographic-projection quaternion
    (modified Rodrigues parameters) and a translation.

    ``q = [s1, s2, s3, px, py, pz]``. Six configuration coordinates match the
    six velocity coordinates and the rotation is a rational function of
    ``s``, which keeps symbolic expressions free of square roots.
    ``|s| > 1`` is valid but redundant; ``normalize_configuration`` switches
    to the shadow parameters ``-s / |s|²`` that describe the same rotation.
    """
    num_positions = 6

    def rotation(self, q):
        return rotation_from_spquat(q[:3])

    def configuration_derivative(self, q, v):
        s = q[:3]
        omega = v[:3]
        n2 = s @ s
        sdot = ((1 - n2) * omega + 2 * cross(s, omega) + 2 * s * (s @ omega)) / 4
        return np.concatenate([sdot, self._linear_rate(q, v)])

    def rand_configuration(self, rng):
        R = ScR.random(None, rng).as_matrix()
        return np.concatenate([spquat_from_rotation(R), rng.standard_normal(3)])

    def normalize_configuration(self, q):
        if is_symbolic(q):
            return
        n2 = float(q[:3] @ q[:3])
        if n2 > 1.0:
            q[:3] = -q[:3] / n2

    def configuration_from_transform(self, tf):
        return np.concatenate([spquat_from_rotation(tf.rotation), tf.translation])
