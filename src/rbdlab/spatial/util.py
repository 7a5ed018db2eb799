"""
Low-level spatial algebra on raw arrays.

Spatial motion and force vectors are ordered ``[angular; linear]``. Every
function here works on both float and object (SymPy) arrays.
"""
from __future__ import annotations

import numpy as np
from numpy.typing import NDArray
from scipy.spatial.transform import Rotation as ScR

from rbdlab.utils import scalar

Array = np.ndarray

AXIS_EPSILON = 1e-12


def skew(v: Array) -> Array:
    """
    Skew-symmetric matrix S(v) s.t. S(v) @ w = v × w.
    v: (3,) -> (3,3)
    """
    vx, vy, vz = v
    z = vx * 0
    return np.array([
        [z, -vz, vy],
        [vz, z, -vx],
        [-vy, vx, z],
    ])


def cross(a: Array, b: Array) -> Array:
    """3D cross product that also works on object arrays."""
    return np.array([
        a[1] * b[2] - a[2] * b[1],
        a[2] * b[0] - a[0] * b[2],
        a[0] * b[1] - a[1] * b[0],
    ])


def motion_cross(v: Array, m: Array) -> Array:
    """
    Spatial motion cross product ``v × m`` (Lie bracket of se(3)).

    For 6-vectors v = [ω; u] and m = [ω'; u']:
        v × m = [ω × ω'; ω × u' + u × ω']
    """
    w, u = v[:3], v[3:]
    return np.concatenate([cross(w, m[:3]), cross(w, m[3:]) + cross(u, m[:3])])


def force_cross(v: Array, f: Array) -> Array:
    """
    Spatial force cross product ``v ×* f``.

    For v = [ω; u] and f = [n; f]:
        v ×* f = [ω × n + u × f; ω × f]
    """
    w, u = v[:3], v[3:]
    return np.concatenate([cross(w, f[:3]) + cross(u, f[3:]), cross(w, f[3:])])


def motion_transform_matrix(R: Array, p: Array) -> Array:
    """
    6x6 adjoint of the rigid transform (R, p) acting on motion vectors.

        [ω'; v'] = [[R, 0], [[p]R, R]] [ω; v]
    """
    pR = skew(p) @ R
    return np.block([[R, np.zeros_like(R)], [pR, R]])


def force_transform_matrix(R: Array, p: Array) -> Array:
    """
    6x6 transform of the rigid transform (R, p) acting on force vectors.

        [n'; f'] = [[R, [p]R], [0, R]] [n; f]
    """
    pR = skew(p) @ R
    return np.block([[R, pR], [np.zeros_like(R), R]])


def normalize_axis(axis) -> NDArray[np.float64]:
    """Return ``axis`` as a float unit vector, rejecting zero-length axes."""
    a = np.asarray(axis, dtype=np.float64).ravel()
    if a.shape != (3,):
        raise ValueError(f"Axis must have 3 components, got shape {a.shape}")
    n = np.linalg.norm(a)
    if n < AXIS_EPSILON:
        raise ValueError("Axis must have non-zero length")
    return a / n


def rotation_from_axis_angle(axis: Array, theta) -> Array:
    """
    Rodrigues' formula R = I + sin(θ) K + (1 - cos(θ)) K² for a unit axis.

    ``theta`` may be a float or a SymPy expression.
    """
    K = skew(axis)
    s = scalar.sin(theta)
    c = scalar.cos(theta)
    return np.eye(3) + s * K + (1 - c) * (K @ K)


def rotation_from_quaternion(w, x, y, z) -> Array:
    """
    Rotation matrix of the quaternion (w, x, y, z).

    The quaternion does not have to be normalized: the formula divides by its
    squared norm, so any non-zero multiple gives the same rotation.
    """
    s = 2 / (w * w + x * x + y * y + z * z)
    return np.array([
        [1 - s * (y * y + z * z), s * (x * y - w * z), s * (x * z + w * y)],
        [s * (x * y + w * z), 1 - s * (x * x + z * z), s * (y * z - w * x)],
        [s * (x * z - w * y), s * (y * z + w * x), 1 - s * (x * x + y * y)],
    ])


def quaternion_from_spquat(s: Array) -> tuple:
    """Unit quaternion (w, x, y, z) of a stereographic-projection quaternion."""
    n2 = s[0] * s[0] + s[1] * s[1] + s[2] * s[2]
    d = 1 + n2
    return (1 - n2) / d, 2 * s[0] / d, 2 * s[1] / d, 2 * s[2] / d


def rotation_from_spquat(s: Array) -> Array:
    """
    Rotation matrix of a stereographic-projection quaternion.

    The parametrization is rational in ``s`` (no square roots or
    trigonometry), which keeps symbolic expressions compact.
    """
    return rotation_from_quaternion(*quaternion_from_spquat(s))


def quaternion_from_rotation(R: Array) -> NDArray[np.float64]:
    """
    Unit quaternion (w, x, y, z) with w >= 0 of a numeric rotation matrix.

    Uses SciPy, which returns scalar-last quaternions.
    """
    x, y, z, w = ScR.from_matrix(np.asarray(R, dtype=np.float64)).as_quat()
    q = np.array([w, x, y, z], dtype=np.float64)
    return -q if w < 0 else q


def spquat_from_rotation(R: Array) -> NDArray[np.float64]:
    """Stereographic-projection quaternion of a numeric rotation matrix."""
    q = quaternion_from_rotation(R)
    return q[1:] / (1.0 + q[0])


def rotation_from_rpy(rpy) -> NDArray[np.float64]:
    """
    Rotation matrix for fixed-axis roll, pitch, yaw (URDF convention).

    Combined rotation: R = R_z(yaw) @ R_y(pitch) @ R_x(roll)
    """
    return ScR.from_euler("xyz", np.asarray(rpy, dtype=np.float64)).as_matrix()


def orthonormal_complement(axis: NDArray[np.float64]) -> NDArray[np.float64]:
    """
    Two unit vectors orthogonal to ``axis`` and to each other, as columns (3, 2).
    """
    a = normalize_axis(axis)
    # Cross with the coordinate axis least aligned with `a`
    e = np.zeros(3)
    e[np.argmin(np.abs(a))] = 1.0
    n1 = np.cross(a, e)
    n1 /= np.linalg.norm(n1)
    n2 = np.cross(a, n1)
    return np.column_stack([n1, n2])
