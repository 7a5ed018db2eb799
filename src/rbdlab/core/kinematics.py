"""
Kinematic queries over a MechanismState.

Every function here is read-only with respect to the state except for
populating its cache. Results are expressed in the root frame.
"""
from __future__ import annotations

from typing import Iterable

import numpy as np

from rbdlab.core.state import MechanismState
from rbdlab.errors import DimensionMismatch
from rbdlab.mechanism import RigidBody
from rbdlab.spatial import (
    FreeVector3D,
    GeometricJacobian,
    Momentum,
    Point3D,
    SpatialAcceleration,
)
from rbdlab.utils.validation import validate_vector

Array = np.ndarray


def _path(state: MechanismState, body: RigidBody) -> list[int]:
    """Tree joint indices from ``body`` up to the root."""
    out = []
    k = state.body_index(body)
    while k > 0:
        out.append(k - 1)
        k = state.parent_index[k]
    return out


def center_of_mass(state: MechanismState, bodies: Iterable[RigidBody] | None = None) -> Point3D:
    """
    Center of mass of ``bodies`` (default: all bodies), in the root frame.

    Raises
    ------
    ValueError
        If the selected bodies have no mass
    """
    inertias = state.inertia_array()
    indices = range(len(state.bodies)) if bodies is None else [state.body_index(b) for b in bodies]
    mass = 0
    cross_part = np.zeros(3, dtype=state.cache_dtype)
    for k in indices:
        M = inertias[k]
        mass = mass + M[3, 3]
        cross_part = cross_part + np.array([M[2, 4], M[0, 5], M[1, 3]])
    if not state.is_symbolic and mass == 0:
        raise ValueError("Center of mass is undefined: the selected bodies have no mass")
    return Point3D(state.mechanism.root_frame, cross_part / mass)


def geometric_jacobian_into(out: Array, state: MechanismState, body: RigidBody,
                            base: RigidBody | None = None) -> Array:
    """
    Fill ``out`` (6, nv) with the Jacobian of the twist of ``body`` w.r.t. ``base``.

    Columns of joints between ``base`` and ``body`` hold their root-frame
    motion subspaces (negated on the ``base`` side of the path); every other
    column is zero.
    """
    if out.shape != (6, state.num_velocities):
        raise DimensionMismatch(f"Jacobian buffer must have shape (6, {state.num_velocities}), got {out.shape}")
    base = state.mechanism.root_body if base is None else base
    body_path = _path(state, body)
    base_path = _path(state, base)
    shared = set(body_path) & set(base_path)
    S = state.motion_subspace_arrays()
    out[...] = 0
    for i in body_path:
        if i not in shared:
            out[:, state.velocity_ranges[i]] = S[i]
    for i in base_path:
        if i not in shared:
            out[:, state.velocity_ranges[i]] = -S[i]
    return out


def geometric_jacobian(state: MechanismState, body: RigidBody,
                       base: RigidBody | None = None) -> GeometricJacobian:
    """Jacobian mapping the velocity vector to the twist of ``body`` w.r.t. ``base``."""
    base = state.mechanism.root_body if base is None else base
    out = np.zeros((6, state.num_velocities), dtype=state.cache_dtype)
    geometric_jacobian_into(out, state, body, base)
    return GeometricJacobian.from_matrix(body.frame, base.frame, state.mechanism.root_frame, out)


def point_velocity(state: MechanismState, body: RigidBody, point: Point3D) -> FreeVector3D:
    """Velocity w.r.t. the root of a point fixed to ``body``, in the root frame."""
    point = state.transform(point, state.mechanism.root_frame)
    return state.twist_wrt_world(body).point_velocity(point)


def momentum(state: MechanismState, bodies: Iterable[RigidBody] | None = None) -> Momentum:
    """Total spatial momentum w.r.t. the root, in the root frame."""
    inertias = state.inertia_array()
    twists = state.twist_array()
    indices = range(len(state.bodies)) if bodies is None else [state.body_index(b) for b in bodies]
    h = np.zeros(6, dtype=state.cache_dtype)
    for k in indices:
        h = h + inertias[k] @ twists[k]
    return Momentum.from_vector(state.mechanism.root_frame, h)


def kinetic_energy(state: MechanismState):
    """Sum over bodies of ½ vᵀ I v; equals ½ q̇ᵀ M q̇ for the mass matrix M."""
    inertias = state.inertia_array()
    twists = state.twist_array()
    total = 0
    for k in range(1, len(state.bodies)):
        total = total + twists[k] @ (inertias[k] @ twists[k])
    return total / 2


def gravitational_potential_energy(state: MechanismState):
    """-m gᵀ c summed over the bodies, zero at the root origin."""
    inertias = state.inertia_array()
    g = state.mechanism.gravitational_acceleration.v
    total = 0
    for k in range(len(state.bodies)):
        M = inertias[k]
        total = total - g @ np.array([M[2, 4], M[0, 5], M[1, 3]])
    return total


def spatial_acceleration(state: MechanismState, body: RigidBody, vd) -> SpatialAcceleration:
    """
    Acceleration of ``body`` w.r.t. the root for joint accelerations ``vd``.

    Gravity is not included.
    """
    validate_vector(vd, state.num_velocities, "Joint acceleration")
    vd = np.asarray(vd)
    S = state.motion_subspace_arrays()
    a = np.array(state.bias_acceleration_array()[state.body_index(body)])
    for i in _path(state, body):
        a = a + S[i] @ vd[state.velocity_ranges[i]]
    root = state.mechanism.root_frame
    return SpatialAcceleration(body.frame, root, root, a[:3], a[3:])


def relative_acceleration(state: MechanismState, body: RigidBody, base: RigidBody,
                          vd) -> SpatialAcceleration:
    """Acceleration of ``body`` w.r.t. ``base`` in the root frame."""
    return spatial_acceleration(state, body, vd) - spatial_acceleration(state, base, vd)
