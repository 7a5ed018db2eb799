"""
Dynamics algorithms: mass matrix, inverse dynamics and forward dynamics.

Conventions
-----------
Every spatial quantity is expressed in the root frame. Gravity enters the
recursive Newton-Euler algorithm as a fictitious upward acceleration of the
root, ``a_root = [0; -g]``.

Each costly operation comes in two flavours: ``foo_into(out, ...)`` writes
into a caller-supplied buffer, and ``foo(...)`` allocates the buffer and
delegates to ``foo_into``.

Forward dynamics of mechanisms with loop joints solves the KKT system::

    M v̇ - Kᵀ λ = τ - c
    K v̇       = -k - β K v

by the Schur complement on the constraint multipliers λ, where ``K`` and
``k`` come from :func:`constraint_jacobian_and_bias_into` and ``β`` is the
velocity-level stabilization gain.
"""
from __future__ import annotations

from typing import Mapping

import numpy as np
import scipy.linalg
import sympy
from numpy.typing import NDArray

from rbdlab.core.kinematics import geometric_jacobian_into
from rbdlab.core.state import MechanismState
from rbdlab.errors import DimensionMismatch, SingularSystem, check_frame
from rbdlab.mechanism import Mechanism, RigidBody
from rbdlab.spatial import Wrench
from rbdlab.spatial.util import force_cross, force_transform_matrix, motion_cross
from rbdlab.utils.scalar import NUMERIC, SYMBOLIC, to_matrix
from rbdlab.utils.validation import validate_vector

Array = np.ndarray


def _check_buffer(out: Array, shape: tuple, name: str) -> None:
    if out.shape != shape:
        raise DimensionMismatch(f"{name} must have shape {shape}, got {out.shape}")


# ----------------------------------------------------------------------
# Mass matrix
# ----------------------------------------------------------------------
def mass_matrix_into(out: Array, state: MechanismState) -> Array:
    """
    Composite rigid body algorithm.

    Only the blocks ``M[ancestor, joint]`` and the upper triangle of each
    diagonal block are computed from the composite inertias; everything else
    is mirrored, so the result is exactly symmetric.
    """
    nv = state.num_velocities
    _check_buffer(out, (nv, nv), "Mass matrix")
    crb = state.crb_inertia_array()
    S = state.motion_subspace_arrays()
    vranges = state.velocity_ranges
    out[...] = 0
    for i in range(len(state.tree_joints)):
        vi = vranges[i]
        if vi.start == vi.stop:
            continue
        k = i + 1
        F = crb[k] @ S[i]
        diag = S[i].T @ F
        out[vi, vi] = np.triu(diag) + np.triu(diag, 1).T
        p = state.parent_index[k]
        while p > 0:
            j = p - 1
            vj = vranges[j]
            block = S[j].T @ F
            out[vj, vi] = block
            out[vi, vj] = block.T
            p = state.parent_index[p]
    return out


def mass_matrix(state: MechanismState) -> Array:
    """Joint-space mass matrix; ½ vᵀ M v is the kinetic energy."""
    nv = state.num_velocities
    return mass_matrix_into(np.zeros((nv, nv), dtype=state.cache_dtype), state)


# ----------------------------------------------------------------------
# Inverse dynamics
# ----------------------------------------------------------------------
def _external_wrench_rows(state: MechanismState, external_wrenches) -> dict[int, Array]:
    rows = {}
    if not external_wrenches:
        return rows
    root = state.mechanism.root_frame
    for body, wrench in external_wrenches.items():
        check_frame(root, wrench.frame, f"External wrench on '{body.name}'")
        rows[state.body_index(body)] = wrench.as_vector()
    return rows


def inverse_dynamics_into(
    torques: Array,
    state: MechanismState,
    vd,
    external_wrenches: Mapping[RigidBody, Wrench] | None = None,
    *,
    accelerations: Array | None = None,
    joint_wrenches: Array | None = None,
) -> Array:
    """
    Recursive Newton-Euler algorithm.

    Parameters
    ----------
    torques : Array
        Output buffer (nv,) for the generalized forces
    state : MechanismState
        Current configuration and velocity
    vd : array_like
        Joint accelerations (nv,)
    external_wrenches : Mapping[RigidBody, Wrench] | None
        Wrenches applied to bodies by the environment, expressed in the root frame
    accelerations, joint_wrenches : Array | None
        Optional (nb, 6) scratch buffers

    Notes
    -----
    Outward pass: ``a_k = a_parent + S_k vd_k + v_k × (S_k q̇_k)`` and the net
    wrench ``f_k = I_k a_k + v_k ×* (I_k v_k) - f_ext_k``.
    Inward pass: ``τ_k = S_kᵀ f_k`` and ``f_parent += f_k``.
    """
    nv, nb = state.num_velocities, len(state.bodies)
    _check_buffer(torques, (nv,), "Torque buffer")
    validate_vector(vd, nv, "Joint acceleration")
    vd = np.asarray(vd)
    if accelerations is None:
        accelerations = np.zeros((nb, 6), dtype=state.cache_dtype)
    if joint_wrenches is None:
        joint_wrenches = np.zeros((nb, 6), dtype=state.cache_dtype)
    _check_buffer(accelerations, (nb, 6), "Acceleration buffer")
    _check_buffer(joint_wrenches, (nb, 6), "Wrench buffer")

    S = state.motion_subspace_arrays()
    twists = state.twist_array()
    bias = state.bias_acceleration_array()
    inertias = state.inertia_array()
    external = _external_wrench_rows(state, external_wrenches)
    g = state.mechanism.gravitational_acceleration.v

    accelerations[0, :3] = 0
    accelerations[0, 3:] = -g
    joint_wrenches[0] = 0
    for i in range(len(state.tree_joints)):
        k, p = i + 1, state.parent_index[i + 1]
        # bias[k] - bias[p] is v_k × (S_k q̇_k)
        accelerations[k] = accelerations[p] + S[i] @ vd[state.velocity_ranges[i]] + (bias[k] - bias[p])
        Iv = inertias[k] @ twists[k]
        joint_wrenches[k] = inertias[k] @ accelerations[k] + force_cross(twists[k], Iv)
        if k in external:
            joint_wrenches[k] -= external[k]

    for i in reversed(range(len(state.tree_joints))):
        k, p = i + 1, state.parent_index[i + 1]
        torques[state.velocity_ranges[i]] = S[i].T @ joint_wrenches[k]
        joint_wrenches[p] += joint_wrenches[k]
    return torques


def inverse_dynamics(
    state: MechanismState,
    vd,
    external_wrenches: Mapping[RigidBody, Wrench] | None = None,
) -> Array:
    """Generalized forces that produce joint accelerations ``vd``."""
    torques = np.zeros(state.num_velocities, dtype=state.cache_dtype)
    return inverse_dynamics_into(torques, state, vd, external_wrenches)


def dynamics_bias_into(
    out: Array,
    state: MechanismState,
    external_wrenches: Mapping[RigidBody, Wrench] | None = None,
    **scratch,
) -> Array:
    """Velocity product, gravity and external terms: inverse dynamics at ``vd = 0``."""
    zero = np.zeros(state.num_velocities, dtype=state.cache_dtype)
    return inverse_dynamics_into(out, state, zero, external_wrenches, **scratch)


def dynamics_bias(
    state: MechanismState,
    external_wrenches: Mapping[RigidBody, Wrench] | None = None,
) -> Array:
    out = np.zeros(state.num_velocities, dtype=state.cache_dtype)
    return dynamics_bias_into(out, state, external_wrenches)


# ----------------------------------------------------------------------
# Loop-joint constraints
# ----------------------------------------------------------------------
def constraint_jacobian_and_bias_into(K: Array, k: Array, state: MechanismState) -> tuple[Array, Array]:
    """
    Velocity constraint ``K v = 0`` and acceleration bias ``k`` of the loop joints.

    For a loop joint with root-frame constraint wrench subspace ``T`` between
    predecessor ``p`` and successor ``s``, the relative twist must carry no
    component along ``T``:

        K = Tᵀ (J_s - J_p)
        k = Tᵀ (b_s - b_p - v_s × (v_s - v_p))

    with ``J`` the body Jacobians, ``b`` the bias accelerations and ``v`` the
    body twists. Differentiating ``Tᵀ (v_s - v_p) = 0`` then gives
    ``K v̇ + k = 0``.
    """
    mechanism = state.mechanism
    nc, nv = mechanism.num_constraints(), state.num_velocities
    _check_buffer(K, (nc, nv), "Constraint Jacobian")
    _check_buffer(k, (nc,), "Constraint bias")
    twists = state.twist_array()
    bias = state.bias_acceleration_array()
    J = np.zeros((6, nv), dtype=state.cache_dtype)
    row = 0
    for joint in mechanism.non_tree_joints:
        predecessor = mechanism.predecessor(joint)
        successor = mechanism.successor(joint)
        tf = state.transform_to_root(joint.frame_after)
        T_local = joint.joint_type.constraint_wrench_matrix(joint.zero_configuration())
        T = force_transform_matrix(tf.rotation, tf.translation) @ T_local
        rows = slice(row, row + T.shape[1])
        geometric_jacobian_into(J, state, successor, predecessor)
        K[rows] = T.T @ J
        ks, kp = state.body_index(successor), state.body_index(predecessor)
        relative = twists[ks] - twists[kp]
        k[rows] = T.T @ (bias[ks] - bias[kp] - motion_cross(twists[ks], relative))
        row = rows.stop
    return K, k


# ----------------------------------------------------------------------
# Forward dynamics
# ----------------------------------------------------------------------
class DynamicsResult:
    """
    Preallocated buffers for forward dynamics.

    Parameters
    ----------
    mechanism : Mechanism
        Mechanism the buffers are sized for
    dtype : numpy dtype
        ``float64`` for numeric states, ``object`` for symbolic states
    stabilization_gain : float
        Velocity-level constraint stabilization gain β for loop joints

    Attributes
    ----------
    massmatrix : Array
        (nv, nv) joint-space mass matrix
    dynamicsbias : Array
        (nv,) bias forces c(q, v) including gravity and external wrenches
    vd : Array
        (nv,) joint accelerations
    constraint_jacobian : Array
        (nc, nv) loop-joint constraint Jacobian K
    constraint_bias : Array
        (nc,) loop-joint constraint bias k
    lagrange_multipliers : Array
        (nc,) constraint multipliers λ; ``Kᵀ λ`` are the constraint forces

    Notes
    -----
    Buffers are reused across calls to ``dynamics``. A result is a
    single-owner resource: do not share one between concurrent calls.
    """

    def __init__(self, mechanism: Mechanism, dtype=NUMERIC, stabilization_gain: float = 0.0) -> None:
        self.mechanism = mechanism
        self.dtype = np.dtype(dtype)
        self.stabilization_gain = float(stabilization_gain)
        nv = mechanism.num_velocities()
        nc = mechanism.num_constraints()
        nb = len(mechanism.bodies)
        self.massmatrix = np.zeros((nv, nv), dtype=self.dtype)
        self.dynamicsbias = np.zeros(nv, dtype=self.dtype)
        self.vd = np.zeros(nv, dtype=self.dtype)
        self.constraint_jacobian = np.zeros((nc, nv), dtype=self.dtype)
        self.constraint_bias = np.zeros(nc, dtype=self.dtype)
        self.lagrange_multipliers = np.zeros(nc, dtype=self.dtype)
        # Scratch
        self.accelerations = np.zeros((nb, 6), dtype=self.dtype)
        self.joint_wrenches = np.zeros((nb, 6), dtype=self.dtype)
        self._rhs = np.zeros(nv, dtype=self.dtype)
        self._factor = np.zeros((nv, nv), dtype=self.dtype)
        self._MinvKt = np.zeros((nv, nc), dtype=self.dtype)
        self._schur = np.zeros((nc, nc), dtype=self.dtype)
        self._schur_rhs = np.zeros(nc, dtype=self.dtype)

    @property
    def num_velocities(self) -> int:
        return self.vd.shape[0]

    @property
    def num_constraints(self) -> int:
        return self.constraint_bias.shape[0]


def _solve_numeric(result: DynamicsResult, constraint_bias: Array) -> None:
    """Cholesky solve of the tree system, Schur complement for loop joints."""
    M = result.massmatrix
    result._factor[...] = M
    try:
        factor = scipy.linalg.cho_factor(result._factor, overwrite_a=True, check_finite=False)
    except np.linalg.LinAlgError as exc:
        raise SingularSystem(
            "Mass matrix is not positive definite; check for zero or negative "
            "body masses and inertias"
        ) from exc
    # Unconstrained accelerations first; loop joints add M⁻¹Kᵀλ below
    result.vd[:] = scipy.linalg.cho_solve(factor, result._rhs, check_finite=False)
    if result.num_constraints == 0:
        return

    K = result.constraint_jacobian
    result._MinvKt[...] = scipy.linalg.cho_solve(factor, K.T, check_finite=False)
    np.matmul(K, result._MinvKt, out=result._schur)
    np.matmul(K, result.vd, out=result._schur_rhs)
    result._schur_rhs += constraint_bias
    np.negative(result._schur_rhs, out=result._schur_rhs)
    try:
        lam = scipy.linalg.solve(result._schur, result._schur_rhs, assume_a="sym",
                                 overwrite_a=True, overwrite_b=True, check_finite=False)
    except np.linalg.LinAlgError as exc:
        raise SingularSystem(
            "Constraint system is singular; loop joints may be redundant"
        ) from exc
    result.lagrange_multipliers[:] = lam
    np.matmul(result._MinvKt, result.lagrange_multipliers, out=result._rhs)
    result.vd += result._rhs


def _solve_symbolic(result: DynamicsResult, constraint_bias: Array) -> None:
    """Exact LU solves for SymPy matrices."""
    M = to_matrix(result.massmatrix)
    rhs = to_matrix(result._rhs)
    nc = result.num_constraints
    try:
        if nc == 0:
            vd = M.LUsolve(rhs)
            lam = sympy.zeros(0, 1)
        else:
            K = to_matrix(result.constraint_jacobian)
            nv = result.num_velocities
            kkt = M.row_join(-K.T).col_join(K.row_join(sympy.zeros(nc, nc)))
            b = rhs.col_join(-to_matrix(constraint_bias))
            x = kkt.LUsolve(b)
            vd, lam = x[:nv, :], x[nv:, :]
    except (ValueError, ZeroDivisionError) as exc:
        raise SingularSystem(f"Symbolic system could not be solved: {exc}") from exc
    result.vd[:] = np.array(list(vd), dtype=object)
    result.lagrange_multipliers[:] = np.array(list(lam), dtype=object)


def dynamics(
    result: DynamicsResult,
    state: MechanismState,
    torques=None,
    external_wrenches: Mapping[RigidBody, Wrench] | None = None,
) -> DynamicsResult:
    """
    Forward dynamics: joint accelerations for the given joint torques.

    Writes ``massmatrix``, ``dynamicsbias``, ``vd`` and, for mechanisms with
    loop joints, the constraint buffers and ``lagrange_multipliers`` of
    ``result``.

    Raises
    ------
    DimensionMismatch
        If ``torques`` or ``result`` do not match the mechanism
    SingularSystem
        If the mass matrix or the constraint system cannot be factorized
    """
    if result.mechanism is not state.mechanism:
        raise ValueError("DynamicsResult was created for a different mechanism")
    if state.is_symbolic and result.dtype != SYMBOLIC:
        raise TypeError("Symbolic states need a DynamicsResult with dtype=object")
    nv = state.num_velocities
    if result.num_velocities != nv or result.num_constraints != state.mechanism.num_constraints():
        raise DimensionMismatch("DynamicsResult buffers do not match the mechanism")

    mass_matrix_into(result.massmatrix, state)
    dynamics_bias_into(result.dynamicsbias, state, external_wrenches,
                       accelerations=result.accelerations, joint_wrenches=result.joint_wrenches)
    result._rhs[:] = -result.dynamicsbias
    if torques is not None:
        validate_vector(torques, nv, "Torques")
        result._rhs += np.asarray(torques)
    constraint_bias = result.constraint_bias
    if result.num_constraints > 0:
        constraint_jacobian_and_bias_into(result.constraint_jacobian, result.constraint_bias, state)
        if result.stabilization_gain:
            constraint_bias = constraint_bias + result.stabilization_gain * (
                result.constraint_jacobian @ state.velocity
            )

    if result.dtype == SYMBOLIC:
        _solve_symbolic(result, constraint_bias)
    else:
        _solve_numeric(result, constraint_bias)
    return result


def forward_dynamics(
    state: MechanismState,
    torques=None,
    external_wrenches: Mapping[RigidBody, Wrench] | None = None,
    stabilization_gain: float = 0.0,
) -> NDArray:
    """Allocating wrapper around :func:`dynamics`; returns the joint accelerations."""
    dtype = SYMBOLIC if state.is_symbolic else NUMERIC
    result = DynamicsResult(state.mechanism, dtype, stabilization_gain)
    return dynamics(result, state, torques, external_wrenches).vd
