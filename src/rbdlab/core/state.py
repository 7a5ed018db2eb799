"""
Mechanism state: joint configuration and velocity plus a lazily populated
cache of derived kinematic quantities.

All cached quantities are expressed in the root frame of the mechanism. Each
quantity class has a cache state (see ``CacheState``) following a simple
state machine:

- writing the configuration marks every quantity class STALE
- writing the velocity marks twists and bias accelerations STALE
- reading a STALE quantity recomputes the whole class and marks it FRESH

Invalidation is conservative: any single-joint write recomputes all bodies.
"""
from __future__ import annotations

from enum import Enum

import numpy as np

from rbdlab.errors import TopologyViolation, UnknownEntity
from rbdlab.mechanism import Joint, Mechanism, RigidBody
from rbdlab.spatial import (
    CartesianFrame3D,
    GeometricJacobian,
    SpatialAcceleration,
    SpatialInertia,
    Transform3D,
    Twist,
    WrenchMatrix,
)
from rbdlab.spatial.util import force_transform_matrix, motion_cross, motion_transform_matrix
from rbdlab.utils.scalar import NUMERIC, SYMBOLIC, dtype_of
from rbdlab.utils.validation import validate_vector

Array = np.ndarray


class CacheState(Enum):
    """Validity of a cached quantity class."""
    STALE = "stale"
    FRESH = "fresh"


CONFIGURATION_DEPENDENT = (
    "transforms",
    "motion_subspaces",
    "inertias",
    "crb_inertias",
    "twists",
    "bias_accelerations",
)
VELOCITY_DEPENDENT = ("twists", "bias_accelerations")


def _inertia_from_matrix(frame: CartesianFrame3D, M: Array) -> SpatialInertia:
    cross_part = np.array([M[2, 4], M[0, 5], M[1, 3]])
    return SpatialInertia._unchecked(frame, M[:3, :3].copy(), cross_part, M[3, 3])


class MechanismState:
    """
    Configuration, velocity and kinematic cache of a mechanism.

    Parameters
    ----------
    mechanism : Mechanism
        Mechanism to describe; shared, never modified by the state
    dtype : numpy dtype
        Scalar type of the configuration and velocity vectors. Use
        ``object`` to hold SymPy expressions.

    Attributes
    ----------
    mechanism : Mechanism
        The described mechanism
    dtype : np.dtype
        Scalar type of ``configuration`` and ``velocity``
    cache_dtype : np.dtype
        Scalar type of the cache; ``object`` if the state or any body
        inertia (or gravity) is symbolic
    bodies : list[RigidBody]
        Bodies in tree order (root first)
    tree_joints : list[Joint]
        Tree joints; ``tree_joints[i]`` connects ``bodies[i + 1]`` to its parent
    parent_index : list[int]
        Index of each body's parent in ``bodies`` (-1 for the root)
    position_ranges, velocity_ranges : list[slice]
        Coordinate slices of each tree joint

    Notes
    -----
    A state is a single-owner resource: its cache is written during reads,
    so it must not be shared between threads without synchronization.
    States created before a structural edit of the mechanism raise
    ``TopologyViolation`` when used.
    """

    def __init__(self, mechanism: Mechanism, dtype=NUMERIC) -> None:
        self.mechanism = mechanism
        self._modcount = mechanism.modcount
        self.dtype = np.dtype(dtype)
        self.bodies: list[RigidBody] = mechanism.bodies
        self.tree_joints: list[Joint] = mechanism.tree_joints
        self.parent_index: list[int] = [-1] + [
            mechanism.body_index(mechanism.parent(body)) for body in self.bodies[1:]
        ]
        self.position_ranges = [mechanism.position_range(j) for j in self.tree_joints]
        self.velocity_ranges = [mechanism.velocity_range(j) for j in self.tree_joints]
        self._body_index = {body: i for i, body in enumerate(self.bodies)}
        self._joint_index = {joint: i for i, joint in enumerate(self.tree_joints)}
        self._frame_body: dict[CartesianFrame3D, RigidBody] = {}

        inertia_values = [b.inertia.moment for b in self.bodies if b.inertia is not None]
        inertia_values += [b.inertia.mass for b in self.bodies if b.inertia is not None]
        self.cache_dtype = dtype_of(self.dtype, mechanism.gravitational_acceleration.v, *inertia_values)

        # Constant joint placements
        self._before_to_parent: list[Transform3D] = []
        self._after_to_body: list[Transform3D] = []
        self._body_to_after: list[Transform3D] = []
        for i, joint in enumerate(self.tree_joints):
            parent = self.bodies[self.parent_index[i + 1]]
            body = self.bodies[i + 1]
            self._before_to_parent.append(parent.frame_definition(joint.frame_before))
            after_to_body = body.frame_definition(joint.frame_after)
            self._after_to_body.append(after_to_body)
            self._body_to_after.append(after_to_body.inv())

        nb = len(self.bodies)
        self.num_positions = mechanism.num_positions()
        self.num_velocities = mechanism.num_velocities()
        self._q = np.zeros(self.num_positions, dtype=self.dtype)
        self._v = np.zeros(self.num_velocities, dtype=self.dtype)

        root_frame = mechanism.root_frame
        self._transforms: list[Transform3D] = [Transform3D.identity(root_frame)] * nb
        self._joint_transforms: list[Transform3D | None] = [None] * len(self.tree_joints)
        self._frame_transforms: dict[CartesianFrame3D, Transform3D] = {}
        self._motion_subspaces: list[Array] = [
            np.zeros((6, j.num_velocities), dtype=self.cache_dtype) for j in self.tree_joints
        ]
        self._twists = np.zeros((nb, 6), dtype=self.cache_dtype)
        self._bias_accelerations = np.zeros((nb, 6), dtype=self.cache_dtype)
        self._inertias: list[SpatialInertia | None] = [None] * nb
        self._inertia_matrices = np.zeros((nb, 6, 6), dtype=self.cache_dtype)
        self._crb_matrices = np.zeros((nb, 6, 6), dtype=self.cache_dtype)
        self._cache = {name: CacheState.STALE for name in CONFIGURATION_DEPENDENT}

        self.zero_configuration()

    # ------------------------------------------------------------------
    # Cache bookkeeping
    # ------------------------------------------------------------------
    def _check_topology(self) -> None:
        if self.mechanism.modcount != self._modcount:
            raise TopologyViolation(
                "Mechanism was structurally modified after this state was created; "
                "create a new MechanismState"
            )

    def _mark_stale(self, names) -> None:
        for name in names:
            self._cache[name] = CacheState.STALE

    def cache_state(self, name: str) -> CacheState:
        """Cache state of a quantity class (e.g. ``"transforms"``, ``"twists"``)."""
        try:
            return self._cache[name]
        except KeyError:
            raise ValueError(
                f"Unknown cached quantity '{name}'. Valid names: {CONFIGURATION_DEPENDENT}"
            ) from None

    def invalidate(self) -> None:
        """Mark everything stale, e.g. after editing a body inertia."""
        self._mark_stale(CONFIGURATION_DEPENDENT)

    @property
    def is_symbolic(self) -> bool:
        return self.cache_dtype == SYMBOLIC

    # ------------------------------------------------------------------
    # Configuration and velocity
    # ------------------------------------------------------------------
    @property
    def configuration(self) -> Array:
        """Read-only view of the configuration vector."""
        view = self._q.view()
        view.flags.writeable = False
        return view

    @configuration.setter
    def configuration(self, q) -> None:
        self.set_configuration(q)

    @property
    def velocity(self) -> Array:
        """Read-only view of the velocity vector."""
        view = self._v.view()
        view.flags.writeable = False
        return view

    @velocity.setter
    def velocity(self, v) -> None:
        self.set_velocity(v)

    def _joint_slot(self, joint: Joint) -> int:
        try:
            return self._joint_index[joint]
        except KeyError:
            raise UnknownEntity(
                f"Joint '{getattr(joint, 'name', joint)}' is not a tree joint of the mechanism"
            ) from None

    def set_configuration(self, q, joint: Joint | None = None) -> None:
        """
        Set the whole configuration vector, or the block of one tree joint.

        Raises
        ------
        DimensionMismatch
            If ``q`` does not have the required length
        """
        self._check_topology()
        if joint is None:
            validate_vector(q, self.num_positions, "Configuration")
            self._q[:] = q
            for i, j in enumerate(self.tree_joints):
                j.joint_type.check_configuration(self._q[self.position_ranges[i]])
        else:
            i = self._joint_slot(joint)
            validate_vector(q, joint.num_positions, f"Configuration of joint '{joint.name}'")
            self._q[self.position_ranges[i]] = q
            joint.joint_type.check_configuration(self._q[self.position_ranges[i]])
        self._mark_stale(CONFIGURATION_DEPENDENT)

    def set_velocity(self, v, joint: Joint | None = None) -> None:
        """Set the whole velocity vector, or the block of one tree joint."""
        self._check_topology()
        if joint is None:
            validate_vector(v, self.num_velocities, "Velocity")
            self._v[:] = v
        else:
            i = self._joint_slot(joint)
            validate_vector(v, joint.num_velocities, f"Velocity of joint '{joint.name}'")
            self._v[self.velocity_ranges[i]] = v
        self._mark_stale(VELOCITY_DEPENDENT)

    def joint_configuration(self, joint: Joint) -> Array:
        return self.configuration[self.position_ranges[self._joint_slot(joint)]]

    def joint_velocity(self, joint: Joint) -> Array:
        return self.velocity[self.velocity_ranges[self._joint_slot(joint)]]

    def zero_configuration(self) -> None:
        for i, joint in enumerate(self.tree_joints):
            self._q[self.position_ranges[i]] = joint.zero_configuration(self.dtype)
        self._mark_stale(CONFIGURATION_DEPENDENT)

    def zero_velocity(self) -> None:
        self._v[:] = 0
        self._mark_stale(VELOCITY_DEPENDENT)

    def zero(self) -> None:
        self.zero_configuration()
        self.zero_velocity()

    def rand_configuration(self, rng: np.random.Generator | int | None = None) -> None:
        rng = np.random.default_rng(rng)
        for i, joint in enumerate(self.tree_joints):
            self._q[self.position_ranges[i]] = joint.rand_configuration(rng)
        self._mark_stale(CONFIGURATION_DEPENDENT)

    def rand_velocity(self, rng: np.random.Generator | int | None = None) -> None:
        rng = np.random.default_rng(rng)
        self._v[:] = rng.standard_normal(self.num_velocities)
        self._mark_stale(VELOCITY_DEPENDENT)

    def rand(self, rng: np.random.Generator | int | None = None) -> None:
        """Random configuration and velocity."""
        rng = np.random.default_rng(rng)
        self.rand_configuration(rng)
        self.rand_velocity(rng)

    def normalize_configuration(self) -> None:
        """Project every joint configuration back onto its manifold."""
        self._check_topology()
        for i, joint in enumerate(self.tree_joints):
            joint.normalize_configuration(self._q[self.position_ranges[i]])
        self._mark_stale(CONFIGURATION_DEPENDENT)

    def configuration_derivative(self) -> Array:
        """Time derivative of the configuration for the current velocity."""
        self._check_topology()
        qd = np.zeros(self.num_positions, dtype=dtype_of(self._q, self._v))
        for i, joint in enumerate(self.tree_joints):
            qr, vr = self.position_ranges[i], self.velocity_ranges[i]
            qd[qr] = joint.joint_type.configuration_derivative(self._q[qr], self._v[vr])
        return qd

    def copy(self) -> MechanismState:
        state = MechanismState(self.mechanism, self.dtype)
        state.set_configuration(self._q)
        state.set_velocity(self._v)
        return state

    # ------------------------------------------------------------------
    # Cache updates
    # ------------------------------------------------------------------
    def _update_transforms(self) -> None:
        self._check_topology()
        if self._cache["transforms"] is CacheState.FRESH:
            return
        for i, joint in enumerate(self.tree_joints):
            k = i + 1
            q = self._q[self.position_ranges[i]]
            jt = joint.joint_type.joint_transform(joint.frame_after, joint.frame_before, q)
            self._joint_transforms[i] = jt
            self._transforms[k] = (
                self._transforms[self.parent_index[k]]
                @ self._before_to_parent[i]
                @ jt
                @ self._body_to_after[i]
            )
        self._frame_transforms.clear()
        self._cache["transforms"] = CacheState.FRESH

    def _update_motion_subspaces(self) -> None:
        self._update_transforms()
        if self._cache["motion_subspaces"] is CacheState.FRESH:
            return
        for i, joint in enumerate(self.tree_joints):
            after_to_root = self._transforms[i + 1] @ self._after_to_body[i]
            S = joint.joint_type.motion_subspace_matrix(self._q[self.position_ranges[i]])
            X = motion_transform_matrix(after_to_root.rotation, after_to_root.translation)
            self._motion_subspaces[i] = X @ S
        self._cache["motion_subspaces"] = CacheState.FRESH

    def _update_twists_and_bias_accelerations(self) -> None:
        self._update_motion_subspaces()
        if (self._cache["twists"] is CacheState.FRESH
                and self._cache["bias_accelerations"] is CacheState.FRESH):
            return
        twists, bias = self._twists, self._bias_accelerations
        for i in range(len(self.tree_joints)):
            k, p = i + 1, self.parent_index[i + 1]
            joint_twist = self._motion_subspaces[i] @ self._v[self.velocity_ranges[i]]
            twists[k] = twists[p] + joint_twist
            # d/dt of S expressed in the root frame is twist × S
            bias[k] = bias[p] + motion_cross(twists[k], joint_twist)
        self._cache["twists"] = CacheState.FRESH
        self._cache["bias_accelerations"] = CacheState.FRESH

    def _update_inertias(self) -> None:
        self._update_transforms()
        if self._cache["inertias"] is CacheState.FRESH:
            return
        for k, body in enumerate(self.bodies):
            if body.inertia is None:
                self._inertias[k] = None
                self._inertia_matrices[k] = 0
            else:
                inertia = body.inertia.transform(self._transforms[k])
                self._inertias[k] = inertia
                self._inertia_matrices[k] = inertia.to_matrix()
        self._cache["inertias"] = CacheState.FRESH

    def _update_crb_inertias(self) -> None:
        self._update_inertias()
        if self._cache["crb_inertias"] is CacheState.FRESH:
            return
        crb = self._crb_matrices
        crb[:] = self._inertia_matrices
        for k in range(len(self.bodies) - 1, 0, -1):
            crb[self.parent_index[k]] += crb[k]
        self._cache["crb_inertias"] = CacheState.FRESH

    # ------------------------------------------------------------------
    # Raw cache access for the algorithms
    # ------------------------------------------------------------------
    def motion_subspace_arrays(self) -> list[Array]:
        """Root-frame motion subspaces (6, nv_j) of the tree joints."""
        self._update_motion_subspaces()
        return self._motion_subspaces

    def twist_array(self) -> Array:
        """(nb, 6) root-frame twists of the bodies w.r.t. the root."""
        self._update_twists_and_bias_accelerations()
        return self._twists

    def bias_acceleration_array(self) -> Array:
        """(nb, 6) root-frame accelerations of the bodies for zero joint accelerations."""
        self._update_twists_and_bias_accelerations()
        return self._bias_accelerations

    def inertia_array(self) -> Array:
        """(nb, 6, 6) root-frame spatial inertia matrices (zero for massless bodies)."""
        self._update_inertias()
        return self._inertia_matrices

    def crb_inertia_array(self) -> Array:
        """(nb, 6, 6) root-frame composite rigid body inertia matrices."""
        self._update_crb_inertias()
        return self._crb_matrices

    # ------------------------------------------------------------------
    # Typed queries
    # ------------------------------------------------------------------
    def body_index(self, body: RigidBody) -> int:
        try:
            return self._body_index[body]
        except (KeyError, TypeError):
            raise UnknownEntity(
                f"Body '{getattr(body, 'name', body)}' is not part of the mechanism"
            ) from None

    def body_of_frame(self, frame: CartesianFrame3D) -> RigidBody:
        body = self._frame_body.get(frame)
        if body is None:
            for candidate in self.bodies:
                if candidate.has_frame(frame):
                    body = candidate
                    break
            else:
                raise UnknownEntity(f"{frame!r} is not attached to any body of the mechanism")
            self._frame_body[frame] = body
        return body

    def _resolve(self, item) -> tuple[int, CartesianFrame3D]:
        """Body index and frame for a body or a body-fixed frame."""
        if isinstance(item, RigidBody):
            return self.body_index(item), item.frame
        if isinstance(item, CartesianFrame3D):
            return self.body_index(self.body_of_frame(item)), item
        raise TypeError(f"Expected a RigidBody or CartesianFrame3D, got {type(item).__name__}")

    def transform_to_root(self, item) -> Transform3D:
        """Transform from a body's default frame (or any body-fixed frame) to the root frame."""
        k, frame = self._resolve(item)
        self._update_transforms()
        body = self.bodies[k]
        if frame is body.frame:
            return self._transforms[k]
        tf = self._frame_transforms.get(frame)
        if tf is None:
            tf = self._transforms[k] @ body.frame_definition(frame)
            self._frame_transforms[frame] = tf
        return tf

    def relative_transform(self, from_frame, to_frame) -> Transform3D:
        """Transform from ``from_frame`` to ``to_frame`` (bodies stand for their default frames)."""
        return self.transform_to_root(to_frame).inv() @ self.transform_to_root(from_frame)

    def transform(self, x, to_frame: CartesianFrame3D):
        """Express a frame-annotated quantity in ``to_frame``."""
        return self.relative_transform(x.frame, to_frame) @ x

    def joint_transform(self, joint: Joint) -> Transform3D:
        """Transform from ``joint.frame_after`` to ``joint.frame_before``."""
        if joint in self._joint_index:
            self._update_transforms()
            return self._joint_transforms[self._joint_index[joint]]
        self.mechanism._check_joint(joint)
        return self.relative_transform(joint.frame_after, joint.frame_before)

    def motion_subspace(self, joint: Joint) -> GeometricJacobian:
        """Motion subspace of a joint, expressed in the root frame."""
        root = self.mechanism.root_frame
        if joint in self._joint_index:
            S = self.motion_subspace_arrays()[self._joint_index[joint]]
            return GeometricJacobian.from_matrix(joint.frame_after, joint.frame_before, root, S)
        self.mechanism._check_joint(joint)
        tf = self.transform_to_root(joint.frame_after)
        return joint.motion_subspace(joint.zero_configuration()).transform(tf)

    def constraint_wrench_subspace(self, joint: Joint) -> WrenchMatrix:
        """Constraint wrench subspace of a loop joint, expressed in the root frame."""
        self.mechanism._check_joint(joint)
        tf = self.transform_to_root(joint.frame_after)
        T = joint.joint_type.constraint_wrench_matrix(joint.zero_configuration())
        W = force_transform_matrix(tf.rotation, tf.translation) @ T
        return WrenchMatrix(self.mechanism.root_frame, W[:3], W[3:])

    def twist_wrt_world(self, body: RigidBody) -> Twist:
        """Twist of ``body`` w.r.t. the root, expressed in the root frame."""
        k = self.body_index(body)
        t = self.twist_array()[k]
        root = self.mechanism.root_frame
        return Twist(body.frame, root, root, t[:3], t[3:])

    def relative_twist(self, body, base) -> Twist:
        """
        Twist of ``body`` w.r.t. ``base``, expressed in the root frame.

        Either argument may be a body or a body-fixed frame.
        """
        kb, body_frame = self._resolve(body)
        kr, base_frame = self._resolve(base)
        twists = self.twist_array()
        t = twists[kb] - twists[kr]
        return Twist(body_frame, base_frame, self.mechanism.root_frame, t[:3], t[3:])

    def bias_acceleration(self, body: RigidBody) -> SpatialAcceleration:
        """Acceleration of ``body`` w.r.t. the root for zero joint accelerations (no gravity)."""
        k = self.body_index(body)
        a = self.bias_acceleration_array()[k]
        root = self.mechanism.root_frame
        return SpatialAcceleration(body.frame, root, root, a[:3], a[3:])

    def spatial_inertia(self, body: RigidBody) -> SpatialInertia:
        """Inertia of ``body`` expressed in the root frame (zero for massless bodies)."""
        k = self.body_index(body)
        self._update_inertias()
        inertia = self._inertias[k]
        if inertia is None:
            return SpatialInertia.zero(self.mechanism.root_frame, self.cache_dtype)
        return inertia

    def crb_inertia(self, body: RigidBody) -> SpatialInertia:
        """Composite inertia of the subtree rooted at ``body``, in the root frame."""
        k = self.body_index(body)
        return _inertia_from_matrix(self.mechanism.root_frame, self.crb_inertia_array()[k])

    def __repr__(self) -> str:
        kind = "symbolic" if self.is_symbolic else "numeric"
        return (f"MechanismState({self.mechanism!r}, {kind}, "
                f"nq={self.num_positions}, nv={self.num_velocities})")
