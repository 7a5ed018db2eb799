"""
Random mechanisms for property-based tests.

Joint axes, placements and mass properties are drawn from a NumPy
``Generator`` so that a seed reproduces the mechanism exactly.
"""
from __future__ import annotations

from typing import Sequence

import numpy as np
from scipy.spatial.transform import Rotation as ScR

from rbdlab.mechanism import Joint, JointType, Mechanism, Prismatic, Revolute, RigidBody
from rbdlab.spatial import SpatialInertia, Transform3D

MASS_RANGE = (0.5, 2.0)  # kg


def rand_joint_type(joint_type: type[JointType], rng: np.random.Generator) -> JointType:
    """Instantiate ``joint_type``; axial joints get a random axis."""
    if joint_type in (Revolute, Prismatic):
        return joint_type(rng.standard_normal(3))
    return joint_type()


def rand_inertia(body: RigidBody, rng: np.random.Generator) -> SpatialInertia:
    """Positive definite inertia with a random center of mass."""
    A = rng.standard_normal((3, 3))
    Jc = A @ A.T + 0.1 * np.eye(3)
    return SpatialInertia.from_com(body.frame, rng.uniform(*MASS_RANGE), rng.standard_normal(3), Jc)


def rand_transform(from_frame, to_frame, rng: np.random.Generator) -> Transform3D:
    R = ScR.random(None, rng).as_matrix()
    return Transform3D(from_frame, to_frame, R, rng.standard_normal(3))


def _build(joint_types: Sequence[type[JointType]], rng, pick_parent) -> Mechanism:
    world = RigidBody("world")
    mechanism = Mechanism(world)
    for i, joint_type in enumerate(joint_types, start=1):
        parent = pick_parent(mechanism.bodies)
        body = RigidBody(f"body{i}")
        body.inertia = rand_inertia(body, rng)
        joint = Joint(f"joint{i}", rand_joint_type(joint_type, rng))
        mechanism.add_body(
            parent,
            joint,
            body,
            joint_pose=rand_transform(joint.frame_before, parent.frame, rng),
            child_pose=rand_transform(body.frame, joint.frame_after, rng),
        )
    return mechanism


def rand_tree_mechanism(
    joint_types: Sequence[type[JointType]],
    rng: np.random.Generator | None = None,
) -> Mechanism:
    """
    Random kinematic tree with one body per entry of ``joint_types``.

    Each new body is attached to a uniformly chosen body already in the tree.
    """
    rng = np.random.default_rng() if rng is None else rng
    return _build(joint_types, rng, lambda bodies: bodies[rng.integers(len(bodies))])


def rand_chain_mechanism(
    joint_types: Sequence[type[JointType]],
    rng: np.random.Generator | None = None,
) -> Mechanism:
    """Random serial chain; each body is attached to the previous one."""
    rng = np.random.default_rng() if rng is None else rng
    return _build(joint_types, rng, lambda bodies: bodies[-1])
