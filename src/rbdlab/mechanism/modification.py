"""
Mechanism transformations: fixed-joint removal, maximal coordinates and
subtree extraction.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from rbdlab.errors import UnknownEntity
from rbdlab.mechanism.body import RigidBody
from rbdlab.mechanism.joint import Joint
from rbdlab.mechanism.joint_types import SPQuatFloating
from rbdlab.mechanism.mechanism import Mechanism


def remove_fixed_joints(mechanism: Mechanism) -> None:
    """
    Contract every tree joint without velocity coordinates, in place.

    The successor of each such joint is merged into its predecessor: its
    inertia is added to the predecessor's, its frames (including the joint's
    ``frame_after``) become frames of the predecessor, and its children and
    loop joints are reattached to the predecessor. Total mass and total
    spatial inertia about any fixed point are preserved.
    """
    for joint in mechanism.tree_joints:
        if joint.num_velocities != 0:
            continue
        predecessor = mechanism.predecessor(joint)
        successor = mechanism.successor(joint)
        to_predecessor = (
            predecessor.frame_definition(joint.frame_before)
            @ joint.joint_transform(joint.zero_configuration())
            @ successor.frame_definition(joint.frame_after).inv()
        )
        for frame in successor.frames():
            predecessor._set_frame_definition(to_predecessor @ successor.frame_definition(frame))
        if successor.inertia is not None:
            inertia = successor.inertia.transform(to_predecessor)
            predecessor.inertia = inertia if predecessor.inertia is None else predecessor.inertia + inertia
        mechanism._contract(joint)


@dataclass
class MaximalCoordinates:
    """
    A mechanism in maximal coordinates and its relation to the original.

    Attributes
    ----------
    mechanism : Mechanism
        Every non-root body attached to the root by a floating joint; the
        original joints are loop joints
    bodymap : dict
        Original body -> new body
    jointmap : dict
        Original joint -> new (loop) joint
    floatingjoints : dict
        Original non-root body -> its new floating joint
    """
    mechanism: Mechanism
    bodymap: dict = field(default_factory=dict)
    jointmap: dict = field(default_factory=dict)
    floatingjoints: dict = field(default_factory=dict)

    def configure(self, dest_state, src_state) -> None:
        """
        Set ``dest_state`` (of the maximal mechanism) to the configuration and
        velocity matching ``src_state`` (of the original mechanism).

        The resulting state satisfies every loop-joint constraint.
        """
        for body, floating_joint in self.floatingjoints.items():
            to_root = src_state.transform_to_root(body)
            twist = src_state.twist_wrt_world(body).transform(to_root.inv())
            joint_type = floating_joint.joint_type
            dest_state.set_configuration(joint_type.configuration_from_transform(to_root),
                                         joint=floating_joint)
            dest_state.set_velocity(joint_type.velocity_from_twist(twist), joint=floating_joint)


def maximal_coordinates(mechanism: Mechanism, floating_joint_type=SPQuatFloating) -> MaximalCoordinates:
    """
    Convert a mechanism to maximal coordinates.

    Parameters
    ----------
    mechanism : Mechanism
        Source mechanism (left unchanged)
    floating_joint_type : type
        Floating joint type class used for every body. The default,
        ``SPQuatFloating``, has six configuration coordinates, so the
        configuration vector grows by ``6 * num_bodies - sum(num_positions)``.
    """
    if not getattr(floating_joint_type, "is_floating", False):
        raise ValueError(f"{floating_joint_type!r} is not a floating joint type")
    root = mechanism.root_body.copy()
    result = MaximalCoordinates(Mechanism(root, mechanism.gravitational_acceleration.v))
    result.bodymap[mechanism.root_body] = root

    for body in mechanism.non_root_bodies:
        new_body = body.copy()
        floating_joint = Joint(f"floating_{body.name}", floating_joint_type())
        result.mechanism.add_body(root, floating_joint, new_body)
        result.bodymap[body] = new_body
        result.floatingjoints[body] = floating_joint

    for joint in mechanism.joints:
        new_joint = joint.copy()
        result.mechanism.add_loop_joint(
            result.bodymap[mechanism.predecessor(joint)],
            new_joint,
            result.bodymap[mechanism.successor(joint)],
        )
        result.jointmap[joint] = new_joint
    return result


def submechanism(mechanism: Mechanism, root_body: RigidBody) -> Mechanism:
    """
    Copy of the subtree rooted at ``root_body``, re-rooted there.

    Loop joints are kept when both of their bodies are in the subtree. The
    gravity vector keeps its coordinates and is reinterpreted in the new
    root frame.
    """
    if root_body not in mechanism:
        raise UnknownEntity(f"Body '{root_body.name}' is not part of the mechanism")
    new_root = root_body.copy()
    sub = Mechanism(new_root, mechanism.gravitational_acceleration.v)
    bodymap = {root_body: new_root}
    for body in mechanism.non_root_bodies:
        parent = mechanism.parent(body)
        if parent in bodymap:
            new_body = body.copy()
            sub.add_body(bodymap[parent], mechanism.joint_to_parent(body).copy(), new_body)
            bodymap[body] = new_body
    for joint in mechanism.non_tree_joints:
        predecessor = mechanism.predecessor(joint)
        successor = mechanism.successor(joint)
        if predecessor in bodymap and successor in bodymap:
            sub.add_loop_joint(bodymap[predecessor], joint.copy(), bodymap[successor])
    return sub
