"""
Mechanism: a kinematic tree of rigid bodies connected by joints, plus
optional non-tree (loop) joints.

Bodies are kept in a topological order: every body comes after its parent,
and the tree joint at index ``i`` connects body ``i + 1`` to its parent. The
flat configuration and velocity vectors of a ``MechanismState`` follow this
order.
"""
from __future__ import annotations

from typing import Iterable

from rbdlab.errors import TopologyViolation, UnknownEntity, check_frame
from rbdlab.mechanism.body import RigidBody
from rbdlab.mechanism.joint import Joint
from rbdlab.mechanism.joint_types import JointType, SPQuatFloating
from rbdlab.spatial import CartesianFrame3D, FreeVector3D, Transform3D

DEFAULT_GRAVITY = (0.0, 0.0, -9.81)  # m/s², along -z of the root frame


class Mechanism:
    """
    Kinematic tree rooted at a fixed body.

    Parameters
    ----------
    root_body : RigidBody
        Fixed root (usually named "world"); its default frame is the root frame
    gravity : array_like
        Gravitational acceleration expressed in the root frame [m/s²]

    Notes
    -----
    Every structural edit increments ``modcount``. States created before an
    edit detect the change and refuse to work on the modified mechanism.
    """

    def __init__(self, root_body: RigidBody, gravity=DEFAULT_GRAVITY) -> None:
        self.root_body = root_body
        self._bodies: list[RigidBody] = [root_body]
        self._tree_joints: list[Joint] = []
        self._non_tree_joints: list[Joint] = []
        self._joint_to_parent: dict[RigidBody, Joint] = {}
        self._predecessor: dict[Joint, RigidBody] = {}
        self._successor: dict[Joint, RigidBody] = {}
        self._children: dict[RigidBody, list[RigidBody]] = {root_body: []}
        self.gravitational_acceleration = FreeVector3D(root_body.frame, gravity)
        self.modcount = 0
        self._layout_modcount = -1
        self._qranges: dict[Joint, slice] = {}
        self._vranges: dict[Joint, slice] = {}
        self._body_index: dict[RigidBody, int] = {}

    # ------------------------------------------------------------------
    # Structural edits
    # ------------------------------------------------------------------
    def _bump(self) -> None:
        self.modcount += 1

    def _check_new_joint(self, joint: Joint) -> None:
        if joint in self._predecessor:
            raise TopologyViolation(f"Joint '{joint.name}' is already part of the mechanism")
        if any(j.name == joint.name for j in self._predecessor):
            raise ValueError(f"Duplicate joint name '{joint.name}'")

    def _attach_joint_frames(
        self,
        predecessor: RigidBody,
        joint: Joint,
        successor: RigidBody,
        joint_pose: Transform3D | None,
        successor_pose: Transform3D | None,
    ) -> None:
        if joint_pose is not None:
            check_frame(joint.frame_before, joint_pose.from_frame, "joint_pose")
            predecessor.add_frame(joint_pose)
        elif not predecessor.has_frame(joint.frame_before):
            predecessor.add_frame(Transform3D.identity(joint.frame_before, predecessor.frame))
        if successor_pose is not None:
            check_frame(joint.frame_after, successor_pose.to_frame, "successor_pose")
            successor.add_frame(successor_pose.inv())
        elif not successor.has_frame(joint.frame_after):
            successor.add_frame(Transform3D.identity(joint.frame_after, successor.frame))

    def add_body(
        self,
        parent: RigidBody,
        joint: Joint,
        child: RigidBody,
        joint_pose: Transform3D | None = None,
        child_pose: Transform3D | None = None,
    ) -> None:
        """
        Attach ``child`` to ``parent`` through a tree joint.

        Parameters
        ----------
        parent : RigidBody
            Body already in the tree
        joint : Joint
            New joint; ``parent`` becomes its predecessor
        child : RigidBody
            New body; becomes the joint's successor
        joint_pose : Transform3D | None
            Transform from ``joint.frame_before`` to a frame of ``parent``.
            Identity to the parent's default frame when omitted.
        child_pose : Transform3D | None
            Transform from a frame of ``child`` to ``joint.frame_after``.
            Identity from the child's default frame when omitted.

        Raises
        ------
        UnknownEntity
            If ``parent`` is not in the tree
        TopologyViolation
            If ``child`` is already in the tree (the edge would close a
            cycle) or ``joint`` is already used
        """
        if parent not in self._children:
            raise UnknownEntity(f"Parent body '{parent.name}' is not part of the mechanism")
        if child in self._children:
            raise TopologyViolation(
                f"Body '{child.name}' is already in the tree; attaching it again would "
                f"create a cycle (use add_loop_joint for closed loops)"
            )
        self._check_new_joint(joint)
        if any(b.name == child.name for b in self._bodies):
            raise ValueError(f"Duplicate body name '{child.name}'")
        self._attach_joint_frames(parent, joint, child, joint_pose, child_pose)

        self._bodies.append(child)
        self._tree_joints.append(joint)
        self._joint_to_parent[child] = joint
        self._predecessor[joint] = parent
        self._successor[joint] = child
        self._children[parent].append(child)
        self._children[child] = []
        self._bump()

    def add_loop_joint(
        self,
        predecessor: RigidBody,
        joint: Joint,
        successor: RigidBody,
        joint_pose: Transform3D | None = None,
        successor_pose: Transform3D | None = None,
    ) -> None:
        """
        Close a kinematic loop between two bodies already in the tree.

        The joint contributes constraints instead of coordinates and is
        excluded from the tree traversal order.
        """
        for body in (predecessor, successor):
            if body not in self._children:
                raise UnknownEntity(f"Body '{body.name}' is not part of the mechanism")
        if predecessor is successor:
            raise TopologyViolation("A loop joint must connect two different bodies")
        self._check_new_joint(joint)
        self._attach_joint_frames(predecessor, joint, successor, joint_pose, successor_pose)

        self._non_tree_joints.append(joint)
        self._predecessor[joint] = predecessor
        self._successor[joint] = successor
        self._bump()

    def remove_body(self, body: RigidBody) -> None:
        """
        Remove a leaf body together with its joint to the parent.

        Raises
        ------
        TopologyViolation
            If ``body`` is the root, has children, or is attached to a loop joint
        """
        self._check_body(body)
        if body is self.root_body:
            raise TopologyViolation("Cannot remove the root body")
        if self._children[body]:
            names = ", ".join(c.name for c in self._children[body])
            raise TopologyViolation(f"Cannot remove body '{body.name}': it has children ({names})")
        for joint in self._non_tree_joints:
            if body is self._predecessor[joint] or body is self._successor[joint]:
                raise TopologyViolation(
                    f"Cannot remove body '{body.name}': loop joint '{joint.name}' is attached to it"
                )
        joint = self._joint_to_parent[body]
        self._remove_tree_edge(joint)

    def _remove_tree_edge(self, joint: Joint) -> None:
        successor = self._successor.pop(joint)
        predecessor = self._predecessor.pop(joint)
        index = self._bodies.index(successor)
        del self._bodies[index]
        del self._tree_joints[index - 1]
        del self._joint_to_parent[successor]
        del self._children[successor]
        self._children[predecessor].remove(successor)
        self._bump()

    def _contract(self, joint: Joint) -> None:
        """Merge the successor of ``joint`` into its predecessor's topology."""
        successor = self._successor[joint]
        predecessor = self._predecessor[joint]
        for child in self._children[successor]:
            self._predecessor[self._joint_to_parent[child]] = predecessor
            self._children[predecessor].append(child)
        self._children[successor] = []
        for loop_joint in self._non_tree_joints:
            if self._predecessor[loop_joint] is successor:
                self._predecessor[loop_joint] = predecessor
            if self._successor[loop_joint] is successor:
                self._successor[loop_joint] = predecessor
        self._remove_tree_edge(joint)

    def set_gravity(self, gravity) -> None:
        self.gravitational_acceleration = FreeVector3D(self.root_frame, gravity)

    def add_body_fixed_frame(self, body: RigidBody, transform: Transform3D) -> None:
        """Attach ``transform.from_frame`` to ``body``."""
        self._check_body(body)
        body.add_frame(transform)

    def remove_fixed_joints(self) -> None:
        from rbdlab.mechanism.modification import remove_fixed_joints
        remove_fixed_joints(self)

    def to_maximal_coordinates(self, floating_joint_type: type[JointType] = SPQuatFloating):
        """See :func:`rbdlab.mechanism.modification.maximal_coordinates`."""
        from rbdlab.mechanism.modification import maximal_coordinates
        return maximal_coordinates(self, floating_joint_type)

    def submechanism(self, root_body: RigidBody) -> Mechanism:
        from rbdlab.mechanism.modification import submechanism
        return submechanism(self, root_body)

    def copy(self) -> Mechanism:
        """
        Structural copy with new Body and Joint objects.

        Frames are shared with the original, so transforms and frame
        definitions of the original remain meaningful for the copy.
        """
        from rbdlab.mechanism.modification import submechanism
        return submechanism(self, self.root_body)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def _check_body(self, body: RigidBody) -> None:
        if body not in self._children:
            raise UnknownEntity(f"Body '{getattr(body, 'name', body)}' is not part of the mechanism")

    def _check_joint(self, joint: Joint) -> None:
        if joint not in self._predecessor:
            raise UnknownEntity(f"Joint '{getattr(joint, 'name', joint)}' is not part of the mechanism")

    @property
    def root_frame(self) -> CartesianFrame3D:
        return self.root_body.frame

    @property
    def bodies(self) -> list[RigidBody]:
        return list(self._bodies)

    @property
    def non_root_bodies(self) -> list[RigidBody]:
        return self._bodies[1:]

    @property
    def tree_joints(self) -> list[Joint]:
        return list(self._tree_joints)

    @property
    def non_tree_joints(self) -> list[Joint]:
        return list(self._non_tree_joints)

    @property
    def joints(self) -> list[Joint]:
        return self._tree_joints + self._non_tree_joints

    def __contains__(self, item) -> bool:
        return item in self._children or item in self._predecessor

    def find_body(self, name: str) -> RigidBody:
        for body in self._bodies:
            if body.name == name:
                return body
        raise UnknownEntity(f"No body named '{name}'")

    def find_joint(self, name: str) -> Joint:
        for joint in self.joints:
            if joint.name == name:
                return joint
        raise UnknownEntity(f"No joint named '{name}'")

    def predecessor(self, joint: Joint) -> RigidBody:
        self._check_joint(joint)
        return self._predecessor[joint]

    def successor(self, joint: Joint) -> RigidBody:
        self._check_joint(joint)
        return self._successor[joint]

    def joint_to_parent(self, body: RigidBody) -> Joint:
        self._check_body(body)
        if body is self.root_body:
            raise TopologyViolation("The root body has no joint to a parent")
        return self._joint_to_parent[body]

    def parent(self, body: RigidBody) -> RigidBody:
        return self._predecessor[self.joint_to_parent(body)]

    def children(self, body: RigidBody) -> list[RigidBody]:
        self._check_body(body)
        return list(self._children[body])

    def ancestors(self, body: RigidBody) -> list[RigidBody]:
        """Strict ancestors of ``body``, from its parent up to the root."""
        self._check_body(body)
        out = []
        while body is not self.root_body:
            body = self._predecessor[self._joint_to_parent[body]]
            out.append(body)
        return out

    def is_ancestor(self, ancestor: RigidBody, body: RigidBody) -> bool:
        return ancestor is body or ancestor in self.ancestors(body)

    def body_fixed_frame_to_body(self, frame: CartesianFrame3D) -> RigidBody:
        for body in self._bodies:
            if body.has_frame(frame):
                return body
        raise UnknownEntity(f"{frame!r} is not attached to any body of the mechanism")

    def _update_layout(self) -> None:
        if self._layout_modcount == self.modcount:
            return
        self._qranges.clear()
        self._vranges.clear()
        qstart = vstart = 0
        for joint in self._tree_joints:
            self._qranges[joint] = slice(qstart, qstart + joint.num_positions)
            self._vranges[joint] = slice(vstart, vstart + joint.num_velocities)
            qstart += joint.num_positions
            vstart += joint.num_velocities
        self._body_index = {body: i for i, body in enumerate(self._bodies)}
        self._layout_modcount = self.modcount

    def position_range(self, joint: Joint) -> slice:
        """Slice of the configuration vector owned by a tree joint."""
        self._update_layout()
        try:
            return self._qranges[joint]
        except KeyError:
            raise UnknownEntity(f"Joint '{joint.name}' is not a tree joint of the mechanism") from None

    def velocity_range(self, joint: Joint) -> slice:
        """Slice of the velocity vector owned by a tree joint."""
        self._update_layout()
        try:
            return self._vranges[joint]
        except KeyError:
            raise UnknownEntity(f"Joint '{joint.name}' is not a tree joint of the mechanism") from None

    def body_index(self, body: RigidBody) -> int:
        self._update_layout()
        try:
            return self._body_index[body]
        except KeyError:
            raise UnknownEntity(f"Body '{body.name}' is not part of the mechanism") from None

    def num_positions(self) -> int:
        return sum(j.num_positions for j in self._tree_joints)

    def num_velocities(self) -> int:
        return sum(j.num_velocities for j in self._tree_joints)

    def num_constraints(self) -> int:
        return sum(j.num_constraints for j in self._non_tree_joints)

    def mass(self, bodies: Iterable[RigidBody] | None = None):
        """Total mass of all bodies that have an inertia (the root included)."""
        total = 0.0
        for body in (self._bodies if bodies is None else bodies):
            if body.inertia is not None:
                total = total + body.inertia.mass
        return total

    def __str__(self) -> str:
        lines = [self.root_body.name]

        def visit(body: RigidBody, depth: int) -> None:
            for child in self._children[body]:
                joint = self._joint_to_parent[child]
                lines.append(f"{'  ' * depth}{joint} -> {child.name}")
                visit(child, depth + 1)

        visit(self.root_body, 1)
        for joint in self._non_tree_joints:
            lines.append(
                f"loop {joint}: {self._predecessor[joint].name} -> {self._successor[joint].name}"
            )
        return "\n".join(lines)

    def __repr__(self) -> str:
        return (f"Mechanism(root={self.root_body.name!r}, bodies={len(self._bodies)}, "
                f"loop_joints={len(self._non_tree_joints)})")
