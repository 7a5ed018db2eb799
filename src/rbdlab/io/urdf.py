"""
URDF reader.

Parses a URDF file with lxml and turns links and joints into ``RigidBody``
and ``Joint`` objects in breadth-first order from the root link, ready to be
attached to a ``Mechanism``.

Supported joint types: revolute, continuous, prismatic, fixed and floating.
Joint limits, dynamics tags and geometry (visual/collision) are ignored.
"""
from __future__ import annotations

from collections import deque
from pathlib import Path
from typing import Iterator, NamedTuple

import numpy as np
from lxml import etree

from rbdlab.errors import UnknownEntity
from rbdlab.mechanism import (
    DEFAULT_GRAVITY,
    Fixed,
    Joint,
    JointType,
    Mechanism,
    Prismatic,
    QuaternionFloating,
    Revolute,
    RigidBody,
)
from rbdlab.spatial import SpatialInertia, Transform3D
from rbdlab.spatial.util import rotation_from_rpy

DEFAULT_AXIS = (1.0, 0.0, 0.0)  # URDF default joint axis


class UrdfEntry(NamedTuple):
    """
    One body of a URDF file.

    For the root link ``parent_name``, ``joint`` and ``joint_pose`` are None.
    Otherwise ``joint_pose`` is the transform from ``joint.frame_before`` to
    the default frame of the parent link.
    """
    parent_name: str | None
    joint: Joint | None
    body: RigidBody
    joint_pose: Transform3D | None


def _vector(elem, attr: str, default) -> np.ndarray:
    if elem is None or elem.get(attr) is None:
        return np.array(default, dtype=np.float64)
    values = [float(x) for x in elem.get(attr).split()]
    if len(values) != len(default):
        raise ValueError(f"Attribute '{attr}' must have {len(default)} values, got {values}")
    return np.array(values, dtype=np.float64)


def _origin(elem) -> tuple[np.ndarray, np.ndarray]:
    """Rotation and translation of an ``<origin>`` child (identity if absent)."""
    origin = elem.find("origin")
    rpy = _vector(origin, "rpy", (0.0, 0.0, 0.0))
    xyz = _vector(origin, "xyz", (0.0, 0.0, 0.0))
    return rotation_from_rpy(rpy), xyz


def _inertia(link, body: RigidBody) -> SpatialInertia | None:
    inertial = link.find("inertial")
    if inertial is None:
        return None
    R, com = _origin(inertial)
    mass_elem = inertial.find("mass")
    mass = float(mass_elem.get("value")) if mass_elem is not None else 0.0
    I = np.zeros((3, 3))
    inertia_elem = inertial.find("inertia")
    if inertia_elem is not None:
        get = lambda name: float(inertia_elem.get(name, 0.0))
        I = np.array([
            [get("ixx"), get("ixy"), get("ixz")],
            [get("ixy"), get("iyy"), get("iyz")],
            [get("ixz"), get("iyz"), get("izz")],
        ])
    # Inertia tensor is given about the COM in the inertial origin frame
    return SpatialInertia.from_com(body.frame, mass, com, R @ I @ R.T)


def _joint_type(elem) -> JointType:
    kind = elem.get("type")
    if kind in ("revolute", "continuous"):
        return Revolute(_vector(elem.find("axis"), "xyz", DEFAULT_AXIS))
    if kind == "prismatic":
        return Prismatic(_vector(elem.find("axis"), "xyz", DEFAULT_AXIS))
    if kind == "fixed":
        return Fixed()
    if kind == "floating":
        return QuaternionFloating()
    raise ValueError(f"Joint '{elem.get('name')}' has unsupported type '{kind}'")


def urdf_entries(path: str | Path) -> Iterator[UrdfEntry]:
    """
    Read a URDF file into bodies and joints.

    Yields the root link first, then every other link in breadth-first order,
    so each entry's parent has already been yielded.

    Raises
    ------
    ValueError
        If the file is not a URDF robot, has an unsupported joint type, or
        does not have exactly one root link
    UnknownEntity
        If a joint references a link that is not defined
    """
    robot = etree.parse(str(path)).getroot()
    if robot.tag != "robot":
        raise ValueError(f"Expected a <robot> root element, got <{robot.tag}>")

    bodies: dict[str, RigidBody] = {}
    for link in robot.findall("link"):
        body = RigidBody(link.get("name"))
        body.inertia = _inertia(link, body)
        bodies[body.name] = body

    children: dict[str, list] = {name: [] for name in bodies}
    child_names = set()
    for elem in robot.findall("joint"):
        parent = elem.find("parent").get("link")
        child = elem.find("child").get("link")
        for name in (parent, child):
            if name not in bodies:
                raise UnknownEntity(f"Joint '{elem.get('name')}' references unknown link '{name}'")
        children[parent].append(elem)
        child_names.add(child)

    roots = [name for name in bodies if name not in child_names]
    if len(roots) != 1:
        raise ValueError(f"Expected exactly one root link, found: {roots}")

    yield UrdfEntry(None, None, bodies[roots[0]], None)
    queue = deque(roots)
    while queue:
        parent_name = queue.popleft()
        for elem in children[parent_name]:
            child_name = elem.find("child").get("link")
            joint = Joint(elem.get("name"), _joint_type(elem))
            R, p = _origin(elem)
            pose = Transform3D(joint.frame_before, bodies[parent_name].frame, R, p)
            yield UrdfEntry(parent_name, joint, bodies[child_name], pose)
            queue.append(child_name)


def parse_urdf(
    path: str | Path,
    floating: bool = False,
    gravity=DEFAULT_GRAVITY,
    root_name: str = "world",
) -> Mechanism:
    """
    Build a Mechanism from a URDF file.

    Parameters
    ----------
    path : str | Path
        URDF file
    floating : bool
        Attach the URDF root link to the world with a quaternion floating
        joint instead of a fixed joint
    gravity : array_like
        Gravitational acceleration in the world frame [m/s²]
    root_name : str
        Name of the world body. A URDF root link with this name becomes the
        mechanism root itself when ``floating`` is False.

    Raises
    ------
    ValueError
        If ``floating`` is True and the URDF root link is named ``root_name``
    """
    mechanism = None
    for entry in urdf_entries(path):
        if entry.joint is None:
            if entry.body.name == root_name:
                if floating:
                    raise ValueError(f"Cannot attach the URDF root link '{root_name}' to itself with a floating joint")
                mechanism = Mechanism(entry.body, gravity)
                continue
            world = RigidBody(root_name)
            mechanism = Mechanism(world, gravity)
            joint_type = QuaternionFloating() if floating else Fixed()
            mechanism.add_body(world, Joint(f"{root_name}_to_{entry.body.name}", joint_type), entry.body)
        else:
            parent = mechanism.find_body(entry.parent_name)
            mechanism.add_body(parent, entry.joint, entry.body, joint_pose=entry.joint_pose)
    return mechanism
