"""
Planar double pendulum.

Both joints rotate about +y; the links hang along -z at zero configuration,
so the joint angles are measured from the hanging-down position. Every
parameter may be a SymPy symbol, which makes this the reference model for
closed-form checks of the mass matrix and gravity torques:

    M11 = I1 + I2 + m1 lc1² + m2 (l1² + lc2² + 2 l1 lc2 cos q2)
    M12 = I2 + m2 (lc2² + l1 lc2 cos q2)
    M22 = I2 + m2 lc2²
    g1  = m1 g lc1 sin q1 + m2 g (l1 sin q1 + lc2 sin(q1 + q2))
    g2  = m2 g lc2 sin(q1 + q2)
"""
from __future__ import annotations

from rbdlab.mechanism import DEFAULT_GRAVITY, Joint, Mechanism, Revolute, RigidBody
from rbdlab.spatial import SpatialInertia, Transform3D
from rbdlab.utils.scalar import as_array

AXIS = (0.0, 1.0, 0.0)


def _link(name: str, mass, length_to_com, moment) -> RigidBody:
    body = RigidBody(name)
    # Slender link along z: no inertia about its own axis
    Jc = as_array([[moment, 0, 0], [0, moment, 0], [0, 0, 0]])
    body.inertia = SpatialInertia.from_com(body.frame, mass, as_array([0, 0, -length_to_com]), Jc)
    return body


def double_pendulum(
    m1=1.0,
    m2=1.0,
    l1=1.0,
    l2=1.0,
    lc1=0.5,
    lc2=0.5,
    I1=1.0 / 12.0,
    I2=1.0 / 12.0,
    gravity=DEFAULT_GRAVITY,
) -> Mechanism:
    """
    Build a double pendulum attached to a fixed ``world`` body.

    Parameters
    ----------
    m1, m2 : float | sympy.Expr
        Link masses [kg]
    l1, l2 : float | sympy.Expr
        Link lengths [m]; only ``l1`` affects the dynamics
    lc1, lc2 : float | sympy.Expr
        Distance from each joint to the link's center of mass [m]
    I1, I2 : float | sympy.Expr
        Moment of inertia of each link about its center of mass, around
        the joint axis [kg·m²]
    gravity : array_like
        Gravitational acceleration in the world frame [m/s²]

    Returns
    -------
    Mechanism
        Bodies ``world``, ``upper_link``, ``lower_link``; joints
        ``shoulder`` and ``elbow``
    """
    world = RigidBody("world")
    mechanism = Mechanism(world, gravity=gravity)

    upper = _link("upper_link", m1, lc1, I1)
    shoulder = Joint("shoulder", Revolute(AXIS))
    mechanism.add_body(world, shoulder, upper)

    lower = _link("lower_link", m2, lc2, I2)
    elbow = Joint("elbow", Revolute(AXIS))
    elbow_pose = Transform3D(elbow.frame_before, upper.frame, translation=as_array([0, 0, -l1]))
    mechanism.add_body(upper, elbow, lower, joint_pose=elbow_pose)
    return mechanism
