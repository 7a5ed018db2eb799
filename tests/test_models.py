import numpy as np

from rbdlab.core import MechanismState, mass_matrix
from rbdlab.mechanism import Fixed, Prismatic, QuaternionFloating, Revolute
from rbdlab.models import double_pendulum, rand_chain_mechanism, rand_tree_mechanism


def test_double_pendulum_layout(pendulum):
    assert [b.name for b in pendulum.bodies] == ["world", "upper_link", "lower_link"]
    assert [j.name for j in pendulum.tree_joints] == ["shoulder", "elbow"]
    assert all(j.joint_type == Revolute([0, 1, 0]) for j in pendulum.tree_joints)
    assert np.isclose(pendulum.mass(), 2.0)


def test_double_pendulum_parameters():
    m = double_pendulum(m1=2.0, m2=3.0, lc1=0.25, gravity=[0.0, 0.0, -1.0])
    upper = m.find_body("upper_link")
    assert np.isclose(upper.inertia.mass, 2.0)
    assert np.allclose(upper.inertia.center_of_mass().v, [0.0, 0.0, -0.25])
    assert np.allclose(m.gravitational_acceleration.v, [0.0, 0.0, -1.0])


def test_rand_chain_is_serial(rng):
    m = rand_chain_mechanism([Revolute, Prismatic, Fixed, Revolute], rng)
    for parent, child in zip(m.bodies[:-1], m.bodies[1:]):
        assert m.parent(child) is parent
    assert m.num_velocities() == 3


def test_rand_tree_reproducible():
    types = [Revolute, QuaternionFloating, Prismatic, Revolute]
    a = rand_tree_mechanism(types, np.random.default_rng(7))
    b = rand_tree_mechanism(types, np.random.default_rng(7))
    assert [a.parent(x).name for x in a.non_root_bodies] == [b.parent(x).name for x in b.non_root_bodies]
    sa, sb = MechanismState(a), MechanismState(b)
    sa.rand(1)
    sb.rand(1)
    assert np.allclose(mass_matrix(sa), mass_matrix(sb))


def test_rand_tree_joint_types(random_tree):
    kinds = [type(j.joint_type) for j in random_tree.tree_joints]
    assert kinds.count(QuaternionFloating) == 1
    assert random_tree.num_positions() == random_tree.num_velocities() + 1
