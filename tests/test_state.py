import numpy as np
import pytest

from rbdlab.core import CacheState, MechanismState
from rbdlab.errors import DimensionMismatch, TopologyViolation, UnknownEntity
from rbdlab.mechanism import Joint, Mechanism, QuaternionFloating, Revolute, RigidBody
from rbdlab.spatial import Point3D, Transform3D


@pytest.fixture
def state(pendulum):
    return MechanismState(pendulum)


def test_initial_state(state):
    assert state.num_positions == 2
    assert state.num_velocities == 2
    assert np.allclose(state.configuration, 0)
    assert np.allclose(state.velocity, 0)
    assert not state.is_symbolic


def test_cache_transitions(state, pendulum):
    lower = pendulum.find_body("lower_link")
    for name in ("transforms", "motion_subspaces", "inertias", "crb_inertias", "twists"):
        assert state.cache_state(name) is CacheState.STALE

    state.transform_to_root(lower)
    assert state.cache_state("transforms") is CacheState.FRESH
    assert state.cache_state("twists") is CacheState.STALE

    state.twist_wrt_world(lower)
    assert state.cache_state("twists") is CacheState.FRESH
    assert state.cache_state("motion_subspaces") is CacheState.FRESH

    state.set_velocity([1.0, 0.0])
    assert state.cache_state("transforms") is CacheState.FRESH
    assert state.cache_state("twists") is CacheState.STALE
    assert state.cache_state("bias_accelerations") is CacheState.STALE

    state.set_configuration([0.1, 0.2])
    assert state.cache_state("transforms") is CacheState.STALE

    with pytest.raises(ValueError):
        state.cache_state("bogus")


def test_configuration_is_read_only(state):
    with pytest.raises(ValueError):
        state.configuration[0] = 1.0
    state.configuration = [0.5, -0.5]
    assert np.allclose(state.configuration, [0.5, -0.5])


def test_per_joint_setters(state, pendulum):
    elbow = pendulum.find_joint("elbow")
    state.set_configuration([0.3], joint=elbow)
    state.set_velocity([2.0], joint=elbow)
    assert np.allclose(state.configuration, [0.0, 0.3])
    assert np.allclose(state.joint_velocity(elbow), [2.0])
    with pytest.raises(DimensionMismatch):
        state.set_configuration([0.1, 0.2], joint=elbow)


def test_dimension_mismatch(state):
    with pytest.raises(DimensionMismatch):
        state.set_configuration([0.0])
    with pytest.raises(DimensionMismatch):
        state.set_velocity(np.zeros(3))


def test_unknown_entities(state):
    stranger = RigidBody("stranger")
    with pytest.raises(UnknownEntity):
        state.transform_to_root(stranger)
    with pytest.raises(UnknownEntity):
        state.joint_configuration(Joint("stranger", Revolute([1, 0, 0])))


def test_topology_change_invalidates_state(pendulum):
    state = MechanismState(pendulum)
    lower = pendulum.find_body("lower_link")
    pendulum.add_body(lower, Joint("wrist", Revolute([0, 1, 0])), RigidBody("hand"))
    with pytest.raises(TopologyViolation):
        state.set_configuration([0.0, 0.0])
    with pytest.raises(TopologyViolation):
        state.transform_to_root(lower)


def test_transforms(state, pendulum):
    upper = pendulum.find_body("upper_link")
    lower = pendulum.find_body("lower_link")
    state.set_configuration([np.pi / 2, 0.0])
    tf = state.transform_to_root(lower)
    assert tf.from_frame is lower.frame and tf.to_frame is pendulum.root_frame
    assert np.allclose(tf.translation, [-1.0, 0.0, 0.0])
    rel = state.relative_transform(lower.frame, upper.frame)
    assert rel.isapprox(state.transform_to_root(upper).inv() @ tf)
    assert np.allclose(rel.translation, [0.0, 0.0, -1.0])


def test_transform_of_point(state, pendulum):
    lower = pendulum.find_body("lower_link")
    state.set_configuration([np.pi / 2, 0.0])
    p = state.transform(Point3D(lower.frame, [0.0, 0.0, -0.5]), pendulum.root_frame)
    assert np.allclose(p.v, [-1.5, 0.0, 0.0])


def test_joint_transform(state, pendulum):
    elbow = pendulum.find_joint("elbow")
    state.set_configuration([0.0, np.pi])
    tf = state.joint_transform(elbow)
    assert tf.from_frame is elbow.frame_after
    assert np.allclose(tf.rotation, np.diag([-1.0, 1.0, -1.0]))


def test_twists(state, pendulum):
    upper = pendulum.find_body("upper_link")
    lower = pendulum.find_body("lower_link")
    state.set_velocity([0.0, 1.0])
    assert np.allclose(state.twist_wrt_world(upper).as_vector(), 0.0)
    # Rotation about the elbow axis through (0, 0, -1)
    assert np.allclose(state.twist_wrt_world(lower).as_vector(), [0, 1, 0, 1, 0, 0])
    rel = state.relative_twist(lower, upper)
    assert rel.body is lower.frame and rel.base is upper.frame
    assert np.allclose(rel.as_vector(), [0, 1, 0, 1, 0, 0])


def test_bias_acceleration_is_centripetal(state, pendulum):
    lower = pendulum.find_body("lower_link")
    state.set_velocity([1.0, 0.0])
    # Pure rotation about a root-fixed axis has zero spatial bias acceleration
    assert np.allclose(state.bias_acceleration(lower).as_vector(), 0.0)
    state.set_velocity([1.0, 1.0])
    assert not np.allclose(state.bias_acceleration(lower).as_vector(), 0.0)


def test_motion_subspace_in_root_frame(state, pendulum):
    elbow = pendulum.find_joint("elbow")
    S = state.motion_subspace(elbow)
    assert S.frame is pendulum.root_frame
    assert np.allclose(S.to_matrix()[:, 0], [0, 1, 0, 1, 0, 0])


def test_inertias(state, pendulum):
    upper = pendulum.find_body("upper_link")
    state.set_configuration([np.pi / 2, 0.0])
    inertia = state.spatial_inertia(upper)
    assert inertia.frame is pendulum.root_frame
    assert inertia.center_of_mass().isapprox(Point3D(pendulum.root_frame, [-0.5, 0.0, 0.0]))
    crb = state.crb_inertia(upper)
    assert np.isclose(crb.mass, 2.0)
    assert np.isclose(state.spatial_inertia(pendulum.root_body).mass, 0.0)


def test_copy_and_zero(state):
    state.set_configuration([0.1, 0.2])
    state.set_velocity([0.3, 0.4])
    other = state.copy()
    assert np.allclose(other.configuration, [0.1, 0.2])
    state.zero()
    assert np.allclose(state.configuration, 0)
    assert np.allclose(other.velocity, [0.3, 0.4])


def test_floating_state(rng):
    world = RigidBody("world")
    m = Mechanism(world)
    floating = Joint("floating", QuaternionFloating())
    m.add_body(world, floating, RigidBody("body"))
    state = MechanismState(m)
    assert np.allclose(state.configuration, [1, 0, 0, 0, 0, 0, 0])
    state.rand(rng)
    assert np.isclose(np.linalg.norm(state.configuration[:4]), 1.0)
    with pytest.warns(RuntimeWarning):
        state.set_configuration([2.0, 0, 0, 0, 0, 0, 0])
    state.normalize_configuration()
    assert np.allclose(state.configuration[:4], [1, 0, 0, 0])


def test_body_fixed_frame_transform(state, pendulum):
    lower = pendulum.find_body("lower_link")
    elbow = pendulum.find_joint("elbow")
    state.set_configuration([0.0, 0.0])
    tf = state.transform_to_root(elbow.frame_before)
    assert np.allclose(tf.translation, [0.0, 0.0, -1.0])
    assert state.body_of_frame(elbow.frame_after) is lower
    root = state.mechanism.root_frame
    assert state.transform_to_root(root).isapprox(Transform3D.identity(root))
