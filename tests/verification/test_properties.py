"""
Structural Property Tests.

Checks that hold for any mechanism, verified on random trees with every
joint type:
- the mass matrix is symmetric positive definite
- inverse and forward dynamics are inverses of each other
- contracting fixed joints leaves the dynamics unchanged
- maximal coordinates reproduce the body accelerations of the tree
- floating joint configuration derivatives match finite differences
"""

import numpy as np
import pytest

from rbdlab.core import (
    MechanismState,
    dynamics_bias,
    forward_dynamics,
    inverse_dynamics,
    mass_matrix,
    spatial_acceleration,
)
from rbdlab.mechanism import Fixed, QuaternionFloating, Revolute, SPQuatFloating
from rbdlab.models import rand_chain_mechanism, rand_tree_mechanism
from rbdlab.spatial.util import skew

PROPERTY_TOLERANCE = 1e-8
CONSTRAINED_TOLERANCE = 1e-6
FINITE_DIFFERENCE_STEP = 1e-6

MIXED_JOINTS = [
    Revolute, Fixed, QuaternionFloating, Revolute, SPQuatFloating,
    Fixed, Revolute, Fixed, Revolute,
]


@pytest.fixture(params=range(3))
def random_state(request):
    rng = np.random.default_rng(request.param)
    mechanism = rand_tree_mechanism(MIXED_JOINTS, rng)
    state = MechanismState(mechanism)
    state.rand(rng)
    return state


def _velocity_permutation(src_state, dest_state):
    """Indices into the velocity vector of ``src_state`` for each entry of ``dest_state``'s."""
    src = src_state.mechanism
    index = []
    for joint in dest_state.tree_joints:
        r = src.velocity_range(src.find_joint(joint.name))
        index.extend(range(r.start, r.stop))
    return np.array(index, dtype=int)


def _copy_joint_state(src_state, dest_state):
    src = src_state.mechanism
    for joint in dest_state.tree_joints:
        original = src.find_joint(joint.name)
        dest_state.set_configuration(src_state.joint_configuration(original), joint=joint)
        dest_state.set_velocity(src_state.joint_velocity(original), joint=joint)


class TestMassMatrix:

    def test_symmetric_positive_definite(self, random_state):
        M = mass_matrix(random_state)
        assert np.array_equal(M, M.T)
        assert np.all(np.linalg.eigvalsh(M) > 0)

    def test_chain_positive_definite(self):
        rng = np.random.default_rng(7)
        state = MechanismState(rand_chain_mechanism([Revolute] * 8, rng))
        state.rand(rng)
        assert np.all(np.linalg.eigvalsh(mass_matrix(state)) > 0)


class TestDynamicsRoundTrip:

    def test_inverse_then_forward(self, random_state):
        rng = np.random.default_rng(11)
        vd = rng.standard_normal(random_state.num_velocities)
        tau = inverse_dynamics(random_state, vd)
        assert np.allclose(forward_dynamics(random_state, tau), vd, atol=PROPERTY_TOLERANCE)

    def test_forward_then_inverse(self, random_state):
        rng = np.random.default_rng(12)
        tau = rng.standard_normal(random_state.num_velocities)
        vd = forward_dynamics(random_state, tau)
        assert np.allclose(inverse_dynamics(random_state, vd), tau, atol=PROPERTY_TOLERANCE)


class TestRemoveFixedJoints:
    """Contracting fixed joints is invisible to the dynamics."""

    @pytest.fixture
    def contracted(self, random_state):
        mechanism = random_state.mechanism.copy()
        mechanism.remove_fixed_joints()
        state = MechanismState(mechanism)
        _copy_joint_state(random_state, state)
        return state

    def test_no_fixed_joints_left(self, contracted):
        assert all(j.num_velocities > 0 for j in contracted.tree_joints)

    def test_mass_preserved(self, random_state, contracted):
        assert contracted.mechanism.mass() == pytest.approx(random_state.mechanism.mass())

    def test_composite_inertia_preserved(self, random_state, contracted):
        original = random_state.crb_inertia(random_state.mechanism.root_body)
        merged = contracted.crb_inertia(contracted.mechanism.root_body)
        assert np.allclose(merged.to_matrix(), original.to_matrix(), atol=PROPERTY_TOLERANCE)

    def test_mass_matrix_preserved(self, random_state, contracted):
        idx = _velocity_permutation(random_state, contracted)
        expected = mass_matrix(random_state)[np.ix_(idx, idx)]
        assert np.allclose(mass_matrix(contracted), expected, atol=PROPERTY_TOLERANCE)

    def test_dynamics_bias_preserved(self, random_state, contracted):
        idx = _velocity_permutation(random_state, contracted)
        expected = dynamics_bias(random_state)[idx]
        assert np.allclose(dynamics_bias(contracted), expected, atol=PROPERTY_TOLERANCE)


class TestMaximalCoordinates:
    """A tree and its maximal-coordinate counterpart move the same way."""

    def test_configuration_size(self, random_state):
        mechanism = random_state.mechanism
        mc = mechanism.to_maximal_coordinates()
        n = len(mechanism.non_root_bodies)
        added = mc.mechanism.num_positions() - mechanism.num_positions()
        assert added == 6 * n - sum(j.num_positions for j in mechanism.tree_joints)

    def test_twists_match(self, random_state):
        mc = random_state.mechanism.to_maximal_coordinates()
        maximal = MechanismState(mc.mechanism)
        mc.configure(maximal, random_state)
        for body, new_body in mc.bodymap.items():
            expected = random_state.twist_wrt_world(body).as_vector()
            actual = maximal.twist_wrt_world(new_body).as_vector()
            assert np.allclose(actual, expected, atol=PROPERTY_TOLERANCE)

    def test_accelerations_match(self, random_state):
        mc = random_state.mechanism.to_maximal_coordinates()
        maximal = MechanismState(mc.mechanism)
        mc.configure(maximal, random_state)
        vd_tree = forward_dynamics(random_state)
        vd_maximal = forward_dynamics(maximal)
        for body, new_body in mc.bodymap.items():
            expected = spatial_acceleration(random_state, body, vd_tree).as_vector()
            actual = spatial_acceleration(maximal, new_body, vd_maximal).as_vector()
            assert np.allclose(actual, expected, atol=CONSTRAINED_TOLERANCE)


class TestFloatingConfigurationDerivative:
    """
    Central differences along ``q̇ = configuration_derivative(q, v)``:

        dR/dt = R [ω]×
        dp/dt = R v_linear
    """

    @pytest.mark.parametrize("joint_type", [QuaternionFloating, SPQuatFloating])
    @pytest.mark.parametrize("seed", range(3))
    def test_rotation_rate(self, joint_type, seed):
        rng = np.random.default_rng(seed)
        jt = joint_type()
        q = jt.rand_configuration(rng)
        v = rng.standard_normal(6)
        qd = jt.configuration_derivative(q, v)
        eps = FINITE_DIFFERENCE_STEP
        Rdot = (jt.rotation(q + eps * qd) - jt.rotation(q - eps * qd)) / (2 * eps)
        assert np.allclose(Rdot, jt.rotation(q) @ skew(v[:3]), atol=CONSTRAINED_TOLERANCE)

    @pytest.mark.parametrize("joint_type", [QuaternionFloating, SPQuatFloating])
    def test_translation_rate(self, joint_type):
        rng = np.random.default_rng(3)
        jt = joint_type()
        q = jt.rand_configuration(rng)
        v = rng.standard_normal(6)
        qd = jt.configuration_derivative(q, v)
        assert np.allclose(qd[-3:], jt.rotation(q) @ v[3:], atol=PROPERTY_TOLERANCE)
