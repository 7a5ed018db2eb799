import numpy as np
import pytest

from rbdlab.core import (
    DynamicsResult,
    MechanismState,
    constraint_jacobian_and_bias_into,
    dynamics,
    dynamics_bias,
    forward_dynamics,
    geometric_jacobian,
    gravitational_potential_energy,
    inverse_dynamics,
    inverse_dynamics_into,
    mass_matrix,
    mass_matrix_into,
)
from rbdlab.errors import DimensionMismatch, FrameMismatch, SingularSystem
from rbdlab.mechanism import Joint, Mechanism, QuaternionFloating, Revolute, RigidBody, SPQuatFloating
from rbdlab.models import double_pendulum, rand_chain_mechanism, rand_tree_mechanism
from rbdlab.spatial import Wrench


@pytest.fixture
def random_state(random_tree, rng):
    state = MechanismState(random_tree)
    state.rand(rng)
    return state


@pytest.fixture
def closed_chain(rng):
    """Seven-link revolute chain whose last link is tied back to the world."""
    mechanism = rand_chain_mechanism([Revolute] * 7, rng)
    last = mechanism.bodies[-1]
    mechanism.add_loop_joint(last, Joint("closure", Revolute(rng.standard_normal(3))), mechanism.root_body)
    return mechanism


def test_mass_matrix_symmetric_positive_definite(random_state):
    M = mass_matrix(random_state)
    assert np.array_equal(M, M.T)
    assert np.all(np.linalg.eigvalsh(M) > 0)


@pytest.mark.parametrize("seed", range(5))
def test_mass_matrix_exactly_symmetric_with_floating_joints(seed):
    rng = np.random.default_rng(seed)
    mechanism = rand_tree_mechanism([QuaternionFloating, SPQuatFloating, Revolute, Revolute], rng)
    state = MechanismState(mechanism)
    state.rand(rng)
    M = mass_matrix(state)
    assert np.array_equal(M, M.T)


def test_mass_matrix_buffer_checked(random_state):
    with pytest.raises(DimensionMismatch):
        mass_matrix_into(np.zeros((2, 2)), random_state)


def test_inverse_forward_round_trip(random_state, rng):
    vd = rng.standard_normal(random_state.num_velocities)
    tau = inverse_dynamics(random_state, vd)
    assert np.allclose(forward_dynamics(random_state, tau), vd)


def test_inverse_dynamics_is_affine_in_acceleration(random_state, rng):
    vd = rng.standard_normal(random_state.num_velocities)
    M = mass_matrix(random_state)
    c = dynamics_bias(random_state)
    assert np.allclose(inverse_dynamics(random_state, vd), M @ vd + c)


def test_gravity_torque_is_potential_gradient(pendulum):
    q = np.array([0.4, -1.1])
    state = MechanismState(pendulum)
    state.set_configuration(q)
    g = dynamics_bias(state)
    eps = 1e-6
    grad = np.zeros(2)
    for i in range(2):
        dq = np.zeros(2)
        dq[i] = eps
        state.set_configuration(q + dq)
        plus = gravitational_potential_energy(state)
        state.set_configuration(q - dq)
        minus = gravitational_potential_energy(state)
        grad[i] = (plus - minus) / (2 * eps)
    assert np.allclose(g, grad, atol=1e-6)


def test_external_wrench_enters_through_jacobian(random_state, random_tree, rng):
    body = random_tree.bodies[-1]
    vd = rng.standard_normal(random_state.num_velocities)
    w = Wrench.from_vector(random_tree.root_frame, rng.standard_normal(6))
    J = geometric_jacobian(random_state, body).to_matrix()
    tau = inverse_dynamics(random_state, vd, {body: w})
    assert np.allclose(tau, inverse_dynamics(random_state, vd) - J.T @ w.as_vector())


def test_external_wrench_frame_checked(random_state, random_tree):
    body = random_tree.bodies[-1]
    w = Wrench.zero(body.frame)
    with pytest.raises(FrameMismatch):
        inverse_dynamics(random_state, np.zeros(random_state.num_velocities), {body: w})


def test_inverse_dynamics_dimension_checks(random_state):
    nv = random_state.num_velocities
    with pytest.raises(DimensionMismatch):
        inverse_dynamics(random_state, np.zeros(nv + 1))
    with pytest.raises(DimensionMismatch):
        inverse_dynamics_into(np.zeros(nv - 1), random_state, np.zeros(nv))


def test_dynamics_result_reuse(pendulum):
    state = MechanismState(pendulum)
    result = DynamicsResult(pendulum)
    state.set_configuration([0.2, 0.1])
    dynamics(result, state, [0.0, 0.0])
    first = result.vd.copy()
    state.set_configuration([np.pi / 2, 0.0])
    dynamics(result, state)
    assert not np.allclose(first, result.vd)
    assert np.allclose(result.massmatrix @ result.vd + result.dynamicsbias, 0.0)


def test_dynamics_argument_checks(pendulum):
    state = MechanismState(pendulum)
    with pytest.raises(ValueError):
        dynamics(DynamicsResult(double_pendulum()), state)
    with pytest.raises(DimensionMismatch):
        dynamics(DynamicsResult(pendulum), state, np.zeros(3))


def test_singular_mass_matrix():
    world = RigidBody("world")
    m = Mechanism(world)
    m.add_body(world, Joint("j", Revolute([0, 0, 1])), RigidBody("ghost"))
    with pytest.raises(SingularSystem):
        forward_dynamics(MechanismState(m))


def test_constraint_jacobian_shapes(closed_chain):
    state = MechanismState(closed_chain)
    K = np.zeros((5, 7))
    k = np.zeros(5)
    constraint_jacobian_and_bias_into(K, k, state)
    assert np.linalg.matrix_rank(K) == 5
    with pytest.raises(DimensionMismatch):
        constraint_jacobian_and_bias_into(np.zeros((6, 7)), k, state)


def test_closed_loop_dynamics_satisfies_kkt(closed_chain, rng):
    state = MechanismState(closed_chain)
    state.rand(rng)
    tau = rng.standard_normal(7)
    result = DynamicsResult(closed_chain)
    dynamics(result, state, tau)
    M, c = result.massmatrix, result.dynamicsbias
    K, k = result.constraint_jacobian, result.constraint_bias
    lam = result.lagrange_multipliers
    assert np.allclose(M @ result.vd - K.T @ lam, tau - c)
    assert np.allclose(K @ result.vd, -k)



def test_closed_loop_dynamics_reuses_buffers(closed_chain, rng):
    """Repeated solves write into the same result arrays and agree with a fresh solve."""
    state = MechanismState(closed_chain)
    result = DynamicsResult(closed_chain)
    buffers = [result.vd, result.lagrange_multipliers, result._MinvKt, result._schur, result._schur_rhs]
    for _ in range(3):
        state.rand(rng)
        tau = rng.standard_normal(7)
        dynamics(result, state, tau)
        assert np.allclose(result.vd, forward_dynamics(state, tau))
    assert all(a is b for a, b in zip(buffers, [result.vd, result.lagrange_multipliers, result._MinvKt,
                                                result._schur, result._schur_rhs]))

def test_constraint_stabilization(closed_chain, rng):
    state = MechanismState(closed_chain)
    state.rand(rng)
    beta = 10.0
    result = DynamicsResult(closed_chain, stabilization_gain=beta)
    dynamics(result, state)
    K, k = result.constraint_jacobian, result.constraint_bias
    assert np.allclose(K @ result.vd, -k - beta * K @ state.velocity)
