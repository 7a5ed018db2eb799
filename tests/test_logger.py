import csv

import numpy as np
import pytest
import sympy as sp

from rbdlab.core import MechanismState
from rbdlab.logger import CSVLogger
from rbdlab.models import double_pendulum


@pytest.fixture
def state(pendulum):
    s = MechanismState(pendulum)
    s.set_configuration([0.1, 0.2])
    s.set_velocity([0.3, 0.4])
    return s


def read_rows(path):
    with open(path, "r", newline="") as f:
        return list(csv.reader(f))


def test_logger_basic_io(tmp_path, state):
    """Test that logger creates file and writes header + data correctly."""
    log_path = tmp_path / "test_basic.csv"

    with CSVLogger(str(log_path), buffer_size=1) as logger:
        logger.log(0.0, state)

    rows = read_rows(log_path)
    assert len(rows) == 2
    assert rows[0] == ["t", "shoulder.q_0", "shoulder.v_0", "elbow.q_0", "elbow.v_0"]
    values = [float(x) for x in rows[1]]
    assert values == pytest.approx([0.0, 0.1, 0.3, 0.2, 0.4])


def test_logger_buffering(tmp_path, state):
    """Data is buffered and only written when the buffer fills or flush is called."""
    log_path = tmp_path / "test_buffer.csv"
    buffer_size = 5

    logger = CSVLogger(str(log_path), buffer_size=buffer_size)
    for i in range(buffer_size - 1):
        logger.log(float(i), state)

    # Header only
    assert len(read_rows(log_path)) == 1

    logger.log(float(buffer_size), state)
    assert len(read_rows(log_path)) == 1 + buffer_size

    logger.log(10.0, state)
    logger.close()
    assert len(read_rows(log_path)) == 2 + buffer_size


def test_logger_field_selection(tmp_path, state):
    log_path = tmp_path / "q_only.csv"
    with CSVLogger(log_path, fields=["q"]) as logger:
        logger.log(0.5, state)
    rows = read_rows(log_path)
    assert rows[0] == ["t", "shoulder.q_0", "elbow.q_0"]


def test_logger_invalid_field(tmp_path):
    with pytest.raises(ValueError):
        CSVLogger(tmp_path / "bad.csv", fields=["q", "torque"])


def test_logger_invalid_buffer_size(tmp_path):
    with pytest.raises(ValueError, match="buffer_size"):
        CSVLogger(tmp_path / "bad.csv", buffer_size=0)


def test_logger_creates_parent_directory(tmp_path, state):
    log_path = tmp_path / "nested" / "dir" / "log.csv"
    with CSVLogger(log_path) as logger:
        logger.log(0.0, state)
    assert log_path.exists()


def test_logger_multi_coordinate_joints(tmp_path, random_tree, rng):
    state = MechanismState(random_tree)
    state.rand(rng)
    log_path = tmp_path / "tree.csv"
    with CSVLogger(log_path) as logger:
        logger.log(0.0, state)
    header, row = read_rows(log_path)
    assert len(header) == 1 + state.num_positions + state.num_velocities
    floating = next(j for j in random_tree.tree_joints if j.num_positions == 7)
    assert f"{floating.name}.q_6" in header
    assert f"{floating.name}.v_5" in header
    assert np.allclose(sorted(float(x) for x in row[1:]),
                       sorted(np.concatenate([state.configuration, state.velocity])))


def test_logger_rejects_symbolic_state(tmp_path):
    m1 = sp.Symbol("m1", positive=True)
    state = MechanismState(double_pendulum(m1=m1), dtype=object)
    with pytest.raises(TypeError):
        CSVLogger(tmp_path / "sym.csv").log(0.0, state)


def test_logger_reopen_after_close_appends(tmp_path, state):
    """Logging after close continues the file instead of truncating it."""
    log_path = tmp_path / "reopen.csv"
    logger = CSVLogger(log_path, buffer_size=1)
    logger.log(0.0, state)
    logger.close()
    logger.log(1.0, state)
    logger.close()

    rows = read_rows(log_path)
    assert rows[0][0] == "t"
    assert [float(r[0]) for r in rows[1:]] == [0.0, 1.0]
