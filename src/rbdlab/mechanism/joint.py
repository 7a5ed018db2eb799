"""Joints: named edges between two bodies, carrying a joint type."""
from __future__ import annotations

import numpy as np

from rbdlab.errors import check_frame
from rbdlab.mechanism.joint_types import JointType
from rbdlab.spatial import CartesianFrame3D, GeometricJacobian, Transform3D, Wrench, WrenchMatrix
from rbdlab.utils.scalar import as_array
from rbdlab.utils.validation import validate_vector

Array = np.ndarray


class Joint:
    """
    Directed edge from a predecessor body to a successor body.

    The joint owns two frames: ``frame_before`` is rigidly attached to the
    predecessor and ``frame_after`` to the successor. The joint type maps the
    joint's configuration to the transform between them.

    Parameters
    ----------
    name : str
        Unique joint name within a mechanism
    joint_type : JointType
        Motion parametrization
    frame_before, frame_after : CartesianFrame3D | None
        Joint frames; created from the joint name when omitted
    """
    __slots__ = ("name", "joint_type", "frame_before", "frame_after")

    def __init__(
        self,
        name: str,
        joint_type: JointType,
        frame_before: CartesianFrame3D | None = None,
        frame_after: CartesianFrame3D | None = None,
    ) -> None:
        if not isinstance(joint_type, JointType):
            raise TypeError(f"joint_type must be a JointType, got {type(joint_type).__name__}")
        self.name = str(name)
        self.joint_type = joint_type
        self.frame_before = frame_before or CartesianFrame3D(f"before_{self.name}")
        self.frame_after = frame_after or CartesianFrame3D(f"after_{self.name}")

    @property
    def num_positions(self) -> int:
        return self.joint_type.num_positions

    @property
    def num_velocities(self) -> int:
        return self.joint_type.num_velocities

    @property
    def num_constraints(self) -> int:
        return 6 - self.joint_type.num_velocities

    def _check_q(self, q) -> Array:
        q = as_array(q)
        validate_vector(q, self.num_positions, f"Configuration of joint '{self.name}'")
        return q

    def joint_transform(self, q) -> Transform3D:
        """Transform from ``frame_after`` to ``frame_before``."""
        return self.joint_type.joint_transform(self.frame_after, self.frame_before, self._check_q(q))

    def motion_subspace(self, q) -> GeometricJacobian:
        """Motion subspace expressed in ``frame_after``."""
        return self.joint_type.motion_subspace(self.frame_after, self.frame_before, self._check_q(q))

    def constraint_wrench_subspace(self, q) -> WrenchMatrix:
        return self.joint_type.constraint_wrench_subspace(self.frame_after, self._check_q(q))

    def configuration_derivative(self, q, v) -> Array:
        v = as_array(v)
        validate_vector(v, self.num_velocities, f"Velocity of joint '{self.name}'")
        return self.joint_type.configuration_derivative(self._check_q(q), v)

    def zero_configuration(self, dtype=np.float64) -> Array:
        return self.joint_type.zero_configuration(dtype)

    def rand_configuration(self, rng: np.random.Generator) -> Array:
        return self.joint_type.rand_configuration(rng)

    def normalize_configuration(self, q: Array) -> None:
        self.joint_type.normalize_configuration(q)

    def joint_torque(self, q, wrench: Wrench) -> Array:
        """
        Generalized force produced by ``wrench`` acting across the joint.

        ``wrench`` must be expressed in ``frame_after``; the result is the
        projection ``S(q)^T wrench``.
        """
        check_frame(self.frame_after, wrench.frame, "Joint wrench")
        S = self.joint_type.motion_subspace_matrix(self._check_q(q))
        return S.T @ wrench.as_vector()

    def copy(self) -> Joint:
        """New joint with the same name, type and frames."""
        return Joint(self.name, self.joint_type, self.frame_before, self.frame_after)

    def __repr__(self) -> str:
        return f"Joint({self.name!r}, {self.joint_type!r})"

    def __str__(self) -> str:
        return f"{self.name} ({type(self.joint_type).__name__})"
