"""
Rigid transforms, points and free vectors with frame annotations.

Every quantity carries the frame it is expressed in, and every operation
checks that its operands agree on frames. Mixing frames raises
``FrameMismatch`` instead of silently producing wrong numbers.

Conventions
-----------
A ``Transform3D(from_frame, to_frame, R, p)`` maps coordinates of a point
expressed in ``from_frame`` to coordinates in ``to_frame``::

    x_to = R @ x_from + p

Composition reads right to left: ``t_ab @ t_bc`` is the transform from ``c``
to ``a``.
"""
from __future__ import annotations

import numpy as np

from rbdlab.errors import check_frame
from rbdlab.spatial.frames import CartesianFrame3D
from rbdlab.utils.scalar import as_array, is_symbolic

Array = np.ndarray


def _vector3(v, name: str) -> Array:
    a = as_array(v)
    if a.shape != (3,):
        raise ValueError(f"{name} must have shape (3,), got {a.shape}")
    return a


class Transform3D:
    """
    Rigid transform between two frames.

    Parameters
    ----------
    from_frame : CartesianFrame3D
        Frame the input coordinates are expressed in
    to_frame : CartesianFrame3D
        Frame the output coordinates are expressed in
    rotation : array_like | None
        3x3 rotation matrix. Defaults to identity.
    translation : array_like | None
        Position of the ``from_frame`` origin expressed in ``to_frame``.
        Defaults to zero.
    """
    __slots__ = ("from_frame", "to_frame", "rotation", "translation")

    def __init__(
        self,
        from_frame: CartesianFrame3D,
        to_frame: CartesianFrame3D,
        rotation=None,
        translation=None,
    ) -> None:
        self.from_frame = from_frame
        self.to_frame = to_frame
        self.rotation = np.eye(3) if rotation is None else as_array(rotation)
        if self.rotation.shape != (3, 3):
            raise ValueError(f"Rotation must be 3x3, got shape {self.rotation.shape}")
        self.translation = (np.zeros(3) if translation is None
                            else _vector3(translation, "Translation"))

    @classmethod
    def identity(cls, frame: CartesianFrame3D, to_frame: CartesianFrame3D | None = None) -> Transform3D:
        """Identity transform from ``frame`` to ``to_frame`` (default: itself)."""
        return cls(frame, frame if to_frame is None else to_frame)

    def compose(self, other: Transform3D) -> Transform3D:
        """``self ∘ other``: apply ``other`` first, then ``self``."""
        check_frame(self.from_frame, other.to_frame, "inner frame of composed transform")
        R = self.rotation @ other.rotation
        p = self.rotation @ other.translation + self.translation
        return Transform3D(other.from_frame, self.to_frame, R, p)

    def inv(self) -> Transform3D:
        """Inverse transform using the block structure."""
        Rt = self.rotation.T
        return Transform3D(self.to_frame, self.from_frame, Rt, -(Rt @ self.translation))

    def __matmul__(self, other):
        if isinstance(other, Transform3D):
            return self.compose(other)
        transform = getattr(other, "transform", None)
        if transform is None:
            return NotImplemented
        return transform(self)

    def to_matrix(self) -> Array:
        """4x4 homogeneous matrix."""
        H = np.zeros((4, 4), dtype=np.result_type(self.rotation, self.translation))
        H[:3, :3] = self.rotation
        H[:3, 3] = self.translation
        H[3, 3] = 1
        return H

    def isapprox(self, other: Transform3D, atol: float = 1e-10) -> bool:
        """Numerical equality including frame annotations."""
        return (self.from_frame is other.from_frame
                and self.to_frame is other.to_frame
                and np.allclose(self.rotation.astype(float), other.rotation.astype(float), atol=atol)
                and np.allclose(self.translation.astype(float), other.translation.astype(float), atol=atol))

    def __repr__(self) -> str:
        return (f"Transform3D(from={self.from_frame}, to={self.to_frame},\n"
                f"  rotation={self.rotation.tolist()},\n"
                f"  translation={self.translation.tolist()})")


class FreeVector3D:
    """
    Direction or displacement expressed in a frame.

    A free vector has no point of application, so transforms only rotate it.
    """
    __slots__ = ("frame", "v")

    def __init__(self, frame: CartesianFrame3D, v) -> None:
        self.frame = frame
        self.v = _vector3(v, "FreeVector3D")

    def transform(self, tf: Transform3D) -> FreeVector3D:
        check_frame(tf.from_frame, self.frame, "FreeVector3D")
        return FreeVector3D(tf.to_frame, tf.rotation @ self.v)

    def __add__(self, other):
        if isinstance(other, FreeVector3D):
            check_frame(self.frame, other.frame, "FreeVector3D operand")
            return FreeVector3D(self.frame, self.v + other.v)
        if isinstance(other, Point3D):
            return other + self
        return NotImplemented

    def __sub__(self, other):
        if isinstance(other, FreeVector3D):
            check_frame(self.frame, other.frame, "FreeVector3D operand")
            return FreeVector3D(self.frame, self.v - other.v)
        return NotImplemented

    def __neg__(self) -> FreeVector3D:
        return FreeVector3D(self.frame, -self.v)

    def __mul__(self, s) -> FreeVector3D:
        return FreeVector3D(self.frame, self.v * s)

    __rmul__ = __mul__

    def dot(self, other: FreeVector3D):
        check_frame(self.frame, other.frame, "FreeVector3D operand")
        return self.v @ other.v

    def norm(self):
        if is_symbolic(self.v):
            raise TypeError("norm() is only defined for numeric vectors")
        return float(np.linalg.norm(self.v))

    def isapprox(self, other: FreeVector3D, atol: float = 1e-10) -> bool:
        return (isinstance(other, FreeVector3D) and self.frame is other.frame
                and np.allclose(self.v.astype(float), other.v.astype(float), atol=atol))

    def __repr__(self) -> str:
        return f"FreeVector3D(in {self.frame}: {self.v.tolist()})"


class Point3D:
    """
    Location expressed in a frame.

    Only displacements can be added to a point; ``Point3D + Point3D`` is a
    TypeError and the difference of two points is a ``FreeVector3D``.
    """
    __slots__ = ("frame", "v")

    def __init__(self, frame: CartesianFrame3D, v) -> None:
        self.frame = frame
        self.v = _vector3(v, "Point3D")

    def transform(self, tf: Transform3D) -> Point3D:
        check_frame(tf.from_frame, self.frame, "Point3D")
        return Point3D(tf.to_frame, tf.rotation @ self.v + tf.translation)

    def __add__(self, other):
        if isinstance(other, FreeVector3D):
            check_frame(self.frame, other.frame, "FreeVector3D added to Point3D")
            return Point3D(self.frame, self.v + other.v)
        if isinstance(other, Point3D):
            raise TypeError("Cannot add two points; subtract them to get a FreeVector3D")
        return NotImplemented

    def __sub__(self, other):
        if isinstance(other, Point3D):
            check_frame(self.frame, other.frame, "Point3D operand")
            return FreeVector3D(self.frame, self.v - other.v)
        if isinstance(other, FreeVector3D):
            check_frame(self.frame, other.frame, "FreeVector3D subtracted from Point3D")
            return Point3D(self.frame, self.v - other.v)
        return NotImplemented

    def isapprox(self, other: Point3D, atol: float = 1e-10) -> bool:
        return (isinstance(other, Point3D) and self.frame is other.frame
                and np.allclose(self.v.astype(float), other.v.astype(float), atol=atol))

    def __repr__(self) -> str:
        return f"Point3D(in {self.frame}: {self.v.tolist()})"


def transform(x, tf: Transform3D):
    """Express ``x`` (point, vector, spatial quantity) in ``tf.to_frame``."""
    if isinstance(x, Transform3D):
        return tf.compose(x)
    try:
        method = x.transform
    except AttributeError:
        raise TypeError(f"Cannot transform object of type {type(x).__name__}") from None
    return method(tf)

