"""
Error hierarchy for RBDLab.

All errors are raised synchronously at the point the inconsistency is
detected and are never corrected silently. Each domain error also derives
from the built-in exception a caller would naturally catch for it, so
``except ValueError`` keeps working for frame or dimension problems.
"""
from __future__ import annotations


class RBDError(Exception):
    """Base class for all RBDLab errors."""


class FrameMismatch(RBDError, ValueError):
    """Geometric operands are expressed in incompatible frames."""


class UnknownEntity(RBDError, LookupError):
    """A body, joint or frame is not part of the queried mechanism."""


class TopologyViolation(RBDError, ValueError):
    """A structural edit would produce an invalid kinematic graph."""


class DimensionMismatch(RBDError, ValueError):
    """A vector or matrix does not have the size the mechanism requires."""


class SingularSystem(RBDError, ArithmeticError):
    """The mass matrix (or constraint system) could not be factorized."""


def check_frame(expected, actual, what: str = "operand") -> None:
    """
    Raise FrameMismatch unless two frames are the same frame.

    Parameters
    ----------
    expected : CartesianFrame3D
        Frame the operation requires.
    actual : CartesianFrame3D
        Frame the operand is expressed in.
    what : str
        Short description used in the error message.
    """
    if expected is not actual:
        raise FrameMismatch(
            f"{what} is expressed in {actual!r}, expected {expected!r}"
        )

