"""
Validation utilities for physical parameters and state vectors.

Symbolic (SymPy) parameters cannot be checked for sign or definiteness, so
every check here is skipped for symbolic input.
"""
from __future__ import annotations

import warnings

import numpy as np
from numpy.typing import NDArray

from rbdlab.errors import DimensionMismatch
from rbdlab.utils.scalar import is_symbolic

MIN_MASS = 1e-10  # Below this a body is considered massless
SYMMETRY_TOLERANCE = 1e-9
UNIT_NORM_TOLERANCE = 1e-6


def validate_positive(value: float, name: str, strict: bool = True) -> None:
    """
    Validate that a scalar value is positive.

    Parameters
    ----------
    value : float
        Value to validate
    name : str
        Parameter name for error messages
    strict : bool
        If True, raise ValueError. If False, issue warning.

    Raises
    ------
    ValueError
        If strict=True and value <= 0
    """
    if is_symbolic(value):
        return
    if value <= 0:
        msg = f"{name} must be positive, got {value}"
        if strict:
            raise ValueError(msg)
        warnings.warn(msg, RuntimeWarning, stacklevel=2)


def validate_mass(mass: float) -> None:
    """Reject negative mass, warn for vanishingly small mass."""
    if is_symbolic(mass):
        return
    if mass < 0:
        raise ValueError(f"Mass must be non-negative, got {mass}")
    if 0 < mass < MIN_MASS:
        warnings.warn(
            f"Very small mass ({mass} kg) detected. Consider using a larger value.",
            RuntimeWarning,
            stacklevel=3,
        )


def validate_inertia_tensor(I: NDArray[np.float64]) -> None:
    """
    Validate inertia tensor is 3x3, symmetric and positive semi-definite.

    Parameters
    ----------
    I : NDArray[np.float64]
        Inertia tensor (3, 3)

    Raises
    ------
    DimensionMismatch
        If the shape is wrong
    ValueError
        If the matrix has a negative eigenvalue
    """
    I = np.asarray(I)
    if I.shape != (3, 3):
        raise DimensionMismatch(f"Inertia tensor must be 3x3, got shape {I.shape}")
    if is_symbolic(I):
        return

    if not np.allclose(I, I.T, atol=SYMMETRY_TOLERANCE):
        warnings.warn(
            "Inertia tensor is not symmetric; only its symmetric part is physical.",
            RuntimeWarning,
            stacklevel=3,
        )

    eigenvalues = np.linalg.eigvalsh(0.5 * (I + I.T))
    if np.any(eigenvalues < -SYMMETRY_TOLERANCE):
        raise ValueError(
            f"Inertia tensor must be positive semi-definite. "
            f"Got eigenvalues: {eigenvalues}"
        )


def validate_vector(v, length: int, name: str) -> None:
    """Raise DimensionMismatch unless ``v`` is a vector of ``length`` entries."""
    shape = np.shape(v)
    if shape != (length,):
        raise DimensionMismatch(f"{name} must have shape ({length},), got {shape}")


def validate_unit_quaternion(q, tol: float = UNIT_NORM_TOLERANCE) -> None:
    """
    Warn if a quaternion (w, x, y, z) is not normalized.

    Non-unit quaternions still describe a rotation (the rotation formula
    divides by the squared norm), so this only warns.
    """
    if is_symbolic(np.asarray(q)):
        return
    norm = float(np.linalg.norm(q))
    if abs(norm - 1.0) > tol:
        warnings.warn(
            f"Quaternion not normalized: |q| = {norm:.6f}. "
            "Consider calling normalize_configuration().",
            RuntimeWarning,
            stacklevel=3,
        )
