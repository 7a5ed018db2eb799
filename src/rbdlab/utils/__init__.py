"""Utility functions for RBDLab."""

from .scalar import dtype_of, is_symbolic, simplify
from .validation import (
    validate_inertia_tensor,
    validate_mass,
    validate_positive,
    validate_unit_quaternion,
    validate_vector,
)

__all__ = [
    "dtype_of",
    "is_symbolic",
    "simplify",
    "validate_positive",
    "validate_mass",
    "validate_inertia_tensor",
    "validate_vector",
    "validate_unit_quaternion",
]
