"""
Scalar-type helpers.

The engine is written once against NumPy arrays and works for two scalar
backends:

- ``float64`` arrays for numerical work
- ``object`` arrays holding SymPy expressions for closed-form analysis

Arithmetic (``+``, ``*``, ``@``) already dispatches correctly on both array
kinds. The only places that need help are transcendental functions of a single
scalar and the choice of dtype for freshly allocated buffers; this module
provides both.

Examples
--------
>>> import sympy as sp
>>> q = sp.symbols("q")
>>> sin(q)
sin(q)
>>> sin(0.0)
0.0
"""
from __future__ import annotations

from typing import Any

import numpy as np
import sympy

SYMBOLIC = np.dtype(object)
NUMERIC = np.dtype(np.float64)


def is_symbolic(x: Any) -> bool:
    """Return True for SymPy expressions and object arrays."""
    if isinstance(x, np.ndarray):
        return x.dtype == SYMBOLIC
    return isinstance(x, sympy.Basic)


def sin(x):
    return sympy.sin(x) if isinstance(x, sympy.Basic) else np.sin(x)


def cos(x):
    return sympy.cos(x) if isinstance(x, sympy.Basic) else np.cos(x)


def dtype_of(*values: Any) -> np.dtype:
    """
    Common dtype for a set of scalars or arrays.

    Anything symbolic (or already ``object``) promotes to ``object``; every
    numeric input promotes to ``float64``.
    """
    for v in values:
        if v is None:
            continue
        if isinstance(v, np.ndarray):
            if v.dtype == SYMBOLIC:
                return SYMBOLIC
        elif isinstance(v, np.dtype) or isinstance(v, type):
            if np.dtype(v) == SYMBOLIC:
                return SYMBOLIC
        elif isinstance(v, (list, tuple)):
            if dtype_of(*v) == SYMBOLIC:
                return SYMBOLIC
        elif isinstance(v, sympy.Basic):
            return SYMBOLIC
    return NUMERIC


def as_array(values: Any, dtype: np.dtype | None = None) -> np.ndarray:
    """
    Convert to an array with the engine's dtype conventions.

    Lists containing SymPy expressions become ``object`` arrays; everything
    else becomes ``float64`` unless ``dtype`` says otherwise.
    """
    if dtype is None:
        dtype = dtype_of(values)
    return np.array(values, dtype=dtype)


def simplify(x: Any) -> Any:
    """
    Simplify a SymPy expression or every element of an object array.

    Numeric input is returned unchanged.
    """
    if isinstance(x, np.ndarray):
        if x.dtype != SYMBOLIC:
            return x
        out = np.empty_like(x)
        for idx, el in np.ndenumerate(x):
            out[idx] = sympy.simplify(el) if isinstance(el, sympy.Basic) else el
        return out
    if isinstance(x, sympy.Basic):
        return sympy.simplify(x)
    return x


def to_matrix(x: np.ndarray) -> sympy.Matrix:
    """Convert a (symbolic) 1D or 2D array into a SymPy Matrix."""
    return sympy.Matrix(np.atleast_1d(x).tolist())
