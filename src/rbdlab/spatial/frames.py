"""Coordinate frame identity tags."""
from __future__ import annotations

import itertools

_frame_ids = itertools.count()


class CartesianFrame3D:
    """
    Opaque identity tag for a 3D reference frame.

    A frame carries no geometry; it only labels the coordinate system that a
    point, vector, transform or spatial quantity is expressed in. Two frames
    are equal only if they are the same object, so frames created with the
    same name are still distinct.

    Parameters
    ----------
    name : str
        Human-readable label used in reprs and error messages.

    Examples
    --------
    >>> world = CartesianFrame3D("world")
    >>> world == CartesianFrame3D("world")
    False
    """
    __slots__ = ("name", "id")

    def __init__(self, name: str = "anonymous") -> None:
        self.name = str(name)
        self.id = next(_frame_ids)

    def __repr__(self) -> str:
        return f"CartesianFrame3D({self.name!r}, id={self.id})"

    def __str__(self) -> str:
        return self.name
