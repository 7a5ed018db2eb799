"""
Rigid bodies: a default frame, an optional spatial inertia and any number
of additional body-fixed frames.

All physical quantities use SI units:
- Position: meters [m]
- Mass: kilograms [kg]
- Inertia: kilogram-meter-squared [kg·m²]
"""
from __future__ import annotations

from typing import Iterator

from rbdlab.errors import FrameMismatch, UnknownEntity, check_frame
from rbdlab.spatial import CartesianFrame3D, SpatialInertia, Transform3D


class RigidBody:
    """
    Node of a kinematic tree.

    Parameters
    ----------
    name : str
        Unique body name within a mechanism
    inertia : SpatialInertia | None
        Mass properties. ``None`` marks a massless body (e.g. the world).
        Must be expressed in the body's default frame.
    frame : CartesianFrame3D | None
        Default frame of the body. A new frame named after the body is
        created when omitted.

    Notes
    -----
    Every body-fixed frame ``f`` is defined by a ``Transform3D(f, self.frame)``.
    Joint attachment frames are registered here when the body is attached to
    a mechanism.
    """
    __slots__ = ("name", "frame", "_inertia", "_frame_definitions")

    def __init__(
        self,
        name: str,
        inertia: SpatialInertia | None = None,
        frame: CartesianFrame3D | None = None,
    ) -> None:
        self.name = str(name)
        self.frame = CartesianFrame3D(self.name) if frame is None else frame
        self._frame_definitions: dict[CartesianFrame3D, Transform3D] = {
            self.frame: Transform3D.identity(self.frame)
        }
        self._inertia = None
        self.inertia = inertia

    @property
    def inertia(self) -> SpatialInertia | None:
        return self._inertia

    @inertia.setter
    def inertia(self, inertia: SpatialInertia | None) -> None:
        if inertia is not None and inertia.frame is not self.frame:
            if inertia.frame not in self._frame_definitions:
                raise FrameMismatch(
                    f"Inertia of body '{self.name}' is expressed in {inertia.frame!r}, "
                    f"which is not attached to the body"
                )
            inertia = inertia.transform(self._frame_definitions[inertia.frame])
        self._inertia = inertia

    def has_inertia(self) -> bool:
        return self._inertia is not None

    def add_frame(self, transform: Transform3D) -> None:
        """
        Attach ``transform.from_frame`` to this body.

        ``transform.to_frame`` may be any frame already attached to the body;
        the definition is stored relative to the default frame.
        """
        if transform.from_frame in self._frame_definitions:
            raise ValueError(
                f"Frame {transform.from_frame!r} is already attached to body '{self.name}'"
            )
        to_default = self._frame_definitions.get(transform.to_frame)
        if to_default is None:
            raise FrameMismatch(
                f"Cannot attach {transform.from_frame!r} to body '{self.name}': "
                f"{transform.to_frame!r} is not a frame of this body"
            )
        self._frame_definitions[transform.from_frame] = to_default @ transform

    def frame_definition(self, frame: CartesianFrame3D) -> Transform3D:
        """Transform from ``frame`` to the default frame of the body."""
        try:
            return self._frame_definitions[frame]
        except KeyError:
            raise UnknownEntity(f"{frame!r} is not attached to body '{self.name}'") from None

    def has_frame(self, frame: CartesianFrame3D) -> bool:
        return frame in self._frame_definitions

    def frames(self) -> Iterator[CartesianFrame3D]:
        return iter(list(self._frame_definitions))

    def _set_frame_definition(self, transform: Transform3D) -> None:
        # Used when merging bodies: the definition replaces any existing one
        check_frame(self.frame, transform.to_frame, "frame definition")
        self._frame_definitions[transform.from_frame] = transform

    def copy(self) -> RigidBody:
        """New body with the same name, frames and inertia."""
        body = RigidBody.__new__(RigidBody)
        body.name = self.name
        body.frame = self.frame
        body._frame_definitions = dict(self._frame_definitions)
        body._inertia = self._inertia
        return body

    def __repr__(self) -> str:
        return f"RigidBody({self.name!r})"

    def __str__(self) -> str:
        return self.name
