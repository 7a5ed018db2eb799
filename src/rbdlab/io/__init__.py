"""Model file readers."""

from .urdf import UrdfEntry, parse_urdf, urdf_entries

__all__ = ["UrdfEntry", "urdf_entries", "parse_urdf"]
