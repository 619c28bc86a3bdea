"""Entities module.

Each entity package keeps its persistence model (``table.py``) next to the
names other layers import from it.
"""

from .rls import ProfileRow, ProjectRow

__all__ = ["ProfileRow", "ProjectRow"]
