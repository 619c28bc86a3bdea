"""Entity package: row-level-security protected tables."""

from .table import CALLER_ID_SQL, OWNER_COLUMNS, SCHEMA, ProfileRow, ProjectRow

__all__ = ["CALLER_ID_SQL", "OWNER_COLUMNS", "SCHEMA", "ProfileRow", "ProjectRow"]
