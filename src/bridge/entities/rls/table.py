"""Owner-scoped tables protected by row-level security."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, Index, Text, text
from sqlalchemy.dialects.postgresql import UUID
from sqlmodel import Field, SQLModel

SCHEMA = "public"

# Resolves to the ``sub`` of the minted token inside the data platform.
CALLER_ID_SQL = "auth.uid()"


def _timestamp_column() -> Column:
    return Column(DateTime(timezone=True), nullable=False, server_default=text("now()"))


class ProfileRow(SQLModel, table=True):
    """One profile per mapped identity; the row id is the owner."""

    __tablename__ = "profiles"
    __table_args__ = {"schema": SCHEMA}

    id: uuid.UUID | None = Field(
        default=None,
        sa_column=Column(
            UUID(as_uuid=True), primary_key=True, server_default=text(CALLER_ID_SQL)
        ),
    )
    display_name: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    created_at: datetime | None = Field(default=None, sa_column=_timestamp_column())
    updated_at: datetime | None = Field(default=None, sa_column=_timestamp_column())


class ProjectRow(SQLModel, table=True):
    """Projects owned through ``user_id``."""

    __tablename__ = "projects"
    __table_args__ = (
        Index("idx_projects_user_id", "user_id"),
        {"schema": SCHEMA},
    )

    id: uuid.UUID | None = Field(
        default=None,
        sa_column=Column(
            UUID(as_uuid=True),
            primary_key=True,
            server_default=text("gen_random_uuid()"),
        ),
    )
    user_id: uuid.UUID | None = Field(
        default=None,
        sa_column=Column(
            UUID(as_uuid=True), nullable=False, server_default=text(CALLER_ID_SQL)
        ),
    )
    name: str = Field(sa_column=Column(Text, nullable=False))
    description: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    created_at: datetime | None = Field(default=None, sa_column=_timestamp_column())
    updated_at: datetime | None = Field(default=None, sa_column=_timestamp_column())


# Owner column per table, used by the row policies.
OWNER_COLUMNS = {
    ProfileRow.__tablename__: "id",
    ProjectRow.__tablename__: "user_id",
}
