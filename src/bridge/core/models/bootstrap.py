"""Installer and readiness models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, computed_field

# Every owner-scoped table carries select/insert/update/delete policies.
MIN_POLICIES_PER_TABLE = 4


class InstallResult(BaseModel):
    """Outcome of one installer run."""

    bootstrapped: bool = False
    already_initialized: bool = False
    created: list[str] = Field(
        default_factory=list, description="Objects created by this run, in order"
    )

    @classmethod
    def from_changes(cls, created: list[str]) -> InstallResult:
        if created:
            return cls(bootstrapped=True, created=created)
        return cls(already_initialized=True)

    @classmethod
    def from_rpc_payload(cls, payload: dict[str, Any]) -> InstallResult:
        if payload.get("already_initialized"):
            return cls(already_initialized=True)
        return cls(bootstrapped=bool(payload.get("bootstrapped", True)))


class TablePresence(BaseModel):
    projects: bool = False
    profiles: bool = False


class PolicyCounts(BaseModel):
    projects: int = 0
    profiles: int = 0


class TriggerPresence(BaseModel):
    projects_updated_at: bool = False
    profiles_updated_at: bool = False


class IndexPresence(BaseModel):
    idx_projects_user_id: bool = False


class ReadinessReport(BaseModel):
    """Structural snapshot of the objects row-level security depends on."""

    tables: TablePresence = Field(default_factory=TablePresence)
    rls: TablePresence = Field(default_factory=TablePresence)
    policies: PolicyCounts = Field(default_factory=PolicyCounts)
    triggers: TriggerPresence = Field(default_factory=TriggerPresence)
    indexes: IndexPresence = Field(default_factory=IndexPresence)

    @computed_field
    @property
    def ready(self) -> bool:
        return (
            self.tables.projects
            and self.tables.profiles
            and self.rls.projects
            and self.rls.profiles
            and self.triggers.projects_updated_at
            and self.triggers.profiles_updated_at
            and self.indexes.idx_projects_user_id
            and self.policies.projects >= MIN_POLICIES_PER_TABLE
            and self.policies.profiles >= MIN_POLICIES_PER_TABLE
        )

    def missing(self) -> list[str]:
        """Human-readable names of what keeps the report from being ready."""
        gaps = []
        for table in ("projects", "profiles"):
            if not getattr(self.tables, table):
                gaps.append(f"table {table}")
            if not getattr(self.rls, table):
                gaps.append(f"rls on {table}")
            if not getattr(self.triggers, f"{table}_updated_at"):
                gaps.append(f"trigger {table}_set_updated_at")
            count = getattr(self.policies, table)
            if count < MIN_POLICIES_PER_TABLE:
                gaps.append(f"policies on {table} ({count}/{MIN_POLICIES_PER_TABLE})")
        if not self.indexes.idx_projects_user_id:
            gaps.append("index idx_projects_user_id")
        return gaps
