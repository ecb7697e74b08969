"""Pydantic schemas exchanged between the engine and its callers."""
from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, Field, ConfigDict

from .models import RoleLabel, TaskStatus, TransitionReason

# Assignee identifiers are opaque to the planner; only equality is relied upon.
# The SQLAlchemy task store persists integer ids only.
AssigneeId = Union[int, str]


# Role Task Schemas

class RoleTask(BaseModel):
    """Snapshot of a role-scoped requirement task.

    Built from ORM rows (from_attributes) by the task store and handed to
    the reconciler as its view of current state.
    """

    id: int
    requirement_id: int
    role_label: RoleLabel
    assignee_id: AssigneeId
    status: TaskStatus = TaskStatus.TO_DO
    description: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True, frozen=True)


class RoleTaskDetails(BaseModel):
    """Content supplied with a requirement edit for one role label."""

    description: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class RoleTaskCreate(BaseModel):
    """A role task the caller must create."""

    role_label: RoleLabel
    assignee_id: AssigneeId
    details: Optional[RoleTaskDetails] = None


class RoleTaskUpdate(BaseModel):
    """Content refresh for a kept role task. Only changed fields are set."""

    task_id: int
    description: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class ReconciliationPlan(BaseModel):
    """Create/update/delete plan for the role tasks of one requirement.

    Every id in to_update is also listed in unchanged: the task keeps its
    identity and status, only content fields are refreshed.
    """

    requirement_id: int
    to_delete: list[int] = Field(default_factory=list)
    to_create: list[RoleTaskCreate] = Field(default_factory=list)
    unchanged: list[int] = Field(default_factory=list)
    to_update: list[RoleTaskUpdate] = Field(default_factory=list)
    rejected_labels: list[str] = Field(default_factory=list, description="Role labels left out of the plan because they were not recognized")

    @property
    def is_empty(self) -> bool:
        """True when applying the plan would not change the store."""
        return not (self.to_delete or self.to_create or self.to_update)


# Board Decision Schemas

class TransitionDecision(BaseModel):
    """Outcome of a board move check. Denial is a normal outcome, not an error."""

    allowed: bool
    reason: Optional[TransitionReason] = None

    model_config = ConfigDict(frozen=True)


class ColumnAccessibility(BaseModel):
    """How one board column may be used by a role set."""

    status: TaskStatus
    is_visible: bool
    is_draggable: bool
    is_droppable: bool
    reason: Optional[TransitionReason] = None

    model_config = ConfigDict(frozen=True)
