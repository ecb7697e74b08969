"""SQLAlchemy database models and shared enums."""
from datetime import datetime
import enum

from sqlalchemy import (
    Column,
    String,
    Text,
    Integer,
    DateTime,
    ForeignKey,
    Enum,
    CheckConstraint,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

# Base class for all models
Base = declarative_base()


class Role(str, enum.Enum):
    """User role enum.

    Roles are assigned by the user store and are immutable inputs to the
    board policy. The numeric identifiers used by the user store are kept
    in ROLE_IDS.
    """

    ADMINISTRATOR = "administrator"
    ANALYST_DEPARTMENT_MANAGER = "analyst_department_manager"
    ANALYST = "analyst"
    DEVELOPMENT_MANAGER = "development_manager"
    SOFTWARE_DEVELOPER = "software_developer"
    QUALITY_CONTROL_MANAGER = "quality_control_manager"
    QUALITY_CONTROL_TEAM_MEMBER = "quality_control_team_member"
    DESIGNER_MANAGER = "designer_manager"
    DESIGNER_TEAM_MEMBER = "designer_team_member"


# Role identifiers as stored by the user store
ROLE_IDS: dict[int, Role] = {
    1: Role.ADMINISTRATOR,
    2: Role.ANALYST_DEPARTMENT_MANAGER,
    3: Role.ANALYST,
    4: Role.DEVELOPMENT_MANAGER,
    5: Role.SOFTWARE_DEVELOPER,
    6: Role.QUALITY_CONTROL_MANAGER,
    7: Role.QUALITY_CONTROL_TEAM_MEMBER,
    8: Role.DESIGNER_MANAGER,
    9: Role.DESIGNER_TEAM_MEMBER,
}


class TaskStatus(str, enum.Enum):
    """Task board status enum.

    Definition order is the board column order. Legality of moves between
    statuses is always role-relative (see role_policy), there is no global
    transition table.
    """

    TO_DO = "to_do"
    IN_PROGRESS = "in_progress"
    IN_REVIEW = "in_review"
    REWORK = "rework"
    COMPLETED = "completed"


# Status identifiers as stored by the task store
STATUS_IDS: dict[int, TaskStatus] = {
    1: TaskStatus.TO_DO,
    2: TaskStatus.IN_PROGRESS,
    3: TaskStatus.IN_REVIEW,
    4: TaskStatus.REWORK,
    5: TaskStatus.COMPLETED,
}


class RoleLabel(str, enum.Enum):
    """Functional role a requirement task is created for.

    Values are the strings stored in the tasks.role_type column.
    """

    DEVELOPER = "Developer"
    QC = "QC"
    DESIGNER = "Designer"


class TaskPriority(str, enum.Enum):
    """Task priority enum."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class TaskChangeType(str, enum.Enum):
    """Task history change type enum."""

    CREATED = "created"
    UPDATED = "updated"
    STATUS_CHANGED = "status_changed"


class TransitionReason(str, enum.Enum):
    """Reason code reported when a board column or move is restricted."""

    NOT_ACCESSIBLE = "notAccessible"
    CANNOT_MODIFY = "cannotModify"
    CANNOT_DRAG_FROM = "cannotDragFrom"
    CANNOT_DROP_TO = "cannotDropTo"


class Requirement(Base):
    """Project requirement that owns role-scoped tasks."""

    __tablename__ = "requirements"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    tasks = relationship("Task", back_populates="requirement", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<Requirement {self.id}: {self.name[:30]}>"


class Task(Base):
    """Task board record.

    Requirement tasks are scoped to one (requirement, role label, assignee)
    triple. Ad-hoc tasks carry no requirement and no role label.
    """

    __tablename__ = "tasks"
    __table_args__ = (
        # At most one live task per requirement, role label and assignee
        UniqueConstraint('requirement_id', 'role_type', 'assignee_id', name='uq_task_requirement_role_assignee'),
        CheckConstraint('progress >= 0 AND progress <= 100', name='task_progress_range'),
        # Deleted task ids are never handed to a replacement task
        {'sqlite_autoincrement': True},
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    requirement_id = Column(
        Integer,
        ForeignKey("requirements.id", ondelete="CASCADE"),
        nullable=True,  # Nullable for ad-hoc tasks
        index=True
    )
    # Use values_callable to serialize enum values instead of names
    role_label = Column(
        "role_type",
        Enum(RoleLabel, values_callable=lambda obj: [e.value for e in obj]),
        nullable=True,
        index=True
    )
    assignee_id = Column(Integer, nullable=True, index=True)

    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(Enum(TaskStatus, values_callable=lambda obj: [e.value for e in obj]), nullable=False, default=TaskStatus.TO_DO, index=True)
    priority = Column(Enum(TaskPriority, values_callable=lambda obj: [e.value for e in obj]), nullable=False, default=TaskPriority.MEDIUM)
    progress = Column(Integer, nullable=False, default=0)
    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    requirement = relationship("Requirement", back_populates="tasks")
    history = relationship("TaskHistory", back_populates="task", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<Task {self.id}: {self.role_label} -> {self.assignee_id}>"


class TaskHistory(Base):
    """Task change history for audit trail."""

    __tablename__ = "task_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    task_id = Column(
        Integer,
        ForeignKey("tasks.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    change_type = Column(Enum(TaskChangeType, values_callable=lambda obj: [e.value for e in obj]), nullable=False)
    field_name = Column(String(50), nullable=True)
    old_value = Column(Text, nullable=True)
    new_value = Column(Text, nullable=True)

    changed_by = Column(Integer, nullable=True)
    changed_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    task = relationship("Task", back_populates="history")

    def __repr__(self) -> str:
        return f"<TaskHistory {self.task_id}: {self.change_type.value}>"
