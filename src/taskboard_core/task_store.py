"""Task record store backed by SQLAlchemy.

Persistence boundary of the engine: lists the role tasks of a requirement,
applies reconciliation plans and writes gated status changes. Plans are
applied in a single transaction per requirement so a role is never left
half replaced (old task deleted, new one missing). Assignee ids are stored
as integers.
"""
import logging
from datetime import datetime, timedelta
from typing import Iterable, Mapping, Optional

from sqlalchemy.orm import Session

from . import models
from .config import get_settings
from .lifecycle_gate import RolesOrPolicy, StatusLike, check_transition, coerce_status
from .role_assignment import DesiredAssignees, RoleLabelLike, reconcile
from .schemas import (
    ReconciliationPlan,
    RoleTask,
    RoleTaskCreate,
    RoleTaskDetails,
    TransitionDecision,
)

logger = logging.getLogger("taskboard-core.task_store")


class RequirementNotFoundError(LookupError):
    """Raised when a requirement does not exist."""

    def __init__(self, requirement_id: int):
        super().__init__(f"Requirement {requirement_id} not found")
        self.requirement_id = requirement_id


class TaskNotFoundError(LookupError):
    """Raised when a task does not exist."""

    def __init__(self, task_id: int):
        super().__init__(f"Task {task_id} not found")
        self.task_id = task_id


def get_requirement(db: Session, requirement_id: int) -> Optional[models.Requirement]:
    """Get a requirement by ID."""
    return db.query(models.Requirement).filter(
        models.Requirement.id == requirement_id
    ).first()


def get_task(db: Session, task_id: int) -> Optional[models.Task]:
    """Get a task by ID."""
    return db.query(models.Task).filter(models.Task.id == task_id).first()


def list_role_tasks(db: Session, requirement_id: int) -> list[RoleTask]:
    """
    List the role-scoped tasks of a requirement.

    Args:
        db: Database session
        requirement_id: Requirement ID

    Returns:
        RoleTask snapshots ordered by task ID
    """
    rows = db.query(models.Task).filter(
        models.Task.requirement_id == requirement_id,
        models.Task.role_label.isnot(None),
        models.Task.assignee_id.isnot(None),
    ).order_by(models.Task.id.asc()).all()

    return [RoleTask.model_validate(row) for row in rows]


def _build_task(
    requirement: models.Requirement,
    entry: RoleTaskCreate,
    now: datetime,
) -> models.Task:
    """Create a new role task row with defaults for missing content."""
    details = entry.details or RoleTaskDetails()
    start_date = details.start_date or now
    end_date = details.end_date or start_date + timedelta(days=get_settings().default_task_duration_days)

    return models.Task(
        requirement_id=requirement.id,
        role_label=entry.role_label,
        assignee_id=entry.assignee_id,
        name=requirement.name,
        description=details.description or f"{entry.role_label.value} task for requirement: {requirement.name}",
        status=models.TaskStatus.TO_DO,
        priority=models.TaskPriority.MEDIUM,
        progress=0,
        start_date=start_date,
        end_date=end_date,
    )


def apply_reconciliation_plan(
    db: Session,
    plan: ReconciliationPlan,
    changed_by: Optional[int] = None,
) -> list[models.Task]:
    """
    Apply a reconciliation plan in one transaction.

    Deletions, creations and content updates are committed together; on any
    error the whole plan is rolled back and the error re-raised, so the
    session never holds a delete without its matching create.

    Args:
        db: Database session
        plan: Plan produced by role_assignment.reconcile
        changed_by: User applying the change (recorded in task history)

    Returns:
        Newly created task rows

    Raises:
        RequirementNotFoundError: If the plan's requirement does not exist
        ValueError: If a task to create has a non-integer assignee id
    """
    requirement = get_requirement(db, plan.requirement_id)
    if not requirement:
        raise RequirementNotFoundError(plan.requirement_id)

    # tasks.assignee_id is an Integer column
    invalid_ids = [
        entry.assignee_id for entry in plan.to_create
        if isinstance(entry.assignee_id, bool) or not isinstance(entry.assignee_id, int)
    ]
    if invalid_ids:
        raise ValueError(f"Task store requires integer assignee ids, got {invalid_ids!r}")

    if plan.is_empty:
        logger.debug(f"Nothing to apply for requirement {plan.requirement_id}")
        return []

    now = datetime.utcnow()
    created: list[models.Task] = []

    try:
        for task_id in plan.to_delete:
            task = get_task(db, task_id)
            if not task or task.requirement_id != plan.requirement_id:
                logger.warning(f"Task {task_id} not found on requirement {plan.requirement_id}, skipping delete")
                continue
            db.delete(task)

        # Deletes must reach the database before inserts hit the unique constraint
        db.flush()

        for entry in plan.to_create:
            task = _build_task(requirement, entry, now)
            task.history.append(models.TaskHistory(
                change_type=models.TaskChangeType.CREATED,
                field_name="assignee_id",
                new_value=str(entry.assignee_id),
                changed_by=changed_by,
            ))
            db.add(task)
            created.append(task)

        for update in plan.to_update:
            task = get_task(db, update.task_id)
            if not task or task.requirement_id != plan.requirement_id:
                logger.warning(f"Task {update.task_id} not found on requirement {plan.requirement_id}, skipping update")
                continue
            for field, value in update.model_dump(exclude={"task_id"}, exclude_none=True).items():
                old_value = getattr(task, field)
                setattr(task, field, value)
                task.history.append(models.TaskHistory(
                    change_type=models.TaskChangeType.UPDATED,
                    field_name=field,
                    old_value=str(old_value) if old_value is not None else None,
                    new_value=str(value),
                    changed_by=changed_by,
                ))

        db.commit()
    except Exception:
        db.rollback()
        logger.error(f"Failed to apply reconciliation plan for requirement {plan.requirement_id}, rolled back")
        raise

    for task in created:
        db.refresh(task)

    logger.info(
        f"Requirement {plan.requirement_id}: deleted {len(plan.to_delete)}, "
        f"created {len(created)}, updated {len(plan.to_update)} role tasks"
    )
    return created


def sync_role_assignments(
    db: Session,
    requirement_id: int,
    desired: Mapping[RoleLabelLike, DesiredAssignees],
    details: Optional[Mapping[RoleLabelLike, RoleTaskDetails]] = None,
    changed_by: Optional[int] = None,
    strict_labels: Optional[bool] = None,
) -> ReconciliationPlan:
    """
    Bring a requirement's role tasks in line with the desired assignees.

    Args:
        db: Database session
        requirement_id: Requirement being edited
        desired: Desired end state, role label → assignee ids
        details: Optional task content per label
        changed_by: User making the edit
        strict_labels: See role_assignment.reconcile

    Returns:
        The plan that was applied

    Raises:
        RequirementNotFoundError: If the requirement does not exist
    """
    if not get_requirement(db, requirement_id):
        raise RequirementNotFoundError(requirement_id)

    current = list_role_tasks(db, requirement_id)
    plan = reconcile(requirement_id, desired, current, details=details, strict_labels=strict_labels)
    apply_reconciliation_plan(db, plan, changed_by=changed_by)
    return plan


def change_task_status(
    db: Session,
    task_id: int,
    roles: RolesOrPolicy,
    new_status: StatusLike,
    changed_by: Optional[int] = None,
) -> TransitionDecision:
    """
    Move a task to a new status if the user's roles allow it.

    Setting the status a task already has is a no-op and reported as
    allowed. A denied move leaves the task untouched.

    Args:
        db: Database session
        task_id: Task ID
        roles: Roles held by the user, or an already resolved policy
        new_status: Requested status
        changed_by: User making the change

    Returns:
        TransitionDecision describing the outcome

    Raises:
        TaskNotFoundError: If the task does not exist
    """
    task = get_task(db, task_id)
    if not task:
        raise TaskNotFoundError(task_id)

    target = coerce_status(new_status)
    if target is not None and target == task.status:
        logger.debug(f"No-op status change for task {task_id}: {target.value}")
        return TransitionDecision(allowed=True)

    decision = check_transition(roles, task.status, new_status)
    if not decision.allowed:
        logger.info(f"Status change for task {task_id} denied: {task.status.value} → {new_status} ({decision.reason.value})")
        return decision

    old_status = task.status
    task.status = target
    task.history.append(models.TaskHistory(
        change_type=models.TaskChangeType.STATUS_CHANGED,
        field_name="status",
        old_value=old_status.value,
        new_value=target.value,
        changed_by=changed_by,
    ))

    try:
        db.commit()
    except Exception:
        db.rollback()
        logger.error(f"Failed to change status of task {task_id}, rolled back")
        raise

    logger.info(f"Task {task_id} moved {old_status.value} → {target.value}")
    return decision


def list_status_history(db: Session, task_id: int) -> list[models.TaskHistory]:
    """Get the status change history of a task, oldest first."""
    return db.query(models.TaskHistory).filter(
        models.TaskHistory.task_id == task_id,
        models.TaskHistory.change_type == models.TaskChangeType.STATUS_CHANGED,
    ).order_by(models.TaskHistory.changed_at.asc(), models.TaskHistory.id.asc()).all()
