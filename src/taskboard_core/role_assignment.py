"""Requirement role assignment reconciliation.

When a requirement is edited, the caller supplies the complete desired set
of assignees per role label (Developer, QC, Designer). The reconciler
compares it with the role tasks currently stored for the requirement and
plans the changes:

- an assignee no longer wanted for a label loses their task (delete)
- a newly wanted assignee gets a new task (create)
- an assignee wanted again keeps their task untouched, status included

Replacing an assignee is always delete + create, never an in-place change
of the task's assignee, so each assignee's status history stays separate.
Labels are reconciled independently of each other.

The reconciler only plans. Applying the plan (atomically, per requirement)
is the job of task_store.apply_reconciliation_plan.
"""
import logging
from collections.abc import Iterable as IterableABC
from typing import Iterable, Mapping, Optional, Union

from .config import get_settings
from .models import RoleLabel
from .schemas import (
    AssigneeId,
    ReconciliationPlan,
    RoleTask,
    RoleTaskCreate,
    RoleTaskDetails,
    RoleTaskUpdate,
)

logger = logging.getLogger("taskboard-core.role_assignment")

RoleLabelLike = Union[RoleLabel, str]
DesiredAssignees = Union[Iterable[AssigneeId], AssigneeId, None]

# Content fields a reconciliation may refresh on a kept task
CONTENT_FIELDS = ("description", "start_date", "end_date")


class UnknownRoleLabel(ValueError):
    """Raised (or recorded) when a role label is not one of the recognized set."""

    def __init__(self, label):
        allowed = ", ".join(member.value for member in RoleLabel)
        super().__init__(f"Unknown role label {label!r}. Expected one of: {allowed}.")
        self.label = label


def coerce_role_label(value: RoleLabelLike) -> Optional[RoleLabel]:
    """Convert a label value or member name (case-insensitive) to a RoleLabel."""
    if isinstance(value, RoleLabel):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()
    for label in RoleLabel:
        if text.lower() in (label.value.lower(), label.name.lower()):
            return label
    return None


def _normalize_assignees(value: DesiredAssignees) -> list[AssigneeId]:
    """Turn None, a single id or a collection of ids into a de-duplicated list."""
    if value is None:
        return []
    if isinstance(value, (str, int)):
        candidates: Iterable = [value]
    elif isinstance(value, IterableABC):
        candidates = value
    else:
        raise TypeError(f"Unsupported assignee value: {value!r}")

    result: list[AssigneeId] = []
    for assignee in candidates:
        if assignee is None or assignee in result:
            continue
        result.append(assignee)
    return result


def _content_update(task: RoleTask, details: Optional[RoleTaskDetails]) -> Optional[RoleTaskUpdate]:
    """Fields of `details` that are set and differ from the stored task."""
    if details is None:
        return None

    changes = {}
    for field in CONTENT_FIELDS:
        value = getattr(details, field)
        if value is not None and getattr(task, field) != value:
            changes[field] = value

    if not changes:
        return None
    return RoleTaskUpdate(task_id=task.id, **changes)


def reconcile(
    requirement_id: int,
    desired: Mapping[RoleLabelLike, DesiredAssignees],
    current_tasks: Iterable[RoleTask],
    details: Optional[Mapping[RoleLabelLike, RoleTaskDetails]] = None,
    strict_labels: Optional[bool] = None,
) -> ReconciliationPlan:
    """
    Plan the role task changes for one requirement.

    Args:
        requirement_id: Requirement being edited
        desired: Desired end state, role label → assignee ids. A label
            mapped to nothing (None or empty), or left out while it still
            has tasks, means nobody holds that role any more.
        current_tasks: Role tasks currently stored for the requirement
        details: Optional task content per label, used for new tasks and
            to refresh kept ones
        strict_labels: Raise on an unrecognized label instead of leaving it
            out of the plan (defaults to the strict_role_labels setting)

    Returns:
        ReconciliationPlan for the requirement

    Raises:
        UnknownRoleLabel: If strict_labels and a label is not recognized
        ValueError: If a current task belongs to another requirement
    """
    if strict_labels is None:
        strict_labels = get_settings().strict_role_labels

    desired_by_label: dict[RoleLabel, list[AssigneeId]] = {}
    rejected: list[str] = []

    for raw_label, assignees in desired.items():
        label = coerce_role_label(raw_label)
        if label is None:
            error = UnknownRoleLabel(raw_label)
            if strict_labels:
                raise error
            logger.warning(f"Requirement {requirement_id}: {error} Label left out of the plan.")
            rejected.append(str(raw_label))
            continue

        wanted = desired_by_label.setdefault(label, [])
        for assignee in _normalize_assignees(assignees):
            if assignee not in wanted:
                wanted.append(assignee)

    details_by_label: dict[RoleLabel, RoleTaskDetails] = {}
    for raw_label, label_details in (details or {}).items():
        label = coerce_role_label(raw_label)
        if label is None:
            logger.warning(f"Requirement {requirement_id}: ignoring details for unknown role label {raw_label!r}")
            continue
        if label_details is not None:
            details_by_label[label] = label_details

    # Current tasks by label and assignee; lowest id wins when the store holds duplicates
    held_by_label: dict[RoleLabel, dict[AssigneeId, RoleTask]] = {}
    duplicates: list[int] = []
    for task in sorted(current_tasks, key=lambda t: t.id):
        if task.requirement_id != requirement_id:
            raise ValueError(
                f"Task {task.id} belongs to requirement {task.requirement_id}, not {requirement_id}"
            )
        held = held_by_label.setdefault(task.role_label, {})
        if task.assignee_id in held:
            logger.warning(
                f"Requirement {requirement_id}: duplicate {task.role_label.value} task {task.id} "
                f"for assignee {task.assignee_id}, keeping task {held[task.assignee_id].id}"
            )
            duplicates.append(task.id)
            continue
        held[task.assignee_id] = task

    plan = ReconciliationPlan(requirement_id=requirement_id, rejected_labels=rejected)

    for label in RoleLabel:
        if label not in desired_by_label and label not in held_by_label:
            continue

        wanted = desired_by_label.get(label, [])
        held = held_by_label.get(label, {})
        label_details = details_by_label.get(label)

        for assignee, task in held.items():
            if assignee in wanted:
                plan.unchanged.append(task.id)
                update = _content_update(task, label_details)
                if update is not None:
                    plan.to_update.append(update)
            else:
                plan.to_delete.append(task.id)

        for assignee in wanted:
            if assignee not in held:
                plan.to_create.append(
                    RoleTaskCreate(role_label=label, assignee_id=assignee, details=label_details)
                )

    plan.to_delete.extend(duplicates)

    logger.debug(
        f"Requirement {requirement_id} plan: delete={plan.to_delete} "
        f"create={[(c.role_label.value, c.assignee_id) for c in plan.to_create]} "
        f"unchanged={plan.unchanged} update={[u.task_id for u in plan.to_update]}"
    )
    return plan
