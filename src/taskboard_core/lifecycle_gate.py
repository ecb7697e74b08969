"""Task board lifecycle gate.

Answers whether a user may pick a task up from a board column and whether a
task may be moved from one status to another. Every answer is computed from
the user's effective policy (see role_policy). Anything a policy does not
explicitly declare is denied.

Denial is a regular outcome reported through TransitionDecision, never an
exception. Callers apply the resulting status change to storage themselves.
"""
import logging
from typing import Iterable, Optional, Union

from .models import TaskStatus, TransitionReason, STATUS_IDS
from .role_policy import EffectivePolicy, RoleLike, resolve_policy
from .schemas import ColumnAccessibility, TransitionDecision

logger = logging.getLogger("taskboard-core.lifecycle_gate")

StatusLike = Union[TaskStatus, str, int]
RolesOrPolicy = Union[Iterable[RoleLike], RoleLike, EffectivePolicy]


def coerce_status(value: StatusLike) -> Optional[TaskStatus]:
    """Convert a status value, member name or numeric id to a TaskStatus."""
    if isinstance(value, TaskStatus):
        return value
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return STATUS_IDS.get(value)
    if isinstance(value, str):
        text = value.strip()
        if text.isdigit():
            return STATUS_IDS.get(int(text))
        try:
            return TaskStatus(text.lower())
        except ValueError:
            return TaskStatus.__members__.get(text.upper())
    return None


def _policy(roles: RolesOrPolicy) -> EffectivePolicy:
    if isinstance(roles, EffectivePolicy):
        return roles
    return resolve_policy(roles)


def can_drag_from(roles: RolesOrPolicy, status: StatusLike) -> bool:
    """
    Check if a task may be picked up from a board column.

    Args:
        roles: Roles held by the user, or an already resolved policy
        status: Column the task currently sits in

    Returns:
        True if dragging is allowed, False otherwise
    """
    resolved = coerce_status(status)
    if resolved is None:
        return False
    return resolved in _policy(roles).drag_sources


def can_transition(roles: RolesOrPolicy, from_status: StatusLike, to_status: StatusLike) -> bool:
    """
    Check if a task may be moved between two statuses.

    Args:
        roles: Roles held by the user, or an already resolved policy
        from_status: Current task status
        to_status: Requested task status

    Returns:
        True if the move is declared by the user's policy, False otherwise
    """
    source = coerce_status(from_status)
    target = coerce_status(to_status)
    if source is None or target is None:
        return False

    policy = _policy(roles)
    return source in policy.drop_targets and target in policy.drop_targets[source]


def check_transition(
    roles: RolesOrPolicy,
    from_status: StatusLike,
    to_status: StatusLike,
) -> TransitionDecision:
    """
    Decide a board move and explain a denial.

    The reason is the first failing check: a status the user cannot see
    (not accessible), a column the user cannot pick tasks up from (cannot
    drag from), or a target not declared for that source (cannot drop to).
    `allowed` always agrees with can_transition.

    Args:
        roles: Roles held by the user, or an already resolved policy
        from_status: Current task status
        to_status: Requested task status

    Returns:
        TransitionDecision with the outcome and, if denied, the reason code
    """
    policy = _policy(roles)
    source = coerce_status(from_status)
    target = coerce_status(to_status)

    if (
        source is None
        or target is None
        or source not in policy.allowed_statuses
        or target not in policy.allowed_statuses
    ):
        reason = TransitionReason.NOT_ACCESSIBLE
    elif source not in policy.drag_sources:
        reason = TransitionReason.CANNOT_DRAG_FROM
    elif target not in policy.targets_from(source):
        reason = TransitionReason.CANNOT_DROP_TO
    else:
        return TransitionDecision(allowed=True)

    logger.debug(f"Denied board move {from_status} → {to_status} for roles {sorted(r.value for r in policy.roles)}: {reason.value}")
    return TransitionDecision(allowed=False, reason=reason)


def get_allowed_targets(roles: RolesOrPolicy, from_status: StatusLike) -> list[TaskStatus]:
    """
    Get the statuses a task may be moved to, in board column order.

    Args:
        roles: Roles held by the user, or an already resolved policy
        from_status: Current task status

    Returns:
        List of allowed target statuses (empty if none)
    """
    source = coerce_status(from_status)
    if source is None:
        return []
    targets = _policy(roles).targets_from(source)
    return [status for status in TaskStatus if status in targets]


def is_terminal_for(roles: RolesOrPolicy, status: StatusLike) -> bool:
    """Check if no move out of `status` is available to the role set."""
    return not get_allowed_targets(roles, status)


def column_accessibility(roles: RolesOrPolicy, status: StatusLike) -> ColumnAccessibility:
    """
    Describe how a board column may be used by a role set.

    A column is droppable when it is the target of at least one declared
    move. The reason code reports the most restrictive condition.
    """
    policy = _policy(roles)
    resolved = coerce_status(status)
    if resolved is None:
        raise ValueError(f"Unknown task status: {status!r}")

    is_visible = resolved in policy.allowed_statuses
    is_draggable = resolved in policy.drag_sources
    is_droppable = resolved in policy.droppable_statuses

    reason: Optional[TransitionReason] = None
    if not is_visible:
        reason = TransitionReason.NOT_ACCESSIBLE
    elif not is_draggable and not is_droppable:
        reason = TransitionReason.CANNOT_MODIFY
    elif not is_draggable:
        reason = TransitionReason.CANNOT_DRAG_FROM
    elif not is_droppable:
        reason = TransitionReason.CANNOT_DROP_TO

    return ColumnAccessibility(
        status=resolved,
        is_visible=is_visible,
        is_draggable=is_draggable,
        is_droppable=is_droppable,
        reason=reason,
    )


def board_columns(roles: RolesOrPolicy) -> list[ColumnAccessibility]:
    """Accessibility of every board column, in board order."""
    policy = _policy(roles)
    return [column_accessibility(policy, status) for status in TaskStatus]
