"""Role-based task board policies.

Each role has a fixed transition policy describing which board columns it
can see, which columns it may pick a task up from, and where a task picked
up from a column may be dropped. A user holding several roles gets the
union of their policies, except that administrators and managers always get
full access.

Transitions are declared pairwise. There is no implicit ordering between
statuses, so backward moves (e.g. reopening completed work) exist only
where a role's table lists them.
"""
import logging
from functools import lru_cache
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .config import get_settings
from .models import Role, TaskStatus, ROLE_IDS

logger = logging.getLogger("taskboard-core.role_policy")

RoleLike = Union[Role, str, int]


class InvalidRoleSet(ValueError):
    """Raised in strict mode when a role set contains unrecognized roles."""

    def __init__(self, message: str, invalid_roles: list):
        super().__init__(message)
        self.invalid_roles = invalid_roles


class RoleTransitionPolicy(BaseModel):
    """Board permissions of a single role."""

    allowed_statuses: frozenset[TaskStatus] = frozenset()
    drag_sources: frozenset[TaskStatus] = frozenset()
    drop_targets: Mapping[TaskStatus, frozenset[TaskStatus]] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    @field_validator("drop_targets", mode="after")
    @classmethod
    def freeze_drop_targets(cls, value: Mapping[TaskStatus, frozenset[TaskStatus]]) -> Mapping[TaskStatus, frozenset[TaskStatus]]:
        """Policies are shared and cached, so the target map is read-only."""
        return MappingProxyType(dict(value))

    @model_validator(mode="after")
    def check_consistency(self) -> "RoleTransitionPolicy":
        """Every status a policy can touch must be one it can see."""
        hidden_sources = self.drag_sources - self.allowed_statuses
        if hidden_sources:
            raise ValueError(
                f"Drag sources not in allowed statuses: {sorted(s.value for s in hidden_sources)}"
            )

        for source, targets in self.drop_targets.items():
            if source not in self.drag_sources:
                raise ValueError(f"Drop source '{source.value}' is not a drag source")
            hidden_targets = targets - self.allowed_statuses
            if hidden_targets:
                raise ValueError(
                    f"Drop targets from '{source.value}' not in allowed statuses: "
                    f"{sorted(s.value for s in hidden_targets)}"
                )
        return self

    def targets_from(self, status: TaskStatus) -> frozenset[TaskStatus]:
        """Statuses a task in `status` may be dropped into."""
        return self.drop_targets.get(status, frozenset())

    @property
    def droppable_statuses(self) -> frozenset[TaskStatus]:
        """Statuses that are a drop target from at least one source."""
        result: set[TaskStatus] = set()
        for targets in self.drop_targets.values():
            result |= targets
        return frozenset(result)


class EffectivePolicy(RoleTransitionPolicy):
    """Merged board permissions of a whole role set. Computed, never stored."""

    roles: frozenset[Role] = frozenset()
    full_access: bool = False


def _all_pairs(statuses: Iterable[TaskStatus]) -> dict[TaskStatus, frozenset[TaskStatus]]:
    """Every ordered pair of distinct statuses."""
    statuses = frozenset(statuses)
    return {s: statuses - {s} for s in statuses}


ALL_STATUSES: frozenset[TaskStatus] = frozenset(TaskStatus)

# Workflow: To Do -> In Progress -> In Review
SOFTWARE_DEVELOPER_POLICY = RoleTransitionPolicy(
    allowed_statuses={TaskStatus.TO_DO, TaskStatus.IN_PROGRESS, TaskStatus.IN_REVIEW},
    drag_sources={TaskStatus.TO_DO, TaskStatus.IN_PROGRESS, TaskStatus.IN_REVIEW},
    drop_targets={
        TaskStatus.TO_DO: {
            TaskStatus.IN_PROGRESS,   # Forward: work started
        },
        TaskStatus.IN_PROGRESS: {
            TaskStatus.TO_DO,         # Back: return to backlog
            TaskStatus.IN_REVIEW,     # Forward: hand over to QC
        },
        TaskStatus.IN_REVIEW: {
            TaskStatus.TO_DO,         # Back: shelved before QC picks it up
            TaskStatus.IN_PROGRESS,   # Back: pulled back before QC picks it up
        },
    },
)

# Workflow: In Review -> Rework (issues found) or Completed (passed)
QC_TEAM_MEMBER_POLICY = RoleTransitionPolicy(
    allowed_statuses={TaskStatus.IN_REVIEW, TaskStatus.REWORK, TaskStatus.COMPLETED},
    drag_sources={TaskStatus.IN_REVIEW, TaskStatus.REWORK},
    drop_targets={
        TaskStatus.IN_REVIEW: {
            TaskStatus.REWORK,
            TaskStatus.COMPLETED,
        },
        TaskStatus.REWORK: {
            TaskStatus.IN_REVIEW,
            TaskStatus.COMPLETED,
        },
    },
)

# Ad-hoc work: To Do <-> In Progress <-> Completed, completed tasks can be reopened
ANALYST_POLICY = RoleTransitionPolicy(
    allowed_statuses={TaskStatus.TO_DO, TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED},
    drag_sources={TaskStatus.TO_DO, TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED},
    drop_targets=_all_pairs({TaskStatus.TO_DO, TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED}),
)

# Completed is visible and can be reopened, but designers never complete a task themselves
DESIGNER_TEAM_MEMBER_POLICY = RoleTransitionPolicy(
    allowed_statuses={TaskStatus.TO_DO, TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED},
    drag_sources={TaskStatus.TO_DO, TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED},
    drop_targets={
        TaskStatus.TO_DO: {TaskStatus.IN_PROGRESS},
        TaskStatus.IN_PROGRESS: {TaskStatus.TO_DO},
        TaskStatus.COMPLETED: {TaskStatus.TO_DO, TaskStatus.IN_PROGRESS},
    },
)

FULL_ACCESS_POLICY = RoleTransitionPolicy(
    allowed_statuses=ALL_STATUSES,
    drag_sources=ALL_STATUSES,
    drop_targets=_all_pairs(ALL_STATUSES),
)

# Oversight roles: any of these in a role set overrides the union
PRIVILEGED_ROLES: frozenset[Role] = frozenset({
    Role.ADMINISTRATOR,
    Role.ANALYST_DEPARTMENT_MANAGER,
    Role.DEVELOPMENT_MANAGER,
    Role.QUALITY_CONTROL_MANAGER,
    Role.DESIGNER_MANAGER,
})

ROLE_POLICIES: Mapping[Role, RoleTransitionPolicy] = MappingProxyType({
    Role.SOFTWARE_DEVELOPER: SOFTWARE_DEVELOPER_POLICY,
    Role.QUALITY_CONTROL_TEAM_MEMBER: QC_TEAM_MEMBER_POLICY,
    Role.ANALYST: ANALYST_POLICY,
    Role.DESIGNER_TEAM_MEMBER: DESIGNER_TEAM_MEMBER_POLICY,
    Role.ADMINISTRATOR: FULL_ACCESS_POLICY,
    Role.ANALYST_DEPARTMENT_MANAGER: FULL_ACCESS_POLICY,
    Role.DEVELOPMENT_MANAGER: FULL_ACCESS_POLICY,
    Role.QUALITY_CONTROL_MANAGER: FULL_ACCESS_POLICY,
    Role.DESIGNER_MANAGER: FULL_ACCESS_POLICY,
})


def coerce_role(value: RoleLike) -> Optional[Role]:
    """
    Convert a role identifier to a Role.

    Accepts a Role, its value ("software_developer"), its display name
    ("Software Developer"), its member name ("SOFTWARE_DEVELOPER") or the
    numeric id used by the user store.

    Returns:
        The Role, or None if the value is not recognized
    """
    if isinstance(value, Role):
        return value
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return ROLE_IDS.get(value)
    if isinstance(value, str):
        text = value.strip()
        if text.isdigit():
            return ROLE_IDS.get(int(text))
        try:
            return Role(text.lower().replace(" ", "_"))
        except ValueError:
            return Role.__members__.get(text.upper())
    return None


def get_role_policy(role: RoleLike) -> Optional[RoleTransitionPolicy]:
    """Get the policy table of a single role, or None if the role is unknown."""
    resolved = coerce_role(role)
    if resolved is None:
        return None
    return ROLE_POLICIES.get(resolved)


def resolve_policy(
    roles: Union[Iterable[RoleLike], RoleLike],
    strict: Optional[bool] = None,
) -> EffectivePolicy:
    """
    Merge the policies of every role a user holds.

    Args:
        roles: Roles held by the user (Role members, values, names or ids)
        strict: Raise on unrecognized roles instead of ignoring them
            (defaults to the strict_roles setting)

    Returns:
        The effective policy. An empty role set yields a deny-all policy.

    Raises:
        InvalidRoleSet: If strict and any role is unrecognized
    """
    if strict is None:
        strict = get_settings().strict_roles

    if isinstance(roles, (str, int)):
        roles = [roles]

    recognized: set[Role] = set()
    invalid: list = []
    for value in roles:
        role = coerce_role(value)
        if role is None:
            invalid.append(value)
        else:
            recognized.add(role)

    if invalid:
        if strict:
            raise InvalidRoleSet(
                f"Unrecognized roles: {', '.join(repr(v) for v in invalid)}",
                invalid_roles=invalid,
            )
        logger.warning(f"Ignoring unrecognized roles when resolving board policy: {invalid}")

    return _merge_policies(frozenset(recognized))


@lru_cache(maxsize=256)
def _merge_policies(roles: frozenset[Role]) -> EffectivePolicy:
    if not roles:
        logger.debug("Empty role set: board policy denies everything")
        return EffectivePolicy(roles=roles)

    if roles & PRIVILEGED_ROLES:
        return EffectivePolicy(
            roles=roles,
            full_access=True,
            allowed_statuses=FULL_ACCESS_POLICY.allowed_statuses,
            drag_sources=FULL_ACCESS_POLICY.drag_sources,
            drop_targets=FULL_ACCESS_POLICY.drop_targets,
        )

    allowed: set[TaskStatus] = set()
    sources: set[TaskStatus] = set()
    targets: dict[TaskStatus, set[TaskStatus]] = {}

    for role in roles:
        policy = ROLE_POLICIES.get(role)
        if policy is None:
            continue
        allowed |= policy.allowed_statuses
        sources |= policy.drag_sources
        for source, role_targets in policy.drop_targets.items():
            targets.setdefault(source, set()).update(role_targets)

    return EffectivePolicy(
        roles=roles,
        allowed_statuses=allowed,
        drag_sources=sources,
        drop_targets=targets,
    )
