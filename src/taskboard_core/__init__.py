"""Taskboard Core - role-based task lifecycle and reassignment engine.

Modules:
- role_policy: per-role board policies and their merge into an effective policy
- lifecycle_gate: drag/drop and status transition decisions
- role_assignment: reconciliation of requirement role assignments into task plans
- task_store: SQLAlchemy persistence of role tasks and plan application
"""

__version__ = "1.0.0"

from .lifecycle_gate import can_drag_from, can_transition, check_transition
from .role_assignment import UnknownRoleLabel, reconcile
from .role_policy import InvalidRoleSet, resolve_policy

__all__ = [
    "can_drag_from",
    "can_transition",
    "check_transition",
    "reconcile",
    "resolve_policy",
    "InvalidRoleSet",
    "UnknownRoleLabel",
    "__version__",
]
