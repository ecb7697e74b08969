"""Tests for board drag/drop and transition decisions."""
import pytest

from taskboard_core.lifecycle_gate import (
    board_columns,
    can_drag_from,
    can_transition,
    check_transition,
    coerce_status,
    column_accessibility,
    get_allowed_targets,
    is_terminal_for,
)
from taskboard_core.models import Role, TaskStatus, TransitionReason
from taskboard_core.role_policy import EffectivePolicy, resolve_policy

DEVELOPER = {Role.SOFTWARE_DEVELOPER}
QC = {Role.QUALITY_CONTROL_TEAM_MEMBER}
ANALYST = {Role.ANALYST}
DESIGNER = {Role.DESIGNER_TEAM_MEMBER}


class TestCanTransition:
    """Test pairwise transition legality."""

    def test_developer_workflow(self):
        """Developers move To Do → In Progress → In Review but cannot skip ahead."""
        assert can_transition(DEVELOPER, TaskStatus.TO_DO, TaskStatus.IN_PROGRESS)
        assert can_transition(DEVELOPER, TaskStatus.IN_PROGRESS, TaskStatus.IN_REVIEW)
        assert not can_transition(DEVELOPER, TaskStatus.TO_DO, TaskStatus.IN_REVIEW)
        assert can_transition(DEVELOPER, TaskStatus.IN_REVIEW, TaskStatus.TO_DO)
        assert not can_transition(DEVELOPER, TaskStatus.IN_REVIEW, TaskStatus.COMPLETED)

    def test_qc_workflow(self):
        """QC sends reviewed work to Rework or Completed."""
        assert can_transition(QC, TaskStatus.IN_REVIEW, TaskStatus.REWORK)
        assert can_transition(QC, TaskStatus.IN_REVIEW, TaskStatus.COMPLETED)
        assert can_transition(QC, TaskStatus.REWORK, TaskStatus.IN_REVIEW)
        assert not can_transition(QC, TaskStatus.COMPLETED, TaskStatus.IN_REVIEW)
        assert not can_transition(QC, TaskStatus.TO_DO, TaskStatus.IN_PROGRESS)

    def test_analyst_can_reopen_completed_work(self):
        """Backward moves exist only where declared."""
        assert can_transition(ANALYST, TaskStatus.COMPLETED, TaskStatus.IN_PROGRESS)
        assert can_transition(ANALYST, TaskStatus.COMPLETED, TaskStatus.TO_DO)
        assert not can_transition(ANALYST, TaskStatus.IN_PROGRESS, TaskStatus.IN_REVIEW)

    def test_designer_cannot_complete(self):
        assert can_transition(DESIGNER, TaskStatus.COMPLETED, TaskStatus.IN_PROGRESS)
        assert not can_transition(DESIGNER, TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED)

    def test_deny_by_default_for_empty_roles(self):
        """Nothing is allowed without a role that declares it."""
        for source in TaskStatus:
            assert not can_drag_from([], source)
            for target in TaskStatus:
                assert not can_transition([], source, target)

    def test_deny_by_default_for_empty_policy(self):
        """A policy with no entries denies every drag and drop."""
        policy = EffectivePolicy()
        for source in TaskStatus:
            assert not can_drag_from(policy, source)
            for target in TaskStatus:
                assert not can_transition(policy, source, target)

    def test_same_status_is_not_a_transition(self):
        for status in TaskStatus:
            assert not can_transition({Role.ADMINISTRATOR}, status, status)

    def test_manager_has_every_transition(self):
        for source in TaskStatus:
            for target in TaskStatus:
                if source != target:
                    assert can_transition({Role.DEVELOPMENT_MANAGER}, source, target)

    def test_unknown_status_denied(self):
        assert not can_transition({Role.ADMINISTRATOR}, "blocked", TaskStatus.TO_DO)
        assert not can_transition({Role.ADMINISTRATOR}, TaskStatus.TO_DO, 6)
        assert not can_drag_from({Role.ADMINISTRATOR}, "archived")

    def test_numeric_ids(self):
        """Role and status ids from the surrounding system are understood."""
        assert can_transition([5], 1, 2)
        assert not can_transition([5], 1, 3)

    def test_accepts_resolved_policy(self):
        policy = resolve_policy(QC)
        assert can_transition(policy, TaskStatus.IN_REVIEW, TaskStatus.COMPLETED)
        assert can_drag_from(policy, TaskStatus.REWORK)


class TestCanDragFrom:
    """Test drag source checks."""

    def test_qc_drag_sources(self):
        assert can_drag_from(QC, TaskStatus.IN_REVIEW)
        assert can_drag_from(QC, TaskStatus.REWORK)
        assert not can_drag_from(QC, TaskStatus.COMPLETED)
        assert not can_drag_from(QC, TaskStatus.TO_DO)

    def test_merged_roles(self):
        assert can_drag_from(DEVELOPER | QC, TaskStatus.TO_DO)
        assert can_drag_from(DEVELOPER | QC, TaskStatus.REWORK)


class TestCheckTransition:
    """Test decisions with reason codes."""

    def test_allowed_has_no_reason(self):
        decision = check_transition(DEVELOPER, TaskStatus.TO_DO, TaskStatus.IN_PROGRESS)
        assert decision.allowed
        assert decision.reason is None

    def test_not_accessible(self):
        decision = check_transition(DEVELOPER, TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED)
        assert not decision.allowed
        assert decision.reason == TransitionReason.NOT_ACCESSIBLE

    def test_cannot_drag_from(self):
        """QC can see Completed but cannot pick anything up from it."""
        decision = check_transition(QC, TaskStatus.COMPLETED, TaskStatus.REWORK)
        assert decision.reason == TransitionReason.CANNOT_DRAG_FROM

    def test_cannot_drop_to(self):
        decision = check_transition(DEVELOPER, TaskStatus.TO_DO, TaskStatus.IN_REVIEW)
        assert not decision.allowed
        assert decision.reason == TransitionReason.CANNOT_DROP_TO

    def test_empty_roles_not_accessible(self):
        decision = check_transition([], TaskStatus.TO_DO, TaskStatus.IN_PROGRESS)
        assert decision.reason == TransitionReason.NOT_ACCESSIBLE

    def test_agrees_with_can_transition(self):
        """The decision always matches the boolean predicate."""
        role_sets = [DEVELOPER, QC, ANALYST, DESIGNER, DEVELOPER | DESIGNER, {Role.ADMINISTRATOR}, set()]
        for roles in role_sets:
            for source in TaskStatus:
                for target in TaskStatus:
                    decision = check_transition(roles, source, target)
                    assert decision.allowed == can_transition(roles, source, target)
                    assert (decision.reason is None) == decision.allowed


class TestAllowedTargets:
    """Test target listing and per-role termination."""

    def test_targets_in_board_order(self):
        assert get_allowed_targets(DEVELOPER, TaskStatus.IN_PROGRESS) == [TaskStatus.TO_DO, TaskStatus.IN_REVIEW]
        assert get_allowed_targets(QC, TaskStatus.IN_REVIEW) == [TaskStatus.REWORK, TaskStatus.COMPLETED]

    def test_completed_terminal_only_for_some_roles(self):
        """Termination is role-relative: QC cannot leave Completed, analysts can."""
        assert is_terminal_for(QC, TaskStatus.COMPLETED)
        assert not is_terminal_for(ANALYST, TaskStatus.COMPLETED)
        assert not is_terminal_for({Role.ADMINISTRATOR}, TaskStatus.COMPLETED)

    def test_unknown_status_has_no_targets(self):
        assert get_allowed_targets(ANALYST, "blocked") == []


class TestColumnAccessibility:
    """Test board column rendering hints."""

    def test_hidden_column(self):
        column = column_accessibility(DEVELOPER, TaskStatus.COMPLETED)
        assert not column.is_visible
        assert column.reason == TransitionReason.NOT_ACCESSIBLE

    def test_view_only_column_cannot_modify(self):
        """A visible column with no drag or drop reports cannot-modify."""
        policy = EffectivePolicy(allowed_statuses={TaskStatus.TO_DO})
        column = column_accessibility(policy, TaskStatus.TO_DO)
        assert column.is_visible
        assert column.reason == TransitionReason.CANNOT_MODIFY

    def test_qc_completed_column(self):
        """QC drops into Completed but cannot drag out of it."""
        column = column_accessibility(QC, TaskStatus.COMPLETED)
        assert column.is_visible
        assert not column.is_draggable
        assert column.is_droppable
        assert column.reason == TransitionReason.CANNOT_DRAG_FROM

    def test_designer_completed_column(self):
        """Designers may drag out of Completed but never drop into it."""
        column = column_accessibility(DESIGNER, TaskStatus.COMPLETED)
        assert column.is_draggable
        assert not column.is_droppable
        assert column.reason == TransitionReason.CANNOT_DROP_TO

    def test_fully_usable_column(self):
        column = column_accessibility(DEVELOPER, TaskStatus.IN_PROGRESS)
        assert column.is_visible and column.is_draggable and column.is_droppable
        assert column.reason is None

    def test_unknown_status_raises(self):
        with pytest.raises(ValueError):
            column_accessibility(DEVELOPER, "archived")

    def test_board_columns_in_order(self):
        columns = board_columns(QC)
        assert [c.status for c in columns] == list(TaskStatus)
        assert [c.is_visible for c in columns] == [False, False, True, True, True]


class TestCoerceStatus:
    """Test status coercion."""

    def test_values_names_and_ids(self):
        assert coerce_status("in_review") == TaskStatus.IN_REVIEW
        assert coerce_status("REWORK") == TaskStatus.REWORK
        assert coerce_status(5) == TaskStatus.COMPLETED
        assert coerce_status("1") == TaskStatus.TO_DO
        assert coerce_status(6) is None
        assert coerce_status(None) is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
