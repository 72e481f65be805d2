"""Unit tests for the core data models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from selfcheck.core.models import (
    ConflictSeverity,
    ConflictType,
    FlagConflict,
    FlagStatus,
    ImplementationStatus,
    Issue,
    IssueCategory,
    IssueStatus,
    Priority,
    Severity,
    sort_issues,
)


def issue(issue_id: str, priority: Priority, severity: Severity) -> Issue:
    return Issue(
        id=issue_id,
        category=IssueCategory.CODE_QUALITY,
        severity=severity,
        priority=priority,
        title=issue_id,
    )


class TestIssue:
    """Tests for the Issue model."""

    def test_defaults(self) -> None:
        i = issue("A", Priority.P1, Severity.HIGH)

        assert i.status == IssueStatus.PENDING
        assert i.description == ""
        assert i.location == ""

    def test_is_frozen(self) -> None:
        i = issue("A", Priority.P1, Severity.HIGH)

        with pytest.raises(ValidationError):
            i.title = "changed"  # type: ignore[misc]

    def test_json_uses_enum_values(self) -> None:
        dumped = issue("A", Priority.P0, Severity.CRITICAL).model_dump(mode="json")

        assert dumped["priority"] == "P0"
        assert dumped["severity"] == "critical"
        assert dumped["category"] == "code_quality"


class TestSortIssues:
    """Tests for priority-then-severity ordering."""

    def test_orders_by_priority_then_severity(self) -> None:
        issues = [
            issue("p2-low", Priority.P2, Severity.LOW),
            issue("p0-high", Priority.P0, Severity.HIGH),
            issue("p2-critical", Priority.P2, Severity.CRITICAL),
            issue("p0-critical", Priority.P0, Severity.CRITICAL),
            issue("p1-info", Priority.P1, Severity.INFO),
        ]

        ordered = [i.id for i in sort_issues(issues)]

        assert ordered == ["p0-critical", "p0-high", "p1-info", "p2-critical", "p2-low"]

    def test_stable_for_equal_keys(self) -> None:
        issues = [
            issue("first", Priority.P1, Severity.MEDIUM),
            issue("second", Priority.P1, Severity.MEDIUM),
        ]

        assert [i.id for i in sort_issues(issues)] == ["first", "second"]

    def test_does_not_mutate_input(self) -> None:
        issues = [issue("b", Priority.P3, Severity.LOW), issue("a", Priority.P0, Severity.LOW)]

        sort_issues(issues)

        assert [i.id for i in issues] == ["b", "a"]


class TestFlagStatus:
    """Tests for the FlagStatus record."""

    def test_defaults(self) -> None:
        flag = FlagStatus(name="verbose", long_form="--verbose")

        assert flag.status == ImplementationStatus.PLANNED_NOT_IMPLEMENTED
        assert not flag.defined_in_code
        assert flag.conflicts == []

    def test_has_conflict(self) -> None:
        flag = FlagStatus(name="x", long_form="--x")
        flag.conflicts.append(
            FlagConflict(
                type=ConflictType.ORPHANED_FLAG,
                source1="code",
                source2="help",
                description="orphan",
                severity=ConflictSeverity.HIGH,
            )
        )

        assert flag.has_conflict(ConflictType.ORPHANED_FLAG)
        assert not flag.has_conflict(ConflictType.PLANNING_MISMATCH)

    def test_conflict_lists_not_shared(self) -> None:
        a = FlagStatus(name="a", long_form="--a")
        b = FlagStatus(name="b", long_form="--b")
        a.conflicts.append(
            FlagConflict(
                type=ConflictType.PLANNING_MISMATCH,
                source1="planning",
                source2="code",
                description="",
                severity=ConflictSeverity.MEDIUM,
            )
        )

        assert b.conflicts == []
