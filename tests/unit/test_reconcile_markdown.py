"""Unit tests for the pull request comment renderer."""

from __future__ import annotations

import pytest

from tollgate.common.keys import DispatchKey
from tollgate.reconcile import COMMENT_MARKER, CommitState, render_result, render_unavailable
from tollgate.validation.models import Finding, Severity, ValidationResult

KEY = DispatchKey.build("acme/checkout-service", 42, "abc123")
CONTEXT = "tollgate/data-contracts"


@pytest.mark.parametrize(
    ("severity", "heading", "state"),
    [
        (Severity.BREAKING_P0, "## 🚨 BREAKING: data contract violation", CommitState.FAILURE),
        (Severity.WARNING_P1, "## ⚠️ WARNING (P1)", CommitState.SUCCESS),
        (Severity.WARNING_P2, "## ⚠️ WARNING (P2)", CommitState.SUCCESS),
        (Severity.PASS, "## ✅ PASS: data contracts satisfied", CommitState.SUCCESS),
    ],
)
def test_heading_and_status_follow_severity(
    severity: Severity, heading: str, state: CommitState
) -> None:
    """Only breaking changes fail the commit status."""
    rendered = render_result(KEY, ValidationResult(severity=severity), context=CONTEXT)

    lines = rendered.body.splitlines()
    assert lines[0] == COMMENT_MARKER
    assert lines[1].startswith(heading)
    assert rendered.status.state is state
    assert rendered.status.context == CONTEXT


def test_findings_render_as_a_table() -> None:
    """Each finding is one row; pipes and newlines cannot break the table."""
    result = ValidationResult(
        severity=Severity.BREAKING_P0,
        summary="1 breaking change",
        findings=(
            Finding(
                field_name="order_total",
                problem="renamed to amount | type changed\nto string",
                location="src/orders/serializers.py:88",
                contract_id="orders",
            ),
        ),
    )

    rendered = render_result(KEY, result, context=CONTEXT)

    assert "1 breaking change" in rendered.body
    assert "| Contract | Field | Problem | Location | Suggested fix |" in rendered.body
    assert (
        "| orders | `order_total` | renamed to amount \\| type changed to string "
        "| src/orders/serializers.py:88 | - |"
    ) in rendered.body
    assert rendered.status.description == "Breaking data contract change: 1 finding(s)"
    assert "acme/checkout-service#42" in rendered.body


def test_pass_without_findings_says_so() -> None:
    """A clean pass explains that nothing was found."""
    rendered = render_result(KEY, ValidationResult(severity=Severity.PASS), context=CONTEXT)

    assert "No contract findings for this head commit." in rendered.body
    assert rendered.status.description == "Data contracts satisfied"


def test_unavailable_notice_is_non_blocking() -> None:
    """Infrastructure failures never block merges."""
    rendered = render_unavailable(KEY, "credentials unavailable", context=CONTEXT)

    assert rendered.status.state is CommitState.SUCCESS
    assert rendered.status.description == (
        "Could not validate data contracts (validation unavailable)"
    )
    assert "> credentials unavailable" in rendered.body


def test_content_hash_depends_on_head_and_body() -> None:
    """The same outcome on a new head is a visible change."""
    rendered = render_result(KEY, ValidationResult(severity=Severity.PASS), context=CONTEXT)

    assert rendered.content_hash("abc123") == rendered.content_hash("abc123")
    assert rendered.content_hash("abc123") != rendered.content_hash("def456")
