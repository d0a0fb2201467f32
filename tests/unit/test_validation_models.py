"""Unit tests for validator result and callback models."""

from __future__ import annotations

import msgspec
import pytest

from tollgate.common.keys import DispatchKey
from tollgate.validation import (
    NO_APPLICABLE_CONTRACTS,
    CallbackKey,
    CallbackOutcome,
    Finding,
    Severity,
    ValidationCallback,
    ValidationResult,
)


def _finding(field: str, contract_id: str = "orders") -> Finding:
    return Finding(field_name=field, problem="changed", contract_id=contract_id)


def test_severity_ranks_breaking_above_warnings() -> None:
    """P0 outranks P1, which outranks P2, which outranks PASS."""
    ordered = sorted(Severity, key=lambda severity: severity.rank)

    assert ordered == [
        Severity.PASS,
        Severity.WARNING_P2,
        Severity.WARNING_P1,
        Severity.BREAKING_P0,
    ]
    assert [s for s in Severity if s.blocks_merge] == [Severity.BREAKING_P0]


def test_combine_takes_worst_severity_and_keeps_finding_order() -> None:
    """Per-contract results merge into one outcome for the pull request."""
    orders = ValidationResult(
        severity=Severity.WARNING_P2, findings=(_finding("card_last4", "payments"),)
    )
    payments = ValidationResult(
        severity=Severity.BREAKING_P0,
        findings=(_finding("order_total"), _finding("status")),
        summary="order_total renamed",
    )

    combined = ValidationResult.combine([orders, payments])

    assert combined.severity is Severity.BREAKING_P0
    assert [f.field_name for f in combined.findings] == [
        "card_last4",
        "order_total",
        "status",
    ]
    assert combined.summary == "order_total renamed"


def test_combine_of_nothing_passes() -> None:
    """No per-contract results means nothing failed."""
    assert ValidationResult.combine([]).severity is Severity.PASS


def test_no_applicable_contracts_is_a_pass() -> None:
    """Unmapped producers get a synthetic PASS with an explanatory summary."""
    result = ValidationResult.no_applicable_contracts()

    assert result.severity is Severity.PASS
    assert result.findings == ()
    assert result.summary == NO_APPLICABLE_CONTRACTS


def test_finding_serialises_field_under_its_wire_name() -> None:
    """The validator sends ``field``; Python code reads ``field_name``."""
    result = ValidationResult(severity=Severity.BREAKING_P0, findings=(_finding("order_total"),))

    wire = msgspec.json.decode(result.encode())

    assert wire["findings"][0]["field"] == "order_total"
    assert ValidationResult.decode(result.encode()) == result
    assert result.content_hash() == ValidationResult.decode(result.encode()).content_hash()


def test_completed_callback_carries_a_result() -> None:
    """A completed callback decodes into a dispatch key and result."""
    raw = b"""{
        "dispatch_key": {
            "repository": "Acme/Checkout-Service",
            "pull_request": 42,
            "head_sha": "ABC123"
        },
        "outcome": "completed",
        "severity": "BREAKING_P0",
        "findings": [{"field": "order_total", "problem": "renamed to amount"}]
    }"""

    callback = msgspec.json.decode(raw, type=ValidationCallback)

    assert callback.outcome is CallbackOutcome.COMPLETED
    assert callback.dispatch_key.to_dispatch_key() == DispatchKey(
        repo="acme/checkout-service", pr_number=42, head_sha="abc123"
    )
    result = callback.to_result()
    assert result.severity is Severity.BREAKING_P0
    assert result.findings[0].problem == "renamed to amount"


def test_error_callbacks_have_no_result() -> None:
    """Error callbacks cannot be turned into results."""
    callback = ValidationCallback(
        dispatch_key=CallbackKey(
            repository="acme/checkout-service", pull_request=42, head_sha="abc123"
        ),
        outcome=CallbackOutcome.ERROR,
        error="workflow crashed",
    )

    with pytest.raises(ValueError, match="only completed callbacks"):
        callback.to_result()


def test_per_contract_outcomes_are_merged() -> None:
    """Contracts evaluated independently merge into one pull request result."""
    raw = b"""{
        "dispatch_key": {"repository": "acme/checkout-service",
                         "pull_request": 42, "head_sha": "abc123"},
        "outcome": "completed",
        "contracts": [
            {"contract_id": "orders", "severity": "PASS"},
            {"contract_id": "payments", "severity": "WARNING_P2",
             "findings": [{"field": "card_number", "problem": "PII in logs"}]}
        ]
    }"""

    result = msgspec.json.decode(raw, type=ValidationCallback).to_result()

    assert result.severity is Severity.WARNING_P2
    assert [(f.contract_id, f.field_name) for f in result.findings] == [
        ("payments", "card_number")
    ]


def test_completed_callback_without_severity_is_rejected() -> None:
    """A completed callback must say how bad the change is."""
    callback = ValidationCallback(
        dispatch_key=CallbackKey(
            repository="acme/checkout-service", pull_request=42, head_sha="abc123"
        ),
        outcome=CallbackOutcome.COMPLETED,
    )

    with pytest.raises(ValueError, match="severity or per-contract outcomes"):
        callback.to_result()


def test_unknown_severity_is_rejected() -> None:
    """Severities outside the four known levels fail decoding."""
    raw = (
        b'{"dispatch_key": {"repository": "acme/checkout-service",'
        b' "pull_request": 42, "head_sha": "abc123"},'
        b' "outcome": "completed", "severity": "CATASTROPHIC"}'
    )

    with pytest.raises(msgspec.ValidationError):
        msgspec.json.decode(raw, type=ValidationCallback)
