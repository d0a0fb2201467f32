"""Requests to and results from the external contract validator."""

from __future__ import annotations

import datetime as dt  # noqa: TC003
import enum
import hashlib
import typing as typ

import msgspec

from tollgate.common.keys import DispatchKey

if typ.TYPE_CHECKING:
    import collections.abc as cabc


class Severity(enum.StrEnum):
    """Outcome severity, ordered from harmless to blocking.

    ``WARNING_P1`` covers default or nullability changes, ``WARNING_P2``
    covers PII leakage, and ``BREAKING_P0`` covers schema or business-rule
    violations.
    """

    PASS = "PASS"
    WARNING_P2 = "WARNING_P2"
    WARNING_P1 = "WARNING_P1"
    BREAKING_P0 = "BREAKING_P0"

    @property
    def rank(self) -> int:
        """Return a sortable weight; higher is worse."""
        return _SEVERITY_RANK[self]

    @property
    def blocks_merge(self) -> bool:
        """Return whether the severity should fail the commit status."""
        return self is Severity.BREAKING_P0


_SEVERITY_RANK = {
    Severity.PASS: 0,
    Severity.WARNING_P2: 1,
    Severity.WARNING_P1: 2,
    Severity.BREAKING_P0: 3,
}

NO_APPLICABLE_CONTRACTS = "no applicable contracts"


class Finding(msgspec.Struct, kw_only=True, frozen=True):
    """One problem the validator found.

    Attributes
    ----------
    field_name
        Contract field affected, serialised as ``field``.
    problem
        Human-readable description.
    location
        Optional source location in the producer repository.
    suggested_fix
        Optional remediation hint.
    contract_id
        Contract the finding was evaluated against.

    """

    field_name: str = msgspec.field(name="field")
    problem: str
    location: str | None = None
    suggested_fix: str | None = None
    contract_id: str | None = None


class ValidationResult(msgspec.Struct, kw_only=True, frozen=True):
    """Structured outcome of one validation run.

    Attributes
    ----------
    severity
        Worst severity across all evaluated contracts.
    findings
        Findings in the order the validator reported them.
    summary
        Optional one-line summary.

    """

    severity: Severity
    findings: tuple[Finding, ...] = ()
    summary: str | None = None

    @classmethod
    def no_applicable_contracts(cls) -> ValidationResult:
        """Return the synthetic PASS used for unmapped producers."""
        return cls(severity=Severity.PASS, summary=NO_APPLICABLE_CONTRACTS)

    @classmethod
    def combine(cls, parts: cabc.Iterable[ValidationResult]) -> ValidationResult:
        """Merge independently evaluated results.

        The severity is the worst of the parts; findings are concatenated in
        order.
        """
        collected = list(parts)
        if not collected:
            return cls(severity=Severity.PASS)
        severity = max((part.severity for part in collected), key=lambda s: s.rank)
        findings = tuple(finding for part in collected for finding in part.findings)
        summaries = [part.summary for part in collected if part.summary]
        return cls(
            severity=severity,
            findings=findings,
            summary="; ".join(summaries) or None,
        )

    def encode(self) -> bytes:
        """Return the canonical JSON encoding."""
        return msgspec.json.encode(self)

    @classmethod
    def decode(cls, raw: bytes | str) -> ValidationResult:
        """Parse a result previously produced by :meth:`encode`."""
        return msgspec.json.decode(raw, type=cls)

    def content_hash(self) -> str:
        """Return a sha256 of the canonical encoding."""
        return hashlib.sha256(self.encode()).hexdigest()


class ContractReference(msgspec.Struct, kw_only=True, frozen=True):
    """Contract the validator must evaluate."""

    id: str
    version: int | str


class ValidationRequest(msgspec.Struct, kw_only=True, frozen=True):
    """Everything the validator needs to run against one head commit.

    Attributes
    ----------
    repository
        Producer repository slug.
    pull_request
        Pull request number.
    head_sha
        Commit to validate.
    branch_ref
        Head branch name.
    contracts
        Contracts in mapping order; each is evaluated independently.
    callback_url
        Where the validator posts its signed result.
    deadline_at
        After this time Tollgate stops waiting for a result.

    """

    repository: str
    pull_request: int
    head_sha: str
    branch_ref: str
    contracts: tuple[ContractReference, ...]
    callback_url: str | None = None
    deadline_at: dt.datetime | None = None

    @property
    def dispatch_key(self) -> DispatchKey:
        """Return the key this request belongs to."""
        return DispatchKey(
            repo=self.repository, pr_number=self.pull_request, head_sha=self.head_sha
        )


class CallbackOutcome(enum.StrEnum):
    """Whether the validator produced a result or gave up."""

    COMPLETED = "completed"
    ERROR = "error"


class CallbackKey(msgspec.Struct, kw_only=True, frozen=True):
    """Dispatch key as echoed back by the validator."""

    repository: str
    pull_request: int
    head_sha: str

    def to_dispatch_key(self) -> DispatchKey:
        """Normalise into a :class:`DispatchKey`; raises ``ValueError``."""
        return DispatchKey.build(self.repository, self.pull_request, self.head_sha)


class ContractOutcome(msgspec.Struct, kw_only=True, frozen=True):
    """Result of evaluating one contract, for validators that report per contract."""

    contract_id: str
    severity: Severity
    findings: tuple[Finding, ...] = ()
    summary: str | None = None

    def to_result(self) -> ValidationResult:
        """Return the outcome as a result whose findings name this contract."""
        findings = tuple(
            finding
            if finding.contract_id is not None
            else msgspec.structs.replace(finding, contract_id=self.contract_id)
            for finding in self.findings
        )
        return ValidationResult(
            severity=self.severity, findings=findings, summary=self.summary
        )


class ValidationCallback(msgspec.Struct, kw_only=True, frozen=True):
    """Body of a signed ``POST /validation-results`` request.

    A completed callback carries either one overall ``severity`` with its
    ``findings`` or a ``contracts`` list with one outcome per contract.
    """

    dispatch_key: CallbackKey
    outcome: CallbackOutcome
    severity: Severity | None = None
    findings: tuple[Finding, ...] = ()
    contracts: tuple[ContractOutcome, ...] = ()
    summary: str | None = None
    error: str | None = None

    def to_result(self) -> ValidationResult:
        """Return the result carried by a ``completed`` callback.

        Raises
        ------
        ValueError
            If the callback is an error or lacks a severity.

        """
        if self.outcome is not CallbackOutcome.COMPLETED:
            msg = "only completed callbacks carry a result"
            raise ValueError(msg)
        if self.contracts:
            combined = ValidationResult.combine(
                outcome.to_result() for outcome in self.contracts
            )
            return msgspec.structs.replace(
                combined, summary=self.summary or combined.summary
            )
        if self.severity is None:
            msg = "completed callbacks need a severity or per-contract outcomes"
            raise ValueError(msg)
        return ValidationResult(
            severity=self.severity, findings=self.findings, summary=self.summary
        )
