"""Markdown renderer for the pull request validation comment.

Each pull request gets one comment that Tollgate edits in place. A hidden
HTML marker at the top identifies it, so the comment can be found again even
if the stored comment id is lost.

Usage
-----
>>> rendered = render_result(key, result, context="tollgate/data-contracts")
>>> rendered.status.state
<CommitState.FAILURE: 'failure'>

"""

from __future__ import annotations

import dataclasses as dc
import hashlib
import typing as typ

from tollgate.validation.models import Severity

from .surface import CommitState, CommitStatus

if typ.TYPE_CHECKING:
    from tollgate.common.keys import DispatchKey
    from tollgate.validation.models import Finding, ValidationResult

COMMENT_MARKER = "<!-- tollgate:contract-validation -->"

# GitHub truncates commit status descriptions past 140 characters.
_STATUS_DESCRIPTION_LIMIT = 140

_HEADINGS: dict[Severity, str] = {
    Severity.BREAKING_P0: "🚨 BREAKING: data contract violation",
    Severity.WARNING_P1: "⚠️ WARNING (P1): default or nullability change",
    Severity.WARNING_P2: "⚠️ WARNING (P2): possible PII exposure",
    Severity.PASS: "✅ PASS: data contracts satisfied",
}

UNAVAILABLE_HEADING = "⏸️ Validation unavailable"


@dc.dataclass(frozen=True, slots=True)
class RenderedOutcome:
    """Comment body and commit status for one outcome."""

    body: str
    status: CommitStatus

    def content_hash(self, head_sha: str) -> str:
        """Return a hash identifying this exact visible state for ``head_sha``."""
        digest = hashlib.sha256()
        for part in (head_sha, self.status.state, self.status.description, self.body):
            digest.update(part.encode("utf-8"))
            digest.update(b"\0")
        return digest.hexdigest()


def _escape_cell(value: str | None) -> str:
    if not value:
        return "-"
    return value.replace("|", "\\|").replace("\n", " ")


def _truncate(text: str) -> str:
    if len(text) <= _STATUS_DESCRIPTION_LIMIT:
        return text
    return f"{text[: _STATUS_DESCRIPTION_LIMIT - 1]}…"


def _render_findings(lines: list[str], findings: typ.Sequence[Finding]) -> None:
    lines.append("| Contract | Field | Problem | Location | Suggested fix |")
    lines.append("|---|---|---|---|---|")
    lines.extend(
        "| "
        + " | ".join(
            (
                _escape_cell(finding.contract_id),
                f"`{_escape_cell(finding.field_name)}`",
                _escape_cell(finding.problem),
                _escape_cell(finding.location),
                _escape_cell(finding.suggested_fix),
            )
        )
        + " |"
        for finding in findings
    )
    lines.append("")


def _render_footer(lines: list[str], key: DispatchKey) -> None:
    lines.append(f"<sub>Validated head `{key.head_sha}` of {key.repo}#{key.pr_number}.</sub>")


def _status_description(result: ValidationResult) -> str:
    count = len(result.findings)
    match result.severity:
        case Severity.BREAKING_P0:
            return f"Breaking data contract change: {count} finding(s)"
        case Severity.WARNING_P1 | Severity.WARNING_P2:
            return f"Contract warnings ({result.severity.value}): {count} finding(s)"
        case _:
            return "Data contracts satisfied"


def render_result(
    key: DispatchKey,
    result: ValidationResult,
    *,
    context: str,
    target_url: str | None = None,
) -> RenderedOutcome:
    """Render a validated outcome.

    ``BREAKING_P0`` fails the commit status; warnings and passes succeed.
    """
    lines = [COMMENT_MARKER, f"## {_HEADINGS[result.severity]}", ""]
    if result.summary:
        lines.extend([result.summary, ""])
    if result.findings:
        _render_findings(lines, result.findings)
    elif result.severity is Severity.PASS:
        lines.extend(["No contract findings for this head commit.", ""])
    _render_footer(lines, key)

    state = CommitState.FAILURE if result.severity.blocks_merge else CommitState.SUCCESS
    status = CommitStatus(
        state=state,
        description=_truncate(_status_description(result)),
        context=context,
        target_url=target_url,
    )
    return RenderedOutcome(body="\n".join(lines), status=status)


def render_unavailable(
    key: DispatchKey,
    reason: str,
    *,
    context: str,
    target_url: str | None = None,
) -> RenderedOutcome:
    """Render the non-blocking notice shown when validation could not run."""
    lines = [
        COMMENT_MARKER,
        f"## {UNAVAILABLE_HEADING}",
        "",
        "Data contracts could not be validated for this head commit. "
        "This does not block merging; push a new commit or ask a maintainer "
        "to re-run validation.",
        "",
        f"> {_escape_cell(reason)}",
        "",
    ]
    _render_footer(lines, key)
    status = CommitStatus(
        state=CommitState.SUCCESS,
        description="Could not validate data contracts (validation unavailable)",
        context=context,
        target_url=target_url,
    )
    return RenderedOutcome(body="\n".join(lines), status=status)
