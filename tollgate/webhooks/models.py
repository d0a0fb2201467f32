"""Typed GitHub pull request payloads and the authenticated event."""

from __future__ import annotations

import datetime as dt
import enum
import typing as typ

import msgspec

from tollgate.common.keys import DispatchKey


class PullRequestAction(enum.StrEnum):
    """Pull request actions that may change the code under review."""

    OPENED = "opened"
    SYNCHRONIZE = "synchronize"
    REOPENED = "reopened"


RELEVANT_ACTIONS = frozenset(PullRequestAction)

# GitHub timestamps end in ``Z``; a naive one is a malformed payload.
AwareDateTime = typ.Annotated[dt.datetime, msgspec.Meta(tz=True)]


class RepositoryPayload(msgspec.Struct, kw_only=True, frozen=True):
    """Subset of the ``repository`` object GitHub sends."""

    full_name: str


class HeadPayload(msgspec.Struct, kw_only=True, frozen=True):
    """Head branch of a pull request."""

    sha: str
    ref: str


class PullRequestPayload(msgspec.Struct, kw_only=True, frozen=True):
    """Subset of the ``pull_request`` object GitHub sends."""

    number: int
    head: HeadPayload
    updated_at: AwareDateTime | None = None


class PullRequestEventPayload(msgspec.Struct, kw_only=True, frozen=True):
    """Body of a ``pull_request`` webhook delivery.

    Unknown fields are ignored; GitHub payloads carry far more than Tollgate
    needs.
    """

    action: str
    pull_request: PullRequestPayload
    repository: RepositoryPayload
    before: str | None = None


class ValidationEvent(msgspec.Struct, kw_only=True, frozen=True):
    """An authenticated pull request change worth validating.

    Attributes
    ----------
    event_id
        GitHub delivery id, stable across redeliveries.
    producer_repo
        Normalised ``owner/name`` of the repository that opened the PR.
    pull_request_number
        Pull request number.
    head_sha
        Head commit of the pull request at delivery time.
    branch_ref
        Head branch name.
    received_at
        When Tollgate accepted the delivery.
    previous_head_sha
        Head the push replaced, from the ``before`` field of ``synchronize``
        deliveries.
    head_updated_at
        The pull request's ``updated_at`` when GitHub built the delivery.

    """

    event_id: str
    producer_repo: str
    pull_request_number: int
    head_sha: str
    branch_ref: str
    received_at: dt.datetime
    previous_head_sha: str | None = None
    head_updated_at: dt.datetime | None = None

    @property
    def dispatch_key(self) -> DispatchKey:
        """Return the deduplication key for this event."""
        return DispatchKey(
            repo=self.producer_repo,
            pr_number=self.pull_request_number,
            head_sha=self.head_sha,
        )
