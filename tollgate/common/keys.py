"""Dispatch key: the unit of deduplication for validation runs."""

from __future__ import annotations

import dataclasses as dc
import re

from .slug import normalize_repo_slug

_SHA_PATTERN = re.compile(r"^[0-9a-f]{4,64}$")


def normalize_sha(value: str, *, field: str = "sha") -> str:
    """Return ``value`` as a lowercase hex commit id; raises ``ValueError``."""
    sha = value.strip().lower()
    if not _SHA_PATTERN.match(sha):
        msg = f"{field} must be hexadecimal, got {value!r}"
        raise ValueError(msg)
    return sha


@dc.dataclass(frozen=True, slots=True, order=True)
class DispatchKey:
    """Identify one validation run by repository, pull request and head commit.

    Attributes
    ----------
    repo
        Producer repository slug, lowercase ``owner/name``.
    pr_number
        Pull request number within ``repo``.
    head_sha
        Lowercase hex commit id at the head of the pull request.

    """

    repo: str
    pr_number: int
    head_sha: str

    @classmethod
    def build(cls, repo: str, pr_number: int, head_sha: str) -> DispatchKey:
        """Normalise and validate the parts of a key.

        Raises
        ------
        ValueError
            If the slug is invalid, the number is not positive, or the sha is
            not hexadecimal.

        Examples
        --------
        >>> DispatchKey.build("Acme/Checkout-Service", 42, "ABC123")
        DispatchKey(repo='acme/checkout-service', pr_number=42, head_sha='abc123')

        """
        if pr_number < 1:
            msg = f"pull request number must be positive, got {pr_number}"
            raise ValueError(msg)
        return cls(
            repo=normalize_repo_slug(repo),
            pr_number=pr_number,
            head_sha=normalize_sha(head_sha, field="head sha"),
        )

    @property
    def pull_request(self) -> tuple[str, int]:
        """Return the ``(repo, pr_number)`` pair shared by every push to a PR."""
        return (self.repo, self.pr_number)

    def __str__(self) -> str:
        """Render as ``owner/name#42@abc123``."""
        return f"{self.repo}#{self.pr_number}@{self.head_sha}"
