"""Repository slug utilities.

Repository slugs are GitHub identifiers in ``owner/name`` format. GitHub treats
them case-insensitively, so Tollgate normalises them to lowercase before using
them as lookup or deduplication keys. They are not filesystem paths and should
be parsed with these helpers rather than ``pathlib``.
"""

from __future__ import annotations

import re

_SEGMENT_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


def parse_repo_slug(slug: str) -> tuple[str, str]:
    """Split ``owner/name`` into its parts.

    Raises
    ------
    ValueError
        If the slug is not exactly two non-empty segments of letters, digits,
        dots, underscores, or dashes.

    Examples
    --------
    >>> parse_repo_slug("acme/checkout-service")
    ('acme', 'checkout-service')

    """
    parts = slug.split("/")
    if len(parts) != 2 or not all(_SEGMENT_PATTERN.match(part) for part in parts):  # noqa: PLR2004
        msg = f"Invalid repository slug: expected 'owner/name', got {slug!r}"
        raise ValueError(msg)
    return parts[0], parts[1]


def normalize_repo_slug(slug: str) -> str:
    """Validate ``slug`` and return its lowercase canonical form.

    Examples
    --------
    >>> normalize_repo_slug(" Acme/Checkout-Service ")
    'acme/checkout-service'

    """
    owner, name = parse_repo_slug(slug.strip())
    return f"{owner.lower()}/{name.lower()}"
