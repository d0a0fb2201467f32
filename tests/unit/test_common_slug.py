"""Unit tests for repository slug utilities."""

from __future__ import annotations

import pytest

from tollgate.common.slug import normalize_repo_slug, parse_repo_slug


def test_parse_repo_slug_splits_owner_and_name() -> None:
    """parse_repo_slug returns (owner, name) for valid slugs."""
    assert parse_repo_slug("acme/checkout-service") == ("acme", "checkout-service")
    assert parse_repo_slug("Acme-Org/Repo_Name.v2") == ("Acme-Org", "Repo_Name.v2")


def test_normalize_repo_slug_lowercases_and_strips() -> None:
    """GitHub slugs compare case-insensitively, so keys are lowercase."""
    assert normalize_repo_slug("  Acme/Checkout-Service ") == "acme/checkout-service"


@pytest.mark.parametrize(
    "slug",
    [
        "",
        "/",
        "invalid",
        "owner/name/extra",
        r"owner\name",
        "owner/",
        "/name",
        "owner//name",
        "own er/name",
    ],
)
def test_parse_repo_slug_rejects_invalid_slugs(slug: str) -> None:
    """parse_repo_slug raises ValueError for invalid slugs."""
    with pytest.raises(ValueError, match="Invalid repository slug"):
        parse_repo_slug(slug)
