"""Slug, username, and virtual-identity derivation.

Everything here is a pure function over already-resolved collision sets so
callers can do the store lookups up front and test the naming rules without
a database.
"""

from __future__ import annotations

import re
from typing import Collection

_NON_ALNUM = re.compile(r"[^a-z0-9]+")

ORGANIZATION_SLUG_FALLBACK = "company"
BRANCH_SLUG_PREFIX = "branch"


def slugify(value: str) -> str:
    """Lowercase ``value`` and collapse every non-alphanumeric run into one dash."""

    return _NON_ALNUM.sub("-", (value or "").lower()).strip("-")


def derive_unique_slug(base: str, taken: Collection[str]) -> str:
    """Return ``base`` or the first ``base-N`` (N >= 1) not in ``taken``."""

    if base not in taken:
        return base
    suffix = 1
    while f"{base}-{suffix}" in taken:
        suffix += 1
    return f"{base}-{suffix}"


def organization_slug_base(name: str) -> str:
    return slugify(name) or ORGANIZATION_SLUG_FALLBACK


def branch_slug(name: str, branch_id: str, taken: Collection[str]) -> str:
    """Slug for a new branch, unique within its organization.

    Names that slugify to nothing fall back to ``branch-<first 5 of id>``. A slug
    already used by a sibling branch is disambiguated with the last three
    characters of the new branch id, then numbered if that is taken too.
    """

    slug = slugify(name) or f"{BRANCH_SLUG_PREFIX}-{branch_id[:5].lower()}"
    if slug in taken:
        slug = derive_unique_slug(f"{slug}-{branch_id[-3:].lower()}", taken)
    return slug


def branch_username(organization_slug: str, slug: str) -> str:
    return f"{organization_slug}-{slug}"


def cashier_username(branch_username_value: str, cashier_number: int) -> str:
    """Cashiers are ``<branch username>-<sequence>``."""

    if cashier_number < 1:
        raise ValueError("cashier_number must be positive")
    return f"{branch_username_value}-{cashier_number}"


def virtual_email(username: str, domain: str) -> str:
    """Synthetic provider login address; never a deliverable mailbox."""

    if not username:
        raise ValueError("username is required")
    return f"{username}@{domain.strip().lstrip('@')}".lower()


__all__ = [
    "BRANCH_SLUG_PREFIX",
    "ORGANIZATION_SLUG_FALLBACK",
    "branch_slug",
    "branch_username",
    "cashier_username",
    "derive_unique_slug",
    "organization_slug_base",
    "slugify",
    "virtual_email",
]
