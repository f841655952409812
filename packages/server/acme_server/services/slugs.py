"""
Organization slug allocation.

``slugify`` derives the base slug; ``allocate_slug`` probes ``base``,
``base-1``, ``base-2``, ... and returns the first one no organization uses.
"""

from __future__ import annotations

import itertools
import re
from collections.abc import Iterator

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from acme_server.models.organization import Organization

FALLBACK_SLUG = "org"

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(name: str) -> str:
    """Lower-case, collapse non-alphanumeric runs to ``-``, trim hyphens."""
    slug = _NON_ALNUM.sub("-", name.lower()).strip("-")
    return slug or FALLBACK_SLUG


def candidate_slugs(base: str) -> Iterator[str]:
    yield base
    for n in itertools.count(1):
        yield f"{base}-{n}"


async def allocate_slug(name: str, session: AsyncSession) -> str:
    """Return the first unused slug for ``name``.

    The probe is check-then-act; callers insert under the unique constraint
    and retry on conflict.
    """
    base = slugify(name)
    result = await session.execute(
        select(Organization.slug).where(
            (Organization.slug == base) | Organization.slug.startswith(f"{base}-")
        )
    )
    taken = set(result.scalars().all())
    for candidate in candidate_slugs(base):
        if candidate not in taken:
            return candidate
