"""Load terms into the ordered-set and relational indexes.

Both indexes are written from one canonical list of TermElements, so a query
returns the same set of completions whichever engine serves it:
- ordered set: prefix nodes stored bare, complete terms with the marker
- relational: one row per distinct string, bare text, ``is_complete`` set when
  the string is a complete term (even if it is also a prefix node)

Usage:
    speedsearch-load-terms countries.txt
    speedsearch-load-terms countries.txt --engine postgresql
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import Iterable, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from app.adapters.terms.base import AbstractOrderedSetStore, Engine
from app.adapters.terms.encoding import TermElement, encode_member, expand_term
from app.adapters.terms.models import Base, TermRow

logger = logging.getLogger(__name__)

# Keeps IN (...) lists well below SQLite's bound-parameter limit
_BATCH_SIZE = 500


async def ensure_schema(engine: AsyncEngine) -> None:
    """Create the ``terms`` table (and its indexes) if missing."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def read_terms(path: str | Path) -> list[str]:
    """Read one term per line, skipping blank lines."""
    with open(path, encoding="utf-8") as fh:
        return [line.strip() for line in fh if line.strip()]


def build_elements(terms: Iterable[str]) -> list[TermElement]:
    """Expand terms into a sorted, de-duplicated list of elements.

    Raises:
        ValueError: If a term contains the reserved completeness marker.
    """
    elements: set[TermElement] = set()
    for term in terms:
        elements.update(expand_term(term))
    return sorted(elements)


def completeness_by_member(elements: Iterable[TermElement]) -> dict[str, bool]:
    """Collapse elements to one completeness flag per distinct string."""
    flags: dict[str, bool] = {}
    for element in elements:
        flags[element.text] = flags.get(element.text, False) or element.complete
    return flags


class TermLoader:
    """Write terms to every configured term store.

    Attributes:
        ordered_set: Ordered-set store, or None to skip it.
        session_factory: Relational session factory, or None to skip it.
    """

    def __init__(
        self,
        *,
        ordered_set: AbstractOrderedSetStore | None = None,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
    ) -> None:
        if ordered_set is None and session_factory is None:
            raise ValueError("at least one term store is required")
        self.ordered_set = ordered_set
        self.session_factory = session_factory

    async def load(self, terms: Iterable[str]) -> int:
        """Index terms in every configured store.

        Loading is additive; re-loading a term is a no-op.

        Args:
            terms: Raw terms; each is normalized like a query.

        Returns:
            Number of distinct complete terms in the input.
        """
        elements = build_elements(terms)
        complete = sum(1 for element in elements if element.complete)

        if self.ordered_set is not None:
            await self.ordered_set.add(encode_member(element) for element in elements)

        if self.session_factory is not None:
            await self._load_relational(completeness_by_member(elements))

        logger.info(
            "terms.loaded",
            extra={
                "complete_terms": complete,
                "elements": len(elements),
                "ordered_set": self.ordered_set is not None,
                "relational": self.session_factory is not None,
            },
        )
        return complete

    async def _load_relational(self, flags: dict[str, bool]) -> None:
        members = sorted(flags)
        async with self.session_factory() as session, session.begin():
            for offset in range(0, len(members), _BATCH_SIZE):
                batch = members[offset : offset + _BATCH_SIZE]
                existing = {
                    row.member: row
                    for row in await session.scalars(
                        select(TermRow).where(TermRow.member.in_(batch))
                    )
                }
                for member in batch:
                    row = existing.get(member)
                    if row is None:
                        session.add(TermRow(member=member, is_complete=flags[member]))
                    elif flags[member] and not row.is_complete:
                        row.is_complete = True


async def _run(path: str, engines: Sequence[Engine]) -> int:
    from app.core.config import settings
    from app.core.dependencies import build_container

    container = build_container(settings)
    try:
        ordered_set = None
        session_factory = None
        if Engine.REDIS in engines:
            ordered_set = container.search_service.indexes[Engine.REDIS].store
        if Engine.POSTGRESQL in engines:
            await ensure_schema(container.db_engine)
            session_factory = container.search_service.indexes[Engine.POSTGRESQL].session_factory

        loader = TermLoader(ordered_set=ordered_set, session_factory=session_factory)
        return await loader.load(read_terms(path))
    finally:
        await container.aclose()


def main(argv: Sequence[str] | None = None) -> None:
    from app.core.logging import configure_logging

    parser = argparse.ArgumentParser(description="Load autocomplete terms into the term indexes.")
    parser.add_argument("path", help="Text file with one term per line")
    parser.add_argument(
        "--engine",
        action="append",
        choices=[engine.value for engine in Engine],
        help="Engine to load (repeatable); defaults to all engines",
    )
    args = parser.parse_args(argv)

    configure_logging()
    engines = [Engine(name) for name in args.engine] if args.engine else list(Engine)
    count = asyncio.run(_run(args.path, engines))
    print(f"Loaded {count} terms into {', '.join(e.value for e in engines)}")


if __name__ == "__main__":
    main()
