"""Both term indexes return the same completions for the same loaded terms."""

import asyncio

from app.adapters.terms.ordered_set import InMemoryOrderedSetStore, OrderedSetTermIndex
from app.adapters.terms.relational import RelationalTermIndex, get_engine, make_session_factory
from app.services.term_loader import TermLoader, ensure_schema
from app.utils.text_normalizer import normalize_query

TERMS = [
    "Cat",
    "Catalog",
    "Caterpillar",
    "Dog",
    "United",
    "United Kingdom",
    "United States",
    "Guinea",
    "Guinea-Bissau",
    "Papua New Guinea",
    "100%",
    "A_B",
]


def _queries() -> list[str]:
    queries = {"Z", "CATX", "%", "_", "UNITED K", "GUINEA-"}
    for term in TERMS:
        text = normalize_query(term)
        queries.update(text[:i] for i in range(1, len(text) + 1))
    return sorted(queries)


async def _compare(url: str) -> list[tuple[str, list[str], list[str]]]:
    engine = get_engine(url)
    try:
        await ensure_schema(engine)
        factory = make_session_factory(engine)
        store = InMemoryOrderedSetStore()
        count = await TermLoader(ordered_set=store, session_factory=factory).load(TERMS)
        assert count == len(TERMS)

        ordered = OrderedSetTermIndex(store)
        relational = RelationalTermIndex(factory)
        return [
            (q, await ordered.prefix_search(q), await relational.prefix_search(q))
            for q in _queries()
        ]
    finally:
        await engine.dispose()


def test_backends_return_same_term_sets(sqlite_url: str) -> None:
    for query, ordered, relational in asyncio.run(_compare(sqlite_url)):
        assert set(ordered) == set(relational), query
        assert len(ordered) == len(set(ordered)), query
        assert all(term.startswith(query) for term in ordered), query


def test_ordered_results_are_sorted(sqlite_url: str) -> None:
    for query, ordered, _ in asyncio.run(_compare(sqlite_url)):
        assert ordered == sorted(ordered), query
