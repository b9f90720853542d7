"""Tests for query normalization."""

import pytest

from app.utils.text_normalizer import normalize_query


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("cat", "CAT"),
        ("  Cat  ", "CAT"),
        ("\tunited kingdom\n", "UNITED KINGDOM"),
        ("CAT", "CAT"),
        ("", ""),
        ("   ", ""),
        (None, ""),
    ],
)
def test_normalize_query(raw, expected) -> None:
    assert normalize_query(raw) == expected


@pytest.mark.parametrize("raw", ["cat", " Côte d'Ivoire ", "straße", "ÅLAND", "  "])
def test_normalize_query_is_idempotent(raw: str) -> None:
    once = normalize_query(raw)
    assert normalize_query(once) == once
