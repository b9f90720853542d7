def normalize_query(raw: str | None) -> str:
    """Normalize a search query to its canonical comparable form.

    Strips surrounding whitespace and upper-cases the remainder. The same
    normalization is applied to terms when they are indexed, so stored terms
    and queries compare directly.

    Args:
        raw: Raw query text as received (may be None when absent).

    Returns:
        str: Normalized query, empty when nothing remains after trimming.
    """
    if raw is None:
        return ""
    return raw.strip().upper()
