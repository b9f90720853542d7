"""Term element encoding shared by both term indexes.

A term index holds two kinds of entries: prefix nodes (intermediate paths,
never returned to users) and complete terms. The ordered-set backend encodes
completeness in the member string itself by appending ``COMPLETE_MARKER``;
Redis sorted sets accept no custom comparator, so the marker is what places a
complete term right after its own prefix node in lexicographic order.
"""

from __future__ import annotations

from typing import NamedTuple

from app.utils.text_normalizer import normalize_query

COMPLETE_MARKER = "*"

# Width of the relational ``member`` column
MAX_TERM_LENGTH = 255


class TermElement(NamedTuple):
    """A prefix node (``complete=False``) or a complete term.

    Tuple ordering compares ``text`` first and then ``complete``, which puts
    ``TermElement("CAT", False)`` immediately before ``TermElement("CAT", True)``.
    """

    text: str
    complete: bool


def encode_member(element: TermElement) -> str:
    """Encode an element as an ordered-set member."""
    if element.complete:
        return element.text + COMPLETE_MARKER
    return element.text


def is_complete_member(member: str) -> bool:
    return member.endswith(COMPLETE_MARKER)


def strip_marker(member: str) -> str:
    """Remove a trailing completeness marker, if present."""
    if is_complete_member(member):
        return member[: -len(COMPLETE_MARKER)]
    return member


def decode_member(member: str) -> TermElement:
    """Decode an ordered-set member back into a TermElement."""
    return TermElement(strip_marker(member), is_complete_member(member))


def expand_term(term: str) -> list[TermElement]:
    """Expand a term into its prefix nodes and the complete term.

    Every non-empty prefix of the normalized term (the full term included)
    becomes a prefix node, followed by the complete term.

    Args:
        term: Raw term text; it is normalized the same way queries are.

    Returns:
        Elements in index order. Empty when the term normalizes to "".

    Raises:
        ValueError: If the term contains the reserved completeness marker or
            is longer than ``MAX_TERM_LENGTH``.
    """
    text = normalize_query(term)
    if not text:
        return []
    if COMPLETE_MARKER in text:
        raise ValueError(f"term {text!r} contains reserved marker {COMPLETE_MARKER!r}")
    if len(text) > MAX_TERM_LENGTH:
        raise ValueError(f"term is {len(text)} characters long, limit is {MAX_TERM_LENGTH}")

    elements = [TermElement(text[:i], False) for i in range(1, len(text) + 1)]
    elements.append(TermElement(text, True))
    return elements
