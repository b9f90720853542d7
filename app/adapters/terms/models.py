"""SQLAlchemy ORM model for the relational term index."""

from __future__ import annotations

from sqlalchemy import Boolean, Index, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from app.adapters.terms.encoding import MAX_TERM_LENGTH


class Base(DeclarativeBase):
    pass


class TermRow(Base):
    """One distinct term string.

    ``member`` holds the bare normalized text (no completeness marker). A string
    that is both a prefix node and a complete term is stored once, complete.
    """

    __tablename__ = "terms"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    member: Mapped[str] = mapped_column(String(MAX_TERM_LENGTH), unique=True, nullable=False)
    is_complete: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (
        # Lets PostgreSQL serve LIKE 'prefix%' from the index under any collation.
        Index(
            "ix_terms_member_prefix",
            "member",
            postgresql_ops={"member": "text_pattern_ops"},
        ),
    )

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return f"TermRow(member={self.member!r}, is_complete={self.is_complete})"
