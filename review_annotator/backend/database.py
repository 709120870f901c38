"""
Database module for the review annotator.

This module encapsulates all persistence logic for review citations.
It uses SQLAlchemy to manage a SQLite or PostgreSQL database holding
one row per citation, keyed by an opaque citation id and grouped by
the id of the review it belongs to.

Functions are exposed to initialise the database, fetch the citations
of a review ordered by start offset, insert a batch, delete every
citation of a review, replace a review's batch in one transaction and
report simple statistics.  :class:`SqlCitationStore` adapts these
functions to the store interface used by
:class:`~review_annotator.backend.drafts.CitationDraft`.
"""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List

from sqlalchemy import Column, DateTime, Integer, String, Text, create_engine, func
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .models import Citation

logger = logging.getLogger(__name__)

# SQLAlchemy base class used to declare models
Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReviewCitation(Base):
    """ORM model for a single review citation.

    Each row stores the selected passage, its offsets into the
    plain-text projection of the article body, up to fifty characters of
    context on either side, the reviewer's note and a timestamp.
    """

    __tablename__ = 'review_citations'

    id = Column(String, primary_key=True)
    review_id = Column(String, nullable=False, index=True)
    selected_text = Column(Text, nullable=False)
    start_offset = Column(Integer, nullable=False)
    end_offset = Column(Integer, nullable=False)
    context_before = Column(Text, nullable=True)
    context_after = Column(Text, nullable=True)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=True, default=_utcnow)

    def to_citation(self) -> Citation:
        return Citation(
            id=self.id,
            review_id=self.review_id,
            selected_text=self.selected_text,
            start_offset=self.start_offset,
            end_offset=self.end_offset,
            context_before=self.context_before or '',
            context_after=self.context_after or '',
            note=self.note or '',
        )


def _get_database_url() -> str:
    """Resolve the database URL from environment variables.

    SQLite is used by default.  A DATABASE_URL environment variable can
    be provided to override it.  When a PostgreSQL URL beginning with
    ``postgres://`` is supplied, it is rewritten to ``postgresql://``
    because SQLAlchemy does not recognise the former scheme.
    """
    url = os.getenv('DATABASE_URL')
    if url:
        if url.startswith('postgres://'):
            url = url.replace('postgres://', 'postgresql://', 1)
        logger.info(f"Using database URL from environment: {url}")
        return url
    # fallback to a local SQLite database beside the package
    default_path = os.path.join(os.path.dirname(os.path.dirname(__file__)), 'review_citations.db')
    logger.info(f"Using local SQLite database at {default_path}")
    return f"sqlite:///{default_path}"


# StaticPool lets the API thread and the UI share one SQLite connection.
DATABASE_URL = _get_database_url()
if DATABASE_URL.startswith('sqlite'):
    engine = create_engine(
        DATABASE_URL,
        connect_args={'check_same_thread': False},
        poolclass=StaticPool
    )
else:
    engine = create_engine(DATABASE_URL, pool_pre_ping=True)

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


def init_db() -> None:
    """Create the ``review_citations`` table if it does not exist."""
    Base.metadata.create_all(bind=engine)
    logger.info("Database initialised (tables created if missing)")


@contextmanager
def get_db() -> Any:
    """Provide a transactional scope for database operations.

    This helper yields a SQLAlchemy session and ensures that it is
    properly committed or rolled back.  Sessions are always closed
    after use.
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def _add_batch(session: Any, review_id: str, citations: Iterable[Citation]) -> int:
    count = 0
    for citation in citations:
        session.add(ReviewCitation(
            id=citation.id,
            review_id=review_id,
            selected_text=citation.selected_text,
            start_offset=citation.start_offset,
            end_offset=citation.end_offset,
            context_before=citation.context_before,
            context_after=citation.context_after,
            note=citation.note,
        ))
        count += 1
    return count


def fetch_citations(review_id: str) -> List[Citation]:
    """Return the citations of a review ordered by start offset.

    An unknown review simply has no citations.
    """
    with get_db() as session:
        rows = (
            session.query(ReviewCitation)
            .filter(ReviewCitation.review_id == review_id)
            .order_by(ReviewCitation.start_offset, ReviewCitation.created_at, ReviewCitation.id)
        )
        return [row.to_citation() for row in rows]


def insert_citations(review_id: str, citations: Iterable[Citation]) -> Dict[str, int]:
    """Insert a batch of citations for a review.

    The whole batch is written in one transaction; a failure (for
    example a duplicate id) leaves the table unchanged and propagates
    to the caller.

    Returns:
        A dictionary with the number of ``inserted`` rows.
    """
    with get_db() as session:
        inserted = _add_batch(session, review_id, citations)
    logger.info(f"Inserted {inserted} citations for review {review_id}")
    return {'inserted': inserted}


def delete_citations(review_id: str) -> int:
    """Delete every citation of a review and return how many were removed."""
    with get_db() as session:
        deleted = (
            session.query(ReviewCitation)
            .filter(ReviewCitation.review_id == review_id)
            .delete(synchronize_session=False)
        )
    logger.info(f"Deleted {deleted} citations for review {review_id}")
    return int(deleted)


def replace_citations(review_id: str, citations: Iterable[Citation]) -> Dict[str, int]:
    """Replace a review's citations with a new batch.

    Deletion and insertion share one transaction, so an edited review
    never ends up with no citations because the insert failed.
    """
    with get_db() as session:
        deleted = (
            session.query(ReviewCitation)
            .filter(ReviewCitation.review_id == review_id)
            .delete(synchronize_session=False)
        )
        inserted = _add_batch(session, review_id, citations)
    logger.info(f"Replaced citations for review {review_id}: {deleted} deleted, {inserted} inserted")
    return {'deleted': int(deleted), 'inserted': inserted}


def get_review_stats() -> Dict[str, Any]:
    """Return the total citation count and the count per review."""
    with get_db() as session:
        total = session.query(ReviewCitation).count()
        per_review = [
            {'review_id': review_id, 'count': int(count)}
            for review_id, count in session.query(ReviewCitation.review_id, func.count(ReviewCitation.id))
            .group_by(ReviewCitation.review_id)
            .order_by(ReviewCitation.review_id)
        ]
        return {
            'total_citations': total,
            'reviews': per_review,
        }


class SqlCitationStore:
    """Citation store backed by this module's functions."""

    def fetch_citations(self, review_id: str) -> List[Citation]:
        return fetch_citations(review_id)

    def insert_citations(self, review_id: str, citations: Iterable[Citation]) -> Dict[str, int]:
        return insert_citations(review_id, citations)

    def delete_citations(self, review_id: str) -> int:
        return delete_citations(review_id)

    def replace_citations(self, review_id: str, citations: Iterable[Citation]) -> Dict[str, int]:
        return replace_citations(review_id, citations)
