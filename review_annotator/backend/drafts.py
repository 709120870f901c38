"""
Client-side queue of citations for one review.

Reviewers add citations while writing a review; nothing is written to
the store until the review is submitted.  :class:`CitationDraft`
holds that queue, loads the existing citations when an earlier review
is edited and submits the batch in one replace operation.

Store failures are wrapped in :class:`CitationStoreError` subclasses
and never modify the local queue, so a failed submission can simply
be retried.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Protocol

from .models import Citation, Selection

logger = logging.getLogger(__name__)


class CitationStoreError(Exception):
    """Base class for data store failures seen by a draft."""


class CitationFetchError(CitationStoreError):
    """Existing citations could not be loaded."""


class CitationPersistError(CitationStoreError):
    """The citation batch could not be written."""


class CitationStore(Protocol):
    """Operations the draft needs from the data store."""

    def fetch_citations(self, review_id: str) -> List[Citation]: ...

    def replace_citations(self, review_id: str, citations: Iterable[Citation]) -> Dict[str, int]: ...


class CitationDraft:
    """Citations queued for a single review."""

    def __init__(self, review_id: str, citations: Optional[Iterable[Citation]] = None) -> None:
        self.review_id = review_id
        self._citations: List[Citation] = list(citations or [])
        self.submitted = False

    @property
    def citations(self) -> List[Citation]:
        """Queued citations ordered by start offset."""
        return sorted(self._citations, key=lambda c: (c.start_offset, c.end_offset, c.id))

    def __len__(self) -> int:
        return len(self._citations)

    def add(self, citation: Citation) -> Citation:
        """Queue a citation, replacing any queued citation with the same id."""
        self._citations = [c for c in self._citations if c.id != citation.id]
        self._citations.append(citation)
        self.submitted = False
        return citation

    def add_from_selection(self, selection: Selection, note: str) -> Citation:
        """Create a citation from a captured selection and queue it.

        Raises:
            ValueError: if the note is empty.
        """
        return self.add(Citation.from_selection(selection, note, review_id=self.review_id))

    def remove(self, citation_id: str) -> bool:
        before = len(self._citations)
        self._citations = [c for c in self._citations if c.id != citation_id]
        removed = len(self._citations) != before
        if removed:
            self.submitted = False
        return removed

    def load(self, store: CitationStore) -> List[Citation]:
        """Replace the queue with the citations already stored for the review.

        A fetch that completes after local edits overwrites them; callers
        load before enabling annotation.
        """
        try:
            existing = store.fetch_citations(self.review_id)
        except Exception as e:
            logger.warning(f"Failed to fetch citations for review {self.review_id}: {e}")
            raise CitationFetchError(f"Failed to fetch citations for review {self.review_id}") from e
        self._citations = list(existing)
        self.submitted = True
        return self.citations

    def submit(self, store: CitationStore) -> Dict[str, int]:
        """Persist the queue as the review's citation batch.

        Raises:
            CitationPersistError: if the store fails.  The queue is kept
                for a later retry.
        """
        batch = [
            c if c.review_id == self.review_id else replace(c, review_id=self.review_id)
            for c in self.citations
        ]
        try:
            stats = store.replace_citations(self.review_id, batch)
        except Exception as e:
            logger.warning(f"Failed to persist {len(batch)} citations for review {self.review_id}: {e}")
            raise CitationPersistError(f"Failed to save citations for review {self.review_id}") from e
        self._citations = batch
        self.submitted = True
        logger.info(f"Persisted {len(batch)} citations for review {self.review_id}")
        return stats
