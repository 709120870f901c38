"""Shared fixtures for the review annotator tests."""

from __future__ import annotations

import importlib
from typing import Callable, Optional

import pytest

from review_annotator.backend.models import Citation, Selection


@pytest.fixture
def memory_db(monkeypatch):
    """Point the database module at a fresh in-memory SQLite database."""
    monkeypatch.setenv('DATABASE_URL', 'sqlite:///:memory:')
    from review_annotator.backend import database as db  # type: ignore
    importlib.reload(db)
    db.init_db()
    yield db


@pytest.fixture
def make_citation() -> Callable[..., Citation]:
    """Build a citation whose offsets match its text."""

    def _make(
        citation_id: str,
        text: str,
        start: int,
        note: str = 'note',
        review_id: Optional[str] = None,
    ) -> Citation:
        selection = Selection(text=text, start_offset=start, end_offset=start + len(text))
        return Citation.from_selection(selection, note, citation_id=citation_id, review_id=review_id)

    return _make
