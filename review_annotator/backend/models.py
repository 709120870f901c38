"""
Data model for review citations.

A *selection* is the ephemeral result of a reviewer dragging across a
passage of an article; a *citation* is the persisted annotation built
from it once the reviewer attaches a note.  Both carry offsets into
the plain-text projection of the article body (see
:mod:`review_annotator.backend.projection`), never into the raw
markup.  Offsets are Python string indices.

The block types describe the structural rendering of a body and the
annotated form produced by highlight injection.  All of these values
are immutable so that the engine functions stay pure.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, List, Optional

# Maximum number of characters kept on each side of a selection.
CONTEXT_CHARS = 50

HEADING = 'heading'
LIST_ITEM = 'list_item'
PARAGRAPH = 'paragraph'
BLOCK_KINDS = (HEADING, LIST_ITEM, PARAGRAPH)

REVIEWER_ROLE = 'reviewer'


@dataclass(frozen=True)
class Selection:
    """A captured, not yet persisted text selection."""

    text: str
    start_offset: int
    end_offset: int
    context_before: str = ''
    context_after: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {
            'text': self.text,
            'start_offset': self.start_offset,
            'end_offset': self.end_offset,
            'context_before': self.context_before,
            'context_after': self.context_after,
        }


@dataclass(frozen=True)
class Citation:
    """A reviewer annotation anchored to a passage of the article.

    ``end_offset - start_offset`` always equals ``len(selected_text)``
    for citations built through :meth:`from_selection`.  Citations
    loaded from storage are taken as they are; the validator reports
    rows that break the invariant.
    """

    id: str
    selected_text: str
    start_offset: int
    end_offset: int
    note: str = ''
    context_before: str = ''
    context_after: str = ''
    review_id: Optional[str] = None

    @classmethod
    def from_selection(
        cls,
        selection: Selection,
        note: str,
        citation_id: Optional[str] = None,
        review_id: Optional[str] = None,
    ) -> 'Citation':
        """Build a citation from a captured selection and a note.

        Raises:
            ValueError: if the note is empty after trimming.
        """
        note = (note or '').strip()
        if not note:
            raise ValueError('A citation requires a non-empty note')
        return cls(
            id=citation_id or str(uuid.uuid4()),
            selected_text=selection.text,
            start_offset=selection.start_offset,
            end_offset=selection.end_offset,
            note=note,
            context_before=selection.context_before,
            context_after=selection.context_after,
            review_id=review_id,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Citation':
        """Create a citation from a storage or API dictionary."""
        review_id = data.get('review_id')
        return cls(
            id=str(data['id']),
            selected_text=str(data.get('selected_text') or ''),
            start_offset=int(data.get('start_offset') or 0),
            end_offset=int(data.get('end_offset') or 0),
            note=str(data.get('note') or ''),
            context_before=str(data.get('context_before') or ''),
            context_after=str(data.get('context_after') or ''),
            review_id=str(review_id) if review_id is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'review_id': self.review_id,
            'selected_text': self.selected_text,
            'start_offset': self.start_offset,
            'end_offset': self.end_offset,
            'context_before': self.context_before,
            'context_after': self.context_after,
            'note': self.note,
        }


@dataclass(frozen=True)
class Block:
    """One structural block of a projected document body."""

    kind: str
    text: str
    level: int = 0


@dataclass(frozen=True)
class Segment:
    """A run of block text, optionally belonging to a citation span."""

    text: str
    citation_id: Optional[str] = None
    active: bool = False
    note: str = ''

    @property
    def is_citation(self) -> bool:
        return self.citation_id is not None


@dataclass(frozen=True)
class AnnotatedBlock:
    """A block split into plain and highlighted segments.

    Joining the segment texts always reproduces the block text.
    """

    kind: str
    level: int
    segments: List[Segment] = field(default_factory=list)

    @property
    def text(self) -> str:
        return ''.join(segment.text for segment in self.segments)

    @classmethod
    def plain(cls, block: Block) -> 'AnnotatedBlock':
        """Wrap a block without any citation span."""
        return cls(kind=block.kind, level=block.level, segments=[Segment(text=block.text)])

    def to_dict(self) -> Dict[str, Any]:
        return {
            'kind': self.kind,
            'level': self.level,
            'segments': [
                {
                    'text': s.text,
                    'citation_id': s.citation_id,
                    'active': s.active,
                    'note': s.note,
                }
                for s in self.segments
            ],
        }


@dataclass(frozen=True)
class AuthContext:
    """Read-only view of the signed-in user supplied by the auth provider."""

    user_id: Optional[str] = None
    roles: FrozenSet[str] = frozenset()

    def __post_init__(self) -> None:
        # role tags compare case-insensitively
        object.__setattr__(self, 'roles', frozenset(r.strip().lower() for r in self.roles if r and r.strip()))

    @classmethod
    def from_roles(cls, user_id: Optional[str], roles: Iterable[str]) -> 'AuthContext':
        return cls(user_id=user_id, roles=frozenset(roles))

    def has_role(self, role: str) -> bool:
        return role.lower() in self.roles

    @property
    def can_annotate(self) -> bool:
        """True for a signed-in reviewer."""
        return self.user_id is not None and self.has_role(REVIEWER_ROLE)
