"""
Highlight injection for review citations.

Given the projected blocks of an article body and the citations
attached to a review, :func:`inject_highlights` splits each block into
plain and highlighted segments.  Rendering those segments is left to
the presentation layer (see :mod:`review_annotator.frontend.render`).

Citations are placed in ascending ``start_offset`` order.  Each one is
located by searching the plain-text projection for its literal
``selected_text``, starting no earlier than its ``start_offset`` and no
earlier than the end of the previously placed span.  Citations whose
text cannot be found are skipped without affecting the others, so a
body edited after annotation degrades to fewer highlights instead of a
failed render.

:class:`EmphasisController` holds the transient "active" citation,
which clears itself a few seconds after it was set.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Iterable, List, Optional, Tuple

from .models import AnnotatedBlock, Block, Citation, Segment
from .projection import block_offsets, plain_text

logger = logging.getLogger(__name__)

# Seconds an emphasized citation stays active.
EMPHASIS_SECONDS = 3.0

Span = Tuple[Citation, int, int]


def sort_citations(citations: Iterable[Citation]) -> List[Citation]:
    """Order citations by position; ties are broken by end offset and id."""
    return sorted(citations, key=lambda c: (c.start_offset, c.end_offset, c.id))


def locate_spans(text: str, citations: Iterable[Citation]) -> List[Span]:
    """Find the plain-text span of every citation that can be placed.

    Returns ``(citation, start, end)`` tuples in ascending order.  The
    spans never overlap.
    """
    spans: List[Span] = []
    cursor = 0
    for citation in sort_citations(citations):
        if not citation.selected_text:
            continue
        index = text.find(citation.selected_text, max(citation.start_offset, cursor, 0))
        if index == -1:
            logger.warning(f"Citation {citation.id} not found at or after offset {citation.start_offset}; skipped")
            continue
        end = index + len(citation.selected_text)
        spans.append((citation, index, end))
        cursor = end
    return spans


def inject_highlights(
    blocks: List[Block],
    citations: Iterable[Citation],
    emphasized_id: Optional[str] = None,
) -> List[AnnotatedBlock]:
    """Annotate projected blocks with citation spans.

    Args:
        blocks: Output of :func:`~review_annotator.backend.projection.project_body`.
        citations: Citations to highlight, in any order.
        emphasized_id: Id of the citation to mark as active, if any.

    Returns:
        One annotated block per input block.  A span that crosses a
        block boundary yields one segment in each block it touches.
    """
    citations = list(citations)
    if not citations:
        return [AnnotatedBlock.plain(block) for block in blocks]

    spans = locate_spans(plain_text(blocks), citations)
    annotated: List[AnnotatedBlock] = []
    for block, block_start in zip(blocks, block_offsets(blocks)):
        block_end = block_start + len(block.text)
        segments: List[Segment] = []
        position = block_start
        for citation, start, end in spans:
            low, high = max(start, block_start), min(end, block_end)
            if low >= high:
                continue
            if low > position:
                segments.append(Segment(text=block.text[position - block_start:low - block_start]))
            segments.append(Segment(
                text=block.text[low - block_start:high - block_start],
                citation_id=citation.id,
                active=citation.id == emphasized_id,
                note=citation.note,
            ))
            position = high
        if position < block_end or not segments:
            segments.append(Segment(text=block.text[position - block_start:]))
        annotated.append(AnnotatedBlock(kind=block.kind, level=block.level, segments=segments))
    return annotated


def resolve_citation_click(
    citation_id: Optional[str],
    citations: Iterable[Citation],
    on_click: Optional[Callable[[Citation], Any]] = None,
) -> Optional[Citation]:
    """Resolve a click on a span tagged with ``citation_id``.

    Clicks without an id, or with an id that is not in ``citations``,
    are ignored.  When the citation is found ``on_click`` is invoked
    with it.
    """
    if not citation_id:
        return None
    for citation in citations:
        if citation.id == citation_id:
            if on_click:
                on_click(citation)
            return citation
    return None


def _start_timer(delay: float, callback: Callable[[], Any]) -> threading.Timer:
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    timer.start()
    return timer


class EmphasisController:
    """Transient emphasis of a single citation.

    Every call to :meth:`emphasize` replaces the pending clear with a
    new one tied to a generation number, so a timer scheduled for an
    earlier emphasis can never clear a later one.  :meth:`current`
    also checks the deadline against ``clock``; hosts that cannot react
    to the timer callback still see the emphasis expire on their next
    render.

    Args:
        delay: Seconds before the emphasis clears.
        clock: Monotonic time source.
        scheduler: ``scheduler(delay, callback)`` returning an object
            with ``cancel()``.  Defaults to a daemon ``threading.Timer``.
        on_change: Called with the new active id (or ``None``).
    """

    def __init__(
        self,
        delay: float = EMPHASIS_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        scheduler: Optional[Callable[[float, Callable[[], Any]], Any]] = None,
        on_change: Optional[Callable[[Optional[str]], Any]] = None,
    ) -> None:
        self.delay = delay
        self._clock = clock
        self._scheduler = scheduler or _start_timer
        self._on_change = on_change
        self._lock = threading.RLock()
        self._generation = 0
        self._active_id: Optional[str] = None
        self._deadline = 0.0
        self._timer: Any = None

    def emphasize(self, citation_id: str) -> None:
        with self._lock:
            self.cancel()
            self._generation += 1
            generation = self._generation
            self._active_id = citation_id
            self._deadline = self._clock() + self.delay
            self._timer = self._scheduler(self.delay, lambda: self._expire(citation_id, generation))
        if self._on_change:
            self._on_change(citation_id)

    def _expire(self, citation_id: str, generation: int) -> bool:
        with self._lock:
            if generation != self._generation or self._active_id != citation_id:
                return False
            self._active_id = None
            self._timer = None
        if self._on_change:
            self._on_change(None)
        return True

    def current(self) -> Optional[str]:
        """Return the active citation id, or ``None`` once expired."""
        with self._lock:
            if self._active_id is not None and self._clock() >= self._deadline:
                self._active_id = None
            return self._active_id

    def remaining(self) -> float:
        """Seconds until the current emphasis clears; 0.0 when none is active."""
        with self._lock:
            if self.current() is None:
                return 0.0
            return max(0.0, self._deadline - self._clock())

    def cancel(self) -> None:
        """Cancel the pending clear without touching the active id."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def clear(self) -> None:
        with self._lock:
            self.cancel()
            self._generation += 1
            self._active_id = None
        if self._on_change:
            self._on_change(None)
