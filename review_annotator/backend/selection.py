"""
Selection capture for reviewer annotations.

The browser hands us a selection as two boundary points inside the
rendered article.  Here those points are already expressed as offsets
into the plain-text projection of the body, which keeps the capture
logic independent of any rendering technology:

* :func:`capture_selection` is the pure offset computation.  It never
  searches for the selected text, so repeated passages are captured at
  the exact position the reviewer chose.
* :class:`SelectionSession` models the listener lifecycle of a capture
  area: pointer-up and touch-end events inside the container capture a
  selection, and a pointer-down anywhere else clears it unless it lands
  on the citation entry popup.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Optional, Tuple

from .models import CONTEXT_CHARS, Selection

logger = logging.getLogger(__name__)

# Attribute carried by the citation entry popup.  Pointer-downs on an
# element with this attribute never clear the current selection.
POPUP_MARKER = 'data-citation-popup'


def capture_selection(plain_text: str, anchor: int, focus: int) -> Optional[Selection]:
    """Compute a selection from two boundary offsets.

    Args:
        plain_text: The container's plain-text content.
        anchor: Offset where the selection started.
        focus: Offset where the selection ended.  May be smaller than
            ``anchor`` for backward selections.

    Returns:
        The captured selection, or ``None`` when the range is empty,
        whitespace only or not wholly inside the container.
    """
    start, end = min(anchor, focus), max(anchor, focus)
    if start < 0 or end > len(plain_text) or start == end:
        return None
    raw = plain_text[start:end]
    text = raw.strip()
    if not text:
        return None
    start_offset = start + (len(raw) - len(raw.lstrip()))
    end_offset = start_offset + len(text)
    return Selection(
        text=text,
        start_offset=start_offset,
        end_offset=end_offset,
        context_before=plain_text[max(0, start_offset - CONTEXT_CHARS):start_offset],
        context_after=plain_text[end_offset:min(len(plain_text), end_offset + CONTEXT_CHARS)],
    )


def find_occurrence(plain_text: str, passage: str, occurrence: int = 1) -> Optional[Tuple[int, int]]:
    """Locate the n-th literal occurrence of ``passage``.

    Used by interfaces that cannot observe a native selection and ask
    the reviewer to type the passage instead.  ``occurrence`` is
    1-based.  Returns ``(start, end)`` or ``None``.
    """
    if not passage or occurrence < 1:
        return None
    index = -1
    for _ in range(occurrence):
        index = plain_text.find(passage, index + 1)
        if index == -1:
            return None
    return index, index + len(passage)


class SelectionSession:
    """Capture session bound to one container.

    The session only reacts to events between :meth:`start` and
    :meth:`stop` and while ``enable_selection`` is true; whether a user
    may annotate is decided by the caller.  ``clear_native`` is invoked
    whenever the selection is cleared so the host can drop the
    platform's own selection highlighting.
    """

    def __init__(
        self,
        plain_text: str,
        enable_selection: bool = True,
        on_selection_made: Optional[Callable[[Selection], None]] = None,
        clear_native: Optional[Callable[[], None]] = None,
    ) -> None:
        self.plain_text = plain_text
        self.enable_selection = enable_selection
        self.on_selection_made = on_selection_made
        self.clear_native = clear_native
        self.current_selection: Optional[Selection] = None
        self.listening = False

    def __enter__(self) -> 'SelectionSession':
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    def start(self) -> None:
        """Register the pointer-up, touch-end and pointer-down handlers."""
        if not self.enable_selection:
            return
        self.listening = True
        logger.debug("Selection session started")

    def stop(self) -> None:
        """Deregister all handlers.  The stored selection is kept."""
        self.listening = False
        logger.debug("Selection session stopped")

    def _handle_selection(self, anchor: int, focus: int) -> Optional[Selection]:
        if not (self.listening and self.enable_selection):
            return None
        selection = capture_selection(self.plain_text, anchor, focus)
        self.current_selection = selection
        if selection is not None and self.on_selection_made:
            self.on_selection_made(selection)
        return selection

    def on_pointer_up(self, anchor: int, focus: int) -> Optional[Selection]:
        return self._handle_selection(anchor, focus)

    def on_touch_end(self, anchor: int, focus: int) -> Optional[Selection]:
        return self._handle_selection(anchor, focus)

    def on_pointer_down(self, inside_container: bool, target_attributes: Iterable[str] = ()) -> bool:
        """Handle a document-wide pointer-down.

        Returns ``True`` when the selection was cleared.
        """
        if not self.listening:
            return False
        if inside_container or POPUP_MARKER in set(target_attributes):
            return False
        self.clear()
        return True

    def clear(self) -> None:
        """Drop the native selection highlight and the stored selection."""
        if self.clear_native:
            self.clear_native()
        self.current_selection = None
