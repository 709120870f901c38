"""
HTML rendering of annotated article blocks.

This is the presentation half of the citation engine: it turns the
annotated blocks produced by
:func:`~review_annotator.backend.highlight.inject_highlights` into an
HTML fragment.  All text is escaped.  Blocks are separated by a single
newline so that the text content of the rendered container is exactly
the plain-text projection the citation offsets refer to.

Citation spans carry a ``data-citation-id`` attribute; hosts resolve
clicks through
:func:`~review_annotator.backend.highlight.resolve_citation_click`.
"""

from __future__ import annotations

from html import escape
from typing import List

from review_annotator.backend.models import HEADING, LIST_ITEM, AnnotatedBlock, Segment

CITATION_CLASS = 'citation'
ACTIVE_CLASS = 'citation--active'

CITATION_CSS = """
<style>
.citation { background: #dbeafe; border-bottom: 2px solid #93c5fd; cursor: pointer; }
.citation:hover { background: #bfdbfe; }
.citation--active { background: #fef08a; border: 2px solid #facc15; border-radius: 4px; padding: 0 2px; }
</style>
"""


def render_segment(segment: Segment) -> str:
    text = escape(segment.text, quote=False)
    if not segment.is_citation:
        return text
    classes = CITATION_CLASS + (f' {ACTIVE_CLASS}' if segment.active else '')
    return (
        f'<span class="{classes}" data-citation-id="{escape(segment.citation_id or "")}" '
        f'title="{escape(segment.note)}">{text}</span>'
    )


def render_block(block: AnnotatedBlock) -> str:
    inner = ''.join(render_segment(segment) for segment in block.segments)
    if block.kind == HEADING:
        level = min(max(block.level, 1), 6)
        return f'<h{level}>{inner}</h{level}>'
    if block.kind == LIST_ITEM:
        return f'<li>{inner}</li>'
    return f'<p>{inner}</p>'


def render_html(blocks: List[AnnotatedBlock]) -> str:
    """Render annotated blocks as an HTML fragment."""
    return '\n'.join(render_block(block) for block in blocks)
