"""
Markup-lite projection of article bodies.

Article bodies are stored as plain strings with a tiny amount of
structure: ``## Heading`` lines, ``- item`` list lines and ordinary
paragraph lines.  This module turns such a body into a list of
:class:`~review_annotator.backend.models.Block` values and derives the
plain-text string that every citation offset refers to.

The transform is line oriented and pure.  Offsets computed against
``plain_text(project_body(body))`` stay valid across renders because
the same body always produces the same blocks in the same order.
"""

from __future__ import annotations

import re
from typing import List, Optional

from .models import HEADING, LIST_ITEM, PARAGRAPH, Block

HEADING_PATTERN = re.compile(r'^(#{1,6})\s+(.+)$')
LIST_ITEM_PATTERN = re.compile(r'^[-*]\s+(.+)$')

# Separator inserted between block texts in the plain-text projection.
BLOCK_SEPARATOR = '\n'


def classify_line(line: str) -> Optional[Block]:
    """Classify a single body line, returning ``None`` for blank lines."""
    stripped = line.strip()
    if not stripped:
        return None
    match = HEADING_PATTERN.match(stripped)
    if match:
        return Block(kind=HEADING, text=match.group(2).strip(), level=len(match.group(1)))
    match = LIST_ITEM_PATTERN.match(stripped)
    if match:
        return Block(kind=LIST_ITEM, text=match.group(1).strip())
    return Block(kind=PARAGRAPH, text=stripped)


def project_body(body: str) -> List[Block]:
    """Project a raw body string into structural blocks.

    Args:
        body: The raw article body.

    Returns:
        One block per non-blank line, in source order.
    """
    blocks: List[Block] = []
    for line in (body or '').splitlines():
        block = classify_line(line)
        if block is not None:
            blocks.append(block)
    return blocks


def plain_text(blocks: List[Block]) -> str:
    """Return the plain-text projection all citation offsets refer to."""
    return BLOCK_SEPARATOR.join(block.text for block in blocks)


def block_offsets(blocks: List[Block]) -> List[int]:
    """Return the start offset of each block within :func:`plain_text`."""
    offsets: List[int] = []
    position = 0
    for block in blocks:
        offsets.append(position)
        position += len(block.text) + len(BLOCK_SEPARATOR)
    return offsets


def body_plain_text(body: str) -> str:
    """Shortcut for ``plain_text(project_body(body))``."""
    return plain_text(project_body(body))
