"""Tests for the markup-lite projection."""

from __future__ import annotations

from review_annotator.backend.models import HEADING, LIST_ITEM, PARAGRAPH, Block
from review_annotator.backend.projection import block_offsets, body_plain_text, plain_text, project_body

BODY = """## Introduction
Peer review filters claims.

- first item
* second item
  ### Indented heading
#hashtag is a paragraph
"""


def test_lines_are_classified_independently() -> None:
    """Headings, list items and paragraphs are recognised; blank lines vanish."""
    blocks = project_body(BODY)
    assert blocks == [
        Block(kind=HEADING, text='Introduction', level=2),
        Block(kind=PARAGRAPH, text='Peer review filters claims.'),
        Block(kind=LIST_ITEM, text='first item'),
        Block(kind=LIST_ITEM, text='second item'),
        Block(kind=HEADING, text='Indented heading', level=3),
        Block(kind=PARAGRAPH, text='#hashtag is a paragraph'),
    ]


def test_plain_text_and_block_offsets() -> None:
    """Block texts are joined by newlines and offsets point at each block."""
    blocks = project_body("## Title\nFirst para\n- item")
    text = plain_text(blocks)
    assert text == "Title\nFirst para\nitem"
    offsets = block_offsets(blocks)
    assert offsets == [0, 6, 17]
    for block, offset in zip(blocks, offsets):
        assert text[offset:offset + len(block.text)] == block.text


def test_projection_is_deterministic() -> None:
    """Projecting the same body twice yields identical output."""
    assert project_body(BODY) == project_body(BODY)
    assert body_plain_text(BODY) == body_plain_text(BODY)


def test_empty_body() -> None:
    assert project_body('') == []
    assert project_body('\n  \n') == []
    assert body_plain_text('') == ''
