"""Tests for body and citation batch import."""

from __future__ import annotations

import json
from io import BytesIO, StringIO

import pytest

from review_annotator.backend import parsers
from review_annotator.backend.projection import body_plain_text


def test_html_is_converted_to_markup() -> None:
    html = """<html><body>
    <h2>Results</h2>
    <p>The   quick <em>brown</em> fox</p>
    <ul><li>first</li><li><p>nested</p></li></ul>
    </body></html>"""
    assert parsers.html_to_markup(html) == "## Results\nThe quick brown fox\n- first\n- nested"


def test_parse_body_detects_format() -> None:
    assert parsers.parse_body(StringIO("## Title\nText"), 'article.md') == "## Title\nText"
    html_body = parsers.parse_body(BytesIO(b"<h1>Title</h1><p>Text</p>"), 'article.html')
    assert body_plain_text(html_body) == "Title\nText"
    with pytest.raises(ValueError):
        parsers.parse_body(BytesIO(b"\x00\x01"), 'article.bin')


def test_detect_format_from_content() -> None:
    assert parsers.detect_format('', b'<!DOCTYPE html><p>x</p>') == 'html'
    assert parsers.detect_format('', b'[{"id": "c1"}]') == 'json'
    assert parsers.detect_format('', b'# Heading') == 'markdown'
    assert parsers.detect_format('', b'plain words') == 'unknown'


def test_parse_csv_batch_maps_columns() -> None:
    csv_content = """citation_id,passage,startOffset,endOffset,comment
c1,quick brown,4,15,too vague
c2,fox,16,19,
"""
    df = parsers.parse_citation_batch(StringIO(csv_content), 'citations.csv')
    assert list(df.columns) == parsers.CITATION_COLUMNS
    assert df.loc[0, 'selected_text'] == 'quick brown'
    assert df.loc[1, 'note'] == ''
    citations = parsers.frame_to_citations(df)
    assert [(c.id, c.start_offset, c.end_offset) for c in citations] == [('c1', 4, 15), ('c2', 16, 19)]
    assert citations[0].note == 'too vague'
    assert citations[0].review_id is None


def test_parse_json_batch() -> None:
    data = {'citations': [{'id': 'c1', 'selectedText': 'quick', 'startOffset': 4, 'endOffset': 9, 'note': 'n'}]}
    df = parsers.parse_citation_batch(BytesIO(json.dumps(data).encode()), 'batch.json')
    assert len(df) == 1
    assert df.loc[0, 'start_offset'] == 4
    with pytest.raises(ValueError):
        parsers.parse_citation_batch(StringIO('whatever'), 'batch.txt')


def test_frame_round_trip(make_citation) -> None:
    citations = [make_citation('c1', 'quick', 4, review_id='r1'), make_citation('c2', 'fox', 16, review_id='r1')]
    df = parsers.citations_to_frame(citations)
    assert list(df.columns) == parsers.CITATION_COLUMNS
    assert parsers.frame_to_citations(df) == citations
