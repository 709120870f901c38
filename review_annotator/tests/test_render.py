"""Tests for the HTML rendering of annotated blocks."""

from __future__ import annotations

from bs4 import BeautifulSoup  # type: ignore

from review_annotator.backend.highlight import inject_highlights
from review_annotator.backend.projection import plain_text, project_body
from review_annotator.frontend.render import ACTIVE_CLASS, CITATION_CLASS, render_html

BODY = "## Findings\nThe quick brown fox\n- jumps over\n- the lazy dog"


def test_rendered_text_content_equals_plain_text(make_citation) -> None:
    """Offsets stay valid because the rendered text is the projection."""
    blocks = project_body(BODY)
    text = plain_text(blocks)
    citations = [
        make_citation('c1', 'quick brown', text.index('quick brown'), note='vague'),
        make_citation('c2', 'lazy dog', text.index('lazy dog')),
    ]
    soup = BeautifulSoup(render_html(inject_highlights(blocks, citations)), 'html.parser')
    assert soup.get_text() == text
    spans = soup.find_all('span', class_=CITATION_CLASS)
    assert [span.get_text() for span in spans] == ['quick brown', 'lazy dog']
    assert spans[0]['data-citation-id'] == 'c1'
    assert spans[0]['title'] == 'vague'


def test_block_tags() -> None:
    soup = BeautifulSoup(render_html(inject_highlights(project_body(BODY), [])), 'html.parser')
    assert soup.find('h2').get_text() == 'Findings'
    assert soup.find('p').get_text() == 'The quick brown fox'
    assert [li.get_text() for li in soup.find_all('li')] == ['jumps over', 'the lazy dog']
    assert soup.find('span') is None


def test_active_citation_carries_active_class(make_citation) -> None:
    blocks = project_body(BODY)
    text = plain_text(blocks)
    citations = [
        make_citation('c1', 'quick', text.index('quick')),
        make_citation('c2', 'fox', text.index('fox')),
    ]
    soup = BeautifulSoup(render_html(inject_highlights(blocks, citations, emphasized_id='c2')), 'html.parser')
    active = soup.find_all('span', class_=ACTIVE_CLASS)
    assert [span['data-citation-id'] for span in active] == ['c2']


def test_text_and_notes_are_escaped(make_citation) -> None:
    blocks = project_body('Use <b>tags</b> & "quotes"')
    text = plain_text(blocks)
    citation = make_citation('c1', '<b>tags</b>', text.index('<b>'), note='"odd" <note>')
    html = render_html(inject_highlights(blocks, [citation]))
    assert '<b>' not in html
    soup = BeautifulSoup(html, 'html.parser')
    assert soup.get_text() == text
    assert soup.find('span')['title'] == '"odd" <note>'
