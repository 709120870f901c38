"""
Import helpers for article bodies and citation batches.

Article bodies arrive either as markup-lite text (``## Heading``,
``- item`` and paragraph lines) or as HTML exported from another
editor.  HTML is converted to markup-lite with BeautifulSoup so that
the projection and every citation offset work the same way for both.

Citation batches can be imported from CSV or JSON files, for example
when migrating reviews between deployments.  Column names are mapped
onto the storage names used by the database module and the result is
returned as a Pandas DataFrame ready for
:class:`~review_annotator.backend.citation_validator.CitationValidator`.
"""

from __future__ import annotations

import io
import json
import logging
from typing import Any, Iterable, List

import pandas as pd  # type: ignore
from bs4 import BeautifulSoup  # type: ignore

from .models import Citation

logger = logging.getLogger(__name__)

CITATION_COLUMNS = [
    'id', 'review_id', 'selected_text', 'start_offset', 'end_offset',
    'context_before', 'context_after', 'note',
]

HEADING_TAGS = ['h1', 'h2', 'h3', 'h4', 'h5', 'h6']
BLOCK_TAGS = HEADING_TAGS + ['li', 'p', 'blockquote', 'pre']


def _read_bytes(file_obj: Any) -> bytes:
    content = file_obj.read()
    if isinstance(content, str):
        return content.encode('utf-8')
    return content


def detect_format(filename: str, content: bytes) -> str:
    """Attempt to detect the file format based on filename and content."""
    filename_lower = (filename or '').lower()
    # extension based detection
    if filename_lower.endswith(('.md', '.markdown')):
        return 'markdown'
    if filename_lower.endswith(('.html', '.htm')):
        return 'html'
    if filename_lower.endswith('.csv'):
        return 'csv'
    if filename_lower.endswith('.json'):
        return 'json'
    if filename_lower.endswith('.txt'):
        return 'text'
    # content heuristics
    snippet = content.decode('utf-8', errors='ignore')[:2000].lstrip().lower()
    if snippet.startswith(('<!doctype html', '<html')) or '<p>' in snippet or '<h2' in snippet:
        return 'html'
    if snippet.startswith(('[', '{')):
        return 'json'
    if snippet.startswith('#'):
        return 'markdown'
    return 'unknown'


def html_to_markup(html: str) -> str:
    """Convert HTML into markup-lite body text.

    Headings become ``#`` lines with the heading depth, list items
    become ``- `` lines and other block elements become paragraph
    lines.  Whitespace inside a block is collapsed.
    """
    soup = BeautifulSoup(html, 'html.parser')
    lines: List[str] = []
    for element in soup.find_all(BLOCK_TAGS):
        # nested blocks are covered by their outermost block
        if element.find_parent(BLOCK_TAGS) is not None:
            continue
        text = ' '.join(element.get_text(' ').split())
        if not text:
            continue
        if element.name in HEADING_TAGS:
            lines.append(f"{'#' * int(element.name[1])} {text}")
        elif element.name == 'li':
            lines.append(f"- {text}")
        else:
            lines.append(text)
    if not lines:
        # no block structure; keep the visible lines as paragraphs
        lines = [' '.join(line.split()) for line in soup.get_text('\n').splitlines() if line.strip()]
    return '\n'.join(lines)


def parse_body(file_obj: Any, filename: str) -> str:
    """Detect the format of an article body file and return markup-lite text."""
    content = _read_bytes(file_obj)
    file_format = detect_format(filename, content)
    text = content.decode('utf-8', errors='ignore')
    if file_format in ('markdown', 'text'):
        return text
    if file_format == 'html':
        return html_to_markup(text)
    raise ValueError(f"Unsupported body format: {file_format}")


def normalise_columns(df: pd.DataFrame) -> pd.DataFrame:
    column_map = {
        'citation_id': 'id', 'ID': 'id',
        'reviewId': 'review_id', 'review': 'review_id',
        'selectedText': 'selected_text', 'text': 'selected_text', 'passage': 'selected_text',
        'startOffset': 'start_offset', 'start': 'start_offset',
        'endOffset': 'end_offset', 'end': 'end_offset',
        'contextBefore': 'context_before',
        'contextAfter': 'context_after',
        'comment': 'note', 'Note': 'note',
    }
    # Rename columns to canonical names
    df = df.rename(columns={k: v for k, v in column_map.items() if k in df.columns})
    # Ensure expected columns exist
    for col in CITATION_COLUMNS:
        if col not in df.columns:
            df[col] = None
    return df[CITATION_COLUMNS].copy()


def parse_citation_batch(file_obj: Any, filename: str) -> pd.DataFrame:
    """Parse a CSV or JSON citation batch into a DataFrame."""
    content = _read_bytes(file_obj)
    file_format = detect_format(filename, content)
    text = content.decode('utf-8', errors='ignore')
    if file_format == 'csv':
        df = pd.read_csv(io.StringIO(text), dtype=str, keep_default_na=False)
    elif file_format == 'json':
        data = json.loads(text)
        if isinstance(data, dict):
            data = data.get('citations', [])
        df = pd.DataFrame(data)
    else:
        raise ValueError(f"Unsupported citation batch format: {file_format}")
    logger.info(f"Parsed {len(df)} citations from {filename}")
    return normalise_columns(df)


def citations_to_frame(citations: Iterable[Citation]) -> pd.DataFrame:
    """Tabulate citations using the storage column names."""
    return pd.DataFrame([c.to_dict() for c in citations], columns=CITATION_COLUMNS)


def frame_to_citations(df: pd.DataFrame) -> List[Citation]:
    """Convert a (validated) DataFrame back into citations."""
    clean = df.astype(object).where(pd.notna(df), None)
    return [Citation.from_dict(record) for record in clean.to_dict('records')]
