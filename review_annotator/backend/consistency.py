"""
Anchoring consistency checks for review citations.

These helpers analyse how a set of citations lines up with the current
article body, looking for the problems that make highlights degrade:
passages that no longer appear, passages that moved, overlapping
selections that the highlighter will drop, and the same passage cited
more than once.  The output mirrors the other reports in the backend:
a list of issue dictionaries plus an aggregated summary.
"""

from __future__ import annotations

from collections import Counter
from typing import Any, Dict, Iterable, List

from .highlight import locate_spans, sort_citations
from .models import Citation
from .projection import body_plain_text


def analyze_citation_anchoring(body: str, citations: Iterable[Citation]) -> Dict[str, Any]:
    """Analyse citations against an article body.

    Args:
        body: The raw article body the citations were made against.
        citations: The citations of one review.

    Returns:
        A dictionary with ``issues`` (list of issue dictionaries) and
        ``summary`` (aggregated statistics).
    """
    text = body_plain_text(body)
    ordered = sort_citations(citations)
    placed = {citation.id: (start, end) for citation, start, end in locate_spans(text, ordered)}
    issues: List[Dict[str, Any]] = []
    previous_end = -1
    for citation in ordered:
        # Overlap with the previous selection
        if citation.start_offset < previous_end:
            issues.append({
                'type': 'overlapping_citation',
                'citation_id': citation.id,
                'severity': 'medium',
                'description': 'Citation starts inside the previous citation',
                'suggestion': 'Merge the two notes or select non-overlapping passages',
            })
        previous_end = max(previous_end, citation.end_offset)
        # Placement
        if citation.id not in placed:
            issues.append({
                'type': 'text_not_found',
                'citation_id': citation.id,
                'severity': 'high',
                'description': f"Passage \"{citation.selected_text[:40]}\" is not highlighted in the current article",
                'suggestion': 'Re-select the passage if the article was edited',
            })
        elif placed[citation.id][0] != citation.start_offset:
            issues.append({
                'type': 'offset_drift',
                'citation_id': citation.id,
                'severity': 'medium',
                'description': (
                    f"Passage found at offset {placed[citation.id][0]} instead of {citation.start_offset}"
                ),
                'suggestion': 'Verify the highlight still marks the intended passage',
            })
    # Repeated passages
    passage_counts = Counter(c.selected_text for c in ordered if c.selected_text)
    for passage, count in passage_counts.items():
        if count > 1:
            issues.append({
                'type': 'duplicate_passage',
                'citation_id': 'Multiple',
                'severity': 'low',
                'description': f"Passage \"{passage[:40]}\" is cited {count} times",
                'suggestion': 'Combine the notes into a single citation',
            })
    highlighted_chars = sum(end - start for start, end in placed.values())
    summary = {
        'total_issues': len(issues),
        'high_severity': sum(1 for i in issues if i['severity'] == 'high'),
        'medium_severity': sum(1 for i in issues if i['severity'] == 'medium'),
        'low_severity': sum(1 for i in issues if i['severity'] == 'low'),
        'total_citations': len(ordered),
        'rendered_citations': len(placed),
        'coverage': (highlighted_chars / len(text)) if text else 0.0,
    }
    return {'issues': issues, 'summary': summary}
