"""
Data validation for review citation batches.

The goal of this module is to verify the integrity of a citation batch
before it is written to the database.  Citations with missing ids,
empty passages, broken offsets or oversized context are flagged and,
where possible, repaired (ids are generated, context is clipped).
When the article body is supplied, each passage is also checked
against the plain-text projection so that citations which would not be
highlighted are reported up front.  A summary report describing the
batch quality is returned alongside the validated DataFrame.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Any, Dict, List, Optional, Set, Tuple

import pandas as pd  # type: ignore

from .models import CONTEXT_CHARS
from .projection import body_plain_text

logger = logging.getLogger(__name__)

# Issues that make a row unusable for highlighting.
BLOCKING_ISSUES = {
    'Missing selected text',
    'Invalid offsets',
    'Offset range does not match text length',
    'Duplicate ID',
}


def _text(value: Any) -> str:
    if value is None:
        return ''
    if isinstance(value, float) and pd.isna(value):
        return ''
    text = str(value)
    return '' if text.lower() == 'nan' else text


def _offset(value: Any) -> Optional[int]:
    try:
        if value is None or (isinstance(value, float) and pd.isna(value)):
            return None
        return int(value)
    except (ValueError, TypeError):
        return None


class CitationValidator:
    """Validate and repair a batch of review citations.

    Each instance tracks summary statistics about the citations it
    processes.  The primary entry point is ``validate_citations`` which
    accepts a Pandas DataFrame and returns a (validated_df, report)
    tuple.
    """

    def __init__(self) -> None:
        self.validation_results: List[Dict[str, Any]] = []
        self.seen_ids: Set[str] = set()
        self.stats: Dict[str, int] = {
            'total': 0,
            'valid': 0,
            'blocking': 0,
            'invalid_id': 0,
            'missing_text': 0,
            'invalid_offsets': 0,
            'length_mismatch': 0,
            'clipped_context': 0,
            'missing_note': 0,
            'not_in_body': 0,
            'duplicate_id': 0,
        }

    def validate_citations(
        self,
        df: pd.DataFrame,
        body: Optional[str] = None,
    ) -> Tuple[pd.DataFrame, Dict[str, Any]]:
        """Validate each citation in a DataFrame.

        Args:
            df: DataFrame of citations using the storage column names.
            body: Optional article body to check passages against.

        Returns:
            A tuple of (validated DataFrame, report dictionary).
        """
        self.stats['total'] = len(df)
        text = body_plain_text(body) if body is not None else None
        validated_rows: List[Dict[str, Any]] = []
        for idx, row in df.iterrows():
            validated_row, issues = self.validate_single_citation(row.to_dict(), text)
            if issues:
                self.validation_results.append({
                    'citation_id': validated_row.get('id') or f'row_{idx}',
                    'selected_text': validated_row.get('selected_text', '')[:50],
                    'issues': issues,
                })
            validated_rows.append(validated_row)
        validated_df = pd.DataFrame(validated_rows) if validated_rows else df.copy()
        report = self.generate_validation_report()
        if report['critical_issues']['blocking']:
            logger.warning(f"{report['critical_issues']['blocking']} of {len(df)} citations cannot be highlighted")
        return validated_df, report

    def validate_single_citation(
        self,
        citation: Dict[str, Any],
        plain_text: Optional[str] = None,
    ) -> Tuple[Dict[str, Any], List[str]]:
        """Validate a single citation dictionary."""
        issues: List[str] = []
        selected_text = _text(citation.get('selected_text'))
        start = _offset(citation.get('start_offset'))
        end = _offset(citation.get('end_offset'))
        review_id = _text(citation.get('review_id'))
        citation['selected_text'] = selected_text
        # Validate ID
        citation_id = _text(citation.get('id')).strip()
        if not citation_id:
            issues.append('Missing or invalid ID')
            self.stats['invalid_id'] += 1
            digest = hashlib.md5(f"{review_id}:{start}:{end}:{selected_text}".encode()).hexdigest()[:12]
            citation_id = f"cit_{digest}"
        if citation_id in self.seen_ids:
            issues.append('Duplicate ID')
            self.stats['duplicate_id'] += 1
        self.seen_ids.add(citation_id)
        citation['id'] = citation_id
        # Validate passage
        if not selected_text.strip():
            issues.append('Missing selected text')
            self.stats['missing_text'] += 1
        # Validate offsets
        if start is None or end is None or start < 0 or end <= start:
            issues.append('Invalid offsets')
            self.stats['invalid_offsets'] += 1
        elif selected_text and end - start != len(selected_text):
            issues.append('Offset range does not match text length')
            self.stats['length_mismatch'] += 1
        # Clip context
        before = _text(citation.get('context_before'))
        after = _text(citation.get('context_after'))
        if len(before) > CONTEXT_CHARS or len(after) > CONTEXT_CHARS:
            issues.append(f'Context clipped to {CONTEXT_CHARS} characters')
            self.stats['clipped_context'] += 1
        citation['context_before'] = before[-CONTEXT_CHARS:] if before else ''
        citation['context_after'] = after[:CONTEXT_CHARS]
        # Validate note
        note = _text(citation.get('note')).strip()
        if not note:
            issues.append('Missing note')
            self.stats['missing_note'] += 1
        citation['note'] = note
        # Check the passage against the body
        if plain_text is not None and selected_text and start is not None:
            if plain_text.find(selected_text, max(start, 0)) == -1:
                issues.append('Text not found in body')
                self.stats['not_in_body'] += 1
        if any(issue in BLOCKING_ISSUES for issue in issues):
            self.stats['blocking'] += 1
        if not issues:
            self.stats['valid'] += 1
        return citation, issues

    def generate_validation_report(self) -> Dict[str, Any]:
        """Compile a report of validation statistics and recommendations."""
        total = self.stats['total']
        quality_score = (self.stats['valid'] / total * 100) if total > 0 else 0
        report: Dict[str, Any] = {
            'summary': self.stats.copy(),
            'quality_score': quality_score,
            'critical_issues': {
                'blocking': self.stats['blocking'],
                'duplicate_ids': self.stats['duplicate_id'],
                'not_in_body': self.stats['not_in_body'],
                'not_in_body_pct': (self.stats['not_in_body'] / total * 100) if total > 0 else 0,
            },
            'recommendations': [],
            'problematic_citations': self.validation_results[:10],
        }
        if self.stats['blocking']:
            report['recommendations'].append(
                f'{self.stats["blocking"]} citations have blocking problems and cannot be stored. '
                'Fix or re-select the passages listed under problematic citations.'
            )
        if self.stats['not_in_body']:
            report['recommendations'].append(
                'Some passages no longer appear in the article body. The article may have been edited since '
                'the review was written.'
            )
        if self.stats['duplicate_id']:
            report['recommendations'].append(
                f'{self.stats["duplicate_id"]} citations repeat an ID used earlier in the batch. '
                'Give each citation its own ID.'
            )
        if self.stats['invalid_id'] > 0:
            report['recommendations'].append(
                f'Generated IDs for {self.stats["invalid_id"]} citations with missing identifiers.'
            )
        return report


def is_valid(report: Dict[str, Any]) -> bool:
    """True when no citation in the report has a blocking issue."""
    return report['critical_issues']['blocking'] == 0
