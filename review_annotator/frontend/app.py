"""
Streamlit user interface for the review annotator.

This module defines a single-page Streamlit application in which a
reviewer reads an article, cites passages of it with notes and saves
the citations together with a review.  The article is rendered with
every citation highlighted; choosing a citation in the list emphasises
its passage for a few seconds.

Streamlit cannot observe a native text selection, so the reviewer
types the passage to cite (and which occurrence of it, when the
passage repeats).  The boundaries of that occurrence are fed to the
same selection session a browser front end would use.

Who may add citations is decided from the reviewer identity and role
tags entered in the sidebar; in a deployment these come from the auth
provider.
"""

from __future__ import annotations

from typing import List, Optional

import pandas as pd  # type: ignore
import streamlit as st  # type: ignore

from review_annotator.backend import database as db
from review_annotator.backend.citation_validator import CitationValidator, is_valid
from review_annotator.backend.consistency import analyze_citation_anchoring
from review_annotator.backend.drafts import CitationDraft, CitationStoreError
from review_annotator.backend.highlight import EmphasisController, inject_highlights, resolve_citation_click
from review_annotator.backend.models import AuthContext, Citation
from review_annotator.backend.parsers import citations_to_frame, frame_to_citations, parse_body, parse_citation_batch
from review_annotator.backend.projection import plain_text, project_body
from review_annotator.backend.selection import SelectionSession, find_occurrence
from review_annotator.frontend.render import CITATION_CSS, render_html

# Polling interval of the article pane while an emphasis is pending.
ARTICLE_REFRESH_SECONDS = 0.5

SAMPLE_BODY = """## Introduction
Peer review is the quick brown fox of scholarly publishing.
It filters claims before they reach readers.
## Methods
- We collected reviews from three venues.
- Each review was annotated by two readers.
Results are summarised in the next section."""


def _reset_session() -> None:
    """Initialise default values in the Streamlit session state."""
    state_defaults = {
        "body": SAMPLE_BODY,
        "review_id": "review-1",
        "draft": None,
        "selection_session": None,
        "emphasis": None,
    }
    for key, default in state_defaults.items():
        if key not in st.session_state:
            st.session_state[key] = default
    if st.session_state.emphasis is None:
        st.session_state.emphasis = EmphasisController()


def _draft(review_id: str) -> CitationDraft:
    draft = st.session_state.draft
    if draft is None or draft.review_id != review_id:
        draft = CitationDraft(review_id)
        st.session_state.draft = draft
    return draft


def _selection_session(text: str, enable_selection: bool) -> SelectionSession:
    """Return the capture session for the current article text."""
    session = st.session_state.selection_session
    if session is None or session.plain_text != text or session.enable_selection != enable_selection:
        if session is not None:
            session.stop()
        session = SelectionSession(text, enable_selection=enable_selection)
        session.start()
        st.session_state.selection_session = session
    return session


def show_sidebar() -> AuthContext:
    """Reviewer identity, review selection and corpus statistics."""
    with st.sidebar:
        st.title("Reviewer")
        user_id = st.text_input("User id", value="reviewer-1").strip() or None
        roles = st.text_input("Roles (comma separated)", value="reviewer")
        auth = AuthContext.from_roles(user_id, roles.split(","))
        st.session_state.review_id = st.text_input("Review id", value=st.session_state.review_id).strip()
        st.divider()
        try:
            stats = db.get_review_stats()
            st.metric("Stored citations", stats["total_citations"])
            if stats["reviews"]:
                st.bar_chart(pd.DataFrame(stats["reviews"]).set_index("review_id")["count"])
        except Exception as e:
            st.error(f"Database unavailable: {e}")
    return auth


def show_article_source() -> None:
    """Load the article body from a file or edit it inline."""
    with st.expander("Article source", expanded=False):
        uploaded = st.file_uploader("Load article body", type=["md", "markdown", "txt", "html", "htm"])
        if uploaded and st.button("Use uploaded article"):
            try:
                st.session_state.body = parse_body(uploaded, uploaded.name)
            except ValueError as e:
                st.error(f"Error loading article: {e}")
        st.session_state.body = st.text_area("Body", value=st.session_state.body, height=200)


def _article_refresh(emphasis: EmphasisController) -> Optional[float]:
    """Return how often the article pane reruns, or ``None`` when idle."""
    if emphasis.remaining() <= 0:
        return None
    return ARTICLE_REFRESH_SECONDS


def show_article(citations: List[Citation]) -> None:
    """Render the article with its citations highlighted.

    While a citation is emphasised the pane runs as a fragment that
    reruns on its own, so the emphasis disappears when it expires even
    if the reviewer does nothing.
    """
    emphasis = st.session_state.emphasis
    refresh = _article_refresh(emphasis)

    @st.fragment(run_every=refresh)
    def article_pane() -> None:
        emphasized_id = emphasis.current()
        blocks = inject_highlights(project_body(st.session_state.body), citations, emphasized_id=emphasized_id)
        st.markdown(CITATION_CSS + render_html(blocks), unsafe_allow_html=True)
        if refresh is not None and emphasized_id is None:
            # expired; a full rerun stops the polling
            st.rerun()

    article_pane()


def show_citation_entry(draft: CitationDraft, session: SelectionSession) -> None:
    """Capture a passage and attach a note to it."""
    st.subheader("Add citation")
    col1, col2 = st.columns([4, 1])
    with col1:
        passage = st.text_input("Passage to cite")
    with col2:
        occurrence = st.number_input("Occurrence", min_value=1, value=1, step=1)
    if st.button("Select passage"):
        bounds = find_occurrence(session.plain_text, passage, int(occurrence))
        if bounds is None:
            session.clear()
            st.warning("Passage not found in the article.")
        else:
            session.on_pointer_up(*bounds)
    selection = session.current_selection
    if selection is None:
        return
    st.caption(
        f"…{selection.context_before}**{selection.text}**{selection.context_after}… "
        f"(offsets {selection.start_offset}–{selection.end_offset})"
    )
    note = st.text_area("Your note", placeholder="Add your comment about this selection...")
    col1, col2 = st.columns(2)
    with col1:
        if st.button("Add citation", type="primary", disabled=not note.strip()):
            draft.add_from_selection(selection, note)
            session.clear()
            st.rerun()
    with col2:
        if st.button("Cancel"):
            session.clear()
            st.rerun()


def show_citations(draft: CitationDraft, can_edit: bool) -> None:
    """List the queued citations with highlight and delete actions."""
    citations = draft.citations
    if not citations:
        st.info("No citations yet.")
        return
    st.subheader(f"Citations ({len(citations)})")
    for index, citation in enumerate(citations, start=1):
        with st.container(border=True):
            st.markdown(f"> {citation.selected_text}")
            st.write(f"Note {index}: {citation.note}")
            col1, col2 = st.columns(2)
            with col1:
                if st.button("Highlight in article", key=f"highlight-{citation.id}"):
                    resolve_citation_click(
                        citation.id,
                        citations,
                        on_click=lambda c: st.session_state.emphasis.emphasize(c.id),
                    )
                    st.rerun()
            with col2:
                if can_edit and st.button("Delete", key=f"delete-{citation.id}"):
                    draft.remove(citation.id)
                    st.rerun()


def show_persistence(draft: CitationDraft, can_edit: bool) -> None:
    """Load, save, import and export the citation batch."""
    store = db.SqlCitationStore()
    col1, col2 = st.columns(2)
    with col1:
        if st.button("Load saved citations"):
            try:
                draft.load(store)
                st.success(f"Loaded {len(draft)} citations.")
            except CitationStoreError as e:
                st.error(f"{e}. Your local citations were kept.")
    with col2:
        if can_edit and st.button("Submit citations", type="primary"):
            try:
                stats = draft.submit(store)
                st.success(f"Saved {stats['inserted']} citations.")
            except CitationStoreError as e:
                st.error(f"{e}. Your citations are still queued; submit again to retry.")
    if draft.citations:
        st.download_button(
            label="Download citations as CSV",
            data=citations_to_frame(draft.citations).to_csv(index=False).encode("utf-8"),
            file_name=f"{draft.review_id}_citations.csv",
            mime="text/csv",
        )
    if not can_edit:
        return
    with st.expander("Import citations"):
        uploaded = st.file_uploader("Citation batch", type=["csv", "json"])
        if uploaded and st.button("Import"):
            try:
                df = parse_citation_batch(uploaded, uploaded.name)
            except ValueError as e:
                st.error(f"Error parsing file: {e}")
                return
            df["review_id"] = draft.review_id
            validated_df, report = CitationValidator().validate_citations(df, body=st.session_state.body)
            st.write(f"Quality score: **{report['quality_score']:.1f}%**")
            for recommendation in report["recommendations"]:
                st.warning(recommendation)
            if is_valid(report):
                for citation in frame_to_citations(validated_df):
                    draft.add(citation)
                st.success(f"Imported {len(validated_df)} citations.")


def show_analysis(citations: List[Citation]) -> None:
    """Report citations that will not highlight cleanly."""
    analysis = analyze_citation_anchoring(st.session_state.body, citations)
    summary = analysis["summary"]
    with st.expander(f"Anchoring check ({summary['total_issues']} issues)"):
        st.write(
            f"{summary['rendered_citations']} of {summary['total_citations']} citations are highlighted; "
            f"{summary['coverage'] * 100:.1f}% of the article is cited."
        )
        for issue in analysis["issues"]:
            st.warning(f"{issue['type']}: {issue['description']} (severity: {issue['severity']})")


def main() -> None:
    """Entry point for the Streamlit application."""
    st.set_page_config(
        page_title="Review Annotator",
        page_icon="📝",
        layout="wide",
    )
    _reset_session()
    db.init_db()
    auth = show_sidebar()
    draft = _draft(st.session_state.review_id)
    show_article_source()
    text = plain_text(project_body(st.session_state.body))
    session = _selection_session(text, enable_selection=auth.can_annotate)

    col_article, col_citations = st.columns([3, 2])
    with col_article:
        show_article(draft.citations)
    with col_citations:
        if auth.can_annotate:
            show_citation_entry(draft, session)
        show_citations(draft, can_edit=auth.can_annotate)
        show_persistence(draft, can_edit=auth.can_annotate)
        show_analysis(draft.citations)


if __name__ == "__main__":
    main()
