"""Tests for highlight injection, click resolution and transient emphasis."""

from __future__ import annotations

import threading

from review_annotator.backend.highlight import (
    EmphasisController,
    inject_highlights,
    locate_spans,
    resolve_citation_click,
)
from review_annotator.backend.models import AnnotatedBlock, Citation, Segment
from review_annotator.backend.projection import plain_text, project_body
from review_annotator.backend.selection import capture_selection


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


class FakeTimer:
    def __init__(self, delay, callback) -> None:
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            return self.callback()
        return None


class FakeScheduler:
    def __init__(self) -> None:
        self.timers = []

    def __call__(self, delay, callback) -> FakeTimer:
        timer = FakeTimer(delay, callback)
        self.timers.append(timer)
        return timer


def _highlighted(blocks):
    return [(s.citation_id, s.text, s.active) for b in blocks for s in b.segments if s.is_citation]


def test_no_citations_returns_projection_unchanged() -> None:
    blocks = project_body("## Title\nSome body text")
    annotated = inject_highlights(blocks, [])
    assert annotated == [AnnotatedBlock.plain(block) for block in blocks]
    assert [a.text for a in annotated] == [b.text for b in blocks]


def test_capture_then_render_round_trip() -> None:
    """A captured selection re-renders exactly over the selected text."""
    blocks = project_body("The quick brown fox")
    selection = capture_selection(plain_text(blocks), 4, 15)
    citation = Citation.from_selection(selection, "nice phrase", citation_id='c1')
    annotated = inject_highlights(blocks, [citation])
    assert annotated[0].segments == [
        Segment(text='The '),
        Segment(text='quick brown', citation_id='c1', note='nice phrase'),
        Segment(text=' fox'),
    ]


def test_unsorted_input_matches_sorted_input(make_citation) -> None:
    blocks = project_body("## Methods\nWe sampled reviews.\n- one venue\n- two venues")
    text = plain_text(blocks)
    c1 = make_citation('c1', 'Methods', text.index('Methods'))
    c2 = make_citation('c2', 'sampled', text.index('sampled'))
    c3 = make_citation('c3', 'two venues', text.index('two venues'))
    expected = inject_highlights(blocks, [c1, c2, c3])
    assert inject_highlights(blocks, [c3, c1, c2]) == expected
    assert inject_highlights(blocks, [c2, c3, c1]) == expected
    assert [cid for cid, _, _ in _highlighted(expected)] == ['c1', 'c2', 'c3']


def test_missing_text_is_skipped_without_affecting_others(make_citation) -> None:
    blocks = project_body("The quick brown fox")
    present = make_citation('c1', 'brown', 10)
    missing = make_citation('c2', 'lazy dog', 2)
    annotated = inject_highlights(blocks, [missing, present])
    assert _highlighted(annotated) == [('c1', 'brown', False)]
    assert annotated[0].text == "The quick brown fox"


def test_identical_passages_anchor_at_their_own_offsets(make_citation) -> None:
    blocks = project_body("cat and cat")
    first = make_citation('first', 'cat', 0)
    second = make_citation('second', 'cat', 8)
    annotated = inject_highlights(blocks, [second, first])
    assert annotated[0].segments == [
        Segment(text='cat', citation_id='first', note='note'),
        Segment(text=' and '),
        Segment(text='cat', citation_id='second', note='note'),
    ]


def test_overlapping_citation_is_skipped(make_citation) -> None:
    text = "The quick brown fox"
    first = make_citation('c1', 'quick brown', 4)
    overlapping = make_citation('c2', 'brown fox', 10)
    spans = locate_spans(text, [overlapping, first])
    assert [(c.id, start, end) for c, start, end in spans] == [('c1', 4, 15)]


def test_drifted_citation_is_found_after_its_offset(make_citation) -> None:
    """Text inserted before a passage still lets it be located further on."""
    blocks = project_body("Intro added later. The quick brown fox")
    citation = make_citation('c1', 'quick brown', 4)
    assert _highlighted(inject_highlights(blocks, [citation])) == [('c1', 'quick brown', False)]


def test_span_crossing_blocks_is_split_per_block(make_citation) -> None:
    blocks = project_body("## Title\nFirst para")
    selection = capture_selection(plain_text(blocks), 0, 11)
    assert selection.text == "Title\nFirst"
    citation = Citation.from_selection(selection, 'spans two blocks', citation_id='c1')
    annotated = inject_highlights(blocks, [citation])
    assert annotated[0].segments == [Segment(text='Title', citation_id='c1', note='spans two blocks')]
    assert annotated[1].segments == [
        Segment(text='First', citation_id='c1', note='spans two blocks'),
        Segment(text=' para'),
    ]


def test_only_emphasized_citation_is_active(make_citation) -> None:
    blocks = project_body("The quick brown fox")
    citations = [make_citation('c1', 'quick', 4), make_citation('c2', 'fox', 16)]
    annotated = inject_highlights(blocks, citations, emphasized_id='c1')
    assert _highlighted(annotated) == [('c1', 'quick', True), ('c2', 'fox', False)]
    assert _highlighted(inject_highlights(blocks, citations)) == [('c1', 'quick', False), ('c2', 'fox', False)]


def test_resolve_citation_click(make_citation) -> None:
    citations = [make_citation('c1', 'quick', 4), make_citation('c2', 'fox', 16)]
    clicked = []
    assert resolve_citation_click('c2', citations, clicked.append) == citations[1]
    assert clicked == [citations[1]]
    assert resolve_citation_click('unknown', citations, clicked.append) is None
    assert resolve_citation_click(None, citations, clicked.append) is None
    assert clicked == [citations[1]]


def test_emphasis_expires_after_delay(make_citation) -> None:
    clock = FakeClock()
    scheduler = FakeScheduler()
    controller = EmphasisController(clock=clock, scheduler=scheduler)
    blocks = project_body("The quick brown fox")
    citations = [make_citation('c1', 'quick', 4), make_citation('c2', 'fox', 16)]

    controller.emphasize('c1')
    active = [s for s in _highlighted(inject_highlights(blocks, citations, controller.current())) if s[2]]
    assert active == [('c1', 'quick', True)]
    assert scheduler.timers[0].delay == 3.0

    clock.now = 102.5
    assert controller.current() == 'c1'
    clock.now = 103.0
    assert controller.current() is None
    assert not any(s[2] for s in _highlighted(inject_highlights(blocks, citations, controller.current())))


def test_timer_callback_clears_emphasis_and_notifies() -> None:
    changes = []
    scheduler = FakeScheduler()
    controller = EmphasisController(clock=FakeClock(), scheduler=scheduler, on_change=changes.append)
    controller.emphasize('c1')
    assert scheduler.timers[0].fire() is True
    assert controller.current() is None
    assert changes == ['c1', None]


def test_stale_timer_does_not_clear_newer_emphasis() -> None:
    clock = FakeClock()
    scheduler = FakeScheduler()
    controller = EmphasisController(clock=clock, scheduler=scheduler)
    controller.emphasize('c1')
    clock.now += 2.0
    controller.emphasize('c2')
    assert scheduler.timers[0].cancelled
    # a timer that was already running when it got cancelled
    assert scheduler.timers[0].callback() is False
    assert controller.current() == 'c2'
    clock.now += 2.0
    assert controller.current() == 'c2'


def test_re_emphasizing_same_citation_restarts_the_pulse() -> None:
    clock = FakeClock()
    scheduler = FakeScheduler()
    controller = EmphasisController(clock=clock, scheduler=scheduler)
    controller.emphasize('c1')
    clock.now += 2.5
    controller.emphasize('c1')
    assert scheduler.timers[0].callback() is False
    clock.now += 2.5
    assert controller.current() == 'c1'
    assert scheduler.timers[1].fire() is True
    assert controller.current() is None


def test_clear_cancels_pending_timer() -> None:
    scheduler = FakeScheduler()
    controller = EmphasisController(clock=FakeClock(), scheduler=scheduler)
    controller.emphasize('c1')
    controller.clear()
    assert scheduler.timers[0].cancelled
    assert controller.current() is None


def test_default_timer_clears_emphasis() -> None:
    cleared = threading.Event()
    controller = EmphasisController(
        delay=0.05,
        on_change=lambda value: cleared.set() if value is None else None,
    )
    controller.emphasize('c1')
    assert cleared.wait(2.0)
    assert controller.current() is None


def test_remaining_counts_down_to_zero() -> None:
    clock = FakeClock()
    controller = EmphasisController(clock=clock, scheduler=FakeScheduler())
    assert controller.remaining() == 0.0
    controller.emphasize('c1')
    clock.now = 101.0
    assert controller.remaining() == 2.0
    clock.now = 103.5
    assert controller.remaining() == 0.0
    assert controller.current() is None
