"""Tests for the first-match-wins tab classifier."""

from __future__ import annotations

import itertools

from focus_music.classifier import TabInfo, build_search_text, classify


def test_empty_tabs_classify_to_default(config) -> None:
    assert classify([], config.contexts) == "default"
    assert classify([TabInfo()], config.contexts) == "default"


def test_meet_url_classifies_to_meetings(config) -> None:
    tabs = [TabInfo(url="https://meet.google.com/abc")]
    assert classify(tabs, config.contexts) == "meetings"


def test_coding_outranks_focus_when_both_match(config) -> None:
    tabs = [TabInfo(url="github.com/x"), TabInfo(url="youtube.com/watch")]
    assert classify(tabs, config.contexts) == "coding"


def test_priority_holds_for_every_tab_order(config) -> None:
    tabs = [
        TabInfo(url="https://www.figma.com/file/1", title="Mockups"),
        TabInfo(url="https://docs.python.org/3/", title="Python docs"),
        TabInfo(url="https://github.com/me/repo", title="repo"),
    ]
    for permutation in itertools.permutations(tabs):
        assert classify(list(permutation), config.contexts) == "coding"


def test_keywords_match_titles_case_insensitively(config) -> None:
    tabs = [TabInfo(url="https://example.com", title="Team sync on ZOOM")]
    assert classify(tabs, config.contexts) == "meetings"


def test_unmatched_tabs_fall_back_to_configured_default(config) -> None:
    tabs = [TabInfo(url="https://news.example.com", title="Headlines")]
    assert classify(tabs, config.contexts) == "default"
    assert classify(tabs, config.contexts, default="creative") == "creative"


def test_classify_is_stable_across_calls(config) -> None:
    tabs = [TabInfo(url="https://stackoverflow.com/q/1")]
    results = {classify(tabs, config.contexts) for _ in range(5)}
    assert results == {"coding"}


def test_search_text_joins_titles_and_urls() -> None:
    text = build_search_text(
        [TabInfo(url="HTTPS://A.example", title="First"), TabInfo(title="Second")]
    )
    assert text == "first https://a.example second"
