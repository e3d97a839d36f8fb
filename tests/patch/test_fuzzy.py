import pytest

from diffsmith.patch.fuzzy import (
    CONFIDENCE_EXACT,
    CONFIDENCE_PREFIX,
    CONFIDENCE_RSTRIP,
    CONFIDENCE_SUBSTRING,
    CONFIDENCE_TRIM,
    MAX_OCCURRENCE_PREVIEWS,
    find_context_line,
    find_match,
    seek_sequence,
    similarity,
)
from diffsmith.patch.models import AmbiguousMatch, ExactMatch, FuzzyMatch, NoMatch


def test_similarity_bounds() -> None:
    assert similarity("abc", "abc") == 1.0
    assert similarity("", "abc") == 0.0
    assert 0.0 < similarity("abcd", "abce") < 1.0


def test_find_match_exact() -> None:
    outcome = find_match("a\nb\nc\n", "b")
    assert isinstance(outcome, ExactMatch)
    assert outcome.start == 2
    assert outcome.start_line == 2
    assert outcome.actual_text == "b"


@pytest.mark.parametrize("count", [2, 3, 5, 7])
def test_find_match_ambiguous_previews_are_capped(count: int) -> None:
    content = "\n".join(f"x = {i}\nfoo()" for i in range(count)) + "\n"
    outcome = find_match(content, "foo()")

    assert isinstance(outcome, AmbiguousMatch)
    assert outcome.occurrences == count
    assert len(outcome.previews) == min(count, MAX_OCCURRENCE_PREVIEWS)
    assert "foo()" in outcome.previews[0]
    assert "| x = 0" in outcome.previews[0]


def test_find_match_fuzzy_whitespace() -> None:
    content = "def f():\n    return  1\n"
    outcome = find_match(content, "def f():\n    return 1")

    assert isinstance(outcome, FuzzyMatch)
    assert outcome.start == 0
    assert outcome.start_line == 1
    assert outcome.actual_text == "def f():\n    return  1"
    assert outcome.similarity == 1.0


def test_find_match_fuzzy_disabled_reports_candidates() -> None:
    content = "def f():\n    return  1\n"
    outcome = find_match(content, "def f():\n    return 1", allow_fuzzy=False)

    assert isinstance(outcome, NoMatch)
    assert outcome.closest is not None
    assert outcome.fuzzy_matches == 1


def test_find_match_below_threshold_keeps_closest() -> None:
    outcome = find_match("alpha\nbeta\n", "gamma")

    assert isinstance(outcome, NoMatch)
    assert outcome.closest is not None
    assert outcome.closest.similarity < 0.95
    assert outcome.fuzzy_matches == 0


def test_find_match_empty_target() -> None:
    assert find_match("abc", "") == NoMatch()


def test_find_match_equal_scores_pick_first() -> None:
    content = "a  =  1\nb\na  =  1\n"
    outcome = find_match(content, "a = 1")
    assert isinstance(outcome, FuzzyMatch)
    assert outcome.start_line == 1


def test_seek_sequence_passes() -> None:
    res = seek_sequence(["a", "b", "c"], ["b"])
    assert (res.index, res.confidence, res.match_count) == (1, CONFIDENCE_EXACT, 1)

    res = seek_sequence(["a  ", "b"], ["a"])
    assert (res.index, res.confidence) == (0, CONFIDENCE_RSTRIP)

    res = seek_sequence(["  a", "b"], ["a"])
    assert (res.index, res.confidence) == (0, CONFIDENCE_TRIM)


def test_seek_sequence_without_fuzzy_is_exact_only() -> None:
    assert not seek_sequence(["  a"], ["a"], allow_fuzzy=False).found
    assert seek_sequence(["a"], ["a"], allow_fuzzy=False).found


def test_seek_sequence_respects_start() -> None:
    res = seek_sequence(["x", "y", "x"], ["x"], 1)
    assert res.index == 2
    assert res.match_count == 1


def test_seek_sequence_near_and_eof() -> None:
    lines = ["x", "y", "x", "y", "x"]

    res = seek_sequence(lines, ["x"], near=3)
    assert res.index == 2
    assert res.match_count == 3

    res = seek_sequence(lines, ["x"], eof=True)
    assert res.index == 4

    assert seek_sequence(lines, ["x"]).index == 0


def test_seek_sequence_similarity_pass() -> None:
    res = seek_sequence(["value = compute(alpha, beta)"], ["value = compute(alpha, betta)"])
    assert res.found
    assert 0.95 <= res.confidence < 1.0


def test_seek_sequence_pattern_longer_than_file() -> None:
    assert not seek_sequence(["a"], ["a", "b"]).found


def test_find_context_line_passes() -> None:
    lines = ["class A:", "    def foo(a, b):", "        result = compute_total(items)"]

    res = find_context_line(lines, "class A:")
    assert (res.index, res.confidence) == (0, CONFIDENCE_EXACT)

    res = find_context_line(lines, "def foo(a, b):")
    assert (res.index, res.confidence) == (1, CONFIDENCE_TRIM)

    res = find_context_line(lines, "def foo")
    assert (res.index, res.confidence) == (1, CONFIDENCE_PREFIX)

    res = find_context_line(lines, "compute_total")
    assert (res.index, res.confidence) == (2, CONFIDENCE_SUBSTRING)


def test_find_context_line_short_substring_rejected() -> None:
    res = find_context_line(["x = abc + 1"], "abc")
    assert not res.found


def test_find_context_line_counts_matches() -> None:
    res = find_context_line(["def a():", "pass", "def a():"], "def a():")
    assert res.index == 0
    assert res.match_count == 2

    res = find_context_line(["def a():", "pass", "def a():"], "def a():", 1)
    assert res.index == 2
    assert res.match_count == 1


def test_find_context_line_blank_context() -> None:
    assert not find_context_line(["a"], "   ").found
