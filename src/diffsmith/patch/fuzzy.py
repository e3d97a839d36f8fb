from __future__ import annotations

from difflib import SequenceMatcher
from typing import Callable, List, Optional, Sequence, Tuple

from .models import (
    AmbiguousMatch,
    ContextLineResult,
    ExactMatch,
    FuzzyMatch,
    MatchOutcome,
    NoMatch,
    SequenceSearchResult,
)
from .text import normalize_for_fuzzy

DEFAULT_FUZZY_THRESHOLD = 0.95
MAX_OCCURRENCE_PREVIEWS = 5
# Lines shown around each occurrence in ambiguity previews.
PREVIEW_CONTEXT_LINES = 1
PREVIEW_MAX_LINES = 6

# Substring anchors must be long enough and cover enough of the line.
CONTEXT_SUBSTRING_MIN_CHARS = 6
CONTEXT_SUBSTRING_MIN_RATIO = 0.3

# Confidence reported for each progressive pass.
CONFIDENCE_EXACT = 1.0
CONFIDENCE_RSTRIP = 0.99
CONFIDENCE_TRIM = 0.98
CONFIDENCE_NORMALIZED = 0.97
CONFIDENCE_PREFIX = 0.96
CONFIDENCE_SUBSTRING = 0.95

LineKey = Callable[[str], str]


def similarity(a: str, b: str) -> float:
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    return SequenceMatcher(None, a, b, autojunk=False).ratio()


def _line_offsets(lines: Sequence[str]) -> List[int]:
    offsets: List[int] = []
    pos = 0
    for line in lines:
        offsets.append(pos)
        pos += len(line) + 1
    return offsets


def _find_all(content: str, target: str) -> List[int]:
    found: List[int] = []
    pos = content.find(target)
    while pos != -1:
        found.append(pos)
        pos = content.find(target, pos + len(target))
    return found


def _preview(content_lines: List[str], start_line: int, span: int) -> str:
    """Numbered excerpt around a 0-based start line."""
    lo = max(0, start_line - PREVIEW_CONTEXT_LINES)
    hi = min(len(content_lines), start_line + span + PREVIEW_CONTEXT_LINES)
    excerpt = list(range(lo, hi))
    if len(excerpt) > PREVIEW_MAX_LINES:
        excerpt = excerpt[:PREVIEW_MAX_LINES]
    width = len(str(hi))
    out = [f"{n + 1:>{width}} | {content_lines[n]}" for n in excerpt]
    if hi - lo > len(excerpt):
        out.append(" " * width + " | ...")
    return "\n".join(out)


def _best_fuzzy_window(
    content_lines: List[str], target_lines: List[str], threshold: float
) -> Tuple[Optional[Tuple[int, float]], int]:
    """
    Slide a window of len(target_lines) over the content and score each
    window on normalized text. Returns ((line index, similarity) of the best
    window, number of windows at or above threshold). Ties keep the earliest.
    """
    n = len(target_lines)
    if n == 0 or n > len(content_lines):
        return None, 0

    norm_target = "\n".join(normalize_for_fuzzy(l) for l in target_lines)
    norm_content = [normalize_for_fuzzy(l) for l in content_lines]

    matcher = SequenceMatcher(None, autojunk=False)
    matcher.set_seq2(norm_target)

    best: Optional[Tuple[int, float]] = None
    above = 0
    for i in range(len(content_lines) - n + 1):
        window = "\n".join(norm_content[i : i + n])
        if window == norm_target:
            score = 1.0
        else:
            matcher.set_seq1(window)
            # Upper bound cannot beat the current best nor reach the threshold.
            bound = matcher.real_quick_ratio()
            if bound < threshold and best is not None and bound <= best[1]:
                continue
            score = matcher.ratio()
        if score >= threshold:
            above += 1
        if best is None or score > best[1]:
            best = (i, score)
    return best, above


def find_match(
    content: str,
    target: str,
    *,
    allow_fuzzy: bool = True,
    threshold: float = DEFAULT_FUZZY_THRESHOLD,
) -> MatchOutcome:
    """
    Locate target in content (both LF-normalized).

    Exact occurrences win: one is an ExactMatch, several an AmbiguousMatch.
    Otherwise line windows are compared on whitespace/punctuation-normalized
    text; the best window reaching threshold is a FuzzyMatch. Below that, or
    with fuzzy disabled, NoMatch carries the closest window for diagnostics.
    """
    if not target:
        return NoMatch()

    content_lines = content.split("\n")
    occurrences = _find_all(content, target)
    if len(occurrences) == 1:
        start = occurrences[0]
        return ExactMatch(
            start=start, actual_text=target, start_line=content.count("\n", 0, start) + 1
        )
    if len(occurrences) > 1:
        span = target.count("\n") + 1
        previews = [
            _preview(content_lines, content.count("\n", 0, start), span)
            for start in occurrences[:MAX_OCCURRENCE_PREVIEWS]
        ]
        return AmbiguousMatch(occurrences=len(occurrences), previews=previews)

    target_lines = target.split("\n")
    best, above = _best_fuzzy_window(content_lines, target_lines, threshold)
    if best is None:
        return NoMatch()

    index, score = best
    offsets = _line_offsets(content_lines)
    candidate = FuzzyMatch(
        start=offsets[index],
        actual_text="\n".join(content_lines[index : index + len(target_lines)]),
        start_line=index + 1,
        similarity=score,
    )
    if allow_fuzzy and score >= threshold:
        return candidate
    return NoMatch(closest=candidate, fuzzy_matches=0 if allow_fuzzy else above)


def _rstrip(line: str) -> str:
    return line.rstrip()


def _strip(line: str) -> str:
    return line.strip()


def _pick(indices: List[int], near: Optional[int], prefer_end: Optional[int]) -> int:
    if prefer_end is not None:
        if prefer_end in indices:
            return prefer_end
        return indices[-1]
    if near is not None:
        return min(indices, key=lambda i: (abs(i - near), i))
    return indices[0]


def seek_sequence(
    lines: Sequence[str],
    pattern: Sequence[str],
    start: int = 0,
    eof: bool = False,
    *,
    near: Optional[int] = None,
    allow_fuzzy: bool = True,
    threshold: float = DEFAULT_FUZZY_THRESHOLD,
) -> SequenceSearchResult:
    """
    Find pattern as a contiguous run of lines at or after start.

    Passes run from strict to lenient: exact, trailing whitespace ignored,
    surrounding whitespace ignored, unicode/whitespace normalized, then
    average line similarity >= threshold. The first pass with any hit wins.
    match_count is the number of hits in that pass.

    eof prefers a match ending at the last line; near (0-based) prefers the
    hit closest to a line hint. Otherwise the earliest hit is returned.
    """
    n = len(pattern)
    if n == 0:
        return SequenceSearchResult(index=start, confidence=CONFIDENCE_EXACT, match_count=1)
    last_start = len(lines) - n
    if last_start < start:
        return SequenceSearchResult()
    prefer_end = last_start if eof else None

    passes: List[Tuple[float, LineKey]] = [(CONFIDENCE_EXACT, str)]
    if allow_fuzzy:
        passes += [
            (CONFIDENCE_RSTRIP, _rstrip),
            (CONFIDENCE_TRIM, _strip),
            (CONFIDENCE_NORMALIZED, normalize_for_fuzzy),
        ]

    for confidence, key in passes:
        want = [key(p) for p in pattern]
        keyed = [key(l) for l in lines]
        hits = [
            i
            for i in range(start, last_start + 1)
            if keyed[i : i + n] == want
        ]
        if hits:
            return SequenceSearchResult(
                index=_pick(hits, near, prefer_end),
                confidence=confidence,
                match_count=len(hits),
            )

    if not allow_fuzzy:
        return SequenceSearchResult()

    want = [normalize_for_fuzzy(p) for p in pattern]
    keyed = [normalize_for_fuzzy(l) for l in lines]
    scored: List[Tuple[int, float]] = []
    for i in range(start, last_start + 1):
        score = sum(similarity(a, b) for a, b in zip(keyed[i : i + n], want)) / n
        if score >= threshold:
            scored.append((i, score))
    if not scored:
        return SequenceSearchResult()

    best_score = max(score for _, score in scored)
    best = [i for i, score in scored if score == best_score]
    return SequenceSearchResult(
        index=_pick(best, near, prefer_end),
        confidence=best_score,
        match_count=len(scored),
    )


def _context_passes(context: str) -> List[Tuple[float, Callable[[str], bool]]]:
    trimmed = context.strip()
    normalized = normalize_for_fuzzy(context)

    def is_substring(line: str) -> bool:
        stripped = line.strip()
        return (
            len(trimmed) >= CONTEXT_SUBSTRING_MIN_CHARS
            and bool(stripped)
            and trimmed in stripped
            and len(trimmed) / len(stripped) >= CONTEXT_SUBSTRING_MIN_RATIO
        )

    passes: List[Tuple[float, Callable[[str], bool]]] = [
        (CONFIDENCE_EXACT, lambda line: line == context),
        (CONFIDENCE_TRIM, lambda line: line.strip() == trimmed),
        (CONFIDENCE_NORMALIZED, lambda line: normalize_for_fuzzy(line) == normalized),
        (
            CONFIDENCE_PREFIX,
            lambda line: bool(normalized) and normalize_for_fuzzy(line).startswith(normalized),
        ),
        (CONFIDENCE_SUBSTRING, is_substring),
    ]
    return passes


def find_context_line(
    lines: Sequence[str],
    context: str,
    start: int = 0,
    *,
    allow_fuzzy: bool = True,
    threshold: float = DEFAULT_FUZZY_THRESHOLD,
) -> ContextLineResult:
    """
    Find the anchor line at or after start: exact, trimmed, normalized,
    prefix, substring, then (fuzzy only) similarity >= threshold.
    """
    if not context.strip():
        return ContextLineResult()

    for confidence, matches in _context_passes(context):
        hits = [i for i in range(start, len(lines)) if matches(lines[i])]
        if hits:
            return ContextLineResult(
                index=hits[0], confidence=confidence, match_count=len(hits)
            )

    if not allow_fuzzy:
        return ContextLineResult()

    normalized = normalize_for_fuzzy(context)
    best: Optional[Tuple[int, float]] = None
    above = 0
    for i in range(start, len(lines)):
        score = similarity(normalize_for_fuzzy(lines[i]), normalized)
        if score >= threshold:
            above += 1
            if best is None or score > best[1]:
                best = (i, score)
    if best is None:
        return ContextLineResult()
    return ContextLineResult(index=best[0], confidence=best[1], match_count=above)


def closest_sequence(
    lines: Sequence[str], pattern: Sequence[str]
) -> Optional[Tuple[int, float]]:
    """Best (line index, similarity) window for diagnostics, no threshold."""
    best, _ = _best_fuzzy_window(list(lines), list(pattern), threshold=1.01)
    return best
