"""
Hunk parser for single-file diffs produced by language models.

Accepted hunk headers (first match wins):
  @@                          no context, match from the current position
  @@ @@                       same as above
  @@ -10,3 +10,4 @@ [ctx]     unified header; numbers are position hints
  @@ line 125 / @@ lines 5-9  line hint
  @@ top of file              line hint 1
  @@ def foo(...)             anchor text
  @@def foo(...)              anchor text (missing space)

Anchors may be nested on consecutive lines:
  @@ class Foo
  @@     def bar(self):
"""
from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Set

from diffsmith.logger import logger

from .models import ApplyPatchError, DiffHunk, ParseError
from .normalize import (
    FILE_MARKERS,
    is_diff_content_line,
    is_unified_metadata_line,
    normalize_diff,
)
from .text import normalize_to_lf

EOF_MARKER = "*** End of File"
HEADER_PREFIX = "@@"
CONTEXT_HEADER_PREFIX = "@@ "
GAP_MARKERS = ("...", chr(0x2026))

UNIFIED_HUNK_HEADER_RE = re.compile(
    r"^@@\s*-(\d+)(?:,(\d+))?\s+\+(\d+)(?:,(\d+))?\s*@@(?:\s*(.*))?$"
)
EMPTY_HEADER_RE = re.compile(r"^@@\s*@@$")
LINE_HINT_RE = re.compile(r"^lines?\s+(\d+)(?:\s*-\s*(\d+))?(?:\s*@@)?$", re.IGNORECASE)
TOP_OF_FILE_RE = re.compile(r"^(top|start|beginning)\s+of\s+file$", re.IGNORECASE)

# Numbered listings like "  12  foo()" are stripped when most lines carry
# a number and the numbers are (nearly) sequential.
LINE_NUMBER_PREFIX_RE = re.compile(r"^\s*(\d{1,6})\s+(.+)$")
LINE_NUMBER_MIN_LINES = 2
LINE_NUMBER_MIN_COVERAGE = 0.6

DIFF_GIT_PREFIX = "diff --git "
MULTI_FILE_MARKERS = (*FILE_MARKERS, DIFF_GIT_PREFIX)


@dataclass
class _HunkHeader:
    contexts: List[str] = field(default_factory=list)
    old_start_line: Optional[int] = None
    new_start_line: Optional[int] = None


HeaderParser = Callable[[str, int], Optional[_HunkHeader]]


def _parse_empty_header(header: str, line_number: int) -> Optional[_HunkHeader]:
    if header == HEADER_PREFIX or EMPTY_HEADER_RE.match(header):
        return _HunkHeader()
    return None


def _parse_unified_header(header: str, line_number: int) -> Optional[_HunkHeader]:
    m = UNIFIED_HUNK_HEADER_RE.match(header)
    if not m:
        return None
    old_start, new_start = int(m.group(1)), int(m.group(3))
    if old_start < 1 or new_start < 1:
        raise ParseError("Line numbers in @@ header must be >= 1", line_number)
    ctx = (m.group(5) or "").strip()
    return _HunkHeader(
        contexts=[ctx] if ctx else [],
        old_start_line=old_start,
        new_start_line=new_start,
    )


def _parse_spaced_header(header: str, line_number: int) -> Optional[_HunkHeader]:
    if not header.startswith(CONTEXT_HEADER_PREFIX):
        return None
    value = header[len(CONTEXT_HEADER_PREFIX) :]
    trimmed = value.strip()
    hint_text = re.sub(r"^@@\s*", "", trimmed)

    m = LINE_HINT_RE.match(hint_text)
    if m:
        line = int(m.group(1))
        if line < 1:
            raise ParseError("Line hint must be >= 1", line_number)
        return _HunkHeader(old_start_line=line, new_start_line=line)
    if TOP_OF_FILE_RE.match(hint_text):
        return _HunkHeader(old_start_line=1, new_start_line=1)
    # Leading whitespace of the anchor is kept; it may mirror nesting.
    return _HunkHeader(contexts=[value] if trimmed else [])


def _parse_bare_header(header: str, line_number: int) -> Optional[_HunkHeader]:
    if not header.startswith(HEADER_PREFIX):
        return None
    ctx = header[len(HEADER_PREFIX) :].strip()
    return _HunkHeader(contexts=[ctx] if ctx else [])


_HEADER_PARSERS: Sequence[HeaderParser] = (
    _parse_empty_header,
    _parse_unified_header,
    _parse_spaced_header,
    _parse_bare_header,
)


def _parse_header(header: str, line_number: int) -> Optional[_HunkHeader]:
    for parser in _HEADER_PARSERS:
        parsed = parser(header, line_number)
        if parsed is not None:
            return parsed
    return None


def strip_line_number_prefixes(hunk: DiffHunk) -> None:
    """Remove editor-style line numbers copied into hunk lines, in place."""
    candidates = [l for l in [*hunk.old_lines, *hunk.new_lines] if l.strip()]
    if len(candidates) < LINE_NUMBER_MIN_LINES:
        return

    matches = [m for m in (LINE_NUMBER_PREFIX_RE.match(l) for l in candidates) if m]
    required = max(
        LINE_NUMBER_MIN_LINES, math.ceil(len(candidates) * LINE_NUMBER_MIN_COVERAGE)
    )
    if len(matches) < required:
        return

    numbers = [int(m.group(1)) for m in matches]
    sequential = sum(
        1 for prev, cur in zip(numbers, numbers[1:]) if cur == prev + 1
    )
    if len(numbers) >= 3 and sequential < max(1, len(numbers) - 2):
        return

    def strip(line: str) -> str:
        m = LINE_NUMBER_PREFIX_RE.match(line)
        return m.group(2) if m else line

    hunk.old_lines = [strip(l) for l in hunk.old_lines]
    hunk.new_lines = [strip(l) for l in hunk.new_lines]


def _parse_one_hunk(
    lines: List[str], line_number: int, allow_missing_context: bool
) -> tuple[DiffHunk, int]:
    """Parse a hunk at the start of lines. Returns (hunk, lines consumed)."""
    if not lines:
        raise ParseError("Diff does not contain any lines", line_number)

    first = lines[0]
    header: Optional[_HunkHeader] = None
    if first.startswith(HEADER_PREFIX):
        header = _parse_header(first.rstrip(), line_number)

    if header is None:
        if not allow_missing_context:
            raise ParseError(
                f"Expected hunk to start with @@ context marker, got: '{first}'",
                line_number,
            )
        header = _HunkHeader()
        start = 0
    else:
        start = 1

    # Nested anchors: "@@ text" accumulates, a bare "@@" is skipped.
    while start < len(lines) and lines[start].startswith(HEADER_PREFIX):
        trimmed = lines[start].rstrip()
        if trimmed.startswith(CONTEXT_HEADER_PREFIX):
            nested = trimmed[len(CONTEXT_HEADER_PREFIX) :]
            if nested.strip():
                header.contexts.append(nested)
        elif trimmed != HEADER_PREFIX:
            break
        start += 1

    if start >= len(lines):
        raise ParseError("Hunk does not contain any lines", line_number + 1)

    hunk = DiffHunk(
        change_context="\n".join(header.contexts) if header.contexts else None,
        old_start_line=header.old_start_line,
        new_start_line=header.new_start_line,
    )

    parsed = 0
    for i in range(start, len(lines)):
        line = lines[i]
        next_line = lines[i + 1] if i + 1 < len(lines) else None

        if (
            line == ""
            and parsed > 0
            and next_line is not None
            and next_line.lstrip().startswith(HEADER_PREFIX)
        ):
            break

        if (
            not is_diff_content_line(line)
            and line.startswith(EOF_MARKER)
            and line.rstrip() == EOF_MARKER
        ):
            if parsed == 0:
                raise ParseError("Hunk does not contain any lines", line_number + 1)
            hunk.is_end_of_file = True
            parsed += 1
            break

        if line.strip() in GAP_MARKERS:
            hunk.has_context_lines = True
            parsed += 1
            continue

        if line == "":
            hunk.has_context_lines = True
            hunk.old_lines.append("")
            hunk.new_lines.append("")
        elif line[0] == " ":
            hunk.has_context_lines = True
            hunk.old_lines.append(line[1:])
            hunk.new_lines.append(line[1:])
        elif line[0] == "+":
            hunk.new_lines.append(line[1:])
        elif line[0] == "-":
            hunk.old_lines.append(line[1:])
        elif not line.startswith(HEADER_PREFIX):
            # Model dropped the leading space of a context line.
            hunk.has_context_lines = True
            hunk.old_lines.append(line)
            hunk.new_lines.append(line)
        else:
            if parsed == 0:
                raise ParseError(
                    f"Unexpected line in hunk: '{line}'. Lines must start with "
                    "' ' (context), '+' (add), or '-' (remove)",
                    line_number + 1,
                )
            break
        parsed += 1

    if parsed == 0 or (not hunk.old_lines and not hunk.new_lines):
        raise ParseError("Hunk does not contain any lines", line_number + start)

    strip_line_number_prefixes(hunk)
    return hunk, parsed + start


def _extract_marker_path(line: str) -> Optional[str]:
    if line.startswith(DIFF_GIT_PREFIX):
        parts = line.split()
        candidate = parts[3] if len(parts) > 3 else (parts[2] if len(parts) > 2 else "")
        if not candidate:
            return None
        return re.sub(r"^(a|b)/", "", candidate)
    for marker in FILE_MARKERS:
        if line.startswith(marker):
            return line[len(marker) :].strip()
    return None


def count_file_markers(diff: str) -> int:
    """
    Number of distinct files a diff refers to, judged by file markers.
    Falls back to the largest per-marker count when no path can be extracted.
    """
    counts: Dict[str, int] = {}
    paths: Set[str] = set()
    for line in diff.split("\n"):
        if is_diff_content_line(line):
            continue
        trimmed = line.strip()
        for marker in MULTI_FILE_MARKERS:
            if trimmed.startswith(marker):
                path = _extract_marker_path(trimmed)
                if path:
                    paths.add(path)
                counts[marker] = counts.get(marker, 0) + 1
                break
    if paths:
        return len(paths)
    return max(counts.values(), default=0)


def ensure_single_file(diff: str) -> None:
    count = count_file_markers(diff)
    if count > 1:
        raise ApplyPatchError(
            f"Diff contains {count} file markers. Single-file patches cannot "
            "contain multi-file markers."
        )


def parse_hunks(diff: str) -> List[DiffHunk]:
    """Parse all hunks of a single-file diff, tolerating common wrappers."""
    ensure_single_file(diff)

    lines = normalize_diff(normalize_to_lf(diff)).split("\n")
    hunks: List[DiffHunk] = []
    i = 0
    while i < len(lines):
        line = lines[i]
        trimmed = line.strip()

        if not trimmed:
            i += 1
            continue
        if not is_diff_content_line(line) and is_unified_metadata_line(trimmed):
            i += 1
            continue
        if trimmed.startswith(HEADER_PREFIX) and all(
            not rest.strip() for rest in lines[i + 1 :]
        ):
            break

        hunk, consumed = _parse_one_hunk(lines[i:], i + 1, True)
        hunks.append(hunk)
        i += consumed

    if not hunks:
        raise ParseError("Diff does not contain any hunks")
    logger.debug("Parsed diff hunks", count=len(hunks))
    return hunks
