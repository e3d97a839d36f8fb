from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

BOM = chr(0xFEFF)
LF = "\n"
CRLF = "\r\n"


def _chars(*codepoints: int) -> str:
    return "".join(chr(cp) for cp in codepoints)


# Typographic punctuation and exotic spaces folded to ASCII.
_DASHES = _chars(0x2010, 0x2011, 0x2012, 0x2013, 0x2014, 0x2015, 0x2212)
_SINGLE_QUOTES = _chars(0x2018, 0x2019, 0x201A, 0x201B)
_DOUBLE_QUOTES = _chars(0x201C, 0x201D, 0x201E, 0x201F)
_SPACES = _chars(0x00A0, *range(0x2002, 0x200B), 0x202F, 0x205F, 0x3000)

_UNICODE_FOLD = str.maketrans(
    {
        **{c: "-" for c in _DASHES},
        **{c: "'" for c in _SINGLE_QUOTES},
        **{c: '"' for c in _DOUBLE_QUOTES},
        **{c: " " for c in _SPACES},
    }
)

# Guillemets, backtick and acute accent are folded only for fuzzy comparison.
_FUZZY_DOUBLE_QUOTES_RE = re.compile("[" + _DOUBLE_QUOTES + _chars(0x00AB, 0x00BB) + "]")
_FUZZY_SINGLE_QUOTES_RE = re.compile("[" + _SINGLE_QUOTES + "`" + _chars(0x00B4) + "]")
_FUZZY_SPACES_RE = re.compile(r"[ \t]+")


def detect_line_ending(content: str) -> str:
    """Return the line ending used by the first line break in content."""
    lf_idx = content.find("\n")
    if lf_idx == -1:
        return LF
    crlf_idx = content.find("\r\n")
    if crlf_idx == -1:
        return LF
    return CRLF if crlf_idx < lf_idx else LF


def normalize_to_lf(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def restore_line_endings(text: str, ending: str) -> str:
    if ending == CRLF:
        return text.replace("\n", "\r\n")
    return text


def strip_bom(content: str) -> Tuple[str, str]:
    """Return (bom, text); bom is empty when content has none."""
    if content.startswith(BOM):
        return BOM, content[1:]
    return "", content


def count_leading_whitespace(line: str) -> int:
    count = 0
    for ch in line:
        if ch not in (" ", "\t"):
            break
        count += 1
    return count


def get_leading_whitespace(line: str) -> str:
    return line[: count_leading_whitespace(line)]


def detect_indent_char(text: str) -> str:
    for line in text.split("\n"):
        ws = get_leading_whitespace(line)
        if ws:
            return ws[0]
    return " "


@dataclass
class IndentProfile:
    lines: List[str]
    indent_counts: List[int] = field(default_factory=list)
    min: int = 0
    char: Optional[str] = None
    space_only: bool = True
    tab_only: bool = True
    mixed: bool = False
    unit: int = 0
    non_empty_count: int = 0


def build_indent_profile(text: str) -> IndentProfile:
    profile = IndentProfile(lines=text.split("\n"))
    smallest: Optional[int] = None

    for line in profile.lines:
        if not line.strip():
            continue
        profile.non_empty_count += 1
        indent = get_leading_whitespace(line)
        profile.indent_counts.append(len(indent))
        smallest = len(indent) if smallest is None else min(smallest, len(indent))
        if " " in indent:
            profile.tab_only = False
        if "\t" in indent:
            profile.space_only = False
        if " " in indent and "\t" in indent:
            profile.mixed = True
        if indent:
            if profile.char is None:
                profile.char = indent[0]
            elif profile.char != indent[0]:
                profile.mixed = True

    profile.min = smallest or 0
    if profile.non_empty_count > 0:
        if profile.space_only:
            unit = 0
            for count in profile.indent_counts:
                if count:
                    unit = count if unit == 0 else math.gcd(unit, count)
            profile.unit = unit
        if profile.tab_only:
            profile.unit = 1
    return profile


def convert_leading_tabs_to_spaces(text: str, spaces_per_tab: int) -> str:
    if spaces_per_tab <= 0:
        return text
    out: List[str] = []
    for line in text.split("\n"):
        stripped = line.lstrip()
        leading = get_leading_whitespace(line)
        if not stripped or "\t" not in leading or " " in leading:
            out.append(line)
            continue
        out.append(" " * (len(leading) * spaces_per_tab) + stripped)
    return "\n".join(out)


def normalize_unicode(s: str) -> str:
    """Trim and fold typographic punctuation/spaces to their ASCII forms."""
    return s.strip().translate(_UNICODE_FOLD)


def normalize_for_fuzzy(line: str) -> str:
    """Trim, fold punctuation and collapse runs of spaces/tabs."""
    trimmed = line.strip()
    if not trimmed:
        return ""
    trimmed = trimmed.translate(_UNICODE_FOLD)
    trimmed = _FUZZY_DOUBLE_QUOTES_RE.sub('"', trimmed)
    trimmed = _FUZZY_SINGLE_QUOTES_RE.sub("'", trimmed)
    return _FUZZY_SPACES_RE.sub(" ", trimmed)


def adjust_indentation(old_text: str, actual_text: str, new_text: str) -> str:
    """
    Shift new_text by the indentation delta between what the caller expected
    (old_text) and what was found in the file (actual_text).

    The text is returned unchanged when the delta is not uniform, when
    indentation characters disagree, or when the edit itself is purely an
    indentation change. Tab-indented edits landing in a space-indented file
    are converted when the file uses a consistent unit.
    """
    if old_text == actual_text:
        return new_text

    old_lines = old_text.split("\n")
    new_lines = new_text.split("\n")
    if len(old_lines) == len(new_lines) and all(
        o.strip() == n.strip() for o, n in zip(old_lines, new_lines)
    ):
        return new_text

    old_p = build_indent_profile(old_text)
    actual_p = build_indent_profile(actual_text)
    new_p = build_indent_profile(new_text)

    if not (old_p.non_empty_count and actual_p.non_empty_count and new_p.non_empty_count):
        return new_text
    if old_p.mixed or actual_p.mixed or new_p.mixed:
        return new_text

    line_count = min(len(old_p.lines), len(actual_p.lines))

    if old_p.char and actual_p.char and old_p.char != actual_p.char:
        if actual_p.space_only and old_p.tab_only and new_p.tab_only and actual_p.unit > 0:
            for i in range(line_count):
                old_line, actual_line = old_p.lines[i], actual_p.lines[i]
                if not old_line.strip() or not actual_line.strip():
                    continue
                old_indent = count_leading_whitespace(old_line)
                if old_indent == 0:
                    continue
                if count_leading_whitespace(actual_line) != old_indent * actual_p.unit:
                    return new_text
            return convert_leading_tabs_to_spaces(new_text, actual_p.unit)
        return new_text

    deltas: List[int] = []
    for i in range(line_count):
        old_line, actual_line = old_p.lines[i], actual_p.lines[i]
        if not old_line.strip() or not actual_line.strip():
            continue
        deltas.append(
            count_leading_whitespace(actual_line) - count_leading_whitespace(old_line)
        )

    if not deltas:
        return new_text
    delta = deltas[0]
    if delta == 0 or any(d != delta for d in deltas):
        return new_text
    if new_p.char and actual_p.char and new_p.char != actual_p.char:
        return new_text

    indent_char = actual_p.char or old_p.char or detect_indent_char(actual_text)
    adjusted: List[str] = []
    for line in new_lines:
        if not line.strip():
            adjusted.append(line)
        elif delta > 0:
            adjusted.append(indent_char * delta + line)
        else:
            adjusted.append(line[min(-delta, count_leading_whitespace(line)) :])
    return "\n".join(adjusted)
