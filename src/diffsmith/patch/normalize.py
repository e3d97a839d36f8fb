from __future__ import annotations

from typing import List

BEGIN_PATCH_MARKER = "*** Begin Patch"
END_PATCH_MARKER = "*** End Patch"
BARE_SENTINEL = "***"

UPDATE_FILE_MARKER = "*** Update File:"
ADD_FILE_MARKER = "*** Add File:"
DELETE_FILE_MARKER = "*** Delete File:"
FILE_MARKERS = (UPDATE_FILE_MARKER, ADD_FILE_MARKER, DELETE_FILE_MARKER)

# Unified/git diff header lines that never carry file content.
UNIFIED_METADATA_PREFIXES = (
    "diff --git ",
    "index ",
    "--- ",
    "+++ ",
    "new file mode ",
    "deleted file mode ",
    "rename from ",
    "rename to ",
    "similarity index ",
    "dissimilarity index ",
    "old mode ",
    "new mode ",
)


def is_diff_content_line(line: str) -> bool:
    """
    Context, addition or removal line. '--- ' and '+++ ' are file headers,
    not content, even though they start with a sign.
    """
    if not line:
        return False
    first = line[0]
    if first == " ":
        return True
    if first == "+":
        return not line.startswith("+++ ")
    if first == "-":
        return not line.startswith("--- ")
    return False


def is_unified_metadata_line(line: str) -> bool:
    return line.startswith(UNIFIED_METADATA_PREFIXES)


def _is_metadata_line(line: str) -> bool:
    if is_diff_content_line(line):
        return False
    trimmed = line.strip()
    return trimmed.startswith(FILE_MARKERS) or is_unified_metadata_line(trimmed)


def normalize_diff(diff: str) -> str:
    """
    Strip wrapper and metadata lines from model-produced diff text:
    - trailing blank lines (a single space is blank context and survives)
    - '*** Begin Patch' / '*** End Patch' envelopes, complete or partial
    - bare '***' sentinels at either end
    - Codex file markers and unified diff headers

    '*** End of File' is a hunk terminator and is kept.
    """
    lines: List[str] = diff.split("\n")

    while lines:
        last = lines[-1]
        if last == "" or (not last.strip() and not is_diff_content_line(last)):
            lines.pop()
        else:
            break

    if lines and lines[0].strip().startswith(BEGIN_PATCH_MARKER):
        lines = lines[1:]
    if lines and lines[0].strip() == BARE_SENTINEL:
        lines = lines[1:]
    if lines and lines[-1].strip().startswith(END_PATCH_MARKER):
        lines = lines[:-1]
    if lines and lines[-1].strip() == BARE_SENTINEL:
        lines = lines[:-1]

    return "\n".join(line for line in lines if not _is_metadata_line(line))


def normalize_create_content(content: str) -> str:
    """Drop a '+ ' or '+' prefix from every line if all non-empty lines carry one."""
    lines = content.split("\n")
    non_empty = [line for line in lines if line]
    if not non_empty or not all(line.startswith("+") for line in non_empty):
        return content

    out: List[str] = []
    for line in lines:
        if line.startswith("+ "):
            out.append(line[2:])
        elif line.startswith("+"):
            out.append(line[1:])
        else:
            out.append(line)
    return "\n".join(out)
