from __future__ import annotations

import difflib
from dataclasses import replace
from typing import List, Optional

from .applicator import ApplyPatchOptions, default_file_system, preview_patch
from .fs import FileSystem
from .fuzzy import DEFAULT_FUZZY_THRESHOLD, find_match
from .models import (
    AmbiguousMatch,
    DiffResult,
    EditMatchError,
    FuzzyMatch,
    NoMatch,
    Operation,
    PatchInput,
    ReplaceResult,
)
from .text import adjust_indentation, normalize_to_lf, strip_bom

UNIFIED_CONTEXT_LINES = 3
NUMBERED_CONTEXT_LINES = 4
GROUP_SEPARATOR = "..."


def _lines(text: str) -> List[str]:
    # Only "\n" ends a line; form feeds and other separators are content.
    if not text:
        return []
    if text.endswith("\n"):
        text = text[:-1]
    return text.split("\n")


def _first_changed_line(old_lines: List[str], new_lines: List[str]) -> Optional[int]:
    matcher = difflib.SequenceMatcher(None, old_lines, new_lines, autojunk=False)
    for tag, _i1, _i2, j1, _j2 in matcher.get_opcodes():
        if tag != "equal":
            return min(j1, max(len(new_lines) - 1, 0)) + 1
    return None


def generate_unified_diff_string(
    old: str, new: str, context_lines: int = UNIFIED_CONTEXT_LINES
) -> DiffResult:
    """Unified diff hunks (no ---/+++ file headers) between two texts."""
    old_lines, new_lines = _lines(old), _lines(new)
    body = list(
        difflib.unified_diff(old_lines, new_lines, lineterm="", n=context_lines)
    )[2:]
    return DiffResult(
        diff="\n".join(body), first_changed_line=_first_changed_line(old_lines, new_lines)
    )


def generate_diff_string(
    old: str, new: str, context_lines: int = NUMBERED_CONTEXT_LINES
) -> DiffResult:
    """
    Compact numbered diff for display:
      +12 added line     (new line number)
      -11 removed line   (old line number)
       13 context line   (new line number)
    Separate change groups are joined by "...".
    """
    old_lines, new_lines = _lines(old), _lines(new)
    width = len(str(max(len(old_lines), len(new_lines), 1)))
    matcher = difflib.SequenceMatcher(None, old_lines, new_lines, autojunk=False)

    out: List[str] = []
    for group in matcher.get_grouped_opcodes(context_lines):
        if out:
            out.append(GROUP_SEPARATOR)
        for tag, i1, i2, j1, j2 in group:
            if tag == "equal":
                for offset, line in enumerate(new_lines[j1:j2]):
                    out.append(f" {j1 + offset + 1:>{width}} {line}")
                continue
            for offset, line in enumerate(old_lines[i1:i2]):
                out.append(f"-{i1 + offset + 1:>{width}} {line}")
            for offset, line in enumerate(new_lines[j1:j2]):
                out.append(f"+{j1 + offset + 1:>{width}} {line}")

    # get_grouped_opcodes yields one equal-only group for identical input.
    if old_lines == new_lines:
        out = []
    return DiffResult(
        diff="\n".join(out), first_changed_line=_first_changed_line(old_lines, new_lines)
    )


def replace_text(
    content: str,
    old_text: str,
    new_text: str,
    *,
    fuzzy: bool = True,
    all: bool = False,
    threshold: float = DEFAULT_FUZZY_THRESHOLD,
) -> ReplaceResult:
    """
    Replace old_text in content. A unique exact occurrence is replaced; with
    all=True every exact occurrence is. Without exact hits a single fuzzy
    match may be replaced, re-indented to the file. count=0 means nothing
    was replaced (missing or ambiguous).
    """
    if not old_text:
        return ReplaceResult(content=content, count=0)

    count = content.count(old_text)
    if count > 0:
        if all:
            return ReplaceResult(content=content.replace(old_text, new_text), count=count)
        if count == 1:
            return ReplaceResult(content=content.replace(old_text, new_text, 1), count=1)
        return ReplaceResult(content=content, count=0)

    if not fuzzy:
        return ReplaceResult(content=content, count=0)

    outcome = find_match(content, old_text, allow_fuzzy=True, threshold=threshold)
    if not isinstance(outcome, FuzzyMatch):
        return ReplaceResult(content=content, count=0)

    adjusted = adjust_indentation(old_text, outcome.actual_text, new_text)
    end = outcome.start + len(outcome.actual_text)
    return ReplaceResult(content=content[: outcome.start] + adjusted + content[end:], count=1)


def normalized_text(text: str) -> str:
    return normalize_to_lf(strip_bom(text)[1])


def replace_error(
    path: str,
    content: str,
    old_text: str,
    *,
    allow_fuzzy: bool = True,
    threshold: float = DEFAULT_FUZZY_THRESHOLD,
) -> EditMatchError:
    """Explain why replace_text made no replacement."""
    outcome = find_match(content, old_text, allow_fuzzy=allow_fuzzy, threshold=threshold)
    if isinstance(outcome, AmbiguousMatch):
        return EditMatchError(
            path,
            old_text,
            allow_fuzzy=allow_fuzzy,
            threshold=threshold,
            occurrences=outcome.occurrences,
            previews=outcome.previews,
        )
    closest = outcome.closest if isinstance(outcome, NoMatch) else None
    fuzzy_matches = outcome.fuzzy_matches if isinstance(outcome, NoMatch) else 0
    return EditMatchError(
        path,
        old_text,
        closest,
        allow_fuzzy=allow_fuzzy,
        threshold=threshold,
        fuzzy_matches=fuzzy_matches,
    )


async def compute_edit_diff(
    fs: FileSystem,
    path: str,
    old_text: str,
    new_text: str,
    *,
    all: bool = False,
    fuzzy: bool = True,
    threshold: float = DEFAULT_FUZZY_THRESHOLD,
) -> DiffResult:
    """Diff a replace-mode edit would produce, without writing."""
    content = normalized_text(await fs.read(path))
    old_norm, new_norm = normalize_to_lf(old_text), normalize_to_lf(new_text)
    result = replace_text(
        content, old_norm, new_norm, fuzzy=fuzzy, all=all, threshold=threshold
    )
    if result.count == 0:
        raise replace_error(
            path, content, old_norm, allow_fuzzy=fuzzy, threshold=threshold
        )
    return generate_diff_string(content, result.content)


async def compute_patch_diff(inp: PatchInput, options: ApplyPatchOptions) -> DiffResult:
    """Unified diff a patch-mode edit would produce, without writing."""
    fs = options.fs or default_file_system(options.cwd)
    result = await preview_patch(inp, replace(options, fs=fs))
    change = result.change

    old = change.old_content or ""
    new = change.new_content or ""
    if change.type == Operation.DELETE:
        old = await fs.read(inp.path)
    return generate_unified_diff_string(normalized_text(old), normalized_text(new))
