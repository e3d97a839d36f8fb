from __future__ import annotations

import posixpath
from dataclasses import dataclass, replace
from difflib import SequenceMatcher
from pathlib import Path
from typing import List, Optional, Tuple, Union

from diffsmith.logger import logger

from .fs import FileSystem, LocalFileSystem
from .fuzzy import (
    CONFIDENCE_EXACT,
    DEFAULT_FUZZY_THRESHOLD,
    closest_sequence,
    find_context_line,
    seek_sequence,
)
from .models import (
    ApplyPatchError,
    ApplyPatchResult,
    DiffHunk,
    FileChange,
    Operation,
    PatchInput,
    SequenceSearchResult,
)
from .normalize import normalize_create_content
from .parser import ensure_single_file, parse_hunks
from .text import (
    adjust_indentation,
    detect_line_ending,
    normalize_to_lf,
    restore_line_endings,
    strip_bom,
)

# Lines of the expected block quoted back in "not found" errors.
MAX_QUOTED_LINES = 12


@dataclass
class ApplyPatchOptions:
    cwd: Union[str, Path] = "."
    fs: Optional[FileSystem] = None
    fuzzy_threshold: float = DEFAULT_FUZZY_THRESHOLD
    allow_fuzzy: bool = True
    dry_run: bool = False


def default_file_system(cwd: Union[str, Path]) -> LocalFileSystem:
    return LocalFileSystem(Path(cwd))


def _quote(lines: List[str]) -> str:
    shown = lines[:MAX_QUOTED_LINES]
    out = [f"  | {line}" for line in shown]
    if len(lines) > len(shown):
        out.append(f"  | ... ({len(lines) - len(shown)} more lines)")
    return "\n".join(out)


class _HunkApplier:
    """Applies parsed hunks in order to a list of LF lines, in memory."""

    def __init__(
        self,
        path: str,
        lines: List[str],
        *,
        allow_fuzzy: bool,
        threshold: float,
    ) -> None:
        self.path = path
        self.lines = lines
        self.allow_fuzzy = allow_fuzzy
        self.threshold = threshold
        self.cursor = 0
        self.warnings: List[str] = []

    def apply(self, hunks: List[DiffHunk]) -> None:
        for idx, hunk in enumerate(hunks, start=1):
            self._apply_hunk(idx, hunk)

    # Anchors

    def _resolve_anchor(self, hunk: DiffHunk) -> Tuple[Optional[int], Optional[str]]:
        """
        Walk hierarchical anchors outermost first. Returns (index, problem);
        problem describes a missing or ambiguous anchor.
        """
        pos = self.cursor
        index: Optional[int] = None
        contexts = hunk.contexts
        for depth, ctx in enumerate(contexts):
            res = find_context_line(
                self.lines, ctx, pos, allow_fuzzy=self.allow_fuzzy, threshold=self.threshold
            )
            if not res.found and depth == 0 and pos > 0:
                res = find_context_line(
                    self.lines, ctx, 0, allow_fuzzy=self.allow_fuzzy, threshold=self.threshold
                )
            if not res.found:
                return None, f"Could not find context line '{ctx.strip()}' in {self.path}"
            # Only a top-level, single anchor is judged for ambiguity; nested
            # anchors are scoped by their parent.
            if len(contexts) == 1 and res.match_count > 1:
                return None, (
                    f"Context line '{ctx.strip()}' matches {res.match_count} lines in {self.path}"
                )
            index = res.index
            pos = (res.index or 0) + 1
        return index, None

    # Search

    def _seek(
        self, pattern: List[str], start: int, *, eof: bool, near: Optional[int]
    ) -> SequenceSearchResult:
        return seek_sequence(
            self.lines,
            pattern,
            start,
            eof,
            near=near,
            allow_fuzzy=self.allow_fuzzy,
            threshold=self.threshold,
        )

    def _not_found(self, idx: int, hunk: DiffHunk, detail: Optional[str]) -> ApplyPatchError:
        parts = [
            f"Failed to find expected lines in {self.path} (hunk {idx}):",
            _quote(hunk.old_lines),
        ]
        if detail:
            parts.append(detail)
        closest = closest_sequence(self.lines, hunk.old_lines)
        if closest is not None and closest[1] > 0:
            start, score = closest
            actual = self.lines[start : start + len(hunk.old_lines)]
            parts.append(
                f"Closest match ({round(score * 100)}% similar) at line {start + 1}:"
            )
            parts.append(_quote(actual))
        parts.append("Re-read the file and make sure context and removed lines match exactly.")
        return ApplyPatchError("\n".join(parts))

    def _search(
        self,
        old: List[str],
        hunk: DiffHunk,
        anchor: Optional[int],
        hint: Optional[int],
    ) -> Tuple[SequenceSearchResult, bool]:
        """Returns the search result and whether it was found below the anchor."""
        eof = hunk.is_end_of_file
        if anchor is not None:
            res = self._seek(old, anchor, eof=eof, near=None)
            # Without context lines the anchor is the only position evidence.
            if res.found or not hunk.has_context_lines:
                return res, True
        res = self._seek(old, self.cursor, eof=eof, near=hint)
        if not res.found and self.cursor > 0:
            res = self._seek(old, 0, eof=eof, near=hint)
        return res, False

    def _try_variant(
        self,
        idx: int,
        hunk: DiffHunk,
        old: List[str],
        new: List[str],
        anchor: Optional[int],
        anchor_problem: Optional[str],
    ) -> Optional[Tuple[SequenceSearchResult, List[str], List[str]]]:
        hint = hunk.old_start_line - 1 if hunk.old_start_line is not None else None
        res, below_anchor = self._search(old, hunk, anchor, hint)
        if not res.found:
            return None
        disambiguated = below_anchor or hint is not None or hunk.is_end_of_file
        if res.match_count > 1 and not disambiguated:
            if anchor_problem:
                raise ApplyPatchError(
                    f"{anchor_problem}, and the changed lines occur "
                    f"{res.match_count} times. Add more context to disambiguate."
                )
            raise ApplyPatchError(
                f"Found {res.match_count} occurrences of hunk {idx} in {self.path}. "
                "Add an @@ context line or more surrounding lines to disambiguate."
            )
        return res, old, new

    def _seek_past_anchor_context(
        self, hunk: DiffHunk, anchor: int
    ) -> Optional[Tuple[SequenceSearchResult, List[str], List[str]]]:
        """
        Match the leading context right at the anchor, then look for the
        changed lines anywhere below it. Only the changed part is replaced,
        so lines the hunk skipped over stay in place.
        """
        lead, _trail = _context_edges(hunk.old_lines, hunk.new_lines)
        if lead == 0 or lead >= len(hunk.old_lines):
            return None
        ctx = self._seek(hunk.old_lines[:lead], anchor, eof=False, near=None)
        if not ctx.found or (ctx.index or 0) > anchor + 1:
            return None
        old, new = hunk.old_lines[lead:], hunk.new_lines[lead:]
        res = self._seek(old, (ctx.index or 0) + lead, eof=hunk.is_end_of_file, near=None)
        return (res, old, new) if res.found else None

    def _locate(
        self, idx: int, hunk: DiffHunk
    ) -> Tuple[SequenceSearchResult, List[str], List[str]]:
        """
        Returns the search result and the old/new lines actually matched.

        Retry order: the hunk as written, without trailing blank lines, with
        repeated context collapsed, past context matched at the anchor, then
        with leading/trailing context trimmed down to the changed lines.
        """
        anchor, anchor_problem = (None, None)
        if hunk.change_context:
            anchor, anchor_problem = self._resolve_anchor(hunk)

        for old, new in _retry_variants(hunk.old_lines, hunk.new_lines):
            found = self._try_variant(idx, hunk, old, new, anchor, anchor_problem)
            if found is not None:
                return found

        if anchor is not None and hunk.has_context_lines:
            found = self._seek_past_anchor_context(hunk, anchor)
            if found is not None:
                return found

        for old, new in _trimmed_context_variants(hunk.old_lines, hunk.new_lines):
            found = self._try_variant(idx, hunk, old, new, anchor, anchor_problem)
            if found is not None:
                return found

        raise self._not_found(idx, hunk, anchor_problem)

    # Application

    def _insert_position(self, hunk: DiffHunk) -> int:
        if hunk.change_context:
            anchor, problem = self._resolve_anchor(hunk)
            if anchor is None:
                raise ApplyPatchError(problem or f"Could not place insertion in {self.path}")
            return anchor + 1
        if hunk.is_end_of_file:
            return len(self.lines)
        line = hunk.new_start_line if hunk.new_start_line is not None else hunk.old_start_line
        if line is not None:
            pos = line - 1
            if pos > len(self.lines):
                raise ApplyPatchError(
                    f"Line hint {line} is beyond the end of {self.path} "
                    f"({len(self.lines)} lines)"
                )
            return pos
        return len(self.lines)

    def _apply_hunk(self, idx: int, hunk: DiffHunk) -> None:
        if not hunk.old_lines:
            pos = self._insert_position(hunk)
            self.lines[pos:pos] = hunk.new_lines
            self.cursor = pos + len(hunk.new_lines)
            logger.debug("patch.hunk", path=self.path, hunk=idx, insert_at=pos + 1)
            return

        res, old, new = self._locate(idx, hunk)
        start = res.index or 0
        end = start + len(old)
        actual = self.lines[start:end]

        if res.confidence >= CONFIDENCE_EXACT:
            replacement = list(new)
        else:
            replacement = _rebuild_fuzzy(old, actual, new)
            self.warnings.append(
                f"hunk {idx} matched at line {start + 1} with fuzzy matching "
                f"(confidence {res.confidence:.2f})"
            )

        self.lines[start:end] = replacement
        self.cursor = start + len(replacement)
        logger.debug(
            "patch.hunk",
            path=self.path,
            hunk=idx,
            line=start + 1,
            confidence=res.confidence,
            matches=res.match_count,
        )


def _drop_trailing_blanks(
    old: List[str], new: List[str]
) -> Optional[Tuple[List[str], List[str]]]:
    count = 0
    while count < len(old) and not old[len(old) - 1 - count].strip():
        count += 1
    if count == 0 or count == len(old):
        return None
    drop_new = 0
    while drop_new < count and drop_new < len(new) and not new[len(new) - 1 - drop_new].strip():
        drop_new += 1
    return old[: len(old) - count], new[: len(new) - drop_new]


def _hunk_items(old: List[str], new: List[str]) -> List[Tuple[str, str]]:
    """The hunk as ordered (" " | "-" | "+", line) items."""
    items: List[Tuple[str, str]] = []
    for tag, i1, i2, j1, j2 in SequenceMatcher(None, old, new, autojunk=False).get_opcodes():
        if tag == "equal":
            items.extend((" ", line) for line in old[i1:i2])
            continue
        items.extend(("-", line) for line in old[i1:i2])
        items.extend(("+", line) for line in new[j1:j2])
    return items


def _dedupe_repeats(lines: List[str]) -> List[str]:
    """Remove blocks repeated back to back: [a, b, b] -> [a, b], [x, y, x, y] -> [x, y]."""
    out = list(lines)
    size = 1
    while size <= len(out) // 2:
        removed = False
        i = 0
        while i + 2 * size <= len(out):
            if out[i : i + size] == out[i + size : i + 2 * size]:
                del out[i + size : i + 2 * size]
                removed = True
            else:
                i += 1
        size = 1 if removed else size + 1
    return out


def _collapse_repeated_context(
    old: List[str], new: List[str]
) -> Optional[Tuple[List[str], List[str]]]:
    items = _hunk_items(old, new)
    out: List[Tuple[str, str]] = []
    changed = False
    i = 0
    while i < len(items):
        if items[i][0] != " ":
            out.append(items[i])
            i += 1
            continue
        j = i
        while j < len(items) and items[j][0] == " ":
            j += 1
        run = [line for _kind, line in items[i:j]]
        collapsed = _dedupe_repeats(run)
        changed = changed or len(collapsed) != len(run)
        out.extend((" ", line) for line in collapsed)
        i = j
    if not changed:
        return None
    return (
        [line for kind, line in out if kind != "+"],
        [line for kind, line in out if kind != "-"],
    )


def _retry_variants(old: List[str], new: List[str]) -> List[Tuple[List[str], List[str]]]:
    variants = [(old, new)]
    for candidate in (_drop_trailing_blanks(old, new), _collapse_repeated_context(old, new)):
        if candidate is not None and candidate not in variants:
            variants.append(candidate)
    return variants


def _context_edges(old: List[str], new: List[str]) -> Tuple[int, int]:
    """Number of leading and trailing context lines around the change."""
    ops = SequenceMatcher(None, old, new, autojunk=False).get_opcodes()
    if all(tag == "equal" for tag, *_rest in ops):
        return 0, 0
    lead = ops[0][2] if ops[0][0] == "equal" else 0
    trail = ops[-1][2] - ops[-1][1] if ops[-1][0] == "equal" else 0
    return lead, trail


def _trimmed_context_variants(
    old: List[str], new: List[str]
) -> List[Tuple[List[str], List[str]]]:
    """
    The hunk with leading and/or trailing context dropped, least trimming
    first. The last candidate is the changed lines alone.
    """
    lead, trail = _context_edges(old, new)
    out: List[Tuple[List[str], List[str]]] = []
    for total in range(1, lead + trail + 1):
        for head in range(min(lead, total), max(0, total - trail) - 1, -1):
            tail = total - head
            trimmed_old = old[head : len(old) - tail]
            if trimmed_old:
                out.append((trimmed_old, new[head : len(new) - tail]))
    return out


def _rebuild_fuzzy(old: List[str], actual: List[str], new: List[str]) -> List[str]:
    """
    Build replacement lines for a fuzzy match: unchanged lines keep the
    file's text, changed lines are re-indented to the file's indentation.
    """
    if not new:
        return []
    adjusted = adjust_indentation("\n".join(old), "\n".join(actual), "\n".join(new)).split("\n")
    out: List[str] = []
    for tag, i1, i2, j1, j2 in SequenceMatcher(None, old, new, autojunk=False).get_opcodes():
        if tag == "equal":
            out.extend(actual[i1:i2])
        else:
            out.extend(adjusted[j1:j2])
    return out


def apply_hunks_to_content(
    path: str,
    content: str,
    hunks: List[DiffHunk],
    *,
    allow_fuzzy: bool = True,
    threshold: float = DEFAULT_FUZZY_THRESHOLD,
) -> Tuple[str, List[str]]:
    """Apply hunks to LF content. Returns (new content, warnings)."""
    trailing_newline = content.endswith("\n")
    lines = content.split("\n") if content else []
    if trailing_newline:
        lines.pop()

    applier = _HunkApplier(path, lines, allow_fuzzy=allow_fuzzy, threshold=threshold)
    applier.apply(hunks)

    result = "\n".join(applier.lines)
    if applier.lines and (trailing_newline or not content):
        result += "\n"
    return result, applier.warnings


def _parent(path: str) -> Optional[str]:
    parent = posixpath.dirname(path.replace("\\", "/"))
    return parent or None


async def _apply_create(inp: PatchInput, fs: FileSystem, dry_run: bool) -> ApplyPatchResult:
    if inp.diff is None:
        raise ApplyPatchError("create requires diff")
    if await fs.exists(inp.path):
        raise ApplyPatchError(f"File already exists: {inp.path}")
    content = normalize_to_lf(normalize_create_content(inp.diff))
    if not content.endswith("\n"):
        content += "\n"
    if not dry_run:
        parent = _parent(inp.path)
        if parent:
            await fs.mkdir(parent)
        await fs.write(inp.path, content)
    return ApplyPatchResult(
        change=FileChange(type=Operation.CREATE, old_path=inp.path, new_content=content)
    )


async def _apply_delete(inp: PatchInput, fs: FileSystem, dry_run: bool) -> ApplyPatchResult:
    if not await fs.exists(inp.path):
        raise ApplyPatchError(f"File not found: {inp.path}")
    if not dry_run:
        await fs.delete(inp.path)
    return ApplyPatchResult(change=FileChange(type=Operation.DELETE, old_path=inp.path))


async def _apply_update(
    inp: PatchInput, fs: FileSystem, options: ApplyPatchOptions
) -> ApplyPatchResult:
    if inp.diff is None:
        raise ApplyPatchError("update requires diff")
    ensure_single_file(inp.diff)
    if not await fs.exists(inp.path):
        raise ApplyPatchError(f"File not found: {inp.path}")
    if inp.rename is not None and await fs.exists(inp.rename):
        raise ApplyPatchError(f"Cannot move {inp.path} to {inp.rename}: destination exists")

    hunks = parse_hunks(inp.diff)

    raw = await fs.read(inp.path)
    bom, text = strip_bom(raw)
    ending = detect_line_ending(text)
    content = normalize_to_lf(text)

    new_content, warnings = apply_hunks_to_content(
        inp.path,
        content,
        hunks,
        allow_fuzzy=options.allow_fuzzy,
        threshold=options.fuzzy_threshold,
    )
    if new_content == content and inp.rename is None:
        raise ApplyPatchError(
            f"Patch produced no changes to {inp.path}. The diff may already be applied."
        )

    final = bom + restore_line_endings(new_content, ending)
    if not options.dry_run:
        if inp.rename is not None:
            parent = _parent(inp.rename)
            if parent:
                await fs.mkdir(parent)
            await fs.write(inp.rename, final)
            await fs.delete(inp.path)
        else:
            await fs.write(inp.path, final)

    return ApplyPatchResult(
        change=FileChange(
            type=Operation.UPDATE,
            old_path=inp.path,
            new_path=inp.rename,
            old_content=raw,
            new_content=final,
        ),
        warnings=warnings,
    )


async def apply_patch(inp: PatchInput, options: ApplyPatchOptions) -> ApplyPatchResult:
    """
    Apply one create/update/delete operation. Updates are resolved fully in
    memory and written once; any failure leaves the file system untouched.
    """
    fs = options.fs or default_file_system(options.cwd)

    if inp.rename is not None:
        if inp.op != Operation.UPDATE:
            raise ApplyPatchError(f"rename is only supported for update, not {inp.op.value}")
        if posixpath.normpath(inp.rename) == posixpath.normpath(inp.path):
            raise ApplyPatchError(f"rename target is the same as the source path: {inp.path}")

    logger.debug(
        "apply_patch", path=inp.path, op=inp.op.value, rename=inp.rename, dry_run=options.dry_run
    )

    if inp.op == Operation.CREATE:
        return await _apply_create(inp, fs, options.dry_run)
    if inp.op == Operation.DELETE:
        return await _apply_delete(inp, fs, options.dry_run)
    return await _apply_update(inp, fs, options)


async def preview_patch(inp: PatchInput, options: ApplyPatchOptions) -> ApplyPatchResult:
    """Resolve the patch like apply_patch without writing anything."""
    return await apply_patch(inp, replace(options, dry_run=True))
