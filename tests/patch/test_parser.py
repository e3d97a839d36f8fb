import pytest

from diffsmith.patch import ApplyPatchError, ParseError
from diffsmith.patch.models import DiffHunk
from diffsmith.patch.parser import (
    count_file_markers,
    parse_hunks,
    strip_line_number_prefixes,
)


def test_unified_header_scenario() -> None:
    hunks = parse_hunks("@@ -10,3 +10,3 @@\n context\n-old\n+new\n context")

    assert len(hunks) == 1
    hunk = hunks[0]
    assert hunk.old_start_line == 10
    assert hunk.new_start_line == 10
    assert hunk.old_lines == ["context", "old", "context"]
    assert hunk.new_lines == ["context", "new", "context"]
    assert hunk.change_context is None
    assert hunk.has_context_lines


@pytest.mark.parametrize(
    "header,old_start,new_start",
    [
        ("@@ -1 +1 @@", 1, 1),
        ("@@ -7,2 +9,4 @@", 7, 9),
        ("@@ -120,0 +121,3 @@ def foo():", 120, 121),
    ],
)
def test_unified_header_line_numbers(header: str, old_start: int, new_start: int) -> None:
    hunk = parse_hunks(f"{header}\n-a\n+b")[0]
    assert hunk.old_start_line == old_start
    assert hunk.new_start_line == new_start


def test_unified_header_trailing_text_is_context() -> None:
    hunk = parse_hunks("@@ -3,2 +3,2 @@ def foo():\n-a\n+b")[0]
    assert hunk.change_context == "def foo():"


def test_unified_header_rejects_zero_line() -> None:
    with pytest.raises(ParseError) as exc_info:
        parse_hunks("@@ -0,0 +1,2 @@\n+a\n+b")
    assert exc_info.value.line_number == 1


def test_wrapped_patch_with_context_scenario() -> None:
    hunks = parse_hunks("*** Begin Patch\n@@ foo\n-a\n+b\n*** End Patch")

    assert len(hunks) == 1
    assert hunks[0].change_context == "foo"
    assert hunks[0].old_lines == ["a"]
    assert hunks[0].new_lines == ["b"]


def test_empty_headers() -> None:
    for header in ("@@", "@@ @@"):
        hunk = parse_hunks(f"{header}\n ctx\n-a\n+b")[0]
        assert hunk.change_context is None
        assert hunk.old_start_line is None


def test_hunk_without_header_is_accepted() -> None:
    hunk = parse_hunks(" ctx\n-a\n+b")[0]
    assert hunk.old_lines == ["ctx", "a"]
    assert hunk.new_lines == ["ctx", "b"]


@pytest.mark.parametrize(
    "header,line",
    [
        ("@@ line 42", 42),
        ("@@ lines 5-9", 5),
        ("@@ Line 3", 3),
        ("@@ top of file", 1),
        ("@@ beginning of file", 1),
    ],
)
def test_line_hint_headers(header: str, line: int) -> None:
    hunk = parse_hunks(f"{header}\n-a\n+b")[0]
    assert hunk.old_start_line == line
    assert hunk.new_start_line == line
    assert hunk.change_context is None


def test_header_without_space_is_context() -> None:
    hunk = parse_hunks("@@def foo():\n-a\n+b")[0]
    assert hunk.change_context == "def foo():"


def test_nested_anchors_accumulate() -> None:
    diff = "@@ class Service\n@@\n@@     def run(self):\n-        return 1\n+        return 2"
    hunk = parse_hunks(diff)[0]

    assert hunk.change_context == "class Service\n    def run(self):"
    assert hunk.contexts == ["class Service", "    def run(self):"]
    assert hunk.old_lines == ["        return 1"]


def test_multiple_hunks() -> None:
    diff = "@@ first\n-a\n+b\n\n@@ second\n-c\n+d\n"
    hunks = parse_hunks(diff)

    assert [h.change_context for h in hunks] == ["first", "second"]
    assert hunks[0].old_lines == ["a"]
    assert hunks[1].new_lines == ["d"]


def test_hunks_without_blank_separator() -> None:
    hunks = parse_hunks("@@ one\n-a\n+b\n@@ two\n-c\n+d")
    assert len(hunks) == 2


def test_end_of_file_marker() -> None:
    hunks = parse_hunks("@@\n last\n+appended\n*** End of File")

    assert len(hunks) == 1
    assert hunks[0].is_end_of_file
    assert hunks[0].new_lines == ["last", "appended"]


def test_end_of_file_marker_without_content_rejected() -> None:
    with pytest.raises(ParseError):
        parse_hunks("@@ foo\n*** End of File")


def test_gap_markers_are_not_content() -> None:
    hunk = parse_hunks("@@\n a\n...\n-b\n+c\n" + chr(0x2026) + "\n d")[0]

    assert hunk.old_lines == ["a", "b", "d"]
    assert hunk.new_lines == ["a", "c", "d"]


def test_blank_line_is_blank_context() -> None:
    hunk = parse_hunks("@@\n a\n\n-b\n+c")[0]
    assert hunk.old_lines == ["a", "", "b"]
    assert hunk.new_lines == ["a", "", "c"]


def test_line_without_prefix_is_implicit_context() -> None:
    hunk = parse_hunks("@@\nx = 1\n-y = 2\n+y = 3")[0]
    assert hunk.old_lines == ["x = 1", "y = 2"]
    assert hunk.new_lines == ["x = 1", "y = 3"]


def test_trailing_bare_header_ends_parsing() -> None:
    hunks = parse_hunks("@@\n-a\n+b\n@@\n\n")
    assert len(hunks) == 1


def test_crlf_input_is_normalized() -> None:
    hunk = parse_hunks("@@\r\n ctx\r\n-a\r\n+b\r\n")[0]
    assert hunk.old_lines == ["ctx", "a"]


@pytest.mark.parametrize("diff", ["", "\n\n", "*** Begin Patch\n*** End Patch"])
def test_empty_diff_rejected(diff: str) -> None:
    with pytest.raises(ParseError, match="any hunks"):
        parse_hunks(diff)


def test_header_only_hunk_followed_by_header_rejected() -> None:
    with pytest.raises(ParseError):
        parse_hunks("@@ foo\n@@@ bar\n-a")


def test_parse_error_message_includes_line_number() -> None:
    err = ParseError("bad", 7)
    assert str(err) == "Line 7: bad"
    assert err.message == "bad"
    assert err.line_number == 7


def test_multi_file_markers_scenario() -> None:
    diff = "*** Update File: a.ts\n@@\n-a\n+b\ndiff --git b.ts b.ts\n@@\n-c\n+d"
    assert count_file_markers(diff) == 2
    with pytest.raises(ApplyPatchError, match="2 file markers"):
        parse_hunks(diff)


def test_two_git_headers_for_distinct_files_rejected() -> None:
    diff = (
        "diff --git a/x.py b/x.py\n@@\n-a\n+b\n"
        "diff --git a/y.py b/y.py\n@@\n-c\n+d"
    )
    with pytest.raises(ApplyPatchError):
        parse_hunks(diff)


def test_same_file_markers_count_once() -> None:
    diff = "diff --git a/x.py b/x.py\n*** Update File: x.py\n@@\n-a\n+b"
    assert count_file_markers(diff) == 1
    assert len(parse_hunks(diff)) == 1


def test_marker_text_inside_content_is_ignored() -> None:
    diff = "@@\n-*** Update File: a.py\n+*** Update File: b.py"
    assert count_file_markers(diff) == 0


def test_line_number_prefixes_are_stripped() -> None:
    hunk = parse_hunks("@@\n 10  def foo():\n-11      return 1\n+11      return 2")[0]
    # The separator run after the number is consumed, indentation included.
    assert hunk.old_lines == ["def foo():", "return 1"]
    assert hunk.new_lines == ["def foo():", "return 2"]


def test_non_sequential_numbers_are_kept() -> None:
    hunk = DiffHunk(old_lines=["1 a", "7 b", "30 c"], new_lines=[])
    strip_line_number_prefixes(hunk)
    assert hunk.old_lines == ["1 a", "7 b", "30 c"]


def test_too_few_numbered_lines_are_kept() -> None:
    hunk = DiffHunk(old_lines=["1 a", "b", "c", "d"], new_lines=[])
    strip_line_number_prefixes(hunk)
    assert hunk.old_lines == ["1 a", "b", "c", "d"]
