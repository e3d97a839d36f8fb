import pytest

from diffsmith.patch import (
    ApplyPatchOptions,
    EditMatchError,
    InMemoryFileSystem,
    Operation,
    PatchInput,
    compute_edit_diff,
    compute_patch_diff,
    generate_diff_string,
    generate_unified_diff_string,
    replace_error,
    replace_text,
)


def test_unified_diff_has_no_file_headers() -> None:
    result = generate_unified_diff_string("a\nb\nc\n", "a\nB\nc\n")

    lines = result.diff.split("\n")
    assert lines[0].startswith("@@ -1,3 +1,3 @@")
    assert "-b" in lines
    assert "+B" in lines
    assert not any(line.startswith(("--- ", "+++ ")) for line in lines)
    assert result.first_changed_line == 2


def test_unified_diff_identical_input() -> None:
    result = generate_unified_diff_string("a\n", "a\n")
    assert result.diff == ""
    assert result.first_changed_line is None


def test_numbered_diff_format() -> None:
    old = "".join(f"l{i}\n" for i in range(1, 6))
    new = old.replace("l3\n", "L3\n")
    result = generate_diff_string(old, new)

    assert result.diff.split("\n") == [
        " 1 l1",
        " 2 l2",
        "-3 l3",
        "+3 L3",
        " 4 l4",
        " 5 l5",
    ]
    assert result.first_changed_line == 3


def test_numbered_diff_separates_groups() -> None:
    old_lines = [f"line{i}" for i in range(1, 31)]
    new_lines = list(old_lines)
    new_lines[1] = "changed2"
    new_lines[27] = "changed28"
    result = generate_diff_string("\n".join(old_lines), "\n".join(new_lines))

    assert "\n...\n" in result.diff
    assert "+ 2 changed2" in result.diff
    assert "+28 changed28" in result.diff


def test_numbered_diff_identical_input() -> None:
    assert generate_diff_string("a\nb", "a\nb").diff == ""


def test_first_changed_line_for_pure_deletion_at_end() -> None:
    result = generate_diff_string("a\nb\nc", "a\nb")
    assert result.first_changed_line == 2


def test_form_feed_does_not_split_lines() -> None:
    old = "a\x0cb\nc\nd\n"
    new = "a\x0cb\nc\nD\n"

    result = generate_diff_string(old, new)

    assert result.first_changed_line == 3
    assert " 1 a\x0cb" in result.diff.split("\n")
    assert " 2 b" not in result.diff
    assert generate_unified_diff_string(old, new).first_changed_line == 3


def test_replace_text_unique_and_all() -> None:
    assert replace_text("a b a", "b", "c").content == "a c a"

    ambiguous = replace_text("a b a", "a", "x")
    assert ambiguous.count == 0
    assert ambiguous.content == "a b a"

    everything = replace_text("a b a", "a", "x", all=True)
    assert (everything.content, everything.count) == ("x b x", 2)


def test_replace_text_fuzzy_reindents() -> None:
    content = "class A:\n    def f(self):\n        return 1\n"
    result = replace_text(
        content, "def f(self):\n    return 1", "def f(self):\n    return 2"
    )

    assert result.count == 1
    assert result.content == "class A:\n    def f(self):\n        return 2\n"


def test_replace_text_fuzzy_disabled() -> None:
    content = "class A:\n    def f(self):\n        return 1\n"
    result = replace_text(
        content, "def f(self):\n    return 1", "x", fuzzy=False
    )
    assert result.count == 0


def test_replace_text_empty_old_text() -> None:
    assert replace_text("abc", "", "x").count == 0


def test_replace_error_for_three_occurrences() -> None:
    content = "foo()\nbar()\nfoo()\nbaz()\nfoo()\n"
    err = replace_error("m.py", content, "foo()")

    assert isinstance(err, EditMatchError)
    assert err.occurrences == 3
    assert len(err.previews) == 3
    message = str(err)
    assert message.startswith("Found 3 occurrences in m.py:")
    assert "showing first" not in message
    assert message.endswith("Add more context lines to disambiguate.")


def test_replace_error_caps_previews() -> None:
    content = "foo()\n" * 7
    message = str(replace_error("m.py", content, "foo()"))
    assert "Found 7 occurrences in m.py (showing first 5 of 7):" in message


def test_replace_error_no_match_shows_closest() -> None:
    content = "def compute(a, b):\n    return a + b\n"
    err = replace_error("m.py", content, "def compute(a, c):")

    message = str(err)
    assert message.startswith("Could not find the text to replace in m.py.")
    assert "Closest match" in message
    assert "line 1" in message
    assert "below the required threshold (95%)" in message


def test_replace_error_fuzzy_disabled_mentions_candidates() -> None:
    content = "x  =  1\n"
    message = str(replace_error("m.py", content, "x = 1", allow_fuzzy=False))
    assert "fuzzy matching is disabled" in message


@pytest.mark.asyncio
async def test_compute_edit_diff_does_not_write() -> None:
    fs = InMemoryFileSystem({"f.txt": "a\r\nb\r\n"})
    result = await compute_edit_diff(fs, "f.txt", "b", "c")

    assert "-2 b" in result.diff
    assert "+2 c" in result.diff
    assert fs.files["f.txt"] == "a\r\nb\r\n"


@pytest.mark.asyncio
async def test_compute_edit_diff_raises_match_error() -> None:
    fs = InMemoryFileSystem({"f.txt": "a\n"})
    with pytest.raises(EditMatchError):
        await compute_edit_diff(fs, "f.txt", "zzz", "c")


@pytest.mark.asyncio
async def test_compute_patch_diff_for_update_and_delete() -> None:
    fs = InMemoryFileSystem({"f.txt": "a\nb\n"})

    update = await compute_patch_diff(
        PatchInput(path="f.txt", diff="@@\n-b\n+c"), ApplyPatchOptions(fs=fs)
    )
    assert "-b" in update.diff.split("\n")
    assert "+c" in update.diff.split("\n")

    delete = await compute_patch_diff(
        PatchInput(path="f.txt", op=Operation.DELETE), ApplyPatchOptions(fs=fs)
    )
    assert "-a" in delete.diff.split("\n")
    assert fs.files == {"f.txt": "a\nb\n"}
