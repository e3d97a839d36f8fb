import pytest

from diffsmith.patch.text import (
    BOM,
    CRLF,
    LF,
    adjust_indentation,
    build_indent_profile,
    convert_leading_tabs_to_spaces,
    detect_line_ending,
    normalize_for_fuzzy,
    normalize_to_lf,
    normalize_unicode,
    restore_line_endings,
    strip_bom,
)


@pytest.mark.parametrize(
    "text",
    ["a\nb\n", "a\r\nb\r\n", "", "single line", "\r\n", "x\r\ny"],
)
def test_line_ending_round_trip(text: str) -> None:
    assert restore_line_endings(normalize_to_lf(text), detect_line_ending(text)) == text


def test_detect_line_ending_uses_first_break() -> None:
    assert detect_line_ending("a\r\nb\nc") == CRLF
    assert detect_line_ending("a\nb\r\nc") == LF
    assert detect_line_ending("no breaks") == LF


def test_normalize_to_lf_handles_lone_cr() -> None:
    assert normalize_to_lf("a\r\nb\rc") == "a\nb\nc"


def test_strip_bom() -> None:
    assert strip_bom(BOM + "hello") == (BOM, "hello")
    assert strip_bom("hello") == ("", "hello")


def test_normalize_unicode_folds_typographic_punctuation() -> None:
    text = "  " + chr(0x201C) + "hi" + chr(0x201D) + " " + chr(0x2014) + " it" + chr(0x2019) + "s  "
    assert normalize_unicode(text) == '"hi" - it\'s'


def test_normalize_for_fuzzy_collapses_whitespace() -> None:
    assert normalize_for_fuzzy("\tfoo   (a,\t b)  ") == "foo (a, b)"
    assert normalize_for_fuzzy("   ") == ""
    assert normalize_for_fuzzy("x = `y`") == "x = 'y'"


def test_build_indent_profile_unit() -> None:
    profile = build_indent_profile("a\n    b\n        c\n")
    assert profile.space_only
    assert profile.unit == 4
    assert profile.min == 0

    tabs = build_indent_profile("\ta\n\t\tb")
    assert tabs.tab_only
    assert tabs.unit == 1


def test_convert_leading_tabs_to_spaces() -> None:
    assert convert_leading_tabs_to_spaces("\ta\n\t\tb\nc", 4) == "    a\n        b\nc"


def test_adjust_indentation_shifts_by_uniform_delta() -> None:
    old = "if x:\n    return 1"
    actual = "    if x:\n        return 1"
    new = "if x:\n    return 2"
    assert adjust_indentation(old, actual, new) == "    if x:\n        return 2"


def test_adjust_indentation_dedents() -> None:
    old = "        a()\n        b()"
    actual = "    a()\n    b()"
    new = "        a()\n        c()"
    assert adjust_indentation(old, actual, new) == "    a()\n    c()"


def test_adjust_indentation_keeps_non_uniform_delta() -> None:
    old = "a\nb"
    actual = "  a\n    b"
    new = "a\nc"
    assert adjust_indentation(old, actual, new) == new


def test_adjust_indentation_ignores_pure_indentation_edits() -> None:
    old = "a\nb"
    actual = "  a\n  b"
    new = "    a\n    b"
    assert adjust_indentation(old, actual, new) == new


def test_adjust_indentation_converts_tabs_to_file_spaces() -> None:
    old = "\tif x:\n\t\treturn 1"
    actual = "    if x:\n        return 1"
    new = "\tif x:\n\t\treturn 2"
    assert adjust_indentation(old, actual, new) == "    if x:\n        return 2"
