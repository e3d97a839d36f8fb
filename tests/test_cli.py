from __future__ import annotations

from pathlib import Path

import pytest
from click.testing import CliRunner

from diffsmith.cli import main


@pytest.fixture(autouse=True)
def _clear_edit_env(monkeypatch):
    for name in (
        "DIFFSMITH_EDIT_VARIANT",
        "DIFFSMITH_EDIT_FUZZY",
        "DIFFSMITH_EDIT_FUZZY_THRESHOLD",
    ):
        monkeypatch.delenv(name, raising=False)


def test_cli_patch_update_from_file(tmp_path: Path):
    (tmp_path / "m.py").write_text("def f():\n    return 1\n", encoding="utf-8")
    diff_path = tmp_path / "change.diff"
    diff_path.write_text("@@ def f():\n-    return 1\n+    return 2\n", encoding="utf-8")

    result = CliRunner().invoke(
        main, ["patch", str(tmp_path), "m.py", "--diff-file", str(diff_path)]
    )

    assert result.exit_code == 0, result.output
    assert "Updated m.py" in result.output
    assert (tmp_path / "m.py").read_text(encoding="utf-8") == "def f():\n    return 2\n"


def test_cli_patch_create_from_stdin(tmp_path: Path):
    result = CliRunner().invoke(
        main,
        ["patch", str(tmp_path), "new.txt", "--op", "create", "--diff-file", "-"],
        input="hello\n",
    )

    assert result.exit_code == 0, result.output
    assert "Created new.txt" in result.output
    assert (tmp_path / "new.txt").read_text(encoding="utf-8") == "hello\n"


def test_cli_patch_requires_diff_unless_delete(tmp_path: Path):
    (tmp_path / "gone.txt").write_text("x\n", encoding="utf-8")
    runner = CliRunner()

    result = runner.invoke(main, ["patch", str(tmp_path), "gone.txt"])
    assert result.exit_code == 2
    assert "--diff-file is required for update" in result.output

    result = runner.invoke(main, ["patch", str(tmp_path), "gone.txt", "--op", "delete"])
    assert result.exit_code == 0, result.output
    assert not (tmp_path / "gone.txt").exists()


def test_cli_replace_and_error_exit_code(tmp_path: Path):
    (tmp_path / "m.py").write_text("a = 1\n", encoding="utf-8")
    runner = CliRunner()

    result = runner.invoke(
        main, ["replace", str(tmp_path), "m.py", "--old", "a = 1", "--new", "a = 2"]
    )
    assert result.exit_code == 0, result.output
    assert "Successfully replaced text in m.py." in result.output
    assert (tmp_path / "m.py").read_text(encoding="utf-8") == "a = 2\n"

    result = runner.invoke(
        main, ["replace", str(tmp_path), "missing.py", "--old", "a", "--new", "b"]
    )
    assert result.exit_code == 1
    assert "File not found: missing.py" in result.output


def test_cli_uses_config_file(tmp_path: Path):
    (tmp_path / "m.py").write_text("a  =  1\n", encoding="utf-8")
    config = tmp_path / "settings.yaml"
    config.write_text("edit:\n  fuzzy_match: false\n", encoding="utf-8")

    result = CliRunner().invoke(
        main,
        ["--config", str(config), "replace", str(tmp_path), "m.py", "--old", "a = 1", "--new", "a = 2"],
    )

    assert result.exit_code == 1
    assert "fuzzy matching is disabled" in result.output
