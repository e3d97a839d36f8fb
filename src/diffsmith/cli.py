import asyncio
from pathlib import Path
from typing import Any, Dict, Optional, TextIO

import click
from rich import console as rich_console

from diffsmith.logger import configure_logging, init_log_manager, logger
from diffsmith.project import Project, init_project
from diffsmith.tools import EditTool, EditToolResponse
from diffsmith.tui import ToolCallFormatterManager


def _run_edit(project: Project, patch_mode: bool, args: Dict[str, Any]) -> EditToolResponse:
    tool = EditTool(project, patch_mode=patch_mode)
    spec = project.settings.get_tool_spec(tool.name)

    async def _run() -> EditToolResponse:
        return await tool.run(spec, args)

    return asyncio.run(_run())


def _report(ctx: click.Context, resp: EditToolResponse) -> None:
    project: Project = ctx.obj["project"]
    console: rich_console.Console = ctx.obj["console"]
    formatters = ToolCallFormatterManager.from_settings(project.settings)
    rendered = formatters.format_response("edit", resp)
    if rendered is not None:
        console.print(rendered)
    if resp.is_error:
        ctx.exit(1)


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Settings file (YAML or JSON5). Defaults to .diffsmith/config.yaml.",
)
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write debug logs to this file.",
)
@click.pass_context
def main(ctx: click.Context, config_path: Optional[Path], log_file: Optional[Path]) -> None:
    """Apply structured edits to files in a project."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["log_file"] = log_file
    ctx.obj.setdefault("console", rich_console.Console())


def _load_project(ctx: click.Context, project_path: Path) -> Project:
    project = init_project(project_path, settings_path=ctx.obj.get("config_path"))
    init_log_manager()
    configure_logging(project.settings.logging, ctx.obj.get("log_file"))
    ctx.obj["project"] = project
    logger.debug("cli.project", base_path=str(project.base_path))
    return project


@main.command()
@click.argument("project_path", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.argument("path")
@click.option(
    "--op",
    type=click.Choice(["create", "update", "delete"]),
    default="update",
    show_default=True,
)
@click.option("--rename", default=None, help="Move the file after updating it.")
@click.option(
    "--diff-file",
    type=click.File("r", encoding="utf-8"),
    default=None,
    help="Read the diff from FILE, or from stdin with '-'.",
)
@click.pass_context
def patch(
    ctx: click.Context,
    project_path: Path,
    path: str,
    op: str,
    rename: Optional[str],
    diff_file: Optional[TextIO],
) -> None:
    """Apply a structured patch to PATH inside PROJECT_PATH."""
    project = _load_project(ctx, project_path)
    diff = diff_file.read() if diff_file is not None else None
    if diff is None and op != "delete":
        raise click.UsageError(f"--diff-file is required for {op}")
    args = {"path": path, "op": op, "rename": rename, "diff": diff}
    _report(ctx, _run_edit(project, True, args))


@main.command()
@click.argument("project_path", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.argument("path")
@click.option("--old", "old_text", required=True, help="Text to replace.")
@click.option("--new", "new_text", required=True, help="Replacement text.")
@click.option("--all", "replace_all", is_flag=True, help="Replace every occurrence.")
@click.pass_context
def replace(
    ctx: click.Context,
    project_path: Path,
    path: str,
    old_text: str,
    new_text: str,
    replace_all: bool,
) -> None:
    """Replace text in PATH inside PROJECT_PATH."""
    project = _load_project(ctx, project_path)
    args = {"path": path, "old_text": old_text, "new_text": new_text, "all": replace_all}
    _report(ctx, _run_edit(project, False, args))


if __name__ == "__main__":
    main()
