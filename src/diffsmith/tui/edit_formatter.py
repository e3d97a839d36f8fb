from __future__ import annotations

import json
import typing

import pydantic
from rich import console as rich_console
from rich import syntax as rich_syntax
from rich import text as rich_text

from diffsmith import settings as diffsmith_settings
from diffsmith.patch import FileDiagnostics
from diffsmith.tools import EditToolDetails, EditToolResponse
from diffsmith.tui import styles as tui_styles
from diffsmith.tui.base import BaseToolCallFormatter, ToolCallFormatterManager


class _EditToolCallFormatterOptions(pydantic.BaseModel):
    max_diff_lines: int = 200
    show_diagnostics: bool = True


def _truncate_lines(text: str, max_lines: int) -> str:
    lines = text.splitlines()
    if max_lines <= 0 or len(lines) <= max_lines:
        return text
    hidden = len(lines) - max_lines
    return "\n".join(lines[:max_lines] + [f"... ({hidden} more lines)"])


def _replace_as_diff(old_text: str, new_text: str) -> str:
    removed = [f"-{line}" for line in old_text.splitlines()]
    added = [f"+{line}" for line in new_text.splitlines()]
    return "\n".join(removed + added)


@ToolCallFormatterManager.register("edit")
class EditToolCallFormatter(BaseToolCallFormatter):
    def _parse_options(
        self, config: diffsmith_settings.ToolCallFormatter | None
    ) -> _EditToolCallFormatterOptions:
        if config is None or not config.options:
            return _EditToolCallFormatterOptions()
        return _EditToolCallFormatterOptions.model_validate(config.options)

    def _coerce_arguments(self, arguments: typing.Any) -> dict[str, typing.Any]:
        if isinstance(arguments, pydantic.BaseModel):
            return arguments.model_dump()
        if isinstance(arguments, str):
            stripped = arguments.strip()
            if stripped.startswith("{"):
                try:
                    parsed = json.loads(stripped)
                except json.JSONDecodeError:
                    return {"diff": arguments}
                if isinstance(parsed, dict):
                    return parsed
            return {"diff": arguments}
        if isinstance(arguments, dict):
            return arguments
        return {}

    def _coerce_result(self, result: typing.Any) -> EditToolResponse:
        if isinstance(result, EditToolResponse):
            return result
        if isinstance(result, pydantic.BaseModel):
            return EditToolResponse.model_validate(result.model_dump())
        if isinstance(result, dict):
            return EditToolResponse.model_validate(result)
        if result is None:
            return EditToolResponse(text="")
        return EditToolResponse(text=str(result))

    def format_input(
        self,
        tool_name: str,
        arguments: typing.Any,
        config: diffsmith_settings.ToolCallFormatter | None,
    ) -> rich_console.RenderableType | None:
        args = self._coerce_arguments(arguments)
        opts = self._parse_options(config)

        header = self.header(tool_name, config)
        path = args.get("path")
        if path:
            header.append(" ")
            header.append(str(path), style=tui_styles.TOOL_CALL_KV_KEY_STYLE)
        op = args.get("op")
        if op and op != "update":
            header.append(f" ({op})", style=tui_styles.TOOL_CALL_META_STYLE)
        rename = args.get("rename")
        if rename:
            header.append(f" -> {rename}", style=tui_styles.TOOL_CALL_META_STYLE)

        if "old_text" in args or "new_text" in args:
            content = _replace_as_diff(
                str(args.get("old_text") or ""), str(args.get("new_text") or "")
            )
            if args.get("all"):
                header.append(" (all)", style=tui_styles.TOOL_CALL_META_STYLE)
        else:
            content = str(args.get("diff") or "")

        if not content:
            return header
        body = rich_syntax.Syntax(_truncate_lines(content, opts.max_diff_lines), "diff")
        return rich_console.Group(header, body)

    def _format_diagnostics(self, diagnostics: FileDiagnostics) -> rich_text.Text:
        style = (
            tui_styles.DIAGNOSTICS_ERROR_STYLE
            if diagnostics.errored
            else tui_styles.DIAGNOSTICS_HEADER_STYLE
        )
        out = rich_text.Text()
        out.append(diagnostics.summary or diagnostics.server, style=style)
        for message in diagnostics.messages:
            out.append("\n  ")
            out.append(message, style=tui_styles.DIAGNOSTICS_MESSAGE_STYLE)
        return out

    def format_output(
        self,
        tool_name: str,
        result: typing.Any,
        config: diffsmith_settings.ToolCallFormatter | None,
    ) -> rich_console.RenderableType | None:
        resp = self._coerce_result(result)
        opts = self._parse_options(config)
        details = resp.details or EditToolDetails()

        header = self.header(tool_name, config, suffix=" => ")
        body = rich_text.Text(resp.text or "", no_wrap=False)
        if resp.is_error:
            body.stylize(tui_styles.TOOL_CALL_ERROR_STYLE)

        parts: list[rich_console.RenderableType] = [header, body]
        if details.diff:
            parts.append(
                rich_syntax.Syntax(_truncate_lines(details.diff, opts.max_diff_lines), "diff")
            )
        if details.diagnostics is not None and opts.show_diagnostics:
            parts.append(self._format_diagnostics(details.diagnostics))
        return rich_console.Group(*parts)
