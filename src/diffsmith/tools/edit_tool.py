import asyncio
import math
import os
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from diffsmith.logger import logger
from diffsmith.project import FileChangeModel, FileChangeType, Project
from diffsmith.tools import base as tools_base
from diffsmith.settings import ToolSpec
from diffsmith.settings.models import EDIT_FUZZY_THRESHOLD_DEFAULT
from diffsmith.patch import (
    ApplyPatchOptions,
    BatchRequest,
    DiffError,
    FileDiagnostics,
    LocalFileSystem,
    Operation,
    PATCH_TOOL_DESCRIPTION,
    PatchInput,
    REPLACE_TOOL_DESCRIPTION,
    apply_patch,
    detect_line_ending,
    generate_diff_string,
    generate_unified_diff_string,
    merge_diagnostics_with_warnings,
    normalize_to_lf,
    replace_error,
    replace_text,
    restore_line_endings,
    strip_bom,
)

ENV_EDIT_VARIANT = "DIFFSMITH_EDIT_VARIANT"
ENV_EDIT_FUZZY = "DIFFSMITH_EDIT_FUZZY"
ENV_EDIT_FUZZY_THRESHOLD = "DIFFSMITH_EDIT_FUZZY_THRESHOLD"

NOTEBOOK_ERROR = (
    "Cannot edit Jupyter notebooks with the Edit tool. Use the NotebookEdit tool instead."
)


class ReplaceParams(BaseModel):
    path: str = Field(..., description="Path of the file to edit, relative to the project root.")
    old_text: str = Field(..., description="Text to find. Must not be empty.")
    new_text: str = Field(..., description="Replacement text.")
    all: bool = Field(False, description="Replace every occurrence instead of a unique one.")


class PatchParams(BaseModel):
    path: str = Field(..., description="Path of the file to create, update or delete.")
    op: Optional[str] = Field(
        None, description="Operation: 'create', 'update' (default) or 'delete'."
    )
    rename: Optional[str] = Field(None, description="New path for the file (update only).")
    diff: Optional[str] = Field(
        None, description="Hunks for update, full file content for create."
    )


def _is_notebook(path: Optional[str]) -> bool:
    return path is not None and path.endswith(".ipynb")


def _diagnostics_meta(diagnostics: Optional[FileDiagnostics]) -> Dict[str, Any]:
    return {
        "diagnostics": {
            "summary": diagnostics.summary if diagnostics else "",
            "messages": list(diagnostics.messages) if diagnostics else [],
        }
    }


def _resolve_patch_mode(settings_value: Optional[bool]) -> bool:
    raw = os.environ.get(ENV_EDIT_VARIANT, "auto")
    if raw == "replace":
        return False
    if raw == "patch":
        return True
    if raw == "auto":
        return True if settings_value is None else settings_value
    raise ValueError(f"Invalid {ENV_EDIT_VARIANT}: {raw}")


def _resolve_fuzzy(settings_value: Optional[bool]) -> bool:
    raw = os.environ.get(ENV_EDIT_FUZZY, "auto")
    if raw in ("true", "1"):
        return True
    if raw in ("false", "0"):
        return False
    if raw == "auto":
        return True if settings_value is None else settings_value
    raise ValueError(f"Invalid {ENV_EDIT_FUZZY}: {raw}")


def _resolve_threshold(settings_value: Optional[float]) -> float:
    raw = os.environ.get(ENV_EDIT_FUZZY_THRESHOLD, "auto")
    if raw == "auto":
        return EDIT_FUZZY_THRESHOLD_DEFAULT if settings_value is None else settings_value
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"Invalid {ENV_EDIT_FUZZY_THRESHOLD}: {raw}")
    if math.isnan(value) or value < 0 or value > 1:
        raise ValueError(f"Invalid {ENV_EDIT_FUZZY_THRESHOLD}: {raw}")
    return value


@tools_base.ToolFactory.register("edit")
class EditTool(tools_base.BaseTool):
    """
    Edit a single file in the project.

    The tool runs in one of two modes, fixed when the instance is built:
    replace mode swaps old_text for new_text, patch mode applies a
    structured diff (create/update/delete, optional rename). Environment
    overrides win over project settings.
    """

    name = "edit"

    def __init__(self, prj: Project, *, patch_mode: Optional[bool] = None) -> None:
        super().__init__(prj)
        settings = getattr(prj, "settings", None)
        edit_settings = getattr(settings, "edit", None)

        # Explicit patch_mode skips env and settings
        if patch_mode is None:
            patch_mode = _resolve_patch_mode(getattr(edit_settings, "patch_mode", None))
        self.patch_mode: bool = patch_mode
        self.allow_fuzzy: bool = _resolve_fuzzy(getattr(edit_settings, "fuzzy_match", None))
        self.fuzzy_threshold: float = _resolve_threshold(
            getattr(edit_settings, "fuzzy_threshold", None)
        )
        self.params_model = PatchParams if self.patch_mode else ReplaceParams
        self.description = (
            PATCH_TOOL_DESCRIPTION if self.patch_mode else REPLACE_TOOL_DESCRIPTION
        )

    def _file_system(
        self,
        signal: Optional[asyncio.Event],
        batch: Optional[BatchRequest],
    ) -> LocalFileSystem:
        writethrough = getattr(self.prj, "writethrough", None)
        if writethrough is None:
            return LocalFileSystem(self.prj.base_path, signal=signal, batch=batch)
        return LocalFileSystem(self.prj.base_path, writethrough, signal, batch)

    async def run(
        self,
        spec: ToolSpec,
        args: Any,
        *,
        signal: Optional[asyncio.Event] = None,
        batch: Optional[BatchRequest] = None,
    ) -> tools_base.EditToolResponse:
        if isinstance(args, BaseModel) and not isinstance(args, self.params_model):
            args = args.model_dump()
        params = (
            args if isinstance(args, self.params_model) else self.params_model.model_validate(args)
        )

        try:
            if isinstance(params, PatchParams):
                return await self._run_patch(params, signal, batch)
            return await self._run_replace(params, signal, batch)
        except DiffError as e:
            logger.debug("edit.failed", path=params.path, error=str(e))
            return tools_base.EditToolResponse(text=str(e), is_error=True)

    async def _refresh(self, fs: LocalFileSystem) -> None:
        changed_files: List[FileChangeModel] = [
            FileChangeModel(type=FileChangeType(kind), relative_filename=rel)
            for rel, kind in fs.changes_map.items()
        ]
        refresh = getattr(self.prj, "refresh", None)
        if changed_files and refresh is not None:
            await refresh(files=changed_files)

    async def _run_patch(
        self,
        params: PatchParams,
        signal: Optional[asyncio.Event],
        batch: Optional[BatchRequest],
    ) -> tools_base.EditToolResponse:
        op = Operation.parse(params.op)
        path = params.path
        if _is_notebook(path) or _is_notebook(params.rename):
            raise DiffError(NOTEBOOK_ERROR)

        fs = self._file_system(signal, batch)
        result = await apply_patch(
            PatchInput(path=path, op=op, rename=params.rename, diff=params.diff),
            ApplyPatchOptions(
                cwd=str(self.prj.base_path),
                fs=fs,
                fuzzy_threshold=self.fuzzy_threshold,
                allow_fuzzy=self.allow_fuzzy,
            ),
        )
        change = result.change
        rename = params.rename if change.new_path else None

        diff, first_changed_line = "", None
        if change.type == Operation.UPDATE and change.old_content and change.new_content:
            rendered = generate_unified_diff_string(
                normalize_to_lf(strip_bom(change.old_content)[1]),
                normalize_to_lf(strip_bom(change.new_content)[1]),
            )
            diff, first_changed_line = rendered.diff, rendered.first_changed_line

        if change.type == Operation.CREATE:
            text = f"Created {path}"
        elif change.type == Operation.DELETE:
            text = f"Deleted {path}"
        elif rename:
            text = f"Updated and moved {path} to {rename}"
        else:
            text = f"Updated {path}"

        diagnostics = merge_diagnostics_with_warnings(fs.get_diagnostics(), result.warnings)
        logger.debug(
            "edit.patch", path=path, op=op.value, rename=rename, warnings=len(result.warnings)
        )
        await self._refresh(fs)

        return tools_base.EditToolResponse(
            text=text,
            details=tools_base.EditToolDetails(
                diff=diff,
                first_changed_line=first_changed_line,
                diagnostics=diagnostics,
                op=op.value,
                rename=rename,
                meta=_diagnostics_meta(diagnostics),
            ),
        )

    async def _run_replace(
        self,
        params: ReplaceParams,
        signal: Optional[asyncio.Event],
        batch: Optional[BatchRequest],
    ) -> tools_base.EditToolResponse:
        path = params.path
        if _is_notebook(path):
            raise DiffError(NOTEBOOK_ERROR)
        if not params.old_text:
            raise DiffError("old_text must not be empty.")

        fs = self._file_system(signal, batch)
        if not await fs.exists(path):
            raise DiffError(f"File not found: {path}")

        bom, content = strip_bom(await fs.read(path))
        ending = detect_line_ending(content)
        normalized = normalize_to_lf(content)
        old_text = normalize_to_lf(params.old_text)
        new_text = normalize_to_lf(params.new_text)

        result = replace_text(
            normalized,
            old_text,
            new_text,
            fuzzy=self.allow_fuzzy,
            all=params.all,
            threshold=self.fuzzy_threshold,
        )
        if result.count == 0:
            raise replace_error(
                path,
                normalized,
                old_text,
                allow_fuzzy=self.allow_fuzzy,
                threshold=self.fuzzy_threshold,
            )
        if result.content == normalized:
            raise DiffError(
                f"No changes made to {path}. The replacement produced identical content. "
                "This might indicate an issue with special characters or the text not "
                "existing as expected."
            )

        await fs.write(path, bom + restore_line_endings(result.content, ending))
        diagnostics = fs.get_diagnostics()
        rendered = generate_diff_string(normalized, result.content)
        logger.debug("edit.replace", path=path, count=result.count)
        await self._refresh(fs)

        if result.count > 1:
            text = f"Successfully replaced {result.count} occurrences in {path}."
        else:
            text = f"Successfully replaced text in {path}."
        return tools_base.EditToolResponse(
            text=text,
            details=tools_base.EditToolDetails(
                diff=rendered.diff,
                first_changed_line=rendered.first_changed_line,
                diagnostics=diagnostics,
                meta=_diagnostics_meta(diagnostics),
            ),
        )

    async def openapi_spec(self, spec: ToolSpec) -> Dict[str, Any]:
        schema = self.params_model.model_json_schema()
        schema.pop("title", None)
        for prop in schema.get("properties", {}).values():
            prop.pop("title", None)
            prop.pop("default", None)
        schema["additionalProperties"] = False
        return {
            "name": self.name,
            "description": self.description,
            "parameters": schema,
        }
