from typing import List, Dict, Optional, Any, Final
from enum import Enum
import re
from pydantic import BaseModel, Field
from pydantic import model_validator, field_validator


# Variable replacement pattern.
# Supports:
#   - ${NAME}
#   - ${env:NAME}
# Ignores '$${NAME}' so it can be used to escape a literal '${NAME}'.
VAR_PATTERN = re.compile(
    r"(?<!\$)\$\{([A-Za-z_][A-Za-z0-9_]*(?::[A-Za-z_][A-Za-z0-9_]*)?)\}"
)

# Minimum similarity (0..1) for a fuzzy match to be accepted by the edit tool.
# Individual projects can override this via Settings.edit.fuzzy_threshold.
EDIT_FUZZY_THRESHOLD_DEFAULT: Final[float] = 0.95


class LogLevel(str, Enum):
    debug = "debug"
    info = "info"
    warning = "warning"
    error = "error"
    critical = "critical"


class ToolCallFormatter(BaseModel):
    """
    Configures how to display a tool call in the terminal.
    - title: what to display as the function name
    - show_output: whether to show tool output details by default
    - options: free-form formatter-specific configuration
    """

    title: str
    show_output: bool = False
    options: Dict[str, Any] = Field(default_factory=dict)


class ToolSpec(BaseModel):
    """
    Tool specification usable globally (Settings.tools) and per invocation.
    """

    name: str
    enabled: bool = True
    config: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _coerce(cls, v: Any) -> Any:
        if isinstance(v, str):
            return {"name": v}
        if isinstance(v, dict):
            name = v.get("name")
            if not isinstance(name, str) or not name:
                raise ValueError("Tool spec must include non-empty 'name'")
            return {
                "name": name,
                "enabled": v.get("enabled", True),
                "config": v.get("config", {}) or {},
            }
        return v


class EditSettings(BaseModel):
    # True => structured patch mode ({path, op, rename, diff});
    # False => old/new text replace mode ({path, old_text, new_text, all}).
    patch_mode: bool = True
    # Accept whitespace/indentation tolerant matches above fuzzy_threshold.
    fuzzy_match: bool = True
    fuzzy_threshold: float = EDIT_FUZZY_THRESHOLD_DEFAULT

    @field_validator("fuzzy_threshold")
    @classmethod
    def _validate_threshold(cls, v: float) -> float:
        if v < 0.0 or v > 1.0:
            raise ValueError(f"fuzzy_threshold must be within [0, 1], got {v}")
        return v


class LoggingSettings(BaseModel):
    # Default level for the diffsmith logger if not overridden.
    default_level: LogLevel = LogLevel.info
    # Mapping of logger name -> level override (e.g., {"asyncio": "debug"})
    enabled_loggers: Dict[str, LogLevel] = Field(default_factory=dict)


class Settings(BaseModel):
    edit: EditSettings = Field(default_factory=EditSettings)
    tools: List[ToolSpec] = Field(default_factory=list)
    # Mapping of tool name -> formatter configuration
    tool_call_formatters: Dict[str, ToolCallFormatter] = Field(default_factory=dict)
    logging: Optional[LoggingSettings] = Field(default=None)

    def get_tool_spec(self, name: str) -> ToolSpec:
        for spec in self.tools:
            if spec.name == name:
                return spec
        return ToolSpec(name=name)
