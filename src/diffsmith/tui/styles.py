from __future__ import annotations

TOOL_CALL_BULLET = "*"
TOOL_CALL_NAME_STYLE = "bright_cyan"
TOOL_CALL_BULLET_STYLE = "bold yellow"
TOOL_CALL_META_STYLE = "dim grey50"
TOOL_CALL_KV_KEY_STYLE = "bright_yellow"
TOOL_CALL_ERROR_STYLE = "red"

DIAGNOSTICS_HEADER_STYLE = "bold yellow"
DIAGNOSTICS_ERROR_STYLE = "bold red"
DIAGNOSTICS_MESSAGE_STYLE = "grey70"
