# Re-export the base tool interfaces and registry
from .base import (  # noqa: F401
    BaseTool,
    EditToolDetails,
    EditToolResponse,
    ToolFactory,
    ToolResponseType,
    ToolTextResponse,
    ToolResponse,
    register_tool,
    unregister_tool,
    get_tool,
    get_all_tools,
)

# Built-in tools register themselves on import
from .edit_tool import EditTool, PatchParams, ReplaceParams  # noqa: F401,E402
