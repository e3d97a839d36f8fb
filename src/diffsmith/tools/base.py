from abc import ABC, abstractmethod
from typing import Any, Callable, Type, Dict, TYPE_CHECKING, Optional, TypeVar, Union
from enum import Enum
from pydantic import BaseModel, Field
from diffsmith.patch import FileDiagnostics
from diffsmith.settings import ToolSpec

if TYPE_CHECKING:
    from diffsmith.project import Project


# Models
class ToolResponseType(str, Enum):
    text = "text"


class ToolTextResponse(BaseModel):
    type: ToolResponseType = Field(default=ToolResponseType.text)
    text: Optional[str] = None
    is_error: bool = False


class EditToolDetails(BaseModel):
    diff: str = ""
    # 1-based line in the new content where the edit starts
    first_changed_line: Optional[int] = None
    diagnostics: Optional[FileDiagnostics] = None
    # Patch mode only
    op: Optional[str] = None
    rename: Optional[str] = None
    meta: Dict[str, Any] = Field(default_factory=dict)


class EditToolResponse(ToolTextResponse):
    details: Optional[EditToolDetails] = None


ToolResponse = Union[ToolTextResponse, EditToolResponse]

# Global registry of tool name -> tool class
_registry: Dict[str, Type["BaseTool"]] = {}

T = TypeVar("T", bound=Type["BaseTool"])


def register_tool(name: str, tool: Type["BaseTool"]) -> None:
    """Registers a tool class."""
    if name in _registry:
        raise ValueError(f"Tool with name '{name}' already registered.")
    _registry[name] = tool


def unregister_tool(name: str) -> bool:
    """Unregister a tool by name. Returns True if removed, False if not present."""
    return _registry.pop(name, None) is not None


def get_tool(name: str) -> Optional[Type["BaseTool"]]:
    """Gets a tool class by name."""
    return _registry.get(name)


def get_all_tools() -> Dict[str, Type["BaseTool"]]:
    """Returns a copy of the tool registry."""
    return dict(_registry)


class ToolFactory:
    @staticmethod
    def register(name: str) -> Callable[[T], T]:
        def decorator(cls: T) -> T:
            register_tool(name, cls)
            return cls

        return decorator

    @staticmethod
    def get(name: str) -> Optional[Type["BaseTool"]]:
        return get_tool(name)

    @staticmethod
    def unregister(name: str) -> bool:
        return unregister_tool(name)


class BaseTool(ABC):
    # Subclasses must set this to a unique string
    name: str

    def __init__(self, prj: "Project") -> None:
        self.prj = prj

    @abstractmethod
    async def run(self, spec: ToolSpec, args: Any) -> Optional[ToolResponse]:
        """
        Execute this tool within the context of the given Project.
        Args:
            spec: ToolSpec including name and optional config for this invocation.
            args: Parsed arguments structure (e.g., dict or Pydantic model). Not a JSON string.
        Returns:
            ToolResponse with the final text.
        """
        pass

    @abstractmethod
    async def openapi_spec(self, spec: ToolSpec) -> Dict[str, Any]:
        """
        Return this tool's definition in OpenAI 'function' tool format,
        using JSON Schema for parameters.
        """
        pass
