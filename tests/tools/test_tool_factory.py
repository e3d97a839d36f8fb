from __future__ import annotations

from pathlib import Path

from diffsmith import tools as tools_mod
from diffsmith.settings import ToolSpec
from tests.stub_project import StubProject


@tools_mod.ToolFactory.register("test_decorated_tool")
class _DecoratedTool(tools_mod.BaseTool):
    name = "test_decorated_tool"

    async def run(self, spec, args):
        return None

    async def openapi_spec(self, spec: ToolSpec):
        return {}


def test_tool_factory_decorator_and_helpers(tmp_path: Path):
    cls = tools_mod.ToolFactory.get("test_decorated_tool")
    assert cls is _DecoratedTool
    assert tools_mod.get_all_tools()["test_decorated_tool"] is _DecoratedTool

    project = StubProject(tmp_path)
    tool = cls(project)  # type: ignore[call-arg]
    assert isinstance(tool, _DecoratedTool)
    assert tools_mod.ToolFactory.unregister("test_decorated_tool") is True
    assert tools_mod.ToolFactory.get("test_decorated_tool") is None
    assert tools_mod.unregister_tool("test_decorated_tool") is False


def test_edit_tool_is_registered():
    assert tools_mod.get_tool("edit") is tools_mod.EditTool
