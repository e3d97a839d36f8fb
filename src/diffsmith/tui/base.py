from __future__ import annotations

import typing
from abc import ABC, abstractmethod
from typing import ClassVar

from rich import console as rich_console
from rich import text as rich_text

from diffsmith import settings as diffsmith_settings
from diffsmith.tui import styles as tui_styles


class BaseToolCallFormatter(ABC):
    def format_tool_name(self, tool_name: str) -> str:
        return " ".join(part.capitalize() for part in tool_name.split("_") if part)

    def header(
        self,
        tool_name: str,
        config: diffsmith_settings.ToolCallFormatter | None,
        *,
        suffix: str | None = None,
    ) -> rich_text.Text:
        display_name = self.format_tool_name(tool_name)
        if config is not None and config.title:
            display_name = config.title

        header = rich_text.Text(no_wrap=True)
        header.append(tui_styles.TOOL_CALL_BULLET, style=tui_styles.TOOL_CALL_BULLET_STYLE)
        header.append(" ")
        header.append(display_name, style=tui_styles.TOOL_CALL_NAME_STYLE)
        if suffix:
            header.append(suffix, style=tui_styles.TOOL_CALL_META_STYLE)
        return header

    @abstractmethod
    def format_input(
        self,
        tool_name: str,
        arguments: typing.Any,
        config: diffsmith_settings.ToolCallFormatter | None,
    ) -> rich_console.RenderableType | None:
        raise NotImplementedError

    @abstractmethod
    def format_output(
        self,
        tool_name: str,
        result: typing.Any,
        config: diffsmith_settings.ToolCallFormatter | None,
    ) -> rich_console.RenderableType | None:
        raise NotImplementedError


class ToolCallFormatterManager:
    _registry: ClassVar[dict[str, type[BaseToolCallFormatter]]] = {}

    def __init__(
        self,
        *,
        tool_configs: dict[str, diffsmith_settings.ToolCallFormatter] | None = None,
    ) -> None:
        self._tool_configs = tool_configs or {}
        self._instances: dict[str, BaseToolCallFormatter] = {}

    @classmethod
    def from_settings(
        cls, settings: diffsmith_settings.Settings | None
    ) -> "ToolCallFormatterManager":
        tool_configs: dict[str, diffsmith_settings.ToolCallFormatter] = {}
        if settings is not None:
            tool_configs = dict(settings.tool_call_formatters or {})
        return cls(tool_configs=tool_configs)

    @classmethod
    def register(
        cls,
        name: str,
        formatter_cls: type[BaseToolCallFormatter] | None = None,
    ):
        def _do_register(
            inner: type[BaseToolCallFormatter],
        ) -> type[BaseToolCallFormatter]:
            if name in cls._registry:
                raise ValueError(f"Tool call formatter '{name}' already registered.")
            cls._registry[name] = inner
            return inner

        if formatter_cls is None:
            return _do_register
        return _do_register(formatter_cls)

    def _resolve(
        self, tool_name: str
    ) -> tuple[BaseToolCallFormatter | None, diffsmith_settings.ToolCallFormatter | None]:
        config = self._tool_configs.get(tool_name)
        cached = self._instances.get(tool_name)
        if cached is not None:
            return cached, config
        formatter_type = self._registry.get(tool_name)
        if formatter_type is None:
            return None, config
        inst = formatter_type()
        self._instances[tool_name] = inst
        return inst, config

    def format_request(
        self, tool_name: str, arguments: typing.Any
    ) -> rich_console.RenderableType | None:
        formatter, config = self._resolve(tool_name)
        if formatter is None:
            return None
        return formatter.format_input(tool_name=tool_name, arguments=arguments, config=config)

    def format_response(
        self, tool_name: str, result: typing.Any
    ) -> rich_console.RenderableType | None:
        formatter, config = self._resolve(tool_name)
        if formatter is None:
            return None
        return formatter.format_output(tool_name=tool_name, result=result, config=config)
