from typing import Any, Dict, List, Tuple, Union
from pathlib import Path
import os
import json
import yaml
import json5  # type: ignore

from .models import Settings, VAR_PATTERN

YAML_SUFFIXES = {".yaml", ".yml"}
JSON5_SUFFIXES = {".json", ".json5", ".jsonc"}


class _Interpolator:
    """
    Expands ${NAME} and ${env:NAME} placeholders in a settings document.

    A string that is exactly one placeholder takes the variable's value with
    its type (bool, number, list, ...). Placeholders embedded in longer text
    are rendered as strings. Unknown names and unset environment variables
    are left as written. '$${NAME}' renders as a literal '${NAME}'.
    """

    def __init__(self, variables: Dict[str, Any]) -> None:
        self._raw = variables
        self._done: Dict[str, Any] = {}
        self._pending: List[str] = []
        for name in variables:
            self.lookup(name)

    def lookup(self, name: str) -> Tuple[bool, Any]:
        if name.startswith("env:"):
            value = os.environ.get(name[4:]) if name[4:] else None
            return value is not None, value
        if name not in self._raw:
            return False, None
        if name not in self._done:
            if name in self._pending:
                chain = " -> ".join(self._pending + [name])
                raise ValueError(f"Variable reference cycle: {chain}")
            self._pending.append(name)
            try:
                self._done[name] = self.expand(self._raw[name])
            finally:
                self._pending.pop()
        return True, self._done[name]

    def expand(self, value: Any) -> Any:
        if isinstance(value, dict):
            return {k: self.expand(v) for k, v in value.items()}
        if isinstance(value, list):
            return [self.expand(v) for v in value]
        if not isinstance(value, str):
            return value

        whole = VAR_PATTERN.fullmatch(value)
        if whole:
            found, resolved = self.lookup(whole.group(1))
            return resolved if found else value
        return VAR_PATTERN.sub(self._render, value).replace("$${", "${")

    def _render(self, m) -> str:
        found, value = self.lookup(m.group(1))
        if not found:
            return m.group(0)
        if value is None:
            return ""
        if isinstance(value, (dict, list)):
            return json.dumps(value, ensure_ascii=False)
        return str(value)


def _variables_section(doc: Dict[str, Any]) -> Dict[str, Any]:
    """'variables' is a mapping, or a list of one-key mappings."""
    section = doc.pop("variables", None)
    if section is None:
        return {}
    if isinstance(section, dict):
        return dict(section)
    if isinstance(section, list) and all(isinstance(item, dict) for item in section):
        merged: Dict[str, Any] = {}
        for item in section:
            merged.update(item)
        return merged
    raise ValueError("'variables' must be a mapping or a list of mappings")


def _read_document(path: Path) -> Any:
    suffix = path.suffix.lower()
    if suffix in YAML_SUFFIXES:
        parse = yaml.safe_load
    elif suffix in JSON5_SUFFIXES:
        parse = json5.loads
    else:
        raise ValueError(f"Unsupported config file extension: {suffix}")
    data = parse(path.read_text(encoding="utf-8"))
    return {} if data is None else data


def load_settings(path: Union[str, Path]) -> Settings:
    doc = _read_document(Path(path).resolve())
    if not isinstance(doc, dict):
        raise ValueError("Root configuration must be a mapping/object")

    doc = dict(doc)
    interpolator = _Interpolator(_variables_section(doc))
    return Settings.model_validate(interpolator.expand(doc))
