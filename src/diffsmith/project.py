from pathlib import Path
from typing import Optional, Union, List
from enum import Enum
from pydantic import BaseModel

from .patch.fs import WritethroughCallback, writethrough_noop
from .settings import Settings
from .settings.loader import load_settings

DEFAULT_CONFIG_RELPATH = ".diffsmith/config.yaml"


class FileChangeType(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


class FileChangeModel(BaseModel):
    type: FileChangeType
    # Relative filename within the project root
    relative_filename: str


class Project:
    def __init__(
        self,
        base_path: Path,
        settings: Optional[Settings] = None,
        *,
        config_relpath: Optional[Path] = None,
        writethrough: WritethroughCallback = writethrough_noop,
    ):
        self.base_path: Path = Path(base_path)
        self.config_relpath: Optional[Path] = config_relpath
        self.settings: Settings = settings or Settings()
        # Performs file writes for edit tools; may return diagnostics.
        self.writethrough: WritethroughCallback = writethrough

    @property
    def config_path(self) -> Optional[Path]:
        if self.config_relpath is None:
            return None
        return self.base_path / self.config_relpath

    @classmethod
    def from_base_path(
        cls,
        base_path: Union[str, Path],
        *,
        search_ancestors: bool = True,
    ) -> "Project":
        return init_project(base_path, search_ancestors=search_ancestors)

    async def refresh(self, files: Optional[List[FileChangeModel]] = None) -> None:
        """Hook invoked after tools change files. No-op by default."""
        pass


def _find_project_root_with_config(start: Path, rel_config: Path) -> Optional[Path]:
    """
    Walk upwards from 'start' to filesystem root looking for rel_config
    (e.g., '.diffsmith/config.yaml'). Returns the directory that contains
    rel_config if found; otherwise None.
    """
    current = start
    while True:
        candidate = current / rel_config
        if candidate.is_file():
            return current
        if current.parent == current:
            return None
        current = current.parent


def init_project(
    base_path: Union[str, Path],
    config_relpath: Union[str, Path] = DEFAULT_CONFIG_RELPATH,
    *,
    search_ancestors: bool = True,
    settings_path: Optional[Union[str, Path]] = None,
) -> Project:
    """
    Initialize a Project rooted at base_path.

    Settings come from settings_path when given, otherwise from the nearest
    config_relpath found in base_path or (with search_ancestors) one of its
    parents. Without a config file defaults are used and the project is
    rooted at base_path itself.
    """
    start_path = Path(base_path)
    start_dir = start_path if start_path.is_dir() else start_path.parent
    start_dir = start_dir.resolve()
    rel_config = Path(config_relpath)

    if settings_path is not None:
        return Project(start_dir, load_settings(settings_path))

    root: Optional[Path] = None
    if (start_dir / rel_config).is_file():
        root = start_dir
    elif search_ancestors:
        root = _find_project_root_with_config(start_dir, rel_config)

    if root is None:
        return Project(start_dir, Settings())
    return Project(root, load_settings(root / rel_config), config_relpath=rel_config)
