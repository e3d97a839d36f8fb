from __future__ import annotations

import asyncio
import posixpath
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar, Union

from diffsmith.logger import logger

from .models import ApplyPatchError, FileDiagnostics, OperationAbortedError

PathLike = Union[str, Path]
T = TypeVar("T")


@dataclass
class BatchRequest:
    """Groups writes of one tool-call batch; flush marks the last write."""

    id: str
    flush: bool = False


# (dst, content, signal, file, batch) -> diagnostics. The callback performs the write.
WritethroughCallback = Callable[
    [Path, str, Optional[asyncio.Event], Optional[Path], Optional[BatchRequest]],
    Awaitable[Optional[FileDiagnostics]],
]


def check_aborted(signal: Optional[asyncio.Event]) -> None:
    if signal is not None and signal.is_set():
        raise OperationAbortedError("Operation aborted")


def _read_text_sync(path: Path) -> str:
    # newline="" keeps CRLF intact; line endings are handled by the caller.
    with path.open("rt", encoding="utf-8", newline="") as fh:
        return fh.read()


def _write_text_sync(path: Path, content: str) -> None:
    with path.open("wt", encoding="utf-8", newline="") as fh:
        fh.write(content)


async def _run_io(action: str, path: str, fn: Callable[..., T], *args: Any) -> T:
    """Run blocking file I/O in a thread; I/O and decode failures become ApplyPatchError."""
    try:
        return await asyncio.to_thread(fn, *args)
    except UnicodeDecodeError as e:
        raise ApplyPatchError(f"Cannot {action} {path}: not valid UTF-8 text ({e.reason})") from e
    except OSError as e:
        raise ApplyPatchError(f"Cannot {action} {path}: {e.strerror or e}") from e


def _mkdir_sync(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


async def writethrough_noop(
    dst: Path,
    content: str,
    signal: Optional[asyncio.Event] = None,
    file: Optional[Path] = None,
    batch: Optional[BatchRequest] = None,
) -> Optional[FileDiagnostics]:
    """Write content to dst and report no diagnostics."""
    check_aborted(signal)
    await asyncio.to_thread(_write_text_sync, file or dst, content)
    return None


def merge_diagnostics_with_warnings(
    diagnostics: Optional[FileDiagnostics], warnings: List[str]
) -> Optional[FileDiagnostics]:
    """Prepend patch warnings to writethrough diagnostics."""
    if not warnings:
        return diagnostics
    messages = [f"patch: {w}" for w in warnings]
    if diagnostics is None:
        return FileDiagnostics(
            server="patch",
            messages=messages,
            summary=f"Patch warnings: {len(warnings)}",
            errored=False,
        )
    return diagnostics.model_copy(
        update={
            "messages": [*messages, *diagnostics.messages],
            "summary": f"{diagnostics.summary}; Patch warnings: {len(warnings)}",
        }
    )


class FileSystem(ABC):
    """
    Async file capability used by the patch applicator.
    Implementations must handle path safety and track the changes map.
    """

    @abstractmethod
    async def exists(self, path: str) -> bool: ...

    @abstractmethod
    async def read(self, path: str) -> str: ...

    @abstractmethod
    async def read_binary(self, path: str) -> bytes: ...

    @abstractmethod
    async def write(self, path: str, content: str) -> None: ...

    @abstractmethod
    async def delete(self, path: str) -> None: ...

    @abstractmethod
    async def mkdir(self, path: str) -> None: ...

    @property
    @abstractmethod
    def changes_map(self) -> Dict[str, str]:
        """
        A map of file paths to change kind: 'created' | 'updated' | 'deleted'.
        """
        ...

    def get_diagnostics(self) -> Optional[FileDiagnostics]:
        return None


def _record_change(changes: Dict[str, str], rel: str, change: str) -> None:
    prev = changes.get(rel)
    if prev is None:
        changes[rel] = change
        return
    if change == "deleted":
        changes[rel] = change
    elif change == "updated" and prev != "deleted":
        changes[rel] = change


class LocalFileSystem(FileSystem):
    """
    File-backed implementation that enforces path safety under base_path,
    caches file contents for its own lifetime and routes writes through the
    writethrough callback. The last non-empty diagnostics are kept.
    """

    def __init__(
        self,
        base_path: PathLike,
        writethrough: WritethroughCallback = writethrough_noop,
        signal: Optional[asyncio.Event] = None,
        batch: Optional[BatchRequest] = None,
    ) -> None:
        self._base_path = Path(base_path).resolve()
        self._writethrough = writethrough
        self._signal = signal
        self._batch = batch
        self._cache: Dict[Path, str] = {}
        self._changes: Dict[str, str] = {}
        self._diagnostics: Optional[FileDiagnostics] = None

    @property
    def base_path(self) -> Path:
        return self._base_path

    def resolve(self, path: str) -> Path:
        if not path or path.startswith("~"):
            raise ApplyPatchError(f"Invalid path: {path!r}")
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self._base_path / candidate
        resolved = candidate.resolve()
        if resolved != self._base_path and not resolved.is_relative_to(self._base_path):
            raise ApplyPatchError(f"Path escapes project root: {path}")
        return resolved

    def _rel(self, resolved: Path) -> str:
        return resolved.relative_to(self._base_path).as_posix()

    async def exists(self, path: str) -> bool:
        resolved = self.resolve(path)
        if resolved in self._cache:
            return True
        return await asyncio.to_thread(resolved.is_file)

    async def read(self, path: str) -> str:
        resolved = self.resolve(path)
        cached = self._cache.get(resolved)
        if cached is not None:
            return cached
        text = await _run_io("read", path, _read_text_sync, resolved)
        self._cache[resolved] = text
        return text

    async def read_binary(self, path: str) -> bytes:
        resolved = self.resolve(path)
        return await _run_io("read", path, resolved.read_bytes)

    async def write(self, path: str, content: str) -> None:
        resolved = self.resolve(path)
        check_aborted(self._signal)
        existed = await self.exists(path)
        try:
            result = await self._writethrough(
                resolved, content, self._signal, resolved, self._batch
            )
        except UnicodeEncodeError as e:
            raise ApplyPatchError(f"Cannot write {path}: {e.reason}") from e
        except OSError as e:
            raise ApplyPatchError(f"Cannot write {path}: {e.strerror or e}") from e
        self._cache[resolved] = content
        _record_change(self._changes, self._rel(resolved), "updated" if existed else "created")
        if result is not None:
            self._diagnostics = result
        logger.debug("fs.write", path=self._rel(resolved), created=not existed)

    async def delete(self, path: str) -> None:
        resolved = self.resolve(path)
        check_aborted(self._signal)
        await _run_io("delete", path, resolved.unlink, True)
        self._cache.pop(resolved, None)
        _record_change(self._changes, self._rel(resolved), "deleted")
        logger.debug("fs.delete", path=self._rel(resolved))

    async def mkdir(self, path: str) -> None:
        resolved = self.resolve(path)
        await _run_io("create directory", path, _mkdir_sync, resolved)

    @property
    def changes_map(self) -> Dict[str, str]:
        return self._changes

    def get_diagnostics(self) -> Optional[FileDiagnostics]:
        return self._diagnostics


class InMemoryFileSystem(FileSystem):
    """Dictionary-backed file system keyed by normalized relative POSIX paths."""

    def __init__(
        self,
        files: Optional[Dict[str, str]] = None,
        signal: Optional[asyncio.Event] = None,
    ) -> None:
        self._signal = signal
        self._changes: Dict[str, str] = {}
        self.files: Dict[str, str] = {}
        self.dirs: set[str] = set()
        for path, content in (files or {}).items():
            self.files[self._key(path)] = content

    @staticmethod
    def _key(path: str) -> str:
        if not path or path.startswith(("/", "~")):
            raise ApplyPatchError(f"Invalid path: {path!r}")
        norm = posixpath.normpath(path.replace("\\", "/"))
        if norm == ".." or norm.startswith("../"):
            raise ApplyPatchError(f"Path escapes project root: {path}")
        return norm

    async def exists(self, path: str) -> bool:
        return self._key(path) in self.files

    async def read(self, path: str) -> str:
        key = self._key(path)
        if key not in self.files:
            raise FileNotFoundError(path)
        return self.files[key]

    async def read_binary(self, path: str) -> bytes:
        return (await self.read(path)).encode("utf-8")

    async def write(self, path: str, content: str) -> None:
        key = self._key(path)
        check_aborted(self._signal)
        existed = key in self.files
        self.files[key] = content
        _record_change(self._changes, key, "updated" if existed else "created")

    async def delete(self, path: str) -> None:
        key = self._key(path)
        check_aborted(self._signal)
        if key not in self.files:
            raise FileNotFoundError(path)
        del self.files[key]
        _record_change(self._changes, key, "deleted")

    async def mkdir(self, path: str) -> None:
        self.dirs.add(self._key(path))

    @property
    def changes_map(self) -> Dict[str, str]:
        return self._changes
