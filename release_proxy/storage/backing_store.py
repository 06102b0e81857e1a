"""
File-like backing stores for persisted service state.

Paths are logical, '/'-separated and relative to the store root. All failures
surface as `StorageError`.
"""

import logging
from pathlib import Path, PurePosixPath
from typing import Protocol, runtime_checkable

import aiofiles
import aiofiles.os

from release_proxy.exceptions import DirectoryExistsError, StorageError

log = logging.getLogger(__name__)


@runtime_checkable
class BackingStore(Protocol):
    """The narrow interface the service needs from a key-value file store."""

    async def exists(self, path: str) -> bool: ...

    async def read_file(self, path: str) -> str: ...

    async def write_file(self, path: str, content: str) -> None: ...

    async def create_directory(self, path: str) -> None: ...


def _normalize(path: str) -> PurePosixPath:
    """Validates a logical path and returns it in normalized form."""
    logical = PurePosixPath(path.strip())
    if not path.strip() or logical.is_absolute() or ".." in logical.parts:
        raise StorageError(f"Invalid store path: {path!r}")
    return logical


class LocalFileStore:
    """A backing store rooted in a local directory, using aiofiles for I/O."""

    def __init__(self, root: Path):
        self.root = root

    @classmethod
    async def open(cls, root: Path) -> "LocalFileStore":
        """Creates the root directory if needed and returns the store."""
        try:
            await aiofiles.os.makedirs(root, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create store root '{root}': {e}") from e
        log.debug(f"Opened local file store at '{root}'")
        return cls(root)

    def _resolve(self, path: str) -> Path:
        return self.root.joinpath(*_normalize(path).parts)

    async def exists(self, path: str) -> bool:
        return await aiofiles.os.path.exists(self._resolve(path))

    async def read_file(self, path: str) -> str:
        target = self._resolve(path)
        try:
            async with aiofiles.open(target, encoding="utf-8") as f:
                return await f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(f"Failed to read '{path}': {e}") from e

    async def write_file(self, path: str, content: str) -> None:
        target = self._resolve(path)
        try:
            async with aiofiles.open(target, "w", encoding="utf-8") as f:
                await f.write(content)
        except OSError as e:
            raise StorageError(f"Failed to write '{path}': {e}") from e

    async def create_directory(self, path: str) -> None:
        target = self._resolve(path)
        try:
            await aiofiles.os.makedirs(target)
        except FileExistsError as e:
            raise DirectoryExistsError(f"Directory already exists: '{path}'") from e
        except OSError as e:
            raise StorageError(f"Failed to create directory '{path}': {e}") from e


class MemoryStore:
    """
    An in-process store with the same semantics as `LocalFileStore`.
    Contents are lost when the process exits.
    """

    def __init__(self):
        self._files: dict[str, str] = {}
        self._directories: set[str] = set()

    async def exists(self, path: str) -> bool:
        key = str(_normalize(path))
        return key in self._files or key in self._directories

    async def read_file(self, path: str) -> str:
        key = str(_normalize(path))
        if key not in self._files:
            raise StorageError(f"Failed to read '{path}': no such file")
        return self._files[key]

    async def write_file(self, path: str, content: str) -> None:
        logical = _normalize(path)
        parent = str(logical.parent)
        if parent != "." and parent not in self._directories:
            raise StorageError(f"Failed to write '{path}': parent directory missing")
        if str(logical) in self._directories:
            raise StorageError(f"Failed to write '{path}': is a directory")
        self._files[str(logical)] = content

    async def create_directory(self, path: str) -> None:
        logical = _normalize(path)
        if str(logical) in self._directories or str(logical) in self._files:
            raise DirectoryExistsError(f"Directory already exists: '{path}'")
        # Behaves like makedirs: intermediate directories are created too.
        for parent in reversed(logical.parents):
            if str(parent) != ".":
                self._directories.add(str(parent))
        self._directories.add(str(logical))
