"""Object storage for raw uploaded files."""

from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath
from typing import Protocol
from urllib.parse import unquote, urlparse

from ragdesk.core.errors import DependencyError, NotFoundError

logger = logging.getLogger(__name__)


class ObjectStore(Protocol):
    def put(self, data: bytes, key: str) -> str: ...

    def get(self, key: str) -> bytes: ...

    def delete(self, key: str) -> None: ...

    def key_from_locator(self, locator: str) -> str: ...


class LocalObjectStore:
    """Filesystem-backed object store; locators are ``file://`` URIs."""

    def __init__(self, root: Path) -> None:
        self.root = root.expanduser().resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    def put(self, data: bytes, key: str) -> str:
        path = self._path_for(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as exc:
            raise DependencyError(f"Failed to store object {key}: {exc}", stage="store") from exc
        logger.info("Stored object %s (%d bytes)", key, len(data))
        return path.as_uri()

    def get(self, key: str) -> bytes:
        path = self._path_for(key)
        if not path.is_file():
            raise NotFoundError(f"Object {key} not found")
        try:
            return path.read_bytes()
        except OSError as exc:
            raise DependencyError(f"Failed to read object {key}: {exc}", stage="store") from exc

    def delete(self, key: str) -> None:
        path = self._path_for(key)
        try:
            path.unlink()
        except FileNotFoundError as exc:
            raise NotFoundError(f"Object {key} not found") from exc
        except OSError as exc:
            raise DependencyError(f"Failed to delete object {key}: {exc}", stage="store") from exc
        logger.info("Deleted object %s", key)

    def key_from_locator(self, locator: str) -> str:
        parsed = urlparse(locator)
        path = Path(unquote(parsed.path)) if parsed.scheme == "file" else Path(locator)
        try:
            return path.resolve().relative_to(self.root).as_posix()
        except ValueError as exc:
            raise ValueError(f"Locator {locator} is outside the object store") from exc

    def _path_for(self, key: str) -> Path:
        relative = PurePosixPath(key)
        if relative.is_absolute() or ".." in relative.parts:
            raise ValueError(f"Invalid object key: {key}")
        return self.root.joinpath(*relative.parts)


__all__ = ["ObjectStore", "LocalObjectStore"]
