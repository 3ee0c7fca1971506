"""
Durable storage for uploaded and derived files.

The orchestration core only talks to the FileStore protocol. LocalFileStore
keeps everything in one shared upload directory; each artifact gets a unique
timestamp+random name so concurrent requests never collide.
"""

import logging
import secrets
import threading
import time
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


class FileStore(Protocol):
    """Minimal storage contract consumed by the extraction pipeline."""

    def save(self, data: bytes, suffix: str = "", name: str | None = None) -> Path: ...

    def read(self, path: Path) -> bytes: ...

    def delete(self, path: Path) -> None: ...

    def exists(self, path: Path) -> bool: ...


class LocalFileStore:
    """FileStore backed by a local directory."""

    def __init__(self, root: Path | str):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def new_name(self, suffix: str = "") -> str:
        """Generate a collision-free file name: <epoch-ms>-<random><suffix>."""
        return f"{int(time.time() * 1000)}-{secrets.token_hex(4)}{suffix}"

    def save(self, data: bytes, suffix: str = "", name: str | None = None) -> Path:
        """
        Write bytes to a new file in the store.

        Args:
            data: File content.
            suffix: Extension (with leading dot) used when generating a name.
            name: Explicit file name to use instead of a generated one.

        Returns:
            Path of the written file.
        """
        path = self.root / (name or self.new_name(suffix))
        path.write_bytes(data)
        logger.debug("Saved %d bytes to %s", len(data), path)
        return path

    def read(self, path: Path) -> bytes:
        return Path(path).read_bytes()

    def delete(self, path: Path) -> None:
        Path(path).unlink(missing_ok=True)

    def exists(self, path: Path) -> bool:
        return Path(path).exists()


class ArtifactScope:
    """
    Request-scoped registry of durable artifacts.

    Every file created while handling a request is registered here at creation
    time. Leaving the scope deletes all of them, whatever the exit path.
    Deletion failures are logged and never replace the in-flight result or error.

    Worker threads may still be writing after the request gave up (deadline);
    once released, the scope deletes anything tracked late on the spot.
    """

    def __init__(self, store: FileStore):
        self.store = store
        self._paths: list[Path] = []
        self._closed = False
        self._lock = threading.Lock()

    @property
    def paths(self) -> list[Path]:
        with self._lock:
            return list(self._paths)

    @property
    def closed(self) -> bool:
        return self._closed

    def track(self, path: Path) -> Path:
        with self._lock:
            if not self._closed:
                if path not in self._paths:
                    self._paths.append(path)
                return path
        logger.info("Deleting artifact created after release: %s", path)
        self._delete(path)
        return path

    def replace(self, old: Path, new: Path) -> Path:
        """Swap a tracked artifact for the one that superseded it."""
        self.track(new)
        with self._lock:
            if old != new and old in self._paths:
                self._paths.remove(old)
        return new

    def _delete(self, path: Path) -> None:
        try:
            self.store.delete(path)
        except OSError as e:
            logger.warning("Failed to delete artifact %s: %s", path, e)

    def release(self) -> None:
        """Delete every tracked artifact and close the scope."""
        with self._lock:
            self._closed = True
            paths, self._paths = self._paths, []
        for path in reversed(paths):
            self._delete(path)

    def __enter__(self) -> "ArtifactScope":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
