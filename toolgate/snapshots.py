"""Per-file read snapshots and the stale-context check built on them."""

import hashlib
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable


class LocalFileSystem:
    """Filesystem probe rooted at the agent's working directory."""

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def _resolve(self, path: str) -> Path:
        p = Path(path.replace("\\", "/"))
        if p.is_absolute():
            return p
        return self.root / p

    def key(self, path: str) -> str:
        """Canonical absolute spelling of path, used to key per-file state."""
        return str(self._resolve(path).resolve())

    def read_bytes(self, path: str) -> bytes | None:
        try:
            return self._resolve(path).read_bytes()
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError):
            return None

    def exists(self, path: str) -> bool:
        return self._resolve(path).exists()


def fingerprint(data: bytes | None) -> str | None:
    """SHA-256 of file content; None stands for an absent file."""
    if data is None:
        return None
    return hashlib.sha256(data).hexdigest()


def normalize_path(path: str) -> str:
    """Separator- and dot-insensitive spelling for stores without a root."""
    return os.path.normpath(path.replace("\\", "/"))


@dataclass
class FileSnapshot:
    path: str
    fingerprint: str | None
    captured_at: float


class SnapshotStore:
    """What the agent last saw of each file it read.

    Populated by the read tool, consulted before every mutation, and
    invalidated after line-addressed edits. Entries are keyed by the
    resolved path when the store has a filesystem root, so ``./a.py``,
    ``a.py``, backslash-separated and absolute spellings share one entry. An
    invalidated path stays marked until the next read, so the following
    mutation is refused even though no snapshot is left to compare against.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        fs: LocalFileSystem | None = None,
    ):
        self._snapshots: dict[str, FileSnapshot] = {}
        self._needs_reread: set[str] = set()
        self.clock = clock
        self.fs = fs

    def _key(self, path: str) -> str:
        if self.fs is not None:
            return self.fs.key(path)
        return normalize_path(path)

    def record_read(self, path: str, data: bytes | None) -> FileSnapshot:
        key = self._key(path)
        snap = FileSnapshot(
            path=path, fingerprint=fingerprint(data), captured_at=self.clock()
        )
        self._snapshots[key] = snap
        self._needs_reread.discard(key)
        return snap

    def refresh(self, path: str, data: bytes | None) -> bool:
        """Update an existing snapshot after the agent's own write.

        Paths that were never read are left alone: only reads create
        snapshots.
        """
        snap = self.get(path)
        if snap is None:
            return False
        snap.fingerprint = fingerprint(data)
        snap.captured_at = self.clock()
        return True

    def get(self, path: str) -> FileSnapshot | None:
        return self._snapshots.get(self._key(path))

    def invalidate(self, path: str) -> bool:
        """Drop the snapshot for path, however it was spelled when read."""
        key = self._key(path)
        self._needs_reread.add(key)
        return self._snapshots.pop(key, None) is not None

    def needs_reread(self, path: str) -> bool:
        return self._key(path) in self._needs_reread

    def clear(self) -> None:
        self._snapshots.clear()
        self._needs_reread.clear()

    def __contains__(self, path: str) -> bool:
        return self.get(path) is not None

    def __len__(self) -> int:
        return len(self._snapshots)

    def stale_paths(self, paths: list[str], fs: LocalFileSystem) -> list[str]:
        """Paths whose on-disk content no longer matches the last read.

        Paths never read are not stale: without a snapshot there is nothing
        to compare against.
        """
        stale = []
        for path in paths:
            if self.needs_reread(path):
                stale.append(path)
                continue
            snap = self.get(path)
            if snap is None:
                continue
            if fingerprint(fs.read_bytes(path)) != snap.fingerprint:
                stale.append(path)
        return stale
