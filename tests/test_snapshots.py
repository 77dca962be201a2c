"""Tests for read snapshots and stale-context detection."""

from toolgate.snapshots import (
    LocalFileSystem,
    SnapshotStore,
    fingerprint,
    normalize_path,
)


def test_fingerprint_is_content_hash():
    assert fingerprint(b"abc") == fingerprint(b"abc")
    assert fingerprint(b"abc") != fingerprint(b"abd")
    assert fingerprint(None) is None


def test_normalize_path():
    assert normalize_path("src\\a.py") == "src/a.py"
    assert normalize_path("./src/../src/a.py") == "src/a.py"
    assert normalize_path("a.py") == "a.py"


class TestLocalFileSystem:
    def test_relative_and_absolute(self, tmp_path):
        (tmp_path / "a.txt").write_bytes(b"hi")
        fs = LocalFileSystem(tmp_path)
        assert fs.read_bytes("a.txt") == b"hi"
        assert fs.read_bytes(str(tmp_path / "a.txt")) == b"hi"
        assert fs.exists("a.txt")

    def test_key_is_spelling_insensitive(self, tmp_path):
        fs = LocalFileSystem(tmp_path)
        expected = str((tmp_path / "src" / "a.py").resolve())
        assert fs.key("src/a.py") == expected
        assert fs.key("./src/a.py") == expected
        assert fs.key("src\\a.py") == expected
        assert fs.key(expected) == expected

    def test_missing_and_directory(self, tmp_path):
        (tmp_path / "sub").mkdir()
        fs = LocalFileSystem(tmp_path)
        assert fs.read_bytes("nope.txt") is None
        assert fs.read_bytes("sub") is None
        assert not fs.exists("nope.txt")


class TestSnapshotStore:
    def test_unread_file_is_never_stale(self, tmp_path):
        (tmp_path / "a.py").write_text("x")
        store = SnapshotStore()
        assert store.stale_paths(["a.py"], LocalFileSystem(tmp_path)) == []

    def test_unchanged_file_not_stale(self, tmp_path):
        (tmp_path / "a.py").write_text("x")
        store = SnapshotStore()
        store.record_read("a.py", b"x")
        assert store.stale_paths(["a.py"], LocalFileSystem(tmp_path)) == []

    def test_external_change_is_stale(self, tmp_path):
        (tmp_path / "a.py").write_text("x")
        store = SnapshotStore()
        store.record_read("a.py", b"x")
        (tmp_path / "a.py").write_text("changed")
        assert store.stale_paths(["a.py"], LocalFileSystem(tmp_path)) == ["a.py"]

    def test_deleted_file_is_stale(self, tmp_path):
        store = SnapshotStore()
        store.record_read("gone.py", b"x")
        assert store.stale_paths(["gone.py"], LocalFileSystem(tmp_path)) == [
            "gone.py"
        ]

    def test_reports_every_stale_path(self, tmp_path):
        for name in ("a.py", "b.py", "c.py"):
            (tmp_path / name).write_text("v1")
        store = SnapshotStore()
        for name in ("a.py", "b.py", "c.py"):
            store.record_read(name, b"v1")
        (tmp_path / "a.py").write_text("v2")
        (tmp_path / "c.py").write_text("v2")
        stale = store.stale_paths(["a.py", "b.py", "c.py"], LocalFileSystem(tmp_path))
        assert stale == ["a.py", "c.py"]

    def test_reread_clears_staleness(self, tmp_path):
        store = SnapshotStore()
        store.record_read("a.py", b"old")
        (tmp_path / "a.py").write_text("new")
        store.record_read("a.py", b"new")
        assert store.stale_paths(["a.py"], LocalFileSystem(tmp_path)) == []

    def test_invalidate_removes_separator_variants(self):
        store = SnapshotStore()
        store.record_read("src/a.py", b"x")
        store.record_read("src\\a.py", b"x")
        assert store.invalidate("src/a.py")
        assert "src/a.py" not in store
        assert "src\\a.py" not in store
        assert len(store) == 0

    def test_invalidated_path_needs_reread(self, tmp_path):
        (tmp_path / "a.py").write_text("x")
        fs = LocalFileSystem(tmp_path)
        store = SnapshotStore()
        store.record_read("a.py", b"x")
        store.invalidate("a.py")
        assert store.get("a.py") is None
        assert store.stale_paths(["a.py"], fs) == ["a.py"]
        store.record_read("a.py", b"x")
        assert store.stale_paths(["a.py"], fs) == []

    def test_refresh_only_updates_existing(self):
        store = SnapshotStore()
        assert not store.refresh("never-read.py", b"x")
        assert "never-read.py" not in store
        store.record_read("a.py", b"old")
        assert store.refresh("a.py", b"new")
        assert store.get("a.py").fingerprint == fingerprint(b"new")

    def test_clear(self):
        store = SnapshotStore()
        store.record_read("a.py", b"x")
        store.invalidate("b.py")
        store.clear()
        assert len(store) == 0
        assert not store.needs_reread("b.py")


class TestRootedStore:
    def _store(self, tmp_path):
        (tmp_path / "src").mkdir()
        (tmp_path / "src" / "a.py").write_text("v1")
        fs = LocalFileSystem(tmp_path)
        return SnapshotStore(fs=fs), fs

    def test_dot_prefixed_read_guards_plain_write(self, tmp_path):
        store, fs = self._store(tmp_path)
        store.record_read("./src/a.py", b"v1")
        (tmp_path / "src" / "a.py").write_text("v2")
        assert store.stale_paths(["src/a.py"], fs) == ["src/a.py"]

    def test_absolute_read_guards_relative_write(self, tmp_path):
        store, fs = self._store(tmp_path)
        store.record_read(str(tmp_path / "src" / "a.py"), b"v1")
        (tmp_path / "src" / "a.py").write_text("v2")
        assert store.stale_paths(["src/a.py"], fs) == ["src/a.py"]

    def test_invalidate_through_other_spelling(self, tmp_path):
        store, _ = self._store(tmp_path)
        store.record_read("./src/a.py", b"v1")
        assert store.invalidate(str(tmp_path / "src" / "a.py"))
        assert len(store) == 0
        assert store.needs_reread("src/a.py")
        store.record_read("src\\a.py", b"v1")
        assert not store.needs_reread("./src/a.py")
