"""Unit tests for the FileIndex registry."""

import os
from pathlib import Path

import pytest
from docserve.config import DocserveConfig
from docserve.core import ChangeBus, FileIndex, scan_documents
from docserve.models import (
    FileRemovedMessage,
    FileRenamedMessage,
    InitializationError,
    ReloadMessage,
)


def render(content: str) -> str:
    return f"<html>{content}</html>"


def bump_mtime(path: Path, seconds: int = 10) -> None:
    """Move a file's modification time strictly forward."""
    stat = path.stat()
    os.utime(path, ns=(stat.st_atime_ns, stat.st_mtime_ns + seconds * 1_000_000_000))


@pytest.fixture
def config():
    return DocserveConfig()


@pytest.fixture
def docs(tmp_path):
    (tmp_path / "guide").mkdir()
    (tmp_path / "index.md").write_text("# Index")
    (tmp_path / "guide" / "setup.md").write_text("# Setup")
    (tmp_path / "notes.txt").write_text("not tracked")
    return tmp_path


@pytest.fixture
def index(docs, config):
    return FileIndex.initialize(docs, scan_documents(docs, config.document_extensions), config, render)


class TestInitialize:
    """Test cases for FileIndex.initialize."""

    def test_tracks_every_file(self, index, docs):
        """Test initial state from a directory scan."""
        assert index.sorted_keys() == ["guide/setup.md", "index.md"]
        assert len(index) == 2
        assert "index.md" in index

        tracked = index.get("guide/setup.md")
        assert tracked.content == "# Setup"
        assert tracked.html == "<html># Setup</html>"
        assert tracked.path.resolve() == (docs / "guide" / "setup.md").resolve()
        assert tracked.modified_ns == (docs / "guide" / "setup.md").stat().st_mtime_ns

    def test_relative_file_paths(self, docs, config):
        """Test files given relative to the root."""
        index = FileIndex.initialize(docs, [Path("index.md")], config, render)

        assert index.sorted_keys() == ["index.md"]

    def test_unreadable_file_aborts(self, docs, config):
        """Test that startup is all or nothing."""
        with pytest.raises(InitializationError) as exc_info:
            FileIndex.initialize(docs, [docs / "index.md", docs / "missing.md"], config, render)

        assert exc_info.value.context["initialization_stage"] == "read"

    def test_invalid_utf8_aborts(self, docs, config):
        """Test that undecodable content fails startup."""
        (docs / "binary.md").write_bytes(b"\xff\xfe\xfa")

        with pytest.raises(InitializationError):
            FileIndex.initialize(docs, [docs / "binary.md"], config, render)

    def test_file_outside_root_aborts(self, tmp_path, config):
        """Test that files outside the root are rejected."""
        root = tmp_path / "root"
        root.mkdir()
        outside = tmp_path / "outside.md"
        outside.write_text("# Outside")

        with pytest.raises(InitializationError):
            FileIndex.initialize(root, [outside], config, render)

    def test_symlink_escaping_root_aborts(self, tmp_path, config):
        """Test that a link resolving outside the root is not tracked."""
        root = tmp_path / "root"
        root.mkdir()
        secret = tmp_path / "secret.md"
        secret.write_text("# Secret")
        (root / "link.md").symlink_to(secret)

        with pytest.raises(InitializationError):
            FileIndex.initialize(root, [root / "link.md"], config, render)


class TestRefresh:
    """Test cases for content refresh."""

    def test_refresh_without_change(self, index):
        """Test that an unchanged mtime skips the read."""
        assert index.refresh("index.md") is False

    def test_refresh_picks_up_new_content(self, index, docs):
        """Test that a newer mtime re-reads and re-renders."""
        path = docs / "index.md"
        path.write_text("# Changed")
        bump_mtime(path)

        assert index.refresh("index.md") is True
        assert index.get("index.md").content == "# Changed"
        assert index.get("index.md").html == "<html># Changed</html>"
        assert index.refresh("index.md") is False

    def test_touch_without_content_change(self, index, docs):
        """Test that a newer mtime with equal content is not a change."""
        path = docs / "index.md"
        bump_mtime(path)

        assert index.refresh("index.md") is False
        assert index.get("index.md").modified_ns == path.stat().st_mtime_ns

    def test_older_mtime_is_ignored(self, index, docs):
        """Test that content is only read when strictly newer."""
        path = docs / "index.md"
        previous = index.get("index.md").modified_ns
        path.write_text("# Changed")
        os.utime(path, ns=(previous, previous))

        assert index.refresh("index.md") is False
        assert index.get("index.md").content == "# Index"

    def test_refresh_missing_file_raises(self, index, docs):
        """Test that IO errors propagate from refresh."""
        (docs / "index.md").unlink()

        with pytest.raises(OSError):
            index.refresh("index.md")

    def test_refresh_unknown_key(self, index):
        """Test refreshing an untracked key."""
        assert index.refresh("nope.md") is False

    @pytest.mark.asyncio
    async def test_pass_skips_unreadable_files(self, index, docs):
        """Test that one unreadable file does not stop the others."""
        broken = docs / "index.md"
        broken.write_bytes(b"\xff\xfe\xfa")
        bump_mtime(broken)
        setup = docs / "guide" / "setup.md"
        setup.write_text("# New setup")
        bump_mtime(setup)

        assert index.synchronize() == ReloadMessage()
        assert index.get("guide/setup.md").content == "# New setup"
        assert index.get("index.md").content == "# Index"

    def test_refresh_does_not_mutate_previous_record(self, index, docs):
        """Test that refresh replaces records so snapshots stay stable."""
        snapshot = index.snapshot()
        path = docs / "index.md"
        path.write_text("# Changed")
        bump_mtime(path)

        index.refresh("index.md")

        assert snapshot["index.md"].content == "# Index"
        assert index.get("index.md").content == "# Changed"


class TestAddAndRemove:
    """Test cases for add_if_absent and remove."""

    def test_add_new_file(self, index, docs):
        """Test tracking a new file."""
        (docs / "guide" / "new.md").write_text("# New")

        assert index.add_if_absent(docs / "guide" / "new.md") == "guide/new.md"
        assert index.get("guide/new.md").content == "# New"

    def test_add_existing_key(self, index, docs):
        """Test that a tracked key is left untouched."""
        assert index.add_if_absent(docs / "index.md") is None
        assert len(index) == 2

    def test_add_outside_root(self, index, tmp_path_factory):
        """Test that foreign paths are ignored."""
        other = tmp_path_factory.mktemp("other") / "x.md"
        other.write_text("# X")

        assert index.add_if_absent(other) is None

    def test_remove(self, index):
        """Test untracking a key."""
        assert index.remove("index.md").relative_path == "index.md"
        assert index.remove("index.md") is None
        assert index.sorted_keys() == ["guide/setup.md"]


class TestReconcile:
    """Test cases for reconcile and synchronize."""

    def test_reconcile_noop(self, index):
        """Test that an unchanged tree reports no key change."""
        assert index.reconcile() is False

    def test_reconcile_is_idempotent(self, index, docs):
        """Test that a second pass is a no-op."""
        (docs / "added.md").write_text("# Added")
        (docs / "index.md").unlink()

        assert index.reconcile() is True
        assert index.sorted_keys() == ["added.md", "guide/setup.md"]
        assert index.reconcile() is False

    def test_reconcile_reuses_rendered_output(self, docs, config):
        """Test that a renamed file is not rendered again."""
        calls = []

        def counting_render(content):
            calls.append(content)
            return render(content)

        index = FileIndex.initialize(docs, scan_documents(docs, config.document_extensions), config, counting_render)
        calls.clear()
        (docs / "index.md").rename(docs / "home.md")

        index.reconcile()

        assert calls == []
        assert index.get("home.md").html == "<html># Index</html>"

    def test_reconcile_single_file_mode(self, docs, config):
        """Test that single-file indexes never rescan."""
        index = FileIndex.initialize(docs, [docs / "index.md"], config, render, directory_mode=False)
        (docs / "other.md").write_text("# Other")

        assert index.reconcile() is False
        assert index.sorted_keys() == ["index.md"]

    @pytest.mark.asyncio
    async def test_synchronize_rename(self, index, docs):
        """Test that a rename is classified and published."""
        subscription = index.bus.subscribe()
        (docs / "guide" / "setup.md").rename(docs / "guide" / "install.md")

        message = index.synchronize()

        assert message == FileRenamedMessage(old_name="guide/setup.md", new_name="guide/install.md")
        assert await subscription.receive() == message

    @pytest.mark.asyncio
    async def test_synchronize_removal(self, index, docs):
        """Test that a deletion is published as a removal."""
        subscription = index.bus.subscribe()
        (docs / "index.md").unlink()

        assert index.synchronize() == FileRemovedMessage(name="index.md")
        assert subscription.pending == 1

    @pytest.mark.asyncio
    async def test_synchronize_content_replace(self, index, docs):
        """Test that a content change with stable keys reloads."""
        path = docs / "index.md"
        path.write_text("# Replaced")
        bump_mtime(path)

        assert index.synchronize() == ReloadMessage()
        assert index.get("index.md").content == "# Replaced"

    @pytest.mark.asyncio
    async def test_synchronize_nothing_changed(self, index):
        """Test that an idle pass publishes nothing."""
        bus: ChangeBus = index.bus
        subscription = bus.subscribe()

        assert index.synchronize() is None
        assert subscription.pending == 0
        assert bus.published_count == 0

    def test_symlink_escape_skipped_on_rescan(self, index, docs, tmp_path_factory):
        """Test that an escaping link added later is never tracked."""
        secret = tmp_path_factory.mktemp("outside") / "secret.md"
        secret.write_text("# Secret")
        (docs / "link.md").symlink_to(secret)

        assert index.reconcile() is False
        assert index.reconcile() is False
        assert "link.md" not in index

    def test_escaping_link_does_not_disturb_other_changes(self, index, docs, tmp_path_factory):
        """Test that a rescan with an escaping link still converges."""
        secret = tmp_path_factory.mktemp("outside") / "secret.md"
        secret.write_text("# Secret")
        (docs / "link.md").symlink_to(secret)
        (docs / "added.md").write_text("# Added")

        assert index.reconcile() is True
        assert index.reconcile() is False
        assert index.sorted_keys() == ["added.md", "guide/setup.md", "index.md"]

    @pytest.mark.asyncio
    async def test_apply_keeps_files_added_after_collection(self, index, docs):
        """Test that a split pass does not drop keys added in between."""
        result = index.collect_rescan(index.snapshot())
        (docs / "late.md").write_text("# Late")
        index.add_if_absent(docs / "late.md")

        assert index.apply_rescan(result) is None
        assert "late.md" in index

    @pytest.mark.asyncio
    async def test_apply_skips_records_refreshed_in_between(self, index, docs):
        """Test that a change seen by a direct refresh is announced once."""
        subscription = index.bus.subscribe()
        path = docs / "index.md"
        path.write_text("# Edited")
        bump_mtime(path)
        result = index.collect_rescan(index.snapshot())

        assert index.refresh("index.md") is True
        assert index.apply_rescan(result) is None
        assert subscription.pending == 0
        assert index.get("index.md").content == "# Edited"
