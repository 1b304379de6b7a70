"""End-to-end tests running the live index against a real watchdog observer."""

import asyncio
import os
import time

import pytest
import pytest_asyncio
from docserve.config import DocserveConfig
from docserve.core import Subscription
from docserve.models import (
    FileAddedMessage,
    FileRemovedMessage,
    FileRenamedMessage,
    ReloadMessage,
)
from docserve.monitoring import MonitoringCoordinator
from docserve.service import DocumentService

TIMEOUT = 5.0


async def wait_for_message(subscription: Subscription, expected, timeout: float = TIMEOUT):
    """Receive until the expected message arrives, tolerating extra reloads."""
    deadline = time.monotonic() + timeout
    seen = []
    while True:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise AssertionError(f"Expected {expected!r}, got {seen!r}")
        try:
            message = await asyncio.wait_for(subscription.receive(), timeout=remaining)
        except asyncio.TimeoutError:
            raise AssertionError(f"Expected {expected!r}, got {seen!r}") from None
        if message == expected:
            return seen
        seen.append(message)


@pytest.fixture
def config():
    return DocserveConfig(rescan_delay_seconds=0.05)


@pytest.fixture
def docs(tmp_path):
    root = tmp_path / "docs"
    (root / "guide").mkdir(parents=True)
    (root / "index.md").write_text("# Index")
    (root / "guide" / "setup.md").write_text("# Setup")
    return root


@pytest_asyncio.fixture
async def live(config, docs):
    coordinator = MonitoringCoordinator(config)
    shared = await coordinator.start(docs)
    # Give the observer thread a moment to settle its watches
    await asyncio.sleep(0.2)
    try:
        yield coordinator, shared
    finally:
        await coordinator.stop()


@pytest.mark.asyncio
class TestLiveIndex:
    """Filesystem changes observed through the whole pipeline."""

    async def test_new_file_is_announced(self, live, docs):
        """Test that creating a document publishes FileAdded."""
        _, shared = live
        subscription = shared.bus.subscribe()

        (docs / "guide" / "faq.md").write_text("# FAQ")

        await wait_for_message(subscription, FileAddedMessage(name="guide/faq.md"))
        async with shared.locked() as index:
            assert "guide/faq.md" in index

    async def test_rename_is_announced(self, live, docs):
        """Test that a plain rename publishes FileRenamed."""
        _, shared = live
        subscription = shared.bus.subscribe()

        os.rename(docs / "guide" / "setup.md", docs / "guide" / "install.md")

        await wait_for_message(
            subscription, FileRenamedMessage(old_name="guide/setup.md", new_name="guide/install.md")
        )
        async with shared.locked() as index:
            assert index.sorted_keys() == ["guide/install.md", "index.md"]

    async def test_removal_is_announced(self, live, docs):
        """Test that deleting a document publishes FileRemoved."""
        _, shared = live
        subscription = shared.bus.subscribe()

        (docs / "index.md").unlink()

        await wait_for_message(subscription, FileRemovedMessage(name="index.md"))

    async def test_atomic_replace_reloads_without_losing_file(self, live, docs, config):
        """Test a write-temp-then-rename save keeps the key and reloads."""
        _, shared = live
        service = DocumentService(shared, config)
        subscription = shared.bus.subscribe()
        await asyncio.sleep(0.05)

        temp = docs / "index.md.tmp"
        temp.write_text("# Index, saved atomically")
        os.replace(temp, docs / "index.md")

        # Requests during the save window still find the document
        view = await service.get_document("index.md")
        assert view.name == "index.md"

        await wait_for_message(subscription, ReloadMessage())
        view = await service.get_document("index.md")
        assert view.markdown == "# Index, saved atomically"
        assert await service.list_documents() == ["guide/setup.md", "index.md"]

    async def test_asset_change_reloads(self, live, docs):
        """Test that a new image requests a reload."""
        _, shared = live
        subscription = shared.bus.subscribe()

        (docs / "guide" / "diagram.png").write_bytes(b"\x89PNG\r\n")

        await wait_for_message(subscription, ReloadMessage())

    async def test_atomic_replace_is_announced_once(self, live, docs):
        """Test a write-temp-then-rename save publishes a single reload."""
        _, shared = live
        subscription = shared.bus.subscribe()

        temp = docs / "index.md.tmp"
        temp.write_text("# Index, saved once")
        os.replace(temp, docs / "index.md")

        extra = await wait_for_message(subscription, ReloadMessage())
        # Let the debounced pass run before counting
        await asyncio.sleep(0.5)

        assert extra == []
        assert subscription.pending == 0
        async with shared.locked() as index:
            assert index.get("index.md").content == "# Index, saved once"


@pytest.mark.asyncio
class TestLiveSingleFile:
    """Serving one file with a real observer."""

    async def test_atomic_replace_is_announced_once(self, config, docs):
        """Test that replacing the served file publishes a single reload."""
        coordinator = MonitoringCoordinator(config)
        shared = await coordinator.start(docs / "index.md")
        try:
            await asyncio.sleep(0.2)
            subscription = shared.bus.subscribe()

            temp = docs / "index.md.tmp"
            temp.write_text("# Index, replaced")
            os.replace(temp, docs / "index.md")

            extra = await wait_for_message(subscription, ReloadMessage())
            await asyncio.sleep(0.5)

            assert extra == []
            assert subscription.pending == 0
            async with shared.locked() as index:
                assert index.sorted_keys() == ["index.md"]
                assert index.get("index.md").content == "# Index, replaced"
        finally:
            await coordinator.stop()
