import os
from unittest.mock import AsyncMock

import pytest

# Import logging configuration
from tests.conftest_logging import configure_test_logging

# Set environment variables for testing before importing application modules
os.environ.setdefault("SERVERDASH_PANEL_URL", "http://panel.test")
os.environ.setdefault("SERVERDASH_API_KEY", "test-client-api-key")

from serverdash.context import ServerContext
from serverdash.files.store import DirectoryStore
from serverdash.flash import FlashStore
from serverdash.models import (
    Allocation,
    DirectoryEntry,
    DirectoryState,
    Instance,
    Limits,
    TelemetrySample,
)
from serverdash.panel_client import PanelClient

SERVER_UUID = "1a7ce997-259b-452e-8b4e-cecc464142ca"


@pytest.fixture
def sample_instance() -> Instance:
    """A server with a 200% cpu, 1000 MB memory and 5000 MB disk limit."""
    return Instance(
        id="1a7ce997",
        uuid=SERVER_UUID,
        name="Survival",
        limits=Limits(cpu=200, memory=1000, disk=5000),
        allocations=(
            Allocation(ip="10.0.0.5", port=25565, alias="mc.example.com", is_default=True),
            Allocation(ip="10.0.0.5", port=25566),
        ),
    )


@pytest.fixture
def sample_stats() -> TelemetrySample:
    return TelemetrySample(
        cpu_usage_percent=35.5,
        memory_usage_in_bytes=512_000_000,
        disk_usage_in_bytes=1_200_000_000,
    )


@pytest.fixture
def sample_entries():
    """Entries in the order the panel would list them."""
    return [
        DirectoryEntry(uuid="d-plugins", name="plugins", is_file=False),
        DirectoryEntry(uuid="f-props", name="server.properties", size=1204),
        DirectoryEntry(uuid="x", name="foo.txt", size=12),
    ]


@pytest.fixture
def mock_panel_client():
    """Provides a PanelClient whose API methods are mocked to avoid real network calls."""
    client = PanelClient(base_url="http://panel.test", api_key="test-client-api-key")
    client.get_server = AsyncMock()
    client.get_resource_usage = AsyncMock()
    client.list_directory = AsyncMock(return_value=[])
    client.rename_entry = AsyncMock(return_value=None)
    client.copy_entry = AsyncMock(return_value=None)
    client.delete_entry = AsyncMock(return_value=None)
    client.get_download_url = AsyncMock()
    return client


@pytest.fixture
def context(sample_instance, mock_panel_client) -> ServerContext:
    """A context for a user with every permission on the server."""
    return ServerContext(instance=sample_instance, client=mock_panel_client, permissions={"*"})


@pytest.fixture
def flashes() -> FlashStore:
    return FlashStore()


@pytest.fixture
def loaded_store(context, sample_entries) -> DirectoryStore:
    """A store sitting in /home with the sample entries."""
    store = DirectoryStore(context)
    store._state = DirectoryState(path="/home", entries=tuple(sample_entries))
    return store
