"""Shared pytest fixtures for Teeforge tests."""

import shutil
import tempfile
from pathlib import Path
from typing import Generator
from unittest.mock import MagicMock

import pytest

from teeforge.core.config import TeeforgeConfig
from teeforge.core.gateway import TransformGateway
from teeforge.core.models import Caller, Design, Template
from teeforge.core.orchestrator import IterationOrchestrator
from teeforge.core.store import RecordStore


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to temporary directory

    Cleanup:
        Directory is removed after test completes
    """
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path) -> TeeforgeConfig:
    """Create a test configuration pointing at a temporary database.

    Args:
        temp_dir: Temporary directory from fixture

    Returns:
        TeeforgeConfig instance for testing
    """
    return TeeforgeConfig(
        fal_key="",
        genai_api_key="",
        database_path=temp_dir / "db" / "teeforge.db",
        allow_public_api=False,
        _env_file=None,
    )


@pytest.fixture
def unprovisioned_store(temp_dir: Path) -> RecordStore:
    """Record store whose tables have not been created."""
    return RecordStore(temp_dir / "empty.db")


@pytest.fixture
def store(temp_dir: Path) -> RecordStore:
    """Record store with the full schema provisioned."""
    record_store = RecordStore(temp_dir / "teeforge.db")
    record_store.initialize()
    return record_store


@pytest.fixture
def caller() -> Caller:
    return Caller(user_id="user-1")


@pytest.fixture
def other_caller() -> Caller:
    return Caller(user_id="user-2")


@pytest.fixture
def design(store: RecordStore, caller: Caller) -> Design:
    """A design owned by ``caller``."""
    return store.insert_design(
        user_id=caller.user_id,
        title="Sunset Cat",
        prompt="a cat watching the sunset, retro print",
        image_url="https://cdn.example.com/designs/cat.png",
    )


@pytest.fixture
def template(store: RecordStore) -> Template:
    """A template whose thumbnail differs from its primary image."""
    return store.insert_template(
        title="Mountain Badge",
        prompt="vintage mountain badge",
        image_url="https://cdn.example.com/templates/badge-v1.png",
        thumbnail_image_url="https://cdn.example.com/templates/badge-v2.png",
        aspect_ratio="4:5",
        featured=True,
    )


@pytest.fixture
def mock_gateway() -> MagicMock:
    """Gateway mock returning a distinct URL per transform."""
    gateway = MagicMock(spec=TransformGateway)
    gateway.name = "mock"
    gateway.is_configured.return_value = True
    gateway.generate.return_value = "https://fal.media/generated.jpg"
    gateway.edit.return_value = "https://fal.media/edited.png"
    gateway.remove_background.return_value = "https://fal.media/no-bg.png"
    gateway.knockout_color.return_value = "data:image/png;base64,AAAA"
    gateway.upscale.return_value = "https://fal.media/upscaled.png"
    gateway.prepare_print.return_value = "data:image/png;base64,BBBB"
    gateway.mockup.return_value = "https://fal.media/mockup.jpg"
    gateway.create_style.return_value = "style-123"
    return gateway


@pytest.fixture
def mock_rewriter() -> MagicMock:
    """Rewriter mock that returns a fixed conservative instruction."""
    rewriter = MagicMock()
    rewriter.rewrite.return_value = "make only the sky orange"
    rewriter.is_configured.return_value = True
    return rewriter


@pytest.fixture
def orchestrator(mock_gateway: MagicMock, mock_rewriter: MagicMock) -> IterationOrchestrator:
    return IterationOrchestrator(mock_gateway, mock_rewriter)


@pytest.fixture
def test_client(test_config: TeeforgeConfig, store: RecordStore, mock_gateway, mock_rewriter):
    """FastAPI TestClient wired to a temp store and mocked providers.

    Entering the client as a context manager runs the application lifespan,
    which builds the orchestrator from the injected collaborators.
    """
    from fastapi.testclient import TestClient

    from teeforge.api.main import create_app

    app = create_app(test_config, store=store, gateway=mock_gateway, rewriter=mock_rewriter)
    with TestClient(app) as client:
        yield client
