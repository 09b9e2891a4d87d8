"""Pytest configuration and shared fixtures."""

from unittest.mock import AsyncMock, Mock

import pytest
from playwright.async_api import Page

from canvaswatch.catalog.registry import Catalog
from canvaswatch.models.config import BrowserConfig, RunConfig, ViewportConfig, WatchConfig

from fakes import FakeGeometry, FakeScreenshots


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def watch_config() -> WatchConfig:
    """Default watch configuration."""
    return WatchConfig(threshold_bits=40, grid_size=32)


@pytest.fixture
def run_config(tmp_path) -> RunConfig:
    """Run configuration writing into a temporary directory."""
    return RunConfig(
        target_url="https://example.com/animation",
        duration_seconds=5,
        output_dir=str(tmp_path / "captures"),
        browser=BrowserConfig(viewport=ViewportConfig(width=1024, height=768)),
    )


@pytest.fixture
def temp_config_file(run_config: RunConfig, tmp_path):
    """Create a temporary config file."""
    config_file = tmp_path / "canvaswatch.json"
    run_config.save(config_file)
    return config_file


# ============================================================================
# Collaborator Fixtures
# ============================================================================


@pytest.fixture
def geometry() -> FakeGeometry:
    return FakeGeometry()


@pytest.fixture
def screenshots() -> FakeScreenshots:
    return FakeScreenshots()


@pytest.fixture
def catalog() -> Catalog:
    return Catalog()


@pytest.fixture
def mock_page() -> AsyncMock:
    """Create a mock Playwright page."""
    page = AsyncMock(spec=Page)
    page.evaluate = AsyncMock()
    page.screenshot = AsyncMock()
    page.bring_to_front = AsyncMock()
    page.wait_for_timeout = AsyncMock()
    page.query_selector_all = AsyncMock(return_value=[])
    page.is_closed = Mock(return_value=False)
    page.on = Mock()
    return page
