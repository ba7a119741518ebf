"""Pytest configuration and shared fixtures."""

from pathlib import Path
from unittest.mock import AsyncMock, Mock

import numpy as np
import pytest
from PIL import Image
from playwright.async_api import Browser, BrowserContext, Page

from design_diff.engine.raster import RasterBuffer
from design_diff.models.comparison import AlignmentOffset, DiffRegion
from design_diff.models.config import AIConfig, CompareOptions, DiffConfig
from design_diff.models.report import FixSuggestion, Report, ReportImages

WHITE = (255, 255, 255, 255)
BLACK = (0, 0, 0, 255)
RED = (255, 0, 0, 255)
GRAY = (200, 200, 200, 255)
# Opaque and non-white, so transparent padding (blended over white) differs
TEAL = (0, 128, 128, 255)


# ============================================================================
# Raster Helpers
# ============================================================================


def solid(width: int, height: int, color=WHITE) -> np.ndarray:
    """An (h, w, 4) uint8 array filled with one colour."""
    arr = np.zeros((height, width, 4), dtype=np.uint8)
    arr[...] = color
    return arr


def with_block(arr: np.ndarray, x: int, y: int, w: int, h: int, color=BLACK) -> np.ndarray:
    """Copy of ``arr`` with a filled rectangle."""
    out = arr.copy()
    out[y:y + h, x:x + w] = color
    return out


def stripes(width: int, height: int) -> np.ndarray:
    """1px vertical black/white stripes, black on even columns."""
    arr = solid(width, height, WHITE)
    arr[:, ::2] = BLACK
    return arr


def diff_raster(width: int, height: int, blocks: list[tuple[int, int, int, int]]) -> RasterBuffer:
    """A diff-engine style raster: grey context with red marker blocks."""
    arr = solid(width, height, GRAY)
    for x, y, w, h in blocks:
        arr[y:y + h, x:x + w] = RED
    return RasterBuffer.from_array(arr)


def write_png(arr: np.ndarray, path: Path) -> Path:
    Image.fromarray(arr).save(path)
    return path


# ============================================================================
# Raster Fixtures
# ============================================================================


@pytest.fixture
def white_100() -> np.ndarray:
    return solid(100, 100, WHITE)


@pytest.fixture
def block_100(white_100: np.ndarray) -> np.ndarray:
    """100x100 white canvas with a 20x20 black block at (40, 40)."""
    return with_block(white_100, 40, 40, 20, 20)


@pytest.fixture
def base_png(white_100: np.ndarray, tmp_path: Path) -> Path:
    return write_png(white_100, tmp_path / "base.png")


@pytest.fixture
def block_png(block_100: np.ndarray, tmp_path: Path) -> Path:
    return write_png(block_100, tmp_path / "actual.png")


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def compare_options() -> CompareOptions:
    return CompareOptions()


@pytest.fixture
def diff_config(tmp_path: Path) -> DiffConfig:
    """Config writing into the test's temp directory with AI disabled."""
    return DiffConfig(
        ai=AIConfig(enabled=False),
        output_dir=str(tmp_path / "out"),
        reports_dir=str(tmp_path / "reports"),
    )


@pytest.fixture
def temp_config_file(diff_config: DiffConfig, tmp_path: Path) -> Path:
    """Write diff_config to a temp JSON file."""
    config_path = tmp_path / "design-diff.json"
    diff_config.save(config_path)
    return config_path


# ============================================================================
# Report Fixtures
# ============================================================================


@pytest.fixture
def diff_region() -> DiffRegion:
    return DiffRegion(
        id=1,
        x=35,
        y=35,
        width=30,
        height=30,
        pixel_count=400,
        score=72.83,
        priority="high",
        type="minor",
        description="High minor difference #1 (30x30px)",
    )


@pytest.fixture
def fix_suggestion() -> FixSuggestion:
    return FixSuggestion(
        priority="medium",
        type="spacing",
        description="Card padding is 4px larger than the design",
        selector=".card",
        current_css="padding: 20px;",
        suggested_css="padding: 16px;",
        impact="Aligns the card content with the mock-up",
    )


@pytest.fixture
def completed_report(diff_region: DiffRegion, fix_suggestion: FixSuggestion) -> Report:
    return Report(
        id="rpt_0123456789",
        created_at="2025-01-01T00:00:00Z",
        updated_at="2025-01-01T00:00:05Z",
        status="completed",
        design_source="design/home.png",
        actual_source="captures/home.png",
        url="https://example.com",
        similarity=96.0,
        diff_pixels=400,
        total_pixels=10000,
        alignment=AlignmentOffset(dx=1, dy=0),
        images=ReportImages(
            design="design/home.png",
            actual="captures/home.png",
            diff="out/rpt_0123456789/diff.png",
            annotated="out/rpt_0123456789/diff-annotated.png",
        ),
        diff_regions=[diff_region],
        fixes=[fix_suggestion],
    )


# ============================================================================
# Mock Fixtures
# ============================================================================


@pytest.fixture
def mock_anthropic_client() -> Mock:
    """Create a mock Anthropic client."""
    mock_client = Mock()
    mock_response = Mock()
    mock_response.content = [Mock(text='{"fixes": []}')]
    mock_response.stop_reason = "end_turn"
    mock_response.usage = Mock(input_tokens=100, output_tokens=200)
    mock_client.messages.create.return_value = mock_response
    return mock_client


@pytest.fixture
def mock_page() -> AsyncMock:
    """Create a mock Playwright page."""
    page = AsyncMock(spec=Page)
    page.goto = AsyncMock()
    page.screenshot = AsyncMock()
    page.wait_for_timeout = AsyncMock()
    return page


@pytest.fixture
def mock_context(mock_page: AsyncMock) -> AsyncMock:
    """Create a mock Playwright browser context."""
    context = AsyncMock(spec=BrowserContext)
    context.new_page = AsyncMock(return_value=mock_page)
    return context


@pytest.fixture
def mock_browser(mock_context: AsyncMock) -> AsyncMock:
    """Create a mock Playwright browser."""
    browser = AsyncMock(spec=Browser)
    browser.new_context = AsyncMock(return_value=mock_context)
    return browser
