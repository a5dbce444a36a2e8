"""
Test configuration and fixtures for NutriVision.

- Mock Gemini service for scan session tests
- Fake google-genai client for GeminiService tests
- Sample image bytes in the formats the capture boundary produces
"""

import io

import pytest
from PIL import Image

from nutrivision.services.ai_service import GeminiService
from nutrivision.services.scan_session import ScanSession
from tests.fixtures.mocks import MockGeminiService, make_genai_client


# =============================================================================
# Image Fixtures
# =============================================================================


def _encode_image(fmt: str, mode: str = "RGB") -> bytes:
    buffer = io.BytesIO()
    Image.new(mode, (8, 8), color=0).save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def jpeg_bytes() -> bytes:
    return _encode_image("JPEG")


@pytest.fixture
def png_bytes() -> bytes:
    return _encode_image("PNG")


@pytest.fixture
def gif_bytes() -> bytes:
    return _encode_image("GIF", mode="P")


# =============================================================================
# Mock Fixtures
# =============================================================================


@pytest.fixture
def mock_gemini_service():
    """
    Mock Gemini service for testing the scan session.

    Returns a mock service that can be configured per test.
    """
    return MockGeminiService()


@pytest.fixture
def scan_session(mock_gemini_service):
    """Scan session wired to the mock Gemini service."""
    return ScanSession(mock_gemini_service)


@pytest.fixture
def genai_client():
    """Fake genai.Client; set generate_content's return_value/side_effect per test."""
    return make_genai_client()


@pytest.fixture
def gemini_service(genai_client):
    """Real GeminiService backed by the fake client."""
    return GeminiService(client=genai_client)


# =============================================================================
# pytest markers
# =============================================================================


def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
