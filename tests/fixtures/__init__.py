"""Test fixtures for NutriVision."""

from tests.fixtures.mocks import (
    MockGeminiService,
    make_genai_client,
    make_part,
    make_parts_response,
    make_text_response,
    sample_analysis,
    sample_analysis_payload,
)

__all__ = [
    "MockGeminiService",
    "make_genai_client",
    "make_part",
    "make_parts_response",
    "make_text_response",
    "sample_analysis",
    "sample_analysis_payload",
]
