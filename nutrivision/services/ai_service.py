"""
Gemini integration service for food analysis and idealized dish rendering.

This service provides two AI capabilities:
1. Food image analysis with structured JSON output (analysis model)
2. Idealized dish photo generation (image model)

Both calls are made exactly once per invocation and return typed outcomes
(see ai_results.py) instead of raising on remote failures.
"""

import asyncio
import json
import logging
import re
from typing import Any, Optional

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types
from pydantic import ValidationError

from nutrivision.config import settings
from nutrivision.services.ai_results import (
    AnalysisResult,
    AnalysisSuccess,
    NoImageFailure,
    SynthesisResult,
    SynthesisSuccess,
    TransportFailure,
    ValidationFailure,
)
from nutrivision.services.ai_schemas import FOOD_ANALYSIS_RESPONSE_SCHEMA, FoodAnalysis
from nutrivision.services.image_service import load_meal_image, to_data_uri
from nutrivision.services.prompts import (
    FOOD_ANALYSIS_PROMPT,
    build_idealized_image_prompt,
)


logger = logging.getLogger(__name__)

DEFAULT_GENERATED_MIME_TYPE = "image/png"

_TRANSPORT_ERRORS = (
    genai_errors.APIError,
    httpx.TransportError,
    asyncio.TimeoutError,
    TimeoutError,
    OSError,
)


def _strip_markdown_json(text: str) -> str:
    """Strip markdown code block wrappers from JSON text."""
    if "```json" in text:
        text = text.split("```json")[1].split("```")[0].strip()
    elif "```" in text:
        text = text.split("```")[1].split("```")[0].strip()
    return text


def _fix_trailing_commas(text: str) -> str:
    """Fix trailing commas in JSON (common LLM error)."""
    text = re.sub(r",\s*}", "}", text)
    text = re.sub(r",\s*]", "]", text)
    return text


def _load_json(raw_text: str) -> Any:
    """
    Parse the model's JSON reply.

    Structured output is normally valid JSON and is parsed untouched; the
    markdown and trailing-comma repairs only run when that fails, since they
    also rewrite matching text inside string values.
    """
    try:
        return json.loads(raw_text)
    except json.JSONDecodeError:
        logger.debug("Analysis response is not plain JSON, attempting repair")
    return json.loads(_fix_trailing_commas(_strip_markdown_json(raw_text)))


def _transport_failure(exc: Exception) -> TransportFailure:
    """Map SDK and HTTP errors onto a TransportFailure."""
    if isinstance(exc, genai_errors.APIError):
        code = exc.code
        message = exc.message or str(exc)
        if code in (401, 403):
            return TransportFailure("auth", message, code)
        if code == 429:
            return TransportFailure("rate_limit", message, code)
        if code in (408, 504):
            return TransportFailure("timeout", message, code)
        if isinstance(exc, genai_errors.ServerError) or (code and code >= 500):
            return TransportFailure("server", message, code)
        return TransportFailure("request", message, code)
    # aiohttp transport: ServerTimeoutError is an asyncio.TimeoutError and
    # connection failures are OSErrors
    if isinstance(exc, (httpx.TimeoutException, asyncio.TimeoutError, TimeoutError)):
        return TransportFailure("timeout", str(exc) or "Request timed out")
    if isinstance(exc, (httpx.TransportError, OSError)):
        return TransportFailure("network", str(exc) or "Network error")
    return TransportFailure("unknown", str(exc) or type(exc).__name__)


def _usage_tokens(response: Any) -> tuple[Optional[int], Optional[int]]:
    usage = getattr(response, "usage_metadata", None)
    if usage is None:
        return None, None
    return (
        getattr(usage, "prompt_token_count", None),
        getattr(usage, "candidates_token_count", None),
    )


def _first_inline_image(response: Any) -> Optional[types.Blob]:
    """Return the first part carrying inline image bytes, scanning in order."""
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return None
    content = getattr(candidates[0], "content", None)
    for part in getattr(content, "parts", None) or []:
        inline_data = getattr(part, "inline_data", None)
        if inline_data is not None and inline_data.data:
            return inline_data
    return None


class GeminiService:
    """Centralized Gemini API integration for all AI features."""

    def __init__(self, client: Optional[genai.Client] = None):
        if client is None:
            client = genai.Client(
                api_key=settings.gemini_api_key or None,
                http_options=types.HttpOptions(timeout=settings.gemini_timeout * 1000),
            )
        self.client = client
        self.analysis_model = settings.analysis_model
        self.image_model = settings.image_model

    # =========================================================================
    # FOOD IMAGE ANALYSIS
    # =========================================================================

    async def analyze_food_image(
        self, image_bytes: bytes, mime_type: str = "image/jpeg"
    ) -> AnalysisResult:
        """
        Analyze a food photo and return the structured breakdown.

        Args:
            image_bytes: Encoded still image (JPEG, PNG, WebP, ...)
            mime_type: MIME type of image_bytes

        Returns:
            AnalysisSuccess with the validated FoodAnalysis, or
            TransportFailure / ValidationFailure

        Raises:
            ValueError: If the image is empty or unreadable
        """
        image = load_meal_image(image_bytes, mime_type)
        config = types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=FOOD_ANALYSIS_RESPONSE_SCHEMA,
        )
        contents = [
            types.Content(
                role="user",
                parts=[
                    types.Part.from_bytes(data=image.data, mime_type=image.mime_type),
                    types.Part.from_text(text=FOOD_ANALYSIS_PROMPT),
                ],
            )
        ]

        try:
            response = await self.client.aio.models.generate_content(
                model=self.analysis_model,
                contents=contents,
                config=config,
            )
        except _TRANSPORT_ERRORS as e:
            failure = _transport_failure(e)
            logger.warning(
                "Food analysis request failed (%s): %s", failure.reason, failure.message
            )
            return failure
        except Exception as e:
            logger.exception("Unexpected error during food analysis request")
            return _transport_failure(e)

        prompt_tokens, output_tokens = _usage_tokens(response)
        logger.info(
            "Food analysis completed: model=%s prompt_tokens=%s output_tokens=%s",
            self.analysis_model,
            prompt_tokens,
            output_tokens,
        )

        raw_text = (response.text or "").strip()
        result = self._parse_analysis(raw_text)
        if isinstance(result, ValidationFailure):
            logger.warning("Food analysis response rejected: %s", result.message)
        return result

    def _parse_analysis(self, raw_text: str) -> AnalysisResult:
        """Parse and validate the JSON payload against the FoodAnalysis contract."""
        if not raw_text:
            return ValidationFailure("No text content in AI response")

        try:
            parsed = _load_json(raw_text)
            analysis = FoodAnalysis.model_validate(parsed)
        except (json.JSONDecodeError, ValidationError) as e:
            return ValidationFailure(str(e), raw_response=raw_text)

        return AnalysisSuccess(
            analysis=analysis, model=self.analysis_model, raw_response=raw_text
        )

    # =========================================================================
    # IDEALIZED IMAGE GENERATION
    # =========================================================================

    async def generate_idealized_image(
        self, dish_name: str, description: str = ""
    ) -> SynthesisResult:
        """
        Generate a studio-style photo of the analyzed dish.

        Args:
            dish_name: Name of the dish (must not be blank)
            description: Optional dish description

        Returns:
            SynthesisSuccess with a data URI, or TransportFailure / NoImageFailure

        Raises:
            ValueError: If dish_name is blank
        """
        if not dish_name or not dish_name.strip():
            raise ValueError("dish_name is required")

        prompt = build_idealized_image_prompt(dish_name, description)
        config = types.GenerateContentConfig(
            response_modalities=["IMAGE"],
            image_config=types.ImageConfig(
                aspect_ratio=settings.image_aspect_ratio,
                image_size=settings.image_size,
            ),
        )

        try:
            response = await self.client.aio.models.generate_content(
                model=self.image_model,
                contents=[
                    types.Content(role="user", parts=[types.Part.from_text(text=prompt)])
                ],
                config=config,
            )
        except _TRANSPORT_ERRORS as e:
            failure = _transport_failure(e)
            logger.warning(
                "Image generation request failed (%s): %s",
                failure.reason,
                failure.message,
            )
            return failure
        except Exception as e:
            logger.exception("Unexpected error during image generation request")
            return _transport_failure(e)

        blob = _first_inline_image(response)
        if blob is None:
            logger.warning("Image generation returned no image for %r", dish_name)
            return NoImageFailure()

        mime_type = blob.mime_type or DEFAULT_GENERATED_MIME_TYPE
        logger.info(
            "Idealized image generated: model=%s mime_type=%s bytes=%d",
            self.image_model,
            mime_type,
            len(blob.data),
        )
        return SynthesisSuccess(
            image=to_data_uri(blob.data, mime_type),
            mime_type=mime_type,
            model=self.image_model,
        )
