"""
Typed outcomes of the two Gemini calls.

Requesters return one of these values instead of raising, so callers branch
on the outcome type:

    result = await service.analyze_food_image(data, "image/jpeg")
    if isinstance(result, AnalysisSuccess):
        ...

Failure kinds stay distinct for logs and tests even though the user only
ever sees a generic message.
"""

from dataclasses import dataclass
from typing import Literal, Union

from nutrivision.services.ai_schemas import FoodAnalysis

TransportReason = Literal[
    "auth", "rate_limit", "timeout", "network", "server", "request", "unknown"
]


@dataclass(frozen=True)
class TransportFailure:
    """Network, auth, rate-limit, timeout or server error on a remote call."""

    reason: TransportReason
    message: str
    status_code: int | None = None

    kind = "transport"


@dataclass(frozen=True)
class ValidationFailure:
    """Analysis response was empty, not JSON, or broke the schema contract."""

    message: str
    raw_response: str = ""

    kind = "validation"


@dataclass(frozen=True)
class NoImageFailure:
    """Image generation response carried no inline image part."""

    message: str = "No image data found in response"

    kind = "no_image"


@dataclass(frozen=True)
class AnalysisSuccess:
    analysis: FoodAnalysis
    model: str
    raw_response: str = ""


@dataclass(frozen=True)
class SynthesisSuccess:
    image: str  # data URI
    mime_type: str
    model: str


Failure = Union[TransportFailure, ValidationFailure, NoImageFailure]
AnalysisResult = Union[AnalysisSuccess, TransportFailure, ValidationFailure]
SynthesisResult = Union[SynthesisSuccess, TransportFailure, NoImageFailure]
