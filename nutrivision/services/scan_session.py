"""
Scan session state machine: upload -> analysis -> optional image generation.

The session owns a single immutable ScanSnapshot and replaces it on every
transition. Remote calls run as asyncio tasks; each captures the generation
token current when it started and only applies its result if that token is
still current and the phase is unchanged. Reset bumps the token, so late
responses from an abandoned scan are dropped instead of overwriting newer
state. Nothing is cancelled on the remote side.
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Coroutine, Optional, Protocol

from nutrivision.services.ai_results import (
    AnalysisResult,
    AnalysisSuccess,
    Failure,
    SynthesisResult,
    SynthesisSuccess,
    TransportFailure,
)
from nutrivision.services.ai_schemas import FoodAnalysis
from nutrivision.services.image_service import (
    MealImage,
    detect_mime_type,
    load_meal_image,
    needs_reencode,
)

logger = logging.getLogger(__name__)

ANALYSIS_ERROR_MESSAGE = "Failed to analyze food. Please try again with a clearer photo."
IMAGE_ERROR_NOTICE = "Could not generate image at this time."


class ScanPhase(str, Enum):
    IDLE = "IDLE"
    ANALYZING = "ANALYZING"
    RESULTS = "RESULTS"
    GENERATING_IMAGE = "GENERATING_IMAGE"
    ERROR = "ERROR"


@dataclass(frozen=True)
class ScanSnapshot:
    """Everything the view needs to render one moment of the session."""

    phase: ScanPhase = ScanPhase.IDLE
    user_image: Optional[str] = None  # data URI
    analysis: Optional[FoodAnalysis] = None
    generated_image: Optional[str] = None  # data URI
    error_message: Optional[str] = None
    notice: Optional[str] = None  # transient, cleared by the next transition
    generation: int = 0


class FoodAnalyzer(Protocol):
    async def analyze_food_image(
        self, image_bytes: bytes, mime_type: str
    ) -> AnalysisResult: ...


class IdealizedImageGenerator(Protocol):
    async def generate_idealized_image(
        self, dish_name: str, description: str
    ) -> SynthesisResult: ...


SnapshotListener = Callable[[ScanSnapshot], None]


class ScanSession:
    """Single-user scan lifecycle with stale-response protection."""

    def __init__(
        self,
        analyzer: FoodAnalyzer,
        image_generator: Optional[IdealizedImageGenerator] = None,
    ):
        self._analyzer = analyzer
        self._image_generator = image_generator or analyzer
        self._state = ScanSnapshot()
        self._generation = 0
        self._listeners: list[SnapshotListener] = []
        self._tasks: set[asyncio.Task] = set()
        self.last_failure: Optional[Failure] = None

    # =========================================================================
    # DISPLAY BOUNDARY
    # =========================================================================

    @property
    def state(self) -> ScanSnapshot:
        return self._state

    @property
    def phase(self) -> ScanPhase:
        return self._state.phase

    @property
    def analysis(self) -> Optional[FoodAnalysis]:
        return self._state.analysis

    @property
    def user_image(self) -> Optional[str]:
        return self._state.user_image

    @property
    def generated_image(self) -> Optional[str]:
        return self._state.generated_image

    @property
    def error_message(self) -> Optional[str]:
        return self._state.error_message

    @property
    def notice(self) -> Optional[str]:
        return self._state.notice

    @property
    def can_submit(self) -> bool:
        return self._state.phase != ScanPhase.ANALYZING

    @property
    def can_generate_image(self) -> bool:
        return self._state.phase == ScanPhase.RESULTS

    @property
    def can_reset(self) -> bool:
        return self._state.phase != ScanPhase.IDLE

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register a callback for every new snapshot; returns an unsubscribe."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # =========================================================================
    # TRIGGERS
    # =========================================================================

    def submit(
        self, image_bytes: bytes, mime_type: Optional[str] = None
    ) -> Optional[asyncio.Task]:
        """
        Start analyzing a new meal photo.

        From Results, GeneratingImage or Error this starts a fresh scan and
        any call still in flight is discarded when it lands.

        Args:
            image_bytes: Encoded image from the capture source
            mime_type: MIME type reported by the capture source

        Returns:
            The analysis task, or None if an analysis is already running

        Raises:
            ValueError: If the image is empty or unreadable (state unchanged)
        """
        if self._state.phase == ScanPhase.ANALYZING:
            logger.debug("Ignoring submit while analysis is in flight")
            return None

        # Header sniff only; any PNG re-encode happens off the event loop
        image = MealImage(
            data=bytes(image_bytes), mime_type=detect_mime_type(image_bytes, mime_type)
        )
        token = self._next_generation()
        self.last_failure = None
        self._transition(
            ScanSnapshot(
                phase=ScanPhase.ANALYZING,
                user_image=image.data_uri,
                generation=token,
            )
        )
        return self._spawn(self._run_analysis(token, image))

    def generate_image(self) -> Optional[asyncio.Task]:
        """
        Request an idealized rendering of the current dish.

        Returns:
            The generation task, or None when not in Results (including while
            a generation is already running)
        """
        analysis = self._state.analysis
        if self._state.phase != ScanPhase.RESULTS or analysis is None:
            logger.debug("Ignoring generate_image in phase %s", self._state.phase.value)
            return None

        token = self._generation
        self._update(phase=ScanPhase.GENERATING_IMAGE)
        return self._spawn(self._run_image_generation(token, analysis))

    def reset(self) -> None:
        """Return to Idle and clear everything, even with a call in flight."""
        token = self._next_generation()
        self.last_failure = None
        self._transition(ScanSnapshot(generation=token))

    def dismiss_notice(self) -> None:
        if self._state.notice is not None:
            self._update()

    async def join(self) -> None:
        """Wait for every in-flight task to settle."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # =========================================================================
    # TASKS
    # =========================================================================

    async def _run_analysis(self, token: int, image: MealImage) -> None:
        try:
            if needs_reencode(image.mime_type):
                image = await asyncio.to_thread(
                    load_meal_image, image.data, image.mime_type
                )
            result = await self._analyzer.analyze_food_image(image.data, image.mime_type)
        except Exception as e:
            logger.exception("Unexpected error during food analysis")
            result = TransportFailure("unknown", str(e) or type(e).__name__)

        if self._is_stale(token, ScanPhase.ANALYZING):
            logger.debug("Discarding stale analysis result (generation %d)", token)
            return

        if isinstance(result, AnalysisSuccess):
            self._update(phase=ScanPhase.RESULTS, analysis=result.analysis)
            return

        self.last_failure = result
        logger.warning("Food analysis failed (%s): %s", result.kind, result.message)
        self._update(phase=ScanPhase.ERROR, error_message=ANALYSIS_ERROR_MESSAGE)

    async def _run_image_generation(self, token: int, analysis: FoodAnalysis) -> None:
        try:
            result = await self._image_generator.generate_idealized_image(
                analysis.dish_name, analysis.description
            )
        except Exception as e:
            logger.exception("Unexpected error during image generation")
            result = TransportFailure("unknown", str(e) or type(e).__name__)

        if self._is_stale(token, ScanPhase.GENERATING_IMAGE):
            logger.debug("Discarding stale image result (generation %d)", token)
            return

        if isinstance(result, SynthesisSuccess):
            self._update(phase=ScanPhase.RESULTS, generated_image=result.image)
            return

        self.last_failure = result
        logger.warning("Image generation failed (%s): %s", result.kind, result.message)
        self._update(phase=ScanPhase.RESULTS, notice=IMAGE_ERROR_NOTICE)

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _next_generation(self) -> int:
        self._generation += 1
        return self._generation

    def _is_stale(self, token: int, expected_phase: ScanPhase) -> bool:
        return token != self._generation or self._state.phase != expected_phase

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _update(self, **changes: Any) -> None:
        # A notice only lives for the transition that raised it
        changes.setdefault("notice", None)
        self._transition(replace(self._state, **changes))

    def _transition(self, snapshot: ScanSnapshot) -> None:
        self._state = snapshot
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Scan session listener failed")
