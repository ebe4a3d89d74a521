"""Lifecycle controller for generating tags for one image at a time."""

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from models.domain import (
    FailoverNotice,
    GenerationRequest,
    GenerationResult,
    GenerationSettings,
)
from services.cancellation import CancellationToken, run_with_token
from services.llm_errors import error_message
from services.orchestrator import GenerationOrchestrator

logger = logging.getLogger(__name__)

MISSING_LIBRARY_MESSAGE = "The tag library has not been loaded."
PREPARING_LABEL = "Preparing image..."
REGENERATING_LABEL = "Rethinking based on your feedback..."


class GenerationState(str, enum.Enum):
    IDLE = "idle"
    PREPARING = "preparing"
    GENERATING = "generating"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class ProgressStep:
    delay: float
    label: str
    regeneration_label: Optional[str] = None

    def label_for(self, regenerate: bool) -> str:
        if regenerate and self.regeneration_label:
            return self.regeneration_label
        return self.label


DEFAULT_PROGRESS_SCHEDULE: tuple[ProgressStep, ...] = (
    ProgressStep(1.0, "Connecting to the AI service..."),
    ProgressStep(3.0, "Reading the soul of the cover..."),
    ProgressStep(6.0, "Analysing composition and colour..."),
    ProgressStep(9.0, "Generating tags and description...", "Fine-tuning tag suggestions..."),
    ProgressStep(12.0, "Almost done, adding the finishing touches..."),
)

Listener = Callable[["SingleGenerationController"], None]
SuccessCallback = Callable[[GenerationResult, bytes], None]


class SingleGenerationController:
    """State machine driving a single-image generation.

    At most one generation is live per controller: starting a new one cancels
    the token of the previous one, and a superseded run never writes its
    outcome back. Progress labels are cosmetic and run on a fixed timer
    schedule, independent of what the provider is actually doing.
    """

    def __init__(
        self,
        orchestrator: GenerationOrchestrator,
        tag_library_csv: Optional[str],
        settings: GenerationSettings,
        progress_schedule: Sequence[ProgressStep] = DEFAULT_PROGRESS_SCHEDULE,
        on_success: Optional[SuccessCallback] = None,
    ):
        self.orchestrator = orchestrator
        self.tag_library_csv = tag_library_csv
        self.settings = settings
        self.progress_schedule = tuple(progress_schedule)
        self.on_success = on_success

        self.state = GenerationState.IDLE
        self.progress_label: Optional[str] = None
        self.result: Optional[GenerationResult] = None
        self.error: Optional[str] = None
        self.failover_notice: Optional[FailoverNotice] = None

        self._token: Optional[CancellationToken] = None
        self._timers: list[asyncio.TimerHandle] = []
        self._listeners: list[Listener] = []

    @property
    def is_loading(self) -> bool:
        return self.state in (GenerationState.PREPARING, GenerationState.GENERATING)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    def _set_state(self, state: GenerationState, label: Optional[str] = None) -> None:
        self.state = state
        self.progress_label = label
        self._notify()

    def _schedule_progress(self, token: CancellationToken, regenerate: bool) -> None:
        loop = asyncio.get_running_loop()

        def advance(label: str) -> None:
            if token is self._token and self.is_loading:
                self._set_state(GenerationState.GENERATING, label)

        self._timers = [
            loop.call_later(step.delay, advance, step.label_for(regenerate))
            for step in self.progress_schedule
        ]

    def _clear_progress(self) -> None:
        for timer in self._timers:
            timer.cancel()
        self._timers = []

    async def generate(
        self,
        image: bytes,
        mime_type: str,
        regenerate: bool = False,
        pinned_tags: Sequence[str] = (),
        excluded_tags: Sequence[str] = (),
    ) -> Optional[GenerationResult]:
        if self._token is not None:
            self._token.cancel()
            self._token = None
        self._clear_progress()

        if not self.tag_library_csv:
            self.error = MISSING_LIBRARY_MESSAGE
            self._set_state(GenerationState.FAILED)
            return None

        token = CancellationToken()
        self._token = token
        self.error = None

        if regenerate:
            self._set_state(GenerationState.PREPARING, REGENERATING_LABEL)
        else:
            self.result = None
            self.failover_notice = None
            self._set_state(GenerationState.PREPARING, PREPARING_LABEL)

        request = GenerationRequest(
            image=image,
            mime_type=mime_type,
            tag_library_csv=self.tag_library_csv,
            settings=self.settings,
            pinned_tags=tuple(pinned_tags) if regenerate else None,
            excluded_tags=tuple(excluded_tags) if regenerate else None,
        )

        self._schedule_progress(token, regenerate)
        try:
            response = await run_with_token(self.orchestrator.generate_tags(request, token), token)
        except asyncio.CancelledError:
            if token is self._token:
                self._token = None
                self._set_state(GenerationState.IDLE)
            if not token.cancelled:
                raise
            logger.info("Generation cancelled.")
            return None
        except Exception as e:
            if token is not self._token:
                return None
            logger.error(f"Generation failed: {error_message(e)}")
            self._token = None
            self.error = error_message(e)
            self._set_state(GenerationState.FAILED)
            return None
        finally:
            if token is self._token or self._token is None:
                self._clear_progress()

        if token is not self._token:
            return None
        self._token = None
        self.result = response.result
        self.failover_notice = FailoverNotice(response.provider) if response.used_failover else None
        if self.failover_notice is not None:
            logger.info(f"Generation completed after failover to {response.provider.value}.")
        self._set_state(GenerationState.SUCCEEDED)
        if self.on_success is not None:
            self.on_success(response.result, image)
        return response.result

    def stop(self) -> None:
        if self._token is None:
            return
        self._token.cancel()
        self._token = None
        self._clear_progress()
        self._set_state(GenerationState.IDLE)
        logger.info("Generation stopped.")

    def reset(self) -> None:
        self.result = None
        self.failover_notice = None
        self.error = None
        self._set_state(GenerationState.IDLE)
