"""Sequential batch generation over an ordered collection of images."""

import asyncio
import logging
import uuid
from typing import Callable, Iterable, Optional

from models.domain import (
    BatchItem,
    BatchItemStatus,
    BatchSummary,
    GenerationRequest,
    GenerationResult,
    GenerationSettings,
    ImageUpload,
)
from services.cancellation import CancellationToken, run_with_token
from services.llm_errors import error_message
from services.orchestrator import GenerationOrchestrator

logger = logging.getLogger(__name__)

ItemSuccessCallback = Callable[[GenerationResult, BatchItem], None]
BatchFinishedCallback = Callable[[BatchSummary], None]


def _new_item_id(filename: str) -> str:
    return f"{filename or 'image'}-{uuid.uuid4().hex[:12]}"


class BatchGenerationController:
    def __init__(
        self,
        orchestrator: GenerationOrchestrator,
        tag_library_csv: Optional[str],
        settings: GenerationSettings,
        on_item_success: Optional[ItemSuccessCallback] = None,
        on_batch_finished: Optional[BatchFinishedCallback] = None,
    ):
        self.orchestrator = orchestrator
        self.tag_library_csv = tag_library_csv
        self.settings = settings
        self.on_item_success = on_item_success
        self.on_batch_finished = on_batch_finished

        self.items: list[BatchItem] = []
        self.active_item_id: Optional[str] = None
        self.summary: Optional[BatchSummary] = None
        self._token: Optional[CancellationToken] = None
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def add_items(self, images: Iterable[ImageUpload]) -> list[BatchItem]:
        """Replace the whole collection with fresh pending items."""
        self.items = [
            BatchItem(
                id=_new_item_id(upload.filename),
                image=upload.image,
                mime_type=upload.mime_type,
                filename=upload.filename,
            )
            for upload in images
        ]
        self.active_item_id = None
        self.summary = None
        return self.items

    def _request_for(self, item: BatchItem) -> GenerationRequest:
        return GenerationRequest(
            image=item.image,
            mime_type=item.mime_type,
            tag_library_csv=self.tag_library_csv or "",
            settings=self.settings,
        )

    async def _process_item(self, item: BatchItem, token: CancellationToken) -> bool:
        """Run one item. Returns True when it completed, False when it failed.

        Cancellation resets the item to pending and propagates.
        """
        item.status = BatchItemStatus.PROCESSING
        item.error = None
        self.active_item_id = item.id
        try:
            response = await run_with_token(self.orchestrator.generate_tags(self._request_for(item), token), token)
        except asyncio.CancelledError:
            item.status = BatchItemStatus.PENDING
            raise
        except Exception as e:
            logger.error(f"Batch item {item.id} failed: {error_message(e)}")
            item.status = BatchItemStatus.ERROR
            item.error = error_message(e)
            return False

        item.status = BatchItemStatus.COMPLETED
        item.result = response.result
        if self.on_item_success is not None:
            self.on_item_success(response.result, item)
        return True

    async def run_batch(self) -> Optional[BatchSummary]:
        if self._running:
            logger.warning("Batch already running; ignoring start request.")
            return None
        if not self.tag_library_csv:
            logger.warning("Tag library not loaded; batch not started.")
            return None

        if self._token is not None:
            self._token.cancel()
        token = CancellationToken()
        self._token = token
        self._running = True
        self.summary = None

        completed = 0
        failed = 0
        cancelled = False
        try:
            for item in list(self.items):
                if token.cancelled:
                    cancelled = True
                    break
                if item.status == BatchItemStatus.COMPLETED:
                    completed += 1
                    continue
                try:
                    if await self._process_item(item, token):
                        completed += 1
                    else:
                        failed += 1
                except asyncio.CancelledError:
                    if not token.cancelled:
                        raise
                    cancelled = True
                    break
        finally:
            self._running = False
            if self._token is token:
                self._token = None

        summary = BatchSummary(completed=completed, failed=failed, cancelled=cancelled)
        logger.info(f"Batch finished: {completed} completed, {failed} failed, cancelled={cancelled}")
        if not cancelled and (completed or failed):
            if self.active_item_id is None and self.items:
                self.active_item_id = self.items[0].id
            self.summary = summary
            if self.on_batch_finished is not None:
                self.on_batch_finished(summary)
        return summary

    def stop(self) -> None:
        if self._token is None:
            return
        self._token.cancel()
        logger.info("Batch generation stopped.")

    def reset(self) -> None:
        self.summary = None
        self.active_item_id = None
