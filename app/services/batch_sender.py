# app/services/batch_sender.py
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional
from app.config import settings
from app.models.email import BulkSendResult, EmailSendRequest, EmailSendResponse
from app.models.newsletter import DeliveryStatus, StatusUpdate
from app.services.email_provider import EmailProvider, ProviderBatchError
from app.services.ledgers import DeliveryLedger
import asyncio
import logging
import math
import time

logger = logging.getLogger(__name__)

class BatchSender:
    """Sends requests in provider-sized batches and records every outcome.

    Each batch is one provider call. A batch that raises is retried up to
    ``max_retries`` attempts; after that all of its unsent requests are
    failed with the last error. Outcomes are written to the ledger after
    every batch so an interrupted run keeps what it already delivered.
    """

    def __init__(
        self,
        provider: EmailProvider,
        batch_size: Optional[int] = None,
        max_retries: Optional[int] = None,
        delay_seconds: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self.provider = provider
        self.batch_size = settings.bulk_batch_size if batch_size is None else batch_size
        self.max_retries = settings.bulk_max_retries if max_retries is None else max_retries
        self.delay_seconds = settings.bulk_batch_delay_seconds if delay_seconds is None else delay_seconds
        self.sleep = sleep
        if self.batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if self.max_retries < 1:
            raise ValueError("max_retries must be >= 1")

    async def send(self, requests: List[EmailSendRequest], ledger: DeliveryLedger) -> BulkSendResult:
        total = len(requests)
        total_batches = math.ceil(total / self.batch_size)
        result = BulkSendResult()
        start_time = time.monotonic()

        logger.info(f"Starting bulk send: {total} recipients, {total_batches} batches of {self.batch_size}")

        for batch_number, offset in enumerate(range(0, total, self.batch_size), start=1):
            if batch_number > 1:
                await self.sleep(self.delay_seconds)

            batch = requests[offset:offset + self.batch_size]
            batch_result = await self._process_batch(batch, ledger)
            result.merge(batch_result)

            progress = round(result.processed / total * 100)
            logger.info(
                f"Batch {batch_number}/{total_batches} complete - "
                f"progress {progress}% ({result.processed}/{total})"
            )

        duration = time.monotonic() - start_time
        logger.info(
            f"Bulk send completed: {result.total_sent} sent, {result.total_failed} failed "
            f"in {duration:.1f}s"
        )
        return result

    async def _process_batch(self, batch: List[EmailSendRequest], ledger: DeliveryLedger) -> BulkSendResult:
        user_ids = [request.user_id for request in batch]

        try:
            await ledger.mark_pending(user_ids)
        except Exception as e:
            logger.error(f"Could not create pending records, skipping batch of {len(batch)}: {e}")
            responses = [self._failed(request, str(e)) for request in batch]
            await self._record(ledger, responses)
            return self._summarize(batch, responses, success=False)

        responses = await self._send_with_retries(batch)
        await self._record(ledger, responses)
        return self._summarize(batch, responses, success=all(r.sent for r in responses))

    async def _send_with_retries(self, batch: List[EmailSendRequest]) -> List[EmailSendResponse]:
        completed: List[EmailSendResponse] = []
        remaining = batch
        last_error = "Unknown provider error"

        for attempt in range(1, self.max_retries + 1):
            try:
                responses = await self.provider.send_batch(remaining)
                return completed + self._align(remaining, responses)
            except ProviderBatchError as e:
                completed.extend(e.completed)
                remaining = remaining[len(e.completed):]
                last_error = str(e)
            except Exception as e:
                last_error = str(e) or type(e).__name__

            logger.warning(
                f"Provider batch call failed (attempt {attempt}/{self.max_retries}, "
                f"{len(remaining)} unsent): {last_error}"
            )
            if attempt < self.max_retries:
                await self.sleep(self.delay_seconds)

        logger.error(f"Batch failed after {self.max_retries} attempts: {last_error}")
        return completed + [self._failed(request, last_error) for request in remaining]

    def _align(self, requests: List[EmailSendRequest], responses: List[EmailSendResponse]) -> List[EmailSendResponse]:
        # A provider that returns fewer responses than requests leaves the rest undelivered
        aligned = list(responses[:len(requests)])
        for request in requests[len(aligned):]:
            aligned.append(self._failed(request, "No response from email provider"))
        return aligned

    async def _record(self, ledger: DeliveryLedger, responses: List[EmailSendResponse]):
        now = datetime.now(timezone.utc)
        updates = [
            StatusUpdate(
                user_id=r.user_id,
                status=r.status,
                external_id=r.message_id,
                error_message=r.error,
                sent_at=now if r.sent else None
            )
            for r in responses
        ]
        try:
            await ledger.record_results(updates)
        except Exception as e:
            # Send outcomes stand; the rows stay pending and are retried by the next run
            logger.error(f"Failed to record {len(updates)} delivery outcomes: {e}")

    def _summarize(
        self,
        batch: List[EmailSendRequest],
        responses: List[EmailSendResponse],
        success: bool
    ) -> BulkSendResult:
        result = BulkSendResult(success=success)
        for request, response in zip(batch, responses):
            if response.sent:
                result.total_sent += 1
            else:
                result.total_failed += 1
                result.failed_user_ids.append(request.user_id)
                logger.warning(f"Email delivery failed for user {request.user_id} ({request.to}): {response.error}")
        return result

    @staticmethod
    def _failed(request: EmailSendRequest, error: str) -> EmailSendResponse:
        return EmailSendResponse(user_id=request.user_id, status=DeliveryStatus.FAILED, error=error)
