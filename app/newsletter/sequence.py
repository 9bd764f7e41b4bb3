# app/newsletter/sequence.py
import asyncpg
from typing import Any, Dict, Optional, Tuple
from app.config import settings
from app.database.content_repository import ContentRepository
from app.database.delivery_repository import DeliveryRepository
from app.database.send_result_repository import SendResultRepository
from app.database.sequence_repository import SequenceRepository
from app.database.subscriber_repository import SubscriberRepository
from app.email.request_builder import build_newsletter_request, build_newsletter_requests
from app.errors import NewsletterError, NotFoundError, PreconditionFailedError, SequenceConflictError
from app.models.email import BulkSendResult
from app.models.newsletter import Issue, IssueStatus, NewsletterSequence, Topic
from app.newsletter.pipeline import deliver_to_subscribers, filter_unsent
from app.services.batch_sender import BatchSender
from app.services.ledgers import IssueDeliveryLedger
import logging
import time

logger = logging.getLogger(__name__)

def check_can_send(issue: Optional[Issue], sequence_number: int):
    """Raise unless the issue exists, is approved and has content"""
    if issue is None:
        raise NotFoundError(f"No newsletter found for sequence {sequence_number}")

    if issue.status != IssueStatus.APPROVED:
        raise PreconditionFailedError(
            f"Newsletter sequence {sequence_number} is not approved (status: {issue.status.value})"
        )

    if not (issue.content or issue.raw_html):
        raise PreconditionFailedError(f"Newsletter sequence {sequence_number} has empty content")

class DailySequenceDriver:
    """Sends the issue at a subject's current sequence and advances it by one.

    The sequence only moves after a run has paged through every subscriber.
    Precondition failures leave both the sequence and the delivery tables
    untouched; the next scheduled invocation tries again.
    """

    def __init__(
        self,
        sequences: SequenceRepository,
        content: ContentRepository,
        subscribers: SubscriberRepository,
        deliveries: DeliveryRepository,
        send_results: SendResultRepository,
        sender: BatchSender
    ):
        self.sequences = sequences
        self.content = content
        self.subscribers = subscribers
        self.deliveries = deliveries
        self.send_results = send_results
        self.sender = sender

    @classmethod
    def from_connection(cls, connection: asyncpg.Connection, sender: BatchSender) -> "DailySequenceDriver":
        return cls(
            sequences=SequenceRepository(connection),
            content=ContentRepository(connection),
            subscribers=SubscriberRepository(connection),
            deliveries=DeliveryRepository(connection),
            send_results=SendResultRepository(connection),
            sender=sender,
        )

    async def get_todays_newsletter(self, subject_id: int) -> Tuple[Issue, NewsletterSequence, Topic]:
        sequence = await self.sequences.get_or_create(subject_id)
        if sequence is None:
            raise NotFoundError("Failed to get or create newsletter sequence")

        topic = await self.content.find_topic_by_sequence(subject_id, sequence.current_sequence)
        if topic is None:
            raise NotFoundError(
                f"No topic found for subjectId {subject_id} and sequence {sequence.current_sequence}"
            )

        issue = await self.content.find_issue_by_topic(topic.id)
        check_can_send(issue, sequence.current_sequence)
        return issue, sequence, topic

    async def send_to_all_subscribers(self, subject_id: int) -> Dict[str, Any]:
        start_time = time.monotonic()
        logger.info(f"Starting daily newsletter delivery for subject {subject_id}")

        issue, sequence, topic = await self.get_todays_newsletter(subject_id)
        current = sequence.current_sequence
        logger.info(f"Newsletter selected: issue {issue.id} '{issue.title}' (sequence #{current}, topic '{topic.title}')")

        result_id = await self.send_results.record_start(issue.id, issue.title)
        results = BulkSendResult()
        try:
            results = await deliver_to_subscribers(
                subscribers=self.subscribers,
                subject_id=subject_id,
                ledger=IssueDeliveryLedger(self.deliveries, issue.id),
                build_requests=lambda users: build_newsletter_requests(
                    users, issue, subject_id, topic.sequence_order
                ),
                sender=self.sender,
            )
            advanced = await self._advance(subject_id, current)
            await self.content.mark_issue_sent(issue.id)
        finally:
            await self._record_completion(result_id, results)

        duration = time.monotonic() - start_time
        logger.info(
            f"Newsletter delivery completed: issue {issue.id}, sequence #{current} -> "
            f"#{advanced.current_sequence}, {results.total_sent} sent, "
            f"{results.total_failed} failed in {duration:.1f}s"
        )

        return {
            "success": True,
            "issue_id": issue.id,
            "sequence_number": current,
            "next_sequence": advanced.current_sequence,
            "total_sent": results.total_sent,
            "total_failed": results.total_failed,
            "failed_user_ids": results.failed_user_ids,
            "processed_users": results.processed,
        }

    async def send_to_admin(self, subject_id: int) -> Dict[str, Any]:
        """Send today's issue only to the admin address, then advance the sequence"""
        issue, sequence, topic = await self.get_todays_newsletter(subject_id)
        current = sequence.current_sequence

        admin = await self.subscribers.get_or_create_user(settings.admin_email)
        logger.info(f"Sending newsletter to admin {settings.admin_email}: issue {issue.id} (sequence #{current})")

        request = build_newsletter_request(admin, issue, subject_id, topic.sequence_order)
        result = await self.sender.send([request], IssueDeliveryLedger(self.deliveries, issue.id))
        if result.total_sent != 1:
            raise NewsletterError(f"Failed to send newsletter to admin for sequence {current}")

        advanced = await self._advance(subject_id, current)
        logger.info(f"Incremented sequence to {advanced.current_sequence} for next delivery")

        return {
            "success": True,
            "issue_id": issue.id,
            "topic_id": topic.id,
            "topic_title": topic.title,
            "sequence_number": current,
            "next_sequence": advanced.current_sequence,
        }

    async def resend_to_failed(self, issue_id: int, subject_id: int) -> Dict[str, Any]:
        """Send an already sent issue again to subscribers whose delivery failed or never completed.

        The sequence is left alone. Recipients recorded as sent or delivered
        are never reached again.
        """
        logger.info(f"Starting newsletter resend for issue {issue_id}")

        issue = await self.content.find_issue_by_id(issue_id)
        if issue is None:
            raise NotFoundError(f"Newsletter issue with ID {issue_id} not found")
        if issue.status != IssueStatus.SENT:
            raise PreconditionFailedError("Can only resend failed deliveries for sent newsletters")

        topic = await self.content.find_topic_by_id(issue.topic_id)
        if topic is None:
            raise NotFoundError(f"Topic for issue {issue_id} not found")

        ledger = IssueDeliveryLedger(self.deliveries, issue.id)
        users = await self.deliveries.find_active_subscribers_with_failed_deliveries(issue.id, subject_id)
        users = await filter_unsent(users, ledger)

        results = BulkSendResult()
        if users:
            logger.info(f"Resending issue {issue_id} (sequence #{topic.sequence_order}) to {len(users)} subscribers")
            result_id = await self.send_results.record_start(issue.id, f"{issue.title} (resend)")
            try:
                requests = build_newsletter_requests(users, issue, subject_id, topic.sequence_order)
                results = await self.sender.send(requests, ledger)
            finally:
                await self._record_completion(result_id, results)
        else:
            logger.info(f"No active subscribers with failed deliveries for issue {issue_id}")

        return {
            "success": results.total_failed == 0,
            "issue_id": issue.id,
            "resend_count": len(users),
            "total_sent": results.total_sent,
            "total_failed": results.total_failed,
            "failed_user_ids": results.failed_user_ids,
            "delivery_summary": await self.deliveries.get_issue_summary(issue.id),
        }

    async def _advance(self, subject_id: int, current: int) -> NewsletterSequence:
        advanced = await self.sequences.advance(subject_id, current)
        if advanced is None:
            raise SequenceConflictError(
                f"Sequence for subject {subject_id} moved past #{current} during this run"
            )
        return advanced

    async def _record_completion(self, result_id: Optional[int], results: BulkSendResult):
        try:
            await self.send_results.record_completion(
                result_id, results.total_sent, results.total_failed, results.failed_user_ids
            )
        except Exception as e:
            logger.error(f"Could not record send result {result_id}: {e}")
