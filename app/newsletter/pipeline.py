# app/newsletter/pipeline.py
from typing import Callable, List
from app.config import settings
from app.database.subscriber_repository import SubscriberRepository
from app.models.email import BulkSendResult, EmailSendRequest
from app.models.newsletter import Subscriber
from app.services.batch_sender import BatchSender
from app.services.ledgers import DeliveryLedger
import logging

logger = logging.getLogger(__name__)

RequestBuilder = Callable[[List[Subscriber]], List[EmailSendRequest]]

async def filter_unsent(users: List[Subscriber], ledger: DeliveryLedger) -> List[Subscriber]:
    """Drop users the ledger already records as having received this send"""
    if not users:
        return []
    already_sent = await ledger.already_sent([user.id for user in users])
    return [user for user in users if user.id not in already_sent]

async def deliver_to_subscribers(
    subscribers: SubscriberRepository,
    subject_id: int,
    ledger: DeliveryLedger,
    build_requests: RequestBuilder,
    sender: BatchSender,
    page_size: int = 0
) -> BulkSendResult:
    """Page through every active subscriber of the subject and send to those not yet served.

    Pages are read strictly in order and the loop ends on an empty or short
    page. Running it again for the same ledger only reaches users whose
    earlier attempt did not succeed.
    """
    page_size = page_size or settings.bulk_db_fetch_size
    results = BulkSendResult()
    page = 1

    while True:
        users = await subscribers.find_active_by_subject(subject_id, page, page_size)
        if not users:
            break

        first = (page - 1) * page_size + 1
        logger.info(f"Processing subscribers {first}-{first + len(users) - 1}")

        eligible = await filter_unsent(users, ledger)
        skipped = len(users) - len(eligible)
        if skipped:
            logger.info(f"Skipping {skipped} subscribers who already received this email")

        if eligible:
            requests = build_requests(eligible)
            results.merge(await sender.send(requests, ledger))

        if len(users) < page_size:
            break
        page += 1

    return results
