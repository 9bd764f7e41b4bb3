# app/campaigns/sender.py
import asyncpg
from dataclasses import dataclass
from typing import Callable, Optional
from app.config import settings
from app.database.subscriber_repository import SubscriberRepository
from app.database.transactional_email_repository import TransactionalEmailRepository
from app.email.request_builder import Personalizer, build_campaign_request
from app.models.email import BulkSendResult, EmailContent
from app.models.newsletter import TransactionalEmailType
from app.newsletter.pipeline import deliver_to_subscribers
from app.services.batch_sender import BatchSender
from app.services.ledgers import TransactionalEmailLedger
import logging

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class CampaignConfig:
    campaign_id: str
    get_content: Callable[[], EmailContent]
    personalize: Optional[Personalizer] = None

class MarketingCampaignSender:
    """Sends a campaign once to every active subscriber.

    Recipients are keyed by (marketing, campaign id) in the transactional
    email table, so re-running a campaign only reaches users it missed.
    """

    def __init__(
        self,
        subscribers: SubscriberRepository,
        transactional_emails: TransactionalEmailRepository,
        sender: BatchSender,
        subject_id: Optional[int] = None
    ):
        self.subscribers = subscribers
        self.transactional_emails = transactional_emails
        self.sender = sender
        self.subject_id = subject_id or settings.default_subject_id

    @classmethod
    def from_connection(cls, connection: asyncpg.Connection, sender: BatchSender) -> "MarketingCampaignSender":
        return cls(SubscriberRepository(connection), TransactionalEmailRepository(connection), sender)

    async def send_to_active_users(self, config: CampaignConfig) -> BulkSendResult:
        base_content = config.get_content()
        ledger = TransactionalEmailLedger(
            self.transactional_emails, TransactionalEmailType.MARKETING, config.campaign_id
        )

        result = await deliver_to_subscribers(
            subscribers=self.subscribers,
            subject_id=self.subject_id,
            ledger=ledger,
            build_requests=lambda users: [
                build_campaign_request(user, base_content, config.campaign_id, config.personalize)
                for user in users
            ],
            sender=self.sender,
        )
        result.success = result.total_failed == 0

        logger.info(
            f"[Campaign: {config.campaign_id}] Completed - "
            f"{result.total_sent} sent, {result.total_failed} failed"
        )
        return result
