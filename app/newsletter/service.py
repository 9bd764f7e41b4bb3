# app/newsletter/service.py
import asyncpg
from typing import Any, Dict, List, Optional
from app.campaigns import MarketingCampaignSender, get_campaign
from app.config import settings
from app.database.connection import db_connection
from app.database.feedback_repository import FeedbackRepository
from app.database.send_result_repository import SendResultRepository
from app.database.subscriber_repository import SubscriberRepository
from app.database.transactional_email_repository import TransactionalEmailRepository
from app.email.templates import welcome_content
from app.errors import NotFoundError
from app.models.email import BulkSendResult
from app.models.newsletter import TransactionalEmailType
from app.newsletter.sequence import DailySequenceDriver
from app.services.email_service import EmailService, email_service
from app.utils.tokens import validate_feedback_token, validate_unsubscribe_token
import logging

logger = logging.getLogger(__name__)

class NewsletterService:
    """Entry points used by the HTTP layer; each call holds one pooled connection"""

    def __init__(self, emails: Optional[EmailService] = None):
        self.emails = emails or email_service

    async def subscribe(self, email: str, subject_id: Optional[int] = None) -> Dict[str, Any]:
        subject_id = subject_id or settings.default_subject_id
        async with db_connection() as connection:
            repo = SubscriberRepository(connection)
            user = await repo.get_or_create_user(email)
            status = await repo.activate_subscription(user.id, subject_id)
            logger.info(f"Newsletter subscription {status}: {user.email} (subject {subject_id})")
            return {"status": status, "user_id": user.id, "email": user.email}

    async def send_welcome_email(self, email: str) -> bool:
        """Background task run after a successful subscribe"""
        try:
            async with db_connection() as connection:
                user = await SubscriberRepository(connection).get_user_by_email(email)
                if user is None:
                    logger.warning(f"Welcome email skipped, no user for {email}")
                    return False
                response = await self.emails.send_transactional_email(
                    TransactionalEmailRepository(connection),
                    user,
                    welcome_content(),
                    TransactionalEmailType.WELCOME
                )
                return bool(response and response.sent)
        except Exception as e:
            logger.error(f"Welcome email failed for {email}: {e}")
            return False

    async def unsubscribe(self, token: str) -> Optional[Dict[str, Any]]:
        """Cancel all subscriptions of the token's user; None when the token is invalid"""
        claims = validate_unsubscribe_token(token)
        if claims is None:
            return None
        async with db_connection() as connection:
            cancelled = await SubscriberRepository(connection).cancel_subscriptions(claims["user_id"])
        logger.info(f"Unsubscribed user {claims['user_id']} ({cancelled} subscriptions cancelled)")
        return {"user_id": claims["user_id"], "email": claims["email"], "cancelled": cancelled}

    async def cancel_bounced(self, emails: List[str]) -> int:
        total_cancelled = 0
        async with db_connection() as connection:
            repo = SubscriberRepository(connection)
            for email in emails:
                try:
                    cancelled = await repo.cancel_subscriptions_by_email(email)
                    total_cancelled += cancelled
                    logger.info(f"Cancelled {cancelled} subscriptions for bounced email {email}")
                except Exception as e:
                    # One bad address must not stop the rest of the notification
                    logger.error(f"Error cancelling subscriptions for {email}: {e}")
        return total_cancelled

    async def send_daily_newsletter(self, subject_id: Optional[int] = None) -> Dict[str, Any]:
        async with db_connection() as connection:
            driver = DailySequenceDriver.from_connection(connection, self.emails.batch_sender)
            return await driver.send_to_all_subscribers(subject_id or settings.default_subject_id)

    async def send_daily_newsletter_to_admin(self, subject_id: Optional[int] = None) -> Dict[str, Any]:
        async with db_connection() as connection:
            driver = DailySequenceDriver.from_connection(connection, self.emails.batch_sender)
            return await driver.send_to_admin(subject_id or settings.default_subject_id)

    async def resend_to_failed(self, issue_id: int, subject_id: Optional[int] = None) -> Dict[str, Any]:
        async with db_connection() as connection:
            driver = DailySequenceDriver.from_connection(connection, self.emails.batch_sender)
            return await driver.resend_to_failed(issue_id, subject_id or settings.default_subject_id)

    async def submit_feedback(
        self,
        token: str,
        feedback: str,
        rating: Optional[float] = None
    ) -> Optional[Dict[str, Any]]:
        """Store feedback sent from a campaign's feedback link; None when the token is invalid"""
        claims = validate_feedback_token(token)
        if claims is None:
            return None
        async with db_connection() as connection:
            try:
                saved = await FeedbackRepository(connection).submit_campaign_feedback(
                    claims["user_id"], claims["campaign_id"], feedback, rating
                )
            except asyncpg.ForeignKeyViolationError:
                raise NotFoundError(f"User {claims['user_id']} not found")
        logger.info(f"Feedback received for campaign {claims['campaign_id']} from user {claims['user_id']}")
        return saved

    async def send_campaign(self, campaign_id: str) -> BulkSendResult:
        config = get_campaign(campaign_id)
        async with db_connection() as connection:
            sender = MarketingCampaignSender.from_connection(connection, self.emails.batch_sender)
            return await sender.send_to_active_users(config)

    async def get_stats(self, subject_id: Optional[int] = None) -> Dict[str, Any]:
        async with db_connection() as connection:
            stats = await SubscriberRepository(connection).get_subscription_stats(
                subject_id or settings.default_subject_id
            )
            recent_runs = await SendResultRepository(connection).list_recent(limit=10)
        return {"subscriptions": stats, "recent_sends": recent_runs}

newsletter_service = NewsletterService()
