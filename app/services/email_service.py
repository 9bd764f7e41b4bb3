# app/services/email_service.py
from typing import Optional
from app.database.transactional_email_repository import TransactionalEmailRepository
from app.email.request_builder import build_transactional_request
from app.models.email import EmailContent, EmailSendResponse, MessageTagName
from app.models.newsletter import DeliveryStatus, Subscriber, TransactionalEmailType
from app.services.batch_sender import BatchSender
from app.services.email_provider import EmailProvider, SesEmailProvider
import logging

logger = logging.getLogger(__name__)

class EmailService:
    """Owns the email provider and the bulk sender built on top of it"""

    def __init__(self, provider: Optional[EmailProvider] = None):
        self.provider = provider or SesEmailProvider()
        self.batch_sender = BatchSender(self.provider)

    def set_provider(self, provider: EmailProvider):
        self.provider = provider
        self.batch_sender = BatchSender(provider)

    async def send_transactional_email(
        self,
        repo: TransactionalEmailRepository,
        user: Subscriber,
        content: EmailContent,
        email_type: TransactionalEmailType
    ) -> Optional[EmailSendResponse]:
        """Send a one-off email, at most once per (user, email type).

        Returns None when the user already received it.
        """
        already_sent = await repo.get_users_who_received([user.id], email_type)
        if user.id in already_sent:
            logger.info(f"Skipping {email_type.value} email for {user.email}: already sent")
            return None

        request = build_transactional_request(user, content)
        request = request.with_tag(MessageTagName.EMAIL_TYPE, email_type.value)
        record = await repo.create(user.id, email_type)

        try:
            response = await self.provider.send_email(request)
        except Exception as e:
            logger.error(f"Failed to send {email_type.value} email to {user.email}: {e}")
            response = EmailSendResponse(user_id=user.id, status=DeliveryStatus.FAILED, error=str(e))

        await repo.update_status(
            record['id'],
            response.status,
            external_id=response.message_id,
            error_message=response.error
        )
        if response.sent:
            logger.info(f"{email_type.value} email sent to {user.email} (message id: {response.message_id})")
        return response

# Global email service instance
email_service = EmailService()
