# app/services/email_provider.py - AWS SES v2 delivery
import boto3
from botocore.exceptions import BotoCoreError, ClientError
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
from concurrent.futures import ThreadPoolExecutor
from app.config import settings
from app.models.email import EmailSendRequest, EmailSendResponse
from app.models.newsletter import DeliveryStatus
import asyncio
import logging

logger = logging.getLogger(__name__)

# Error codes that say nothing about the recipient; the whole batch is retried
BATCH_LEVEL_ERROR_CODES = {
    "TooManyRequestsException",
    "LimitExceededException",
    "Throttling",
    "ThrottlingException",
    "SendingPausedException",
    "AccountSendingPausedException",
    "AccountSuspendedException",
    "MailFromDomainNotVerifiedException",
}

class ProviderBatchError(Exception):
    """A batch could not be (fully) handed to the provider.

    ``completed`` holds responses for requests that were accepted before the
    failure, so a retry only resends the remainder.
    """

    def __init__(self, message: str, completed: Optional[List[EmailSendResponse]] = None):
        super().__init__(message)
        self.completed = completed or []

class EmailProvider(ABC):
    """Transport for send requests.

    ``send_batch`` returns one response per request, in order. Recipient
    level failures are returned as failed responses; failures of the
    provider itself raise ``ProviderBatchError``.
    """

    @abstractmethod
    async def send_batch(self, requests: List[EmailSendRequest]) -> List[EmailSendResponse]:
        raise NotImplementedError

    async def send_email(self, request: EmailSendRequest) -> EmailSendResponse:
        responses = await self.send_batch([request])
        return responses[0]

class SesEmailProvider(EmailProvider):
    def __init__(self, region_name: Optional[str] = None, client: Any = None):
        self.ses_client = client or boto3.client('sesv2', region_name=region_name or settings.aws_region)
        self.executor = ThreadPoolExecutor(max_workers=2)
        logger.info(f"SES provider initialized (region: {region_name or settings.aws_region})")

    async def send_batch(self, requests: List[EmailSendRequest]) -> List[EmailSendResponse]:
        # Run SES calls in thread pool to avoid blocking the event loop
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.executor, self._send_batch_ses, requests)

    def _send_batch_ses(self, requests: List[EmailSendRequest]) -> List[EmailSendResponse]:
        responses: List[EmailSendResponse] = []
        for request in requests:
            try:
                responses.append(self._send_email_ses(request))
            except ClientError as e:
                error_code = e.response['Error']['Code']
                error_message = e.response['Error']['Message']
                if error_code in BATCH_LEVEL_ERROR_CODES:
                    logger.error(f"SES rejected batch ({error_code}): {error_message}")
                    raise ProviderBatchError(f"{error_code}: {error_message}", completed=responses)

                logger.warning(f"SES rejected email to {request.to} ({error_code}): {error_message}")
                responses.append(EmailSendResponse(
                    user_id=request.user_id,
                    status=DeliveryStatus.FAILED,
                    error=f"{error_code}: {error_message}"
                ))
            except BotoCoreError as e:
                logger.error(f"SES transport error: {e}")
                raise ProviderBatchError(f"Email delivery failed: {e}", completed=responses)
        return responses

    def _send_email_ses(self, request: EmailSendRequest) -> EmailSendResponse:
        email_params: Dict[str, Any] = {
            'FromEmailAddress': request.from_email,
            'Destination': {
                'ToAddresses': [request.to]
            },
            'Content': {
                'Simple': {
                    'Subject': {
                        'Data': request.subject,
                        'Charset': 'UTF-8'
                    },
                    'Body': {
                        'Html': {
                            'Data': request.html,
                            'Charset': 'UTF-8'
                        }
                    },
                    'Headers': [
                        {'Name': name, 'Value': value}
                        for name, value in request.headers.items()
                    ]
                }
            },
            'ReplyToAddresses': [settings.support_email],
            'EmailTags': [
                {'Name': tag.name, 'Value': tag.value} for tag in request.tags
            ]
        }
        if request.text:
            email_params['Content']['Simple']['Body']['Text'] = {
                'Data': request.text,
                'Charset': 'UTF-8'
            }
        if request.configuration_set:
            email_params['ConfigurationSetName'] = request.configuration_set

        response = self.ses_client.send_email(**email_params)
        return EmailSendResponse(
            user_id=request.user_id,
            status=DeliveryStatus.SENT,
            message_id=response.get('MessageId')
        )
