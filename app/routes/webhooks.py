# app/routes/webhooks.py - SES bounce notifications delivered through SNS
from fastapi import APIRouter, HTTPException, Request
from typing import Any, Dict, List
from app.config import settings
from app.newsletter.service import newsletter_service
import httpx
import json
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/webhook", tags=["webhooks"])

def permanent_bounce_recipients(message: Dict[str, Any]) -> List[str]:
    """Addresses from an SES notification that bounced permanently"""
    event_type = message.get("eventType") or message.get("notificationType")
    if event_type != "Bounce":
        return []
    bounce = message.get("bounce") or {}
    if bounce.get("bounceType") != "Permanent":
        return []
    return [
        r["emailAddress"] for r in bounce.get("bouncedRecipients", [])
        if r.get("emailAddress")
    ]

@router.post("/ses-bounce")
async def ses_bounce(request: Request):
    try:
        body = json.loads(await request.body())
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON body")

    expected_topic = settings.sns_ses_bounces_topic_arn
    if not expected_topic or body.get("TopicArn") != expected_topic:
        logger.error(f"SNS message from unexpected topic: {body.get('TopicArn')}")
        raise HTTPException(status_code=403, detail="Unauthorized topic")

    message_type = body.get("Type")

    if message_type == "SubscriptionConfirmation":
        subscribe_url = body.get("SubscribeURL")
        if not subscribe_url:
            raise HTTPException(status_code=400, detail="Missing SubscribeURL in confirmation message")
        logger.info(f"Auto-confirming SNS subscription: {subscribe_url}")
        async with httpx.AsyncClient(timeout=10) as client:
            response = await client.get(subscribe_url)
        if response.status_code != 200:
            raise HTTPException(status_code=502, detail="Failed to confirm subscription")
        return {"message": "Subscription confirmed"}

    if message_type == "UnsubscribeConfirmation":
        logger.info("SNS unsubscribe confirmed")
        return {"message": "Unsubscribe confirmed"}

    if message_type != "Notification":
        raise HTTPException(status_code=400, detail=f"Unsupported message type: {message_type}")

    try:
        message = json.loads(body.get("Message") or "{}")
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid SES message")

    recipients = permanent_bounce_recipients(message)
    if not recipients:
        return {"message": "Ignored", "cancelled": 0}

    logger.info(f"Processing permanent bounce for {len(recipients)} recipients")
    cancelled = await newsletter_service.cancel_bounced(recipients)
    return {"message": "Bounce processed", "cancelled": cancelled}
