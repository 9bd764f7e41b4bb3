# app/routes/newsletter.py
from fastapi import APIRouter, HTTPException, BackgroundTasks, Depends
from pydantic import BaseModel, EmailStr
from typing import Optional
from app.auth.dependencies import verify_cron_secret
from app.newsletter.service import newsletter_service
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/newsletter", tags=["newsletter"])

class SubscribeRequest(BaseModel):
    email: EmailStr
    subject_id: Optional[int] = None

class SubscribeResponse(BaseModel):
    success: bool
    message: str

@router.post("/subscribe", response_model=SubscribeResponse)
async def subscribe_newsletter(
    request: SubscribeRequest,
    background_tasks: BackgroundTasks
):
    """Subscribe to the newsletter and send a welcome email"""
    try:
        result = await newsletter_service.subscribe(request.email, request.subject_id)
    except Exception as e:
        logger.error(f"Newsletter subscription error for {request.email}: {e}")
        raise HTTPException(
            status_code=500,
            detail="Subscription failed. Please try again later."
        )

    if result["status"] == "already_active":
        return SubscribeResponse(success=True, message="You're already subscribed!")

    # Send welcome email in background (non-blocking)
    background_tasks.add_task(newsletter_service.send_welcome_email, result["email"])

    if result["status"] == "reactivated":
        return SubscribeResponse(
            success=True,
            message="Welcome back! Your subscription has been reactivated."
        )
    return SubscribeResponse(
        success=True,
        message="Successfully subscribed! Check your email for a welcome message."
    )

@router.get("/stats", dependencies=[Depends(verify_cron_secret)])
async def get_newsletter_stats():
    """Subscription counts and the most recent delivery runs"""
    try:
        return await newsletter_service.get_stats()
    except Exception as e:
        logger.error(f"Failed to get newsletter stats: {e}")
        raise HTTPException(
            status_code=500,
            detail="Failed to retrieve statistics"
        )
