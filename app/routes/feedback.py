# app/routes/feedback.py
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field
from typing import Optional
from app.errors import NewsletterError
from app.newsletter.service import newsletter_service
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/feedback", tags=["feedback"])

class FeedbackRequest(BaseModel):
    token: str
    feedback: str = Field(..., min_length=1, max_length=5000)
    rating: Optional[float] = Field(None, ge=0, le=5)

@router.post("", status_code=201)
async def submit_feedback(request: FeedbackRequest):
    """Submitted from the page behind a campaign's feedback link"""
    try:
        saved = await newsletter_service.submit_feedback(request.token, request.feedback, request.rating)
    except NewsletterError:
        raise
    except Exception as e:
        logger.error(f"Unable to submit feedback: {e}")
        raise HTTPException(status_code=500, detail="Unable to submit feedback")

    if saved is None:
        raise HTTPException(status_code=401, detail="Invalid feedback token")

    return {
        "success": True,
        "id": saved["id"],
        "campaign_id": saved["campaign_id"],
        "created_at": saved["created_at"]
    }
