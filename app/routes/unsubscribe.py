# app/routes/unsubscribe.py
from fastapi import APIRouter, HTTPException, Query
from app.newsletter.service import newsletter_service
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/unsubscribe", tags=["unsubscribe"])

async def _unsubscribe(token: str) -> dict:
    try:
        result = await newsletter_service.unsubscribe(token)
    except Exception as e:
        logger.error(f"Unsubscribe failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to unsubscribe")

    if result is None:
        raise HTTPException(status_code=400, detail="Invalid or expired unsubscribe link")

    return {
        "success": True,
        "message": "You have been unsubscribed",
        "email": result["email"]
    }

@router.post("/one-click")
async def one_click_unsubscribe(token: str = Query(...)):
    """RFC 8058 one-click target used by the List-Unsubscribe header"""
    return await _unsubscribe(token)

@router.get("/{token}")
async def unsubscribe(token: str):
    """Confirmation page submits here"""
    return await _unsubscribe(token)
