# app/routes/cron.py - Scheduler-triggered delivery runs
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from app.auth.dependencies import verify_cron_secret
from app.errors import NewsletterError, error_body
from app.newsletter.service import newsletter_service
import logging
import time

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/api/cron",
    tags=["cron"],
    dependencies=[Depends(verify_cron_secret)]
)

def _failure(exc: Exception, started: float) -> JSONResponse:
    status_code = exc.status_code if isinstance(exc, NewsletterError) else 500
    if status_code >= 500:
        logger.error(f"Cron job failed after {time.monotonic() - started:.1f}s: {exc}", exc_info=True)
    else:
        logger.warning(f"Cron job aborted: {exc}")
    return JSONResponse(status_code=status_code, content=error_body(exc))

@router.get("/send-daily-newsletter")
async def send_daily_newsletter():
    """Deliver today's issue to every active subscriber"""
    started = time.monotonic()
    logger.info("Cron job triggered - starting newsletter delivery")
    try:
        result = await newsletter_service.send_daily_newsletter()
    except Exception as e:
        return _failure(e, started)

    logger.info(
        f"Cron job completed: {result['total_sent']} sent, {result['total_failed']} failed "
        f"(issue {result['issue_id']}, sequence #{result['sequence_number']})"
    )
    return {
        "success": True,
        "message": "Newsletter delivered to all subscribers",
        "data": result
    }

@router.get("/daily-newsletter-admin")
async def send_daily_newsletter_to_admin():
    """Send today's issue to the admin address only"""
    started = time.monotonic()
    logger.info("Starting daily newsletter admin cron job")
    try:
        result = await newsletter_service.send_daily_newsletter_to_admin()
    except Exception as e:
        return _failure(e, started)

    return {
        "success": True,
        "message": "Daily newsletter sent successfully",
        "data": result
    }

@router.get("/marketing/{campaign_id}")
async def send_marketing_campaign(campaign_id: str):
    started = time.monotonic()
    logger.info(f"Starting marketing campaign {campaign_id}")
    try:
        result = await newsletter_service.send_campaign(campaign_id)
    except Exception as e:
        return _failure(e, started)

    return {
        "success": True,
        "message": f"Campaign {campaign_id} sent",
        "data": result.model_dump()
    }

@router.get("/resend-newsletter/{issue_id}")
async def resend_newsletter(issue_id: int):
    """Retry a sent issue for subscribers whose delivery failed or never completed"""
    started = time.monotonic()
    logger.info(f"Starting newsletter resend for issue {issue_id}")
    try:
        result = await newsletter_service.resend_to_failed(issue_id)
    except Exception as e:
        return _failure(e, started)

    return {
        "success": True,
        "message": f"Resent issue {issue_id} to {result['resend_count']} subscribers",
        "data": result
    }
