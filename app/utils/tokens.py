# app/utils/tokens.py
from jose import jwt, JWTError
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict
from urllib.parse import quote
from app.config import settings
import logging

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
UNSUBSCRIBE_TOKEN_TYPE = "unsubscribe"
FEEDBACK_TOKEN_TYPE = "marketing_feedback"

def _encode(claims: Dict[str, str], expire_days: int) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        **claims,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(days=expire_days)).timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=ALGORITHM)

def generate_unsubscribe_token(user_id: str, email: str) -> str:
    return _encode(
        {"user_id": user_id, "email": email, "type": UNSUBSCRIBE_TOKEN_TYPE},
        settings.unsubscribe_token_expire_days
    )

def validate_unsubscribe_token(token: str) -> Optional[Dict[str, str]]:
    """Decode an unsubscribe token; None when expired, tampered or of another type"""
    try:
        decoded = jwt.decode(token, settings.jwt_secret_key, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.warning(f"Unsubscribe token validation failed: {e}")
        return None

    if decoded.get("type") != UNSUBSCRIBE_TOKEN_TYPE:
        logger.warning(f"Invalid token type: {decoded.get('type')}")
        return None

    if not decoded.get("user_id"):
        return None

    return {"user_id": decoded["user_id"], "email": decoded.get("email", "")}

def generate_one_click_unsubscribe_url(user_id: str, email: str) -> str:
    """Target of the List-Unsubscribe header; mail providers POST to the API directly"""
    token = generate_unsubscribe_token(user_id, email)
    return f"{settings.backend_url}/api/unsubscribe/one-click?token={quote(token, safe='')}"

def generate_unsubscribe_page_url(user_id: str, email: str) -> str:
    """Footer link; leads to a confirmation page"""
    token = generate_unsubscribe_token(user_id, email)
    return f"{settings.frontend_url}/unsubscribe?token={quote(token, safe='')}"

def generate_feedback_token(user_id: str, campaign_id: str) -> str:
    return _encode(
        {"user_id": user_id, "campaign_id": campaign_id, "type": FEEDBACK_TOKEN_TYPE},
        settings.feedback_token_expire_days
    )

def validate_feedback_token(token: str) -> Optional[Dict[str, str]]:
    """Decode a campaign feedback token; None when expired, tampered or of another type"""
    try:
        decoded = jwt.decode(token, settings.jwt_secret_key, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.warning(f"Feedback token validation failed: {e}")
        return None

    if decoded.get("type") != FEEDBACK_TOKEN_TYPE:
        logger.warning(f"Invalid token type: {decoded.get('type')}")
        return None

    if not decoded.get("user_id") or not decoded.get("campaign_id"):
        return None

    return {"user_id": decoded["user_id"], "campaign_id": decoded["campaign_id"]}

def generate_feedback_page_url(user_id: str, campaign_id: str) -> str:
    token = generate_feedback_token(user_id, campaign_id)
    return f"{settings.frontend_url}/feedback?token={quote(token, safe='')}"
