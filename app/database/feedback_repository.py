# app/database/feedback_repository.py
import asyncpg
from typing import Any, Dict, Optional
import logging

logger = logging.getLogger(__name__)

class FeedbackRepository:
    """Free-text feedback from campaign emails, one entry per (user, campaign)"""

    def __init__(self, connection: asyncpg.Connection):
        self.conn = connection

    async def submit_campaign_feedback(
        self,
        user_id: str,
        campaign_id: str,
        feedback: str,
        rating: Optional[float] = None
    ) -> Dict[str, Any]:
        """Store feedback; a second submission for the same campaign replaces the first"""
        try:
            row = await self.conn.fetchrow("""
                INSERT INTO feedback (user_id, campaign_id, feedback, rating)
                VALUES ($1, $2, $3, $4)
                ON CONFLICT (user_id, campaign_id)
                DO UPDATE SET feedback = EXCLUDED.feedback,
                              rating = EXCLUDED.rating,
                              created_at = CURRENT_TIMESTAMP
                RETURNING id, campaign_id, created_at
            """, user_id, campaign_id, feedback, rating)
            return dict(row)

        except Exception as e:
            logger.error(f"Failed to store feedback from user {user_id} for campaign {campaign_id}: {e}")
            raise
