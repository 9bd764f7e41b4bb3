# app/database/content_repository.py
import asyncpg
from typing import Optional
from app.models.newsletter import Issue, IssueStatus, Topic
import logging

logger = logging.getLogger(__name__)

class ContentRepository:
    """Read access to topics and issues, plus the issue 'sent' transition"""

    def __init__(self, connection: asyncpg.Connection):
        self.conn = connection

    async def find_topic_by_sequence(self, subject_id: int, sequence: int) -> Optional[Topic]:
        try:
            row = await self.conn.fetchrow("""
                SELECT id, subject_id, title, sequence_order
                FROM topics
                WHERE subject_id = $1 AND sequence_order = $2
                LIMIT 1
            """, subject_id, sequence)
            return Topic(**dict(row)) if row else None

        except Exception as e:
            logger.error(f"Failed to get topic #{sequence} for subject {subject_id}: {e}")
            raise

    async def find_issue_by_topic(self, topic_id: int) -> Optional[Issue]:
        try:
            row = await self.conn.fetchrow("""
                SELECT id, topic_id, title, content, raw_html, raw_text, status, sent_at
                FROM issues
                WHERE topic_id = $1
                ORDER BY created_at DESC
                LIMIT 1
            """, topic_id)
            return Issue(**dict(row)) if row else None

        except Exception as e:
            logger.error(f"Failed to get issue for topic {topic_id}: {e}")
            raise

    async def find_issue_by_id(self, issue_id: int) -> Optional[Issue]:
        row = await self.conn.fetchrow("""
            SELECT id, topic_id, title, content, raw_html, raw_text, status, sent_at
            FROM issues
            WHERE id = $1
        """, issue_id)
        return Issue(**dict(row)) if row else None

    async def find_topic_by_id(self, topic_id: int) -> Optional[Topic]:
        row = await self.conn.fetchrow("""
            SELECT id, subject_id, title, sequence_order
            FROM topics
            WHERE id = $1
        """, topic_id)
        return Topic(**dict(row)) if row else None

    async def mark_issue_sent(self, issue_id: int):
        try:
            await self.conn.execute("""
                UPDATE issues
                SET status = $1, sent_at = CURRENT_TIMESTAMP, updated_at = CURRENT_TIMESTAMP
                WHERE id = $2
            """, IssueStatus.SENT.value, issue_id)
            logger.info(f"Marked issue {issue_id} as sent")

        except Exception as e:
            logger.error(f"Failed to mark issue {issue_id} as sent: {e}")
            raise
