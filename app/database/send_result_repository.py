# app/database/send_result_repository.py
import asyncpg
from typing import Optional, List
import logging

logger = logging.getLogger(__name__)

class SendResultRepository:
    def __init__(self, connection: asyncpg.Connection):
        self.conn = connection

    async def record_start(self, issue_id: int, name: str) -> int:
        try:
            return await self.conn.fetchval("""
                INSERT INTO newsletter_send_results (issue_id, name, start_time)
                VALUES ($1, $2, CURRENT_TIMESTAMP)
                RETURNING id
            """, issue_id, name)

        except Exception as e:
            logger.error(f"Failed to record send start for issue {issue_id}: {e}")
            raise

    async def record_completion(
        self,
        result_id: Optional[int],
        total_sent: int,
        total_failed: int,
        failed_user_ids: List[str]
    ):
        if result_id is None:
            return
        try:
            await self.conn.execute("""
                UPDATE newsletter_send_results
                SET end_time = CURRENT_TIMESTAMP,
                    total_sent = $2,
                    total_failed = $3,
                    failed_user_ids = $4
                WHERE id = $1
            """, result_id, total_sent, total_failed, failed_user_ids)

        except Exception as e:
            logger.error(f"Failed to record send completion {result_id}: {e}")
            raise

    async def list_recent(self, limit: int = 20) -> List[dict]:
        rows = await self.conn.fetch("""
            SELECT id, issue_id, name, start_time, end_time,
                   total_sent, total_failed, failed_user_ids
            FROM newsletter_send_results
            ORDER BY start_time DESC
            LIMIT $1
        """, limit)
        return [dict(row) for row in rows]
