# app/database/delivery_repository.py
import asyncpg
from typing import List, Set, Dict
from app.models.newsletter import (
    DeliveryStatus, RECEIVED_STATUSES, StatusUpdate, Subscriber, SubscriptionStatus
)
import logging

logger = logging.getLogger(__name__)

class DeliveryRepository:
    """One row per (issue, user) newsletter delivery"""

    def __init__(self, connection: asyncpg.Connection):
        self.conn = connection

    async def bulk_create_pending(self, issue_id: int, user_ids: List[str]):
        """Insert pending rows for a batch; rows that previously failed go back to pending"""
        if not user_ids:
            return
        try:
            await self.conn.execute("""
                INSERT INTO deliveries (issue_id, user_id, status)
                SELECT $1, uid, $3 FROM unnest($2::uuid[]) AS uid
                ON CONFLICT (issue_id, user_id)
                DO UPDATE SET status = EXCLUDED.status, error_message = NULL
                WHERE deliveries.status = $4
            """, issue_id, user_ids, DeliveryStatus.PENDING.value, DeliveryStatus.FAILED.value)

        except Exception as e:
            logger.error(f"Failed to create pending deliveries for issue {issue_id}: {e}")
            raise

    async def bulk_update_statuses(self, issue_id: int, updates: List[StatusUpdate]):
        """Write status, provider id, error and sent time for many rows in one round trip"""
        if not updates:
            return
        try:
            await self.conn.execute("""
                UPDATE deliveries AS d
                SET status = u.status,
                    external_id = COALESCE(u.external_id, d.external_id),
                    error_message = u.error_message,
                    sent_at = COALESCE(u.sent_at, d.sent_at)
                FROM unnest($2::uuid[], $3::text[], $4::text[], $5::text[], $6::timestamptz[])
                    AS u(user_id, status, external_id, error_message, sent_at)
                WHERE d.issue_id = $1 AND d.user_id = u.user_id
            """,
                issue_id,
                [u.user_id for u in updates],
                [u.status.value for u in updates],
                [u.external_id for u in updates],
                [u.error_message for u in updates],
                [u.sent_at for u in updates]
            )

        except Exception as e:
            logger.error(f"Failed to update {len(updates)} delivery statuses for issue {issue_id}: {e}")
            raise

    async def get_users_already_sent(self, issue_id: int, user_ids: List[str]) -> Set[str]:
        """Ids among user_ids that already received the issue"""
        if not user_ids:
            return set()
        try:
            rows = await self.conn.fetch("""
                SELECT user_id::text AS user_id
                FROM deliveries
                WHERE issue_id = $1 AND user_id = ANY($2::uuid[]) AND status = ANY($3::text[])
            """, issue_id, user_ids, list(RECEIVED_STATUSES))
            return {row['user_id'] for row in rows}

        except Exception as e:
            logger.error(f"Failed to load sent deliveries for issue {issue_id}: {e}")
            raise

    async def find_active_subscribers_with_failed_deliveries(
        self,
        issue_id: int,
        subject_id: int
    ) -> List[Subscriber]:
        """Still-subscribed users whose delivery of the issue is failed or stuck in pending"""
        try:
            rows = await self.conn.fetch("""
                SELECT u.id::text AS id, u.email
                FROM deliveries d
                JOIN users u ON u.id = d.user_id
                JOIN subscriptions s ON s.user_id = u.id
                WHERE d.issue_id = $1
                  AND d.status = ANY($2::text[])
                  AND s.subject_id = $3
                  AND s.status = $4
                ORDER BY u.created_at, u.id
            """,
                issue_id,
                [DeliveryStatus.FAILED.value, DeliveryStatus.PENDING.value],
                subject_id,
                SubscriptionStatus.ACTIVE.value
            )
            return [Subscriber(id=row['id'], email=row['email']) for row in rows]

        except Exception as e:
            logger.error(f"Failed to load failed deliveries for issue {issue_id}: {e}")
            raise

    async def get_issue_summary(self, issue_id: int) -> Dict[str, int]:
        rows = await self.conn.fetch("""
            SELECT status, COUNT(*) AS count
            FROM deliveries
            WHERE issue_id = $1
            GROUP BY status
        """, issue_id)
        return {row['status']: row['count'] for row in rows}
