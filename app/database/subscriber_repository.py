# app/database/subscriber_repository.py
import asyncpg
from typing import Optional, List
from app.models.newsletter import Subscriber, SubscriptionStatus
import logging

logger = logging.getLogger(__name__)

class SubscriberRepository:
    """Users and their per-subject subscriptions"""

    def __init__(self, connection: asyncpg.Connection):
        self.conn = connection

    async def find_active_by_subject(
        self,
        subject_id: int,
        page: int,
        page_size: int
    ) -> List[Subscriber]:
        """Return one 1-based page of users with an active subscription to the subject.

        Ordered by signup time then id so pages are stable across calls; an
        empty page means the caller has seen every subscriber.
        """
        if page < 1:
            raise ValueError("page must be >= 1")
        try:
            query = """
                SELECT u.id::text AS id, u.email
                FROM users u
                JOIN subscriptions s ON s.user_id = u.id
                WHERE s.subject_id = $1 AND s.status = $2
                ORDER BY u.created_at, u.id
                LIMIT $3 OFFSET $4
            """
            rows = await self.conn.fetch(
                query,
                subject_id,
                SubscriptionStatus.ACTIVE.value,
                page_size,
                (page - 1) * page_size
            )
            return [Subscriber(id=row['id'], email=row['email']) for row in rows]

        except Exception as e:
            logger.error(f"Failed to load subscriber page {page} for subject {subject_id}: {e}")
            raise

    async def get_user_by_email(self, email: str) -> Optional[Subscriber]:
        try:
            row = await self.conn.fetchrow(
                "SELECT id::text AS id, email FROM users WHERE email = $1",
                email.lower()
            )
            return Subscriber(id=row['id'], email=row['email']) if row else None

        except Exception as e:
            logger.error(f"Failed to get user by email {email}: {e}")
            raise

    async def get_or_create_user(self, email: str) -> Subscriber:
        """Insert the user if missing; concurrent inserts of one address converge"""
        try:
            row = await self.conn.fetchrow("""
                INSERT INTO users (email)
                VALUES ($1)
                ON CONFLICT (email) DO UPDATE SET email = EXCLUDED.email
                RETURNING id::text AS id, email
            """, email.lower())
            return Subscriber(id=row['id'], email=row['email'])

        except Exception as e:
            logger.error(f"Failed to create user {email}: {e}")
            raise

    async def activate_subscription(self, user_id: str, subject_id: int) -> str:
        """Activate (or create) the user's subscription. Returns 'created', 'reactivated' or 'already_active'."""
        try:
            existing = await self.conn.fetchrow("""
                SELECT id, status FROM subscriptions
                WHERE user_id = $1 AND subject_id = $2
            """, user_id, subject_id)

            if existing:
                if existing['status'] == SubscriptionStatus.ACTIVE.value:
                    return "already_active"
                await self.conn.execute("""
                    UPDATE subscriptions
                    SET status = $1, updated_at = CURRENT_TIMESTAMP
                    WHERE id = $2
                """, SubscriptionStatus.ACTIVE.value, existing['id'])
                logger.info(f"Reactivated subscription for user {user_id} (subject {subject_id})")
                return "reactivated"

            await self.conn.execute("""
                INSERT INTO subscriptions (user_id, subject_id, status)
                VALUES ($1, $2, $3)
            """, user_id, subject_id, SubscriptionStatus.ACTIVE.value)
            logger.info(f"Created subscription for user {user_id} (subject {subject_id})")
            return "created"

        except Exception as e:
            logger.error(f"Failed to activate subscription for {user_id}: {e}")
            raise

    async def cancel_subscriptions(self, user_id: str) -> int:
        """Cancel every active subscription of a user. Returns the number cancelled."""
        try:
            result = await self.conn.execute("""
                UPDATE subscriptions
                SET status = $1, updated_at = CURRENT_TIMESTAMP
                WHERE user_id = $2 AND status = $3
            """, SubscriptionStatus.CANCELLED.value, user_id, SubscriptionStatus.ACTIVE.value)
            return _affected_rows(result)

        except Exception as e:
            logger.error(f"Failed to cancel subscriptions for {user_id}: {e}")
            raise

    async def cancel_subscriptions_by_email(self, email: str) -> int:
        try:
            result = await self.conn.execute("""
                UPDATE subscriptions s
                SET status = $1, updated_at = CURRENT_TIMESTAMP
                FROM users u
                WHERE s.user_id = u.id AND u.email = $2 AND s.status = $3
            """, SubscriptionStatus.CANCELLED.value, email.lower(), SubscriptionStatus.ACTIVE.value)
            return _affected_rows(result)

        except Exception as e:
            logger.error(f"Failed to cancel subscriptions for {email}: {e}")
            raise

    async def get_subscription_stats(self, subject_id: int) -> dict:
        row = await self.conn.fetchrow("""
            SELECT
                COUNT(*) AS total,
                COUNT(*) FILTER (WHERE status = 'active') AS active,
                COUNT(*) FILTER (WHERE status = 'cancelled') AS cancelled,
                COUNT(*) FILTER (WHERE created_at > NOW() - INTERVAL '7 days') AS this_week
            FROM subscriptions
            WHERE subject_id = $1
        """, subject_id)
        return dict(row)

def _affected_rows(status: str) -> int:
    # asyncpg returns the command tag, e.g. "UPDATE 3"
    try:
        return int(status.split()[-1])
    except (AttributeError, ValueError, IndexError):
        return 0
