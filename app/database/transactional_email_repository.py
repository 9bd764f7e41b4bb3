# app/database/transactional_email_repository.py
import asyncpg
from typing import Optional, List, Set, Dict, Any
from app.models.newsletter import (
    DeliveryStatus, StatusUpdate, TransactionalEmailType, RECEIVED_STATUSES
)
import logging

logger = logging.getLogger(__name__)

class TransactionalEmailRepository:
    """One row per (user, email type, campaign). Welcome emails use an empty campaign id."""

    def __init__(self, connection: asyncpg.Connection):
        self.conn = connection

    async def create(
        self,
        user_id: str,
        email_type: TransactionalEmailType,
        campaign_id: str = ""
    ) -> Dict[str, Any]:
        try:
            row = await self.conn.fetchrow("""
                INSERT INTO transactional_emails (user_id, email_type, campaign_id, status)
                VALUES ($1, $2, $3, $4)
                ON CONFLICT (user_id, email_type, campaign_id)
                DO UPDATE SET status = EXCLUDED.status, error_message = NULL
                RETURNING id::text AS id, user_id::text AS user_id, email_type, campaign_id, status
            """, user_id, email_type.value, campaign_id, DeliveryStatus.PENDING.value)
            return dict(row)

        except Exception as e:
            logger.error(f"Failed to create {email_type.value} email record for {user_id}: {e}")
            raise

    async def update_status(
        self,
        record_id: str,
        status: DeliveryStatus,
        external_id: Optional[str] = None,
        error_message: Optional[str] = None
    ):
        try:
            await self.conn.execute("""
                UPDATE transactional_emails
                SET status = $1,
                    external_id = COALESCE($2, external_id),
                    error_message = $3,
                    sent_at = CASE WHEN $1 = 'sent' THEN CURRENT_TIMESTAMP ELSE sent_at END
                WHERE id = $4
            """, status.value, external_id, error_message, record_id)

        except Exception as e:
            logger.error(f"Failed to update transactional email {record_id}: {e}")
            raise

    async def bulk_create_pending(
        self,
        user_ids: List[str],
        email_type: TransactionalEmailType,
        campaign_id: str = ""
    ):
        if not user_ids:
            return
        try:
            await self.conn.execute("""
                INSERT INTO transactional_emails (user_id, email_type, campaign_id, status)
                SELECT uid, $2, $3, $4 FROM unnest($1::uuid[]) AS uid
                ON CONFLICT (user_id, email_type, campaign_id)
                DO UPDATE SET status = EXCLUDED.status, error_message = NULL
                WHERE transactional_emails.status = $5
            """, user_ids, email_type.value, campaign_id,
                DeliveryStatus.PENDING.value, DeliveryStatus.FAILED.value)

        except Exception as e:
            logger.error(f"Failed to create pending {email_type.value} records for {campaign_id}: {e}")
            raise

    async def bulk_update_statuses(
        self,
        email_type: TransactionalEmailType,
        campaign_id: str,
        updates: List[StatusUpdate]
    ):
        if not updates:
            return
        try:
            await self.conn.execute("""
                UPDATE transactional_emails AS t
                SET status = u.status,
                    external_id = COALESCE(u.external_id, t.external_id),
                    error_message = u.error_message,
                    sent_at = COALESCE(u.sent_at, t.sent_at)
                FROM unnest($3::uuid[], $4::text[], $5::text[], $6::text[], $7::timestamptz[])
                    AS u(user_id, status, external_id, error_message, sent_at)
                WHERE t.email_type = $1 AND t.campaign_id = $2 AND t.user_id = u.user_id
            """,
                email_type.value,
                campaign_id,
                [u.user_id for u in updates],
                [u.status.value for u in updates],
                [u.external_id for u in updates],
                [u.error_message for u in updates],
                [u.sent_at for u in updates]
            )

        except Exception as e:
            logger.error(f"Failed to update {len(updates)} {email_type.value} records for {campaign_id}: {e}")
            raise

    async def get_users_who_received(
        self,
        user_ids: List[str],
        email_type: TransactionalEmailType,
        campaign_id: str = ""
    ) -> Set[str]:
        if not user_ids:
            return set()
        try:
            rows = await self.conn.fetch("""
                SELECT user_id::text AS user_id
                FROM transactional_emails
                WHERE user_id = ANY($1::uuid[])
                  AND email_type = $2
                  AND campaign_id = $3
                  AND status = ANY($4::text[])
            """, user_ids, email_type.value, campaign_id, list(RECEIVED_STATUSES))
            return {row['user_id'] for row in rows}

        except Exception as e:
            logger.error(f"Failed to load {email_type.value} recipients for {campaign_id}: {e}")
            raise
