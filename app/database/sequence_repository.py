# app/database/sequence_repository.py
import asyncpg
from typing import Optional
from app.models.newsletter import NewsletterSequence
import logging

logger = logging.getLogger(__name__)

class SequenceRepository:
    """Per-subject cursor of the next topic to send.

    The cursor only moves through ``advance``, a compare-and-swap on the
    value the caller read, so two overlapping runs cannot both advance it.
    """

    def __init__(self, connection: asyncpg.Connection):
        self.conn = connection

    async def find_by_subject(self, subject_id: int) -> Optional[NewsletterSequence]:
        row = await self.conn.fetchrow("""
            SELECT subject_id, current_sequence, version, last_sent_at
            FROM newsletter_sequence
            WHERE subject_id = $1
        """, subject_id)
        return NewsletterSequence(**dict(row)) if row else None

    async def get_or_create(self, subject_id: int, starting_sequence: int = 1) -> NewsletterSequence:
        try:
            await self.conn.execute("""
                INSERT INTO newsletter_sequence (subject_id, current_sequence)
                VALUES ($1, $2)
                ON CONFLICT (subject_id) DO NOTHING
            """, subject_id, starting_sequence)
            return await self.find_by_subject(subject_id)

        except Exception as e:
            logger.error(f"Failed to get or create sequence for subject {subject_id}: {e}")
            raise

    async def advance(self, subject_id: int, expected_sequence: int) -> Optional[NewsletterSequence]:
        """Move from expected_sequence to expected_sequence + 1.

        Returns the new row, or None when the stored value no longer equals
        expected_sequence.
        """
        try:
            row = await self.conn.fetchrow("""
                UPDATE newsletter_sequence
                SET current_sequence = current_sequence + 1,
                    version = version + 1,
                    last_sent_at = CURRENT_TIMESTAMP,
                    updated_at = CURRENT_TIMESTAMP
                WHERE subject_id = $1 AND current_sequence = $2
                RETURNING subject_id, current_sequence, version, last_sent_at
            """, subject_id, expected_sequence)
            return NewsletterSequence(**dict(row)) if row else None

        except Exception as e:
            logger.error(f"Failed to advance sequence for subject {subject_id}: {e}")
            raise
