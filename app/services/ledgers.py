# app/services/ledgers.py
"""Where a bulk send records its per-recipient outcomes."""
from abc import ABC, abstractmethod
from typing import List, Set
from app.database.delivery_repository import DeliveryRepository
from app.database.transactional_email_repository import TransactionalEmailRepository
from app.models.newsletter import StatusUpdate, TransactionalEmailType

class DeliveryLedger(ABC):
    @abstractmethod
    async def already_sent(self, user_ids: List[str]) -> Set[str]:
        """Single batched lookup of users that already received this send"""

    @abstractmethod
    async def mark_pending(self, user_ids: List[str]):
        ...

    @abstractmethod
    async def record_results(self, updates: List[StatusUpdate]):
        ...

class IssueDeliveryLedger(DeliveryLedger):
    """Newsletter issues are recorded in the deliveries table"""

    def __init__(self, repo: DeliveryRepository, issue_id: int):
        self.repo = repo
        self.issue_id = issue_id

    async def already_sent(self, user_ids: List[str]) -> Set[str]:
        return await self.repo.get_users_already_sent(self.issue_id, user_ids)

    async def mark_pending(self, user_ids: List[str]):
        await self.repo.bulk_create_pending(self.issue_id, user_ids)

    async def record_results(self, updates: List[StatusUpdate]):
        await self.repo.bulk_update_statuses(self.issue_id, updates)

class TransactionalEmailLedger(DeliveryLedger):
    """Campaign and transactional emails are keyed by (email type, campaign id)"""

    def __init__(
        self,
        repo: TransactionalEmailRepository,
        email_type: TransactionalEmailType,
        campaign_id: str = ""
    ):
        self.repo = repo
        self.email_type = email_type
        self.campaign_id = campaign_id

    async def already_sent(self, user_ids: List[str]) -> Set[str]:
        return await self.repo.get_users_who_received(user_ids, self.email_type, self.campaign_id)

    async def mark_pending(self, user_ids: List[str]):
        await self.repo.bulk_create_pending(user_ids, self.email_type, self.campaign_id)

    async def record_results(self, updates: List[StatusUpdate]):
        await self.repo.bulk_update_statuses(self.email_type, self.campaign_id, updates)
