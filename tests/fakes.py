"""In-memory stand-ins for the provider, ledgers and repositories"""
from typing import Dict, List, Optional, Set

from app.models.email import EmailSendRequest, EmailSendResponse
from app.models.newsletter import (
    DeliveryStatus,
    Issue,
    IssueStatus,
    NewsletterSequence,
    RECEIVED_STATUSES,
    StatusUpdate,
    Subscriber,
    Topic,
)
from app.services.email_provider import EmailProvider
from app.services.ledgers import DeliveryLedger


def make_users(count: int, start: int = 1) -> List[Subscriber]:
    return [
        Subscriber(id=f"user{i}", email=f"user{i}@example.com")
        for i in range(start, start + count)
    ]


class FakeProvider(EmailProvider):
    """Records every batch; ``failures`` maps call numbers (1-based) to an exception to raise"""

    def __init__(self, failures: Optional[Dict[int, Exception]] = None, reject: Optional[Set[str]] = None):
        self.calls: List[List[EmailSendRequest]] = []
        self.failures = failures or {}
        self.reject = reject or set()

    async def send_batch(self, requests: List[EmailSendRequest]) -> List[EmailSendResponse]:
        self.calls.append(list(requests))
        failure = self.failures.get(len(self.calls))
        if failure is not None:
            raise failure
        return [
            EmailSendResponse(user_id=r.user_id, status=DeliveryStatus.FAILED, error="Rejected")
            if r.user_id in self.reject
            else EmailSendResponse(user_id=r.user_id, status=DeliveryStatus.SENT, message_id=f"msg-{r.user_id}")
            for r in requests
        ]

    @property
    def sent_to(self) -> List[str]:
        return [r.user_id for batch in self.calls for r in batch]


class FakeLedger(DeliveryLedger):
    def __init__(self, fail_pending: bool = False, fail_record: bool = False):
        self.statuses: Dict[str, str] = {}
        self.fail_pending = fail_pending
        self.fail_record = fail_record
        self.lookups = 0

    async def already_sent(self, user_ids: List[str]) -> Set[str]:
        self.lookups += 1
        return {u for u in user_ids if self.statuses.get(u) in RECEIVED_STATUSES}

    async def mark_pending(self, user_ids: List[str]):
        if self.fail_pending:
            raise RuntimeError("database unavailable")
        for user_id in user_ids:
            if self.statuses.get(user_id) in (None, DeliveryStatus.FAILED.value):
                self.statuses[user_id] = DeliveryStatus.PENDING.value

    async def record_results(self, updates: List[StatusUpdate]):
        if self.fail_record:
            raise RuntimeError("database unavailable")
        for update in updates:
            self.statuses[update.user_id] = update.status.value


class FakeSubscriberRepository:
    def __init__(self, users: List[Subscriber]):
        self.users = users
        self.pages_read: List[int] = []
        self.created: List[str] = []

    async def find_active_by_subject(self, subject_id: int, page: int, page_size: int) -> List[Subscriber]:
        self.pages_read.append(page)
        offset = (page - 1) * page_size
        return self.users[offset:offset + page_size]

    async def get_or_create_user(self, email: str) -> Subscriber:
        for user in self.users:
            if user.email == email:
                return user
        user = Subscriber(id=f"admin-{len(self.created) + 1}", email=email)
        self.created.append(email)
        return user


class FakeDeliveryRepository:
    """Stands in for the deliveries table, keyed by (issue id, user id)"""

    def __init__(self, cancelled_user_ids: Optional[Set[str]] = None):
        self.rows: Dict[tuple, str] = {}
        self.cancelled_user_ids = cancelled_user_ids or set()

    async def get_users_already_sent(self, issue_id: int, user_ids: List[str]) -> Set[str]:
        return {u for u in user_ids if self.rows.get((issue_id, u)) in RECEIVED_STATUSES}

    async def bulk_create_pending(self, issue_id: int, user_ids: List[str]):
        for user_id in user_ids:
            if self.rows.get((issue_id, user_id)) in (None, DeliveryStatus.FAILED.value):
                self.rows[(issue_id, user_id)] = DeliveryStatus.PENDING.value

    async def bulk_update_statuses(self, issue_id: int, updates: List[StatusUpdate]):
        for update in updates:
            self.rows[(issue_id, update.user_id)] = update.status.value

    async def find_active_subscribers_with_failed_deliveries(self, issue_id: int, subject_id: int) -> List[Subscriber]:
        retry_statuses = (DeliveryStatus.FAILED.value, DeliveryStatus.PENDING.value)
        return [
            Subscriber(id=user_id, email=f"{user_id}@example.com")
            for (row_issue_id, user_id), status in self.rows.items()
            if row_issue_id == issue_id and status in retry_statuses and user_id not in self.cancelled_user_ids
        ]

    async def get_issue_summary(self, issue_id: int) -> Dict[str, int]:
        summary: Dict[str, int] = {}
        for (row_issue_id, _), status in self.rows.items():
            if row_issue_id == issue_id:
                summary[status] = summary.get(status, 0) + 1
        return summary


class FakeTransactionalEmailRepository:
    def __init__(self):
        self.rows: Dict[tuple, str] = {}
        self.created: List[tuple] = []

    async def get_users_who_received(self, user_ids, email_type, campaign_id=""):
        return {
            u for u in user_ids
            if self.rows.get((u, email_type.value, campaign_id)) in RECEIVED_STATUSES
        }

    async def bulk_create_pending(self, user_ids, email_type, campaign_id=""):
        for user_id in user_ids:
            key = (user_id, email_type.value, campaign_id)
            if self.rows.get(key) in (None, DeliveryStatus.FAILED.value):
                self.rows[key] = DeliveryStatus.PENDING.value

    async def bulk_update_statuses(self, email_type, campaign_id, updates):
        for update in updates:
            self.rows[(update.user_id, email_type.value, campaign_id)] = update.status.value

    async def create(self, user_id, email_type, campaign_id=""):
        key = (user_id, email_type.value, campaign_id)
        self.rows[key] = DeliveryStatus.PENDING.value
        self.created.append(key)
        return {"id": key}

    async def update_status(self, record_id, status, external_id=None, error_message=None):
        self.rows[record_id] = status.value


class FakeSequenceRepository:
    def __init__(self, current: int = 1):
        self.current = current
        self.advances: List[int] = []
        self.concurrent_advance = False

    async def get_or_create(self, subject_id: int, starting_sequence: int = 1) -> NewsletterSequence:
        return NewsletterSequence(subject_id=subject_id, current_sequence=self.current)

    async def advance(self, subject_id: int, expected_sequence: int) -> Optional[NewsletterSequence]:
        if self.concurrent_advance:
            # Another run moved the cursor while this one was sending
            self.current += 1
        if self.current != expected_sequence:
            return None
        self.current += 1
        self.advances.append(expected_sequence)
        return NewsletterSequence(subject_id=subject_id, current_sequence=self.current, version=len(self.advances))


class FakeContentRepository:
    def __init__(self, topics: Optional[Dict[int, Topic]] = None, issues: Optional[Dict[int, Issue]] = None):
        self.topics = topics or {}
        self.issues = issues or {}
        self.sent_issue_ids: List[int] = []

    async def find_topic_by_sequence(self, subject_id: int, sequence: int) -> Optional[Topic]:
        return self.topics.get(sequence)

    async def find_issue_by_topic(self, topic_id: int) -> Optional[Issue]:
        return self.issues.get(topic_id)

    async def find_issue_by_id(self, issue_id: int) -> Optional[Issue]:
        return next((i for i in self.issues.values() if i.id == issue_id), None)

    async def find_topic_by_id(self, topic_id: int) -> Optional[Topic]:
        return next((t for t in self.topics.values() if t.id == topic_id), None)

    async def mark_issue_sent(self, issue_id: int):
        self.sent_issue_ids.append(issue_id)


class FakeSendResultRepository:
    def __init__(self):
        self.started: List[tuple] = []
        self.completed: List[tuple] = []

    async def record_start(self, issue_id: int, name: str) -> int:
        self.started.append((issue_id, name))
        return len(self.started)

    async def record_completion(self, result_id, total_sent, total_failed, failed_user_ids):
        self.completed.append((result_id, total_sent, total_failed, list(failed_user_ids)))


def make_topic(sequence: int, topic_id: int = 10, subject_id: int = 1) -> Topic:
    return Topic(id=topic_id, subject_id=subject_id, title=f"Topic {sequence}", sequence_order=sequence)


def make_issue(
    issue_id: int = 100,
    topic_id: int = 10,
    status: IssueStatus = IssueStatus.APPROVED,
    content: Optional[str] = "Caching strategies in depth",
    raw_html: Optional[str] = None
) -> Issue:
    return Issue(
        id=issue_id,
        topic_id=topic_id,
        title="Caching",
        content=content,
        raw_html=raw_html,
        status=status,
    )
