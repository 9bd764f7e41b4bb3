# app/models/newsletter.py
from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from enum import Enum

class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    CANCELLED = "cancelled"

class IssueStatus(str, Enum):
    GENERATING = "generating"
    DRAFT = "draft"
    FAILED = "failed"
    APPROVED = "approved"
    SENT = "sent"

class DeliveryStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    DELIVERED = "delivered"
    FAILED = "failed"
    BOUNCED = "bounced"

# Statuses that count as "already received" when deduplicating
RECEIVED_STATUSES = (DeliveryStatus.SENT.value, DeliveryStatus.DELIVERED.value)

class TransactionalEmailType(str, Enum):
    WELCOME = "welcome"
    MARKETING = "marketing"

class Subscriber(BaseModel):
    id: str
    email: str

class Topic(BaseModel):
    id: int
    subject_id: int
    title: str
    sequence_order: int

class Issue(BaseModel):
    id: int
    topic_id: int
    title: str
    content: Optional[str] = None
    raw_html: Optional[str] = None
    raw_text: Optional[str] = None
    status: IssueStatus
    sent_at: Optional[datetime] = None

class NewsletterSequence(BaseModel):
    subject_id: int
    current_sequence: int
    version: int = 0
    last_sent_at: Optional[datetime] = None

class StatusUpdate(BaseModel):
    """Outcome of one send, persisted against a delivery or transactional row"""
    user_id: str
    status: DeliveryStatus
    external_id: Optional[str] = None
    error_message: Optional[str] = None
    sent_at: Optional[datetime] = None
