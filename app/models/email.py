# app/models/email.py
from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict
from app.models.newsletter import DeliveryStatus

class MessageTagName:
    EMAIL_TYPE = "transactional_email_type"
    USER_ID = "user_id"
    SUBJECT_ID = "subject_id"
    ISSUE_NUMBER = "issue_number"
    CAMPAIGN_ID = "campaign_id"

class MessageTag(BaseModel):
    name: str
    value: str

    @field_validator("name", "value")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Message tag names and values must be non-empty strings")
        return v

class EmailContent(BaseModel):
    subject: str
    html: str
    text: str

class EmailSendRequest(BaseModel):
    to: str
    from_email: str
    subject: str
    html: str
    text: Optional[str] = None
    headers: Dict[str, str] = Field(default_factory=dict)
    tags: List[MessageTag] = Field(default_factory=list)
    user_id: str
    configuration_set: Optional[str] = None

    def with_tag(self, name: str, value: str) -> "EmailSendRequest":
        """Return a copy carrying the tag, unless an identical tag is already present"""
        if any(t.name == name and t.value == value for t in self.tags):
            return self
        return self.model_copy(update={"tags": [*self.tags, MessageTag(name=name, value=value)]})

class EmailSendResponse(BaseModel):
    user_id: str
    status: DeliveryStatus
    message_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def sent(self) -> bool:
        return self.status == DeliveryStatus.SENT

class BulkSendResult(BaseModel):
    success: bool = True
    total_sent: int = 0
    total_failed: int = 0
    failed_user_ids: List[str] = Field(default_factory=list)

    def merge(self, other: "BulkSendResult") -> "BulkSendResult":
        self.total_sent += other.total_sent
        self.total_failed += other.total_failed
        self.failed_user_ids.extend(other.failed_user_ids)
        if not other.success:
            self.success = False
        return self

    @property
    def processed(self) -> int:
        return self.total_sent + self.total_failed
