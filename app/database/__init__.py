# app/database/__init__.py
from .connection import get_db_connection, release_db_connection, db_connection, DatabaseConnection
from .subscriber_repository import SubscriberRepository
from .content_repository import ContentRepository
from .delivery_repository import DeliveryRepository
from .transactional_email_repository import TransactionalEmailRepository
from .sequence_repository import SequenceRepository
from .send_result_repository import SendResultRepository
from .feedback_repository import FeedbackRepository

__all__ = [
    "get_db_connection", "release_db_connection", "db_connection", "DatabaseConnection",
    "SubscriberRepository", "ContentRepository", "DeliveryRepository",
    "TransactionalEmailRepository", "SequenceRepository", "SendResultRepository",
    "FeedbackRepository"
]
