# app/newsletter/__init__.py
# newsletter_service is imported from app.newsletter.service directly: it
# depends on app.campaigns, which imports this package.
from .sequence import DailySequenceDriver, check_can_send
from .pipeline import deliver_to_subscribers, filter_unsent

__all__ = [
    'DailySequenceDriver',
    'check_can_send',
    'deliver_to_subscribers',
    'filter_unsent'
]
