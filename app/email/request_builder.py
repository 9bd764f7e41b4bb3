# app/email/request_builder.py
"""Map a subscriber plus content to a provider-agnostic send request."""
from typing import Callable, Dict, List, Optional
from app.config import settings
from app.email.templates import (
    UNSUBSCRIBE_PLACEHOLDER, render_newsletter_html, render_newsletter_text
)
from app.models.email import EmailContent, EmailSendRequest, MessageTag, MessageTagName
from app.models.newsletter import Issue, Subscriber, TransactionalEmailType
from app.utils.tokens import generate_one_click_unsubscribe_url, generate_unsubscribe_page_url

# Per-campaign strategy applied to the shared content for each recipient
Personalizer = Callable[[EmailContent, Subscriber], EmailContent]

def unsubscribe_headers(user: Subscriber) -> Dict[str, str]:
    one_click_url = generate_one_click_unsubscribe_url(user.id, user.email)
    return {
        "List-Unsubscribe": f"<{one_click_url}>",
        "List-Unsubscribe-Post": "List-Unsubscribe=One-Click",
    }

def _with_unsubscribe_link(content: EmailContent, user: Subscriber) -> EmailContent:
    page_url = generate_unsubscribe_page_url(user.id, user.email)
    return EmailContent(
        subject=content.subject,
        html=content.html.replace(UNSUBSCRIBE_PLACEHOLDER, page_url),
        text=content.text.replace(UNSUBSCRIBE_PLACEHOLDER, page_url),
    )

def issue_content(issue: Issue) -> EmailContent:
    """Shared (not yet per-user) content of an issue"""
    if issue.raw_html:
        html_body = issue.raw_html
    elif issue.content:
        html_body = render_newsletter_html(issue.title, issue.content)
    else:
        raise ValueError(f"Issue {issue.id} has no content to send")

    if issue.raw_text:
        text_body = issue.raw_text
    elif issue.content:
        text_body = render_newsletter_text(issue.title, issue.content)
    else:
        # Only raw HTML is stored; the text part still carries the unsubscribe link
        text_body = render_newsletter_text(issue.title, "")

    return EmailContent(subject=issue.title, html=html_body, text=text_body)

def build_newsletter_request(
    user: Subscriber,
    issue: Issue,
    subject_id: int,
    sequence_number: int,
    content: Optional[EmailContent] = None
) -> EmailSendRequest:
    content = _with_unsubscribe_link(content or issue_content(issue), user)
    return EmailSendRequest(
        to=user.email,
        from_email=settings.from_email,
        subject=content.subject,
        html=content.html,
        text=content.text,
        headers=unsubscribe_headers(user),
        tags=[
            MessageTag(name=MessageTagName.USER_ID, value=user.id),
            MessageTag(name=MessageTagName.SUBJECT_ID, value=str(subject_id)),
            MessageTag(name=MessageTagName.ISSUE_NUMBER, value=str(sequence_number)),
        ],
        user_id=user.id,
        configuration_set=settings.ses_configuration_set,
    )

def build_newsletter_requests(
    users: List[Subscriber],
    issue: Issue,
    subject_id: int,
    sequence_number: int
) -> List[EmailSendRequest]:
    content = issue_content(issue)
    return [
        build_newsletter_request(user, issue, subject_id, sequence_number, content)
        for user in users
    ]

def build_campaign_request(
    user: Subscriber,
    content: EmailContent,
    campaign_id: str,
    personalizer: Optional[Personalizer] = None
) -> EmailSendRequest:
    if personalizer is not None:
        content = personalizer(content, user)
    content = _with_unsubscribe_link(content, user)
    return EmailSendRequest(
        to=user.email,
        from_email=settings.from_email,
        subject=content.subject,
        html=content.html,
        text=content.text,
        headers=unsubscribe_headers(user),
        tags=[
            MessageTag(name=MessageTagName.EMAIL_TYPE, value=TransactionalEmailType.MARKETING.value),
            MessageTag(name=MessageTagName.CAMPAIGN_ID, value=campaign_id),
            MessageTag(name=MessageTagName.USER_ID, value=user.id),
        ],
        user_id=user.id,
        configuration_set=settings.ses_transactional_configuration_set,
    )

def build_transactional_request(user: Subscriber, content: EmailContent) -> EmailSendRequest:
    """Email type tag is added by the sending service"""
    content = _with_unsubscribe_link(content, user)
    return EmailSendRequest(
        to=user.email,
        from_email=settings.from_email,
        subject=content.subject,
        html=content.html,
        text=content.text,
        headers=unsubscribe_headers(user),
        tags=[MessageTag(name=MessageTagName.USER_ID, value=user.id)],
        user_id=user.id,
        configuration_set=settings.ses_transactional_configuration_set,
    )
