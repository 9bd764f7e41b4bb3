from urllib.parse import parse_qs, urlparse

import pytest
from pydantic import ValidationError

from app.email.request_builder import (
    build_campaign_request,
    build_newsletter_request,
    build_transactional_request,
    issue_content,
    unsubscribe_headers,
)
from app.email.templates import UNSUBSCRIBE_PLACEHOLDER, welcome_content
from app.models.email import EmailContent, MessageTag
from app.models.newsletter import Subscriber
from app.utils.tokens import (
    generate_feedback_page_url,
    generate_feedback_token,
    generate_unsubscribe_token,
    validate_feedback_token,
    validate_unsubscribe_token,
)
from tests.fakes import make_issue

USER = Subscriber(id="6f1c0c1e-1111-4222-8333-444455556666", email="reader@example.com")


def token_from(url: str) -> str:
    return parse_qs(urlparse(url).query)["token"][0]


def test_unsubscribe_headers_point_at_one_click_endpoint():
    headers = unsubscribe_headers(USER)

    url = headers["List-Unsubscribe"].strip("<>")
    assert url.startswith("https://api.newsletter.example.com/api/unsubscribe/one-click?token=")
    assert validate_unsubscribe_token(token_from(url))["user_id"] == USER.id
    assert headers["List-Unsubscribe-Post"] == "List-Unsubscribe=One-Click"


def test_newsletter_request_replaces_unsubscribe_placeholder():
    request = build_newsletter_request(USER, make_issue(), subject_id=1, sequence_number=12)

    assert request.to == USER.email
    assert request.subject == "Caching"
    assert UNSUBSCRIBE_PLACEHOLDER not in request.html
    assert UNSUBSCRIBE_PLACEHOLDER not in request.text
    assert "https://newsletter.example.com/unsubscribe?token=" in request.html
    assert {t.name: t.value for t in request.tags}["issue_number"] == "12"


def test_issue_content_escapes_plain_content():
    issue = make_issue(content="<script>alert(1)</script>")

    content = issue_content(issue)

    assert "<script>" not in content.html
    assert "&lt;script&gt;" in content.html
    assert "<script>alert(1)</script>" in content.text


def test_issue_content_prefers_raw_html():
    content = issue_content(make_issue(raw_html="<p>Prepared</p>"))

    assert content.html == "<p>Prepared</p>"


def test_issue_without_content_is_rejected():
    with pytest.raises(ValueError):
        issue_content(make_issue(content=None))


def test_campaign_request_does_not_mutate_shared_content():
    shared = EmailContent(subject="News", html=f"<a href='{UNSUBSCRIBE_PLACEHOLDER}'>x</a>", text="x")

    build_campaign_request(USER, shared, "camp")

    assert UNSUBSCRIBE_PLACEHOLDER in shared.html


def test_transactional_request_adds_type_tag_once():
    request = build_transactional_request(USER, welcome_content())

    tagged = request.with_tag("transactional_email_type", "welcome")
    retagged = tagged.with_tag("transactional_email_type", "welcome")

    assert [t.name for t in retagged.tags] == ["user_id", "transactional_email_type"]
    assert [t.name for t in request.tags] == ["user_id"]


@pytest.mark.parametrize("name, value", [("", "x"), ("campaign_id", ""), ("campaign_id", "   ")])
def test_blank_tags_are_rejected(name, value):
    with pytest.raises(ValidationError):
        MessageTag(name=name, value=value)


def test_unsubscribe_token_round_trip():
    token = generate_unsubscribe_token(USER.id, USER.email)

    assert validate_unsubscribe_token(token) == {"user_id": USER.id, "email": USER.email}


def test_tampered_token_is_rejected(test_settings, monkeypatch):
    token = generate_unsubscribe_token(USER.id, USER.email)
    monkeypatch.setattr(test_settings, "jwt_secret_key", "another-secret")

    assert validate_unsubscribe_token(token) is None


def test_feedback_token_cannot_unsubscribe():
    url = generate_feedback_page_url(USER.id, "camp")

    assert validate_unsubscribe_token(token_from(url)) is None


def test_feedback_link_token_round_trip():
    url = generate_feedback_page_url(USER.id, "launch_announcement_2025_06")

    assert url.startswith("https://newsletter.example.com/feedback?token=")
    assert validate_feedback_token(token_from(url)) == {
        "user_id": USER.id,
        "campaign_id": "launch_announcement_2025_06",
    }


def test_unsubscribe_token_cannot_submit_feedback():
    token = generate_unsubscribe_token(USER.id, USER.email)

    assert validate_feedback_token(token) is None


def test_tampered_feedback_token_is_rejected(test_settings, monkeypatch):
    token = generate_feedback_token(USER.id, "launch_announcement_2025_06")
    monkeypatch.setattr(test_settings, "jwt_secret_key", "another-secret")

    assert validate_feedback_token(token) is None
