import json

import pytest
from fastapi.testclient import TestClient

from app.errors import NotFoundError, PreconditionFailedError, SequenceConflictError
from app.main import app
from app.models.email import BulkSendResult
from app.routes.webhooks import permanent_bounce_recipients

AUTH = {"Authorization": "Bearer test-cron-secret"}
TOPIC_ARN = "arn:aws:sns:us-east-1:123456789012:ses-bounces"


class StubNewsletterService:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    async def send_daily_newsletter(self):
        self.calls.append("daily")
        if self.error:
            raise self.error
        return {
            "success": True,
            "issue_id": 100,
            "sequence_number": 4,
            "next_sequence": 5,
            "total_sent": 3,
            "total_failed": 0,
            "failed_user_ids": [],
            "processed_users": 3,
        }

    async def send_daily_newsletter_to_admin(self):
        self.calls.append("admin")
        if self.error:
            raise self.error
        return {"success": True, "sequence_number": 4, "next_sequence": 5}

    async def send_campaign(self, campaign_id):
        self.calls.append(campaign_id)
        if self.error:
            raise self.error
        return BulkSendResult(total_sent=2, total_failed=1, failed_user_ids=["user3"], success=False)

    async def subscribe(self, email, subject_id=None):
        self.calls.append(("subscribe", email))
        return {"status": "created", "user_id": "user1", "email": email}

    async def send_welcome_email(self, email):
        self.calls.append(("welcome", email))
        return True

    async def unsubscribe(self, token):
        self.calls.append(("unsubscribe", token))
        if token == "good":
            return {"user_id": "user1", "email": "user1@example.com", "cancelled": 1}
        return None

    async def cancel_bounced(self, emails):
        self.calls.append(("bounced", list(emails)))
        return len(emails)

    async def resend_to_failed(self, issue_id):
        self.calls.append(("resend", issue_id))
        if self.error:
            raise self.error
        return {"success": True, "issue_id": issue_id, "resend_count": 2, "total_sent": 2, "total_failed": 0}

    async def submit_feedback(self, token, feedback, rating=None):
        self.calls.append(("feedback", token, feedback, rating))
        if token == "good":
            return {"id": 7, "campaign_id": "launch_announcement_2025_06", "created_at": "2025-06-01T09:00:00+00:00"}
        return None


@pytest.fixture
def client():
    return TestClient(app)


def use_service(monkeypatch, service, *modules):
    for module in modules:
        monkeypatch.setattr(f"app.routes.{module}.newsletter_service", service)
    return service


@pytest.mark.parametrize("headers", [{}, {"Authorization": "Bearer wrong"}, {"Authorization": "test-cron-secret"}])
def test_cron_rejects_missing_or_wrong_secret(client, monkeypatch, headers):
    service = use_service(monkeypatch, StubNewsletterService(), "cron")

    response = client.get("/api/cron/send-daily-newsletter", headers=headers)

    assert response.status_code == 401
    assert response.json()["code"] == "UNAUTHORIZED"
    assert service.calls == []


def test_daily_newsletter_success(client, monkeypatch):
    use_service(monkeypatch, StubNewsletterService(), "cron")

    response = client.get("/api/cron/send-daily-newsletter", headers=AUTH)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["total_sent"] == 3


@pytest.mark.parametrize("error, status_code, code", [
    (NotFoundError("No newsletter found for sequence 4"), 404, "NOT_FOUND"),
    (PreconditionFailedError("Newsletter sequence 4 is not approved"), 400, "PRECONDITION_FAILED"),
    (SequenceConflictError("moved"), 500, "SEQUENCE_CONFLICT"),
    (RuntimeError("connection refused"), 500, "INTERNAL_SERVER_ERROR"),
])
def test_daily_newsletter_failures(client, monkeypatch, error, status_code, code):
    use_service(monkeypatch, StubNewsletterService(error=error), "cron")

    response = client.get("/api/cron/send-daily-newsletter", headers=AUTH)

    assert response.status_code == status_code
    body = response.json()
    assert body["success"] is False
    assert body["code"] == code
    assert body["details"]
    assert body["message"] == body["error"]


def test_admin_run(client, monkeypatch):
    service = use_service(monkeypatch, StubNewsletterService(), "cron")

    response = client.get("/api/cron/daily-newsletter-admin", headers=AUTH)

    assert response.status_code == 200
    assert service.calls == ["admin"]


def test_marketing_campaign_reports_counts(client, monkeypatch):
    use_service(monkeypatch, StubNewsletterService(), "cron")

    response = client.get("/api/cron/marketing/launch_announcement_2025_06", headers=AUTH)

    assert response.status_code == 200
    assert response.json()["data"] == {
        "success": False,
        "total_sent": 2,
        "total_failed": 1,
        "failed_user_ids": ["user3"],
    }


def test_unknown_campaign_is_not_found(client, monkeypatch):
    use_service(monkeypatch, StubNewsletterService(error=NotFoundError("Unknown campaign: nope")), "cron")

    response = client.get("/api/cron/marketing/nope", headers=AUTH)

    assert response.status_code == 404
    assert response.json()["message"] == "Resource not found"


def test_subscribe_queues_welcome_email(client, monkeypatch):
    service = use_service(monkeypatch, StubNewsletterService(), "newsletter")

    response = client.post("/api/newsletter/subscribe", json={"email": "new@example.com"})

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert service.calls == [("subscribe", "new@example.com"), ("welcome", "new@example.com")]


def test_subscribe_rejects_invalid_email(client):
    response = client.post("/api/newsletter/subscribe", json={"email": "not-an-email"})

    assert response.status_code == 422


def test_one_click_unsubscribe(client, monkeypatch):
    use_service(monkeypatch, StubNewsletterService(), "unsubscribe")

    response = client.post("/api/unsubscribe/one-click", params={"token": "good"})

    assert response.status_code == 200
    assert response.json()["email"] == "user1@example.com"


def test_unsubscribe_with_invalid_token(client, monkeypatch):
    use_service(monkeypatch, StubNewsletterService(), "unsubscribe")

    response = client.get("/api/unsubscribe/expired")

    assert response.status_code == 400


def sns_notification(message: dict, topic: str = TOPIC_ARN) -> dict:
    return {"Type": "Notification", "TopicArn": topic, "Message": json.dumps(message)}


BOUNCE = {
    "eventType": "Bounce",
    "bounce": {
        "bounceType": "Permanent",
        "bouncedRecipients": [{"emailAddress": "gone@example.com"}, {"emailAddress": "old@example.com"}],
    },
}


def test_permanent_bounce_recipients():
    assert permanent_bounce_recipients(BOUNCE) == ["gone@example.com", "old@example.com"]
    assert permanent_bounce_recipients({**BOUNCE, "bounce": {"bounceType": "Transient"}}) == []
    assert permanent_bounce_recipients({"eventType": "Delivery"}) == []


def test_bounce_webhook_cancels_subscriptions(client, monkeypatch, test_settings):
    monkeypatch.setattr(test_settings, "sns_ses_bounces_topic_arn", TOPIC_ARN)
    service = use_service(monkeypatch, StubNewsletterService(), "webhooks")

    response = client.post("/api/webhook/ses-bounce", content=json.dumps(sns_notification(BOUNCE)))

    assert response.status_code == 200
    assert response.json()["cancelled"] == 2
    assert service.calls == [("bounced", ["gone@example.com", "old@example.com"])]


def test_bounce_webhook_rejects_unknown_topic(client, monkeypatch, test_settings):
    monkeypatch.setattr(test_settings, "sns_ses_bounces_topic_arn", TOPIC_ARN)
    service = use_service(monkeypatch, StubNewsletterService(), "webhooks")

    response = client.post(
        "/api/webhook/ses-bounce",
        content=json.dumps(sns_notification(BOUNCE, topic="arn:aws:sns:us-east-1:999:other")),
    )

    assert response.status_code == 403
    assert service.calls == []


def test_resend_newsletter(client, monkeypatch):
    service = use_service(monkeypatch, StubNewsletterService(), "cron")

    response = client.get("/api/cron/resend-newsletter/100", headers=AUTH)

    assert response.status_code == 200
    assert response.json()["message"] == "Resent issue 100 to 2 subscribers"
    assert service.calls == [("resend", 100)]


def test_resend_requires_cron_secret(client, monkeypatch):
    service = use_service(monkeypatch, StubNewsletterService(), "cron")

    response = client.get("/api/cron/resend-newsletter/100")

    assert response.status_code == 401
    assert service.calls == []


def test_resend_of_unsent_issue_is_rejected(client, monkeypatch):
    error = PreconditionFailedError("Can only resend failed deliveries for sent newsletters")
    use_service(monkeypatch, StubNewsletterService(error=error), "cron")

    response = client.get("/api/cron/resend-newsletter/100", headers=AUTH)

    assert response.status_code == 400
    assert response.json()["code"] == "PRECONDITION_FAILED"


def test_feedback_is_created(client, monkeypatch):
    service = use_service(monkeypatch, StubNewsletterService(), "feedback")

    response = client.post("/api/feedback", json={"token": "good", "feedback": "More examples please", "rating": 4.5})

    assert response.status_code == 201
    assert response.json()["campaign_id"] == "launch_announcement_2025_06"
    assert service.calls == [("feedback", "good", "More examples please", 4.5)]


def test_feedback_with_invalid_token(client, monkeypatch):
    use_service(monkeypatch, StubNewsletterService(), "feedback")

    response = client.post("/api/feedback", json={"token": "forged", "feedback": "Hello"})

    assert response.status_code == 401


@pytest.mark.parametrize("payload", [
    {"token": "good", "feedback": ""},
    {"token": "good"},
    {"token": "good", "feedback": "Nice", "rating": 6},
])
def test_feedback_rejects_invalid_body(client, monkeypatch, payload):
    service = use_service(monkeypatch, StubNewsletterService(), "feedback")

    response = client.post("/api/feedback", json=payload)

    assert response.status_code == 422
    assert service.calls == []
