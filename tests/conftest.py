from typing import List

import pytest

from app.config import settings
from app.services.batch_sender import BatchSender
from tests.fakes import FakeProvider


class RecordingSleep:
    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float):
        self.calls.append(seconds)


@pytest.fixture(autouse=True)
def test_settings(monkeypatch):
    monkeypatch.setattr(settings, "frontend_url", "https://newsletter.example.com")
    monkeypatch.setattr(settings, "backend_url", "https://api.newsletter.example.com")
    monkeypatch.setattr(settings, "jwt_secret_key", "test-jwt-secret")
    monkeypatch.setattr(settings, "cron_secret", "test-cron-secret")
    monkeypatch.setattr(settings, "admin_email", "admin@example.com")
    return settings


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def sender(provider, sleep):
    return BatchSender(provider, batch_size=2, max_retries=3, delay_seconds=1.0, sleep=sleep)
