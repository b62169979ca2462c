"""Tests for the subscription admin endpoints."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

from fastapi.testclient import TestClient

from hubrelay.api.app import create_app
from hubrelay.api.dependencies import get_subscription_repository
from hubrelay.config.settings import get_settings
from hubrelay.subscriptions.schemas import (
    SubscribeResult,
    Subscription,
    SubscriptionStatus,
)


def _sub(source_id: str, hours: float | None, status=SubscriptionStatus.ACTIVE) -> Subscription:
    expires = datetime.now(timezone.utc) + timedelta(hours=hours) if hours is not None else None
    return Subscription(source_id=source_id, topic=f"t/{source_id}", status=status, expires_at=expires)


class TestListSubscriptions:

    def test_empty(self, client):
        response = client.get("/subscriptions")

        assert response.status_code == 200
        assert response.json() == {
            "subscriptions": [],
            "total": 0,
            "healthy": 0,
            "needs_attention": 0,
        }

    def test_health_is_derived_from_expiry(self, client, mock_subscription_repo):
        mock_subscription_repo.list_all.return_value = [
            _sub("UCok", 200),
            _sub("UCsoon", 10),
            _sub("UCgone", -3),
            _sub("UCnew", None, status=SubscriptionStatus.PENDING),
        ]

        data = client.get("/subscriptions").json()

        by_id = {s["source_id"]: s for s in data["subscriptions"]}
        assert by_id["UCok"]["health"] == "ok"
        assert by_id["UCsoon"]["health"] == "expiring_soon"
        assert by_id["UCsoon"]["status"] == "expiring"
        assert by_id["UCsoon"]["stored_status"] == "active"
        assert by_id["UCgone"]["health"] == "expired"
        assert by_id["UCnew"]["health"] == "unknown"
        assert by_id["UCnew"]["hours_until_expiry"] is None
        assert data["total"] == 4
        assert data["healthy"] == 1
        assert data["needs_attention"] == 3


    def test_get_one(self, client, mock_subscription_repo):
        mock_subscription_repo.get = AsyncMock(return_value=_sub("UCsoon", 10))

        response = client.get("/subscriptions/UCsoon")

        assert response.status_code == 200
        assert response.json()["health"] == "expiring_soon"
        mock_subscription_repo.get.assert_awaited_once_with("UCsoon")

    def test_get_unknown_is_404(self, client, mock_subscription_repo):
        mock_subscription_repo.get = AsyncMock(return_value=None)

        assert client.get("/subscriptions/UCnope").status_code == 404


class TestRenew:

    def test_renew_one_success(self, client, mock_manager):
        expires = datetime(2026, 3, 19, tzinfo=timezone.utc)
        mock_manager.subscribe = AsyncMock(return_value=SubscribeResult(
            source_id="UCabc", ok=True, attempts=1, status_code=202, expires_at=expires,
        ))

        response = client.post("/subscriptions/UCabc/renew")

        assert response.status_code == 200
        body = response.json()
        assert body["ok"] is True
        assert body["status_code"] == 202
        mock_manager.subscribe.assert_awaited_once_with("UCabc")

    def test_renew_one_failure_is_502(self, client, mock_manager):
        mock_manager.subscribe = AsyncMock(return_value=SubscribeResult(
            source_id="UCabc", ok=False, attempts=4, status_code=500, error="HTTP 500",
        ))

        response = client.post("/subscriptions/UCabc/renew")

        assert response.status_code == 502
        assert response.json()["detail"]["attempts"] == 4

    def test_renew_sweep(self, client, mock_manager):
        mock_manager.renew_due.return_value = [
            SubscribeResult(source_id="UCa", ok=True, attempts=1),
            SubscribeResult(source_id="UCb", ok=False, attempts=4, error="timeout"),
        ]

        response = client.post("/subscriptions/renew")

        assert response.status_code == 200
        body = response.json()
        assert body["renewed"] == 1
        assert body["failed"] == 1
        assert [r["source_id"] for r in body["results"]] == ["UCa", "UCb"]


class TestAuth:

    def test_api_key_required_when_configured(self, monkeypatch, mock_subscription_repo):
        monkeypatch.setenv("API_KEYS", "secret-1,secret-2")
        get_settings.cache_clear()
        try:
            app = create_app()
            app.dependency_overrides[get_subscription_repository] = lambda: mock_subscription_repo
            with TestClient(app) as c:
                assert c.get("/subscriptions").status_code == 401
                assert c.get("/subscriptions", headers={"X-API-KEY": "nope"}).status_code == 401
                assert c.get("/subscriptions", headers={"X-API-KEY": "secret-2"}).status_code == 200
        finally:
            get_settings.cache_clear()

    def test_webhook_is_open(self, monkeypatch):
        monkeypatch.setenv("API_KEYS", "secret-1")
        get_settings.cache_clear()
        try:
            app = create_app()
            with TestClient(app) as c:
                assert c.get("/webhook", params={"hub.challenge": "ok"}).text == "ok"
        finally:
            get_settings.cache_clear()
