"""Shared fixtures for API tests."""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from hubrelay.api.app import create_app
from hubrelay.api.auth import verify_api_key
from hubrelay.api.dependencies import (
    get_receiver,
    get_subscription_config,
    get_subscription_manager,
    get_subscription_repository,
)
from hubrelay.subscriptions.config import SubscriptionConfig
from hubrelay.webhook.receiver import WebhookReceiver


@pytest.fixture
def mock_queue():
    """Mock EventQueue that accepts every job."""
    queue = AsyncMock()
    queue.enqueue = AsyncMock(return_value="1700000000000-0")
    return queue


@pytest.fixture
def mock_subscription_repo():
    """Mock SubscriptionRepository."""
    repo = AsyncMock()
    repo.list_all = AsyncMock(return_value=[])
    return repo


@pytest.fixture
def mock_manager():
    """Mock SubscriptionManager."""
    manager = AsyncMock()
    manager.renew_due = AsyncMock(return_value=[])
    return manager


@pytest.fixture
def client(mock_queue, mock_subscription_repo, mock_manager):
    """FastAPI TestClient with dependency overrides."""
    app = create_app()

    app.dependency_overrides[verify_api_key] = lambda: "test-key"
    app.dependency_overrides[get_receiver] = lambda: WebhookReceiver(
        AsyncMock(return_value=mock_queue)
    )
    app.dependency_overrides[get_subscription_repository] = lambda: mock_subscription_repo
    app.dependency_overrides[get_subscription_manager] = lambda: mock_manager
    app.dependency_overrides[get_subscription_config] = lambda: SubscriptionConfig()

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()
