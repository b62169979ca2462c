"""Tests for the hubrelay CLI commands."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest
from click.testing import CliRunner

from hubrelay.cli import main
from hubrelay.services.retention import RetentionReport
from hubrelay.subscriptions.schemas import SubscribeResult


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def no_logging_setup():
    with patch("hubrelay.cli.setup_logging"):
        yield


@pytest.fixture
def mock_queue():
    queue = AsyncMock()
    queue.__aenter__.return_value = queue
    return queue


class TestSubscribe:

    def test_success_exits_zero(self, runner: CliRunner) -> None:
        manager = AsyncMock()
        manager.subscribe.return_value = SubscribeResult(
            source_id="UCabc",
            ok=True,
            attempts=1,
            status_code=202,
            expires_at=datetime(2026, 3, 19, 12, 0, tzinfo=timezone.utc),
        )

        with patch("hubrelay.storage.database.Database", return_value=AsyncMock()), \
                patch("hubrelay.subscriptions.manager.SubscriptionManager", return_value=manager):
            result = runner.invoke(main, ["subscribe", "UCabc"])

        assert result.exit_code == 0, result.output
        assert "Subscribed UCabc" in result.output
        manager.subscribe.assert_awaited_once_with("UCabc")

    def test_failure_exits_non_zero(self, runner: CliRunner) -> None:
        manager = AsyncMock()
        manager.subscribe.return_value = SubscribeResult(
            source_id="UCabc", ok=False, attempts=4, status_code=500, error="HTTP 500",
        )

        with patch("hubrelay.storage.database.Database", return_value=AsyncMock()), \
                patch("hubrelay.subscriptions.manager.SubscriptionManager", return_value=manager):
            result = runner.invoke(main, ["subscribe", "UCabc"])

        assert result.exit_code == 1
        assert "failed after 4 attempt(s)" in result.output


class TestRenew:

    def test_nothing_due(self, runner: CliRunner) -> None:
        manager = AsyncMock()
        manager.renew_due.return_value = []

        with patch("hubrelay.storage.database.Database", return_value=AsyncMock()), \
                patch("hubrelay.subscriptions.manager.SubscriptionManager", return_value=manager):
            result = runner.invoke(main, ["renew"])

        assert result.exit_code == 0, result.output
        assert "No subscriptions due" in result.output

    def test_summary(self, runner: CliRunner) -> None:
        manager = AsyncMock()
        manager.renew_due.return_value = [
            SubscribeResult(source_id="UCa", ok=True, attempts=1),
            SubscribeResult(source_id="UCb", ok=False, attempts=4, error="timeout"),
        ]

        with patch("hubrelay.storage.database.Database", return_value=AsyncMock()), \
                patch("hubrelay.subscriptions.manager.SubscriptionManager", return_value=manager):
            result = runner.invoke(main, ["renew"])

        assert "Renewed 1/2 subscriptions" in result.output
        assert "UCb (timeout)" in result.output


class TestCleanup:

    def test_dry_run(self, runner: CliRunner, mock_queue) -> None:
        service = AsyncMock()
        service.run_once.return_value = RetentionReport(items=5, failed_jobs=2, dry_run=True)

        with patch("hubrelay.storage.database.Database", return_value=AsyncMock()), \
                patch("hubrelay.events.queue.EventQueue", return_value=mock_queue), \
                patch("hubrelay.services.retention.RetentionService", return_value=service):
            result = runner.invoke(main, ["cleanup", "--days", "3", "--dry-run"])

        assert result.exit_code == 0, result.output
        assert "would delete 5 items and 2 failed jobs" in result.output
        service.run_once.assert_awaited_once_with(dry_run=True)


class TestFailed:

    def test_lists_failed_jobs(self, runner: CliRunner, mock_queue) -> None:
        mock_queue.get_failed_count.return_value = 1
        mock_queue.list_failed.return_value = [
            {
                "id": "1700000000000-0",
                "key": "dQw4w9WgXcQ",
                "attempt": "3",
                "error": "AllTargetsFailed: All 2 targets failed for item dQw4w9WgXcQ",
            },
        ]

        with patch("hubrelay.events.queue.EventQueue", return_value=mock_queue):
            result = runner.invoke(main, ["failed", "--limit", "5"])

        assert result.exit_code == 0, result.output
        assert "Failed jobs: 1 retained" in result.output
        assert "dQw4w9WgXcQ" in result.output
        mock_queue.list_failed.assert_awaited_once_with(count=5)
