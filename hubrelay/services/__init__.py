"""Services that orchestrate the background process."""

from hubrelay.services.retention import RetentionReport, RetentionService
from hubrelay.services.worker_service import WorkerService

__all__ = ["RetentionReport", "RetentionService", "WorkerService"]
