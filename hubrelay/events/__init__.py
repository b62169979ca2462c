"""Relay jobs, the filter pipeline and the worker that runs it."""

from hubrelay.events.config import FilterConfig
from hubrelay.events.schemas import Item, Job, ProcessOutcome, ProcessResult

__all__ = ["FilterConfig", "Item", "Job", "ProcessOutcome", "ProcessResult"]
