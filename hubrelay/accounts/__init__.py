"""Read-only access to accounts and the sources they watch."""

from hubrelay.accounts.repository import AccountDirectory
from hubrelay.accounts.schemas import AccountTargets, parse_chat_ids

__all__ = ["AccountDirectory", "AccountTargets", "parse_chat_ids"]
