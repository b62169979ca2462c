"""Lookup of the accounts interested in a source.

The ``accounts`` and ``feeds`` tables belong to the account management
layer; this module only reads them.
"""

import logging

from hubrelay.accounts.schemas import AccountTargets, parse_chat_ids
from hubrelay.storage.database import Database

logger = logging.getLogger(__name__)

_ACCOUNTS_WATCHING_SQL = """
SELECT DISTINCT a.id, a.name, a.telegram_chat_id
FROM accounts a
JOIN feeds f ON f.account_id = a.id
WHERE f.channel_id = $1
ORDER BY a.name
"""


class AccountDirectory:
    """Resolves ``source_id -> [(account, targets)]``.

    Accounts without chat ids of their own fall back to
    ``default_chat_ids``; accounts that still have no target are dropped.
    """

    def __init__(self, database: Database, default_chat_ids: list[str] | None = None) -> None:
        self._db = database
        self._default_chat_ids = list(default_chat_ids or [])

    async def accounts_watching(self, source_id: str) -> list[AccountTargets]:
        rows = await self._db.fetch(_ACCOUNTS_WATCHING_SQL, source_id)

        accounts: list[AccountTargets] = []
        for row in rows:
            targets = parse_chat_ids(row["telegram_chat_id"]) or list(self._default_chat_ids)
            if not targets:
                logger.debug("Account %s has no targets, skipping", row["id"])
                continue
            accounts.append(
                AccountTargets(
                    account_id=str(row["id"]),
                    name=row["name"] or "",
                    targets=targets,
                )
            )
        return accounts
