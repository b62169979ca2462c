"""Read-only view of the externally managed accounts."""

from dataclasses import dataclass, field

UNUSED_CHAT_ID = "unused"


def parse_chat_ids(raw: str | None) -> list[str]:
    """Split a comma-separated ``telegram_chat_id`` column into chat ids.

    Blank entries and the ``unused`` placeholder are dropped; order is
    kept and duplicates removed.
    """
    if not raw:
        return []
    seen: dict[str, None] = {}
    for part in raw.split(","):
        chat_id = part.strip()
        if chat_id and chat_id.lower() != UNUSED_CHAT_ID:
            seen.setdefault(chat_id, None)
    return list(seen)


@dataclass
class AccountTargets:
    """An account watching a source, with the chats it is notified in.

    Attributes:
        account_id: Account identifier.
        name: Display name used as the message prefix.
        targets: Telegram chat ids.
    """

    account_id: str
    name: str
    targets: list[str] = field(default_factory=list)
