"""Hub Relay - WebSub new-video notifications relayed to Telegram."""

__version__ = "0.1.0"
