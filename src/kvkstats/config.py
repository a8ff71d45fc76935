"""Application settings via pydantic-settings. Loads from environment and .env file."""

from __future__ import annotations

from pydantic import model_validator
from pydantic_settings import BaseSettings

# Slash command name -> Settings attribute holding its permitted channel.
COMMAND_CHANNELS: dict[str, str] = {
    "register": "register_channel_id",
    "register-drive": "admin_channel_id",
    "fix-name": "admin_channel_id",
    "get-registration": "admin_channel_id",
    "kp_zone_upload": "admin_channel_id",
    "submit_kp_zona": "kp_zona_channel_id",
    "submit_prekvk": "prekvk_channel_id",
    "submit-death-troops": "death_troops_channel_id",
    "mystats": "my_stats_channel_id",
    "leaderboard": "leaderboard_channel_id",
}

# Commands that refuse to run at all until their channel is configured.
ADMIN_COMMANDS = frozenset({"register-drive", "fix-name", "get-registration", "kp_zone_upload"})


class Settings(BaseSettings):
    """KvK stats bot configuration.

    All values can be overridden via environment variables or .env file.
    """

    # Discord
    discord_bot_token: str = ""
    discord_client_id: str = ""
    discord_guild_id: str = ""

    # Backend (Apps Script web app)
    apps_script_web_app_url: str = ""
    backend_timeout_seconds: float = 60.0

    # Per-command channel restrictions
    admin_channel_id: str = ""
    register_channel_id: str = ""
    kp_zona_channel_id: str = ""
    prekvk_channel_id: str = ""
    death_troops_channel_id: str = ""
    my_stats_channel_id: str = ""
    leaderboard_channel_id: str = ""

    # Registration workflow
    registration_timeout_seconds: int = 300  # whole interactive flow
    screenshot_timeout_seconds: int = 120  # reply with a screenshot

    # Environment
    kvkstats_env: str = "development"
    kvkstats_log_level: str = "INFO"
    port: int = 3000

    model_config = {"env_prefix": "", "env_file": ".env", "extra": "ignore"}

    @model_validator(mode="after")
    def _require_token_in_production(self) -> Settings:
        """Reject a production config that cannot log in to Discord."""
        if self.kvkstats_env == "production" and not self.discord_bot_token:
            msg = "DISCORD_BOT_TOKEN must be set in production."
            raise ValueError(msg)
        return self

    def channel_for(self, command: str) -> int | None:
        """Return the permitted channel id for a slash command, or None if unrestricted."""
        attr = COMMAND_CHANNELS.get(command)
        if attr is None:
            return None
        raw = getattr(self, attr)
        return int(raw) if raw else None
