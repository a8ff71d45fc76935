"""Shared plumbing for slash-command handlers: channel checks, replies, error text."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import discord
import httpx

from kvkstats.config import ADMIN_COMMANDS
from kvkstats.core.backend import BackendNotConfigured, HttpFailure, ParseFailure
from kvkstats.core.media import FetchFailure
from kvkstats.core.registration import IncompleteRegistration

if TYPE_CHECKING:
    from kvkstats.config import Settings

logger = logging.getLogger(__name__)

GENERIC_BACKEND_ERROR = "❌ The backend could not process the request. Please try again later."


def channel_rejection(settings: Settings, command: str, channel_id: int | None) -> str | None:
    """Return the rejection text when ``command`` may not run in ``channel_id``.

    Admin commands refuse to run until the admin channel is configured; the
    others are only restricted once their channel is set.
    """
    allowed = settings.channel_for(command)
    if allowed is None:
        if command in ADMIN_COMMANDS:
            return (
                "⚙️ Configuration error: the admin channel (ADMIN_CHANNEL_ID) is not set. "
                "This command is disabled."
            )
        return None
    if channel_id != allowed:
        return f"🚫 This command can only be used in <#{allowed}>."
    return None


def user_message_for(exc: BaseException) -> str:
    """Map a handler failure to the text shown to the user."""
    if isinstance(exc, BackendNotConfigured):
        return "⚙️ Configuration error: the backend URL is not set. Contact an admin."
    if isinstance(exc, HttpFailure):
        if exc.backend_message:
            return f"❌ Backend error: {exc.backend_message}"
        return f"❌ Error communicating with the backend (Status: {exc.status_code})."
    if isinstance(exc, ParseFailure):
        return "❌ Error processing response from the backend (Invalid Format)."
    if isinstance(exc, FetchFailure):
        return f"❌ Failed to process the attachment ({exc.status_code} {exc.reason})."
    if isinstance(exc, IncompleteRegistration):
        return "⚠️ Registration is incomplete: missing " + ", ".join(exc.missing) + "."
    if isinstance(exc, httpx.TimeoutException):
        return "⌛ The backend took too long to respond. Please try again later."
    if isinstance(exc, httpx.HTTPError):
        return GENERIC_BACKEND_ERROR
    return "❌ An unexpected error occurred. Please contact an admin."


async def defer(interaction: discord.Interaction, *, ephemeral: bool = False) -> bool:
    """Defer the interaction; False when the token has already expired."""
    try:
        await interaction.response.defer(ephemeral=ephemeral, thinking=True)
    except discord.NotFound:
        logger.warning("interaction_expired stage=defer interaction_id=%s", interaction.id)
        return False
    return True


async def send_followup(interaction: discord.Interaction, **kwargs: Any) -> None:
    """Followup on a deferred interaction. An expired token is logged only."""
    try:
        await interaction.followup.send(**kwargs)
    except discord.NotFound:
        logger.warning("interaction_expired stage=followup interaction_id=%s", interaction.id)
    except discord.HTTPException:
        logger.exception("interaction_followup_failed interaction_id=%s", interaction.id)


async def reply_error(
    interaction: discord.Interaction,
    command: str,
    exc: BaseException,
    *,
    ephemeral: bool = True,
) -> None:
    """Log a handler failure and tell the user, best effort."""
    logger.error("command_failed command=%s error=%s", command, exc, exc_info=exc)
    await send_followup(interaction, content=user_message_for(exc), ephemeral=ephemeral)
