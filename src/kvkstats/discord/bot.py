"""Discord bot for the KvK stats system.

Runs alongside FastAPI using the same event loop. Every slash command checks
its channel, validates options, encodes attachments, forwards one command to
the Apps Script backend and renders the answer.

The bot is optional: if DISCORD_BOT_TOKEN is not set, nothing starts.
"""

from __future__ import annotations

import asyncio
import io
import logging
import re
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import discord
from discord import Intents, app_commands
from discord.ext import commands

from kvkstats.core.backend import BackendClient
from kvkstats.core.export import (
    REGISTRATION_FILENAME,
    build_leaderboard_workbook,
    build_registration_workbook,
)
from kvkstats.core.media import encode_many, encode_remote_file, is_image, is_spreadsheet
from kvkstats.core.registration import (
    MAIN_STATUSES,
    RegistrationStep,
    SessionRejected,
    SessionStore,
)
from kvkstats.discord.embeds import (
    build_bulk_zone_kp_embed,
    build_death_troops_embed,
    build_drive_report_embed,
    build_fix_names_embed,
    build_leaderboard_embed,
    build_message_embed,
    build_my_stats_embed,
    build_prekvk_embed,
    build_registration_closed_embed,
    build_registration_prompt_embed,
    build_zone_kp_embed,
    clamp_leaderboard_limit,
    leaderboard_meta,
)
from kvkstats.discord.helpers import (
    channel_rejection,
    defer,
    reply_error,
    send_followup,
    user_message_for,
)
from kvkstats.discord.views import RegistrationView
from kvkstats.models.backend import BackendCommand

if TYPE_CHECKING:
    from kvkstats.config import Settings
    from kvkstats.models.backend import BackendResult

logger = logging.getLogger(__name__)

ZONES: tuple[str, ...] = ("Zone 4", "Zone 5", "Zone 6", "Zone 7", "Zone 8", "Kingsland")
SUBMISSION_TYPES: tuple[str, ...] = ("Before", "After")

GOVERNOR_ID_PATTERN = re.compile(r"^\d{7,10}$")

BACKEND_NOT_CONFIGURED_TEXT = (
    "⚙️ Configuration error: the backend URL is not set. Contact an admin."
)


class KvkStatsBot(commands.Bot):
    """The KvK stats Discord bot.

    Runs in-process with FastAPI. Holds the backend client and the in-memory
    registration session store shared by every registration prompt.
    """

    def __init__(
        self,
        settings: Settings,
        backend: BackendClient | None = None,
        sessions: SessionStore | None = None,
    ) -> None:
        intents = Intents.default()
        intents.message_content = True  # Required to read screenshot replies

        super().__init__(
            command_prefix="!",
            intents=intents,
            description="KvK Stats Bot -- registration, submissions and rankings.",
        )
        self.settings = settings
        if backend is None:
            backend = BackendClient(
                settings.apps_script_web_app_url,
                timeout=settings.backend_timeout_seconds,
            )
        if sessions is None:
            sessions = SessionStore(
                flow_timeout=settings.registration_timeout_seconds,
                screenshot_timeout=settings.screenshot_timeout_seconds,
            )
        self.backend = backend
        self.sessions = sessions
        # prompt message id -> view awaiting a screenshot reply
        self.registration_views: dict[int, RegistrationView] = {}
        self._setup_commands()

    def _setup_commands(self) -> None:
        """Register slash commands on the bot's command tree."""

        @self.tree.command(name="register", description="Register a new main or farm account")
        async def register_command(interaction: discord.Interaction) -> None:
            await self._handle_register(interaction)

        @self.tree.command(
            name="register-drive",
            description="(Admin) Bulk-register accounts from a Google Drive folder",
        )
        @app_commands.describe(
            folder_id="Google Drive folder id holding the profile screenshots",
            status="Status applied to every registered main account",
        )
        @app_commands.choices(
            status=[app_commands.Choice(name=s, value=s) for s in MAIN_STATUSES]
        )
        async def register_drive_command(
            interaction: discord.Interaction,
            folder_id: str,
            status: app_commands.Choice[str],
        ) -> None:
            await self._handle_register_drive(interaction, folder_id, status.value)

        @self.tree.command(
            name="fix-name",
            description="(Admin) Sync registered nicknames with the player list",
        )
        async def fix_name_command(interaction: discord.Interaction) -> None:
            await self._handle_fix_names(interaction)

        @self.tree.command(
            name="get-registration",
            description="(Admin) Export registration data as an Excel file",
        )
        async def get_registration_command(interaction: discord.Interaction) -> None:
            await self._handle_get_registration(interaction)

        @self.tree.command(
            name="submit_kp_zona",
            description="Submit your profile and kill points screenshots for a zone",
        )
        @app_commands.describe(
            zone_name="The zone the battle took place in",
            submission_type="Before or after the zone battle",
            profile_screenshot="Screenshot of your governor profile",
            killpoints_screenshot="Screenshot of your kill points detail",
        )
        @app_commands.choices(
            zone_name=[app_commands.Choice(name=z, value=z) for z in ZONES],
            submission_type=[app_commands.Choice(name=t, value=t) for t in SUBMISSION_TYPES],
        )
        async def submit_kp_zona_command(
            interaction: discord.Interaction,
            zone_name: app_commands.Choice[str],
            submission_type: app_commands.Choice[str],
            profile_screenshot: discord.Attachment,
            killpoints_screenshot: discord.Attachment,
        ) -> None:
            await self._handle_submit_zone_kp(
                interaction,
                zone_name.value,
                submission_type.value,
                profile_screenshot,
                killpoints_screenshot,
            )

        @self.tree.command(
            name="kp_zone_upload",
            description="(Admin) Bulk-submit zone KP data from an Excel file",
        )
        @app_commands.describe(
            zone_name="The zone the data belongs to",
            submission_type="Before or after the zone battle",
            excel_file="The .xlsx file with one governor per row",
        )
        @app_commands.choices(
            zone_name=[app_commands.Choice(name=z, value=z) for z in ZONES],
            submission_type=[app_commands.Choice(name=t, value=t) for t in SUBMISSION_TYPES],
        )
        async def kp_zone_upload_command(
            interaction: discord.Interaction,
            zone_name: app_commands.Choice[str],
            submission_type: app_commands.Choice[str],
            excel_file: discord.Attachment,
        ) -> None:
            await self._handle_zone_kp_upload(
                interaction, zone_name.value, submission_type.value, excel_file
            )

        @self.tree.command(name="submit_prekvk", description="Submit your Pre-KvK rank and score")
        @app_commands.describe(
            governor_id="Your Governor ID (7-10 digits)",
            proof_screenshot="Screenshot of your Pre-KvK ranking",
            input_score="Your Pre-KvK score",
        )
        async def submit_prekvk_command(
            interaction: discord.Interaction,
            governor_id: app_commands.Range[str, 7, 10],
            proof_screenshot: discord.Attachment,
            input_score: app_commands.Range[int, 1],
        ) -> None:
            await self._handle_submit_prekvk(
                interaction, governor_id, proof_screenshot, input_score
            )

        @self.tree.command(
            name="submit-death-troops",
            description="Submit your dead troops screenshots",
        )
        @app_commands.describe(
            profile_screenshot="Screenshot of your governor profile",
            troops_screenshot="Screenshot of your dead troops detail",
        )
        async def submit_death_troops_command(
            interaction: discord.Interaction,
            profile_screenshot: discord.Attachment,
            troops_screenshot: discord.Attachment,
        ) -> None:
            await self._handle_submit_death_troops(
                interaction, profile_screenshot, troops_screenshot
            )

        @self.tree.command(name="mystats", description="Show your KvK stats and target progress")
        async def mystats_command(interaction: discord.Interaction) -> None:
            await self._handle_my_stats(interaction)

        @self.tree.command(name="leaderboard", description="Show the KvK leaderboard")
        @app_commands.describe(
            type="Ranking to show (defaults to KvK Score)",
            limit="How many entries to show in the embed (default 10, max 25)",
        )
        @app_commands.choices(
            type=[
                app_commands.Choice(name="KvK Score (Final Score)", value="Score"),
                app_commands.Choice(name="Pure DKP (Zone KP)", value="DKP"),
                app_commands.Choice(name="Pre-KvK (Converted KP)", value="PreKvK"),
                app_commands.Choice(name="Power Reduce", value="PowerReduce"),
                app_commands.Choice(name="Death T4 (T4 Troops Lost)", value="DeathT4"),
                app_commands.Choice(name="Death T5 (T5 Troops Lost)", value="DeathT5"),
            ]
        )
        async def leaderboard_command(
            interaction: discord.Interaction,
            type: app_commands.Choice[str] | None = None,  # noqa: A002
            limit: app_commands.Range[int, 1, 25] | None = None,
        ) -> None:
            await self._handle_leaderboard(
                interaction, type.value if type else "Score", limit
            )

    async def setup_hook(self) -> None:
        """Called when the bot is ready to start. Syncs slash commands."""
        if self.settings.discord_guild_id:
            guild = discord.Object(id=int(self.settings.discord_guild_id))
            self.tree.copy_global_to(guild=guild)
            await self.tree.sync(guild=guild)
            logger.info("discord_commands_synced guild_id=%s", self.settings.discord_guild_id)
        else:
            await self.tree.sync()
            logger.info("discord_commands_synced globally")

    async def on_ready(self) -> None:
        user = self.user
        logger.info("discord_bot_ready user=%s", user.name if user else "unknown")

    async def on_message(self, message: discord.Message) -> None:
        """Route a reply to a registration prompt to that prompt's view."""
        if message.author.bot:
            return
        ref = message.reference
        if ref is None or ref.message_id is None:
            return
        view = self.registration_views.get(ref.message_id)
        if view is None:
            return
        await view.accept_screenshot(message)

    # -- shared checks -----------------------------------------------------

    async def _precheck(self, interaction: discord.Interaction, command: str) -> bool:
        """Channel restriction and backend configuration; replies when refusing."""
        rejection = channel_rejection(self.settings, command, interaction.channel_id)
        if rejection is None and not self.backend.configured:
            rejection = BACKEND_NOT_CONFIGURED_TEXT
        if rejection is None:
            return True
        logger.info(
            "command_rejected command=%s user=%s channel=%s",
            command,
            interaction.user.id,
            interaction.channel_id,
        )
        try:
            await interaction.response.send_message(rejection, ephemeral=True)
        except discord.NotFound:
            logger.warning("interaction_expired stage=precheck command=%s", command)
        return False

    async def _reject_input(self, interaction: discord.Interaction, text: str) -> None:
        try:
            await interaction.response.send_message(text, ephemeral=True)
        except discord.NotFound:
            logger.warning("interaction_expired stage=validation interaction_id=%s", interaction.id)

    @staticmethod
    def _failure_text(result: BackendResult) -> str:
        return f"❌ Error from backend: {result.message or 'Unknown error.'}"

    # -- /register ---------------------------------------------------------

    async def _handle_register(self, interaction: discord.Interaction) -> None:
        """Handle /register: post the interactive registration prompt."""
        if not await self._precheck(interaction, "register"):
            return
        try:
            await self._open_registration(interaction)
        except Exception as exc:  # Last-resort handler; the user still gets a reply
            if interaction.response.is_done():
                await reply_error(interaction, "register", exc)
            else:
                logger.error("command_failed command=register error=%s", exc, exc_info=exc)
                await self._reject_input(interaction, user_message_for(exc))

    async def _open_registration(self, interaction: discord.Interaction) -> None:
        """Post the registration prompt and open a session keyed by its message id."""
        channel_id = interaction.channel_id
        if self.sessions.is_channel_busy(channel_id):
            await self._reject_input(
                interaction,
                "⏳ Another registration is in progress in this channel. "
                "Please wait until it finishes.",
            )
            return

        view = RegistrationView(
            store=self.sessions,
            backend=self.backend,
            owner_id=interaction.user.id,
            on_close=self._forget_registration,
        )
        embed = build_registration_prompt_embed(
            RegistrationStep.SELECT_ACCOUNT_TYPE,
            screenshot_timeout=self.settings.screenshot_timeout_seconds,
        )
        try:
            await interaction.response.send_message(embed=embed, view=view)
            message = await interaction.original_response()
        except discord.NotFound:
            logger.warning("interaction_expired stage=register_prompt")
            view.stop()
            return

        try:
            view.bind(message, channel_id)
        except SessionRejected as exc:
            logger.info("registration_start_rejected reason=%s", exc.reason)
            view.stop()
            await message.edit(
                embed=build_registration_closed_embed(
                    RegistrationStep.ERROR,
                    "Another registration started in this channel first. Please try again.",
                ),
                view=None,
            )
            return
        self.registration_views[message.id] = view

    def _forget_registration(self, key: int) -> None:
        self.registration_views.pop(key, None)

    # -- admin commands ----------------------------------------------------

    async def _handle_register_drive(
        self,
        interaction: discord.Interaction,
        folder_id: str,
        status: str,
    ) -> None:
        """Handle /register-drive: bulk registration from a Drive folder."""
        if not await self._precheck(interaction, "register-drive"):
            return
        if not await defer(interaction, ephemeral=True):
            return
        try:
            result = await self.backend.send(
                BackendCommand.REGISTER_FROM_DRIVE,
                {
                    "discordUserId": str(interaction.user.id),
                    "discordUsername": interaction.user.name,
                    "folderId": folder_id,
                    "statusMain": status,
                },
            )
            embed = build_drive_report_embed(result, folder_id=folder_id, status_main=status)
        except Exception as exc:  # Last-resort handler; the user still gets a reply
            await reply_error(interaction, "register-drive", exc)
            return
        await send_followup(interaction, embed=embed, ephemeral=True)

    async def _handle_fix_names(self, interaction: discord.Interaction) -> None:
        """Handle /fix-name: nickname synchronisation."""
        if not await self._precheck(interaction, "fix-name"):
            return
        if not await defer(interaction, ephemeral=True):
            return
        try:
            result = await self.backend.send(BackendCommand.FIX_REGISTRATION_NAMES, {})
            embed = build_fix_names_embed(result)
        except Exception as exc:  # Last-resort handler; the user still gets a reply
            await reply_error(interaction, "fix-name", exc)
            return
        await send_followup(interaction, embed=embed, ephemeral=True)

    async def _handle_get_registration(self, interaction: discord.Interaction) -> None:
        """Handle /get-registration: export the registration sheet as .xlsx."""
        if not await self._precheck(interaction, "get-registration"):
            return
        if not await defer(interaction, ephemeral=True):
            return
        try:
            result = await self.backend.send(BackendCommand.GET_REGISTRATION_DATA, {})
            rows = result.detail_map.get("registrationData")
            if not result.ok or rows is None:
                await send_followup(
                    interaction,
                    content=self._failure_text(result),
                    ephemeral=True,
                )
                return
            workbook = build_registration_workbook(rows)
        except Exception as exc:  # Last-resort handler; the user still gets a reply
            await reply_error(interaction, "get-registration", exc)
            return

        if workbook is None:
            await send_followup(
                interaction,
                content="Registration data is empty. No file generated.",
                ephemeral=True,
            )
            return
        logger.info("registration_export_sent rows=%d", len(rows) - 1)
        await send_followup(
            interaction,
            content=f"✅ Registration data exported ({len(rows) - 1} rows).",
            file=discord.File(io.BytesIO(workbook), filename=REGISTRATION_FILENAME),
            ephemeral=True,
        )

    async def _handle_zone_kp_upload(
        self,
        interaction: discord.Interaction,
        zone_name: str,
        submission_type: str,
        excel_file: discord.Attachment,
    ) -> None:
        """Handle /kp_zone_upload: one spreadsheet, many governors."""
        if not await self._precheck(interaction, "kp_zone_upload"):
            return
        if not is_spreadsheet(excel_file.filename, excel_file.content_type):
            await self._reject_input(interaction, "❌ Please upload a valid Excel file (.xlsx).")
            return
        if not await defer(interaction):
            return
        try:
            excel_b64 = await encode_remote_file(excel_file.url)
            result = await self.backend.send(
                BackendCommand.SUBMIT_ZONE_KP_BULK,
                {
                    "discordUserId": str(interaction.user.id),
                    "zoneName": zone_name,
                    "submissionType": submission_type,
                    "excelBase64": excel_b64,
                },
            )
            embed = build_bulk_zone_kp_embed(
                result,
                zone_name=zone_name,
                submission_type=submission_type,
                requested_by=interaction.user.display_name,
            )
        except Exception as exc:  # Last-resort handler; the user still gets a reply
            await reply_error(interaction, "kp_zone_upload", exc)
            return
        await send_followup(interaction, embed=embed)

    # -- submissions -------------------------------------------------------

    async def _handle_submit_zone_kp(
        self,
        interaction: discord.Interaction,
        zone_name: str,
        submission_type: str,
        profile_screenshot: discord.Attachment,
        killpoints_screenshot: discord.Attachment,
    ) -> None:
        """Handle /submit_kp_zona: profile + kill points screenshots for one zone."""
        if not await self._precheck(interaction, "submit_kp_zona"):
            return
        if not (
            is_image(profile_screenshot.content_type)
            and is_image(killpoints_screenshot.content_type)
        ):
            await self._reject_input(interaction, "❌ Both screenshots must be image files.")
            return
        if not await defer(interaction):
            return
        try:
            profile_b64, kp_b64 = await encode_many(
                [profile_screenshot.url, killpoints_screenshot.url]
            )
            result = await self.backend.send(
                BackendCommand.SUBMIT_ZONE_KP,
                {
                    "discordUserId": str(interaction.user.id),
                    "zoneName": zone_name,
                    "submissionType": submission_type,
                    "profileImageBase64": profile_b64,
                    "kpImageBase64": kp_b64,
                },
            )
            if not result.ok:
                await send_followup(interaction, content=self._failure_text(result))
                return
            embed = build_zone_kp_embed(
                result,
                zone_name=zone_name,
                submission_type=submission_type,
                requested_by=interaction.user.display_name,
            )
        except Exception as exc:  # Last-resort handler; the user still gets a reply
            await reply_error(interaction, "submit_kp_zona", exc)
            return
        await send_followup(interaction, embed=embed)

    async def _handle_submit_prekvk(
        self,
        interaction: discord.Interaction,
        governor_id: str,
        proof_screenshot: discord.Attachment,
        input_score: int,
    ) -> None:
        """Handle /submit_prekvk: ranking screenshot plus the typed score."""
        if not await self._precheck(interaction, "submit_prekvk"):
            return
        governor_id = governor_id.strip()
        if not GOVERNOR_ID_PATTERN.match(governor_id):
            await self._reject_input(
                interaction, "❌ Invalid Governor ID. It must be 7 to 10 digits."
            )
            return
        if input_score < 1:
            await self._reject_input(interaction, "❌ Input score must be at least 1.")
            return
        if not is_image(proof_screenshot.content_type):
            await self._reject_input(interaction, "❌ The proof screenshot must be an image.")
            return
        if not await defer(interaction):
            return
        try:
            proof_b64 = await encode_remote_file(proof_screenshot.url)
            result = await self.backend.send(
                BackendCommand.SUBMIT_PREKVK_RANK,
                {
                    "discordUserId": str(interaction.user.id),
                    "governorId": governor_id,
                    "proofImageBase64": proof_b64,
                    "inputScore": input_score,
                },
            )
            if not result.ok:
                await send_followup(interaction, content=self._failure_text(result))
                return
            embed = build_prekvk_embed(
                result,
                governor_id=governor_id,
                submitted_by=interaction.user.display_name,
            )
        except Exception as exc:  # Last-resort handler; the user still gets a reply
            await reply_error(interaction, "submit_prekvk", exc)
            return
        await send_followup(interaction, embed=embed)

    async def _handle_submit_death_troops(
        self,
        interaction: discord.Interaction,
        profile_screenshot: discord.Attachment,
        troops_screenshot: discord.Attachment,
    ) -> None:
        """Handle /submit-death-troops: profile + dead troops screenshots."""
        if not await self._precheck(interaction, "submit-death-troops"):
            return
        if not (
            is_image(profile_screenshot.content_type) and is_image(troops_screenshot.content_type)
        ):
            await self._reject_input(interaction, "❌ Both screenshots must be image files.")
            return
        if not await defer(interaction):
            return
        try:
            profile_b64, troops_b64 = await encode_many(
                [profile_screenshot.url, troops_screenshot.url]
            )
            result = await self.backend.send(
                BackendCommand.SUBMIT_DEATH_TROOPS,
                {
                    "discordUserId": str(interaction.user.id),
                    "profileImageBase64": profile_b64,
                    "troopsImageBase64": troops_b64,
                },
            )
            if not result.ok:
                await send_followup(interaction, content=self._failure_text(result))
                return
            embed = build_death_troops_embed(result)
        except Exception as exc:  # Last-resort handler; the user still gets a reply
            await reply_error(interaction, "submit-death-troops", exc)
            return
        await send_followup(interaction, embed=embed)

    # -- stats -------------------------------------------------------------

    async def _handle_my_stats(self, interaction: discord.Interaction) -> None:
        """Handle /mystats: the caller's KvK progress."""
        if not await self._precheck(interaction, "mystats"):
            return
        if not await defer(interaction, ephemeral=True):
            return
        try:
            result = await self.backend.send(
                BackendCommand.GET_MY_STATS,
                {"discordUserId": str(interaction.user.id)},
            )
            if not result.ok or not result.detail_map:
                await send_followup(
                    interaction, content=self._failure_text(result), ephemeral=True
                )
                return
            embed = build_my_stats_embed(result)
        except Exception as exc:  # Last-resort handler; the user still gets a reply
            await reply_error(interaction, "mystats", exc)
            return
        await send_followup(interaction, embed=embed, ephemeral=True)

    async def _handle_leaderboard(
        self,
        interaction: discord.Interaction,
        ranking_type: str,
        limit: int | None,
    ) -> None:
        """Handle /leaderboard: top-N embed plus the full ranking as .xlsx."""
        if not await self._precheck(interaction, "leaderboard"):
            return
        if not await defer(interaction):
            return
        shown = clamp_leaderboard_limit(limit)
        try:
            result = await self.backend.send(
                BackendCommand.GET_LEADERBOARD, {"type": ranking_type}
            )
            reply = self._leaderboard_reply(result.unwrap_nested(), ranking_type, shown)
        except Exception as exc:  # Last-resort handler; the user still gets a reply
            await reply_error(interaction, "leaderboard", exc, ephemeral=False)
            return
        await send_followup(interaction, **reply)

    @staticmethod
    def _leaderboard_reply(
        result: BackendResult, ranking_type: str, shown: int
    ) -> dict[str, Any]:
        """Followup kwargs for a leaderboard answer: an embed, plus the .xlsx when ranked."""
        if not result.ok:
            embed = build_message_embed(
                "Leaderboard Error",
                f"❌ {result.message or 'Failed to retrieve leaderboard data.'}",
            )
            return {"embed": embed}
        if not isinstance(result.details, list):
            logger.error(
                "leaderboard_unexpected_details type=%s", type(result.details).__name__
            )
            embed = build_message_embed(
                "Leaderboard Error",
                "❌ The backend returned leaderboard data in an unexpected format.",
            )
            return {"embed": embed}

        entries: list[dict[str, Any]] = [e for e in result.details if isinstance(e, dict)]
        reply: dict[str, Any] = {
            "embed": build_leaderboard_embed(entries, ranking_type=ranking_type, limit=shown)
        }
        if entries:
            _, label, _ = leaderboard_meta(ranking_type)
            stamp = datetime.now(UTC).strftime("%Y-%m-%dT%H-%M-%S")
            reply["file"] = discord.File(
                io.BytesIO(build_leaderboard_workbook(entries, ranking_type, label)),
                filename=f"leaderboard_{ranking_type}_{stamp}.xlsx",
            )
        return reply


def is_discord_enabled(settings: Settings) -> bool:
    """Check whether the Discord bot can be started (a token is set)."""
    return bool(settings.discord_bot_token)


async def start_discord_bot(settings: Settings) -> KvkStatsBot:
    """Create and start the Discord bot in the current event loop.

    Returns the bot instance so the caller can stop it during shutdown.
    The bot runs as a background task; this function returns immediately
    after starting it.
    """
    bot = KvkStatsBot(settings=settings)

    async def _run_bot() -> None:
        try:
            await bot.start(settings.discord_bot_token)
        except asyncio.CancelledError:
            logger.info("discord_bot_cancelled")
        except Exception:  # Last-resort handler: bot.start can raise connection and auth errors
            logger.exception("discord_bot_error")
        finally:
            if not bot.is_closed():
                await bot.close()

    asyncio.create_task(_run_bot(), name="discord-bot")
    logger.info("discord_bot_started")
    return bot
