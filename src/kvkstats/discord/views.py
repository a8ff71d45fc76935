"""Discord UI for the interactive /register flow.

One ``RegistrationView`` is attached to each registration prompt message. It
swaps its components as the session advances and forwards every user action
to the ``SessionStore``, which owns the rules. The screenshot arrives as a
reply to the prompt message and is routed here by the bot's ``on_message``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

import discord
import httpx

from kvkstats.core.backend import BackendError
from kvkstats.core.media import FetchFailure, encode_remote_file
from kvkstats.core.registration import (
    ACCOUNT_FARM,
    ACCOUNT_MAIN,
    MAIN_STATUSES,
    IncompleteRegistration,
    RegistrationEvent,
    RegistrationSession,
    RegistrationStep,
    RejectReason,
    Screenshot,
    SessionRejected,
    build_payload,
)
from kvkstats.discord.embeds import (
    build_registration_closed_embed,
    build_registration_confirm_embed,
    build_registration_prompt_embed,
    build_registration_result_embed,
)
from kvkstats.discord.helpers import user_message_for
from kvkstats.models.backend import BackendCommand

if TYPE_CHECKING:
    from kvkstats.core.backend import BackendClient
    from kvkstats.core.registration import SessionStore

logger = logging.getLogger(__name__)

NOT_OWNER_TEXT = "Only the user who started this registration can use these controls."

REJECT_TEXT: dict[RejectReason, str] = {
    RejectReason.UNKNOWN_SESSION: (
        "This registration session is no longer active. Run `/register` again."
    ),
    RejectReason.INVALID_STEP: (
        "That action does not match the current registration step. "
        "Registration ended; run `/register` again."
    ),
    RejectReason.INVALID_FILE: (
        "❌ Only image files are accepted as the profile screenshot. "
        "Registration ended; run `/register` again."
    ),
}


class RegistrationView(discord.ui.View):
    """Select menus and buttons driving one registration session."""

    def __init__(
        self,
        *,
        store: SessionStore,
        backend: BackendClient,
        owner_id: int,
        on_close: Callable[[int], Any] | None = None,
    ) -> None:
        super().__init__(timeout=store.flow_timeout)
        self.store = store
        self.backend = backend
        self.owner_id = owner_id
        self.key: int | None = None
        self.message: discord.Message | None = None
        self._on_close = on_close
        self._watchdog: asyncio.Task[None] | None = None
        self._render(RegistrationStep.SELECT_ACCOUNT_TYPE)

    def bind(self, message: discord.Message, channel_id: int | None) -> RegistrationSession:
        """Open the session for the prompt message this view is attached to."""
        session = self.store.start(message.id, self.owner_id, channel_id)
        self.key = message.id
        self.message = message
        return session

    # -- component layout --------------------------------------------------

    def _render(self, step: RegistrationStep) -> None:
        self.clear_items()
        if step is RegistrationStep.SELECT_ACCOUNT_TYPE:
            select = discord.ui.Select(
                placeholder="Select account type",
                options=[
                    discord.SelectOption(label="Main Account", value=ACCOUNT_MAIN, emoji="👑"),
                    discord.SelectOption(label="Farm Account", value=ACCOUNT_FARM, emoji="🌾"),
                ],
            )
            select.callback = self._select_callback(select, self.choose_account_type)
            self.add_item(select)
        elif step is RegistrationStep.SELECT_STATUS:
            select = discord.ui.Select(
                placeholder="Select main account status",
                options=[discord.SelectOption(label=s, value=s) for s in MAIN_STATUSES],
            )
            select.callback = self._select_callback(select, self.choose_status)
            self.add_item(select)
        elif step is RegistrationStep.SELECT_FILLER:
            self._add_button("Yes, Filler", discord.ButtonStyle.green, self._filler_yes)
            self._add_button("No", discord.ButtonStyle.red, self._filler_no)
        elif step is RegistrationStep.SHOW_LINKED_ID_FORM:
            self._add_button("Enter Main ID", discord.ButtonStyle.blurple, self.open_linked_id_form)
        elif step is RegistrationStep.CONFIRM:
            self._add_button("Submit", discord.ButtonStyle.green, self.submit, emoji="✅")

        if step is not RegistrationStep.SELECT_ACCOUNT_TYPE:
            self._add_button("Start Over", discord.ButtonStyle.grey, self.restart, emoji="🔄")
        self._add_button("Cancel", discord.ButtonStyle.red, self.cancel, emoji="❌")

    def _add_button(
        self,
        label: str,
        style: discord.ButtonStyle,
        callback: Callable[[discord.Interaction], Awaitable[None]],
        *,
        emoji: str | None = None,
    ) -> None:
        button: discord.ui.Button[RegistrationView] = discord.ui.Button(
            label=label, style=style, emoji=emoji
        )
        button.callback = callback
        self.add_item(button)

    @staticmethod
    def _select_callback(
        select: discord.ui.Select[RegistrationView],
        handler: Callable[[discord.Interaction, str], Awaitable[None]],
    ) -> Callable[[discord.Interaction], Awaitable[None]]:
        async def callback(interaction: discord.Interaction) -> None:
            await handler(interaction, select.values[0])

        return callback

    # -- user actions --------------------------------------------------------

    async def choose_account_type(self, interaction: discord.Interaction, value: str) -> None:
        event = (
            RegistrationEvent.CHOOSE_MAIN if value == ACCOUNT_MAIN else RegistrationEvent.CHOOSE_FARM
        )
        await self._advance(interaction, event)

    async def choose_status(self, interaction: discord.Interaction, value: str) -> None:
        await self._advance(interaction, RegistrationEvent.CHOOSE_STATUS, value)

    async def choose_filler(self, interaction: discord.Interaction, is_filler: bool) -> None:
        await self._advance(interaction, RegistrationEvent.CHOOSE_FILLER, is_filler)

    async def _filler_yes(self, interaction: discord.Interaction) -> None:
        await self.choose_filler(interaction, True)

    async def _filler_no(self, interaction: discord.Interaction) -> None:
        await self.choose_filler(interaction, False)

    async def open_linked_id_form(self, interaction: discord.Interaction) -> None:
        if not await self._check_user(interaction):
            return
        try:
            await interaction.response.send_modal(LinkedAccountModal(parent_view=self))
        except discord.NotFound:
            logger.warning("interaction_expired stage=registration_modal key=%s", self.key)

    async def submit_linked_id(self, interaction: discord.Interaction, value: str) -> None:
        await self._advance(interaction, RegistrationEvent.SUBMIT_LINKED_ID, value)

    async def restart(self, interaction: discord.Interaction) -> None:
        await self._advance(interaction, RegistrationEvent.RESTART)

    async def cancel(self, interaction: discord.Interaction) -> None:
        session = await self._dispatch(interaction, RegistrationEvent.CANCEL)
        if session is None:
            return
        self._close()
        await self._respond(
            interaction,
            embed=build_registration_closed_embed(RegistrationStep.CANCELLED),
            view=None,
        )

    async def submit(self, interaction: discord.Interaction) -> None:
        """Encode the screenshot, send ``register`` and show the backend's answer."""
        session = await self._dispatch(interaction, RegistrationEvent.SUBMIT)
        if session is None:
            return
        self._close()
        await self._respond(
            interaction,
            content="⏳ Submitting your registration...",
            embed=None,
            view=None,
        )

        try:
            if session.screenshot is None:
                raise IncompleteRegistration(["screenshot"])
            session.image_base64 = await encode_remote_file(session.screenshot.url)
            payload = build_payload(session, username=interaction.user.name)
            result = await self.backend.send(BackendCommand.REGISTER, payload)
        except (BackendError, FetchFailure, IncompleteRegistration, httpx.HTTPError) as exc:
            logger.error("registration_submit_failed key=%s error=%s", self.key, exc, exc_info=exc)
            embed = build_registration_closed_embed(RegistrationStep.ERROR, user_message_for(exc))
        else:
            logger.info("registration_submitted key=%s status=%s", self.key, result.status)
            embed = build_registration_result_embed(result)

        try:
            await interaction.edit_original_response(content=None, embed=embed, view=None)
        except discord.NotFound:
            logger.warning("interaction_expired stage=registration_result key=%s", self.key)

    async def accept_screenshot(self, message: discord.Message) -> None:
        """Take the first attachment of a reply to the prompt message."""
        if self.key is None or not message.attachments:
            return
        attachment = message.attachments[0]
        try:
            session = self.store.offer_screenshot(
                self.key,
                message.author.id,
                Screenshot(url=attachment.url, content_type=attachment.content_type),
            )
        except SessionRejected as exc:
            self._close()
            await self._edit_message(
                embed=build_registration_closed_embed(
                    RegistrationStep.ERROR, REJECT_TEXT.get(exc.reason)
                ),
                view=None,
            )
            return
        if session is None:
            return
        self._cancel_watchdog()
        # A reply is not a component interaction; restart the view clock by hand.
        self.timeout = self.store.flow_timeout
        self._render(session.step)
        await self._edit_message(embed=build_registration_confirm_embed(session), view=self)

    # -- plumbing ----------------------------------------------------------

    async def _check_user(self, interaction: discord.Interaction) -> bool:
        if interaction.user.id != self.owner_id:
            await self._notify(interaction, NOT_OWNER_TEXT)
            return False
        return True

    async def _dispatch(
        self,
        interaction: discord.Interaction,
        event: RegistrationEvent,
        value: Any = None,
    ) -> RegistrationSession | None:
        """Apply one event; on rejection answer the user and return None."""
        if self.key is None:
            await self._notify(interaction, REJECT_TEXT[RejectReason.UNKNOWN_SESSION])
            return None
        try:
            return self.store.apply(self.key, interaction.user.id, event, value)
        except SessionRejected as exc:
            await self._reject(interaction, exc)
        except IncompleteRegistration as exc:
            await self._notify(interaction, user_message_for(exc))
        return None

    async def _advance(
        self,
        interaction: discord.Interaction,
        event: RegistrationEvent,
        value: Any = None,
    ) -> None:
        session = await self._dispatch(interaction, event, value)
        if session is None:
            return
        self._render(session.step)
        if session.step is RegistrationStep.CONFIRM:
            embed = build_registration_confirm_embed(session)
        else:
            embed = build_registration_prompt_embed(
                session.step,
                account_type=session.account_type,
                screenshot_timeout=int(self.store.screenshot_timeout),
            )
        await self._respond(interaction, embed=embed, view=self)
        if session.step is RegistrationStep.AWAIT_SCREENSHOT:
            self._start_watchdog()
        else:
            self._cancel_watchdog()

    async def _reject(self, interaction: discord.Interaction, exc: SessionRejected) -> None:
        if exc.reason is RejectReason.NOT_OWNER:
            await self._notify(interaction, NOT_OWNER_TEXT)
            return
        step = exc.session.step if exc.session is not None else RegistrationStep.ERROR
        self._close()
        await self._respond(
            interaction,
            embed=build_registration_closed_embed(step, REJECT_TEXT.get(exc.reason)),
            view=None,
        )

    def _start_watchdog(self) -> None:
        self._cancel_watchdog()
        self._watchdog = asyncio.create_task(
            self._watch_screenshot(), name=f"registration-screenshot-{self.key}"
        )

    def _cancel_watchdog(self) -> None:
        if self._watchdog is not None and not self._watchdog.done():
            self._watchdog.cancel()
        self._watchdog = None

    async def _watch_screenshot(self) -> None:
        await asyncio.sleep(self.store.screenshot_timeout)
        if self.key is None or self.store.expire_if_due(self.key) is None:
            return
        self._watchdog = None
        self._close()
        await self._edit_message(
            embed=build_registration_closed_embed(
                RegistrationStep.TIMED_OUT,
                f"No screenshot received within {int(self.store.screenshot_timeout)} seconds. "
                "Run `/register` again.",
            ),
            view=None,
        )

    async def _respond(self, interaction: discord.Interaction, **kwargs: Any) -> None:
        """Answer a component interaction by editing the prompt message."""
        try:
            await interaction.response.edit_message(**kwargs)
        except discord.NotFound:
            logger.warning("interaction_expired stage=registration_edit key=%s", self.key)

    async def _notify(self, interaction: discord.Interaction, text: str) -> None:
        try:
            await interaction.response.send_message(text, ephemeral=True)
        except discord.NotFound:
            logger.warning("interaction_expired stage=registration_notice key=%s", self.key)

    async def _edit_message(self, **kwargs: Any) -> None:
        if self.message is None:
            return
        try:
            await self.message.edit(**kwargs)
        except discord.HTTPException:
            logger.warning("registration_message_edit_failed key=%s", self.key)

    def _close(self) -> None:
        self._cancel_watchdog()
        self.stop()
        if self._on_close is not None and self.key is not None:
            self._on_close(self.key)

    async def on_timeout(self) -> None:
        if self.key is None:
            return
        session = self.store.expire(self.key)
        self._close()
        if session is not None:
            await self._edit_message(
                embed=build_registration_closed_embed(RegistrationStep.TIMED_OUT),
                view=None,
            )


class LinkedAccountModal(discord.ui.Modal, title="Link Farm to Main Account"):
    """Pop-up asking for the Governor ID of the main account."""

    linked_id = discord.ui.TextInput(
        label="Main account Governor ID",
        placeholder="e.g. 12345678",
        min_length=7,
        max_length=10,
    )

    def __init__(self, *, parent_view: RegistrationView) -> None:
        super().__init__()
        self.parent_view = parent_view

    async def on_submit(self, interaction: discord.Interaction) -> None:
        await self.parent_view.submit_linked_id(interaction, self.linked_id.value)
