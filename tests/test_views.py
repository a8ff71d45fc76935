"""Tests for the registration view: component callbacks, reply capture, timeouts."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import discord
import pytest

from kvkstats.core.backend import BackendClient, HttpFailure
from kvkstats.core.registration import RegistrationStep, SessionStore
from kvkstats.discord.views import NOT_OWNER_TEXT, LinkedAccountModal, RegistrationView
from kvkstats.models.backend import BackendCommand, BackendResult

OWNER = 1001
OTHER = 2002
PROMPT_ID = 777
CHANNEL = 55


def make_interaction(user_id: int = OWNER) -> AsyncMock:
    interaction = AsyncMock(spec=discord.Interaction)
    interaction.id = 1
    interaction.response = AsyncMock()
    interaction.followup = AsyncMock()
    interaction.user = MagicMock(spec=discord.Member)
    interaction.user.id = user_id
    interaction.user.name = "governor"
    interaction.channel_id = CHANNEL
    return interaction


def make_reply(content_type: str | None = "image/png", author_id: int = OWNER) -> MagicMock:
    attachment = MagicMock(spec=discord.Attachment)
    attachment.url = "https://cdn.test/profile.png"
    attachment.content_type = content_type
    message = MagicMock(spec=discord.Message)
    message.author = MagicMock()
    message.author.id = author_id
    message.attachments = [attachment]
    return message


def not_found() -> discord.NotFound:
    return discord.NotFound(MagicMock(status=404, reason="Not Found"), "Unknown interaction")


def edited_embed(interaction: AsyncMock) -> discord.Embed:
    return interaction.response.edit_message.call_args.kwargs["embed"]


@pytest.fixture
def store(clock) -> SessionStore:
    return SessionStore(flow_timeout=300, screenshot_timeout=120, clock=clock)


@pytest.fixture
def backend() -> AsyncMock:
    backend = AsyncMock(spec=BackendClient)
    backend.configured = True
    backend.send.return_value = BackendResult(
        status="success",
        message="Registered.",
        details={"governorId": "1234567", "nickname": "Alpha", "power": 45000000},
    )
    return backend


@pytest.fixture
async def bound(store: SessionStore, backend: AsyncMock):
    """A view bound to a prompt message, plus the prompt mock and close hook."""
    on_close = MagicMock()
    view = RegistrationView(store=store, backend=backend, owner_id=OWNER, on_close=on_close)
    prompt = MagicMock(spec=discord.Message)
    prompt.id = PROMPT_ID
    prompt.edit = AsyncMock()
    view.bind(prompt, CHANNEL)
    yield view, prompt, on_close
    view._cancel_watchdog()
    view.stop()


async def reach_screenshot(view: RegistrationView) -> None:
    await view.choose_account_type(make_interaction(), "main")
    await view.choose_status(make_interaction(), "Migrants")


class TestComponents:
    async def test_first_step_has_no_start_over(self, bound) -> None:
        view, _, _ = bound
        labels = [getattr(item, "label", None) for item in view.children]
        assert "Start Over" not in labels
        assert "Cancel" in labels
        assert isinstance(view.children[0], discord.ui.Select)

    async def test_filler_step_buttons(self, bound) -> None:
        view, _, _ = bound
        await view.choose_account_type(make_interaction(), "farm")
        labels = [item.label for item in view.children]
        assert labels == ["Yes, Filler", "No", "Start Over", "Cancel"]


class TestMainFlow:
    async def test_status_select_then_screenshot_prompt(
        self, bound, store: SessionStore
    ) -> None:
        view, _, _ = bound
        interaction = make_interaction()

        await view.choose_account_type(interaction, "main")
        assert store.get(PROMPT_ID).step is RegistrationStep.SELECT_STATUS
        assert edited_embed(interaction).fields[0].value == "Main"

        interaction = make_interaction()
        await view.choose_status(interaction, "Old Player")
        assert store.get(PROMPT_ID).step is RegistrationStep.AWAIT_SCREENSHOT
        assert "Reply to this message" in edited_embed(interaction).description
        assert view._watchdog is not None

    async def test_screenshot_reply_moves_to_confirm(
        self, bound, store: SessionStore
    ) -> None:
        view, prompt, _ = bound
        await reach_screenshot(view)

        await view.accept_screenshot(make_reply())

        assert store.get(PROMPT_ID).step is RegistrationStep.CONFIRM
        assert view._watchdog is None
        kwargs = prompt.edit.call_args.kwargs
        assert kwargs["embed"].title == "🔍 Confirm Registration Details"
        assert kwargs["view"] is view
        assert "Submit" in [getattr(item, "label", None) for item in view.children]

    async def test_screenshot_reply_restarts_view_timeout(self, bound) -> None:
        view, _, _ = bound
        await reach_screenshot(view)
        view.timeout = 1

        await view.accept_screenshot(make_reply())

        assert view.timeout == 300

    async def test_reply_from_other_user_ignored(self, bound, store: SessionStore) -> None:
        view, prompt, _ = bound
        await reach_screenshot(view)

        await view.accept_screenshot(make_reply(author_id=OTHER))

        assert store.get(PROMPT_ID).step is RegistrationStep.AWAIT_SCREENSHOT
        prompt.edit.assert_not_called()

    async def test_non_image_reply_ends_session(self, bound, store: SessionStore) -> None:
        view, prompt, on_close = bound
        await reach_screenshot(view)

        await view.accept_screenshot(make_reply(content_type="application/pdf"))

        assert PROMPT_ID not in store
        kwargs = prompt.edit.call_args.kwargs
        assert kwargs["view"] is None
        assert "Only image files" in kwargs["embed"].description
        on_close.assert_called_once_with(PROMPT_ID)


class TestFarmFlow:
    async def test_linked_id_form(self, bound, store: SessionStore) -> None:
        view, _, _ = bound
        await view.choose_account_type(make_interaction(), "farm")
        await view.choose_filler(make_interaction(), True)
        assert store.get(PROMPT_ID).step is RegistrationStep.SHOW_LINKED_ID_FORM

        interaction = make_interaction()
        await view.open_linked_id_form(interaction)
        modal = interaction.response.send_modal.call_args.args[0]
        assert isinstance(modal, LinkedAccountModal)
        assert modal.parent_view is view

        await view.submit_linked_id(make_interaction(), "12345678")
        session = store.get(PROMPT_ID)
        assert session.step is RegistrationStep.AWAIT_SCREENSHOT
        assert session.is_filler is True
        assert session.linked_id == "12345678"

    async def test_form_refused_for_other_user(self, bound) -> None:
        view, _, _ = bound
        await view.choose_account_type(make_interaction(), "farm")
        await view.choose_filler(make_interaction(), False)

        interaction = make_interaction(user_id=OTHER)
        await view.open_linked_id_form(interaction)

        interaction.response.send_modal.assert_not_called()
        interaction.response.send_message.assert_called_once_with(NOT_OWNER_TEXT, ephemeral=True)


class TestRejections:
    async def test_foreign_user_gets_ephemeral_notice(
        self, bound, store: SessionStore
    ) -> None:
        view, _, _ = bound
        interaction = make_interaction(user_id=OTHER)

        await view.choose_account_type(interaction, "main")

        interaction.response.send_message.assert_called_once_with(NOT_OWNER_TEXT, ephemeral=True)
        interaction.response.edit_message.assert_not_called()
        assert store.get(PROMPT_ID).step is RegistrationStep.SELECT_ACCOUNT_TYPE

    async def test_out_of_step_action_ends_session(
        self, bound, store: SessionStore
    ) -> None:
        view, _, on_close = bound
        await view.choose_account_type(make_interaction(), "main")

        interaction = make_interaction()
        await view.choose_filler(interaction, True)

        assert PROMPT_ID not in store
        assert edited_embed(interaction).title == "Registration Ended"
        on_close.assert_called_once_with(PROMPT_ID)

    async def test_cancel(self, bound, store: SessionStore) -> None:
        view, _, on_close = bound
        interaction = make_interaction()

        await view.cancel(interaction)

        assert PROMPT_ID not in store
        assert edited_embed(interaction).title == "Registration Cancelled"
        assert interaction.response.edit_message.call_args.kwargs["view"] is None
        on_close.assert_called_once_with(PROMPT_ID)

    async def test_restart_clears_choices(self, bound, store: SessionStore) -> None:
        view, _, _ = bound
        await view.choose_account_type(make_interaction(), "main")

        await view.restart(make_interaction())

        session = store.get(PROMPT_ID)
        assert session.step is RegistrationStep.SELECT_ACCOUNT_TYPE
        assert session.account_type is None


class TestExpiredInteractions:
    async def test_cancel_still_closes(self, bound, store: SessionStore) -> None:
        view, _, on_close = bound
        interaction = make_interaction()
        interaction.response.edit_message.side_effect = not_found()

        await view.cancel(interaction)

        assert PROMPT_ID not in store
        on_close.assert_called_once_with(PROMPT_ID)

    async def test_foreign_user_notice(self, bound, store: SessionStore) -> None:
        view, _, _ = bound
        interaction = make_interaction(user_id=OTHER)
        interaction.response.send_message.side_effect = not_found()

        await view.choose_account_type(interaction, "main")

        assert store.get(PROMPT_ID).step is RegistrationStep.SELECT_ACCOUNT_TYPE

    async def test_step_advance_keeps_session(self, bound, store: SessionStore) -> None:
        view, _, _ = bound
        interaction = make_interaction()
        interaction.response.edit_message.side_effect = not_found()

        await view.choose_account_type(interaction, "main")

        assert store.get(PROMPT_ID).step is RegistrationStep.SELECT_STATUS

    async def test_linked_id_form(self, bound, store: SessionStore) -> None:
        view, _, _ = bound
        await view.choose_account_type(make_interaction(), "farm")
        await view.choose_filler(make_interaction(), True)
        interaction = make_interaction()
        interaction.response.send_modal.side_effect = not_found()

        await view.open_linked_id_form(interaction)

        assert store.get(PROMPT_ID).step is RegistrationStep.SHOW_LINKED_ID_FORM


class TestSubmit:
    async def test_success(self, bound, backend: AsyncMock, store: SessionStore) -> None:
        view, _, on_close = bound
        await reach_screenshot(view)
        await view.accept_screenshot(make_reply())
        interaction = make_interaction()

        with patch(
            "kvkstats.discord.views.encode_remote_file", new_callable=AsyncMock
        ) as mock_encode:
            mock_encode.return_value = "aW1hZ2U="
            await view.submit(interaction)

        mock_encode.assert_awaited_once_with("https://cdn.test/profile.png")
        backend.send.assert_awaited_once_with(
            BackendCommand.REGISTER,
            {
                "discordUserId": str(OWNER),
                "discordUsername": "governor",
                "tipeAkun": "main",
                "statusMain": "Migrants",
                "isFiller": None,
                "idMainTerhubung": None,
                "imageBase64": "aW1hZ2U=",
            },
        )
        assert interaction.response.edit_message.call_args.kwargs["view"] is None
        embed = interaction.edit_original_response.call_args.kwargs["embed"]
        assert embed.title == "✅ Registration Successful"
        assert PROMPT_ID not in store
        on_close.assert_called_once_with(PROMPT_ID)

    async def test_backend_failure(self, bound, backend: AsyncMock) -> None:
        view, _, _ = bound
        await reach_screenshot(view)
        await view.accept_screenshot(make_reply())
        backend.send.side_effect = HttpFailure(500, "Internal error")
        interaction = make_interaction()

        with patch(
            "kvkstats.discord.views.encode_remote_file", new_callable=AsyncMock
        ) as mock_encode:
            mock_encode.return_value = "aW1hZ2U="
            await view.submit(interaction)

        embed = interaction.edit_original_response.call_args.kwargs["embed"]
        assert embed.title == "Registration Ended"
        assert "Status: 500" in embed.description

    async def test_backend_error_status(self, bound, backend: AsyncMock) -> None:
        view, _, _ = bound
        await reach_screenshot(view)
        await view.accept_screenshot(make_reply())
        backend.send.return_value = BackendResult(status="error", message="ID already registered")
        interaction = make_interaction()

        with patch(
            "kvkstats.discord.views.encode_remote_file", new_callable=AsyncMock
        ) as mock_encode:
            mock_encode.return_value = "aW1hZ2U="
            await view.submit(interaction)

        embed = interaction.edit_original_response.call_args.kwargs["embed"]
        assert embed.title == "❌ Registration Failed"
        assert embed.description == "ID already registered"


class TestTimeouts:
    async def test_screenshot_deadline(self, clock, backend: AsyncMock) -> None:
        store = SessionStore(flow_timeout=300, screenshot_timeout=0.01, clock=clock)
        on_close = MagicMock()
        view = RegistrationView(store=store, backend=backend, owner_id=OWNER, on_close=on_close)
        prompt = MagicMock(spec=discord.Message)
        prompt.id = PROMPT_ID
        prompt.edit = AsyncMock()
        view.bind(prompt, CHANNEL)

        await reach_screenshot(view)
        clock.advance(1)
        await asyncio.sleep(0.05)

        assert PROMPT_ID not in store
        embed = prompt.edit.call_args.kwargs["embed"]
        assert embed.title == "Registration Timed Out"
        on_close.assert_called_once_with(PROMPT_ID)

    async def test_view_timeout(self, bound, store: SessionStore) -> None:
        view, prompt, on_close = bound

        await view.on_timeout()

        assert PROMPT_ID not in store
        assert prompt.edit.call_args.kwargs["embed"].title == "Registration Timed Out"
        on_close.assert_called_once_with(PROMPT_ID)
