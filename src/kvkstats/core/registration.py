"""Interactive registration workflow -- steps, transitions, and the session store.

A registration session is attached to the prompt message the bot posts for
``/register`` and is keyed by that message's id. The Discord layer feeds user
actions in as ``RegistrationEvent`` values; this module decides whether the
move is legal and mutates the session. It has no Discord imports.

Flow:
    SELECT_ACCOUNT_TYPE -> SELECT_STATUS (main) ----------------> AWAIT_SCREENSHOT
                        -> SELECT_FILLER (farm) -> SHOW_LINKED_ID_FORM -> AWAIT_SCREENSHOT
    AWAIT_SCREENSHOT -> CONFIRM -> SUBMITTED

CANCELLED, TIMED_OUT and ERROR are reachable from every live step. Terminal
sessions are removed from the store immediately.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from kvkstats.core.media import is_image

logger = logging.getLogger(__name__)

ACCOUNT_MAIN = "main"
ACCOUNT_FARM = "farm"

# Status values offered for main accounts.
MAIN_STATUSES: tuple[str, ...] = ("Old Player", "Migrants")

DEFAULT_FLOW_TIMEOUT_SECONDS = 300
DEFAULT_SCREENSHOT_TIMEOUT_SECONDS = 120


class RegistrationStep(StrEnum):
    SELECT_ACCOUNT_TYPE = "select_account_type"
    SELECT_STATUS = "select_status"
    SELECT_FILLER = "select_filler"
    SHOW_LINKED_ID_FORM = "show_linked_id_form"
    AWAIT_SCREENSHOT = "await_screenshot"
    CONFIRM = "confirm"
    SUBMITTED = "submitted"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"
    ERROR = "error"


class RegistrationEvent(StrEnum):
    CHOOSE_MAIN = "choose_main"
    CHOOSE_FARM = "choose_farm"
    CHOOSE_STATUS = "choose_status"
    CHOOSE_FILLER = "choose_filler"
    SUBMIT_LINKED_ID = "submit_linked_id"
    ATTACH_SCREENSHOT = "attach_screenshot"
    SUBMIT = "submit"
    RESTART = "restart"
    CANCEL = "cancel"
    EXPIRE = "expire"
    FAIL = "fail"


TERMINAL_STEPS: frozenset[RegistrationStep] = frozenset(
    {
        RegistrationStep.SUBMITTED,
        RegistrationStep.CANCELLED,
        RegistrationStep.TIMED_OUT,
        RegistrationStep.ERROR,
    }
)

LIVE_STEPS: frozenset[RegistrationStep] = frozenset(RegistrationStep) - TERMINAL_STEPS

# Steps after the account type has been chosen; "Start Over" is legal from all of them.
_RESTARTABLE = LIVE_STEPS - {RegistrationStep.SELECT_ACCOUNT_TYPE}

# (current step, event) -> next step. Anything missing is an illegal move.
TRANSITIONS: dict[tuple[RegistrationStep, RegistrationEvent], RegistrationStep] = {
    (RegistrationStep.SELECT_ACCOUNT_TYPE, RegistrationEvent.CHOOSE_MAIN): (
        RegistrationStep.SELECT_STATUS
    ),
    (RegistrationStep.SELECT_ACCOUNT_TYPE, RegistrationEvent.CHOOSE_FARM): (
        RegistrationStep.SELECT_FILLER
    ),
    (RegistrationStep.SELECT_STATUS, RegistrationEvent.CHOOSE_STATUS): (
        RegistrationStep.AWAIT_SCREENSHOT
    ),
    (RegistrationStep.SELECT_FILLER, RegistrationEvent.CHOOSE_FILLER): (
        RegistrationStep.SHOW_LINKED_ID_FORM
    ),
    (RegistrationStep.SHOW_LINKED_ID_FORM, RegistrationEvent.SUBMIT_LINKED_ID): (
        RegistrationStep.AWAIT_SCREENSHOT
    ),
    (RegistrationStep.AWAIT_SCREENSHOT, RegistrationEvent.ATTACH_SCREENSHOT): (
        RegistrationStep.CONFIRM
    ),
    (RegistrationStep.CONFIRM, RegistrationEvent.SUBMIT): RegistrationStep.SUBMITTED,
}
for _step in _RESTARTABLE:
    TRANSITIONS[(_step, RegistrationEvent.RESTART)] = RegistrationStep.SELECT_ACCOUNT_TYPE
for _step in LIVE_STEPS:
    TRANSITIONS[(_step, RegistrationEvent.CANCEL)] = RegistrationStep.CANCELLED
    TRANSITIONS[(_step, RegistrationEvent.EXPIRE)] = RegistrationStep.TIMED_OUT
    TRANSITIONS[(_step, RegistrationEvent.FAIL)] = RegistrationStep.ERROR
del _step


def next_step(step: RegistrationStep, event: RegistrationEvent) -> RegistrationStep | None:
    """Return the step ``event`` leads to from ``step``, or None if illegal."""
    return TRANSITIONS.get((step, event))


class RejectReason(StrEnum):
    UNKNOWN_SESSION = "unknown_session"
    EXPIRED = "expired"
    NOT_OWNER = "not_owner"
    INVALID_STEP = "invalid_step"
    INVALID_FILE = "invalid_file"
    CHANNEL_BUSY = "channel_busy"


class SessionRejected(Exception):
    """An event could not be applied to a registration session.

    ``session`` is the affected session when one was found; for
    ``NOT_OWNER`` it is returned untouched, otherwise it has already been
    torn down.
    """

    def __init__(
        self,
        reason: RejectReason,
        session: RegistrationSession | None = None,
    ) -> None:
        self.reason = reason
        self.session = session
        super().__init__(reason.value)


class IncompleteRegistration(Exception):
    """Submission refused locally because required fields are missing."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__("Missing registration fields: " + ", ".join(missing))


@dataclass(frozen=True)
class Screenshot:
    url: str
    content_type: str | None = None


@dataclass
class RegistrationSession:
    """One in-progress registration, keyed by its prompt message id."""

    key: int
    owner_id: int
    channel_id: int | None
    expires_at: float
    step: RegistrationStep = RegistrationStep.SELECT_ACCOUNT_TYPE
    account_type: str | None = None
    status: str | None = None
    is_filler: bool | None = None
    linked_id: str | None = None
    screenshot: Screenshot | None = None
    image_base64: str | None = None
    history: list[RegistrationStep] = field(default_factory=list)

    @property
    def terminal(self) -> bool:
        return self.step in TERMINAL_STEPS

    def clear_fields(self) -> None:
        self.account_type = None
        self.status = None
        self.is_filler = None
        self.linked_id = None
        self.screenshot = None
        self.image_base64 = None

    def missing_fields(self) -> list[str]:
        """Names of fields that must be filled before submission."""
        missing: list[str] = []
        if self.account_type not in (ACCOUNT_MAIN, ACCOUNT_FARM):
            missing.append("account_type")
        if self.account_type == ACCOUNT_MAIN and not self.status:
            missing.append("status")
        if self.account_type == ACCOUNT_FARM:
            if self.is_filler is None:
                missing.append("is_filler")
            if not self.linked_id:
                missing.append("linked_id")
        if self.screenshot is None:
            missing.append("screenshot")
        return missing


def build_payload(session: RegistrationSession, *, username: str) -> dict[str, Any]:
    """Build the ``register`` command data from a completed session."""
    missing = session.missing_fields()
    if session.image_base64 is None:
        missing.append("image")
    if missing:
        raise IncompleteRegistration(missing)
    is_main = session.account_type == ACCOUNT_MAIN
    return {
        "discordUserId": str(session.owner_id),
        "discordUsername": username,
        "tipeAkun": session.account_type,
        "statusMain": session.status if is_main else None,
        "isFiller": None if is_main else session.is_filler,
        "idMainTerhubung": None if is_main else session.linked_id,
        "imageBase64": session.image_base64,
    }


class SessionStore:
    """Process-wide map of prompt message id -> registration session.

    Every access checks the session's deadline. Only the owning user may move
    a session forward. With ``lock_channels`` set, a channel holds at most one
    live registration at a time.
    """

    def __init__(
        self,
        *,
        flow_timeout: float = DEFAULT_FLOW_TIMEOUT_SECONDS,
        screenshot_timeout: float = DEFAULT_SCREENSHOT_TIMEOUT_SECONDS,
        lock_channels: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.flow_timeout = flow_timeout
        self.screenshot_timeout = screenshot_timeout
        self.lock_channels = lock_channels
        self._clock = clock
        self._sessions: dict[int, RegistrationSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, key: object) -> bool:
        return key in self._sessions

    # -- lifecycle ---------------------------------------------------------

    def is_channel_busy(self, channel_id: int | None) -> bool:
        if not self.lock_channels or channel_id is None:
            return False
        self.expire_stale()
        return any(s.channel_id == channel_id for s in self._sessions.values())

    def start(self, key: int, owner_id: int, channel_id: int | None = None) -> RegistrationSession:
        """Open a session for a freshly posted prompt message."""
        if self.is_channel_busy(channel_id):
            raise SessionRejected(RejectReason.CHANNEL_BUSY)
        if key in self._sessions:
            raise SessionRejected(RejectReason.INVALID_STEP, self._sessions[key])
        session = RegistrationSession(
            key=key,
            owner_id=owner_id,
            channel_id=channel_id,
            expires_at=self._clock() + self.flow_timeout,
        )
        self._sessions[key] = session
        logger.info("registration_started key=%s owner=%s", key, owner_id)
        return session

    def get(self, key: int) -> RegistrationSession:
        """Return the live session for ``key``; expired sessions are torn down."""
        session = self._sessions.get(key)
        if session is None:
            raise SessionRejected(RejectReason.UNKNOWN_SESSION)
        if self._clock() >= session.expires_at:
            self._finish(session, RegistrationStep.TIMED_OUT)
            raise SessionRejected(RejectReason.EXPIRED, session)
        return session

    def discard(self, key: int) -> None:
        self._sessions.pop(key, None)

    def expire(self, key: int) -> RegistrationSession | None:
        """Force a session to TIMED_OUT, e.g. when its view times out."""
        session = self._sessions.get(key)
        if session is None:
            return None
        self._finish(session, RegistrationStep.TIMED_OUT)
        return session

    def expire_if_due(self, key: int) -> RegistrationSession | None:
        """Time out ``key`` only if its deadline has passed."""
        session = self._sessions.get(key)
        if session is None or self._clock() < session.expires_at:
            return None
        self._finish(session, RegistrationStep.TIMED_OUT)
        return session

    def expire_stale(self) -> list[RegistrationSession]:
        now = self._clock()
        stale = [s for s in self._sessions.values() if now >= s.expires_at]
        for session in stale:
            self._finish(session, RegistrationStep.TIMED_OUT)
        return stale

    # -- transitions -------------------------------------------------------

    def apply(
        self,
        key: int,
        user_id: int,
        event: RegistrationEvent,
        value: Any = None,
    ) -> RegistrationSession:
        """Apply ``event`` from ``user_id`` to the session at ``key``.

        Raises SessionRejected for unknown, expired, foreign or out-of-step
        events and IncompleteRegistration when SUBMIT arrives with fields
        missing. A foreign user's event and an incomplete submit leave the
        session unchanged; an out-of-step event tears it down as ERROR.
        """
        session = self.get(key)
        if session.owner_id != user_id:
            logger.warning(
                "registration_foreign_user key=%s owner=%s user=%s",
                key,
                session.owner_id,
                user_id,
            )
            raise SessionRejected(RejectReason.NOT_OWNER, session)

        target = next_step(session.step, event)
        if target is None:
            logger.warning(
                "registration_invalid_step key=%s step=%s event=%s",
                key,
                session.step,
                event,
            )
            self._finish(session, RegistrationStep.ERROR)
            raise SessionRejected(RejectReason.INVALID_STEP, session)

        if event is RegistrationEvent.SUBMIT:
            missing = session.missing_fields()
            if missing:
                raise IncompleteRegistration(missing)

        self._record(session, event, value)
        session.history.append(session.step)
        session.step = target
        if target in TERMINAL_STEPS:
            self._finish(session, target)
        elif target is RegistrationStep.AWAIT_SCREENSHOT:
            session.expires_at = self._clock() + self.screenshot_timeout
        else:
            session.expires_at = self._clock() + self.flow_timeout
        logger.info("registration_step key=%s event=%s step=%s", key, event, target)
        return session

    def offer_screenshot(
        self,
        key: int,
        user_id: int,
        screenshot: Screenshot,
    ) -> RegistrationSession | None:
        """Hand a reply attachment to the session at ``key``.

        Returns None, changing nothing, when there is no live session, the
        sender is not the owner, or the session is not waiting for a
        screenshot. A non-image attachment ends the session with
        SessionRejected(INVALID_FILE).
        """
        session = self._sessions.get(key)
        if session is None or session.owner_id != user_id:
            return None
        if session.step is not RegistrationStep.AWAIT_SCREENSHOT:
            return None
        if self._clock() >= session.expires_at:
            return None
        if not is_image(screenshot.content_type):
            logger.info(
                "registration_invalid_file key=%s content_type=%s",
                key,
                screenshot.content_type,
            )
            self._finish(session, RegistrationStep.ERROR)
            raise SessionRejected(RejectReason.INVALID_FILE, session)
        return self.apply(key, user_id, RegistrationEvent.ATTACH_SCREENSHOT, screenshot)

    # -- internals ---------------------------------------------------------

    def _record(self, session: RegistrationSession, event: RegistrationEvent, value: Any) -> None:
        if event is RegistrationEvent.CHOOSE_MAIN:
            session.account_type = ACCOUNT_MAIN
        elif event is RegistrationEvent.CHOOSE_FARM:
            session.account_type = ACCOUNT_FARM
        elif event is RegistrationEvent.CHOOSE_STATUS:
            session.status = str(value) if value is not None else None
        elif event is RegistrationEvent.CHOOSE_FILLER:
            session.is_filler = bool(value)
        elif event is RegistrationEvent.SUBMIT_LINKED_ID:
            session.linked_id = value
        elif event is RegistrationEvent.ATTACH_SCREENSHOT:
            session.screenshot = value
        elif event is RegistrationEvent.RESTART:
            session.clear_fields()

    def _finish(self, session: RegistrationSession, step: RegistrationStep) -> None:
        if session.step is not step:
            session.history.append(session.step)
            session.step = step
        self._sessions.pop(session.key, None)
        logger.info("registration_finished key=%s step=%s", session.key, step)
