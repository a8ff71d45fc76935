"""Backend wire models -- the command envelope and the loosely-typed result.

The backend performs all business logic (OCR, scoring, ranking). The bot only
checks for the presence of fields; nothing here enforces a per-command schema.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class BackendCommand(StrEnum):
    """Command names understood by the backend."""

    REGISTER = "register"
    REGISTER_FROM_DRIVE = "register_from_drive"
    FIX_REGISTRATION_NAMES = "fix_registration_names"
    GET_REGISTRATION_DATA = "get_registration_data"
    SUBMIT_ZONE_KP = "submit_zone_kp"
    SUBMIT_ZONE_KP_BULK = "submit_zone_kp_bulk"
    SUBMIT_PREKVK_RANK = "submit_prekvk_rank"
    SUBMIT_DEATH_TROOPS = "submit_death_troops"
    GET_MY_STATS = "get_my_stats"
    GET_LEADERBOARD = "get_leaderboard"


class CommandEnvelope(BaseModel):
    """The ``{command, data}`` object POSTed to the backend."""

    command: str
    data: dict[str, Any] = Field(default_factory=dict)


class BackendResult(BaseModel):
    """A decoded backend response.

    ``status`` is usually "success", "error" or "partial" but any string is
    accepted. ``details`` is command-specific: a dict of counts and stats, a
    list of leaderboard rows, or absent.
    """

    model_config = ConfigDict(extra="allow")

    status: str = ""
    message: str | None = None
    details: Any = None

    @property
    def ok(self) -> bool:
        return self.status == "success"

    @property
    def detail_map(self) -> dict[str, Any]:
        """``details`` as a dict, or an empty dict when it is anything else."""
        return self.details if isinstance(self.details, dict) else {}

    def unwrap_nested(self) -> BackendResult:
        """Return the inner result when a success wraps another status object.

        Some backend routes answer ``{status: "success", details: {status,
        message, details}}``; the inner object is the real answer.
        """
        inner = self.details
        if self.ok and isinstance(inner, dict) and inner.get("status"):
            return BackendResult(
                status=str(inner["status"]),
                message=inner.get("message") or self.message,
                details=inner.get("details"),
            )
        return self
