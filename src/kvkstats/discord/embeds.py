"""Discord embed builders for the KvK stats bot.

Each builder takes a backend result (plus command context such as the zone
or ranking type) and returns a styled embed ready to send. Absent detail
fields render as "N/A"; numbers get thousands separators.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import discord

from kvkstats.core.registration import ACCOUNT_MAIN, RegistrationStep

if TYPE_CHECKING:
    from kvkstats.core.registration import RegistrationSession
    from kvkstats.models.backend import BackendResult

COLOR_SUCCESS = 0x00FF00  # Green
COLOR_PARTIAL = 0xFFA500  # Amber, partial success
COLOR_FAILURE = 0xFF0000  # Red
COLOR_NEUTRAL = 0x95A5A6  # Grey, unknown status or cancelled
COLOR_NOTE = 0xFFCC00  # Yellow, success with a note
COLOR_PROMPT = 0x0099FF  # Blue, registration prompts
COLOR_CONFIRM = 0xFFFF00  # Yellow, registration summary
COLOR_STATS = 0x1F8B4C  # Dark green, /mystats

FOOTER = "RoK Stats System • Kingdom 2921"

NA = "N/A"
PENDING = "(Pending counter-data)"
NOT_AVAILABLE_YET = "*Data not yet available.*"

FAILURE_LIST_LIMIT = 10
FAILURE_BLOCK_MAX_CHARS = 1000
TRUNCATION_MARKER = "... (list truncated)"
_FENCE = "```"

EMBED_DESCRIPTION_MAX = 4096
EMBED_FIELD_MAX = 1024


def status_color(status: str | None) -> int:
    """success=green, partial=amber, error=red, anything else neutral."""
    return {
        "success": COLOR_SUCCESS,
        "partial": COLOR_PARTIAL,
        "error": COLOR_FAILURE,
    }.get(status or "", COLOR_NEUTRAL)


def format_number(value: Any) -> str:
    """Render a number with thousands separators; anything else is "N/A"."""
    if value is None or isinstance(value, bool):
        return NA
    if isinstance(value, str):
        try:
            value = float(value.replace(",", "")) if value.strip() else None
        except ValueError:
            return NA
        if value is None:
            return NA
    if isinstance(value, int):
        return f"{value:,}"
    if isinstance(value, float):
        if value.is_integer():
            return f"{int(value):,}"
        return f"{value:,.3f}".rstrip("0").rstrip(".")
    return NA


def detail(details: Mapping[str, Any], key: str) -> str:
    """Plain text for ``details[key]``, or "N/A" when absent or empty."""
    value = details.get(key)
    if value is None or value == "":
        return NA
    return str(value)


def mapping_entries(items: Any) -> list[Mapping[str, Any]]:
    """The dict entries of a backend list; anything else is dropped."""
    if not isinstance(items, (list, tuple)):
        return []
    return [item for item in items if isinstance(item, Mapping)]


def render_failure_block(
    failures: Sequence[Mapping[str, Any]] | None,
    *,
    limit: int = FAILURE_LIST_LIMIT,
    max_chars: int = FAILURE_BLOCK_MAX_CHARS,
) -> str:
    """Render per-row failures as ``Row <n> (ID: <id>): <reason>`` lines.

    At most ``limit`` entries are shown. The block stops before the first
    line that would push it past ``max_chars`` and ends with a truncation
    marker instead.
    """
    block = ""
    for fail in mapping_entries(failures)[:limit]:
        row = fail.get("row") or NA
        gov_id = fail.get("governorId") or NA
        reason = fail.get("reason") or "Unknown reason"
        line = f"Row {row} (ID: {gov_id}): {reason}\n"
        if len(block) + len(line) > max_chars:
            block += TRUNCATION_MARKER
            break
        block += line
    return block


def render_failed_files(
    failed: Sequence[Mapping[str, Any]] | None,
    *,
    limit: int = FAILURE_LIST_LIMIT,
) -> str:
    """Bullet list of drive files the backend could not register."""
    items = mapping_entries(failed)
    lines = [
        f"• **{f.get('fileName') or NA}**: {f.get('reason') or 'Unknown reason'}"
        for f in items[:limit]
    ]
    text = "\n".join(lines)
    if len(items) > limit:
        text += f"\n*...and {len(items) - limit} more.*"
    return _clip(text, EMBED_FIELD_MAX)


def _clip(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 4] + "\n..."


def fence_block(block: str, limit: int = EMBED_FIELD_MAX) -> str:
    """Wrap a failure block in a code fence that fits one embed field.

    Whole lines are dropped from the end, and the truncation marker kept,
    until the fenced text is at most ``limit`` characters.
    """
    marker = ""
    if block.endswith(TRUNCATION_MARKER):
        block = block[: -len(TRUNCATION_MARKER)]
        marker = TRUNCATION_MARKER
    lines = block.splitlines(keepends=True)
    while lines and len("".join(lines)) + len(marker) + 2 * len(_FENCE) > limit:
        lines.pop()
        marker = TRUNCATION_MARKER
    return f"{_FENCE}{''.join(lines)}{marker}{_FENCE}"


def _base_embed(title: str, description: str | None, color: int) -> discord.Embed:
    embed = discord.Embed(
        title=title,
        description=description,
        color=color,
        timestamp=discord.utils.utcnow(),
    )
    embed.set_footer(text=FOOTER)
    return embed


def build_message_embed(title: str, description: str, color: int = COLOR_FAILURE) -> discord.Embed:
    """A plain title + description embed (restrictions, config and command errors)."""
    return _base_embed(title, description, color)


# ---------------------------------------------------------------------------
# Admin commands
# ---------------------------------------------------------------------------


def build_fix_names_embed(result: BackendResult) -> discord.Embed:
    """Nickname synchronisation report for /fix-name."""
    embed = _base_embed(
        "Nickname Synchronization Report",
        result.message or "Process finished.",
        COLOR_SUCCESS if result.ok else COLOR_FAILURE,
    )
    if result.ok:
        details = result.detail_map
        embed.add_field(
            name="Nicknames Updated",
            value=format_number(details.get("updatedCount")),
            inline=True,
        )
        embed.add_field(
            name="Nicknames Cleared (ID not found)",
            value=format_number(details.get("clearedCount")),
            inline=True,
        )
        embed.add_field(
            name="IDs Not Found in List",
            value=format_number(details.get("notFoundCount")),
            inline=True,
        )
    else:
        embed.add_field(name="Error", value=result.message or "An unknown error occurred.")
    return embed


def build_drive_report_embed(
    result: BackendResult,
    *,
    folder_id: str,
    status_main: str,
) -> discord.Embed:
    """Bulk registration report for /register-drive."""
    embed = _base_embed(
        "Bulk Registration Report from Google Drive",
        result.message or "Processing complete.",
        status_color(result.status) if result.status != "" else COLOR_FAILURE,
    )
    embed.add_field(name="Processed Folder ID", value=folder_id, inline=False)
    embed.add_field(name="Processed Account Status", value=status_main, inline=False)

    failed = mapping_entries(result.detail_map.get("failedFiles"))
    if failed:
        embed.add_field(name="⚠️ Failure Details", value=render_failed_files(failed), inline=False)
    elif not result.ok:
        embed.add_field(
            name="⚠️ Note",
            value="An issue occurred during processing. Check the backend logs for more details.",
            inline=False,
        )
    return embed


# ---------------------------------------------------------------------------
# Zone KP
# ---------------------------------------------------------------------------


def build_zone_kp_embed(
    result: BackendResult,
    *,
    zone_name: str,
    submission_type: str,
    requested_by: str,
) -> discord.Embed:
    """Recorded power and kill points for a single /submit_kp_zona."""
    details = result.detail_map
    embed = _base_embed(
        f"✅ Zone Data Submitted: {zone_name} ({submission_type})",
        result.message or f"Data {submission_type} war for zone {zone_name} has been recorded.",
        COLOR_SUCCESS,
    )
    kp_gained = format_number(details.get("kpGained"))
    power_reduce = format_number(details.get("powerReduce"))
    embed.add_field(name="Governor ID", value=detail(details, "governorId"), inline=True)
    embed.add_field(name="Zone Name", value=zone_name, inline=True)
    embed.add_field(name="Submission Type", value=submission_type, inline=True)
    embed.add_field(name="Power Recorded", value=format_number(details.get("power")), inline=True)
    embed.add_field(name="T4 KP Recorded", value=format_number(details.get("t4KP")), inline=True)
    embed.add_field(name="T5 KP Recorded", value=format_number(details.get("t5KP")), inline=True)
    embed.add_field(
        name="Zone KP Gained",
        value=kp_gained if kp_gained != NA else PENDING,
        inline=True,
    )
    embed.add_field(
        name="Power Reduce",
        value=power_reduce if power_reduce != NA else PENDING,
        inline=True,
    )
    embed.set_footer(text=f"Requested by: {requested_by}")
    return embed


def build_bulk_zone_kp_embed(
    result: BackendResult,
    *,
    zone_name: str,
    submission_type: str,
    requested_by: str,
) -> discord.Embed:
    """Per-row outcome of a /kp_zone_upload spreadsheet."""
    details = result.detail_map
    failures = mapping_entries(details.get("failures"))
    embed = _base_embed(
        f"📊 Bulk Zone KP Submission Result: {zone_name} ({submission_type})",
        result.message or "Processing finished.",
        COLOR_SUCCESS if result.ok else COLOR_FAILURE,
    )
    if result.ok:
        embed.add_field(
            name="Successfully Processed",
            value=format_number(details.get("successCount")),
            inline=True,
        )
        embed.add_field(name="Failed Entries", value=str(len(failures)), inline=True)
    else:
        embed.add_field(name="Status", value="Error during processing.", inline=False)

    block = render_failure_block(failures)
    if block:
        embed.add_field(name="Failure Details (Partial)", value=fence_block(block), inline=False)
    embed.set_footer(text=f"Requested by: {requested_by}")
    return embed


# ---------------------------------------------------------------------------
# Pre-KvK and dead troops
# ---------------------------------------------------------------------------

PREKVK_TOP_100 = "Rank 1-100 (Score Input)"
PREKVK_TOP_1000 = "Rank 101-1000 (SS)"
PREKVK_SCORE_ONLY = "Score Input (Not Top 1000)"


def _kp(value: Any, fallback: str = NA) -> str:
    text = format_number(value)
    return f"{text} KP" if text != NA else fallback


def build_prekvk_embed(
    result: BackendResult,
    *,
    governor_id: str,
    submitted_by: str,
) -> discord.Embed:
    """Pre-KvK submission result; fields depend on the submission category."""
    details = result.detail_map
    note = details.get("note")
    embed = _base_embed(
        "✅ Pre-KvK Submission Processed!",
        result.message or "Your Pre-KvK data has been processed.",
        COLOR_NOTE if note else COLOR_SUCCESS,
    )
    category = details.get("submissionCategory")
    embed.add_field(
        name="Governor ID",
        value=str(details.get("governorId") or governor_id),
        inline=True,
    )
    embed.add_field(name="Account Type", value=detail(details, "accountType"), inline=True)
    embed.add_field(name="Submission Category", value=category or NA, inline=True)

    if category == PREKVK_TOP_100:
        embed.add_field(
            name="Detected Rank (from SS)", value=detail(details, "extractedRank"), inline=True
        )
        embed.add_field(
            name="Inputted Score", value=format_number(details.get("inputScore")), inline=True
        )
        embed.add_field(
            name="System Points (Score*10)",
            value=format_number(details.get("systemPoints")),
            inline=True,
        )
    elif category == PREKVK_TOP_1000:
        embed.add_field(name="Detected Rank", value=detail(details, "extractedRank"), inline=True)
        embed.add_field(
            name="System Points (Bracket)",
            value=format_number(details.get("systemPoints")),
            inline=True,
        )
        embed.add_field(
            name="Est. KP Convert (Points/20)", value=_kp(details.get("kpConvert")), inline=True
        )
    elif category == PREKVK_SCORE_ONLY:
        embed.add_field(
            name="Inputted Score", value=format_number(details.get("inputScore")), inline=True
        )
        embed.add_field(name="Account Status", value=detail(details, "accountStatus"), inline=True)
        embed.add_field(
            name="Calculated KP Convert",
            value=_kp(details.get("kpConvert"), fallback="0 KP"),
            inline=True,
        )
    else:
        rank_or_score = details.get("extractedRank") or details.get("inputScore")
        points = details.get("systemPoints")
        if points is None:
            points = details.get("kpConvert")
        embed.add_field(
            name="Detected/Input Value", value=format_number(rank_or_score), inline=True
        )
        embed.add_field(name="Result Points/KP", value=format_number(points), inline=True)

    if note:
        embed.add_field(name="⚠️ Note", value=str(note), inline=False)
    embed.set_footer(text=f"Submitted by: {submitted_by}")
    return embed


def build_death_troops_embed(result: BackendResult) -> discord.Embed:
    """Recorded T4/T5 dead troops, plus the filler score for filler farms."""
    details = result.detail_map
    gov_id = detail(details, "govId")
    embed = _base_embed(
        "✅ Dead Troops Data Submitted",
        result.message or f"Data for Gov ID `{gov_id}` has been saved.",
        COLOR_SUCCESS,
    )
    is_filler = bool(details.get("isFiller"))
    embed.add_field(name="Governor ID", value=f"`{gov_id}`", inline=True)
    embed.add_field(name="Account Type", value=detail(details, "accountType"), inline=True)
    embed.add_field(name="Filler?", value="Yes" if is_filler else "No", inline=True)
    embed.add_field(
        name="T4 Dead (Submitted)", value=format_number(details.get("t4Submitted")), inline=True
    )
    embed.add_field(
        name="T5 Dead (Submitted)", value=format_number(details.get("t5Submitted")), inline=True
    )
    filler_score = details.get("fillerScoreCalculated")
    if is_filler and isinstance(filler_score, int | float) and not isinstance(filler_score, bool):
        embed.add_field(
            name="Filler Score (Calculated)", value=format_number(filler_score), inline=True
        )
    return embed


# ---------------------------------------------------------------------------
# /mystats
# ---------------------------------------------------------------------------


def progress_percent(current: Any, target: Any) -> float:
    """Progress towards ``target`` as a percentage capped at 100."""
    try:
        cur = float(current or 0)
        tgt = float(target or 0)
    except (TypeError, ValueError):
        return 0.0
    if tgt <= 0:
        return 0.0
    return min(cur / tgt * 100, 100.0)


def build_progress_chart_url(kp_percent: float, death_percent: float) -> str:
    """QuickChart URL for a horizontal KP / dead-troops progress bar chart."""
    config = {
        "type": "horizontalBar",
        "data": {
            "labels": ["Kill Points (KP)", "Dead Troops"],
            "datasets": [
                {
                    "label": "Progress (%)",
                    "data": [round(kp_percent, 1), round(death_percent, 1)],
                    "backgroundColor": ["rgba(75, 192, 192, 0.6)", "rgba(255, 99, 132, 0.6)"],
                    "borderColor": ["rgba(75, 192, 192, 1)", "rgba(255, 99, 132, 1)"],
                    "borderWidth": 1,
                }
            ],
        },
        "options": {
            "title": {
                "display": True,
                "text": "DKP Target Progress",
                "fontSize": 16,
                "fontColor": "#ffffff",
            },
            "legend": {"display": False},
            "scales": {
                "xAxes": [{"ticks": {"beginAtZero": True, "max": 100, "fontColor": "#ffffff"}}],
                "yAxes": [{"ticks": {"fontColor": "#ffffff"}}],
            },
        },
    }
    encoded = quote(json.dumps(config, separators=(",", ":")), safe="")
    return (
        f"https://quickchart.io/chart?c={encoded}"
        "&backgroundColor=rgba(0,0,0,0)&width=500&height=200"
    )


def format_farm_list(farms: Any) -> str:
    """Bullet list of linked farm accounts, clipped to one embed field."""
    farms = mapping_entries(farms)
    if not farms:
        return "No farms linked or registered."
    lines = []
    for farm in farms:
        name = f"**{farm['name']}** " if farm.get("name") else ""
        filler = "Yes" if farm.get("isFiller") else "No"
        lines.append(f"• {name}ID: `{farm.get('id')}` (Filler: {filler})")
    text = "\n".join(lines)
    if len(text) > EMBED_FIELD_MAX:
        text = text[:1020] + "\n..."
    return text


BLANK = "\u200b"  # zero-width space; Discord rejects empty field text
_SEPARATOR = "────────────────────"


def build_my_stats_embed(result: BackendResult) -> discord.Embed:
    """KvK stats summary with a target-progress chart."""
    details = result.detail_map
    current_kp = details.get("currentKP") or 0
    target_kp = details.get("targetKP") or 0
    current_deaths = details.get("currentDeaths") or 0
    target_death = details.get("targetDeath") or 0

    embed = _base_embed(
        f"📊 KvK Stats Summary - ID: {details.get('governorID') or 'ID Not Found'}",
        None,
        COLOR_STATS,
    )
    embed.set_image(
        url=build_progress_chart_url(
            progress_percent(current_kp, target_kp),
            progress_percent(current_deaths, target_death),
        )
    )
    embed.add_field(
        name="🎯 Target Kill Points (KP)",
        value=f"*{format_number(current_kp)} / {format_number(target_kp)}*",
        inline=True,
    )
    embed.add_field(
        name="💀 Target Dead Troops",
        value=f"*{format_number(current_deaths)} / {format_number(target_death)}*",
        inline=True,
    )
    embed.add_field(name=BLANK, value=BLANK, inline=False)

    sections = [
        ("🔗 Linked Farm Accounts", format_farm_list(details.get("linkedFarms"))),
        ("⭐ Pre-KvK Contribution", details.get("preKvkContribution") or NOT_AVAILABLE_YET),
        ("⚔️ Zone KP Performance", details.get("zoneKpPerformance") or NOT_AVAILABLE_YET),
        ("🧑‍🌾 Filler Account Contribution", details.get("fillerContribution") or NOT_AVAILABLE_YET),
        ("🏆 Final KvK Score & Status", details.get("finalScoreStatus") or NOT_AVAILABLE_YET),
        ("🏅 Ranking", details.get("ranking") or NOT_AVAILABLE_YET),
    ]
    for name, value in sections:
        embed.add_field(name=BLANK, value=_SEPARATOR, inline=False)
        embed.add_field(name=name, value=_clip(str(value), EMBED_FIELD_MAX), inline=False)
    return embed


# ---------------------------------------------------------------------------
# /leaderboard
# ---------------------------------------------------------------------------

# ranking type -> (title, value label, colour)
LEADERBOARD_TYPES: dict[str, tuple[str, str, int]] = {
    "Score": ("🏆 Leaderboard - KvK Score (Final Score)", "Score", 0x00FF00),
    "DKP": ("🏅 Leaderboard - Pure DKP (Zone KP)", "KP", 0x0099FF),
    "PreKvK": ("✨ Leaderboard - Pre-KvK (Converted KP)", "Converted KP", 0xFFA500),
    "PowerReduce": ("📉 Leaderboard - Power Reduce", "Power Reduce", 0xFF4500),
    "DeathT4": ("💀 Leaderboard - Death T4", "T4 Lost", 0x8B0000),
    "DeathT5": ("☠️ Leaderboard - Death T5", "T5 Lost", 0x4B0082),
}

LEADERBOARD_DEFAULT_LIMIT = 10
LEADERBOARD_MAX_LIMIT = 25


def leaderboard_meta(ranking_type: str) -> tuple[str, str, int]:
    return LEADERBOARD_TYPES.get(ranking_type, LEADERBOARD_TYPES["Score"])


def clamp_leaderboard_limit(limit: int | None) -> int:
    if not limit or limit < 1:
        return LEADERBOARD_DEFAULT_LIMIT
    return min(limit, LEADERBOARD_MAX_LIMIT)


def build_leaderboard_embed(
    entries: Sequence[Mapping[str, Any]],
    *,
    ranking_type: str,
    limit: int,
) -> discord.Embed:
    """Top-N leaderboard embed; the full list goes out as an .xlsx attachment."""
    title, label, color = leaderboard_meta(ranking_type)
    title += f" (Top {limit} / {len(entries)} Total)"
    if not entries:
        return _base_embed(
            title,
            f"No ranking data available for type {ranking_type} at this time.",
            color,
        )

    lines = []
    for entry in entries[:limit]:
        gov_id = entry.get("id")
        name = entry.get("nickname") or f"ID: {gov_id}"
        value = format_number(entry.get("value"))
        lines.append(f"{entry.get('rank')}. `{gov_id}` {name} - **{value}** {label}")
    description = "\n".join(lines)
    if len(entries) > limit:
        description += (
            f"\n\n*Showing Top {limit} of {len(entries)} total entries. Full list attached.*"
        )
    if len(description) > EMBED_DESCRIPTION_MAX:
        description = description[:4090] + "\n..."
    return _base_embed(title, description, color)


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------

_PROMPTS: dict[RegistrationStep, str] = {
    RegistrationStep.SELECT_ACCOUNT_TYPE: "Please select the type of account you want to register:",
    RegistrationStep.SELECT_STATUS: "Select the status of your **main** account:",
    RegistrationStep.SELECT_FILLER: "Is this **farm** account a filler account?",
    RegistrationStep.SHOW_LINKED_ID_FORM: (
        "Press **Enter Main ID** and type the Governor ID of the main account "
        "this farm belongs to."
    ),
}


def build_registration_prompt_embed(
    step: RegistrationStep,
    *,
    account_type: str | None = None,
    screenshot_timeout: int = 120,
) -> discord.Embed:
    """The prompt shown on the registration message for the current step."""
    if step is RegistrationStep.AWAIT_SCREENSHOT:
        description = (
            "**Reply to this message** with a screenshot of your governor profile "
            f"within {screenshot_timeout} seconds."
        )
    else:
        description = _PROMPTS.get(step, "")
    embed = _base_embed("📝 New Account Registration", description, COLOR_PROMPT)
    if account_type:
        embed.add_field(name="Account Type", value=_account_label(account_type), inline=True)
    return embed


def _account_label(account_type: str | None) -> str:
    if not account_type:
        return NA
    return "Main" if account_type == ACCOUNT_MAIN else "Farm"


_CLOSED: dict[RegistrationStep, tuple[str, str, int]] = {
    RegistrationStep.CANCELLED: (
        "Registration Cancelled",
        "Registration cancelled. Nothing was sent.",
        COLOR_NEUTRAL,
    ),
    RegistrationStep.TIMED_OUT: (
        "Registration Timed Out",
        "Registration timed out. Run `/register` again to start over.",
        COLOR_NEUTRAL,
    ),
    RegistrationStep.ERROR: (
        "Registration Ended",
        "This registration is no longer valid. Run `/register` again.",
        COLOR_FAILURE,
    ),
}


def build_registration_closed_embed(
    step: RegistrationStep,
    reason: str | None = None,
) -> discord.Embed:
    """Terminal notice for a cancelled, timed out or failed registration."""
    title, description, color = _CLOSED.get(step, _CLOSED[RegistrationStep.ERROR])
    return _base_embed(title, reason or description, color)


def build_registration_confirm_embed(session: RegistrationSession) -> discord.Embed:
    """Summary of every collected field, shown before submission."""
    embed = _base_embed("🔍 Confirm Registration Details", None, COLOR_CONFIRM)
    embed.add_field(name="Account Type", value=_account_label(session.account_type), inline=True)
    if session.account_type == ACCOUNT_MAIN:
        embed.add_field(name="Status", value=session.status or NA, inline=True)
    else:
        filler = NA if session.is_filler is None else ("Yes" if session.is_filler else "No")
        embed.add_field(name="Is Filler?", value=filler, inline=True)
        embed.add_field(name="Linked Main ID", value=session.linked_id or NA, inline=True)
    if session.screenshot is not None:
        embed.add_field(
            name="Screenshot",
            value=f"[View Attachment]({session.screenshot.url})",
            inline=False,
        )
        embed.set_thumbnail(url=session.screenshot.url)
    else:
        embed.add_field(name="Screenshot", value="Not provided yet.", inline=False)
    return embed


def build_registration_result_embed(result: BackendResult) -> discord.Embed:
    """Backend answer to a ``register`` submission."""
    details = result.detail_map
    if result.ok:
        embed = _base_embed(
            "✅ Registration Successful",
            result.message or "Your account has been registered.",
            COLOR_SUCCESS,
        )
        embed.add_field(name="Governor ID", value=detail(details, "governorId"), inline=True)
        embed.add_field(name="Nickname", value=detail(details, "nickname"), inline=True)
        embed.add_field(name="Power", value=format_number(details.get("power")), inline=True)
        return embed
    return _base_embed(
        "❌ Registration Failed",
        result.message or "Unknown backend error.",
        status_color(result.status),
    )
