"""Map loosely-shaped upstream JSON onto the dashboard's fixed view models.

Every function here is pure and total: malformed input degrades to defaults or
to a dropped record, never to an exception. Field aliases are declared as
ordered tuples and resolved left to right.
"""
import json
import logging
import math
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from ..schemas.pydantic_schemas import (
    CallStatusGroups,
    CallStatusRecord,
    ConversationRecord,
    PromptRecord,
)

logger = logging.getLogger(__name__)

UNTITLED_PROMPT = "Untitled Prompt"
UNKNOWN = "unknown"
MISSING_DURATION = "—"

PROMPT_ID_FIELDS = ("id", "key")
PROMPT_NAME_FIELDS = ("name", "key")
PROMPT_ACTIVE_FIELDS = ("is_active", "isDefault", "is_active_prompt", "is_default")

CONVERSATION_ID_FIELDS = ("id", "conversation_id", "conversationId")

CALL_SID_FIELDS = ("sid", "call_sid", "Sid", "CallSid")
CALL_TO_FIELDS = ("to", "to_number", "To", "to_formatted", "phone_number", "toNumber")
CALL_FROM_FIELDS = ("from", "from_number", "From", "fromNumber")
CALL_STATUS_FIELDS = ("status", "state", "Status", "call_status")
CALL_START_FIELDS = ("start_time", "startTime", "date_created", "DateCreated", "time_created")
CALL_END_FIELDS = ("end_time", "endTime", "date_updated", "DateUpdated", "completed_time")
CALL_DURATION_FIELDS = ("duration", "duration_seconds", "Duration")

# (payload key, bucket) pairs recognised by categorize_call_statuses
CALL_BUCKET_KEYS = (
    ("active", "active"),
    ("in_progress", "active"),
    ("in-progress", "active"),
    ("ongoing", "active"),
    ("ringing", "active"),
    ("queued", "queued"),
    ("pending", "queued"),
    ("completed", "completed"),
    ("finished", "completed"),
    ("ended", "completed"),
)

# Members of the upstream /call-status/summary response
SUMMARY_BUCKET_KEYS = (
    ("ongoing", "active"),
    ("completed", "completed"),
    ("declined", "declined"),
)
SUMMARY_QUEUED_STATUSES = ("queued", "ringing")

_HMS_RE = re.compile(r"^(\d{1,2}):(\d{2}):(\d{2})$")

Number = Union[int, float]


def first_present(record: Dict[str, Any], fields: Sequence[str]) -> Any:
    """Return the first value among ``fields`` that is not None, else None."""
    for field in fields:
        value = record.get(field)
        if value is not None:
            return value
    return None


def _truthy(value: Any) -> bool:
    # JSON truthiness: empty containers still count as present
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0 and not (isinstance(value, float) and math.isnan(value))
    if isinstance(value, str):
        return len(value) > 0
    return True


def _to_str(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


def _optional_str(value: Any) -> Optional[str]:
    return _to_str(value) if _truthy(value) else None


def _as_number(value: float) -> Number:
    return int(value) if value.is_integer() else value


def _parse_number(text: str) -> Optional[Number]:
    text = text.strip()
    if not text:
        return None
    try:
        numeric = float(text)
    except ValueError:
        return None
    if not math.isfinite(numeric):
        return None
    return _as_number(numeric)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse ISO-8601, RFC 2822 or epoch-millisecond values into an aware datetime."""
    if not _truthy(value) or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if not isinstance(value, str):
        return None

    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        # Twilio style: "Wed, 18 Aug 2010 20:20:06 +0000"
        try:
            parsed = parsedate_to_datetime(value.strip())
        except (TypeError, ValueError, IndexError):
            return None
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def to_iso(moment: datetime) -> str:
    utc = moment.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S") + f".{utc.microsecond // 1000:03d}Z"


def normalize_iso(value: Any) -> Optional[str]:
    parsed = parse_timestamp(value)
    return to_iso(parsed) if parsed else None


def _seconds_between(start: Any, end: Any) -> Optional[int]:
    started = parse_timestamp(start)
    ended = parse_timestamp(end)
    if started is None or ended is None or ended < started:
        return None
    # Half-up rounding to whole seconds
    return int(math.floor((ended - started).total_seconds() + 0.5))


def parse_duration_seconds(value: Any, start: Any = None, end: Any = None) -> Optional[Number]:
    """Resolve a call duration.

    Order: explicit number, numeric string, ``H:MM:SS`` string, then the
    difference between ``end`` and ``start`` when both parse and end >= start.
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value):
        return value
    if isinstance(value, str):
        numeric = _parse_number(value)
        if numeric is not None:
            return numeric
        match = _HMS_RE.match(value)
        if match:
            hours, minutes, seconds = (int(part) for part in match.groups())
            return hours * 3600 + minutes * 60 + seconds
    if start and end:
        return _seconds_between(start, end)
    return None


def format_duration(seconds: Optional[Number] = None, started_at: Optional[str] = None, ended_at: Optional[str] = None) -> str:
    total = seconds
    if (total is None or (isinstance(total, float) and math.isnan(total))) and started_at and ended_at:
        total = _seconds_between(started_at, ended_at)
    if total is None or (isinstance(total, float) and math.isnan(total)) or total < 0:
        return MISSING_DURATION
    hours = int(total // 3600)
    minutes = int((total % 3600) // 60)
    secs = int(total % 60)
    if hours > 0:
        return f"{hours}h {minutes}m {secs}s"
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------
def normalize_prompt(raw: Any) -> Optional[PromptRecord]:
    if not isinstance(raw, dict):
        logger.debug(f"Dropping non-object prompt entry: {raw!r}")
        return None

    raw_id = first_present(raw, PROMPT_ID_FIELDS)
    prompt_id = _to_str(raw_id) if raw_id is not None else ""
    if not prompt_id:
        logger.debug(f"Dropping prompt without id, keys={list(raw.keys())}")
        return None

    name = first_present(raw, PROMPT_NAME_FIELDS)
    prompt = raw.get("prompt")
    return PromptRecord(
        id=prompt_id,
        name=_to_str(name) if name is not None else UNTITLED_PROMPT,
        prompt=_to_str(prompt) if prompt is not None else "",
        welcome_message=_optional_str(raw.get("welcome_message")),
        is_active=any(_truthy(raw.get(field)) for field in PROMPT_ACTIVE_FIELDS),
        created_at=_optional_str(raw.get("created_at")),
        updated_at=_optional_str(raw.get("updated_at")),
    )


def _normalize_all(entries: Iterable[Any], normalize) -> List[Any]:
    return [record for record in (normalize(entry) for entry in entries) if record is not None]


def extract_prompt_list(payload: Any) -> List[PromptRecord]:
    if isinstance(payload, list):
        return _normalize_all(payload, normalize_prompt)

    if isinstance(payload, dict):
        # A single prompt object rather than a collection
        if _truthy(payload.get("id")) or _truthy(payload.get("key")):
            single = normalize_prompt(payload)
            return [single] if single else []
        if isinstance(payload.get("prompts"), list):
            return _normalize_all(payload["prompts"], normalize_prompt)
        if isinstance(payload.get("data"), list):
            return _normalize_all(payload["data"], normalize_prompt)

    logger.debug(f"No prompt list found in payload of type {type(payload).__name__}")
    return []


# ---------------------------------------------------------------------------
# Conversations
# ---------------------------------------------------------------------------
def normalize_conversation(raw: Any) -> Optional[ConversationRecord]:
    if not isinstance(raw, dict):
        return None
    raw_id = first_present(raw, CONVERSATION_ID_FIELDS)
    if not _truthy(raw_id):
        logger.debug(f"Dropping conversation without id, keys={list(raw.keys())}")
        return None

    lead_data = raw.get("lead_data")
    return ConversationRecord(
        id=_to_str(raw_id),
        call_sid=_optional_str(raw.get("call_sid")),
        lead_status=_optional_str(raw.get("lead_status")),
        created_at=_optional_str(raw.get("created_at")),
        updated_at=_optional_str(raw.get("updated_at")),
        lead_data=lead_data if isinstance(lead_data, dict) else None,
        transcript=raw.get("transcript"),
    )


def extract_conversation_list(payload: Any) -> List[ConversationRecord]:
    if isinstance(payload, list):
        return _normalize_all(payload, normalize_conversation)
    if isinstance(payload, dict) and isinstance(payload.get("conversations"), list):
        return _normalize_all(payload["conversations"], normalize_conversation)
    return []


# ---------------------------------------------------------------------------
# Call statuses
# ---------------------------------------------------------------------------
def normalize_call_status(raw: Any) -> Optional[CallStatusRecord]:
    """Normalize one call entry. Unlike prompts, a missing sid is not a rejection."""
    if not isinstance(raw, dict):
        return None

    sid = first_present(raw, CALL_SID_FIELDS)
    to = first_present(raw, CALL_TO_FIELDS)
    status = first_present(raw, CALL_STATUS_FIELDS)
    start = first_present(raw, CALL_START_FIELDS)
    end = first_present(raw, CALL_END_FIELDS)

    return CallStatusRecord(
        sid=_to_str(sid) if _truthy(sid) else UNKNOWN,
        to=_to_str(to) if _truthy(to) else UNKNOWN,
        status=_to_str(status) if _truthy(status) else UNKNOWN,
        duration_seconds=parse_duration_seconds(first_present(raw, CALL_DURATION_FIELDS), start, end),
        duration_human=_optional_str(raw.get("duration_human")),
        started_at=normalize_iso(start),
        ended_at=normalize_iso(end),
        from_number=_optional_str(first_present(raw, CALL_FROM_FIELDS)),
        direction=_optional_str(raw.get("direction")),
    )


def _bucket_for(status: str, key_hint: str = "") -> str:
    status_lower = status.lower()
    hint = key_hint.lower()
    if "queue" in status_lower or "queue" in hint:
        return "queued"
    if any(token in status_lower for token in ("complete", "finish", "ended")) or "complete" in hint:
        return "completed"
    # Unrecognised statuses stay visible
    return "active"


def _extend_bucket(groups: CallStatusGroups, bucket: str, entries: Iterable[Any]) -> None:
    getattr(groups, bucket).extend(_normalize_all(entries, normalize_call_status))


def _replace_bucket(groups: CallStatusGroups, bucket: str, entries: Iterable[Any]) -> None:
    setattr(groups, bucket, _normalize_all(entries, normalize_call_status))


def _classify_into(groups: CallStatusGroups, entries: Iterable[Any], key_hint: str = "") -> None:
    for entry in entries:
        record = normalize_call_status(entry)
        if record is None:
            continue
        getattr(groups, _bucket_for(record.status, key_hint)).append(record)


def categorize_call_statuses(payload: Any) -> CallStatusGroups:
    """Partition a call-status payload into active/queued/completed buckets.

    First rule that applies wins:

    1. recognised bucket keys (``ongoing``, ``pending``, ``finished``, ...) are
       consumed directly into their bucket; when several keys share a bucket
       the last list-valued one in ``CALL_BUCKET_KEYS`` order replaces it;
    2. otherwise a flat ``calls`` list is classified by status text;
    3. if every bucket is still empty, each remaining list-valued field is
       classified by status text, using the field name as a hint.

    ``declined`` is never filled here; see :func:`map_call_status_summary`.
    """
    groups = CallStatusGroups()
    if not isinstance(payload, dict):
        return groups

    seen = set()
    for key, bucket in CALL_BUCKET_KEYS:
        if key in payload:
            seen.add(key)
            if isinstance(payload[key], list):
                _replace_bucket(groups, bucket, payload[key])

    if not seen and isinstance(payload.get("calls"), list):
        seen.add("calls")
        _classify_into(groups, payload["calls"])

    if not (groups.active or groups.queued or groups.completed):
        for key, value in payload.items():
            if key in seen or not isinstance(value, list):
                continue
            _classify_into(groups, value, key_hint=key)

    return groups


def _raw_status(entry: Any) -> str:
    if not isinstance(entry, dict) or not _truthy(entry.get("status")):
        return ""
    return _to_str(entry["status"]).lower()


def map_call_status_summary(summary: Any) -> CallStatusGroups:
    """Map the ``{ongoing, completed, declined, others}`` summary shape onto groups.

    Only ``others`` entries whose status is queued or ringing are kept, as queued.
    """
    groups = CallStatusGroups()
    if not isinstance(summary, dict):
        return groups

    for key, bucket in SUMMARY_BUCKET_KEYS:
        entries = summary.get(key)
        if isinstance(entries, list):
            _extend_bucket(groups, bucket, entries)
        else:
            logger.warning(f"Call status summary field '{key}' is not a list")

    others = summary.get("others")
    if isinstance(others, list):
        waiting = [entry for entry in others if _raw_status(entry) in SUMMARY_QUEUED_STATUSES]
        _extend_bucket(groups, "queued", waiting)
    else:
        logger.warning("Call status summary field 'others' is not a list")

    return groups


def is_call_status_summary(payload: Any) -> bool:
    return isinstance(payload, dict) and ("declined" in payload or "others" in payload)


def group_call_statuses(payload: Any) -> CallStatusGroups:
    if is_call_status_summary(payload):
        return map_call_status_summary(payload)
    return categorize_call_statuses(payload)


def group_counts(groups: CallStatusGroups) -> Dict[str, int]:
    return {
        "active": len(groups.active),
        "queued": len(groups.queued),
        "completed": len(groups.completed),
        "declined": len(groups.declined),
    }
