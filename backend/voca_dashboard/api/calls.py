from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Any, List
import logging

from ..schemas.pydantic_schemas import CallStatusGroups, CallStatusGroupsResponse, CallStatusRecord, Country, MakeCallRequest
from ..services.backend_client import BackendClient, BackendError, BackendResponseError, TwilioApi, parse_json_payload
from ..services.normalizer import format_duration, group_call_statuses, group_counts, normalize_call_status
from .deps import get_backend_client

# Set up logger
logger = logging.getLogger(__name__)

router = APIRouter()

DEFAULT_COUNTRIES: List[Country] = [
    Country(name=name, code=code)
    for name, code in [
        ("United States", "+1"),
        ("Canada", "+1"),
        ("United Kingdom", "+44"),
        ("Australia", "+61"),
        ("India", "+91"),
        ("Germany", "+49"),
        ("France", "+33"),
        ("Italy", "+39"),
        ("Spain", "+34"),
        ("Netherlands", "+31"),
        ("Belgium", "+32"),
        ("Switzerland", "+41"),
        ("Austria", "+43"),
        ("Sweden", "+46"),
        ("Norway", "+47"),
        ("Denmark", "+45"),
        ("Finland", "+358"),
        ("Poland", "+48"),
        ("Czech Republic", "+420"),
        ("Greece", "+30"),
        ("Portugal", "+351"),
        ("Ireland", "+353"),
        ("Japan", "+81"),
        ("South Korea", "+82"),
        ("China", "+86"),
        ("Singapore", "+65"),
        ("Malaysia", "+60"),
        ("Thailand", "+66"),
        ("Philippines", "+63"),
        ("Indonesia", "+62"),
        ("Vietnam", "+84"),
        ("Brazil", "+55"),
        ("Mexico", "+52"),
        ("Argentina", "+54"),
        ("South Africa", "+27"),
        ("Russia", "+7"),
        ("United Arab Emirates", "+971"),
    ]
]


def _with_display_duration(record: CallStatusRecord) -> CallStatusRecord:
    if record.duration_human:
        return record
    display = format_duration(record.duration_seconds, record.started_at, record.ended_at)
    return record.model_copy(update={"duration_human": display})


def _message_of(response: Any, fallback: str) -> str:
    if isinstance(response, dict) and "message" in response:
        return str(response["message"])
    return fallback


def _parse_countries(payload: Any) -> List[Country]:
    entries = payload.get("countries") if isinstance(payload, dict) else payload
    if not isinstance(entries, list):
        return []
    countries = []
    for entry in entries:
        if isinstance(entry, dict) and entry.get("name") and entry.get("code"):
            countries.append(Country(name=str(entry["name"]), code=str(entry["code"])))
    return countries


@router.get("/countries", response_model=List[Country])
async def list_countries(client: BackendClient = Depends(get_backend_client)):
    try:
        countries = _parse_countries(await TwilioApi(client).country_codes())
    except BackendError as e:
        logger.warning(f"Country codes unavailable, using defaults: {str(e)}")
        countries = []
    return countries or DEFAULT_COUNTRIES


@router.get("/configured")
async def twilio_configured(client: BackendClient = Depends(get_backend_client)):
    return await TwilioApi(client).configured()


@router.post("/server")
async def start_server(client: BackendClient = Depends(get_backend_client)):
    logger.info("Starting Twilio server")
    response = await TwilioApi(client).start_server()
    return {"message": _message_of(response, "Twilio server started")}


@router.post("/", status_code=202)
async def make_call(body: MakeCallRequest, client: BackendClient = Depends(get_backend_client)):
    local_number = body.phone_number.strip()
    if not local_number:
        raise HTTPException(status_code=400, detail="Please enter a phone number before making a call.")
    full_number = f"{(body.country_code or '').strip()}{local_number}"
    logger.info(f"Initiating call to {full_number}")
    response = await TwilioApi(client).make_call(full_number)
    return {"phone_number": full_number, "message": _message_of(response, f"Call initiated to {full_number}")}


@router.post("/hangup-all")
async def hangup_all(client: BackendClient = Depends(get_backend_client)):
    logger.info("Hanging up all calls")
    response = await TwilioApi(client).hangup_all()
    return {"message": _message_of(response, "All calls hung up")}


@router.get("/status")
async def twilio_status(client: BackendClient = Depends(get_backend_client)):
    status = await TwilioApi(client).status()
    status = status if isinstance(status, dict) else {}
    raw_calls = status.get("active_calls")
    active_calls = [
        record for record in (normalize_call_status(call) for call in (raw_calls if isinstance(raw_calls, list) else []))
        if record is not None
    ]
    call_count = status.get("call_count")
    if not isinstance(call_count, int) or isinstance(call_count, bool):
        call_count = len(active_calls)
    return {
        "running": bool(status.get("running")),
        "message": status.get("message"),
        "call_count": call_count,
        "active_calls": active_calls,
    }


@router.get("/status-groups", response_model=CallStatusGroupsResponse)
async def call_status_groups(limit: int = Query(default=15, ge=1, le=200), client: BackendClient = Depends(get_backend_client)):
    api = TwilioApi(client)
    try:
        response = await api.call_status_summary(limit)
    except BackendResponseError as e:
        # Backends without the summary endpoint expose the bucketed call-status list
        logger.warning(f"Call status summary failed, using call-status: {str(e)}")
        response = await api.call_status()
    if response is None:
        raise BackendError("Empty response from API")
    summary = parse_json_payload(response, "/api/twilio/call-status/summary")
    if not isinstance(summary, dict):
        raise BackendError("Invalid response format from API")

    groups = group_call_statuses(summary)
    groups = CallStatusGroups(
        active=[_with_display_duration(r) for r in groups.active],
        queued=[_with_display_duration(r) for r in groups.queued],
        completed=[_with_display_duration(r) for r in groups.completed],
        declined=[_with_display_duration(r) for r in groups.declined],
    )
    counts = group_counts(groups)
    logger.info(
        f"Call status update: active={counts['active']}, queued={counts['queued']}, "
        f"completed={counts['completed']}, declined={counts['declined']}"
    )
    return {"groups": groups, "counts": counts}
