from fastapi import APIRouter, Depends, HTTPException
import logging

from ..schemas.pydantic_schemas import PromptListResponse, PromptRecord, SystemPromptPayload, WelcomeMessageUpdate
from ..services.backend_client import BackendClient, BackendError, SystemPromptApi, parse_json_payload
from ..services.normalizer import extract_prompt_list
from .deps import get_backend_client, get_organization_id

# Set up logger
logger = logging.getLogger(__name__)

router = APIRouter()


def _first_prompt(payload, endpoint: str) -> PromptRecord:
    prompts = extract_prompt_list(parse_json_payload(payload, endpoint))
    if not prompts:
        raise HTTPException(status_code=404, detail="System prompt not found")
    return prompts[0]


@router.get("/", response_model=PromptListResponse)
async def list_prompts(organization_id: str = Depends(get_organization_id), client: BackendClient = Depends(get_backend_client)):
    api = SystemPromptApi(client)
    try:
        response = await api.list(organization_id)
    except BackendError as e:
        # Older backends have no /list endpoint
        logger.warning(f"Prompt list endpoint failed, trying active prompt: {str(e)}")
        response = await api.get_active(organization_id)
    items = extract_prompt_list(parse_json_payload(response, "/api/system-prompt/list"))
    logger.info(f"Loaded {len(items)} prompts for organization '{organization_id or 'none'}'")
    return {"items": items, "total": len(items)}


@router.get("/active", response_model=PromptRecord)
async def get_active_prompt(organization_id: str = Depends(get_organization_id), client: BackendClient = Depends(get_backend_client)):
    response = await SystemPromptApi(client).get_active(organization_id)
    return _first_prompt(response, "/api/system-prompt")


@router.post("/", response_model=PromptRecord, status_code=201)
async def create_prompt(body: SystemPromptPayload, organization_id: str = Depends(get_organization_id), client: BackendClient = Depends(get_backend_client)):
    response = await SystemPromptApi(client).create(body.model_dump(exclude_none=True), organization_id)
    return _first_prompt(response, "/api/system-prompt")


@router.post("/reset", response_model=PromptRecord)
async def reset_prompt(organization_id: str = Depends(get_organization_id), client: BackendClient = Depends(get_backend_client)):
    response = await SystemPromptApi(client).reset(organization_id)
    return _first_prompt(response, "/api/system-prompt/reset")


@router.put("/welcome-message")
async def update_welcome_message(body: WelcomeMessageUpdate, organization_id: str = Depends(get_organization_id), client: BackendClient = Depends(get_backend_client)):
    response = await SystemPromptApi(client).update_welcome_message(body.welcome_message, organization_id)
    prompts = extract_prompt_list(parse_json_payload(response, "/api/system-prompt/welcome-message"))
    return {"updated": True, "prompt": prompts[0] if prompts else None}


@router.get("/{prompt_id}", response_model=PromptRecord)
async def get_prompt(prompt_id: str, organization_id: str = Depends(get_organization_id), client: BackendClient = Depends(get_backend_client)):
    response = await SystemPromptApi(client).get_by_id(prompt_id, organization_id)
    return _first_prompt(response, f"/api/system-prompt/{prompt_id}")


@router.put("/{prompt_id}", response_model=PromptRecord)
async def update_prompt(prompt_id: str, body: SystemPromptPayload, organization_id: str = Depends(get_organization_id), client: BackendClient = Depends(get_backend_client)):
    response = await SystemPromptApi(client).update(prompt_id, body.model_dump(exclude_none=True), organization_id)
    return _first_prompt(response, f"/api/system-prompt/{prompt_id}")


@router.post("/{prompt_id}/activate")
async def activate_prompt(prompt_id: str, organization_id: str = Depends(get_organization_id), client: BackendClient = Depends(get_backend_client)):
    response = await SystemPromptApi(client).activate(prompt_id, organization_id)
    prompts = extract_prompt_list(parse_json_payload(response, f"/api/system-prompt/{prompt_id}/activate"))
    return {"activated": prompt_id, "prompt": prompts[0] if prompts else None}
