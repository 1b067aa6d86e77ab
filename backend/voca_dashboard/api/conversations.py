from fastapi import APIRouter, Depends, HTTPException, Query
import logging

from ..schemas.pydantic_schemas import ConversationListResponse, ConversationRecord
from ..services.backend_client import BackendClient, ConversationsApi, parse_json_payload
from ..services.normalizer import extract_conversation_list, normalize_conversation
from .deps import get_backend_client, get_organization_id

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=ConversationListResponse)
async def list_conversations(
    limit: int = Query(default=50, ge=1, le=500),
    organization_id: str = Depends(get_organization_id),
    client: BackendClient = Depends(get_backend_client),
):
    if not organization_id:
        logger.info("No organization selected; returning no conversations")
        return {"items": [], "total": 0}
    response = await ConversationsApi(client).list(organization_id, limit)
    items = extract_conversation_list(parse_json_payload(response, "/api/conversations"))
    return {"items": items, "total": len(items)}


@router.get("/{conversation_id}", response_model=ConversationRecord)
async def get_conversation(
    conversation_id: str,
    organization_id: str = Depends(get_organization_id),
    client: BackendClient = Depends(get_backend_client),
):
    response = await ConversationsApi(client).get(organization_id, conversation_id)
    conversation = normalize_conversation(parse_json_payload(response, f"/api/conversations/{conversation_id}"))
    if conversation is None:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return conversation
