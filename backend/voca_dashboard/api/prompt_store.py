from fastapi import APIRouter, Depends
from typing import List
import logging

from ..db import BasePromptStore, PromptNotFoundError, get_prompt_store
from ..schemas.pydantic_schemas import StoredPrompt, StoredPromptCreate, StoredPromptUpdate

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=List[StoredPrompt])
async def list_stored_prompts(store: BasePromptStore = Depends(get_prompt_store)):
    return store.get_all()


@router.post("/", response_model=StoredPrompt, status_code=201)
async def create_stored_prompt(body: StoredPromptCreate, store: BasePromptStore = Depends(get_prompt_store)):
    row = store.create(body.name, body.prompt, body.is_default)
    logger.info(f"Created stored prompt '{row['key']}'")
    return row


@router.post("/reset", response_model=StoredPrompt)
async def reset_stored_prompt(store: BasePromptStore = Depends(get_prompt_store)):
    return store.reset()


@router.get("/{key}/text")
async def get_stored_prompt_text(key: str, store: BasePromptStore = Depends(get_prompt_store)):
    return {"key": key, "prompt": store.get(key)}


@router.get("/{key}", response_model=StoredPrompt)
async def get_stored_prompt(key: str, store: BasePromptStore = Depends(get_prompt_store)):
    row = store.get_by_key(key)
    if row is None:
        raise PromptNotFoundError(f"No system prompt stored for '{key}'")
    return row


@router.put("/{key}", response_model=StoredPrompt)
async def update_stored_prompt(key: str, body: StoredPromptUpdate, store: BasePromptStore = Depends(get_prompt_store)):
    existing = store.get_by_key(key)
    is_default = body.is_default if body.is_default is not None else bool((existing or {}).get("is_default"))
    return store.update_by_key(key, body.prompt, is_default)
