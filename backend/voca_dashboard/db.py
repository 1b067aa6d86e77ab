from typing import Any, Dict, List, Optional
from uuid import uuid4
from datetime import datetime, timezone
import logging
import re

# Lightweight adapter over the Supabase `system_prompts` table, with an
# in-memory fallback when SUPABASE_URL is missing.
from supabase import create_client, Client

from .config import get_config

logger = logging.getLogger(__name__)

TABLE = "system_prompts"
DEFAULT_KEY = "default"
DEFAULT_PROMPT = "You are Voca, a helpful voice assistant..."

# Supabase schema SQL for reference:
#
# CREATE TABLE system_prompts (
#   id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
#   key text UNIQUE NOT NULL,
#   prompt text NOT NULL,
#   is_default boolean DEFAULT false,
#   created_at timestamptz DEFAULT now(),
#   updated_at timestamptz DEFAULT now()
# );


class PromptStoreError(Exception):
    pass


class PromptNotFoundError(PromptStoreError):
    pass


def slugify_prompt_name(name: str) -> str:
    key = re.sub(r"[^a-z0-9]+", "-", name.lower().strip())
    return key.strip("-")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class BasePromptStore:
    def get_by_key(self, key: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def get_all(self) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def upsert(self, key: str, prompt: str, is_default: bool = False) -> Dict[str, Any]:
        raise NotImplementedError

    def get(self, key: str = DEFAULT_KEY) -> str:
        """Prompt text for ``key``, falling back to the default prompt."""
        row = self.get_by_key(key)
        if row is None and key != DEFAULT_KEY:
            row = self.get_by_key(DEFAULT_KEY)
        if row is None:
            raise PromptNotFoundError(f"Failed to fetch system prompt: no prompt stored for '{key}'")
        return row.get("prompt") or ""

    def update(self, prompt: str) -> Dict[str, Any]:
        return self.upsert(DEFAULT_KEY, prompt, True)

    def update_by_key(self, key: str, prompt: str, is_default: bool = False) -> Dict[str, Any]:
        return self.upsert(key, prompt, is_default)

    def create(self, name: str, prompt: str, is_default: bool = False) -> Dict[str, Any]:
        key = slugify_prompt_name(name)
        if not key:
            raise PromptStoreError("Invalid prompt name. Please use alphanumeric characters and spaces.")
        if self.get_by_key(key) is not None:
            raise PromptStoreError(f'A prompt with the name "{name}" already exists. Please choose a different name.')
        return self.upsert(key, prompt, is_default)

    def reset(self) -> Dict[str, Any]:
        return self.update(DEFAULT_PROMPT)


class InMemoryPromptStore(BasePromptStore):
    def __init__(self) -> None:
        self.prompts: Dict[str, Dict[str, Any]] = {}

    def get_all(self) -> List[Dict[str, Any]]:
        return sorted(self.prompts.values(), key=lambda row: row["created_at"], reverse=True)

    def get_by_key(self, key: str) -> Optional[Dict[str, Any]]:
        return self.prompts.get(key)

    def upsert(self, key: str, prompt: str, is_default: bool = False) -> Dict[str, Any]:
        now = _now()
        row = self.prompts.get(key)
        if row is None:
            row = {"id": str(uuid4()), "key": key, "created_at": now}
            self.prompts[key] = row
        row.update({"prompt": prompt, "is_default": is_default, "updated_at": now})
        return dict(row)


class SupabasePromptStore(BasePromptStore):
    def __init__(self, client: Client) -> None:
        self.client = client

    def get_all(self) -> List[Dict[str, Any]]:
        res = self.client.table(TABLE).select("*").order("created_at", desc=True).execute()
        return res.data or []

    def get_by_key(self, key: str) -> Optional[Dict[str, Any]]:
        res = self.client.table(TABLE).select("*").eq("key", key).limit(1).execute()
        rows = res.data or []
        return rows[0] if rows else None

    def upsert(self, key: str, prompt: str, is_default: bool = False) -> Dict[str, Any]:
        row = {"key": key, "prompt": prompt, "is_default": is_default, "updated_at": _now()}
        try:
            res = self.client.table(TABLE).upsert(row, on_conflict="key").execute()
        except Exception as e:
            logger.error(f"Failed to save system prompt '{key}': {str(e)}")
            raise PromptStoreError(f"Failed to save system prompt: {str(e)}")
        if not res.data:
            raise PromptStoreError("No data returned from Supabase")
        return res.data[0]


_client: Optional[Client] = None
_store_instance: Optional[BasePromptStore] = None


def get_prompt_store() -> BasePromptStore:
    global _client, _store_instance

    config = get_config()
    if config.supabase_url and config.supabase_key:
        if _client is None:
            _client = create_client(config.supabase_url, config.supabase_key)
        if _store_instance is None or not isinstance(_store_instance, SupabasePromptStore):
            _store_instance = SupabasePromptStore(_client)
        return _store_instance
    if _store_instance is None or not isinstance(_store_instance, InMemoryPromptStore):
        logger.warning("Supabase is not configured; system prompts are kept in memory")
        _store_instance = InMemoryPromptStore()
    return _store_instance
