from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any, Tuple, Union


class ProxyRequest(BaseModel):
    method: str
    path_segments: List[str] = Field(default_factory=list)
    query_params: List[Tuple[str, str]] = Field(default_factory=list)
    headers: List[Tuple[str, str]] = Field(default_factory=list)
    body: Optional[str] = None
    # Incoming request URL, used when path_segments is empty
    url: Optional[str] = None


class ProxyResponse(BaseModel):
    status_code: int
    content_type: str = "application/json"
    body: Any = None
    headers: Dict[str, str] = Field(default_factory=dict)
    is_json: bool = True


class PromptRecord(BaseModel):
    id: str
    name: str
    prompt: str = ""
    welcome_message: Optional[str] = None
    is_active: bool = False
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class ConversationRecord(BaseModel):
    id: str
    call_sid: Optional[str] = None
    lead_status: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    lead_data: Optional[Dict[str, Any]] = None
    transcript: Optional[Any] = None


class CallStatusRecord(BaseModel):
    sid: str = "unknown"
    to: str = "unknown"
    status: str = "unknown"
    duration_seconds: Optional[Union[int, float]] = None
    duration_human: Optional[str] = None
    started_at: Optional[str] = None
    ended_at: Optional[str] = None
    from_number: Optional[str] = None
    direction: Optional[str] = None


class CallStatusGroups(BaseModel):
    active: List[CallStatusRecord] = Field(default_factory=list)
    queued: List[CallStatusRecord] = Field(default_factory=list)
    completed: List[CallStatusRecord] = Field(default_factory=list)
    declined: List[CallStatusRecord] = Field(default_factory=list)


class CallStatusGroupsResponse(BaseModel):
    groups: CallStatusGroups
    counts: Dict[str, int]


class PromptListResponse(BaseModel):
    items: List[PromptRecord]
    total: int


class ConversationListResponse(BaseModel):
    items: List[ConversationRecord]
    total: int


class SystemPromptPayload(BaseModel):
    name: Optional[str] = None
    prompt: str
    welcome_message: Optional[str] = None
    is_active: Optional[bool] = None


class WelcomeMessageUpdate(BaseModel):
    welcome_message: str


class MakeCallRequest(BaseModel):
    phone_number: str
    country_code: Optional[str] = None


class Country(BaseModel):
    name: str
    code: str


class StoredPromptCreate(BaseModel):
    name: str
    prompt: str
    is_default: bool = False


class StoredPromptUpdate(BaseModel):
    prompt: str
    is_default: Optional[bool] = None


class StoredPrompt(BaseModel):
    id: Optional[str] = None
    key: str
    prompt: str
    is_default: bool = False
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
