from typing import Any, Literal

from pydantic import BaseModel, Field


class UserData(BaseModel):
    id: int
    email: str
    full_name: str
    is_active: bool = True
    roles: str = "user"


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserData


class RegisterRequest(BaseModel):
    email: str
    full_name: str
    password: str


class LoginRequest(BaseModel):
    email: str
    password: str


class Agent(BaseModel):
    id: int
    name: str
    personality: str
    feedback_style: str
    system_prompt: str
    is_active: bool = True
    user_id: int | None = None  # Owner, None for shared agents
    created_at: str
    updated_at: str | None = None


class AgentCreate(BaseModel):
    name: str
    personality: str
    feedback_style: str
    system_prompt: str
    user_id: int | None = None


class AgentUpdate(BaseModel):
    name: str | None = None
    personality: str | None = None
    feedback_style: str | None = None
    system_prompt: str | None = None
    is_active: bool | None = None


class ChatMessage(BaseModel):
    id: int
    user_id: int
    agent_id: int | None = None
    message: str
    response: str
    created_at: str


class ChatMessageWithAgent(ChatMessage):
    context_used: str | None = None
    agent: Agent | None = None


class ChatMessageCreate(BaseModel):
    """Body of ``POST /api/v1/chat/send``.

    ``request_id`` lets the backend reject a duplicate submission of the same
    message with 409.
    """

    user_id: int
    message: str
    request_id: str
    response: str | None = None
    agent_id: int | None = None


class ChatHistoryResponse(BaseModel):
    messages: list[ChatMessage]
    total_count: int
    skip: int
    limit: int


class ChatStatisticsResponse(BaseModel):
    total_messages: int
    first_message_date: str | None = None
    last_message_date: str | None = None


class ConversationSummary(BaseModel):
    agent_id: int
    message_count: int
    latest_message_date: str
    first_message_date: str
    latest_message: str
    latest_response: str


CommunicationStyle = Literal["formal", "casual", "technical", "balanced"]
ResponseLength = Literal["short", "medium", "detailed"]
Language = Literal["en", "vi"]


class UserProfileCreate(BaseModel):
    communication_style: CommunicationStyle = "balanced"
    response_length_preference: ResponseLength = "medium"
    language_preference: Language = "en"
    interests: list[str] = Field(default_factory=list)
    preferences: dict[str, Any] = Field(default_factory=dict)


class UserProfileUpdate(BaseModel):
    communication_style: CommunicationStyle | None = None
    response_length_preference: ResponseLength | None = None
    language_preference: Language | None = None
    interests: list[str] | None = None
    preferences: dict[str, Any] | None = None


class UserProfile(BaseModel):
    id: int
    user_id: int
    communication_style: CommunicationStyle
    response_length_preference: ResponseLength
    language_preference: Language
    interests: list[str] = Field(default_factory=list)
    preferences: dict[str, Any] = Field(default_factory=dict)
    total_interactions: int = 0
    preferred_topics: list[str] = Field(default_factory=list)
    interaction_patterns: dict[str, Any] = Field(default_factory=dict)
    created_at: str
    updated_at: str


class PersonalizationData(BaseModel):
    communication_style: str
    response_length_preference: str
    language_preference: str
    interests: list[str] = Field(default_factory=list)
    preferences: dict[str, Any] = Field(default_factory=dict)
    preferred_topics: list[str] = Field(default_factory=list)
    total_interactions: int = 0


class ConnectionTestResult(BaseModel):
    working_url: str | None
    error: str | None = None
