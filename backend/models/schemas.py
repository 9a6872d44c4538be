import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

PROMPT_MAX_LENGTH = 5000


class CamelModel(BaseModel):
    """Accepts and emits camelCase keys (conversationId, createdAt, ...)."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class PromptRequest(CamelModel):
    conversation_id: Optional[str] = None
    prompt: str = Field(..., min_length=1, max_length=PROMPT_MAX_LENGTH)
    model: Optional[str] = None
    stream: bool = False

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {"prompt": "Hello! How are you?", "model": "qwen2.5vl:7b", "stream": False},
                {
                    "conversationId": "550e8400-e29b-41d4-a716-446655440000",
                    "prompt": "And what do you think?",
                    "stream": True,
                },
            ]
        }
    )

    @field_validator("conversation_id")
    @classmethod
    def conversation_id_must_be_uuid(cls, v):
        if v is None:
            return v
        try:
            return str(uuid.UUID(v))
        except ValueError as e:
            raise ValueError("conversationId must be a valid UUID") from e

    @field_validator("prompt")
    @classmethod
    def prompt_must_not_be_blank(cls, v):
        if not v.strip():
            raise ValueError("prompt must not be empty")
        return v

    @field_validator("model")
    @classmethod
    def blank_model_means_default(cls, v):
        if v is not None and not v.strip():
            return None
        return v


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; every stored timestamp is UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class PromptOut(CamelModel):
    id: str
    conversation_id: str
    prompt: str
    response: Optional[str] = None
    model: str
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def created_at_is_utc(cls, v):
        return as_utc(v)


class ConversationSummary(CamelModel):
    id: str
    created_at: datetime
    updated_at: datetime

    @field_validator("created_at", "updated_at")
    @classmethod
    def timestamps_are_utc(cls, v):
        return as_utc(v)


class ConversationOut(ConversationSummary):
    prompts: List[PromptOut] = []


class PromptEnvelope(CamelModel):
    conversation_id: str
    prompt_id: str
    prompt: str
    response: str
    model: str
    timestamp: datetime


class ModelList(BaseModel):
    total_models: int
    models: List[Dict[str, Any]]
