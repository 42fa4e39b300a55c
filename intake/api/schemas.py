from typing import List, Literal, Optional, Union
from pydantic import BaseModel, Field, field_validator

EventKind = Literal["text", "contact", "command"]

class InboundEvent(BaseModel):
    userId: str = Field(min_length=1)
    kind: EventKind = "text"
    payload: Optional[str] = None

    @field_validator("userId", mode="before")
    @classmethod
    def _stringify_user_id(cls, v: Union[str, int]) -> str:
        # Transports commonly send numeric chat ids
        return str(v) if isinstance(v, int) else v

class PromptOut(BaseModel):
    text: str
    choices: Optional[List[List[str]]] = None

class EventResponse(BaseModel):
    status: Literal["success", "error"] = "success"
    outcome: str
    prompts: List[PromptOut] = Field(default_factory=list)

class BlockRequest(BaseModel):
    reason: str = Field(default="operator", max_length=200)
    durationMinutes: int = Field(default=60, gt=0, le=60 * 24 * 365)
