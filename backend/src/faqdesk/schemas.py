"""Data model shared by the retrieval, conversation and ticket modules."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    """Author of a chat message."""

    USER = "user"
    ASSISTANT = "assistant"


class Severity(str, Enum):
    """Ticket severity."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    CRITICAL = "critical"


class Environment(str, Enum):
    """Platform the user reported the problem on."""

    WEB = "web"
    IOS = "ios"
    ANDROID = "android"
    API = "api"
    UNKNOWN = "unknown"


class ChatMessage(BaseModel):
    """One chat turn. Ordered sequences of messages form a conversation."""

    model_config = ConfigDict(frozen=True)

    role: Role = Field(..., description="Who wrote the message")
    content: str = Field(..., description="Message text")


class Passage(BaseModel):
    """A knowledge-base entry scored against a query."""

    model_config = ConfigDict(frozen=True)

    id: int = Field(..., description="FAQ entry identifier")
    question: str = Field(..., description="Stored FAQ question")
    answer: str = Field(..., description="Stored FAQ answer")
    similarity: float = Field(..., ge=0.0, le=1.0, description="Cosine similarity to the query")


class TicketDraft(BaseModel):
    """Structured ticket synthesized from a conversation.

    ``summary`` is the rendered, human-readable block (issue line, severity,
    environment, body, steps and references) that gets persisted.
    """

    model_config = ConfigDict(frozen=True)

    title: str = Field(..., min_length=1, max_length=90)
    summary: str = Field(..., min_length=1)
    severity: Severity = Severity.NORMAL
    environment: Environment = Environment.UNKNOWN
    steps: tuple[str, ...] = Field(default=(), max_length=10)
    faq_refs: frozenset[int] = Field(default_factory=frozenset)
