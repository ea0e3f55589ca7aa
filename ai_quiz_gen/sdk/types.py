"""
Request and result types for the completion client.

Provider envelopes are decoded once at the HTTP boundary into these
dataclasses; nothing downstream inspects raw provider objects.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Optional, TypeVar


MESSAGE_ROLES = ("system", "user", "assistant")

T = TypeVar("T")


@dataclass(frozen=True)
class Message:
    """One message in a chat conversation."""
    role: str
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class ResponseFormat:
    """Structured output descriptor (JSON Schema)."""
    name: str
    schema: Dict[str, Any]
    strict: bool = True

    def to_payload(self) -> Dict[str, Any]:
        return {
            "type": "json_schema",
            "json_schema": {
                "name": self.name,
                "strict": self.strict,
                "schema": self.schema,
            },
        }


@dataclass(frozen=True)
class CompletionRequest:
    """Chat completion request.

    Unset model, temperature and max_tokens are filled from the client
    configuration when the request body is built.
    """
    messages: List[Message]
    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    top_p: Optional[float] = None
    frequency_penalty: Optional[float] = None
    presence_penalty: Optional[float] = None
    response_format: Optional[ResponseFormat] = None


@dataclass(frozen=True)
class CompletionMetadata:
    """Provider bookkeeping for one completion."""
    id: str
    created: int
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None


@dataclass(frozen=True)
class CompletionResult(Generic[T]):
    """Parsed result of a chat completion.

    tokens_used is authoritative for usage logging even when content later
    fails validation.
    """
    content: T
    tokens_used: int
    model: str
    finish_reason: str
    metadata: CompletionMetadata


@dataclass(frozen=True)
class EnvelopeUsage:
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    total_tokens: Optional[int] = None


@dataclass(frozen=True)
class EnvelopeChoice:
    content: Optional[str]
    finish_reason: str = ""


@dataclass(frozen=True)
class ProviderEnvelope:
    """Top-level provider response with required and optional fields spelled out."""
    id: str
    model: str
    created: int
    choices: List[EnvelopeChoice] = field(default_factory=list)
    usage: Optional[EnvelopeUsage] = None
