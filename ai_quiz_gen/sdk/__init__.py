"""
SDK for AI quiz generation.

Provides the completion client used to talk to the AI provider.
"""

from .completion_client import CompletionClient
from .types import CompletionRequest, CompletionResult, Message, ResponseFormat

__all__ = [
    "CompletionClient",
    "CompletionRequest",
    "CompletionResult",
    "Message",
    "ResponseFormat",
]
