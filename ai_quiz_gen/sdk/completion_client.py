"""
Completion client for an OpenAI-compatible chat completions provider.

Sends exactly one request per call (no retries), bounded by the configured
timeout, and maps every transport or HTTP failure onto the typed error
taxonomy. Provider envelopes are decoded once here into CompletionResult.
"""

import json
import logging
from typing import Any, Dict, List, Optional

import openai
from openai import OpenAI

from ..config.loader import GeneratorConfig
from ..core.errors import (
    ApiError,
    ConfigError,
    InvalidResponseError,
    NetworkError,
    ParseError,
    QuizGenerationError,
    RateLimitError,
    RequestTimeoutError,
    ValidationError,
)
from .types import (
    MESSAGE_ROLES,
    CompletionMetadata,
    CompletionRequest,
    CompletionResult,
    EnvelopeChoice,
    EnvelopeUsage,
    Message,
    ProviderEnvelope,
    ResponseFormat,
)

logger = logging.getLogger(__name__)

# Raw content kept in ParseError details for diagnostics
RAW_CONTENT_PREVIEW = 500


class CompletionClient:
    """Chat completion client with request validation and typed errors.

    The underlying openai client is created with max_retries=0 so a single
    call maps to a single provider request; retry policy belongs to callers.
    """

    def __init__(self, config: GeneratorConfig, client: Optional[OpenAI] = None):
        """Initialize the completion client.

        Args:
            config: Generator configuration (credential, endpoint, defaults)
            client: Pre-built OpenAI client (optional, mainly for tests)

        Raises:
            ConfigError: If the provider API key is missing
        """
        if not config.api_key or not config.api_key.strip():
            raise ConfigError(
                "OpenRouter API key is required. Please set OPENROUTER_API_KEY environment variable."
            )

        self.config = config
        self.client = client or OpenAI(
            api_key=config.api_key,
            base_url=config.api_url,
            timeout=config.timeout_seconds,
            max_retries=0,
            default_headers={
                "HTTP-Referer": config.http_referer,
                "X-Title": config.app_title,
            },
        )
        logger.info("Completion client initialized with model %s", config.default_model)

    def create_chat_request(
        self,
        messages: List[Message],
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        top_p: Optional[float] = None,
        frequency_penalty: Optional[float] = None,
        presence_penalty: Optional[float] = None,
        response_format: Optional[ResponseFormat] = None
    ) -> CompletionRequest:
        """Build a CompletionRequest; unset values fall back to config defaults at send time."""
        return CompletionRequest(
            messages=list(messages),
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
            top_p=top_p,
            frequency_penalty=frequency_penalty,
            presence_penalty=presence_penalty,
            response_format=response_format,
        )

    def complete(self, request: CompletionRequest) -> CompletionResult:
        """Send a chat completion request and return the parsed result.

        Args:
            request: Completion request with messages and parameters

        Returns:
            CompletionResult whose content is the message text, or the decoded
            JSON value when a response_format was requested

        Raises:
            ValidationError: Request failed validation (no network call made)
            RequestTimeoutError: Provider did not answer within the timeout
            NetworkError: Transport failed before a response was received
            RateLimitError: Provider returned 429
            ApiError: Provider returned another non-2xx status
            InvalidResponseError: Envelope lacks choices or message content
            ParseError: Structured output was not valid JSON
        """
        self._validate_request(request)
        body = self._build_request_body(request)
        response = self._execute_request(body)
        envelope = _decode_envelope(response, body["model"])
        return self._parse_envelope(envelope, request.response_format is not None)

    def validate_api_key(self) -> bool:
        """Check the configured credential with a minimal request.

        Returns:
            True if the provider accepted the request, False on an API error

        Raises:
            QuizGenerationError: For failures other than ApiError
        """
        probe = CompletionRequest(
            messages=[Message(role="user", content="test")],
            max_tokens=5,
        )
        try:
            self.complete(probe)
            return True
        except ApiError:
            return False

    def _validate_request(self, request: CompletionRequest) -> None:
        """Range-check every field before any I/O."""
        if not request.messages:
            raise ValidationError("Messages array cannot be empty")

        for message in request.messages:
            if not isinstance(message, Message) or not message.role or not message.content:
                raise ValidationError("Each message must have role and content")
            if message.role not in MESSAGE_ROLES:
                raise ValidationError(
                    f"Invalid message role: {message.role}. Must be system, user, or assistant"
                )

        if request.temperature is not None and not 0 <= request.temperature <= 2:
            raise ValidationError("Temperature must be between 0 and 2")

        if request.max_tokens is not None and request.max_tokens < 1:
            raise ValidationError("max_tokens must be greater than 0")

        if request.top_p is not None and not 0 <= request.top_p <= 1:
            raise ValidationError("top_p must be between 0 and 1")

        if request.frequency_penalty is not None and not -2 <= request.frequency_penalty <= 2:
            raise ValidationError("frequency_penalty must be between -2 and 2")

        if request.presence_penalty is not None and not -2 <= request.presence_penalty <= 2:
            raise ValidationError("presence_penalty must be between -2 and 2")

    def _build_request_body(self, request: CompletionRequest) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "model": request.model or self.config.default_model,
            "messages": [message.to_dict() for message in request.messages],
            "temperature": (
                request.temperature
                if request.temperature is not None
                else self.config.default_temperature
            ),
            "max_tokens": (
                request.max_tokens
                if request.max_tokens is not None
                else self.config.default_max_tokens
            ),
            "stream": False,
        }

        # Optional parameters only if provided
        if request.top_p is not None:
            body["top_p"] = request.top_p
        if request.frequency_penalty is not None:
            body["frequency_penalty"] = request.frequency_penalty
        if request.presence_penalty is not None:
            body["presence_penalty"] = request.presence_penalty
        if request.response_format is not None:
            body["response_format"] = request.response_format.to_payload()

        return body

    def _execute_request(self, body: Dict[str, Any]) -> Any:
        """POST the request and translate provider exceptions."""
        try:
            return self.client.chat.completions.create(
                timeout=self.config.timeout_seconds,
                **body
            )
        except openai.APITimeoutError:
            # Subclass of APIConnectionError, so it must be handled first
            logger.warning("Provider request timed out after %ss", self.config.timeout_seconds)
            raise RequestTimeoutError(self.config.timeout_seconds)
        except openai.APIConnectionError as e:
            logger.warning("Provider connection failed: %s", e)
            raise NetworkError(
                f"Failed to connect to completion provider: {e}",
                details={"original_error": repr(e.__cause__ or e)},
            ) from e
        except openai.APIStatusError as e:
            raise _map_status_error(e) from e
        except openai.APIResponseValidationError as e:
            raise ParseError(
                f"Failed to parse provider response: {e}",
                details={"status": e.status_code},
            ) from e
        except openai.APIError as e:
            raise ApiError(f"Completion provider error: {e}") from e

    def _parse_envelope(self, envelope: ProviderEnvelope, structured: bool) -> CompletionResult:
        # Usage is read first so envelope failures still report billed tokens
        usage = envelope.usage
        tokens_used = (usage.total_tokens or 0) if usage else 0

        if not envelope.choices:
            raise InvalidResponseError(
                "Provider response missing choices array",
                details={"id": envelope.id},
                tokens_used=tokens_used,
            )

        choice = envelope.choices[0]
        if choice.content is None:
            raise InvalidResponseError(
                "Provider response missing message content",
                details={"id": envelope.id, "finish_reason": choice.finish_reason},
                tokens_used=tokens_used,
            )

        content: Any = choice.content
        if structured:
            try:
                content = json.loads(choice.content)
            except (json.JSONDecodeError, RecursionError) as e:
                raise ParseError(
                    f"Failed to parse JSON response: {e}",
                    details={"content": choice.content[:RAW_CONTENT_PREVIEW]},
                    tokens_used=tokens_used,
                ) from e

        return CompletionResult(
            content=content,
            tokens_used=tokens_used,
            model=envelope.model,
            finish_reason=choice.finish_reason,
            metadata=CompletionMetadata(
                id=envelope.id,
                created=envelope.created,
                prompt_tokens=usage.prompt_tokens if usage else None,
                completion_tokens=usage.completion_tokens if usage else None,
            ),
        )


def _map_status_error(error: "openai.APIStatusError") -> QuizGenerationError:
    """Map a non-2xx provider response to a typed error."""
    status = error.status_code
    message = _error_body_message(error.body) or error.response.reason_phrase or str(error)
    details = {"status": status, "message": message}

    logger.warning("Provider returned HTTP %s: %s", status, message)

    if status == 429:
        return RateLimitError(f"Rate limit exceeded: {message}", details=details)
    if status in (401, 403):
        return ApiError(
            f"Authentication failed: {message}. Please check your API key.",
            kind=ApiError.AUTH,
            status=status,
        )
    if status >= 500:
        return ApiError(
            f"Completion provider server error ({status}): {message}",
            kind=ApiError.SERVER,
            status=status,
        )
    return ApiError(
        f"Completion provider API error ({status}): {message}",
        kind=ApiError.CLIENT,
        status=status,
    )


def _error_body_message(body: Any) -> Optional[str]:
    """Pull a human message out of a structured error body."""
    if not isinstance(body, dict):
        return None
    nested = body.get("error")
    if isinstance(nested, dict) and isinstance(nested.get("message"), str):
        return nested["message"]
    if isinstance(body.get("message"), str):
        return body["message"]
    return None


def _as_str(value: Any, default: str = "") -> str:
    return value if isinstance(value, str) else default


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def _decode_envelope(response: Any, requested_model: str) -> ProviderEnvelope:
    """Decode a provider response object into a ProviderEnvelope.

    Shape problems surface later as InvalidResponseError; this function never
    raises on missing optional fields.
    """
    raw_choices = getattr(response, "choices", None)
    choices: List[EnvelopeChoice] = []
    if isinstance(raw_choices, (list, tuple)):
        for raw_choice in raw_choices:
            message = getattr(raw_choice, "message", None)
            content = getattr(message, "content", None) if message is not None else None
            choices.append(EnvelopeChoice(
                content=content if isinstance(content, str) else None,
                finish_reason=_as_str(getattr(raw_choice, "finish_reason", None)),
            ))

    raw_usage = getattr(response, "usage", None)
    usage = None
    if raw_usage is not None:
        usage = EnvelopeUsage(
            prompt_tokens=_as_int(getattr(raw_usage, "prompt_tokens", None)),
            completion_tokens=_as_int(getattr(raw_usage, "completion_tokens", None)),
            total_tokens=_as_int(getattr(raw_usage, "total_tokens", None)),
        )

    return ProviderEnvelope(
        id=_as_str(getattr(response, "id", None)),
        model=_as_str(getattr(response, "model", None), requested_model),
        created=_as_int(getattr(response, "created", None)) or 0,
        choices=choices,
        usage=usage,
    )
