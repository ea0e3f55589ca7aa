"""
AI quiz generation orchestrator.

Sequences one generation request:

1. Quota gate - refuse before any provider call when the limit is reached
2. Prompt - build the deterministic system/user messages
3. Completion - one provider call; tokens_used is captured immediately
4. Validation - recover JSON and check it against the quiz contract
5. Usage log - written whenever tokens were consumed, success or not,
   before any error is surfaced

Usage is logged even when validation fails so quota cannot be bypassed by
provoking malformed output after a costly call.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from ai_quiz_gen.config.loader import GeneratorConfig
from ai_quiz_gen.sdk.completion_client import CompletionClient
from ai_quiz_gen.storage.models import UsageLogEntry
from ai_quiz_gen.storage.repository import UsageRepository

from .errors import QuizGenerationError, QuotaExceededError, ValidationError
from .prompts import PROMPT_VERSION, build_messages
from .quota import QuotaService
from .validation import GeneratedQuizContent, parse_and_validate, quiz_response_format

logger = logging.getLogger(__name__)

PROMPT_MAX_LENGTH = 1000

# Characters of raw model output logged when validation fails
RESPONSE_PREVIEW = 200


@dataclass(frozen=True)
class GenerationCommand:
    """A validated generation request with the parameters it will run with."""
    prompt: str
    model: str
    temperature: float


@dataclass(frozen=True)
class GenerationResult:
    """Validated quiz content plus the parameters used to generate it."""
    content: GeneratedQuizContent
    model: str
    prompt: str
    temperature: float
    tokens_used: int
    prompt_version: str = PROMPT_VERSION


class QuizGenerator:
    """Runs the end-to-end generation flow for a single user request.

    Holds no per-request state; one instance serves every request.
    """

    def __init__(
        self,
        config: GeneratorConfig,
        client: CompletionClient,
        quota_service: QuotaService,
        repository: UsageRepository
    ):
        self.config = config
        self.client = client
        self.quota_service = quota_service
        self.repository = repository

    def create_command(self, prompt: str) -> GenerationCommand:
        """Build a GenerationCommand from user input and configured defaults.

        Raises:
            ValidationError: If the prompt is empty or longer than 1000 characters
        """
        text = (prompt or "").strip()
        if not text:
            raise ValidationError(
                "Prompt is required",
                details={"violations": [{"path": "prompt", "message": "Prompt is required"}]},
            )
        if len(text) > PROMPT_MAX_LENGTH:
            message = f"Prompt must be at most {PROMPT_MAX_LENGTH} characters"
            raise ValidationError(
                message,
                details={"violations": [{"path": "prompt", "message": message}]},
            )

        return GenerationCommand(
            prompt=text,
            model=self.config.default_model,
            temperature=self.config.default_temperature,
        )

    def generate(self, user_id: str, prompt: str) -> GenerationResult:
        """Generate validated quiz content for a user.

        Args:
            user_id: Authenticated caller identity
            prompt: Free-text description of the quiz

        Returns:
            GenerationResult with the validated content and generation parameters

        Raises:
            QuotaExceededError: User has no attempts left (no provider call made)
            QuizGenerationError: Any other typed failure from the pipeline
        """
        try:
            command = self.create_command(prompt)

            quota = self.quota_service.get_quota(user_id)
            if quota.has_reached_limit:
                logger.warning(
                    "User %s reached AI generation limit (%s/%s)",
                    user_id, quota.used, quota.limit
                )
                raise QuotaExceededError(quota)

            logger.info(
                "Generating quiz for user %s with model %s (prompt %s)",
                user_id, command.model, PROMPT_VERSION
            )
            return self._run(user_id, command)
        except QuizGenerationError as e:
            logger.warning("Quiz generation failed for user %s: [%s] %s", user_id, e.code.value, e.message)
            raise

    def log_usage(self, user_id: str, model: str, tokens_used: int) -> None:
        """Append one usage log row when logging is enabled and tokens were spent.

        Storage errors propagate: the usage log is the quota source of truth.
        """
        if not self.config.enable_usage_logging or tokens_used <= 0:
            return

        self.repository.insert(UsageLogEntry(
            user_id=user_id,
            model_used=model,
            tokens_used=tokens_used,
            requested_at=datetime.now(),
        ))
        logger.debug("Logged %s tokens for user %s (%s)", tokens_used, user_id, model)

    def _run(self, user_id: str, command: GenerationCommand) -> GenerationResult:
        response_format = quiz_response_format() if self.config.use_structured_output else None
        request = self.client.create_chat_request(
            build_messages(command.prompt),
            model=command.model,
            temperature=command.temperature,
            max_tokens=self.config.default_max_tokens,
            response_format=response_format,
        )

        tokens_used = 0
        try:
            result = self.client.complete(request)
            tokens_used = result.tokens_used
            content = self._validate(result.content)
        except QuizGenerationError as e:
            if e.tokens_used:
                tokens_used = e.tokens_used
            raise
        finally:
            self.log_usage(user_id, command.model, tokens_used)

        return GenerationResult(
            content=content,
            model=command.model,
            prompt=command.prompt,
            temperature=command.temperature,
            tokens_used=tokens_used,
        )

    def _validate(self, raw: Any) -> GeneratedQuizContent:
        try:
            return parse_and_validate(raw)
        except QuizGenerationError:
            if isinstance(raw, str):
                logger.debug(
                    "Invalid AI response (%s chars): %s",
                    len(raw), raw[:RESPONSE_PREVIEW]
                )
            raise


def build_generator(config: GeneratorConfig, client: Optional[CompletionClient] = None) -> QuizGenerator:
    """Wire a QuizGenerator from configuration.

    Raises:
        ConfigError: If the provider API key is missing
    """
    repository = UsageRepository(config.db_path)
    return QuizGenerator(
        config=config,
        client=client or CompletionClient(config),
        quota_service=QuotaService(repository, config.quota_limit),
        repository=repository,
    )
