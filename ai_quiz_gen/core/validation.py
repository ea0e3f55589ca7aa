"""
Schema validation for AI-generated quiz content.

The quiz contract is declared once as pydantic models; the same models
produce the structured-output JSON Schema sent to the provider. Validation
collects every violation instead of stopping at the first one, so provider
drift (e.g. a model that changed its option count) is visible in a single
error.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, StrictBool, StrictStr, field_validator
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError
from .json_extractor import extract_json
from .prompts import MAX_QUESTIONS, MIN_QUESTIONS, OPTIONS_PER_QUESTION
from ai_quiz_gen.sdk.types import ResponseFormat


TITLE_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 500


class GeneratedOption(BaseModel):
    content: StrictStr = Field(..., min_length=1)
    is_correct: StrictBool


class GeneratedQuestion(BaseModel):
    content: StrictStr = Field(..., min_length=1)
    explanation: Optional[StrictStr] = None
    options: List[GeneratedOption] = Field(
        ...,
        min_length=OPTIONS_PER_QUESTION,
        max_length=OPTIONS_PER_QUESTION,
    )

    @field_validator("options")
    @classmethod
    def exactly_one_correct(cls, options: List[GeneratedOption]) -> List[GeneratedOption]:
        correct = sum(1 for option in options if option.is_correct)
        if correct != 1:
            raise ValueError(f"must have exactly one correct option (got {correct})")
        return options


class GeneratedQuizContent(BaseModel):
    """Validated quiz content; always 5-10 questions with one correct option each."""
    title: StrictStr = Field(..., min_length=1, max_length=TITLE_MAX_LENGTH)
    description: StrictStr = Field(..., min_length=1, max_length=DESCRIPTION_MAX_LENGTH)
    questions: List[GeneratedQuestion] = Field(
        ...,
        min_length=MIN_QUESTIONS,
        max_length=MAX_QUESTIONS,
    )

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


@dataclass(frozen=True)
class Violation:
    """A single schema violation at a dotted field path."""
    path: str
    message: str

    @classmethod
    def from_error(cls, error: Dict[str, Any]) -> "Violation":
        """Build a violation from one entry of pydantic's ``errors()`` list."""
        path = ".".join(str(part) for part in error["loc"])
        message = error["msg"]
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        return cls(path, message)

    def to_dict(self) -> Dict[str, str]:
        return {"path": self.path, "message": self.message}

    def __str__(self) -> str:
        return f"{self.path}: {self.message}" if self.path else self.message


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating a candidate value."""
    content: Optional[GeneratedQuizContent] = None
    violations: List[Violation] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.content is not None and not self.violations

    def unwrap(self) -> GeneratedQuizContent:
        """Return validated content or raise ValidationError listing all violations."""
        if not self.ok:
            summary = ", ".join(str(v) for v in self.violations)
            raise ValidationError(
                f"AI response validation failed: {summary}",
                details={"violations": [v.to_dict() for v in self.violations]},
            )
        return self.content


def validate_quiz_content(candidate: Any) -> ValidationResult:
    """Check a parsed value against the quiz content contract.

    Args:
        candidate: Value produced by the JSON extractor or structured output

    Returns:
        ValidationResult holding either the content or every violation found
    """
    if not isinstance(candidate, dict):
        return ValidationResult(violations=[Violation("", "quiz must be a JSON object")])

    try:
        return ValidationResult(content=GeneratedQuizContent.model_validate(candidate))
    except PydanticValidationError as e:
        return ValidationResult(violations=[Violation.from_error(error) for error in e.errors()])


def parse_and_validate(raw: Any) -> GeneratedQuizContent:
    """Extract JSON from model output (when still text) and validate it.

    Raises:
        ParseError: If no JSON could be recovered from text
        ValidationError: If the recovered value violates the schema
    """
    candidate = extract_json(raw).unwrap() if isinstance(raw, str) else raw
    return validate_quiz_content(candidate).unwrap()


def quiz_response_format() -> ResponseFormat:
    """Structured-output descriptor generated from GeneratedQuizContent."""
    return ResponseFormat(
        name="quiz_response",
        schema=GeneratedQuizContent.model_json_schema(),
        strict=False,
    )
