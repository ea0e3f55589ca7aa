"""
Prompt construction for quiz generation.

The instruction text is a versioned contract with the response validator:
the question and option counts below are imported by validation.py, so the
prompt and the schema can never disagree.
"""

from dataclasses import dataclass
from typing import List

from ai_quiz_gen.sdk.types import Message


PROMPT_VERSION = "quiz-generation/v1"

MIN_QUESTIONS = 5
MAX_QUESTIONS = 10
OPTIONS_PER_QUESTION = 4

SYSTEM_MESSAGE = (
    "You are a professional educational content creator specializing in creating "
    "high-quality quizzes. Your quizzes are:\n"
    "- Accurate and well-researched\n"
    "- Educational and engaging\n"
    "- Fair and unambiguous\n"
    "- Properly structured with varied difficulty\n"
    "- Free from bias or inappropriate content\n"
    "\n"
    "Always respond with valid JSON only, following the exact schema provided "
    "in the user's prompt."
)

_USER_TEMPLATE = """You are an expert quiz creator. Generate a high-quality quiz based on the following user request:

USER REQUEST: "{topic}"

INSTRUCTIONS:
1. Create a quiz with a clear, descriptive title
2. Write a brief description (1-2 sentences) explaining what the quiz covers
3. Generate {min_q}-{max_q} questions that thoroughly test knowledge on the topic
4. For each question:
   - Write a clear, unambiguous question
   - Provide exactly {n_opt} answer options
   - Mark exactly ONE option as correct
   - Optionally include a brief explanation of why the correct answer is right
5. Ensure questions progress from easier to more challenging
6. Use varied question types (definitions, applications, scenarios)
7. Avoid ambiguous or trick questions

REQUIRED OUTPUT FORMAT (valid JSON):
{{
  "title": "Quiz Title Here",
  "description": "Brief description of the quiz topic and scope",
  "questions": [
    {{
      "content": "Question text here?",
      "explanation": "Optional explanation of the correct answer",
      "options": [
        {{ "content": "First option", "is_correct": false }},
        {{ "content": "Second option", "is_correct": true }},
        {{ "content": "Third option", "is_correct": false }},
        {{ "content": "Fourth option", "is_correct": false }}
      ]
    }}
  ]
}}

IMPORTANT:
- Return ONLY valid JSON, no additional text or markdown
- Ensure exactly ONE option per question has "is_correct": true
- Each question must have exactly {n_opt} options
- Keep questions concise but clear
- Make sure the quiz is appropriate and educational

Generate the quiz now:"""


@dataclass(frozen=True)
class QuizPrompt:
    """System and user messages for one generation request."""
    system: str
    user: str


def build_prompt(topic: str) -> QuizPrompt:
    """Build the deterministic system/user prompt pair for a topic.

    The topic length bound is enforced by the caller, not here.
    """
    user = _USER_TEMPLATE.format(
        topic=topic,
        min_q=MIN_QUESTIONS,
        max_q=MAX_QUESTIONS,
        n_opt=OPTIONS_PER_QUESTION,
    )
    return QuizPrompt(system=SYSTEM_MESSAGE, user=user)


def build_messages(topic: str) -> List[Message]:
    """Ordered [system, user] message list for the completion client."""
    prompt = build_prompt(topic)
    return [
        Message(role="system", content=prompt.system),
        Message(role="user", content=prompt.user),
    ]
