"""
Shared fixtures for quiz generation tests.
"""

import json
import os
import shutil
import tempfile
from unittest.mock import Mock

import httpx
import pytest

from ai_quiz_gen.config.loader import GeneratorConfig
from ai_quiz_gen.storage.repository import initialize_schema


PROVIDER_URL = "https://openrouter.ai/api/v1/chat/completions"


def build_quiz(num_questions=6, options_per_question=4, correct_per_question=1, title="JavaScript Closures"):
    """Build a quiz payload in the provider's JSON layout."""
    questions = []
    for i in range(num_questions):
        questions.append({
            "content": f"Question {i + 1} about closures?",
            "explanation": "Closures capture their lexical scope.",
            "options": [
                {"content": f"Option {j + 1}", "is_correct": j < correct_per_question}
                for j in range(options_per_question)
            ],
        })
    return {
        "title": title,
        "description": "Test your understanding of JavaScript closures.",
        "questions": questions,
    }


def fenced(payload):
    """Wrap a payload in a markdown json fence, the way models often reply."""
    return "Here is your quiz:\n```json\n" + json.dumps(payload, indent=2) + "\n```\nEnjoy!"


def make_response(content, total_tokens=150, prompt_tokens=100, completion_tokens=50,
                  finish_reason="stop", with_usage=True):
    """Build a provider response object shaped like the openai SDK's ChatCompletion."""
    response = Mock()
    response.id = "gen-123"
    response.model = "openai/gpt-4"
    response.created = 1700000000

    choice = Mock()
    choice.message.content = content
    choice.finish_reason = finish_reason
    response.choices = [choice]

    if with_usage:
        response.usage.prompt_tokens = prompt_tokens
        response.usage.completion_tokens = completion_tokens
        response.usage.total_tokens = total_tokens
    else:
        response.usage = None
    return response


def provider_request():
    return httpx.Request("POST", PROVIDER_URL)


def status_error(error_cls, status, body=None):
    """Build a real openai status error for a given HTTP status."""
    if body is not None:
        response = httpx.Response(status, request=provider_request(), json=body)
    else:
        response = httpx.Response(status, request=provider_request())
    return error_cls(f"Error code: {status}", response=response, body=body)


@pytest.fixture
def db_path():
    """Temporary database with the usage log schema."""
    temp_dir = tempfile.mkdtemp()
    path = os.path.join(temp_dir, "test.db")
    initialize_schema(path)
    yield path
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def config(db_path):
    return GeneratorConfig(
        api_key="sk-or-test",
        default_model="openai/gpt-4",
        default_temperature=0.7,
        default_max_tokens=2000,
        timeout_seconds=5.0,
        quota_limit=3,
        db_path=db_path,
    )


@pytest.fixture
def openai_client():
    """Mock of the openai client; tests configure chat.completions.create."""
    return Mock()
