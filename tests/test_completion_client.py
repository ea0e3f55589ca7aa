"""
Tests for the completion client.

The openai client is mocked; provider failures are raised as the real
openai exception types built around httpx responses.
"""

import json
from dataclasses import replace
from unittest.mock import patch

import openai
import pytest

from conftest import make_response, provider_request, status_error

from ai_quiz_gen.core.errors import (
    ApiError,
    ConfigError,
    ErrorCode,
    InvalidResponseError,
    NetworkError,
    ParseError,
    RateLimitError,
    RequestTimeoutError,
    ValidationError,
)
from ai_quiz_gen.sdk import CompletionClient, CompletionRequest, Message, ResponseFormat


def _request(**kwargs):
    messages = kwargs.pop("messages", [Message(role="user", content="Hello")])
    return CompletionRequest(messages=messages, **kwargs)


@pytest.fixture
def client(config, openai_client):
    return CompletionClient(config, client=openai_client)


class TestClientConstruction:
    """Test client initialization."""

    @pytest.mark.parametrize("api_key", ["", "   "])
    def test_missing_api_key(self, config, api_key):
        with pytest.raises(ConfigError) as excinfo:
            CompletionClient(replace(config, api_key=api_key))
        assert excinfo.value.code is ErrorCode.CONFIG_ERROR

    @patch('ai_quiz_gen.sdk.completion_client.OpenAI')
    def test_builds_openai_client(self, mock_openai, config):
        client = CompletionClient(config)

        mock_openai.assert_called_once_with(
            api_key="sk-or-test",
            base_url="https://openrouter.ai/api/v1",
            timeout=5.0,
            max_retries=0,
            default_headers={
                "HTTP-Referer": config.http_referer,
                "X-Title": "10x Quiz Stack",
            },
        )
        assert client.client is mock_openai.return_value


class TestRequestValidation:
    """Invalid requests never reach the provider."""

    @pytest.mark.parametrize("kwargs, message", [
        ({"messages": []}, "Messages array cannot be empty"),
        ({"messages": [Message(role="user", content="")]}, "Each message must have role and content"),
        ({"messages": [Message(role="tool", content="x")]}, "Invalid message role: tool"),
        ({"temperature": 2.1}, "Temperature must be between 0 and 2"),
        ({"temperature": -0.5}, "Temperature must be between 0 and 2"),
        ({"max_tokens": 0}, "max_tokens must be greater than 0"),
        ({"top_p": 1.5}, "top_p must be between 0 and 1"),
        ({"frequency_penalty": 3}, "frequency_penalty must be between -2 and 2"),
        ({"presence_penalty": -2.5}, "presence_penalty must be between -2 and 2"),
    ])
    def test_invalid_request(self, client, openai_client, kwargs, message):
        with pytest.raises(ValidationError, match=message):
            client.complete(_request(**kwargs))
        openai_client.chat.completions.create.assert_not_called()

    def test_boundary_values_accepted(self, client, openai_client):
        openai_client.chat.completions.create.return_value = make_response("ok")
        client.complete(_request(temperature=0, top_p=1, frequency_penalty=-2, presence_penalty=2))
        openai_client.chat.completions.create.assert_called_once()


class TestRequestBody:
    """Test what is sent to the provider."""

    def test_defaults_from_config(self, client, openai_client):
        openai_client.chat.completions.create.return_value = make_response("ok")

        client.complete(_request())

        openai_client.chat.completions.create.assert_called_once_with(
            timeout=5.0,
            model="openai/gpt-4",
            messages=[{"role": "user", "content": "Hello"}],
            temperature=0.7,
            max_tokens=2000,
            stream=False,
        )

    def test_explicit_and_optional_fields(self, client, openai_client):
        openai_client.chat.completions.create.return_value = make_response("{}")
        response_format = ResponseFormat(name="quiz", schema={"type": "object"})

        client.complete(client.create_chat_request(
            [Message(role="system", content="sys"), Message(role="user", content="hi")],
            model="anthropic/claude-3-haiku",
            temperature=0.2,
            max_tokens=300,
            top_p=0.9,
            frequency_penalty=0.5,
            presence_penalty=-0.5,
            response_format=response_format,
        ))

        kwargs = openai_client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "anthropic/claude-3-haiku"
        assert kwargs["temperature"] == 0.2
        assert kwargs["max_tokens"] == 300
        assert kwargs["top_p"] == 0.9
        assert kwargs["frequency_penalty"] == 0.5
        assert kwargs["presence_penalty"] == -0.5
        assert kwargs["response_format"] == {
            "type": "json_schema",
            "json_schema": {"name": "quiz", "strict": True, "schema": {"type": "object"}},
        }
        assert [m["role"] for m in kwargs["messages"]] == ["system", "user"]

    def test_temperature_zero_is_not_replaced_by_default(self, client, openai_client):
        openai_client.chat.completions.create.return_value = make_response("ok")
        client.complete(_request(temperature=0))
        assert openai_client.chat.completions.create.call_args.kwargs["temperature"] == 0


class TestSuccessfulCompletion:
    """Test envelope parsing."""

    def test_text_result(self, client, openai_client):
        openai_client.chat.completions.create.return_value = make_response(
            "Hello there", total_tokens=42, prompt_tokens=30, completion_tokens=12
        )

        result = client.complete(_request())

        assert result.content == "Hello there"
        assert result.tokens_used == 42
        assert result.model == "openai/gpt-4"
        assert result.finish_reason == "stop"
        assert result.metadata.id == "gen-123"
        assert result.metadata.created == 1700000000
        assert result.metadata.prompt_tokens == 30
        assert result.metadata.completion_tokens == 12

    def test_missing_usage_counts_zero_tokens(self, client, openai_client):
        openai_client.chat.completions.create.return_value = make_response("ok", with_usage=False)
        result = client.complete(_request())
        assert result.tokens_used == 0
        assert result.metadata.prompt_tokens is None

    def test_structured_output_is_decoded(self, client, openai_client):
        payload = {"title": "Quiz", "questions": []}
        openai_client.chat.completions.create.return_value = make_response(json.dumps(payload))

        result = client.complete(_request(
            response_format=ResponseFormat(name="quiz", schema={"type": "object"})
        ))

        assert result.content == payload

    def test_structured_output_not_json(self, client, openai_client):
        openai_client.chat.completions.create.return_value = make_response("not json at all")

        with pytest.raises(ParseError) as excinfo:
            client.complete(_request(
                response_format=ResponseFormat(name="quiz", schema={"type": "object"})
            ))

        assert excinfo.value.details["content"] == "not json at all"
        assert excinfo.value.retryable
        assert excinfo.value.tokens_used == 150

    def test_text_output_is_not_decoded(self, client, openai_client):
        openai_client.chat.completions.create.return_value = make_response('{"a": 1}')
        assert client.complete(_request()).content == '{"a": 1}'


class TestInvalidEnvelope:
    """Test envelopes missing required parts."""

    def test_empty_choices(self, client, openai_client):
        response = make_response("ok")
        response.choices = []
        openai_client.chat.completions.create.return_value = response

        with pytest.raises(InvalidResponseError, match="missing choices"):
            client.complete(_request())

    def test_choices_not_a_list(self, client, openai_client):
        response = make_response("ok")
        response.choices = None
        openai_client.chat.completions.create.return_value = response

        with pytest.raises(InvalidResponseError):
            client.complete(_request())

    def test_missing_message_content(self, client, openai_client):
        openai_client.chat.completions.create.return_value = make_response(
            None, finish_reason="length"
        )

        with pytest.raises(InvalidResponseError, match="missing message content") as excinfo:
            client.complete(_request())

        assert excinfo.value.details["finish_reason"] == "length"
        assert excinfo.value.tokens_used == 150

    def test_missing_choices_without_usage(self, client, openai_client):
        response = make_response("ok", with_usage=False)
        response.choices = []
        openai_client.chat.completions.create.return_value = response

        with pytest.raises(InvalidResponseError) as excinfo:
            client.complete(_request())

        assert excinfo.value.tokens_used == 0


class TestErrorMapping:
    """Test provider failures map onto the error taxonomy."""

    def test_timeout(self, client, openai_client):
        openai_client.chat.completions.create.side_effect = openai.APITimeoutError(
            request=provider_request()
        )

        with pytest.raises(RequestTimeoutError) as excinfo:
            client.complete(_request())

        assert excinfo.value.timeout == 5.0
        assert excinfo.value.code is ErrorCode.TIMEOUT_ERROR
        assert "5s" in str(excinfo.value)

    def test_connection_failure(self, client, openai_client):
        openai_client.chat.completions.create.side_effect = openai.APIConnectionError(
            request=provider_request()
        )

        with pytest.raises(NetworkError) as excinfo:
            client.complete(_request())

        assert excinfo.value.retryable
        assert "original_error" in excinfo.value.details

    def test_rate_limit(self, client, openai_client):
        openai_client.chat.completions.create.side_effect = status_error(
            openai.RateLimitError, 429, {"error": {"message": "Slow down"}}
        )

        with pytest.raises(RateLimitError) as excinfo:
            client.complete(_request())

        assert "Slow down" in excinfo.value.message
        assert excinfo.value.details["status"] == 429
        assert excinfo.value.user_message == "Too many requests, please wait and try again."

    @pytest.mark.parametrize("error_cls, status", [
        (openai.AuthenticationError, 401),
        (openai.PermissionDeniedError, 403),
    ])
    def test_authentication_failure(self, client, openai_client, error_cls, status):
        openai_client.chat.completions.create.side_effect = status_error(
            error_cls, status, {"message": "Invalid key"}
        )

        with pytest.raises(ApiError) as excinfo:
            client.complete(_request())

        assert excinfo.value.kind == ApiError.AUTH
        assert excinfo.value.status == status
        assert "Invalid key" in excinfo.value.message
        assert not excinfo.value.retryable

    def test_server_error_uses_reason_phrase(self, client, openai_client):
        openai_client.chat.completions.create.side_effect = status_error(
            openai.InternalServerError, 500
        )

        with pytest.raises(ApiError) as excinfo:
            client.complete(_request())

        assert excinfo.value.kind == ApiError.SERVER
        assert "Internal Server Error" in excinfo.value.message
        assert excinfo.value.retryable

    def test_client_error(self, client, openai_client):
        openai_client.chat.completions.create.side_effect = status_error(
            openai.BadRequestError, 400, {"error": {"message": "model not found"}}
        )

        with pytest.raises(ApiError) as excinfo:
            client.complete(_request())

        assert excinfo.value.kind == ApiError.CLIENT
        assert excinfo.value.details == {"status": 400, "kind": "client"}
        assert "(400)" in excinfo.value.message


class TestValidateApiKey:
    """Test the credential probe."""

    def test_valid_key(self, client, openai_client):
        openai_client.chat.completions.create.return_value = make_response("ok")

        assert client.validate_api_key() is True

        kwargs = openai_client.chat.completions.create.call_args.kwargs
        assert kwargs["max_tokens"] == 5
        assert kwargs["messages"] == [{"role": "user", "content": "test"}]

    def test_rejected_key(self, client, openai_client):
        openai_client.chat.completions.create.side_effect = status_error(
            openai.AuthenticationError, 401
        )
        assert client.validate_api_key() is False

    def test_other_failures_propagate(self, client, openai_client):
        openai_client.chat.completions.create.side_effect = status_error(
            openai.RateLimitError, 429
        )
        with pytest.raises(RateLimitError):
            client.validate_api_key()
