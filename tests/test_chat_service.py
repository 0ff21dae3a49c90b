"""Tests for the question-answering gateway."""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest
import requests
from pydantic import ValidationError as PydanticValidationError

from pdf_notebook.errors import ConfigurationError, UpstreamError
from pdf_notebook.models import DEFAULT_SYSTEM_PROMPT, AnswerOptions
from pdf_notebook.services.chat_service import (
    CONTEXT_CHAR_LIMIT,
    DEFAULT_CONTEXT_LIMIT,
    MOCK_MODEL_ID,
    ChatService,
    compute_response_budget,
    estimate_tokens,
    extract_citations,
    get_model_context_limit,
)


def make_response(status_code: int, body) -> requests.Response:
    response = requests.Response()
    response.status_code = status_code
    response._content = json.dumps(body).encode()
    response.url = "https://openrouter.ai/api/v1/chat/completions"
    return response


def completion(content: str, usage=None) -> dict:
    return {
        "choices": [{"message": {"role": "assistant", "content": content}}],
        "usage": usage,
    }


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def gateway(configured_settings, session) -> ChatService:
    return ChatService(configured_settings, session=session)


class TestCitations:

    def test_distinct_in_first_occurrence_order(self):
        assert extract_citations("See page 3 and page 10, also page 3.") == [3, 10]

    def test_case_insensitive(self):
        assert extract_citations("PAGE 7 and Page 2") == [7, 2]

    def test_no_citations(self):
        assert extract_citations("Nothing cited here.") == []
        assert extract_citations("") == []

    def test_requires_single_space(self):
        assert extract_citations("page12 pages 4 page  5") == []

    def test_only_ascii_digits(self):
        assert extract_citations("see page \u0663") == []
        assert extract_citations("see page \u0663 and page 8") == [8]


class TestTokenBudget:

    def test_estimate_rounds_up(self):
        assert estimate_tokens("") == 0
        assert estimate_tokens("abcd") == 1
        assert estimate_tokens("abcde") == 2

    def test_known_budget(self):
        assert compute_response_budget(8000, 2000, reserve=1000) == 5000
        assert compute_response_budget(8000, 2000) == 5000

    def test_budget_never_below_one(self):
        assert compute_response_budget(8000, 7500) == 1
        assert compute_response_budget(8000, 50000) == 1

    def test_unknown_model_uses_default_limit(self):
        assert get_model_context_limit("someone/unknown-model") == DEFAULT_CONTEXT_LIMIT == 8000
        assert get_model_context_limit("openai/gpt-4o") == 128000

    def test_budget_counts_truncated_context(self, gateway):
        context = "x" * (CONTEXT_CHAR_LIMIT * 2)
        budget = gateway.response_budget("someone/unknown-model", "", "", context)
        assert budget == 8000 - CONTEXT_CHAR_LIMIT // 4 - 1000


class TestMockFallback:

    def test_no_credential_returns_mock_answer(self, test_settings, session):
        gateway = ChatService(test_settings, session=session)
        result = gateway.answer("What is this?", "Some context text")

        assert result.model_id == MOCK_MODEL_ID == "mock/local"
        assert result.usage is None
        assert "What is this?" in result.answer
        assert "Some context text" in result.answer
        session.request.assert_not_called()

    def test_mock_preview_is_first_600_chars(self, test_settings):
        context = "a" * 600 + "TAIL"
        result = ChatService(test_settings).answer("q", context)
        assert "a" * 600 in result.answer
        assert "TAIL" not in result.answer

    def test_mock_citations_come_from_answer(self, test_settings):
        result = ChatService(test_settings).answer("What is on page 4?", "See page 9")
        assert result.citations == [4, 9]


class TestUpstreamCall:

    def test_successful_answer(self, gateway, session):
        usage = {"prompt_tokens": 12, "completion_tokens": 5, "total_tokens": 17}
        session.request.return_value = make_response(
            200, completion("It is on page 2 and page 5.", usage)
        )

        result = gateway.answer("Where?", "context text")

        assert result.answer == "It is on page 2 and page 5."
        assert result.citations == [2, 5]
        assert result.model_id == "anthropic/claude-3.5-sonnet"
        assert result.usage == usage

    def test_request_shape(self, gateway, session):
        session.request.return_value = make_response(200, completion("ok"))
        context = "c" * (CONTEXT_CHAR_LIMIT + 500)

        gateway.answer("Why?", context, AnswerOptions(model="openai/gpt-4o", temperature=0.2))

        method, url = session.request.call_args.args
        kwargs = session.request.call_args.kwargs
        payload = kwargs["json"]

        assert method == "POST"
        assert url == "https://openrouter.ai/api/v1/chat/completions"
        assert kwargs["timeout"] == 30.0
        assert kwargs["headers"]["Authorization"] == "Bearer sk-test"
        assert payload["model"] == "openai/gpt-4o"
        assert payload["temperature"] == 0.2
        assert payload["messages"][0] == {"role": "system", "content": DEFAULT_SYSTEM_PROMPT}
        user_content = payload["messages"][1]["content"]
        assert user_content.startswith("Use this context to answer the question:\n\n")
        assert user_content.endswith("\n\nQuestion: Why?")
        assert "c" * CONTEXT_CHAR_LIMIT in user_content
        assert "c" * (CONTEXT_CHAR_LIMIT + 1) not in user_content

        expected_input = estimate_tokens(DEFAULT_SYSTEM_PROMPT + "c" * CONTEXT_CHAR_LIMIT + "Why?")
        assert payload["max_tokens"] == 128000 - expected_input - 1000

    def test_provider_error_message_is_surfaced(self, gateway, session):
        session.request.return_value = make_response(
            401, {"error": {"message": "Invalid API key", "code": 401}}
        )

        with pytest.raises(UpstreamError) as excinfo:
            gateway.answer("q", "context")

        assert "Invalid API key" in str(excinfo.value)
        assert excinfo.value.timed_out is False
        assert excinfo.value.status_code == 502
        assert session.request.call_count == 1

    def test_transport_error_message_is_surfaced(self, gateway, session):
        session.request.side_effect = requests.ConnectionError("connection refused")

        with pytest.raises(UpstreamError, match="connection refused"):
            gateway.answer("q", "context")

    def test_timeout_is_not_retried(self, gateway, session):
        session.request.side_effect = requests.Timeout("read timed out")

        with pytest.raises(UpstreamError) as excinfo:
            gateway.answer("q", "context")

        assert excinfo.value.timed_out is True
        assert excinfo.value.status_code == 408
        assert session.request.call_count == 1

    def test_error_body_with_ok_status(self, gateway, session):
        session.request.return_value = make_response(200, {"error": {"message": "Rate limited"}})

        with pytest.raises(UpstreamError, match="Rate limited"):
            gateway.answer("q", "context")

    def test_malformed_response(self, gateway, session):
        session.request.return_value = make_response(200, {"choices": []})

        with pytest.raises(UpstreamError, match="malformed"):
            gateway.answer("q", "context")


class TestAnswerOptions:

    def test_defaults(self):
        options = AnswerOptions()
        assert options.model is None
        assert options.temperature == 0.7
        assert options.system_prompt == DEFAULT_SYSTEM_PROMPT

    def test_camel_case_system_prompt(self):
        assert AnswerOptions(systemPrompt="Be brief").system_prompt == "Be brief"

    def test_unknown_fields_rejected(self):
        with pytest.raises(PydanticValidationError):
            AnswerOptions(maxTokens=10)


class TestModelListing:

    def test_requires_credential(self, test_settings):
        gateway = ChatService(test_settings)
        with pytest.raises(ConfigurationError):
            gateway.list_models()
        assert gateway.check_connection() == "not_configured"

    def test_lists_models(self, gateway, session):
        session.request.return_value = make_response(200, {"data": [{"id": "openai/gpt-4o"}]})
        assert gateway.list_models() == [{"id": "openai/gpt-4o"}]
        assert session.request.call_args.args == ("GET", "https://openrouter.ai/api/v1/models")
        assert gateway.check_connection() == "connected"

    def test_disconnected(self, gateway, session):
        session.request.return_value = make_response(500, {"error": {"message": "down"}})
        assert gateway.check_connection() == "disconnected"
