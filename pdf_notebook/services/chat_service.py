"""
Chat service for answering questions about a document through OpenRouter.
"""

import math
import re
from typing import Any, Dict, List, Optional

import requests

from ..config import Settings, settings as default_settings
from ..errors import ConfigurationError, UpstreamError
from ..models import AnswerOptions, AnswerResult
from ..utils import (
    measure_time,
    log_processing_info,
    handle_processing_error
)
import logging

logger = logging.getLogger(__name__)

MOCK_MODEL_ID = "mock/local"
MOCK_PREVIEW_CHARS = 600
CONTEXT_CHAR_LIMIT = 12000
CHARS_PER_TOKEN = 4
DEFAULT_CONTEXT_LIMIT = 8000
RESPONSE_TOKEN_RESERVE = 1000

# Maximum context length (tokens) of models commonly used through OpenRouter
MODEL_CONTEXT_LIMITS: Dict[str, int] = {
    "anthropic/claude-3.5-sonnet": 200000,
    "anthropic/claude-3-haiku": 200000,
    "openai/gpt-4o": 128000,
    "openai/gpt-4o-mini": 128000,
    "openai/gpt-4-turbo": 128000,
    "openai/gpt-3.5-turbo": 16385,
    "google/gemini-flash-1.5": 1000000,
    "meta-llama/llama-3.1-8b-instruct": 131072,
    "meta-llama/llama-3.1-70b-instruct": 131072,
    "mistralai/mistral-7b-instruct": 32768,
}

PAGE_CITATION_PATTERN = re.compile(r"page ([0-9]+)", re.IGNORECASE)


def estimate_tokens(text: str) -> int:
    """Rough token count: one token per four characters, rounded up."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def get_model_context_limit(model: str) -> int:
    return MODEL_CONTEXT_LIMITS.get(model, DEFAULT_CONTEXT_LIMIT)


def compute_response_budget(
    max_context: int,
    estimated_input_tokens: int,
    reserve: int = RESPONSE_TOKEN_RESERVE,
) -> int:
    """Tokens left for the answer once the prompt and the reserve are paid for."""
    return max(1, max_context - estimated_input_tokens - reserve)


def extract_citations(text: str) -> List[int]:
    """
    Extract page citations from an answer.

    Returns the distinct page numbers in order of first occurrence.
    """
    pages = [int(match) for match in PAGE_CITATION_PATTERN.findall(text or "")]
    return list(dict.fromkeys(pages))


class ChatService:
    """Service for generating answers using an OpenRouter-compatible API."""

    def __init__(self, config: Optional[Settings] = None, session: Optional[requests.Session] = None):
        """Initialize the chat service."""
        self.config = config or default_settings
        self.session = session or requests.Session()

    @property
    def is_configured(self) -> bool:
        return bool(self.config.openrouter_api_key)

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "HTTP-Referer": self.config.openrouter_http_referer,
            "Authorization": f"Bearer {self.config.openrouter_api_key}",
        }

    def _create_user_prompt(self, question: str, context: str) -> str:
        return (
            "Use this context to answer the question:\n\n"
            f"{context[:CONTEXT_CHAR_LIMIT]}\n\n"
            f"Question: {question}"
        )

    def _mock_answer(self, question: str, context: str) -> AnswerResult:
        preview = (context or "")[:MOCK_PREVIEW_CHARS].strip()
        answer = (
            "OPENROUTER_API_KEY is not configured on the server. "
            "Returning a mock response for development.\n\n"
            f"Question: {question}\n\n"
            f"Context preview (first {MOCK_PREVIEW_CHARS} chars):\n{preview}"
        )
        return AnswerResult(
            answer=answer,
            citations=extract_citations(answer),
            model_id=MOCK_MODEL_ID,
            usage=None,
        )

    def response_budget(self, model: str, system_prompt: str, question: str, context: str) -> int:
        """Compute max_tokens for a request from the model's context length."""
        estimated_input = estimate_tokens(
            system_prompt + context[:CONTEXT_CHAR_LIMIT] + question
        )
        return compute_response_budget(get_model_context_limit(model), estimated_input)

    @measure_time
    def answer(
        self,
        question: str,
        context: str,
        options: Optional[AnswerOptions] = None
    ) -> AnswerResult:
        """
        Answer a question using the given document text as context.

        Args:
            question: User's question
            context: Extracted document text
            options: Optional model, temperature and system prompt overrides

        Returns:
            AnswerResult with the answer, cited pages, model and usage

        Raises:
            UpstreamError: If the provider call fails or times out
        """
        options = options or AnswerOptions()
        context = context or ""

        if not self.is_configured:
            logger.info("No OpenRouter API key configured, returning mock answer")
            return self._mock_answer(question, context)

        model = options.model or self.config.openrouter_model
        max_tokens = self.response_budget(model, options.system_prompt, question, context)

        payload = {
            "model": model,
            "messages": [
                {"role": "system", "content": options.system_prompt},
                {"role": "user", "content": self._create_user_prompt(question, context)},
            ],
            "max_tokens": max_tokens,
            "temperature": options.temperature,
        }

        log_processing_info("Upstream request", {
            "model": model,
            "question_length": len(question),
            "context_length": len(context),
            "max_tokens": max_tokens
        })

        data = self._post_json("/chat/completions", payload)

        try:
            answer = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            handle_processing_error("response_parsing", e, {"model": model})
            raise UpstreamError("AI response failed: malformed provider response") from e
        if not isinstance(answer, str):
            raise UpstreamError("AI response failed: provider returned no answer text")

        citations = extract_citations(answer)

        log_processing_info("Response generated", {
            "model": model,
            "answer_length": len(answer),
            "citations": citations
        })

        return AnswerResult(
            answer=answer,
            citations=citations,
            model_id=model,
            usage=data.get("usage") or None,
        )

    def list_models(self) -> List[Dict[str, Any]]:
        """
        List the models offered by the provider.

        Raises:
            ConfigurationError: If no API key is configured
            UpstreamError: If the provider call fails
        """
        if not self.is_configured:
            raise ConfigurationError("OPENROUTER_API_KEY is not configured")
        data = self._request("GET", "/models")
        return data.get("data") or []

    def check_connection(self) -> str:
        """Report whether the provider accepts the configured credential."""
        if not self.is_configured:
            return "not_configured"
        try:
            self.list_models()
            return "connected"
        except UpstreamError as e:
            logger.warning(f"OpenRouter connection check failed: {e}")
            return "disconnected"

    def _post_json(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", path, json=payload)

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        url = f"{self.config.openrouter_base_url.rstrip('/')}{path}"
        try:
            resp = self.session.request(
                method,
                url,
                headers=self._headers(),
                timeout=self.config.openrouter_timeout_seconds,
                **kwargs
            )
            resp.raise_for_status()
            data = resp.json()
        except requests.Timeout as e:
            handle_processing_error("upstream_request", e, {"url": url})
            raise UpstreamError(f"AI response failed: timeout ({e})", {"url": url}, timed_out=True) from e
        except requests.RequestException as e:
            message = self._provider_message(e.response) or str(e)
            handle_processing_error("upstream_request", e, {"url": url, "provider_message": message})
            raise UpstreamError(f"AI response failed: {message}", {"url": url}) from e
        except ValueError as e:
            raise UpstreamError(f"AI response failed: invalid JSON from provider ({e})", {"url": url}) from e

        if not isinstance(data, dict):
            raise UpstreamError("AI response failed: unexpected provider response", {"url": url})
        if data.get("error"):
            message = self._error_message(data["error"])
            raise UpstreamError(f"AI response failed: {message}", {"url": url})
        return data

    @staticmethod
    def _error_message(error: Any) -> str:
        if isinstance(error, dict):
            return str(error.get("message") or error)
        return str(error)

    @classmethod
    def _provider_message(cls, response: Optional[requests.Response]) -> Optional[str]:
        """Message from a provider error body, when there is one."""
        if response is None:
            return None
        try:
            body = response.json()
        except ValueError:
            return None
        if isinstance(body, dict) and body.get("error"):
            return cls._error_message(body["error"])
        return None
