"""Chat completion transport for the review summarizer, backed by OpenRouter."""
from __future__ import annotations

import json
import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Sequence

import httpx

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
_COMPLETIONS_PATH = "/chat/completions"


class OpenRouterError(RuntimeError):
    """Base error for every failed completion request."""


class AuthenticationError(OpenRouterError):
    """The API key is missing, invalid or not allowed to use the model."""


class RateLimitError(OpenRouterError):
    """HTTP 429 persisted through all retries."""


class TransientError(OpenRouterError):
    """Server or network failure persisted through all retries."""


class ClientConfigurationError(OpenRouterError):
    """The endpoint answered with a payload we cannot interpret."""


@dataclass
class ChatCompletionResult:
    """First choice of a chat completion plus its token usage."""

    content: str
    usage: Mapping[str, Any]
    raw: Mapping[str, Any]
    finish_reason: Optional[str] = None

    def json(self) -> Any:
        """Decode the completion text as JSON, tolerating a fenced code block."""
        return json.loads(_strip_code_fence(self.content))


class OpenRouterClient:
    """Synchronous client for the chat completions endpoint with bounded retries."""

    _DEFAULT_TIMEOUT = 60.0
    _DEFAULT_MAX_RETRIES = 3
    _RETRY_STATUS_CODES = frozenset({408, 409, 425, 429, 500, 502, 503, 504})

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        *,
        referer: Optional[str] = None,
        title: Optional[str] = None,
        timeout: float = _DEFAULT_TIMEOUT,
        max_retries: int = _DEFAULT_MAX_RETRIES,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        if not api_key:
            raise AuthenticationError("OpenRouter API key is required")

        self.base_url = base_url.rstrip("/")
        self.max_retries = max(0, max_retries)

        headers = {"Authorization": f"Bearer {api_key}"}
        if referer:
            headers["HTTP-Referer"] = referer
        if title:
            headers["X-Title"] = title

        self._http = httpx.Client(base_url=self.base_url, headers=headers, timeout=timeout, transport=transport)

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "OpenRouterClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def generate(
        self,
        model: str,
        messages: Sequence[Mapping[str, Any]],
        *,
        temperature: float = 0.2,
        max_tokens: Optional[int] = None,
        reasoning_effort: Optional[str] = None,
        json_mode: bool = False,
        extra_payload: Optional[Mapping[str, Any]] = None,
    ) -> ChatCompletionResult:
        """Run one chat completion and return its first choice.

        ``json_mode`` asks the model for a bare JSON object; callers still
        decode the text themselves through :meth:`ChatCompletionResult.json`.
        """
        payload: Dict[str, Any] = {"model": model, "messages": list(messages), "temperature": temperature}
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens
        if reasoning_effort:
            payload["reasoning"] = {"effort": reasoning_effort}
        if json_mode:
            payload["response_format"] = {"type": "json_object"}
        if extra_payload:
            payload.update(extra_payload)

        return parse_chat_completion(self._post(_COMPLETIONS_PATH, payload))

    def _post(self, path: str, payload: Mapping[str, Any]) -> Mapping[str, Any]:
        failure: Optional[Exception] = None
        for attempt in range(self.max_retries + 1):
            retries_left = attempt < self.max_retries
            try:
                response = self._http.post(path, json=payload)
            except httpx.HTTPError as exc:
                failure = exc
                logger.debug("Completion request failed on attempt %d: %s", attempt + 1, exc)
                if retries_left:
                    time.sleep(retry_delay(attempt))
                continue

            if response.status_code in self._RETRY_STATUS_CODES and retries_left:
                logger.debug("Completion request returned %d on attempt %d, retrying", response.status_code, attempt + 1)
                time.sleep(retry_delay(attempt, response.headers.get("Retry-After")))
                continue

            _raise_for_status(response)
            return _decode_object(response)

        if isinstance(failure, httpx.TimeoutException):
            raise TransientError("OpenRouter request timed out after retries") from failure
        raise TransientError("OpenRouter request failed after retries") from failure


def parse_chat_completion(data: Mapping[str, Any]) -> ChatCompletionResult:
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], Mapping):
        raise ClientConfigurationError("Chat completion has no choices")

    choice = choices[0]
    message = choice.get("message")
    content = message.get("content") if isinstance(message, Mapping) else None
    if not isinstance(content, str):
        raise ClientConfigurationError("Chat completion has no text content")

    usage = data.get("usage")
    finish_reason = choice.get("finish_reason")
    return ChatCompletionResult(
        content=content,
        usage=dict(usage) if isinstance(usage, Mapping) else {},
        raw=data,
        finish_reason=finish_reason if isinstance(finish_reason, str) else None,
    )


def retry_delay(attempt: int, retry_after: Optional[str] = None) -> float:
    """Exponential backoff with jitter, stretched by a ``Retry-After`` header."""
    delay = min(2 ** attempt, 16) * random.uniform(0.5, 1.5)
    if retry_after:
        try:
            delay += float(retry_after)
        except ValueError:
            logger.debug("Ignoring non-numeric Retry-After header %r", retry_after)
    return max(0.5, delay)


def _raise_for_status(response: httpx.Response) -> None:
    status = response.status_code
    if status < 400:
        return
    if status in (401, 403):
        raise AuthenticationError(f"OpenRouter refused the request ({status}): check the API key")

    message = _error_message(response) or f"OpenRouter request failed ({status})"
    if status == 429:
        raise RateLimitError(message)
    if status >= 500:
        raise TransientError(message)
    raise OpenRouterError(message)


def _error_message(response: httpx.Response) -> Optional[str]:
    if "json" not in response.headers.get("Content-Type", ""):
        return response.text or None
    try:
        error = response.json().get("error")
    except (ValueError, AttributeError):
        return None
    if isinstance(error, Mapping) and isinstance(error.get("message"), str):
        return error["message"]
    return None


def _decode_object(response: httpx.Response) -> Mapping[str, Any]:
    try:
        data = response.json()
    except ValueError as exc:
        raise ClientConfigurationError("OpenRouter returned a non-JSON response") from exc
    if not isinstance(data, Mapping):
        raise ClientConfigurationError("OpenRouter response was not a JSON object")
    return data


def _strip_code_fence(text: str) -> str:
    stripped = text.strip()
    if stripped.startswith("```"):
        stripped = stripped.split("\n", 1)[1] if "\n" in stripped else ""
        if stripped.rstrip().endswith("```"):
            stripped = stripped.rstrip()[:-3]
    return stripped.strip()
