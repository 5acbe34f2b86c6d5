"""
Client for the Cerebras chat-completions API.

This client wraps HTTP requests to the OpenAI-compatible
``/chat/completions`` endpoint. Provider-specific failures (HTTP status
codes, ``Retry-After`` headers, connection errors and timeouts) are
translated at this boundary into a single :class:`LLMError` carrying an
:class:`ErrorKind` and an optional retry-after hint, which is all the
request pipeline needs to decide whether to retry.
"""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests


logger = logging.getLogger(__name__)
# Attach a null handler to avoid errors when the root logger is missing a
# stream. Messages will still propagate to the root logger if configured.
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


DEFAULT_BASE_URL = "https://api.cerebras.ai/v1"
DEFAULT_MODEL = "gpt-oss-120b"


class ErrorKind(enum.Enum):
    """Normalized classification of a failed request."""

    UNAUTHORIZED = "unauthorized"
    INVALID_REQUEST = "invalid-request"
    RATE_LIMITED = "rate-limited"
    NETWORK = "network"
    PARSE = "parse"
    UNKNOWN = "unknown"


_NOT_RETRYABLE = {ErrorKind.UNAUTHORIZED, ErrorKind.INVALID_REQUEST, ErrorKind.PARSE}


class LLMError(Exception):
    """Raised when communication with the LLM API fails."""

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.UNKNOWN,
        status: Optional[int] = None,
        retry_after: Optional[float] = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.status = status
        self.retry_after = retry_after

    @property
    def retryable(self) -> bool:
        return self.kind not in _NOT_RETRYABLE


@dataclass
class Completion:
    """Text returned by the model.

    ``reasoning`` is only present for models that return their
    reasoning separately from the answer.
    """

    content: str
    reasoning: Optional[str] = None


def strip_thinking_tags(text: str) -> str:
    """Remove thinking process tags from LLM responses.

    Some reasoning models inline their thinking in XML-like tags such as
    <think>, <thinking>, <thought> or <reasoning>. This function strips
    these tags and their contents, leaving only the actual output.

    Examples
    --------
    >>> strip_thinking_tags("<think>reasoning...</think>feat: add x")
    'feat: add x'
    """
    thinking_patterns = [
        r'<think>.*?</think>',
        r'<thinking>.*?</thinking>',
        r'<thought>.*?</thought>',
        r'<reasoning>.*?</reasoning>',
    ]

    result = text
    for pattern in thinking_patterns:
        result = re.sub(pattern, '', result, flags=re.DOTALL | re.IGNORECASE)
    return result.strip()


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Parse a numeric ``Retry-After`` header value in seconds.

    HTTP-date values and garbage are ignored (``None``).
    """
    if not value:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


def classify_status(status: int) -> ErrorKind:
    """Map an HTTP status code to an :class:`ErrorKind`."""
    if status in (401, 403):
        return ErrorKind.UNAUTHORIZED
    if status in (400, 404, 413, 422):
        return ErrorKind.INVALID_REQUEST
    if status == 429:
        return ErrorKind.RATE_LIMITED
    return ErrorKind.UNKNOWN


def _error_detail(response: Any) -> str:
    try:
        data = response.json()
    except ValueError:
        return (response.text or "").strip()[:200]
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if data.get("message"):
            return str(data["message"])
    return (response.text or "").strip()[:200]


@dataclass
class CerebrasClient:
    """Client for the Cerebras chat-completions endpoint.

    Parameters
    ----------
    api_key : str
        Cerebras API key sent as a bearer token.
    model : str, optional
        Model name, ``gpt-oss-120b`` by default.
    base_url : str, optional
        API root, ``https://api.cerebras.ai/v1`` by default.
    request_timeout : float, optional
        Timeout in seconds for the HTTP request. Defaults to 30 seconds.
    max_tokens : int, optional
        Upper bound on generated tokens (reasoning included).
    temperature : float, optional
        Sampling temperature.
    """

    api_key: str
    model: str = DEFAULT_MODEL
    base_url: str = DEFAULT_BASE_URL
    request_timeout: float = 30.0
    max_tokens: Optional[int] = 1024
    temperature: float = 0.7

    def _endpoint(self) -> str:
        return f"{self.base_url.rstrip('/')}/chat/completions"

    def complete(self, system_prompt: str, user_prompt: str) -> Completion:
        """Request a chat completion.

        Returns
        -------
        Completion
            The message content with thinking tags removed, plus the
            separate reasoning text when the model returned one.

        Raises
        ------
        LLMError
            If the request fails, the server returns an error status, or
            the response body cannot be understood.
        """
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": self.temperature,
        }
        if self.max_tokens is not None:
            payload["max_tokens"] = self.max_tokens
        url = self._endpoint()
        logger.debug("Sending chat completion request to %s (model=%s)", url, self.model)
        try:
            response = requests.post(
                url,
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.request_timeout,
            )
        except requests.Timeout as exc:
            logger.error("Request to LLM timed out: %s", exc)
            raise LLMError(
                f"Request timed out after {self.request_timeout:.0f}s", ErrorKind.NETWORK
            ) from exc
        except requests.RequestException as exc:
            logger.error("Failed to connect to LLM: %s", exc)
            raise LLMError(f"Could not reach {self.base_url}: {exc}", ErrorKind.NETWORK) from exc

        if response.status_code != 200:
            kind = classify_status(response.status_code)
            retry_after = parse_retry_after(response.headers.get("Retry-After"))
            detail = _error_detail(response)
            logger.error("LLM returned status %s: %s", response.status_code, detail)
            raise LLMError(
                f"LLM returned status {response.status_code}: {detail}",
                kind,
                status=response.status_code,
                retry_after=retry_after,
            )

        try:
            data = response.json()
        except ValueError as exc:
            logger.error("Failed to parse LLM response: %s", exc)
            raise LLMError("Failed to parse LLM response", ErrorKind.UNKNOWN) from exc

        try:
            message = data["choices"][0]["message"]
        except (KeyError, IndexError, TypeError) as exc:
            raise LLMError("Unexpected response structure from LLM", ErrorKind.UNKNOWN) from exc
        if not isinstance(message, dict):
            raise LLMError("Unexpected response structure from LLM", ErrorKind.UNKNOWN)

        content = message.get("content") or ""
        reasoning = message.get("reasoning") or message.get("reasoning_content") or None
        logger.debug(
            "LLM response: %d characters of content, reasoning %s",
            len(content),
            "present" if reasoning else "absent",
        )
        return Completion(content=strip_thinking_tags(content), reasoning=reasoning)
