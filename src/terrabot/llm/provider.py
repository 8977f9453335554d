"""Provider abstractions used by the planner."""

from __future__ import annotations

import json
import logging
import socket
import time
import urllib.error
import urllib.parse
import urllib.request
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Tuple, Union

from ..config import AgentSettings, ConfigError, import_string

logger = logging.getLogger(__name__)


class ProviderError(RuntimeError):
    """Base class for every gateway failure."""


class ProviderTimeout(ProviderError):
    """The backend did not answer within its fixed timeout."""


class AuthMissing(ProviderError):
    """No credential is configured for the backend; raised before any network call."""


class HttpStatusError(ProviderError):
    """The backend answered with a non-2xx status."""

    def __init__(self, provider: str, status: int, body: str) -> None:
        super().__init__(f"{provider} API request failed with status {status}: {body}")
        self.provider = provider
        self.status = status
        self.body = body


class MalformedResponse(ProviderError):
    """The backend answered 2xx but the payload lacks the expected text field."""


class LLMProvider(Protocol):
    """Interface for language model providers."""

    name: str

    def send(self, system_prompt: str, user_prompt: str) -> str:  # pragma: no cover - interface
        """Return the model's raw text reply."""


class StaticResponseProvider:
    """Provider that replays a finite list of responses (useful for tests).

    An exception instance in the list is raised instead of returned, which lets tests
    exercise the planner's fallback path.
    """

    def __init__(self, responses: Iterable[Union[str, BaseException]], name: str = "static"):
        self.name = name
        self._responses = iter(responses)
        self.calls: List[Tuple[str, str]] = []

    def send(self, system_prompt: str, user_prompt: str) -> str:
        self.calls.append((system_prompt, user_prompt))
        try:
            response = next(self._responses)
        except StopIteration as exc:  # pragma: no cover - debug guard
            raise ProviderError("StaticResponseProvider exhausted") from exc
        if isinstance(response, BaseException):
            raise response
        return response


class HttpChatProvider:
    """Shared request/retry machinery for the HTTP backends."""

    name = "http"
    url = ""
    timeout = 60.0
    max_retries = 0

    def __init__(
        self,
        api_key: Optional[str],
        *,
        model: str,
        temperature: float = 0.7,
        max_tokens: int = 8000,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        backoff: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        if timeout is not None:
            self.timeout = timeout
        if max_retries is not None:
            self.max_retries = max_retries
        self.backoff = backoff
        self._sleep = sleep

    def send(self, system_prompt: str, user_prompt: str) -> str:
        if not self.api_key:
            raise AuthMissing(f"{self.name} API key is not configured")
        payload = json.dumps(self.build_payload(system_prompt, user_prompt)).encode("utf-8")
        attempt = 0
        delay = self.backoff
        while True:
            request = urllib.request.Request(
                url=self.request_url(),
                data=payload,
                headers=self.headers(),
                method="POST",
            )
            try:
                body = self._post(request)
            except (ProviderTimeout, HttpStatusError) as exc:
                if not self._retryable(exc) or attempt >= self.max_retries:
                    raise
                attempt += 1
                logger.warning(
                    "%s request failed (%s), retrying in %.1fs (attempt %d/%d)",
                    self.name,
                    exc,
                    delay,
                    attempt,
                    self.max_retries,
                )
                self._sleep(delay)
                delay *= 2
                continue
            try:
                data = json.loads(body)
            except json.JSONDecodeError as exc:
                raise MalformedResponse(f"{self.name} returned non-JSON payload: {body[:200]}") from exc
            return self.extract_text(data)

    def _post(self, request: urllib.request.Request) -> str:
        try:
            with urllib.request.urlopen(request, timeout=self.timeout) as response:
                return response.read().decode("utf-8")
        except urllib.error.HTTPError as exc:
            body = exc.read().decode("utf-8", errors="replace") if exc.fp else ""
            raise HttpStatusError(self.name, exc.code, body) from exc
        except urllib.error.URLError as exc:
            if isinstance(exc.reason, (socket.timeout, TimeoutError)):
                raise ProviderTimeout(f"{self.name} API request timed out") from exc
            raise ProviderError(f"{self.name} failed to reach {self.url}: {exc}") from exc
        except (socket.timeout, TimeoutError) as exc:
            raise ProviderTimeout(f"{self.name} API request timed out") from exc

    @staticmethod
    def _retryable(exc: ProviderError) -> bool:
        if isinstance(exc, ProviderTimeout):
            return True
        return isinstance(exc, HttpStatusError) and (exc.status == 429 or 500 <= exc.status < 600)

    def request_url(self) -> str:
        return self.url

    def headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json", "Authorization": f"Bearer {self.api_key}"}

    def build_payload(self, system_prompt: str, user_prompt: str) -> Dict[str, Any]:
        return {
            "model": self.model,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
        }

    def extract_text(self, data: Any) -> str:
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise MalformedResponse(f"Failed to parse {self.name} response: unexpected format") from exc
        if not isinstance(content, str):
            raise MalformedResponse(f"Failed to parse {self.name} response: content is not text")
        return content


class OpenAIProvider(HttpChatProvider):
    """OpenAI chat completions with retry on rate limits, server errors and timeouts."""

    name = "OpenAI"
    url = "https://api.openai.com/v1/chat/completions"
    timeout = 60.0
    max_retries = 3


class GroqProvider(HttpChatProvider):
    """Groq's OpenAI-compatible endpoint; the low-latency fallback backend."""

    name = "Groq"
    url = "https://api.groq.com/openai/v1/chat/completions"
    timeout = 30.0


class GeminiProvider(HttpChatProvider):
    """Google Gemini generateContent endpoint."""

    name = "Gemini"
    url = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
    timeout = 60.0

    def request_url(self) -> str:
        query = urllib.parse.urlencode({"key": self.api_key})
        return f"{self.url.format(model=self.model)}?{query}"

    def headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json"}

    def build_payload(self, system_prompt: str, user_prompt: str) -> Dict[str, Any]:
        # generateContent has no system role here, so both prompts share one user turn.
        return {
            "contents": [
                {"role": "user", "parts": [{"text": f"{system_prompt}\n\n{user_prompt}"}]},
            ],
            "generationConfig": {
                "temperature": self.temperature,
                "maxOutputTokens": self.max_tokens,
            },
        }

    def extract_text(self, data: Any) -> str:
        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as exc:
            raise MalformedResponse("Failed to parse Gemini response: unexpected format") from exc
        if not isinstance(text, str):
            raise MalformedResponse("Failed to parse Gemini response: text is not a string")
        return text


PROVIDER_CLASSES = {
    "openai": OpenAIProvider,
    "groq": GroqProvider,
    "gemini": GeminiProvider,
}


def create_provider(name: str, settings: AgentSettings, **kwargs: Any) -> LLMProvider:
    """Build the backend called ``name`` from session settings."""

    if settings.provider_factory:
        factory = import_string(settings.provider_factory)
        return factory(name, settings)
    key = name.strip().lower()
    try:
        provider_cls = PROVIDER_CLASSES[key]
    except KeyError as exc:
        raise ConfigError(f"Unknown provider '{name}'") from exc
    return provider_cls(
        settings.api_key(key),
        model=getattr(settings, f"{key}_model"),
        temperature=settings.temperature,
        max_tokens=settings.max_tokens,
        **kwargs,
    )
