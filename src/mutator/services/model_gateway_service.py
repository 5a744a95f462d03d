# src/mutator/services/model_gateway_service.py
import logging
import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from typing import Any, Callable, Dict, Optional

import requests

from mutator.core.managers.config_manager import config_manager
from mutator.errors import (
    EmptyModelReplyError,
    ModelCallFailedError,
    ModelError,
    ModelTimeoutError,
)

logger = logging.getLogger(__name__)

DEFAULT_OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"
DEFAULT_MODEL_NAME = "gpt-4o-mini"
DEFAULT_TIMEOUT_MS = 25000

PROVIDER_OPENROUTER = "openrouter"
PROVIDER_GENERIC = "generic"


class CancellationToken:
    """
    Deadline plus cancellation flag for a single model call.
    The caller never waits past the deadline; once cancelled, late replies are dropped.
    """

    def __init__(self, timeout_ms: int = DEFAULT_TIMEOUT_MS):
        self.timeout_ms = timeout_ms
        self.deadline = time.monotonic() + timeout_ms / 1000.0
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def remaining(self) -> float:
        """Seconds left before the deadline (never negative)."""
        return max(0.0, self.deadline - time.monotonic())

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0.0


def _pick_env(*names: str) -> Optional[str]:
    for name in names:
        value = (os.getenv(name) or "").strip()
        if value:
            return value
    return None


class ModelGateway:
    """
    The only place network I/O to the language model happens.

    Sends a (system, user) prompt pair, enforces the deadline of a
    CancellationToken and returns the raw reply text. Transport failures are
    mapped to the upstream error family; there are no retries.
    """

    def __init__(
            self,
            provider: str = PROVIDER_OPENROUTER,
            url: Optional[str] = DEFAULT_OPENROUTER_URL,
            api_key: Optional[str] = None,
            model_name: str = DEFAULT_MODEL_NAME,
            timeout_ms: int = DEFAULT_TIMEOUT_MS,
            temperature: float = 0,
            max_tokens: int = 1200,
            session_factory: Callable[[], requests.Session] = requests.Session,
    ):
        self.provider = provider
        self.url = url
        self.api_key = api_key
        self.model_name = model_name
        self.timeout_ms = int(timeout_ms)
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._session_factory = session_factory

    @classmethod
    def from_config(cls) -> "ModelGateway":
        """
        Builds a gateway from settings.json and the environment.
        OpenRouter is preferred when its key is set, then a generic endpoint.
        """
        openrouter_key = _pick_env("OPENROUTER_API_KEY", "OPENROUTER_KEY")
        generic_url = _pick_env("AI_API_URL")
        generic_key = _pick_env("AI_API_KEY")

        if openrouter_key:
            provider, url, key = PROVIDER_OPENROUTER, config_manager.get_nested("model.url", DEFAULT_OPENROUTER_URL), openrouter_key
        elif generic_url and generic_key:
            provider, url, key = PROVIDER_GENERIC, generic_url, generic_key
        else:
            provider = config_manager.get_nested("model.provider", PROVIDER_OPENROUTER)
            url, key = config_manager.get_nested("model.url", DEFAULT_OPENROUTER_URL), None

        model_name = (
                _pick_env("OPENROUTER_MODEL", "OPENROUTER_MODEL_NAME")
                or config_manager.get_nested("model.name", DEFAULT_MODEL_NAME)
        )
        return cls(
            provider=provider,
            url=url,
            api_key=key,
            model_name=model_name,
            timeout_ms=config_manager.get_nested("model.timeout_ms", DEFAULT_TIMEOUT_MS),
            temperature=config_manager.get_nested("model.temperature", 0),
            max_tokens=config_manager.get_nested("model.max_tokens", 1200),
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.url)

    def new_token(self) -> CancellationToken:
        return CancellationToken(self.timeout_ms)

    # -------- Public API --------

    def complete(
            self,
            system_prompt: str,
            user_prompt: str,
            model_name: Optional[str] = None,
            token: Optional[CancellationToken] = None,
            max_tokens: Optional[int] = None,
            temperature: Optional[float] = None,
    ) -> str:
        """
        Sends the prompts and returns the reply text.

        Raises:
            ModelTimeoutError: the deadline elapsed (the token is cancelled).
            ModelError: the provider answered with a non-success status.
            ModelCallFailedError: transport failure or unreadable response.
            EmptyModelReplyError: the reply contained no text.
        """
        token = token or self.new_token()
        if token.cancelled or token.expired:
            raise ModelTimeoutError("Model call cancelled before it started")

        request_kwargs = self._build_request(
            system_prompt,
            user_prompt,
            model_name or self.model_name,
            self.max_tokens if max_tokens is None else max_tokens,
            self.temperature if temperature is None else temperature,
        )

        start = time.perf_counter()
        session = self._session_factory()
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="model-gateway")
        try:
            future = executor.submit(session.post, timeout=token.remaining(), **request_kwargs)
            response = future.result(timeout=token.remaining())
        except FutureTimeoutError:
            token.cancel()
            logger.warning("Model call exceeded %d ms, cancelled.", self.timeout_ms)
            raise ModelTimeoutError(f"Model did not answer within {self.timeout_ms} ms")
        except requests.Timeout as e:
            token.cancel()
            logger.warning("Model transport timed out: %s", e)
            raise ModelTimeoutError(f"Model did not answer within {self.timeout_ms} ms") from e
        except requests.RequestException as e:
            logger.error("Model transport failed: %s", e)
            raise ModelCallFailedError(str(e)) from e
        finally:
            session.close()
            executor.shutdown(wait=False)

        elapsed_ms = round((time.perf_counter() - start) * 1000, 2)
        logger.info("Model call (%s) finished in %s ms with HTTP %s", self.provider, elapsed_ms, response.status_code)

        if not response.ok:
            raise ModelError(response.status_code, response.text)

        text = self._extract_text(response)
        if not text or not text.strip():
            raise EmptyModelReplyError()
        return text

    # -------- Provider specifics --------

    def _build_request(
            self, system_prompt: str, user_prompt: str, model_name: str, max_tokens: int, temperature: float
    ) -> Dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        if self.provider == PROVIDER_GENERIC:
            prompt = "\n\n".join(part for part in (system_prompt, user_prompt) if part)
            return {"url": self.url, "headers": headers, "json": {"prompt": prompt}}

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": user_prompt})
        payload = {
            "model": model_name,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "messages": messages,
        }
        return {"url": self.url, "headers": headers, "json": payload}

    def _extract_text(self, response: requests.Response) -> Optional[str]:
        if self.provider == PROVIDER_GENERIC:
            return response.text

        try:
            data = response.json()
        except ValueError as e:
            raise ModelCallFailedError(f"Provider response is not JSON: {e}") from e

        choices = data.get("choices") if isinstance(data, dict) else None
        if not choices or not isinstance(choices[0], dict):
            return None
        first = choices[0]
        message = first.get("message") or {}
        content = message.get("content") if isinstance(message, dict) else None
        return content or first.get("text") or None
