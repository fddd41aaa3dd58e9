"""
Remote classifier abstraction layer.

The remote classifier is the expensive, nondeterministic escape hatch used only
when local keyword rules are inconclusive. Each call is a single chat request
(no client-side retries) bounded by a short timeout.

Providers:
- OpenAI-compatible APIs (api.openai.com, DeepSeek, OpenRouter, ...)
- Ollama (self-hosted models)
"""

import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import ollama
import structlog
from openai import APIConnectionError, APITimeoutError, AsyncOpenAI, OpenAIError

from inboxzen.classification.prompts import build_messages
from inboxzen.config import settings


logger = structlog.get_logger(__name__)


class RemoteClassificationError(Exception):
    """Remote classifier call failed (network, timeout, malformed response)."""


# ============================================================================
# ABSTRACT BASE CLASS
# ============================================================================

class RemoteClassifier(ABC):
    """
    Abstract base class for remote classifiers.

    Concrete implementations send one request per call and return the raw
    answer text. Validation of the answer is the caller's job.
    """

    provider = "remote"

    def __init__(
        self,
        model: str,
        temperature: float = 0.0,
        max_tokens: int = 10,
        timeout_seconds: float = 5.0,
        categories: Optional[List[str]] = None,
    ):
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout_seconds = timeout_seconds
        self.categories = categories

        self.logger = logger.bind(
            remote_client=self.__class__.__name__,
            model=model
        )

    @abstractmethod
    async def classify(self, prompt_text: str) -> str:
        """
        Ask the remote model for a category.

        Args:
            prompt_text: Case-folded conversation text

        Returns:
            Raw category string as answered by the model

        Raises:
            RemoteClassificationError: On any transport or response error
        """
        pass

    async def aclose(self) -> None:
        """Release network resources."""


# ============================================================================
# OPENAI-COMPATIBLE CLIENT
# ============================================================================

class OpenAIRemoteClassifier(RemoteClassifier):
    """
    OpenAI-compatible chat completion classifier.

    Works with any endpoint speaking the OpenAI chat completions API.
    """

    provider = "openai"

    def __init__(
        self,
        model: str,
        api_key: str,
        base_url: str = "https://api.openai.com/v1",
        **kwargs
    ):
        super().__init__(model=model, **kwargs)
        self.base_url = base_url

        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=self.timeout_seconds,
            max_retries=0,
        )

    async def classify(self, prompt_text: str) -> str:
        start_time = time.time()

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=build_messages(prompt_text, self.categories),
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except (APITimeoutError, APIConnectionError) as e:
            self.logger.warning(
                "openai_api_unreachable",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise RemoteClassificationError(str(e)) from e
        except OpenAIError as e:
            self.logger.warning("openai_classification_failed", error=str(e))
            raise RemoteClassificationError(str(e)) from e

        if not response.choices or response.choices[0].message is None:
            raise RemoteClassificationError("No choices in OpenAI response")

        content = response.choices[0].message.content
        if not content:
            raise RemoteClassificationError("Empty message in OpenAI response")

        self.logger.debug(
            "openai_call_completed",
            latency_ms=int((time.time() - start_time) * 1000),
            finish_reason=response.choices[0].finish_reason,
        )

        return content.strip()

    async def aclose(self) -> None:
        await self.client.close()


# ============================================================================
# OLLAMA CLIENT
# ============================================================================

class OllamaRemoteClassifier(RemoteClassifier):
    """
    Ollama chat classifier for self-hosted models.

    The credential, if any, is sent as a bearer token for deployments behind
    an authenticating proxy.
    """

    provider = "ollama"

    def __init__(
        self,
        model: str,
        base_url: str = "http://localhost:11434",
        api_key: str = "",
        **kwargs
    ):
        super().__init__(model=model, **kwargs)
        self.base_url = base_url

        headers = {"Authorization": f"Bearer {api_key}"} if api_key else None
        self.client = ollama.AsyncClient(
            host=base_url,
            timeout=self.timeout_seconds,
            headers=headers,
        )

    async def classify(self, prompt_text: str) -> str:
        try:
            response = await self.client.chat(
                model=self.model,
                messages=build_messages(prompt_text, self.categories),
                options={
                    "temperature": self.temperature,
                    "num_predict": self.max_tokens,
                },
            )
        except Exception as e:
            # ollama surfaces httpx and ResponseError exceptions alike
            self.logger.warning("ollama_classification_failed", error=str(e))
            raise RemoteClassificationError(str(e)) from e

        content = _message_content(response)
        if not content:
            raise RemoteClassificationError("Empty message in Ollama response")

        return content.strip()


def _message_content(response: Any) -> str:
    try:
        return response["message"]["content"] or ""
    except (KeyError, TypeError):
        return ""


# ============================================================================
# CLIENT FACTORY
# ============================================================================

def is_remote_configured(api_key: Optional[str], use_ai: bool) -> bool:
    """Remote classification needs a credential AND an explicit opt-in."""
    return bool(use_ai) and bool(api_key and api_key.strip())


def create_remote_classifier(
    api_key: Optional[str],
    use_ai: bool,
    provider: Optional[str] = None,
    model: Optional[str] = None,
    **override_kwargs
) -> Optional[RemoteClassifier]:
    """
    Factory function returning the configured remote classifier.

    Args:
        api_key: User credential (from preferences)
        use_ai: User opt-in flag (from preferences)
        provider: "openai" | "ollama" (default: settings.remote_provider)
        model: Model name (default: settings.remote_model)
        **override_kwargs: Override any client parameters

    Returns:
        RemoteClassifier, or None when remote classification is not configured

    Raises:
        ValueError: If the provider is unknown
    """
    if not is_remote_configured(api_key, use_ai):
        return None

    provider = provider or settings.remote_provider
    model = model or settings.remote_model

    client_params: Dict[str, Any] = {
        "temperature": override_kwargs.get("temperature", settings.remote_temperature),
        "max_tokens": override_kwargs.get("max_tokens", settings.remote_max_tokens),
        "timeout_seconds": override_kwargs.get("timeout_seconds", settings.remote_timeout_seconds),
        "categories": override_kwargs.get("categories"),
    }
    base_url = override_kwargs.get("base_url", settings.remote_api_base_url)

    logger.info("creating_remote_classifier", provider=provider, model=model)

    if provider == "openai":
        return OpenAIRemoteClassifier(
            model=model,
            api_key=api_key,
            base_url=base_url,
            **client_params
        )

    elif provider == "ollama":
        return OllamaRemoteClassifier(
            model=model,
            base_url=base_url,
            api_key=api_key,
            **client_params
        )

    else:
        raise ValueError(
            f"Unknown remote provider: {provider}. Supported: openai, ollama"
        )
