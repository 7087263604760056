"""LiteLLM client wrapper with retry, backoff, and API key validation.

All embedding and completion calls route through this module.
LiteLLM's built-in retry is used (num_retries, exponential backoff); a call
that still fails is surfaced as ProviderError. Nothing is retried here.
"""

from __future__ import annotations

import os
from collections.abc import Iterator, Sequence
from concurrent.futures import ThreadPoolExecutor

import litellm

from dashrag.errors import ConfigurationError, MissingApiKeyError, ProviderError
from dashrag.log import get_logger, log_event

# Disable LiteLLM verbose logging unless explicitly enabled
litellm.suppress_debug_info = True
litellm.set_verbose = False  # type: ignore[assignment]

logger = get_logger(__name__)


# ------------------------------------------------------------------
# Provider → env var mapping for API key validation
# ------------------------------------------------------------------

_PROVIDER_ENV: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "azure": "AZURE_API_KEY",
    "cohere": "COHERE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "groq": "GROQ_API_KEY",
    "together_ai": "TOGETHERAI_API_KEY",
    "ollama": None,  # Local, no key required
    "ollama_chat": None,
}


def validate_api_key(model: str) -> None:
    """Check that the required API key env var is set for *model*.

    Args:
        model: LiteLLM model string in 'provider/model' format.

    Raises:
        MissingApiKeyError: If the required key is missing from environment.
    """
    provider = model.split("/")[0].lower() if "/" in model else "openai"
    env_var = _PROVIDER_ENV.get(provider)

    if env_var is None:
        return

    if not os.getenv(env_var):
        raise MissingApiKeyError(provider, env_var)


def complete(
    model: str,
    messages: list[dict],
    max_tokens: int = 1024,
    temperature: float = 0.0,
    num_retries: int = 3,
) -> str:
    """Call litellm.completion() with retry/backoff. Returns content string.

    Returns:
        The text content of the first choice ("" if the provider sent none).

    Raises:
        ProviderError: On persistent provider failure after retries.
    """
    try:
        response = litellm.completion(
            model=model,
            messages=messages,
            max_tokens=max_tokens,
            temperature=temperature,
            num_retries=num_retries,
        )
    except Exception as exc:
        log_event(logger, "error", "completion_failed", model=model, error=type(exc).__name__)
        raise ProviderError(f"Completion call to '{model}' failed: {exc}", model=model) from exc
    if not response.choices:
        return ""
    return response.choices[0].message.content or ""


def embed(model: str, text: str, num_retries: int = 3) -> list[float]:
    """Call litellm.embedding() with retry/backoff. Returns embedding vector.

    Raises:
        ProviderError: On persistent provider failure after retries.
    """
    try:
        response = litellm.embedding(
            model=model,
            input=[text],
            num_retries=num_retries,
        )
    except Exception as exc:
        log_event(logger, "error", "embedding_failed", model=model, error=type(exc).__name__)
        raise ProviderError(f"Embedding call to '{model}' failed: {exc}", model=model) from exc
    return list(response.data[0]["embedding"])


# ------------------------------------------------------------------
# Clients
# ------------------------------------------------------------------


class EmbeddingClient:
    """text → fixed-width vector via the configured embedding model.

    Args:
        model: LiteLLM embedding model string.
        dimensions: Width every returned vector must have.
        num_retries: Provider retries before ProviderError.
    """

    def __init__(self, model: str, dimensions: int, num_retries: int = 3) -> None:
        self.model = model
        self.dimensions = dimensions
        self.num_retries = num_retries

    def embed(self, text: str) -> list[float]:
        """Embed *text*.

        Raises:
            ProviderError: Provider failed after retries.
            ConfigurationError: Provider returned a vector of the wrong width.
        """
        vector = embed(self.model, text, num_retries=self.num_retries)
        if len(vector) != self.dimensions:
            raise ConfigurationError(
                f"Model '{self.model}' returned {len(vector)}-dimensional embeddings; "
                f"embedding.dimensions is {self.dimensions}."
            )
        return vector

    def embed_many(self, texts: Sequence[str], concurrency: int = 4) -> Iterator[list[float]]:
        """Embed *texts* with at most *concurrency* calls in flight.

        Yields vectors in input order. The first failure is raised when its
        position is reached; vectors before it have already been yielded and
        calls not yet started are cancelled.
        """
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        if not texts:
            return
        pool = ThreadPoolExecutor(
            max_workers=min(concurrency, len(texts)), thread_name_prefix="dashrag-embed"
        )
        futures = [pool.submit(self.embed, text) for text in texts]
        try:
            for future in futures:
                yield future.result()
        finally:
            pool.shutdown(wait=True, cancel_futures=True)


class CompletionClient:
    """(system prompt, user prompt) → answer text via the configured generation model."""

    def __init__(
        self,
        model: str,
        max_tokens: int = 1024,
        temperature: float = 0.0,
        num_retries: int = 3,
    ) -> None:
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.num_retries = num_retries

    def complete(self, system: str, user: str) -> str:
        return complete(
            self.model,
            [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            num_retries=self.num_retries,
        )
