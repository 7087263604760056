"""Exception taxonomy shared by the ingest, retrieval and storage layers."""

from __future__ import annotations


class DashragError(Exception):
    """Base class for all dashrag errors."""


class ValidationError(DashragError, ValueError):
    """Caller supplied a missing or malformed input (empty question, no file, ...)."""


class ProviderError(DashragError):
    """Embedding or completion provider failed after retries."""

    def __init__(self, message: str, model: str = "") -> None:
        super().__init__(message)
        self.model = model


class StorageError(DashragError):
    """Read or write against the chunk / snapshot / conversation store failed."""


class UnsupportedFormatError(DashragError):
    """A file could not be parsed as any recognised tabular format.

    The ingestor catches this and degrades to plain-text ingestion.
    """


class ConfigurationError(DashragError, ValueError):
    """Fatal configuration problem (bad config value, vector width mismatch, missing key)."""


class MissingApiKeyError(ConfigurationError):
    """The provider for a configured model needs an API key that is not set."""

    def __init__(self, provider: str, env_var: str) -> None:
        super().__init__(
            f"API key not found for provider '{provider}'. "
            f"Set the {env_var} environment variable."
        )
        self.provider = provider
        self.env_var = env_var
