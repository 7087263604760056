"""dashrag configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site — not in this module)
  2. Environment variables  (DASHRAG_EMBEDDING_MODEL, DASHRAG_GENERATION_MODEL,
                             DASHRAG_DB, DASHRAG_LOG_LEVEL)
  3. Per-project dashrag.yaml
  4. Global ~/.dashrag/config.yaml  (model defaults only — no API keys)
  5. Hardcoded defaults

Global config must never contain API keys; use environment variables instead.
All YAML reads use yaml.safe_load() — never yaml.load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from dashrag.errors import ConfigurationError
from dashrag.log import LOG_LEVELS

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".dashrag"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "dashrag.yaml"

# Matches api_key, api-key, api_secret, *_token, token, *_secret, secret,
# password, passwd, credential(s). Does not match max_tokens or chunk_tokens.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["database", "embedding", "generation", "retrieval", "ingest", "logging"]
)

FALLBACK_POLICIES: frozenset[str] = frozenset(["merge", "empty_only"])
INGEST_POLICIES: frozenset[str] = frozenset(["replace", "append"])

# Loader-facing alias of errors.ConfigurationError.
ConfigError = ConfigurationError


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class DatabaseCfg:
    """SQLite store location (dashrag.yaml: database:)."""

    path: str = ".dashrag.db"


@dataclass
class EmbeddingCfg:
    """Embedding provider configuration (dashrag.yaml: embedding:)."""

    model: str = "openai/text-embedding-3-small"
    dimensions: int = 1536
    num_retries: int = 3


@dataclass
class GenerationCfg:
    """Answer generation configuration (dashrag.yaml: generation:)."""

    model: str = "openai/gpt-4o-mini"
    max_tokens: int = 1024
    num_retries: int = 3


@dataclass
class RetrievalCfg:
    """Hybrid retrieval configuration (dashrag.yaml: retrieval:).

    Attributes:
        top_k: Default number of contexts returned per query.
        fallback_policy: 'merge' (lexical always computed, merged at
            lexical_score) or 'empty_only' (lexical only when the semantic
            channel is empty, scored fallback_score).
        lexical_score: Score assigned to lexical-only hits under 'merge'.
        fallback_score: Score assigned to fallback hits under 'empty_only'.
        history_turns: Conversation turns prepended to the context (0 = off).
    """

    top_k: int = 5
    fallback_policy: str = "merge"
    lexical_score: float = 0.75
    fallback_score: float = 0.0
    history_turns: int = 3


@dataclass
class IngestCfg:
    """Ingestion configuration (dashrag.yaml: ingest:).

    Attributes:
        chunk_tokens: Soft whitespace-token budget per text chunk.
        policy: 'replace' purges prior data for a source before writing;
            'append' keeps it.
        embed_concurrency: Maximum embedding calls in flight per ingest.
        missing_value: Text rendered for absent tabular fields.
    """

    chunk_tokens: int = 120
    policy: str = "replace"
    embed_concurrency: int = 4
    missing_value: str = ""


@dataclass
class LoggingCfg:
    level: str = "warning"


@dataclass
class DashragConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    database: DatabaseCfg = field(default_factory=DatabaseCfg)
    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    generation: GenerationCfg = field(default_factory=GenerationCfg)
    retrieval: RetrievalCfg = field(default_factory=RetrievalCfg)
    ingest: IngestCfg = field(default_factory=IngestCfg)
    logging: LoggingCfg = field(default_factory=LoggingCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Global config '{source}' contains a forbidden key '{full}'.\n"
                        f"  API keys must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {str(k).upper().replace('-', '_')}=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=4,
            )


def validate_config(cfg: DashragConfig) -> None:
    """Raise ConfigError for values no component can run with."""
    if cfg.retrieval.fallback_policy not in FALLBACK_POLICIES:
        raise ConfigError(
            f"retrieval.fallback_policy must be one of {sorted(FALLBACK_POLICIES)}, "
            f"got '{cfg.retrieval.fallback_policy}'"
        )
    if cfg.ingest.policy not in INGEST_POLICIES:
        raise ConfigError(
            f"ingest.policy must be one of {sorted(INGEST_POLICIES)}, got '{cfg.ingest.policy}'"
        )
    if cfg.embedding.dimensions < 1:
        raise ConfigError(f"embedding.dimensions must be >= 1, got {cfg.embedding.dimensions}")
    if cfg.retrieval.top_k < 1:
        raise ConfigError(f"retrieval.top_k must be >= 1, got {cfg.retrieval.top_k}")
    if cfg.retrieval.history_turns < 0:
        raise ConfigError(
            f"retrieval.history_turns must be >= 0, got {cfg.retrieval.history_turns}"
        )
    if cfg.ingest.chunk_tokens < 1:
        raise ConfigError(f"ingest.chunk_tokens must be >= 1, got {cfg.ingest.chunk_tokens}")
    if cfg.ingest.embed_concurrency < 1:
        raise ConfigError(
            f"ingest.embed_concurrency must be >= 1, got {cfg.ingest.embed_concurrency}"
        )
    if cfg.logging.level.lower() not in LOG_LEVELS:
        raise ConfigError(
            f"logging.level must be one of {list(LOG_LEVELS)}, got '{cfg.logging.level}'"
        )


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _cfg_from_dict(data: dict[str, Any]) -> DashragConfig:
    """Build a *DashragConfig* from a merged raw YAML dict."""
    cfg = DashragConfig()

    if "database" in data:
        d = data["database"] or {}
        cfg.database = DatabaseCfg(path=str(d.get("path", cfg.database.path)))

    if "embedding" in data:
        e = data["embedding"] or {}
        cfg.embedding = EmbeddingCfg(
            model=str(e.get("model", cfg.embedding.model)),
            dimensions=int(e.get("dimensions", cfg.embedding.dimensions)),
            num_retries=int(e.get("num_retries", cfg.embedding.num_retries)),
        )

    if "generation" in data:
        g = data["generation"] or {}
        cfg.generation = GenerationCfg(
            model=str(g.get("model", cfg.generation.model)),
            max_tokens=int(g.get("max_tokens", cfg.generation.max_tokens)),
            num_retries=int(g.get("num_retries", cfg.generation.num_retries)),
        )

    if "retrieval" in data:
        r = data["retrieval"] or {}
        cfg.retrieval = RetrievalCfg(
            top_k=int(r.get("top_k", cfg.retrieval.top_k)),
            fallback_policy=str(r.get("fallback_policy", cfg.retrieval.fallback_policy)),
            lexical_score=float(r.get("lexical_score", cfg.retrieval.lexical_score)),
            fallback_score=float(r.get("fallback_score", cfg.retrieval.fallback_score)),
            history_turns=int(r.get("history_turns", cfg.retrieval.history_turns)),
        )

    if "ingest" in data:
        i = data["ingest"] or {}
        cfg.ingest = IngestCfg(
            chunk_tokens=int(i.get("chunk_tokens", cfg.ingest.chunk_tokens)),
            policy=str(i.get("policy", cfg.ingest.policy)),
            embed_concurrency=int(i.get("embed_concurrency", cfg.ingest.embed_concurrency)),
            missing_value=str(i.get("missing_value", cfg.ingest.missing_value)),
        )

    if "logging" in data:
        lg = data["logging"] or {}
        cfg.logging = LoggingCfg(level=str(lg.get("level", cfg.logging.level)))

    return cfg


def _apply_env_overrides(cfg: DashragConfig) -> DashragConfig:
    """Apply DASHRAG_* environment variable overrides."""
    if model := os.environ.get("DASHRAG_GENERATION_MODEL"):
        cfg.generation.model = model
    if model := os.environ.get("DASHRAG_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    if db := os.environ.get("DASHRAG_DB"):
        cfg.database.path = db
    if level := os.environ.get("DASHRAG_LOG_LEVEL"):
        cfg.logging.level = level
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> DashragConfig:
    """Load and return a merged, validated *DashragConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *dashrag.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Raises:
        ConfigError: If global config contains API-key-like fields, or any
            value fails validate_config().
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    if global_path.exists():
        raw_global = yaml.safe_load(global_path.read_text(encoding="utf-8")) or {}
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = yaml.safe_load(project_cfg_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _apply_env_overrides(_cfg_from_dict(merged))
    validate_config(cfg)
    return cfg
