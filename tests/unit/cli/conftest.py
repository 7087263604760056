"""CLI fixtures: isolated config + litellm patched with deterministic fakes."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
import yaml

_ENV_VARS = (
    "DASHRAG_EMBEDDING_MODEL",
    "DASHRAG_GENERATION_MODEL",
    "DASHRAG_DB",
    "DASHRAG_LOG_LEVEL",
)


@pytest.fixture
def cli_env(tmp_path, monkeypatch, embedder):
    """CWD = tmp_path with a dashrag.yaml sized for the fake embedder."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("dashrag.config._GLOBAL_CONFIG_PATH", tmp_path / "no-global.yaml")
    for var in _ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    (tmp_path / "dashrag.yaml").write_text(
        yaml.dump({"embedding": {"dimensions": embedder.dimensions}}), encoding="utf-8"
    )

    def _embedding(model, input, num_retries):
        response = MagicMock()
        response.data = [{"embedding": embedder.embed(input[0])}]
        return response

    completion = MagicMock()
    completion.choices[0].message.content = "2"

    with patch("dashrag.rag.llm_client.litellm.embedding", side_effect=_embedding), patch(
        "dashrag.rag.llm_client.litellm.completion", return_value=completion
    ) as mock_completion:
        yield SimpleNamespace(
            path=tmp_path,
            db=tmp_path / ".dashrag.db",
            completion=mock_completion,
        )


@pytest.fixture
def report_csv(tmp_path):
    path = tmp_path / "report.csv"
    path.write_text("Name,Value\nA,1\nB,2\n", encoding="utf-8")
    return path
