"""Tests for RagService: the query, data and ingest flows end to end."""

from __future__ import annotations

import json

import pytest

from dashrag.config import DashragConfig
from dashrag.errors import ValidationError
from dashrag.service import RagService

_REPORT_CSV = b"Name,Value\nA,1\nB,2\n"


@pytest.fixture
def service(repo, embedder, completer):
    return RagService(repo, DashragConfig(), embedder=embedder, completer=completer)


def test_ingest_then_query_report(service, completer):
    ingested = service.ingest_file(_REPORT_CSV, "report.csv")
    assert ingested.to_dict() == {"inserted": 3, "graphDataInserted": 1}

    result = service.query("what is the value of B", k=1)

    assert result.answer == "2"
    [context] = result.to_dict()["contexts"]
    assert context["source"] == "report.csv"
    assert "Name: B; Value: 2" in context["content"]
    assert set(context) == {"id", "source", "content", "score"}
    assert "Name: B; Value: 2" in completer.prompts[0][1]


def test_query_default_k_from_config(service):
    service.ingest_file(_REPORT_CSV, "report.csv")
    assert len(service.query("value").contexts) == 3


def test_query_records_conversation(service, repo):
    service.ingest_file(_REPORT_CSV, "report.csv")
    service.query("what is the value of B")
    [turn] = repo.recent_turns(5)
    assert (turn.query, turn.response) == ("what is the value of B", "2")


def test_query_includes_history_oldest_first(service, completer):
    service.ingest_file(_REPORT_CSV, "report.csv")
    service.query("first question")
    service.query("second question")
    service.query("third question")

    last_prompt = completer.prompts[-1][1]
    assert last_prompt.index("Q: first question") < last_prompt.index("Q: second question")
    assert last_prompt.index("Q: second question") < last_prompt.index("Name: A")


def test_query_history_disabled(repo, embedder, completer):
    cfg = DashragConfig()
    cfg.retrieval.history_turns = 0
    service = RagService(repo, cfg, embedder=embedder, completer=completer)
    service.query("first question")
    service.query("second question")
    assert "Q: first question" not in completer.prompts[-1][1]


def test_query_after_delete_has_no_contexts(service):
    service.ingest_file(_REPORT_CSV, "report.csv")
    assert service.delete_source("report.csv") == (3, 1)

    result = service.query("what is the value of B")
    assert result.contexts == []
    assert result.to_dict()["contexts"] == []


@pytest.mark.parametrize("q", [None, "", "   "])
def test_query_requires_question(service, q):
    with pytest.raises(ValidationError, match="'q' is required"):
        service.query(q)


def test_query_source_filter(service):
    service.ingest_file(_REPORT_CSV, "report.csv")
    service.ingest_file(b"The value of B was revised. Nothing else.", "notes.txt")
    result = service.query("value of B", k=5, source="notes.txt")
    assert result.contexts
    assert {c.chunk.source for c in result.contexts} == {"notes.txt"}


def test_query_finds_rare_token_in_ingested_text(service):
    service.ingest_file(b"Shipping notes. The batch code is AEUUU for this run.", "notes.txt")
    result = service.query("AEUUU")
    assert any("AEUUU" in c.chunk.content for c in result.contexts)


def test_query_stopword_only_question_is_bounded(service):
    for i in range(20):
        service.ingest_file(f"Entry number {i} of the log.".encode(), f"log-{i}.txt")
    result = service.query("what is the data", k=3)
    assert len(result.contexts) == 3


def test_query_k_above_index_limit(service):
    service.ingest_file(_REPORT_CSV, "report.csv")
    result = service.query("value", k=5000)
    assert len(result.contexts) == 3


def test_get_data_newest_first(service):
    service.ingest_file(_REPORT_CSV, "first.csv")
    service.ingest_file(b"Region,Sales\nEU,10\n", "second.csv")

    data = service.get_data().to_dict()["data"]

    assert [d["source"] for d in data] == ["second.csv", "first.csv"]
    assert data[1]["table_data"] == [{"Name": "A", "Value": "1"}, {"Name": "B", "Value": "2"}]
    assert set(data[0]) == {"id", "source", "table_data", "created_at"}
    json.dumps(service.get_data().to_dict())


def test_get_data_empty(service):
    assert service.get_data().to_dict() == {"data": []}


def test_get_data_by_source(service):
    service.ingest_file(_REPORT_CSV, "first.csv")
    service.ingest_file(_REPORT_CSV, "second.csv")
    assert [d.source for d in service.get_data("first.csv").data] == ["first.csv"]


def test_ingest_file_source_defaults_to_filename(service, repo):
    service.ingest_file(_REPORT_CSV, "report.csv")
    service.ingest_file(_REPORT_CSV, "report.csv", source="renamed")
    assert dict(repo.list_sources()) == {"renamed": 3, "report.csv": 3}


def test_ingest_file_append_policy(service, repo):
    service.ingest_file(_REPORT_CSV, "report.csv")
    service.ingest_file(_REPORT_CSV, "report.csv", policy="append")
    assert repo.count_chunks("report.csv") == 6
