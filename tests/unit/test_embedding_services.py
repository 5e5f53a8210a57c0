"""
Unit tests for the embedding client and indexer.

Tests:
- HTTP request shape and error mapping
- Rate-limit retries
- Batched indexing with recorded failures
- Checkpoint resume
"""

from unittest.mock import Mock

import pytest
import requests

from category_grouper.services.embedding_client import EmbeddingClient
from category_grouper.services.embedding_indexer import (
    EmbeddingIndexer,
    EmbeddingOutcome,
    build_items,
    fingerprint,
)
from category_grouper.utils.checkpoint import CheckpointStore
from category_grouper.utils.error_handling import (
    EmbeddingServiceError,
    RateLimitError,
    RetryConfig,
)

FAST_RETRY = RetryConfig(max_attempts=3, initial_delay=0.0, jitter=False)


def response(status_code=200, payload=None):
    mock = Mock()
    mock.status_code = status_code
    mock.text = "error body"
    mock.json.return_value = payload if payload is not None else {"embedding": {"values": [0.1, 0.2]}}
    return mock


def make_client(*responses):
    session = Mock()
    session.post.side_effect = list(responses)
    client = EmbeddingClient(api_key="test-key", retry_config=FAST_RETRY, session=session)
    return client, session


class FakeClient:
    """Embeds a text as [len(text), position of first char]; fails on request."""

    def __init__(self, failing=(), crash_on=None):
        self.failing = set(failing)
        self.crash_on = crash_on
        self.calls = []

    def embed(self, text):
        self.calls.append(text)
        if text == self.crash_on:
            raise RuntimeError("process killed")
        if text in self.failing:
            raise EmbeddingServiceError(f"cannot embed {text}")
        return [float(len(text)), float(ord(text[0]))]


@pytest.mark.unit
class TestEmbeddingClient:
    """Test suite for EmbeddingClient."""

    def test_requires_api_key(self):
        with pytest.raises(EmbeddingServiceError) as exc_info:
            EmbeddingClient(api_key="")
        assert exc_info.value.error_code == "MISSING_API_KEY"

    def test_embed_request(self):
        client, session = make_client(response())

        assert client.embed("Hospital Nurse") == [0.1, 0.2]

        url = session.post.call_args.args[0]
        kwargs = session.post.call_args.kwargs
        assert url.endswith("/models/text-embedding-004:embedContent")
        assert kwargs["json"]["content"] == {"parts": [{"text": "Hospital Nurse"}]}
        assert kwargs["headers"] == {"x-goog-api-key": "test-key"}

    def test_retries_rate_limit(self):
        client, session = make_client(response(429), response(503), response())

        assert client.embed("text") == [0.1, 0.2]
        assert session.post.call_count == 3

    def test_rate_limit_exhausted(self):
        client, session = make_client(response(429), response(429), response(429))

        with pytest.raises(RateLimitError):
            client.embed("text")
        assert session.post.call_count == 3

    def test_client_error_not_retried(self):
        client, session = make_client(response(400))

        with pytest.raises(EmbeddingServiceError) as exc_info:
            client.embed("text")
        assert exc_info.value.details["status_code"] == 400
        assert session.post.call_count == 1

    def test_connection_error_retried(self):
        client, session = make_client(requests.ConnectionError("down"), response())

        assert client.embed("text") == [0.1, 0.2]
        assert session.post.call_count == 2

    def test_timeout_mapped(self):
        client, _ = make_client(*[requests.Timeout("slow")] * 3)

        with pytest.raises(TimeoutError):
            client.embed("text")

    def test_malformed_response(self):
        client, _ = make_client(response(payload={"unexpected": True}))

        with pytest.raises(EmbeddingServiceError):
            client.embed("text")

    def test_other_request_errors_mapped(self):
        client, session = make_client(requests.exceptions.ChunkedEncodingError("cut"))

        with pytest.raises(EmbeddingServiceError) as exc_info:
            client.embed("text")
        assert isinstance(exc_info.value.__cause__, requests.exceptions.ChunkedEncodingError)
        assert session.post.call_count == 1

    def test_context_manager_closes_session(self):
        client, session = make_client()
        with client:
            pass
        session.close.assert_called_once()


@pytest.mark.unit
class TestEmbeddingIndexer:
    """Test suite for EmbeddingIndexer."""

    def test_one_outcome_per_index(self):
        indexer = EmbeddingIndexer(FakeClient(), batch_size=2, concurrency=2, batch_delay_seconds=0)
        outcomes = indexer.embed(["ab", "cde", "f", "ghij", "k"])

        assert [outcome.index for outcome in outcomes] == [0, 1, 2, 3, 4]
        assert outcomes[1].embedding == [3.0, float(ord("c"))]
        assert all(outcome.ok for outcome in outcomes)

    def test_failures_are_recorded(self):
        indexer = EmbeddingIndexer(FakeClient(failing={"bad"}), batch_size=2, batch_delay_seconds=0)
        outcomes = indexer.embed(["good", "bad", "fine"])

        assert [outcome.ok for outcome in outcomes] == [True, False, True]
        assert "cannot embed bad" in outcomes[1].error

    def test_transport_failure_recorded_not_raised(self):
        client, _ = make_client(requests.exceptions.InvalidURL("no host"), response())
        indexer = EmbeddingIndexer(client, batch_size=1, concurrency=1, batch_delay_seconds=0)

        outcomes = indexer.embed(["broken", "fine"])

        assert [outcome.ok for outcome in outcomes] == [False, True]
        assert "no host" in outcomes[0].error

    def test_progress_callback(self):
        progress = []
        indexer = EmbeddingIndexer(FakeClient(), batch_size=2, batch_delay_seconds=0)
        indexer.embed(["a", "b", "c"], on_progress=lambda done, total: progress.append((done, total)))

        assert progress == [(2, 3), (3, 3)]

    def test_resume_after_crash(self, tmp_path):
        checkpoints = CheckpointStore(str(tmp_path / "checkpoint.json"))
        texts = ["alpha", "beta", "gamma"]

        crashing = EmbeddingIndexer(
            FakeClient(crash_on="gamma"),
            batch_size=1,
            batch_delay_seconds=0,
            checkpoint_store=checkpoints,
            checkpoint_interval=1,
        )
        with pytest.raises(RuntimeError):
            crashing.embed(texts)

        assert checkpoints.load()["next_offset"] == 2

        client = FakeClient()
        resumed = EmbeddingIndexer(
            client,
            batch_size=1,
            batch_delay_seconds=0,
            checkpoint_store=checkpoints,
            checkpoint_interval=1,
        )
        outcomes = resumed.embed(texts)

        assert client.calls == ["gamma"]
        assert [outcome.index for outcome in outcomes] == [0, 1, 2]
        assert outcomes[0].embedding == [5.0, float(ord("a"))]
        assert checkpoints.load() is None

    def test_checkpoint_for_other_input_ignored(self, tmp_path):
        checkpoints = CheckpointStore(str(tmp_path / "checkpoint.json"))
        checkpoints.save({
            "fingerprint": fingerprint(["other"]),
            "next_offset": 1,
            "outcomes": [{"index": 0, "embedding": [9.0], "error": None}],
        })
        client = FakeClient()
        indexer = EmbeddingIndexer(client, batch_size=10, batch_delay_seconds=0, checkpoint_store=checkpoints)

        outcomes = indexer.embed(["one", "two"])

        assert client.calls == ["one", "two"]
        assert len(outcomes) == 2

    def test_fingerprint_depends_on_content_and_order(self):
        assert fingerprint(["a", "b"]) != fingerprint(["b", "a"])
        assert fingerprint(["ab"]) != fingerprint(["a", "b"])
        assert fingerprint([]).startswith("0:")


@pytest.mark.unit
class TestBuildItems:
    """Test suite for build_items."""

    def test_skips_failed_indices(self):
        rows = [
            {"id": "1", "name": "Hospital Nurse"},
            {"id": "2", "name": "Clinic Aide"},
            {"id": "3", "name": "Payroll Clerk"},
        ]
        outcomes = [
            EmbeddingOutcome(index=0, embedding=[1.0]),
            EmbeddingOutcome(index=1, error="rate limited"),
            EmbeddingOutcome(index=2, embedding=[2.0]),
        ]

        items = build_items(rows, outcomes)

        assert [(item.id, item.name, item.embedding) for item in items] == [
            ("1", "Hospital Nurse", [1.0]),
            ("3", "Payroll Clerk", [2.0]),
        ]
