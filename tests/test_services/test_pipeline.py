"""
Tests for DynamicBatchEmbeddingPipeline.
"""

import asyncio
import random
from typing import List, Optional

import pytest

from resilient_embed.config import PipelineConfig
from resilient_embed.providers.base_embedding import BaseEmbeddingProvider, EmbeddingResult
from resilient_embed.providers.errors import EmbeddingFailedError
from resilient_embed.services.batch_sizing import BatchSizeBudget
from resilient_embed.services.pipeline import DynamicBatchEmbeddingPipeline
from resilient_embed.services.records import EmbeddableRecord, summarize_outcomes


class _SlowProvider(BaseEmbeddingProvider):
    """Async provider that yields to the event loop and tracks concurrency."""

    model = "slow"

    def __init__(self):
        self.in_flight = 0
        self.peak = 0

    async def create_embeddings(
        self, texts: List[str], model: str, dimensions: Optional[int] = None
    ) -> List[EmbeddingResult]:
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            await asyncio.sleep(0.01)
            return [EmbeddingResult(vector=[float(len(t)), 1.0], index=i) for i, t in enumerate(texts)]
        finally:
            self.in_flight -= 1

    def get_provider_name(self) -> str:
        return "slow"

    async def close(self) -> None:
        pass


def _pipeline(provider, sleep, **config):
    config.setdefault("initial_delay_ms", 10)
    return DynamicBatchEmbeddingPipeline(provider, PipelineConfig(**config), sleep=sleep)


@pytest.mark.asyncio
async def test_empty_input_returns_empty_list(healthy_provider, recording_sleep):
    assert await _pipeline(healthy_provider, recording_sleep).process([]) == []
    assert healthy_provider.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize("seed", [1, 7, 42, 99])
async def test_output_matches_input_length_and_order(healthy_provider, recording_sleep, seed):
    """For any input size, result[i].record is records[i]."""
    rng = random.Random(seed)
    n = rng.randint(1, 120)
    records = [
        EmbeddableRecord(content="w" * rng.randint(1, 400), id=str(i)) for i in range(n)
    ]

    outcomes = await _pipeline(
        healthy_provider, recording_sleep, max_payload_bytes=2000, max_batch_size=9
    ).process(records)

    assert len(outcomes) == n
    assert all(o.record is r for o, r in zip(outcomes, records))
    assert sum(len(c) for c in healthy_provider.calls) == n


@pytest.mark.asyncio
async def test_end_to_end_vectors_are_unit_length(scripted_provider, vectors_by_text, recording_sleep):
    """[3,0,0,0] and [0,4,0,0] come back as unit vectors."""
    provider = scripted_provider(
        vectors_by_text({"first": [3.0, 0.0, 0.0, 0.0], "second": [0.0, 4.0, 0.0, 0.0]})
    )
    records = [EmbeddableRecord(content="first"), EmbeddableRecord(content="second")]

    outcomes = await _pipeline(provider, recording_sleep).process(records)

    assert outcomes[0].embedding == [1.0, 0.0, 0.0, 0.0]
    assert outcomes[1].embedding == [0.0, 1.0, 0.0, 0.0]
    assert all(o.is_indexable for o in outcomes)


@pytest.mark.asyncio
async def test_persistent_rate_limit_degrades_every_record(failing_provider, recording_sleep, make_records):
    """With max_retries=1 and a provider that always rate-limits, every record is degraded."""
    provider = failing_provider(fail_count=1000, message="rate limited")
    records = make_records(3)

    outcomes = await _pipeline(provider, recording_sleep, max_retries=1).process(records)

    assert len(outcomes) == 3
    assert all(o.degraded and o.embedding == [] for o in outcomes)
    assert len(provider.calls) == 2
    assert summarize_outcomes(outcomes) == {"total": 3, "embedded": 0, "degraded": 3, "skipped": 0}


@pytest.mark.asyncio
async def test_blank_records_are_skipped(healthy_provider, recording_sleep, make_records):
    """Blank content is never sent; its outcome is marked skipped."""
    records = make_records(["alpha", "   ", "", "beta"])

    outcomes = await _pipeline(healthy_provider, recording_sleep).process(records)

    assert healthy_provider.calls == [["alpha", "beta"]]
    assert [o.skipped for o in outcomes] == [False, True, True, False]
    assert not outcomes[1].degraded
    assert outcomes[1].embedding == []
    assert not outcomes[1].is_indexable


@pytest.mark.asyncio
async def test_all_blank_input_makes_no_calls(healthy_provider, recording_sleep, make_records):
    outcomes = await _pipeline(healthy_provider, recording_sleep).process(make_records(["", " "]))

    assert healthy_provider.calls == []
    assert all(o.skipped for o in outcomes)


@pytest.mark.asyncio
async def test_slices_follow_budget(healthy_provider, recording_sleep, make_records):
    """Slices have the size estimated from the budget."""
    records = make_records(7)

    await _pipeline(healthy_provider, recording_sleep).process(
        records, budget=BatchSizeBudget(max_payload_bytes=100000, max_batch_size=3)
    )

    assert [len(c) for c in healthy_provider.calls] == [3, 3, 1]


@pytest.mark.asyncio
async def test_failure_in_one_slice_does_not_affect_others(scripted_provider, recording_sleep, make_records):
    """Only the slice containing the bad record is degraded."""
    def respond(texts):
        if "bad" in texts:
            raise Exception("401 Unauthorized")
        return [[1.0, 1.0] for _ in texts]

    provider = scripted_provider(respond)
    records = make_records(["a", "b", "bad", "c", "d", "e"])

    outcomes = await _pipeline(provider, recording_sleep, max_batch_size=2).process(records)

    assert [o.degraded for o in outcomes] == [False, False, True, True, False, False]
    assert outcomes[2].error == "401 Unauthorized"


@pytest.mark.asyncio
async def test_unexpected_embedder_error_is_isolated(healthy_provider, recording_sleep, make_records, monkeypatch):
    """A non-provider exception inside one slice degrades that slice only."""
    pipeline = _pipeline(healthy_provider, recording_sleep, max_batch_size=2)
    original = pipeline.embedder.embed

    async def flaky(batch, **kwargs):
        if batch[0].content == "c":
            raise KeyError("boom")
        return await original(batch, **kwargs)

    monkeypatch.setattr(pipeline.embedder, "embed", flaky)

    outcomes = await pipeline.process(make_records(["a", "b", "c", "d", "e"]))

    assert [o.degraded for o in outcomes] == [False, False, True, True, False]
    assert "boom" in outcomes[2].error


@pytest.mark.asyncio
async def test_concurrent_slices_preserve_order_and_bound(recording_sleep, make_records):
    """With max_concurrency=3 at most three slices are in flight; order is kept."""
    provider = _SlowProvider()
    records = make_records([f"text-{'x' * i}" for i in range(13)])

    outcomes = await _pipeline(
        provider, recording_sleep, max_batch_size=2, max_concurrency=3
    ).process(records)

    assert [o.record for o in outcomes] == records
    assert not any(o.degraded for o in outcomes)
    assert 1 < provider.peak <= 3


@pytest.mark.asyncio
async def test_cancelled_run_degrades_pending_records(healthy_provider, recording_sleep, make_records):
    cancel = asyncio.Event()
    cancel.set()

    outcomes = await _pipeline(healthy_provider, recording_sleep).process(
        make_records(["a", "", "b"]), cancel_event=cancel
    )

    assert healthy_provider.calls == []
    assert outcomes[0].degraded and outcomes[0].error == "cancelled"
    assert outcomes[1].skipped


@pytest.mark.asyncio
async def test_embed_text_returns_unit_vector(scripted_provider, recording_sleep):
    provider = scripted_provider(lambda texts: [[0.0, 5.0]])

    vector = await _pipeline(provider, recording_sleep).embed_text("hello")

    assert vector == [0.0, 1.0]


@pytest.mark.asyncio
async def test_embed_text_rejects_blank(healthy_provider, recording_sleep):
    with pytest.raises(ValueError, match="empty text"):
        await _pipeline(healthy_provider, recording_sleep).embed_text("   ")


@pytest.mark.asyncio
async def test_embed_text_raises_when_degraded(failing_provider, recording_sleep):
    provider = failing_provider(fail_count=100, message="403 Forbidden")

    with pytest.raises(EmbeddingFailedError, match="403"):
        await _pipeline(provider, recording_sleep).embed_text("hello")
