"""
Record and outcome types shared by the embedder, pipeline and CLI.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional


@dataclass
class EmbeddableRecord:
    """
    One piece of text to embed.

    Attributes:
        content: Text sent to the provider.
        id: Optional caller identifier. Without one, a record is identified
            by its position in the input sequence.
        metadata: Arbitrary caller data carried through untouched.
    """

    content: str
    id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> Dict[str, str]:
        """Provider-facing representation used for payload size estimates."""
        return {"text": self.content or ""}

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"content": self.content}
        if self.id is not None:
            data["id"] = self.id
        if self.metadata:
            data["metadata"] = self.metadata
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EmbeddableRecord":
        content = data.get("content")
        if content is None:
            content = data.get("text", "")
        record_id = data.get("id")
        return cls(
            content=str(content),
            id=str(record_id) if record_id is not None else None,
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass
class EmbeddingOutcome:
    """
    Result of embedding one record.

    Attributes:
        record: The input record, unchanged.
        embedding: Unit-length vector, or ``[]`` when degraded or skipped.
        degraded: True if the provider call failed permanently for this record.
        error: Last error message for degraded outcomes.
        skipped: True if the record had blank content and was never sent.
    """

    record: EmbeddableRecord
    embedding: List[float] = field(default_factory=list)
    degraded: bool = False
    error: Optional[str] = None
    skipped: bool = False

    @property
    def is_indexable(self) -> bool:
        """True only for outcomes that carry a usable vector."""
        return not self.degraded and len(self.embedding) > 0

    @classmethod
    def degraded_for(cls, record: EmbeddableRecord, error: str) -> "EmbeddingOutcome":
        return cls(record=record, embedding=[], degraded=True, error=error)

    @classmethod
    def skipped_for(cls, record: EmbeddableRecord) -> "EmbeddingOutcome":
        return cls(record=record, embedding=[], skipped=True)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "record": self.record.to_dict(),
            "embedding": list(self.embedding),
            "degraded": self.degraded,
        }
        if self.error is not None:
            data["error"] = self.error
        if self.skipped:
            data["skipped"] = True
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EmbeddingOutcome":
        return cls(
            record=EmbeddableRecord.from_dict(data["record"]),
            embedding=[float(v) for v in data.get("embedding") or []],
            degraded=bool(data.get("degraded", False)),
            error=data.get("error"),
            skipped=bool(data.get("skipped", False)),
        )


def outcomes_to_dicts(outcomes: Iterable[EmbeddingOutcome]) -> List[Dict[str, Any]]:
    """JSON-serializable form of *outcomes* (used for idempotency results)."""
    return [o.to_dict() for o in outcomes]


def outcomes_from_dicts(data: Iterable[Dict[str, Any]]) -> List[EmbeddingOutcome]:
    """Inverse of ``outcomes_to_dicts``."""
    return [EmbeddingOutcome.from_dict(d) for d in data]


def summarize_outcomes(outcomes: Iterable[EmbeddingOutcome]) -> Dict[str, int]:
    """Count outcomes by kind: ``total``, ``embedded``, ``degraded``, ``skipped``."""
    summary = {"total": 0, "embedded": 0, "degraded": 0, "skipped": 0}
    for outcome in outcomes:
        summary["total"] += 1
        if outcome.degraded:
            summary["degraded"] += 1
        elif outcome.skipped:
            summary["skipped"] += 1
        else:
            summary["embedded"] += 1
    return summary
