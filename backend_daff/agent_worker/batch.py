"""
Batch processor: classify many inputs concurrently, return results in submission order.

Each input runs the single-item pipeline on a thread pool; results are
collected by index, so output order equals input order regardless of which
analysis finishes first. A batch never raises because of one bad item: the
pipeline already converts failures into error results, and anything escaping
it is converted here the same way.
"""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Callable, Sequence

from backend_daff.analysis_engine.models import (
    AnalysisInput,
    AnalysisResult,
    Flag,
    error_result,
)
from backend_daff.daff_logging import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_WORKERS = 8


@dataclass(frozen=True)
class BatchSummary:
    total: int = 0
    positive: int = 0
    negative: int = 0
    suspicious: int = 0
    average_confidence: float = 0.0
    processing_time_ms: float = 0.0

    @classmethod
    def from_results(cls, results: Sequence[AnalysisResult]) -> BatchSummary:
        if not results:
            return cls()
        flags = [r.flag for r in results]
        return cls(
            total=len(results),
            positive=flags.count(Flag.SAFE),
            negative=flags.count(Flag.MALICIOUS),
            suspicious=flags.count(Flag.SUSPICIOUS),
            average_confidence=sum(r.confidence for r in results) / len(results),
            processing_time_ms=sum(r.processing_time_ms for r in results),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "positive": self.positive,
            "negative": self.negative,
            "suspicious": self.suspicious,
            "averageConfidence": round(self.average_confidence, 4),
            "processingTime": round(self.processing_time_ms, 2),
        }


@dataclass(frozen=True)
class BatchResult:
    results: tuple[AnalysisResult, ...]
    summary: BatchSummary

    def to_dict(self) -> dict[str, Any]:
        return {
            "results": [r.to_dict() for r in self.results],
            "summary": self.summary.to_dict(),
        }


def run_batch(
    classify_fn: Callable[[AnalysisInput], AnalysisResult],
    inputs: Sequence[AnalysisInput],
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> BatchResult:
    """
    Run classify_fn over inputs with at most max_workers threads.

    Returns:
        BatchResult whose results[i] belongs to inputs[i].
    """
    if not inputs:
        return BatchResult(results=(), summary=BatchSummary())

    start = time.monotonic()
    results: list[AnalysisResult | None] = [None] * len(inputs)
    workers = max(1, min(max_workers, len(inputs)))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="daff-batch") as executor:
        futures = {executor.submit(classify_fn, inp): i for i, inp in enumerate(inputs)}
        for fut in as_completed(futures):
            idx = futures[fut]
            try:
                results[idx] = fut.result()
            except Exception as e:
                logger.warning("batch_item_failed", index=idx, error=str(e), exc_info=True)
                results[idx] = error_result(e)

    ordered = tuple(r for r in results if r is not None)
    summary = BatchSummary.from_results(ordered)
    logger.info(
        "batch_completed",
        total=summary.total,
        positive=summary.positive,
        negative=summary.negative,
        suspicious=summary.suspicious,
        duration_sec=round(time.monotonic() - start, 3),
    )
    return BatchResult(results=ordered, summary=summary)
