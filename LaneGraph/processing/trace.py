"""
LaneGraph Evaluation Trace
==========================

Per-call record of node invocations, tabulated with Polars.
"""

from dataclasses import asdict, dataclass
from typing import List, Optional

import polars as pl

from .storage import StorageStats


@dataclass(frozen=True)
class InvocationRecord:
    """Single node invocation."""

    node: str
    function: str
    lanes: int
    elapsed_ms: float


class EvaluationTrace:
    """Invocation log filled in by the evaluator when attached to a Context."""

    def __init__(self) -> None:
        self.records: List[InvocationRecord] = []
        self.storage_stats: Optional[StorageStats] = None

    def record(self, node: str, function: str, lanes: int, elapsed_ms: float) -> None:
        self.records.append(InvocationRecord(node, function, lanes, elapsed_ms))

    @property
    def invoked_nodes(self) -> List[str]:
        """Node names in invocation order."""
        return [r.node for r in self.records]

    def count(self, node: str) -> int:
        return sum(1 for r in self.records if r.node == node)

    def to_frame(self) -> pl.DataFrame:
        """Invocation records as a Polars DataFrame."""
        if not self.records:
            return pl.DataFrame(
                schema={
                    "node": pl.String,
                    "function": pl.String,
                    "lanes": pl.Int64,
                    "elapsed_ms": pl.Float64,
                }
            )
        return pl.DataFrame([asdict(r) for r in self.records])

    def __len__(self) -> int:
        return len(self.records)

    def __repr__(self) -> str:
        return f"EvaluationTrace({len(self)} invocations)"
