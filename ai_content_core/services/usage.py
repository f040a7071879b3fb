"""
In-memory usage tracking.

Keeps a bounded ledger of generation calls and summarizes token, cost and
latency figures per provider and per task.
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Deque, Dict, List, Optional

logger = logging.getLogger(__name__)

MAX_HISTORY_SIZE = 10000
HIGH_COST_THRESHOLD = 1.0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class UsageRecord:
    """Immutable record of one generation call."""
    provider: str
    task: str
    model: str
    tokens_used: int
    cost: float
    latency_ms: float
    success: bool
    timestamp: datetime = field(default_factory=_utcnow)
    error_message: Optional[str] = None

    def __post_init__(self):
        """Validate record values."""
        if self.tokens_used < 0:
            raise ValueError("tokens_used cannot be negative")
        if self.cost < 0:
            raise ValueError("cost cannot be negative")
        if self.latency_ms < 0:
            raise ValueError("latency_ms cannot be negative")


@dataclass(frozen=True)
class UsageBreakdown:
    """Aggregates for one provider or task."""
    calls: int
    tokens: int
    cost: float
    avg_latency_ms: float
    success_rate: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "calls": self.calls,
            "tokens": self.tokens,
            "cost": round(self.cost, 6),
            "avg_latency_ms": round(self.avg_latency_ms, 2),
            "success_rate": round(self.success_rate, 4),
        }


@dataclass(frozen=True)
class UsageSummary:
    """Totals over a window of usage records."""
    request_count: int
    total_tokens: int
    total_cost: float
    avg_latency_ms: float
    success_rate: float
    by_provider: Dict[str, UsageBreakdown]
    by_task: Dict[str, UsageBreakdown]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "request_count": self.request_count,
            "total_tokens": self.total_tokens,
            "total_cost": round(self.total_cost, 6),
            "avg_latency_ms": round(self.avg_latency_ms, 2),
            "success_rate": round(self.success_rate, 4),
            "by_provider": {k: v.to_dict() for k, v in self.by_provider.items()},
            "by_task": {k: v.to_dict() for k, v in self.by_task.items()},
        }


def _breakdown(records: List[UsageRecord]) -> UsageBreakdown:
    if not records:
        return UsageBreakdown(calls=0, tokens=0, cost=0.0, avg_latency_ms=0.0, success_rate=0.0)
    return UsageBreakdown(
        calls=len(records),
        tokens=sum(r.tokens_used for r in records),
        cost=sum(r.cost for r in records),
        avg_latency_ms=sum(r.latency_ms for r in records) / len(records),
        success_rate=sum(1 for r in records if r.success) / len(records),
    )


class UsageTracker:
    """Bounded, thread-safe usage ledger.

    The oldest records are dropped once ``max_history`` is reached.
    """

    def __init__(self, max_history: int = MAX_HISTORY_SIZE):
        if max_history <= 0:
            raise ValueError("max_history must be > 0")
        self._records: Deque[UsageRecord] = deque(maxlen=max_history)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._records)

    def track(self, record: UsageRecord) -> None:
        """Append a record to the ledger."""
        with self._lock:
            self._records.append(record)
        if not record.success or record.cost > HIGH_COST_THRESHOLD:
            logger.info(
                "Usage tracked: %s %s - %d tokens, $%.4f, %.0fms, success=%s",
                record.provider,
                record.task,
                record.tokens_used,
                record.cost,
                record.latency_ms,
                record.success,
            )

    def records(
        self,
        provider: Optional[str] = None,
        since: Optional[datetime] = None,
    ) -> List[UsageRecord]:
        """Records filtered by provider and start time, oldest first."""
        with self._lock:
            snapshot = list(self._records)
        return [
            r for r in snapshot
            if (provider is None or r.provider == provider) and (since is None or r.timestamp >= since)
        ]

    def summarize(self, provider: Optional[str] = None, days: Optional[int] = None) -> UsageSummary:
        """Summarize tracked usage.

        Args:
            provider: Restrict to one provider
            days: Restrict to records from the last N days

        Returns:
            UsageSummary with totals and per-provider and per-task breakdowns
        """
        since = _utcnow() - timedelta(days=days) if days is not None else None
        records = self.records(provider=provider, since=since)

        by_provider: Dict[str, List[UsageRecord]] = {}
        by_task: Dict[str, List[UsageRecord]] = {}
        for record in records:
            by_provider.setdefault(record.provider, []).append(record)
            by_task.setdefault(record.task, []).append(record)

        total = _breakdown(records)
        return UsageSummary(
            request_count=total.calls,
            total_tokens=total.tokens,
            total_cost=total.cost,
            avg_latency_ms=total.avg_latency_ms,
            success_rate=total.success_rate,
            by_provider={k: _breakdown(v) for k, v in by_provider.items()},
            by_task={k: _breakdown(v) for k, v in by_task.items()},
        )

    def clear(self) -> None:
        with self._lock:
            self._records.clear()
