"""Data models for MarketScout research jobs, providers and entities."""

from __future__ import annotations

import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Optional

from marketscout.core.exceptions import WorkflowError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ResearchMode(str, Enum):
    """How a job spreads work across providers."""

    PARALLEL = "parallel"
    SEQUENTIAL = "sequential"


class JobStatus(str, Enum):
    """Overall job status."""

    RUNNING = "running"
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not JobStatus.RUNNING


class RunStatus(str, Enum):
    """Status of a single provider inside a job."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


_ALLOWED_TRANSITIONS = {
    RunStatus.PENDING: {RunStatus.RUNNING, RunStatus.FAILED},
    RunStatus.RUNNING: {RunStatus.COMPLETED, RunStatus.FAILED},
    RunStatus.COMPLETED: set(),
    RunStatus.FAILED: set(),
}


@dataclass(frozen=True)
class ProviderMeta:
    """Static description of a research provider."""

    name: str
    description: str
    version: str
    capabilities: List[str] = field(default_factory=list)
    limitations: List[str] = field(default_factory=list)
    enabled: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PerformanceRecord:
    """Rolling statistics for one provider."""

    provider_name: str
    total_runs: int = 0
    successful_runs: int = 0
    failed_runs: int = 0
    avg_run_time_seconds: float = 0.0
    completion_rate_pct: float = 100.0
    api_success_rate_pct: float = 100.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Step:
    """One entry of a provider's execution trace."""

    id: int
    name: str
    description: str
    completed: bool
    result: str
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return data


@dataclass(frozen=True)
class ScoreBreakdown:
    """Weighted score of an entity and its three components."""

    funding_score: float
    buzz_score: float
    relevance_score: float
    total_score: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class StockQuote:
    """Live price data for a public company."""

    symbol: str
    current_price: float
    change: float
    change_percent: float
    last_updated: datetime
    market_cap: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["last_updated"] = self.last_updated.isoformat()
        return data


@dataclass
class Entity:
    """A researched company as produced by one provider."""

    name: str
    website_url: str
    founding_year: Optional[int] = None
    location: Optional[str] = None
    focus_area: Optional[str] = None
    investors: List[str] = field(default_factory=list)
    funding_amount: Optional[str] = None
    news_headlines: List[str] = field(default_factory=list)
    is_public: bool = False
    stock_symbol: Optional[str] = None
    stock_price: Optional[StockQuote] = None
    score_breakdown: Optional[ScoreBreakdown] = None
    agent_steps: List[Step] = field(default_factory=list)
    summary: Optional[str] = None
    discovered_by: Optional[str] = None
    discovered_at: Optional[datetime] = None

    # Fields passed along to the next provider in a sequential chain
    FACT_FIELDS = (
        "founding_year",
        "location",
        "focus_area",
        "investors",
        "funding_amount",
        "news_headlines",
        "website_url",
        "is_public",
        "stock_symbol",
    )

    def facts(self) -> Dict[str, Any]:
        """Extracted facts, without trace, score or bookkeeping fields."""
        facts: Dict[str, Any] = {"company_name": self.name}
        for key in self.FACT_FIELDS:
            value = getattr(self, key)
            if value is None or value == []:
                continue
            facts[key] = list(value) if isinstance(value, list) else value
        return facts

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "founding_year": self.founding_year,
            "location": self.location,
            "focus_area": self.focus_area,
            "investors": list(self.investors),
            "funding_amount": self.funding_amount,
            "news_headlines": list(self.news_headlines),
            "website_url": self.website_url,
            "is_public": self.is_public,
            "stock_symbol": self.stock_symbol,
            "stock_price": self.stock_price.to_dict() if self.stock_price else None,
            "score_breakdown": self.score_breakdown.to_dict() if self.score_breakdown else None,
            "agent_steps": [s.to_dict() for s in self.agent_steps],
            "summary": self.summary,
            "discovered_by": self.discovered_by,
            "discovered_at": self.discovered_at.isoformat() if self.discovered_at else None,
        }


@dataclass
class ProviderRunStatus:
    """Progress of one provider within one job. Moves pending -> running -> done."""

    status: RunStatus = RunStatus.PENDING
    progress: int = 0
    steps: List[Step] = field(default_factory=list)
    error: Optional[str] = None
    elapsed_seconds: Optional[float] = None

    def _transition(self, target: RunStatus) -> None:
        if target not in _ALLOWED_TRANSITIONS[self.status]:
            raise WorkflowError(
                f"Illegal provider status transition {self.status.value} -> {target.value}"
            )
        self.status = target

    def start(self) -> None:
        self._transition(RunStatus.RUNNING)

    def complete(self, steps: List[Step]) -> None:
        self._transition(RunStatus.COMPLETED)
        self.progress = 100
        self.steps = list(steps)

    def fail(self, error: str) -> None:
        self._transition(RunStatus.FAILED)
        self.error = error

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "progress": self.progress,
            "steps": [s.to_dict() for s in self.steps],
            "error": self.error,
            "elapsed_seconds": self.elapsed_seconds,
        }


@dataclass
class Job:
    """One orchestration request spanning one or more providers."""

    id: str
    company_name: str
    providers: List[str]
    mode: ResearchMode
    status: JobStatus = JobStatus.RUNNING
    start_time: datetime = field(default_factory=utcnow)
    end_time: Optional[datetime] = None
    error: Optional[str] = None
    provider_status: Dict[str, ProviderRunStatus] = field(default_factory=dict)
    provider_results: Dict[str, Entity] = field(default_factory=dict)
    # Merged facts handed along a sequential chain
    findings: Dict[str, Any] = field(default_factory=dict)
    _sealed: bool = field(default=False, init=False, repr=False, compare=False)
    _lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        for name in self.providers:
            self.provider_status.setdefault(name, ProviderRunStatus())

    def __setattr__(self, key: str, value: Any) -> None:
        if getattr(self, "_sealed", False):
            raise WorkflowError(f"Job {self.id} is finalized and can no longer change")
        super().__setattr__(key, value)

    @property
    def is_finalized(self) -> bool:
        return self._sealed

    def record_result(self, provider_name: str, entity: Entity) -> None:
        """Store a provider's entity. Safe to call from worker threads."""
        with self._lock:
            if self._sealed:
                raise WorkflowError(f"Job {self.id} is finalized and can no longer change")
            self.provider_results[provider_name] = entity

    def finalize(self, status: JobStatus, error: Optional[str] = None) -> None:
        """Set the terminal status and freeze the job and its mappings."""
        if not status.is_terminal:
            raise WorkflowError(f"{status.value} is not a terminal job status")
        with self._lock:
            self.status = status
            self.error = error
            self.end_time = utcnow()
            # Read-only views of the mappings
            self.provider_status = MappingProxyType(dict(self.provider_status))
            self.provider_results = MappingProxyType(dict(self.provider_results))
            self.findings = MappingProxyType(dict(self.findings))
            self._sealed = True

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.end_time is None:
            return None
        return (self.end_time - self.start_time).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "company_name": self.company_name,
            "providers": list(self.providers),
            "mode": self.mode.value,
            "status": self.status.value,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "error": self.error,
            "provider_status": {k: v.to_dict() for k, v in self.provider_status.items()},
            "provider_results": {k: v.to_dict() for k, v in self.provider_results.items()},
            "findings": dict(self.findings),
        }
