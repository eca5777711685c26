"""
Provider benchmarking.

Runs a set of test companies through the chosen providers and scores each
provider on speed, data completeness and the credibility of the news
outlets it cites.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import structlog

from marketscout.core.exceptions import ValidationError
from marketscout.core.models import Entity, RunStatus
from marketscout.services.orchestrator import ResearchOrchestrator

logger = structlog.get_logger(__name__)

METRIC_WEIGHTS = {
    "execution_time": 0.3,
    "data_completeness": 0.4,
    "source_credibility": 0.3,
}

# Runs at or under this average duration get the full execution score
TARGET_EXECUTION_SECONDS = 10.0

SOURCE_WEIGHTS = {
    "yahoo finance": 1.0,
    "business insider": 0.9,
    "bloomberg": 0.9,
    "financial times": 0.8,
    "cnbc": 0.8,
    "reuters": 0.8,
    "wall street journal": 0.8,
    "wsj": 0.8,
    "techcrunch": 0.7,
}
DEFAULT_CREDIBILITY = 0.7

CORE_FIELDS = ("founding_year", "focus_area", "funding_amount")


@dataclass
class ProviderBenchmark:
    """Raw benchmark counts for one provider."""

    total_tests: int = 0
    successful_tests: int = 0
    execution_times: List[float] = field(default_factory=list)
    credibility_samples: List[float] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def average_execution_time(self) -> float:
        if not self.execution_times:
            return 0.0
        return sum(self.execution_times) / len(self.execution_times)

    @property
    def success_rate(self) -> float:
        return self.successful_tests / self.total_tests if self.total_tests else 0.0


@dataclass
class BenchmarkScore:
    total_score: float
    execution_time_score: float
    completeness_score: float
    source_credibility_score: float

    def to_dict(self) -> Dict[str, float]:
        return {k: round(v, 4) for k, v in asdict(self).items()}


def source_credibility(headlines: Sequence[str]) -> float:
    """Mean weight of recognised outlets named in ``headlines``."""
    weights = []
    for headline in headlines:
        lowered = headline.lower()
        for outlet, weight in SOURCE_WEIGHTS.items():
            if outlet in lowered:
                weights.append(weight)
                break
    if not weights:
        return DEFAULT_CREDIBILITY
    return sum(weights) / len(weights)


def is_complete(entity: Optional[Entity]) -> bool:
    return entity is not None and all(getattr(entity, f) not in (None, "", []) for f in CORE_FIELDS)


def score_provider(results: ProviderBenchmark, weights: Dict[str, float] = METRIC_WEIGHTS) -> BenchmarkScore:
    average = results.average_execution_time
    if results.total_tests == 0:
        execution = 0.0
    elif average <= 0:
        execution = weights["execution_time"]
    else:
        execution = min(1.0, TARGET_EXECUTION_SECONDS / average) * weights["execution_time"]

    completeness = results.success_rate * weights["data_completeness"]

    if results.credibility_samples:
        mean_credibility = sum(results.credibility_samples) / len(results.credibility_samples)
    else:
        mean_credibility = 0.0
    credibility = mean_credibility * weights["source_credibility"]

    return BenchmarkScore(
        total_score=execution + completeness + credibility,
        execution_time_score=execution,
        completeness_score=completeness,
        source_credibility_score=credibility,
    )


class BenchmarkRunner:
    """Benchmark providers by running parallel research per test company."""

    def __init__(self, orchestrator: ResearchOrchestrator):
        self.orchestrator = orchestrator

    def run(self, providers: Sequence[str], test_cases: Sequence[str]) -> Dict[str, Any]:
        """
        Benchmark ``providers`` against every company in ``test_cases``.

        Returns:
            Dict with the test cases, raw per-provider results and scores

        Raises:
            ValidationError: no test cases or no providers
        """
        cases = [c.strip() for c in test_cases if c and c.strip()]
        if not cases:
            raise ValidationError("No test cases available for benchmarking")
        if not providers:
            raise ValidationError("At least one provider is required for benchmarking")

        results: Dict[str, ProviderBenchmark] = {name: ProviderBenchmark() for name in providers}
        logger.info("Starting benchmark", providers=list(providers), cases=len(cases))

        for case in cases:
            job = self.orchestrator.execute_parallel_research(case, providers)
            for name in providers:
                slot = job.provider_status[name]
                entity = job.provider_results.get(name)
                stats = results[name]
                stats.total_tests += 1
                if slot.elapsed_seconds is not None:
                    stats.execution_times.append(slot.elapsed_seconds)
                if slot.status is RunStatus.COMPLETED and is_complete(entity):
                    stats.successful_tests += 1
                    stats.credibility_samples.append(source_credibility(entity.news_headlines))
                elif slot.error:
                    stats.errors.append(f"{case}: {slot.error}")

        scores = {name: score_provider(stats) for name, stats in results.items()}
        logger.info(
            "Benchmark finished",
            scores={name: round(s.total_score, 3) for name, s in scores.items()},
        )
        return {
            "test_cases": cases,
            "providers": {
                name: {
                    "total_tests": stats.total_tests,
                    "successful_tests": stats.successful_tests,
                    "average_execution_time": round(stats.average_execution_time, 3),
                    "errors": stats.errors,
                }
                for name, stats in results.items()
            },
            "scores": {name: score.to_dict() for name, score in scores.items()},
        }
