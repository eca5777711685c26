"""
Wiring of the research stack.

Builds the gateway, scoring engine, registry, tracker and orchestrator once
from settings so callers share one set of instances.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

import structlog

from marketscout.core.config import Settings
from marketscout.data.llm_gateway import LLMGateway
from marketscout.data.stock_client import StockPriceClient
from marketscout.intelligence.performance import PerformanceTracker
from marketscout.intelligence.scoring import ScoringEngine
from marketscout.providers.registry import ProviderRegistry, default_providers
from marketscout.services.benchmark import BenchmarkRunner
from marketscout.services.company_store import CompanyStore
from marketscout.services.orchestrator import ResearchOrchestrator

logger = structlog.get_logger(__name__)


@dataclass
class ResearchContext:
    """Process-wide handles to the research components."""

    gateway: LLMGateway
    stock: StockPriceClient
    scoring: ScoringEngine
    tracker: PerformanceTracker
    registry: ProviderRegistry
    store: CompanyStore
    orchestrator: ResearchOrchestrator
    benchmark: BenchmarkRunner

    def close(self) -> None:
        self.gateway.close()
        self.stock.close()


def build_context(settings: Settings, flags: Optional[Mapping[str, Any]] = None) -> ResearchContext:
    """
    Build the research stack.

    Args:
        settings: Loaded application settings
        flags: Provider enablement flags; defaults to the environment

    Raises:
        ValidationError: the configured scoring weights are invalid
    """
    gateway = LLMGateway(settings.gateway)
    stock = StockPriceClient(settings.stock)
    scoring = ScoringEngine.from_config(settings.scoring)
    tracker = PerformanceTracker()
    registry = ProviderRegistry(
        default_providers(gateway, scoring, settings.gateway, stock=stock),
        tracker,
        flags=flags,
    )
    store = CompanyStore()
    orchestrator = ResearchOrchestrator(
        registry, tracker, store=store, max_workers=settings.max_workers
    )
    logger.debug("Research context built", max_workers=settings.max_workers)
    return ResearchContext(
        gateway=gateway,
        stock=stock,
        scoring=scoring,
        tracker=tracker,
        registry=registry,
        store=store,
        orchestrator=orchestrator,
        benchmark=BenchmarkRunner(orchestrator),
    )
