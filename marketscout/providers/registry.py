"""
Provider registry.

Holds every known provider, applies the enablement flags once, and serves
lookups. Initialization is lazy and single-flight: the first read triggers it
and concurrent first readers wait for the same initialization.
"""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

import structlog

from marketscout.core.config import GatewayConfig, enablement_key, is_provider_enabled
from marketscout.core.exceptions import RegistryError
from marketscout.core.models import PerformanceRecord, ProviderMeta
from marketscout.data.llm_gateway import LLMGateway
from marketscout.data.stock_client import StockPriceClient
from marketscout.intelligence.performance import PerformanceTracker
from marketscout.intelligence.scoring import ScoringEngine
from marketscout.providers.base import ResearchProvider
from marketscout.providers.catalog import PROVIDER_CLASSES

logger = structlog.get_logger(__name__)

ProviderFactory = Callable[[], Iterable[ResearchProvider]]


class LookupStatus(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    DISABLED = "disabled"


@dataclass(frozen=True)
class ProviderLookup:
    """Result of resolving a provider name."""

    name: str
    status: LookupStatus
    provider: Optional[ResearchProvider] = None

    @property
    def found(self) -> bool:
        return self.status is LookupStatus.FOUND


def default_providers(
    gateway: LLMGateway,
    scoring: ScoringEngine,
    config: GatewayConfig,
    stock: Optional[StockPriceClient] = None,
) -> ProviderFactory:
    """Factory building one instance of every bundled provider."""

    def build() -> List[ResearchProvider]:
        return [cls(gateway, scoring, config, stock=stock) for cls in PROVIDER_CLASSES]

    return build


class ProviderRegistry:
    """Registry of research providers keyed by name."""

    def __init__(
        self,
        factory: ProviderFactory,
        tracker: PerformanceTracker,
        flags: Optional[Mapping[str, Any]] = None,
    ):
        """
        Args:
            factory: Callable returning the provider instances to register
            tracker: Performance tracker shared with the orchestrator
            flags: Source of ``<NAME>_ENABLED`` flags; defaults to ``os.environ``
        """
        self._factory = factory
        self.tracker = tracker
        self._flags = flags if flags is not None else os.environ
        self._providers: Dict[str, ResearchProvider] = {}
        self._initialized = False
        self._lock = threading.Lock()

    @property
    def initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> None:
        """
        Build and enable providers. Later calls are no-ops.

        Raises:
            RegistryError: the provider factory failed; the registry stays
                uninitialized so a later call can retry
        """
        if self._initialized:
            return
        with self._lock:
            if self._initialized:
                return
            try:
                providers = list(self._factory())
            except Exception as e:
                logger.error("Provider registry initialization failed", error=str(e))
                raise RegistryError(f"Failed to initialize provider registry: {e}") from e

            registered: Dict[str, ResearchProvider] = {}
            for provider in providers:
                if provider.name in registered:
                    raise RegistryError(f"Duplicate provider name: {provider.name}")
                provider.enabled = is_provider_enabled(provider.name, self._flags)
                registered[provider.name] = provider
                if not provider.enabled:
                    logger.info(
                        "Provider disabled",
                        provider=provider.name,
                        flag=enablement_key(provider.name),
                    )
                    continue
                if not provider.initialize():
                    logger.warning("Provider failed to initialize", provider=provider.name)
                self.tracker.ensure(provider.name)

            self._providers = registered
            self._initialized = True

        logger.info(
            "Provider registry initialized",
            registered=len(registered),
            enabled=[name for name, p in registered.items() if p.enabled],
        )

    def lookup(self, name: str) -> ProviderLookup:
        self.initialize()
        provider = self._providers.get(name)
        if provider is None:
            return ProviderLookup(name, LookupStatus.NOT_FOUND)
        if not provider.enabled:
            return ProviderLookup(name, LookupStatus.DISABLED)
        return ProviderLookup(name, LookupStatus.FOUND, provider)

    def get(self, name: str) -> Optional[ResearchProvider]:
        return self.lookup(name).provider

    def list(self) -> List[ProviderMeta]:
        """Metadata of every enabled provider."""
        self.initialize()
        return [p.metadata() for p in self._providers.values() if p.enabled]

    def get_performance(self, name: str) -> Optional[PerformanceRecord]:
        if not self.lookup(name).found:
            return None
        return self.tracker.get(name)

    def compare(self, names: Iterable[str]) -> Dict[str, Dict[str, Any]]:
        """Details, workflow and performance for each available requested provider."""
        comparison: Dict[str, Dict[str, Any]] = {}
        for name in names:
            found = self.lookup(name)
            if not found.found:
                logger.debug("Skipping provider in comparison", provider=name, status=found.status.value)
                continue
            record = self.tracker.get(name)
            comparison[name] = {
                "details": found.provider.describe(),
                "performance": record.to_dict() if record else None,
            }
        return comparison
