"""Tests for the provider registry."""

import threading
import time

import pytest

from marketscout.core.exceptions import RegistryError
from marketscout.providers.registry import LookupStatus, ProviderRegistry, default_providers
from sample_data import StubProvider

ALL_ON = {"ALPHA_ENABLED": "true", "BETA_ENABLED": "1", "GAMMA_ENABLED": "yes"}


class CountingFactory:
    """Provider factory that counts calls and can be slowed down or broken."""

    def __init__(self, names=("alpha", "beta", "gamma"), delay=0.0, error=None):
        self.names = names
        self.delay = delay
        self.error = error
        self.calls = 0
        self._lock = threading.Lock()

    def __call__(self):
        with self._lock:
            self.calls += 1
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return [StubProvider(name) for name in self.names]


class TestInitialization:
    """Test lazy, single-flight registry initialization."""

    def test_lazy_until_first_read(self, tracker):
        factory = CountingFactory()
        registry = ProviderRegistry(factory, tracker, flags=ALL_ON)

        assert not registry.initialized
        assert factory.calls == 0

        registry.list()

        assert registry.initialized
        assert factory.calls == 1

    def test_concurrent_first_reads_initialize_once(self, tracker):
        factory = CountingFactory(delay=0.05)
        registry = ProviderRegistry(factory, tracker, flags=ALL_ON)
        barrier = threading.Barrier(8)
        results = []

        def reader():
            barrier.wait()
            results.append(len(registry.list()))

        threads = [threading.Thread(target=reader) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert factory.calls == 1
        assert results == [3] * 8

    def test_factory_failure_raises_and_allows_retry(self, tracker):
        factory = CountingFactory(error=RuntimeError("no credentials"))
        registry = ProviderRegistry(factory, tracker, flags=ALL_ON)

        with pytest.raises(RegistryError, match="no credentials"):
            registry.initialize()
        assert not registry.initialized

        factory.error = None
        registry.initialize()
        assert registry.initialized
        assert factory.calls == 2

    def test_duplicate_names_rejected(self, tracker):
        registry = ProviderRegistry(CountingFactory(names=("alpha", "alpha")), tracker, flags=ALL_ON)

        with pytest.raises(RegistryError, match="Duplicate provider"):
            registry.initialize()

    def test_enabled_providers_seed_tracker(self, tracker):
        registry = ProviderRegistry(
            CountingFactory(), tracker, flags={"ALPHA_ENABLED": "true"}
        )
        registry.initialize()

        assert tracker.get("alpha").total_runs == 0
        assert tracker.get("beta") is None


class TestLookup:
    """Test enablement flags and lookup statuses."""

    @pytest.fixture
    def registry(self, tracker):
        flags = {"ALPHA_ENABLED": "TRUE", "BETA_ENABLED": "false"}
        return ProviderRegistry(CountingFactory(), tracker, flags=flags)

    def test_statuses(self, registry):
        assert registry.lookup("alpha").status is LookupStatus.FOUND
        assert registry.lookup("beta").status is LookupStatus.DISABLED
        assert registry.lookup("gamma").status is LookupStatus.DISABLED
        assert registry.lookup("delta").status is LookupStatus.NOT_FOUND

    def test_get_only_returns_enabled(self, registry):
        assert registry.get("alpha").name == "alpha"
        assert registry.get("beta") is None
        assert registry.get("delta") is None

    def test_list_excludes_disabled(self, registry):
        assert [meta.name for meta in registry.list()] == ["alpha"]

    def test_flags_read_once(self, tracker):
        flags = {"ALPHA_ENABLED": "true"}
        registry = ProviderRegistry(CountingFactory(), tracker, flags=flags)
        registry.initialize()

        flags["BETA_ENABLED"] = "true"

        assert registry.lookup("beta").status is LookupStatus.DISABLED

    def test_defaults_to_environment(self, tracker, monkeypatch):
        monkeypatch.setenv("GAMMA_ENABLED", "on")
        monkeypatch.delenv("ALPHA_ENABLED", raising=False)
        registry = ProviderRegistry(CountingFactory(), tracker)

        assert registry.lookup("gamma").found
        assert not registry.lookup("alpha").found


class TestPerformanceQueries:
    def test_get_performance(self, tracker):
        registry = ProviderRegistry(CountingFactory(), tracker, flags={"ALPHA_ENABLED": "1"})
        tracker.record("alpha", 2.0, success=True)

        assert registry.get_performance("alpha").total_runs == 1
        assert registry.get_performance("beta") is None
        assert registry.get_performance("delta") is None

    def test_compare_skips_unavailable(self, tracker):
        registry = ProviderRegistry(CountingFactory(), tracker, flags=ALL_ON)
        tracker.record("beta", 1.0, success=False)

        comparison = registry.compare(["alpha", "beta", "unknown"])

        assert sorted(comparison) == ["alpha", "beta"]
        assert comparison["alpha"]["details"]["name"] == "alpha"
        assert comparison["alpha"]["details"]["workflow"]["topology"] == "stub"
        assert comparison["alpha"]["details"]["workflow"]["stages"] == ["only"]
        assert comparison["beta"]["performance"]["completion_rate_pct"] == 0.0


def test_default_providers_builds_catalog(scoring, gateway_config, tracker):
    registry = ProviderRegistry(
        default_providers(None, scoring, gateway_config),
        tracker,
        flags={"CREWAI_ENABLED": "true", "SQUIDAI_ENABLED": "true"},
    )

    assert [meta.name for meta in registry.list()] == ["crewai", "squidai"]
    assert registry.lookup("langgraph").status is LookupStatus.DISABLED
