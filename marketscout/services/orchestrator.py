"""
Research orchestration.

Runs one company through several providers, either fanned out in parallel or
chained so each provider sees what its predecessors found. Both entry points
return a finalized Job; provider failures are recorded on the job instead of
being raised.
"""

from __future__ import annotations

import contextvars
import time
import uuid
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import replace
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

import structlog

from marketscout.core.exceptions import (
    ExecutionError,
    ProviderDisabledError,
    ProviderError,
    ProviderNotFoundError,
    RegistryError,
    ValidationError,
)
from marketscout.core.models import Entity, Job, JobStatus, ResearchMode, RunStatus, utcnow
from marketscout.intelligence.performance import PerformanceTracker
from marketscout.providers.base import COMPANY_NAME_KEYS
from marketscout.providers.registry import LookupStatus, ProviderRegistry
from marketscout.services.company_store import CompanyStore

logger = structlog.get_logger(__name__)

ALL_FAILED_MESSAGE = "All frameworks failed to complete research"


class ResearchOrchestrator:
    """Executes research jobs against the provider registry."""

    def __init__(
        self,
        registry: ProviderRegistry,
        tracker: PerformanceTracker,
        store: Optional[CompanyStore] = None,
        max_workers: int = 8,
        clock: Callable[[], float] = time.perf_counter,
    ):
        self.registry = registry
        self.tracker = tracker
        self.store = store
        self.max_workers = max(1, max_workers)
        self._clock = clock

    def research(
        self,
        company_name: str,
        providers: Sequence[str],
        mode: ResearchMode = ResearchMode.PARALLEL,
        options: Optional[Mapping[str, Any]] = None,
    ) -> Job:
        if ResearchMode(mode) is ResearchMode.SEQUENTIAL:
            return self.execute_sequential_research(company_name, providers, options)
        return self.execute_parallel_research(company_name, providers, options)

    def execute_parallel_research(
        self,
        company_name: str,
        providers: Sequence[str],
        options: Optional[Mapping[str, Any]] = None,
    ) -> Job:
        """
        Run every provider concurrently and wait for all of them.

        Args:
            company_name: Company to research
            providers: Provider names, no duplicates
            options: Extra discovery parameters passed to every provider

        Returns:
            Finalized Job: completed if all providers succeeded, failed if
            none did, partial otherwise

        Raises:
            ValidationError: empty company name or provider list
        """
        job = self._new_job(company_name, providers, ResearchMode.PARALLEL)
        structlog.contextvars.bind_contextvars(job_id=job.id)
        try:
            logger.info(
                "Starting parallel research",
                company=job.company_name,
                providers=job.providers,
            )
            if not self._registry_ready(job):
                return job

            parameters = {"company_name": job.company_name, **self._clean_options(options)}
            succeeded: List[str] = []
            workers = min(self.max_workers, len(job.providers))
            with ThreadPoolExecutor(max_workers=workers) as executor:
                futures = {
                    executor.submit(
                        contextvars.copy_context().run, self._run_provider, job, name, parameters
                    ): name
                    for name in job.providers
                }
                for future in as_completed(futures):
                    name = futures[future]
                    try:
                        if future.result() is not None:
                            succeeded.append(name)
                    except Exception as e:
                        logger.exception("Provider task crashed", provider=name, error=str(e))
                        self._fail_slot(job, name, str(e))

            if not succeeded:
                job.finalize(JobStatus.FAILED, ALL_FAILED_MESSAGE)
            elif len(succeeded) == len(job.providers):
                job.finalize(JobStatus.COMPLETED)
            else:
                job.finalize(JobStatus.PARTIAL)

            self._log_finished(job, succeeded)
            return job
        finally:
            structlog.contextvars.unbind_contextvars("job_id")

    def execute_sequential_research(
        self,
        company_name: str,
        providers: Sequence[str],
        options: Optional[Mapping[str, Any]] = None,
    ) -> Job:
        """
        Run providers one after another, feeding each the facts found so far.

        A failed provider is skipped and the chain continues. The job is
        completed only when the last provider succeeded, partial when some
        earlier one did, and failed when none did.

        Raises:
            ValidationError: empty company name or provider list
        """
        job = self._new_job(company_name, providers, ResearchMode.SEQUENTIAL)
        structlog.contextvars.bind_contextvars(job_id=job.id)
        try:
            logger.info(
                "Starting sequential research",
                company=job.company_name,
                chain=" -> ".join(job.providers),
            )
            if not self._registry_ready(job):
                return job

            extra = self._clean_options(options)
            accumulated: Dict[str, Any] = {"company_name": job.company_name}
            succeeded: List[str] = []
            last_success: Optional[str] = None

            for name in job.providers:
                entity = self._run_provider(job, name, {**accumulated, **extra})
                if entity is None:
                    continue
                accumulated.update(entity.facts())
                accumulated["company_name"] = job.company_name
                succeeded.append(name)
                last_success = name

            job.findings = accumulated
            if last_success is None:
                job.finalize(JobStatus.FAILED, ALL_FAILED_MESSAGE)
            elif last_success == job.providers[-1]:
                job.finalize(JobStatus.COMPLETED)
            else:
                job.finalize(JobStatus.PARTIAL)

            self._log_finished(job, succeeded)
            return job
        finally:
            structlog.contextvars.unbind_contextvars("job_id")

    def _new_job(self, company_name: str, providers: Sequence[str], mode: ResearchMode) -> Job:
        if not isinstance(company_name, str) or not company_name.strip():
            raise ValidationError("Company name is required")
        if isinstance(providers, str) or not providers:
            raise ValidationError("At least one provider is required")
        names = [str(p).strip() for p in providers]
        if any(not n for n in names):
            raise ValidationError("Provider names must not be empty", details={"providers": names})
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValidationError(
                f"Duplicate providers in request: {', '.join(duplicates)}",
                details={"providers": names},
            )
        return Job(
            id=str(uuid.uuid4()),
            company_name=company_name.strip(),
            providers=names,
            mode=mode,
        )

    @staticmethod
    def _clean_options(options: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        return {k: v for k, v in (options or {}).items() if k not in COMPANY_NAME_KEYS}

    def _registry_ready(self, job: Job) -> bool:
        """Initialize the registry; on failure fail every slot and the job."""
        try:
            self.registry.initialize()
        except RegistryError as e:
            logger.error("Provider registry unavailable", error=e.message)
            for name in job.providers:
                self._fail_slot(job, name, e.message)
            job.finalize(JobStatus.FAILED, e.message)
            return False
        return True

    @staticmethod
    def _fail_slot(job: Job, name: str, error: str) -> None:
        status = job.provider_status[name]
        if status.status in (RunStatus.PENDING, RunStatus.RUNNING):
            status.fail(error)

    def _run_provider(
        self, job: Job, name: str, parameters: Mapping[str, Any]
    ) -> Optional[Entity]:
        """Run one provider slot. Returns the entity, or None if the slot failed."""
        slot = job.provider_status[name]
        slot.start()
        log = logger.bind(provider=name)

        found = self.registry.lookup(name)
        if found.status is LookupStatus.NOT_FOUND:
            error = ProviderNotFoundError(f"Provider {name} not found", provider=name)
            log.error("Provider research failed", error=error.message)
            slot.fail(error.message)
            self.tracker.record(name, 0.0, success=False, api_success=True)
            return None
        if found.status is LookupStatus.DISABLED:
            error = ProviderDisabledError(f"Provider {name} is not enabled", provider=name)
            log.error("Provider research failed", error=error.message)
            slot.fail(error.message)
            self.tracker.record(name, 0.0, success=False, api_success=True)
            return None

        started = self._clock()
        try:
            entities = found.provider.discover(parameters)
            if not entities:
                raise ExecutionError("No companies found", provider=name)
        except Exception as e:
            elapsed = self._clock() - started
            message = getattr(e, "message", None) or str(e) or e.__class__.__name__
            log.error("Provider research failed", error=message, error_class=e.__class__.__name__)
            slot.elapsed_seconds = elapsed
            slot.fail(message)
            self.tracker.record(
                name, elapsed, success=False, api_success=not isinstance(e, ProviderError)
            )
            return None

        elapsed = self._clock() - started
        entity = replace(entities[0], discovered_by=name, discovered_at=utcnow())
        job.record_result(name, entity)
        slot.elapsed_seconds = elapsed
        slot.complete(entity.agent_steps)
        self.tracker.record(name, elapsed, success=True)
        if self.store is not None:
            self.store.add(entity, discovered_by=name)

        log.info(
            "Provider research completed",
            seconds=round(elapsed, 3),
            total_score=entity.score_breakdown.total_score if entity.score_breakdown else None,
        )
        return entity

    @staticmethod
    def _log_finished(job: Job, succeeded: List[str]) -> None:
        logger.info(
            "Research job finished",
            status=job.status.value,
            succeeded=succeeded,
            failed=[n for n in job.providers if n not in succeeded],
            seconds=job.duration_seconds,
        )
