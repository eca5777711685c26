"""
Research provider contract and the shared discovery pipeline.

A provider turns a company name into a structured Entity through one call to
the remote generative-text API. Concrete providers only describe themselves:
metadata, agent topology, system prompt and sampling temperature. Everything
else (prompting, extraction, enrichment, scoring, tracing) is shared here.
"""

from __future__ import annotations

import json
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

import structlog

from marketscout.core.config import GatewayConfig
from marketscout.core.exceptions import (
    ErrorType,
    ExecutionError,
    ProviderDisabledError,
    ValidationError,
    error_for,
)
from marketscout.core.models import Entity, ProviderMeta, Step, utcnow
from marketscout.data.llm_gateway import LLMGateway, extract_message_text
from marketscout.data.stock_client import StockPriceClient
from marketscout.intelligence.extraction import extract_company_facts
from marketscout.intelligence.scoring import ScoringEngine, summarize

logger = structlog.get_logger(__name__)

COMPANY_NAME_KEYS = ("company_name", "companyName")

RESPONSE_FORMAT = """Respond with these labelled lines, using "Unknown" when a fact cannot be found:
Founded: <year>
Headquarters: <city, region>
Focus Area: <industry>
Total Funding: <amount with currency, e.g. $25M>
Investors: <comma separated list>
Website: <url>
Public Company: <Yes or No>
Stock Symbol: <ticker or N/A>
Recent News:
- <headline>
- <headline>"""


@dataclass(frozen=True)
class AgentRole:
    """One agent (or graph node) inside a provider's workflow."""

    name: str
    role: str
    goal: str = ""


@dataclass(frozen=True)
class WorkflowStage:
    """
    One reported stage of a provider run.

    ``reports`` names the Entity attributes the stage's result line covers.
    """

    name: str
    agent: str
    description: str
    reports: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Workflow:
    """Agent topology of a provider, used for reporting only."""

    topology: str
    agents: Tuple[AgentRole, ...]
    stages: Tuple[WorkflowStage, ...]
    extras: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "topology": self.topology,
            "agents": [{"name": a.name, "role": a.role, "goal": a.goal} for a in self.agents],
            "stages": [s.name for s in self.stages],
            **self.extras,
        }


def company_name_from(parameters: Mapping[str, Any]) -> Optional[str]:
    for key in COMPANY_NAME_KEYS:
        value = parameters.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _describe(value: Any) -> str:
    if isinstance(value, list):
        return ", ".join(str(v) for v in value)
    if isinstance(value, bool):
        return "yes" if value else "no"
    return str(value)


def render_stage_result(stage: WorkflowStage, entity: Entity) -> str:
    """Summarize what a stage found, based on the fields it reports on."""
    if not stage.reports:
        return f"{stage.agent} finished {stage.name.replace('_', ' ')}."
    found = []
    missing = []
    for attr in stage.reports:
        value = getattr(entity, attr)
        if attr == "score_breakdown" and value is not None:
            found.append(f"total score {value.total_score}/100")
        elif attr == "stock_price" and value is not None:
            found.append(f"stock price {value.current_price:.2f} ({value.symbol})")
        elif value not in (None, [], ""):
            found.append(f"{attr.replace('_', ' ')}: {_describe(value)}")
        else:
            missing.append(attr.replace("_", " "))
    result = "; ".join(found) if found else "No data found"
    if missing:
        result += f" (not found: {', '.join(missing)})"
    return result


class ResearchProvider(ABC):
    """
    Base class for research providers.

    Subclasses set the class-level metadata and implement ``workflow`` and
    ``system_prompt``.
    """

    name: str = ""
    description: str = ""
    version: str = "1.0.0"
    capabilities: Tuple[str, ...] = ()
    limitations: Tuple[str, ...] = ()
    temperature: Optional[float] = None

    def __init__(
        self,
        gateway: LLMGateway,
        scoring: ScoringEngine,
        config: GatewayConfig,
        stock: Optional[StockPriceClient] = None,
        enabled: bool = True,
    ):
        self.gateway = gateway
        self.scoring = scoring
        self.config = config
        self.stock = stock
        self.enabled = enabled
        self._workflow: Optional[Workflow] = None
        self._init_lock = threading.Lock()
        self.log = logger.bind(provider=self.name)

    @abstractmethod
    def workflow(self) -> Workflow:
        """Describe the agents and stages this provider reports."""

    @abstractmethod
    def system_prompt(self) -> str:
        """System prompt sent with every research request."""

    @property
    def initialized(self) -> bool:
        return self._workflow is not None

    def metadata(self) -> ProviderMeta:
        return ProviderMeta(
            name=self.name,
            description=self.description,
            version=self.version,
            capabilities=list(self.capabilities),
            limitations=list(self.limitations),
            enabled=self.enabled,
        )

    def initialize(self) -> bool:
        """
        Build the provider's workflow description. Safe to call repeatedly.

        Returns:
            True when the provider is ready, False if setup failed
        """
        with self._init_lock:
            if self._workflow is not None:
                return True
            try:
                self._workflow = self.workflow()
            except Exception as e:
                self.log.error("Provider initialization failed", error=str(e))
                return False
        self.log.info(
            "Provider initialized",
            topology=self._workflow.topology,
            agents=len(self._workflow.agents),
        )
        return True

    def describe(self) -> Dict[str, Any]:
        """Metadata plus the workflow topology, when the provider can initialize."""
        details = self.metadata().to_dict()
        if self.initialize():
            details["workflow"] = self._workflow.to_dict()
        return details

    def step_plan(self) -> Tuple[WorkflowStage, ...]:
        if not self.initialize():
            raise ExecutionError(f"{self.name} provider failed to initialize", provider=self.name)
        return self._workflow.stages

    def build_payload(self, company_name: str, prior_facts: Mapping[str, Any]) -> Dict[str, Any]:
        prompt = f"Research the company {company_name}."
        if prior_facts:
            prompt += (
                "\n\nEarlier research produced these findings. Verify them and fill any gaps:\n"
                + json.dumps(dict(prior_facts), indent=2, default=str)
            )
        prompt += f"\n\n{RESPONSE_FORMAT}"

        temperature = self.temperature if self.temperature is not None else self.config.temperature
        return {
            "model": self.config.model,
            "messages": [
                {"role": "system", "content": self.system_prompt()},
                {"role": "user", "content": prompt},
            ],
            "temperature": temperature,
            "max_tokens": self.config.max_tokens,
        }

    def discover(self, parameters: Mapping[str, Any]) -> List[Entity]:
        """
        Research one company.

        Args:
            parameters: Must contain ``company_name``; any other non-empty keys
                are passed to the model as prior findings

        Returns:
            A one-element list with the researched Entity

        Raises:
            ProviderDisabledError: the provider is switched off
            ValidationError: no company name was given
            ProviderError: the remote call failed or returned nothing usable
        """
        if not self.enabled:
            raise ProviderDisabledError(f"{self.name} provider is not enabled", provider=self.name)

        company_name = company_name_from(parameters)
        if not company_name:
            raise ValidationError("company_name is required", details={"provider": self.name})

        stages = self.step_plan()
        prior_facts = {
            k: v
            for k, v in parameters.items()
            if k not in COMPANY_NAME_KEYS and v not in (None, "", [])
        }
        self.log.info("Starting company research", company=company_name, prior_facts=len(prior_facts))

        result = self.gateway.call(
            self.config.chat_endpoint,
            self.build_payload(company_name, prior_facts),
            self.config.api_key,
            provider_name=self.name,
        )
        if not result.success:
            raise error_for(
                result.error_type or ErrorType.EXECUTION_ERROR,
                f"{self.name} research failed: {result.error}",
                provider=self.name,
            )

        text = extract_message_text(result.response)
        if not text.strip():
            raise ExecutionError(f"{self.name} received an empty response", provider=self.name)

        entity = Entity(name=company_name, **extract_company_facts(text, company_name))
        self._enrich_with_stock(entity)
        entity.score_breakdown = self.scoring.score(entity)
        entity.summary = summarize(entity)
        entity.agent_steps = self._trace(stages, entity)

        self.log.info(
            "Company research completed",
            company=company_name,
            total_score=entity.score_breakdown.total_score,
            attempts=result.attempts,
        )
        return [entity]

    def _enrich_with_stock(self, entity: Entity) -> None:
        if not (entity.is_public and entity.stock_symbol and self.stock is not None):
            return
        try:
            entity.stock_price = self.stock.get_quote(entity.stock_symbol)
        except Exception as e:
            # Enrichment is optional; the research result stands without it
            self.log.warning(
                "Stock enrichment failed", symbol=entity.stock_symbol, error=str(e)
            )

    def _trace(self, stages: Tuple[WorkflowStage, ...], entity: Entity) -> List[Step]:
        steps = []
        for index, stage in enumerate(stages, start=1):
            description = stage.description.format(company=entity.name)
            try:
                result = render_stage_result(stage, entity)
                completed = True
            except Exception as e:
                self.log.warning("Could not render step result", step=stage.name, error=str(e))
                result = f"Step failed: {e}"
                completed = False
            steps.append(
                Step(
                    id=index,
                    name=stage.name,
                    description=description,
                    completed=completed,
                    result=result,
                    timestamp=utcnow(),
                )
            )
        return steps
