"""
Scoring engine for researched companies.

Turns an Entity into a 0-100 score built from three weighted sub-scores:
funding stage, market buzz and strategic relevance.
"""

from __future__ import annotations

import math
import re
import threading
from typing import Any, Mapping, Optional

import structlog
from pydantic import BaseModel, Field, model_validator
from pydantic import ValidationError as PydanticValidationError

from marketscout.core.config import ScoringConfig
from marketscout.core.exceptions import ValidationError
from marketscout.core.models import Entity, ScoreBreakdown

logger = structlog.get_logger(__name__)

WEIGHT_SUM_TOLERANCE = 0.001

# (upper bound exclusive in USD, factor); anything above the last bound is 1.0
FUNDING_TIERS = (
    (1_000_000, 0.2),  # seed
    (10_000_000, 0.4),  # series A
    (50_000_000, 0.6),  # series B
    (100_000_000, 0.8),  # series C
)
TOP_FUNDING_FACTOR = 1.0
MISSING_FUNDING_FACTOR = 0.2

# Ceiling of each sub-score; the default weights reach exactly these
FUNDING_SCORE_MAX = 30.0
BUZZ_SCORE_MAX = 30.0
RELEVANCE_SCORE_MAX = 40.0

BUZZ_SATURATION = 10

RELEVANCE_BY_FOCUS = {
    "software": 0.8,
    "hardware": 0.7,
    "cloud": 0.9,
    "ai": 0.9,
    "blockchain": 0.8,
    "internet": 0.7,
    "payments": 0.9,
    "lending": 0.8,
    "banking": 0.9,
    "insurance": 0.7,
    "wealth": 0.8,
    "crypto": 0.7,
    "healthcare": 0.7,
    "retail": 0.6,
    "manufacturing": 0.5,
    "energy": 0.6,
    "transportation": 0.6,
    "media": 0.5,
    "education": 0.5,
}
DEFAULT_RELEVANCE = 0.5

_MAGNITUDES = {
    "k": 1_000,
    "thousand": 1_000,
    "m": 1_000_000,
    "million": 1_000_000,
    "b": 1_000_000_000,
    "billion": 1_000_000_000,
}
_AMOUNT_RE = re.compile(r"(\d[\d,]*(?:\.\d+)?)\s*(thousand|million|billion|[kmb])?\b", re.IGNORECASE)


class ScoringWeights(BaseModel):
    """Relative weight of each sub-score. Must sum to one."""

    funding_stage: float = Field(default=0.3, ge=0.0, le=1.0)
    market_buzz: float = Field(default=0.3, ge=0.0, le=1.0)
    strategic_relevance: float = Field(default=0.4, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def check_sum(self) -> "ScoringWeights":
        total = self.funding_stage + self.market_buzz + self.strategic_relevance
        if abs(total - 1.0) > WEIGHT_SUM_TOLERANCE:
            raise ValueError(f"Scoring weights must sum to 1, got {total:.3f}")
        return self


def build_weights(values: Mapping[str, Any]) -> ScoringWeights:
    """Validate raw weight values, raising our ValidationError on failure."""
    try:
        return ScoringWeights(**dict(values))
    except PydanticValidationError as e:
        messages = "; ".join(err["msg"] for err in e.errors())
        raise ValidationError(
            f"Invalid scoring weights: {messages}", details={"weights": dict(values)}
        ) from e


def parse_funding_amount(amount: Optional[str]) -> Optional[float]:
    """
    Parse a funding string such as ``$25M`` or ``$1.2 billion`` into dollars.

    Returns None when no number can be found.
    """
    if not amount:
        return None
    match = _AMOUNT_RE.search(amount)
    if not match:
        return None
    value = float(match.group(1).replace(",", ""))
    suffix = (match.group(2) or "").lower()
    return value * _MAGNITUDES.get(suffix, 1)


def funding_factor(amount: Optional[str]) -> float:
    dollars = parse_funding_amount(amount)
    if dollars is None:
        return MISSING_FUNDING_FACTOR
    for bound, factor in FUNDING_TIERS:
        if dollars < bound:
            return factor
    return TOP_FUNDING_FACTOR


def buzz_factor(headline_count: int) -> float:
    return min(max(headline_count, 0) / BUZZ_SATURATION, 1.0)


def relevance_factor(focus_area: Optional[str]) -> float:
    """Exact table key first, then the first key found as a whole word."""
    if not focus_area:
        return DEFAULT_RELEVANCE
    key = focus_area.strip().lower()
    if key in RELEVANCE_BY_FOCUS:
        return RELEVANCE_BY_FOCUS[key]
    for name, factor in RELEVANCE_BY_FOCUS.items():
        if re.search(rf"\b{re.escape(name)}\b", key):
            return factor
    return DEFAULT_RELEVANCE


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _scaled(factor: float, weight: float, ceiling: float) -> float:
    return round(min(factor * weight * 100, ceiling), 2)


class ScoringEngine:
    """
    Compute score breakdowns with the currently configured weights.

    Scoring itself is pure; the only mutable state is the weight set, which
    is replaced atomically and only after validation.
    """

    def __init__(self, weights: Optional[ScoringWeights] = None):
        self._weights = weights or ScoringWeights()
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: ScoringConfig) -> "ScoringEngine":
        return cls(build_weights(config.as_weights()))

    @property
    def weights(self) -> ScoringWeights:
        return self._weights

    def update_weights(self, changes: Mapping[str, Any]) -> ScoringWeights:
        """
        Merge ``changes`` into the current weights.

        Raises:
            ValidationError: unknown keys or a result that violates the weight
                rules; the stored weights are left untouched
        """
        unknown = set(changes) - set(ScoringWeights.model_fields)
        if unknown:
            raise ValidationError(
                f"Unknown scoring weight(s): {', '.join(sorted(unknown))}",
                details={"weights": dict(changes)},
            )
        with self._lock:
            merged = {**self._weights.model_dump(), **dict(changes)}
            candidate = build_weights(merged)
            self._weights = candidate
        logger.info("Scoring weights updated", **candidate.model_dump())
        return candidate

    def score(self, entity: Entity) -> ScoreBreakdown:
        """
        Score an entity with the current weights.

        Each sub-score is factor x weight x 100, capped at its ceiling (30, 30
        and 40), so a reweighted component never leaves its range.
        """
        weights = self._weights
        funding = _scaled(
            funding_factor(entity.funding_amount), weights.funding_stage, FUNDING_SCORE_MAX
        )
        buzz = _scaled(
            buzz_factor(len(entity.news_headlines)), weights.market_buzz, BUZZ_SCORE_MAX
        )
        relevance = _scaled(
            relevance_factor(entity.focus_area), weights.strategic_relevance, RELEVANCE_SCORE_MAX
        )
        return ScoreBreakdown(
            funding_score=funding,
            buzz_score=buzz,
            relevance_score=relevance,
            total_score=round_half_up(funding + buzz + relevance),
        )


def summarize(entity: Entity) -> str:
    """One-paragraph description of an entity built from its extracted fields."""
    focus = (entity.focus_area or "technology").lower()
    parts = [f"{entity.name} is a {focus} company"]
    if entity.founding_year:
        parts[0] += f" founded in {entity.founding_year}"
    if entity.location:
        parts[0] += f", based in {entity.location}"
    parts[0] += "."

    if entity.funding_amount and entity.investors:
        parts.append(
            f"They have raised {entity.funding_amount} from {', '.join(entity.investors)}."
        )
    elif entity.funding_amount:
        parts.append(f"They have raised {entity.funding_amount}.")
    elif entity.investors:
        parts.append(f"They are backed by {', '.join(entity.investors)}.")

    if entity.is_public and entity.stock_symbol:
        parts.append(f"The company is publicly traded as {entity.stock_symbol}.")

    if entity.score_breakdown is not None:
        breakdown = entity.score_breakdown
        parts.append(
            f"Strategic relevance scores {breakdown.relevance_score:g} "
            f"for an overall score of {breakdown.total_score}/100."
        )
    return " ".join(parts)
