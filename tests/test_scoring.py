"""Tests for the scoring engine and weight validation."""

import itertools
import threading

import pytest

from marketscout.core.config import ScoringConfig
from marketscout.core.exceptions import ValidationError
from marketscout.core.models import Entity
from marketscout.intelligence.scoring import (
    ScoringEngine,
    ScoringWeights,
    funding_factor,
    parse_funding_amount,
    relevance_factor,
    round_half_up,
    summarize,
)


def entity(**fields):
    return Entity(name="Acme", website_url="https://acme.com", **fields)


class TestFundingParsing:
    @pytest.mark.parametrize(
        "amount,dollars",
        [
            ("$25M", 25_000_000),
            ("$25 million", 25_000_000),
            ("$1.2B", 1_200_000_000),
            ("$500K", 500_000),
            ("$7,500,000", 7_500_000),
            ("US$3 thousand", 3_000),
        ],
    )
    def test_magnitudes(self, amount, dollars):
        assert parse_funding_amount(amount) == pytest.approx(dollars)

    def test_unparseable(self):
        assert parse_funding_amount("undisclosed") is None
        assert parse_funding_amount(None) is None

    @pytest.mark.parametrize(
        "amount,factor",
        [
            (None, 0.2),
            ("$900K", 0.2),
            ("$5M", 0.4),
            ("$25M", 0.6),
            ("$75M", 0.8),
            ("$100M", 1.0),
            ("$2 billion", 1.0),
        ],
    )
    def test_tiers(self, amount, factor):
        assert funding_factor(amount) == factor


class TestRelevance:
    def test_exact_key(self):
        assert relevance_factor("AI") == 0.9

    def test_contained_word(self):
        assert relevance_factor("Fintech / Payments") == 0.9

    def test_no_partial_word_match(self):
        # "ai" inside "detailing" must not count as AI
        assert relevance_factor("Detailing services") == 0.5

    def test_default_for_missing_and_unknown(self):
        assert relevance_factor(None) == 0.5
        assert relevance_factor("Underwater basket weaving") == 0.5


class TestScoringEngine:
    """Test score breakdowns."""

    def test_worked_example(self, scoring):
        result = scoring.score(
            entity(
                funding_amount="$25M",
                focus_area="Payments",
                news_headlines=["a", "b", "c"],
            )
        )

        assert result.funding_score == 18.0
        assert result.buzz_score == 9.0
        assert result.relevance_score == 36.0
        assert result.total_score == 63

    def test_empty_entity_uses_floors(self, scoring):
        result = scoring.score(entity())

        assert result.funding_score == 6.0
        assert result.buzz_score == 0.0
        assert result.relevance_score == 20.0
        assert result.total_score == 26

    def test_buzz_saturates(self, scoring):
        result = scoring.score(entity(news_headlines=[str(i) for i in range(50)]))
        assert result.buzz_score == 30.0

    def test_bounds_hold_for_all_combinations(self, scoring):
        fundings = [None, "$10K", "$3M", "$20M", "$60M", "$5B", "garbage"]
        headline_counts = [0, 1, 5, 10, 25]
        focuses = [None, "ai", "Retail", "Media and Education", "unknown"]

        for funding, count, focus in itertools.product(fundings, headline_counts, focuses):
            result = scoring.score(
                entity(
                    funding_amount=funding,
                    news_headlines=["h"] * count,
                    focus_area=focus,
                )
            )
            assert 0 <= result.funding_score <= 30
            assert 0 <= result.buzz_score <= 30
            assert 0 <= result.relevance_score <= 40
            assert result.total_score == round_half_up(
                result.funding_score + result.buzz_score + result.relevance_score
            )
            assert 0 <= result.total_score <= 100

    def test_deterministic(self, scoring):
        subject = entity(funding_amount="$12M", focus_area="cloud", news_headlines=["x"])
        assert scoring.score(subject) == scoring.score(subject)

    def test_heavy_weight_is_capped_at_ceiling(self, scoring):
        scoring.update_weights(
            {"funding_stage": 0.8, "market_buzz": 0.1, "strategic_relevance": 0.1}
        )

        result = scoring.score(entity(funding_amount="$500M"))

        assert result.funding_score == 30.0
        assert result.total_score <= 100

    def test_lower_weight_reduces_sub_score(self):
        engine = ScoringEngine(
            ScoringWeights(funding_stage=0.2, market_buzz=0.4, strategic_relevance=0.4)
        )

        result = engine.score(
            entity(funding_amount="$500M", news_headlines=["h"] * 50, focus_area="ai")
        )

        assert result.funding_score == 20.0
        assert result.buzz_score == 30.0
        assert result.relevance_score == 36.0

    @pytest.mark.parametrize(
        "weights",
        [
            {"funding_stage": 0.8, "market_buzz": 0.1, "strategic_relevance": 0.1},
            {"funding_stage": 0.1, "market_buzz": 0.8, "strategic_relevance": 0.1},
            {"funding_stage": 0.0, "market_buzz": 0.0, "strategic_relevance": 1.0},
            {"funding_stage": 0.34, "market_buzz": 0.33, "strategic_relevance": 0.33},
        ],
    )
    def test_bounds_hold_after_weight_update(self, scoring, weights):
        scoring.update_weights(weights)

        for funding, count, focus in itertools.product(
            [None, "$3M", "$60M", "$5B"], [0, 5, 50], [None, "ai", "unknown"]
        ):
            result = scoring.score(
                entity(funding_amount=funding, news_headlines=["h"] * count, focus_area=focus)
            )
            assert 0 <= result.funding_score <= 30
            assert 0 <= result.buzz_score <= 30
            assert 0 <= result.relevance_score <= 40
            assert 0 <= result.total_score <= 100


class TestWeightUpdates:
    """Test validation of scoring weight updates."""

    def test_rejects_weights_not_summing_to_one(self, scoring):
        before = scoring.weights

        with pytest.raises(ValidationError):
            scoring.update_weights(
                {"funding_stage": 0.2, "market_buzz": 0.2, "strategic_relevance": 0.2}
            )

        assert scoring.weights == before
        assert scoring.weights.model_dump() == {
            "funding_stage": 0.3,
            "market_buzz": 0.3,
            "strategic_relevance": 0.4,
        }

    def test_rejects_out_of_range(self, scoring):
        with pytest.raises(ValidationError):
            scoring.update_weights(
                {"funding_stage": 1.5, "market_buzz": -0.5, "strategic_relevance": 0.0}
            )

    def test_rejects_unknown_keys(self, scoring):
        with pytest.raises(ValidationError, match="Unknown scoring weight"):
            scoring.update_weights({"hype": 1.0})

    def test_partial_update_merges(self, scoring):
        with pytest.raises(ValidationError):
            scoring.update_weights({"funding_stage": 0.5})

        updated = scoring.update_weights({"funding_stage": 0.4, "market_buzz": 0.2})

        assert updated.strategic_relevance == 0.4
        assert scoring.weights.funding_stage == 0.4

    def test_tolerance(self, scoring):
        scoring.update_weights(
            {"funding_stage": 0.3333, "market_buzz": 0.3333, "strategic_relevance": 0.3333}
        )
        assert scoring.weights.market_buzz == 0.3333

    def test_from_config_validates(self):
        with pytest.raises(ValidationError):
            ScoringEngine.from_config(
                ScoringConfig(funding_stage=0.9, market_buzz=0.9, strategic_relevance=0.9)
            )

    def test_concurrent_updates_leave_valid_weights(self, scoring):
        choices = [
            {"funding_stage": 0.5, "market_buzz": 0.25, "strategic_relevance": 0.25},
            {"funding_stage": 0.2, "market_buzz": 0.4, "strategic_relevance": 0.4},
        ]

        def worker(i):
            scoring.update_weights(choices[i % 2])

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert scoring.weights.model_dump() in choices


class TestSummary:
    def test_summary_mentions_key_facts(self, scoring):
        subject = entity(
            founding_year=2015,
            focus_area="Payments",
            funding_amount="$25M",
            investors=["Sequoia Capital", "Accel"],
        )
        subject.score_breakdown = scoring.score(subject)

        text = summarize(subject)

        assert text.startswith("Acme is a payments company founded in 2015.")
        assert "raised $25M from Sequoia Capital, Accel" in text
        assert f"{subject.score_breakdown.total_score}/100" in text

    def test_summary_without_facts(self):
        assert summarize(entity()) == "Acme is a technology company."
