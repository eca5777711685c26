"""
Test suite for the LLM gateway.

Covers API key checks, failure classification and the retry/backoff policy.
"""

import httpx
import pytest

from marketscout.core.exceptions import ErrorType
from marketscout.data.llm_gateway import (
    LLMGateway,
    classify_response,
    extract_message_text,
    validate_api_key,
)
from sample_data import VALID_API_KEY, chat_completion

ENDPOINT = "/v1/chat/completions"
PAYLOAD = {"model": "gpt-4o-mini", "messages": [{"role": "user", "content": "hi"}]}


def make_gateway(config, handler, sleep):
    client = httpx.Client(base_url=config.api_base, transport=httpx.MockTransport(handler))
    return LLMGateway(config, client=client, sleep=sleep)


class ScriptedHandler:
    """Replays a list of responses (or exceptions) and counts requests."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcome = self.outcomes[min(len(self.requests), len(self.outcomes)) - 1]
        if isinstance(outcome, Exception):
            raise outcome
        # Fresh copy so repeated outcomes are independent responses
        return httpx.Response(
            outcome.status_code, headers=outcome.headers, content=outcome.content
        )


def error_response(status, error_type=None, message="failure"):
    return httpx.Response(status, json={"error": {"message": message, "type": error_type}})


class TestApiKeyValidation:
    """Test the API key shape check."""

    @pytest.mark.parametrize("key", [None, "", "   "])
    def test_missing_key(self, key):
        assert validate_api_key(key) == "OpenAI API key is missing"

    @pytest.mark.parametrize("key", ["sk-your-api-key-goes-here", "sk-actual-key-1234567890"])
    def test_placeholder_key(self, key):
        assert "placeholder" in validate_api_key(key)

    @pytest.mark.parametrize("key", ["pk-0123456789abcdefghijkl", "sk-short"])
    def test_bad_format(self, key):
        assert "invalid format" in validate_api_key(key)

    def test_valid_key(self):
        assert validate_api_key(VALID_API_KEY) is None

    def test_bad_key_makes_no_request(self, gateway_config, no_sleep):
        sleep, delays = no_sleep
        handler = ScriptedHandler(httpx.Response(200, json=chat_completion("ok")))
        gateway = make_gateway(gateway_config, handler, sleep)

        result = gateway.call(ENDPOINT, PAYLOAD, "sk-your-key-here-000000")

        assert not result.success
        assert result.error_type is ErrorType.AUTH_ERROR
        assert handler.requests == []
        assert delays == []


class TestClassification:
    """Test mapping of HTTP responses to failure kinds."""

    def test_success_is_not_a_failure(self):
        assert classify_response(httpx.Response(200, json={})) is None

    def test_rate_limit_is_retryable(self):
        failure = classify_response(error_response(429))
        assert failure.error_type is ErrorType.RATE_LIMIT_ERROR
        assert failure.retryable

    @pytest.mark.parametrize("status", [401, 403])
    def test_auth_is_fatal(self, status):
        failure = classify_response(error_response(status))
        assert failure.error_type is ErrorType.AUTH_ERROR
        assert not failure.retryable

    def test_other_client_error_is_fatal(self):
        failure = classify_response(error_response(400, "invalid_request_error", "bad model"))
        assert failure.error_type is ErrorType.EXECUTION_ERROR
        assert failure.message == "bad model"
        assert not failure.retryable

    @pytest.mark.parametrize("error_type", ["insufficient_quota", "rate_limit_exceeded"])
    def test_quota_client_errors_are_fatal(self, error_type):
        failure = classify_response(error_response(400, error_type))
        assert failure.error_type is ErrorType.EXECUTION_ERROR
        assert not failure.retryable

    def test_server_error_is_retryable(self):
        failure = classify_response(httpx.Response(503, text="unavailable"))
        assert failure.error_type is ErrorType.EXECUTION_ERROR
        assert failure.retryable
        assert failure.message == "HTTP 503 from remote API"


class TestRetryPolicy:
    """Test retry and backoff behaviour of LLMGateway.call."""

    def test_success_first_try(self, gateway_config, no_sleep):
        sleep, delays = no_sleep
        handler = ScriptedHandler(httpx.Response(200, json=chat_completion("hello")))
        gateway = make_gateway(gateway_config, handler, sleep)

        result = gateway.call(ENDPOINT, PAYLOAD, VALID_API_KEY, provider_name="crewai")

        assert result.success
        assert result.attempts == 1
        assert extract_message_text(result.response) == "hello"
        assert delays == []
        assert handler.requests[0].headers["Authorization"] == f"Bearer {VALID_API_KEY}"

    def test_always_rate_limited_retries_max_retries_times(self, gateway_config, no_sleep):
        sleep, delays = no_sleep
        handler = ScriptedHandler(
            httpx.Response(429, headers={"retry-after": "1"}, json={"error": {"message": "slow down"}})
        )
        gateway = make_gateway(gateway_config, handler, sleep)

        result = gateway.call(ENDPOINT, PAYLOAD, VALID_API_KEY)

        assert not result.success
        assert result.error_type is ErrorType.RATE_LIMIT_ERROR
        assert len(handler.requests) == gateway_config.max_retries + 1
        assert result.attempts == gateway_config.max_retries + 1
        assert delays == [1.0, 2.0, 4.0]

    def test_client_error_is_not_retried(self, gateway_config, no_sleep):
        sleep, delays = no_sleep
        handler = ScriptedHandler(error_response(404, "invalid_request_error", "no such model"))
        gateway = make_gateway(gateway_config, handler, sleep)

        result = gateway.call(ENDPOINT, PAYLOAD, VALID_API_KEY)

        assert not result.success
        assert result.error_type is ErrorType.EXECUTION_ERROR
        assert result.status_code == 404
        assert len(handler.requests) == 1
        assert delays == []

    def test_quota_exhaustion_is_not_retried(self, gateway_config, no_sleep):
        sleep, delays = no_sleep
        handler = ScriptedHandler(error_response(400, "insufficient_quota", "quota used up"))
        gateway = make_gateway(gateway_config, handler, sleep)

        result = gateway.call(ENDPOINT, PAYLOAD, VALID_API_KEY)

        assert not result.success
        assert result.error_type is ErrorType.EXECUTION_ERROR
        assert result.attempts == 1
        assert len(handler.requests) == 1
        assert delays == []

    def test_unauthorized_is_not_retried(self, gateway_config, no_sleep):
        sleep, delays = no_sleep
        handler = ScriptedHandler(error_response(401, "invalid_api_key"))
        gateway = make_gateway(gateway_config, handler, sleep)

        result = gateway.call(ENDPOINT, PAYLOAD, VALID_API_KEY)

        assert result.error_type is ErrorType.AUTH_ERROR
        assert len(handler.requests) == 1

    def test_recovers_after_transient_failures(self, gateway_config, no_sleep):
        sleep, delays = no_sleep
        handler = ScriptedHandler(
            httpx.ConnectError("connection refused"),
            httpx.Response(502, text="bad gateway"),
            httpx.Response(200, json=chat_completion("finally")),
        )
        gateway = make_gateway(gateway_config, handler, sleep)

        result = gateway.call(ENDPOINT, PAYLOAD, VALID_API_KEY)

        assert result.success
        assert result.attempts == 3
        assert delays == [1.0, 2.0]

    def test_timeouts_classified_after_budget(self, gateway_config, no_sleep):
        sleep, _ = no_sleep
        handler = ScriptedHandler(httpx.ReadTimeout("timed out"))
        gateway = make_gateway(gateway_config, handler, sleep)

        result = gateway.call(ENDPOINT, PAYLOAD, VALID_API_KEY)

        assert result.error_type is ErrorType.TIMEOUT_ERROR
        assert len(handler.requests) == gateway_config.max_retries + 1

    def test_network_errors_classified(self, gateway_config, no_sleep):
        sleep, _ = no_sleep
        handler = ScriptedHandler(httpx.ConnectError("dns failure"))
        gateway = make_gateway(gateway_config, handler, sleep)

        result = gateway.call(ENDPOINT, PAYLOAD, VALID_API_KEY)

        assert result.error_type is ErrorType.NETWORK_ERROR

    def test_backoff_is_capped(self, gateway_config, no_sleep):
        sleep, delays = no_sleep
        config = gateway_config.model_copy(
            update={"max_retries": 5, "max_retry_delay_seconds": 3.0}
        )
        handler = ScriptedHandler(httpx.Response(500, text="oops"))
        gateway = make_gateway(config, handler, sleep)

        gateway.call(ENDPOINT, PAYLOAD, VALID_API_KEY)

        assert delays == [1.0, 2.0, 3.0, 3.0, 3.0]

    def test_zero_retries_means_single_attempt(self, gateway_config, no_sleep):
        sleep, delays = no_sleep
        config = gateway_config.model_copy(update={"max_retries": 0})
        handler = ScriptedHandler(httpx.Response(429, json={}))
        gateway = make_gateway(config, handler, sleep)

        result = gateway.call(ENDPOINT, PAYLOAD, VALID_API_KEY)

        assert result.error_type is ErrorType.RATE_LIMIT_ERROR
        assert len(handler.requests) == 1
        assert delays == []


class TestExtractMessageText:
    def test_missing_choices(self):
        assert extract_message_text({}) == ""

    def test_null_content(self):
        assert extract_message_text({"choices": [{"message": {"content": None}}]}) == ""
