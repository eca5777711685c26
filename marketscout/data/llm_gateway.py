"""
Gateway to the remote generative-text API.

Issues one chat-completion request per provider invocation with bounded
exponential backoff. Failures are classified into retryable and fatal kinds
and always come back as a ``GatewayResult``; nothing remote-related is raised
past this module.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import httpx
import structlog
from tenacity import Retrying, retry_if_exception, stop_after_attempt, wait_exponential

from marketscout.core.config import GatewayConfig
from marketscout.core.exceptions import ErrorType

logger = structlog.get_logger(__name__)

PLACEHOLDER_MARKERS = ("your", "actual", "goes-here", "placeholder", "changeme")
USER_AGENT = "MarketScout-Research/1.0"


@dataclass
class GatewayResult:
    """Outcome of a gateway call."""

    success: bool
    response: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    error_type: Optional[ErrorType] = None
    error_code: Optional[str] = None
    status_code: Optional[int] = None
    attempts: int = 0

    @classmethod
    def ok(cls, response: Dict[str, Any], attempts: int) -> "GatewayResult":
        return cls(success=True, response=response, attempts=attempts)


class CallFailure(Exception):
    """A single failed attempt, already classified."""

    def __init__(
        self,
        error_type: ErrorType,
        message: str,
        retryable: bool,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
    ):
        super().__init__(message)
        self.error_type = error_type
        self.message = message
        self.retryable = retryable
        self.status_code = status_code
        self.error_code = error_code


def validate_api_key(api_key: Optional[str]) -> Optional[str]:
    """Return a reason the key is unusable, or None if its shape looks right."""
    if not api_key or not isinstance(api_key, str) or not api_key.strip():
        return "OpenAI API key is missing"
    lowered = api_key.lower()
    if any(marker in lowered for marker in PLACEHOLDER_MARKERS):
        return "Invalid OpenAI API key: placeholder detected"
    if not api_key.startswith("sk-") or len(api_key) < 20:
        return "OpenAI API key has invalid format (should start with sk- and be at least 20 chars)"
    return None


def classify_response(response: httpx.Response) -> Optional[CallFailure]:
    """Turn a non-2xx response into a classified failure."""
    status = response.status_code
    if status < 400:
        return None

    body: Dict[str, Any] = {}
    try:
        body = response.json() or {}
    except ValueError:
        pass
    error_body = body.get("error") if isinstance(body, dict) else None
    error_body = error_body if isinstance(error_body, dict) else {}
    message = error_body.get("message") or f"HTTP {status} from remote API"
    error_code = error_body.get("code")

    if status == 429:
        return CallFailure(ErrorType.RATE_LIMIT_ERROR, message, True, status, error_code)
    if status in (401, 403):
        return CallFailure(ErrorType.AUTH_ERROR, message, False, status, error_code)
    if 400 <= status < 500:
        return CallFailure(ErrorType.EXECUTION_ERROR, message, False, status, error_code)
    return CallFailure(ErrorType.EXECUTION_ERROR, message, True, status, error_code)


def extract_message_text(response: Dict[str, Any]) -> str:
    """Pull the generated text out of a chat-completion payload."""
    try:
        content = response["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return ""
    return content or ""


class LLMGateway:
    """Retrying client for the chat-completion endpoint."""

    def __init__(
        self,
        config: GatewayConfig,
        client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config
        self.max_retries = max(0, config.max_retries)
        self.initial_delay = config.initial_retry_delay_seconds
        self.backoff_factor = config.backoff_factor
        self.max_delay = config.max_retry_delay_seconds
        self._sleep = sleep
        self._client = client or httpx.Client(
            base_url=config.api_base,
            timeout=config.request_timeout,
            headers={"User-Agent": USER_AGENT},
        )

    def close(self) -> None:
        self._client.close()

    def call(
        self,
        endpoint: str,
        payload: Dict[str, Any],
        api_key: Optional[str],
        provider_name: Optional[str] = None,
    ) -> GatewayResult:
        """
        POST ``payload`` to ``endpoint`` with retry and backoff.

        Args:
            endpoint: API path such as ``/v1/chat/completions``
            payload: JSON request body
            api_key: Bearer credential
            provider_name: Caller name, used for log context

        Returns:
            GatewayResult with either the parsed response or a classified error
        """
        log = logger.bind(endpoint=endpoint, provider=provider_name)

        key_problem = validate_api_key(api_key)
        if key_problem:
            log.error("API key rejected before request", reason=key_problem)
            return GatewayResult(
                success=False, error=key_problem, error_type=ErrorType.AUTH_ERROR
            )

        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        attempts = 0

        def attempt() -> Dict[str, Any]:
            nonlocal attempts
            attempts += 1
            log.info(
                "Calling remote API",
                attempt=attempts,
                payload_size=len(json.dumps(payload)),
            )
            return self._send(endpoint, payload, headers, log)

        retrying = Retrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(
                multiplier=self.initial_delay, exp_base=self.backoff_factor, max=self.max_delay
            ),
            retry=retry_if_exception(lambda e: isinstance(e, CallFailure) and e.retryable),
            before_sleep=lambda state: self._log_retry(state, log),
            sleep=self._sleep,
            reraise=True,
        )

        try:
            response = retrying(attempt)
        except CallFailure as failure:
            if failure.retryable:
                log.error("All retries to remote API failed", retries=self.max_retries)
            log.error(
                "Remote API request ultimately failed",
                error=failure.message,
                error_type=failure.error_type.value,
                status=failure.status_code or "network_error",
                attempts=attempts,
            )
            return GatewayResult(
                success=False,
                error=failure.message,
                error_type=failure.error_type,
                error_code=failure.error_code,
                status_code=failure.status_code,
                attempts=attempts,
            )

        log.info("Remote API call succeeded", attempts=attempts)
        return GatewayResult.ok(response, attempts)

    def _send(
        self,
        endpoint: str,
        payload: Dict[str, Any],
        headers: Dict[str, str],
        log: structlog.BoundLogger,
    ) -> Dict[str, Any]:
        try:
            response = self._client.post(endpoint, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            log.warning("Remote API timeout", error=str(e))
            raise CallFailure(ErrorType.TIMEOUT_ERROR, f"Request timed out: {e}", True) from e
        except httpx.RequestError as e:
            log.warning("Remote API network error", error=str(e))
            raise CallFailure(ErrorType.NETWORK_ERROR, f"Network error: {e}", True) from e

        failure = classify_response(response)
        if failure is not None:
            if failure.status_code == 429:
                log.warning(
                    "Rate limited by remote API",
                    retry_after=response.headers.get("retry-after"),
                    ratelimit_reset=response.headers.get("ratelimit-reset"),
                )
            elif failure.retryable:
                log.warning("Remote API server error", status=failure.status_code)
            else:
                log.error(
                    "Remote API client error",
                    status=failure.status_code,
                    error=failure.message,
                    error_code=failure.error_code,
                )
            raise failure

        try:
            return response.json()
        except ValueError as e:
            raise CallFailure(
                ErrorType.EXECUTION_ERROR,
                "Remote API returned a non-JSON body",
                False,
                response.status_code,
            ) from e

    def _log_retry(self, retry_state, log: structlog.BoundLogger) -> None:
        failure = retry_state.outcome.exception()
        log.warning(
            "Remote API attempt failed, backing off",
            attempt=retry_state.attempt_number,
            retries_left=self.max_retries - retry_state.attempt_number + 1,
            wait_seconds=round(retry_state.next_action.sleep, 3),
            error_type=getattr(failure, "error_type", ErrorType.EXECUTION_ERROR).value,
        )
