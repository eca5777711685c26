"""
Stock quote client backed by the Alpha Vantage API.

Used to enrich public companies with live price data. Lookups return None
when the service is not configured or has no quote for the symbol; transport
and HTTP errors are raised for the caller to handle.
"""

from __future__ import annotations

from typing import Optional

import httpx
import structlog

from marketscout.core.config import StockConfig
from marketscout.core.models import StockQuote, utcnow

logger = structlog.get_logger(__name__)


def _to_float(value: Optional[str]) -> float:
    if value is None:
        return 0.0
    return float(str(value).replace("%", "").strip() or 0.0)


class StockPriceClient:
    """Fetch global quotes for ticker symbols."""

    def __init__(self, config: StockConfig, client: Optional[httpx.Client] = None):
        self.config = config
        self._http = client or httpx.Client(timeout=config.request_timeout)

    @property
    def configured(self) -> bool:
        return bool(self.config.api_key)

    def get_quote(self, symbol: str) -> Optional[StockQuote]:
        """Return the latest quote for ``symbol`` or None if unavailable."""
        if not self.configured:
            logger.warning("Alpha Vantage API key not configured, stock lookup disabled")
            return None

        resp = self._http.get(
            self.config.base_url,
            params={"function": "GLOBAL_QUOTE", "symbol": symbol, "apikey": self.config.api_key},
        )
        resp.raise_for_status()
        quote = (resp.json() or {}).get("Global Quote") or {}
        if not quote.get("01. symbol"):
            logger.info("No quote returned", symbol=symbol)
            return None

        return StockQuote(
            symbol=quote["01. symbol"],
            current_price=_to_float(quote.get("05. price")),
            change=_to_float(quote.get("09. change")),
            change_percent=_to_float(quote.get("10. change percent")),
            last_updated=utcnow(),
        )

    def close(self) -> None:
        self._http.close()
