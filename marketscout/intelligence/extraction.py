"""
Heuristic extraction of company facts from generated text.

Every field has an ordered list of pattern rules. The first rule that matches
wins; a field with no match falls back to None or an empty list. Nothing in
this module raises on odd input.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Dict, List, Optional, Pattern, Sequence, Tuple

import structlog

logger = structlog.get_logger(__name__)

_FLAGS = re.IGNORECASE | re.MULTILINE
_LABEL_PREFIX = r"^[\s*\-#>]*\**"

EMPTY_VALUES = {"", "unknown", "n/a", "na", "none", "not available", "not disclosed", "undisclosed", "-"}

FOUNDING_YEAR_RULES: Tuple[Pattern, ...] = (
    re.compile(_LABEL_PREFIX + r"(?:founding year|year founded|founded)\**\s*:\s*\**\s*(\d{4})", _FLAGS),
    re.compile(r"\bfounded\s+(?:in\s+)?(?:\w+\s+)?(\d{4})", _FLAGS),
    re.compile(r"\bestablished\s+(?:in\s+)?(\d{4})", _FLAGS),
    re.compile(r"\bsince\s+(\d{4})", _FLAGS),
)

LOCATION_RULES: Tuple[Pattern, ...] = (
    re.compile(_LABEL_PREFIX + r"(?:headquarters|hq|location)\**\s*:\s*\**\s*([^\n]+)", _FLAGS),
    re.compile(r"\b(?i:headquartered\s+in)\s+([A-Z][^\n.;()]+)", re.MULTILINE),
    re.compile(r"\b(?i:based\s+in)\s+([A-Z][^\n.;()]+)", re.MULTILINE),
)

FOCUS_AREA_RULES: Tuple[Pattern, ...] = (
    re.compile(_LABEL_PREFIX + r"(?:focus area|industry|sector)\**\s*:\s*\**\s*([^\n]+)", _FLAGS),
    re.compile(r"\boperates in the\s+([a-z][\w\s-]{2,40}?)\s+(?:industry|sector|space)", _FLAGS),
)

FUNDING_AMOUNT_RULES: Tuple[Pattern, ...] = (
    re.compile(
        _LABEL_PREFIX
        + r"(?:total funding|funding amount|funding raised|funding)\**\s*:\s*\**\s*"
        + r"((?:US)?\$\s?[\d.,]+\s*(?:[KMB]\b|thousand|million|billion)?)",
        _FLAGS,
    ),
    re.compile(
        r"\braised\s+(?:a total of\s+|over\s+|about\s+)?"
        r"((?:US)?\$\s?[\d.,]+\s*(?:[KMB]\b|thousand|million|billion)?)",
        _FLAGS,
    ),
    re.compile(r"((?:US)?\$\s?[\d.,]+\s*(?:[KMB]\b|million|billion))\s+(?:in\s+)?funding", _FLAGS),
)

INVESTORS_RULES: Tuple[Pattern, ...] = (
    re.compile(_LABEL_PREFIX + r"(?:key investors|investors|backed by)\**\s*:\s*\**\s*([^\n]+)", _FLAGS),
    re.compile(r"\b(?i:backed\s+by)\s+([A-Z][^\n.]+)", re.MULTILINE),
)

HEADLINE_SECTION_RULES: Tuple[Pattern, ...] = (
    re.compile(_LABEL_PREFIX + r"(?:recent news|news headlines|headlines|news)\**\s*:\s*\**\s*$", _FLAGS),
)

HEADLINE_INLINE_RULES: Tuple[Pattern, ...] = (
    re.compile(_LABEL_PREFIX + r"(?:recent news|news headlines|headlines)\**\s*:\s*\**\s*(\S[^\n]+)", _FLAGS),
)

WEBSITE_RULES: Tuple[Pattern, ...] = (
    re.compile(_LABEL_PREFIX + r"(?:website|url|homepage)\**\s*:\s*\**\s*<?(https?://[^\s>)\]]+)", _FLAGS),
    re.compile(r"(https?://[^\s>)\]]+)"),
)

STOCK_SYMBOL_RULES: Tuple[Pattern, ...] = (
    re.compile(_LABEL_PREFIX + r"(?i:stock symbol|ticker symbol|ticker)\**\s*:\s*\**\s*\$?([A-Z]{1,5}(?:\.[A-Z]{1,2})?)(?![\w/])", re.MULTILINE),
    re.compile(r"\((?:NYSE|NASDAQ|Nasdaq|LSE|TSX)\s*:\s*([A-Z]{1,5}(?:\.[A-Z]{1,2})?)\)"),
)

PRIVATE_RULES: Tuple[Pattern, ...] = (
    re.compile(r"\bnot\s+(?:a\s+)?publicly\s+traded\b", _FLAGS),
    re.compile(r"\bprivate(?:ly)?[\s-]+(?:held|owned)\b", _FLAGS),
    re.compile(_LABEL_PREFIX + r"(?:public company|publicly traded|public)\**\s*:\s*\**\s*(?:no|false)\b", _FLAGS),
)

PUBLIC_RULES: Tuple[Pattern, ...] = (
    re.compile(_LABEL_PREFIX + r"(?:public company|publicly traded|public)\**\s*:\s*\**\s*(?:yes|true)\b", _FLAGS),
    re.compile(r"\bpublicly\s+traded\b", _FLAGS),
    re.compile(r"\blisted\s+on\s+the\s+(?:NYSE|NASDAQ|New York Stock Exchange)", _FLAGS),
)

_BULLET_RE = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s+(.+?)\s*$")
_SPLIT_RE = re.compile(r"\s*(?:;|,|\band\b|&)\s*")


def first_match(rules: Sequence[Pattern], text: str) -> Optional[str]:
    """Return group 1 of the first rule that matches, or None."""
    for rule in rules:
        match = rule.search(text)
        if match:
            return match.group(1)
    return None


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip().strip("*_`\"' ").rstrip(".").strip()
    if value.lower() in EMPTY_VALUES:
        return None
    return value or None


def extract_founding_year(text: str) -> Optional[int]:
    current_year = datetime.now().year
    for rule in FOUNDING_YEAR_RULES:
        for match in rule.finditer(text):
            year = int(match.group(1))
            if 1800 <= year <= current_year:
                return year
    return None


def extract_location(text: str) -> Optional[str]:
    return _clean(first_match(LOCATION_RULES, text))


def extract_focus_area(text: str) -> Optional[str]:
    return _clean(first_match(FOCUS_AREA_RULES, text))


def extract_funding_amount(text: str) -> Optional[str]:
    value = _clean(first_match(FUNDING_AMOUNT_RULES, text))
    if value is None:
        return None
    return re.sub(r"\s+", " ", value.replace("US$", "$"))


def extract_investors(text: str) -> List[str]:
    raw = _clean(first_match(INVESTORS_RULES, text))
    if not raw:
        return []
    investors = []
    for part in _SPLIT_RE.split(raw):
        name = _clean(part)
        if name and name not in investors:
            investors.append(name)
    return investors


def extract_headlines(text: str, limit: int = 20) -> List[str]:
    """Collect bullet lines following a news heading, or an inline list."""
    lines = text.splitlines()
    headlines: List[str] = []
    for index, line in enumerate(lines):
        if not any(rule.search(line) for rule in HEADLINE_SECTION_RULES):
            continue
        for follower in lines[index + 1 :]:
            if not follower.strip():
                if headlines:
                    break
                continue
            bullet = _BULLET_RE.match(follower)
            if not bullet:
                break
            headline = _clean(bullet.group(1))
            if headline:
                headlines.append(headline)
        if headlines:
            return headlines[:limit]

    inline = first_match(HEADLINE_INLINE_RULES, text)
    if inline:
        headlines = [h for h in (_clean(p) for p in inline.split(";")) if h]
    return headlines[:limit]


def default_website(company_name: str) -> str:
    slug = re.sub(r"[^a-z0-9]", "", company_name.lower()) or "company"
    return f"https://{slug}.com"


def extract_website(text: str, company_name: str) -> str:
    value = first_match(WEBSITE_RULES, text)
    if value:
        return value.rstrip(".,;")
    return default_website(company_name)


def extract_listing(text: str) -> Tuple[bool, Optional[str]]:
    """Return (is_public, stock_symbol)."""
    if any(rule.search(text) for rule in PRIVATE_RULES):
        return False, None
    symbol = first_match(STOCK_SYMBOL_RULES, text)
    if symbol:
        return True, symbol.upper()
    if any(rule.search(text) for rule in PUBLIC_RULES):
        return True, None
    return False, None


def extract_company_facts(text: str, company_name: str) -> Dict[str, Any]:
    """
    Apply all field rules to ``text``.

    Args:
        text: Free-form generated text
        company_name: Target company, used for the website fallback

    Returns:
        Dict of entity field values; unmatched fields are None or empty lists
    """
    text = text or ""
    is_public, symbol = extract_listing(text)
    facts = {
        "founding_year": extract_founding_year(text),
        "location": extract_location(text),
        "focus_area": extract_focus_area(text),
        "investors": extract_investors(text),
        "funding_amount": extract_funding_amount(text),
        "news_headlines": extract_headlines(text),
        "website_url": extract_website(text, company_name),
        "is_public": is_public,
        "stock_symbol": symbol,
    }
    logger.debug(
        "Extracted company facts",
        company=company_name,
        matched=sorted(k for k, v in facts.items() if v not in (None, [], False)),
    )
    return facts
