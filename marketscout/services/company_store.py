"""
In-memory catalog of researched companies with JSON and CSV export.
"""

from __future__ import annotations

import json
import threading
import uuid
from dataclasses import replace
from typing import Any, Dict, List, Optional

import pandas as pd
import structlog

from marketscout.core.exceptions import ValidationError
from marketscout.core.models import Entity, utcnow

logger = structlog.get_logger(__name__)

CSV_COLUMNS = [
    "ID",
    "Name",
    "FoundingYear",
    "Location",
    "FocusArea",
    "Investors",
    "FundingAmount",
    "Score",
]
EXPORT_FORMATS = ("json", "csv")


class CompanyStore:
    """Keeps every successful research result for the life of the process."""

    def __init__(self):
        self._companies: Dict[str, Entity] = {}
        self._lock = threading.Lock()

    def add(self, entity: Entity, discovered_by: str) -> str:
        """Store a copy of ``entity`` and return its id."""
        company_id = str(uuid.uuid4())
        stored = replace(
            entity,
            discovered_by=discovered_by,
            discovered_at=entity.discovered_at or utcnow(),
        )
        with self._lock:
            self._companies[company_id] = stored
        logger.debug("Company stored", company_id=company_id, name=entity.name, provider=discovered_by)
        return company_id

    def get(self, company_id: str) -> Optional[Entity]:
        with self._lock:
            return self._companies.get(company_id)

    def all(self) -> Dict[str, Entity]:
        with self._lock:
            return dict(self._companies)

    def __len__(self) -> int:
        with self._lock:
            return len(self._companies)

    def _rows(self) -> List[Dict[str, Any]]:
        rows = []
        for company_id, entity in self.all().items():
            score = entity.score_breakdown.total_score if entity.score_breakdown else None
            rows.append(
                {
                    "ID": company_id,
                    "Name": entity.name,
                    "FoundingYear": entity.founding_year,
                    "Location": entity.location or "",
                    "FocusArea": entity.focus_area or "",
                    "Investors": "; ".join(entity.investors),
                    "FundingAmount": entity.funding_amount or "",
                    "Score": score,
                }
            )
        return rows

    def export(self, fmt: str = "json") -> str:
        """
        Serialize the catalog.

        Args:
            fmt: ``json`` or ``csv``

        Returns:
            The serialized catalog

        Raises:
            ValidationError: unsupported format
        """
        fmt = (fmt or "").lower()
        if fmt not in EXPORT_FORMATS:
            raise ValidationError(f"Unsupported export format: {fmt}", details={"formats": EXPORT_FORMATS})

        if fmt == "json":
            payload = [{"id": cid, **entity.to_dict()} for cid, entity in self.all().items()]
            return json.dumps(payload, indent=2)

        df = pd.DataFrame(self._rows(), columns=CSV_COLUMNS)
        df["FoundingYear"] = df["FoundingYear"].astype("Int64")
        df["Score"] = df["Score"].astype("Int64")
        return df.to_csv(index=False)
