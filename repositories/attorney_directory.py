"""
Attorney directory (presentation only).

Maps an attorney identifier to a display label. Labels are never used for
matching or assignment decisions; any lookup failure falls back to the raw id.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, Mapping, Optional

import httpx
from postgrest.exceptions import APIError
from supabase import Client  # type: ignore[import-not-found]

logger = logging.getLogger(__name__)

_ATTORNEYS_TABLE: str = "attorney_profiles"


def display_label(attorney_id: str, row: Optional[Mapping[str, Any]]) -> str:
    """full_name, then primary_email, then the id itself."""

    if row:
        for key in ("full_name", "primary_email"):
            value = str(row.get(key) or "").strip()
            if value:
                return value
    return attorney_id


class AttorneyDirectory(ABC):
    @abstractmethod
    def label_for(self, attorney_id: str) -> str:
        """Return a display name for `attorney_id`."""

    def labels_for(self, attorney_ids: Iterable[str]) -> Dict[str, str]:
        """Display names for several attorneys, keyed by id."""

        return {attorney_id: self.label_for(attorney_id) for attorney_id in dict.fromkeys(attorney_ids)}


class SupabaseAttorneyDirectory(AttorneyDirectory):
    def __init__(self, client: Client) -> None:
        self._client = client

    def label_for(self, attorney_id: str) -> str:
        try:
            response = (
                self._client.table(_ATTORNEYS_TABLE)
                .select("user_id,full_name,primary_email")
                .eq("user_id", attorney_id)
                .limit(1)
                .execute()
            )
        except (APIError, httpx.HTTPError) as e:
            logger.warning("Attorney label lookup failed for %s: %s", attorney_id, e)
            return attorney_id

        rows = getattr(response, "data", None) or []
        return display_label(attorney_id, rows[0] if rows else None)

    def labels_for(self, attorney_ids: Iterable[str]) -> Dict[str, str]:
        ids = list(dict.fromkeys(attorney_ids))
        if not ids:
            return {}

        try:
            response = (
                self._client.table(_ATTORNEYS_TABLE)
                .select("user_id,full_name,primary_email")
                .in_("user_id", ids)
                .execute()
            )
        except (APIError, httpx.HTTPError) as e:
            logger.warning("Attorney label lookup failed for %d attorney(s): %s", len(ids), e)
            return {attorney_id: attorney_id for attorney_id in ids}

        by_id = {str(row.get("user_id")): row for row in getattr(response, "data", None) or []}
        return {attorney_id: display_label(attorney_id, by_id.get(attorney_id)) for attorney_id in ids}


class InMemoryAttorneyDirectory(AttorneyDirectory):
    def __init__(self, profiles: Optional[Mapping[str, Mapping[str, Any]]] = None) -> None:
        self._profiles: Dict[str, Mapping[str, Any]] = dict(profiles or {})

    def label_for(self, attorney_id: str) -> str:
        return display_label(attorney_id, self._profiles.get(attorney_id))


__all__ = [
    "AttorneyDirectory",
    "InMemoryAttorneyDirectory",
    "SupabaseAttorneyDirectory",
    "display_label",
]
