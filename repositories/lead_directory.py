"""
Lead directory (read-only lookup).

Resolves an external submission identifier to the canonical lead identifier.
The mapping is queried fresh on every call: a stale mapping used during
assignment could bind the wrong lead to an order, so nothing is cached here.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, Mapping, Optional

import httpx
from postgrest.exceptions import APIError
from supabase import Client  # type: ignore[import-not-found]

from domain.errors import TransientError
from repositories.store_errors import is_invalid_identifier, translate_api_error

# Supabase table name for lead records.
_LEADS_TABLE: str = "leads"


class LeadDirectory(ABC):
    @abstractmethod
    def resolve(self, submission_id: str) -> Optional[str]:
        """Return the lead id for `submission_id`, or None if unknown."""


class SupabaseLeadDirectory(LeadDirectory):
    def __init__(self, client: Client) -> None:
        self._client = client

    def resolve(self, submission_id: str) -> Optional[str]:
        try:
            response = (
                self._client.table(_LEADS_TABLE)
                .select("id")
                .eq("submission_id", submission_id)
                .limit(1)
                .execute()
            )
        except APIError as e:
            if is_invalid_identifier(e):
                return None
            raise translate_api_error(e, "resolve lead") from e
        except httpx.HTTPError as e:
            raise TransientError(f"Failed to resolve lead: storage unavailable ({e})") from e

        error = getattr(response, "error", None)
        if error:
            raise TransientError(f"Failed to resolve lead: {error}")

        rows = getattr(response, "data", None) or []
        if not rows or not rows[0].get("id"):
            return None
        return str(rows[0]["id"])


class InMemoryLeadDirectory(LeadDirectory):
    def __init__(self, mapping: Optional[Mapping[str, str]] = None) -> None:
        self._by_submission: Dict[str, str] = dict(mapping or {})

    def register(self, submission_id: str, lead_id: str) -> None:
        self._by_submission[submission_id] = lead_id

    def resolve(self, submission_id: str) -> Optional[str]:
        return self._by_submission.get(submission_id)


__all__ = ["InMemoryLeadDirectory", "LeadDirectory", "SupabaseLeadDirectory"]
