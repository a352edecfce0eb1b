"""
Domain: lead descriptor.

A LeadDescriptor is the ephemeral view of an inbound lead supplied by the
caller on each recommendation request. The engine never persists it and
trusts its contents; it only checks that the fields needed for matching are
present and normalizes them.

- `state` is normalized to trimmed upper-case.
- `lead_id` may be absent; it is resolved lazily through the LeadDirectory.
- The yes/no attributes are tri-valued (True / False / unknown=None) and are
  used only for order criteria and scoring.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from .errors import ValidationError
from .order import normalize_state


def _bool_or_none(value: Any) -> Optional[bool]:
    if value is True or value is False:
        return value
    return None


def _clean(value: Any) -> Optional[str]:
    text = str(value).strip() if value is not None else ""
    return text or None


@dataclass(frozen=True, slots=True)
class LeadDescriptor:
    submission_id: str
    state: str
    case_type: str
    lead_id: Optional[str] = None
    case_subtype: Optional[str] = None

    insured: Optional[bool] = None
    prior_attorney_involved: Optional[bool] = None
    currently_represented: Optional[bool] = None
    is_injured: Optional[bool] = None
    received_medical_treatment: Optional[bool] = None
    accident_last_12_months: Optional[bool] = None

    def __post_init__(self) -> None:
        if not _clean(self.submission_id):
            raise ValidationError("submission_id is required", kind="INVALID_LEAD")
        if not normalize_state(self.state):
            raise ValidationError("state is required", kind="INVALID_LEAD")
        if not _clean(self.case_type):
            raise ValidationError("case_type is required", kind="INVALID_LEAD")

        # Frozen + slots: normalize through object.__setattr__.
        object.__setattr__(self, "submission_id", _clean(self.submission_id))
        object.__setattr__(self, "state", normalize_state(self.state))
        object.__setattr__(self, "case_type", _clean(self.case_type))
        object.__setattr__(self, "lead_id", _clean(self.lead_id))
        object.__setattr__(self, "case_subtype", _clean(self.case_subtype))

    @staticmethod
    def from_mapping(raw: Mapping[str, Any]) -> "LeadDescriptor":
        """Build a descriptor from a loosely-typed payload (unknown keys are ignored)."""

        return LeadDescriptor(
            submission_id=raw.get("submission_id") or "",
            state=raw.get("state") or "",
            case_type=raw.get("case_type") or "",
            lead_id=raw.get("lead_id"),
            case_subtype=raw.get("case_subtype"),
            insured=_bool_or_none(raw.get("insured")),
            prior_attorney_involved=_bool_or_none(raw.get("prior_attorney_involved")),
            currently_represented=_bool_or_none(raw.get("currently_represented")),
            is_injured=_bool_or_none(raw.get("is_injured")),
            received_medical_treatment=_bool_or_none(raw.get("received_medical_treatment")),
            accident_last_12_months=_bool_or_none(raw.get("accident_last_12_months")),
        )


__all__ = ["LeadDescriptor"]
