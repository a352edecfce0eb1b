"""
Tests for `services/recommendation_service.py`.

Covers:
- Eligibility filter (status, state, remaining quota, case type, criteria).
- Exact scoring and fixed-vocabulary reasons.
- Ranking: score desc, expires_at asc, order_id asc; limit clamping.
- Failures degrade to an empty list with an error.
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from conftest import NOW, make_order
from domain.errors import TransientError
from domain.expiry import effective_status
from domain.lead import LeadDescriptor
from domain.order import OrderStatus
from repositories.memory_store import InMemoryOrderStore
from repositories.attorney_directory import InMemoryAttorneyDirectory
from services.recommendation_service import RecommendationEngine, evaluate_criteria, score_order


def _lead(**overrides) -> LeadDescriptor:
    fields = {"submission_id": "SUB-1", "state": "TX", "case_type": "AUTO"}
    fields.update(overrides)
    return LeadDescriptor(**fields)


@pytest.fixture
def engine_for(clock, attorneys, leads):
    def build(*orders):
        store = InMemoryOrderStore(list(orders))
        return RecommendationEngine(store, attorneys=attorneys, leads=leads, clock=clock)

    return build


def test_remaining_capacity_term_ranks_roomier_order_first(engine_for) -> None:
    """Order with 9 of 10 remaining scores 79, order with 1 of 10 remaining scores 71."""

    roomy = make_order(order_id="order-a", quota_total=10, quota_filled=1)
    tight = make_order(order_id="order-b", quota_total=10, quota_filled=9)
    batch = engine_for(tight, roomy).recommend(_lead(), limit=10)

    assert batch.ok
    assert [r.order_id for r in batch.recommendations] == ["order-a", "order-b"]
    assert batch.recommendations[0].score == pytest.approx(79.0)
    assert batch.recommendations[1].score == pytest.approx(71.0)
    assert batch.recommendations[0].remaining == 9
    assert batch.recommendations[0].reasons == ["state match", "case type match", "low quota pressure"]


def test_fulfilled_order_is_excluded(engine_for) -> None:
    full = make_order(order_id="full", quota_total=3, quota_filled=3)
    batch = engine_for(full).recommend(_lead())

    assert batch.ok
    assert batch.recommendations == []


def test_expired_order_is_excluded(engine_for) -> None:
    expired = make_order(order_id="stale", quota_total=5, quota_filled=2, expires_in=timedelta(days=-1))
    assert effective_status(expired, NOW) is OrderStatus.EXPIRED

    batch = engine_for(expired).recommend(_lead())
    assert batch.recommendations == []


def test_state_filter_is_case_insensitive(engine_for) -> None:
    engine = engine_for(make_order(states=("tx",)))

    assert len(engine.recommend(_lead(state="Tx")).recommendations) == 1
    assert engine.recommend(_lead(state="CA")).recommendations == []


def test_case_type_is_a_hard_filter(engine_for) -> None:
    engine = engine_for(make_order(case_type="AUTO"))

    assert engine.recommend(_lead(case_type="PREMISES")).recommendations == []
    assert len(engine.recommend(_lead(case_type="auto")).recommendations) == 1


def test_case_subtype_bonus_only_when_both_present_and_equal(engine_for) -> None:
    with_subtype = make_order(order_id="sub", case_subtype="REAR_END", quota_total=10, quota_filled=0)
    engine = engine_for(with_subtype)

    matched = engine.recommend(_lead(case_subtype="rear_end")).recommendations[0]
    assert matched.score == pytest.approx(40 + 30 + 15 + 10)
    assert "case subtype match" in matched.reasons

    mismatched = engine.recommend(_lead(case_subtype="T_BONE")).recommendations[0]
    assert mismatched.score == pytest.approx(80)
    assert "case subtype match" not in mismatched.reasons

    absent = engine.recommend(_lead()).recommendations[0]
    assert absent.score == pytest.approx(80)


def test_urgency_bonus_for_orders_expiring_within_72_hours(engine_for) -> None:
    soon = make_order(order_id="soon", quota_total=10, quota_filled=5, expires_in=timedelta(hours=36))
    rec = engine_for(soon).recommend(_lead()).recommendations[0]

    # 40 + 30 + 10 * 0.5 + 5 * (1 - 36/72)
    assert rec.score == pytest.approx(77.5)
    assert rec.reasons == ["state match", "case type match", "low quota pressure", "expires soon"]


def test_urgency_bonus_is_bounded(engine_for) -> None:
    almost = make_order(order_id="almost", quota_total=10, quota_filled=0, expires_in=timedelta(seconds=1))
    rec = engine_for(almost).recommend(_lead()).recommendations[0]

    assert 84.99 < rec.score <= 85.0


def test_ties_break_on_expiry_then_order_id(engine_for) -> None:
    later = make_order(order_id="a-later", expires_in=timedelta(days=20))
    earlier = make_order(order_id="z-earlier", expires_in=timedelta(days=10))
    twin_b = make_order(order_id="b-twin", expires_in=timedelta(days=15))
    twin_a = make_order(order_id="a-twin", expires_in=timedelta(days=15))

    recs = engine_for(later, earlier, twin_b, twin_a).recommend(_lead()).recommendations

    assert [r.order_id for r in recs] == ["z-earlier", "a-twin", "b-twin", "a-later"]
    assert len({r.score for r in recs}) == 1


def test_results_are_sorted_and_never_include_closed_orders(engine_for) -> None:
    orders = [
        make_order(order_id="o1", quota_total=10, quota_filled=2),
        make_order(order_id="o2", quota_total=4, quota_filled=4),
        make_order(order_id="o3", quota_total=8, quota_filled=1, expires_in=timedelta(hours=12)),
        make_order(order_id="o4", quota_total=5, quota_filled=0, expires_in=timedelta(hours=-3)),
        make_order(order_id="o5", quota_total=6, quota_filled=5, case_subtype="X"),
        make_order(order_id="o6", quota_total=3, quota_filled=1, states=("CA",)),
    ]
    recs = engine_for(*orders).recommend(_lead(case_subtype="x"), limit=25).recommendations

    assert {r.order_id for r in recs} == {"o1", "o3", "o5"}
    for order in orders:
        if order.order_id in {r.order_id for r in recs}:
            assert effective_status(order, NOW) is OrderStatus.OPEN
    keys = [(-r.score, r.expires_at, r.order_id) for r in recs]
    assert keys == sorted(keys)


def test_limit_is_clamped(engine_for) -> None:
    orders = [make_order(order_id=f"o{i:02d}") for i in range(30)]
    engine = engine_for(*orders)

    assert len(engine.recommend(_lead(), limit=3).recommendations) == 3
    assert len(engine.recommend(_lead(), limit=0).recommendations) == 1
    assert len(engine.recommend(_lead(), limit=100).recommendations) == 25
    assert len(engine.recommend(_lead()).recommendations) == 10


def test_criteria_exclusions(engine_for) -> None:
    needs_injury = make_order(order_id="inj", criteria={"is_injured": "yes", "prior_attorney_involved": "no"})
    engine = engine_for(needs_injury)

    assert engine.recommend(_lead()).recommendations == []
    assert engine.recommend(_lead(is_injured=True, prior_attorney_involved=True)).recommendations == []
    assert len(engine.recommend(_lead(is_injured=True, prior_attorney_involved=False)).recommendations) == 1


def test_insured_rules(engine_for) -> None:
    insured_only = make_order(order_id="ins", quota_total=10, quota_filled=0, criteria={"insured": "insured_only"})
    uninsured_ok = make_order(order_id="unins", quota_total=10, quota_filled=0, criteria={"insured": "uninsured_ok"})
    engine = engine_for(insured_only, uninsured_ok)

    recs = engine.recommend(_lead(insured=True)).recommendations
    assert [r.order_id for r in recs] == ["ins", "unins"]
    assert recs[0].score == pytest.approx(90)
    assert "insured match" in recs[0].reasons
    assert recs[1].score == pytest.approx(82)
    assert "uninsured ok" in recs[1].reasons

    recs = engine.recommend(_lead(insured=False)).recommendations
    assert [r.order_id for r in recs] == ["unins"]


def test_evaluate_criteria_defaults_accept_everything() -> None:
    order = make_order()
    verdict = evaluate_criteria(order.criteria, _lead())
    assert verdict.accepted
    assert verdict.bonus == 0
    assert verdict.reasons == ()


def test_recommendation_carries_attorney_label_and_lead_summary(engine_for) -> None:
    engine = engine_for(make_order(attorney_id="atty-1"), make_order(order_id="order-2", attorney_id="atty-9"))
    batch = engine.recommend(_lead(submission_id="SUB-7"))

    labels = {r.attorney_id: r.attorney_label for r in batch.recommendations}
    assert labels == {"atty-1": "Dana Reyes", "atty-9": "atty-9"}
    assert batch.lead.lead_id == "lead-7"
    assert batch.lead.state == "TX"


def test_malformed_lead_degrades_to_error(engine_for) -> None:
    batch = engine_for(make_order()).recommend({"submission_id": "SUB-1", "state": "", "case_type": "AUTO"})

    assert batch.recommendations == []
    assert batch.error is not None
    assert batch.error.category == "ValidationError"
    assert batch.lead is None


def test_storage_failure_degrades_to_error(clock) -> None:
    class UnavailableStore(InMemoryOrderStore):
        def list_open_orders(self, now):
            raise TransientError("connection refused")

    engine = RecommendationEngine(UnavailableStore(), clock=clock)
    batch = engine.recommend(_lead())

    assert batch.recommendations == []
    assert batch.error.category == "TransientError"
    assert batch.error.retryable is True
    assert batch.lead.submission_id == "SUB-1"


def test_recommend_does_not_mutate_store(engine_for) -> None:
    order = make_order(quota_total=5, quota_filled=2)
    engine = engine_for(order)
    engine.recommend(_lead())
    engine.recommend(_lead())

    assert engine._store.get_order(order.order_id) == order


class CountingAttorneyDirectory(InMemoryAttorneyDirectory):
    def __init__(self, profiles=None) -> None:
        super().__init__(profiles)
        self.single_lookups = []
        self.batches = []

    def label_for(self, attorney_id):
        self.single_lookups.append(attorney_id)
        return super().label_for(attorney_id)

    def labels_for(self, attorney_ids):
        ids = list(attorney_ids)
        self.batches.append(ids)
        return {attorney_id: InMemoryAttorneyDirectory.label_for(self, attorney_id) for attorney_id in ids}


def test_attorney_labels_fetched_only_for_returned_orders(clock) -> None:
    orders = [make_order(order_id=f"order-{i:02d}", attorney_id=f"atty-{i:02d}") for i in range(30)]
    directory = CountingAttorneyDirectory({"atty-00": {"full_name": "Dana Reyes"}})
    engine = RecommendationEngine(InMemoryOrderStore(orders), attorneys=directory, clock=clock)

    batch = engine.recommend(_lead(), limit=3)

    returned = [r.attorney_id for r in batch.recommendations]
    assert len(returned) == 3
    assert directory.single_lookups == []
    assert directory.batches == [returned]
    assert batch.recommendations[0].attorney_label == "Dana Reyes"


def test_no_label_lookup_when_nothing_matches(clock) -> None:
    directory = CountingAttorneyDirectory()
    engine = RecommendationEngine(InMemoryOrderStore([make_order()]), attorneys=directory, clock=clock)

    batch = engine.recommend(_lead(state="CA"))

    assert batch.recommendations == []
    assert directory.batches == []


def test_subtype_bonus_needs_subtype_on_both_sides() -> None:
    order = make_order(case_subtype=None)

    score, reasons = score_order(order, _lead(case_subtype="rear-end"), NOW)
    assert "case subtype match" not in reasons

    score_none, _ = score_order(make_order(case_subtype="rear-end"), _lead(), NOW)
    assert score == score_none


def test_leads_for_order_filters_and_ranks(engine_for) -> None:
    order = make_order(case_subtype="rear-end", criteria={"insured": "insured_only"})
    candidates = [
        _lead(submission_id="SUB-3", insured=True),
        _lead(submission_id="SUB-2", insured=True, case_subtype="rear-end"),
        _lead(submission_id="SUB-4", insured=False),
        _lead(submission_id="SUB-5", state="CA", insured=True),
        _lead(submission_id="SUB-6", case_type="DOG_BITE", insured=True),
        {"submission_id": "SUB-7", "state": "", "case_type": "AUTO"},
        _lead(submission_id="SUB-1", insured=True),
    ]

    batch = engine_for(order).recommend_leads_for_order("order-1", candidates)

    assert batch.ok
    assert [m.submission_id for m in batch.recommendations] == ["SUB-2", "SUB-1", "SUB-3"]
    top = batch.recommendations[0]
    assert top.lead_id == "lead-2"
    assert top.score == pytest.approx(105.0)
    assert top.reasons[:3] == ["state match", "case type match", "case subtype match"]
    assert batch.recommendations[1].score == batch.recommendations[2].score


def test_leads_for_order_skips_already_assigned(engine_for) -> None:
    engine = engine_for(make_order(quota_total=5))
    engine._store.commit_assignment("order-1", "lead-1", "agent-1", "SUB-1", NOW)
    candidates = [
        _lead(submission_id="SUB-1"),
        _lead(submission_id="SUB-8", lead_id="lead-1"),
        _lead(submission_id="SUB-2"),
    ]

    batch = engine.recommend_leads_for_order("order-1", candidates)

    assert [m.submission_id for m in batch.recommendations] == ["SUB-2"]


def test_leads_for_order_is_empty_for_closed_order(engine_for) -> None:
    fulfilled = make_order(order_id="full", quota_total=2, quota_filled=2)
    expired = make_order(order_id="stale", expires_in=timedelta(hours=-1))
    engine = engine_for(fulfilled, expired)

    for order_id in ("full", "stale"):
        batch = engine.recommend_leads_for_order(order_id, [_lead()])
        assert batch.ok
        assert batch.recommendations == []


def test_leads_for_order_missing_order_reports_not_found(engine_for) -> None:
    batch = engine_for().recommend_leads_for_order("missing", [_lead()])

    assert batch.recommendations == []
    assert batch.error.category == "NotFoundError"
    assert batch.error.kind == "ORDER_NOT_FOUND"


def test_leads_for_order_limit_is_clamped(engine_for) -> None:
    candidates = [_lead(submission_id=f"SUB-{i}") for i in range(1, 41)]
    engine = engine_for(make_order())

    assert len(engine.recommend_leads_for_order("order-1", candidates, limit=2).recommendations) == 2
    assert len(engine.recommend_leads_for_order("order-1", candidates, limit=0).recommendations) == 1
    assert len(engine.recommend_leads_for_order("order-1", candidates, limit=500).recommendations) == 25
