"""
Engine wiring.

Builds the recommendation engine, assignment coordinator and their
collaborators for the configured storage backend.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from domain.time import utc_now
from repositories.attorney_directory import (
    AttorneyDirectory,
    InMemoryAttorneyDirectory,
    SupabaseAttorneyDirectory,
)
from repositories.client import BACKEND_MEMORY, EngineSettings, get_supabase
from repositories.lead_directory import InMemoryLeadDirectory, LeadDirectory, SupabaseLeadDirectory
from repositories.memory_store import InMemoryOrderStore
from repositories.order_repository import SupabaseOrderStore
from repositories.order_store import OrderStore
from services.assignment_service import AssignmentCoordinator
from services.recommendation_service import RecommendationEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class FulfillmentEngine:
    store: OrderStore
    leads: LeadDirectory
    attorneys: AttorneyDirectory
    recommender: RecommendationEngine
    coordinator: AssignmentCoordinator
    clock: Callable[[], datetime]


def assemble_engine(
    store: OrderStore,
    leads: LeadDirectory,
    attorneys: AttorneyDirectory,
    settings: Optional[EngineSettings] = None,
    clock: Callable[[], datetime] = utc_now,
) -> FulfillmentEngine:
    """Wire an engine around explicit collaborators."""

    settings = settings or EngineSettings()
    return FulfillmentEngine(
        store=store,
        leads=leads,
        attorneys=attorneys,
        recommender=RecommendationEngine(
            store,
            attorneys=attorneys,
            leads=leads,
            clock=clock,
            default_limit=settings.default_limit,
            max_limit=settings.max_limit,
        ),
        coordinator=AssignmentCoordinator(store, leads, clock=clock),
        clock=clock,
    )


def build_engine(settings: Optional[EngineSettings] = None) -> FulfillmentEngine:
    """Wire an engine for the backend named in `settings` (default: from the environment)."""

    settings = settings or EngineSettings.from_env()

    if settings.store_backend == BACKEND_MEMORY:
        logger.warning("Using the in-memory order store; state is process-local and not durable")
        return assemble_engine(
            InMemoryOrderStore(),
            InMemoryLeadDirectory(),
            InMemoryAttorneyDirectory(),
            settings=settings,
        )

    client = get_supabase(settings)
    return assemble_engine(
        SupabaseOrderStore(client),
        SupabaseLeadDirectory(client),
        SupabaseAttorneyDirectory(client),
        settings=settings,
    )


__all__ = ["FulfillmentEngine", "assemble_engine", "build_engine"]
