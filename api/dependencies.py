"""
FastAPI dependencies.

The engine is built once per process from the environment. Tests replace it
through `app.dependency_overrides[get_engine]`.
"""

from functools import lru_cache

from services.wiring import FulfillmentEngine, build_engine


@lru_cache(maxsize=1)
def get_engine() -> FulfillmentEngine:
    return build_engine()
