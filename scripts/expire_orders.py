"""
Expire stale orders.

Runs the expiry sweep once; schedule it with cron (e.g. every minute). Safe to
run repeatedly: orders already EXPIRED or FULFILLED are never touched.

Usage:
    python scripts/expire_orders.py
"""

import logging
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from repositories.client import EngineSettings
from services.expiry_sweep import sweep_expired_orders
from services.wiring import build_engine


def main() -> int:
    settings = EngineSettings.from_env()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    engine = build_engine(settings)
    expired = sweep_expired_orders(engine.store)
    print(f"Expired {expired} order(s)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
