"""
CLI entrypoint for the overdue-returns check. Run from cron, e.g.:

  python -m app.overdue

Or daily: 0 7 * * * cd /path/to/cash-advance && .venv/bin/python -m app.overdue
"""

import logging
import sys

from app.core.config import get_settings
from app.core.database import SessionLocal
from app.services.overdue import run_overdue_check

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)


def main() -> int:
    """Run the overdue check; exit status 1 if it could not complete."""
    settings = get_settings()
    db = SessionLocal()
    try:
        overdue = run_overdue_check(db, settings)
        logger.info("Overdue check completed: overdue=%s", len(overdue))
        return 0
    except Exception as e:
        logger.exception("Overdue check failed: %s", e)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
