#!/usr/bin/env python3
"""
Mark overdue pending intake links as expired.
Meant for cron (e.g. hourly); opening a link also checks its deadline.
"""
import logging
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from counsel_intake.core.config import settings
from counsel_intake.core.db import session_scope
from counsel_intake.services.intake_service import expire_stale_links

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s:%(lineno)d - %(message)s",
)


def main() -> int:
    with session_scope() as db:
        count = expire_stale_links(db)
    print(f"Expired {count} intake link(s)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
