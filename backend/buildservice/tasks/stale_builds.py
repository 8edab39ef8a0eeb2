"""
Stale build detection task.

Periodically fails builds stuck in 'pending' or 'building' beyond their
expected duration. Covers Builder dispatches that never arrived and builders
that crashed without reporting back.

Thresholds (configurable):
    - pending builds: failed 30 minutes after creation
    - building builds: failed 2 hours after start
"""

import logging
from datetime import timedelta

from ..celery_app import celery_app
from ..config import get_settings
from ..database import get_session_factory
from ..services.build_records import BuildRecordManager

logger = logging.getLogger(__name__)


@celery_app.task(
    name="buildservice.tasks.detect_stale_builds",
    time_limit=120,
    soft_time_limit=90,
)
def detect_stale_builds() -> dict:
    """
    Detect and recover builds stuck in pending/building state.

    Returns:
        dict with counts of recovered builds by previous status.
    """
    settings = get_settings()
    manager = BuildRecordManager(get_session_factory())

    try:
        recovered = manager.fail_stale_builds(
            pending_timeout=timedelta(minutes=settings.pending_build_timeout_minutes),
            building_timeout=timedelta(minutes=settings.building_build_timeout_minutes),
        )
    except Exception as e:
        logger.error(f"Stale build detection failed: {e}", exc_info=True)
        return {"error": str(e)}

    if not any(recovered.values()):
        logger.debug("Stale build detection: no stuck builds found")
    return recovered
