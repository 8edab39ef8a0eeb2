"""
Celery configuration for periodic maintenance
Runs the stale build reaper on a beat schedule
"""

import logging

from celery import Celery
from kombu import Queue

from .config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

celery_app = Celery(
    "buildservice",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["buildservice.tasks.stale_builds"],
)

celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    # Reliability
    task_reject_on_worker_lost=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_routes={
        "buildservice.tasks.detect_stale_builds": {"queue": "maintenance"},
    },
    task_default_queue="default",
    task_queues=[
        Queue("default", routing_key="default"),
        Queue("maintenance", routing_key="maintenance"),
    ],
    result_expires=3600,  # 1 hour
    beat_schedule={
        "detect-stale-builds": {
            "task": "buildservice.tasks.detect_stale_builds",
            "schedule": 300.0,  # every 5 minutes
        },
    },
    task_eager_propagates=settings.debug,
)
