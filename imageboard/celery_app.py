"""Celery application configuration."""

from celery import Celery

from imageboard.config import get_settings

settings = get_settings()

app = Celery(
    "imageboard",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["imageboard.tasks.media", "imageboard.tasks.audit"],
)

# Celery configuration
app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_ignore_result=True,  # every task here is fire-and-forget
    task_time_limit=300,  # 5 minutes max per task
    task_soft_time_limit=240,  # 4 minutes soft limit
)
