from __future__ import annotations

import logging
from typing import Any

from celery import Celery, Task
from celery.signals import setup_logging
from kombu import Queue

from .core.config import settings

logger = logging.getLogger(__name__)

# Outbound mail. The API only enqueues these by name.
EMAIL_TASKS = (
    "eventspark.tasks.send_booking_confirmation_email",
    "eventspark.tasks.send_user_invite_email",
    "eventspark.tasks.send_role_change_email",
    "eventspark.tasks.send_otp_email",
)

celery_app = Celery(
    "eventspark",
    broker=settings.celery.BROKER_URL,
    backend=settings.celery.RESULT_BACKEND,
    include=["eventspark.tasks"],
)

celery_app.conf.update(
    task_serializer=settings.celery.TASK_SERIALIZER,
    result_serializer=settings.celery.RESULT_SERIALIZER,
    accept_content=settings.celery.ACCEPT_CONTENT,
    timezone=settings.celery.TIMEZONE,
    enable_utc=True,
    task_queues=(Queue("default"), Queue("emails")),
    task_default_queue="default",
    task_routes={name: {"queue": "emails"} for name in EMAIL_TASKS},
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    broker_connection_retry_on_startup=True,
    # invite and code tasks carry secrets; keep results short-lived
    result_expires=600,
    task_soft_time_limit=120,
    task_time_limit=180,
)


@setup_logging.connect  # type: ignore[misc]
def config_loggers(*args: Any, **kwargs: Any) -> None:
    """Workers log JSON lines, same as the API process."""
    from logging.config import dictConfig

    level = settings.monitoring.LOG_LEVEL
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "json": {
                    "()": "pythonjsonlogger.json.JsonFormatter",
                    "format": "%(asctime)s %(levelname)s %(processName)s %(name)s %(message)s",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "json",
                },
            },
            "root": {"level": level, "handlers": ["console"]},
        }
    )


class EmailTask(Task):
    """Logs task outcomes by id only; arguments may hold credentials."""

    abstract = True

    def _log(self, level: int, outcome: str, task_id: str, **extra: Any) -> None:
        logger.log(
            level,
            f"{self.name} [{task_id}] {outcome}",
            extra={"task_id": task_id, "task_name": self.name, **extra},
        )

    def on_failure(
        self,
        exc: Exception,
        task_id: str,
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
        einfo: Any,
    ) -> None:
        self._log(logging.ERROR, f"gave up: {exc}", task_id)

    def on_success(
        self,
        retval: Any,
        task_id: str,
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
    ) -> None:
        self._log(logging.INFO, "delivered", task_id, sent=retval)

    def on_retry(
        self,
        exc: Exception,
        task_id: str,
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
        einfo: Any,
    ) -> None:
        self._log(
            logging.WARNING, f"retrying: {exc}", task_id, retry_count=self.request.retries
        )


celery_app.Task = EmailTask
