"""Celery worker configuration.

The worker delivers booking events to the outbound webhook. Run it with:

    celery -A bookingcore.worker worker -Q booking_events
"""

from celery import Celery

from bookingcore.config import settings

celery_app = Celery(
    "bookingcore",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["bookingcore.tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Event delivery has its own queue
    task_routes={"bookingcore.tasks.deliver_booking_event": {"queue": "booking_events"}},

    # Acknowledge only after the receiver answered
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_time_limit=120,
    task_soft_time_limit=90,

    worker_prefetch_multiplier=1,

    # Delivery results are kept for troubleshooting only
    result_expires=3600,

    task_default_retry_delay=30,
    task_max_retries=5,
)


if __name__ == "__main__":
    celery_app.start()
