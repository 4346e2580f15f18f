from celery import Celery
from celery.schedules import crontab
from app.core.config import settings

# Initialize Celery
celery_app = Celery(
    "tasks",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=[
        "app.tasks.subscription_tasks"
    ]
)

celery_app.conf.update(
    task_track_started=True,
    beat_schedule={
        'process-subscription-renewals-daily': {
            'task': 'tasks.process_subscription_renewals',
            'schedule': crontab(hour=settings.RENEWAL_SCAN_HOUR, minute=0),
        },
        'process-trial-endings-daily': {
            'task': 'tasks.process_trial_endings',
            'schedule': crontab(hour=settings.TRIAL_SCAN_HOUR, minute=0),
        },
    },
)
