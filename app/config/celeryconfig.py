from celery.schedules import crontab
from .settings import settings

# Basic Celery Configuration
broker_url = settings.redis_url
result_backend = settings.redis_url

# Task Discovery
include = ["app.tasks"]

# Timezone Configuration
timezone = "UTC"
enable_utc = True

# Task Result Configuration
result_expires = 3600

# Task Serialization
task_serializer = "json"
accept_content = ["json"]
result_serializer = "json"

# Task Execution Configuration
task_track_started = True
task_time_limit = 10 * 60  # 10 minutes
task_soft_time_limit = 8 * 60  # 8 minutes

# Worker Configuration
worker_prefetch_multiplier = 1
worker_max_tasks_per_child = 1000

# Delivery is best-effort, tasks are not re-queued on worker loss
task_acks_late = False

# Birthdays are evaluated per user timezone, so the notifier runs every hour
beat_schedule = {
    "approaching-birthday-notifier": {
        "task": "app.tasks.cron.approaching_birthday_notifier.approaching_birthday_notifier_task",
        "schedule": crontab(minute=0),
        "args": ("approaching_birthday_notifier_cron",),
    },
}

# Default Queue
task_default_queue = "birthday-reminders"

# Beat Scheduler Configuration
beat_schedule_filename = "tmp/celerybeat-schedule"
