# celery_worker.py
import os

from celery import Celery
from celery.schedules import crontab

from smartpark.app import app


def make_celery(app):
    """
    Configures Celery to run inside the Flask app.
    Broker and result backend come from the Flask config.
    """
    celery = Celery(
        app.import_name,
        backend=app.config['CELERY_RESULT_BACKEND'],
        broker=app.config['CELERY_BROKER_URL'],
        include=['smartpark.tasks']
    )
    celery.conf.update(
        beat_schedule=app.config['CELERY_BEAT_SCHEDULE'],
        timezone='UTC',
    )

    class ContextTask(celery.Task):
        def __call__(self, *args, **kwargs):
            with app.app_context():
                return self.run(*args, **kwargs)

    celery.Task = ContextTask
    return celery


app.config.update(
    CELERY_BROKER_URL=os.getenv('SMARTPARK_CELERY_BROKER_URL', 'redis://localhost:6379/0'),
    CELERY_RESULT_BACKEND=os.getenv('SMARTPARK_CELERY_RESULT_BACKEND', 'redis://localhost:6379/0'),
)

# --- Celery Beat (Scheduler) ---
app.config['CELERY_BEAT_SCHEDULE'] = {
    'send-daily-report': {
        'task': 'smartpark.tasks.send_daily_report',
        # Shortly after midnight UTC, for the day that just ended
        'schedule': crontab(hour=0, minute=15),
    },
    'send-monthly-report': {
        'task': 'smartpark.tasks.send_monthly_report',
        'schedule': crontab(hour=1, minute=0, day_of_month=1),
    },
}

celery = make_celery(app)
