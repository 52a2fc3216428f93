from celery import Celery

from salesflow.core.config import get_settings

settings = get_settings()

celery_app = Celery("salesflow_api", broker=settings.redis_url, backend=settings.redis_url)
celery_app.conf.task_ignore_result = True
celery_app.autodiscover_tasks(["salesflow.notifications"], related_name="tasks")
