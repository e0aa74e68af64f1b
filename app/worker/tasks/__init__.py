"""Tasks package."""

# Import all tasks so they're registered with Celery
from app.worker.tasks import conversation_tasks, document_tasks

# Export task modules
__all__ = ["conversation_tasks", "document_tasks"]
