from .email_tools import send_email
from .task_tools import create_task
from .webhook_tools import call_webhook

__all__ = ["send_email", "create_task", "call_webhook"]
