# Infrastructure Notifications Package
from .log_notifier import LogNotifier

__all__ = ["LogNotifier"]
