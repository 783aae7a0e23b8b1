# Domain Reminders Package
from .models import ReminderDispatch, ReminderSubscription
from .ports import Notifier, SubscriptionStore

__all__ = ["ReminderSubscription", "ReminderDispatch", "Notifier", "SubscriptionStore"]
