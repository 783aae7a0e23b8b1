"""Ports for reminder subscriptions and delivery."""

from abc import ABC, abstractmethod

from .models import ReminderSubscription


class SubscriptionStore(ABC):
    """Port for persisting reminder preferences, one per owner."""

    @abstractmethod
    async def save_subscription(self, subscription: ReminderSubscription) -> ReminderSubscription:
        """Insert or replace the subscription for `subscription.owner_id`."""
        pass

    @abstractmethod
    async def list_subscriptions(self) -> list[ReminderSubscription]:
        pass


class Notifier(ABC):
    """
    Port for delivering reminders.

    Transport (SMTP, push, ...) and templating belong to the adapter.
    """

    @abstractmethod
    async def send_daily_reminder(
        self, subscription: ReminderSubscription, due_count: int
    ) -> bool:
        """Deliver a reminder. Returns False when delivery failed."""
        pass
