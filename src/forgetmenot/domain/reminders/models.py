"""Domain models for daily review reminders."""

from dataclasses import dataclass

from forgetmenot.domain.constants import DEFAULT_REMINDER_TIME


@dataclass
class ReminderSubscription:
    """
    A user's reminder preferences.

    Attributes:
        owner_id: The user to remind.
        email: Delivery address.
        first_name: Used for greeting, optional.
        reminder_time: Preferred local time as "HH:MM"; only the hour is honoured.
        enabled: Whether reminders are sent at all.
    """

    owner_id: str
    email: str
    first_name: str | None = None
    reminder_time: str = DEFAULT_REMINDER_TIME
    enabled: bool = True

    @property
    def reminder_hour(self) -> int:
        hour, _, _ = self.reminder_time.partition(":")
        return int(hour)


@dataclass(frozen=True)
class ReminderDispatch:
    """Outcome of one reminder attempt."""

    owner_id: str
    email: str
    due_count: int
    delivered: bool
