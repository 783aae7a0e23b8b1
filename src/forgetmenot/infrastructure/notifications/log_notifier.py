"""
Log Notifier: Infrastructure adapter that records reminders in the log.

Stands in for a mail/push transport; delivery always succeeds.
"""

import logging

from forgetmenot.domain.reminders.models import ReminderSubscription
from forgetmenot.domain.reminders.ports import Notifier

logger = logging.getLogger(__name__)


class LogNotifier(Notifier):
    def __init__(self, frontend_url: str = ""):
        self.frontend_url = frontend_url.rstrip("/")

    def render_subject(self, due_count: int) -> str:
        return f"{due_count} note(s) to review today"

    async def send_daily_reminder(
        self, subscription: ReminderSubscription, due_count: int
    ) -> bool:
        name = subscription.first_name or "there"
        logger.info(
            f"Reminder to {subscription.email}: Hi {name}, "
            f"{self.render_subject(due_count)} ({self.frontend_url}/review)"
        )
        return True
