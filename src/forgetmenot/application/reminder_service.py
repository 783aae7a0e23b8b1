"""
Daily reminder pass.

Meant to be triggered once an hour (cron, systemd timer, `forgetmenot remind`):
each enabled subscriber whose preferred hour matches gets told how many notes
are waiting.
"""

import logging
from collections.abc import Callable
from datetime import datetime

from forgetmenot.application.scheduling.interval_policy import IntervalPolicy, default_policy
from forgetmenot.domain.notes.ports import NoteRepository
from forgetmenot.domain.reminders.models import ReminderDispatch
from forgetmenot.domain.reminders.ports import Notifier, SubscriptionStore

logger = logging.getLogger(__name__)


class ReminderService:
    def __init__(
        self,
        repository: NoteRepository,
        store: SubscriptionStore,
        notifier: Notifier,
        policy: IntervalPolicy | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._repo = repository
        self._store = store
        self._notifier = notifier
        self._policy = policy or default_policy
        self._clock = clock

    async def run(
        self, now: datetime | None = None, owner_id: str | None = None
    ) -> list[ReminderDispatch]:
        """
        Send reminders that are due at `now`, to every subscriber or only `owner_id`.

        Subscribers are skipped when disabled, when `now.hour` is not their
        reminder hour, or when nothing is due. A failing delivery is logged
        and does not stop the pass.

        Returns:
            One ReminderDispatch per attempted delivery.
        """
        now = now or self._clock()
        cutoff = self._policy.due_cutoff(now)
        dispatches: list[ReminderDispatch] = []

        logger.info("Sending daily reminders...")
        for sub in await self._store.list_subscriptions():
            if owner_id is not None and sub.owner_id != owner_id:
                continue
            if not sub.enabled:
                continue
            try:
                if sub.reminder_hour != now.hour:
                    continue
            except ValueError:
                logger.warning(f"Invalid reminder time {sub.reminder_time!r} for {sub.owner_id}")
                continue

            due_count = await self._repo.count_due(sub.owner_id, cutoff)
            if due_count == 0:
                continue

            try:
                delivered = await self._notifier.send_daily_reminder(sub, due_count)
            except Exception as e:
                logger.error(f"Reminder to {sub.email} failed: {e}", exc_info=True)
                delivered = False

            dispatches.append(
                ReminderDispatch(
                    owner_id=sub.owner_id,
                    email=sub.email,
                    due_count=due_count,
                    delivered=delivered,
                )
            )

        sent = sum(1 for d in dispatches if d.delivered)
        logger.info(f"Daily reminders sent: {sent}/{len(dispatches)}")
        return dispatches
