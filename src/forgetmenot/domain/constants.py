"""Centralized constants for ForgetMeNot.

All magic numbers and defaults live here so every layer
imports from a single source of truth.
"""

# ---------- Scheduling ----------
# Days until the next review, indexed by read count (clamped at the last entry).
REVIEW_INTERVALS_DAYS: tuple[int, ...] = (1, 3, 7, 14, 30, 60, 90, 180, 365)

# ---------- Review Orchestrator ----------
RECENT_HISTORY_LIMIT = 5  # read events attached to each note in list views
MAX_READ_ATTEMPTS = 5  # compare-and-swap retries for concurrent reads
DEFAULT_DAILY_STATS_DAYS = 7

# ---------- Notes ----------
TITLE_MAX_LENGTH = 200
CONTENT_MAX_LENGTH = 5000
EDITABLE_NOTE_FIELDS = frozenset({"title", "content", "tags", "category_id"})

# ---------- Reminders ----------
DEFAULT_REMINDER_TIME = "09:00"

# ---------- Identity ----------
OWNER_HEADER = "X-User-Id"
