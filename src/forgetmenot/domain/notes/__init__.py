# Domain Notes Package
from .models import Category, DailyStat, Note, NoteStats, ReadEvent
from .ports import NoteRepository

__all__ = ["Category", "Note", "ReadEvent", "DailyStat", "NoteStats", "NoteRepository"]
