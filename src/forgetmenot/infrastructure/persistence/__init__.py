# Infrastructure Persistence Package
from .database import create_engine, init_database
from .memory_repository import InMemoryNoteRepository
from .sqlalchemy_repository import SqlAlchemyNoteRepository

__all__ = [
    "create_engine",
    "init_database",
    "InMemoryNoteRepository",
    "SqlAlchemyNoteRepository",
]
