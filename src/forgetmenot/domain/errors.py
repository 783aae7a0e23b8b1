"""
Typed domain errors for ForgetMeNot.

Callers map each of these to a user-facing response; the domain never
distinguishes "absent" from "owned by someone else".
"""


class DomainError(Exception):
    """Base class for all domain-specific errors."""


class NotFoundError(DomainError):
    """A resource is absent or not owned by the caller."""


class NoteNotFoundError(NotFoundError):
    """Note with the given ID does not exist for this owner."""

    def __init__(self, note_id: str) -> None:
        self.note_id = note_id
        super().__init__(f"Note {note_id} not found")


class CategoryNotFoundError(NotFoundError):
    """Category with the given ID does not exist for this owner."""

    def __init__(self, category_id: str) -> None:
        self.category_id = category_id
        super().__init__(f"Category {category_id} not found")


class ConflictError(DomainError):
    """The requested change collides with the current stored state."""
