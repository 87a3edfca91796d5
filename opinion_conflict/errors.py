"""Exception types raised by the conflict engine."""

from __future__ import annotations


class ConflictEngineError(Exception):
    """Base class for all conflict engine errors."""


class NotFoundError(ConflictEngineError):
    """A card, profile or conflict is missing or belongs to another owner."""


class CollaboratorError(ConflictEngineError):
    """The opinion-analysis collaborator failed, timed out or answered garbage."""


class ConstraintViolation(ConflictEngineError):
    """An insert collided with an existing row on its uniqueness key.

    Attributes:
        key: The uniqueness key that was already taken
    """

    def __init__(self, key: str) -> None:
        super().__init__(f"row already exists for key {key!r}")
        self.key = key
