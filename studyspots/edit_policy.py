"""One check-in plus at most one edit per user and place."""
from __future__ import annotations

from enum import Enum
from typing import Optional

from . import config
from .models import Rating


class EditNotAllowedError(RuntimeError):
    """Raised when a rating has already used its edit."""


class SubmissionKind(str, Enum):
    CREATE = "create"
    UPDATE = "update"


def can_edit(existing: Optional[Rating]) -> bool:
    if existing is None:
        return True
    return int(existing.edit_count) < config.MAX_RATING_EDITS


def submission_kind(existing: Optional[Rating]) -> SubmissionKind:
    return SubmissionKind.CREATE if existing is None else SubmissionKind.UPDATE


def ensure_can_edit(existing: Optional[Rating]) -> SubmissionKind:
    if not can_edit(existing):
        raise EditNotAllowedError("You have already edited your rating for this place")
    return submission_kind(existing)
