"""Cleanup actions and the fixed action registry."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .base import CleanupAction
from .empty_trash import EmptyTrashAction
from .permanent import PermanentDeleteAction
from .recycle import RecycleFileAction

if TYPE_CHECKING:
    from ..trash import TrashService

__all__ = [
    "CleanupAction",
    "EmptyTrashAction",
    "PermanentDeleteAction",
    "RecycleFileAction",
    "default_actions",
]


def default_actions(trash: TrashService) -> list[CleanupAction]:
    """Return one instance of every known action."""
    return [RecycleFileAction(), PermanentDeleteAction(), EmptyTrashAction(trash)]
