"""
Entidades del dominio.
"""
from .change_intent import ChangeIntent, DeleteIntent, InsertIntent, IntentType, UpdateIntent
from .image_task import ImageTaskCreation, ImageTaskState, ImageTaskStatus
from .post import PostRecord, stamp_insert, stamp_update

__all__ = [
    "ChangeIntent",
    "DeleteIntent",
    "InsertIntent",
    "IntentType",
    "UpdateIntent",
    "ImageTaskCreation",
    "ImageTaskState",
    "ImageTaskStatus",
    "PostRecord",
    "stamp_insert",
    "stamp_update",
]
